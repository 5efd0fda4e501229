"""Configuration loading from pyproject.toml."""

import tomllib
from dataclasses import dataclass
from pathlib import Path

DEFAULT_MAX_ROWS = 20


class ConfigError(Exception):
    """Error in nodeval configuration."""


@dataclass(slots=True, frozen=True)
class NodevalConfig:
    """Configuration loaded from the `[tool.nodeval]` table of pyproject.toml.

    All relative paths are resolved from the project root (directory containing pyproject.toml).
    """

    graph: Path | None = None
    max_rows: int = DEFAULT_MAX_ROWS
    project_root: Path | None = None


def find_pyproject_toml(start_dir: Path | None = None) -> Path | None:
    """Find pyproject.toml by walking up from start_dir.

    Args:
        start_dir: Starting directory. Defaults to current working directory.

    Returns:
        Path to pyproject.toml if found, None otherwise.

    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()

    while True:
        candidate = current / "pyproject.toml"
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(pyproject_path: Path) -> NodevalConfig:
    """Load and validate [tool.nodeval] config from pyproject.toml.

    Args:
        pyproject_path: Path to pyproject.toml

    Returns:
        Parsed NodevalConfig

    Raises:
        ConfigError: If the configuration is invalid

    """
    project_root = pyproject_path.parent

    with pyproject_path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {pyproject_path}: {e}"
            raise ConfigError(msg) from e

    section = data.get("tool", {}).get("nodeval", {})
    if not section:
        return NodevalConfig(project_root=project_root)

    unknown = set(section) - {"graph", "max_rows"}
    if unknown:
        msg = f"Unknown [tool.nodeval] keys: {', '.join(sorted(unknown))}"
        raise ConfigError(msg)

    graph_path: Path | None = None
    if "graph" in section:
        graph_value = section["graph"]
        if not isinstance(graph_value, str):
            msg = "Invalid [tool.nodeval].graph: expected string path"
            raise ConfigError(msg)
        graph_path = Path(graph_value)
        if not graph_path.is_absolute():
            graph_path = project_root / graph_path

    max_rows = section.get("max_rows", DEFAULT_MAX_ROWS)
    # bool is an int subclass
    if not isinstance(max_rows, int) or isinstance(max_rows, bool) or max_rows <= 0:
        msg = "Invalid [tool.nodeval].max_rows: expected a positive integer"
        raise ConfigError(msg)

    return NodevalConfig(graph=graph_path, max_rows=max_rows, project_root=project_root)


def get_config() -> NodevalConfig:
    """Get config from pyproject.toml in current directory or parents.

    Returns:
        NodevalConfig (may be empty if no pyproject.toml or no [tool.nodeval] section)

    """
    pyproject_path = find_pyproject_toml()
    if pyproject_path is None:
        return NodevalConfig()
    return load_config(pyproject_path)
