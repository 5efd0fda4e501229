import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from nodeval._eval_engine import evaluate
from nodeval._graph import NodeId
from nodeval._io import GraphDocumentError, LoadedGraph, load_graph_from_toml, save_graph_to_toml
from nodeval._templates import templates_by_category

from .config import ConfigError, NodevalConfig, get_config
from .render import build_dependency_tree, render_node_table, render_templates, render_value

app = typer.Typer()

logger = logging.getLogger(__name__)
# Console for stderr (info/errors)
err_console = Console(stderr=True)
# Console for stdout (results)
out_console = Console()

GraphOption = Annotated[
    Path | None,
    typer.Option("-g", "--graph", help="Path to graph TOML file (defaults to the graph configured in pyproject.toml)"),
]


@app.callback()
def callback(
    *,
    verbose: bool = typer.Option(default=False, help="Enable verbose output"),
) -> None:
    """Nodeval CLI."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # Configure rich logging handler to output to stderr
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=err_console,
                show_time=False,
                show_path=verbose,
                rich_tracebacks=True,
            ),
        ],
    )


def _get_config() -> NodevalConfig:
    """Load the [tool.nodeval] config, exiting with code 2 if it is invalid."""
    try:
        return get_config()
    except ConfigError as e:
        err_console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        raise typer.Exit(code=2) from e


def _load_graph(graph_path: Path | None) -> LoadedGraph:
    """Load the graph document given on the command line or in the config."""
    if graph_path is None:
        graph_path = _get_config().graph
        if graph_path is None:
            err_console.print("[red]No graph given. Use --graph or set \\[tool.nodeval].graph[/red]")
            raise typer.Exit(code=2)

    if not graph_path.is_file():
        err_console.print(f"[red]Error: Graph file not found: {escape(str(graph_path))}[/red]")
        raise typer.Exit(code=1)

    err_console.print(f"[cyan]Loading graph from:[/cyan] {escape(str(graph_path))}")
    try:
        return load_graph_from_toml(graph_path)
    except GraphDocumentError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


def _node_id(loaded: LoadedGraph, label: str) -> NodeId:
    try:
        return loaded.node_id(label)
    except GraphDocumentError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


@app.command(name="eval")
def eval_(
    node: Annotated[
        str,
        typer.Argument(help="Label of the node to evaluate"),
    ],
    *,
    graph_path: GraphOption = None,
    max_rows: Annotated[
        int | None,
        typer.Option(
            "--max-rows",
            min=1,
            help="Rows shown for series and tables (defaults to max_rows in pyproject.toml)",
        ),
    ] = None,
) -> None:
    """Evaluate a node and display its value."""
    loaded = _load_graph(graph_path)
    node_id = _node_id(loaded, node)
    if max_rows is None:
        max_rows = _get_config().max_rows

    err_console.print(f"[cyan]Evaluating node:[/cyan] [bold]{escape(node)}[/bold]")
    result = evaluate(loaded.graph, node_id)

    if not result.success:
        where = ""
        if result.failed_node is not None and result.failed_node in loaded.graph:
            where = f" (in node '{loaded.graph.node(result.failed_node).label}')"
        err_console.print(f"[red]✗ Execution error{escape(where)}: {escape(result.error or '')}[/red]")
        raise typer.Exit(code=1)

    logger.debug("Computed %d output(s)", len(result.outputs))
    render_value(result.get_value(), out_console, max_rows)


@app.command()
def check(
    *,
    graph_path: GraphOption = None,
) -> None:
    """Validate a graph document and list its nodes."""
    loaded = _load_graph(graph_path)
    graph = loaded.graph

    render_node_table(graph, err_console)
    err_console.print()

    deps = graph.dependency_graph()
    cycle = deps.find_cycle()
    if cycle is not None:
        chain = " -> ".join(graph.node(node_id).label for node_id in cycle)
        err_console.print(f"[red]✗ Graph contains a cycle: {escape(chain)}[/red]")
        raise typer.Exit(code=1)

    order = [graph.node(node_id).label for node_id in deps.topological_order()]
    if order:
        err_console.print(f"[cyan]Evaluation order:[/cyan] {escape(' -> '.join(order))}")
    err_console.print("[green]✓ Graph is valid[/green]")


@app.command()
def tree(
    node: Annotated[
        str,
        typer.Argument(help="Label of the node whose dependencies are shown"),
    ],
    *,
    graph_path: GraphOption = None,
) -> None:
    """Show the upstream dependencies of a node as a tree."""
    loaded = _load_graph(graph_path)
    node_id = _node_id(loaded, node)
    out_console.print(build_dependency_tree(loaded.graph, node_id))

    upstream = loaded.graph.dependency_graph().ancestors(node_id)
    out_console.print(f"\n[dim]{len(upstream)} upstream node(s)[/dim]")


@app.command()
def templates() -> None:
    """List the available node kinds grouped by category."""
    render_templates(templates_by_category(), out_console)


@app.command(name="format")
def format_(
    *,
    graph_path: GraphOption = None,
    output: Annotated[
        Path | None,
        typer.Option("-o", "--output", help="Path to output TOML file (defaults to the graph file)"),
    ] = None,
) -> None:
    """Rewrite a graph document in normalized form."""
    loaded = _load_graph(graph_path)
    if output is None:
        output = graph_path if graph_path is not None else _get_config().graph
    if output is None:
        err_console.print("[red]No output path given[/red]")
        raise typer.Exit(code=2)

    save_graph_to_toml(loaded.graph, output)
    err_console.print(
        Panel(
            f"{len(loaded.graph)} nodes written to {escape(str(output))}",
            title="[bold]Graph formatted[/bold]",
            border_style="cyan",
        ),
    )


def main() -> None:
    app()
