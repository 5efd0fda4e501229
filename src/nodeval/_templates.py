"""Catalog of node kinds: their ports and the operation each one performs.

Every node kind is described by a `NodeTemplate`. The template declares the
ordered input and output ports a node of that kind is built with, and a pure
`compute` function. The evaluator resolves the declared inputs, narrows them
to the declared data types and calls `compute` with the payloads as keyword
arguments (named after the input ports). `compute` returns a mapping from
output port name to payload.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import StrEnum, auto
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pandas as pd
from pandas.api.types import is_numeric_dtype

from ._errors import CsvParseError, FileReadError, TypeMismatchError
from ._value import DataType, Vector2, empty_series

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

logger = logging.getLogger(__name__)


class NodeKind(StrEnum):
    """The fixed set of operations a node can perform."""

    MAKE_SCALAR = auto()
    ADD_SCALAR = auto()
    SUBTRACT_SCALAR = auto()
    MAKE_VECTOR = auto()
    ADD_VECTOR = auto()
    SUBTRACT_VECTOR = auto()
    VECTOR_TIMES_SCALAR = auto()
    LOAD_CSV = auto()
    COUNT_ROWS = auto()
    SELECT_COLUMN = auto()
    SIMPLE_FILTER = auto()


@dataclass(frozen=True, slots=True)
class PortSpec:
    """Name and data type of a port declared by a template."""

    name: str
    data_type: DataType


@dataclass(frozen=True, slots=True)
class NodeTemplate:
    """Description of a node kind.

    Attributes:
        kind: The node kind this template builds.
        label: Human readable name shown in node finders.
        categories: Finder categories the kind is listed under.
        inputs: Input ports in declaration order.
        outputs: Output ports in declaration order. The first one is the
            primary output returned by evaluation.
        compute: Operation mapping input payloads (as keyword arguments) to
            a mapping of output name to payload.

    """

    kind: NodeKind
    label: str
    categories: tuple[str, ...]
    inputs: tuple[PortSpec, ...]
    outputs: tuple[PortSpec, ...]
    compute: Callable[..., Mapping[str, Any]]

    @property
    def primary_output(self) -> str:
        """Name of the output returned when a node of this kind is evaluated."""
        return self.outputs[0].name


# --- Operations -------------------------------------------------------------


def _make_scalar(value: float) -> dict[str, Any]:
    return {"out": value}


def _add_scalar(A: float, B: float) -> dict[str, Any]:  # noqa: N803
    return {"out": A + B}


def _subtract_scalar(A: float, B: float) -> dict[str, Any]:  # noqa: N803
    return {"out": A - B}


def _make_vector(x: float, y: float) -> dict[str, Any]:
    return {"out": Vector2(x, y)}


def _add_vector(v1: Vector2, v2: Vector2) -> dict[str, Any]:
    return {"out": v1 + v2}


def _subtract_vector(v1: Vector2, v2: Vector2) -> dict[str, Any]:
    return {"out": v1 - v2}


def _vector_times_scalar(scalar: float, vector: Vector2) -> dict[str, Any]:
    return {"out": vector * scalar}


def load_csv(path: str | Path) -> pd.DataFrame:
    """Read a comma-delimited file with a header row into a frame.

    Column types are inferred from the content: numeric columns become
    float or integer columns (missing cells become nulls), anything else
    stays text. Duplicate header names are made unique.

    Raises:
        FileReadError: If the file cannot be opened or decoded.
        CsvParseError: If the content is not valid CSV.

    """
    logger.debug("Loading CSV from %s", path)
    try:
        return pd.read_csv(path)
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(path, str(e)) from e
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise CsvParseError(path, str(e)) from e


def _load_csv(path: str) -> dict[str, Any]:
    if not path:
        raise FileReadError(path, "no path given")
    return {"out": load_csv(Path(path))}


def _count_rows(df: pd.DataFrame) -> dict[str, Any]:
    return {"out": float(len(df))}


def _select_column(df: pd.DataFrame, column: str) -> dict[str, Any]:
    if column not in df.columns:
        logger.debug("Column %r not found, producing an empty series", column)
        return {"out": empty_series()}
    return {"out": df[column].copy()}


def _simple_filter(df: pd.Series, min: float, max: float) -> dict[str, Any]:  # noqa: A002
    # The input port is called "df" in the node finder even though it carries a series.
    if not is_numeric_dtype(df.dtype):
        raise TypeMismatchError(expected="numeric series", actual=f"series of {df.dtype}")
    # Comparisons with nulls are False, so nulls never survive the filter.
    kept = df[(df >= min) & (df <= max)]
    return {"out": kept.reset_index(drop=True)}


# --- Catalog ----------------------------------------------------------------


def _ports(*ports: tuple[str, DataType]) -> tuple[PortSpec, ...]:
    return tuple(PortSpec(name, data_type) for name, data_type in ports)


_SCALAR_OUT = _ports(("out", DataType.SCALAR))
_VECTOR_OUT = _ports(("out", DataType.VECTOR))
_SERIES_OUT = _ports(("out", DataType.SERIES))

_TEMPLATES: dict[NodeKind, NodeTemplate] = {
    template.kind: template
    for template in (
        NodeTemplate(
            kind=NodeKind.MAKE_SCALAR,
            label="New scalar",
            categories=("Scalar",),
            inputs=_ports(("value", DataType.SCALAR)),
            outputs=_SCALAR_OUT,
            compute=_make_scalar,
        ),
        NodeTemplate(
            kind=NodeKind.MAKE_VECTOR,
            label="New vector",
            categories=("Vector",),
            inputs=_ports(("x", DataType.SCALAR), ("y", DataType.SCALAR)),
            outputs=_VECTOR_OUT,
            compute=_make_vector,
        ),
        NodeTemplate(
            kind=NodeKind.ADD_SCALAR,
            label="Scalar add",
            categories=("Scalar",),
            inputs=_ports(("A", DataType.SCALAR), ("B", DataType.SCALAR)),
            outputs=_SCALAR_OUT,
            compute=_add_scalar,
        ),
        NodeTemplate(
            kind=NodeKind.SUBTRACT_SCALAR,
            label="Scalar subtract",
            categories=("Scalar",),
            inputs=_ports(("A", DataType.SCALAR), ("B", DataType.SCALAR)),
            outputs=_SCALAR_OUT,
            compute=_subtract_scalar,
        ),
        NodeTemplate(
            kind=NodeKind.ADD_VECTOR,
            label="Vector add",
            categories=("Vector",),
            inputs=_ports(("v1", DataType.VECTOR), ("v2", DataType.VECTOR)),
            outputs=_VECTOR_OUT,
            compute=_add_vector,
        ),
        NodeTemplate(
            kind=NodeKind.SUBTRACT_VECTOR,
            label="Vector subtract",
            categories=("Vector",),
            inputs=_ports(("v1", DataType.VECTOR), ("v2", DataType.VECTOR)),
            outputs=_VECTOR_OUT,
            compute=_subtract_vector,
        ),
        NodeTemplate(
            kind=NodeKind.VECTOR_TIMES_SCALAR,
            label="Vector times scalar",
            categories=("Vector", "Scalar"),
            inputs=_ports(("scalar", DataType.SCALAR), ("vector", DataType.VECTOR)),
            outputs=_VECTOR_OUT,
            compute=_vector_times_scalar,
        ),
        NodeTemplate(
            kind=NodeKind.LOAD_CSV,
            label="Load CSV",
            categories=("Table", "Scalar"),
            inputs=_ports(("path", DataType.TEXT)),
            outputs=_ports(("out", DataType.FRAME)),
            compute=_load_csv,
        ),
        NodeTemplate(
            kind=NodeKind.COUNT_ROWS,
            label="Count rows",
            categories=("Table", "Scalar"),
            inputs=_ports(("df", DataType.FRAME)),
            outputs=_SCALAR_OUT,
            compute=_count_rows,
        ),
        NodeTemplate(
            kind=NodeKind.SELECT_COLUMN,
            label="Select column",
            categories=("Table", "Scalar"),
            inputs=_ports(("df", DataType.FRAME), ("column", DataType.TEXT)),
            outputs=_SERIES_OUT,
            compute=_select_column,
        ),
        NodeTemplate(
            kind=NodeKind.SIMPLE_FILTER,
            label="Simple filter",
            categories=("Table", "Scalar"),
            inputs=_ports(("df", DataType.SERIES), ("min", DataType.SCALAR), ("max", DataType.SCALAR)),
            outputs=_SERIES_OUT,
            compute=_simple_filter,
        ),
    )
}


def get_template(kind: NodeKind | str) -> NodeTemplate:
    """Get the template for a node kind.

    Raises:
        ValueError: If `kind` is not a known node kind.

    """
    return _TEMPLATES[NodeKind(kind)]


def all_templates() -> list[NodeTemplate]:
    """All templates in node finder order."""
    return list(_TEMPLATES.values())


def templates_by_category() -> dict[str, list[NodeTemplate]]:
    """Group templates by finder category, in first-seen category order."""
    grouped: defaultdict[str, list[NodeTemplate]] = defaultdict(list)
    for template in _TEMPLATES.values():
        for category in template.categories:
            grouped[category].append(template)
    return dict(grouped)
