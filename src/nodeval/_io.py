"""Reading and writing node graphs as TOML documents.

A graph document lists nodes by label, each with its kind and the constants
of its unconnected inputs, followed by the connections between them:

    [nodes.a]
    kind = "make_scalar"
    inputs = { value = 5.0 }

    [nodes.b]
    kind = "add_scalar"
    inputs = { B = 10.0 }

    [[connections]]
    from = "a.out"
    to = "b.A"

Constants are written in the TOML shape matching the port's data type:
scalar = number, vector = `[x, y]`, text = string, series = array of numbers
(or `{ name = "...", values = [...] }` for a named series),
frame = table of equal-length arrays.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pandas as pd
import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ._errors import GraphEditError, UnknownPortError
from ._graph import Graph, NodeId
from ._templates import NodeKind
from ._value import (
    DataType,
    FrameValue,
    ScalarValue,
    SeriesValue,
    TextValue,
    Value,
    Vector2,
    VectorValue,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


class GraphDocumentError(Exception):
    """Error in a graph document."""


class NodeEntry(BaseModel):
    """A node of a graph document."""

    model_config = ConfigDict(extra="forbid")

    kind: NodeKind
    inputs: dict[str, Any] = Field(default_factory=dict)


class ConnectionEntry(BaseModel):
    """A connection of a graph document, as `label.port` references."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    source: str = Field(alias="from", pattern=r"^.+\..+$")
    target: str = Field(alias="to", pattern=r"^.+\..+$")


class GraphDocument(BaseModel):
    """Top level of a graph document."""

    model_config = ConfigDict(extra="forbid")

    nodes: dict[str, NodeEntry] = Field(default_factory=dict)
    connections: list[ConnectionEntry] = Field(default_factory=list)


@dataclass(frozen=True, slots=True)
class LoadedGraph:
    """A graph built from a document, with the ids of its labelled nodes."""

    graph: Graph
    nodes: dict[str, NodeId]

    def node_id(self, label: str) -> NodeId:
        """Get the id of the node with the given label.

        Raises:
            GraphDocumentError: If no node has that label.

        """
        try:
            return self.nodes[label]
        except KeyError:
            available = ", ".join(sorted(self.nodes)) or "none"
            msg = f"No node labelled '{label}' (available: {available})"
            raise GraphDocumentError(msg) from None


# =============================================================================
# Constant conversion
# =============================================================================


def _is_number(raw: object) -> bool:
    return isinstance(raw, int | float) and not isinstance(raw, bool)


def _constant_to_value(data_type: DataType, raw: Any, base_dir: Path | None, *, is_path: bool) -> Value:  # noqa: C901, PLR0912
    """Convert a TOML constant to a value of `data_type`.

    Raises:
        ValueError: If the constant does not have the shape of `data_type`.

    """
    match data_type:
        case DataType.SCALAR:
            if not _is_number(raw):
                msg = f"expected a number, got {raw!r}"
                raise ValueError(msg)
            return ScalarValue(float(raw))
        case DataType.VECTOR:
            if not (isinstance(raw, list) and len(raw) == 2 and all(_is_number(c) for c in raw)):  # noqa: PLR2004
                msg = f"expected [x, y], got {raw!r}"
                raise ValueError(msg)
            return VectorValue(Vector2(float(raw[0]), float(raw[1])))
        case DataType.TEXT:
            if not isinstance(raw, str):
                msg = f"expected a string, got {raw!r}"
                raise ValueError(msg)
            if is_path and raw and base_dir is not None and not Path(raw).is_absolute():
                raw = str(base_dir / raw)
            return TextValue(raw)
        case DataType.SERIES:
            name = None
            if isinstance(raw, dict):
                if set(raw) != {"name", "values"} or not isinstance(raw["name"], str):
                    msg = f"expected {{ name = <string>, values = [...] }}, got {raw!r}"
                    raise ValueError(msg)
                name, raw = raw["name"], raw["values"]
            if not (isinstance(raw, list) and all(_is_number(e) for e in raw)):
                msg = f"expected an array of numbers, got {raw!r}"
                raise ValueError(msg)
            return SeriesValue(pd.Series(raw, dtype="float64", name=name))
        case DataType.FRAME:
            if not (isinstance(raw, dict) and all(isinstance(col, list) for col in raw.values())):
                msg = f"expected a table of arrays, got {raw!r}"
                raise ValueError(msg)
            if len({len(col) for col in raw.values()}) > 1:
                msg = "frame columns must have the same length"
                raise ValueError(msg)
            return FrameValue(pd.DataFrame(raw))


def _value_to_constant(value: Value) -> Any:
    """Convert a value to its TOML constant, or None if it has no useful one."""
    match value:
        case ScalarValue(number):
            return number
        case VectorValue(vector):
            return [vector.x, vector.y]
        case TextValue(text):
            return text
        case SeriesValue(series):
            if not len(series):
                return None
            if series.name is None:
                return series.tolist()
            return {"name": str(series.name), "values": series.tolist()}
        case FrameValue(frame):
            if frame.empty:
                return None
            return {str(col): frame[col].tolist() for col in frame.columns}
        case _:
            return None


# =============================================================================
# Loading
# =============================================================================


def _split_reference(reference: str) -> tuple[str, str]:
    label, _, port = reference.rpartition(".")
    return label, port


def load_graph(data: Mapping[str, Any], base_dir: Path | None = None) -> LoadedGraph:  # noqa: C901
    """Build a graph from an already-parsed document.

    Args:
        data: The parsed document.
        base_dir: Directory relative CSV paths are resolved against.

    Raises:
        GraphDocumentError: If the document is invalid.

    """
    try:
        document = GraphDocument.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid graph document:\n{e}"
        raise GraphDocumentError(msg) from e

    graph = Graph()
    nodes: dict[str, NodeId] = {}

    for label, entry in document.nodes.items():
        node_id = graph.add_node(entry.kind, label=label)
        nodes[label] = node_id
        node = graph.node(node_id)
        for name, raw in entry.inputs.items():
            try:
                input_id = node.get_input(name)
            except UnknownPortError as e:
                msg = f"Node '{label}': {e}"
                raise GraphDocumentError(msg) from e
            param = graph.input_param(input_id)
            is_path = entry.kind is NodeKind.LOAD_CSV and name == "path"
            try:
                value = _constant_to_value(param.data_type, raw, base_dir, is_path=is_path)
            except ValueError as e:
                msg = f"Node '{label}', input '{name}' ({param.data_type}): {e}"
                raise GraphDocumentError(msg) from e
            graph.set_input_value(input_id, value)

    for connection in document.connections:
        source_label, source_port = _split_reference(connection.source)
        target_label, target_port = _split_reference(connection.target)
        for label in (source_label, target_label):
            if label not in nodes:
                msg = f"Connection {connection.source} -> {connection.target}: unknown node '{label}'"
                raise GraphDocumentError(msg)
        try:
            output_id = graph.node(nodes[source_label]).get_output(source_port)
            input_id = graph.node(nodes[target_label]).get_input(target_port)
            graph.add_connection(output_id, input_id)
        except (UnknownPortError, GraphEditError) as e:
            msg = f"Connection {connection.source} -> {connection.target}: {e}"
            raise GraphDocumentError(msg) from e

    logger.debug("Loaded graph with %d nodes and %d connections", len(nodes), len(document.connections))
    return LoadedGraph(graph=graph, nodes=nodes)


def load_graph_from_toml(path: Path) -> LoadedGraph:
    """Load a graph document from a TOML file.

    Relative CSV paths in the document are resolved against the file's
    directory.

    Raises:
        GraphDocumentError: If the file is not valid TOML or not a valid document.

    """
    with path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {path}: {e}"
            raise GraphDocumentError(msg) from e
    return load_graph(data, base_dir=path.parent)


# =============================================================================
# Saving
# =============================================================================


def _unique_labels(graph: Graph) -> dict[NodeId, str]:
    labels: dict[NodeId, str] = {}
    used: set[str] = set()
    for node in graph.nodes:
        label = node.label
        suffix = node.id.index
        while label in used:
            label = f"{node.label}_{suffix}"
            suffix += 1
        used.add(label)
        labels[node.id] = label
    return labels


def dump_graph(graph: Graph) -> dict[str, Any]:
    """Convert a graph to a document mapping.

    Unconnected inputs keep their constants; empty series and frame
    constants are omitted.
    """
    labels = _unique_labels(graph)
    nodes: dict[str, Any] = {}

    for node in graph.nodes:
        inputs: dict[str, Any] = {}
        for name, input_id in node.inputs:
            if graph.connection(input_id) is not None:
                continue
            constant = _value_to_constant(graph.input_param(input_id).value)
            if constant is None:
                continue
            inputs[name] = constant
        entry: dict[str, Any] = {"kind": str(node.kind)}
        if inputs:
            entry["inputs"] = inputs
        nodes[labels[node.id]] = entry

    connections = []
    for output_id, input_id in graph.iter_connections():
        output = graph.output_param(output_id)
        param = graph.input_param(input_id)
        connections.append(
            {
                "from": f"{labels[output.node]}.{output.name}",
                "to": f"{labels[param.node]}.{param.name}",
            },
        )

    document: dict[str, Any] = {"nodes": nodes}
    if connections:
        document["connections"] = connections
    return document


def save_graph_to_toml(graph: Graph, path: Path) -> None:
    """Write a graph document to a TOML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as f:
        tomli_w.dump(dump_graph(graph), f)
    logger.debug("Saved graph with %d nodes to %s", len(graph), path)
