"""Node graph arena: nodes, ports and connections addressed by stable ids."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from enum import StrEnum, auto
from typing import TYPE_CHECKING

from nodeval._errors import GraphEditError, UnknownNodeError, UnknownPortError
from nodeval._templates import NodeKind, get_template
from nodeval._value import DataType, Value, default_value

from ._dependency_graph import DependencyGraph

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, order=True)
class NodeId:
    """Stable handle of a node."""

    index: int

    def __str__(self) -> str:
        return f"node#{self.index}"


@dataclass(frozen=True, slots=True, order=True)
class InputId:
    """Stable handle of an input port."""

    index: int

    def __str__(self) -> str:
        return f"input#{self.index}"


@dataclass(frozen=True, slots=True, order=True)
class OutputId:
    """Stable handle of an output port. Used as the key of the outputs cache."""

    index: int

    def __str__(self) -> str:
        return f"output#{self.index}"


class InputParamKind(StrEnum):
    """How an input port may receive its value."""

    CONNECTION_ONLY = auto()
    CONSTANT_ONLY = auto()
    CONNECTION_OR_CONSTANT = auto()


@dataclass(slots=True)
class InputParam:
    """An input port. `value` is the constant used while it is unconnected."""

    id: InputId
    node: NodeId
    name: str
    data_type: DataType
    value: Value
    kind: InputParamKind = InputParamKind.CONNECTION_OR_CONSTANT
    shown_inline: bool = True


@dataclass(frozen=True, slots=True)
class OutputParam:
    """An output port."""

    id: OutputId
    node: NodeId
    name: str
    data_type: DataType


@dataclass(slots=True)
class Node:
    """A node of the graph with its ordered input and output ports."""

    id: NodeId
    kind: NodeKind
    label: str
    inputs: list[tuple[str, InputId]] = field(default_factory=list)
    outputs: list[tuple[str, OutputId]] = field(default_factory=list)

    def get_input(self, name: str) -> InputId:
        """Get the id of the input port called `name`.

        Raises:
            UnknownPortError: If the node has no such input.

        """
        for param_name, input_id in self.inputs:
            if param_name == name:
                return input_id
        raise UnknownPortError(self.id, name, "input")

    def get_output(self, name: str) -> OutputId:
        """Get the id of the output port called `name`.

        Raises:
            UnknownPortError: If the node has no such output.

        """
        for param_name, output_id in self.outputs:
            if param_name == name:
                return output_id
        raise UnknownPortError(self.id, name, "output")

    def input_ids(self) -> list[InputId]:
        return [input_id for _, input_id in self.inputs]

    def output_ids(self) -> list[OutputId]:
        return [output_id for _, output_id in self.outputs]


class Graph:
    """Nodes, their ports and the connections between them.

    Structural edits (`add_node`, `remove_node`, `add_connection`, ...) are
    made by the editing side. The evaluation engine only uses the read
    accessors (`node`, `input_param`, `output_param`, `connection`) and must
    not run while the graph is being edited.

    Every input port has at most one incoming connection; an output port may
    feed any number of inputs.
    """

    def __init__(self) -> None:
        self._nodes: dict[NodeId, Node] = {}
        self._inputs: dict[InputId, InputParam] = {}
        self._outputs: dict[OutputId, OutputParam] = {}
        # input -> the output feeding it
        self._connections: dict[InputId, OutputId] = {}
        self._counter = itertools.count()

    # --- Read accessors -----------------------------------------------------

    @property
    def nodes(self) -> list[Node]:
        """All nodes in insertion order."""
        return list(self._nodes.values())

    def node(self, node_id: NodeId) -> Node:
        """Get a node by id.

        Raises:
            UnknownNodeError: If the node does not exist.

        """
        try:
            return self._nodes[node_id]
        except KeyError:
            raise UnknownNodeError(node_id) from None

    def input_param(self, input_id: InputId) -> InputParam:
        """Get an input port by id.

        Raises:
            KeyError: If the port does not exist.

        """
        return self._inputs[input_id]

    def output_param(self, output_id: OutputId) -> OutputParam:
        """Get an output port by id.

        Raises:
            KeyError: If the port does not exist.

        """
        return self._outputs[output_id]

    def connection(self, input_id: InputId) -> OutputId | None:
        """Get the output feeding `input_id`, or None if it is unconnected."""
        return self._connections.get(input_id)

    def iter_connections(self) -> Iterator[tuple[OutputId, InputId]]:
        """Iterate over (output, input) pairs of all connections."""
        for input_id, output_id in self._connections.items():
            yield output_id, input_id

    def find_node(self, label: str) -> NodeId | None:
        """Get the id of the first node labelled `label`, if any."""
        for node in self._nodes.values():
            if node.label == label:
                return node.id
        return None

    def dependency_graph(self) -> DependencyGraph[NodeId]:
        """Project the connections onto a node-level dependency graph."""
        edges = [
            (self._outputs[output_id].node, self._inputs[input_id].node)
            for output_id, input_id in self.iter_connections()
        ]
        return DependencyGraph.from_edges(edges, nodes=self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    # --- Structural edits ---------------------------------------------------

    def add_node(self, kind: NodeKind | str, label: str | None = None) -> NodeId:
        """Create a node of `kind` with the ports its template declares.

        Input ports start out unconnected holding the default constant of
        their data type.
        """
        template = get_template(kind)
        node_id = NodeId(next(self._counter))
        self._nodes[node_id] = Node(id=node_id, kind=template.kind, label=label or template.label)

        for port in template.inputs:
            self.add_input_param(node_id, port.name, port.data_type, default_value(port.data_type))
        for port in template.outputs:
            self.add_output_param(node_id, port.name, port.data_type)

        logger.debug("Added %s (%s)", node_id, template.kind)
        return node_id

    def add_input_param(  # noqa: PLR0913
        self,
        node_id: NodeId,
        name: str,
        data_type: DataType,
        value: Value,
        kind: InputParamKind = InputParamKind.CONNECTION_OR_CONSTANT,
        *,
        shown_inline: bool = True,
    ) -> InputId:
        """Append an input port to a node."""
        node = self.node(node_id)
        if any(param_name == name for param_name, _ in node.inputs):
            msg = f"Node {node_id} already has an input named '{name}'"
            raise GraphEditError(msg)

        input_id = InputId(next(self._counter))
        self._inputs[input_id] = InputParam(
            id=input_id,
            node=node_id,
            name=name,
            data_type=data_type,
            value=value,
            kind=kind,
            shown_inline=shown_inline,
        )
        node.inputs.append((name, input_id))
        return input_id

    def add_output_param(self, node_id: NodeId, name: str, data_type: DataType) -> OutputId:
        """Append an output port to a node."""
        node = self.node(node_id)
        if any(param_name == name for param_name, _ in node.outputs):
            msg = f"Node {node_id} already has an output named '{name}'"
            raise GraphEditError(msg)

        output_id = OutputId(next(self._counter))
        self._outputs[output_id] = OutputParam(id=output_id, node=node_id, name=name, data_type=data_type)
        node.outputs.append((name, output_id))
        return output_id

    def remove_node(self, node_id: NodeId) -> list[tuple[OutputId, InputId]]:
        """Remove a node, its ports and every connection touching them.

        Returns:
            The removed connections as (output, input) pairs.

        """
        node = self.node(node_id)
        own_inputs = set(node.input_ids())
        own_outputs = set(node.output_ids())

        removed = [
            (output_id, input_id)
            for output_id, input_id in self.iter_connections()
            if input_id in own_inputs or output_id in own_outputs
        ]
        for _, input_id in removed:
            del self._connections[input_id]

        for input_id in own_inputs:
            del self._inputs[input_id]
        for output_id in own_outputs:
            del self._outputs[output_id]
        del self._nodes[node_id]

        logger.debug("Removed %s and %d connection(s)", node_id, len(removed))
        return removed

    def add_connection(self, output_id: OutputId, input_id: InputId) -> None:
        """Connect an output to an input, replacing the input's current connection.

        Raises:
            GraphEditError: If either port does not exist, the data types
                differ, or the input only accepts a constant.

        """
        if output_id not in self._outputs:
            msg = f"Unknown output {output_id}"
            raise GraphEditError(msg)
        if input_id not in self._inputs:
            msg = f"Unknown input {input_id}"
            raise GraphEditError(msg)

        output = self._outputs[output_id]
        param = self._inputs[input_id]
        if param.kind is InputParamKind.CONSTANT_ONLY:
            msg = f"Input '{param.name}' of {param.node} does not accept connections"
            raise GraphEditError(msg)
        if output.data_type is not param.data_type:
            msg = (
                f"Cannot connect {output.data_type} output '{output.name}' of {output.node} "
                f"to {param.data_type} input '{param.name}' of {param.node}"
            )
            raise GraphEditError(msg)

        previous = self._connections.get(input_id)
        if previous is not None:
            logger.debug("Replacing connection %s -> %s", previous, input_id)
        self._connections[input_id] = output_id

    def remove_connection(self, input_id: InputId) -> OutputId | None:
        """Disconnect an input. Returns the output it was connected to, if any."""
        return self._connections.pop(input_id, None)

    def set_input_value(self, input_id: InputId, value: Value) -> None:
        """Set the constant an input uses while unconnected.

        The value is stored as given; a tag that differs from the port's data
        type surfaces as a `TypeMismatchError` when the node is evaluated.
        """
        if input_id not in self._inputs:
            msg = f"Unknown input {input_id}"
            raise GraphEditError(msg)
        self._inputs[input_id].value = value
