"""Exception types raised while editing and evaluating node graphs.

All evaluation failures derive from `NodeEvalError`. The engine raises them
and lets them propagate unchanged through the recursive resolution chain;
only the presentation entry point (`nodeval.evaluate`) turns them into
error messages.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ._graph import NodeId, OutputId


class NodeEvalError(Exception):
    """Base class for errors raised by the evaluation engine.

    Attributes:
        origin: The node whose evaluation raised the error, set by the engine
            as the error leaves the innermost node. None if it was raised
            outside of node evaluation.

    """

    origin: NodeId | None = None


class TypeMismatchError(NodeEvalError):
    """Raised when a value is narrowed to a type tag it does not carry."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Invalid cast from {actual} to {expected}")


class UnknownNodeError(NodeEvalError):
    """Raised when a node id does not refer to a node of the graph."""

    def __init__(self, node_id: NodeId) -> None:
        self.node_id = node_id
        super().__init__(f"Node {node_id} does not exist in the graph")


class UnknownPortError(NodeEvalError):
    """Raised when a node has no input or output port with the given name."""

    def __init__(self, node_id: NodeId, name: str, role: str) -> None:
        self.node_id = node_id
        self.name = name
        self.role = role
        super().__init__(f"Node {node_id} has no {role} named '{name}'")


class FileReadError(NodeEvalError):
    """Raised when a CSV file cannot be read."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Could not read '{path}': {reason}")


class CsvParseError(NodeEvalError):
    """Raised when a CSV file cannot be parsed into a frame."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Could not parse '{path}' as CSV: {reason}")


class CacheInvariantError(NodeEvalError):
    """Raised when evaluating a node did not populate one of its outputs.

    This signals a bug in the engine or in a node template, never a user error.
    """

    def __init__(self, output_id: OutputId) -> None:
        self.output_id = output_id
        super().__init__(f"Output {output_id} is missing from the cache after evaluating its node")


class CycleDetectedError(NodeEvalError):
    """Raised when a node is reached again while it is still being evaluated."""

    def __init__(self, cycle: Sequence[NodeId]) -> None:
        self.cycle = tuple(cycle)
        chain = " -> ".join(str(node_id) for node_id in self.cycle)
        super().__init__(f"Cycle detected in graph: {chain}")


class GraphEditError(Exception):
    """Raised when a structural edit of the graph is invalid."""
