"""Immutable node-level dependency view of a node graph."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Hashable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from ._algorithms import find_cycle, topological_sort

T = TypeVar("T", bound=Hashable)


@dataclass(frozen=True, slots=True)
class DependencyGraph(Generic[T]):
    """A directed graph of "reads output of" relationships between nodes.

    - predecessors[b] = {a} means "b reads an output of a"
    - successors[a] = {b} means "an output of a feeds b"

    Port-level detail is dropped: two connections between the same pair of
    nodes collapse into one edge.
    """

    _predecessors: dict[T, frozenset[T]] = field(default_factory=dict)
    _successors: dict[T, frozenset[T]] = field(default_factory=dict)

    @classmethod
    def from_edges(cls, edges: Iterable[tuple[T, T]], nodes: Iterable[T] = ()) -> DependencyGraph[T]:
        """Build a graph from (upstream, downstream) edges.

        Args:
            edges: Pairs (a, b) meaning "b reads an output of a".
            nodes: Extra nodes to include even if they have no edges.

        Example:
            >>> graph = DependencyGraph.from_edges([("a", "b"), ("b", "c")])
            >>> graph.predecessors("b")
            frozenset({'a'})

        """
        predecessors: defaultdict[T, set[T]] = defaultdict(set)
        successors: defaultdict[T, set[T]] = defaultdict(set)

        for node in nodes:
            predecessors.setdefault(node, set())
            successors.setdefault(node, set())

        for src, dst in edges:
            predecessors[dst].add(src)
            successors[src].add(dst)
            predecessors.setdefault(src, set())
            successors.setdefault(dst, set())

        return cls(
            _predecessors={k: frozenset(v) for k, v in predecessors.items()},
            _successors={k: frozenset(v) for k, v in successors.items()},
        )

    @property
    def nodes(self) -> frozenset[T]:
        """All nodes in the graph."""
        return frozenset(self._predecessors) | frozenset(self._successors)

    def predecessors(self, node: T) -> frozenset[T]:
        """Nodes whose outputs `node` reads directly."""
        return self._predecessors.get(node, frozenset())

    def successors(self, node: T) -> frozenset[T]:
        """Nodes that read an output of `node` directly."""
        return self._successors.get(node, frozenset())

    def ancestors(self, node: T) -> frozenset[T]:
        """All nodes `node` transitively depends on."""
        visited: set[T] = set()
        stack = list(self.predecessors(node))
        while stack:
            current = stack.pop()
            if current not in visited:
                visited.add(current)
                stack.extend(self.predecessors(current))
        return frozenset(visited)

    def topological_order(self) -> list[T]:
        """Return nodes with every upstream node before its consumers.

        Raises:
            ValueError: If the graph contains a cycle.

        """
        return topological_sort(dict(self._successors))

    def find_cycle(self) -> list[T] | None:
        """Return one cycle of the graph, or None if it is acyclic."""
        return find_cycle(dict(self._successors))

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node: object) -> bool:
        return node in self._predecessors or node in self._successors
