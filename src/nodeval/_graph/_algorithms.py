"""Graph algorithms over node-level dependency mappings."""

from collections import defaultdict, deque
from collections.abc import Collection, Hashable, Mapping
from typing import TypeVar

T = TypeVar("T", bound=Hashable)


def topological_sort(successors: Mapping[T, Collection[T]]) -> list[T]:
    """Sort a graph topologically (upstream nodes before downstream nodes).

    Args:
        successors: Mapping from node to the nodes consuming one of its outputs.
            An edge (a -> b) means "b reads an output of a".

    Returns:
        List of nodes in topological order.

    Raises:
        ValueError: If the graph contains a cycle.

    Example:
        >>> topological_sort({"load": ["select"], "select": ["filter"], "filter": []})
        ['load', 'select', 'filter']

    """
    indegree: defaultdict[T, int] = defaultdict(int)
    for node, downstream in successors.items():
        indegree[node] = indegree.get(node, 0)
        for dep in downstream:
            indegree[dep] += 1

    queue = deque([node for node, deg in indegree.items() if deg == 0])
    order: list[T] = []

    while queue:
        node = queue.popleft()
        order.append(node)
        for successor in successors.get(node, []):
            indegree[successor] -= 1
            if indegree[successor] == 0:
                queue.append(successor)

    if len(order) != len(indegree):
        msg = "Cycle detected in graph"
        raise ValueError(msg)

    return order


def find_cycle(successors: Mapping[T, Collection[T]]) -> list[T] | None:
    """Find one cycle in the graph, if any.

    Returns:
        The nodes of a cycle in edge order with the first node repeated at
        the end (e.g. ``["a", "b", "a"]``), or None if the graph is acyclic.

    """
    done: set[T] = set()

    for start in successors:
        if start in done:
            continue
        # Iterative DFS keeping the current path so a back edge yields the cycle.
        path: list[T] = [start]
        on_path: set[T] = {start}
        stack = [iter(successors.get(start, ()))]
        while stack:
            for nxt in stack[-1]:
                if nxt in on_path:
                    return [*path[path.index(nxt) :], nxt]
                if nxt not in done:
                    path.append(nxt)
                    on_path.add(nxt)
                    stack.append(iter(successors.get(nxt, ())))
                    break
            else:
                stack.pop()
                finished = path.pop()
                on_path.discard(finished)
                done.add(finished)

    return None
