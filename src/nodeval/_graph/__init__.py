"""Graph module: the node graph arena and its dependency view.

This module contains:
- Graph: nodes, ports and connections addressed by stable ids
- NodeId / InputId / OutputId: the stable handles
- DependencyGraph[T]: immutable node-level dependency view
- topological_sort / find_cycle: algorithms over dependency mappings
"""

from ._algorithms import find_cycle, topological_sort
from ._dependency_graph import DependencyGraph
from ._node_graph import (
    Graph,
    InputId,
    InputParam,
    InputParamKind,
    Node,
    NodeId,
    OutputId,
    OutputParam,
)

__all__ = [
    "DependencyGraph",
    "Graph",
    "InputId",
    "InputParam",
    "InputParamKind",
    "Node",
    "NodeId",
    "OutputId",
    "OutputParam",
    "find_cycle",
    "topological_sort",
]
