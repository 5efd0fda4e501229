"""Evaluation engine module for nodeval.

Evaluation is on demand: asking for a node's value resolves each of its
inputs, recursively evaluating the upstream nodes they are connected to,
and records every computed output in a per-request cache so that shared
upstream nodes are computed only once.

Key types:
- OutputsCache: Per-request mapping from output port id to value
- EvaluationResult: Value or error message for presentation code
- evaluate: Evaluate a node with a fresh cache, capturing errors
- evaluate_node / evaluate_input / populate_output: The recursive core
"""

from ._cache import OutputsCache
from ._engine import EvaluationResult, evaluate, evaluate_input, evaluate_node, populate_output

__all__ = [
    "EvaluationResult",
    "OutputsCache",
    "evaluate",
    "evaluate_input",
    "evaluate_node",
    "populate_output",
]
