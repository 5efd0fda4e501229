"""Core evaluation engine: on-demand, memoized evaluation of node graphs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from nodeval._errors import CacheInvariantError, CycleDetectedError, NodeEvalError
from nodeval._templates import get_template
from nodeval._value import make_value

from ._cache import OutputsCache

if TYPE_CHECKING:
    from nodeval._graph import Graph, NodeId, OutputId
    from nodeval._value import Value

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EvaluationResult:
    """Outcome of evaluating one node for display.

    Attributes:
        node_id: The node that was requested.
        value: The node's primary output, or None if evaluation failed.
        error: Description of the first error raised anywhere in the
            dependency chain, or None on success.
        failed_node: The node whose evaluation raised the error.
        outputs: Every output computed during the request. Empty on failure.

    """

    node_id: NodeId
    value: Value | None = None
    error: str | None = None
    failed_node: NodeId | None = None
    outputs: dict[OutputId, Value] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """Check if evaluation completed without errors."""
        return self.error is None

    def get_value(self) -> Value:
        """Get the computed value.

        Raises:
            ValueError: If evaluation failed.

        """
        if self.value is None:
            msg = f"Evaluation of {self.node_id} failed: {self.error}"
            raise ValueError(msg)
        return self.value


@dataclass(slots=True)
class _EvaluationContext:
    """State threaded through one recursive evaluation.

    `in_progress` holds the nodes on the current recursion stack, so that
    reaching one of them again is reported as a cycle.
    """

    graph: Graph
    cache: OutputsCache
    in_progress: list[NodeId] = field(default_factory=list)


def evaluate_node(graph: Graph, node_id: NodeId, cache: OutputsCache | None = None) -> Value:
    """Evaluate a node, recursively evaluating everything it depends on.

    All outputs of every node evaluated along the way are written to
    `cache`. Nodes whose outputs are already cached are not computed again,
    so reusing one cache across calls evaluates each node at most once.

    Args:
        graph: The graph to read. It must not be edited during the call.
        node_id: The node to evaluate.
        cache: Outputs computed so far. A fresh cache is used if omitted.

    Returns:
        The value of the node's primary output.

    Raises:
        NodeEvalError: The first error raised anywhere in the dependency chain.

    """
    context = _EvaluationContext(graph=graph, cache=cache if cache is not None else OutputsCache())
    return _evaluate_node(context, node_id)


def evaluate_input(graph: Graph, node_id: NodeId, name: str, cache: OutputsCache) -> Value:
    """Get the effective value of a node's input port.

    If the input is connected, this is the value of the upstream output,
    taken from `cache` or computed by evaluating the node that owns it.
    Otherwise it is the constant stored on the port.

    Raises:
        UnknownPortError: If the node has no input called `name`.
        NodeEvalError: If evaluating the upstream node fails.

    """
    return _evaluate_input(_EvaluationContext(graph=graph, cache=cache), node_id, name)


def populate_output(graph: Graph, cache: OutputsCache, node_id: NodeId, name: str, value: Value) -> Value:
    """Store the value computed for a node's output and return it.

    Raises:
        UnknownPortError: If the node has no output called `name`.

    """
    output_id = graph.node(node_id).get_output(name)
    cache.insert(output_id, value)
    return value


def evaluate(graph: Graph, node_id: NodeId) -> EvaluationResult:
    """Evaluate a node with a fresh cache and capture the outcome.

    This is the entry point for presentation code: evaluation errors are
    returned in the result instead of being raised.
    """
    cache = OutputsCache()
    try:
        value = evaluate_node(graph, node_id, cache)
    except NodeEvalError as e:
        logger.debug("Evaluation of %s failed at %s: %s", node_id, e.origin, e)
        return EvaluationResult(node_id=node_id, error=str(e), failed_node=e.origin)

    return EvaluationResult(node_id=node_id, value=value, outputs=cache.as_dict())


def _evaluate_node(context: _EvaluationContext, node_id: NodeId) -> Value:
    graph = context.graph
    node = graph.node(node_id)
    template = get_template(node.kind)
    primary_id = node.get_output(template.primary_output)

    if all(output_id in context.cache for output_id in node.output_ids()):
        logger.debug("Outputs of %s already computed", node_id)
        return context.cache[primary_id]

    if node_id in context.in_progress:
        start = context.in_progress.index(node_id)
        raise CycleDetectedError([*context.in_progress[start:], node_id])

    context.in_progress.append(node_id)
    try:
        logger.debug("Evaluating %s (%s)", node_id, node.kind)
        inputs = {
            port.name: _evaluate_input(context, node_id, port.name).try_as(port.data_type)
            for port in template.inputs
        }
        outputs = template.compute(**inputs)

        for name, payload in outputs.items():
            output = graph.output_param(node.get_output(name))
            value = populate_output(graph, context.cache, node_id, name, make_value(output.data_type, payload))
            logger.debug("  Set %s.%s = %r", node_id, name, value)
    except NodeEvalError as e:
        if e.origin is None:
            e.origin = node_id
        raise
    finally:
        context.in_progress.pop()

    value = context.cache.get(primary_id)
    if value is None:
        raise CacheInvariantError(primary_id)
    return value


def _evaluate_input(context: _EvaluationContext, node_id: NodeId, name: str) -> Value:
    graph = context.graph
    input_id = graph.node(node_id).get_input(name)
    source = graph.connection(input_id)

    if source is None:
        logger.debug("  %s.%s is unconnected, using its constant", node_id, name)
        return graph.input_param(input_id).value

    cached = context.cache.get(source)
    if cached is not None:
        logger.debug("  %s.%s read %s from cache", node_id, name, source)
        return cached

    _evaluate_node(context, graph.output_param(source).node)

    cached = context.cache.get(source)
    if cached is None:
        raise CacheInvariantError(source)
    return cached
