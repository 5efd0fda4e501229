"""Tests for the evaluation engine module."""

import dataclasses
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from nodeval import (
    CacheInvariantError,
    CycleDetectedError,
    DataType,
    EvaluationResult,
    FileReadError,
    FrameValue,
    Graph,
    NodeKind,
    OutputsCache,
    ScalarValue,
    SeriesValue,
    TextValue,
    TypeMismatchError,
    UnknownNodeError,
    UnknownPortError,
    Vector2,
    VectorValue,
    evaluate,
    evaluate_input,
    evaluate_node,
    populate_output,
)
from nodeval._graph import NodeId
from nodeval._templates import _TEMPLATES


def _set(graph: Graph, node_id: NodeId, name: str, value: Any) -> None:
    graph.set_input_value(graph.node(node_id).get_input(name), value)


def _connect(graph: Graph, source: NodeId, target: NodeId, name: str, output: str = "out") -> None:
    graph.add_connection(graph.node(source).get_output(output), graph.node(target).get_input(name))


@pytest.fixture
def make_scalar_calls(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Record every computation of a MakeScalar node."""
    calls: list[float] = []
    template = _TEMPLATES[NodeKind.MAKE_SCALAR]

    def counting(value: float) -> dict[str, Any]:
        calls.append(value)
        return template.compute(value=value)

    monkeypatch.setitem(_TEMPLATES, NodeKind.MAKE_SCALAR, dataclasses.replace(template, compute=counting))
    return calls


class TestEndToEnd:
    def test_scalar_chain(self) -> None:
        graph = Graph()
        a = graph.add_node(NodeKind.MAKE_SCALAR)
        b = graph.add_node(NodeKind.ADD_SCALAR)
        _set(graph, a, "value", ScalarValue(5.0))
        _set(graph, b, "B", ScalarValue(10.0))
        _connect(graph, a, b, "A")

        cache = OutputsCache()
        value = evaluate_node(graph, b, cache)

        assert value == ScalarValue(15.0)
        assert len(cache) == 2
        assert set(cache) == {graph.node(a).get_output("out"), graph.node(b).get_output("out")}
        assert cache[graph.node(a).get_output("out")] == ScalarValue(5.0)

    def test_unconnected_node_uses_constants(self) -> None:
        graph = Graph()
        node = graph.add_node(NodeKind.ADD_SCALAR)
        _set(graph, node, "A", ScalarValue(2.0))
        _set(graph, node, "B", ScalarValue(3.0))

        assert evaluate_node(graph, node) == ScalarValue(5.0)

    def test_vector_pipeline(self) -> None:
        graph = Graph()
        v1 = graph.add_node(NodeKind.MAKE_VECTOR)
        _set(graph, v1, "x", ScalarValue(3.0))
        _set(graph, v1, "y", ScalarValue(4.0))
        diff = graph.add_node(NodeKind.SUBTRACT_VECTOR)
        _set(graph, diff, "v2", VectorValue(Vector2(1.0, 1.0)))
        _connect(graph, v1, diff, "v1")
        scaled = graph.add_node(NodeKind.VECTOR_TIMES_SCALAR)
        _set(graph, scaled, "scalar", ScalarValue(2.0))
        _connect(graph, diff, scaled, "vector")

        assert evaluate_node(graph, diff) == VectorValue(Vector2(2.0, 3.0))
        assert evaluate_node(graph, scaled) == VectorValue(Vector2(4.0, 6.0))

    def test_table_pipeline(self, tmp_path: Path) -> None:
        csv = tmp_path / "values.csv"
        csv.write_text("id,v\n1,0\n2,1\n3,2\n4,3\n5,4\n6,\n7,9\n")

        graph = Graph()
        load = graph.add_node(NodeKind.LOAD_CSV)
        _set(graph, load, "path", TextValue(str(csv)))
        count = graph.add_node(NodeKind.COUNT_ROWS)
        _connect(graph, load, count, "df")
        select = graph.add_node(NodeKind.SELECT_COLUMN)
        _set(graph, select, "column", TextValue("v"))
        _connect(graph, load, select, "df")
        filt = graph.add_node(NodeKind.SIMPLE_FILTER)
        _set(graph, filt, "min", ScalarValue(1.0))
        _set(graph, filt, "max", ScalarValue(3.0))
        _connect(graph, select, filt, "df")

        assert isinstance(evaluate_node(graph, load), FrameValue)
        assert evaluate_node(graph, count) == ScalarValue(7.0)
        filtered = evaluate_node(graph, filt)
        assert isinstance(filtered, SeriesValue)
        assert filtered.try_series().tolist() == [1.0, 2.0, 3.0]

    def test_select_missing_column_is_not_an_error(self) -> None:
        graph = Graph()
        select = graph.add_node(NodeKind.SELECT_COLUMN)
        _set(graph, select, "df", FrameValue(pd.DataFrame({"x": [1, 2]})))
        _set(graph, select, "column", TextValue("y"))

        result = evaluate_node(graph, select).try_series()

        assert result.name == "empty"
        assert len(result) == 0


class TestAtMostOnce:
    def test_diamond_computes_upstream_once(self, make_scalar_calls: list[float]) -> None:
        graph = Graph()
        source = graph.add_node(NodeKind.MAKE_SCALAR)
        _set(graph, source, "value", ScalarValue(2.0))
        left = graph.add_node(NodeKind.ADD_SCALAR)
        right = graph.add_node(NodeKind.SUBTRACT_SCALAR)
        _connect(graph, source, left, "A")
        _connect(graph, source, right, "A")
        _set(graph, left, "B", ScalarValue(1.0))
        _set(graph, right, "B", ScalarValue(1.0))
        sink = graph.add_node(NodeKind.ADD_SCALAR)
        _connect(graph, left, sink, "A")
        _connect(graph, right, sink, "B")

        assert evaluate_node(graph, sink) == ScalarValue(4.0)
        assert make_scalar_calls == [2.0]

    def test_siblings_share_cache(self, make_scalar_calls: list[float]) -> None:
        graph = Graph()
        source = graph.add_node(NodeKind.MAKE_SCALAR)
        left = graph.add_node(NodeKind.ADD_SCALAR)
        right = graph.add_node(NodeKind.ADD_SCALAR)
        _connect(graph, source, left, "A")
        _connect(graph, source, right, "A")

        cache = OutputsCache()
        evaluate_node(graph, left, cache)
        evaluate_node(graph, right, cache)

        assert len(make_scalar_calls) == 1
        assert len(cache) == 3

    def test_fan_out_into_one_node(self, make_scalar_calls: list[float]) -> None:
        graph = Graph()
        source = graph.add_node(NodeKind.MAKE_SCALAR)
        _set(graph, source, "value", ScalarValue(3.0))
        add = graph.add_node(NodeKind.ADD_SCALAR)
        _connect(graph, source, add, "A")
        _connect(graph, source, add, "B")

        assert evaluate_node(graph, add) == ScalarValue(6.0)
        assert len(make_scalar_calls) == 1

    def test_cached_node_is_not_recomputed(self, make_scalar_calls: list[float]) -> None:
        graph = Graph()
        source = graph.add_node(NodeKind.MAKE_SCALAR)

        cache = OutputsCache()
        evaluate_node(graph, source, cache)
        evaluate_node(graph, source, cache)

        assert len(make_scalar_calls) == 1

    def test_fresh_cache_recomputes(self, make_scalar_calls: list[float]) -> None:
        graph = Graph()
        source = graph.add_node(NodeKind.MAKE_SCALAR)

        evaluate_node(graph, source)
        evaluate_node(graph, source)

        assert len(make_scalar_calls) == 2


class TestEvaluateInput:
    def test_constant_fallback(self) -> None:
        graph = Graph()
        node = graph.add_node(NodeKind.ADD_SCALAR)
        _set(graph, node, "B", ScalarValue(7.0))
        cache = OutputsCache()

        assert evaluate_input(graph, node, "B", cache) == ScalarValue(7.0)
        assert len(cache) == 0

    def test_constant_unaffected_by_unrelated_edits(self) -> None:
        graph = Graph()
        node = graph.add_node(NodeKind.ADD_SCALAR)
        _set(graph, node, "B", ScalarValue(7.0))
        other = graph.add_node(NodeKind.MAKE_SCALAR)
        _connect(graph, other, node, "A")
        graph.remove_node(other)
        graph.add_node(NodeKind.LOAD_CSV)

        assert evaluate_input(graph, node, "B", OutputsCache()) == ScalarValue(7.0)

    def test_connected_input_evaluates_upstream(self) -> None:
        graph = Graph()
        source = graph.add_node(NodeKind.MAKE_SCALAR)
        _set(graph, source, "value", ScalarValue(9.0))
        target = graph.add_node(NodeKind.ADD_SCALAR)
        _connect(graph, source, target, "A")
        cache = OutputsCache()

        assert evaluate_input(graph, target, "A", cache) == ScalarValue(9.0)
        assert graph.node(source).get_output("out") in cache

    def test_cache_hit_skips_evaluation(self, make_scalar_calls: list[float]) -> None:
        graph = Graph()
        source = graph.add_node(NodeKind.MAKE_SCALAR)
        target = graph.add_node(NodeKind.ADD_SCALAR)
        _connect(graph, source, target, "A")
        cache = OutputsCache()
        cache.insert(graph.node(source).get_output("out"), ScalarValue(42.0))

        assert evaluate_input(graph, target, "A", cache) == ScalarValue(42.0)
        assert make_scalar_calls == []

    def test_unknown_port(self) -> None:
        graph = Graph()
        node = graph.add_node(NodeKind.ADD_SCALAR)
        with pytest.raises(UnknownPortError):
            evaluate_input(graph, node, "C", OutputsCache())


class TestPopulateOutput:
    def test_inserts_and_returns(self) -> None:
        graph = Graph()
        node = graph.add_node(NodeKind.MAKE_SCALAR)
        cache = OutputsCache()

        value = populate_output(graph, cache, node, "out", ScalarValue(1.0))

        assert value == ScalarValue(1.0)
        assert cache.get(graph.node(node).get_output("out")) == ScalarValue(1.0)

    def test_unknown_output(self) -> None:
        graph = Graph()
        node = graph.add_node(NodeKind.MAKE_SCALAR)
        with pytest.raises(UnknownPortError):
            populate_output(graph, OutputsCache(), node, "missing", ScalarValue(1.0))


class TestMultipleOutputs:
    def test_all_outputs_populated(self, monkeypatch: pytest.MonkeyPatch) -> None:
        template = _TEMPLATES[NodeKind.MAKE_SCALAR]

        def with_double(value: float) -> dict[str, Any]:
            return {"out": value, "double": value * 2}

        monkeypatch.setitem(_TEMPLATES, NodeKind.MAKE_SCALAR, dataclasses.replace(template, compute=with_double))

        graph = Graph()
        node = graph.add_node(NodeKind.MAKE_SCALAR)
        graph.add_output_param(node, "double", DataType.SCALAR)
        _set(graph, node, "value", ScalarValue(4.0))
        consumer = graph.add_node(NodeKind.ADD_SCALAR)
        _connect(graph, node, consumer, "A", output="double")

        cache = OutputsCache()
        assert evaluate_node(graph, node, cache) == ScalarValue(4.0)
        assert cache[graph.node(node).get_output("double")] == ScalarValue(8.0)
        assert evaluate_node(graph, consumer, cache) == ScalarValue(8.0)

    def test_missing_output_violates_cache_invariant(self, monkeypatch: pytest.MonkeyPatch) -> None:
        template = _TEMPLATES[NodeKind.MAKE_SCALAR]
        monkeypatch.setitem(
            _TEMPLATES,
            NodeKind.MAKE_SCALAR,
            dataclasses.replace(template, compute=lambda value: {"out": value}),
        )

        graph = Graph()
        node = graph.add_node(NodeKind.MAKE_SCALAR)
        graph.add_output_param(node, "never", DataType.SCALAR)
        consumer = graph.add_node(NodeKind.ADD_SCALAR)
        _connect(graph, node, consumer, "A", output="never")

        with pytest.raises(CacheInvariantError):
            evaluate_node(graph, consumer)


class TestErrors:
    def test_type_mismatch_from_constant(self) -> None:
        graph = Graph()
        node = graph.add_node(NodeKind.ADD_SCALAR)
        _set(graph, node, "A", TextValue("two"))

        with pytest.raises(TypeMismatchError) as exc_info:
            evaluate_node(graph, node)

        assert exc_info.value.origin == node

    def test_upstream_error_propagates_unchanged(self, tmp_path: Path) -> None:
        graph = Graph()
        load = graph.add_node(NodeKind.LOAD_CSV)
        _set(graph, load, "path", TextValue(str(tmp_path / "nope.csv")))
        count = graph.add_node(NodeKind.COUNT_ROWS)
        _connect(graph, load, count, "df")
        cache = OutputsCache()

        with pytest.raises(FileReadError) as exc_info:
            evaluate_node(graph, count, cache)

        assert exc_info.value.origin == load
        assert len(cache) == 0

    def test_unknown_node(self) -> None:
        with pytest.raises(UnknownNodeError):
            evaluate_node(Graph(), NodeId(0))

    def test_cycle_is_reported(self) -> None:
        graph = Graph()
        a = graph.add_node(NodeKind.ADD_SCALAR)
        b = graph.add_node(NodeKind.ADD_SCALAR)
        _connect(graph, a, b, "A")
        _connect(graph, b, a, "A")

        with pytest.raises(CycleDetectedError) as exc_info:
            evaluate_node(graph, a)

        assert exc_info.value.cycle == (a, b, a)

    def test_self_loop_is_reported(self) -> None:
        graph = Graph()
        a = graph.add_node(NodeKind.ADD_SCALAR)
        _connect(graph, a, a, "B")

        with pytest.raises(CycleDetectedError):
            evaluate_node(graph, a)


class TestEvaluate:
    def test_success(self) -> None:
        graph = Graph()
        a = graph.add_node(NodeKind.MAKE_SCALAR)
        _set(graph, a, "value", ScalarValue(5.0))
        b = graph.add_node(NodeKind.ADD_SCALAR)
        _set(graph, b, "B", ScalarValue(10.0))
        _connect(graph, a, b, "A")

        result = evaluate(graph, b)

        assert result.success
        assert result.get_value() == ScalarValue(15.0)
        assert len(result.outputs) == 2
        assert result.failed_node is None

    def test_failure_is_captured(self) -> None:
        graph = Graph()
        node = graph.add_node(NodeKind.VECTOR_TIMES_SCALAR)
        _set(graph, node, "vector", ScalarValue(1.0))

        result = evaluate(graph, node)

        assert not result.success
        assert result.value is None
        assert result.error == "Invalid cast from scalar to vector"
        assert result.failed_node == node
        assert result.outputs == {}
        with pytest.raises(ValueError, match="failed"):
            result.get_value()

    def test_unknown_node_is_captured(self) -> None:
        result = evaluate(Graph(), NodeId(5))
        assert not result.success
        assert result.failed_node is None

    def test_result_defaults(self) -> None:
        result = EvaluationResult(node_id=NodeId(0), value=ScalarValue(1.0))
        assert result.success
        assert result.outputs == {}
