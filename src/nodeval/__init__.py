"""Dependency-driven evaluation of visual dataflow node graphs."""

__all__ = [
    "CacheInvariantError",
    "CsvParseError",
    "CycleDetectedError",
    "DataType",
    "DependencyGraph",
    "EvaluationResult",
    "FileReadError",
    "FrameValue",
    "Graph",
    "GraphDocumentError",
    "GraphEditError",
    "InputId",
    "InputParamKind",
    "LoadedGraph",
    "NodeEvalError",
    "NodeId",
    "NodeKind",
    "NodeTemplate",
    "OutputId",
    "OutputsCache",
    "ScalarValue",
    "SeriesValue",
    "TextValue",
    "TypeMismatchError",
    "UnknownNodeError",
    "UnknownPortError",
    "Value",
    "Vector2",
    "VectorValue",
    "all_templates",
    "describe_value",
    "dump_graph",
    "evaluate",
    "evaluate_input",
    "evaluate_node",
    "get_template",
    "load_graph",
    "load_graph_from_toml",
    "make_value",
    "populate_output",
    "save_graph_to_toml",
    "templates_by_category",
]

from ._errors import (
    CacheInvariantError,
    CsvParseError,
    CycleDetectedError,
    FileReadError,
    GraphEditError,
    NodeEvalError,
    TypeMismatchError,
    UnknownNodeError,
    UnknownPortError,
)
from ._eval_engine import (
    EvaluationResult,
    OutputsCache,
    evaluate,
    evaluate_input,
    evaluate_node,
    populate_output,
)
from ._graph import DependencyGraph, Graph, InputId, InputParamKind, NodeId, OutputId
from ._io import (
    GraphDocumentError,
    LoadedGraph,
    dump_graph,
    load_graph,
    load_graph_from_toml,
    save_graph_to_toml,
)
from ._templates import NodeKind, NodeTemplate, all_templates, get_template, templates_by_category
from ._value import (
    DataType,
    FrameValue,
    ScalarValue,
    SeriesValue,
    TextValue,
    Value,
    Vector2,
    VectorValue,
    describe_value,
    make_value,
)
