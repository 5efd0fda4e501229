"""Rich rendering utilities for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pandas as pd
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from nodeval._value import FrameValue, SeriesValue, Value, describe_value

if TYPE_CHECKING:
    from rich.console import Console

    from nodeval._graph import Graph, NodeId
    from nodeval._templates import NodeTemplate


def _cell(value: object) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return "[dim]null[/dim]"
    return escape(str(value))


def render_value(value: Value, console: Console, max_rows: int) -> None:
    """Render an evaluated value.

    Scalars, vectors and text are printed on one line; series and frames as
    tables truncated to `max_rows` rows.
    """
    match value:
        case FrameValue(frame):
            rows, columns = frame.shape
            console.print(f"Table shape: ({rows}, {columns})")
            table = Table(show_header=True, header_style="bold cyan")
            for column in frame.columns:
                table.add_column(escape(str(column)), justify="right")
            for row in frame.head(max_rows).itertuples(index=False):
                table.add_row(*(_cell(cell) for cell in row))
            console.print(table)
            _print_truncation(console, rows, max_rows)
        case SeriesValue(series):
            console.print(f"Series {escape(repr(series.name))} ({len(series)} values, {series.dtype})")
            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("#", style="dim", justify="right")
            table.add_column(escape(str(series.name)), justify="right")
            for position, cell in enumerate(series.head(max_rows).tolist()):
                table.add_row(str(position), _cell(cell))
            console.print(table)
            _print_truncation(console, len(series), max_rows)
        case _:
            console.print(f"The result is: {escape(describe_value(value))}")


def _print_truncation(console: Console, total: int, max_rows: int) -> None:
    if total > max_rows:
        console.print(f"[dim]... {total - max_rows} more rows[/dim]")


def render_node_table(graph: Graph, console: Console) -> None:
    """Render the nodes of a graph with their kinds and connected inputs."""
    if not len(graph):
        console.print("[dim]Graph has no nodes[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Node", style="bold")
    table.add_column("Id", style="dim")
    table.add_column("Kind")
    table.add_column("Connected inputs", justify="right")

    for node in graph.nodes:
        connected = sum(1 for input_id in node.input_ids() if graph.connection(input_id) is not None)
        table.add_row(escape(node.label), str(node.id), str(node.kind), f"{connected}/{len(node.inputs)}")

    console.print(table)
    console.print(f"\n[dim]Total: {len(graph)} nodes[/dim]")


def build_dependency_tree(graph: Graph, node_id: NodeId) -> Tree:
    """Build a tree of the inputs of a node and, recursively, of their sources.

    Nodes already shown higher up on the same branch are marked as cycles
    instead of being expanded again.
    """
    root = Tree(f"[bold]{escape(graph.node(node_id).label)}[/bold] [dim]({graph.node(node_id).kind})[/dim]")
    _add_inputs(graph, node_id, root, (node_id,))
    return root


def _add_inputs(graph: Graph, node_id: NodeId, branch: Tree, ancestors: tuple[NodeId, ...]) -> None:
    for name, input_id in graph.node(node_id).inputs:
        source = graph.connection(input_id)
        if source is None:
            constant = describe_value(graph.input_param(input_id).value)
            branch.add(f"{escape(name)} = [yellow]{escape(constant)}[/yellow]")
            continue

        output = graph.output_param(source)
        upstream = graph.node(output.node)
        label = (
            f"{escape(name)} <- [bold]{escape(upstream.label)}[/bold].{escape(output.name)} "
            f"[dim]({upstream.kind})[/dim]"
        )
        if upstream.id in ancestors:
            branch.add(f"{label} [red](cycle)[/red]")
            continue
        child = branch.add(label)
        _add_inputs(graph, upstream.id, child, (*ancestors, upstream.id))


def render_templates(grouped: dict[str, list[NodeTemplate]], console: Console) -> None:
    """Render the node finder listing grouped by category."""
    for category, templates in grouped.items():
        table = Table(title=f"[bold]{escape(category)}[/bold]", show_header=True, header_style="bold cyan")
        table.add_column("Kind", style="bold")
        table.add_column("Label")
        table.add_column("Inputs")
        table.add_column("Outputs")
        for template in templates:
            table.add_row(
                str(template.kind),
                template.label,
                ", ".join(f"{port.name}: {port.data_type}" for port in template.inputs),
                ", ".join(f"{port.name}: {port.data_type}" for port in template.outputs),
            )
        console.print(table)
