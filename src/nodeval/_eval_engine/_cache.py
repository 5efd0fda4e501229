"""Per-request cache of computed node outputs."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import ItemsView, Iterator, KeysView

    from nodeval._graph import OutputId
    from nodeval._value import Value


class OutputsCache:
    """Mapping from output port id to the value computed for it.

    A cache belongs to a single evaluation request: it starts empty, is
    filled as nodes are evaluated, and is discarded afterwards. Sharing one
    cache across several `evaluate_node` calls on an unchanged graph makes
    every node compute its outputs at most once over all of them.
    """

    __slots__ = ("_values",)

    def __init__(self) -> None:
        self._values: dict[OutputId, Value] = {}

    def get(self, output_id: OutputId) -> Value | None:
        return self._values.get(output_id)

    def insert(self, output_id: OutputId, value: Value) -> None:
        self._values[output_id] = value

    def keys(self) -> KeysView[OutputId]:
        return self._values.keys()

    def items(self) -> ItemsView[OutputId, Value]:
        return self._values.items()

    def as_dict(self) -> dict[OutputId, Value]:
        """Return a shallow copy of the cached values."""
        return dict(self._values)

    def __getitem__(self, output_id: OutputId) -> Value:
        return self._values[output_id]

    def __contains__(self, output_id: object) -> bool:
        return output_id in self._values

    def __iter__(self) -> Iterator[OutputId]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"OutputsCache({len(self._values)} outputs)"
