"""Runtime values flowing along node graph connections."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum, auto
from typing import Any, ClassVar

import pandas as pd

from ._errors import TypeMismatchError


class DataType(StrEnum):
    """Type tag of a port and of the values it carries."""

    SCALAR = auto()
    VECTOR = auto()
    TEXT = auto()
    SERIES = auto()
    FRAME = auto()


@dataclass(frozen=True, slots=True)
class Vector2:
    """A 2D vector of floats with componentwise arithmetic."""

    x: float
    y: float

    def __add__(self, other: Vector2) -> Vector2:
        return Vector2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Vector2) -> Vector2:
        return Vector2(self.x - other.x, self.y - other.y)

    def __mul__(self, factor: float) -> Vector2:
        return Vector2(self.x * factor, self.y * factor)

    __rmul__ = __mul__

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


@dataclass(frozen=True, slots=True, eq=False)
class Value(ABC):
    """Base class of the closed set of value variants.

    Concrete variants are `ScalarValue`, `VectorValue`, `TextValue`,
    `SeriesValue` and `FrameValue`. Use the `try_*` accessors to narrow a
    value to its payload; they raise `TypeMismatchError` instead of
    coercing between tags.
    """

    data_type: ClassVar[DataType]

    @property
    @abstractmethod
    def payload(self) -> Any:
        """The wrapped Python object."""

    def try_as(self, data_type: DataType) -> Any:
        """Return the payload if this value carries `data_type`.

        Raises:
            TypeMismatchError: If the value has a different tag.

        """
        if self.data_type is not data_type:
            raise TypeMismatchError(expected=data_type, actual=self.data_type)
        return self.payload

    def try_scalar(self) -> float:
        """Narrow to a scalar."""
        return self.try_as(DataType.SCALAR)

    def try_vector(self) -> Vector2:
        """Narrow to a 2D vector."""
        return self.try_as(DataType.VECTOR)

    def try_text(self) -> str:
        """Narrow to a text string."""
        return self.try_as(DataType.TEXT)

    def try_series(self) -> pd.Series:
        """Narrow to a series."""
        return self.try_as(DataType.SERIES)

    def try_frame(self) -> pd.DataFrame:
        """Narrow to a frame."""
        return self.try_as(DataType.FRAME)


@dataclass(frozen=True, slots=True)
class ScalarValue(Value):
    value: float
    data_type: ClassVar[DataType] = DataType.SCALAR

    @property
    def payload(self) -> float:
        return self.value


@dataclass(frozen=True, slots=True)
class VectorValue(Value):
    value: Vector2
    data_type: ClassVar[DataType] = DataType.VECTOR

    @property
    def payload(self) -> Vector2:
        return self.value


@dataclass(frozen=True, slots=True)
class TextValue(Value):
    value: str
    data_type: ClassVar[DataType] = DataType.TEXT

    @property
    def payload(self) -> str:
        return self.value


# pandas objects do not support boolean equality, so the tabular variants
# compare by identity.
@dataclass(frozen=True, slots=True, eq=False)
class SeriesValue(Value):
    value: pd.Series
    data_type: ClassVar[DataType] = DataType.SERIES

    @property
    def payload(self) -> pd.Series:
        return self.value


@dataclass(frozen=True, slots=True, eq=False)
class FrameValue(Value):
    value: pd.DataFrame
    data_type: ClassVar[DataType] = DataType.FRAME

    @property
    def payload(self) -> pd.DataFrame:
        return self.value


_VALUE_CLASSES: dict[DataType, type[Value]] = {
    DataType.SCALAR: ScalarValue,
    DataType.VECTOR: VectorValue,
    DataType.TEXT: TextValue,
    DataType.SERIES: SeriesValue,
    DataType.FRAME: FrameValue,
}


def make_value(data_type: DataType, payload: Any) -> Value:
    """Wrap a raw payload in the value variant for `data_type`.

    Scalars are stored as Python floats, so integer payloads (e.g. row
    counts) are converted.
    """
    if data_type is DataType.SCALAR:
        payload = float(payload)
    return _VALUE_CLASSES[data_type](payload)


def empty_series(name: str = "empty") -> pd.Series:
    """Return an empty float series, the placeholder for missing columns."""
    return pd.Series([], dtype="float64", name=name)


def default_value(data_type: DataType) -> Value:
    """Return the constant a freshly created input port of `data_type` holds."""
    match data_type:
        case DataType.SCALAR:
            return ScalarValue(0.0)
        case DataType.VECTOR:
            return VectorValue(Vector2(0.0, 0.0))
        case DataType.TEXT:
            return TextValue("")
        case DataType.SERIES:
            return SeriesValue(empty_series())
        case DataType.FRAME:
            return FrameValue(pd.DataFrame())


def describe_value(value: Value) -> str:
    """Return a short one-line description of a value for status text."""
    match value:
        case ScalarValue(number):
            return f"Scalar({number})"
        case VectorValue(vector):
            return f"Vector{vector}"
        case TextValue(text):
            return f"Text({text!r})"
        case SeriesValue(series):
            return f"Series(name={series.name!r}, len={len(series)}, dtype={series.dtype})"
        case FrameValue(frame):
            rows, columns = frame.shape
            return f"Frame(shape=({rows}, {columns}), columns={list(frame.columns)!r})"
        case _:
            msg = f"Unsupported value: {value!r}"
            raise TypeError(msg)
