"""Tests for the value model."""

import math

import pandas as pd
import pytest

from nodeval import (
    DataType,
    FrameValue,
    ScalarValue,
    SeriesValue,
    TextValue,
    TypeMismatchError,
    Value,
    Vector2,
    VectorValue,
    describe_value,
    make_value,
)
from nodeval._value import default_value, empty_series

ALL_VALUES: list[Value] = [
    ScalarValue(1.5),
    VectorValue(Vector2(1.0, 2.0)),
    TextValue("hello"),
    SeriesValue(pd.Series([1.0, None, 3.0], name="x")),
    FrameValue(pd.DataFrame({"x": [1, 2]})),
]

ACCESSORS = {
    DataType.SCALAR: "try_scalar",
    DataType.VECTOR: "try_vector",
    DataType.TEXT: "try_text",
    DataType.SERIES: "try_series",
    DataType.FRAME: "try_frame",
}


class TestVector2:
    def test_add(self) -> None:
        assert Vector2(1.0, 2.0) + Vector2(3.0, 4.0) == Vector2(4.0, 6.0)

    def test_subtract(self) -> None:
        assert Vector2(3.0, 4.0) - Vector2(1.0, 1.0) == Vector2(2.0, 3.0)

    def test_scale_both_sides(self) -> None:
        assert Vector2(1.0, 2.0) * 2.0 == Vector2(2.0, 4.0)
        assert 2.0 * Vector2(1.0, 2.0) == Vector2(2.0, 4.0)

    def test_str(self) -> None:
        assert str(Vector2(1.0, -2.5)) == "(1.0, -2.5)"


class TestNarrowing:
    """Tests for the fallible try_* accessors."""

    def test_matching_accessors_return_payload(self) -> None:
        assert ScalarValue(1.5).try_scalar() == 1.5
        assert VectorValue(Vector2(1.0, 2.0)).try_vector() == Vector2(1.0, 2.0)
        assert TextValue("hello").try_text() == "hello"
        series = pd.Series([1.0], name="x")
        assert SeriesValue(series).try_series() is series
        frame = pd.DataFrame({"x": [1]})
        assert FrameValue(frame).try_frame() is frame

    def test_vector_from_scalar_fails(self) -> None:
        with pytest.raises(TypeMismatchError) as exc_info:
            ScalarValue(1.0).try_vector()

        assert exc_info.value.expected == DataType.VECTOR
        assert exc_info.value.actual == DataType.SCALAR
        assert "scalar" in str(exc_info.value)

    @pytest.mark.parametrize("value", ALL_VALUES, ids=lambda v: type(v).__name__)
    def test_every_non_matching_accessor_fails(self, value: Value) -> None:
        for data_type, accessor in ACCESSORS.items():
            if data_type is value.data_type:
                getattr(value, accessor)()
                continue
            with pytest.raises(TypeMismatchError):
                getattr(value, accessor)()

    def test_no_coercion_from_scalar_to_series(self) -> None:
        with pytest.raises(TypeMismatchError):
            ScalarValue(3.0).try_as(DataType.SERIES)

    def test_no_coercion_from_text_to_scalar(self) -> None:
        with pytest.raises(TypeMismatchError):
            TextValue("3.0").try_scalar()


class TestEquality:
    def test_scalar_values_compare_by_value(self) -> None:
        assert ScalarValue(2.0) == ScalarValue(2.0)
        assert ScalarValue(2.0) != ScalarValue(3.0)

    def test_different_variants_are_not_equal(self) -> None:
        assert TextValue("a") != ScalarValue(1.0)

    def test_series_values_compare_by_identity(self) -> None:
        series = pd.Series([1.0])
        value = SeriesValue(series)
        assert value == value  # noqa: PLR0124
        assert SeriesValue(series) != SeriesValue(series)


class TestMakeValue:
    def test_scalar_converts_ints(self) -> None:
        value = make_value(DataType.SCALAR, 7)
        assert value == ScalarValue(7.0)
        assert isinstance(value.try_scalar(), float)

    def test_wraps_each_data_type(self) -> None:
        assert isinstance(make_value(DataType.VECTOR, Vector2(0.0, 1.0)), VectorValue)
        assert isinstance(make_value(DataType.TEXT, "t"), TextValue)
        assert isinstance(make_value(DataType.SERIES, pd.Series([1.0])), SeriesValue)
        assert isinstance(make_value(DataType.FRAME, pd.DataFrame()), FrameValue)


class TestDefaults:
    def test_default_values(self) -> None:
        assert default_value(DataType.SCALAR) == ScalarValue(0.0)
        assert default_value(DataType.VECTOR) == VectorValue(Vector2(0.0, 0.0))
        assert default_value(DataType.TEXT) == TextValue("")

        series = default_value(DataType.SERIES).try_series()
        assert series.name == "empty"
        assert len(series) == 0

        assert default_value(DataType.FRAME).try_frame().empty

    def test_empty_series_is_float(self) -> None:
        assert empty_series().dtype == "float64"


class TestDescribeValue:
    def test_scalar(self) -> None:
        assert describe_value(ScalarValue(15.0)) == "Scalar(15.0)"

    def test_vector(self) -> None:
        assert describe_value(VectorValue(Vector2(2.0, 3.0))) == "Vector(2.0, 3.0)"

    def test_text(self) -> None:
        assert describe_value(TextValue("a.csv")) == "Text('a.csv')"

    def test_series(self) -> None:
        text = describe_value(SeriesValue(pd.Series([1.0, math.nan], name="x")))
        assert "name='x'" in text
        assert "len=2" in text

    def test_frame(self) -> None:
        text = describe_value(FrameValue(pd.DataFrame({"a": [1, 2, 3], "b": [4, 5, 6]})))
        assert "shape=(3, 2)" in text
        assert "'a'" in text


class TestValueBase:
    def test_base_class_is_abstract(self) -> None:
        with pytest.raises(TypeError):
            Value()  # type: ignore[abstract]

    def test_every_variant_has_a_payload(self) -> None:
        for value in ALL_VALUES:
            assert value.try_as(value.data_type) is value.payload
