"""Tests for aesthetic expression compilation."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest
import sympy as sp

from gg_toolkit.errors import AestheticEvalError
from gg_toolkit.expressions import compile_expression, expression_label


@pytest.fixture
def table() -> pd.DataFrame:
    return pd.DataFrame({"a": [1.0, 4.0], "b": [2.0, 3.0], "name": ["p", "q"]})


def test_column_reference_passes_values_through(table: pd.DataFrame) -> None:
    compiled = compile_expression("name")
    assert compiled.kind == "column"
    assert compiled.evaluate(table).tolist() == ["p", "q"]


def test_arithmetic_expression(table: pd.DataFrame) -> None:
    compiled = compile_expression("sqrt(a) + b")
    assert compiled.kind == "expression"
    assert compiled.columns == ("a", "b")
    assert compiled.evaluate(table).tolist() == [3.0, 5.0]


def test_non_identifier_column_name_resolves_when_available() -> None:
    table = pd.DataFrame({"my col": [1, 2]})
    compiled = compile_expression("my col", table.columns)
    assert compiled.kind == "column"
    assert compiled.evaluate(table).tolist() == [1, 2]


def test_sympy_expression(table: pd.DataFrame) -> None:
    a = sp.Symbol("a")
    compiled = compile_expression(2 * a)
    assert compiled.evaluate(table).tolist() == [2.0, 8.0]


def test_callable_receives_the_table(table: pd.DataFrame) -> None:
    compiled = compile_expression(lambda t: t["a"] * 10)
    assert compiled.kind == "callable"
    assert compiled.evaluate(table).tolist() == [10.0, 40.0]


def test_constant_broadcasts(table: pd.DataFrame) -> None:
    out = compile_expression(3).evaluate(table)
    assert out.tolist() == [3, 3]


def test_missing_column_raises_with_stage(table: pd.DataFrame) -> None:
    with pytest.raises(AestheticEvalError) as info:
        compile_expression("count").evaluate(table, stage="start")
    assert info.value.missing == ("count",)
    assert info.value.stage == "start"


def test_wrong_length_result_raises(table: pd.DataFrame) -> None:
    with pytest.raises(ValueError, match="produced"):
        compile_expression(lambda t: np.arange(5)).evaluate(table)


def test_unsupported_values_are_rejected() -> None:
    with pytest.raises(TypeError):
        compile_expression(object())


def test_expression_label_is_source_text() -> None:
    assert expression_label("a * 2") == "a * 2"
