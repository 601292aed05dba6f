"""Tests for aesthetic mappings, staged evaluation and grouping."""

from __future__ import annotations

import pandas as pd
import pytest

from gg_toolkit.aes import (
    Aes,
    add_group,
    aes,
    after_scale,
    after_stat,
    evaluate_mapping,
    mapping_label,
    stage,
    standardise_aes_name,
)
from gg_toolkit.errors import AestheticEvalError
from gg_toolkit.row_table import GROUP, NO_GROUP, PANEL, is_discrete


def _discrete(name: str, values: pd.Series) -> bool:
    return is_discrete(values)


def test_aliases_are_standardised() -> None:
    m = aes(color="a", pch="b", lwd="c")
    assert sorted(m) == ["colour", "linewidth", "shape"]
    assert "color" in m
    assert m["color"] == "a"
    assert standardise_aes_name("fg") == "colour"


def test_merged_over_prefers_the_receiver() -> None:
    base = aes(x="a", y="b")
    merged = aes(y="c").merged_over(base)
    assert merged == Aes(x="a", y="c")
    assert "y" not in merged.without("y")


def test_start_stage_keeps_only_aesthetics_and_reserved_columns() -> None:
    table = pd.DataFrame({PANEL: [0, 0], "a": [1, 2], "junk": [0, 0]})
    out = evaluate_mapping(table, aes(x="a", y=after_stat("count")), "start")
    assert sorted(out.columns) == [PANEL, "x"]


def test_after_stat_reads_computed_columns() -> None:
    table = pd.DataFrame({"x": [1.0, 2.0], "count": [3, 4]})
    out = evaluate_mapping(table, aes(y=after_stat("count / 2")), "after_stat")
    assert out["y"].tolist() == [1.5, 2.0]
    assert out["x"].tolist() == [1.0, 2.0]


def test_stat_variable_at_start_raises() -> None:
    table = pd.DataFrame({"a": [1]})
    with pytest.raises(AestheticEvalError, match="after_stat"):
        evaluate_mapping(table, aes(y="count"), "start")


def test_stage_carries_values_for_each_stage() -> None:
    value = stage(start="a", after_scale="alpha")
    table = pd.DataFrame({"a": [1.0], "alpha": [0.5]})
    assert evaluate_mapping(table, aes(fill=value), "start")["fill"].tolist() == [1.0]
    assert evaluate_mapping(table, aes(fill=value), "after_scale")["fill"].tolist() == [0.5]
    assert repr(after_scale("x")) == "stage(after_scale='x')"


def test_add_group_interaction_of_discrete_aesthetics() -> None:
    table = pd.DataFrame({"x": [1.0, 2.0, 3.0], "colour": ["b", "a", "b"]})
    out = add_group(table, _discrete)
    assert out[GROUP].tolist() == [1, 0, 1]


def test_add_group_without_discrete_aesthetics_is_no_group() -> None:
    out = add_group(pd.DataFrame({"x": [1.0, 2.0]}), _discrete)
    assert (out[GROUP] == NO_GROUP).all()


def test_add_group_prefers_explicit_group_and_ignores_label() -> None:
    table = pd.DataFrame({"group": [5, 5, 7], "colour": ["a", "b", "c"], "label": ["p", "q", "r"]})
    out = add_group(table, _discrete)
    assert out[GROUP].tolist() == [0, 0, 1]


def test_add_group_uses_key_for_interaction() -> None:
    table = pd.DataFrame({"x": [0.5, 1.5, 2.5, 3.5], "colour": ["a", "a", "a", "b"]})
    halves = lambda name, values: values // 2 if name == "x" else values  # noqa: E731
    out = add_group(table, lambda name, values: True, halves)
    assert out[GROUP].tolist() == [0, 0, 1, 2]
    assert out["x"].tolist() == [0.5, 1.5, 2.5, 3.5]


def test_add_group_runs_once() -> None:
    table = pd.DataFrame({"colour": ["a", "b"], GROUP: [9, 9]})
    assert add_group(table, _discrete)[GROUP].tolist() == [9, 9]


def test_mapping_label_uses_stage_value() -> None:
    assert mapping_label(after_stat("count")) == "count"
    assert mapping_label("hwy") == "hwy"
