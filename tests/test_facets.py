"""Tests for facet specifications and the panel layout engine."""

from __future__ import annotations

import pandas as pd
import pytest

from gg_toolkit.errors import DataShapeError
from gg_toolkit.facets import (
    FacetNull,
    facet_grid,
    facet_wrap,
    label_both,
    wrap_dims,
)
from gg_toolkit.row_table import PANEL


@pytest.fixture
def df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "a": ["p", "q", "p", "r"],
            "b": ["u", "u", "v", "v"],
            "x": [1.0, 2.0, 3.0, 4.0],
        }
    )


def test_null_facet_single_panel(df: pd.DataFrame) -> None:
    facet = FacetNull()
    layout = facet.compute_layout([df])
    assert layout.panel_ids == (0,)
    assert (facet.map_data(df, layout)[PANEL] == 0).all()


@pytest.mark.parametrize(
    "n, nrow, ncol, expected",
    [(1, None, None, (1, 1)), (3, None, None, (1, 3)), (5, None, None, (2, 3)), (5, 1, None, (1, 5)), (5, None, 2, (3, 2))],
)
def test_wrap_dims(n: int, nrow: int, ncol: int, expected: tuple[int, int]) -> None:
    assert wrap_dims(n, nrow, ncol) == expected


def test_wrap_dims_too_small() -> None:
    with pytest.raises(ValueError, match="at least the number of panels"):
        wrap_dims(5, 2, 2)


def test_wrap_layout_is_sorted_and_row_major(df: pd.DataFrame) -> None:
    layout = facet_wrap("a", ncol=2).compute_layout([df])
    assert [(p.panel_id, p.row, p.col) for p in layout.panels] == [(0, 0, 0), (1, 0, 1), (2, 1, 0)]
    assert [p.strip_top for p in layout.panels] == [("p",), ("q",), ("r",)]
    assert (layout.nrow, layout.ncol) == (2, 2)


def test_wrap_map_data_assigns_panel_ids_in_row_order(df: pd.DataFrame) -> None:
    facet = facet_wrap("a")
    out = facet.map_data(df, facet.compute_layout([df]))
    assert out[PANEL].tolist() == [0, 0, 1, 2]
    assert out["x"].tolist() == [1.0, 3.0, 2.0, 4.0]


def test_wrap_two_variables_only_observed_combinations(df: pd.DataFrame) -> None:
    layout = facet_wrap("a + b", labeller=label_both).compute_layout([df])
    assert [p.values for p in layout.panels] == [
        (("a", "p"), ("b", "u")),
        (("a", "p"), ("b", "v")),
        (("a", "q"), ("b", "u")),
        (("a", "r"), ("b", "v")),
    ]
    assert layout.panels[0].strip_top == ("a: p", "b: u")


def test_wrap_drop_false_keeps_every_combination(df: pd.DataFrame) -> None:
    layout = facet_wrap(["a", "b"], drop=False).compute_layout([df])
    assert len(layout.panels) == 6


def test_categorical_order_is_respected() -> None:
    df = pd.DataFrame({"g": pd.Categorical(["lo", "hi"], categories=["hi", "lo"])})
    layout = facet_wrap("g").compute_layout([df])
    assert [p.values[0][1] for p in layout.panels] == ["hi", "lo"]


def test_grid_formula_builds_matrix_with_strips(df: pd.DataFrame) -> None:
    facet = facet_grid("b ~ a")
    layout = facet.compute_layout([df])
    assert (layout.nrow, layout.ncol) == (2, 3)
    assert len(layout.panels) == 6
    top = [p.strip_top for p in layout.panels if p.row == 0]
    right = [p.strip_right for p in layout.panels if p.col == layout.ncol - 1]
    assert top == [("p",), ("q",), ("r",)]
    assert right == [("u",), ("v",)]
    assert all(not p.strip_top for p in layout.panels if p.row == 1)


def test_grid_panel_ids_follow_rows_then_columns(df: pd.DataFrame) -> None:
    facet = facet_grid(rows="b", cols="a")
    out = facet.map_data(df, facet.compute_layout([df]))
    by_x = dict(zip(out["x"], out[PANEL]))
    assert by_x == {1.0: 0, 2.0: 1, 3.0: 3, 4.0: 5}


def test_layer_without_facet_variables_is_repeated(df: pd.DataFrame) -> None:
    facet = facet_wrap("a")
    layout = facet.compute_layout([df, pd.DataFrame({"y": [0.5]})])
    out = facet.map_data(pd.DataFrame({"y": [0.5]}), layout)
    assert out[PANEL].tolist() == [0, 1, 2]
    assert out["y"].tolist() == [0.5, 0.5, 0.5]


def test_missing_facet_variable_everywhere(df: pd.DataFrame) -> None:
    with pytest.raises(DataShapeError, match="faceting variables"):
        facet_wrap("nope").compute_layout([df])


def test_layout_to_frame(df: pd.DataFrame) -> None:
    frame = facet_wrap("a").compute_layout([df]).to_frame()
    assert list(frame.columns) == [PANEL, "row", "col", "a"]
    assert frame["a"].tolist() == ["p", "q", "r"]
