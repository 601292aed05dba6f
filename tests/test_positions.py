"""Tests for position adjustments."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from gg_toolkit.options import option_context
from gg_toolkit.positions import (
    PositionDodge,
    PositionFill,
    PositionIdentity,
    PositionJitter,
    PositionNudge,
    PositionStack,
)
from gg_toolkit.row_table import GROUP, PANEL


def _apply(position, data: pd.DataFrame) -> pd.DataFrame:
    params = position.setup_params(data)
    return position.compute_layer(position.setup_data(data, params), params, None)


def _bars(**columns: object) -> pd.DataFrame:
    df = pd.DataFrame(columns)
    if PANEL not in df.columns:
        df[PANEL] = 0
    return df


def test_identity_is_a_no_op() -> None:
    data = _bars(x=[1.0], y=[2.0], group_id=[0])
    assert _apply(PositionIdentity(), data) is data


def test_stack_orders_by_group_then_input() -> None:
    data = _bars(x=[1.0, 1.0, 1.0], y=[3.0, 2.0, 1.0], group_id=[1, 0, 0])
    out = _apply(PositionStack(), data)
    assert out[["ymin", "ymax"]].values.tolist() == [[3.0, 6.0], [0.0, 2.0], [2.0, 3.0]]


def test_stack_reverse() -> None:
    data = _bars(x=[1.0, 1.0], y=[3.0, 2.0], group_id=[0, 1])
    out = _apply(PositionStack(reverse=True), data)
    assert out[["ymin", "ymax"]].values.tolist() == [[2.0, 5.0], [0.0, 2.0]]


def test_stack_separates_negative_values() -> None:
    data = _bars(x=[1.0, 1.0, 1.0], y=[2.0, -1.0, -2.0], group_id=[0, 1, 2])
    out = _apply(PositionStack(), data)
    assert out[["ymin", "ymax"]].values.tolist() == [[0.0, 2.0], [-1.0, 0.0], [-3.0, -1.0]]


def test_stack_vjust_places_y() -> None:
    data = _bars(x=[1.0, 1.0], y=[2.0, 2.0], group_id=[0, 1])
    out = _apply(PositionStack(vjust=0.5), data)
    assert out["y"].tolist() == [1.0, 3.0]


def test_stack_keeps_panels_apart_and_ids_untouched() -> None:
    data = pd.DataFrame({PANEL: [0, 1], GROUP: [0, 0], "x": [1.0, 1.0], "y": [2.0, 3.0]})
    out = _apply(PositionStack(), data)
    assert out["ymin"].tolist() == [0.0, 0.0]
    assert out[PANEL].tolist() == [0, 1]
    assert out[GROUP].tolist() == [0, 0]


def test_fill_normalises_each_stack() -> None:
    data = _bars(x=[1.0, 1.0, 2.0], y=[1.0, 3.0, 5.0], group_id=[0, 1, 0])
    out = _apply(PositionFill(), data)
    assert out[["ymin", "ymax"]].values.tolist() == [[0.0, 0.25], [0.25, 1.0], [0.0, 1.0]]


def test_dodge_splits_width_between_groups() -> None:
    data = _bars(x=[1.0, 1.0], xmin=[0.55, 0.55], xmax=[1.45, 1.45], y=[1.0, 2.0], group_id=[0, 1])
    out = _apply(PositionDodge(), data)
    assert out["x"].tolist() == pytest.approx([0.775, 1.225])
    assert out["xmin"].tolist() == pytest.approx([0.55, 1.0])
    assert out["xmax"].tolist() == pytest.approx([1.0, 1.45])


def test_dodge_needs_a_width() -> None:
    with pytest.raises(ValueError, match="Width not defined"):
        PositionDodge().setup_params(_bars(x=[1.0], y=[1.0], group_id=[0]))


def test_dodge_single_group_is_unchanged() -> None:
    data = _bars(x=[1.0], y=[1.0], group_id=[0])
    out = _apply(PositionDodge(width=0.5), data)
    assert out["x"].tolist() == [1.0]
    assert out["xmin"].tolist() == [0.75]


def test_jitter_is_bounded_and_reproducible() -> None:
    data = _bars(x=np.arange(50, dtype=float), y=np.zeros(50), group_id=[0] * 50)
    first = _apply(PositionJitter(width=0.2, height=0.0, seed=3), data)
    second = _apply(PositionJitter(width=0.2, height=0.0, seed=3), data)
    assert first["x"].tolist() == second["x"].tolist()
    assert np.all(np.abs(first["x"] - data["x"]) <= 0.2)
    assert (first["y"] == 0).all()


def test_jitter_seed_from_options() -> None:
    data = _bars(x=[1.0, 2.0], y=[1.0, 2.0], group_id=[0, 0])
    with option_context(jitter_seed=11):
        a = _apply(PositionJitter(), data)
        b = _apply(PositionJitter(), data)
    assert a["x"].tolist() == b["x"].tolist()


def test_nudge_shifts_every_position_column() -> None:
    data = _bars(x=[1.0], xmin=[0.5], y=[2.0], group_id=[0])
    out = _apply(PositionNudge(x=0.5, y=-1.0), data)
    assert out["x"].tolist() == [1.5]
    assert out["xmin"].tolist() == [1.0]
    assert out["y"].tolist() == [1.0]
