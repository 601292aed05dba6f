"""Tests for scales and the per-build scale registry."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from gg_toolkit.errors import ScaleDomainError
from gg_toolkit.scales import (
    WAIVER,
    ScaleBinned,
    ScaleContinuous,
    ScaleDiscrete,
    ScaleIdentity,
    ScalesList,
    scale_colour_discrete,
    scale_colour_gradient,
    scale_colour_manual,
    scale_fill_binned,
    scale_shape,
    scale_x_binned,
    scale_x_continuous,
    scale_x_discrete,
    scale_x_log10,
    scale_y_continuous,
    xlim,
)


def test_continuous_training_only_widens() -> None:
    s = scale_x_continuous().clone()
    s.train([2.0, 5.0])
    s.train([3.0])
    s.train([-1.0, np.nan])
    assert s.range == (-1.0, 5.0)


def test_clone_is_untrained_and_independent() -> None:
    template = scale_x_continuous()
    first = template.clone()
    first.train([1.0, 2.0])
    assert template.range is None
    assert template.clone().range is None


def test_frozen_scale_refuses_training() -> None:
    s = scale_x_continuous().clone()
    s.freeze()
    with pytest.raises(RuntimeError, match="frozen"):
        s.train([1.0])


def test_discrete_value_on_continuous_scale() -> None:
    with pytest.raises(ScaleDomainError, match="Discrete value"):
        scale_x_continuous().clone().train(["a", "b"])


def test_position_limits_censor_out_of_range_values() -> None:
    s = scale_x_continuous(limits=(2, 8)).clone()
    assert np.isnan(s.map([1.5, 5.0])).tolist() == [True, False]


def test_squish_clamps() -> None:
    s = scale_x_continuous(limits=(0, 1), oob="squish").clone()
    assert s.map([-1.0, 0.5, 3.0]).tolist() == [0.0, 0.5, 1.0]


def test_missing_limit_end_comes_from_training() -> None:
    s = scale_y_continuous(limits=(None, 10)).clone()
    s.train([2.0, 4.0])
    assert s.get_limits() == (2.0, 10.0)


def test_log_scale_transforms_and_labels_in_data_space() -> None:
    s = scale_x_log10().clone()
    values = s.transform([1.0, 1000.0])
    s.train(values)
    breaks = s.get_breaks()
    assert breaks == pytest.approx([0.0, 1.0, 2.0, 3.0])
    assert s.get_labels(breaks) == ["1", "10", "100", "1000"]


def test_user_breaks_outside_limits_are_dropped() -> None:
    s = scale_x_continuous(breaks=[0, 5, 50]).clone()
    s.train([0.0, 10.0])
    assert s.get_breaks() == [0.0, 5.0]


def test_labels_must_match_breaks() -> None:
    s = scale_x_continuous(breaks=[0, 1], labels=["a"]).clone()
    with pytest.raises(ValueError, match="labels"):
        s.get_labels([0.0, 1.0])


def test_discrete_first_seen_order_and_declared_order() -> None:
    seen = scale_x_discrete().clone()
    seen.train(pd.Series(["b", "a", "b"]))
    assert seen.get_limits() == ["b", "a"]

    declared = scale_x_discrete(limits=["low", "mid", "high"]).clone()
    declared.train(pd.Series(["high", "low"]))
    assert declared.map(pd.Series(["mid"])).tolist() == [1.0]


def test_discrete_categorical_order_follows_categories() -> None:
    s = scale_x_discrete().clone()
    values = pd.Series(pd.Categorical(["y", "x"], categories=["x", "y", "z"]))
    s.train(values)
    assert s.get_limits() == ["x", "y"]


def test_discrete_position_tracks_continuous_range() -> None:
    s = scale_x_discrete().clone()
    s.train(pd.Series(["a", "b", "c"]))
    s.train(pd.Series([-0.45, 2.45]))
    assert s.continuous_limits() == (-0.45, 2.45)
    assert s.dimension() == pytest.approx((-1.05, 3.05))


def test_discrete_unknown_level_maps_to_missing() -> None:
    s = scale_x_discrete(limits=["a"]).clone()
    assert np.isnan(s.map(pd.Series(["z"]))[0])


def test_discrete_colour_palette_and_na_value() -> None:
    s = scale_colour_discrete().clone()
    s.train(pd.Series(["p", "q"]))
    out = s.map(pd.Series(["q", None]))
    assert out[0] == s.palette(2)[1]
    assert out[1] == s.na_value


def test_manual_mapping_by_level() -> None:
    s = scale_colour_manual({"a": "#FF0000", "b": "#0000FF"}).clone()
    s.train(pd.Series(["b"]))
    assert s.map(pd.Series(["a", "b"])).tolist() == ["#FF0000", "#0000FF"]


def test_continuous_colour_gradient_maps_to_hex() -> None:
    s = scale_colour_gradient(low="#000000", high="#FFFFFF").clone()
    s.train([0.0, 10.0])
    assert s.map([0.0, 10.0]).tolist() == ["#000000", "#FFFFFF"]
    assert s.resolved_guide() == "colourbar"


def test_binned_position_maps_to_bin_midpoints() -> None:
    s = scale_x_binned(n_bins=2).clone()
    s.train([0.0, 10.0])
    assert s.map([1.0, 9.0]).tolist() == [2.5, 7.5]
    assert s.get_breaks() == [0.0, 5.0, 10.0]


def test_binned_edges_are_fixed_at_first_mapping() -> None:
    s = scale_fill_binned(n_bins=2).clone()
    s.train([0.0, 10.0])
    first = s.map([1.0])
    s.train([0.0, 100.0])
    assert s.edges().tolist() == [0.0, 5.0, 10.0]
    assert s.map([1.0]).tolist() == first.tolist()


def test_binned_position_passes_values_through_once_positioned() -> None:
    s = scale_x_binned(n_bins=2).clone()
    s.train([0.0, 10.0])
    assert s.map([1.0]).tolist() == [2.5]
    s.mark_positioned()
    assert s.map([2.2, 2.8]).tolist() == [2.2, 2.8]
    fresh = s.clone()
    fresh.train([0.0, 10.0])
    assert fresh.map([1.0]).tolist() == [2.5]


def test_binned_requires_two_edges() -> None:
    s = ScaleBinned(("fill",), breaks=[1.0]).clone()
    with pytest.raises(ValueError, match="two explicit bin edges"):
        s.edges()


def test_identity_scale_is_unguided_and_verbatim() -> None:
    s = ScaleIdentity(("colour",)).clone()
    assert s.resolved_guide() == "none"
    assert s.map(["red"]).tolist() == ["red"]


def test_shape_scale_pads_missing_shapes_with_na_value() -> None:
    s = scale_shape().clone()
    levels = [f"l{i}" for i in range(7)]
    s.train(pd.Series(levels))
    out = s.map(pd.Series(levels))
    assert out[6] is None or (isinstance(out[6], float) and np.isnan(out[6]))


def test_xlim_builds_continuous_or_discrete() -> None:
    assert isinstance(xlim(0, 5), ScaleContinuous)
    assert isinstance(xlim(["a", "b"]), ScaleDiscrete)


def test_registry_replaces_scale_for_same_aesthetic() -> None:
    scales = ScalesList([scale_x_continuous(), scale_x_discrete()])
    assert len(scales) == 1
    assert isinstance(scales.find("xmin"), ScaleDiscrete)


def test_registry_defaults_by_value_kind() -> None:
    scales = ScalesList()
    table = pd.DataFrame({"x": ["a"], "y": [1.0], "colour": [2.0], "label": ["t"]})
    scales.add_defaults(table, table.columns)
    assert isinstance(scales.find("x"), ScaleDiscrete)
    assert isinstance(scales.find("y"), ScaleContinuous)
    assert isinstance(scales.find("colour"), ScaleContinuous)
    assert scales.find("label") is None


def test_registry_rejects_continuous_shape() -> None:
    with pytest.raises(ScaleDomainError, match="shape"):
        ScalesList().add_defaults(pd.DataFrame({"shape": [1.0]}), ["shape"])


def test_is_grouping_uses_scale_kind() -> None:
    scales = ScalesList([scale_fill_binned()])
    assert scales.is_grouping("fill", pd.Series([1.0]))
    assert not scales.is_grouping("x", pd.Series([1.0]))
    assert scales.is_grouping("colour", pd.Series(["a"]))


def test_group_key_bins_binned_aesthetics() -> None:
    scales = ScalesList([scale_x_binned(n_bins=2)])
    table = pd.DataFrame({"x": [0.0, 4.0, 6.0, 10.0], "colour": ["a", "b", "a", "b"]})
    key = scales.group_key([table])
    assert key("x", table["x"]).tolist() == [0.0, 0.0, 1.0, 1.0]
    assert key("colour", table["colour"]).tolist() == ["a", "b", "a", "b"]
    assert scales.find("x").is_empty()


def test_waiver_repr() -> None:
    assert repr(WAIVER) == "WAIVER"
