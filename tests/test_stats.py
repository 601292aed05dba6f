"""Tests for the statistical transform engine."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest
from scipy.integrate import trapezoid

from gg_toolkit.errors import DataShapeError, Diagnostic, StatComputationError, StatComputationWarning
from gg_toolkit.options import option_context
from gg_toolkit.row_table import GROUP, PANEL
from gg_toolkit.scales import ScalesList, scale_x_discrete
from gg_toolkit.stats import (
    StatBin,
    StatCount,
    StatDensity,
    StatIdentity,
    StatSmooth,
    StatSummary,
    StatSummaryBin,
    bin_breaks,
    bin_vector,
    bw_nrd0,
    mean_se,
    median_hilow,
)


def _table(**columns: object) -> pd.DataFrame:
    df = pd.DataFrame(columns)
    if PANEL not in df.columns:
        df[PANEL] = 0
    if GROUP not in df.columns:
        df[GROUP] = -1
    return df


def _run(stat, data: pd.DataFrame, report=None, **params: object) -> pd.DataFrame:
    scales = ScalesList()
    setup = stat.setup_params(data, params, scales)
    return stat.compute_layer(stat.setup_data(data, setup), setup, scales, report)


def test_identity_returns_input() -> None:
    data = _table(x=[1.0, 2.0])
    assert _run(StatIdentity(), data) is data


def test_bin_breaks_priority() -> None:
    assert bin_breaks((0.0, 1.0), breaks=[3, 1, 2]).tolist() == [1.0, 2.0, 3.0]
    assert bin_breaks((0.0, 10.0), binwidth=5, boundary=0).tolist() == [0.0, 5.0, 10.0]
    with pytest.raises(ValueError, match="Only one of boundary and center"):
        bin_breaks((0.0, 1.0), boundary=0, center=0)
    with pytest.raises(ValueError, match="positive"):
        bin_breaks((0.0, 1.0), binwidth=0)


def test_bin_vector_closed_right_and_left() -> None:
    edges = np.array([0.0, 1.0, 2.0])
    right = bin_vector(np.array([0.0, 1.0, 2.0]), edges, closed="right")
    left = bin_vector(np.array([0.0, 1.0, 2.0]), edges, closed="left")
    assert right["count"].tolist() == [2.0, 1.0]
    assert left["count"].tolist() == [1.0, 2.0]


def test_bin_vector_density_integrates_to_one() -> None:
    out = bin_vector(np.array([0.5, 1.5, 1.6]), np.array([0.0, 1.0, 2.0]))
    assert float((out["density"] * out["width"]).sum()) == pytest.approx(1.0)
    assert out["ncount"].max() == 1.0


def test_stat_bin_counts_and_reattaches_constants() -> None:
    data = _table(x=[1.0, 1.0, 2.0, 5.0], colour=["a"] * 4, group_id=[0] * 4)
    out = _run(StatBin(), data, binwidth=1, boundary=0.5)
    assert out["count"].sum() == 4
    assert (out["colour"] == "a").all()
    assert (out[GROUP] == 0).all() and (out[PANEL] == 0).all()
    assert set(out.columns) >= {"count", "density", "ncount", "ndensity", "xmin", "xmax", "width"}


def test_stat_bin_weights() -> None:
    data = _table(x=[1.0, 1.0], weight=[2.0, 3.0])
    out = _run(StatBin(), data, bins=1)
    assert out["count"].sum() == 5.0
    assert "weight" not in out.columns


def test_stat_bin_rejects_discrete_x() -> None:
    scales = ScalesList([scale_x_discrete()])
    with pytest.raises(DataShapeError, match="stat_count"):
        StatBin().setup_params(_table(x=[0.0]), {}, scales)


def test_stat_bin_defaults_to_thirty_bins() -> None:
    setup = StatBin().setup_params(_table(x=[0.0, 1.0]), {}, ScalesList())
    assert setup["bins"] == 30


def test_stat_count_counts_and_props() -> None:
    out = _run(StatCount(), _table(x=[1.0, 1.0, 2.0]))
    assert out["x"].tolist() == [1.0, 2.0]
    assert out["count"].tolist() == [2.0, 1.0]
    assert out["prop"].tolist() == pytest.approx([2 / 3, 1 / 3])
    assert out["width"].tolist() == pytest.approx([0.9, 0.9])


def test_stat_count_missing_required_aesthetic() -> None:
    with pytest.raises(DataShapeError, match="x"):
        _run(StatCount(), _table(y=[1.0]))


def test_non_finite_required_values_are_removed() -> None:
    out = _run(StatCount(), _table(x=[1.0, np.nan, np.inf]))
    assert out["count"].tolist() == [1.0]


def test_stat_smooth_lm_recovers_a_line() -> None:
    x = np.arange(10, dtype=float)
    noise = np.tile([0.1, -0.1], 5)
    out = _run(StatSmooth(), _table(x=x, y=2 * x + 1 + noise), method="lm", n=5)
    assert out["x"].tolist() == pytest.approx([0.0, 2.25, 4.5, 6.75, 9.0])
    assert out["y"].tolist() == pytest.approx([1.0, 5.5, 10.0, 14.5, 19.0], abs=0.1)
    assert np.all(out["ymin"] <= out["y"] + 1e-9)
    assert np.all(out["ymax"] >= out["y"] - 1e-9)


def test_stat_smooth_loess_default_for_small_groups() -> None:
    x = np.linspace(0, 1, 20)
    data = _table(x=x, y=x**2)
    setup = StatSmooth().setup_params(data, {}, ScalesList())
    assert setup["method"] == "loess"
    out = _run(StatSmooth(), data, se=False)
    assert len(out) == setup["n"]
    assert "ymin" not in out.columns


def test_stat_smooth_unknown_method() -> None:
    with pytest.raises(ValueError, match="Unknown smoothing method"):
        StatSmooth().setup_params(_table(x=[1.0], y=[1.0]), {"method": "gam"}, ScalesList())


def test_summary_functions() -> None:
    values = [1.0, 2.0, 3.0]
    assert mean_se(values)["y"] == 2.0
    assert mean_se(values)["ymax"] - mean_se(values)["ymin"] == pytest.approx(2 * np.sqrt(1 / 3))
    assert median_hilow(values, conf_int=1.0) == {"y": 2.0, "ymin": 1.0, "ymax": 3.0}


def test_stat_summary_default_and_explicit_functions() -> None:
    data = _table(x=[1.0, 1.0, 2.0], y=[1.0, 3.0, 5.0])
    default = _run(StatSummary(), data)
    assert default["y"].tolist() == [2.0, 5.0]
    custom = _run(StatSummary(), data, fun=np.max, fun_min=np.min)
    assert custom["y"].tolist() == [3.0, 5.0]
    assert custom["ymin"].tolist() == [1.0, 5.0]
    assert "ymax" not in custom.columns


def test_stat_summary_unknown_named_function() -> None:
    with pytest.raises(ValueError, match="Unknown summary function"):
        StatSummary().setup_params(_table(x=[1.0], y=[1.0]), {"fun_data": "mode"}, ScalesList())


def test_stat_summary_resolves_numpy_names() -> None:
    data = _table(x=[1.0, 1.0, 1.0, 2.0], y=[1.0, 2.0, 9.0, 4.0])
    out = _run(StatSummary(), data, fun="median", fun_min="min", fun_max="max")
    assert out["y"].tolist() == [2.0, 4.0]
    assert out["ymin"].tolist() == [1.0, 4.0]
    assert out["ymax"].tolist() == [9.0, 4.0]


def test_stat_summary_rejects_unusable_functions_at_setup() -> None:
    data = _table(x=[1.0], y=[1.0])
    with pytest.raises(ValueError, match="fun='average_ish'"):
        StatSummary().setup_params(data, {"fun": "average_ish"}, ScalesList())
    with pytest.raises(TypeError, match="fun_max"):
        StatSummary().setup_params(data, {"fun_max": 3}, ScalesList())


def test_stat_summary_bin_summarises_within_bins() -> None:
    data = _table(x=[0.1, 0.2, 0.9], y=[1.0, 3.0, 10.0])
    out = _run(StatSummaryBin(), data, breaks=[0.0, 0.5, 1.0], fun=np.mean)
    assert out["y"].tolist() == [2.0, 10.0]
    assert out["x"].tolist() == [0.25, 0.75]
    assert out["width"].tolist() == [0.5, 0.5]


def test_bw_nrd0_matches_silverman() -> None:
    x = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
    sd = x.std(ddof=1)
    iqr = 2.0
    assert bw_nrd0(x) == pytest.approx(0.9 * min(sd, iqr / 1.34) * 5 ** -0.2)
    with pytest.raises(ValueError):
        bw_nrd0([1.0])


def test_stat_density_integrates_to_about_one() -> None:
    rng = np.random.default_rng(0)
    data = _table(x=rng.normal(size=200))
    out = _run(StatDensity(), data, n=256, trim=False)
    area = float(trapezoid(out["density"].to_numpy(), out["x"].to_numpy()))
    assert 0.8 < area <= 1.0
    assert out["scaled"].max() == pytest.approx(1.0)
    assert (out["n"] == 200).all()


def test_stat_density_drops_tiny_groups() -> None:
    out = _run(StatDensity(), _table(x=[1.0]))
    assert out.empty


def test_failing_partition_warns_and_reports() -> None:
    def boom(values: np.ndarray) -> float:
        if len(values) > 1:
            raise RuntimeError("nope")
        return float(values[0])

    data = _table(x=[1.0, 1.0, 2.0], y=[1.0, 2.0, 3.0], group_id=[0, 0, 1])
    seen: list[Diagnostic] = []
    with pytest.warns(StatComputationWarning, match="nope"):
        out = _run(StatSummary(), data, report=seen.append, fun=boom)
    assert out[GROUP].tolist() == [1]
    assert len(seen) == 1
    assert seen[0].stage == "stat" and seen[0].group_id == 0


def test_failing_partition_raises_when_configured() -> None:
    def boom(values: np.ndarray) -> float:
        raise RuntimeError("nope")

    data = _table(x=[1.0], y=[1.0])
    with option_context(stat_failure="raise"):
        with pytest.raises(StatComputationError, match="group_id"):
            _run(StatSummary(), data, fun=boom)
