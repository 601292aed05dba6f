"""End-to-end tests for the build stages."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from gg_toolkit import (
    GROUP,
    PANEL,
    AestheticEvalError,
    StatComputationError,
    StatComputationWarning,
    aes,
    after_stat,
    build_plot,
    coord_flip,
    coord_trans,
    facet_wrap,
    geom_bar,
    geom_col,
    geom_histogram,
    geom_hline,
    geom_line,
    geom_point,
    ggplot,
    labs,
    layer_data,
    layer_scales,
    option_context,
    position_jitter,
    scale_x_binned,
    scale_x_continuous,
    scale_x_discrete,
    scale_y_log10,
    stat_summary,
)


def test_stacked_columns_share_an_x() -> None:
    df = pd.DataFrame({"x": ["a", "a"], "y": [2, 3], "fill": ["u", "v"]})
    p = ggplot(df, aes(x="x", y="y", fill="fill")) + geom_col()
    out = layer_data(p)
    assert out[["ymin", "ymax"]].values.tolist() == [[0, 2], [2, 5]]
    assert out["x"].tolist() == [0.0, 0.0]
    assert out[GROUP].tolist() == [0, 1]
    assert out["fill"].nunique() == 2


def test_declared_order_sets_discrete_positions() -> None:
    df = pd.DataFrame({"size": ["low", "mid", "high"], "n": [1, 2, 3]})
    p = ggplot(df, aes(x="size", y="n")) + geom_point() + scale_x_discrete(limits=["low", "mid", "high"])
    out = layer_data(p)
    assert dict(zip(df["size"], out["x"])) == {"low": 0.0, "mid": 1.0, "high": 2.0}


def test_position_limits_censor_before_the_stat() -> None:
    df = pd.DataFrame({"x": [1.5, 3.0, 5.0, 7.5]})
    p = ggplot(df, aes(x="x")) + geom_histogram(bins=3) + scale_x_continuous(limits=(2, 8))
    built = build_plot(p)
    assert built.data[0]["count"].sum() == 3
    (diagnostic,) = built.diagnostics
    assert diagnostic.stage == "scale"
    assert diagnostic.layer == 0
    assert "Removed 1 rows" in diagnostic.message


def test_scale_transform_differs_from_coord_transform() -> None:
    df = pd.DataFrame({"x": [1.0, 1.0], "y": [1.0, 100.0]})
    base = ggplot(df, aes(x="x", y="y")) + stat_summary(fun=np.mean)
    before_stat = layer_data(base + scale_y_log10())
    after_stat_ = layer_data(base + coord_trans(y="log10"))
    assert before_stat["y"].iloc[0] == pytest.approx(1.0)
    assert after_stat_["y"].iloc[0] == pytest.approx(50.5)


BINNED_X = pd.DataFrame({"x": [0.0, 1.0, 2.0, 3.0, 4.0, 10.0], "y": [1.0] * 6})


def test_binned_positions_keep_their_jitter() -> None:
    jitter = position_jitter(width=0.3, height=0, seed=1)
    p = ggplot(BINNED_X, aes(x="x", y="y")) + geom_point(position=jitter) + scale_x_binned()
    x = layer_data(p)["x"].to_numpy()
    nearest = np.array([min((1.0, 3.0, 9.0), key=lambda m: abs(v - m)) for v in x])
    assert sorted(nearest.tolist()) == [1.0, 1.0, 1.0, 3.0, 3.0, 9.0]
    assert np.all(np.abs(x - nearest) <= 0.3)
    assert np.any(np.abs(x - nearest) > 0)


def test_binned_bars_keep_their_extents() -> None:
    p = ggplot(BINNED_X, aes(x="x")) + geom_bar() + scale_x_binned()
    out = layer_data(p).sort_values("x")
    assert out["x"].tolist() == [1.0, 3.0, 9.0]
    assert out["ymax"].tolist() == [3.0, 2.0, 1.0]
    assert out["xmin"].tolist() == pytest.approx([0.55, 2.55, 8.55])
    assert out["xmax"].tolist() == pytest.approx([1.45, 3.45, 9.45])


def test_binned_aesthetics_group_by_bin() -> None:
    x = np.linspace(0, 10, 8)
    p = ggplot(pd.DataFrame({"x": x, "y": x}), aes(x="x", y="y")) + geom_line() + scale_x_binned()
    out = layer_data(p)
    assert sorted(out["x"].tolist()) == [1.0, 1.0, 3.0, 5.0, 5.0, 7.0, 9.0, 9.0]
    assert sorted(out[GROUP].unique().tolist()) == [0, 1, 2, 3, 4]
    assert (out.groupby("x")[GROUP].nunique() == 1).all()
    assert (out.groupby(GROUP)["x"].nunique() == 1).all()


def test_panels_and_groups_survive_every_stage() -> None:
    df = pd.DataFrame(
        {"x": [1.0, 2.0, 3.0, 4.0], "y": [1.0, 2.0, 3.0, 4.0], "g": ["a", "a", "b", "b"], "c": ["p", "q", "p", "q"]}
    )
    p = ggplot(df, aes(x="x", y="y", colour="c")) + geom_point() + facet_wrap("g")
    out = layer_data(p)
    assert out[PANEL].tolist() == [0, 0, 1, 1]
    assert out[GROUP].tolist() == [0, 1, 0, 1]


def test_after_stat_and_default_labels() -> None:
    df = pd.DataFrame({"v": [1.0, 2.0, 2.0, 3.0]})
    p = ggplot(df, aes(x="v")) + geom_histogram(aes(y=after_stat("density")), bins=2)
    built = build_plot(p)
    data = built.data[0]
    widths = data["xmax"] - data["xmin"]
    assert float((data["y"] * widths).sum()) == pytest.approx(1.0)
    assert built.labels["x"] == "v"
    assert built.labels["y"] == "density"


def test_user_labels_win_and_flip_swaps_titles() -> None:
    df = pd.DataFrame({"a": [1.0, 2.0], "b": [3.0, 4.0]})
    p = ggplot(df, aes(x="a", y="b")) + geom_point() + labs(x="alpha")
    assert build_plot(p).labels["x"] == "alpha"
    flipped = build_plot(p + coord_flip()).labels
    assert flipped["x"] == "b" and flipped["y"] == "alpha"


def test_constant_aesthetics_are_applied_after_scaling() -> None:
    df = pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, 2.0]})
    out = layer_data(ggplot(df, aes(x="x", y="y")) + geom_point(colour="red", size=3))
    assert out["colour"].tolist() == ["red", "red"]
    assert out["size"].tolist() == [3, 3]


def test_reference_lines_train_the_position_scale() -> None:
    df = pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, 2.0]})
    p = ggplot(df, aes(x="x", y="y")) + geom_point() + geom_hline(yintercept=10)
    scales = layer_scales(p)
    assert scales["y"].get_limits() == (1.0, 10.0)


def test_layer_scales_index_error() -> None:
    df = pd.DataFrame({"x": [1.0], "y": [1.0]})
    with pytest.raises(IndexError):
        layer_scales(ggplot(df, aes(x="x", y="y")) + geom_point(), 3)


def test_missing_column_names_the_aesthetic() -> None:
    df = pd.DataFrame({"x": [1.0]})
    with pytest.raises(AestheticEvalError, match="nope"):
        build_plot(ggplot(df, aes(x="x", y="nope")) + geom_point())


def test_stat_failure_is_recorded_as_diagnostic() -> None:
    def boom(values: np.ndarray) -> float:
        raise RuntimeError("bad summary")

    df = pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, 2.0]})
    p = ggplot(df, aes(x="x", y="y")) + geom_point() + stat_summary(fun=boom)
    with pytest.warns(StatComputationWarning):
        built = build_plot(p)
    assert built.data[1].empty
    assert [d.layer for d in built.diagnostics] == [1]
    with option_context(stat_failure="raise"), pytest.raises(StatComputationError):
        build_plot(p)


def test_building_leaves_the_plot_untouched() -> None:
    df = pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, 2.0]})
    p = ggplot(df, aes(x="x", y="y")) + geom_point()
    first = build_plot(p)
    second = build_plot(p)
    assert first.scales.find("x") is not second.scales.find("x")
    assert first.scales.find("x").frozen
    assert len(p.scales) == 0
    pd.testing.assert_frame_equal(first.data[0], second.data[0])
