"""Tests for the immutable plot specification."""

from __future__ import annotations

import pandas as pd
import pytest

from gg_toolkit import (
    CoordFlip,
    FacetWrap,
    GGPlot,
    aes,
    coord_flip,
    facet_wrap,
    geom_line,
    geom_point,
    ggplot,
    guide_none,
    guides,
    labs,
    scale_x_log10,
    theme,
    theme_bw,
    theme_void,
    xlab,
)


@pytest.fixture
def base() -> GGPlot:
    return ggplot(pd.DataFrame({"x": [1, 2], "y": [3, 4]}), aes(x="x", y="y"))


def test_addition_returns_a_new_plot(base) -> None:
    p = base + geom_point()
    assert len(p.layers) == 1
    assert len(base.layers) == 0
    assert (p + geom_line()).layers[0] is p.layers[0]


def test_components_are_routed(base) -> None:
    p = base + scale_x_log10() + coord_flip() + facet_wrap("x") + labs(title="T") + guides(colour=guide_none())
    assert p.scales.has("x")
    assert not base.scales.has("x")
    assert isinstance(p.coord, CoordFlip)
    assert isinstance(p.facet, FacetWrap)
    assert p.labels["title"] == "T"
    assert "colour" in p.guides


def test_sequences_and_none_are_accepted(base) -> None:
    p = base + [geom_point(), None, xlab("ex")]
    assert len(p.layers) == 1
    assert p.labels["x"] == "ex"
    assert base + None is base


def test_adding_a_mapping_merges_it(base) -> None:
    p = base + aes(colour="y")
    assert dict(p.mapping) == {"x": "x", "y": "y", "colour": "y"}
    assert dict(base.mapping) == {"x": "x", "y": "y"}


def test_theme_addition(base) -> None:
    partial = base + theme(legend_position="top")
    assert partial.theme.get("legend_position") == "top"
    assert partial.theme.complete
    replaced = partial + theme_void()
    assert replaced.theme.get("legend_position") == "right"
    assert (base + theme_bw()).theme.calc_element("panel_border").colour == "#333333"


def test_unsupported_operand(base) -> None:
    with pytest.raises(TypeError, match="Cannot add int"):
        base + 3


def test_ggplot_accepts_mapping_first_and_dicts() -> None:
    p = ggplot(aes(x="a"))
    assert p.data is None
    assert dict(p.mapping) == {"x": "a"}
    q = ggplot({"a": [1, 2, 3]}, {"x": "a"})
    assert list(q.data.columns) == ["a"]
    assert len(q.data) == 3


def test_repr(base) -> None:
    assert repr(base + geom_point()) == (
        "GGPlot(2 rows, mapping=aes(x='x', y='y'), layers=1, "
        "coord=coord_cartesian(xlim=None, ylim=None), facet=FacetNull)"
    )


def test_build_and_render_shortcuts(base) -> None:
    p = base + geom_point()
    assert len(p.build().data[0]) == 2
    assert p.render(200, 150).name == "plot"
