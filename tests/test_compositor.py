"""Tests for composing a built plot into a pixel-space primitive tree."""

from __future__ import annotations

import pandas as pd
import pytest

from gg_toolkit import (
    Container,
    Point,
    Text,
    aes,
    coord_polar,
    facet_grid,
    facet_wrap,
    geom_point,
    ggplot,
    ggtitle,
    guides,
    labs,
    render_plot,
    theme,
    validate_tree,
)


@pytest.fixture
def scatter():
    df = pd.DataFrame({"x": [1.0, 2.0, 3.0], "y": [4.0, 5.0, 6.0], "g": ["a", "b", "a"]})
    return ggplot(df, aes(x="x", y="y")) + geom_point()


def test_tree_has_named_regions(scatter) -> None:
    tree = render_plot(scatter, 400, 300)
    assert tree.name == "plot"
    assert (tree.viewport.width, tree.viewport.height) == (400.0, 300.0)
    for name in ("plot-background", "panel-0-0", "axis-b-0", "axis-l-0", "axis-title-x", "axis-title-y"):
        assert tree.find(name) is not None, name
    assert tree.find("guide-box") is None
    validate_tree(tree)


def test_points_land_inside_their_panel(scatter) -> None:
    tree = render_plot(scatter, 400, 300)
    panel = tree.find("panel-0-0")
    (points,) = [leaf for leaf in panel.leaves() if isinstance(leaf, Point)]
    vp = panel.viewport
    assert points.units == "px"
    assert all(vp.x <= v <= vp.x + vp.width for v in points.x)
    assert all(vp.y <= v <= vp.y + vp.height for v in points.y)
    # Larger data values sit further right and higher up.
    assert list(points.x) == sorted(points.x)
    assert list(points.y) == sorted(points.y)


def test_every_leaf_fits_the_canvas(scatter) -> None:
    tree = render_plot(scatter + ggtitle("Title", subtitle="Sub") + labs(caption="Source"), 500, 400)
    for leaf in tree.leaves():
        if isinstance(leaf, (Point, Text)):
            assert all(-1e-6 <= v <= 500 + 1e-6 for v in leaf.x)
            assert all(-1e-6 <= v <= 400 + 1e-6 for v in leaf.y)


def test_titles_are_drawn_top_down(scatter) -> None:
    tree = render_plot(scatter + ggtitle("Title", subtitle="Sub") + labs(caption="Source"), 500, 400)
    title, subtitle, caption = tree.find("title"), tree.find("subtitle"), tree.find("caption")
    assert title.label == ("Title",)
    assert title.y[0] > subtitle.y[0] > caption.y[0]


def test_legend_box_follows_the_theme(scatter) -> None:
    p = scatter + aes(colour="g")
    tree = render_plot(p, 400, 300)
    box = tree.find("guide-box")
    assert isinstance(box, Container)
    assert box.find("guide-colour") is not None
    panel = tree.find("panel-0-0")
    assert box.viewport.x >= panel.viewport.x + panel.viewport.width

    assert render_plot(p + theme(legend_position="none"), 400, 300).find("guide-box") is None
    assert render_plot(p + guides(colour="none"), 400, 300).find("guide-box") is None
    bottom = render_plot(p + theme(legend_position="bottom"), 400, 300).find("guide-box")
    assert bottom.viewport.y < panel.viewport.y


def test_wrap_facets_get_strips_and_shared_axes(scatter) -> None:
    tree = render_plot(scatter + facet_wrap("g"), 400, 300)
    assert tree.find("panel-0-0") is not None and tree.find("panel-0-1") is not None
    assert tree.find("strip-t-0-0") is not None and tree.find("strip-t-0-1") is not None
    assert tree.find("axis-b-1") is not None
    assert tree.find("axis-l-0") is not None
    assert tree.find("axis-l-1") is None
    left, right = tree.find("panel-0-0").viewport, tree.find("panel-0-1").viewport
    assert left.width == pytest.approx(right.width)
    assert right.x > left.x + left.width
    validate_tree(tree)


def test_grid_facets_put_row_strips_on_the_right(scatter) -> None:
    tree = render_plot(scatter + facet_grid(rows="g"), 400, 300)
    assert tree.find("strip-r-0-0") is not None
    assert tree.find("strip-r-1-0") is not None
    assert tree.find("axis-b-0") is not None


def test_polar_panels_are_square_and_labelled(scatter) -> None:
    tree = render_plot(scatter + coord_polar(), 500, 300)
    vp = tree.find("panel-0-0").viewport
    assert vp.width == pytest.approx(vp.height)
    assert tree.find("axis-theta") is not None
    validate_tree(tree)


def test_non_positive_size_is_rejected(scatter) -> None:
    with pytest.raises(ValueError, match="positive"):
        render_plot(scatter, 0, 300)
