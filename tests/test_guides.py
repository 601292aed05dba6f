"""Tests for guide training, merging, key glyphs and axis drawing."""

from __future__ import annotations

import pytest

from gg_toolkit.coords import AxisParams
from gg_toolkit.errors import GuideMergeConflictError
from gg_toolkit.geoms import GeomPoint
from gg_toolkit.guides import (
    GuideAxis,
    GuideNone,
    KeySource,
    add_glyphs,
    axis_thickness,
    draw_axis,
    draw_guide_box,
    guide_axis,
    guide_legend,
    guide_none,
    guides,
    merge_guides,
    resolve_guide,
    train_guides,
)
from gg_toolkit.primitives import Container, Point
from gg_toolkit.scales import scale_colour_discrete, scale_colour_gradient, scale_shape, scale_x_continuous
from gg_toolkit.theme import theme_grey


def _trained(template, values):
    scale = template.clone()
    scale.train(values)
    return scale


def test_equal_legends_merge_into_one() -> None:
    colour = _trained(scale_colour_discrete(), ["a", "b"])
    shape = _trained(scale_shape(), ["a", "b"])
    trained = train_guides([colour, shape], {"colour": "grp", "shape": "grp"})
    assert len(trained) == 2
    (merged,) = merge_guides(trained)
    assert merged.aesthetics == ("colour", "shape")
    assert merged.labels == ("a", "b")
    assert merged.title == "grp"
    assert {"colour", "shape"} <= set(merged.key.columns)


def test_different_titles_stay_separate() -> None:
    colour = _trained(scale_colour_discrete(), ["a", "b"])
    shape = _trained(scale_shape(), ["a", "b"])
    trained = train_guides([colour, shape], {"colour": "one", "shape": "two"})
    assert len(merge_guides(trained)) == 2


def test_conflicting_merge_key_raises() -> None:
    colour = _trained(scale_colour_discrete(), ["a", "b"])
    shape = _trained(scale_shape(), ["a", "b"])
    overrides = guides(colour=guide_legend(merge_key="k"), shape=guide_legend(merge_key="k"))
    trained = train_guides([colour, shape], {"colour": "one", "shape": "two"}, overrides)
    with pytest.raises(GuideMergeConflictError, match="'k'"):
        merge_guides(trained)


def test_colourbar_for_continuous_colour() -> None:
    colour = _trained(scale_colour_gradient(), [0.0, 10.0])
    (bar,) = train_guides([colour], {"colour": "z"})
    assert bar.kind == "colourbar"
    assert len(bar.bar) == 20
    assert all(0.0 <= t <= 1.0 for t in bar.bar_ticks)
    assert add_glyphs(bar, []) is bar


def test_guide_none_and_axis_overrides() -> None:
    colour = _trained(scale_colour_discrete(), ["a"])
    assert train_guides([colour], {}, guides(color="none")) == []
    with pytest.raises(ValueError, match="guide_axis"):
        train_guides([colour], {}, guides(colour=guide_axis()))


def test_guides_mapping_standardises_names() -> None:
    g = guides(color=guide_none())
    assert isinstance(g["colour"], GuideNone)
    combined = g.updated(guides(fill="legend"))
    assert set(combined) == {"colour", "fill"}
    with pytest.raises(ValueError, match="Unknown guide"):
        guides(colour="sparkle")


def test_position_scales_resolve_to_axis() -> None:
    assert isinstance(resolve_guide(scale_x_continuous()), GuideAxis)


def test_reverse_legend_order() -> None:
    colour = _trained(scale_colour_discrete(), ["a", "b", "c"])
    (legend,) = train_guides([colour], {}, guides(colour=guide_legend(reverse=True)))
    assert legend.labels == ("c", "b", "a")
    assert legend.title == "colour"


def test_add_glyphs_draws_one_key_per_row() -> None:
    colour = _trained(scale_colour_discrete(), ["a", "b"])
    (legend,) = train_guides([colour], {})
    source = KeySource(geom=GeomPoint(), mapping={"colour": "g"})
    hidden = KeySource(geom=GeomPoint(), mapping={"colour": "g"}, show_legend=False)
    drawn = add_glyphs(legend, [source, hidden])
    assert len(drawn.glyphs) == 2
    first, second = (glyph[0] for glyph in drawn.glyphs)
    assert isinstance(first, Point)
    assert first.colour == (legend.key["colour"].iloc[0],)
    assert second.colour == (legend.key["colour"].iloc[1],)
    assert all(len(glyph) == 1 for glyph in drawn.glyphs)


def test_guide_box_stacks_legends() -> None:
    colour = _trained(scale_colour_discrete(), ["a", "b"])
    shape = _trained(scale_shape(), ["x", "y"])
    trained = train_guides([colour, shape], {})
    container, width, height = draw_guide_box(trained, theme_grey(), "right")
    assert isinstance(container, Container)
    assert container.name == "guide-box"
    assert [child.name for child in container.children] == ["guide-colour", "guide-shape"]
    assert width > 0 and height > 0
    assert draw_guide_box(trained, theme_grey(), "none") is None


def test_draw_axis_places_labels_at_breaks() -> None:
    axis = AxisParams(range=(0.0, 10.0), major=(0.0, 0.5, 1.0), labels=("0", "5", "10"))
    drawn = draw_axis(axis, "bottom", theme_grey(), 100.0, "axis-b-0")
    names = [child.name for child in drawn.children]
    assert names == ["ticks", "labels"]
    labels = drawn.children[1]
    assert labels.x == pytest.approx((0.0, 50.0, 100.0))
    assert labels.label == ("0", "5", "10")
    assert drawn.viewport.height == pytest.approx(axis_thickness(axis, "bottom", theme_grey()))


def test_hidden_axis_takes_no_space() -> None:
    axis = AxisParams(range=(0.0, 1.0), major=(0.5,), labels=("x",))
    assert axis_thickness(axis, "left", theme_grey(), GuideNone()) == 0.0
    assert draw_axis(axis, "left", theme_grey(), 50.0, "axis-l-0", GuideNone()).children == ()
