"""Tests for theme element inheritance and element rendering."""

from __future__ import annotations

import pytest

from gg_toolkit.primitives import PT_TO_PX, Polygon
from gg_toolkit.theme import (
    ElementBlank,
    Theme,
    element_blank,
    element_line,
    element_rect,
    element_text,
    rel,
    render_line,
    render_rect,
    text_block,
    text_extent,
    theme,
    theme_bw,
    theme_grey,
    theme_void,
)


def test_relative_sizes_multiply_down_the_chain() -> None:
    resolved = theme_grey(base_size=10).calc_element("axis_text_x")
    assert resolved.size == pytest.approx(8.0)
    assert resolved.colour == "#4D4D4D"
    assert resolved.vjust == 1.0
    assert resolved.family == ""


def test_na_colour_resolves_to_none() -> None:
    background = theme_grey().calc_element("panel_background")
    assert background.fill == "#EBEBEB"
    assert background.colour is None
    assert background.linewidth == 0.5


def test_partial_theme_merges_into_existing_element() -> None:
    t = theme_grey() + theme(axis_text_x=element_text(color="red"))
    resolved = t.calc_element("axis_text_x")
    assert resolved.colour == "red"
    assert resolved.vjust == 1.0
    assert resolved.size == pytest.approx(8.8)


def test_blank_parent_blanks_descendants() -> None:
    t = theme_grey() + theme(panel_grid_major=element_blank())
    assert isinstance(t.calc_element("panel_grid_major_x"), ElementBlank)
    assert not isinstance(t.calc_element("panel_grid_minor_x"), ElementBlank)


def test_relative_linewidth() -> None:
    t = theme_grey() + theme(panel_grid=element_line(linewidth=2.0))
    assert t.calc_element("panel_grid_minor_y").linewidth == pytest.approx(1.0)


def test_complete_theme_replaces() -> None:
    t = theme_grey() + theme(legend_position="bottom") + theme_void()
    assert t.get("legend_position") == "right"
    assert t.calc_element("axis_text") == element_blank()


def test_settings_and_validation() -> None:
    assert theme_grey().get("panel_spacing") == 5.5
    assert (theme_grey() + theme(legend_position="top")).get("legend_position") == "top"
    with pytest.raises(KeyError):
        theme_grey().get("axis_text")
    with pytest.raises(TypeError, match="not a valid theme element"):
        theme(axis_texts=element_text())
    with pytest.raises(ValueError, match="legend_position"):
        theme(legend_position="diagonal")


def test_dotted_names_are_accepted() -> None:
    t = Theme({"axis.text.x": element_text(colour="blue")})
    assert t.calc_element("axis_text_x").colour == "blue"


def test_theme_bw_draws_a_border() -> None:
    border = theme_bw().calc_element("panel_border")
    assert border.colour == "#333333"
    assert border.fill is None


def test_render_helpers_skip_blank_elements() -> None:
    assert render_rect(element_blank(), 0, 0, 1, 1, name="r") is None
    assert render_rect(element_rect(), 0, 0, 1, 1, name="r") is None
    assert render_line(element_line(), [0, 1], [0, 1], name="l") is None
    rect = render_rect(element_rect(fill="white"), 0, 0, 2, 1, name="r", units="px")
    assert isinstance(rect, Polygon)
    assert rect.x == (0, 2, 2, 0)


def test_text_extent_estimates() -> None:
    assert text_extent("abc", 10.0) == pytest.approx((18.0, 12.0))
    assert text_extent("abc", 10.0, angle=90.0) == pytest.approx((12.0, 18.0))
    assert text_extent("", 10.0) == (0.0, 0.0)
    assert text_extent("a\nbb", 10.0) == pytest.approx((12.0, 24.0))


def test_text_block_adds_margins() -> None:
    element = element_text(size=10.0, margin=(1.0, 2.0, 3.0, 4.0), angle=0.0)
    w, h = text_block(element, ["ab"])
    size = 10.0 * PT_TO_PX
    assert w == pytest.approx(2 * 0.6 * size + 6.0 * PT_TO_PX)
    assert h == pytest.approx(1.2 * size + 4.0 * PT_TO_PX)
    assert text_block(element_blank(), ["ab"]) == (0.0, 0.0)


def test_rel_wraps_factor() -> None:
    assert rel(2).factor == 2.0
