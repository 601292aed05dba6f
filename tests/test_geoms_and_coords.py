"""Tests for geoms, key glyphs and coordinate systems."""

from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest

from gg_toolkit.coords import CoordCartesian, CoordFlip, CoordPolar, CoordTrans, PanelParams, AxisParams
from gg_toolkit.geoms import GeomBar, GeomPath, GeomPoint, GeomRaster, draw_key, stairstep
from gg_toolkit.primitives import Container, Path, Point
from gg_toolkit.row_table import GROUP, PANEL
from gg_toolkit.scales import scale_x_continuous, scale_x_discrete, scale_y_continuous
from gg_toolkit.theme import theme_grey


def _trained(template, values):
    scale = template.clone()
    scale.train(values)
    return scale


def _unit_params() -> PanelParams:
    return PanelParams(x=AxisParams(range=(0.0, 10.0)), y=AxisParams(range=(0.0, 10.0)))


# SECTION: Geoms [id: geoms]
# =============================================================================


def test_bar_setup_data_anchors_at_zero() -> None:
    data = pd.DataFrame({"x": [1.0, 2.0], "y": [3.0, -1.0]})
    geom = GeomBar()
    out = geom.setup_data(data, geom.setup_params(data, {}))
    assert out["ymin"].tolist() == [0.0, -1.0]
    assert out["ymax"].tolist() == [3.0, 0.0]
    assert out["xmin"].tolist() == pytest.approx([0.55, 1.55])
    assert out["xmax"].tolist() == pytest.approx([1.45, 2.45])
    assert "width" not in out.columns


def test_bar_width_parameter_wins() -> None:
    data = pd.DataFrame({"x": [1.0, 2.0], "y": [3.0, 1.0], "width": [0.2, 0.2]})
    out = GeomBar().setup_data(data, {"width": 0.5})
    assert (out["xmax"] - out["xmin"]).tolist() == pytest.approx([0.5, 0.5])


def test_stairstep_directions() -> None:
    data = pd.DataFrame({"x": [1, 2, 3], "y": [1, 3, 2]})
    assert stairstep(data)[["x", "y"]].values.tolist() == [[1, 1], [2, 1], [2, 3], [3, 3], [3, 2]]
    vh = stairstep(data, "vh")[["x", "y"]].values.tolist()
    assert vh[:3] == [[1, 1], [1, 3], [2, 3]]


def test_use_defaults_fills_and_checks_lengths() -> None:
    data = pd.DataFrame({"x": [1.0, 2.0, 3.0], "y": [1.0, 2.0, 3.0]})
    geom = GeomPoint()
    out = geom.use_defaults(data, {"colour": "red"})
    assert out["colour"].tolist() == ["red"] * 3
    assert out["size"].tolist() == [1.5] * 3
    with pytest.raises(ValueError, match="length 1 or the same as the data"):
        geom.use_defaults(data, {"size": [1.0, 2.0]})


def test_use_defaults_ignores_foreign_aesthetics() -> None:
    data = pd.DataFrame({"x": [1.0], "y": [1.0]})
    out = GeomPoint().use_defaults(data, {"linetype": "dashed"})
    assert "linetype" not in out.columns


def test_draw_layer_returns_one_container_per_panel() -> None:
    geom = GeomPoint()
    data = geom.use_defaults(
        pd.DataFrame({"x": [1.0, 2.0], "y": [3.0, 4.0], PANEL: [0, 0], GROUP: [-1, -1]})
    )
    drawn = geom.draw_layer(data, {}, CoordCartesian(), {0: _unit_params(), 1: _unit_params()}, "layer-0")
    assert set(drawn) == {0, 1}
    assert isinstance(drawn[0], Container) and drawn[0].name == "layer-0"
    (leaf,) = drawn[0].children
    assert isinstance(leaf, Point)
    assert leaf.name == "geom_point"
    assert leaf.x == pytest.approx((0.1, 0.2))
    assert drawn[1].children == ()


def test_path_splits_into_segments_when_colour_varies() -> None:
    geom = GeomPath()
    data = geom.use_defaults(
        pd.DataFrame(
            {
                "x": [0.0, 5.0, 10.0],
                "y": [0.0, 5.0, 0.0],
                "colour": ["red", "red", "blue"],
                PANEL: [0, 0, 0],
                GROUP: [0, 0, 0],
            }
        )
    )
    leaves = geom.draw_panel(data, _unit_params(), CoordCartesian(), {})
    assert len(leaves) == 2
    assert all(isinstance(leaf, Path) for leaf in leaves)
    assert [leaf.colour for leaf in leaves] == ["red", "red"]


def test_path_with_constant_style_is_one_leaf() -> None:
    geom = GeomPath()
    data = geom.use_defaults(
        pd.DataFrame({"x": [0.0, 5.0, 10.0], "y": [0.0, 5.0, 0.0], PANEL: [0, 0, 0], GROUP: [0, 0, 0]})
    )
    (leaf,) = geom.draw_panel(data, _unit_params(), CoordCartesian(), {})
    assert leaf.x == pytest.approx((0.0, 0.5, 1.0))


def test_raster_refuses_polar_coordinates() -> None:
    geom = GeomRaster()
    data = pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, 1.0], "fill": ["#000000", "#FFFFFF"]})
    with pytest.raises(ValueError, match="Cartesian"):
        geom.draw_panel(geom.setup_data(data, {}), _unit_params(), CoordPolar(), {})


def test_draw_key_glyphs() -> None:
    (point,) = draw_key("point", {"colour": "red"}, {})
    assert isinstance(point, Point)
    assert point.x == (0.5,)
    assert point.colour == ("red",)
    assert draw_key("blank", {}, {}) == []
    with pytest.raises(ValueError, match="Unknown key glyph"):
        draw_key("sparkle", {}, {})


# SECTION: Coordinate systems [id: coords]
# =============================================================================


def test_cartesian_axis_breaks_are_in_npc() -> None:
    sx = _trained(scale_x_continuous(breaks=[0, 5, 10]), [0.0, 10.0])
    sy = _trained(scale_y_continuous(), [0.0, 1.0])
    params = CoordCartesian().setup_panel_params(sx, sy)
    assert params.x.range == pytest.approx((-0.5, 10.5))
    assert params.x.major == pytest.approx((0.5 / 11, 5.5 / 11, 10.5 / 11))
    assert params.x.labels == ("0", "5", "10")
    assert all(0.0 <= v <= 1.0 for v in params.x.minor)


def test_cartesian_limits_zoom_without_expansion() -> None:
    sx = _trained(scale_x_continuous(), [0.0, 10.0])
    sy = _trained(scale_y_continuous(), [0.0, 10.0])
    params = CoordCartesian(xlim=(2, 4), expand=False).setup_panel_params(sx, sy)
    assert params.x.range == pytest.approx((2.0, 4.0))


def test_discrete_axis_uses_additive_expansion() -> None:
    sx = _trained(scale_x_discrete(), ["a", "b", "c"])
    sy = _trained(scale_y_continuous(), [0.0, 1.0])
    params = CoordCartesian().setup_panel_params(sx, sy)
    assert params.x.range == pytest.approx((-0.6, 2.6))
    assert params.x.labels == ("a", "b", "c")


def test_transform_rescales_positions() -> None:
    data = pd.DataFrame({"x": [0.0, 10.0], "xend": [5.0, 5.0], "y": [5.0, 5.0], "colour": ["a", "b"]})
    out = CoordCartesian().transform(data, _unit_params())
    assert out["x"].tolist() == [0.0, 1.0]
    assert out["xend"].tolist() == [0.5, 0.5]
    assert out["colour"].tolist() == ["a", "b"]


def test_flip_swaps_drawing_directions() -> None:
    sx = _trained(scale_x_continuous(), [0.0, 10.0])
    sy = _trained(scale_y_continuous(), [100.0, 200.0])
    coord = CoordFlip()
    params = coord.setup_panel_params(sx, sy)
    assert params.x.range == pytest.approx((95.0, 205.0))
    assert params.y.range == pytest.approx((-0.5, 10.5))
    assert coord.flip_labels({"x": "weight", "y": "height"}) == {"x": "height", "y": "weight"}


def test_coord_trans_undefined_range_raises() -> None:
    sx = _trained(scale_x_continuous(), [-5.0, -1.0])
    sy = _trained(scale_y_continuous(), [0.0, 1.0])
    with pytest.raises(ValueError, match="undefined"):
        CoordTrans(x="log10").setup_panel_params(sx, sy)


def test_coord_trans_is_applied_after_statistics() -> None:
    sx = _trained(scale_x_continuous(), [1.0, 100.0])
    sy = _trained(scale_y_continuous(), [0.0, 1.0])
    coord = CoordTrans(x="log10", expand=False)
    params = coord.setup_panel_params(sx, sy)
    assert params.x.range == pytest.approx((0.0, 2.0))
    out = coord.transform(pd.DataFrame({"x": [10.0], "y": [0.5]}), params)
    assert out["x"].iloc[0] == pytest.approx(0.5)


def test_munch_interpolates_only_non_linear_coords() -> None:
    data = pd.DataFrame({"x": [1.0, 100.0], "y": [0.0, 1.0], PANEL: [0, 0], GROUP: [0, 0]})
    params = PanelParams(x=AxisParams(range=(0.0, 2.0)), y=AxisParams(range=(0.0, 1.0)))
    assert CoordCartesian().munch(data, params) is data
    munched = CoordTrans(x="log10").munch(data, params)
    assert len(munched) > 2
    assert munched["x"].iloc[0] == 1.0 and munched["x"].iloc[-1] == 100.0


def test_polar_params() -> None:
    sx = _trained(scale_x_continuous(), [0.0, 4.0])
    sy = _trained(scale_y_continuous(), [0.0, 1.0])
    coord = CoordPolar()
    params = coord.setup_panel_params(sx, sy)
    assert coord.aspect(params) == 1.0
    for key in ("theta_range", "r_range", "theta_major", "theta_minor", "theta_labels", "r_major"):
        assert key in params.extra
    assert all(0.0 <= t < 2 * math.pi for t in params.extra["theta_major"])
    assert all(0.0 <= r <= 0.4 + 1e-9 for r in params.extra["r_major"])


def test_polar_transform_places_points_on_circle() -> None:
    sx = _trained(scale_x_continuous(), [0.0, 4.0])
    sy = _trained(scale_y_continuous(), [0.0, 1.0])
    coord = CoordPolar()
    params = coord.setup_panel_params(sx, sy)
    out = coord.transform(pd.DataFrame({"x": [0.0, 1.0], "y": [1.0, 1.0]}), params)
    radius = np.hypot(out["x"] - 0.5, out["y"] - 0.5)
    assert radius.tolist() == pytest.approx([0.4, 0.4])
    # Angle zero is 12 o'clock.
    assert out["x"].iloc[0] == pytest.approx(0.5)
    assert out["y"].iloc[0] == pytest.approx(0.9)


def test_polar_rejects_bad_theta() -> None:
    with pytest.raises(ValueError):
        CoordPolar("z")


def test_render_bg_draws_background_and_grid() -> None:
    sx = _trained(scale_x_continuous(), [0.0, 10.0])
    sy = _trained(scale_y_continuous(), [0.0, 10.0])
    coord = CoordCartesian()
    leaves = coord.render_bg(coord.setup_panel_params(sx, sy), theme_grey())
    names = [leaf.name for leaf in leaves]
    assert names[0] == "panel-background"
    assert "grid-major-x" in names and "grid-major-y" in names
