"""Geometry Renderer.

Purpose
-------
A geom turns finished rows into drawing primitives. Rows arrive with every
aesthetic mapped: positions are numbers on the scales' common axis, colours
are colour strings, sizes are millimetres. The coordinate system moves the
positions into npc; geoms only decide which primitives to emit.

Protocol
--------
``setup_params(data, params)`` / ``setup_data(data, params)``
    Whole-layer preparation before position adjustment. Bars, tiles and
    rectangles reparameterise ``x``/``width`` into ``xmin``/``xmax`` here.
``handle_na(data, params)``
    Drop rows missing a required or non-missing aesthetic.
``use_defaults(data, aes_params, modifiers)``
    Fill default aesthetics, apply constant aesthetics, evaluate
    ``after_scale`` modifiers.
``draw_layer`` → ``draw_panel`` → ``draw_group``
    Produce one :class:`~gg_toolkit.primitives.Container` per panel.
``draw_key(data, params)``
    Legend glyph for one key, in npc of the key box.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Optional

import numpy as np
import pandas as pd

from .aes import evaluate_mapping
from .coords import Coord, PanelParams
from .palettes import LINETYPES
from .primitives import MM_TO_PX, Container, Path, Point, Polygon, Raster, Text
from .row_table import GROUP, PANEL, resolution

__all__ = [
    "Geom",
    "GeomPoint",
    "GeomPath",
    "GeomLine",
    "GeomStep",
    "GeomRect",
    "GeomBar",
    "GeomCol",
    "GeomTile",
    "GeomRaster",
    "GeomText",
    "GeomPolygon",
    "GeomRibbon",
    "GeomArea",
    "GeomDensity",
    "GeomSmooth",
    "GeomHline",
    "GeomVline",
    "KEY_GLYPHS",
    "draw_key",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# Numeric shape codes understood alongside marker names.
_SHAPE_CODES = {
    0: "square-open",
    1: "circle-open",
    2: "triangle-up-open",
    3: "cross-thin-open",
    4: "x-thin-open",
    5: "diamond-open",
    15: "square",
    16: "circle",
    17: "triangle-up",
    18: "diamond",
    19: "circle",
    20: "circle",
    21: "circle",
    22: "square",
    23: "diamond",
    24: "triangle-up",
}


# SECTION: Attribute helpers [id: attributes]
# =============================================================================


def _missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (float, np.floating)):
        return bool(np.isnan(value))
    return value is pd.NA or value is pd.NaT


def _colour(value: Any) -> Optional[str]:
    return None if _missing(value) else str(value)


def _alpha(value: Any) -> float:
    return 1.0 if _missing(value) else float(value)


def _mm(value: Any, default: float) -> float:
    return (default if _missing(value) else float(value)) * MM_TO_PX


def _linetype(value: Any) -> str:
    if _missing(value):
        return "solid"
    if isinstance(value, (int, np.integer)) or (isinstance(value, float) and float(value).is_integer()):
        code = int(value)
        return "blank" if code == 0 else LINETYPES[(code - 1) % len(LINETYPES)]
    return str(value)


def _shape(value: Any) -> str:
    if _missing(value):
        return "circle"
    if isinstance(value, (int, np.integer, float, np.floating)):
        return _SHAPE_CODES.get(int(value), "circle")
    return str(value)


def _column(data: pd.DataFrame, name: str, default: Any = None) -> list[Any]:
    if name in data.columns:
        return data[name].tolist()
    return [default] * len(data)


def _floats(data: pd.DataFrame, name: str) -> np.ndarray:
    return pd.to_numeric(data[name], errors="coerce").to_numpy(dtype=float)


def _missing_mask(data: pd.DataFrame, columns: Sequence[str]) -> np.ndarray:
    bad = np.zeros(len(data), dtype=bool)
    for col in columns:
        values = data[col]
        if pd.api.types.is_numeric_dtype(values):
            bad |= ~np.isfinite(values.to_numpy(dtype=float))
        else:
            bad |= values.isna().to_numpy()
    return bad


def _is_constant(data: pd.DataFrame, columns: Sequence[str]) -> bool:
    for col in columns:
        if col in data.columns and data[col].astype(object).nunique(dropna=False) > 1:
            return False
    return True


def _path(data: pd.DataFrame, name: str) -> Path:
    first = data.iloc[0]
    return Path(
        name=name,
        x=tuple(_floats(data, "x").tolist()),
        y=tuple(_floats(data, "y").tolist()),
        colour=_colour(first.get("colour")),
        linewidth=_mm(first.get("linewidth"), 0.5),
        linetype=_linetype(first.get("linetype")),
        alpha=_alpha(first.get("alpha")),
    )


def _polygon(x: Sequence[float], y: Sequence[float], row: Mapping[str, Any], name: str) -> Polygon:
    return Polygon(
        name=name,
        x=tuple(float(v) for v in x),
        y=tuple(float(v) for v in y),
        colour=_colour(row.get("colour")),
        fill=_colour(row.get("fill")),
        linewidth=_mm(row.get("linewidth"), 0.5),
        linetype=_linetype(row.get("linetype")),
        alpha=_alpha(row.get("alpha")),
    )


# SECTION: Geom protocol [id: Geom]
# =============================================================================


class Geom:
    """Base geom: missing-value handling, defaults and per-panel drawing."""

    name = "geom"
    required_aes: tuple[str, ...] = ()
    non_missing_aes: tuple[str, ...] = ()
    default_aes: Mapping[str, Any] = {}
    param_names: tuple[str, ...] = ("na_rm",)
    key_glyph = "point"

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    @property
    def aesthetics(self) -> tuple[str, ...]:
        """Every aesthetic this geom understands."""
        return tuple(dict.fromkeys((*self.required_aes, *self.non_missing_aes, *self.default_aes, "group")))

    def setup_params(self, data: pd.DataFrame, params: Mapping[str, Any]) -> dict[str, Any]:
        return dict(params)

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        return data

    def handle_na(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        """Drop rows missing a required or non-missing aesthetic."""
        if data.empty:
            return data
        columns = [c for c in (*self.required_aes, *self.non_missing_aes) if c in data.columns]
        bad = _missing_mask(data, columns)
        if not bad.any():
            return data
        if not params.get("na_rm", False):
            logger.info(
                "Removed %d rows containing missing values or values outside the scale range (%s).",
                int(bad.sum()),
                self.name,
            )
        return data.loc[~bad].reset_index(drop=True)

    def use_defaults(
        self,
        data: pd.DataFrame,
        aes_params: Optional[Mapping[str, Any]] = None,
        modifiers: Optional[Mapping[str, Any]] = None,
    ) -> pd.DataFrame:
        """Complete the aesthetics of ``data``.

        Parameters
        ----------
        data : pandas.DataFrame
            Mapped rows.
        aes_params : mapping, optional
            Constant aesthetics; each value is a scalar or one value per row.
        modifiers : mapping, optional
            ``after_scale`` mapping evaluated last.

        Raises
        ------
        ValueError
            If a constant aesthetic has neither one value nor one per row.
        """
        out = data.copy()
        n = len(out)
        for name, value in self.default_aes.items():
            if name not in out.columns:
                out[name] = [value] * n
        for name, value in (aes_params or {}).items():
            if name not in self.aesthetics:
                continue
            if isinstance(value, (list, tuple, np.ndarray, pd.Series)):
                if len(value) not in (1, n):
                    raise ValueError(
                        f"Aesthetics must be either length 1 or the same as the data ({n}): {name}"
                    )
                out[name] = list(value) * (n if len(value) == 1 else 1)
            else:
                out[name] = [value] * n
        if modifiers and n:
            out = evaluate_mapping(out, modifiers, "after_scale")
        return out

    def draw_layer(
        self,
        data: pd.DataFrame,
        params: Mapping[str, Any],
        coord: Coord,
        panel_params: Mapping[int, PanelParams],
        name: str,
    ) -> dict[int, Container]:
        """One container per panel, empty for panels without rows."""
        out: dict[int, Container] = {}
        for panel_id, pp in panel_params.items():
            part = data.loc[data[PANEL] == panel_id].reset_index(drop=True) if not data.empty else data
            leaves = self.draw_panel(part, pp, coord, params) if not part.empty else []
            out[panel_id] = Container(name, tuple(leaves))
        return out

    def draw_panel(self, data: pd.DataFrame, panel_params: PanelParams, coord: Coord, params: Mapping[str, Any]) -> list[Any]:
        leaves: list[Any] = []
        for _, group in data.groupby(GROUP, sort=True):
            leaves.extend(self.draw_group(group.reset_index(drop=True), panel_params, coord, params))
        return leaves

    def draw_group(self, data: pd.DataFrame, panel_params: PanelParams, coord: Coord, params: Mapping[str, Any]) -> list[Any]:
        raise NotImplementedError(f"{self.name} does not implement draw_group()")

    def draw_key(self, data: Mapping[str, Any], params: Mapping[str, Any]) -> list[Any]:
        return draw_key(self.key_glyph, data, params)


# SECTION: Points and text [id: points]
# =============================================================================


class GeomPoint(Geom):
    name = "geom_point"
    required_aes = ("x", "y")
    non_missing_aes = ("size", "shape", "colour")
    default_aes = {"shape": 19, "colour": "#000000", "size": 1.5, "fill": None, "alpha": None, "stroke": 0.5}
    key_glyph = "point"

    def draw_panel(self, data: pd.DataFrame, panel_params: PanelParams, coord: Coord, params: Mapping[str, Any]) -> list[Any]:
        coords = coord.transform(data, panel_params)
        return [
            Point.build(
                coords["x"],
                coords["y"],
                name=self.name,
                size=[_mm(v, 1.5) for v in _column(coords, "size")],
                shape=[_shape(v) for v in _column(coords, "shape")],
                colour=[_colour(v) for v in _column(coords, "colour")],
                fill=[_colour(v) for v in _column(coords, "fill")],
                alpha=[_alpha(v) for v in _column(coords, "alpha")],
                stroke=[_mm(v, 0.5) for v in _column(coords, "stroke")],
            )
        ]


class GeomText(Geom):
    name = "geom_text"
    required_aes = ("x", "y", "label")
    default_aes = {
        "colour": "#000000",
        "size": 3.88,
        "angle": 0.0,
        "hjust": 0.5,
        "vjust": 0.5,
        "alpha": None,
        "fontface": "plain",
    }
    param_names = ("na_rm", "check_overlap")
    key_glyph = "text"

    def draw_panel(self, data: pd.DataFrame, panel_params: PanelParams, coord: Coord, params: Mapping[str, Any]) -> list[Any]:
        coords = coord.transform(data, panel_params)
        if params.get("check_overlap", False):
            coords = coords.drop_duplicates(subset=["x", "y"]).reset_index(drop=True)
        face = coords["fontface"].iloc[0] if "fontface" in coords.columns else "plain"
        return [
            Text.build(
                coords["x"],
                coords["y"],
                [str(v) for v in coords["label"]],
                name=self.name,
                colour=[_colour(v) for v in _column(coords, "colour")],
                size=[_mm(v, 3.88) for v in _column(coords, "size")],
                angle=[0.0 if _missing(v) else float(v) for v in _column(coords, "angle")],
                hjust=[0.5 if _missing(v) else float(v) for v in _column(coords, "hjust")],
                vjust=[0.5 if _missing(v) else float(v) for v in _column(coords, "vjust")],
                alpha=[_alpha(v) for v in _column(coords, "alpha")],
                fontface=str(face),
            )
        ]


# SECTION: Lines [id: lines]
# =============================================================================


class GeomPath(Geom):
    """Connect observations in data order. Missing positions break the line."""

    name = "geom_path"
    required_aes = ("x", "y")
    default_aes = {"colour": "#000000", "linewidth": 0.5, "linetype": 1, "alpha": None}
    key_glyph = "path"

    def handle_na(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        if data.empty:
            return data
        # Missing positions break the line and a missing colour draws nothing,
        # so only the stroke attributes count as missing values.
        bad = _missing_mask(data, [c for c in ("linewidth", "linetype") if c in data.columns])
        if bad.any():
            if not params.get("na_rm", False):
                logger.info("Removed %d rows containing missing values (%s).", int(bad.sum()), self.name)
            return data.loc[~bad].reset_index(drop=True)
        return data

    def draw_panel(self, data: pd.DataFrame, panel_params: PanelParams, coord: Coord, params: Mapping[str, Any]) -> list[Any]:
        munched = coord.transform(coord.munch(data, panel_params), panel_params)
        leaves: list[Any] = []
        for group_id, group in munched.groupby(GROUP, sort=True):
            group = group.reset_index(drop=True)
            if len(group) < 2:
                logger.info("%s: group %s has only one observation; nothing drawn", self.name, group_id)
                continue
            if _is_constant(group, ("colour", "linewidth", "linetype", "alpha")):
                leaves.append(_path(group, self.name))
                continue
            # Varying attributes: one segment per consecutive pair, styled by its start.
            for i in range(len(group) - 1):
                leaves.append(_path(group.iloc[i : i + 2], self.name))
        return leaves


class GeomLine(GeomPath):
    """Connect observations in order of ``x``."""

    name = "geom_line"

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        if data.empty:
            return data
        return data.sort_values([PANEL, GROUP, "x"], kind="mergesort").reset_index(drop=True)


def stairstep(data: pd.DataFrame, direction: str = "hv") -> pd.DataFrame:
    """Expand ordered points into a staircase.

    Examples
    --------
    >>> import pandas as pd
    >>> stairstep(pd.DataFrame({"x": [1, 2, 3], "y": [1, 3, 2]}))[["x", "y"]].values.tolist()
    [[1, 1], [2, 1], [2, 3], [3, 3], [3, 2]]
    """
    n = len(data)
    if n <= 1:
        return data.iloc[0:0]
    if direction == "vh":
        xs = np.repeat(np.arange(n), 2)[:-1]
        ys = np.repeat(np.arange(n), 2)[1:]
    elif direction == "hv":
        xs = np.repeat(np.arange(n), 2)[1:]
        ys = np.repeat(np.arange(n), 2)[:-1]
    elif direction == "mid":
        xs = np.repeat(np.arange(n - 1), 2)
        ys = np.repeat(np.arange(n), 2)
    else:
        raise ValueError(f"direction must be one of 'hv', 'vh' or 'mid', not {direction!r}")
    base = data.reset_index(drop=True)
    if direction == "mid":
        x = base["x"].to_numpy(dtype=float)
        mids = (x[:-1] + x[1:]) / 2
        out = base.iloc[ys].reset_index(drop=True)
        out["x"] = np.concatenate([[x[0]], np.repeat(mids, 2), [x[-1]]])
        return out
    out = base.iloc[ys].reset_index(drop=True)
    out["x"] = base["x"].to_numpy()[xs]
    return out


class GeomStep(GeomPath):
    """Connect observations with horizontal and vertical steps."""

    name = "geom_step"
    param_names = ("na_rm", "direction")

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        return GeomLine.setup_data(self, data, params)  # type: ignore[arg-type]

    def draw_panel(self, data: pd.DataFrame, panel_params: PanelParams, coord: Coord, params: Mapping[str, Any]) -> list[Any]:
        direction = params.get("direction", "hv")
        parts = [stairstep(group, direction) for _, group in data.groupby(GROUP, sort=True)]
        parts = [p for p in parts if not p.empty]
        if not parts:
            return []
        return super().draw_panel(pd.concat(parts, ignore_index=True), panel_params, coord, params)


class GeomHline(Geom):
    """Horizontal reference lines across the whole panel."""

    name = "geom_hline"
    required_aes = ("yintercept",)
    default_aes = {"colour": "#000000", "linewidth": 0.5, "linetype": 1, "alpha": None}
    key_glyph = "path"
    _across, _along, _intercept = "x", "y", "yintercept"

    def draw_panel(self, data: pd.DataFrame, panel_params: PanelParams, coord: Coord, params: Mapping[str, Any]) -> list[Any]:
        span = coord.backtransform_range(panel_params)[self._across]
        rows = data.reset_index(drop=True)
        segments = rows.loc[rows.index.repeat(2)].reset_index(drop=True)
        segments[self._across] = np.tile(np.asarray(span, dtype=float), len(rows))
        segments[self._along] = np.repeat(_floats(rows, self._intercept), 2)
        segments[GROUP] = np.repeat(np.arange(len(rows)), 2)
        munched = coord.transform(coord.munch(segments, panel_params), panel_params)
        return [_path(seg.reset_index(drop=True), self.name) for _, seg in munched.groupby(GROUP, sort=True)]


class GeomVline(GeomHline):
    """Vertical reference lines across the whole panel."""

    name = "geom_vline"
    required_aes = ("xintercept",)
    key_glyph = "vpath"
    _across, _along, _intercept = "y", "x", "xintercept"


# SECTION: Rectangles [id: rects]
# =============================================================================


def rect_to_poly(row: Mapping[str, Any]) -> pd.DataFrame:
    xmin, xmax, ymin, ymax = (float(row[k]) for k in ("xmin", "xmax", "ymin", "ymax"))
    return pd.DataFrame({"x": [xmin, xmax, xmax, xmin], "y": [ymax, ymax, ymin, ymin]})


class GeomRect(Geom):
    name = "geom_rect"
    required_aes = ("xmin", "xmax", "ymin", "ymax")
    default_aes = {"colour": None, "fill": "#595959", "linewidth": 0.5, "linetype": 1, "alpha": None}
    key_glyph = "rect"

    def draw_panel(self, data: pd.DataFrame, panel_params: PanelParams, coord: Coord, params: Mapping[str, Any]) -> list[Any]:
        if coord.is_linear:
            coords = coord.transform(data, panel_params)
            leaves = []
            for row in coords.to_dict("records"):
                x0, x1, y0, y1 = (float(row[k]) for k in ("xmin", "xmax", "ymin", "ymax"))
                leaves.append(_polygon((x0, x1, x1, x0), (y0, y0, y1, y1), row, self.name))
            return leaves
        leaves = []
        for i, row in enumerate(data.to_dict("records")):
            poly = rect_to_poly(row)
            poly[PANEL] = row[PANEL]
            poly[GROUP] = i
            munched = coord.transform(coord.munch(poly, panel_params, closed=True), panel_params)
            leaves.append(_polygon(munched["x"], munched["y"], row, self.name))
        return leaves


class GeomBar(GeomRect):
    """Bars from ``x`` and ``y``, anchored at zero."""

    name = "geom_bar"
    required_aes = ("x", "y")
    non_missing_aes = ("xmin", "xmax", "ymin", "ymax")
    param_names = ("na_rm", "width")

    def setup_params(self, data: pd.DataFrame, params: Mapping[str, Any]) -> dict[str, Any]:
        return {"width": None, **params}

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        if data.empty:
            return data
        out = data.copy()
        x = _floats(out, "x")
        if params.get("width") is not None:
            width = np.full(len(out), float(params["width"]))
        elif "width" in out.columns:
            width = _floats(out, "width")
        else:
            width = np.full(len(out), 0.9 * resolution(x, zero=False))
        y = _floats(out, "y")
        out["ymin"] = np.minimum(y, 0.0)
        out["ymax"] = np.maximum(y, 0.0)
        out["xmin"] = x - width / 2
        out["xmax"] = x + width / 2
        return out.drop(columns=["width"], errors="ignore")


class GeomCol(GeomBar):
    name = "geom_col"


class GeomTile(GeomRect):
    """Rectangles centred on ``x``/``y``."""

    name = "geom_tile"
    required_aes = ("x", "y")
    default_aes = {**GeomRect.default_aes, "fill": "#333333", "width": None, "height": None}
    param_names = ("na_rm", "width", "height")

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        if data.empty:
            return data
        out = data.copy()
        for centre, extent, lo, hi in (("x", "width", "xmin", "xmax"), ("y", "height", "ymin", "ymax")):
            values = _floats(out, centre)
            size = params.get(extent)
            if size is not None:
                sizes = np.full(len(out), float(size))
            elif extent in out.columns and out[extent].notna().all():
                sizes = _floats(out, extent)
            else:
                sizes = np.full(len(out), resolution(values, zero=False))
            out[lo] = values - sizes / 2
            out[hi] = values + sizes / 2
        return out.drop(columns=["width", "height"], errors="ignore")


class GeomRaster(Geom):
    """Equal-sized tiles drawn as one image per panel."""

    name = "geom_raster"
    required_aes = ("x", "y")
    default_aes = {"fill": "#333333", "alpha": None}
    param_names = ("na_rm", "interpolate", "hjust", "vjust")
    key_glyph = "rect"

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        if data.empty:
            return data
        out = data.copy()
        hjust = float(params.get("hjust", 0.5))
        vjust = float(params.get("vjust", 0.5))
        x = _floats(out, "x")
        y = _floats(out, "y")
        w = resolution(x, zero=False)
        h = resolution(y, zero=False)
        out["xmin"] = x - w * (1 - hjust)
        out["xmax"] = x + w * hjust
        out["ymin"] = y - h * (1 - vjust)
        out["ymax"] = y + h * vjust
        return out

    def draw_panel(self, data: pd.DataFrame, panel_params: PanelParams, coord: Coord, params: Mapping[str, Any]) -> list[Any]:
        if not coord.is_linear:
            raise ValueError(f"{self.name} only works with Cartesian coordinates")
        coords = coord.transform(data, panel_params)
        xs = np.unique(np.round(_floats(coords, "x"), 9))
        ys = np.unique(np.round(_floats(coords, "y"), 9))
        col_of = {v: i for i, v in enumerate(xs)}
        row_of = {v: i for i, v in enumerate(ys[::-1])}
        grid: list[list[Optional[str]]] = [[None] * len(xs) for _ in ys]
        for x, y, fill in zip(np.round(_floats(coords, "x"), 9), np.round(_floats(coords, "y"), 9), _column(coords, "fill")):
            grid[row_of[y]][col_of[x]] = _colour(fill)
        return [
            Raster(
                name=self.name,
                xmin=(float(coords["xmin"].min()),),
                ymin=(float(coords["ymin"].min()),),
                xmax=(float(coords["xmax"].max()),),
                ymax=(float(coords["ymax"].max()),),
                colours=tuple(tuple(row) for row in grid),
                alpha=_alpha(coords["alpha"].iloc[0]) if "alpha" in coords.columns else 1.0,
                interpolate=bool(params.get("interpolate", False)),
            )
        ]


# SECTION: Areas [id: areas]
# =============================================================================


class GeomPolygon(Geom):
    name = "geom_polygon"
    required_aes = ("x", "y")
    default_aes = {"colour": None, "fill": "#333333", "linewidth": 0.5, "linetype": 1, "alpha": None}
    key_glyph = "polygon"

    def draw_group(self, data: pd.DataFrame, panel_params: PanelParams, coord: Coord, params: Mapping[str, Any]) -> list[Any]:
        if len(data) < 3:
            return []
        munched = coord.transform(coord.munch(data, panel_params, closed=True), panel_params)
        return [_polygon(munched["x"], munched["y"], data.iloc[0].to_dict(), self.name)]


class GeomRibbon(Geom):
    """Band between ``ymin`` and ``ymax`` along ``x``."""

    name = "geom_ribbon"
    required_aes = ("x", "ymin", "ymax")
    default_aes = {"colour": None, "fill": "#333333", "linewidth": 0.5, "linetype": 1, "alpha": None}
    key_glyph = "rect"

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        if data.empty:
            return data
        return data.sort_values([PANEL, GROUP, "x"], kind="mergesort").reset_index(drop=True)

    def draw_group(self, data: pd.DataFrame, panel_params: PanelParams, coord: Coord, params: Mapping[str, Any]) -> list[Any]:
        data = data.loc[~_missing_mask(data, ("x", "ymin", "ymax"))].reset_index(drop=True)
        if len(data) < 2:
            return []
        first = data.iloc[0].to_dict()
        upper = pd.DataFrame({"x": data["x"], "y": data["ymax"], PANEL: first[PANEL], GROUP: 0})
        lower = pd.DataFrame({"x": data["x"], "y": data["ymin"], PANEL: first[PANEL], GROUP: 1}).iloc[::-1]
        upper_m = coord.transform(coord.munch(upper, panel_params), panel_params)
        lower_m = coord.transform(coord.munch(lower.reset_index(drop=True), panel_params), panel_params)
        fill_row = {**first, "colour": None}
        leaves: list[Any] = [
            _polygon(
                np.concatenate([upper_m["x"], lower_m["x"]]),
                np.concatenate([upper_m["y"], lower_m["y"]]),
                fill_row,
                self.name,
            )
        ]
        if _colour(first.get("colour")) is not None:
            style = {k: first.get(k) for k in ("colour", "linewidth", "linetype", "alpha")}
            for edge in (upper_m, lower_m):
                leaves.append(_path(edge.assign(**style).reset_index(drop=True), self.name))
        return leaves


class GeomArea(GeomRibbon):
    """Ribbon from zero up to ``y``."""

    name = "geom_area"
    required_aes = ("x", "y")

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        if data.empty:
            return data
        out = super().setup_data(data, params)
        out["ymin"] = 0.0
        out["ymax"] = _floats(out, "y")
        return out


class GeomDensity(GeomArea):
    """Area outlined in black and left unfilled."""

    name = "geom_density"
    default_aes = {"colour": "#000000", "fill": None, "linewidth": 0.5, "linetype": 1, "weight": 1, "alpha": None}


class GeomSmooth(Geom):
    """Fitted line with an optional confidence band."""

    name = "geom_smooth"
    required_aes = ("x", "y")
    default_aes = {
        "colour": "#3366FF",
        "fill": "#999999",
        "linewidth": 1.0,
        "linetype": 1,
        "weight": 1,
        "alpha": 0.4,
    }
    param_names = ("na_rm", "se")
    key_glyph = "smooth"

    def setup_params(self, data: pd.DataFrame, params: Mapping[str, Any]) -> dict[str, Any]:
        out = dict(params)
        out["se"] = bool(out.get("se", True)) and {"ymin", "ymax"} <= set(data.columns)
        return out

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        return GeomLine.setup_data(self, data, params)  # type: ignore[arg-type]

    def draw_group(self, data: pd.DataFrame, panel_params: PanelParams, coord: Coord, params: Mapping[str, Any]) -> list[Any]:
        leaves: list[Any] = []
        if params.get("se", False):
            ribbon = data.assign(colour=None)
            leaves.extend(GeomRibbon.draw_group(self, ribbon, panel_params, coord, params))  # type: ignore[arg-type]
        line = data.assign(alpha=None)
        leaves.extend(GeomPath.draw_panel(self, line, panel_params, coord, params))  # type: ignore[arg-type]
        return leaves


# SECTION: Legend key glyphs [id: draw_key]
# =============================================================================


def _key_point(data: Mapping[str, Any], params: Mapping[str, Any]) -> list[Any]:
    return [
        Point.build(
            0.5,
            0.5,
            name="key-point",
            size=_mm(data.get("size"), 1.5),
            shape=_shape(data.get("shape", 19)),
            colour=_colour(data.get("colour", "#000000")),
            fill=_colour(data.get("fill")),
            alpha=_alpha(data.get("alpha")),
            stroke=_mm(data.get("stroke"), 0.5),
        )
    ]


def _key_path(data: Mapping[str, Any], params: Mapping[str, Any]) -> list[Any]:
    if _colour(data.get("colour")) is None:
        return []
    return [
        Path(
            name="key-path",
            x=(0.1, 0.9),
            y=(0.5, 0.5),
            colour=_colour(data.get("colour")),
            linewidth=_mm(data.get("linewidth"), 0.5),
            linetype=_linetype(data.get("linetype")),
            alpha=_alpha(data.get("alpha")),
        )
    ]


def _key_vpath(data: Mapping[str, Any], params: Mapping[str, Any]) -> list[Any]:
    return [
        Path(
            name=leaf.name,
            x=(0.5, 0.5),
            y=(0.1, 0.9),
            colour=leaf.colour,
            linewidth=leaf.linewidth,
            linetype=leaf.linetype,
            alpha=leaf.alpha,
        )
        for leaf in _key_path(data, params)
    ]


def _key_rect(data: Mapping[str, Any], params: Mapping[str, Any]) -> list[Any]:
    fill = _colour(data.get("fill")) or _colour(data.get("colour"))
    if fill is None:
        return []
    row = {"fill": fill, "colour": None, "alpha": data.get("alpha")}
    return [_polygon((0.0, 1.0, 1.0, 0.0), (0.0, 0.0, 1.0, 1.0), row, "key-rect")]


def _key_polygon(data: Mapping[str, Any], params: Mapping[str, Any]) -> list[Any]:
    inset = 0.1
    return [
        _polygon(
            (inset, 1 - inset, 1 - inset, inset),
            (inset, inset, 1 - inset, 1 - inset),
            dict(data),
            "key-polygon",
        )
    ]


def _key_text(data: Mapping[str, Any], params: Mapping[str, Any]) -> list[Any]:
    return [
        Text.build(
            0.5,
            0.5,
            "a",
            name="key-text",
            colour=_colour(data.get("colour", "#000000")),
            size=_mm(data.get("size"), 3.88),
            alpha=_alpha(data.get("alpha")),
            fontface=str(data.get("fontface") or "plain"),
        )
    ]


def _key_smooth(data: Mapping[str, Any], params: Mapping[str, Any]) -> list[Any]:
    leaves: list[Any] = []
    if params.get("se", False):
        leaves.extend(_key_rect({"fill": data.get("fill"), "alpha": data.get("alpha")}, params))
    leaves.extend(_key_path({**data, "alpha": None}, params))
    return leaves


def _key_blank(data: Mapping[str, Any], params: Mapping[str, Any]) -> list[Any]:
    return []


KEY_GLYPHS: dict[str, Callable[[Mapping[str, Any], Mapping[str, Any]], list[Any]]] = {
    "point": _key_point,
    "path": _key_path,
    "vpath": _key_vpath,
    "rect": _key_rect,
    "polygon": _key_polygon,
    "text": _key_text,
    "smooth": _key_smooth,
    "blank": _key_blank,
}


def draw_key(glyph: str, data: Mapping[str, Any], params: Mapping[str, Any]) -> list[Any]:
    """Draw the legend glyph ``glyph`` for one key; leaves are in npc of the key box."""
    try:
        fn = KEY_GLYPHS[glyph]
    except KeyError:
        raise ValueError(f"Unknown key glyph {glyph!r}; choose from {sorted(KEY_GLYPHS)}") from None
    return [leaf for leaf in fn(data, params) if leaf is not None]
