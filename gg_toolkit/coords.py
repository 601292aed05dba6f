"""Coordinate systems.

Purpose
-------
A coordinate system turns finished position values into normalised panel
coordinates (npc, ``[0, 1]`` in each direction) and draws the panel
background and grid. It acts *after* statistics: a transform here changes
how a fitted line looks, never what it fits (compare scale transforms,
which act before statistics).

Concepts and structure
----------------------
- :class:`CoordCartesian` zooms with ``xlim``/``ylim`` without dropping data.
- :class:`CoordFlip` swaps the horizontal and vertical roles of x and y.
- :class:`CoordTrans` applies a :class:`~gg_toolkit.transforms.Transform`
  to positions after statistics.
- :class:`CoordPolar` maps one position to angle and the other to radius.

Every coordinate system returns :class:`PanelParams` from
:meth:`Coord.setup_panel_params`: for each drawing direction the continuous
range and the major/minor break positions (already in npc) with labels.
Non-linear systems interpolate path segments ("munching") before
transforming so straight lines in data space become curves.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import numpy as np
import pandas as pd

from .aes import X_AESTHETICS, Y_AESTHETICS
from .breaks import expand_range, minor_breaks, rescale
from .row_table import GROUP, PANEL
from .scales import Scale, ScaleContinuous
from .theme import Theme, render_line, render_rect, render_text
from .transforms import Transform, get_transform

__all__ = [
    "AxisParams",
    "PanelParams",
    "Coord",
    "CoordCartesian",
    "CoordFlip",
    "CoordTrans",
    "CoordPolar",
    "coord_cartesian",
    "coord_flip",
    "coord_trans",
    "coord_polar",
    "flip_data",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_FLIP = dict(zip(X_AESTHETICS + Y_AESTHETICS, Y_AESTHETICS + X_AESTHETICS))


def flip_data(data: pd.DataFrame) -> pd.DataFrame:
    """Swap every x-like column with its y-like counterpart."""
    return data.rename(columns={c: _FLIP[c] for c in data.columns if c in _FLIP})


@dataclass(frozen=True)
class AxisParams:
    """One drawing direction of a panel.

    ``range`` is the expanded continuous range; ``major`` and ``minor`` are
    break positions in npc, ``labels`` the text for each major break.
    """

    range: tuple[float, float]
    major: tuple[float, ...] = ()
    minor: tuple[float, ...] = ()
    labels: tuple[str, ...] = ()


@dataclass(frozen=True)
class PanelParams:
    x: AxisParams
    y: AxisParams
    extra: Mapping[str, Any] = field(default_factory=dict)


def _expansion(scale: Scale, expand: bool) -> tuple[float, float]:
    return scale.expansion() if expand else (0.0, 0.0)


def _limits_in_scale_space(scale: Scale, limits: Optional[Sequence[Any]]) -> Optional[tuple[float, float]]:
    if limits is None:
        return None
    if isinstance(scale, ScaleContinuous):
        lo, hi = scale.transform(np.asarray(limits, dtype=float))
        return (float(min(lo, hi)), float(max(lo, hi)))
    positions = scale.break_positions(list(limits))
    return (float(np.nanmin(positions)), float(np.nanmax(positions)))


def _in_unit(values: np.ndarray) -> np.ndarray:
    return values[np.isfinite(values) & (values >= -1e-9) & (values <= 1 + 1e-9)]


def _squish_infinite(values: np.ndarray) -> np.ndarray:
    out = values.copy()
    out[np.isneginf(out)] = 0.0
    out[np.isposinf(out)] = 1.0
    return out


def _lenient(trans: Transform, values: Any) -> np.ndarray:
    """Apply ``trans`` without domain checks; undefined results become missing."""
    arr = np.asarray(values, dtype=float)
    if trans.is_identity:
        return arr.copy()
    with np.errstate(divide="ignore", invalid="ignore"):
        out = np.asarray(trans.forward(arr), dtype=float)
    out = np.broadcast_to(out, arr.shape).copy()
    bad = np.isfinite(arr) & np.isnan(out)
    if bad.any():
        logger.warning("Transformation %s introduced %d missing values", trans.name, int(bad.sum()))
    return out


class Coord:
    """Base coordinate system (Cartesian behaviour)."""

    is_linear = True

    def __init__(self, xlim: Optional[Sequence[Any]] = None, ylim: Optional[Sequence[Any]] = None, expand: bool = True) -> None:
        self.xlim = xlim
        self.ylim = ylim
        self.expand = expand

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    def setup_data(self, data: pd.DataFrame) -> pd.DataFrame:
        """Row-level adjustment before panels are assigned."""
        return data

    # -- panel params -------------------------------------------------------

    def _axis(self, scale: Scale, limits: Optional[Sequence[Any]]) -> AxisParams:
        zoom = _limits_in_scale_space(scale, limits)
        continuous = zoom if zoom is not None else scale.continuous_limits()
        mult, add = _expansion(scale, self.expand)
        rng = expand_range(continuous, mult, add)
        breaks = scale.get_breaks(rng)
        positions = scale.break_positions(breaks)
        labels = scale.get_labels(breaks)
        major = rescale(positions, rng)
        keep = np.isfinite(major) & (major >= -1e-9) & (major <= 1 + 1e-9)
        minor: tuple[float, ...] = ()
        if scale.kind == "continuous" and positions.size > 1:
            minor = tuple(_in_unit(rescale(minor_breaks(positions, rng), rng)).tolist())
        return AxisParams(
            range=rng,
            major=tuple(major[keep].tolist()),
            minor=minor,
            labels=tuple(lab for lab, k in zip(labels, keep) if k),
        )

    def setup_panel_params(self, scale_x: Scale, scale_y: Scale) -> PanelParams:
        return PanelParams(x=self._axis(scale_x, self.xlim), y=self._axis(scale_y, self.ylim))

    # -- transformation -----------------------------------------------------

    def transform(self, data: pd.DataFrame, params: PanelParams) -> pd.DataFrame:
        """Rescale position columns into npc."""
        out = data.copy()
        for family, axis in ((X_AESTHETICS, params.x), (Y_AESTHETICS, params.y)):
            for col in family:
                if col in out.columns:
                    values = pd.to_numeric(out[col], errors="coerce").to_numpy(dtype=float)
                    out[col] = _squish_infinite(rescale(values, axis.range))
        return out

    def munch(self, data: pd.DataFrame, params: PanelParams, *, closed: bool = False, segment_length: float = 0.01) -> pd.DataFrame:
        """Interpolate consecutive ``x``/``y`` points of each group.

        Linear systems return ``data`` unchanged. Other columns are copied
        from the start of each segment.
        """
        if self.is_linear or data.empty:
            return data
        parts = []
        group_keys = [c for c in (PANEL, GROUP) if c in data.columns]
        grouped = data.groupby(group_keys, sort=False) if group_keys else [(None, data)]
        for _, part in grouped:
            part = part.reset_index(drop=True)
            if closed and len(part) > 1:
                part = pd.concat([part, part.iloc[[0]]], ignore_index=True)
            x = part["x"].to_numpy(dtype=float)
            y = part["y"].to_numpy(dtype=float)
            u, v = self._unit(x, y, params)
            dist = np.hypot(np.diff(u), np.diff(v))
            pieces = np.where(np.isfinite(dist), np.maximum(np.ceil(dist / segment_length), 1), 1).astype(int)
            rows, xs, ys = [], [], []
            for i, k in enumerate(pieces):
                t = np.arange(k) / k
                rows.extend([i] * k)
                xs.extend(x[i] + (x[i + 1] - x[i]) * t)
                ys.extend(y[i] + (y[i + 1] - y[i]) * t)
            rows.append(len(part) - 1)
            xs.append(x[-1])
            ys.append(y[-1])
            munched = part.iloc[rows].reset_index(drop=True)
            munched["x"] = xs
            munched["y"] = ys
            parts.append(munched)
        return pd.concat(parts, ignore_index=True)

    def _unit(self, x: np.ndarray, y: np.ndarray, params: PanelParams) -> tuple[np.ndarray, np.ndarray]:
        return rescale(x, params.x.range), rescale(y, params.y.range)

    def backtransform_range(self, params: PanelParams) -> dict[str, tuple[float, float]]:
        """Panel extent of the ``x`` and ``y`` aesthetics, on the scales' axis."""
        return {"x": params.x.range, "y": params.y.range}

    def flip_labels(self, labels: Mapping[str, Any]) -> dict[str, Any]:
        """Axis titles for the horizontal (``x``) and vertical (``y``) drawing directions."""
        return {"x": labels.get("x"), "y": labels.get("y")}

    def aspect(self, params: PanelParams) -> Optional[float]:
        return None

    # -- rendering ----------------------------------------------------------

    def render_bg(self, params: PanelParams, theme: Theme) -> list[Any]:
        """Panel background and grid lines, in npc."""
        leaves = [render_rect(theme.calc_element("panel_background"), 0.0, 0.0, 1.0, 1.0, name="panel-background")]
        for element, positions, vertical, name in (
            ("panel_grid_minor_y", params.y.minor, False, "grid-minor-y"),
            ("panel_grid_minor_x", params.x.minor, True, "grid-minor-x"),
            ("panel_grid_major_y", params.y.major, False, "grid-major-y"),
            ("panel_grid_major_x", params.x.major, True, "grid-major-x"),
        ):
            if not positions:
                continue
            xs, ys = _grid_lines(positions, vertical)
            leaves.append(render_line(theme.calc_element(element), xs, ys, name=name))
        return [leaf for leaf in leaves if leaf is not None]

    def render_fg(self, params: PanelParams, theme: Theme) -> list[Any]:
        """Panel border drawn over the data."""
        outline = render_line(
            theme.calc_element("panel_border"),
            (0.0, 1.0, 1.0, 0.0, 0.0),
            (0.0, 0.0, 1.0, 1.0, 0.0),
            name="panel-border",
        )
        return [outline] if outline is not None else []


def _grid_lines(positions: Sequence[float], vertical: bool) -> tuple[list[float], list[float]]:
    along: list[float] = []
    across: list[float] = []
    for p in positions:
        along.extend([p, p, math.nan])
        across.extend([0.0, 1.0, math.nan])
    return (along, across) if vertical else (across, along)


class CoordCartesian(Coord):
    """Cartesian coordinates.

    Parameters
    ----------
    xlim, ylim : pair or None
        Zoom limits in data space; rows outside are kept and clipped when drawn.
    expand : bool
        Apply the scales' expansion around the limits.
    """

    def __repr__(self) -> str:
        return f"coord_cartesian(xlim={self.xlim!r}, ylim={self.ylim!r})"


class CoordFlip(CoordCartesian):
    """Cartesian coordinates with x drawn vertically and y horizontally."""

    def __repr__(self) -> str:
        return "coord_flip()"

    def setup_panel_params(self, scale_x: Scale, scale_y: Scale) -> PanelParams:
        return PanelParams(x=self._axis(scale_y, self.ylim), y=self._axis(scale_x, self.xlim))

    def transform(self, data: pd.DataFrame, params: PanelParams) -> pd.DataFrame:
        return super().transform(flip_data(data), params)

    def backtransform_range(self, params: PanelParams) -> dict[str, tuple[float, float]]:
        return {"x": params.y.range, "y": params.x.range}

    def flip_labels(self, labels: Mapping[str, Any]) -> dict[str, Any]:
        return {"x": labels.get("y"), "y": labels.get("x")}


class CoordTrans(Coord):
    """Cartesian coordinates with transformed axes, applied after statistics.

    Parameters
    ----------
    x, y : str, Transform or None
        Transforms for the horizontal and vertical directions.
    """

    is_linear = False

    def __init__(
        self,
        x: Union[str, Transform, None] = None,
        y: Union[str, Transform, None] = None,
        xlim: Optional[Sequence[Any]] = None,
        ylim: Optional[Sequence[Any]] = None,
        expand: bool = True,
    ) -> None:
        super().__init__(xlim=xlim, ylim=ylim, expand=expand)
        self.trans_x = get_transform(x)
        self.trans_y = get_transform(y)

    def __repr__(self) -> str:
        return f"coord_trans(x={self.trans_x.name!r}, y={self.trans_y.name!r})"

    def _axis_trans(self, scale: Scale, limits: Optional[Sequence[Any]], trans: Transform) -> AxisParams:
        zoom = _limits_in_scale_space(scale, limits)
        continuous = zoom if zoom is not None else scale.continuous_limits()
        breaks = scale.get_breaks(continuous)
        positions = scale.break_positions(breaks)
        labels = scale.get_labels(breaks)
        # Ends the transform cannot represent (log of a bar base at 0) fall
        # back to the transformed breaks.
        candidates = np.concatenate([_lenient(trans, continuous), _lenient(trans, positions)])
        finite = candidates[np.isfinite(candidates)]
        if finite.size == 0:
            raise ValueError(
                f"coord_trans(): the {trans.name} transform is undefined on the scale range {continuous}"
            )
        mult, add = _expansion(scale, self.expand)
        rng = expand_range((float(finite.min()), float(finite.max())), mult, add)
        major = rescale(_lenient(trans, positions), rng)
        keep = np.isfinite(major) & (major >= -1e-9) & (major <= 1 + 1e-9)
        minor: tuple[float, ...] = ()
        if scale.kind == "continuous" and positions.size > 1:
            minor = tuple(_in_unit(rescale(_lenient(trans, minor_breaks(positions, continuous)), rng)).tolist())
        return AxisParams(
            range=rng,
            major=tuple(major[keep].tolist()),
            minor=minor,
            labels=tuple(lab for lab, k in zip(labels, keep) if k),
        )

    def setup_panel_params(self, scale_x: Scale, scale_y: Scale) -> PanelParams:
        return PanelParams(
            x=self._axis_trans(scale_x, self.xlim, self.trans_x),
            y=self._axis_trans(scale_y, self.ylim, self.trans_y),
        )

    def transform(self, data: pd.DataFrame, params: PanelParams) -> pd.DataFrame:
        out = data.copy()
        for family, axis, trans in ((X_AESTHETICS, params.x, self.trans_x), (Y_AESTHETICS, params.y, self.trans_y)):
            for col in family:
                if col in out.columns:
                    values = pd.to_numeric(out[col], errors="coerce").to_numpy(dtype=float)
                    out[col] = _squish_infinite(rescale(_lenient(trans, values), axis.range))
        return out

    def backtransform_range(self, params: PanelParams) -> dict[str, tuple[float, float]]:
        x = self.trans_x.inverse_transform(np.asarray(params.x.range, dtype=float))
        y = self.trans_y.inverse_transform(np.asarray(params.y.range, dtype=float))
        return {"x": (float(x[0]), float(x[1])), "y": (float(y[0]), float(y[1]))}

    def _unit(self, x: np.ndarray, y: np.ndarray, params: PanelParams) -> tuple[np.ndarray, np.ndarray]:
        return (
            rescale(_lenient(self.trans_x, x), params.x.range),
            rescale(_lenient(self.trans_y, y), params.y.range),
        )


class CoordPolar(Coord):
    """Polar coordinates.

    Parameters
    ----------
    theta : {"x", "y"}
        Position mapped to angle; the other maps to radius.
    start : float
        Offset of the starting angle from 12 o'clock, in radians.
    direction : {1, -1}
        1 clockwise, -1 anticlockwise.
    """

    is_linear = False

    def __init__(self, theta: str = "x", start: float = 0.0, direction: int = 1) -> None:
        super().__init__()
        if theta not in ("x", "y"):
            raise ValueError("theta must be 'x' or 'y'")
        if direction not in (1, -1):
            raise ValueError("direction must be 1 or -1")
        self.theta = theta
        self.r = "y" if theta == "x" else "x"
        self.start = float(start)
        self.direction = direction

    def __repr__(self) -> str:
        return f"coord_polar(theta={self.theta!r}, start={self.start!r}, direction={self.direction!r})"

    def _polar_axis(self, scale: Scale, discrete_add: float) -> tuple[tuple[float, float], np.ndarray, list[str], np.ndarray]:
        if scale.expand is not None:
            mult, add = scale.expand
        else:
            mult, add = (0.0, discrete_add) if scale.kind == "discrete" else (0.0, 0.0)
        rng = expand_range(scale.continuous_limits(), mult, add)
        breaks = scale.get_breaks(rng)
        positions = scale.break_positions(breaks)
        labels = scale.get_labels(breaks)
        minor = minor_breaks(positions, rng) if scale.kind == "continuous" and positions.size > 1 else np.array([])
        return rng, positions, labels, minor

    def setup_panel_params(self, scale_x: Scale, scale_y: Scale) -> PanelParams:
        theta_scale, r_scale = (scale_x, scale_y) if self.theta == "x" else (scale_y, scale_x)
        theta_range, theta_pos, theta_labels, theta_minor = self._polar_axis(theta_scale, 0.5)
        r_range, r_pos, r_labels, _ = self._polar_axis(r_scale, 0.0)

        theta = self._theta(theta_pos, theta_range)
        keep = np.isfinite(theta)
        theta, theta_labels = theta[keep], [lab for lab, k in zip(theta_labels, keep) if k]
        if theta.size > 1 and math.isclose((theta[-1] - theta[0]) % (2 * math.pi), 0.0, abs_tol=1e-6):
            theta_labels[0] = f"{theta_labels[-1]}/{theta_labels[0]}"
            theta, theta_labels = theta[:-1], theta_labels[:-1]

        radius = rescale(r_pos, r_range, (0.0, 0.4))
        r_keep = np.isfinite(radius) & (radius >= -1e-9) & (radius <= 0.4 + 1e-9)
        radius = radius[r_keep]
        r_labels = [lab for lab, k in zip(r_labels, r_keep) if k]

        return PanelParams(
            x=AxisParams(range=(0.0, 1.0)),
            y=AxisParams(range=(0.0, 1.0), major=tuple((0.5 + radius).tolist()), labels=tuple(r_labels)),
            extra={
                "theta_range": theta_range,
                "r_range": r_range,
                "theta_major": tuple(theta.tolist()),
                "theta_minor": tuple(self._theta(theta_minor, theta_range).tolist()) if theta_minor.size else (),
                "theta_labels": tuple(theta_labels),
                "r_major": tuple(radius.tolist()),
            },
        )

    def _theta(self, values: np.ndarray, theta_range: tuple[float, float]) -> np.ndarray:
        """Angle in radians, measured from 12 o'clock."""
        unit = _squish_infinite(rescale(values, theta_range))
        return (unit * 2 * math.pi + self.start) % (2 * math.pi) * self.direction

    def _column(self, data: pd.DataFrame, name: str) -> np.ndarray:
        if name not in data.columns:
            return np.zeros(len(data))
        return pd.to_numeric(data[name], errors="coerce").to_numpy(dtype=float)

    def transform(self, data: pd.DataFrame, params: PanelParams) -> pd.DataFrame:
        out = data.copy()
        if data.empty:
            return out
        r = _squish_infinite(rescale(self._column(out, self.r), params.extra["r_range"])) * 0.4
        theta = self._theta(self._column(out, self.theta), params.extra["theta_range"])
        out["x"] = r * np.sin(theta) + 0.5
        out["y"] = r * np.cos(theta) + 0.5
        return out

    def _unit(self, x: np.ndarray, y: np.ndarray, params: PanelParams) -> tuple[np.ndarray, np.ndarray]:
        theta, r = (x, y) if self.theta == "x" else (y, x)
        u = rescale(theta, params.extra["theta_range"])
        v = rescale(r, params.extra["r_range"])
        return (u, v) if self.theta == "x" else (v, u)

    def backtransform_range(self, params: PanelParams) -> dict[str, tuple[float, float]]:
        return {self.theta: params.extra["theta_range"], self.r: params.extra["r_range"]}

    def flip_labels(self, labels: Mapping[str, Any]) -> dict[str, Any]:
        return {"x": labels.get(self.theta), "y": labels.get(self.r)}

    def aspect(self, params: PanelParams) -> Optional[float]:
        return 1.0

    def render_bg(self, params: PanelParams, theme: Theme) -> list[Any]:
        leaves: list[Any] = [render_rect(theme.calc_element("panel_background"), 0.0, 0.0, 1.0, 1.0, name="panel-background")]
        circle = np.linspace(0.0, 2 * math.pi, 101)
        xs: list[float] = []
        ys: list[float] = []
        for radius in params.extra["r_major"]:
            xs.extend((0.5 + radius * np.sin(circle)).tolist() + [math.nan])
            ys.extend((0.5 + radius * np.cos(circle)).tolist() + [math.nan])
        if xs:
            leaves.append(render_line(theme.calc_element("panel_grid_major_y"), xs, ys, name="grid-major-r"))
        for key, element, name in (
            ("theta_minor", "panel_grid_minor_x", "grid-minor-theta"),
            ("theta_major", "panel_grid_major_x", "grid-major-theta"),
        ):
            angles = params.extra[key]
            if not angles:
                continue
            sx: list[float] = []
            sy: list[float] = []
            for angle in angles:
                sx.extend([0.5, 0.5 + 0.45 * math.sin(angle), math.nan])
                sy.extend([0.5, 0.5 + 0.45 * math.cos(angle), math.nan])
            leaves.append(render_line(theme.calc_element(element), sx, sy, name=name))
        return [leaf for leaf in leaves if leaf is not None]

    def render_fg(self, params: PanelParams, theme: Theme) -> list[Any]:
        angles = np.asarray(params.extra["theta_major"], dtype=float)
        if angles.size == 0:
            return super().render_fg(params, theme)
        sin, cos = np.sin(angles), np.cos(angles)
        # Labels sit just outside the plotting circle, justified away from it.
        hjust = np.where(np.isclose(sin, 0, atol=1e-6), 0.5, np.where(sin > 0, 0.0, 1.0))
        vjust = np.where(np.isclose(cos, 0, atol=1e-6), 0.5, np.where(cos > 0, 0.0, 1.0))
        labels = render_text(
            theme.calc_element("axis_text_x"),
            0.5 + 0.45 * sin,
            0.5 + 0.45 * cos,
            params.extra["theta_labels"],
            name="axis-theta",
            units="npc",
            hjust=hjust.tolist(),
            vjust=vjust.tolist(),
        )
        return [leaf for leaf in [labels, *super().render_fg(params, theme)] if leaf is not None]


def coord_cartesian(xlim: Optional[Sequence[Any]] = None, ylim: Optional[Sequence[Any]] = None, expand: bool = True) -> CoordCartesian:
    return CoordCartesian(xlim=xlim, ylim=ylim, expand=expand)


def coord_flip(xlim: Optional[Sequence[Any]] = None, ylim: Optional[Sequence[Any]] = None, expand: bool = True) -> CoordFlip:
    return CoordFlip(xlim=xlim, ylim=ylim, expand=expand)


def coord_trans(x: Union[str, Transform, None] = None, y: Union[str, Transform, None] = None, **kwargs: Any) -> CoordTrans:
    """Transform positions after statistics, e.g. ``coord_trans(y="log10")``."""
    return CoordTrans(x=x, y=y, **kwargs)


def coord_polar(theta: str = "x", start: float = 0.0, direction: int = 1) -> CoordPolar:
    return CoordPolar(theta=theta, start=start, direction=direction)
