"""Position Adjustment Engine.

Position adjustments displace overlapping geometry after the geom has
reparameterised its rows (for example bars gaining ``xmin``/``xmax`` and
``ymin``/``ymax``). They never touch ``panel_id`` or ``group_id``.

- :class:`PositionStack` accumulates heights per ``(panel_id, x)``. Records
  are ordered by ``group_id`` (descending with ``reverse=True``) then input
  order; positive and negative values stack separately away from zero.
- :class:`PositionFill` stacks, then scales every stack to ``[0, 1]``.
- :class:`PositionDodge` splits the shared width at each ``x`` evenly among
  the groups present there.
- :class:`PositionJitter` adds bounded uniform noise, reproducible when a
  seed is given (directly or through ``options.jitter_seed``).
- :class:`PositionNudge` shifts by constants.

Examples
--------
>>> import pandas as pd
>>> from gg_toolkit.positions import PositionStack
>>> df = pd.DataFrame({"x": [1.0, 1.0], "y": [2.0, 3.0], "panel_id": 0, "group_id": 0})
>>> pos = PositionStack()
>>> out = pos.compute_layer(pos.setup_data(df, pos.setup_params(df)), pos.setup_params(df), None)
>>> out[["ymin", "ymax"]].values.tolist()
[[0.0, 2.0], [2.0, 5.0]]
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

import numpy as np
import pandas as pd

from .aes import X_AESTHETICS, Y_AESTHETICS
from .options import get_options
from .row_table import GROUP, PANEL, resolution

__all__ = [
    "Position",
    "PositionIdentity",
    "PositionStack",
    "PositionFill",
    "PositionDodge",
    "PositionJitter",
    "PositionNudge",
    "position_identity",
    "position_stack",
    "position_fill",
    "position_dodge",
    "position_jitter",
    "position_nudge",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def _shift(data: pd.DataFrame, columns: tuple[str, ...], amount: Any) -> pd.DataFrame:
    for col in columns:
        if col in data.columns:
            data[col] = pd.to_numeric(data[col], errors="coerce").to_numpy(dtype=float) + amount
    return data


class Position:
    """Base position adjustment: per-panel computation on a private copy."""

    name = "position"

    def setup_params(self, data: pd.DataFrame) -> dict[str, Any]:
        return {}

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        return data

    def compute_layer(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> pd.DataFrame:
        if data.empty:
            return data
        parts = [self.compute_panel(panel.copy(), params, scales) for _, panel in data.groupby(PANEL, sort=True)]
        return pd.concat(parts, ignore_index=True, sort=False)

    def compute_panel(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> pd.DataFrame:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class PositionIdentity(Position):
    """Leave positions unchanged."""

    name = "position_identity"

    def compute_layer(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> pd.DataFrame:
        return data


class PositionStack(Position):
    """Stack overlapping objects on top of each other.

    Parameters
    ----------
    vjust : float
        Where ``y`` sits inside each stacked interval (1 = top).
    reverse : bool
        Stack groups in descending ``group_id`` order.
    """

    name = "position_stack"
    fill = False

    def __init__(self, vjust: float = 1.0, reverse: bool = False) -> None:
        self.vjust = vjust
        self.reverse = reverse

    def __repr__(self) -> str:
        return f"{type(self).__name__}(vjust={self.vjust!r}, reverse={self.reverse!r})"

    def setup_params(self, data: pd.DataFrame) -> dict[str, Any]:
        var = "ymax" if "ymax" in data.columns else ("y" if "y" in data.columns else None)
        if var is None:
            logger.info("%s requires y or ymax; nothing will be stacked", self.name)
        return {"var": var, "vjust": self.vjust, "reverse": self.reverse, "fill": self.fill}

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        var = params.get("var")
        if var is None or data.empty:
            return data
        out = data.copy()
        if var == "y":
            out["ymax"] = pd.to_numeric(out["y"], errors="coerce")
        else:
            ymax = pd.to_numeric(out["ymax"], errors="coerce")
            if "ymin" in out.columns:
                ymin = pd.to_numeric(out["ymin"], errors="coerce")
                ymax = ymax.where(ymax != 0, ymin)
            out["ymax"] = ymax
        return out

    def compute_layer(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> pd.DataFrame:
        if params.get("var") is None:
            return data
        return super().compute_layer(data, params, scales)

    def compute_panel(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> pd.DataFrame:
        data = data.reset_index(drop=True)
        heights = data["ymax"].to_numpy(dtype=float)
        negative = np.nan_to_num(heights, nan=0.0) < 0
        ymin = np.full(len(data), np.nan)
        ymax = np.full(len(data), np.nan)
        order_key = -data[GROUP].to_numpy() if params["reverse"] else data[GROUP].to_numpy()
        x = pd.to_numeric(data["x"], errors="coerce").to_numpy(dtype=float) if "x" in data.columns else np.zeros(len(data))
        for sign_mask in (~negative, negative):
            rows = np.flatnonzero(sign_mask)
            if rows.size == 0:
                continue
            for x_value in pd.unique(x[rows]):
                at_x = rows[(x[rows] == x_value) | (np.isnan(x[rows]) & np.isnan(x_value))]
                ordered = at_x[np.lexsort((at_x, order_key[at_x]))]
                values = np.nan_to_num(heights[ordered], nan=0.0)
                tops = np.concatenate([[0.0], np.cumsum(values)])
                if params["fill"] and tops[-1] != 0:
                    tops = tops / abs(tops[-1])
                ymin[ordered] = np.minimum(tops[:-1], tops[1:])
                ymax[ordered] = np.maximum(tops[:-1], tops[1:])
        data["ymin"] = ymin
        data["ymax"] = ymax
        vjust = params["vjust"]
        data["y"] = (1 - vjust) * ymin + vjust * ymax
        return data


class PositionFill(PositionStack):
    """Stack, then normalise each stack to unit height."""

    name = "position_fill"
    fill = True


class PositionDodge(Position):
    """Place overlapping objects side by side.

    Parameters
    ----------
    width : float or None
        Total dodging width; defaults to the objects' own width.
    """

    name = "position_dodge"

    def __init__(self, width: Optional[float] = None) -> None:
        self.width = width

    def __repr__(self) -> str:
        return f"{type(self).__name__}(width={self.width!r})"

    def setup_params(self, data: pd.DataFrame) -> dict[str, Any]:
        width = self.width
        if width is None and "xmin" not in data.columns and "width" not in data.columns:
            raise ValueError(f"Width not defined. Set with {self.name}(width = ...)")
        return {"width": width}

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        if data.empty or ("xmin" in data.columns and "xmax" in data.columns):
            return data
        out = data.copy()
        width = out["width"] if "width" in out.columns else params["width"]
        out["xmin"] = out["x"] - width / 2
        out["xmax"] = out["x"] + width / 2
        return out

    def compute_panel(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> pd.DataFrame:
        data = data.reset_index(drop=True)
        xmin = data["xmin"].to_numpy(dtype=float)
        xmax = data["xmax"].to_numpy(dtype=float)
        x = data["x"].to_numpy(dtype=float) if "x" in data.columns else (xmin + xmax) / 2
        new_x, new_min, new_max = x.copy(), xmin.copy(), xmax.copy()
        for x_value in pd.unique(np.round(xmin, 10)):
            rows = np.flatnonzero(np.round(xmin, 10) == x_value)
            groups = np.unique(data[GROUP].to_numpy()[rows])
            n = groups.size
            if n <= 1:
                continue
            d_width = float(np.max(xmax[rows] - xmin[rows]))
            width = params["width"] if params["width"] is not None else d_width
            centre = (xmin[rows] + xmax[rows]) / 2
            index = np.searchsorted(groups, data[GROUP].to_numpy()[rows]) + 1
            new_x[rows] = centre + width * ((index - 0.5) / n - 0.5)
            new_min[rows] = new_x[rows] - d_width / n / 2
            new_max[rows] = new_x[rows] + d_width / n / 2
        data["x"] = new_x
        data["xmin"] = new_min
        data["xmax"] = new_max
        return data


class PositionJitter(Position):
    """Add bounded uniform noise to positions.

    Parameters
    ----------
    width, height : float or None
        Maximum displacement in each direction; defaults to 40% of the data
        resolution.
    seed : int or None
        Seed for reproducible jitter; falls back to ``options.jitter_seed``,
        otherwise fresh entropy is used on every build.
    """

    name = "position_jitter"

    def __init__(self, width: Optional[float] = None, height: Optional[float] = None, seed: Optional[int] = None) -> None:
        self.width = width
        self.height = height
        self.seed = seed

    def __repr__(self) -> str:
        return f"{type(self).__name__}(width={self.width!r}, height={self.height!r}, seed={self.seed!r})"

    def setup_params(self, data: pd.DataFrame) -> dict[str, Any]:
        width = self.width
        height = self.height
        if width is None:
            width = 0.4 * resolution(data["x"], zero=False) if "x" in data.columns else 0.0
        if height is None:
            height = 0.4 * resolution(data["y"], zero=False) if "y" in data.columns else 0.0
        seed = self.seed if self.seed is not None else get_options().jitter_seed
        return {"width": float(width), "height": float(height), "seed": seed}

    def compute_layer(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> pd.DataFrame:
        if data.empty:
            return data
        rng = np.random.default_rng(params["seed"])
        out = data.copy()
        n = len(out)
        if params["width"] > 0:
            _shift(out, X_AESTHETICS, rng.uniform(-params["width"], params["width"], n))
        if params["height"] > 0:
            _shift(out, Y_AESTHETICS, rng.uniform(-params["height"], params["height"], n))
        return out


class PositionNudge(Position):
    """Shift every position by a constant offset."""

    name = "position_nudge"

    def __init__(self, x: float = 0.0, y: float = 0.0) -> None:
        self.x = x
        self.y = y

    def compute_layer(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> pd.DataFrame:
        if data.empty:
            return data
        out = data.copy()
        if self.x:
            _shift(out, X_AESTHETICS, self.x)
        if self.y:
            _shift(out, Y_AESTHETICS, self.y)
        return out


def position_identity() -> PositionIdentity:
    return PositionIdentity()


def position_stack(vjust: float = 1.0, reverse: bool = False) -> PositionStack:
    return PositionStack(vjust=vjust, reverse=reverse)


def position_fill(vjust: float = 1.0, reverse: bool = False) -> PositionFill:
    return PositionFill(vjust=vjust, reverse=reverse)


def position_dodge(width: Optional[float] = None) -> PositionDodge:
    return PositionDodge(width=width)


def position_jitter(width: Optional[float] = None, height: Optional[float] = None, seed: Optional[int] = None) -> PositionJitter:
    return PositionJitter(width=width, height=height, seed=seed)


def position_nudge(x: float = 0.0, y: float = 0.0) -> PositionNudge:
    return PositionNudge(x=x, y=y)
