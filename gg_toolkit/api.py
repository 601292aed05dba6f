"""Layer constructors.

Every ``geom_*`` and ``stat_*`` function returns a :class:`~gg_toolkit.layer.Layer`
ready to be added to a plot. Extra keyword arguments are routed by name:

- aesthetics the geom understands become constant aesthetics
  (``geom_point(colour="red")``);
- names the geom declares in ``param_names`` become geom parameters;
- names the stat declares become stat parameters (a name may go to both);
- anything else is ignored with a warning.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping
from typing import Any, Optional, Union

import numpy as np
import pandas as pd

from .aes import Aes, aes, standardise_aes_name
from .geoms import (
    Geom,
    GeomArea,
    GeomBar,
    GeomCol,
    GeomDensity,
    GeomHline,
    GeomLine,
    GeomPath,
    GeomPoint,
    GeomPolygon,
    GeomRaster,
    GeomRect,
    GeomRibbon,
    GeomSmooth,
    GeomStep,
    GeomText,
    GeomTile,
    GeomVline,
)
from .layer import Layer
from .positions import (
    Position,
    PositionDodge,
    PositionFill,
    PositionIdentity,
    PositionJitter,
    PositionNudge,
    PositionStack,
)
from .stats import Stat, StatBin, StatCount, StatDensity, StatIdentity, StatSmooth, StatSummary, StatSummaryBin

__all__ = [
    "layer",
    "geom_point",
    "geom_path",
    "geom_line",
    "geom_step",
    "geom_bar",
    "geom_col",
    "geom_histogram",
    "geom_rect",
    "geom_tile",
    "geom_raster",
    "geom_text",
    "geom_polygon",
    "geom_ribbon",
    "geom_area",
    "geom_density",
    "geom_smooth",
    "geom_hline",
    "geom_vline",
    "stat_identity",
    "stat_bin",
    "stat_count",
    "stat_smooth",
    "stat_summary",
    "stat_summary_bin",
    "stat_density",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_GEOMS: dict[str, type[Geom]] = {
    "point": GeomPoint,
    "path": GeomPath,
    "line": GeomLine,
    "step": GeomStep,
    "bar": GeomBar,
    "col": GeomCol,
    "rect": GeomRect,
    "tile": GeomTile,
    "raster": GeomRaster,
    "text": GeomText,
    "polygon": GeomPolygon,
    "ribbon": GeomRibbon,
    "area": GeomArea,
    "density": GeomDensity,
    "smooth": GeomSmooth,
    "hline": GeomHline,
    "vline": GeomVline,
}

_STATS: dict[str, type[Stat]] = {
    "identity": StatIdentity,
    "bin": StatBin,
    "count": StatCount,
    "smooth": StatSmooth,
    "summary": StatSummary,
    "summary_bin": StatSummaryBin,
    "density": StatDensity,
}

_POSITIONS: dict[str, type[Position]] = {
    "identity": PositionIdentity,
    "stack": PositionStack,
    "fill": PositionFill,
    "dodge": PositionDodge,
    "jitter": PositionJitter,
    "nudge": PositionNudge,
}

GeomSpec = Union[str, Geom]
StatSpec = Union[str, Stat]
PositionSpec = Union[str, Position]


def _lookup(spec: Any, table: Mapping[str, type], base: type, kind: str) -> Any:
    if isinstance(spec, base):
        return spec
    if isinstance(spec, type) and issubclass(spec, base):
        return spec()
    if isinstance(spec, str):
        key = spec.split("_", 1)[1] if spec.startswith(f"{kind}_") else spec
        if key in table:
            return table[key]()
    raise ValueError(f"Unknown {kind} {spec!r}; use one of {sorted(table)} or a {base.__name__} object")


def layer(
    geom: GeomSpec,
    stat: StatSpec = "identity",
    position: PositionSpec = "identity",
    mapping: Optional[Mapping[str, Any]] = None,
    data: Any = None,
    *,
    inherit_aes: bool = True,
    show_legend: Optional[bool] = None,
    key_glyph: Optional[str] = None,
    **params: Any,
) -> Layer:
    """Create a layer from its parts, routing ``params`` to geom, stat and aesthetics.

    Parameters
    ----------
    geom, stat, position : str or object
        Names (``"point"``, ``"bin"``, ``"stack"``) or instances.
    mapping : Aes or mapping, optional
    data : DataFrame, mapping, callable or None
    inherit_aes : bool
        Merge the layer mapping over the plot mapping.
    show_legend : bool or None
    key_glyph : str or None
        Draw legend keys like another geom (``"point"``, ``"path"``, ...).

    Examples
    --------
    >>> lyr = layer("point", colour="red", na_rm=True)
    >>> lyr.aes_params, lyr.geom_params
    ({'colour': 'red'}, {'na_rm': True})
    """
    geom_obj = _lookup(geom, _GEOMS, Geom, "geom")
    stat_obj = _lookup(stat, _STATS, Stat, "stat")
    position_obj = _lookup(position, _POSITIONS, Position, "position")

    aes_params: dict[str, Any] = {}
    geom_params: dict[str, Any] = {}
    stat_params: dict[str, Any] = {}
    unknown: list[str] = []
    for name, value in params.items():
        routed = False
        if name in geom_obj.param_names:
            geom_params[name] = value
            routed = True
        if name in stat_obj.param_names:
            stat_params[name] = value
            routed = True
        aesthetic = standardise_aes_name(name)
        if not routed and aesthetic in geom_obj.aesthetics:
            aes_params[aesthetic] = value
            routed = True
        if not routed:
            unknown.append(name)
    if unknown:
        message = f"Ignoring unknown parameters in {geom_obj.name}/{stat_obj.name}: {', '.join(unknown)}"
        logger.warning(message)
        warnings.warn(message, UserWarning, stacklevel=3)

    if key_glyph is not None and key_glyph.startswith("draw_key_"):
        key_glyph = key_glyph[len("draw_key_"):]
    return Layer(
        geom=geom_obj,
        stat=stat_obj,
        position=position_obj,
        mapping=mapping if isinstance(mapping, Aes) else Aes(mapping),
        data=data,
        inherit_aes=inherit_aes,
        aes_params=aes_params,
        geom_params=geom_params,
        stat_params=stat_params,
        show_legend=show_legend,
        key_glyph=key_glyph,
    )


# SECTION: Geoms [id: geom-constructors]
# =============================================================================


def geom_point(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "identity", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    """Scatter plot."""
    return layer(GeomPoint(), stat, position, mapping, data, **kwargs)


def geom_path(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "identity", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    """Connect observations in data order."""
    return layer(GeomPath(), stat, position, mapping, data, **kwargs)


def geom_line(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "identity", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    """Connect observations in order of ``x``."""
    return layer(GeomLine(), stat, position, mapping, data, **kwargs)


def geom_step(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "identity", position: PositionSpec = "identity", direction: str = "hv", **kwargs: Any) -> Layer:
    return layer(GeomStep(), stat, position, mapping, data, direction=direction, **kwargs)


def geom_bar(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "count", position: PositionSpec = "stack", **kwargs: Any) -> Layer:
    """Bars whose heights count the rows at each ``x``."""
    return layer(GeomBar(), stat, position, mapping, data, **kwargs)


def geom_col(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, position: PositionSpec = "stack", **kwargs: Any) -> Layer:
    """Bars whose heights are the ``y`` values."""
    return layer(GeomCol(), "identity", position, mapping, data, **kwargs)


def geom_histogram(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "bin", position: PositionSpec = "stack", **kwargs: Any) -> Layer:
    """Bin ``x`` and draw the counts as bars.

    Examples
    --------
    >>> geom_histogram(bins=10).stat_params
    {'bins': 10}
    """
    return layer(GeomBar(), stat, position, mapping, data, **kwargs)


def geom_rect(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "identity", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    return layer(GeomRect(), stat, position, mapping, data, **kwargs)


def geom_tile(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "identity", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    return layer(GeomTile(), stat, position, mapping, data, **kwargs)


def geom_raster(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "identity", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    """Equal-sized tiles drawn as one image per panel (Cartesian coordinates only)."""
    return layer(GeomRaster(), stat, position, mapping, data, **kwargs)


def geom_text(
    mapping: Optional[Mapping[str, Any]] = None,
    data: Any = None,
    stat: StatSpec = "identity",
    position: PositionSpec = "identity",
    nudge_x: float = 0.0,
    nudge_y: float = 0.0,
    **kwargs: Any,
) -> Layer:
    """Text labels; ``nudge_x``/``nudge_y`` shift them by a constant offset."""
    if nudge_x or nudge_y:
        if position != "identity":
            raise ValueError("Specify either `position` or `nudge_x`/`nudge_y`, not both")
        position = PositionNudge(x=nudge_x, y=nudge_y)
    return layer(GeomText(), stat, position, mapping, data, **kwargs)


def geom_polygon(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "identity", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    return layer(GeomPolygon(), stat, position, mapping, data, **kwargs)


def geom_ribbon(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "identity", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    return layer(GeomRibbon(), stat, position, mapping, data, **kwargs)


def geom_area(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "identity", position: PositionSpec = "stack", **kwargs: Any) -> Layer:
    """Ribbon from zero to ``y``, stacked by default."""
    return layer(GeomArea(), stat, position, mapping, data, **kwargs)


def geom_density(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "density", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    """Kernel density estimate drawn as an outlined area."""
    return layer(GeomDensity(), stat, position, mapping, data, **kwargs)


def geom_smooth(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, stat: StatSpec = "smooth", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    """Fitted curve with a confidence band (``se=False`` hides the band)."""
    return layer(GeomSmooth(), stat, position, mapping, data, **kwargs)


def _reference_line(geom: Geom, column: str, mapping: Optional[Mapping[str, Any]], data: Any, intercept: Any, show_legend: Optional[bool], kwargs: dict[str, Any]) -> Layer:
    if intercept is not None:
        if mapping is not None or data is not None:
            warnings.warn(f"{geom.name}: using `{column}` parameter, overriding `mapping` and `data`.", UserWarning, stacklevel=3)
        data = pd.DataFrame({column: np.atleast_1d(np.asarray(intercept, dtype=float))})
        mapping = aes(**{column: column})
        show_legend = False if show_legend is None else show_legend
    return layer(geom, "identity", "identity", mapping, data, inherit_aes=False, show_legend=show_legend, **kwargs)


def geom_hline(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, *, yintercept: Any = None, show_legend: Optional[bool] = None, **kwargs: Any) -> Layer:
    """Horizontal reference lines spanning every panel.

    Examples
    --------
    >>> geom_hline(yintercept=[1, 2]).data["yintercept"].tolist()
    [1.0, 2.0]
    """
    return _reference_line(GeomHline(), "yintercept", mapping, data, yintercept, show_legend, kwargs)


def geom_vline(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, *, xintercept: Any = None, show_legend: Optional[bool] = None, **kwargs: Any) -> Layer:
    """Vertical reference lines spanning every panel."""
    return _reference_line(GeomVline(), "xintercept", mapping, data, xintercept, show_legend, kwargs)


# SECTION: Stats [id: stat-constructors]
# =============================================================================


def stat_identity(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, geom: GeomSpec = "point", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    return layer(geom, StatIdentity(), position, mapping, data, **kwargs)


def stat_bin(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, geom: GeomSpec = "bar", position: PositionSpec = "stack", **kwargs: Any) -> Layer:
    return layer(geom, StatBin(), position, mapping, data, **kwargs)


def stat_count(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, geom: GeomSpec = "bar", position: PositionSpec = "stack", **kwargs: Any) -> Layer:
    return layer(geom, StatCount(), position, mapping, data, **kwargs)


def stat_smooth(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, geom: GeomSpec = "smooth", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    return layer(geom, StatSmooth(), position, mapping, data, **kwargs)


def stat_summary(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, geom: GeomSpec = "point", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    """Summarise ``y`` at each unique ``x`` (``fun_data=mean_se`` by default)."""
    return layer(geom, StatSummary(), position, mapping, data, **kwargs)


def stat_summary_bin(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, geom: GeomSpec = "point", position: PositionSpec = "identity", **kwargs: Any) -> Layer:
    return layer(geom, StatSummaryBin(), position, mapping, data, **kwargs)


def stat_density(mapping: Optional[Mapping[str, Any]] = None, data: Any = None, geom: GeomSpec = "area", position: PositionSpec = "stack", **kwargs: Any) -> Layer:
    return layer(geom, StatDensity(), position, mapping, data, **kwargs)
