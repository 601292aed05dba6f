"""Layers and the Layer Data Resolver.

A :class:`Layer` bundles a data source, an aesthetic mapping, and the three
behaviour objects that turn rows into drawings: a stat, a geom and a position
adjustment. Layers are immutable; the build pipeline keeps per-build state in
local variables and never on the layer.

Data resolution policy, in priority order:

1. the layer's own table, used verbatim;
2. a callable, applied to the plot's default data;
3. the plot's default data.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

import pandas as pd

from .aes import Aes, standardise_aes_name
from .errors import DataShapeError
from .row_table import as_row_table

if TYPE_CHECKING:  # pragma: no cover
    from .geoms import Geom
    from .positions import Position
    from .stats import Stat

__all__ = ["Layer", "resolve_layer_data"]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

LayerData = Union[pd.DataFrame, Mapping[str, Any], Callable[[pd.DataFrame], Any], None]


@dataclass(frozen=True)
class Layer:
    """One layer of a plot.

    Parameters
    ----------
    geom, stat, position : Geom, Stat, Position
        Behaviour objects for drawing, summarising and adjusting.
    mapping : Aes
        Layer mapping; merged over the plot mapping when ``inherit_aes``.
    data : DataFrame, mapping, callable or None
        Layer data source.
    aes_params : mapping
        Constant aesthetics (``colour="red"``) applied after scaling.
    geom_params, stat_params : mapping
        Extra parameters for the geom and stat.
    show_legend : bool or None
        ``None`` shows the layer in legends of the aesthetics it maps.
    key_glyph : str or None
        Name of another geom whose legend key to draw.
    """

    geom: "Geom"
    stat: "Stat"
    position: "Position"
    mapping: Aes = field(default_factory=Aes)
    data: LayerData = None
    inherit_aes: bool = True
    aes_params: Mapping[str, Any] = field(default_factory=dict)
    geom_params: Mapping[str, Any] = field(default_factory=dict)
    stat_params: Mapping[str, Any] = field(default_factory=dict)
    show_legend: Optional[bool] = None
    key_glyph: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.mapping, Aes):
            object.__setattr__(self, "mapping", Aes(self.mapping))
        params = {standardise_aes_name(k): v for k, v in dict(self.aes_params).items()}
        object.__setattr__(self, "aes_params", params)

    def computed_mapping(self, plot_mapping: Optional[Mapping[str, Any]]) -> Aes:
        """Layer mapping merged over the plot mapping when inheriting.

        Aesthetics set as constant parameters are removed from the mapping.
        """
        mapping = self.mapping.merged_over(plot_mapping) if self.inherit_aes else self.mapping
        return mapping.without(*self.aes_params)

    def describe(self) -> str:
        return f"{type(self.geom).__name__}/{type(self.stat).__name__}/{type(self.position).__name__}"


def resolve_layer_data(plot_data: Optional[pd.DataFrame], layer: Layer) -> pd.DataFrame:
    """Return the Row Table a layer draws from.

    Raises
    ------
    DataShapeError
        If the resolved object is not a table of named columns.
    """
    source = layer.data
    if source is None:
        if plot_data is None:
            return pd.DataFrame()
        resolved: Any = plot_data
    elif callable(source) and not isinstance(source, (pd.DataFrame, Mapping)):
        if plot_data is None:
            raise DataShapeError("A layer data function needs plot data to be applied to")
        resolved = source(plot_data)
    else:
        resolved = source
    table = as_row_table(resolved, who=f"{layer.describe()} data")
    logger.debug("layer %s resolved %d rows", layer.describe(), len(table))
    return table.reset_index(drop=True)
