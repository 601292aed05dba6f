"""Plot specification.

A :class:`GGPlot` is an immutable description of a plot. Components are
added with ``+``, which returns a new plot and leaves the left operand
untouched::

    p = ggplot(df, aes(x="displ", y="hwy")) + geom_point() + theme_bw()

Building and rendering live in :mod:`gg_toolkit.build`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Optional

import pandas as pd

from .aes import Aes
from .coords import Coord, CoordCartesian
from .facets import Facet, FacetNull
from .guides import Guides
from .labels import Labels
from .layer import Layer
from .row_table import as_row_table
from .scales import Scale, ScalesList
from .theme import Theme, theme_grey

if TYPE_CHECKING:  # pragma: no cover
    from .BuiltPlot import BuiltPlot
    from .primitives import Container

__all__ = ["GGPlot", "ggplot"]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass(frozen=True, eq=False)
class GGPlot:
    """Immutable plot specification.

    Parameters
    ----------
    data : pandas.DataFrame or None
        Default data for layers without their own.
    mapping : Aes
        Default mapping inherited by layers.
    layers : tuple of Layer
        Drawn in order.
    scales : ScalesList
        User scales; defaults are added per build.
    coord, facet, theme : Coord, Facet, Theme
    labels : Labels
    guides : Guides
    """

    data: Optional[pd.DataFrame] = None
    mapping: Aes = field(default_factory=Aes)
    layers: tuple[Layer, ...] = ()
    scales: ScalesList = field(default_factory=ScalesList)
    coord: Coord = field(default_factory=CoordCartesian)
    facet: Facet = field(default_factory=FacetNull)
    theme: Theme = field(default_factory=theme_grey)
    labels: Labels = field(default_factory=Labels)
    guides: Guides = field(default_factory=Guides)

    def __repr__(self) -> str:
        rows = "no data" if self.data is None else f"{len(self.data)} rows"
        return (
            f"GGPlot({rows}, mapping={self.mapping!r}, layers={len(self.layers)}, "
            f"coord={self.coord!r}, facet={type(self.facet).__name__})"
        )

    def __add__(self, other: Any) -> "GGPlot":
        if other is None:
            return self
        if isinstance(other, (list, tuple)):
            out = self
            for item in other:
                out = out + item
            return out
        if isinstance(other, Layer):
            return replace(self, layers=self.layers + (other,))
        if isinstance(other, Scale):
            scales = ScalesList(self.scales)
            scales.add(other)
            return replace(self, scales=scales)
        if isinstance(other, Coord):
            return replace(self, coord=other)
        if isinstance(other, Facet):
            return replace(self, facet=other)
        if isinstance(other, Theme):
            return replace(self, theme=self.theme + other)
        if isinstance(other, Labels):
            return replace(self, labels=self.labels.updated(other))
        if isinstance(other, Guides):
            return replace(self, guides=self.guides.updated(other))
        if isinstance(other, Aes):
            return replace(self, mapping=other.merged_over(self.mapping))
        raise TypeError(f"Cannot add {type(other).__name__} to a plot")

    # -- pipeline shortcuts -------------------------------------------------

    def build(self) -> "BuiltPlot":
        from .build import build_plot

        return build_plot(self)

    def render(self, width: Optional[float] = None, height: Optional[float] = None) -> "Container":
        from .build import render_plot

        return render_plot(self, width, height)


def ggplot(data: Any = None, mapping: Optional[Mapping[str, Any]] = None) -> GGPlot:
    """Start a plot.

    Parameters
    ----------
    data : DataFrame, mapping of columns or None
        Default data.
    mapping : Aes or mapping, optional
        Default aesthetic mapping.

    Examples
    --------
    >>> import pandas as pd
    >>> from gg_toolkit import aes
    >>> ggplot(pd.DataFrame({"x": [1, 2]}), aes(x="x"))
    GGPlot(2 rows, mapping=aes(x='x'), layers=0, coord=coord_cartesian(xlim=None, ylim=None), facet=FacetNull)
    """
    if isinstance(data, Aes) and mapping is None:
        data, mapping = None, data
    table = None if data is None else as_row_table(data, who="plot data")
    return GGPlot(data=table, mapping=Aes(mapping) if not isinstance(mapping, Aes) else mapping)
