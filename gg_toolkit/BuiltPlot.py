"""Result of building a plot.

A :class:`BuiltPlot` is what :func:`~gg_toolkit.build.build_plot` hands to
the guide assembler and the compositor: final per-layer Row Tables, the
panel layout, the trained and frozen scales, resolved labels and every
recoverable event recorded along the way.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

import pandas as pd

from .coords import PanelParams
from .errors import Diagnostic
from .facets import PanelLayout
from .labels import Labels
from .scales import Scale, ScalesList

if TYPE_CHECKING:  # pragma: no cover
    from .plot import GGPlot

__all__ = ["BuiltPlot"]


@dataclass(frozen=True, eq=False)
class BuiltPlot:
    """Frozen output of the build stages.

    Attributes
    ----------
    plot : GGPlot
        The specification that was built.
    data : tuple of pandas.DataFrame
        Final Row Table per layer, aesthetics mapped, defaults filled.
    layout : PanelLayout
        Panels and their grid placement.
    scales : ScalesList
        Trained, frozen scales (one per aesthetic).
    panel_params : mapping
        ``panel_id -> PanelParams`` from the coordinate system.
    labels : Labels
        Resolved plot and aesthetic titles.
    layer_params : tuple of dict
        Geom parameters per layer after ``setup_params``.
    mappings : tuple of Aes
        Effective mapping per layer.
    diagnostics : tuple of Diagnostic
        Recoverable events (failed stat partitions, censored rows).
    """

    plot: "GGPlot"
    data: tuple[pd.DataFrame, ...]
    layout: PanelLayout
    scales: ScalesList
    panel_params: Mapping[int, PanelParams]
    labels: Labels
    layer_params: tuple[Mapping[str, Any], ...] = ()
    mappings: tuple[Mapping[str, Any], ...] = ()
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)

    def __repr__(self) -> str:
        rows = ", ".join(str(len(d)) for d in self.data)
        return (
            f"BuiltPlot(layers={len(self.data)}, rows=[{rows}], panels={len(self.layout.panels)}, "
            f"diagnostics={len(self.diagnostics)})"
        )

    def scale(self, aesthetic: str) -> Optional[Scale]:
        return self.scales.find(aesthetic)
