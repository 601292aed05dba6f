"""Build stages.

:func:`build_plot` turns a :class:`~gg_toolkit.plot.GGPlot` into a frozen
:class:`~gg_toolkit.BuiltPlot.BuiltPlot`. The stages run in a fixed order
over every layer::

    resolve data -> coord setup -> panels -> start aesthetics
    -> scale transforms -> groups -> pre-stat position scales -> stats
    -> after_stat aesthetics -> geom setup -> position adjustments
    -> position scales -> non-position scales (train, freeze, map)
    -> geom defaults + after_scale aesthetics

All training of a scale finishes, across every layer, before any of that
scale's final mapping; scales are frozen before guides are built.
Binned aesthetics group by bin, and binned positions keep the midpoint
they were given before the stat through every later mapping.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable, Optional

import numpy as np
import pandas as pd

from .BuiltPlot import BuiltPlot
from .aes import Aes, Stage, add_group, evaluate_mapping
from .errors import Diagnostic
from .labels import default_labels
from .layer import resolve_layer_data
from .scales import Scale, ScaleBinned, ScaleContinuous, ScalesList

if TYPE_CHECKING:  # pragma: no cover
    from .plot import GGPlot
    from .primitives import Container

__all__ = ["build_plot", "layer_data", "layer_scales", "render_plot"]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


# SECTION: Helpers [id: helpers]
# =============================================================================


def _staged(mapping: Aes, at: str) -> Aes:
    """Entries of ``mapping`` that carry a value for stage ``at``."""
    return Aes({k: v for k, v in mapping.items() if isinstance(v, Stage) and getattr(v, at) is not None})


def _censors_before_stat(scale: Scale) -> bool:
    """Position scales whose mapping has to happen before the stat runs."""
    if scale.kind in ("discrete", "binned"):
        return True
    return isinstance(scale, ScaleContinuous) and scale.limits is not None and not callable(scale.limits)


def _drop_unmapped(
    data: pd.DataFrame,
    scales: list[Scale],
    layer_index: int,
    diagnostics: list[Diagnostic],
) -> pd.DataFrame:
    """Remove rows whose pre-stat position mapping produced a missing value."""
    columns = [c for s in scales for c in s.aesthetics if c in data.columns]
    if data.empty or not columns:
        return data
    bad = np.zeros(len(data), dtype=bool)
    for col in columns:
        bad |= pd.isna(data[col]).to_numpy()
    if not bad.any():
        return data
    message = f"Removed {int(bad.sum())} rows containing values outside the scale range"
    logger.warning("%s (layer %d).", message, layer_index)
    diagnostics.append(Diagnostic(stage="scale", message=message, layer=layer_index))
    return data.loc[~bad].reset_index(drop=True)


def _reporter(layer_index: int, diagnostics: list[Diagnostic]) -> Callable[[Diagnostic], None]:
    def report(diagnostic: Diagnostic) -> None:
        diagnostics.append(replace(diagnostic, layer=layer_index))

    return report


# SECTION: Build [id: build]
# =============================================================================


def build_plot(plot: "GGPlot") -> BuiltPlot:
    """Run every build stage over ``plot``.

    Parameters
    ----------
    plot : GGPlot
        Immutable plot specification; it is not modified.

    Returns
    -------
    BuiltPlot

    Raises
    ------
    AestheticEvalError
        If a mapping references a column absent at its stage.
    DataShapeError
        If layer data is not a table, or no layer has the facet variables.
    ScaleDomainError
        If a scale receives values of the wrong kind.
    StatComputationError
        If a stat fails while the ``stat_failure`` option is ``"raise"``.
    """
    layers = list(plot.layers)
    scales: ScalesList = plot.scales.clone()
    diagnostics: list[Diagnostic] = []
    mappings = [layer.computed_mapping(plot.mapping) for layer in layers]
    logger.debug("building %d layers", len(layers))

    # Data, coord and panels
    tables = [plot.coord.setup_data(resolve_layer_data(plot.data, layer)) for layer in layers]
    layout_tables = tables if tables else ([plot.data] if plot.data is not None else [])
    layout = plot.facet.compute_layout(layout_tables)
    tables = [plot.facet.map_data(t, layout) for t in tables]
    logger.debug("layout has %d panels (%d x %d)", len(layout.panels), layout.nrow, layout.ncol)

    # Start aesthetics, default scales and groups
    data: list[pd.DataFrame] = []
    for table, mapping in zip(tables, mappings):
        evaluated = evaluate_mapping(table, mapping, "start")
        scales.add_defaults(evaluated, evaluated.columns)
        data.append(scales.transform_df(evaluated))
    group_key = scales.group_key(data)
    data = [add_group(d, scales.is_grouping, group_key) for d in data]

    # Position scales that censor or discretise before the stat
    early = [s for s in scales.position_scales() if _censors_before_stat(s)]
    if early:
        for d in data:
            scales.train_df(d, early)
        data = [
            _drop_unmapped(scales.map_df(d, early), early, i, diagnostics)
            for i, d in enumerate(data)
        ]
        for scale in early:
            if isinstance(scale, ScaleBinned):
                scale.mark_positioned()
    logger.debug("pre-stat rows per layer: %s", [len(d) for d in data])

    # Stats
    for i, layer in enumerate(layers):
        params = layer.stat.setup_params(data[i], layer.stat_params, scales)
        computed = layer.stat.setup_data(data[i], params)
        data[i] = layer.stat.compute_layer(computed, params, scales, _reporter(i, diagnostics))

    # after_stat aesthetics
    stat_mappings: list[Aes] = []
    for i, layer in enumerate(layers):
        defaults = {
            k: v for k, v in layer.stat.default_aes.items()
            if k not in mappings[i] and k not in layer.aes_params
        }
        stat_mapping = mappings[i].merged_over(defaults)
        stat_mappings.append(stat_mapping)
        staged = _staged(stat_mapping, "after_stat")
        if staged and not data[i].empty:
            data[i] = evaluate_mapping(data[i], staged, "after_stat")
            new = list(staged)
            scales.add_defaults(data[i], new)
            data[i] = scales.transform_df(data[i], new)

    # Geom setup and position adjustments
    layer_params: list[dict[str, Any]] = []
    for i, layer in enumerate(layers):
        geom_params = layer.geom.setup_params(data[i], layer.geom_params)
        layer_params.append(geom_params)
        data[i] = layer.geom.setup_data(data[i], geom_params)
        scales.add_defaults(data[i], data[i].columns)

        position_params = layer.position.setup_params(data[i])
        data[i] = layer.position.setup_data(data[i], position_params)
        data[i] = layer.position.compute_layer(data[i], position_params, scales)
    scales.add_missing(("x", "y"))

    # Position scales: all layers train, then all map
    positions = scales.position_scales()
    for d in data:
        scales.train_df(d, positions)
    data = [scales.map_df(d, positions) for d in data]

    # Non-position scales, then freeze
    others = scales.non_position_scales()
    for d in data:
        scales.train_df(d, others)
    scales.freeze()
    data = [scales.map_df(d, others) for d in data]

    # Defaults, constants and after_scale aesthetics
    for i, layer in enumerate(layers):
        modifiers = _staged(stat_mappings[i], "after_scale")
        data[i] = layer.geom.use_defaults(data[i], layer.aes_params, modifiers)

    scale_x, scale_y = scales.find("x"), scales.find("y")
    shared = plot.coord.setup_panel_params(scale_x, scale_y)
    panel_params = {panel_id: shared for panel_id in layout.panel_ids}

    labels = default_labels(stat_mappings).updated(plot.labels)
    labels = labels.updated(plot.coord.flip_labels(labels))

    logger.debug("built %d layers, %d diagnostics", len(data), len(diagnostics))
    return BuiltPlot(
        plot=plot,
        data=tuple(d.reset_index(drop=True) for d in data),
        layout=layout,
        scales=scales,
        panel_params=panel_params,
        labels=labels,
        layer_params=tuple(layer_params),
        mappings=tuple(stat_mappings),
        diagnostics=tuple(diagnostics),
    )


# SECTION: Accessors [id: accessors]
# =============================================================================


def layer_data(plot: "GGPlot", i: int = 0) -> pd.DataFrame:
    """Final Row Table of layer ``i``."""
    return build_plot(plot).data[i]


def layer_scales(plot: "GGPlot", i: int = 0) -> dict[str, Optional[Scale]]:
    """Trained position scales seen by layer ``i`` (``{"x": ..., "y": ...}``)."""
    built = build_plot(plot)
    if not 0 <= i < max(len(built.data), 1):
        raise IndexError(f"plot has no layer {i}")
    return {"x": built.scales.find("x"), "y": built.scales.find("y")}


def render_plot(plot: "GGPlot", width: Optional[float] = None, height: Optional[float] = None) -> "Container":
    """Build ``plot`` and compose it into a primitive tree of ``width`` x ``height`` px."""
    from .compositor import compose

    return compose(build_plot(plot), width, height)
