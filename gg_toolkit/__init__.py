"""Top-level public API for the ``gg_toolkit`` package.

This module re-exports the plot-building surface so users can import from a
single namespace, for example:

>>> from gg_toolkit import aes, geom_point, ggplot  # doctest: +SKIP

It exposes both the grammar helpers (``ggplot``, ``geom_*``, ``scale_*``,
``coord_*``, ``facet_*``, ``theme_*``) and the lower-level building blocks
(stats, positions, scales, guides and primitives) for advanced integrations.
The Plotly executor is imported on demand through :func:`to_plotly`.
"""

import logging

from .aes import (
    POSITION_AESTHETICS,
    X_AESTHETICS,
    Y_AESTHETICS,
    Aes,
    Stage,
    add_group,
    aes,
    after_scale,
    after_stat,
    evaluate_mapping,
    mapping_label,
    stage,
    standardise_aes_name,
)
from .api import (
    geom_area,
    geom_bar,
    geom_col,
    geom_density,
    geom_histogram,
    geom_hline,
    geom_line,
    geom_path,
    geom_point,
    geom_polygon,
    geom_raster,
    geom_rect,
    geom_ribbon,
    geom_smooth,
    geom_step,
    geom_text,
    geom_tile,
    geom_vline,
    layer,
    stat_bin,
    stat_count,
    stat_density,
    stat_identity,
    stat_smooth,
    stat_summary,
    stat_summary_bin,
)
from .breaks import (
    expand_range,
    extended_breaks,
    format_labels,
    log_breaks,
    minor_breaks,
    rescale,
    zero_range,
)
from .build import build_plot, layer_data, layer_scales, render_plot
from .BuiltPlot import BuiltPlot
from .compositor import compose
from .coords import (
    AxisParams,
    Coord,
    CoordCartesian,
    CoordFlip,
    CoordPolar,
    CoordTrans,
    PanelParams,
    coord_cartesian,
    coord_flip,
    coord_polar,
    coord_trans,
    flip_data,
)
from .errors import (
    AestheticEvalError,
    DataShapeError,
    Diagnostic,
    GGToolkitError,
    GuideMergeConflictError,
    ScaleDomainError,
    StatComputationError,
    StatComputationWarning,
)
from .expressions import CompiledExpression, compile_expression, expression_label
from .facets import (
    Facet,
    FacetGrid,
    FacetNull,
    FacetWrap,
    PanelInfo,
    PanelLayout,
    facet_grid,
    facet_null,
    facet_wrap,
    label_both,
    label_value,
    wrap_dims,
)
from .geoms import (
    KEY_GLYPHS,
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
    draw_key,
)
from .guides import (
    Guide,
    GuideAxis,
    GuideColourbar,
    GuideLegend,
    GuideNone,
    Guides,
    KeySource,
    TrainedGuide,
    guide_axis,
    guide_colorbar,
    guide_colourbar,
    guide_legend,
    guide_none,
    guides,
)
from .labels import PLOT_LABELS, Labels, default_labels, ggtitle, labs, xlab, ylab
from .layer import Layer, resolve_layer_data
from .options import PlotOptions, get_options, option_context, set_options
from .palettes import (
    area_palette,
    gradient_palette,
    hue_palette,
    linetype_palette,
    manual_palette,
    shape_palette,
    to_hex,
)
from .plot import GGPlot, ggplot
from .positions import (
    Position,
    PositionDodge,
    PositionFill,
    PositionIdentity,
    PositionJitter,
    PositionNudge,
    PositionStack,
    position_dodge,
    position_fill,
    position_identity,
    position_jitter,
    position_nudge,
    position_stack,
)
from .primitives import (
    PRIMITIVE_SCHEMA,
    Container,
    Path,
    Point,
    Polygon,
    Raster,
    Text,
    Viewport,
    validate_tree,
)
from .row_table import GROUP, NO_GROUP, PANEL, as_row_table, resolution
from .scales import (
    WAIVER,
    Scale,
    ScaleBinned,
    ScaleContinuous,
    ScaleDiscrete,
    ScaleIdentity,
    ScalesList,
    scale_alpha,
    scale_colour_binned,
    scale_colour_continuous,
    scale_colour_discrete,
    scale_colour_gradient,
    scale_colour_gradient2,
    scale_colour_identity,
    scale_colour_manual,
    scale_fill_binned,
    scale_fill_continuous,
    scale_fill_discrete,
    scale_fill_gradient,
    scale_fill_gradient2,
    scale_fill_identity,
    scale_fill_manual,
    scale_linetype,
    scale_linewidth,
    scale_shape,
    scale_size,
    scale_x_binned,
    scale_x_continuous,
    scale_x_discrete,
    scale_x_log10,
    scale_x_reverse,
    scale_x_sqrt,
    scale_y_binned,
    scale_y_continuous,
    scale_y_discrete,
    scale_y_log10,
    scale_y_reverse,
    scale_y_sqrt,
    xlim,
    ylim,
)
from .stats import (
    SUMMARY_FUNCTIONS,
    Stat,
    StatBin,
    StatCount,
    StatDensity,
    StatIdentity,
    StatSmooth,
    StatSummary,
    StatSummaryBin,
    mean_cl_normal,
    mean_sdl,
    mean_se,
    median_hilow,
)
from .theme import (
    Theme,
    element_blank,
    element_line,
    element_rect,
    element_text,
    margin,
    rel,
    theme,
    theme_bw,
    theme_gray,
    theme_grey,
    theme_minimal,
    theme_void,
)
from .transforms import TRANSFORM_NAMES, Transform, get_transform

logging.getLogger(__name__).addHandler(logging.NullHandler())


def to_plotly(tree):
    """Draw a primitive tree with Plotly (see :mod:`gg_toolkit.plotly_executor`)."""
    from .plotly_executor import to_plotly as _to_plotly

    return _to_plotly(tree)
