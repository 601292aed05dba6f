"""Reference draw-primitive executor backed by Plotly.

The executor walks a pixel-space Drawing Primitive Tree and reproduces it on
a Plotly figure whose hidden axes span the canvas in pixels, so one data
unit is one pixel:

- ``Point`` -> marker trace
- ``Path`` -> line trace (missing coordinates break the line)
- ``Polygon`` -> filled ``toself`` trace
- ``Text`` -> layout annotations
- ``Raster`` -> one filled rectangle shape per cell

Exporting the figure (``write_image``, ``write_html``) is left to Plotly.

Examples
--------
>>> import pandas as pd
>>> from gg_toolkit import aes, geom_point, ggplot, render_plot
>>> p = ggplot(pd.DataFrame({"x": [1, 2], "y": [3, 4]}), aes(x="x", y="y")) + geom_point()
>>> fig = to_plotly(render_plot(p, 320, 240))  # doctest: +SKIP
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional

import plotly.graph_objects as go

from .primitives import Container, Path, Point, Polygon, Raster, Text, validate_tree

__all__ = ["to_plotly"]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_TRANSPARENT = "rgba(0,0,0,0)"
_XANCHOR = {0.0: "left", 0.5: "center", 1.0: "right"}
_YANCHOR = {0.0: "bottom", 0.5: "middle", 1.0: "top"}


def _anchor(value: float, table: dict[float, str]) -> str:
    return table[min(table, key=lambda k: abs(k - value))]


def _paint(colour: Any) -> Any:
    return _TRANSPARENT if colour is None else colour


def _gaps(values: tuple[float, ...]) -> list[Optional[float]]:
    return [None if math.isnan(v) else v for v in values]


def _marker_colour(colour: Any, fill: Any, shape: Any) -> Any:
    # Open symbols are drawn by their outline only.
    if fill is None or str(shape).endswith("-open"):
        return _paint(colour)
    return fill


def _point_trace(leaf: Point) -> go.Scatter:
    return go.Scatter(
        x=list(leaf.x),
        y=list(leaf.y),
        mode="markers",
        name=leaf.name,
        hoverinfo="skip",
        marker=dict(
            size=list(leaf.size),
            symbol=list(leaf.shape),
            color=[_marker_colour(c, f, s) for c, f, s in zip(leaf.colour, leaf.fill, leaf.shape)],
            opacity=list(leaf.alpha),
            line=dict(color=[_paint(c) for c in leaf.colour], width=list(leaf.stroke)),
        ),
    )


def _path_trace(leaf: Path) -> Optional[go.Scatter]:
    if leaf.colour is None or leaf.linetype == "blank":
        return None
    return go.Scatter(
        x=_gaps(leaf.x),
        y=_gaps(leaf.y),
        mode="lines",
        name=leaf.name,
        hoverinfo="skip",
        connectgaps=False,
        opacity=leaf.alpha,
        line=dict(color=leaf.colour, width=leaf.linewidth, dash=leaf.linetype or "solid"),
    )


def _polygon_trace(leaf: Polygon) -> Optional[go.Scatter]:
    if not leaf.x:
        return None
    x = list(leaf.x) + [leaf.x[0]]
    y = list(leaf.y) + [leaf.y[0]]
    outlined = leaf.colour is not None and leaf.linetype != "blank"
    return go.Scatter(
        x=_gaps(tuple(x)),
        y=_gaps(tuple(y)),
        mode="lines",
        name=leaf.name,
        hoverinfo="skip",
        fill="toself" if leaf.fill is not None else "none",
        fillcolor=leaf.fill,
        opacity=leaf.alpha,
        line=dict(
            color=leaf.colour if outlined else _TRANSPARENT,
            width=leaf.linewidth if outlined else 0,
            dash=leaf.linetype if outlined else "solid",
        ),
    )


def _text_annotations(leaf: Text) -> list[dict[str, Any]]:
    annotations = []
    for i, label in enumerate(leaf.label):
        annotations.append(
            dict(
                x=leaf.x[i],
                y=leaf.y[i],
                xref="x",
                yref="y",
                text=label.replace("\n", "<br>"),
                showarrow=False,
                textangle=-leaf.angle[i],
                xanchor=_anchor(leaf.hjust[i], _XANCHOR),
                yanchor=_anchor(leaf.vjust[i], _YANCHOR),
                opacity=leaf.alpha[i],
                font=dict(size=leaf.size[i], color=_paint(leaf.colour[i])),
            )
        )
    return annotations


def _raster_shapes(leaf: Raster) -> list[dict[str, Any]]:
    shapes = []
    rows = leaf.colours
    if not rows or not rows[0]:
        return shapes
    nrow, ncol = len(rows), len(rows[0])
    for k in range(len(leaf.xmin)):
        width = (leaf.xmax[k] - leaf.xmin[k]) / ncol
        height = (leaf.ymax[k] - leaf.ymin[k]) / nrow
        for r, row in enumerate(rows):
            top = leaf.ymax[k] - r * height
            for c, colour in enumerate(row):
                if colour is None:
                    continue
                shapes.append(
                    dict(
                        type="rect",
                        xref="x",
                        yref="y",
                        x0=leaf.xmin[k] + c * width,
                        x1=leaf.xmin[k] + (c + 1) * width,
                        y0=top - height,
                        y1=top,
                        fillcolor=colour,
                        opacity=leaf.alpha,
                        line=dict(width=0),
                        layer="above",
                    )
                )
    return shapes


def to_plotly(tree: Container) -> go.Figure:
    """Draw a pixel-space primitive tree on a new Plotly figure.

    Parameters
    ----------
    tree : Container
        Root returned by :func:`~gg_toolkit.build.render_plot`; its viewport
        gives the canvas size.

    Raises
    ------
    ValueError
        If the tree fails :func:`~gg_toolkit.primitives.validate_tree`.
    """
    validate_tree(tree)
    if tree.viewport is None:
        raise ValueError("The root container needs a viewport giving the canvas size")
    width, height = tree.viewport.width, tree.viewport.height

    traces: list[go.Scatter] = []
    annotations: list[dict[str, Any]] = []
    shapes: list[dict[str, Any]] = []
    for leaf in tree.leaves():
        if isinstance(leaf, Point):
            traces.append(_point_trace(leaf))
        elif isinstance(leaf, Path):
            trace = _path_trace(leaf)
            if trace is not None:
                traces.append(trace)
        elif isinstance(leaf, Polygon):
            trace = _polygon_trace(leaf)
            if trace is not None:
                traces.append(trace)
        elif isinstance(leaf, Text):
            annotations.extend(_text_annotations(leaf))
        elif isinstance(leaf, Raster):
            shapes.extend(_raster_shapes(leaf))

    hidden = dict(visible=False, showgrid=False, zeroline=False, fixedrange=True)
    fig = go.Figure(data=traces)
    fig.update_layout(
        width=width,
        height=height,
        margin=dict(l=0, r=0, t=0, b=0),
        showlegend=False,
        plot_bgcolor=_TRANSPARENT,
        paper_bgcolor=_TRANSPARENT,
        xaxis=dict(range=[0, width], **hidden),
        yaxis=dict(range=[0, height], **hidden),
        annotations=annotations,
        shapes=shapes,
    )
    logger.debug("plotly executor: %d traces, %d annotations, %d shapes", len(traces), len(annotations), len(shapes))
    return fig
