"""Compositor.

Purpose
-------
Arrange the drawn panels, strips, axes, legends and plot adornment of a
:class:`~gg_toolkit.BuiltPlot.BuiltPlot` into one Drawing Primitive Tree.

Layout
------
Space is taken from the outside in: plot margins, then the tag, title and
subtitle at the top and the caption at the bottom, then the legend box on
its side, then the axis titles, then the axes. What remains is split
between the panels, their strips and the panel spacing. Coordinate systems
with a fixed aspect ratio shrink the panel grid and centre it.

Every child is named (``panel-{row}-{col}``, ``strip-t-{row}-{col}``,
``axis-b-{col}``, ``axis-l-{row}``, ``guide-box``, ``title``, ...) and every
leaf is resolved to pixels with the origin at the bottom-left corner.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .BuiltPlot import BuiltPlot
from .coords import CoordFlip
from .facets import PanelInfo
from .guides import (
    GuideAxis,
    GuideNone,
    KeySource,
    add_glyphs,
    axis_thickness,
    draw_axis,
    draw_guide_box,
    merge_guides,
    resolve_guide,
    train_guides,
)
from .options import get_options
from .primitives import PT_TO_PX, Container, Viewport
from .theme import Theme, render_rect, render_text, text_block

__all__ = ["compose"]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def _axis_guide(built: BuiltPlot, aesthetic: str) -> Optional[GuideAxis]:
    scale = built.scales.find(aesthetic)
    if scale is None:
        return None
    guide = resolve_guide(scale, built.plot.guides)
    if isinstance(guide, (GuideAxis, GuideNone)):
        return guide
    raise ValueError(f"Position scale {scale!r} can only use guide_axis or guide_none, got {guide!r}")


def _legends(built: BuiltPlot, theme: Theme, position: str) -> Optional[tuple[Container, float, float]]:
    if position == "none":
        return None
    trained = merge_guides(train_guides(built.scales.non_position_scales(), built.labels, built.plot.guides))
    sources = [
        KeySource(
            geom=layer.geom,
            mapping=built.mappings[i],
            aes_params=layer.aes_params,
            params=built.layer_params[i],
            show_legend=layer.show_legend,
            key_glyph=layer.key_glyph,
        )
        for i, layer in enumerate(built.plot.layers)
    ]
    trained = [add_glyphs(guide, sources) for guide in trained]
    return draw_guide_box(trained, theme, position)


def _strip_label(labels: tuple[str, ...]) -> str:
    return ", ".join(labels)


def _title_text(built: BuiltPlot, key: str) -> Optional[str]:
    value = built.labels.get(key)
    return None if value is None or value == "" else str(value)


def compose(built: BuiltPlot, width: Optional[float] = None, height: Optional[float] = None) -> Container:
    """Lay ``built`` out on a ``width`` x ``height`` px canvas.

    Parameters
    ----------
    built : BuiltPlot
    width, height : float, optional
        Canvas size in pixels; defaults come from :func:`~gg_toolkit.options.get_options`.

    Returns
    -------
    Container
        Root named ``"plot"``.
    """
    options = get_options()
    width = float(options.width if width is None else width)
    height = float(options.height if height is None else height)
    if width <= 0 or height <= 0:
        raise ValueError(f"Plot size must be positive, got {width} x {height}")

    plot = built.plot
    theme = plot.theme
    coord = plot.coord
    layout = built.layout
    children: list[Any] = [
        render_rect(theme.calc_element("plot_background"), 0.0, 0.0, width, height, name="plot-background", units="px")
    ]

    mt, mr, mb, ml = (float(m) * PT_TO_PX for m in theme.get("plot_margin"))
    left, right, bottom, top = ml, width - mr, mb, height - mt

    # Tag, title and subtitle stack down from the top; the caption sits at the bottom.
    for key, element_name in (("tag", "plot_tag"), ("title", "plot_title"), ("subtitle", "plot_subtitle")):
        text = _title_text(built, key)
        if text is None:
            continue
        element = theme.calc_element(element_name)
        w, h = text_block(element, [text])
        hjust = 0.0 if key == "tag" else (element.hjust if element is not None and element.hjust is not None else 0.0)
        children.append(
            render_text(element, [left + hjust * (right - left)], [top - h / 2], [text], name=key, hjust=hjust, vjust=0.5)
        )
        top -= h
    caption = _title_text(built, "caption")
    if caption is not None:
        element = theme.calc_element("plot_caption")
        w, h = text_block(element, [caption])
        hjust = element.hjust if element is not None and element.hjust is not None else 1.0
        children.append(
            render_text(element, [left + hjust * (right - left)], [bottom + h / 2], [caption], name="caption", hjust=hjust, vjust=0.5)
        )
        bottom += h

    # Legend box
    position = theme.get("legend_position")
    box = _legends(built, theme, position)
    box_spacing = float(theme.get("legend_box_spacing")) * PT_TO_PX
    box_at: Optional[tuple[float, float]] = None
    if box is not None:
        _, box_w, box_h = box
        if position == "right":
            box_at = (right - box_w, (bottom + top) / 2 - box_h / 2)
            right -= box_w + box_spacing
        elif position == "left":
            box_at = (left, (bottom + top) / 2 - box_h / 2)
            left += box_w + box_spacing
        elif position == "top":
            box_at = ((left + right) / 2 - box_w / 2, top - box_h)
            top -= box_h + box_spacing
        elif position == "bottom":
            box_at = ((left + right) / 2 - box_w / 2, bottom)
            bottom += box_h + box_spacing

    # Axis titles
    x_title, y_title = _title_text(built, "x"), _title_text(built, "y")
    x_title_el, y_title_el = theme.calc_element("axis_title_x"), theme.calc_element("axis_title_y")
    x_title_h = text_block(x_title_el, [x_title])[1] if x_title else 0.0
    y_title_w = text_block(y_title_el, [y_title])[0] if y_title else 0.0

    # Axes
    some_params = next(iter(built.panel_params.values()))
    flipped = isinstance(coord, CoordFlip)
    guide_h = _axis_guide(built, "y" if flipped else "x")
    guide_v = _axis_guide(built, "x" if flipped else "y")
    axis_b = axis_thickness(some_params.x, "bottom", theme, guide_h)
    axis_l = axis_thickness(some_params.y, "left", theme, guide_v)

    # Strips
    strip_x_el, strip_y_el = theme.calc_element("strip_text_x"), theme.calc_element("strip_text_y")
    strip_h = [0.0] * layout.nrow
    strip_w = [0.0] * layout.ncol
    for info in layout.panels:
        if info.strip_top:
            strip_h[info.row] = max(strip_h[info.row], text_block(strip_x_el, [_strip_label(info.strip_top)])[1])
        if info.strip_right:
            strip_w[info.col] = max(strip_w[info.col], text_block(strip_y_el, [_strip_label(info.strip_right)])[0])

    # Panel grid
    spacing = float(theme.get("panel_spacing")) * PT_TO_PX
    grid_x0 = left + y_title_w + axis_l
    grid_y0 = bottom + x_title_h + axis_b
    avail_w = right - grid_x0 - sum(strip_w) - spacing * (layout.ncol - 1)
    avail_h = top - grid_y0 - sum(strip_h) - spacing * (layout.nrow - 1)
    panel_w = max(avail_w / layout.ncol, 0.0)
    panel_h = max(avail_h / layout.nrow, 0.0)
    aspect = coord.aspect(some_params)
    if aspect is not None and panel_w > 0:
        if panel_h > panel_w * aspect:
            panel_h = panel_w * aspect
        else:
            panel_w = panel_h / aspect
        grid_x0 += (avail_w - panel_w * layout.ncol) / 2
        grid_y0 += (avail_h - panel_h * layout.nrow) / 2
    grid_top = grid_y0 + panel_h * layout.nrow + sum(strip_h) + spacing * (layout.nrow - 1)

    def panel_origin(info: PanelInfo) -> tuple[float, float]:
        x = grid_x0 + sum(panel_w + strip_w[k] + spacing for k in range(info.col))
        y_top = grid_top - sum(strip_h[k] + panel_h + spacing for k in range(info.row)) - strip_h[info.row]
        return x, y_top - panel_h

    drawn_layers = []
    for i, layer in enumerate(plot.layers):
        params = built.layer_params[i]
        data = layer.geom.handle_na(built.data[i], params)
        drawn_layers.append(layer.geom.draw_layer(data, params, coord, built.panel_params, f"layer-{i}"))

    bottom_row = {c: max((p.row for p in layout.panels if p.col == c), default=-1) for c in range(layout.ncol)}
    left_col = {r: min((p.col for p in layout.panels if p.row == r), default=-1) for r in range(layout.nrow)}

    for info in layout.panels:
        px, py = panel_origin(info)
        viewport = Viewport(px, py, panel_w, panel_h)
        params = built.panel_params[info.panel_id]
        panel_children: list[Any] = [Container("background", tuple(coord.render_bg(params, theme))).placed(viewport)]
        for drawn in drawn_layers:
            panel_children.append(drawn[info.panel_id].placed(viewport))
        panel_children.append(Container("foreground", tuple(coord.render_fg(params, theme))).placed(viewport))
        children.append(Container(f"panel-{info.row}-{info.col}", tuple(panel_children), viewport))

        if info.strip_top:
            h = strip_h[info.row]
            label = _strip_label(info.strip_top)
            children.append(
                Container(
                    f"strip-t-{info.row}-{info.col}",
                    (
                        render_rect(theme.calc_element("strip_background"), px, py + panel_h, px + panel_w, py + panel_h + h, name="strip-background", units="px"),
                        render_text(strip_x_el, [px + panel_w / 2], [py + panel_h + h / 2], [label], name="strip-text", hjust=0.5, vjust=0.5),
                    ),
                    Viewport(px, py + panel_h, panel_w, h),
                )
            )
        if info.strip_right:
            w = strip_w[info.col]
            label = _strip_label(info.strip_right)
            children.append(
                Container(
                    f"strip-r-{info.row}-{info.col}",
                    (
                        render_rect(theme.calc_element("strip_background"), px + panel_w, py, px + panel_w + w, py + panel_h, name="strip-background", units="px"),
                        render_text(strip_y_el, [px + panel_w + w / 2], [py + panel_h / 2], [label], name="strip-text", hjust=0.5, vjust=0.5),
                    ),
                    Viewport(px + panel_w, py, w, panel_h),
                )
            )

        if bottom_row[info.col] == info.row:
            axis = draw_axis(params.x, "bottom", theme, panel_w, f"axis-b-{info.col}", guide_h)
            children.append(axis.shifted(px, py - axis_b))
        if left_col[info.row] == info.col:
            axis = draw_axis(params.y, "left", theme, panel_h, f"axis-l-{info.row}", guide_v)
            children.append(axis.shifted(px - axis_l, py))

    grid_x1 = grid_x0 + panel_w * layout.ncol + sum(strip_w) + spacing * (layout.ncol - 1)
    if x_title:
        children.append(
            render_text(x_title_el, [(grid_x0 + grid_x1) / 2], [bottom + x_title_h / 2], [x_title], name="axis-title-x", hjust=0.5, vjust=0.5)
        )
    if y_title:
        children.append(
            render_text(y_title_el, [left + y_title_w / 2], [(grid_y0 + grid_top) / 2], [y_title], name="axis-title-y", hjust=0.5, vjust=0.5)
        )

    if box is not None:
        container, box_w, box_h = box
        if position == "inside":
            fx, fy = theme.get("legend_position_inside")
            box_at = (
                grid_x0 + fx * (grid_x1 - grid_x0) - fx * box_w,
                grid_y0 + fy * (grid_top - grid_y0) - fy * box_h,
            )
        if box_at is not None:
            children.append(container.shifted(*box_at))

    logger.debug(
        "composed %d panels on %.0fx%.0f px (panel %.1fx%.1f px)", len(layout.panels), width, height, panel_w, panel_h
    )
    return Container("plot", tuple(children), Viewport(0.0, 0.0, width, height))
