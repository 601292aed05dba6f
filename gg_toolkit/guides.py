"""Guide Assembler.

Purpose
-------
Guides let a reader map a visual value back to data: axes for position
scales and legends or colour bars for the rest. This module trains guides
from frozen scales, merges guides that would show the same thing, asks the
layers for key glyphs and draws everything into pixel-space containers for
the compositor.

Merging
-------
Every trained legend has a hash of ``(title, labels, guide type)``. Guides
with equal hashes collapse into one legend showing all their aesthetics (a
variable mapped to both colour and shape gives a single legend). A guide may
declare an explicit ``merge_key``; guides sharing an explicit key whose
hashes differ cannot be shown as one and raise
:class:`~gg_toolkit.errors.GuideMergeConflictError`.

Placement
---------
Legends are stacked into a ``guide-box`` placed by the theme's
``legend_position`` (``top|bottom|left|right|inside|none``). Axes are drawn
per panel edge from the coordinate system's panel params.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Optional

import numpy as np
import pandas as pd

from .aes import standardise_aes_name
from .coords import AxisParams
from .errors import GuideMergeConflictError
from .geoms import Geom, draw_key
from .primitives import PT_TO_PX, Container, Path, Raster, Viewport
from .scales import WAIVER, Scale, ScaleBinned, ScaleContinuous
from .theme import ElementBlank, Theme, render_line, render_rect, render_text, text_block, text_margins_px

__all__ = [
    "Guide",
    "GuideAxis",
    "GuideLegend",
    "GuideColourbar",
    "GuideNone",
    "Guides",
    "guides",
    "guide_axis",
    "guide_legend",
    "guide_colourbar",
    "guide_colorbar",
    "guide_none",
    "KeySource",
    "TrainedGuide",
    "train_guides",
    "merge_guides",
    "draw_legend",
    "draw_guide_box",
    "draw_axis",
    "axis_thickness",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


# SECTION: Guide specifications [id: Guide]
# =============================================================================


class Guide:
    """Guide options shared by every guide type.

    Parameters
    ----------
    title : str, None or WAIVER
        Title; ``WAIVER`` falls back to the scale name, then the plot labels.
    merge_key : str or None
        Explicit merge identity (see module docs).
    order : int
        Position in the guide box; 0 keeps training order.
    reverse : bool
        Show keys in reverse order.
    """

    kind = "guide"

    def __init__(self, title: Any = WAIVER, merge_key: Optional[str] = None, order: int = 0, reverse: bool = False) -> None:
        self.title = title
        self.merge_key = merge_key
        self.order = order
        self.reverse = reverse

    def __repr__(self) -> str:
        return f"{type(self).__name__}(title={self.title!r})"


class GuideNone(Guide):
    kind = "none"


class GuideAxis(Guide):
    """Axis along a panel edge; ``angle`` rotates the tick labels."""

    kind = "axis"

    def __init__(self, title: Any = WAIVER, angle: Optional[float] = None, **kwargs: Any) -> None:
        super().__init__(title=title, **kwargs)
        self.angle = angle


class GuideLegend(Guide):
    """Keys with labels; ``direction`` defaults from the legend position."""

    kind = "legend"

    def __init__(self, title: Any = WAIVER, direction: Optional[str] = None, override_aes: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
        super().__init__(title=title, **kwargs)
        if direction not in (None, "vertical", "horizontal"):
            raise ValueError("direction must be 'vertical' or 'horizontal'")
        self.direction = direction
        self.override_aes = {standardise_aes_name(k): v for k, v in (override_aes or {}).items()}


class GuideColourbar(GuideLegend):
    """Continuous colour bar.

    Parameters
    ----------
    nbin : int
        Number of colour samples along the bar.
    """

    kind = "colourbar"

    def __init__(self, title: Any = WAIVER, nbin: int = 20, **kwargs: Any) -> None:
        super().__init__(title=title, **kwargs)
        if nbin < 2:
            raise ValueError("nbin must be >= 2")
        self.nbin = int(nbin)


def guide_axis(title: Any = WAIVER, angle: Optional[float] = None) -> GuideAxis:
    return GuideAxis(title=title, angle=angle)


def guide_legend(**kwargs: Any) -> GuideLegend:
    return GuideLegend(**kwargs)


def guide_colourbar(**kwargs: Any) -> GuideColourbar:
    return GuideColourbar(**kwargs)


guide_colorbar = guide_colourbar


def guide_none() -> GuideNone:
    return GuideNone()


_GUIDE_NAMES = {
    "none": GuideNone,
    "axis": GuideAxis,
    "legend": GuideLegend,
    "colourbar": GuideColourbar,
    "colorbar": GuideColourbar,
}


def _as_guide(spec: Any) -> Guide:
    if isinstance(spec, Guide):
        return spec
    if spec is False or spec is None:
        return GuideNone()
    if isinstance(spec, str) and spec in _GUIDE_NAMES:
        return _GUIDE_NAMES[spec]()
    raise ValueError(f"Unknown guide {spec!r}; use one of {sorted(_GUIDE_NAMES)} or a Guide object")


class Guides(Mapping):
    """Per-aesthetic guide overrides, combined with ``+``."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None) -> None:
        self._values = {standardise_aes_name(k): _as_guide(v) for k, v in (values or {}).items()}

    def __getitem__(self, key: str) -> Guide:
        return self._values[standardise_aes_name(key)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"guides({', '.join(f'{k}={v!r}' for k, v in self._values.items())})"

    def updated(self, other: Mapping[str, Any]) -> "Guides":
        merged = dict(self._values)
        merged.update(other)
        return Guides(merged)


def guides(**kwargs: Any) -> Guides:
    """Set guides per aesthetic, e.g. ``guides(colour="none", size=guide_legend(reverse=True))``."""
    return Guides(kwargs)


def resolve_guide(scale: Scale, overrides: Optional[Mapping[str, Any]] = None) -> Guide:
    """Guide shown for ``scale``: an override for any of its aesthetics, else the scale's own."""
    for aesthetic in scale.aesthetics:
        if overrides and aesthetic in overrides:
            return _as_guide(overrides[aesthetic])
    return _as_guide(scale.resolved_guide())


# SECTION: Training and merging [id: training]
# =============================================================================


@dataclass(frozen=True)
class KeySource:
    """What the legend needs to know about one layer."""

    geom: Geom
    mapping: Mapping[str, Any]
    aes_params: Mapping[str, Any] = field(default_factory=dict)
    params: Mapping[str, Any] = field(default_factory=dict)
    show_legend: Optional[bool] = None
    key_glyph: Optional[str] = None


@dataclass(frozen=True, eq=False)
class TrainedGuide:
    """A legend or colour bar ready to draw.

    ``key`` holds one row per key with a ``.label`` column and one column of
    visual values per aesthetic. ``glyphs`` holds the leaves each
    contributing layer draws for each key.
    """

    guide: Guide
    title: Optional[str]
    aesthetics: tuple[str, ...]
    key: pd.DataFrame
    bar: tuple[Any, ...] = ()
    bar_ticks: tuple[float, ...] = ()
    glyphs: tuple[tuple[Any, ...], ...] = ()

    @property
    def kind(self) -> str:
        return self.guide.kind

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(self.key[".label"].tolist())

    @property
    def hash(self) -> tuple[Any, ...]:
        return (self.title, self.labels, self.kind)


def _title_for(guide: Guide, scale: Scale, labels: Mapping[str, Any]) -> Optional[str]:
    if guide.title is not WAIVER:
        return None if guide.title is None else str(guide.title)
    if scale.name is not WAIVER:
        return None if scale.name is None else str(scale.name)
    for aesthetic in scale.aesthetics:
        if aesthetic in labels:
            value = labels[aesthetic]
            return None if value is None else str(value)
    return scale.aesthetic


def _train_one(scale: Scale, guide: Guide, labels: Mapping[str, Any]) -> Optional[TrainedGuide]:
    if scale.is_empty():
        return None
    title = _title_for(guide, scale, labels)
    if isinstance(guide, GuideColourbar):
        if not isinstance(scale, ScaleContinuous) or isinstance(scale, ScaleBinned):
            raise ValueError(f"guide_colourbar needs a continuous colour scale, got {scale!r}")
        lo, hi = scale.get_limits()
        breaks = scale.get_breaks()
        samples = np.linspace(lo, hi, guide.nbin)
        key = pd.DataFrame({".value": breaks, ".label": scale.get_labels(breaks)})
        for aesthetic in scale.aesthetics:
            key[aesthetic] = list(scale.map(np.asarray(breaks, dtype=float))) if breaks else []
        ticks = tuple(((np.asarray(breaks, dtype=float) - lo) / (hi - lo)).tolist()) if hi > lo else ()
        return TrainedGuide(
            guide=guide,
            title=title,
            aesthetics=scale.aesthetics,
            key=key,
            bar=tuple(scale.map(samples)),
            bar_ticks=ticks,
        )

    if isinstance(scale, ScaleBinned):
        edges = scale.edges()
        values = ((edges[:-1] + edges[1:]) / 2).tolist()
        edge_labels = scale.get_labels(edges.tolist())
        key_labels = [f"{a} to {b}" for a, b in zip(edge_labels[:-1], edge_labels[1:])]
    else:
        values = scale.get_breaks()
        key_labels = scale.get_labels(values)
    if not len(values):
        return None
    key = pd.DataFrame({".value": values, ".label": key_labels})
    mapped = scale.map(np.asarray(values, dtype=float) if isinstance(scale, ScaleContinuous) else list(values))
    for aesthetic in scale.aesthetics:
        key[aesthetic] = list(mapped)
    if guide.reverse:
        key = key.iloc[::-1].reset_index(drop=True)
    return TrainedGuide(guide=guide, title=title, aesthetics=scale.aesthetics, key=key)


def train_guides(
    scales: Iterable[Scale],
    labels: Mapping[str, Any],
    overrides: Optional[Mapping[str, Any]] = None,
) -> list[TrainedGuide]:
    """Train one legend or colour bar per non-position scale with a visible guide."""
    trained = []
    for scale in scales:
        if scale.is_position:
            continue
        guide = resolve_guide(scale, overrides)
        if isinstance(guide, GuideNone):
            continue
        if isinstance(guide, GuideAxis):
            raise ValueError(f"guide_axis cannot show the non-position scale {scale!r}")
        result = _train_one(scale, guide, labels)
        if result is not None:
            trained.append(result)
    logger.debug("trained %d guides", len(trained))
    return trained


def merge_guides(trained: Sequence[TrainedGuide]) -> list[TrainedGuide]:
    """Collapse guides with equal hashes.

    Raises
    ------
    GuideMergeConflictError
        If guides share an explicit ``merge_key`` but differ in title,
        labels or type.
    """
    by_key: dict[str, list[TrainedGuide]] = {}
    for item in trained:
        if item.guide.merge_key is not None:
            by_key.setdefault(item.guide.merge_key, []).append(item)
    for merge_key, items in by_key.items():
        if len({item.hash for item in items}) > 1:
            described = "; ".join(f"{'/'.join(i.aesthetics)}: {i.title!r} {list(i.labels)} ({i.kind})" for i in items)
            raise GuideMergeConflictError(
                f"Guides sharing merge key {merge_key!r} cannot be merged: {described}"
            )

    merged: dict[tuple[Any, ...], TrainedGuide] = {}
    for item in trained:
        existing = merged.get(item.hash)
        if existing is None:
            merged[item.hash] = item
            continue
        key = existing.key.copy()
        for aesthetic in item.aesthetics:
            if aesthetic not in key.columns:
                key[aesthetic] = item.key[aesthetic].to_numpy()
        merged[item.hash] = TrainedGuide(
            guide=existing.guide,
            title=existing.title,
            aesthetics=tuple(dict.fromkeys(existing.aesthetics + item.aesthetics)),
            key=key,
            bar=existing.bar,
            bar_ticks=existing.bar_ticks,
        )
    ordered = sorted(merged.values(), key=lambda g: g.guide.order if g.guide.order > 0 else 99)
    return ordered


def _is_scalar(value: Any) -> bool:
    return isinstance(value, str) or np.isscalar(value) or value is None


def add_glyphs(guide: TrainedGuide, sources: Sequence[KeySource]) -> TrainedGuide:
    """Ask every contributing layer for the glyph of each key."""
    if guide.kind == "colourbar":
        return guide
    overrides = getattr(guide.guide, "override_aes", {})
    glyphs: list[list[Any]] = [[] for _ in range(len(guide.key))]
    for source in sources:
        if source.show_legend is False:
            continue
        matched = [a for a in guide.aesthetics if a in source.mapping]
        if not matched and source.show_legend is not True:
            continue
        for i, row in enumerate(guide.key.to_dict("records")):
            data = dict(source.geom.default_aes)
            data.update({a: row[a] for a in matched})
            data.update({k: v for k, v in source.aes_params.items() if _is_scalar(v)})
            data.update(overrides)
            leaves = (
                draw_key(source.key_glyph, data, source.params)
                if source.key_glyph is not None
                else source.geom.draw_key(data, source.params)
            )
            glyphs[i].extend(leaves)
    return TrainedGuide(
        guide=guide.guide,
        title=guide.title,
        aesthetics=guide.aesthetics,
        key=guide.key,
        bar=guide.bar,
        bar_ticks=guide.bar_ticks,
        glyphs=tuple(tuple(g) for g in glyphs),
    )


# SECTION: Drawing legends [id: draw-legends]
# =============================================================================


def _legend_padding(theme: Theme) -> float:
    background = theme.calc_element("legend_background")
    return 0.0 if background is None or isinstance(background, ElementBlank) else 5.5 * PT_TO_PX


def draw_legend(guide: TrainedGuide, theme: Theme, direction: str = "vertical") -> tuple[Container, float, float]:
    """Draw one legend with its bottom-left corner at the origin.

    Returns
    -------
    (Container, width, height)
        Pixel-space container and its extent.
    """
    key_size = float(theme.get("legend_key_size")) * PT_TO_PX
    title_el = theme.calc_element("legend_title")
    text_el = theme.calc_element("legend_text")
    pad = _legend_padding(theme)
    title_w, title_h = text_block(title_el, [guide.title]) if guide.title else (0.0, 0.0)
    gap = key_size * 0.3

    if guide.kind == "colourbar":
        body, body_w, body_h = _colourbar_body(guide, theme, direction, key_size, gap, text_el)
    else:
        body, body_w, body_h = _legend_body(guide, theme, direction, key_size, gap, text_el)

    width = max(title_w, body_w) + 2 * pad
    height = title_h + body_h + 2 * pad
    children: list[Any] = [
        render_rect(theme.calc_element("legend_background"), 0.0, 0.0, width, height, name="legend-background", units="px")
    ]
    if guide.title:
        children.append(
            render_text(title_el, [pad], [height - pad], [guide.title], name="legend-title", hjust=0.0, vjust=1.0)
        )
    children.append(body.shifted(pad, pad))
    name = "guide-" + "-".join(guide.aesthetics)
    return Container(name, tuple(children), Viewport(0.0, 0.0, width, height)), width, height


def _legend_body(
    guide: TrainedGuide,
    theme: Theme,
    direction: str,
    key_size: float,
    gap: float,
    text_el: Any,
) -> tuple[Container, float, float]:
    labels = list(guide.labels)
    extents = [text_block(text_el, [label]) for label in labels]
    key_el = theme.calc_element("legend_key")
    glyphs = guide.glyphs or tuple(() for _ in labels)
    children: list[Any] = []

    if direction == "horizontal":
        row_h = max([key_size, *(h for _, h in extents)])
        x = 0.0
        for i, (label, (w, _)) in enumerate(zip(labels, extents)):
            children.extend(_key_cell(i, glyphs[i], key_el, x, (row_h - key_size) / 2, key_size))
            children.append(
                render_text(text_el, [x + key_size + gap / 2], [row_h / 2], [label], name=f"label-{i}", hjust=0.0, vjust=0.5)
            )
            x += key_size + gap / 2 + w + gap
        return Container("keys", tuple(children)), max(x - gap, 0.0), row_h

    row_h = max([key_size, *(h for _, h in extents)])
    label_w = max([0.0, *(w for w, _ in extents)])
    height = row_h * len(labels)
    for i, label in enumerate(labels):
        y = height - (i + 1) * row_h
        children.extend(_key_cell(i, glyphs[i], key_el, 0.0, y + (row_h - key_size) / 2, key_size))
        children.append(
            render_text(text_el, [key_size + gap / 2], [y + row_h / 2], [label], name=f"label-{i}", hjust=0.0, vjust=0.5)
        )
    return Container("keys", tuple(children)), key_size + gap / 2 + label_w, height


def _key_cell(i: int, glyph: Sequence[Any], key_el: Any, x: float, y: float, size: float) -> list[Any]:
    viewport = Viewport(x, y, size, size)
    return [
        render_rect(key_el, x, y, x + size, y + size, name=f"key-background-{i}", units="px"),
        Container(f"key-{i}", tuple(glyph)).placed(viewport),
    ]


def _colourbar_body(
    guide: TrainedGuide,
    theme: Theme,
    direction: str,
    key_size: float,
    gap: float,
    text_el: Any,
) -> tuple[Container, float, float]:
    labels = list(guide.labels)
    ticks = np.asarray(guide.bar_ticks, dtype=float)
    extents = [text_block(text_el, [label]) for label in labels]
    length = 5 * key_size
    if direction == "horizontal":
        label_h = max([0.0, *(h for _, h in extents)])
        y0 = label_h + gap / 2
        bar = Raster(name="bar", xmin=(0.0,), ymin=(y0,), xmax=(length,), ymax=(y0 + key_size,), colours=(tuple(guide.bar),), units="px")
        tx = ticks * length
        tick_path = _tick_marks(tx, y0, key_size, vertical=True)
        text = render_text(text_el, tx, [y0 - gap / 2] * len(tx), labels, name="labels", hjust=0.5, vjust=1.0)
        return Container("bar", (bar, tick_path, text)), length, y0 + key_size
    label_w = max([0.0, *(w for w, _ in extents)])
    bar = Raster(
        name="bar",
        xmin=(0.0,),
        ymin=(0.0,),
        xmax=(key_size,),
        ymax=(length,),
        colours=tuple((c,) for c in reversed(guide.bar)),
        units="px",
    )
    ty = ticks * length
    tick_path = _tick_marks(ty, 0.0, key_size, vertical=False)
    text = render_text(text_el, [key_size + gap / 2] * len(ty), ty, labels, name="labels", hjust=0.0, vjust=0.5)
    return Container("bar", (bar, tick_path, text)), key_size + gap / 2 + label_w, length


def _tick_marks(positions: np.ndarray, start: float, extent: float, *, vertical: bool) -> Optional[Path]:
    if positions.size == 0:
        return None
    tick = extent / 5
    along: list[float] = []
    across: list[float] = []
    for p in positions:
        along.extend([p, p, np.nan, p, p, np.nan])
        across.extend([start, start + tick, np.nan, start + extent - tick, start + extent, np.nan])
    x, y = (along, across) if vertical else (across, along)
    return Path(name="ticks", units="px", x=tuple(x), y=tuple(y), colour="#FFFFFF", linewidth=0.5)


def draw_guide_box(
    trained: Sequence[TrainedGuide],
    theme: Theme,
    position: str,
) -> Optional[tuple[Container, float, float]]:
    """Stack every legend into the ``guide-box`` container, origin bottom-left."""
    if position == "none" or not trained:
        return None
    stack_horizontally = position in ("top", "bottom")
    spacing = float(theme.get("legend_spacing")) * PT_TO_PX
    drawn = []
    for guide in trained:
        direction = getattr(guide.guide, "direction", None) or ("horizontal" if stack_horizontally else "vertical")
        drawn.append(draw_legend(guide, theme, direction))
    if stack_horizontally:
        width = sum(w for _, w, _ in drawn) + spacing * (len(drawn) - 1)
        height = max(h for _, _, h in drawn)
        x = 0.0
        children = []
        for container, w, h in drawn:
            children.append(container.shifted(x, (height - h) / 2))
            x += w + spacing
    else:
        width = max(w for _, w, _ in drawn)
        height = sum(h for _, _, h in drawn) + spacing * (len(drawn) - 1)
        y = height
        children = []
        for container, w, h in drawn:
            y -= h
            children.append(container.shifted(0.0, y))
            y -= spacing
    return Container("guide-box", tuple(children), Viewport(0.0, 0.0, width, height)), width, height


# SECTION: Axes [id: axes]
# =============================================================================

# side -> (element suffix, labels run along x, panel edge at the far side)
_SIDES = {
    "bottom": ("x", True, True),
    "top": ("x", True, False),
    "left": ("y", False, True),
    "right": ("y", False, False),
}


def _axis_text(theme: Theme, side: str, guide: Optional[GuideAxis]) -> Any:
    element = theme.calc_element(f"axis_text_{_SIDES[side][0]}")
    if guide is not None and guide.angle is not None and element is not None and not isinstance(element, ElementBlank):
        element = replace(element, angle=float(guide.angle))
    return element


def axis_thickness(axis: AxisParams, side: str, theme: Theme, guide: Optional[GuideAxis] = None) -> float:
    """Pixels an axis takes away from the panel area."""
    if isinstance(guide, GuideNone) or not axis.major:
        return 0.0
    suffix, along_x, _ = _SIDES[side]
    tick_el = theme.calc_element(f"axis_ticks_{suffix}")
    tick_len = 0.0 if tick_el is None or isinstance(tick_el, ElementBlank) else float(theme.get("axis_ticks_length")) * PT_TO_PX
    w, h = text_block(_axis_text(theme, side, guide), list(axis.labels))
    return tick_len + (h if along_x else w)


def draw_axis(
    axis: AxisParams,
    side: str,
    theme: Theme,
    length: float,
    name: str,
    guide: Optional[GuideAxis] = None,
) -> Container:
    """Draw an axis of ``length`` px with its bottom-left corner at the origin.

    The panel edge runs along the top of a bottom axis, the right of a left
    axis, and so on.
    """
    if isinstance(guide, GuideNone):
        return Container(name)
    suffix, along_x, far = _SIDES[side]
    thickness = axis_thickness(axis, side, theme, guide)
    tick_el = theme.calc_element(f"axis_ticks_{suffix}")
    tick_len = 0.0 if tick_el is None or isinstance(tick_el, ElementBlank) else float(theme.get("axis_ticks_length")) * PT_TO_PX
    edge = thickness if far else 0.0
    inward = -1.0 if far else 1.0
    positions = [p * length for p in axis.major]

    along_ticks: list[float] = []
    across_ticks: list[float] = []
    for p in positions:
        along_ticks.extend([p, p, np.nan])
        across_ticks.extend([edge, edge + inward * tick_len, np.nan])
    line_along, line_across = [0.0, length], [edge, edge]

    text_el = _axis_text(theme, side, guide)
    t, r, b, l = text_margins_px(text_el)
    if along_x:
        label_at = edge + inward * (tick_len + (t if far else b))
        text = render_text(
            text_el, positions, [label_at] * len(positions), list(axis.labels), name="labels",
            vjust=1.0 if far else 0.0,
        )
        ticks = render_line(tick_el, along_ticks, across_ticks, name="ticks", units="px")
        line = render_line(theme.calc_element(f"axis_line_{suffix}"), line_along, line_across, name="line", units="px")
        viewport = Viewport(0.0, 0.0, length, thickness)
    else:
        label_at = edge + inward * (tick_len + (r if far else l))
        text = render_text(
            text_el, [label_at] * len(positions), positions, list(axis.labels), name="labels",
            hjust=1.0 if far else 0.0,
        )
        ticks = render_line(tick_el, across_ticks, along_ticks, name="ticks", units="px")
        line = render_line(theme.calc_element(f"axis_line_{suffix}"), line_across, line_along, name="line", units="px")
        viewport = Viewport(0.0, 0.0, thickness, length)
    return Container(name, (line, ticks, text), viewport)
