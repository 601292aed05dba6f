"""Themes: non-data styling with element inheritance.

A :class:`Theme` maps element names (``axis_text_x``, ``panel_background``,
...) to theme elements, and setting names (``legend_position``,
``panel_spacing``, ...) to values. Unset element properties inherit from the
parent element (``axis_text_x -> axis_text -> text``);
:meth:`Theme.calc_element` resolves the chain. Relative sizes (:func:`rel`)
multiply the parent's size.

Units: text sizes, margins, spacings and lengths are in points; line widths
are in millimetres. Use :data:`NA` for "no colour" (an unset property is
``None`` and inherits).

Complete themes (:func:`theme_grey`, :func:`theme_bw`, :func:`theme_minimal`,
:func:`theme_void`) replace the current theme when added to a plot; partial
themes from :func:`theme` are merged into it.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, fields, replace
from typing import Any, Optional, Union

from .primitives import MM_TO_PX, PT_TO_PX, Path, Polygon, Text

__all__ = [
    "NA",
    "Rel",
    "rel",
    "margin",
    "ElementBlank",
    "ElementLine",
    "ElementRect",
    "ElementText",
    "element_blank",
    "element_line",
    "element_rect",
    "element_text",
    "Theme",
    "theme",
    "theme_grey",
    "theme_gray",
    "theme_bw",
    "theme_minimal",
    "theme_void",
    "ELEMENT_TREE",
    "SETTINGS",
    "text_extent",
    "text_block",
    "render_line",
    "render_rect",
    "render_text",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

NA = "NA"


@dataclass(frozen=True)
class Rel:
    """Size relative to the parent element."""

    factor: float


def rel(factor: float) -> Rel:
    return Rel(float(factor))


def margin(t: float = 0.0, r: float = 0.0, b: float = 0.0, l: float = 0.0) -> tuple[float, float, float, float]:  # noqa: E741
    """Top, right, bottom, left margins in points."""
    return (float(t), float(r), float(b), float(l))


@dataclass(frozen=True)
class ElementBlank:
    """Draw nothing and take no space."""


@dataclass(frozen=True)
class ElementLine:
    colour: Any = None
    linewidth: Union[float, Rel, None] = None
    linetype: Optional[str] = None


@dataclass(frozen=True)
class ElementRect:
    fill: Any = None
    colour: Any = None
    linewidth: Union[float, Rel, None] = None
    linetype: Optional[str] = None


@dataclass(frozen=True)
class ElementText:
    colour: Any = None
    size: Union[float, Rel, None] = None
    face: Optional[str] = None
    family: Optional[str] = None
    hjust: Optional[float] = None
    vjust: Optional[float] = None
    angle: Optional[float] = None
    margin: Optional[tuple[float, float, float, float]] = None


Element = Union[ElementBlank, ElementLine, ElementRect, ElementText]


def element_blank() -> ElementBlank:
    return ElementBlank()


def element_line(**kwargs: Any) -> ElementLine:
    return ElementLine(**_standardise(kwargs))


def element_rect(**kwargs: Any) -> ElementRect:
    return ElementRect(**_standardise(kwargs))


def element_text(**kwargs: Any) -> ElementText:
    return ElementText(**_standardise(kwargs))


def _standardise(kwargs: dict[str, Any]) -> dict[str, Any]:
    out = dict(kwargs)
    if "color" in out:
        out["colour"] = out.pop("color")
    return out


# Parent of every element; roots map to None.
ELEMENT_TREE: dict[str, Optional[str]] = {
    "line": None,
    "rect": None,
    "text": None,
    "title": "text",
    "axis_line": "line",
    "axis_line_x": "axis_line",
    "axis_line_y": "axis_line",
    "axis_text": "text",
    "axis_text_x": "axis_text",
    "axis_text_y": "axis_text",
    "axis_ticks": "line",
    "axis_ticks_x": "axis_ticks",
    "axis_ticks_y": "axis_ticks",
    "axis_title": "title",
    "axis_title_x": "axis_title",
    "axis_title_y": "axis_title",
    "legend_background": "rect",
    "legend_key": "panel_background",
    "legend_text": "text",
    "legend_title": "title",
    "panel_background": "rect",
    "panel_border": "rect",
    "panel_grid": "line",
    "panel_grid_major": "panel_grid",
    "panel_grid_minor": "panel_grid",
    "panel_grid_major_x": "panel_grid_major",
    "panel_grid_major_y": "panel_grid_major",
    "panel_grid_minor_x": "panel_grid_minor",
    "panel_grid_minor_y": "panel_grid_minor",
    "plot_background": "rect",
    "plot_title": "title",
    "plot_subtitle": "title",
    "plot_caption": "title",
    "plot_tag": "title",
    "strip_background": "rect",
    "strip_text": "text",
    "strip_text_x": "strip_text",
    "strip_text_y": "strip_text",
}

# Non-element settings with their defaults.
SETTINGS: dict[str, Any] = {
    "legend_position": "right",
    "legend_position_inside": (0.95, 0.95),
    "panel_spacing": 5.5,
    "plot_margin": (5.5, 5.5, 5.5, 5.5),
    "axis_ticks_length": 2.75,
    "legend_key_size": 17.28,
    "legend_box_spacing": 11.0,
    "legend_spacing": 11.0,
    "strip_placement": "inside",
}

_LEGEND_POSITIONS = ("top", "bottom", "left", "right", "inside", "none")


def _merge(new: Any, old: Any) -> Any:
    """Properties set on ``new`` win; unset ones come from ``old``."""
    if isinstance(new, ElementBlank) or old is None or type(new) is not type(old):
        return new
    changes = {f.name: getattr(old, f.name) for f in fields(new) if getattr(new, f.name) is None}
    return replace(new, **changes)


def _inherit(child: Any, parent: Any) -> Any:
    """Fill unset properties of ``child`` from a resolved ``parent``."""
    if isinstance(child, ElementBlank):
        return child
    if parent is None or isinstance(parent, ElementBlank):
        return child
    changes: dict[str, Any] = {}
    for f in fields(child):
        value = getattr(child, f.name)
        inherited = getattr(parent, f.name, None)
        if value is None:
            changes[f.name] = inherited
        elif isinstance(value, Rel) and isinstance(inherited, (int, float)):
            changes[f.name] = value.factor * inherited
    return replace(child, **changes) if changes else child


class Theme:
    """Element and setting values; immutable."""

    def __init__(self, elements: Optional[dict[str, Any]] = None, complete: bool = False) -> None:
        self._values: dict[str, Any] = {}
        for name, value in (elements or {}).items():
            key = name.replace(".", "_")
            if key not in ELEMENT_TREE and key not in SETTINGS:
                raise TypeError(f"{key!r} is not a valid theme element or setting")
            if key == "legend_position" and value not in _LEGEND_POSITIONS:
                raise ValueError(f"legend_position must be one of {_LEGEND_POSITIONS}, got {value!r}")
            self._values[key] = value
        self.complete = complete

    def __repr__(self) -> str:
        kind = "complete" if self.complete else "partial"
        return f"Theme({kind}, {len(self._values)} values)"

    def __add__(self, other: "Theme") -> "Theme":
        if not isinstance(other, Theme):
            return NotImplemented
        if other.complete:
            return other
        merged = dict(self._values)
        for key, value in other._values.items():
            if key in ELEMENT_TREE:
                merged[key] = _merge(value, merged.get(key))
            else:
                merged[key] = value
        return Theme(merged, complete=self.complete)

    def get(self, name: str) -> Any:
        """Setting value (or its default)."""
        if name in SETTINGS:
            return self._values.get(name, SETTINGS[name])
        raise KeyError(name)

    def calc_element(self, name: str) -> Any:
        """Resolve element ``name`` through its inheritance chain.

        Returns ``None`` for elements that are neither set nor inherited, and
        an :class:`ElementBlank` when the element or one of its ancestors is
        blank. :data:`NA` colours resolve to ``None``.
        """
        if name not in ELEMENT_TREE:
            raise KeyError(f"{name!r} is not a theme element")
        own = self._values.get(name)
        parent_name = ELEMENT_TREE[name]
        if isinstance(own, ElementBlank):
            return own
        if own is None:
            return self.calc_element(parent_name) if parent_name is not None else None
        # An explicitly set element inherits from its nearest non-blank ancestor.
        while parent_name is not None:
            parent = self.calc_element(parent_name)
            if parent is not None and not isinstance(parent, ElementBlank):
                if type(parent) is type(own):
                    own = _inherit(own, parent)
                break
            parent_name = ELEMENT_TREE[parent_name]
        return _resolve_na(own)


def _resolve_na(element: Any) -> Any:
    if element is None or isinstance(element, ElementBlank):
        return element
    changes = {
        f.name: None
        for f in fields(element)
        if isinstance(getattr(element, f.name), Rel) or getattr(element, f.name) == NA
    }
    return replace(element, **changes) if changes else element


def theme(**elements: Any) -> Theme:
    """Partial theme, merged into the plot's theme with ``+``."""
    return Theme(elements, complete=False)


# SECTION: Complete themes [id: complete-themes]
# =============================================================================


def theme_grey(base_size: float = 11.0) -> Theme:
    """Grey panel, white grid lines."""
    half_line = base_size / 2
    return Theme(
        {
            "line": ElementLine(colour="#000000", linewidth=0.5, linetype="solid"),
            "rect": ElementRect(fill="#FFFFFF", colour="#000000", linewidth=0.5, linetype="solid"),
            "text": ElementText(
                colour="#000000", size=base_size, face="plain", family="", hjust=0.5, vjust=0.5, angle=0.0,
                margin=margin(),
            ),
            "axis_line": ElementBlank(),
            "axis_text": ElementText(size=rel(0.8), colour="#4D4D4D"),
            "axis_text_x": ElementText(margin=margin(t=0.8 * half_line / 2), vjust=1.0),
            "axis_text_y": ElementText(margin=margin(r=0.8 * half_line / 2), hjust=1.0),
            "axis_ticks": ElementLine(colour="#333333"),
            "axis_title_x": ElementText(margin=margin(t=half_line / 2), vjust=1.0),
            "axis_title_y": ElementText(angle=90.0, margin=margin(r=half_line / 2), vjust=1.0),
            "legend_background": ElementRect(colour=NA),
            "legend_key": ElementRect(fill="#F2F2F2", colour=NA),
            "legend_text": ElementText(size=rel(0.8)),
            "legend_title": ElementText(hjust=0.0),
            "panel_background": ElementRect(fill="#EBEBEB", colour=NA),
            "panel_border": ElementBlank(),
            "panel_grid": ElementLine(colour="#FFFFFF"),
            "panel_grid_minor": ElementLine(linewidth=rel(0.5)),
            "plot_background": ElementRect(colour="#FFFFFF"),
            "plot_title": ElementText(size=rel(1.2), hjust=0.0, vjust=1.0, margin=margin(b=half_line)),
            "plot_subtitle": ElementText(hjust=0.0, vjust=1.0, margin=margin(b=half_line)),
            "plot_caption": ElementText(size=rel(0.8), hjust=1.0, vjust=1.0, margin=margin(t=half_line)),
            "plot_tag": ElementText(size=rel(1.2), hjust=0.5, vjust=0.5),
            "strip_background": ElementRect(fill="#D9D9D9", colour=NA),
            "strip_text": ElementText(colour="#1A1A1A", size=rel(0.8), margin=margin(0.8 * half_line, 0.8 * half_line, 0.8 * half_line, 0.8 * half_line)),
            "strip_text_y": ElementText(angle=-90.0),
        },
        complete=True,
    )


theme_gray = theme_grey


def theme_bw(base_size: float = 11.0) -> Theme:
    """White panel with a dark border and light grid."""
    base = theme_grey(base_size) + theme(
        panel_background=ElementRect(fill="#FFFFFF", colour=NA),
        panel_border=ElementRect(fill=NA, colour="#333333"),
        panel_grid=ElementLine(colour="#EBEBEB"),
        panel_grid_minor=ElementLine(linewidth=rel(0.5)),
        strip_background=ElementRect(fill="#D9D9D9", colour="#333333"),
        legend_key=ElementRect(fill="#FFFFFF", colour=NA),
    )
    return Theme(base._values, complete=True)


def theme_minimal(base_size: float = 11.0) -> Theme:
    """No backgrounds, borders or ticks; grid only."""
    base = theme_bw(base_size) + theme(
        axis_ticks=ElementBlank(),
        legend_background=ElementBlank(),
        legend_key=ElementBlank(),
        panel_background=ElementBlank(),
        panel_border=ElementBlank(),
        strip_background=ElementBlank(),
        plot_background=ElementBlank(),
    )
    return Theme(base._values, complete=True)


def theme_void(base_size: float = 11.0) -> Theme:
    """Nothing but the data (and legends)."""
    return Theme(
        {
            "line": ElementBlank(),
            "rect": ElementBlank(),
            "text": ElementText(
                colour="#000000", size=base_size, face="plain", family="", hjust=0.5, vjust=0.5, angle=0.0,
                margin=margin(),
            ),
            "axis_text": ElementBlank(),
            "axis_title": ElementBlank(),
            "legend_text": ElementText(size=rel(0.8)),
            "legend_title": ElementText(hjust=0.0),
            "strip_text": ElementText(size=rel(0.8)),
            "plot_title": ElementText(size=rel(1.2), hjust=0.0, vjust=1.0),
            "plot_subtitle": ElementText(hjust=0.0, vjust=1.0),
            "plot_caption": ElementText(size=rel(0.8), hjust=1.0, vjust=1.0),
            "plot_tag": ElementText(size=rel(1.2)),
            "axis_ticks_length": 0.0,
        },
        complete=True,
    )


# SECTION: Element rendering [id: element-render]
# =============================================================================

_CHAR_WIDTH = 0.6
_LINE_HEIGHT = 1.2


def text_extent(label: str, size_px: float, angle: float = 0.0) -> tuple[float, float]:
    """Estimated ``(width, height)`` in pixels of a rotated text label.

    No font metrics are consulted: each character is assumed to be
    ``0.6 * size_px`` wide and each line ``1.2 * size_px`` high.
    """
    lines = str(label).split("\n") if label else []
    if not lines:
        return (0.0, 0.0)
    width = max(len(line) for line in lines) * _CHAR_WIDTH * size_px
    height = len(lines) * _LINE_HEIGHT * size_px
    theta = math.radians(angle % 180)
    rotated_w = abs(width * math.cos(theta)) + abs(height * math.sin(theta))
    rotated_h = abs(width * math.sin(theta)) + abs(height * math.cos(theta))
    return (rotated_w, rotated_h)


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _px(value: Optional[float], scale: float, default: float) -> float:
    return default if value is None else float(value) * scale


def render_line(element: Any, x: Sequence[float], y: Sequence[float], *, name: str, units: str = "npc") -> Optional[Path]:
    """Path leaf for a line element, or ``None`` when the element is blank."""
    if element is None or isinstance(element, ElementBlank) or element.colour is None:
        return None
    return Path(
        name=name,
        units=units,
        x=tuple(float(v) for v in x),
        y=tuple(float(v) for v in y),
        colour=element.colour,
        linewidth=_px(element.linewidth, MM_TO_PX, 0.5 * MM_TO_PX),
        linetype=element.linetype or "solid",
    )


def render_rect(
    element: Any,
    x0: float,
    y0: float,
    x1: float,
    y1: float,
    *,
    name: str,
    units: str = "npc",
) -> Optional[Polygon]:
    """Polygon leaf for a rect element, or ``None`` when there is nothing to draw."""
    if element is None or isinstance(element, ElementBlank):
        return None
    if element.fill is None and element.colour is None:
        return None
    return Polygon(
        name=name,
        units=units,
        x=(x0, x1, x1, x0),
        y=(y0, y0, y1, y1),
        colour=element.colour,
        fill=element.fill,
        linewidth=_px(element.linewidth, MM_TO_PX, 0.5 * MM_TO_PX),
        linetype=element.linetype or "solid",
    )


def render_text(
    element: Any,
    x: Sequence[float],
    y: Sequence[float],
    labels: Sequence[str],
    *,
    name: str,
    units: str = "px",
    hjust: Any = None,
    vjust: Any = None,
) -> Optional[Text]:
    """Text leaf for a text element, or ``None`` when blank or empty."""
    if element is None or isinstance(element, ElementBlank) or not len(labels):
        return None
    return Text.build(
        x,
        y,
        list(labels),
        name=name,
        units=units,
        colour=element.colour or "#000000",
        size=_px(element.size, PT_TO_PX, 11 * PT_TO_PX),
        angle=element.angle or 0.0,
        hjust=_first(hjust, element.hjust, 0.5),
        vjust=_first(vjust, element.vjust, 0.5),
        fontface=element.face or "plain",
    )


def text_size_px(element: Any) -> float:
    if element is None or isinstance(element, ElementBlank):
        return 0.0
    return _px(element.size, PT_TO_PX, 11 * PT_TO_PX)


def text_margins_px(element: Any) -> tuple[float, float, float, float]:
    if element is None or isinstance(element, ElementBlank) or element.margin is None:
        return (0.0, 0.0, 0.0, 0.0)
    return tuple(m * PT_TO_PX for m in element.margin)  # type: ignore[return-value]


def text_block(element: Any, labels: Sequence[str]) -> tuple[float, float]:
    """Width and height in pixels taken by ``labels`` drawn with ``element``, margins included."""
    if element is None or isinstance(element, ElementBlank) or not len(labels):
        return (0.0, 0.0)
    size = text_size_px(element)
    extents = [text_extent(label, size, element.angle or 0.0) for label in labels]
    t, r, b, l = text_margins_px(element)
    return (max(w for w, _ in extents) + l + r, max(h for _, h in extents) + t + b)
