"""Drawing Primitive Tree.

Purpose
-------
The build pipeline ends in an immutable tree handed to a draw-primitive
executor (see :mod:`gg_toolkit.plotly_executor`). Leaves are typed,
vectorised primitives with fully resolved visual attributes; internal nodes
are named :class:`Container` objects.

Units
-----
Geoms emit leaves in *npc* (normalised panel coordinates, ``[0, 1]`` inside
the panel). :meth:`Container.placed` resolves npc leaves into pixels for a
:class:`Viewport`. Pixel space has its origin at the bottom-left corner of
the plot. Sizes (point diameter, line width, font size) are always pixels;
:data:`MM_TO_PX` and :data:`PT_TO_PX` convert from the millimetre and point
units aesthetics are expressed in.

Executors must address nodes by name (:meth:`Container.find`), never by
position: the number of children depends on the data.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field, fields, replace
from typing import Any, Optional, Union

import numpy as np

__all__ = [
    "MM_TO_PX",
    "PT_TO_PX",
    "Viewport",
    "Point",
    "Path",
    "Polygon",
    "Text",
    "Raster",
    "Container",
    "Leaf",
    "PRIMITIVE_SCHEMA",
    "validate_tree",
]

MM_TO_PX = 96.0 / 25.4
PT_TO_PX = 96.0 / 72.0


def _floats(values: Any) -> tuple[float, ...]:
    return tuple(float(v) for v in np.atleast_1d(np.asarray(values, dtype=float)))


def _items(values: Any, n: int) -> tuple[Any, ...]:
    if isinstance(values, (str, bytes)) or values is None or np.isscalar(values):
        return (values,) * n
    items = tuple(values)
    if len(items) == 1 and n != 1:
        return items * n
    return items


@dataclass(frozen=True)
class Viewport:
    """Rectangle in pixels, origin bottom-left."""

    x: float
    y: float
    width: float
    height: float

    def px_x(self, values: Sequence[float]) -> tuple[float, ...]:
        return tuple(self.x + v * self.width for v in values)

    def px_y(self, values: Sequence[float]) -> tuple[float, ...]:
        return tuple(self.y + v * self.height for v in values)

    def shifted(self, dx: float, dy: float) -> "Viewport":
        return Viewport(self.x + dx, self.y + dy, self.width, self.height)

    def contains(self, other: "Viewport", tol: float = 1e-6) -> bool:
        return (
            other.x >= self.x - tol
            and other.y >= self.y - tol
            and other.x + other.width <= self.x + self.width + tol
            and other.y + other.height <= self.y + self.height + tol
        )


# SECTION: Leaves [id: leaves]
# =============================================================================


@dataclass(frozen=True)
class _Leaf:
    name: str = ""
    units: str = "npc"

    kind = "leaf"
    _x_fields = ()
    _y_fields = ()

    def placed(self, viewport: Viewport) -> "_Leaf":
        """Resolve npc coordinates into pixels inside ``viewport``."""
        if self.units == "px":
            return self
        changes: dict[str, Any] = {"units": "px"}
        for f in self._x_fields:
            changes[f] = viewport.px_x(getattr(self, f))
        for f in self._y_fields:
            changes[f] = viewport.px_y(getattr(self, f))
        return replace(self, **changes)

    def shifted(self, dx: float, dy: float) -> "_Leaf":
        """Translate a pixel-space leaf."""
        changes: dict[str, Any] = {}
        for f in self._x_fields:
            changes[f] = tuple(v + dx for v in getattr(self, f))
        for f in self._y_fields:
            changes[f] = tuple(v + dy for v in getattr(self, f))
        return replace(self, **changes)


@dataclass(frozen=True)
class Point(_Leaf):
    """Markers; every attribute holds one value per marker."""

    x: tuple[float, ...] = ()
    y: tuple[float, ...] = ()
    size: tuple[float, ...] = ()
    shape: tuple[Any, ...] = ()
    colour: tuple[Any, ...] = ()
    fill: tuple[Any, ...] = ()
    alpha: tuple[float, ...] = ()
    stroke: tuple[float, ...] = ()

    kind = "point"
    _x_fields = ("x",)
    _y_fields = ("y",)

    @classmethod
    def build(cls, x: Any, y: Any, *, name: str = "", units: str = "npc", **attrs: Any) -> "Point":
        xs, ys = _floats(x), _floats(y)
        n = len(xs)
        return cls(
            name=name,
            units=units,
            x=xs,
            y=ys,
            size=_floats(_items(attrs.get("size", 1.5 * MM_TO_PX), n)),
            shape=_items(attrs.get("shape", "circle"), n),
            colour=_items(attrs.get("colour", "#000000"), n),
            fill=_items(attrs.get("fill"), n),
            alpha=_floats(_items(attrs.get("alpha", 1.0), n)),
            stroke=_floats(_items(attrs.get("stroke", 0.5 * MM_TO_PX), n)),
        )


@dataclass(frozen=True)
class Path(_Leaf):
    """Open polyline with uniform attributes. Missing coordinates break the line."""

    x: tuple[float, ...] = ()
    y: tuple[float, ...] = ()
    colour: Any = "#000000"
    linewidth: float = 0.5 * MM_TO_PX
    linetype: Any = "solid"
    alpha: float = 1.0

    kind = "path"
    _x_fields = ("x",)
    _y_fields = ("y",)


@dataclass(frozen=True)
class Polygon(_Leaf):
    """Closed filled ring with uniform attributes."""

    x: tuple[float, ...] = ()
    y: tuple[float, ...] = ()
    colour: Any = None
    fill: Any = "#595959"
    linewidth: float = 0.5 * MM_TO_PX
    linetype: Any = "solid"
    alpha: float = 1.0

    kind = "polygon"
    _x_fields = ("x",)
    _y_fields = ("y",)


@dataclass(frozen=True)
class Text(_Leaf):
    """Text labels; one value per label for every vector attribute."""

    x: tuple[float, ...] = ()
    y: tuple[float, ...] = ()
    label: tuple[str, ...] = ()
    colour: tuple[Any, ...] = ()
    size: tuple[float, ...] = ()
    angle: tuple[float, ...] = ()
    hjust: tuple[float, ...] = ()
    vjust: tuple[float, ...] = ()
    alpha: tuple[float, ...] = ()
    fontface: str = "plain"

    kind = "text"
    _x_fields = ("x",)
    _y_fields = ("y",)

    @classmethod
    def build(cls, x: Any, y: Any, label: Any, *, name: str = "", units: str = "npc", **attrs: Any) -> "Text":
        xs, ys = _floats(x), _floats(y)
        n = len(xs)
        return cls(
            name=name,
            units=units,
            x=xs,
            y=ys,
            label=tuple(str(v) for v in _items(label, n)),
            colour=_items(attrs.get("colour", "#000000"), n),
            size=_floats(_items(attrs.get("size", 11 * PT_TO_PX), n)),
            angle=_floats(_items(attrs.get("angle", 0.0), n)),
            hjust=_floats(_items(attrs.get("hjust", 0.5), n)),
            vjust=_floats(_items(attrs.get("vjust", 0.5), n)),
            alpha=_floats(_items(attrs.get("alpha", 1.0), n)),
            fontface=attrs.get("fontface", "plain"),
        )


@dataclass(frozen=True)
class Raster(_Leaf):
    """Image of ``colours`` (rows listed top to bottom) stretched over a rectangle."""

    xmin: tuple[float, ...] = ()
    ymin: tuple[float, ...] = ()
    xmax: tuple[float, ...] = ()
    ymax: tuple[float, ...] = ()
    colours: tuple[tuple[Any, ...], ...] = ()
    alpha: float = 1.0
    interpolate: bool = False

    kind = "raster"
    _x_fields = ("xmin", "xmax")
    _y_fields = ("ymin", "ymax")


Leaf = Union[Point, Path, Polygon, Text, Raster]

PRIMITIVE_SCHEMA: dict[str, tuple[str, ...]] = {
    "point": ("x", "y", "size", "shape", "colour", "fill", "alpha", "stroke"),
    "path": ("x", "y", "colour", "linewidth", "linetype", "alpha"),
    "polygon": ("x", "y", "colour", "fill", "linewidth", "linetype", "alpha"),
    "text": ("x", "y", "label", "colour", "size", "angle", "hjust", "vjust", "alpha"),
    "raster": ("xmin", "ymin", "xmax", "ymax", "colours", "alpha"),
}

# Attributes holding one value per element.
_VECTOR_ATTRS: dict[str, tuple[str, ...]] = {
    "point": PRIMITIVE_SCHEMA["point"],
    "path": ("x", "y"),
    "polygon": ("x", "y"),
    "text": PRIMITIVE_SCHEMA["text"],
    "raster": ("xmin", "ymin", "xmax", "ymax"),
}


# SECTION: Containers [id: Container]
# =============================================================================


@dataclass(frozen=True)
class Container:
    """Named grouping node, optionally positioned by a viewport."""

    name: str
    children: tuple[Any, ...] = field(default_factory=tuple)
    viewport: Optional[Viewport] = None

    kind = "container"

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(c for c in self.children if c is not None))

    def walk(self) -> Iterator[Any]:
        """Yield this node and every descendant, depth first."""
        yield self
        for child in self.children:
            if isinstance(child, Container):
                yield from child.walk()
            else:
                yield child

    def leaves(self) -> Iterator[Leaf]:
        for node in self.walk():
            if not isinstance(node, Container):
                yield node

    def find(self, name: str) -> Optional[Any]:
        """First node named ``name`` (depth first), or ``None``."""
        for node in self.walk():
            if node.name == name:
                return node
        return None

    def find_all(self, prefix: str) -> list[Any]:
        return [node for node in self.walk() if node.name.startswith(prefix)]

    def placed(self, viewport: Viewport) -> "Container":
        """Resolve every npc leaf below this node into ``viewport`` pixels."""
        children = tuple(
            child.placed(viewport) if isinstance(child, (Container, _Leaf)) else child
            for child in self.children
        )
        return Container(self.name, children, self.viewport or viewport)

    def shifted(self, dx: float, dy: float) -> "Container":
        """Translate a pixel-space subtree."""
        children = tuple(child.shifted(dx, dy) for child in self.children)
        viewport = self.viewport.shifted(dx, dy) if self.viewport is not None else None
        return Container(self.name, children, viewport)

    def with_children(self, children: Iterable[Any]) -> "Container":
        return Container(self.name, tuple(children), self.viewport)


def validate_tree(tree: Container, *, require_px: bool = True) -> None:
    """Check every leaf against :data:`PRIMITIVE_SCHEMA`.

    Raises
    ------
    ValueError
        On an unknown leaf kind, a missing attribute, vector attributes of
        unequal length, or (with ``require_px``) an unresolved npc leaf.
    """
    for node in tree.walk():
        if isinstance(node, Container):
            continue
        kind = getattr(node, "kind", None)
        if kind not in PRIMITIVE_SCHEMA:
            raise ValueError(f"Unknown primitive kind {kind!r} at {node.name!r}")
        names = {f.name for f in fields(node)}
        missing = [a for a in PRIMITIVE_SCHEMA[kind] if a not in names]
        if missing:
            raise ValueError(f"{kind} primitive {node.name!r} lacks attributes {missing}")
        lengths = {a: len(getattr(node, a)) for a in _VECTOR_ATTRS[kind]}
        if len(set(lengths.values())) > 1:
            raise ValueError(f"{kind} primitive {node.name!r} has unequal attribute lengths {lengths}")
        if require_px and node.units != "px":
            raise ValueError(f"{kind} primitive {node.name!r} is not resolved to pixels")
        for attr in ("x", "y"):
            if attr in names and kind in ("point", "text"):
                if any(math.isnan(v) for v in getattr(node, attr)):
                    raise ValueError(f"{kind} primitive {node.name!r} has missing {attr} coordinates")
