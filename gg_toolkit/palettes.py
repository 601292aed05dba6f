"""Palettes used by non-position scales.

Colour handling relies on :mod:`plotly.colors` (qualitative palettes, hex/rgb
parsing and interpolation) so the colours produced by scales are exactly the
ones the Plotly executor understands. Shapes and line types are named with
Plotly's marker symbol and dash vocabularies for the same reason.
"""

from __future__ import annotations

import colorsys
import logging
from collections.abc import Sequence
from typing import Any, Callable, Optional

import numpy as np
from plotly import colors as pc

from .breaks import rescale

__all__ = [
    "MAX_SHAPES",
    "SHAPES",
    "LINETYPES",
    "to_hex",
    "colour_to_rgb",
    "hue_palette",
    "gradient_palette",
    "area_palette",
    "rescale_palette",
    "shape_palette",
    "linetype_palette",
    "manual_palette",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

SHAPES = ("circle", "triangle-up", "square", "cross", "diamond", "x")
MAX_SHAPES = len(SHAPES)
LINETYPES = ("solid", "dash", "dot", "dashdot", "longdash", "longdashdot")


def to_hex(rgb: Sequence[float]) -> str:
    """Return ``#RRGGBB`` for an ``(r, g, b)`` triple in 0–255."""
    r, g, b = (int(round(min(255.0, max(0.0, float(c))))) for c in rgb[:3])
    return f"#{r:02X}{g:02X}{b:02X}"


def colour_to_rgb(colour: str) -> tuple[float, float, float]:
    """Parse ``#RRGGBB``/``#RGB`` or ``rgb(r, g, b)`` into a 0–255 triple."""
    text = str(colour).strip()
    if text.startswith("#"):
        if len(text) == 4:
            text = "#" + "".join(ch * 2 for ch in text[1:])
        return tuple(float(c) for c in pc.hex_to_rgb(text[:7]))  # type: ignore[return-value]
    if text.startswith("rgb"):
        return tuple(float(c) for c in pc.unlabel_rgb(text)[:3])  # type: ignore[return-value]
    raise ValueError(
        f"Colour {colour!r} must be given as '#RRGGBB' or 'rgb(r, g, b)' to be interpolated"
    )


def hue_palette(n: int) -> list[str]:
    """Return ``n`` distinguishable colours.

    Plotly's qualitative palettes are used while they are long enough; beyond
    that, hues are spaced evenly around the colour wheel.
    """
    if n <= 0:
        return []
    for palette in (pc.qualitative.Plotly, pc.qualitative.Alphabet):
        if n <= len(palette):
            return [str(c).upper() if str(c).startswith("#") else str(c) for c in palette[:n]]
    out = []
    for i in range(n):
        r, g, b = colorsys.hls_to_rgb(i / n, 0.6, 0.65)
        out.append(to_hex((r * 255, g * 255, b * 255)))
    return out


def gradient_palette(
    low: str = "#132B43",
    high: str = "#56B1F7",
    mid: Optional[str] = None,
) -> Callable[[np.ndarray], list[Optional[str]]]:
    """Return a function mapping values in ``[0, 1]`` to interpolated colours.

    Missing values map to ``None``.
    """
    stops = [colour_to_rgb(low)] + ([colour_to_rgb(mid)] if mid is not None else []) + [colour_to_rgb(high)]
    positions = np.linspace(0.0, 1.0, len(stops))

    def _palette(values: np.ndarray) -> list[Optional[str]]:
        out: list[Optional[str]] = []
        for v in np.asarray(values, dtype=float):
            if not np.isfinite(v):
                out.append(None)
                continue
            v = min(1.0, max(0.0, float(v)))
            idx = int(np.searchsorted(positions, v, side="right") - 1)
            idx = min(idx, len(stops) - 2)
            span = positions[idx + 1] - positions[idx]
            frac = (v - positions[idx]) / span
            out.append(to_hex(pc.find_intermediate_color(stops[idx], stops[idx + 1], frac)))
        return out

    return _palette


def rescale_palette(range_: Sequence[float] = (0.1, 1.0)) -> Callable[[np.ndarray], np.ndarray]:
    """Return a linear palette onto ``range_``."""

    def _palette(values: np.ndarray) -> np.ndarray:
        return rescale(values, (0.0, 1.0), range_)

    return _palette


def area_palette(range_: Sequence[float] = (1.0, 6.0)) -> Callable[[np.ndarray], np.ndarray]:
    """Return a palette proportional to the square root of the input (point areas)."""

    def _palette(values: np.ndarray) -> np.ndarray:
        arr = np.clip(np.asarray(values, dtype=float), 0.0, None)
        return rescale(np.sqrt(arr), (0.0, 1.0), range_)

    return _palette


def shape_palette(n: int) -> list[Optional[str]]:
    """Return ``n`` marker symbols; positions beyond :data:`MAX_SHAPES` are ``None``."""
    if n > MAX_SHAPES:
        logger.warning(
            "The shape palette can deal with a maximum of %d discrete values; "
            "%d values were supplied and the extra ones will be dropped",
            MAX_SHAPES,
            n,
        )
    return [SHAPES[i] if i < MAX_SHAPES else None for i in range(n)]


def linetype_palette(n: int) -> list[Optional[str]]:
    """Return ``n`` dash patterns; positions beyond the palette are ``None``."""
    if n > len(LINETYPES):
        logger.warning(
            "The linetype palette can deal with a maximum of %d discrete values", len(LINETYPES)
        )
    return [LINETYPES[i] if i < len(LINETYPES) else None for i in range(n)]


def manual_palette(values: Any) -> Callable[[int], list[Any]]:
    """Return a discrete palette serving ``values`` in order."""
    items = list(values)

    def _palette(n: int) -> list[Any]:
        if n > len(items):
            raise ValueError(
                f"Insufficient values in manual scale: {n} needed but only {len(items)} provided"
            )
        return items[:n]

    return _palette
