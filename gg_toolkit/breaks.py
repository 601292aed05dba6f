"""Break, label and range arithmetic shared by scales, coords and guides."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

import numpy as np

__all__ = [
    "extended_breaks",
    "log_breaks",
    "minor_breaks",
    "format_labels",
    "expand_range",
    "rescale",
    "zero_range",
]

_NICE_STEPS = (1.0, 2.0, 2.5, 5.0, 10.0)


def zero_range(limits: Sequence[float], tol: float = 1000 * np.finfo(float).eps) -> bool:
    """Return True when both ends of ``limits`` coincide (relative tolerance)."""
    lo, hi = float(limits[0]), float(limits[1])
    if lo == hi:
        return True
    scale = max(abs(lo), abs(hi))
    return abs(hi - lo) <= tol * scale


def _decimals_for(step: float) -> int:
    if step <= 0 or not math.isfinite(step):
        return 0
    return max(0, int(-math.floor(math.log10(step))) + 2)


def extended_breaks(lo: float, hi: float, n: int = 5) -> np.ndarray:
    """Return "nice" breaks inside ``[lo, hi]``.

    Steps are drawn from ``{1, 2, 2.5, 5} x 10^k``; the smallest step that
    yields at most about ``n`` breaks is used.

    Examples
    --------
    >>> extended_breaks(0, 10).tolist()
    [0.0, 2.5, 5.0, 7.5, 10.0]
    """
    if not (math.isfinite(lo) and math.isfinite(hi)):
        return np.array([], dtype=float)
    if lo > hi:
        lo, hi = hi, lo
    if zero_range((lo, hi)):
        return np.array([lo], dtype=float)

    raw_step = (hi - lo) / max(n - 1, 1)
    magnitude = 10.0 ** math.floor(math.log10(raw_step))
    step = magnitude * 10.0
    for m in _NICE_STEPS:
        if m * magnitude >= raw_step * (1 - 1e-10):
            step = m * magnitude
            break

    start = math.ceil(lo / step - 1e-10) * step
    stop = math.floor(hi / step + 1e-10) * step
    count = int(round((stop - start) / step)) + 1
    out = start + step * np.arange(max(count, 0), dtype=float)
    return np.round(out, _decimals_for(step))


def log_breaks(lo: float, hi: float, base: float = 10.0, n: int = 5) -> np.ndarray:
    """Return integer powers of ``base`` inside ``[lo, hi]`` (data space).

    Falls back to :func:`extended_breaks` when fewer than two powers fit.
    """
    if not (math.isfinite(lo) and math.isfinite(hi)) or lo <= 0 or hi <= 0:
        return extended_breaks(lo, hi, n)
    lo_exp = math.ceil(math.log(lo, base) - 1e-10)
    hi_exp = math.floor(math.log(hi, base) + 1e-10)
    exps = np.arange(lo_exp, hi_exp + 1)
    if exps.size < 2:
        return extended_breaks(lo, hi, n)
    if exps.size > 2 * n:
        stride = int(math.ceil(exps.size / n))
        exps = exps[::stride]
    return np.power(float(base), exps.astype(float))


def minor_breaks(major: Sequence[float], limits: Sequence[float]) -> np.ndarray:
    """Return midpoints between consecutive major breaks, extended one step past each end."""
    arr = np.sort(np.asarray(major, dtype=float))
    if arr.size < 2:
        return np.array([], dtype=float)
    step = np.diff(arr)
    mids = arr[:-1] + step / 2
    lo, hi = sorted((float(limits[0]), float(limits[1])))
    extra = np.array([arr[0] - step[0] / 2, arr[-1] + step[-1] / 2])
    out = np.sort(np.concatenate([mids, extra]))
    return out[(out >= lo) & (out <= hi)]


def format_labels(values: Sequence[Any]) -> list[str]:
    """Return compact labels with a shared number of decimals.

    Non-numeric values are converted with ``str``.

    Examples
    --------
    >>> format_labels([0, 2.5, 5])
    ['0.0', '2.5', '5.0']
    >>> format_labels([10, 100, 1000])
    ['10', '100', '1000']
    """
    items = list(values)
    try:
        arr = np.asarray(items, dtype=float)
    except (TypeError, ValueError):
        return [str(v) for v in items]
    finite = arr[np.isfinite(arr)]
    if finite.size == 0:
        return [str(v) for v in items]
    biggest = float(np.max(np.abs(finite)))
    if biggest >= 1e6:
        return [f"{v:g}" if math.isfinite(v) else str(v) for v in arr]
    decimals = 0
    for decimals in range(0, 11):
        rounded = np.round(finite, decimals)
        if np.all(np.abs(rounded - finite) <= 1e-9 * np.maximum(1.0, np.abs(finite))):
            break
    out = []
    for v in arr:
        if not math.isfinite(v):
            out.append(str(v))
        elif decimals == 0:
            out.append(str(int(round(v))))
        else:
            out.append(f"{v:.{decimals}f}")
    return out


def expand_range(
    limits: Sequence[float],
    mult: float = 0.0,
    add: float = 0.0,
    zero_width: float = 1.0,
) -> tuple[float, float]:
    """Widen ``limits`` by a multiplicative and an additive constant on each side."""
    lo, hi = float(limits[0]), float(limits[1])
    if not (math.isfinite(lo) and math.isfinite(hi)):
        return lo, hi
    if zero_range((lo, hi)):
        return lo - zero_width / 2, hi + zero_width / 2
    span = hi - lo
    return lo - span * mult - add, hi + span * mult + add


def rescale(values: Any, from_range: Sequence[float], to: Sequence[float] = (0.0, 1.0)) -> np.ndarray:
    """Linearly map ``values`` from ``from_range`` onto ``to``."""
    arr = np.asarray(values, dtype=float)
    lo, hi = float(from_range[0]), float(from_range[1])
    if zero_range((lo, hi)):
        return np.full_like(arr, (to[0] + to[1]) / 2, dtype=float)
    return (arr - lo) / (hi - lo) * (to[1] - to[0]) + to[0]
