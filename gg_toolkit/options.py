"""Package-wide build options and a thread-local override stack.

Purpose
-------
Options are plain defaults consulted by the pipeline when a plot does not say
otherwise: output size, what to do when a statistic fails on one partition,
break counts, sampling resolution of smoothers and density estimates.

Architecture
------------
The global defaults live in one frozen :class:`PlotOptions`. Temporary
overrides are pushed on a thread-local stack by :func:`option_context`, so
concurrent builds in different threads never observe each other's overrides.
The innermost context wins.

Examples
--------
>>> from gg_toolkit.options import get_options, option_context
>>> get_options().stat_failure
'warn'
>>> with option_context(stat_failure="raise"):
...     get_options().stat_failure
'raise'
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, fields, replace
from typing import Any, Literal, Optional

__all__ = ["PlotOptions", "get_options", "set_options", "option_context"]

StatFailurePolicy = Literal["warn", "raise"]


@dataclass(frozen=True)
class PlotOptions:
    """Defaults used by the build and render stages.

    Parameters
    ----------
    width, height : float
        Default drawing size in pixels.
    stat_failure : {"warn", "raise"}
        ``"warn"`` drops a failing stat partition and records a diagnostic;
        ``"raise"`` aborts the build with ``StatComputationError``.
    jitter_seed : int or None
        Seed used by jitter adjustments that do not carry their own seed.
    n_breaks : int
        Target number of major breaks on continuous scales.
    smooth_points : int
        Number of evaluation points produced by ``StatSmooth``.
    density_points : int
        Number of evaluation points produced by ``StatDensity``.
    """

    width: float = 640.0
    height: float = 480.0
    stat_failure: StatFailurePolicy = "warn"
    jitter_seed: Optional[int] = None
    n_breaks: int = 5
    smooth_points: int = 80
    density_points: int = 512


_DEFAULTS = PlotOptions()
_OPTION_NAMES = frozenset(f.name for f in fields(PlotOptions))
_OPTIONS_LOCAL = threading.local()


def _option_stack() -> list[PlotOptions]:
    """Return the thread-local override stack."""
    stack = getattr(_OPTIONS_LOCAL, "stack", None)
    if stack is None:
        stack = []
        _OPTIONS_LOCAL.stack = stack
    return stack


def _validated(base: PlotOptions, overrides: dict[str, Any]) -> PlotOptions:
    unknown = sorted(set(overrides) - _OPTION_NAMES)
    if unknown:
        raise TypeError(
            f"Unknown option(s): {', '.join(unknown)}. "
            f"Valid options are: {', '.join(sorted(_OPTION_NAMES))}."
        )
    policy = overrides.get("stat_failure", base.stat_failure)
    if policy not in ("warn", "raise"):
        raise ValueError(f"stat_failure must be 'warn' or 'raise', got {policy!r}")
    for name in ("width", "height"):
        if name in overrides and float(overrides[name]) <= 0:
            raise ValueError(f"{name} must be > 0")
    return replace(base, **overrides)


def get_options() -> PlotOptions:
    """Return the options in effect for the current thread."""
    stack = _option_stack()
    if stack:
        return stack[-1]
    return _DEFAULTS


def set_options(**overrides: Any) -> PlotOptions:
    """Replace the global defaults and return the new value.

    Overrides active in an :func:`option_context` keep precedence until the
    context exits.
    """
    global _DEFAULTS
    _DEFAULTS = _validated(_DEFAULTS, overrides)
    return _DEFAULTS


@contextmanager
def option_context(**overrides: Any) -> Iterator[PlotOptions]:
    """Temporarily override options for the current thread.

    Yields
    ------
    PlotOptions
        The options in effect inside the context.
    """
    current = _validated(get_options(), overrides)
    stack = _option_stack()
    stack.append(current)
    try:
        yield current
    finally:
        stack.pop()
