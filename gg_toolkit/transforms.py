"""Scale and coordinate transforms with exact inverses.

Purpose
-------
A :class:`Transform` is a forward function, its exact inverse, the open
domain on which the forward function is defined, and a break generator in
data space. Scales apply transforms *before* statistics; coordinate systems
apply them *after* statistics. Both use the same objects.

Transforms can be defined symbolically: :meth:`Transform.from_expression`
takes a SymPy expression in one variable, derives the inverse with
:func:`sympy.solve`, and compiles both directions to NumPy callables. The
built-in transforms are defined this way.

Examples
--------
>>> import numpy as np
>>> from gg_toolkit.transforms import get_transform
>>> t = get_transform("log10")
>>> t.transform(np.array([1.0, 10.0, 100.0])).tolist()
[0.0, 1.0, 2.0]
>>> t.inverse(np.array([2.0])).tolist()
[100.0]
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Optional, Union

import numpy as np
import sympy as sp

from .breaks import extended_breaks, log_breaks
from .errors import ScaleDomainError

__all__ = ["Transform", "get_transform", "TRANSFORM_NAMES"]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

BreaksFn = Callable[[float, float, int], np.ndarray]


def _probe_point(domain: tuple[float, float]) -> float:
    lo, hi = domain
    if math.isinf(lo) and math.isinf(hi):
        return 0.75
    if math.isinf(hi):
        return lo + 1.75
    if math.isinf(lo):
        return hi - 1.75
    return lo + (hi - lo) * 0.375


@dataclass(frozen=True)
class Transform:
    """Forward/inverse function pair on an open domain.

    Parameters
    ----------
    name : str
        Identifier, e.g. ``"log10"``.
    forward : callable
        Vectorised forward function.
    inverse : callable
        Vectorised exact inverse of ``forward``.
    domain : tuple[float, float]
        Open interval of valid inputs.
    include_lower : bool
        Whether the lower end of ``domain`` itself is valid (``sqrt`` accepts 0).
    breaks_fn : callable or None
        ``breaks_fn(lo, hi, n)`` producing breaks in data space; defaults to
        :func:`~gg_toolkit.breaks.extended_breaks`.
    """

    name: str
    forward: Callable[[np.ndarray], np.ndarray] = field(repr=False)
    inverse: Callable[[np.ndarray], np.ndarray] = field(repr=False)
    domain: tuple[float, float] = (-math.inf, math.inf)
    include_lower: bool = False
    breaks_fn: Optional[BreaksFn] = field(default=None, repr=False)

    @property
    def is_identity(self) -> bool:
        return self.name == "identity"

    def transform(self, values: Any) -> np.ndarray:
        """Apply the forward function.

        Raises
        ------
        ScaleDomainError
            If a finite value lies outside the open domain.
        """
        arr = np.asarray(values, dtype=float)
        if self.is_identity:
            return arr.copy()
        lo, hi = self.domain
        finite = np.isfinite(arr)
        below = arr < lo if self.include_lower else arr <= lo
        bad = finite & (below | (arr >= hi))
        if np.any(bad):
            sample = arr[bad][:3].tolist()
            raise ScaleDomainError(
                f"Transform {self.name!r} is only defined on ({lo}, {hi}); "
                f"got {int(bad.sum())} value(s) outside it, e.g. {sample}"
            )
        with np.errstate(divide="ignore", invalid="ignore"):
            out = np.asarray(self.forward(arr), dtype=float)
        return np.broadcast_to(out, arr.shape).copy()

    def inverse_transform(self, values: Any) -> np.ndarray:
        """Apply the inverse function."""
        arr = np.asarray(values, dtype=float)
        if self.is_identity:
            return arr.copy()
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            out = np.asarray(self.inverse(arr), dtype=float)
        return np.broadcast_to(out, arr.shape).copy()

    def breaks(self, lo: float, hi: float, n: int = 5) -> np.ndarray:
        """Return breaks in data space for the data-space range ``[lo, hi]``."""
        fn = self.breaks_fn or extended_breaks
        return np.asarray(fn(lo, hi, n), dtype=float)

    @classmethod
    def from_expression(
        cls,
        name: str,
        expr: sp.Expr,
        var: sp.Symbol,
        *,
        domain: tuple[float, float] = (-math.inf, math.inf),
        include_lower: bool = False,
        breaks_fn: Optional[BreaksFn] = None,
    ) -> "Transform":
        """Build a transform from ``expr(var)`` with a symbolically derived inverse.

        Raises
        ------
        ValueError
            If no solution of ``expr(var) = y`` inverts ``expr`` on the domain.
        """
        y = sp.Dummy("y")
        solutions = sp.solve(sp.Eq(expr, y), var)
        if not solutions:
            raise ValueError(f"Could not invert transform {name!r}: {expr}")
        forward = sp.lambdify(var, expr, modules="numpy")
        probe = _probe_point(domain)
        fy = float(forward(probe))
        for solution in solutions:
            inverse = sp.lambdify(y, solution, modules="numpy")
            try:
                back = complex(inverse(fy))
            except (TypeError, ValueError, ZeroDivisionError):
                continue
            if abs(back.imag) < 1e-9 and math.isclose(back.real, probe, rel_tol=1e-9, abs_tol=1e-12):
                logger.debug("transform %s: inverse of %s is %s", name, expr, solution)
                return cls(
                    name=name,
                    forward=forward,
                    inverse=inverse,
                    domain=domain,
                    include_lower=include_lower,
                    breaks_fn=breaks_fn,
                )
        raise ValueError(f"No solution of {expr} = y inverts transform {name!r} on {domain}")


def _log_breaks_for(base: float) -> BreaksFn:
    def _breaks(lo: float, hi: float, n: int) -> np.ndarray:
        return log_breaks(lo, hi, base=base, n=n)

    return _breaks


def _identity() -> Transform:
    return Transform(name="identity", forward=lambda v: v, inverse=lambda v: v)


_X = sp.Symbol("x", real=True)
_POSITIVE = (0.0, math.inf)

_BUILDERS: dict[str, Callable[[], Transform]] = {
    "identity": _identity,
    "log10": lambda: Transform.from_expression(
        "log10", sp.log(_X, 10), _X, domain=_POSITIVE, breaks_fn=_log_breaks_for(10.0)
    ),
    "log2": lambda: Transform.from_expression(
        "log2", sp.log(_X, 2), _X, domain=_POSITIVE, breaks_fn=_log_breaks_for(2.0)
    ),
    "log": lambda: Transform.from_expression(
        "log", sp.log(_X), _X, domain=_POSITIVE, breaks_fn=_log_breaks_for(math.e)
    ),
    "sqrt": lambda: Transform.from_expression(
        "sqrt", sp.sqrt(_X), _X, domain=_POSITIVE, include_lower=True
    ),
    "reverse": lambda: Transform.from_expression("reverse", -_X, _X),
    "exp": lambda: Transform.from_expression("exp", sp.exp(_X), _X),
    "reciprocal": lambda: Transform.from_expression(
        "reciprocal", 1 / _X, _X, domain=_POSITIVE
    ),
}

TRANSFORM_NAMES = tuple(_BUILDERS)


@lru_cache(maxsize=None)
def _builtin(name: str) -> Transform:
    return _BUILDERS[name]()


def get_transform(spec: Union[str, Transform, None]) -> Transform:
    """Return a transform from a name, an instance, or ``None`` (identity)."""
    if spec is None:
        return _builtin("identity")
    if isinstance(spec, Transform):
        return spec
    if isinstance(spec, str):
        if spec not in _BUILDERS:
            raise ValueError(
                f"Unknown transform {spec!r}; choose one of {', '.join(TRANSFORM_NAMES)}"
            )
        return _builtin(spec)
    raise TypeError(f"Transform must be a name or Transform, got {type(spec).__name__}")
