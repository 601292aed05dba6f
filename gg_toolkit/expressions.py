"""Compile aesthetic expressions into callables over Row Tables.

Purpose
-------
Aesthetic mappings name what to draw in terms of data columns. This module
turns each accepted mapping value into a :class:`CompiledExpression` that
knows which columns it needs and how to evaluate itself against a table.

Accepted forms
--------------
- a column name: the column is passed through unchanged (any dtype);
- an arithmetic expression string such as ``"log(y) * 2"``: parsed by SymPy
  with every bare identifier read as a column symbol, then compiled with
  :func:`sympy.lambdify` on NumPy;
- a SymPy expression whose free symbols name columns;
- a callable ``f(table) -> values``;
- a scalar constant, broadcast to every row.

Compiled string expressions are cached, the same way the numeric compiler of
the figure toolkit caches its generated callables.

Examples
--------
>>> import pandas as pd
>>> from gg_toolkit.expressions import compile_expression
>>> table = pd.DataFrame({"a": [1.0, 2.0], "b": [3.0, 4.0]})
>>> compiled = compile_expression("a * b + 1")
>>> compiled.columns
('a', 'b')
>>> compiled.evaluate(table).tolist()
[4.0, 9.0]
"""

from __future__ import annotations

import keyword
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from tokenize import TokenError
from typing import Any, Callable, Optional

import numpy as np
import pandas as pd
import sympy as sp
from sympy.parsing.sympy_parser import parse_expr, standard_transformations

from .errors import AestheticEvalError

__all__ = ["CompiledExpression", "compile_expression", "expression_label"]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# Bare identifiers that are not followed by a call parenthesis.
_IDENTIFIER = re.compile(r"(?<![\w.])([A-Za-z_]\w*)(?!\w)(?!\s*\()")
_CONSTANTS = frozenset({"pi", "E"})


@dataclass(frozen=True)
class CompiledExpression:
    """A mapping value ready to be evaluated against a Row Table.

    Parameters
    ----------
    source : Any
        The value the user wrote.
    label : str
        Human-readable form used for default titles.
    columns : tuple[str, ...]
        Columns the expression reads.
    kind : str
        ``"column"``, ``"expression"``, ``"callable"`` or ``"constant"``.
    """

    source: Any
    label: str
    columns: tuple[str, ...]
    kind: str
    _fn: Optional[Callable[..., Any]] = field(default=None, repr=False, compare=False)

    def missing(self, table: pd.DataFrame) -> tuple[str, ...]:
        """Return the referenced columns absent from ``table``."""
        return tuple(c for c in self.columns if c not in table.columns)

    def evaluate(self, table: pd.DataFrame, *, stage: str = "start") -> pd.Series:
        """Evaluate against ``table`` and return a Series aligned to its index.

        Raises
        ------
        AestheticEvalError
            If a referenced column is absent from ``table``.
        """
        missing = self.missing(table)
        if missing:
            raise AestheticEvalError(self.label, missing, stage)

        n = len(table)
        if self.kind == "column":
            return table[self.columns[0]]
        if self.kind == "constant":
            return pd.Series([self.source] * n, index=table.index, dtype=object).infer_objects()
        if self.kind == "callable":
            result = self.source(table)
        else:
            args = [table[c].to_numpy() for c in self.columns]
            result = self._fn(*args)

        if isinstance(result, pd.Series):
            if len(result) != n:
                raise AestheticEvalError(self.label, (), stage)
            return pd.Series(result.to_numpy(), index=table.index)
        arr = np.asarray(result)
        if arr.ndim == 0:
            arr = np.broadcast_to(arr, (n,)).copy()
        if arr.shape != (n,):
            raise ValueError(
                f"Aesthetic {self.label!r} produced {arr.shape[0] if arr.ndim else 1} "
                f"values for a table of {n} rows"
            )
        return pd.Series(arr, index=table.index)


@lru_cache(maxsize=256)
def _compile_text(text: str, column_constants: frozenset[str]) -> tuple[sp.Basic, tuple[str, ...], Callable[..., Any]]:
    """Parse ``text`` with bare identifiers bound to column symbols and lambdify it."""
    local: dict[str, Any] = {}
    for name in _IDENTIFIER.findall(text):
        if keyword.iskeyword(name):
            continue
        if name in _CONSTANTS and name not in column_constants:
            continue
        local[name] = sp.Symbol(name)
    expr = parse_expr(text, local_dict=local, transformations=standard_transformations)
    symbols = tuple(sorted(expr.free_symbols, key=lambda s: s.name))
    fn = sp.lambdify(symbols, expr, modules="numpy")
    logger.debug("compiled aesthetic expression %r over %s", text, [s.name for s in symbols])
    return expr, tuple(s.name for s in symbols), fn


def _compile_sympy(expr: sp.Basic, label: str) -> CompiledExpression:
    symbols = tuple(sorted(expr.free_symbols, key=lambda s: s.name))
    fn = sp.lambdify(symbols, expr, modules="numpy")
    return CompiledExpression(
        source=expr,
        label=label,
        columns=tuple(s.name for s in symbols),
        kind="expression",
        _fn=fn,
    )


def compile_expression(value: Any, available: Optional[Any] = None) -> CompiledExpression:
    """Compile a mapping value.

    Parameters
    ----------
    value : Any
        Column name, expression string, SymPy expression, callable or scalar.
    available : iterable of str, optional
        Column names of the table the expression will run against. A string
        that exactly names one of them is a direct column reference even if
        it is not a valid identifier.

    Returns
    -------
    CompiledExpression
    """
    names = frozenset(available) if available is not None else frozenset()

    if isinstance(value, str):
        if value in names or (
            value.isidentifier() and not keyword.iskeyword(value) and value not in _CONSTANTS
        ):
            return CompiledExpression(source=value, label=value, columns=(value,), kind="column")
        try:
            expr, columns, fn = _compile_text(value, names & _CONSTANTS)
        except (sp.SympifyError, SyntaxError, TypeError, TokenError) as exc:
            logger.debug("could not parse %r as an expression: %s", value, exc)
            # Treated as a reference to a column named by the raw text.
            return CompiledExpression(source=value, label=value, columns=(value,), kind="column")
        if isinstance(expr, sp.Symbol):
            return CompiledExpression(source=value, label=value, columns=(expr.name,), kind="column")
        return CompiledExpression(source=value, label=value, columns=columns, kind="expression", _fn=fn)

    if isinstance(value, sp.Symbol):
        return CompiledExpression(source=value, label=value.name, columns=(value.name,), kind="column")
    if isinstance(value, sp.Basic):
        return _compile_sympy(value, str(value))
    if callable(value):
        label = getattr(value, "__name__", None) or type(value).__name__
        return CompiledExpression(source=value, label=label, columns=(), kind="callable")
    if isinstance(value, (int, float, bool, np.number, np.bool_)) or value is None:
        return CompiledExpression(source=value, label=repr(value), columns=(), kind="constant")
    raise TypeError(
        "Aesthetic values must be a column name, expression string, SymPy expression, "
        f"callable or scalar constant; got {type(value).__name__}"
    )


def expression_label(value: Any) -> str:
    """Return the label used for default axis and legend titles."""
    return compile_expression(value).label

