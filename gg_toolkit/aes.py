"""Aesthetic mappings and the two-stage Aesthetic Mapper.

Purpose
-------
An aesthetic mapping binds visual properties (``x``, ``colour``, ``size``,
...) to expressions over data columns. Mappings are evaluated in stages:

- ``"start"``: before statistics, against the layer's resolved data;
- ``"after_stat"``: after statistics, against the stat output, so computed
  variables such as ``count`` become available;
- ``"after_scale"``: after non-position scales have mapped values to visual
  values, against the mapped data.

:func:`after_stat`, :func:`after_scale` and :func:`stage` mark when a value is
evaluated. Referencing a column that does not exist yet at a stage raises
:class:`~gg_toolkit.errors.AestheticEvalError`.

Grouping
--------
:func:`add_group` assigns the reserved ``group_id`` column exactly once: the
interaction of every mapped aesthetic whose scale is discrete or binned, or
the explicit ``group`` aesthetic when one is mapped.

Examples
--------
>>> from gg_toolkit.aes import aes, after_stat
>>> m = aes(x="carat", y=after_stat("count"), color="cut")
>>> sorted(m)
['colour', 'x', 'y']
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Optional

import pandas as pd

from .expressions import compile_expression
from .row_table import GROUP, NO_GROUP, PANEL

__all__ = [
    "Aes",
    "Stage",
    "aes",
    "after_stat",
    "after_scale",
    "stage",
    "standardise_aes_name",
    "evaluate_mapping",
    "add_group",
    "mapping_label",
    "X_AESTHETICS",
    "Y_AESTHETICS",
    "POSITION_AESTHETICS",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

X_AESTHETICS = ("x", "xmin", "xmax", "xend", "xintercept")
Y_AESTHETICS = ("y", "ymin", "ymax", "yend", "yintercept")
POSITION_AESTHETICS = X_AESTHETICS + Y_AESTHETICS

_ALIASES = {
    "color": "colour",
    "col": "colour",
    "fg": "colour",
    "bg": "fill",
    "pch": "shape",
    "cex": "size",
    "lty": "linetype",
    "lwd": "linewidth",
    "srt": "angle",
    "adj": "hjust",
    "min": "ymin",
    "max": "ymax",
}

# Aesthetics never part of the group interaction.
_NON_GROUPING = frozenset({"label", PANEL, GROUP})


def standardise_aes_name(name: str) -> str:
    """Return the canonical spelling of an aesthetic name."""
    return _ALIASES.get(name, name)


@dataclass(frozen=True)
class Stage:
    """Staged aesthetic value.

    Each field holds the value evaluated at that stage, or ``None``.
    """

    start: Any = None
    after_stat: Any = None
    after_scale: Any = None

    def label(self) -> str:
        """Return the label of the most specific non-empty stage value."""
        for value in (self.start, self.after_stat, self.after_scale):
            if value is not None:
                return compile_expression(value).label
        return ""

    def __repr__(self) -> str:
        parts = [
            f"{name}={value!r}"
            for name, value in (
                ("start", self.start),
                ("after_stat", self.after_stat),
                ("after_scale", self.after_scale),
            )
            if value is not None
        ]
        return f"stage({', '.join(parts)})"


def after_stat(value: Any) -> Stage:
    """Mark ``value`` to be evaluated against the stat output."""
    return Stage(after_stat=value)


def after_scale(value: Any) -> Stage:
    """Mark ``value`` to be evaluated after non-position scales are mapped."""
    return Stage(after_scale=value)


def stage(start: Any = None, after_stat: Any = None, after_scale: Any = None) -> Stage:
    """Give one aesthetic a value per stage."""
    return Stage(start=start, after_stat=after_stat, after_scale=after_scale)


class Aes(Mapping):
    """Immutable mapping from canonical aesthetic names to mapping values."""

    __slots__ = ("_items",)

    def __init__(self, mapping: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
        items: dict[str, Any] = {}
        for source in (mapping or {}, kwargs):
            for key, value in source.items():
                items[standardise_aes_name(str(key))] = value
        self._items = items

    def __getitem__(self, key: str) -> Any:
        return self._items[standardise_aes_name(key)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and standardise_aes_name(key) in self._items

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Aes):
            return self._items == other._items
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted((k, repr(v)) for k, v in self._items.items())))

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v!r}" for k, v in self._items.items())
        return f"aes({inner})"

    def merged_over(self, base: Optional[Mapping[str, Any]]) -> "Aes":
        """Return ``base`` updated with this mapping (this mapping wins)."""
        combined = dict(base or {})
        combined.update(self._items)
        return Aes(combined)

    def without(self, *names: str) -> "Aes":
        """Return a copy without the given aesthetics."""
        drop = {standardise_aes_name(n) for n in names}
        return Aes({k: v for k, v in self._items.items() if k not in drop})


def aes(mapping: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Aes:
    """Build an aesthetic mapping.

    Examples
    --------
    >>> aes(x="displ", y="hwy", colour="class")
    aes(x='displ', y='hwy', colour='class')
    """
    return Aes(mapping, **kwargs)


def _value_at(value: Any, at: str) -> Any:
    """Return the value of ``value`` for stage ``at`` (or None)."""
    if isinstance(value, Stage):
        return getattr(value, at)
    return value if at == "start" else None


def evaluate_mapping(
    table: pd.DataFrame,
    mapping: Mapping[str, Any],
    at: str,
    *,
    keep: tuple[str, ...] = (PANEL, GROUP),
) -> pd.DataFrame:
    """Evaluate the ``at`` stage of ``mapping`` against ``table``.

    For ``"start"`` the result holds only the evaluated aesthetics plus the
    reserved columns in ``keep``. For later stages the evaluated aesthetics
    are written over a copy of ``table``.

    Raises
    ------
    AestheticEvalError
        If an expression references a column absent at this stage.
    """
    if at not in ("start", "after_stat", "after_scale"):
        raise ValueError(f"Unknown evaluation stage {at!r}")

    staged = {name: _value_at(value, at) for name, value in mapping.items()}
    staged = {name: value for name, value in staged.items() if value is not None}

    if at == "start":
        out = pd.DataFrame(index=table.index)
        for col in keep:
            if col in table.columns:
                out[col] = table[col]
        if table.empty and not len(table.columns):
            return out
    else:
        out = table.copy()

    available = tuple(table.columns)
    for name, value in staged.items():
        compiled = compile_expression(value, available)
        out[name] = compiled.evaluate(table, stage=at)
    if staged:
        logger.debug("evaluated %s aesthetics %s on %d rows", at, sorted(staged), len(out))
    return out


def add_group(
    table: pd.DataFrame,
    is_grouping: Callable[[str, pd.Series], bool],
    key: Optional[Callable[[str, pd.Series], pd.Series]] = None,
) -> pd.DataFrame:
    """Assign ``group_id`` once.

    Parameters
    ----------
    table : pandas.DataFrame
        Evaluated aesthetics (output of the ``"start"`` stage).
    is_grouping : callable
        ``is_grouping(aesthetic, values)`` returns True when the aesthetic's
        scale is discrete or binned.
    key : callable, optional
        ``key(aesthetic, values)`` returns the values a grouping aesthetic
        contributes to the interaction (bin membership for binned scales).
        Defaults to the values themselves.

    Returns
    -------
    pandas.DataFrame
        ``table`` with ``group_id``; tables already carrying one are returned
        unchanged.
    """
    if GROUP in table.columns:
        return table
    out = table.copy()
    if out.empty:
        out[GROUP] = pd.Series(dtype=int)
        return out

    if "group" in out.columns:
        columns = ["group"]
    else:
        columns = [
            c for c in out.columns
            if c not in _NON_GROUPING and is_grouping(c, out[c])
        ]
    if not columns:
        out[GROUP] = NO_GROUP
        return out

    if key is None:
        keyed = out[columns]
    else:
        keyed = pd.DataFrame({c: key(c, out[c]) for c in columns}, index=out.index)
    try:
        ids = keyed.groupby(columns, sort=True, dropna=False, observed=True).ngroup()
    except TypeError:
        logger.debug("group values of %s are not mutually orderable; using first-seen order", columns)
        ids = keyed.groupby(columns, sort=False, dropna=False, observed=True).ngroup()
    out[GROUP] = ids.astype(int).to_numpy()
    return out


def mapping_label(value: Any) -> str:
    """Return the default title for a mapping value."""
    if isinstance(value, Stage):
        return value.label()
    return compile_expression(value).label
