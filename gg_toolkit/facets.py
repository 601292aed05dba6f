"""Facet specifications and the Panel Layout Engine.

Purpose
-------
A facet splits rows into panels by the values of facet variables. The layout
is computed once per build from *all* layer tables, so a panel present in one
layer but absent in another still exists as an (empty) slot.

Concepts and structure
----------------------
- :class:`FacetNull`: a single panel.
- :class:`FacetWrap`: one panel per combination of the facet variables,
  wrapped into a grid row by row.
- :class:`FacetGrid`: rows by one set of variables, columns by another. Every
  row/column combination gets a panel.
- :class:`PanelLayout`: frozen result; panel ids are 0-based and stable for a
  given input.

Layers lacking the facet variables are repeated across every matching panel.

Examples
--------
>>> import pandas as pd
>>> from gg_toolkit.facets import FacetWrap
>>> df = pd.DataFrame({"g": ["b", "a", "b"], "x": [1, 2, 3]})
>>> facet = FacetWrap("g")
>>> layout = facet.compute_layout([df])
>>> [p.values for p in layout.panels]
[(('g', 'a'),), (('g', 'b'),)]
>>> facet.map_data(df, layout)["panel_id"].tolist()
[0, 1, 1]
"""

from __future__ import annotations

import itertools
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

import pandas as pd

from .errors import DataShapeError
from .row_table import PANEL

__all__ = [
    "Facet",
    "FacetNull",
    "FacetWrap",
    "FacetGrid",
    "PanelInfo",
    "PanelLayout",
    "facet_null",
    "facet_wrap",
    "facet_grid",
    "label_value",
    "label_both",
    "wrap_dims",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

Labeller = Callable[[str, Any], str]


def label_value(variable: str, value: Any) -> str:
    """Strip label showing only the value."""
    return str(value)


def label_both(variable: str, value: Any) -> str:
    """Strip label showing ``variable: value``."""
    return f"{variable}: {value}"


@dataclass(frozen=True)
class PanelInfo:
    """One panel: facet values, 0-based grid placement and strip labels."""

    panel_id: int
    row: int
    col: int
    values: tuple[tuple[str, Any], ...] = ()
    strip_top: tuple[str, ...] = ()
    strip_right: tuple[str, ...] = ()


@dataclass(frozen=True)
class PanelLayout:
    """Mapping from ``panel_id`` to facet values and grid placement."""

    panels: tuple[PanelInfo, ...]
    nrow: int
    ncol: int
    variables: tuple[str, ...] = field(default=())

    @property
    def panel_ids(self) -> tuple[int, ...]:
        return tuple(p.panel_id for p in self.panels)

    def panel(self, panel_id: int) -> PanelInfo:
        for info in self.panels:
            if info.panel_id == panel_id:
                return info
        raise KeyError(panel_id)

    def to_frame(self) -> pd.DataFrame:
        """Panels as a table: ``panel_id``, ``row``, ``col`` and one column per variable."""
        records = []
        for info in self.panels:
            record = {PANEL: info.panel_id, "row": info.row, "col": info.col}
            record.update(dict(info.values))
            records.append(record)
        return pd.DataFrame.from_records(records, columns=[PANEL, "row", "col", *self.variables])


def wrap_dims(n: int, nrow: Optional[int] = None, ncol: Optional[int] = None) -> tuple[int, int]:
    """Return ``(nrow, ncol)`` able to hold ``n`` panels."""
    if n <= 0:
        return (1, 1)
    if nrow is None and ncol is None:
        if n <= 3:
            return (1, n)
        ncol = int(math.ceil(math.sqrt(n)))
        return (int(math.ceil(n / ncol)), ncol)
    if nrow is None:
        return (int(math.ceil(n / ncol)), int(ncol))  # type: ignore[arg-type]
    if ncol is None:
        return (int(nrow), int(math.ceil(n / nrow)))
    if nrow * ncol < n:
        raise ValueError(f"nrow * ncol ({nrow} * {ncol}) must be at least the number of panels ({n})")
    return (int(nrow), int(ncol))


def _as_vars(spec: Union[str, Sequence[str], None]) -> tuple[str, ...]:
    if spec is None:
        return ()
    if isinstance(spec, str):
        return tuple(v.strip() for v in spec.replace("~", "+").split("+") if v.strip() and v.strip() != ".")
    return tuple(spec)


def _levels(tables: Sequence[pd.DataFrame], variable: str) -> list[Any]:
    """Ordered levels of ``variable`` across tables (categorical order, else sorted)."""
    seen: list[Any] = []
    categories: Optional[list[Any]] = None
    for table in tables:
        if variable not in table.columns:
            continue
        column = table[variable]
        if isinstance(column.dtype, pd.CategoricalDtype) and categories is None:
            categories = column.cat.categories.tolist()
        for value in pd.unique(column.dropna()).tolist():
            if value not in seen:
                seen.append(value)
    if categories is not None:
        return [c for c in categories if c in seen] + [v for v in seen if v not in categories]
    try:
        return sorted(seen)
    except TypeError:
        return seen


def _observed_combinations(tables: Sequence[pd.DataFrame], variables: tuple[str, ...]) -> set[tuple[Any, ...]]:
    combos: set[tuple[Any, ...]] = set()
    for table in tables:
        if all(v in table.columns for v in variables):
            for row in table[list(variables)].dropna().drop_duplicates().itertuples(index=False):
                combos.add(tuple(row))
    return combos


class Facet:
    """Base facet: one panel, rows mapped to ``panel_id`` 0."""

    variables: tuple[str, ...] = ()

    def compute_layout(self, tables: Sequence[pd.DataFrame]) -> PanelLayout:
        return PanelLayout(panels=(PanelInfo(panel_id=0, row=0, col=0),), nrow=1, ncol=1)

    def _check_variables(self, tables: Sequence[pd.DataFrame]) -> None:
        if not self.variables:
            return
        if not any(all(v in t.columns for v in self.variables) for t in tables):
            partial = [v for v in self.variables if not any(v in t.columns for t in tables)]
            raise DataShapeError(
                f"At least one layer must contain all faceting variables: {', '.join(self.variables)}"
                + (f" (missing everywhere: {', '.join(partial)})" if partial else "")
            )

    def map_data(self, table: pd.DataFrame, layout: PanelLayout) -> pd.DataFrame:
        """Return ``table`` with ``panel_id``; rows lacking facet variables are repeated."""
        if not layout.variables:
            out = table.copy()
            out[PANEL] = 0
            return out
        present = [v for v in layout.variables if v in table.columns]
        panels = layout.to_frame()[[PANEL, *present]]
        data = table.copy()
        data["__row"] = range(len(data))
        if not present:
            merged = data.merge(panels, how="cross")
        else:
            left = data.copy()
            right = panels.copy()
            for v in present:
                left[f"__key_{v}"] = left[v].astype(object)
                right[f"__key_{v}"] = right[v].astype(object)
            right = right.drop(columns=present)
            keys = [f"__key_{v}" for v in present]
            merged = left.merge(right, on=keys, how="inner").drop(columns=keys)
        dropped = len(data) - merged["__row"].nunique()
        if dropped and present:
            logger.info("Removed %d rows whose facet values match no panel", dropped)
        merged = merged.sort_values([PANEL, "__row"], kind="stable").drop(columns="__row")
        merged[PANEL] = merged[PANEL].astype(int)
        return merged.reset_index(drop=True)


class FacetNull(Facet):
    """No faceting: a single panel."""

    def __repr__(self) -> str:
        return "facet_null()"


class FacetWrap(Facet):
    """Wrap a 1-d ribbon of panels into a 2-d grid.

    Parameters
    ----------
    facets : str or sequence of str
        Facet variables (``"a"``, ``"a + b"``, ``["a", "b"]``).
    nrow, ncol : int or None
        Grid dimensions; computed when not given.
    labeller : callable
        ``labeller(variable, value) -> str`` for strips.
    drop : bool
        Only observed combinations get a panel; with ``False`` every
        combination of levels does.
    """

    def __init__(
        self,
        facets: Union[str, Sequence[str]],
        nrow: Optional[int] = None,
        ncol: Optional[int] = None,
        labeller: Labeller = label_value,
        drop: bool = True,
    ) -> None:
        self.variables = _as_vars(facets)
        if not self.variables:
            raise ValueError("facet_wrap needs at least one faceting variable")
        self.nrow = nrow
        self.ncol = ncol
        self.labeller = labeller
        self.drop = drop

    def __repr__(self) -> str:
        return f"facet_wrap({list(self.variables)!r})"

    def compute_layout(self, tables: Sequence[pd.DataFrame]) -> PanelLayout:
        self._check_variables(tables)
        levels = [_levels(tables, v) for v in self.variables]
        combos = list(itertools.product(*levels))
        if self.drop:
            observed = _observed_combinations(tables, self.variables)
            combos = [c for c in combos if c in observed]
        nrow, ncol = wrap_dims(len(combos), self.nrow, self.ncol)
        panels = []
        for i, combo in enumerate(combos):
            values = tuple(zip(self.variables, combo))
            panels.append(
                PanelInfo(
                    panel_id=i,
                    row=i // ncol,
                    col=i % ncol,
                    values=values,
                    strip_top=tuple(self.labeller(v, x) for v, x in values),
                )
            )
        logger.debug("facet_wrap: %d panels in %dx%d grid", len(panels), nrow, ncol)
        return PanelLayout(panels=tuple(panels), nrow=nrow, ncol=ncol, variables=self.variables)


class FacetGrid(Facet):
    """Panels in a matrix: rows by ``rows`` variables, columns by ``cols`` variables."""

    def __init__(
        self,
        rows: Union[str, Sequence[str], None] = None,
        cols: Union[str, Sequence[str], None] = None,
        labeller: Labeller = label_value,
    ) -> None:
        if isinstance(rows, str) and "~" in rows and cols is None:
            lhs, rhs = rows.split("~", 1)
            rows, cols = lhs, rhs
        self.rows = _as_vars(rows)
        self.cols = _as_vars(cols)
        self.variables = self.rows + self.cols
        if not self.variables:
            raise ValueError("facet_grid needs row or column faceting variables")
        self.labeller = labeller

    def __repr__(self) -> str:
        return f"facet_grid(rows={list(self.rows)!r}, cols={list(self.cols)!r})"

    def _side(self, tables: Sequence[pd.DataFrame], variables: tuple[str, ...]) -> list[tuple[Any, ...]]:
        if not variables:
            return [()]
        levels = [_levels(tables, v) for v in variables]
        combos = list(itertools.product(*levels))
        if len(variables) > 1:
            observed = _observed_combinations(tables, variables)
            combos = [c for c in combos if c in observed]
        return combos

    def compute_layout(self, tables: Sequence[pd.DataFrame]) -> PanelLayout:
        self._check_variables(tables)
        row_keys = self._side(tables, self.rows)
        col_keys = self._side(tables, self.cols)
        panels = []
        ncol = len(col_keys)
        for r, row_key in enumerate(row_keys):
            for c, col_key in enumerate(col_keys):
                row_values = tuple(zip(self.rows, row_key))
                col_values = tuple(zip(self.cols, col_key))
                panels.append(
                    PanelInfo(
                        panel_id=r * ncol + c,
                        row=r,
                        col=c,
                        values=row_values + col_values,
                        strip_top=tuple(self.labeller(v, x) for v, x in col_values) if r == 0 else (),
                        strip_right=tuple(self.labeller(v, x) for v, x in row_values) if c == ncol - 1 else (),
                    )
                )
        logger.debug("facet_grid: %d rows x %d cols", len(row_keys), ncol)
        return PanelLayout(panels=tuple(panels), nrow=len(row_keys), ncol=ncol, variables=self.variables)


def facet_null() -> FacetNull:
    return FacetNull()


def facet_wrap(facets: Union[str, Sequence[str]], **kwargs: Any) -> FacetWrap:
    """Wrap panels of ``facets`` into a grid; see :class:`FacetWrap`."""
    return FacetWrap(facets, **kwargs)


def facet_grid(rows: Union[str, Sequence[str], None] = None, cols: Union[str, Sequence[str], None] = None, **kwargs: Any) -> FacetGrid:
    """Lay panels out in a matrix; ``facet_grid("a ~ b")`` is accepted too."""
    return FacetGrid(rows, cols, **kwargs)
