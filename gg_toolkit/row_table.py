"""Row Table helpers shared by every pipeline stage.

A Row Table is a :class:`pandas.DataFrame` whose columns are named by strings.
Two reserved integer columns travel with every row once assigned:

- ``panel_id``: the facet panel, assigned by the facet's ``map_data``;
- ``group_id``: the interaction of discrete aesthetics, assigned by
  :func:`gg_toolkit.aes.add_group`.

No stage after assignment recomputes them. Stages that partition the data
(stats, positions, geoms) use :func:`iter_partitions`.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

import numpy as np
import pandas as pd

from .errors import DataShapeError

__all__ = [
    "PANEL",
    "GROUP",
    "NO_GROUP",
    "as_row_table",
    "require_columns",
    "iter_partitions",
    "concat_partitions",
    "constant_columns",
    "resolution",
    "is_discrete",
]

PANEL = "panel_id"
GROUP = "group_id"
NO_GROUP = -1


def as_row_table(obj: Any, *, who: str = "layer data") -> pd.DataFrame:
    """Return ``obj`` as a Row Table or raise :class:`DataShapeError`.

    Accepts a DataFrame (used verbatim) or a mapping of equal-length columns.
    """
    if isinstance(obj, pd.DataFrame):
        table = obj
    elif isinstance(obj, Mapping):
        try:
            table = pd.DataFrame(dict(obj))
        except ValueError as exc:
            raise DataShapeError(f"{who} mapping is not a table of equal-length columns: {exc}") from exc
    else:
        raise DataShapeError(
            f"{who} must be a pandas DataFrame or a mapping of named columns, "
            f"got {type(obj).__name__}"
        )
    bad = [c for c in table.columns if not isinstance(c, str)]
    if bad:
        raise DataShapeError(f"{who} columns must be named by strings; got {bad!r}")
    return table


def require_columns(table: pd.DataFrame, names: Iterable[str], *, who: str) -> None:
    """Raise :class:`DataShapeError` unless every name in ``names`` is a column."""
    missing = [n for n in names if n not in table.columns]
    if missing:
        raise DataShapeError(
            f"{who} requires the following missing aesthetics: {', '.join(missing)}"
        )


def iter_partitions(table: pd.DataFrame) -> Iterator[tuple[tuple[int, int], pd.DataFrame]]:
    """Yield ``((panel_id, group_id), rows)`` pairs sorted by key.

    Rows keep their original relative order inside each partition.
    """
    if table.empty:
        return
    keys = [k for k in (PANEL, GROUP) if k in table.columns]
    if not keys:
        yield (0, NO_GROUP), table
        return
    for key, part in table.groupby(keys, sort=True, dropna=False):
        if not isinstance(key, tuple):
            key = (key,)
        panel = int(key[0]) if PANEL in keys else 0
        group = int(key[-1]) if GROUP in keys else NO_GROUP
        yield (panel, group), part


def constant_columns(part: pd.DataFrame, exclude: Iterable[str] = ()) -> dict[str, Any]:
    """Return the columns of ``part`` holding a single value, with that value."""
    skip = set(exclude)
    out: dict[str, Any] = {}
    for col in part.columns:
        if col in skip or part.empty:
            continue
        values = part[col]
        first = values.iloc[0]
        if values.nunique(dropna=False) == 1:
            out[col] = first
    return out


def concat_partitions(parts: Sequence[pd.DataFrame], columns: Sequence[str] = ()) -> pd.DataFrame:
    """Concatenate partition outputs in order; empty input yields an empty table."""
    frames = [p for p in parts if p is not None and not p.empty]
    if not frames:
        return pd.DataFrame(columns=list(columns))
    return pd.concat(frames, ignore_index=True, sort=False)


def is_discrete(values: Any) -> bool:
    """Return True for categorical, string, object and boolean values."""
    series = values if isinstance(values, pd.Series) else pd.Series(values)
    dtype = series.dtype
    return bool(
        isinstance(dtype, pd.CategoricalDtype)
        or pd.api.types.is_bool_dtype(dtype)
        or pd.api.types.is_object_dtype(dtype)
        or pd.api.types.is_string_dtype(dtype)
    )


def resolution(values: Any, *, zero: bool = True) -> float:
    """Return the smallest positive gap between distinct finite values.

    Integer-like inputs, and inputs with fewer than two distinct values,
    resolve to ``1.0``. With ``zero=True`` the value ``0`` participates, so
    bars anchored at zero keep a sensible width.
    """
    arr = np.asarray(values, dtype=float)
    arr = arr[np.isfinite(arr)]
    if arr.size == 0:
        return 1.0
    if np.all(arr == np.round(arr)):
        return 1.0
    if zero:
        arr = np.append(arr, 0.0)
    uniq = np.unique(arr)
    if uniq.size < 2:
        return 1.0
    return float(np.min(np.diff(uniq)))
