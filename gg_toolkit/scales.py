"""Scales and the per-build Scale Registry.

Purpose
-------
A scale owns one family of aesthetics (all ``x``-like aesthetics, or
``colour``, ...). It transforms raw values, accumulates the range of values
it sees (training; ranges only ever widen), and maps domain values to visual
values. Position scales map to numbers on a common axis; non-position scales
map through a palette.

Concepts and structure
----------------------
- :class:`ScaleContinuous`: numeric domain, optional :class:`Transform`,
  out-of-bounds policy (``censor``, ``squish``, ``keep``) against the limits.
- :class:`ScaleDiscrete`: ordered levels (declared ``limits`` or categorical
  order, else first-observed order). Position values map to 0-based ranks.
  Position scales also keep a continuous range for numeric values that
  arrive after mapping (bar extents, jittered points).
- :class:`ScaleBinned`: numeric domain cut into bins; position values map to
  the midpoint of their bin. Edges are explicit or an equal-width partition
  of the trained range fixed at first mapping.
- :class:`ScaleIdentity`: values are already visual values.
- :class:`ScalesList`: the registry, one scale per aesthetic.

Lifecycle
---------
Plot specifications hold *unused* scales. Each build clones them
(:meth:`Scale.clone`), trains, then :meth:`Scale.freeze` before guides are
built. Training a frozen scale raises ``RuntimeError``.

Examples
--------
>>> import pandas as pd
>>> from gg_toolkit.scales import scale_x_discrete
>>> s = scale_x_discrete(limits=["low", "mid", "high"]).clone()
>>> s.map(pd.Series(["high", "mid"])).tolist()
[2.0, 1.0]
"""

from __future__ import annotations

import copy
import logging
import math
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import Any, Optional, Union

import numpy as np
import pandas as pd

from .aes import X_AESTHETICS, Y_AESTHETICS, standardise_aes_name
from .breaks import expand_range, format_labels, rescale
from .errors import ScaleDomainError
from .palettes import (
    MAX_SHAPES,
    area_palette,
    gradient_palette,
    hue_palette,
    linetype_palette,
    manual_palette,
    rescale_palette,
    shape_palette,
)
from .row_table import is_discrete
from .transforms import Transform, get_transform

__all__ = [
    "WAIVER",
    "Scale",
    "ScaleContinuous",
    "ScaleDiscrete",
    "ScaleBinned",
    "ScaleIdentity",
    "ScalesList",
    "SCALED_AESTHETICS",
    "scale_x_continuous",
    "scale_y_continuous",
    "scale_x_log10",
    "scale_y_log10",
    "scale_x_sqrt",
    "scale_y_sqrt",
    "scale_x_reverse",
    "scale_y_reverse",
    "scale_x_discrete",
    "scale_y_discrete",
    "scale_x_binned",
    "scale_y_binned",
    "xlim",
    "ylim",
    "scale_colour_gradient",
    "scale_colour_gradient2",
    "scale_colour_continuous",
    "scale_colour_discrete",
    "scale_colour_manual",
    "scale_colour_identity",
    "scale_colour_binned",
    "scale_fill_gradient",
    "scale_fill_gradient2",
    "scale_fill_continuous",
    "scale_fill_discrete",
    "scale_fill_manual",
    "scale_fill_identity",
    "scale_fill_binned",
    "scale_size",
    "scale_alpha",
    "scale_shape",
    "scale_linetype",
    "scale_linewidth",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class _Waiver:
    """Sentinel meaning "let the scale compute its default"."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "WAIVER"


WAIVER = _Waiver()

SCALED_AESTHETICS = frozenset(
    X_AESTHETICS + Y_AESTHETICS + ("colour", "fill", "size", "alpha", "shape", "linetype", "linewidth")
)
_OOB_POLICIES = ("censor", "squish", "keep")
_GREY50 = "#7F7F7F"


def _family(aesthetic: str) -> tuple[str, ...]:
    """Return every aesthetic a scale for ``aesthetic`` covers."""
    aesthetic = standardise_aes_name(aesthetic)
    if aesthetic in X_AESTHETICS:
        return X_AESTHETICS
    if aesthetic in Y_AESTHETICS:
        return Y_AESTHETICS
    return (aesthetic,)


def _numeric(values: Any) -> np.ndarray:
    arr = np.asarray(values)
    if arr.dtype.kind in "biuf":
        return arr.astype(float)
    try:
        return pd.to_numeric(pd.Series(np.asarray(values, dtype=object)), errors="raise").to_numpy(dtype=float)
    except (TypeError, ValueError) as exc:
        raise ScaleDomainError("Discrete value supplied to a continuous scale") from exc


# SECTION: Scale base [id: Scale]
# =============================================================================


class Scale:
    """Base class: shared configuration and lifecycle.

    Parameters
    ----------
    aesthetics : sequence of str
        Aesthetics served by the scale; the first is the primary one.
    name : str or WAIVER
        Title for the guide; ``WAIVER`` uses the plot labels.
    breaks, labels : sequence, callable, None or WAIVER
        Break positions (data space) and their labels.
    guide : str or Guide
        ``"default"``, ``"axis"``, ``"legend"``, ``"colourbar"``, ``"none"``
        or a guide object.
    na_value : Any
        Visual value for missing input.
    """

    kind = "abstract"

    def __init__(
        self,
        aesthetics: Sequence[str],
        *,
        name: Any = WAIVER,
        breaks: Any = WAIVER,
        labels: Any = WAIVER,
        limits: Any = None,
        expand: Optional[tuple[float, float]] = None,
        guide: Any = "default",
        na_value: Any = np.nan,
        palette: Any = None,
    ) -> None:
        self.aesthetics = tuple(standardise_aes_name(a) for a in aesthetics)
        self.name = name
        self.breaks = breaks
        self.labels = labels
        self.limits = limits
        self.expand = expand
        self.guide = guide
        self.na_value = na_value
        self.palette = palette
        self._frozen = False

    # -- identity -----------------------------------------------------------

    @property
    def aesthetic(self) -> str:
        return self.aesthetics[0]

    @property
    def is_position(self) -> bool:
        return self.aesthetic in X_AESTHETICS or self.aesthetic in Y_AESTHETICS

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __repr__(self) -> str:
        return f"{type(self).__name__}(aesthetics={self.aesthetics!r})"

    # -- lifecycle ----------------------------------------------------------

    def clone(self) -> "Scale":
        """Return an untrained copy bound to a single build."""
        twin = copy.copy(self)
        twin._reset()
        twin._frozen = False
        return twin

    def _reset(self) -> None:
        """Clear trained state."""

    def freeze(self) -> None:
        """Forbid further training."""
        self._frozen = True

    def _check_trainable(self) -> None:
        if self._frozen:
            raise RuntimeError(f"{self!r} is frozen; scales cannot be trained after guides are built")

    # -- protocol -----------------------------------------------------------

    def transform(self, values: Any) -> Any:
        return values

    def train(self, values: Any) -> None:
        raise NotImplementedError

    def map(self, values: Any) -> Any:
        raise NotImplementedError

    def is_empty(self) -> bool:
        raise NotImplementedError

    def continuous_limits(self) -> tuple[float, float]:
        """Range on the common numeric axis, before expansion."""
        raise NotImplementedError

    def default_expansion(self) -> tuple[float, float]:
        return (0.05, 0.0)

    def expansion(self) -> tuple[float, float]:
        return tuple(self.expand) if self.expand is not None else self.default_expansion()  # type: ignore[return-value]

    def dimension(self) -> tuple[float, float]:
        """Expanded continuous range used by coordinate systems."""
        mult, add = self.expansion()
        return expand_range(self.continuous_limits(), mult, add)

    def get_breaks(self, range_: Optional[Sequence[float]] = None) -> list[Any]:
        raise NotImplementedError

    def break_positions(self, breaks: Sequence[Any]) -> np.ndarray:
        """Positions of ``breaks`` on the common numeric axis."""
        return np.asarray(breaks, dtype=float)

    def get_labels(self, breaks: Sequence[Any]) -> list[str]:
        if self.labels is None:
            return ["" for _ in breaks]
        if self.labels is WAIVER:
            return self._default_labels(breaks)
        if callable(self.labels):
            return [str(v) for v in self.labels(list(breaks))]
        labels = [str(v) for v in self.labels]
        if len(labels) != len(breaks):
            raise ValueError(
                f"{self!r}: {len(breaks)} breaks but {len(labels)} labels were supplied"
            )
        return labels

    def _default_labels(self, breaks: Sequence[Any]) -> list[str]:
        return [str(b) for b in breaks]

    def resolved_guide(self) -> Any:
        """Return the guide specification with ``"default"`` resolved."""
        if self.guide != "default":
            return self.guide
        if self.is_position:
            return "axis"
        return "legend"


# SECTION: Continuous scales [id: ScaleContinuous]
# =============================================================================


class ScaleContinuous(Scale):
    """Continuous scale with an optional transform and out-of-bounds policy."""

    kind = "continuous"

    def __init__(
        self,
        aesthetics: Sequence[str],
        *,
        trans: Union[str, Transform, None] = None,
        oob: str = "censor",
        rescaler: Optional[Callable[[np.ndarray, tuple[float, float]], np.ndarray]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(aesthetics, **kwargs)
        if oob not in _OOB_POLICIES:
            raise ValueError(f"oob must be one of {_OOB_POLICIES}, got {oob!r}")
        self.trans = get_transform(trans)
        self.oob = oob
        self.rescaler = rescaler
        self.range: Optional[tuple[float, float]] = None

    def _reset(self) -> None:
        self.range = None

    def transform(self, values: Any) -> np.ndarray:
        return self.trans.transform(_numeric(values))

    def train(self, values: Any) -> None:
        self._check_trainable()
        arr = _numeric(values)
        arr = arr[np.isfinite(arr)]
        if arr.size == 0:
            return
        lo, hi = float(arr.min()), float(arr.max())
        if self.range is None:
            self.range = (lo, hi)
        else:
            self.range = (min(self.range[0], lo), max(self.range[1], hi))

    def is_empty(self) -> bool:
        return self.range is None and not self._has_user_limits()

    def _has_user_limits(self) -> bool:
        return self.limits is not None and not callable(self.limits)

    def get_limits(self) -> tuple[float, float]:
        """Limits in transformed space: user limits (missing ends filled) or trained range."""
        trained = self.range if self.range is not None else (0.0, 1.0)
        if self.limits is None:
            return trained
        if callable(self.limits):
            lo, hi = self.limits(self.trans.inverse_transform(np.asarray(trained)))
            return tuple(self.trans.transform([lo, hi]).tolist())  # type: ignore[return-value]
        lo, hi = self.limits
        lo_t = trained[0] if lo is None or (isinstance(lo, float) and math.isnan(lo)) else float(self.trans.transform([lo])[0])
        hi_t = trained[1] if hi is None or (isinstance(hi, float) and math.isnan(hi)) else float(self.trans.transform([hi])[0])
        return (min(lo_t, hi_t), max(lo_t, hi_t))

    def continuous_limits(self) -> tuple[float, float]:
        return self.get_limits()

    def apply_oob(self, values: np.ndarray) -> np.ndarray:
        arr = np.asarray(values, dtype=float).copy()
        if self.oob == "keep":
            return arr
        lo, hi = self.get_limits()
        finite = np.isfinite(arr)
        if self.oob == "squish":
            arr[finite] = np.clip(arr[finite], lo, hi)
            return arr
        eps = 1e-9 * max(1.0, abs(lo), abs(hi))
        outside = finite & ((arr < lo - eps) | (arr > hi + eps))
        arr[outside] = np.nan
        return arr

    def map(self, values: Any) -> Any:
        arr = _numeric(values)
        if self.is_position:
            if not self._has_user_limits():
                return arr
            return self.apply_oob(arr)
        bounded = self.apply_oob(arr)
        limits = self.get_limits()
        scaled = self.rescaler(bounded, limits) if self.rescaler else rescale(bounded, limits)
        mapped = self.palette(scaled)
        out = np.empty(len(arr), dtype=object)
        for i, value in enumerate(mapped):
            missing = value is None or (isinstance(value, float) and math.isnan(value))
            out[i] = self.na_value if missing else value
        if out.size and all(isinstance(v, (int, float, np.floating)) for v in out):
            return out.astype(float)
        return out

    def get_breaks(self, range_: Optional[Sequence[float]] = None) -> list[float]:
        """Breaks in transformed space inside ``range_`` (default: the limits)."""
        from .options import get_options

        lo, hi = range_ if range_ is not None else self.get_limits()
        if self.breaks is None:
            return []
        if self.breaks is WAIVER:
            data_lo, data_hi = sorted(self.trans.inverse_transform(np.array([lo, hi])).tolist())
            data_breaks = self.trans.breaks(data_lo, data_hi, get_options().n_breaks)
        elif callable(self.breaks):
            data_lo, data_hi = sorted(self.trans.inverse_transform(np.array([lo, hi])).tolist())
            data_breaks = np.asarray(self.breaks((data_lo, data_hi)), dtype=float)
        else:
            data_breaks = np.asarray(list(self.breaks), dtype=float)
        positions = self.trans.transform(data_breaks[np.isfinite(data_breaks)]) if data_breaks.size else data_breaks
        eps = 1e-9 * max(1.0, abs(lo), abs(hi))
        keep = (positions >= min(lo, hi) - eps) & (positions <= max(lo, hi) + eps)
        return [float(p) for p in positions[keep]]

    def _default_labels(self, breaks: Sequence[Any]) -> list[str]:
        return format_labels(self.trans.inverse_transform(np.asarray(breaks, dtype=float)))

    def resolved_guide(self) -> Any:
        if self.guide == "default" and not self.is_position and self.aesthetic in ("colour", "fill"):
            return "colourbar"
        return super().resolved_guide()


# SECTION: Discrete scales [id: ScaleDiscrete]
# =============================================================================


class ScaleDiscrete(Scale):
    """Discrete scale over ordered levels."""

    kind = "discrete"

    def __init__(self, aesthetics: Sequence[str], **kwargs: Any) -> None:
        super().__init__(aesthetics, **kwargs)
        self.range: list[Any] = []
        self.range_c: Optional[tuple[float, float]] = None

    def _reset(self) -> None:
        self.range = []
        self.range_c = None

    def train(self, values: Any) -> None:
        self._check_trainable()
        series = values if isinstance(values, pd.Series) else pd.Series(values)
        if self.is_position and not is_discrete(series):
            arr = _numeric(series)
            arr = arr[np.isfinite(arr)]
            if arr.size:
                lo, hi = float(arr.min()), float(arr.max())
                self.range_c = (lo, hi) if self.range_c is None else (
                    min(self.range_c[0], lo), max(self.range_c[1], hi)
                )
            return
        if isinstance(series.dtype, pd.CategoricalDtype):
            present = set(series.dropna().unique().tolist())
            new = [c for c in series.cat.categories.tolist() if c in present]
        else:
            new = pd.unique(series.dropna()).tolist()
        known = set(self.range)
        self.range = self.range + [v for v in new if v not in known]

    def get_limits(self) -> list[Any]:
        if self.limits is not None and not callable(self.limits):
            return list(self.limits)
        if callable(self.limits):
            return list(self.limits(list(self.range)))
        return list(self.range)

    def is_empty(self) -> bool:
        return not self.get_limits() and self.range_c is None

    def rank_of(self, values: Any) -> np.ndarray:
        """0-based rank of each value in the limits; unknown values are NaN."""
        lookup = {level: float(i) for i, level in enumerate(self.get_limits())}
        out = np.full(len(values), np.nan)
        for i, value in enumerate(values):
            if value is None or (isinstance(value, float) and math.isnan(value)):
                continue
            out[i] = lookup.get(value, np.nan)
        return out

    def map(self, values: Any) -> Any:
        series = values if isinstance(values, pd.Series) else pd.Series(values)
        if self.is_position:
            if is_discrete(series):
                return self.rank_of(series.tolist())
            return _numeric(series)
        limits = self.get_limits()
        visuals = self.palette(len(limits)) if callable(self.palette) else list(self.palette or [])
        if isinstance(self.palette, dict):
            lookup = {level: self.palette.get(level, self.na_value) for level in limits}
        else:
            lookup = {level: visuals[i] if i < len(visuals) else None for i, level in enumerate(limits)}
        out = np.empty(len(series), dtype=object)
        for i, value in enumerate(series.tolist()):
            mapped = lookup.get(value) if not _is_missing(value) else None
            out[i] = self.na_value if mapped is None else mapped
        if out.size and all(isinstance(v, (int, float, np.floating)) for v in out):
            return out.astype(float)
        return out

    def continuous_limits(self) -> tuple[float, float]:
        n = len(self.get_limits())
        discrete = (0.0, float(n - 1)) if n else None
        if discrete is None and self.range_c is None:
            return (0.0, 1.0)
        if discrete is None:
            return self.range_c  # type: ignore[return-value]
        if self.range_c is None:
            return discrete
        return (min(discrete[0], self.range_c[0]), max(discrete[1], self.range_c[1]))

    def default_expansion(self) -> tuple[float, float]:
        return (0.0, 0.6)

    def get_breaks(self, range_: Optional[Sequence[float]] = None) -> list[Any]:
        if self.breaks is None:
            return []
        limits = self.get_limits()
        if self.breaks is WAIVER:
            return limits
        if callable(self.breaks):
            return [b for b in self.breaks(limits) if b in limits]
        return [b for b in self.breaks if b in limits]

    def break_positions(self, breaks: Sequence[Any]) -> np.ndarray:
        return self.rank_of(list(breaks))


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


# SECTION: Binned scales [id: ScaleBinned]
# =============================================================================


class ScaleBinned(ScaleContinuous):
    """Continuous input cut into bins.

    Position values are binned once, before statistics. After
    :meth:`mark_positioned` the scale passes numbers through unchanged, so
    later position mapping keeps jitter, dodge and geom extents.

    Parameters
    ----------
    n_bins : int
        Number of equal-width bins when ``breaks`` does not give explicit edges.
    breaks : sequence of float or WAIVER
        Explicit bin edges in data space.
    """

    kind = "binned"

    def __init__(self, aesthetics: Sequence[str], *, n_bins: int = 5, oob: str = "squish", **kwargs: Any) -> None:
        super().__init__(aesthetics, oob=oob, **kwargs)
        if n_bins < 1:
            raise ValueError("n_bins must be >= 1")
        self.n_bins = int(n_bins)
        self._edges: Optional[np.ndarray] = None
        self._positioned = False

    def _reset(self) -> None:
        super()._reset()
        self._edges = None
        self._positioned = False

    def mark_positioned(self) -> None:
        """Record that position values now sit on bin midpoints."""
        self._positioned = True

    def edges(self) -> np.ndarray:
        """Bin edges in transformed space, fixed the first time they are needed."""
        if self._edges is None:
            if self.breaks is not WAIVER and self.breaks is not None and not callable(self.breaks):
                edges = self.trans.transform(np.sort(np.asarray(list(self.breaks), dtype=float)))
                if edges.size < 2:
                    raise ValueError("A binned scale needs at least two explicit bin edges")
            else:
                lo, hi = self.get_limits()
                if lo == hi:
                    lo, hi = lo - 0.5, hi + 0.5
                edges = np.linspace(lo, hi, self.n_bins + 1)
            self._edges = edges
        return self._edges

    def bin_index(self, values: Any) -> np.ndarray:
        arr = self.apply_oob(_numeric(values))
        edges = self.edges()
        idx = np.searchsorted(edges, arr, side="left") - 1
        idx = np.clip(idx, 0, len(edges) - 2).astype(float)
        outside = ~np.isfinite(arr) | (arr < edges[0] - 1e-9) | (arr > edges[-1] + 1e-9)
        idx[outside] = np.nan
        return idx

    def map(self, values: Any) -> Any:
        if self.is_position and self._positioned:
            return _numeric(values)
        edges = self.edges()
        idx = self.bin_index(values)
        if self.is_position:
            mids = (edges[:-1] + edges[1:]) / 2
            out = np.full(len(idx), np.nan)
            ok = np.isfinite(idx)
            out[ok] = mids[idx[ok].astype(int)]
            return out
        n = len(edges) - 1
        centres = (np.arange(n) + 0.5) / n
        visuals = self.palette(centres)
        out = np.empty(len(idx), dtype=object)
        for i, k in enumerate(idx):
            out[i] = self.na_value if not np.isfinite(k) else visuals[int(k)]
        return out

    def get_breaks(self, range_: Optional[Sequence[float]] = None) -> list[float]:
        if self.breaks is None:
            return []
        return [float(e) for e in self.edges()]

    def resolved_guide(self) -> Any:
        if self.guide == "default":
            return "axis" if self.is_position else "legend"
        return self.guide


# SECTION: Identity scales [id: ScaleIdentity]
# =============================================================================


class ScaleIdentity(Scale):
    """Data values are used verbatim as visual values."""

    kind = "identity"

    def __init__(self, aesthetics: Sequence[str], **kwargs: Any) -> None:
        kwargs.setdefault("guide", "none")
        super().__init__(aesthetics, **kwargs)
        self.range: list[Any] = []

    def _reset(self) -> None:
        self.range = []

    def train(self, values: Any) -> None:
        self._check_trainable()
        known = set(self.range)
        self.range = self.range + [v for v in pd.unique(pd.Series(values).dropna()).tolist() if v not in known]

    def map(self, values: Any) -> Any:
        return np.asarray(values, dtype=object)

    def is_empty(self) -> bool:
        return not self.range

    def continuous_limits(self) -> tuple[float, float]:
        return (0.0, 1.0)

    def get_breaks(self, range_: Optional[Sequence[float]] = None) -> list[Any]:
        return list(self.range)


# SECTION: ScalesList registry [id: ScalesList]
# =============================================================================


class ScalesList:
    """Registry holding one scale per aesthetic."""

    def __init__(self, scales: Iterable[Scale] = ()) -> None:
        self._scales: list[Scale] = []
        for scale in scales:
            self.add(scale)

    def __iter__(self) -> Iterator[Scale]:
        return iter(self._scales)

    def __len__(self) -> int:
        return len(self._scales)

    def __repr__(self) -> str:
        return f"ScalesList({self._scales!r})"

    def find(self, aesthetic: str) -> Optional[Scale]:
        aesthetic = standardise_aes_name(aesthetic)
        for scale in self._scales:
            if aesthetic in scale.aesthetics:
                return scale
        return None

    def has(self, aesthetic: str) -> bool:
        return self.find(aesthetic) is not None

    def add(self, scale: Scale) -> None:
        """Add ``scale``, replacing any scale that serves the same aesthetics."""
        clashing = [s for s in self._scales if set(s.aesthetics) & set(scale.aesthetics)]
        if clashing:
            logger.info(
                "Scale for %s is already present. Adding another scale for %s, "
                "which will replace the existing scale.",
                scale.aesthetic,
                scale.aesthetic,
            )
        self._scales = [s for s in self._scales if s not in clashing] + [scale]

    def clone(self) -> "ScalesList":
        return ScalesList(s.clone() for s in self._scales)

    def position_scales(self) -> list[Scale]:
        return [s for s in self._scales if s.is_position]

    def non_position_scales(self) -> list[Scale]:
        return [s for s in self._scales if not s.is_position]

    def freeze(self) -> None:
        for scale in self._scales:
            scale.freeze()

    def add_defaults(self, table: pd.DataFrame, aesthetics: Iterable[str]) -> None:
        """Create default scales for scaled aesthetics present in ``table``."""
        for aesthetic in aesthetics:
            aesthetic = standardise_aes_name(aesthetic)
            if aesthetic not in SCALED_AESTHETICS or aesthetic not in table.columns:
                continue
            if self.has(aesthetic):
                continue
            self.add(default_scale(aesthetic, table[aesthetic]))

    def add_missing(self, aesthetics: Iterable[str] = ("x", "y")) -> None:
        """Ensure continuous position scales exist for the given aesthetics."""
        for aesthetic in aesthetics:
            if not self.has(aesthetic):
                self.add(ScaleContinuous(_family(aesthetic)))

    def _columns_for(self, table: pd.DataFrame, scales: Iterable[Scale]) -> Iterator[tuple[Scale, str]]:
        for scale in scales:
            for col in scale.aesthetics:
                if col in table.columns:
                    yield scale, col

    def transform_df(self, table: pd.DataFrame, columns: Optional[Iterable[str]] = None) -> pd.DataFrame:
        """Apply continuous and binned scale transforms to scaled columns."""
        if table.empty:
            return table
        wanted = set(columns) if columns is not None else None
        out = table.copy()
        for scale, col in self._columns_for(out, self._scales):
            if wanted is not None and col not in wanted:
                continue
            if isinstance(scale, ScaleContinuous) and not scale.trans.is_identity:
                out[col] = scale.transform(out[col])
        return out

    def train_df(self, table: pd.DataFrame, scales: Optional[Iterable[Scale]] = None) -> None:
        if table.empty:
            return
        for scale, col in self._columns_for(table, scales if scales is not None else self._scales):
            scale.train(table[col])

    def map_df(self, table: pd.DataFrame, scales: Optional[Iterable[Scale]] = None) -> pd.DataFrame:
        if table.empty:
            return table
        out = table.copy()
        for scale, col in self._columns_for(out, scales if scales is not None else self._scales):
            out[col] = scale.map(out[col])
        return out

    def is_grouping(self, aesthetic: str, values: pd.Series) -> bool:
        """True when ``aesthetic`` takes part in the group interaction."""
        scale = self.find(aesthetic)
        if scale is None or isinstance(scale, ScaleIdentity):
            return is_discrete(values)
        if isinstance(scale, ScaleDiscrete) and scale.is_position:
            return is_discrete(values)
        return scale.kind in ("discrete", "binned")

    def group_key(self, tables: Sequence[pd.DataFrame]) -> Callable[[str, pd.Series], pd.Series]:
        """Return ``key(aesthetic, values)`` giving the values to group on.

        Binned aesthetics group by bin membership. Edges come from an
        untrained copy of each binned scale fitted to ``tables``, so the
        registry's own scales stay untouched; the copy sees the same rows the
        pre-stat training does and therefore fixes the same edges.
        """
        binners: dict[str, ScaleBinned] = {}
        for scale in self._scales:
            if isinstance(scale, ScaleBinned):
                twin = scale.clone()
                for table in tables:
                    self.train_df(table, [twin])
                binners.update(dict.fromkeys(scale.aesthetics, twin))

        def key(aesthetic: str, values: pd.Series) -> pd.Series:
            twin = binners.get(aesthetic)
            if twin is None or twin.is_empty():
                return values
            return pd.Series(twin.bin_index(values), index=values.index)

        return key


# SECTION: Default scales [id: defaults]
# =============================================================================


def default_scale(aesthetic: str, values: pd.Series) -> Scale:
    """Return the default scale for ``aesthetic`` given example values."""
    discrete = is_discrete(values)
    family = _family(aesthetic)
    if aesthetic in X_AESTHETICS or aesthetic in Y_AESTHETICS:
        return ScaleDiscrete(family) if discrete else ScaleContinuous(family)
    if aesthetic in ("colour", "fill"):
        if discrete:
            return ScaleDiscrete(family, palette=hue_palette, na_value=_GREY50)
        return ScaleContinuous(family, palette=gradient_palette(), na_value=_GREY50)
    if aesthetic == "size":
        if discrete:
            logger.info("Using size for a discrete variable is not advised.")
            return ScaleDiscrete(family, palette=lambda n: list(np.linspace(2.0, 6.0, n)))
        return ScaleContinuous(family, palette=area_palette())
    if aesthetic == "linewidth":
        if discrete:
            return ScaleDiscrete(family, palette=lambda n: list(np.linspace(1.0, 6.0, n)))
        return ScaleContinuous(family, palette=rescale_palette((1.0, 6.0)))
    if aesthetic == "alpha":
        if discrete:
            return ScaleDiscrete(family, palette=lambda n: list(np.linspace(0.1, 1.0, n)))
        return ScaleContinuous(family, palette=rescale_palette((0.1, 1.0)))
    if aesthetic == "shape":
        if not discrete:
            raise ScaleDomainError("A continuous variable cannot be mapped to the shape aesthetic")
        return ScaleDiscrete(family, palette=shape_palette)
    if aesthetic == "linetype":
        if not discrete:
            raise ScaleDomainError("A continuous variable cannot be mapped to the linetype aesthetic")
        return ScaleDiscrete(family, palette=linetype_palette)
    raise ValueError(f"No default scale for aesthetic {aesthetic!r}")


# SECTION: Constructors [id: constructors]
# =============================================================================


def _position_continuous(axis: str, **kwargs: Any) -> ScaleContinuous:
    return ScaleContinuous(_family(axis), **kwargs)


def scale_x_continuous(**kwargs: Any) -> ScaleContinuous:
    """Continuous x scale (``name``, ``breaks``, ``labels``, ``limits``, ``expand``, ``trans``, ``oob``)."""
    return _position_continuous("x", **kwargs)


def scale_y_continuous(**kwargs: Any) -> ScaleContinuous:
    """Continuous y scale; see :func:`scale_x_continuous`."""
    return _position_continuous("y", **kwargs)


def scale_x_log10(**kwargs: Any) -> ScaleContinuous:
    return _position_continuous("x", trans="log10", **kwargs)


def scale_y_log10(**kwargs: Any) -> ScaleContinuous:
    return _position_continuous("y", trans="log10", **kwargs)


def scale_x_sqrt(**kwargs: Any) -> ScaleContinuous:
    return _position_continuous("x", trans="sqrt", **kwargs)


def scale_y_sqrt(**kwargs: Any) -> ScaleContinuous:
    return _position_continuous("y", trans="sqrt", **kwargs)


def scale_x_reverse(**kwargs: Any) -> ScaleContinuous:
    return _position_continuous("x", trans="reverse", **kwargs)


def scale_y_reverse(**kwargs: Any) -> ScaleContinuous:
    return _position_continuous("y", trans="reverse", **kwargs)


def scale_x_discrete(**kwargs: Any) -> ScaleDiscrete:
    """Discrete x scale; ``limits`` declares the level order."""
    return ScaleDiscrete(X_AESTHETICS, **kwargs)


def scale_y_discrete(**kwargs: Any) -> ScaleDiscrete:
    return ScaleDiscrete(Y_AESTHETICS, **kwargs)


def scale_x_binned(**kwargs: Any) -> ScaleBinned:
    """Binned x scale; ``n_bins`` or explicit edges via ``breaks``."""
    return ScaleBinned(X_AESTHETICS, **kwargs)


def scale_y_binned(**kwargs: Any) -> ScaleBinned:
    return ScaleBinned(Y_AESTHETICS, **kwargs)


def _limits_scale(axis: str, values: Sequence[Any]) -> Scale:
    if len(values) == 2 and all(v is None or isinstance(v, (int, float, np.number)) for v in values):
        return _position_continuous(axis, limits=tuple(values))
    return ScaleDiscrete(_family(axis), limits=list(values))


def xlim(*values: Any) -> Scale:
    """Set x limits: two numbers give a continuous scale, strings a discrete one."""
    return _limits_scale("x", values[0] if len(values) == 1 else values)


def ylim(*values: Any) -> Scale:
    return _limits_scale("y", values[0] if len(values) == 1 else values)


def _gradient(aesthetic: str, low: str, high: str, **kwargs: Any) -> ScaleContinuous:
    kwargs.setdefault("na_value", _GREY50)
    return ScaleContinuous((aesthetic,), palette=gradient_palette(low, high), **kwargs)


def _gradient2(
    aesthetic: str, low: str, mid: str, high: str, midpoint: float, **kwargs: Any
) -> ScaleContinuous:
    kwargs.setdefault("na_value", _GREY50)

    def _rescale_mid(values: np.ndarray, limits: tuple[float, float]) -> np.ndarray:
        lo, hi = limits
        extent = max(abs(lo - midpoint), abs(hi - midpoint)) or 1.0
        return (np.asarray(values, dtype=float) - midpoint) / extent / 2 + 0.5

    return ScaleContinuous(
        (aesthetic,), palette=gradient_palette(low, high, mid=mid), rescaler=_rescale_mid, **kwargs
    )


def scale_colour_gradient(low: str = "#132B43", high: str = "#56B1F7", **kwargs: Any) -> ScaleContinuous:
    """Two-colour continuous gradient."""
    return _gradient("colour", low, high, **kwargs)


def scale_fill_gradient(low: str = "#132B43", high: str = "#56B1F7", **kwargs: Any) -> ScaleContinuous:
    return _gradient("fill", low, high, **kwargs)


def scale_colour_gradient2(
    low: str = "#832424", mid: str = "#FFFFFF", high: str = "#3A3A98", midpoint: float = 0.0, **kwargs: Any
) -> ScaleContinuous:
    """Diverging gradient around ``midpoint``."""
    return _gradient2("colour", low, mid, high, midpoint, **kwargs)


def scale_fill_gradient2(
    low: str = "#832424", mid: str = "#FFFFFF", high: str = "#3A3A98", midpoint: float = 0.0, **kwargs: Any
) -> ScaleContinuous:
    return _gradient2("fill", low, mid, high, midpoint, **kwargs)


scale_colour_continuous = scale_colour_gradient
scale_fill_continuous = scale_fill_gradient


def scale_colour_discrete(**kwargs: Any) -> ScaleDiscrete:
    kwargs.setdefault("na_value", _GREY50)
    return ScaleDiscrete(("colour",), palette=hue_palette, **kwargs)


def scale_fill_discrete(**kwargs: Any) -> ScaleDiscrete:
    kwargs.setdefault("na_value", _GREY50)
    return ScaleDiscrete(("fill",), palette=hue_palette, **kwargs)


def _manual(aesthetic: str, values: Any, **kwargs: Any) -> ScaleDiscrete:
    kwargs.setdefault("na_value", _GREY50 if aesthetic in ("colour", "fill") else np.nan)
    if isinstance(values, dict):
        kwargs.setdefault("limits", list(values))
        return ScaleDiscrete((aesthetic,), palette=dict(values), **kwargs)
    return ScaleDiscrete((aesthetic,), palette=manual_palette(values), **kwargs)


def scale_colour_manual(values: Any, **kwargs: Any) -> ScaleDiscrete:
    """Discrete colours given explicitly, as a list or a level → colour mapping."""
    return _manual("colour", values, **kwargs)


def scale_fill_manual(values: Any, **kwargs: Any) -> ScaleDiscrete:
    return _manual("fill", values, **kwargs)


def scale_colour_identity(**kwargs: Any) -> ScaleIdentity:
    return ScaleIdentity(("colour",), **kwargs)


def scale_fill_identity(**kwargs: Any) -> ScaleIdentity:
    return ScaleIdentity(("fill",), **kwargs)


def scale_colour_binned(low: str = "#132B43", high: str = "#56B1F7", n_bins: int = 5, **kwargs: Any) -> ScaleBinned:
    """Stepped colour scale: one colour per bin."""
    kwargs.setdefault("na_value", _GREY50)
    return ScaleBinned(("colour",), n_bins=n_bins, palette=gradient_palette(low, high), **kwargs)


def scale_fill_binned(low: str = "#132B43", high: str = "#56B1F7", n_bins: int = 5, **kwargs: Any) -> ScaleBinned:
    kwargs.setdefault("na_value", _GREY50)
    return ScaleBinned(("fill",), n_bins=n_bins, palette=gradient_palette(low, high), **kwargs)


def scale_size(range: tuple[float, float] = (1.0, 6.0), **kwargs: Any) -> ScaleContinuous:  # noqa: A002
    """Point size proportional to area, in mm."""
    return ScaleContinuous(("size",), palette=area_palette(range), **kwargs)


def scale_alpha(range: tuple[float, float] = (0.1, 1.0), **kwargs: Any) -> ScaleContinuous:  # noqa: A002
    return ScaleContinuous(("alpha",), palette=rescale_palette(range), **kwargs)


def scale_linewidth(range: tuple[float, float] = (1.0, 6.0), **kwargs: Any) -> ScaleContinuous:  # noqa: A002
    return ScaleContinuous(("linewidth",), palette=rescale_palette(range), **kwargs)


def scale_shape(**kwargs: Any) -> ScaleDiscrete:
    """Discrete marker symbols (at most six)."""
    limits = kwargs.get("limits")
    if limits is not None and len(limits) > MAX_SHAPES:
        logger.warning("scale_shape: %d limits exceed the %d available shapes", len(limits), MAX_SHAPES)
    return ScaleDiscrete(("shape",), palette=shape_palette, **kwargs)


def scale_linetype(**kwargs: Any) -> ScaleDiscrete:
    return ScaleDiscrete(("linetype",), palette=linetype_palette, **kwargs)
