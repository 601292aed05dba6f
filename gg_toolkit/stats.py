"""Statistical Transform Engine.

Purpose
-------
A stat summarises rows before they are drawn: binning for histograms,
counting for bar charts, smoothing, per-x summaries and kernel densities.
Stats are stateless objects; every per-build value travels in the ``params``
dictionary produced by :meth:`Stat.setup_params`.

Protocol
--------
``setup_params(data, params, scales)``
    Inspect the whole layer once and return the final parameters.
``setup_data(data, params)``
    One-time transform of the whole layer before partitioning.
``compute_layer(data, params, scales, report)``
    Partition by ``panel_id`` and hand each panel to ``compute_panel``.
``compute_panel(data, params, scales, report)``
    Partition by ``group_id`` and call ``compute_group`` per partition.
``compute_group(data, scales, **params)``
    Return zero or more output rows for one ``(panel_id, group_id)`` slice.

After each partition, ``panel_id`` and ``group_id`` are re-attached from the
partition key, together with every input column that is constant inside the
partition and not produced by the stat.

Failure policy
--------------
A partition whose computation raises yields zero rows. By default a
:class:`~gg_toolkit.errors.StatComputationWarning` is issued, the message is
logged at WARNING level and a :class:`~gg_toolkit.errors.Diagnostic` is
passed to ``report``. With ``option_context(stat_failure="raise")`` the
failure raises :class:`~gg_toolkit.errors.StatComputationError` and aborts
the build.
"""

from __future__ import annotations

import logging
import math
import warnings
from collections.abc import Callable, Mapping
from typing import Any, Optional

import numpy as np
import pandas as pd
from scipy import stats as scipy_stats

from .aes import Aes, after_stat
from .breaks import zero_range
from .errors import DataShapeError, Diagnostic, StatComputationError, StatComputationWarning
from .options import get_options
from .row_table import GROUP, PANEL, concat_partitions, constant_columns, iter_partitions, require_columns, resolution

__all__ = [
    "Stat",
    "StatIdentity",
    "StatBin",
    "StatCount",
    "StatSmooth",
    "StatSummary",
    "StatSummaryBin",
    "StatDensity",
    "bin_breaks",
    "bin_vector",
    "bw_nrd0",
    "mean_se",
    "mean_cl_normal",
    "mean_sdl",
    "median_hilow",
    "SUMMARY_FUNCTIONS",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

Reporter = Callable[[Diagnostic], None]


def _numeric_column(data: pd.DataFrame, name: str) -> np.ndarray:
    return pd.to_numeric(data[name], errors="coerce").to_numpy(dtype=float)


def _weights(data: pd.DataFrame) -> np.ndarray:
    if "weight" not in data.columns:
        return np.ones(len(data))
    w = _numeric_column(data, "weight")
    return np.where(np.isfinite(w), w, 0.0)


# SECTION: Stat protocol [id: Stat]
# =============================================================================


class Stat:
    """Base stat: shared partitioning, failure handling and defaults."""

    name = "stat"
    required_aes: tuple[str, ...] = ()
    default_aes: Aes = Aes()
    param_names: tuple[str, ...] = ()
    dropped_aes: tuple[str, ...] = ()

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    def setup_params(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> dict[str, Any]:
        return dict(params)

    def setup_data(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
        return data

    def _remove_missing(self, data: pd.DataFrame) -> pd.DataFrame:
        checks = [c for c in self.required_aes if c in data.columns]
        if not checks or data.empty:
            return data
        bad = np.zeros(len(data), dtype=bool)
        for col in checks:
            values = data[col]
            if pd.api.types.is_numeric_dtype(values):
                bad |= ~np.isfinite(values.to_numpy(dtype=float))
            else:
                bad |= values.isna().to_numpy()
        if bad.any():
            logger.info("Removed %d rows containing non-finite values (%s).", int(bad.sum()), self.name)
            return data.loc[~bad]
        return data

    def compute_layer(
        self,
        data: pd.DataFrame,
        params: Mapping[str, Any],
        scales: Any,
        report: Optional[Reporter] = None,
    ) -> pd.DataFrame:
        if data.empty:
            return data
        require_columns(data, self.required_aes, who=f"{self.name}()")
        data = self._remove_missing(data)
        panels = []
        for _, panel in data.groupby(PANEL, sort=True):
            panels.append(self.compute_panel(panel, params, scales, report))
        return concat_partitions(panels, data.columns)

    def compute_panel(
        self,
        data: pd.DataFrame,
        params: Mapping[str, Any],
        scales: Any,
        report: Optional[Reporter] = None,
    ) -> pd.DataFrame:
        parts = []
        for (panel_id, group_id), part in iter_partitions(data):
            try:
                out = self.compute_group(part, scales, **params)
            except Exception as exc:  # one failing partition must not abort the layer
                self._partition_failed(exc, panel_id, group_id, report)
                continue
            parts.append(self._reattach(out, part, panel_id, group_id))
        return concat_partitions(parts)

    def compute_group(self, data: pd.DataFrame, scales: Any, **params: Any) -> pd.DataFrame:
        raise NotImplementedError

    def _reattach(self, out: pd.DataFrame, part: pd.DataFrame, panel_id: int, group_id: int) -> pd.DataFrame:
        out = out.reset_index(drop=True)
        if out.empty:
            return out
        skip = set(out.columns) | {PANEL, GROUP} | set(self.dropped_aes)
        for col, value in constant_columns(part, exclude=skip).items():
            out[col] = [value] * len(out)
        out[PANEL] = panel_id
        out[GROUP] = group_id
        return out

    def _partition_failed(self, exc: Exception, panel_id: int, group_id: int, report: Optional[Reporter]) -> None:
        message = f"Computation failed in {self.name}(): {type(exc).__name__}: {exc}"
        if get_options().stat_failure == "raise":
            raise StatComputationError(f"{message} (panel_id={panel_id}, group_id={group_id})") from exc
        warnings.warn(message, StatComputationWarning, stacklevel=3)
        logger.warning("%s (panel_id=%s, group_id=%s)", message, panel_id, group_id)
        if report is not None:
            report(Diagnostic(stage="stat", message=message, panel_id=panel_id, group_id=group_id))


class StatIdentity(Stat):
    """Leave the data as is."""

    name = "stat_identity"

    def compute_layer(
        self,
        data: pd.DataFrame,
        params: Mapping[str, Any],
        scales: Any,
        report: Optional[Reporter] = None,
    ) -> pd.DataFrame:
        return data


# SECTION: Binning [id: StatBin]
# =============================================================================


def _breaks_width(
    x_range: tuple[float, float],
    width: float,
    boundary: Optional[float] = None,
    center: Optional[float] = None,
) -> np.ndarray:
    lo, hi = x_range
    if boundary is None:
        boundary = width / 2 if center is None else center - width / 2
    shift = math.floor((lo - boundary) / width)
    origin = boundary + shift * width
    max_x = hi + (1 - 1e-8) * width
    if (max_x - origin) / width > 1e6:
        raise ValueError("The number of histogram bins must be less than 1,000,000. Did you make binwidth too small?")
    count = int(math.floor((max_x - origin) / width + 1e-10)) + 1
    breaks = origin + width * np.arange(count, dtype=float)
    if breaks.size == 1:
        breaks = np.append(breaks, breaks[0] + width)
    return breaks


def bin_breaks(
    x_range: tuple[float, float],
    *,
    bins: Optional[int] = None,
    binwidth: Optional[float] = None,
    breaks: Any = None,
    boundary: Optional[float] = None,
    center: Optional[float] = None,
) -> np.ndarray:
    """Return histogram bin edges for ``x_range``.

    Explicit ``breaks`` win, then ``binwidth``, then ``bins`` (default 30).
    Without ``boundary`` or ``center`` the outer bins are centred on the
    ends of the range.

    Examples
    --------
    >>> bin_breaks((0.0, 4.0), bins=5).tolist()
    [-0.5, 0.5, 1.5, 2.5, 3.5, 4.5]
    """
    if boundary is not None and center is not None:
        raise ValueError("Only one of boundary and center may be specified")
    if breaks is not None:
        return np.sort(np.asarray(list(breaks), dtype=float))
    if binwidth is not None:
        if not binwidth > 0:
            raise ValueError("binwidth must be positive")
        return _breaks_width(x_range, float(binwidth), boundary, center)
    bins = 30 if bins is None else int(bins)
    if bins < 1:
        raise ValueError("bins must be at least 1")
    lo, hi = x_range
    if zero_range(x_range):
        width = 0.1
    elif bins == 1:
        width = hi - lo
        boundary, center = lo, None
    else:
        width = (hi - lo) / (bins - 1)
        if boundary is None and center is None:
            center = lo
    edges = _breaks_width(x_range, width, boundary, center)
    if bins > 1 and not zero_range(x_range) and edges.size > bins + 1:
        edges = edges[: bins + 1]
    return edges


def _bin_index(x: np.ndarray, breaks: np.ndarray, closed: str) -> np.ndarray:
    """Index of the bin holding each value; -1 outside the breaks."""
    fuzz = 1e-8 * float(np.median(np.diff(breaks))) if breaks.size > 1 else 1e-8
    fuzzy = breaks.copy()
    if closed == "right":
        fuzzy[0] -= fuzz
        fuzzy[1:] += fuzz
        idx = np.searchsorted(fuzzy, x, side="left") - 1
    elif closed == "left":
        fuzzy[:-1] -= fuzz
        fuzzy[-1] += fuzz
        idx = np.searchsorted(fuzzy, x, side="right") - 1
    else:
        raise ValueError(f"closed must be 'right' or 'left', got {closed!r}")
    idx[(idx < 0) | (idx >= breaks.size - 1) | ~np.isfinite(x)] = -1
    return idx


def bin_vector(
    x: np.ndarray,
    breaks: np.ndarray,
    weight: Optional[np.ndarray] = None,
    *,
    closed: str = "right",
    pad: bool = False,
) -> pd.DataFrame:
    """Weighted counts of ``x`` in the bins delimited by ``breaks``."""
    x = np.asarray(x, dtype=float)
    weight = np.ones_like(x) if weight is None else np.asarray(weight, dtype=float)
    idx = _bin_index(x, breaks, closed)
    nbins = breaks.size - 1
    inside = idx >= 0
    count = np.bincount(idx[inside], weights=weight[inside], minlength=nbins).astype(float)
    xmin = breaks[:-1].copy()
    xmax = breaks[1:].copy()
    if pad:
        width0 = xmax[0] - xmin[0]
        width1 = xmax[-1] - xmin[-1]
        count = np.concatenate([[0.0], count, [0.0]])
        xmin = np.concatenate([[xmin[0] - width0], xmin, [xmax[-1]]])
        xmax = np.concatenate([[xmin[1]], xmax, [xmax[-1] + width1]])
    width = xmax - xmin
    total = count.sum()
    density = count / width / total if total > 0 else np.zeros_like(count)
    peak_count = count.max() if count.size and count.max() > 0 else 1.0
    peak_density = density.max() if density.size and density.max() > 0 else 1.0
    return pd.DataFrame(
        {
            "count": count,
            "x": (xmin + xmax) / 2,
            "xmin": xmin,
            "xmax": xmax,
            "width": width,
            "density": density,
            "ncount": count / peak_count,
            "ndensity": density / peak_density,
            "flipped_aes": False,
        }
    )


def _finite_range(values: Any) -> Optional[tuple[float, float]]:
    arr = pd.to_numeric(pd.Series(values), errors="coerce").to_numpy(dtype=float)
    arr = arr[np.isfinite(arr)]
    if arr.size == 0:
        return None
    return (float(arr.min()), float(arr.max()))


class StatBin(Stat):
    """Histogram binning of continuous ``x``.

    Computed variables: ``count``, ``density``, ``ncount``, ``ndensity``,
    ``width``, ``xmin``, ``xmax``.
    """

    name = "stat_bin"
    required_aes = ("x",)
    default_aes = Aes(y=after_stat("count"))
    param_names = ("bins", "binwidth", "breaks", "boundary", "center", "closed", "pad")
    dropped_aes = ("weight",)

    def setup_params(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> dict[str, Any]:
        out = dict(params)
        x_scale = scales.find("x") if scales is not None else None
        if x_scale is not None and x_scale.kind == "discrete":
            raise DataShapeError(f"{self.name}() requires a continuous x aesthetic; use stat_count() for discrete x")
        if out.get("breaks") is not None and x_scale is not None and hasattr(x_scale, "transform"):
            out["breaks"] = list(x_scale.transform(np.asarray(list(out["breaks"]), dtype=float)))
        if all(out.get(k) is None for k in ("breaks", "binwidth", "bins")):
            logger.info("%s() using `bins = 30`. Pick better value with `binwidth`.", self.name)
            out["bins"] = 30
        out.setdefault("closed", "right")
        out.setdefault("pad", False)
        out["x_range"] = _finite_range(data["x"]) if "x" in data.columns else None
        return out

    def compute_group(
        self,
        data: pd.DataFrame,
        scales: Any,
        x_range: Optional[tuple[float, float]] = None,
        bins: Optional[int] = None,
        binwidth: Optional[float] = None,
        breaks: Any = None,
        boundary: Optional[float] = None,
        center: Optional[float] = None,
        closed: str = "right",
        pad: bool = False,
        **_: Any,
    ) -> pd.DataFrame:
        x = _numeric_column(data, "x")
        rng = x_range or _finite_range(x)
        if rng is None:
            return pd.DataFrame()
        edges = bin_breaks(rng, bins=bins, binwidth=binwidth, breaks=breaks, boundary=boundary, center=center)
        return bin_vector(x, edges, _weights(data), closed=closed, pad=pad)


# SECTION: Counting [id: StatCount]
# =============================================================================


class StatCount(Stat):
    """Count rows at each distinct ``x``.

    Computed variables: ``count``, ``prop`` (share of the group), ``width``.
    """

    name = "stat_count"
    required_aes = ("x",)
    default_aes = Aes(y=after_stat("count"))
    param_names = ("width",)
    dropped_aes = ("weight",)

    def compute_group(self, data: pd.DataFrame, scales: Any, width: Optional[float] = None, **_: Any) -> pd.DataFrame:
        x = _numeric_column(data, "x")
        counts = pd.Series(_weights(data)).groupby(x, sort=True).sum()
        total = counts.sum()
        bar_width = width if width is not None else resolution(x) * 0.9
        return pd.DataFrame(
            {
                "count": counts.to_numpy(dtype=float),
                "prop": counts.to_numpy(dtype=float) / total if total else np.nan,
                "x": counts.index.to_numpy(dtype=float),
                "width": bar_width,
                "flipped_aes": False,
            }
        )


# SECTION: Smoothing [id: StatSmooth]
# =============================================================================


def _loess_operator(x: np.ndarray, at: np.ndarray, span: float, degree: int) -> np.ndarray:
    """Rows of the local polynomial smoother evaluated at ``at``.

    Each row ``l`` satisfies ``yhat(at_i) = l @ y``; weights are tricube over
    the nearest ``span`` fraction of points.
    """
    n = x.size
    q = min(max(int(math.floor(n * span)), degree + 1), n)
    out = np.zeros((at.size, n))
    for i, x0 in enumerate(at):
        dist = np.abs(x - x0)
        h = float(np.sort(dist)[q - 1])
        if span > 1:
            h *= span
        if h <= 0:
            h = float(dist.max()) or 1.0
        h *= 1 + 1e-8
        u = np.clip(dist / h, 0.0, 1.0)
        w = (1 - u**3) ** 3
        design = np.vander(x - x0, degree + 1, increasing=True)
        weighted = design.T * w
        out[i] = np.linalg.pinv(weighted @ design)[0] @ weighted
    return out


class StatSmooth(Stat):
    """Fitted curve with a confidence band.

    Methods: ``"lm"`` (polynomial least squares, ``degree`` 1 by default) and
    ``"loess"`` (local quadratic, tricube weights, ``span`` 0.75). Without
    ``method``, ``loess`` is used for groups under 1000 rows and ``lm``
    otherwise. The band uses Student t quantiles at ``level``.
    """

    name = "stat_smooth"
    required_aes = ("x", "y")
    param_names = ("method", "degree", "se", "n", "span", "level", "fullrange")
    dropped_aes = ("weight",)

    def setup_params(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> dict[str, Any]:
        out = dict(params)
        if out.get("method") is None:
            largest = int(data.groupby([PANEL, GROUP]).size().max()) if not data.empty else 0
            out["method"] = "loess" if largest < 1000 else "lm"
            logger.info("%s() using method = '%s'", self.name, out["method"])
        if out["method"] not in ("lm", "loess"):
            raise ValueError(f"Unknown smoothing method {out['method']!r}; use 'lm' or 'loess'")
        out.setdefault("n", get_options().smooth_points)
        out["x_range"] = _finite_range(data["x"]) if "x" in data.columns else None
        return out

    def compute_group(
        self,
        data: pd.DataFrame,
        scales: Any,
        method: str = "loess",
        degree: Optional[int] = None,
        se: bool = True,
        n: int = 80,
        span: float = 0.75,
        level: float = 0.95,
        fullrange: bool = False,
        x_range: Optional[tuple[float, float]] = None,
        **_: Any,
    ) -> pd.DataFrame:
        x = _numeric_column(data, "x")
        y = _numeric_column(data, "y")
        ok = np.isfinite(x) & np.isfinite(y)
        x, y = x[ok], y[ok]
        degree = (1 if method == "lm" else 2) if degree is None else int(degree)
        if np.unique(x).size < degree + 1:
            logger.info("%s(): not enough distinct x values for a degree-%d fit; group skipped", self.name, degree)
            return pd.DataFrame()

        lo, hi = x_range if (fullrange and x_range is not None) else (float(x.min()), float(x.max()))
        grid = np.linspace(lo, hi, int(n))

        if method == "lm":
            design = np.vander(x, degree + 1, increasing=True)
            beta, *_rest = np.linalg.lstsq(design, y, rcond=None)
            at = np.vander(grid, degree + 1, increasing=True)
            pred = at @ beta
            df_resid = float(x.size - (degree + 1))
            if df_resid > 0:
                sigma2 = float(np.sum((y - design @ beta) ** 2)) / df_resid
                cov = sigma2 * np.linalg.pinv(design.T @ design)
                stderr = np.sqrt(np.einsum("ij,jk,ik->i", at, cov, at))
            else:
                stderr = np.full(grid.size, np.nan)
        else:
            smoother = _loess_operator(x, x, span, degree)
            fitted = smoother @ y
            operator = _loess_operator(x, grid, span, degree)
            pred = operator @ y
            df_resid = float(x.size - np.trace(smoother))
            if df_resid > 0:
                sigma = math.sqrt(float(np.sum((y - fitted) ** 2)) / df_resid)
                stderr = sigma * np.sqrt(np.sum(operator**2, axis=1))
            else:
                stderr = np.full(grid.size, np.nan)

        out = pd.DataFrame({"x": grid, "y": pred, "flipped_aes": False})
        if se:
            tq = scipy_stats.t.ppf((1 + level) / 2, df_resid) if df_resid > 0 else np.nan
            out["ymin"] = pred - tq * stderr
            out["ymax"] = pred + tq * stderr
            out["se"] = stderr
        return out


# SECTION: Summaries [id: StatSummary]
# =============================================================================


def _finite(values: Any) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    return arr[np.isfinite(arr)]


def mean_se(values: Any, mult: float = 1.0) -> dict[str, float]:
    """Mean plus or minus ``mult`` standard errors."""
    y = _finite(values)
    if y.size == 0:
        return {"y": np.nan, "ymin": np.nan, "ymax": np.nan}
    mean = float(y.mean())
    se = float(np.sqrt(y.var(ddof=1) / y.size)) if y.size > 1 else np.nan
    return {"y": mean, "ymin": mean - mult * se, "ymax": mean + mult * se}


def mean_cl_normal(values: Any, conf_int: float = 0.95) -> dict[str, float]:
    """Mean with a t-based confidence interval."""
    y = _finite(values)
    if y.size < 2:
        mean = float(y.mean()) if y.size else np.nan
        return {"y": mean, "ymin": np.nan, "ymax": np.nan}
    mean = float(y.mean())
    half = float(scipy_stats.t.ppf((1 + conf_int) / 2, y.size - 1)) * float(y.std(ddof=1)) / math.sqrt(y.size)
    return {"y": mean, "ymin": mean - half, "ymax": mean + half}


def mean_sdl(values: Any, mult: float = 2.0) -> dict[str, float]:
    """Mean plus or minus ``mult`` standard deviations."""
    y = _finite(values)
    if y.size == 0:
        return {"y": np.nan, "ymin": np.nan, "ymax": np.nan}
    mean = float(y.mean())
    sd = float(y.std(ddof=1)) if y.size > 1 else np.nan
    return {"y": mean, "ymin": mean - mult * sd, "ymax": mean + mult * sd}


def median_hilow(values: Any, conf_int: float = 0.95) -> dict[str, float]:
    """Median with the central ``conf_int`` quantile range."""
    y = _finite(values)
    if y.size == 0:
        return {"y": np.nan, "ymin": np.nan, "ymax": np.nan}
    lo, mid, hi = np.quantile(y, [(1 - conf_int) / 2, 0.5, (1 + conf_int) / 2])
    return {"y": float(mid), "ymin": float(lo), "ymax": float(hi)}


SUMMARY_FUNCTIONS: dict[str, Callable[..., dict[str, float]]] = {
    "mean_se": mean_se,
    "mean_cl_normal": mean_cl_normal,
    "mean_sdl": mean_sdl,
    "median_hilow": median_hilow,
}


def _summary_fun(fn: Any, role: str) -> Optional[Callable[..., float]]:
    """Resolve ``fn`` to a callable; strings name NumPy reductions (``"median"``)."""
    if fn is None or callable(fn):
        return fn
    if isinstance(fn, str):
        resolved = getattr(np, fn, None)
        if callable(resolved):
            return resolved
        raise ValueError(f"{role}={fn!r} does not name a NumPy function")
    raise TypeError(f"{role} must be a callable or the name of a NumPy function, got {type(fn).__name__}")


def _summariser(
    fun_data: Any = None,
    fun: Any = None,
    fun_min: Any = None,
    fun_max: Any = None,
    fun_args: Optional[Mapping[str, Any]] = None,
) -> Callable[[np.ndarray], dict[str, float]]:
    extra = dict(fun_args or {})
    if fun_data is not None:
        if isinstance(fun_data, str):
            if fun_data not in SUMMARY_FUNCTIONS:
                raise ValueError(f"Unknown summary function {fun_data!r}; choose one of {sorted(SUMMARY_FUNCTIONS)}")
            fun_data = SUMMARY_FUNCTIONS[fun_data]
        return lambda y: dict(fun_data(y, **extra))
    fun = _summary_fun(fun, "fun")
    fun_min = _summary_fun(fun_min, "fun_min")
    fun_max = _summary_fun(fun_max, "fun_max")
    if fun is None and fun_min is None and fun_max is None:
        logger.info("No summary function supplied, defaulting to `mean_se()`")
        return lambda y: mean_se(y)

    def _apply(y: np.ndarray) -> dict[str, float]:
        out = {}
        for key, fn in (("y", fun), ("ymin", fun_min), ("ymax", fun_max)):
            if fn is not None:
                out[key] = float(fn(y, **extra))
        return out

    return _apply


def _summarise_by(keys: np.ndarray, y: np.ndarray, summary: Callable[[np.ndarray], dict[str, float]]) -> pd.DataFrame:
    rows = []
    for key in np.unique(keys[np.isfinite(keys)]):
        record = {"x": float(key)}
        record.update(summary(y[keys == key]))
        rows.append(record)
    return pd.DataFrame.from_records(rows)


class StatSummary(Stat):
    """Summarise ``y`` at each distinct ``x``.

    ``fun_data`` names one of :data:`SUMMARY_FUNCTIONS` or is a callable
    returning ``{"y", "ymin", "ymax"}``; alternatively ``fun``, ``fun_min``
    and ``fun_max`` give the three values separately, each a callable or
    the name of a NumPy reduction such as ``"median"``.
    """

    name = "stat_summary"
    required_aes = ("x", "y")
    param_names = ("fun_data", "fun", "fun_min", "fun_max", "fun_args")

    def setup_params(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> dict[str, Any]:
        out = dict(params)
        out["summary"] = _summariser(
            out.pop("fun_data", None),
            out.pop("fun", None),
            out.pop("fun_min", None),
            out.pop("fun_max", None),
            out.pop("fun_args", None),
        )
        return out

    def compute_group(self, data: pd.DataFrame, scales: Any, summary: Callable[..., dict[str, float]] = mean_se, **_: Any) -> pd.DataFrame:
        out = _summarise_by(_numeric_column(data, "x"), _numeric_column(data, "y"), summary)
        out["flipped_aes"] = False
        return out


class StatSummaryBin(Stat):
    """Summarise ``y`` within bins of ``x``.

    Bin parameters are set up exactly as for :class:`StatBin`.
    """

    name = "stat_summary_bin"
    required_aes = ("x", "y")
    param_names = StatBin.param_names + StatSummary.param_names

    def setup_params(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> dict[str, Any]:
        out = StatBin.setup_params(self, data, params, scales)
        return StatSummary.setup_params(self, data, out, scales)

    def compute_group(
        self,
        data: pd.DataFrame,
        scales: Any,
        summary: Callable[..., dict[str, float]] = mean_se,
        x_range: Optional[tuple[float, float]] = None,
        bins: Optional[int] = None,
        binwidth: Optional[float] = None,
        breaks: Any = None,
        boundary: Optional[float] = None,
        center: Optional[float] = None,
        closed: str = "right",
        **_: Any,
    ) -> pd.DataFrame:
        x = _numeric_column(data, "x")
        rng = x_range or _finite_range(x)
        if rng is None:
            return pd.DataFrame()
        edges = bin_breaks(rng, bins=bins, binwidth=binwidth, breaks=breaks, boundary=boundary, center=center)
        idx = _bin_index(x, edges, closed).astype(float)
        idx[idx < 0] = np.nan
        out = _summarise_by(idx, _numeric_column(data, "y"), summary)
        if out.empty:
            return out
        bin_of = out["x"].to_numpy(dtype=int)
        out["x"] = (edges[bin_of] + edges[bin_of + 1]) / 2
        out["width"] = edges[bin_of + 1] - edges[bin_of]
        out["flipped_aes"] = False
        return out


# SECTION: Density [id: StatDensity]
# =============================================================================


def bw_nrd0(values: Any) -> float:
    """Silverman's rule-of-thumb bandwidth."""
    x = _finite(values)
    if x.size < 2:
        raise ValueError("need at least 2 data points to choose a bandwidth")
    hi = float(x.std(ddof=1))
    q75, q25 = np.quantile(x, [0.75, 0.25])
    lo = min(hi, float(q75 - q25) / 1.34)
    if not lo:
        lo = hi or abs(float(x[0])) or 1.0
    return 0.9 * lo * x.size ** (-0.2)


class StatDensity(Stat):
    """Gaussian kernel density estimate of ``x``.

    Computed variables: ``density``, ``scaled`` and ``ndensity`` (density
    over its maximum), ``count`` (density times the number of points),
    ``wdensity`` (density times the sum of weights), ``n``.
    """

    name = "stat_density"
    required_aes = ("x",)
    default_aes = Aes(y=after_stat("density"))
    param_names = ("bw", "adjust", "kernel", "n", "trim", "bounds")
    dropped_aes = ("weight",)

    def setup_params(self, data: pd.DataFrame, params: Mapping[str, Any], scales: Any) -> dict[str, Any]:
        out = dict(params)
        kernel = out.pop("kernel", "gaussian")
        if kernel != "gaussian":
            raise ValueError(f"Only the gaussian kernel is supported, got {kernel!r}")
        out.setdefault("n", get_options().density_points)
        out["x_range"] = _finite_range(data["x"]) if "x" in data.columns else None
        return out

    def compute_group(
        self,
        data: pd.DataFrame,
        scales: Any,
        bw: Any = "nrd0",
        adjust: float = 1.0,
        n: int = 512,
        trim: bool = False,
        bounds: tuple[float, float] = (-math.inf, math.inf),
        x_range: Optional[tuple[float, float]] = None,
        **_: Any,
    ) -> pd.DataFrame:
        x = _numeric_column(data, "x")
        w = _weights(data)
        ok = np.isfinite(x)
        x, w = x[ok], w[ok]
        if x.size < 2:
            logger.info("%s(): groups with fewer than two data points have been dropped", self.name)
            return pd.DataFrame()
        if isinstance(bw, str):
            if bw != "nrd0":
                raise ValueError(f"Unknown bandwidth rule {bw!r}")
            bandwidth = bw_nrd0(x)
        else:
            bandwidth = float(bw)
        bandwidth *= adjust
        w_sum = float(w.sum())
        weights = w / w_sum if w_sum > 0 else np.full(x.size, 1.0 / x.size)

        if trim or x_range is None:
            lo, hi = float(x.min()), float(x.max())
        else:
            lo, hi = x_range
        lo, hi = max(lo, bounds[0]), min(hi, bounds[1])
        grid = np.linspace(lo, hi, int(n))
        kernel = scipy_stats.norm.pdf((grid[:, None] - x[None, :]) / bandwidth) / bandwidth
        density = kernel @ weights
        peak = float(density.max()) if density.size and density.max() > 0 else 1.0
        return pd.DataFrame(
            {
                "x": grid,
                "density": density,
                "scaled": density / peak,
                "ndensity": density / peak,
                "count": density * x.size,
                "wdensity": density * w_sum,
                "n": x.size,
                "flipped_aes": False,
            }
        )
