"""Exception taxonomy and recoverable diagnostics for the build pipeline.

Purpose
-------
Every failure the pipeline can raise is a subclass of :class:`GGToolkitError`
so callers can catch the whole family at once, while each subclass also
inherits the closest builtin exception (``ValueError``, ``LookupError``, ...)
for code that only knows the standard hierarchy.

Recoverable events (censored rows, failing stat partitions) do not raise.
They are recorded as :class:`Diagnostic` records on the build result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

__all__ = [
    "GGToolkitError",
    "DataShapeError",
    "AestheticEvalError",
    "ScaleDomainError",
    "StatComputationError",
    "GuideMergeConflictError",
    "StatComputationWarning",
    "Diagnostic",
]


class GGToolkitError(Exception):
    """Base class for every error raised by ``gg_toolkit``."""


class DataShapeError(GGToolkitError, ValueError):
    """Raised when layer data is not a table of named columns or lacks required columns."""


class AestheticEvalError(GGToolkitError, LookupError):
    """Raised when an aesthetic expression references a column unavailable at that stage."""

    def __init__(self, expression: str, missing: tuple[str, ...], stage: str) -> None:
        self.expression = expression
        self.missing = tuple(missing)
        self.stage = stage
        hint = ""
        if stage == "start":
            hint = (
                " Columns computed by a stat are only available inside "
                "after_stat(...)."
            )
        super().__init__(
            f"Cannot evaluate aesthetic {expression!r} at stage {stage!r}: "
            f"missing column(s) {', '.join(repr(m) for m in self.missing)}.{hint}"
        )

    def __str__(self) -> str:
        return str(self.args[0])


class ScaleDomainError(GGToolkitError, ValueError):
    """Raised when a value cannot be placed in its scale's declared domain."""


class StatComputationError(GGToolkitError, RuntimeError):
    """Raised when a statistic fails on a partition and failures are fatal."""


class GuideMergeConflictError(GGToolkitError, ValueError):
    """Raised when two scales declare the same merge key for incompatible guides."""


class StatComputationWarning(UserWarning):
    """Issued when a stat partition fails and its rows are dropped."""


@dataclass(frozen=True)
class Diagnostic:
    """Immutable record of one recoverable pipeline event.

    Parameters
    ----------
    stage : str
        Pipeline stage that produced the event (``"stat"``, ``"scale"``, ...).
    message : str
        Human-readable description.
    layer : int or None
        Zero-based layer index, when the event is layer specific.
    panel_id : int or None
        Panel of the affected partition, if any.
    group_id : int or None
        Group of the affected partition, if any.
    """

    stage: str
    message: str
    layer: Optional[int] = None
    panel_id: Optional[int] = None
    group_id: Optional[int] = None

    def __str__(self) -> str:
        where = []
        if self.layer is not None:
            where.append(f"layer={self.layer}")
        if self.panel_id is not None:
            where.append(f"panel_id={self.panel_id}")
        if self.group_id is not None:
            where.append(f"group_id={self.group_id}")
        suffix = f" ({', '.join(where)})" if where else ""
        return f"[{self.stage}] {self.message}{suffix}"
