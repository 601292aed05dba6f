"""Plot titles and aesthetic titles."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Optional

from .aes import X_AESTHETICS, Y_AESTHETICS, mapping_label, standardise_aes_name

__all__ = ["Labels", "labs", "ggtitle", "xlab", "ylab", "default_labels", "PLOT_LABELS"]

PLOT_LABELS = ("title", "subtitle", "caption", "tag")


class Labels(Mapping):
    """Immutable mapping of label names (aesthetics or plot labels) to text."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None) -> None:
        self._values = {standardise_aes_name(k): v for k, v in (values or {}).items()}

    def __getitem__(self, key: str) -> Any:
        return self._values[standardise_aes_name(key)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"labs({', '.join(f'{k}={v!r}' for k, v in self._values.items())})"

    def updated(self, other: Mapping[str, Any]) -> "Labels":
        merged = dict(self._values)
        merged.update({standardise_aes_name(k): v for k, v in other.items()})
        return Labels(merged)

    def title_for(self, aesthetics: Iterable[str]) -> Optional[str]:
        """First label available for any of ``aesthetics``."""
        for aesthetic in aesthetics:
            if aesthetic in self._values:
                value = self._values[aesthetic]
                return None if value is None else str(value)
        return None


def labs(
    title: Any = None,
    subtitle: Any = None,
    caption: Any = None,
    tag: Any = None,
    **aesthetics: Any,
) -> Labels:
    """Set plot labels and aesthetic titles.

    Examples
    --------
    >>> labs(title="Fuel economy", x="Displacement", colour="Class")["colour"]
    'Class'
    """
    values = dict(aesthetics)
    for key, value in (("title", title), ("subtitle", subtitle), ("caption", caption), ("tag", tag)):
        if value is not None:
            values[key] = value
    return Labels(values)


def ggtitle(label: Any, subtitle: Any = None) -> Labels:
    return labs(title=label, subtitle=subtitle)


def xlab(label: Any) -> Labels:
    return labs(x=label)


def ylab(label: Any) -> Labels:
    return labs(y=label)


def default_labels(mappings: Iterable[Mapping[str, Any]]) -> Labels:
    """Titles derived from the first mapping of each aesthetic.

    The ``x``/``y`` titles come from the first mapped aesthetic of the
    position family (``x``, then ``xmin``, ...).
    """
    values: dict[str, str] = {}
    for mapping in mappings:
        for name, value in mapping.items():
            if name in values:
                continue
            values[name] = mapping_label(value)
        for family, primary in ((X_AESTHETICS, "x"), (Y_AESTHETICS, "y")):
            if primary in values:
                continue
            for name in family:
                if name in mapping:
                    values[primary] = mapping_label(mapping[name])
                    break
    return Labels(values)
