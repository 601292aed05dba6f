"""Tests for build options and the exception taxonomy."""

from __future__ import annotations

import threading

import pytest

from gg_toolkit.errors import (
    AestheticEvalError,
    DataShapeError,
    Diagnostic,
    GGToolkitError,
    GuideMergeConflictError,
    ScaleDomainError,
    StatComputationError,
)
from gg_toolkit.options import PlotOptions, get_options, option_context, set_options


def test_defaults() -> None:
    options = get_options()
    assert isinstance(options, PlotOptions)
    assert options.stat_failure == "warn"
    assert options.width > 0 and options.height > 0


def test_option_context_nests_and_restores() -> None:
    with option_context(stat_failure="raise", width=100):
        assert get_options().stat_failure == "raise"
        with option_context(width=50):
            assert get_options().width == 50
            assert get_options().stat_failure == "raise"
        assert get_options().width == 100
    assert get_options().stat_failure == "warn"


def test_option_context_rejects_unknown_names() -> None:
    with pytest.raises(TypeError, match="Unknown option"):
        with option_context(colour="red"):
            pass


def test_option_context_rejects_bad_policy() -> None:
    with pytest.raises(ValueError, match="stat_failure"):
        with option_context(stat_failure="ignore"):
            pass


def test_overrides_are_thread_local() -> None:
    seen: list[str] = []

    def worker() -> None:
        seen.append(get_options().stat_failure)

    with option_context(stat_failure="raise"):
        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()
    assert seen == ["warn"]


def test_set_options_replaces_global_defaults() -> None:
    original = get_options().n_breaks
    try:
        assert set_options(n_breaks=7).n_breaks == 7
        assert get_options().n_breaks == 7
    finally:
        set_options(n_breaks=original)


@pytest.mark.parametrize(
    "exc_type, builtin",
    [
        (DataShapeError, ValueError),
        (ScaleDomainError, ValueError),
        (StatComputationError, RuntimeError),
        (GuideMergeConflictError, ValueError),
    ],
)
def test_errors_share_a_base_and_a_builtin(exc_type: type, builtin: type) -> None:
    assert issubclass(exc_type, GGToolkitError)
    assert issubclass(exc_type, builtin)


def test_aesthetic_eval_error_message_hints_after_stat() -> None:
    err = AestheticEvalError("count", ("count",), "start")
    assert isinstance(err, LookupError)
    assert "after_stat" in str(err)
    assert err.missing == ("count",)


def test_diagnostic_str_lists_location() -> None:
    diag = Diagnostic(stage="stat", message="boom", layer=0, panel_id=1, group_id=2)
    assert str(diag) == "[stat] boom (layer=0, panel_id=1, group_id=2)"
