from __future__ import annotations

from decimal import Decimal

import pytest

from statement_signals.settings import DEFAULT_SETTINGS, EngineSettings


def test_defaults():
    s = EngineSettings()
    assert s.amount_tolerance == Decimal("0.01")
    assert s.date_tolerance_days == 3
    assert s.position_window_days == 90
    assert s.min_occurrences == 3
    assert s.confidence_threshold == 0.6


def test_from_env_without_overrides_returns_defaults():
    assert EngineSettings.from_env({}) is DEFAULT_SETTINGS
    assert EngineSettings.from_env({"STATEMENT_SIGNALS_MAX_WORKERS": "  "}) is DEFAULT_SETTINGS


def test_from_env_reads_prefixed_variables():
    s = EngineSettings.from_env(
        {
            "STATEMENT_SIGNALS_AMOUNT_TOLERANCE": "0.05",
            "STATEMENT_SIGNALS_MIN_OCCURRENCES": "4",
            "STATEMENT_SIGNALS_CONFIDENCE_THRESHOLD": "0.75",
            "UNRELATED": "1",
        }
    )
    assert s.amount_tolerance == Decimal("0.05")
    assert s.min_occurrences == 4
    assert s.confidence_threshold == 0.75
    assert s.position_window_days == DEFAULT_SETTINGS.position_window_days


def test_from_env_reads_process_environment(monkeypatch):
    monkeypatch.setenv("STATEMENT_SIGNALS_POSITION_WINDOW_DAYS", "120")
    assert EngineSettings.from_env().position_window_days == 120


def test_from_env_names_the_bad_variable():
    with pytest.raises(ValueError, match="STATEMENT_SIGNALS_DATE_TOLERANCE_DAYS"):
        EngineSettings.from_env({"STATEMENT_SIGNALS_DATE_TOLERANCE_DAYS": "three"})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"amount_tolerance": Decimal("-0.01")},
        {"date_tolerance_days": -1},
        {"min_occurrences": 1},
        {"confidence_threshold": 1.5},
        {"max_workers": 0},
    ],
)
def test_invalid_settings_are_rejected(kwargs):
    with pytest.raises(ValueError):
        EngineSettings(**kwargs)
