"""Pytest configuration for test isolation.

:meth:`EngineSettings.from_env` and ``configure_logging`` read
``STATEMENT_SIGNALS_*`` variables. A developer shell that exports one of them
would silently change thresholds under test, so every test starts with those
variables removed.
"""

from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_engine_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop any ``STATEMENT_SIGNALS_*`` variable inherited from the environment."""

    for name in list(os.environ):
        if name.startswith("STATEMENT_SIGNALS_"):
            monkeypatch.delenv(name, raising=False)
