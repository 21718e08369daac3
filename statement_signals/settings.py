"""Tunable thresholds for reconciliation and signal extraction.

Every heuristic constant the engine uses lives on :class:`EngineSettings`.
Operations accept an optional ``settings`` keyword and fall back to
:data:`DEFAULT_SETTINGS`. Hosts may override individual values through
``STATEMENT_SIGNALS_*`` environment variables via :meth:`EngineSettings.from_env`.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from decimal import Decimal, InvalidOperation
from typing import Any

_ENV_PREFIX = "STATEMENT_SIGNALS_"


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Thresholds used by the merger, the transfer detector and the position detector.

    Attributes
    ----------
    amount_tolerance:
        Largest absolute difference between a withdrawal and a deposit that
        still counts as the same internal transfer.
    date_tolerance_days:
        Largest day gap between the two legs of an internal transfer.
    position_window_days:
        Trailing window, relative to the latest transaction in the data set,
        inside which recurring withdrawals are analyzed.
    min_occurrences:
        Fewest withdrawals needed to call a counterparty group a pattern.
    confidence_threshold:
        Positions are emitted only when their score is strictly above this.
    amount_cv_limit:
        Amounts are "consistent" when stdev / mean is below this ratio.
    interval_stdev_limit:
        Intervals are "consistent" when their stdev (days) is below this.
    near_duplicate_ratio:
        ``rapidfuzz`` similarity (0-100) at which two distinct counterparty
        group names are flagged for review.
    max_workers:
        Applicant-level concurrency for :func:`reconcile_applicants`.
    """

    amount_tolerance: Decimal = Decimal("0.01")
    date_tolerance_days: int = 3
    position_window_days: int = 90
    min_occurrences: int = 3
    confidence_threshold: float = 0.6
    amount_cv_limit: float = 0.10
    interval_stdev_limit: float = 3.0
    near_duplicate_ratio: float = 90.0
    max_workers: int = 4

    def __post_init__(self) -> None:
        if self.amount_tolerance < 0:
            raise ValueError("amount_tolerance must be non-negative")
        for name in ("date_tolerance_days", "position_window_days"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.min_occurrences < 2:
            raise ValueError("min_occurrences must be at least 2 (one interval)")
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError("confidence_threshold must be within [0,1]")
        if self.max_workers < 1:
            raise ValueError("max_workers must be a positive integer")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineSettings:
        """Build settings from ``STATEMENT_SIGNALS_<FIELD>`` variables.

        Unset or blank variables keep their defaults. A value that cannot be
        converted raises ``ValueError`` naming the variable.
        """

        env = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        for f in fields(cls):
            var = _ENV_PREFIX + f.name.upper()
            raw = (env.get(var) or "").strip()
            if not raw:
                continue
            convert = _CONVERTERS[f.name]
            try:
                overrides[f.name] = convert(raw)
            except (ValueError, InvalidOperation) as exc:
                raise ValueError(f"invalid value for {var}: {raw!r}") from exc
        return replace(DEFAULT_SETTINGS, **overrides) if overrides else DEFAULT_SETTINGS


_CONVERTERS: dict[str, Callable[[str], Any]] = {
    "amount_tolerance": Decimal,
    "date_tolerance_days": int,
    "position_window_days": int,
    "min_occurrences": int,
    "confidence_threshold": float,
    "amount_cv_limit": float,
    "interval_stdev_limit": float,
    "near_duplicate_ratio": float,
    "max_workers": int,
}

DEFAULT_SETTINGS = EngineSettings()


__all__ = ["EngineSettings", "DEFAULT_SETTINGS"]
