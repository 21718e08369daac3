"""Balance simulation and per-account risk metrics.

:func:`compute` derives :class:`~statement_signals.models.Metrics` from a
transaction set, its beginning balance and the statement period. The average
daily balance and negative-day count come from a day-by-day running balance,
because risk depends on when in the period the account was overdrawn and not
only on the net total.
"""

from __future__ import annotations

import datetime as dt
import math
import re
from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .logging_setup import get_logger
from .models import ZERO, DateRange, Metrics, Transaction

_logger = get_logger("statement_signals.metrics")

_CENT = Decimal("0.01")
DAYS_PER_MONTH = 30

# Whole-word patterns; a bare substring test would count every "TRANSFER" as an NSF.
NSF_PATTERNS: tuple[str, ...] = (
    r"NSF",
    r"NON[- ]?SUFFICIENT",
    r"INSUFFICIENT FUNDS?",
    r"RETURNED ITEMS?",
    r"RETURN ITEMS?",
    r"OVERDRAFT FEES?",
    r"OD FEES?",
)
_NSF_RE = re.compile(r"\b(?:" + "|".join(NSF_PATTERNS) + r")\b", re.IGNORECASE)


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def is_nsf(txn: Transaction) -> bool:
    """True when the description or the extracted type uses NSF vocabulary."""

    return bool(_NSF_RE.search(txn.description) or _NSF_RE.search(txn.type_text))


def count_nsf(transactions: Iterable[Transaction]) -> int:
    """Conservative lower bound on NSF/returned-item/overdraft events."""

    return sum(1 for t in transactions if is_nsf(t))


def estimate_months(calendar_days: int) -> int:
    """``round(days / 30)`` with halves rounded up, floored at one month."""

    return max(1, math.floor(calendar_days / DAYS_PER_MONTH + 0.5))


@dataclass(frozen=True, slots=True)
class DailyBalance:
    date: dt.date
    balance: Decimal


def simulate_daily_balances(
    transactions: Iterable[Transaction],
    beginning_balance: Decimal,
    period: DateRange,
) -> Iterator[DailyBalance]:
    """Yield each day's closing balance from ``period.start`` to ``period.end``.

    Each day's net (all transactions sharing that date) is applied before the
    day closes. Transactions dated outside ``period`` never touch the balance.
    """

    net_by_day: dict[dt.date, Decimal] = defaultdict(lambda: ZERO)
    outside = 0
    for t in transactions:
        if t.date in period:
            net_by_day[t.date] += t.amount
        else:
            outside += 1
    if outside:
        _logger.debug(
            "metrics:outside_period count=%d start=%s end=%s",
            outside,
            period.start.isoformat(),
            period.end.isoformat(),
        )

    balance = beginning_balance
    for day in period.iter_days():
        balance += net_by_day.get(day, ZERO)
        yield DailyBalance(date=day, balance=balance)


def compute(
    transactions: Iterable[Transaction],
    beginning_balance: Decimal,
    period: DateRange | None = None,
    *,
    months_of_statements: int | None = None,
) -> Metrics:
    """Compute :class:`Metrics` for one account's transaction set.

    Parameters
    ----------
    transactions:
        The (deduplicated) ledger. Zero-amount rows count toward neither
        deposits nor withdrawals.
    beginning_balance:
        Balance before the first day of ``period``.
    period:
        Declared statement period. When ``None`` the span between the
        earliest and latest transaction is used.
    months_of_statements:
        Month count supplied by the merge step (sum of the statements' own
        periods). When ``None`` it is estimated from the period length.

    Notes
    -----
    ``ending_balance`` is always ``beginning + deposits - withdrawals`` and
    never a bank-reported figure, so it stays consistent with the ledger.
    """

    txns = list(transactions)
    begin = Decimal(beginning_balance)

    total_deposits = sum((t.amount for t in txns if t.amount > 0), ZERO)
    total_withdrawals = sum((-t.amount for t in txns if t.amount < 0), ZERO)
    ending_balance = begin + total_deposits - total_withdrawals

    if not txns:
        return Metrics(
            total_deposits=ZERO,
            total_withdrawals=ZERO,
            ending_balance=ending_balance,
            avg_daily_balance=to_cents(begin),
            avg_daily_deposit=ZERO,
            nsf_count=0,
            negative_balance_days=0,
            months_of_statements=months_of_statements or 1,
        )

    if period is None:
        dates = [t.date for t in txns]
        window = DateRange(min(dates), max(dates))
    else:
        window = period
    calendar_days = window.days

    closing = [d.balance for d in simulate_daily_balances(txns, begin, window)]
    avg_daily_balance = sum(closing, ZERO) / len(closing)
    negative_days = sum(1 for b in closing if b < 0)

    return Metrics(
        total_deposits=total_deposits,
        total_withdrawals=total_withdrawals,
        ending_balance=ending_balance,
        avg_daily_balance=to_cents(avg_daily_balance),
        avg_daily_deposit=to_cents(total_deposits / calendar_days),
        nsf_count=count_nsf(txns),
        negative_balance_days=negative_days,
        months_of_statements=(
            months_of_statements
            if months_of_statements is not None
            else estimate_months(calendar_days)
        ),
    )


__all__ = [
    "NSF_PATTERNS",
    "DailyBalance",
    "compute",
    "count_nsf",
    "estimate_months",
    "is_nsf",
    "simulate_daily_balances",
    "to_cents",
]
