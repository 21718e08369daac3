"""Data models for the reconciliation engine.

All records are frozen, slotted dataclasses. Collections are tuples so a
computed :class:`Account` or :class:`Metrics` can never be mutated in place;
anything derived from a changed transaction set is rebuilt from scratch.

Money is always :class:`~decimal.Decimal` with the sign convention
"positive = credit/deposit, negative = debit/withdrawal". Dates are naive
calendar dates (statements carry no time-of-day).
"""

from __future__ import annotations

import datetime as dt
import re
from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter

from .errors import DataQualityIssue

ZERO = Decimal("0")

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class TransactionKind(StrEnum):
    """Coarse, advisory classification; ``Transaction.amount`` sign is authoritative."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    CHECK = "check"
    OTHER = "other"


class Frequency(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# ---------------------------------------------------------------------------
# Periods and transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DateRange:
    """An inclusive calendar date range."""

    start: dt.date
    end: dt.date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"DateRange end {self.end} precedes start {self.start}")

    @property
    def days(self) -> int:
        """Number of calendar days, counting both endpoints."""

        return (self.end - self.start).days + 1

    def __contains__(self, day: object) -> bool:
        return isinstance(day, dt.date) and self.start <= day <= self.end

    def iter_days(self) -> Iterator[dt.date]:
        current = self.start
        while current <= self.end:
            yield current
            current += dt.timedelta(days=1)

    @classmethod
    def spanning(cls, dates: list[dt.date] | tuple[dt.date, ...]) -> DateRange | None:
        """Smallest range covering ``dates`` (``None`` when empty)."""

        if not dates:
            return None
        return cls(min(dates), max(dates))


@dataclass(frozen=True, slots=True)
class RawTransaction:
    """One extracted row exactly as the document-extraction service produced it."""

    date_text: str
    amount: str | Decimal | int | float | None
    description: str = ""
    type_text: str = ""
    check_number: str | None = None


@dataclass(frozen=True, slots=True)
class Transaction:
    """A normalized ledger entry.

    Two transactions are duplicates when their :attr:`identity` is equal;
    ``kind``, ``type_text`` and ``check_number`` do not take part in it.
    """

    date: dt.date
    amount: Decimal
    description: str
    kind: TransactionKind
    check_number: str | None = None
    type_text: str = ""

    @property
    def identity(self) -> tuple[dt.date, Decimal, str]:
        return (self.date, self.amount, self.description)

    @property
    def is_deposit(self) -> bool:
        return self.amount > 0

    @property
    def is_withdrawal(self) -> bool:
        return self.amount < 0


# ---------------------------------------------------------------------------
# Statements and accounts
# ---------------------------------------------------------------------------

_NON_DIGITS = re.compile(r"\D+")


@dataclass(frozen=True, slots=True)
class Statement:
    """One uploaded document's extraction result.

    ``period`` is the declared statement period; when absent, consumers infer
    it from the transaction dates. ``declared_months`` pins the statement's
    month count (used when a merged account is turned back into a statement).
    """

    id: str
    file_name: str
    raw_transactions: tuple[RawTransaction, ...] = ()
    account_number: str = ""
    beginning_balance: Decimal = ZERO
    period: DateRange | None = None
    bank_name: str | None = None
    declared_months: int | None = None
    extraction_status: str = "done"
    issues: tuple[DataQualityIssue, ...] = ()

    @property
    def account_suffix(self) -> str:
        """Last four digits of the account number, or ``""`` when unknown."""

        return _NON_DIGITS.sub("", self.account_number or "")[-4:]


@dataclass(frozen=True, slots=True)
class Metrics:
    """Summary and risk figures derived from one transaction set."""

    total_deposits: Decimal
    total_withdrawals: Decimal
    ending_balance: Decimal
    avg_daily_balance: Decimal
    avg_daily_deposit: Decimal
    nsf_count: int
    negative_balance_days: int
    months_of_statements: int


@dataclass(frozen=True, slots=True)
class Transfer:
    """A probable movement of money between two of the applicant's own accounts."""

    from_account_id: str
    to_account_id: str
    amount: Decimal
    date: dt.date
    note: str


@dataclass(frozen=True, slots=True)
class Account:
    """A physical bank account after merging every statement that belongs to it."""

    id: str
    account_number_suffix: str
    beginning_balance: Decimal
    statements: tuple[Statement, ...]
    transactions: tuple[Transaction, ...]
    metrics: Metrics
    account_name: str
    bank_name: str | None = None
    period: DateRange | None = None
    internal_transfers: tuple[Transfer, ...] = ()
    issues: tuple[DataQualityIssue, ...] = ()

    @property
    def file_names(self) -> tuple[str, ...]:
        return tuple(s.file_name for s in self.statements)

    @property
    def failed_statement_ids(self) -> tuple[str, ...]:
        """Statements whose extraction failed and so contributed no rows."""

        return tuple(s.id for s in self.statements if s.extraction_status == "failed")

    def as_statement(self) -> Statement:
        """Collapse this account back into a single equivalent statement.

        Merging the returned statement on its own reproduces this account's
        ledger, balances, metrics and data-quality issues.
        """

        rows = tuple(
            RawTransaction(
                date_text=t.date.isoformat(),
                amount=t.amount,
                description=t.description,
                type_text=t.type_text,
                check_number=t.check_number,
            )
            for t in self.transactions
        )
        return Statement(
            id=self.id,
            file_name=self.statements[0].file_name if self.statements else "",
            raw_transactions=rows,
            account_number=self.account_number_suffix,
            beginning_balance=self.beginning_balance,
            period=self.period,
            bank_name=self.bank_name,
            declared_months=self.metrics.months_of_statements,
            issues=self.issues,
        )


# ---------------------------------------------------------------------------
# Recurring obligations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Position:
    """A probable existing recurring debt obligation (e.g. an MCA repayment).

    ``estimated_balance`` is a rough proxy (mean payment times occurrences in
    the analysis window), not an amortized balance.
    """

    counterparty: str
    payment_amount: Decimal
    frequency: Frequency
    estimated_balance: Decimal
    confidence: float
    occurrences: int


@dataclass(frozen=True, slots=True)
class MultiplePull:
    """Several withdrawals to the same counterparty on the same day."""

    counterparty: str
    date: dt.date
    count: int
    total_amount: Decimal


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


@lru_cache(maxsize=None)
def _adapter(tp: type) -> TypeAdapter[Any]:
    return TypeAdapter(tp)


def to_record(obj: Any) -> Any:
    """Return ``obj`` as JSON-safe nested dicts/lists.

    Decimals become strings, dates ISO strings, enums their values. Lists and
    tuples of models are converted element-wise.
    """

    if isinstance(obj, (list, tuple)):
        return [to_record(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): to_record(v) for k, v in obj.items()}
    return _adapter(type(obj)).dump_python(obj, mode="json")


__all__ = [
    "ZERO",
    "TransactionKind",
    "Frequency",
    "DateRange",
    "RawTransaction",
    "Transaction",
    "Statement",
    "Metrics",
    "Transfer",
    "Account",
    "Position",
    "MultiplePull",
    "to_record",
]
