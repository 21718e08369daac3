"""Error types and data-quality records.

Only :class:`MalformedTransactionError` is ever raised by the engine. The other
types here are plain records handed back to the caller: an unreconciled account
is a deliberate, reportable outcome and a data-quality issue documents every
value the engine skipped or defaulted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class StatementSignalsError(Exception):
    """Base class for errors raised by ``statement_signals``."""


class MalformedTransactionError(StatementSignalsError, ValueError):
    """A transaction row whose date or amount cannot be parsed."""

    def __init__(
        self,
        message: str,
        *,
        field: str,
        raw_value: Any,
        statement_id: str | None = None,
        row_index: int | None = None,
    ) -> None:
        self.reason = message
        self.field = field
        self.raw_value = raw_value
        self.statement_id = statement_id
        self.row_index = row_index
        where = ""
        if statement_id is not None:
            where = f" (statement={statement_id}"
            where += f", row={row_index})" if row_index is not None else ")"
        super().__init__(f"{message}{where}")

    def with_location(
        self, *, statement_id: str, row_index: int | None
    ) -> MalformedTransactionError:
        """Return a copy of this error tagged with its source statement and row."""

        return MalformedTransactionError(
            self.reason,
            field=self.field,
            raw_value=self.raw_value,
            statement_id=statement_id,
            row_index=row_index,
        )


@dataclass(frozen=True, slots=True)
class DataQualityIssue:
    """A value that was skipped or defaulted instead of used as extracted."""

    statement_id: str
    field: str
    raw_value: str | None
    message: str
    row_index: int | None = None


@dataclass(frozen=True, slots=True)
class UnreconciledAccount:
    """A statement that could not be matched to any account number.

    It is still analyzed as its own standalone account (``account_id``); this
    record exists so a reviewer knows the merge step never considered it.
    """

    account_id: str
    statement_id: str
    file_name: str
    reason: str


__all__ = [
    "StatementSignalsError",
    "MalformedTransactionError",
    "DataQualityIssue",
    "UnreconciledAccount",
]
