"""Adapter from the document-extraction service's result payload to a Statement.

Payload shape (only the keys read here are listed)::

    {
      "status": "DONE" | "DUPLICATE" | "FAILED" | "IN PROGRESS",
      "document_id": 123,
      "General_fields": {"Account Number": {"value": "...1234"}, ...},
      "Line_fields": {
        "Transaction date": [{"value": "01/04/2025"}, ...],   # or {"values": [...]}
        ...
      }
    }

General fields read: account number, bank name, beginning balance and
statement period. Line-field columns are zipped by position into
:class:`~statement_signals.models.RawTransaction` rows; nothing is parsed here
beyond the statement-level values, so malformed rows surface later, during
normalization, with their row index.

Any statement-level value that has to be defaulted is recorded as a
:class:`~statement_signals.errors.DataQualityIssue` on the statement.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import DataQualityIssue, MalformedTransactionError
from .logging_setup import get_logger
from .models import ZERO, RawTransaction, Statement
from .normalize import parse_amount, parse_statement_period

_logger = get_logger("statement_signals.extraction")

ACCOUNT_NUMBER_FIELDS = ("Account Number", "Account number", "account_number")
BANK_NAME_FIELDS = ("Bank Name", "Bank name", "bank_name")
BEGINNING_BALANCE_FIELDS = ("Beginning Balance", "Beginning balance", "beginning_balance")
STATEMENT_PERIOD_FIELDS = ("Statement Period", "Statement period", "statement_period")

DATE_COLUMN = "Transaction date"
TYPE_COLUMN = "Transaction type"
AMOUNT_COLUMN = "Transaction amount"
DESCRIPTION_COLUMN = "Transaction description"
CHECK_NUMBER_COLUMN = "Check number"


class FieldValue(BaseModel):
    model_config = ConfigDict(extra="allow")

    value: Any = None


class LineColumn(BaseModel):
    """A line-field column delivered as ``{"values": [...]}``."""

    model_config = ConfigDict(extra="allow")

    values: list[FieldValue] = Field(default_factory=list)


class ExtractionResult(BaseModel):
    """Validated view of one extraction task result."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    status: Literal["IN PROGRESS", "DONE", "FAILED", "DUPLICATE"] = "DONE"
    status_message: str | None = None
    document_id: int | None = None
    document_name: str | None = None
    general_fields: dict[str, FieldValue] = Field(default_factory=dict, alias="General_fields")
    line_fields: dict[str, list[FieldValue] | LineColumn] = Field(
        default_factory=dict, alias="Line_fields"
    )

    @field_validator("general_fields", "line_fields", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    def general(self, *names: str) -> Any:
        """First non-blank general-field value among ``names``."""

        for name in names:
            field = self.general_fields.get(name)
            if field is None or field.value is None:
                continue
            if isinstance(field.value, str) and not field.value.strip():
                continue
            return field.value
        return None

    def column(self, name: str) -> list[Any]:
        col = self.line_fields.get(name)
        if col is None:
            return []
        items = col.values if isinstance(col, LineColumn) else col
        return [item.value for item in items]


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _at(values: list[Any], idx: int) -> Any:
    return values[idx] if idx < len(values) else None


def statement_from_extraction(
    payload: ExtractionResult | Mapping[str, Any],
    *,
    statement_id: str,
    file_name: str,
) -> Statement:
    """Build a :class:`Statement` from an extraction result.

    ``FAILED`` results yield an empty, still merge-eligible statement marked
    ``extraction_status="failed"``. ``IN PROGRESS`` results are rejected with
    ``ValueError``; the engine only runs on completed extractions.
    """

    result = (
        payload
        if isinstance(payload, ExtractionResult)
        else ExtractionResult.model_validate(payload)
    )

    if result.status == "IN PROGRESS":
        raise ValueError(f"extraction for statement {statement_id} has not completed")

    account_number = _text(result.general(*ACCOUNT_NUMBER_FIELDS))
    bank_name = _text(result.general(*BANK_NAME_FIELDS)) or None

    if result.status == "FAILED":
        _logger.warning(
            "extraction:failed statement=%s file=%s message=%s",
            statement_id,
            file_name,
            result.status_message,
        )
        return Statement(
            id=statement_id,
            file_name=file_name,
            account_number=account_number,
            bank_name=bank_name,
            extraction_status="failed",
            issues=(
                DataQualityIssue(
                    statement_id=statement_id,
                    field="status",
                    raw_value=result.status_message,
                    message="extraction failed; statement has no transactions",
                ),
            ),
        )

    issues: list[DataQualityIssue] = []

    raw_balance = result.general(*BEGINNING_BALANCE_FIELDS)
    beginning_balance = ZERO
    if raw_balance is None:
        issues.append(
            DataQualityIssue(
                statement_id=statement_id,
                field="beginning_balance",
                raw_value=None,
                message="beginning balance missing; defaulted to 0",
            )
        )
    else:
        try:
            beginning_balance = parse_amount(raw_balance)
        except MalformedTransactionError as exc:
            issues.append(
                DataQualityIssue(
                    statement_id=statement_id,
                    field="beginning_balance",
                    raw_value=_text(raw_balance),
                    message=f"beginning balance unreadable ({exc.reason}); defaulted to 0",
                )
            )

    raw_period = result.general(*STATEMENT_PERIOD_FIELDS)
    period = None
    try:
        period = parse_statement_period(None if raw_period is None else str(raw_period))
    except ValueError as exc:
        issues.append(
            DataQualityIssue(
                statement_id=statement_id,
                field="statement_period",
                raw_value=_text(raw_period),
                message=f"{exc}; period will be inferred from transaction dates",
            )
        )

    dates = result.column(DATE_COLUMN)
    types = result.column(TYPE_COLUMN)
    amounts = result.column(AMOUNT_COLUMN)
    descriptions = result.column(DESCRIPTION_COLUMN)
    check_numbers = result.column(CHECK_NUMBER_COLUMN)
    count = max(len(dates), len(types), len(amounts))

    rows = tuple(
        RawTransaction(
            date_text=_text(_at(dates, i)),
            amount=_at(amounts, i),
            description=_text(_at(descriptions, i)),
            type_text=_text(_at(types, i)) or "Other",
            check_number=_text(_at(check_numbers, i)) or None,
        )
        for i in range(count)
    )

    _logger.info(
        "extraction:parsed statement=%s rows=%d dates=%d amounts=%d descriptions=%d issues=%d",
        statement_id,
        count,
        len(dates),
        len(amounts),
        len(descriptions),
        len(issues),
    )
    return Statement(
        id=statement_id,
        file_name=file_name,
        raw_transactions=rows,
        account_number=account_number,
        beginning_balance=beginning_balance,
        period=period,
        bank_name=bank_name,
        issues=tuple(issues),
    )


__all__ = [
    "FieldValue",
    "LineColumn",
    "ExtractionResult",
    "statement_from_extraction",
]
