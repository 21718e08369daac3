from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from statement_signals.errors import MalformedTransactionError
from statement_signals.models import DateRange, RawTransaction, TransactionKind
from statement_signals.normalize import (
    classify_kind,
    normalize,
    normalize_counterparty,
    parse_amount,
    parse_date,
    parse_statement_period,
)


@pytest.mark.parametrize(
    "text",
    ["2025-04-01", "2025-04-01T00:00:00.000Z", "2025-04-01 13:45", "01/04/2025", "01-04-2025"],
)
def test_parse_date_accepts_iso_and_day_first(text):
    assert parse_date(text) == dt.date(2025, 4, 1)


def test_parse_date_passes_through_date_objects():
    assert parse_date(dt.datetime(2025, 4, 1, 9, 30)) == dt.date(2025, 4, 1)
    assert parse_date(dt.date(2025, 4, 1)) == dt.date(2025, 4, 1)


@pytest.mark.parametrize("text", ["", "   ", None, "31/02/2025", "April 1st", "2025-13-01"])
def test_parse_date_rejects_unreadable_values(text):
    with pytest.raises(MalformedTransactionError) as info:
        parse_date(text)
    assert info.value.field == "date"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("$1,234.56", Decimal("1234.56")),
        ("(1,234.56)", Decimal("-1234.56")),
        ("-$20.00", Decimal("-20.00")),
        ("$-20", Decimal("-20")),
        ("+15", Decimal("15")),
        ("($5.00)", Decimal("-5.00")),
        (12, Decimal("12")),
        (0.1, Decimal("0.1")),
        (Decimal("-3.50"), Decimal("-3.50")),
    ],
)
def test_parse_amount_handles_statement_formats(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["", None, "abc", True, "1.2.3", "NaN", Decimal("Infinity")])
def test_parse_amount_rejects_non_amounts(raw):
    with pytest.raises(MalformedTransactionError) as info:
        parse_amount(raw)
    assert info.value.field == "amount"


def test_parse_statement_period():
    assert parse_statement_period("01/04/2025 through 30/04/2025") == DateRange(
        dt.date(2025, 4, 1), dt.date(2025, 4, 30)
    )
    assert parse_statement_period("2025-04-01 thru 2025-04-30").days == 30
    assert parse_statement_period(None) is None
    assert parse_statement_period("  ") is None


@pytest.mark.parametrize("text", ["April 2025", "01/04/2025 - 30/04/2025", "xx through yy"])
def test_parse_statement_period_rejects_unreadable_text(text):
    with pytest.raises(ValueError):
        parse_statement_period(text)


@pytest.mark.parametrize(
    ("type_text", "amount", "expected"),
    [
        ("Check", Decimal("-50"), TransactionKind.CHECK),
        ("Deposit", Decimal("100"), TransactionKind.DEPOSIT),
        ("Credit", Decimal("100"), TransactionKind.DEPOSIT),
        ("ACH Debit", Decimal("-10"), TransactionKind.WITHDRAWAL),
        ("Withdrawal", Decimal("-10"), TransactionKind.WITHDRAWAL),
        ("Other", Decimal("-10"), TransactionKind.WITHDRAWAL),
        ("", Decimal("10"), TransactionKind.DEPOSIT),
        ("", Decimal("0"), TransactionKind.OTHER),
        ("Fee", Decimal("-10"), TransactionKind.OTHER),
    ],
)
def test_classify_kind(type_text, amount, expected):
    assert classify_kind(type_text, amount) is expected


def test_normalize_cleans_text_and_keeps_sign():
    raw = RawTransaction(
        date_text="02/04/2025",
        amount="(250.00)",
        description="  ACH   DEBIT  ABC  CAPITAL ",
        type_text=" Debit ",
        check_number="  ",
    )
    t = normalize(raw)
    assert t.date == dt.date(2025, 4, 2)
    assert t.amount == Decimal("-250.00")
    assert t.description == "ACH DEBIT ABC CAPITAL"
    assert t.kind is TransactionKind.WITHDRAWAL
    assert t.type_text == "Debit"
    assert t.check_number is None


def test_normalize_tags_errors_with_location():
    raw = RawTransaction(date_text="2025-04-02", amount="n/a", description="x")
    with pytest.raises(MalformedTransactionError) as info:
        normalize(raw, statement_id="stmt-1", row_index=4)
    err = info.value
    assert err.statement_id == "stmt-1"
    assert err.row_index == 4
    assert err.field == "amount"
    assert err.raw_value == "n/a"
    assert "(statement=stmt-1, row=4)" in str(err)


@pytest.mark.parametrize(
    ("description", "expected"),
    [
        ("ACH DEBIT ABC CAPITAL FUNDING LLC PMT", "ABC CAPITAL FUNDING"),
        ("ach debit abc capital", "ABC CAPITAL"),
        ("WITHDRAWAL PAYMENT TRANSFER XYZ FUNDING WD", "XYZ FUNDING"),
        ("PAYMENT", ""),
        ("", ""),
    ],
)
def test_normalize_counterparty(description, expected):
    assert normalize_counterparty(description) == expected
