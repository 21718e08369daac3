from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

import pytest

from statement_signals.errors import DataQualityIssue, MalformedTransactionError
from statement_signals.merge import dedupe, group_statements, merge, merge_account
from statement_signals.models import DateRange
from tests.helpers.builders import d, make_statement, txn

JAN_ROWS = [
    ("2025-01-05", "100.00", "DEPOSIT A"),
    ("2025-01-20", "-50.00", "CARD PURCHASE"),
]
FEB_ROWS = [
    ("2025-01-20", "-50.00", "CARD PURCHASE"),  # carried over onto the next statement
    ("2025-02-03", "200.00", "DEPOSIT B"),
]


def _jan(**kw):
    kw.setdefault("account_number", "XXXX5678")
    kw.setdefault("beginning_balance", "1000")
    return make_statement("jan", JAN_ROWS, period=("2025-01-01", "2025-01-31"), **kw)


def _feb(**kw):
    kw.setdefault("account_number", "000012345678")
    kw.setdefault("beginning_balance", "1050")
    return make_statement("feb", FEB_ROWS, period=("2025-02-01", "2025-02-28"), **kw)


def test_statements_with_same_suffix_merge_into_one_account():
    result = merge([_jan(), _feb()])

    assert len(result.accounts) == 1
    assert result.unreconciled == ()
    account = result.accounts[0]
    assert account.account_number_suffix == "5678"
    assert account.file_names == ("jan.pdf", "feb.pdf")
    assert [t.description for t in account.transactions] == [
        "DEPOSIT A",
        "CARD PURCHASE",
        "DEPOSIT B",
    ]
    assert account.period == DateRange(d("2025-01-01"), d("2025-02-28"))
    assert account.metrics.months_of_statements == 2
    assert account.metrics.total_deposits == Decimal("300.00")
    assert account.metrics.total_withdrawals == Decimal("50.00")
    assert account.metrics.ending_balance == Decimal("1250.00")


def test_chronologically_first_statement_supplies_balance_and_identity():
    account = merge([_feb(bank_name="Chase"), _jan(bank_name="Chase")]).accounts[0]
    assert account.id == "jan"
    assert account.beginning_balance == Decimal("1000")
    assert account.account_name == "Chase 5678"
    assert account.file_names == ("jan.pdf", "feb.pdf")


def test_dedupe_count_never_exceeds_sum_of_statements():
    overlapping = merge([_jan(), _feb()]).accounts[0]
    assert len(overlapping.transactions) < len(JAN_ROWS) + len(FEB_ROWS)

    disjoint_feb = make_statement(
        "feb",
        [("2025-02-03", "200.00", "DEPOSIT B")],
        account_number="5678",
        period=("2025-02-01", "2025-02-28"),
    )
    disjoint = merge([_jan(), disjoint_feb]).accounts[0]
    assert len(disjoint.transactions) == len(JAN_ROWS) + 1


def test_dedupe_keeps_first_and_sorts_by_date():
    a = txn("2025-01-03", "-10", "X")
    b = txn("2025-01-01", "5", "Y")
    dup = txn("2025-01-03", "-10", "X")
    assert dedupe([a, b, dup]) == [b, a]


def test_merging_a_merged_account_again_is_identity():
    account = merge([_jan(), _feb()]).accounts[0]
    again = merge_account([account.as_statement()])
    assert replace(again, statements=account.statements) == account


def test_remerging_keeps_issues_from_skipped_rows():
    s = make_statement("s", [("2025-01-02", "10", "OK"), ("bad", "1", "X")])
    t = make_statement("t", [("2025-01-09", "-4", "FEE")])
    account = merge([s, t]).accounts[0]
    assert [issue.raw_value for issue in account.issues] == ["bad"]

    again = merge_account([account.as_statement()])
    assert again.issues == account.issues
    assert replace(again, statements=account.statements) == account


def test_single_statement_is_not_deduplicated():
    rows = [("2025-01-02", "-9.99", "COFFEE"), ("2025-01-02", "-9.99", "COFFEE")]
    account = merge([make_statement("s", rows)]).accounts[0]
    assert len(account.transactions) == 2


def test_missing_account_number_is_never_merged():
    a = make_statement("a", [("2025-01-02", "10", "X")], account_number="")
    b = make_statement("b", [("2025-01-02", "10", "X")], account_number="n/a")
    c = make_statement("c", [("2025-01-03", "20", "Y")])

    result = merge([a, b, c])

    assert [acc.id for acc in result.accounts] == ["a", "b", "c"]
    assert [u.statement_id for u in result.unreconciled] == ["a", "b"]
    assert result.unreconciled[0].file_name == "a.pdf"
    assert result.accounts[0].account_name == "Unidentified account (a.pdf)"
    assert result.accounts[2].account_name == "Account ending in 5678"


def test_group_statements_preserves_first_seen_order():
    s1 = make_statement("s1", account_number="1111")
    s2 = make_statement("s2", account_number="2222")
    s3 = make_statement("s3", account_number="991111")
    assert [[s.id for s in g] for g in group_statements([s1, s2, s3])] == [
        ["s1", "s3"],
        ["s2"],
    ]


def test_malformed_rows_are_skipped_and_reported():
    rows = [
        ("2025-01-02", "10", "OK"),
        ("not a date", "10", "BAD DATE"),
        ("2025-01-03", "ten", "BAD AMOUNT"),
    ]
    result = merge([make_statement("s", rows)])

    account = result.accounts[0]
    assert [t.description for t in account.transactions] == ["OK"]
    assert result.issues == (
        DataQualityIssue(
            statement_id="s",
            field="date",
            raw_value="not a date",
            message="row skipped: unrecognized date: 'not a date'",
            row_index=1,
        ),
        DataQualityIssue(
            statement_id="s",
            field="amount",
            raw_value="ten",
            message="row skipped: invalid amount: 'ten'",
            row_index=2,
        ),
    )


def test_malformed_rows_abort_when_not_skipping():
    rows = [("2025-01-02", "10", "OK"), ("2025-01-03", "ten", "BAD AMOUNT")]
    with pytest.raises(MalformedTransactionError) as info:
        merge([make_statement("s", rows)], skip_malformed=False)
    assert info.value.statement_id == "s"
    assert info.value.row_index == 1


def test_statement_issues_travel_with_the_account():
    issue = DataQualityIssue(
        statement_id="jan", field="beginning_balance", raw_value=None, message="defaulted"
    )
    result = merge([replace(_jan(), issues=(issue,)), _feb()])
    assert result.issues == (issue,)


def test_empty_statement_keeps_its_declared_period():
    s = make_statement("empty", [], period=("2025-01-01", "2025-03-31"), beginning_balance="42")
    account = merge([s]).accounts[0]
    assert account.transactions == ()
    assert account.metrics.avg_daily_balance == Decimal("42.00")
    assert account.metrics.months_of_statements == 1
