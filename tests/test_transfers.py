from __future__ import annotations

from decimal import Decimal

from statement_signals.merge import merge
from statement_signals.models import Transfer
from statement_signals.settings import EngineSettings
from statement_signals.transfers import attach_transfers, detect_transfers
from tests.helpers.builders import d, make_statement


def _accounts(a_rows, b_rows):
    a = make_statement("A", a_rows, account_number="1111")
    b = make_statement("B", b_rows, account_number="2222")
    return list(merge([a, b]).accounts)


def test_matching_withdrawal_and_deposit_produce_one_transfer():
    accounts = _accounts(
        [("2024-03-01", "-500.00", "ONLINE TRANSFER TO 2222")],
        [
            ("2024-03-02", "500.00", "ONLINE TRANSFER FROM 1111"),
            ("2024-03-05", "500.50", "MOBILE DEPOSIT"),
        ],
    )

    assert detect_transfers(accounts) == [
        Transfer(
            from_account_id="A",
            to_account_id="B",
            amount=Decimal("500.00"),
            date=d("2024-03-01"),
            note="Transfer: ONLINE TRANSFER TO 2222 → ONLINE TRANSFER FROM 1111",
        )
    ]


def test_amount_and_date_tolerances_are_respected():
    accounts = _accounts(
        [("2024-03-01", "-500.00", "OUT")],
        [
            ("2024-03-04", "500.01", "IN WITHIN BOTH"),
            ("2024-03-05", "500.00", "IN FOUR DAYS LATER"),
            ("2024-03-01", "500.02", "IN TWO CENTS OFF"),
        ],
    )
    assert [t.note for t in detect_transfers(accounts)] == ["Transfer: OUT → IN WITHIN BOTH"]


def test_tolerances_come_from_settings():
    accounts = _accounts(
        [("2024-03-01", "-500.00", "OUT")],
        [("2024-03-08", "505.00", "IN")],
    )
    loose = EngineSettings(amount_tolerance=Decimal("5"), date_tolerance_days=7)
    assert len(detect_transfers(accounts, settings=loose)) == 1
    assert detect_transfers(accounts) == []


def test_transfers_within_one_account_are_ignored():
    accounts = _accounts(
        [("2024-03-01", "-500.00", "OUT"), ("2024-03-01", "500.00", "IN")],
        [],
    )
    assert detect_transfers(accounts) == []


def test_several_candidates_are_all_reported():
    accounts = _accounts(
        [("2024-03-01", "-200.00", "OUT")],
        [("2024-03-01", "200.00", "IN 1"), ("2024-03-02", "200.00", "IN 2")],
    )
    assert len(detect_transfers(accounts)) == 2


def test_attach_transfers_annotates_source_without_touching_metrics():
    accounts = _accounts(
        [("2024-03-01", "-500.00", "OUT")],
        [("2024-03-02", "500.00", "IN")],
    )
    attached = attach_transfers(accounts)

    assert len(attached[0].internal_transfers) == 1
    assert attached[1].internal_transfers == ()
    assert [a.metrics for a in attached] == [a.metrics for a in accounts]

    # Re-deriving replaces rather than appends.
    assert attach_transfers(attached) == attached
