"""Merge uploaded statements into one deduplicated ledger per physical account.

Statements are grouped by the last four digits of their account number. A
statement without an account number is never merged with anything: it becomes
its own account and is reported back as an
:class:`~statement_signals.errors.UnreconciledAccount` so a human can
intervene.

Within a group of several statements the chronologically first one supplies
the beginning balance and the display identity. All rows are concatenated,
deduplicated under ``(date, amount, description)`` and sorted by date; totals
and metrics are recomputed from the deduplicated set, never summed across
statements. ``months_of_statements`` is the sum of the statements' own
periods.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from . import metrics as metrics_mod
from .errors import DataQualityIssue, MalformedTransactionError, UnreconciledAccount
from .logging_setup import get_logger
from .models import Account, DateRange, Statement, Transaction
from .normalize import normalize

_logger = get_logger("statement_signals.merge")


@dataclass(frozen=True, slots=True)
class MergeResult:
    """Accounts produced from one applicant's statements.

    ``unreconciled`` lists the accounts that came from statements lacking an
    account number; they also appear in ``accounts``.
    """

    accounts: tuple[Account, ...]
    unreconciled: tuple[UnreconciledAccount, ...] = ()

    @property
    def issues(self) -> tuple[DataQualityIssue, ...]:
        return tuple(issue for account in self.accounts for issue in account.issues)


# ---------------------------------------------------------------------------
# Per-statement helpers
# ---------------------------------------------------------------------------


def normalize_statement(
    statement: Statement, *, skip_malformed: bool = True
) -> tuple[list[Transaction], list[DataQualityIssue]]:
    """Normalize every raw row of ``statement``.

    With ``skip_malformed`` a bad row is dropped and recorded as a
    :class:`DataQualityIssue`; otherwise the first
    :class:`MalformedTransactionError` propagates.
    """

    txns: list[Transaction] = []
    issues: list[DataQualityIssue] = []
    for idx, raw in enumerate(statement.raw_transactions):
        try:
            txns.append(normalize(raw, statement_id=statement.id, row_index=idx))
        except MalformedTransactionError as exc:
            if not skip_malformed:
                raise
            _logger.warning(
                "merge:row_skipped statement=%s row=%d field=%s reason=%s",
                statement.id,
                idx,
                exc.field,
                exc.reason,
            )
            issues.append(
                DataQualityIssue(
                    statement_id=statement.id,
                    field=exc.field,
                    raw_value=None if exc.raw_value is None else str(exc.raw_value),
                    message=f"row skipped: {exc.reason}",
                    row_index=idx,
                )
            )
    return txns, issues


def effective_period(statement: Statement, txns: Sequence[Transaction]) -> DateRange | None:
    """Declared period, or the transaction date span when none was declared."""

    if statement.period is not None:
        return statement.period
    return DateRange.spanning([t.date for t in txns])


def statement_months(statement: Statement, txns: Sequence[Transaction]) -> int:
    """Month count of a single statement's own period (at least one)."""

    if statement.declared_months is not None:
        return statement.declared_months
    period = effective_period(statement, txns)
    if period is None:
        return 1
    return metrics_mod.estimate_months(period.days)


def dedupe(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Drop repeated ``(date, amount, description)`` rows, keeping the first seen.

    Duplicates are removed, never summed. The result is sorted by date; rows
    sharing a date keep their input order.
    """

    seen: set[tuple[dt.date, object, str]] = set()
    unique: list[Transaction] = []
    for t in transactions:
        key = t.identity
        if key in seen:
            continue
        seen.add(key)
        unique.append(t)
    unique.sort(key=lambda t: t.date)
    return unique


def group_statements(statements: Iterable[Statement]) -> list[list[Statement]]:
    """Group statements by account suffix, preserving first-seen order.

    Every statement with an unknown account number forms its own group.
    """

    groups: list[list[Statement]] = []
    by_suffix: dict[str, list[Statement]] = {}
    for s in statements:
        suffix = s.account_suffix
        if not suffix:
            groups.append([s])
            continue
        group = by_suffix.get(suffix)
        if group is None:
            group = by_suffix[suffix] = []
            groups.append(group)
        group.append(s)
    return groups


def _account_name(primary: Statement) -> str:
    suffix = primary.account_suffix
    if not suffix:
        return f"Unidentified account ({primary.file_name or primary.id})"
    if primary.bank_name:
        return f"{primary.bank_name} {suffix}"
    return f"Account ending in {suffix}"


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def merge_account(statements: Sequence[Statement], *, skip_malformed: bool = True) -> Account:
    """Build one :class:`Account` from statements of the same physical account.

    A single statement is wrapped as-is (its rows sorted by date). Several
    statements are merged as described in the module docstring.
    """

    if not statements:
        raise ValueError("merge_account requires at least one statement")

    normalized: list[tuple[Statement, list[Transaction]]] = []
    issues: list[DataQualityIssue] = []
    for s in statements:
        txns, row_issues = normalize_statement(s, skip_malformed=skip_malformed)
        normalized.append((s, txns))
        issues.extend(s.issues)
        issues.extend(row_issues)

    if len(normalized) == 1:
        statement, txns = normalized[0]
        ledger = sorted(txns, key=lambda t: t.date)
        period = effective_period(statement, ledger)
        computed = metrics_mod.compute(
            ledger,
            statement.beginning_balance,
            period,
            months_of_statements=statement.declared_months,
        )
        return Account(
            id=statement.id,
            account_number_suffix=statement.account_suffix,
            beginning_balance=statement.beginning_balance,
            statements=(statement,),
            transactions=tuple(ledger),
            metrics=computed,
            account_name=_account_name(statement),
            bank_name=statement.bank_name,
            period=period,
            issues=tuple(issues),
        )

    def _chronological_key(item: tuple[int, tuple[Statement, list[Transaction]]]):
        pos, (s, txns) = item
        first = min((t.date for t in txns), default=None)
        if first is None and s.period is not None:
            first = s.period.start
        return (first is None, first or dt.date.max, pos)

    ordered = [pair for _, pair in sorted(enumerate(normalized), key=_chronological_key)]
    primary = ordered[0][0]

    combined = [t for _, txns in ordered for t in txns]
    ledger = dedupe(combined)
    removed = len(combined) - len(ledger)

    periods = [p for s, txns in ordered if (p := effective_period(s, txns)) is not None]
    period = (
        DateRange(min(p.start for p in periods), max(p.end for p in periods)) if periods else None
    )
    months = sum(statement_months(s, txns) for s, txns in ordered)

    computed = metrics_mod.compute(
        ledger, primary.beginning_balance, period, months_of_statements=months
    )
    _logger.info(
        "merge:group_merged suffix=%s statements=%d combined=%d duplicates_removed=%d unique=%d",
        primary.account_suffix,
        len(ordered),
        len(combined),
        removed,
        len(ledger),
    )
    return Account(
        id=primary.id,
        account_number_suffix=primary.account_suffix,
        beginning_balance=primary.beginning_balance,
        statements=tuple(s for s, _ in ordered),
        transactions=tuple(ledger),
        metrics=computed,
        account_name=_account_name(primary),
        bank_name=primary.bank_name,
        period=period,
        issues=tuple(issues),
    )


def merge(statements: Iterable[Statement], *, skip_malformed: bool = True) -> MergeResult:
    """Group one applicant's statements by account and merge each group."""

    groups = group_statements(statements)
    accounts: list[Account] = []
    unreconciled: list[UnreconciledAccount] = []
    for group in groups:
        account = merge_account(group, skip_malformed=skip_malformed)
        accounts.append(account)
        if not account.account_number_suffix:
            statement = group[0]
            _logger.warning(
                "merge:unreconciled statement=%s file=%s", statement.id, statement.file_name
            )
            unreconciled.append(
                UnreconciledAccount(
                    account_id=account.id,
                    statement_id=statement.id,
                    file_name=statement.file_name,
                    reason="no account number extracted; not merged with any other statement",
                )
            )

    _logger.info(
        "merge:done statements=%d accounts=%d unreconciled=%d",
        sum(len(g) for g in groups),
        len(accounts),
        len(unreconciled),
    )
    return MergeResult(accounts=tuple(accounts), unreconciled=tuple(unreconciled))


__all__ = [
    "MergeResult",
    "dedupe",
    "effective_period",
    "group_statements",
    "merge",
    "merge_account",
    "normalize_statement",
    "statement_months",
]
