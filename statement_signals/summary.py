"""Applicant-level underwriting figures derived from reconciled accounts.

:func:`summarize` rolls account metrics and detected positions up into an
:class:`ApplicantSummary` with a coarse risk level. :func:`stacking_analysis`
estimates what a new advance would add to the applicant's existing daily
obligations.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum

from .metrics import to_cents
from .models import ZERO, Account, Frequency, Position

PAYMENT_DAYS_PER_WEEK = 5


class RiskLevel(StrEnum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


def risk_level(position_count: int, nsf_count: int, negative_balance_days: int) -> RiskLevel:
    """Additive score over positions, NSF events and negative days.

    +3 for more than 3 positions (+1 for more than 1), +3 for more than 3
    NSFs (+1 for any), +2 for more than 3 negative days. A score of 5 or more
    is high, 2 or more moderate.
    """

    score = 0
    if position_count > 3:
        score += 3
    elif position_count > 1:
        score += 1
    if nsf_count > 3:
        score += 3
    elif nsf_count > 0:
        score += 1
    if negative_balance_days > 3:
        score += 2

    if score >= 5:
        return RiskLevel.HIGH
    if score >= 2:
        return RiskLevel.MODERATE
    return RiskLevel.LOW


@dataclass(frozen=True, slots=True)
class ApplicantSummary:
    total_deposits: Decimal
    total_withdrawals: Decimal
    transaction_count: int
    account_count: int
    failed_extraction_count: int
    internal_transfer_count: int
    internal_transfer_amount: Decimal
    position_count: int
    daily_obligation: Decimal
    nsf_count: int
    negative_balance_days: int
    risk_level: RiskLevel


def summarize(accounts: Sequence[Account], positions: Sequence[Position]) -> ApplicantSummary:
    """Roll per-account metrics up to the applicant.

    Deposits, withdrawals and NSF counts are summed across accounts;
    ``negative_balance_days`` is the worst single account. Internal transfers
    are not netted out of the totals. Statements whose extraction failed are
    counted so a reviewer knows the totals are missing their rows.
    """

    nsf = sum(a.metrics.nsf_count for a in accounts)
    negative_days = max((a.metrics.negative_balance_days for a in accounts), default=0)
    return ApplicantSummary(
        total_deposits=sum((a.metrics.total_deposits for a in accounts), ZERO),
        total_withdrawals=sum((a.metrics.total_withdrawals for a in accounts), ZERO),
        transaction_count=sum(len(a.transactions) for a in accounts),
        account_count=len(accounts),
        failed_extraction_count=sum(len(a.failed_statement_ids) for a in accounts),
        internal_transfer_count=sum(len(a.internal_transfers) for a in accounts),
        internal_transfer_amount=sum(
            (t.amount for a in accounts for t in a.internal_transfers), ZERO
        ),
        position_count=len(positions),
        daily_obligation=sum(
            (p.payment_amount for p in positions if p.frequency is Frequency.DAILY), ZERO
        ),
        nsf_count=nsf,
        negative_balance_days=negative_days,
        risk_level=risk_level(len(positions), nsf, negative_days),
    )


# ---------------------------------------------------------------------------
# Stacking calculator
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StackingAnalysis:
    """Cost of a proposed advance on top of the existing obligations."""

    funding_amount: Decimal
    factor_rate: Decimal
    term_weeks: int
    payment_frequency: Frequency
    payback_amount: Decimal
    payment_count: int
    payment_amount: Decimal
    new_daily_obligation: Decimal
    total_daily_obligation: Decimal
    utilization_pct: Decimal

    @property
    def utilization_band(self) -> str:
        """``danger`` above 50%, ``warning`` above 30%, otherwise ``good``."""

        if self.utilization_pct > 50:
            return "danger"
        if self.utilization_pct > 30:
            return "warning"
        return "good"


def stacking_analysis(
    funding_amount: Decimal | int | str,
    factor_rate: Decimal | int | str,
    term_weeks: int,
    *,
    payment_frequency: Frequency = Frequency.DAILY,
    existing_daily_obligation: Decimal | int | str = ZERO,
    avg_daily_deposit: Decimal | int | str = ZERO,
) -> StackingAnalysis:
    """Estimate payments and deposit utilization for a new advance.

    Parameters
    ----------
    funding_amount, factor_rate, term_weeks:
        Advance terms; all must be positive.
    payment_frequency:
        ``DAILY`` (five business-day payments a week) or ``WEEKLY``.
    existing_daily_obligation:
        Current daily payments, typically ``ApplicantSummary.daily_obligation``.
    avg_daily_deposit:
        Used as the utilization denominator; utilization is 0 without deposits.
    """

    amount = Decimal(funding_amount)
    factor = Decimal(factor_rate)
    existing = Decimal(existing_daily_obligation)
    deposits = Decimal(avg_daily_deposit)
    if amount <= 0:
        raise ValueError("funding_amount must be positive")
    if factor <= 0:
        raise ValueError("factor_rate must be positive")
    if term_weeks <= 0:
        raise ValueError("term_weeks must be positive")
    if existing < 0 or deposits < 0:
        raise ValueError("existing_daily_obligation and avg_daily_deposit must be non-negative")

    if payment_frequency is Frequency.DAILY:
        payment_count = term_weeks * PAYMENT_DAYS_PER_WEEK
    elif payment_frequency is Frequency.WEEKLY:
        payment_count = term_weeks
    else:
        raise ValueError(f"unsupported payment frequency: {payment_frequency}")

    payback = to_cents(amount * factor)
    payment = to_cents(payback / payment_count)
    new_daily = (
        payment
        if payment_frequency is Frequency.DAILY
        else to_cents(payment / PAYMENT_DAYS_PER_WEEK)
    )
    total_daily = existing + new_daily
    utilization = to_cents(total_daily / deposits * 100) if deposits > 0 else ZERO

    return StackingAnalysis(
        funding_amount=amount,
        factor_rate=factor,
        term_weeks=term_weeks,
        payment_frequency=payment_frequency,
        payback_amount=payback,
        payment_count=payment_count,
        payment_amount=payment,
        new_daily_obligation=new_daily,
        total_daily_obligation=total_daily,
        utilization_pct=utilization,
    )


__all__ = [
    "RiskLevel",
    "risk_level",
    "ApplicantSummary",
    "summarize",
    "StackingAnalysis",
    "stacking_analysis",
]
