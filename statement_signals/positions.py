"""Unsupervised detection of existing recurring obligations ("positions").

Withdrawals are grouped by normalized counterparty. A group becomes a
candidate when it has enough occurrences inside the trailing analysis window
and its mean interval settles on a daily, weekly or monthly cadence. Each
candidate is described by :class:`PatternFeatures` and scored by a
:class:`ConfidenceScorer`. The default :func:`additive_confidence` is an
engineering heuristic, not a calibrated model; callers may pass another
scorer without changing the pipeline.

Groups that do not qualify are omitted (logged at DEBUG). Lack of data is an
expected outcome here and is never raised as an error.
"""

from __future__ import annotations

import datetime as dt
import statistics
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from itertools import combinations
from typing import Protocol

from rapidfuzz import fuzz

from .logging_setup import get_logger
from .metrics import to_cents
from .models import Frequency, MultiplePull, Position, Transaction, TransactionKind
from .normalize import CounterpartyNormalizer, normalize_counterparty
from .settings import DEFAULT_SETTINGS, EngineSettings

_logger = get_logger("statement_signals.positions")

# Lender names and debit wording typical of merchant cash advance repayments.
MCA_KEYWORDS: tuple[str, ...] = (
    "CAPITAL",
    "FUNDING",
    "ADVANCE",
    "CASH ADVANCE",
    "MERCHANT ADVANCE",
    "DAILY REPAY",
    "HOLDBACK",
    "HOLD BACK",
    "MCA",
    "MERCHANT CASH",
    "BUSINESS CAPITAL",
    "SPEEDY",
    "FUND-A-TREE",
    "JUPITER",
    "NATIONWIDE",
    "EMMY",
    "ESSENTIAL",
    # Keywords are matched against the normalized key, which has its leading
    # role tokens stripped; this one only survives after another token, as in
    # "RETURNED ACH DEBIT".
    "ACH DEBIT",
    "RECURRING WITHDRAWAL",
)


@dataclass(frozen=True, slots=True)
class PatternFeatures:
    """Observed properties of one counterparty's withdrawals in the window."""

    counterparty: str
    frequency: Frequency
    occurrences: int
    mean_amount: Decimal
    mean_interval: float
    consistent_amount: bool
    consistent_interval: bool
    weekday_only: bool
    has_keyword: bool


class ConfidenceScorer(Protocol):
    def __call__(self, features: PatternFeatures) -> float: ...


def additive_confidence(features: PatternFeatures) -> float:
    """Default scorer: additive weights capped at 1.0.

    +0.3 consistent amount, +0.3 consistent interval, +0.2 daily and
    weekday-only, +0.2 lender/ACH keyword, +0.1 at 10+ occurrences and another
    +0.1 at 20+.
    """

    score = 0.0
    if features.consistent_amount:
        score += 0.3
    if features.consistent_interval:
        score += 0.3
    if features.frequency is Frequency.DAILY and features.weekday_only:
        score += 0.2
    if features.has_keyword:
        score += 0.2
    if features.occurrences >= 10:
        score += 0.1
    if features.occurrences >= 20:
        score += 0.1
    return round(min(score, 1.0), 4)


# ---------------------------------------------------------------------------
# Grouping and feature extraction
# ---------------------------------------------------------------------------


def is_withdrawal(txn: Transaction) -> bool:
    """Negative amount, or a type the extractor labeled as a withdrawal/debit."""

    return txn.amount < 0 or txn.kind is TransactionKind.WITHDRAWAL


def group_withdrawals(
    transactions: Iterable[Transaction],
    *,
    normalizer: CounterpartyNormalizer = normalize_counterparty,
) -> dict[str, list[Transaction]]:
    """Group withdrawals by normalized counterparty (blank names are dropped)."""

    groups: dict[str, list[Transaction]] = defaultdict(list)
    for t in transactions:
        if not is_withdrawal(t):
            continue
        key = normalizer(t.description)
        if key:
            groups[key].append(t)
    return dict(groups)


def classify_frequency(mean_interval: float, weekday_only: bool) -> Frequency | None:
    if mean_interval <= 2 and weekday_only:
        return Frequency.DAILY
    if 6 <= mean_interval <= 8:
        return Frequency.WEEKLY
    if 28 <= mean_interval <= 32:
        return Frequency.MONTHLY
    return None


def has_lender_keyword(counterparty: str) -> bool:
    name = counterparty.upper()
    return any(kw in name for kw in MCA_KEYWORDS)


def extract_features(
    counterparty: str,
    occurrences: Sequence[Transaction],
    *,
    as_of: dt.date,
    settings: EngineSettings | None = None,
) -> PatternFeatures | None:
    """Describe one group's pattern, or ``None`` when no cadence is established.

    Only occurrences within ``settings.position_window_days`` before ``as_of``
    (the latest transaction date of the whole data set) are considered.
    """

    cfg = settings or DEFAULT_SETTINGS
    if len(occurrences) < cfg.min_occurrences:
        return None

    cutoff = as_of - dt.timedelta(days=cfg.position_window_days)
    recent = sorted((t for t in occurrences if t.date >= cutoff), key=lambda t: t.date)
    if len(recent) < cfg.min_occurrences:
        return None

    dates = [t.date for t in recent]
    intervals = [(b - a).days for a, b in zip(dates, dates[1:])]
    mean_interval = statistics.fmean(intervals)
    weekday_only = all(d.weekday() < 5 for d in dates)

    frequency = classify_frequency(mean_interval, weekday_only)
    if frequency is None:
        return None

    amounts = [abs(t.amount) for t in recent]
    mean_amount = sum(amounts, Decimal("0")) / len(amounts)
    amount_stdev = statistics.pstdev([float(a) for a in amounts])
    consistent_amount = amount_stdev < cfg.amount_cv_limit * float(mean_amount)
    consistent_interval = statistics.pstdev(intervals) < cfg.interval_stdev_limit

    return PatternFeatures(
        counterparty=counterparty,
        frequency=frequency,
        occurrences=len(recent),
        mean_amount=mean_amount,
        mean_interval=mean_interval,
        consistent_amount=consistent_amount,
        consistent_interval=consistent_interval,
        weekday_only=weekday_only,
        has_keyword=has_lender_keyword(counterparty),
    )


# ---------------------------------------------------------------------------
# Public detectors
# ---------------------------------------------------------------------------


def detect_positions(
    transactions: Iterable[Transaction],
    *,
    normalizer: CounterpartyNormalizer = normalize_counterparty,
    scorer: ConfidenceScorer = additive_confidence,
    settings: EngineSettings | None = None,
) -> list[Position]:
    """Detect recurring obligations in one ledger (or the union of several).

    Returns positions scoring strictly above ``settings.confidence_threshold``,
    highest confidence first. Results are recomputed from scratch on every
    call.
    """

    cfg = settings or DEFAULT_SETTINGS
    txns = list(transactions)
    if not txns:
        return []
    as_of = max(t.date for t in txns)

    positions: list[Position] = []
    for counterparty, occurrences in group_withdrawals(txns, normalizer=normalizer).items():
        features = extract_features(counterparty, occurrences, as_of=as_of, settings=cfg)
        if features is None:
            _logger.debug(
                "positions:group_skipped counterparty=%r occurrences=%d",
                counterparty,
                len(occurrences),
            )
            continue
        confidence = scorer(features)
        if confidence <= cfg.confidence_threshold:
            _logger.debug(
                "positions:below_threshold counterparty=%r confidence=%.2f",
                counterparty,
                confidence,
            )
            continue
        positions.append(
            Position(
                counterparty=counterparty,
                payment_amount=to_cents(features.mean_amount),
                frequency=features.frequency,
                estimated_balance=to_cents(features.mean_amount * features.occurrences),
                confidence=confidence,
                occurrences=features.occurrences,
            )
        )
        _logger.info(
            "positions:detected counterparty=%r frequency=%s occurrences=%d confidence=%.2f",
            counterparty,
            features.frequency.value,
            features.occurrences,
            confidence,
        )

    positions.sort(key=lambda p: (-p.confidence, p.counterparty))
    return positions


@dataclass(frozen=True, slots=True)
class NearDuplicateGroup:
    """Two counterparty keys that may name the same entity."""

    first: str
    second: str
    similarity: float


def find_near_duplicate_groups(
    transactions: Iterable[Transaction],
    *,
    normalizer: CounterpartyNormalizer = normalize_counterparty,
    settings: EngineSettings | None = None,
) -> list[NearDuplicateGroup]:
    """Flag similar counterparty keys where at least one group is sparse.

    A sparse group (fewer than ``min_occurrences``) sitting next to a similar
    name is the usual sign of OCR splitting one counterparty in two. Pairs are
    reported for review only; groups are never merged automatically.
    """

    cfg = settings or DEFAULT_SETTINGS
    groups = group_withdrawals(transactions, normalizer=normalizer)
    flagged: list[NearDuplicateGroup] = []
    for a, b in combinations(sorted(groups), 2):
        if min(len(groups[a]), len(groups[b])) >= cfg.min_occurrences:
            continue
        similarity = fuzz.ratio(a, b)
        if similarity >= cfg.near_duplicate_ratio:
            _logger.info(
                "positions:near_duplicate_groups first=%r second=%r similarity=%.1f",
                a,
                b,
                similarity,
            )
            flagged.append(NearDuplicateGroup(first=a, second=b, similarity=round(similarity, 1)))
    return flagged


def detect_multiple_pulls_per_day(
    transactions: Iterable[Transaction],
    *,
    normalizer: CounterpartyNormalizer = normalize_counterparty,
) -> list[MultiplePull]:
    """Find days on which one counterparty withdrew more than once."""

    by_day: dict[tuple[str, dt.date], list[Transaction]] = defaultdict(list)
    for t in transactions:
        if t.amount >= 0:
            continue
        by_day[(normalizer(t.description), t.date)].append(t)

    pulls = [
        MultiplePull(
            counterparty=counterparty,
            date=day,
            count=len(txns),
            total_amount=sum((-t.amount for t in txns), Decimal("0")),
        )
        for (counterparty, day), txns in by_day.items()
        if len(txns) > 1
    ]
    pulls.sort(key=lambda p: (p.date, p.counterparty))
    return pulls


__all__ = [
    "MCA_KEYWORDS",
    "PatternFeatures",
    "ConfidenceScorer",
    "additive_confidence",
    "is_withdrawal",
    "group_withdrawals",
    "classify_frequency",
    "has_lender_keyword",
    "extract_features",
    "detect_positions",
    "NearDuplicateGroup",
    "find_near_duplicate_groups",
    "detect_multiple_pulls_per_day",
]
