"""End-to-end reconciliation of one applicant, or many in parallel.

Stages run strictly in order: merge (which computes each account's metrics),
then transfer detection across the finished accounts, then position
detection over the union of every account's transactions, then the summary.
Each applicant is independent of every other, so :func:`reconcile_applicants`
fans them out over :func:`~statement_signals.pmap.p_map`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .errors import DataQualityIssue, UnreconciledAccount
from .logging_setup import get_logger
from .merge import merge
from .models import Account, MultiplePull, Position, Statement
from .pmap import p_map
from .positions import (
    NearDuplicateGroup,
    detect_multiple_pulls_per_day,
    detect_positions,
    find_near_duplicate_groups,
)
from .settings import DEFAULT_SETTINGS, EngineSettings
from .summary import ApplicantSummary, summarize
from .transfers import attach_transfers

_logger = get_logger("statement_signals.pipeline")


@dataclass(frozen=True, slots=True)
class ApplicantReport:
    """Everything derived from one applicant's statements."""

    accounts: tuple[Account, ...]
    unreconciled: tuple[UnreconciledAccount, ...]
    positions: tuple[Position, ...]
    multiple_pulls: tuple[MultiplePull, ...]
    near_duplicates: tuple[NearDuplicateGroup, ...]
    summary: ApplicantSummary
    issues: tuple[DataQualityIssue, ...] = ()


def reconcile_applicant(
    statements: Iterable[Statement],
    *,
    settings: EngineSettings | None = None,
    skip_malformed: bool = True,
) -> ApplicantReport:
    """Run the full pipeline over one applicant's completed statements.

    With ``skip_malformed=False`` the first unparseable row aborts the run
    with :class:`~statement_signals.errors.MalformedTransactionError`.
    """

    cfg = settings or DEFAULT_SETTINGS
    merged = merge(statements, skip_malformed=skip_malformed)
    accounts = attach_transfers(merged.accounts, settings=cfg)

    ledger = [t for account in accounts for t in account.transactions]
    positions = detect_positions(ledger, settings=cfg)
    pulls = detect_multiple_pulls_per_day(ledger)
    near_duplicates = find_near_duplicate_groups(ledger, settings=cfg)
    summary = summarize(accounts, positions)

    _logger.info(
        "pipeline:applicant_done accounts=%d transactions=%d positions=%d risk=%s",
        len(accounts),
        len(ledger),
        len(positions),
        summary.risk_level.value,
    )
    return ApplicantReport(
        accounts=tuple(accounts),
        unreconciled=merged.unreconciled,
        positions=tuple(positions),
        multiple_pulls=tuple(pulls),
        near_duplicates=tuple(near_duplicates),
        summary=summary,
        issues=merged.issues,
    )


def reconcile_applicants(
    batches: Mapping[str, Iterable[Statement]],
    *,
    concurrency: int | None = None,
    stop_on_error: bool = True,
    settings: EngineSettings | None = None,
    skip_malformed: bool = True,
) -> dict[str, ApplicantReport]:
    """Reconcile several applicants concurrently.

    ``concurrency`` defaults to ``settings.max_workers``. The returned dict
    follows the key order of ``batches``. Failure handling follows
    :func:`~statement_signals.pmap.p_map`.
    """

    cfg = settings or DEFAULT_SETTINGS
    workers = concurrency if concurrency is not None else cfg.max_workers
    items = [(applicant_id, list(statements)) for applicant_id, statements in batches.items()]
    _logger.info("pipeline:batch_start applicants=%d concurrency=%d", len(items), workers)

    def _run(item: tuple[str, list[Statement]]) -> ApplicantReport:
        applicant_id, statements = item
        _logger.debug(
            "pipeline:applicant_start applicant=%s statements=%d", applicant_id, len(statements)
        )
        return reconcile_applicant(statements, settings=cfg, skip_malformed=skip_malformed)

    reports = p_map(items, _run, concurrency=workers, stop_on_error=stop_on_error)
    return {applicant_id: report for (applicant_id, _), report in zip(items, reports)}


__all__ = ["ApplicantReport", "reconcile_applicant", "reconcile_applicants"]
