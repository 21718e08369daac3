"""Internal transfer detection across one applicant's accounts.

For every ordered pair of distinct accounts ``(A, B)``, each withdrawal in
``A`` is compared with each deposit in ``B``. A pair matches when the amounts
agree within ``amount_tolerance`` and the dates within
``date_tolerance_days``. Every matching pair is reported: no one-to-one
pairing is enforced, so a withdrawal may appear in several transfers when
amounts and dates coincide. Transfers are advisory annotations on the source
account; metric totals are never adjusted.

Run this only after every account of the applicant has finished extraction,
otherwise a transfer's counterpart looks missing rather than absent.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from .logging_setup import get_logger
from .models import Account, Transaction, Transfer
from .settings import DEFAULT_SETTINGS, EngineSettings

_logger = get_logger("statement_signals.transfers")


def _is_match(
    withdrawal: Transaction, deposit: Transaction, settings: EngineSettings
) -> bool:
    if abs(-withdrawal.amount - deposit.amount) > settings.amount_tolerance:
        return False
    return abs((withdrawal.date - deposit.date).days) <= settings.date_tolerance_days


def detect_transfers(
    accounts: Sequence[Account], *, settings: EngineSettings | None = None
) -> list[Transfer]:
    """Return every probable transfer between distinct accounts.

    Transfers are ordered by source account (input order), then destination
    account, then the withdrawal's position in the source ledger.
    """

    cfg = settings or DEFAULT_SETTINGS
    found: list[Transfer] = []
    for source in accounts:
        withdrawals = [t for t in source.transactions if t.amount < 0]
        if not withdrawals:
            continue
        for target in accounts:
            if target is source or target.id == source.id:
                continue
            deposits = [t for t in target.transactions if t.amount > 0]
            for w in withdrawals:
                for d in deposits:
                    if not _is_match(w, d, cfg):
                        continue
                    found.append(
                        Transfer(
                            from_account_id=source.id,
                            to_account_id=target.id,
                            amount=-w.amount,
                            date=w.date,
                            note=f"Transfer: {w.description} → {d.description}",
                        )
                    )
    return found


def attach_transfers(
    accounts: Sequence[Account], *, settings: EngineSettings | None = None
) -> list[Account]:
    """Return copies of ``accounts`` with ``internal_transfers`` re-derived.

    Each transfer is attached to its source account. Any previously attached
    transfers are discarded.
    """

    transfers = detect_transfers(accounts, settings=settings)
    by_source: dict[str, list[Transfer]] = {}
    for t in transfers:
        by_source.setdefault(t.from_account_id, []).append(t)

    out: list[Account] = []
    for account in accounts:
        mine = tuple(by_source.get(account.id, ()))
        if mine:
            _logger.info("transfers:detected account=%s count=%d", account.id, len(mine))
        out.append(replace(account, internal_transfers=mine))
    return out


__all__ = ["detect_transfers", "attach_transfers"]
