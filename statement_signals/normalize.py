"""Transaction normalization: dates, amounts, kinds and counterparty names.

The upstream extractor is not consistent about locale, so dates arrive either
as ISO ``YYYY-MM-DD`` (optionally with a time suffix) or day-first
``DD/MM/YYYY``. Amounts arrive as numbers or as statement-formatted strings
(``$1,234.56``, ``(1,234.56)``, ``-$20.00``). Everything here is a pure
function; failures raise :class:`MalformedTransactionError` and the caller
decides whether to skip the row or abort.
"""

from __future__ import annotations

import datetime as dt
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from .errors import MalformedTransactionError
from .models import DateRange, RawTransaction, Transaction, TransactionKind

# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

_ISO_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:[T ].*)?$")
# Day-first layouts, tried in order after ISO.
_DAY_FIRST_FORMATS = ("%d/%m/%Y", "%d/%m/%y", "%d-%m-%Y", "%d.%m.%Y")


def parse_date(value: Any) -> dt.date:
    """Parse an extracted date into a naive calendar date.

    Accepts ``date``/``datetime`` objects, ISO dates (time suffix ignored) and
    day-first slash, dash or dot dates.
    """

    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    text = ("" if value is None else str(value)).strip()
    if not text:
        raise MalformedTransactionError("date is empty", field="date", raw_value=value)

    m = _ISO_PREFIX.match(text)
    if m:
        try:
            return dt.date.fromisoformat(m.group(1))
        except ValueError as exc:
            raise MalformedTransactionError(
                f"invalid ISO date: {text!r}", field="date", raw_value=value
            ) from exc

    for fmt in _DAY_FIRST_FORMATS:
        try:
            return dt.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise MalformedTransactionError(f"unrecognized date: {text!r}", field="date", raw_value=value)


_PERIOD_RE = re.compile(r"^\s*(?P<start>\S+)\s+(?:through|thru|to)\s+(?P<end>\S+)\s*$", re.I)


def parse_statement_period(text: str | None) -> DateRange | None:
    """Parse ``"01/04/2025 through 30/04/2025"`` into a :class:`DateRange`.

    Returns ``None`` for a missing/blank period. Raises ``ValueError`` when
    the text is present but cannot be read.
    """

    if text is None or not str(text).strip():
        return None
    m = _PERIOD_RE.match(str(text))
    if not m:
        raise ValueError(f"unrecognized statement period: {text!r}")
    try:
        start = parse_date(m.group("start"))
        end = parse_date(m.group("end"))
    except MalformedTransactionError as exc:
        raise ValueError(f"unrecognized statement period: {text!r}") from exc
    return DateRange(start, end)


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------


def parse_amount(value: Any) -> Decimal:
    """Parse a signed money amount.

    Leading ``+``/``-``, a ``$`` symbol and accounting parentheses may appear
    in any order; thousands separators are dropped.
    """

    if isinstance(value, bool):
        raise MalformedTransactionError("amount is not numeric", field="amount", raw_value=value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise MalformedTransactionError(
                "amount is not finite", field="amount", raw_value=value
            )
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        # str() keeps the shortest round-tripping repr (0.1 -> "0.1").
        return parse_amount(str(value))

    s = ("" if value is None else str(value)).strip()
    if not s:
        raise MalformedTransactionError("amount is empty", field="amount", raw_value=value)

    negative = False
    while True:
        before = s
        if s.startswith("+"):
            s = s[1:].lstrip()
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
        if s.startswith("$"):
            s = s[1:].lstrip()
        if len(s) >= 2 and s.startswith("(") and s.endswith(")"):
            negative = True
            s = s[1:-1].strip()
        if s == before:
            break

    s = s.replace(",", "").replace(" ", "")
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise MalformedTransactionError(
            f"invalid amount: {value!r}", field="amount", raw_value=value
        ) from exc
    if not d.is_finite():
        raise MalformedTransactionError("amount is not finite", field="amount", raw_value=value)
    return -abs(d) if negative else d


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

_WS = re.compile(r"\s+")


def _clean_text(value: str | None) -> str:
    return _WS.sub(" ", value or "").strip()


def classify_kind(type_text: str, amount: Decimal) -> TransactionKind:
    """Map the extractor's free-text type onto a :class:`TransactionKind`.

    Without a usable type the amount sign decides; a zero amount is ``other``.
    """

    t = type_text.lower()
    if "check" in t or "cheque" in t:
        return TransactionKind.CHECK
    if "deposit" in t or "credit" in t:
        return TransactionKind.DEPOSIT
    if "withdraw" in t or "debit" in t:
        return TransactionKind.WITHDRAWAL
    if not t or t == "other":
        if amount > 0:
            return TransactionKind.DEPOSIT
        if amount < 0:
            return TransactionKind.WITHDRAWAL
    return TransactionKind.OTHER


def normalize(
    raw: RawTransaction,
    *,
    statement_id: str | None = None,
    row_index: int | None = None,
) -> Transaction:
    """Canonicalize one extracted row.

    Raises :class:`MalformedTransactionError` (tagged with ``statement_id`` and
    ``row_index`` when given) if the date or amount cannot be parsed.
    """

    try:
        day = parse_date(raw.date_text)
        amount = parse_amount(raw.amount)
    except MalformedTransactionError as exc:
        if statement_id is None:
            raise
        raise exc.with_location(statement_id=statement_id, row_index=row_index) from exc

    type_text = _clean_text(raw.type_text)
    check_number = _clean_text(raw.check_number) or None
    return Transaction(
        date=day,
        amount=amount,
        description=_clean_text(raw.description),
        kind=classify_kind(type_text, amount),
        check_number=check_number,
        type_text=type_text,
    )


# ---------------------------------------------------------------------------
# Counterparty names
# ---------------------------------------------------------------------------


class CounterpartyNormalizer(Protocol):
    """Maps a transaction description to the key used to group counterparties."""

    def __call__(self, description: str) -> str: ...


# Incomplete by nature; banks keep inventing role words.
LEADING_ROLE_TOKENS: frozenset[str] = frozenset(
    {"ACH", "DEBIT", "WITHDRAWAL", "PAYMENT", "TRANSFER"}
)
TRAILING_ROLE_TOKENS: frozenset[str] = frozenset({"PAYMENT", "PMT", "PYMT", "WITHDRAW", "WD"})
COUNTERPARTY_TOKENS = 3


def normalize_counterparty(description: str) -> str:
    """Reduce a description to a short counterparty key.

    Uppercases, strips leading role tokens (``ACH``, ``DEBIT``, ...) and
    trailing ones (``PMT``, ``WD``, ...), then keeps the first three tokens.
    ``"ACH DEBIT ABC CAPITAL FUNDING LLC PMT"`` becomes ``"ABC CAPITAL FUNDING"``.
    """

    tokens = (description or "").upper().split()
    while tokens and tokens[0] in LEADING_ROLE_TOKENS:
        tokens.pop(0)
    while tokens and tokens[-1] in TRAILING_ROLE_TOKENS:
        tokens.pop()
    return " ".join(tokens[:COUNTERPARTY_TOKENS])


__all__ = [
    "parse_date",
    "parse_statement_period",
    "parse_amount",
    "classify_kind",
    "normalize",
    "CounterpartyNormalizer",
    "LEADING_ROLE_TOKENS",
    "TRAILING_ROLE_TOKENS",
    "normalize_counterparty",
]
