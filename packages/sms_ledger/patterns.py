"""Regex field extraction for Indian bank and payment-provider messages.

Every function here is a pure function of the message text. The composed entry
point is :func:`parse_message`, which returns a confidence-scored
:class:`~sms_ledger.models.ParsedMessage`.

Precedence chains are ordered tuples and their order is part of the contract:
a message mentioning both "UPI" and "ATM" is a UPI payment because the UPI
lexicon is consulted first, and a message with both a debit and a credit verb
is a debit.

Matching and classification always run on the original text. Only
:func:`mask_sensitive_data` output is ever persisted.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Final

from .keyword_map import categorize
from .models import Direction, Method, ParsedMessage

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_NUMBER = r"(\d[\d,]*(?:\.\d{1,2})?)"

_AMOUNT_CURRENCY: Final = re.compile(
    r"(?:(?<![a-z])(?:rs\.?|inr)|₹)\s*" + _NUMBER, re.IGNORECASE
)
_AMOUNT_KEYWORD: Final = re.compile(
    r"\b(?:amount|amt|rs|inr|rupees?)\b[\s.:]*(?:of\s+)?(?:rs\.?|inr|₹)?\s*" + _NUMBER,
    re.IGNORECASE,
)

_DEBIT: Final = re.compile(
    r"\b(?:debited|spent|paid|withdrawn|purchased?|sent|deducted|transferred\s+out)\b",
    re.IGNORECASE,
)
_CREDIT: Final = re.compile(
    r"\b(?:credited|received|deposited|refund(?:ed)?|cashback|reversed|transferred\s+in(?:to)?)\b",
    re.IGNORECASE,
)

_METHODS: Final[tuple[tuple[Method, re.Pattern[str]], ...]] = (
    ("upi", re.compile(r"\b(?:upi|bhim|phonepe|gpay|google\s?pay|paytm)\b", re.IGNORECASE)),
    ("atm", re.compile(r"\batm\b|\bcash\s+withdrawal\b|\bwithdrawn\s+at\b", re.IGNORECASE)),
    ("imps", re.compile(r"\bimps\b", re.IGNORECASE)),
    ("neft", re.compile(r"\bneft\b", re.IGNORECASE)),
    ("rtgs", re.compile(r"\brtgs\b", re.IGNORECASE)),
    (
        "credit_card",
        re.compile(
            r"\bcredit\s*card\b|\bcc\s|\bvisa\s+credit\b|\bmaster\s*card\s+credit\b",
            re.IGNORECASE,
        ),
    ),
    (
        "debit_card",
        re.compile(
            r"\bdebit\s*card\b|\bdc\s|\bvisa\s+debit\b|\bmaestro\b|\brupay\b",
            re.IGNORECASE,
        ),
    ),
    ("wallet", re.compile(r"\bwallet\b|\bmobikwik\b|\bfreecharge\b", re.IGNORECASE)),
    (
        "netbanking",
        re.compile(r"\bnet\s?banking\b|\bonline\s+banking\b|\bibanking\b", re.IGNORECASE),
    ),
)

_DATE: Final = re.compile(r"(?<!\d)(\d{1,2})[-/\\](\d{1,2})[-/\\](\d{4}|\d{2})(?!\d)")
_TIME: Final = re.compile(r"(?<!\d)(\d{1,2}):(\d{2})(?::(\d{2}))?(?:\s*([ap]m)\b)?", re.IGNORECASE)

_UPI_HANDLE: Final = re.compile(r"([A-Za-z0-9._-]+@[A-Za-z]+)")
_PREPOSITIONAL: Final = re.compile(
    r"(?:\bto|\bfrom|\bat|@|\bvia|\bfor)\s+([A-Za-z0-9\s\-_.@]+?)"
    r"(?=\s+(?:(?:on|ref|txn|upi|via|rs|inr)\b|₹|\d))",
    re.IGNORECASE,
)
_VPA: Final = re.compile(r"\bVPA\s+([A-Za-z0-9._@-]+)", re.IGNORECASE)
_MERCHANT_MAX_LEN: Final = 50

_LAST4: Final = re.compile(
    r"(?:a/c|\bac\b|\baccount|\bcard|\bxx|\bending)\s*(?:no\.?|number)?[:\s]*[x*]*\d*?(\d{4})(?!\d)",
    re.IGNORECASE,
)
_REFERENCE: Final = re.compile(
    r"\b(?:ref\.?\s*(?:no\.?|id)?|txn\s*(?:id|no\.?)?|utr|rrn|imps\s*ref|neft\s*ref)"
    r"[\s:.#-]*([A-Za-z0-9]*\d[A-Za-z0-9]*)",
    re.IGNORECASE,
)
_BALANCE: Final = re.compile(
    r"(?:\bavl\.?\s*bal(?:ance)?|\bavailable\s+bal(?:ance)?|\bbal(?:ance)?)"
    r"[\s:.]*(?:is\s+)?(?:rs\.?|inr|₹)?\s*" + _NUMBER,
    re.IGNORECASE,
)

# Noise filter: promotional and informational messages rarely hit two of these.
_FINANCIAL_INDICATORS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"(?:(?<![a-z])(?:rs\.?|inr)|₹)\s*\d", re.IGNORECASE),
    re.compile(r"\b(?:credited|debited|spent|paid|received|withdrawn)\b", re.IGNORECASE),
    re.compile(r"\b(?:upi|imps|neft|rtgs|debit\s+card|credit\s+card|atm)\b", re.IGNORECASE),
    re.compile(r"(?:a/c|\baccount|\bcard).{0,10}\d{4}", re.IGNORECASE),
    re.compile(r"\b(?:bal(?:ance)?|avl\.?\s*bal)\b", re.IGNORECASE),
)
_FINANCIAL_THRESHOLD: Final = 2

_LONG_DIGITS: Final = re.compile(r"(?<!\d)\d{10,18}(?!\d)")
_MASK: Final = "XXXX"

_WEIGHT_AMOUNT: Final = 0.40
_WEIGHT_DIRECTION: Final = 0.25
_WEIGHT_METHOD: Final = 0.15
_WEIGHT_MERCHANT: Final = 0.10
_WEIGHT_REFERENCE: Final = 0.10
_REVIEW_THRESHOLD: Final = 0.5


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------


def _to_decimal(raw: str) -> Decimal | None:
    try:
        return Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None


def extract_amount(text: str) -> Decimal | None:
    """Return the first currency amount, or ``None`` when the text has none."""

    for pattern in (_AMOUNT_CURRENCY, _AMOUNT_KEYWORD):
        m = pattern.search(text)
        if m:
            return _to_decimal(m.group(1))
    return None


def extract_direction(text: str) -> Direction:
    if _DEBIT.search(text):
        return "debit"
    if _CREDIT.search(text):
        return "credit"
    return "unknown"


def extract_method(text: str) -> Method:
    for method, pattern in _METHODS:
        if pattern.search(text):
            return method
    return "unknown"


def _expand_year(token: str) -> int:
    year = int(token)
    if len(token) == 2:
        year += 2000 if year < 50 else 1900
    return year


def _apply_time(base: datetime, text: str) -> datetime:
    m = _TIME.search(text)
    if not m:
        return base
    hour, minute = int(m.group(1)), int(m.group(2))
    second = int(m.group(3)) if m.group(3) else 0
    marker = (m.group(4) or "").lower()
    if marker:
        if not 1 <= hour <= 12:
            return base
        if marker == "pm" and hour < 12:
            hour += 12
        elif marker == "am" and hour == 12:
            hour = 0
    try:
        return base.replace(hour=hour, minute=minute, second=second)
    except ValueError:
        return base


def extract_datetime(text: str) -> datetime | None:
    """Parse a ``dd-mm-yy[yy]`` date (``-``, ``/`` or ``\\`` separated).

    A ``hh:mm[:ss] [am|pm]`` token, when present, sets the time of day. Returns
    ``None`` when no date is found or the date does not exist on the calendar.
    """

    m = _DATE.search(text)
    if not m:
        return None
    day, month = int(m.group(1)), int(m.group(2))
    try:
        base = datetime(_expand_year(m.group(3)), month, day)
    except ValueError:
        return None
    return _apply_time(base, text)


def extract_merchant(text: str) -> str | None:
    """Best-effort counterparty: UPI handle, then prepositional phrase, then VPA."""

    m = _UPI_HANDLE.search(text)
    if m:
        return m.group(1)
    m = _PREPOSITIONAL.search(text)
    if m:
        merchant = m.group(1).strip()[:_MERCHANT_MAX_LEN].strip()
        if merchant:
            return merchant
    m = _VPA.search(text)
    if m:
        return m.group(1)
    return None


def extract_last4(text: str) -> str | None:
    m = _LAST4.search(text)
    return m.group(1) if m else None


def extract_reference_id(text: str) -> str | None:
    m = _REFERENCE.search(text)
    return m.group(1) if m else None


def extract_balance(text: str) -> Decimal | None:
    m = _BALANCE.search(text)
    return _to_decimal(m.group(1)) if m else None


# ---------------------------------------------------------------------------
# Gate and masking
# ---------------------------------------------------------------------------


def count_financial_indicators(text: str) -> int:
    return sum(1 for pattern in _FINANCIAL_INDICATORS if pattern.search(text))


def is_financial_message(text: str) -> bool:
    """True when at least two of the five indicator patterns match."""

    return count_financial_indicators(text) >= _FINANCIAL_THRESHOLD


def _mask_digits(m: re.Match[str]) -> str:
    digits = m.group(0)
    if len(digits) == 10 and digits[0] in "6789":
        return digits[:2] + _MASK + digits[-4:]
    return _MASK + digits[-4:]


def mask_sensitive_data(text: str) -> str:
    """Redact account, card and mobile numbers, keeping the last four digits."""

    return _LONG_DIGITS.sub(_mask_digits, text)


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def score_parse(
    *,
    amount: Decimal | None,
    direction: Direction,
    method: Method,
    merchant: str | None,
    reference_id: str | None,
) -> float:
    score = 0.0
    if amount is not None:
        score += _WEIGHT_AMOUNT
    if direction != "unknown":
        score += _WEIGHT_DIRECTION
    if method != "unknown":
        score += _WEIGHT_METHOD
    if merchant:
        score += _WEIGHT_MERCHANT
    if reference_id:
        score += _WEIGHT_REFERENCE
    return round(min(1.0, score), 2)


def parse_message(
    text: str,
    received_at: datetime | None = None,
    *,
    learned: Mapping[str, str] | None = None,
) -> ParsedMessage:
    """Run every extractor over ``text`` and score the result.

    Parameters
    ----------
    text:
        Raw message body.
    received_at:
        Delivery timestamp; used as ``occurred_at`` when the text carries no
        date. Defaults to now.
    learned:
        Merchant memory (lower-cased merchant key → category) consulted before
        the keyword table.
    """

    amount = extract_amount(text)
    direction = extract_direction(text)
    method = extract_method(text)
    merchant = extract_merchant(text)
    reference_id = extract_reference_id(text)
    found_at = extract_datetime(text)
    guess = categorize(text, merchant, learned=learned)

    parse_confidence = score_parse(
        amount=amount,
        direction=direction,
        method=method,
        merchant=merchant,
        reference_id=reference_id,
    )
    needs_review = (
        direction == "unknown"
        or parse_confidence < _REVIEW_THRESHOLD
        or guess.confidence < _REVIEW_THRESHOLD
    )

    return ParsedMessage(
        amount=amount,
        direction=direction,
        method=method,
        occurred_at=found_at or received_at or datetime.now(),
        merchant=merchant,
        last4=extract_last4(text),
        reference_id=reference_id,
        available_balance=extract_balance(text),
        category=guess.category,
        category_confidence=guess.confidence,
        parse_confidence=parse_confidence,
        needs_review=needs_review,
        raw_text=text,
        date_found=found_at is not None,
    )


__all__ = [
    "extract_amount",
    "extract_direction",
    "extract_method",
    "extract_datetime",
    "extract_merchant",
    "extract_last4",
    "extract_reference_id",
    "extract_balance",
    "count_financial_indicators",
    "is_financial_message",
    "mask_sensitive_data",
    "score_parse",
    "parse_message",
]
