# ruff: noqa: I001
"""Ledger store access for sms_ledger.

Functions here read and write the shared ledger owned by ``libs/ledger_db``.
They take an active SQLAlchemy session (see ``ledger_db.client``) and never
commit; the caller owns the transaction boundary.

Read contract used by ingestion:
- exact reference-id lookup;
- all transactions dated within a window (optionally near an amount);
- manual entries eligible to be corroborated by a message.

Writes: insert a message-derived transaction, mark a manual entry as verified
by a message, apply a user category correction. :class:`MerchantMemory` holds
the learned merchant → category table and manages its own sessions so a
failure there never touches the caller's ledger write.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Final

from sqlalchemy import or_, select, update
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_db.client import session_scope
from ledger_db.models.ledger import CategoryMapping, LedgerTransaction

from .errors import StorageUnavailableError
from .logging_setup import get_logger

_CENT: Final = Decimal("0.01")

_MEMORY_INITIAL_CONFIDENCE: Final = Decimal("0.80")
_MEMORY_CONFIDENCE_STEP: Final = Decimal("0.05")
_MEMORY_CONFIDENCE_CAP: Final = Decimal("1.00")

_logger = get_logger("sms_ledger.persistence")


def _to_decimal_2(value: Decimal | float | int | str) -> Decimal:
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


@contextmanager
def storage_guard(operation: str) -> Iterator[None]:
    """Re-raise connectivity failures as :class:`StorageUnavailableError`."""

    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        raise StorageUnavailableError(f"ledger storage unavailable during {operation}") from exc


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def find_by_reference_id(session: Session, reference_id: str | None) -> LedgerTransaction | None:
    if not reference_id:
        return None
    stmt = (
        select(LedgerTransaction)
        .where(LedgerTransaction.reference_id == reference_id)
        .order_by(LedgerTransaction.id)
        .limit(1)
    )
    return session.execute(stmt).scalars().first()


def find_in_window(
    session: Session,
    *,
    center: datetime,
    window: timedelta,
    amount: Decimal | None = None,
    tolerance: Decimal | None = None,
) -> list[LedgerTransaction]:
    """Transactions dated within ``center ± window`` (inclusive), oldest first.

    With ``amount`` and ``tolerance`` the result is further limited to rows
    whose amount differs by at most ``tolerance``.
    """

    stmt = select(LedgerTransaction).where(
        LedgerTransaction.date.between(center - window, center + window)
    )
    if amount is not None:
        tol = tolerance if tolerance is not None else Decimal("0")
        stmt = stmt.where(LedgerTransaction.amount.between(amount - tol, amount + tol))
    stmt = stmt.order_by(LedgerTransaction.date, LedgerTransaction.id)
    return list(session.execute(stmt).scalars())


def find_manual_merge_candidates(
    session: Session,
    *,
    center: datetime,
    window: timedelta,
    amount: Decimal,
    tolerance: Decimal,
    tx_type: str,
) -> list[LedgerTransaction]:
    """Manual, not auto-added, not yet message-verified entries of ``tx_type``."""

    stmt = (
        select(LedgerTransaction)
        .where(LedgerTransaction.source == "manual")
        .where(LedgerTransaction.is_auto_added.is_(False))
        .where(
            or_(
                LedgerTransaction.verified_via.is_(None),
                LedgerTransaction.verified_via != "sms",
            )
        )
        .where(LedgerTransaction.type == tx_type)
        .where(LedgerTransaction.date.between(center - window, center + window))
        .where(LedgerTransaction.amount.between(amount - tolerance, amount + tolerance))
        .order_by(LedgerTransaction.date, LedgerTransaction.id)
    )
    return list(session.execute(stmt).scalars())


def transactions_needing_review(session: Session) -> list[LedgerTransaction]:
    stmt = (
        select(LedgerTransaction)
        .where(LedgerTransaction.needs_review.is_(True))
        .order_by(LedgerTransaction.date, LedgerTransaction.id)
    )
    return list(session.execute(stmt).scalars())


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def insert_transaction(
    session: Session,
    *,
    tx_type: str,
    amount: Decimal,
    description: str,
    category: str,
    date: datetime,
    source: str,
    confidence: float,
    category_confidence: float,
    needs_review: bool,
    verified: bool,
    verified_via: str | None = None,
    is_auto_added: bool = False,
    sender: str | None = None,
    payment_method: str | None = None,
    last4_digits: str | None = None,
    reference_id: str | None = None,
    raw_data: str | None = None,
) -> LedgerTransaction:
    """Add one ledger row and flush so its id is assigned."""

    row = LedgerTransaction(
        type=tx_type,
        amount=_to_decimal_2(amount),
        description=description,
        category=category,
        date=date,
        source=source,
        sender=sender,
        is_auto_added=is_auto_added,
        verified=verified,
        verified_via=verified_via,
        confidence=_to_decimal_2(confidence),
        category_confidence=_to_decimal_2(category_confidence),
        needs_review=needs_review,
        payment_method=payment_method,
        last4_digits=last4_digits,
        reference_id=reference_id,
        raw_data=raw_data,
    )
    session.add(row)
    session.flush()
    return row


def mark_verified_by_message(
    session: Session,
    transaction_id: int,
    *,
    raw_data: str,
    reference_id: str | None,
    confidence: float,
) -> None:
    """Record that a message corroborated the manual entry ``transaction_id``.

    An existing reference id is kept when the message carries none.
    """

    values: dict[str, Any] = {
        "verified_via": "sms",
        "raw_data": raw_data,
        "confidence": _to_decimal_2(confidence),
        "updated_at": datetime.now(),
    }
    if reference_id:
        values["reference_id"] = reference_id
    stmt = (
        update(LedgerTransaction)
        .where(LedgerTransaction.id == transaction_id)
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    result = session.execute(stmt)
    if result.rowcount == 0:
        raise LookupError(f"transaction {transaction_id} not found")


def apply_category_correction(
    session: Session, transaction_id: int, category: str
) -> LedgerTransaction:
    """Set a human-verified category and return the refreshed row."""

    row = session.get(LedgerTransaction, transaction_id)
    if row is None:
        raise LookupError(f"transaction {transaction_id} not found")
    row.category = category
    row.needs_review = False
    row.verified = True
    row.confidence = Decimal("1.00")
    row.category_confidence = Decimal("1.00")
    row.updated_at = datetime.now()
    session.flush()
    session.refresh(row)
    return row


# ---------------------------------------------------------------------------
# Merchant memory
# ---------------------------------------------------------------------------


def _merchant_key(merchant: str) -> str:
    return merchant.strip().lower()


class MerchantMemory:
    """Learned merchant → category table.

    Each call opens its own ``session_scope`` on ``database_url`` (or
    ``DATABASE_URL``). Write failures are logged and swallowed: the memory is
    secondary to the ledger and must never block or undo a ledger write.
    """

    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url

    def remember(self, merchant: str, category: str) -> None:
        """Create or reinforce the mapping for ``merchant``.

        A repeat correction nudges confidence up by 0.05 (capped at 1.0) and
        increments ``times_used``.
        """

        key = _merchant_key(merchant)
        if not key or not category.strip():
            return
        try:
            with session_scope(database_url=self._database_url) as session:
                row = session.execute(
                    select(CategoryMapping).where(CategoryMapping.merchant == key)
                ).scalar_one_or_none()
                now = datetime.now()
                if row is None:
                    session.add(
                        CategoryMapping(
                            merchant=key,
                            category=category,
                            confidence=_MEMORY_INITIAL_CONFIDENCE,
                            times_used=1,
                            last_used=now,
                        )
                    )
                else:
                    row.category = category
                    row.confidence = min(
                        _MEMORY_CONFIDENCE_CAP, Decimal(row.confidence) + _MEMORY_CONFIDENCE_STEP
                    )
                    row.times_used = row.times_used + 1
                    row.last_used = now
        except SQLAlchemyError:
            _logger.warning(
                "merchant_memory:write_failed merchant=%r category=%r",
                key[:50],
                category,
                exc_info=True,
            )

    def lookup(self, merchant: str | None) -> CategoryMapping | None:
        """Return the mapping whose key contains, or is contained in, ``merchant``.

        Exact key matches win; otherwise the most used mapping is returned.
        """

        if not merchant:
            return None
        needle = _merchant_key(merchant)
        if not needle:
            return None
        with storage_guard("merchant lookup"), session_scope(
            database_url=self._database_url
        ) as session:
            exact = session.execute(
                select(CategoryMapping).where(CategoryMapping.merchant == needle)
            ).scalar_one_or_none()
            if exact is not None:
                return exact
            rows = session.execute(
                select(CategoryMapping).order_by(
                    CategoryMapping.times_used.desc(), CategoryMapping.id
                )
            ).scalars()
            for row in rows:
                if row.merchant in needle or needle in row.merchant:
                    return row
        return None

    def all_mappings(self) -> dict[str, str]:
        """Every learned ``merchant key → category``, most used first."""

        with storage_guard("merchant mappings"), session_scope(
            database_url=self._database_url
        ) as session:
            rows = session.execute(
                select(CategoryMapping.merchant, CategoryMapping.category).order_by(
                    CategoryMapping.times_used.desc(), CategoryMapping.id
                )
            ).all()
        return {merchant: category for merchant, category in rows}


__all__ = [
    "storage_guard",
    "find_by_reference_id",
    "find_in_window",
    "find_manual_merge_candidates",
    "transactions_needing_review",
    "insert_transaction",
    "mark_verified_by_message",
    "apply_category_correction",
    "MerchantMemory",
]
