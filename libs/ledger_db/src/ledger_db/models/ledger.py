from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import expression as sa_expr

# SQLite only autoincrements an ``INTEGER PRIMARY KEY`` (rowid alias).
_PK_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: ledger_transactions
# ---------------------------


class LedgerTransaction(Base):
    __tablename__ = "ledger_transactions"

    id: Mapped[int] = mapped_column(_PK_TYPE, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    category: Mapped[str] = mapped_column(String, nullable=False)
    # Wall-clock time of the transaction (message time when auto-added).
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    source: Mapped[str] = mapped_column(String, nullable=False)
    # Sender address/shortcode of the originating message; passed through as-is.
    sender: Mapped[str | None] = mapped_column(String, nullable=True)
    is_auto_added: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false()
    )
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=sa_expr.false())
    verified_via: Mapped[str | None] = mapped_column(String, nullable=True)
    confidence: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)
    category_confidence: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)
    needs_review: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false()
    )
    payment_method: Mapped[str | None] = mapped_column(String, nullable=True)
    last4_digits: Mapped[str | None] = mapped_column(String(4), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    # Masked message text. Never holds full account or phone numbers.
    raw_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("type in ('income','expense')", name="ck_ledger_tx_type"),
        CheckConstraint("source in ('sms','receipt','manual')", name="ck_ledger_tx_source"),
        CheckConstraint(
            "verified_via IS NULL OR verified_via in ('sms','manual')",
            name="ck_ledger_tx_verified_via",
        ),
        CheckConstraint(
            "confidence IS NULL OR (confidence >= 0 AND confidence <= 1)",
            name="ck_ledger_tx_confidence",
        ),
        CheckConstraint(
            (
                "category_confidence IS NULL OR "
                "(category_confidence >= 0 AND category_confidence <= 1)"
            ),
            name="ck_ledger_tx_category_confidence",
        ),
        Index("ix_ledger_tx_needs_review", "needs_review"),
    )

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return (
            f"LedgerTransaction(id={self.id!r}, type={self.type!r}, amount={self.amount!r}, "
            f"date={self.date!r}, source={self.source!r}, category={self.category!r})"
        )


# ---------------------------
# Learned: category_mappings
# ---------------------------


class CategoryMapping(Base):
    __tablename__ = "category_mappings"

    id: Mapped[int] = mapped_column(_PK_TYPE, primary_key=True, autoincrement=True)
    # Lower-cased, trimmed merchant key (or a text slice for classifier corrections).
    merchant: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    category: Mapped[str] = mapped_column(String, nullable=False)
    confidence: Mapped[Decimal] = mapped_column(Numeric(3, 2), nullable=False)
    times_used: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
    last_used: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "confidence >= 0 AND confidence <= 1", name="ck_category_mappings_confidence"
        ),
        CheckConstraint("times_used >= 1", name="ck_category_mappings_times_used"),
    )


__all__ = [
    "Base",
    "LedgerTransaction",
    "CategoryMapping",
]
