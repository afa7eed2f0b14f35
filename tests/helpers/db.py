"""DB helpers for tests: bootstrap a temporary SQLite ledger and seed rows."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from pathlib import Path

from sqlalchemy import select
from sqlalchemy import text as sql_text

from ledger_db.client import create_schema, session_scope
from ledger_db.models.ledger import LedgerTransaction


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize the schema, and return the URL.

    A file-backed database lets every SQLAlchemy connection see the same
    state (in-memory databases are per-connection).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    create_schema(database_url=url)
    _assert_ledger_schema_in_sync(url)
    return url


def add_manual_entry(
    database_url: str,
    *,
    amount: str,
    date: datetime,
    description: str = "",
    category: str = "General Expense",
    tx_type: str = "expense",
) -> int:
    """Insert a hand-entered transaction and return its id."""

    with session_scope(database_url=database_url) as session:
        row = LedgerTransaction(
            type=tx_type,
            amount=Decimal(amount),
            description=description,
            category=category,
            date=date,
            source="manual",
            is_auto_added=False,
            verified=True,
            verified_via=None,
            needs_review=False,
        )
        session.add(row)
        session.flush()
        return row.id


def all_transactions(database_url: str) -> list[LedgerTransaction]:
    with session_scope(database_url=database_url) as session:
        stmt = select(LedgerTransaction).order_by(LedgerTransaction.id)
        return list(session.execute(stmt).scalars())


def get_transaction(database_url: str, transaction_id: int) -> LedgerTransaction:
    with session_scope(database_url=database_url) as session:
        row = session.get(LedgerTransaction, transaction_id)
        assert row is not None, f"transaction {transaction_id} missing"
        return row


def _assert_ledger_schema_in_sync(database_url: str) -> None:
    """ORM column set matches the created SQLite table column set."""

    expected = {c.name for c in LedgerTransaction.__table__.columns}
    with session_scope(database_url=database_url) as session:
        rows = session.execute(sql_text("PRAGMA table_info('ledger_transactions')")).fetchall()
        got = {row[1] for row in rows}  # (cid, name, type, notnull, dflt_value, pk)
    missing = expected - got
    extra = got - expected
    assert not missing and not extra, (
        f"ledger_transactions schema drift: missing={missing or '∅'}, extra={extra or '∅'}"
    )
