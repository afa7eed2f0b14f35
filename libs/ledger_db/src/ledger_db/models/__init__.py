"""Shared SQLAlchemy models registry for the ledger database.

Currently includes the ledger and merchant-memory models used by ``sms_ledger``.
"""

from .ledger import Base, CategoryMapping, LedgerTransaction

__all__ = [
    "Base",
    "CategoryMapping",
    "LedgerTransaction",
]
