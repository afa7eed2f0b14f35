"""User category corrections: the only path by which the classifier improves.

A correction updates the ledger row first (committed on its own), then trains
the classifier on the row's description and masked message text, then
reinforces the merchant memory for the description.
"""

from __future__ import annotations

from ledger_db.client import session_scope
from ledger_db.models.ledger import LedgerTransaction

from .classifier import NaiveBayesClassifier
from .logging_setup import get_logger
from .persistence import MerchantMemory, apply_category_correction, storage_guard

_logger = get_logger("sms_ledger.corrections")


def correct_category(
    transaction_id: int,
    category: str,
    *,
    classifier: NaiveBayesClassifier,
    memory: MerchantMemory | None = None,
    database_url: str | None = None,
) -> LedgerTransaction:
    """Apply a human-verified category to ``transaction_id``.

    Raises ``LookupError`` for an unknown id and ``ValueError`` for a blank
    category.
    """

    name = " ".join(category.split())
    if not name:
        raise ValueError("category must be non-empty")

    with storage_guard("correction"), session_scope(database_url=database_url) as session:
        row = apply_category_correction(session, transaction_id, name)
        description = row.description or ""
        learning_text = f"{description} {row.raw_data or ''}".strip()

    _logger.info("correction:applied id=%d category=%r", transaction_id, name)

    if learning_text:
        classifier.learn(learning_text, name)
    if memory is not None and description.strip():
        memory.remember(description, name)
    return row


__all__ = ["correct_category"]
