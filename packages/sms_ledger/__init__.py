"""sms_ledger: turn bank and payment notifications into ledger transactions.

Public API
----------
- ``parse_message(text, received_at=None, *, learned=None) -> ParsedMessage``
- ``NaiveBayesClassifier`` with ``predict``/``learn``/``get_stats``/``reset``
- ``IngestionPipeline(classifier, ...).ingest(RawMessage) -> IngestResult``
- ``correct_category(transaction_id, category, *, classifier, ...)``

Library code logs through named loggers under ``"sms_ledger"`` and stays quiet
until :func:`configure_logging` is called by an entrypoint.
"""

from .classifier import NaiveBayesClassifier
from .corrections import correct_category
from .errors import StorageUnavailableError
from .ingest import IngestionPipeline, MessageBuffer, ReplaySummary
from .logging_setup import configure_logging, get_logger
from .model_store import FileModelStore
from .models import (
    ClassifierSnapshot,
    ClassifierStats,
    InboundMessage,
    IngestResult,
    ParsedMessage,
    Prediction,
    RawMessage,
)
from .patterns import is_financial_message, mask_sensitive_data, parse_message
from .persistence import MerchantMemory

__all__ = [
    "NaiveBayesClassifier",
    "correct_category",
    "StorageUnavailableError",
    "IngestionPipeline",
    "MessageBuffer",
    "ReplaySummary",
    "configure_logging",
    "get_logger",
    "FileModelStore",
    "ClassifierSnapshot",
    "ClassifierStats",
    "InboundMessage",
    "IngestResult",
    "ParsedMessage",
    "Prediction",
    "RawMessage",
    "is_financial_message",
    "mask_sensitive_data",
    "parse_message",
    "MerchantMemory",
]
