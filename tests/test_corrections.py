from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

from ledger_db.client import session_scope
from sms_ledger.classifier import NaiveBayesClassifier
from sms_ledger.corrections import correct_category
from sms_ledger.ingest import IngestionPipeline
from sms_ledger.models import RawMessage
from sms_ledger.persistence import MerchantMemory, transactions_needing_review

from tests.helpers.db import bootstrap_sqlite_db, get_transaction

T0 = datetime(2024, 12, 7, 9, 0)
TUITION = "Paid Rs 250 to Sharma Tutors via UPI ref 445566"


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "ledger.db")


@pytest.fixture()
def memory(db_url: str) -> MerchantMemory:
    return MerchantMemory(database_url=db_url)


@pytest.fixture()
def classifier(memory: MerchantMemory) -> NaiveBayesClassifier:
    return NaiveBayesClassifier(memory=memory)


def _ingest(pipeline: IngestionPipeline, text: str, at: datetime = T0) -> int:
    result = pipeline.ingest(RawMessage(sender="AD-ICICIB", text=text, received_at=at))
    assert result.transaction_id is not None
    return result.transaction_id


def test_correction_updates_row_and_teaches_classifier(
    db_url: str, memory: MerchantMemory, classifier: NaiveBayesClassifier
) -> None:
    pipeline = IngestionPipeline(classifier, database_url=db_url, memory=memory)
    tx_id = _ingest(pipeline, TUITION)
    version_before = classifier.get_stats().version

    row = correct_category(
        tx_id, "  Tuition   Fees ", classifier=classifier, memory=memory, database_url=db_url
    )

    assert row.category == "Tuition Fees"
    stored = get_transaction(db_url, tx_id)
    assert stored.category == "Tuition Fees"
    assert stored.needs_review is False
    assert stored.verified is True
    assert stored.confidence == Decimal("1.00")
    assert stored.category_confidence == Decimal("1.00")

    assert classifier.get_stats().version == version_before + 1
    assert classifier.predict(f"Sharma Tutors {TUITION}").category == "Tuition Fees"

    mapping = memory.lookup("Sharma Tutors")
    assert mapping is not None
    assert mapping.category == "Tuition Fees"


def test_corrected_merchant_is_recognized_on_next_message(
    db_url: str, memory: MerchantMemory, classifier: NaiveBayesClassifier
) -> None:
    pipeline = IngestionPipeline(classifier, database_url=db_url, memory=memory)
    tx_id = _ingest(pipeline, TUITION)
    correct_category(tx_id, "Tuition Fees", classifier=classifier, memory=memory, database_url=db_url)

    result = pipeline.ingest(
        RawMessage(
            sender="AD-ICICIB",
            text="Paid Rs 300 to Sharma Tutors via UPI ref 778899",
            received_at=datetime(2025, 1, 7, 9, 0),
        )
    )

    assert result.outcome == "created"
    assert result.parsed is not None and result.parsed.category == "Tuition Fees"
    assert result.prediction is not None and result.prediction.category == "Tuition Fees"


def test_correction_clears_review_queue(
    db_url: str, memory: MerchantMemory, classifier: NaiveBayesClassifier
) -> None:
    pipeline = IngestionPipeline(classifier, database_url=db_url, memory=memory)
    # Direction unknown: always flagged for review.
    tx_id = _ingest(pipeline, "Rs 640 UPI txn on A/c XX1234 ref 123987")
    with session_scope(database_url=db_url) as session:
        assert [tx.id for tx in transactions_needing_review(session)] == [tx_id]

    correct_category(tx_id, "Groceries", classifier=classifier, memory=memory, database_url=db_url)

    with session_scope(database_url=db_url) as session:
        assert transactions_needing_review(session) == []


def test_unknown_transaction_raises_lookup_error(
    db_url: str, classifier: NaiveBayesClassifier
) -> None:
    version = classifier.get_stats().version
    with pytest.raises(LookupError):
        correct_category(9999, "Groceries", classifier=classifier, database_url=db_url)
    assert classifier.get_stats().version == version


def test_blank_category_is_rejected(db_url: str, classifier: NaiveBayesClassifier) -> None:
    with pytest.raises(ValueError):
        correct_category(1, "   ", classifier=classifier, database_url=db_url)


# ---- Merchant memory ---------------------------------------------------------


def test_memory_reinforces_repeated_corrections(memory: MerchantMemory) -> None:
    memory.remember("Corner Kirana", "Groceries")
    first = memory.lookup("corner kirana")
    memory.remember("CORNER KIRANA ", "Groceries")
    second = memory.lookup("corner kirana")

    assert first is not None and second is not None
    assert first.confidence == Decimal("0.80")
    assert second.confidence == Decimal("0.85")
    assert second.times_used == 2


def test_memory_confidence_is_capped(memory: MerchantMemory) -> None:
    for _ in range(8):
        memory.remember("Daily Dairy", "Groceries")

    mapping = memory.lookup("Daily Dairy")
    assert mapping is not None
    assert mapping.confidence == Decimal("1.00")
    assert mapping.times_used == 8


def test_memory_lookup_by_substring(memory: MerchantMemory) -> None:
    memory.remember("kirana", "Groceries")

    mapping = memory.lookup("Sharma Kirana Store")
    assert mapping is not None and mapping.category == "Groceries"
    assert memory.lookup("Unrelated Cafe") is None
    assert memory.all_mappings() == {"kirana": "Groceries"}


def test_memory_write_failure_is_swallowed(tmp_path: Path, caplog) -> None:
    broken = MerchantMemory(database_url=f"sqlite+pysqlite:///{tmp_path / 'nope' / 'x.db'}")

    broken.remember("Corner Kirana", "Groceries")

    assert any("merchant_memory:write_failed" in r.getMessage() for r in caplog.records)
