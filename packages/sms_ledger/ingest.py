"""Message ingestion: one raw message in, at most one ledger row out.

Steps, in order:

1. financial gate (two of five indicators), else ``not_financial``;
2. parse, else ``no_amount`` when no amount was found;
3. classify ``merchant + " " + text``; the classifier's category and
   confidence are what gets persisted;
4. duplicate check: same reference id, or a message-backed transaction within
   the time window and amount tolerance;
5. manual merge: an unverified manual entry of the same direction in the
   window is corroborated in place;
6. create a new message-derived transaction.

Steps 4-6 are a check-then-act sequence, so :meth:`IngestionPipeline.ingest`
holds a pipeline lock for the whole run. Buffered messages are replayed one at
a time in receipt order through :meth:`IngestionPipeline.replay`.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Final

from sqlalchemy.orm import Session

from ledger_db.client import session_scope
from ledger_db.models.ledger import LedgerTransaction

from .classifier import NaiveBayesClassifier
from .errors import StorageUnavailableError
from .logging_setup import get_logger
from .models import IngestResult, ParsedMessage, Prediction, RawMessage
from .patterns import is_financial_message, mask_sensitive_data, parse_message
from .persistence import (
    MerchantMemory,
    find_by_reference_id,
    find_in_window,
    find_manual_merge_candidates,
    insert_transaction,
    mark_verified_by_message,
    storage_guard,
)

DEFAULT_WINDOW: Final = timedelta(minutes=10)
DEFAULT_AMOUNT_TOLERANCE: Final = Decimal("2")
DEFAULT_BUFFER_CAPACITY: Final = 1000

_REVIEW_THRESHOLD: Final = 0.5

_logger = get_logger("sms_ledger.ingest")


def _tx_type(parsed: ParsedMessage) -> str:
    return "income" if parsed.direction == "credit" else "expense"


def _is_message_backed(tx: LedgerTransaction) -> bool:
    return tx.source != "manual" or tx.verified_via == "sms"


def choose_merge_target(
    candidates: Sequence[LedgerTransaction], merchant: str | None
) -> LedgerTransaction | None:
    """Prefer a candidate whose description mentions the merchant, else the earliest."""

    if not candidates:
        return None
    if merchant:
        needle = merchant.lower()
        for candidate in candidates:
            if needle in (candidate.description or "").lower():
                return candidate
    return candidates[0]


class IngestionPipeline:
    """Serialized message → ledger pipeline.

    Parameters
    ----------
    classifier:
        The classifier instance this pipeline owns and consults for every
        message.
    database_url:
        Ledger URL; ``None`` uses ``DATABASE_URL``.
    memory:
        Merchant memory consulted at parse time. ``None`` skips it.
    window, amount_tolerance:
        Duplicate/merge matching tolerances (±10 minutes and ₹2 by default).
    """

    def __init__(
        self,
        classifier: NaiveBayesClassifier,
        *,
        database_url: str | None = None,
        memory: MerchantMemory | None = None,
        window: timedelta = DEFAULT_WINDOW,
        amount_tolerance: Decimal = DEFAULT_AMOUNT_TOLERANCE,
    ) -> None:
        if window <= timedelta(0):
            raise ValueError(f"window must be positive, got {window!r}")
        if amount_tolerance < 0:
            raise ValueError(f"amount_tolerance must be non-negative, got {amount_tolerance!r}")
        self._classifier = classifier
        self._database_url = database_url
        self._memory = memory
        self._window = window
        self._tolerance = Decimal(amount_tolerance)
        self._lock = threading.Lock()

    @property
    def classifier(self) -> NaiveBayesClassifier:
        return self._classifier

    def ingest(self, message: RawMessage) -> IngestResult:
        """Process one message.

        Discards are reported through ``IngestResult.outcome``. Raises
        :class:`StorageUnavailableError` when the ledger cannot be reached;
        retrying the same message later is safe.
        """

        with self._lock:
            return self._ingest(message)

    # ------------------------------------------------------------------

    def _ingest(self, message: RawMessage) -> IngestResult:
        text = message.text
        if not is_financial_message(text):
            _logger.debug("ingest:not_financial sender=%s", message.sender)
            return IngestResult(outcome="not_financial")

        learned = self._memory.all_mappings() if self._memory is not None else None
        parsed = parse_message(text, message.received_at, learned=learned)
        if parsed.amount is None:
            _logger.debug("ingest:no_amount sender=%s", message.sender)
            return IngestResult(outcome="no_amount", parsed=parsed)

        prediction = self._classifier.predict(f"{parsed.merchant or ''} {text}".strip())

        with storage_guard("ingest"), session_scope(database_url=self._database_url) as session:
            if find_by_reference_id(session, parsed.reference_id) is not None:
                _logger.info("ingest:duplicate reference_id=%s", parsed.reference_id)
                return IngestResult(outcome="duplicate", parsed=parsed, prediction=prediction)

            nearby = find_in_window(
                session,
                center=parsed.occurred_at,
                window=self._window,
                amount=parsed.amount,
                tolerance=self._tolerance,
            )
            backed = next((tx for tx in nearby if _is_message_backed(tx)), None)
            if backed is not None:
                _logger.info(
                    "ingest:duplicate window_match id=%d amount=%s", backed.id, parsed.amount
                )
                return IngestResult(outcome="duplicate", parsed=parsed, prediction=prediction)

            if parsed.direction != "unknown":
                target = choose_merge_target(
                    find_manual_merge_candidates(
                        session,
                        center=parsed.occurred_at,
                        window=self._window,
                        amount=parsed.amount,
                        tolerance=self._tolerance,
                        tx_type=_tx_type(parsed),
                    ),
                    parsed.merchant,
                )
                if target is not None:
                    mark_verified_by_message(
                        session,
                        target.id,
                        raw_data=mask_sensitive_data(text),
                        reference_id=parsed.reference_id,
                        confidence=prediction.confidence,
                    )
                    _logger.info("ingest:merged id=%d amount=%s", target.id, parsed.amount)
                    return IngestResult(
                        outcome="merged",
                        transaction_id=target.id,
                        parsed=parsed,
                        prediction=prediction,
                    )

            row = self._create(session, message, parsed, prediction)
            _logger.info(
                "ingest:created id=%d amount=%s category=%r needs_review=%s",
                row.id,
                parsed.amount,
                row.category,
                row.needs_review,
            )
            return IngestResult(
                outcome="created", transaction_id=row.id, parsed=parsed, prediction=prediction
            )

    def _create(
        self,
        session: Session,
        message: RawMessage,
        parsed: ParsedMessage,
        prediction: Prediction,
    ) -> LedgerTransaction:
        assert parsed.amount is not None
        needs_review = parsed.needs_review or prediction.confidence < _REVIEW_THRESHOLD
        return insert_transaction(
            session,
            tx_type=_tx_type(parsed),
            amount=parsed.amount,
            description=parsed.merchant or f"{parsed.method.upper()} Transaction",
            category=prediction.category,
            date=parsed.occurred_at,
            source="sms",
            confidence=prediction.confidence,
            category_confidence=prediction.confidence,
            needs_review=needs_review,
            verified=not needs_review,
            verified_via="sms",
            is_auto_added=True,
            sender=message.sender,
            payment_method=parsed.method,
            last4_digits=parsed.last4,
            reference_id=parsed.reference_id,
            raw_data=mask_sensitive_data(parsed.raw_text),
        )

    # ------------------------------------------------------------------
    # Offline replay
    # ------------------------------------------------------------------

    def replay(self, buffer: MessageBuffer) -> ReplaySummary:
        """Drain ``buffer`` and ingest its messages in receipt order.

        When storage becomes unavailable the failed message and everything
        after it go back to the front of the buffer, still in order.
        """

        pending = sorted(buffer.drain(), key=lambda m: m.received_at)
        created = merged = skipped = 0
        for index, message in enumerate(pending):
            try:
                result = self.ingest(message)
            except StorageUnavailableError:
                remaining = pending[index:]
                buffer.requeue(remaining)
                _logger.warning(
                    "replay:storage_unavailable requeued=%d processed=%d",
                    len(remaining),
                    index,
                    exc_info=True,
                )
                return ReplaySummary(
                    processed=index,
                    created=created,
                    merged=merged,
                    skipped=skipped,
                    requeued=len(remaining),
                )
            if result.outcome == "created":
                created += 1
            elif result.outcome == "merged":
                merged += 1
            else:
                skipped += 1

        summary = ReplaySummary(
            processed=len(pending), created=created, merged=merged, skipped=skipped, requeued=0
        )
        _logger.info(
            "replay:done processed=%d created=%d merged=%d skipped=%d",
            summary.processed,
            summary.created,
            summary.merged,
            summary.skipped,
        )
        return summary


@dataclass(frozen=True, slots=True)
class ReplaySummary:
    processed: int
    created: int
    merged: int
    skipped: int
    requeued: int


class MessageBuffer:
    """Bounded FIFO of messages received while nothing was consuming them.

    When full, the oldest message is dropped (with a warning) to make room.
    """

    def __init__(self, capacity: int = DEFAULT_BUFFER_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._items: deque[RawMessage] = deque()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[RawMessage]:
        with self._lock:
            return iter(list(self._items))

    def _trim(self) -> None:
        while len(self._items) > self._capacity:
            dropped = self._items.popleft()
            _logger.warning(
                "buffer:full capacity=%d dropped sender=%s received_at=%s",
                self._capacity,
                dropped.sender,
                dropped.received_at.isoformat(),
            )

    def push(self, message: RawMessage) -> None:
        with self._lock:
            self._items.append(message)
            self._trim()

    def extend(self, messages: Iterable[RawMessage]) -> None:
        for message in messages:
            self.push(message)

    def requeue(self, messages: Sequence[RawMessage]) -> None:
        """Put ``messages`` back at the front, keeping their order."""

        with self._lock:
            self._items.extendleft(reversed(messages))
            self._trim()

    def drain(self) -> list[RawMessage]:
        with self._lock:
            items = list(self._items)
            self._items.clear()
            return items


__all__ = [
    "DEFAULT_WINDOW",
    "DEFAULT_AMOUNT_TOLERANCE",
    "DEFAULT_BUFFER_CAPACITY",
    "IngestionPipeline",
    "MessageBuffer",
    "ReplaySummary",
    "choose_merge_target",
]
