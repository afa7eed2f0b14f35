"""Data models and type aliases for ``sms_ledger``.

Value objects flowing through the pipeline are frozen dataclasses. The
persisted classifier snapshot is a pydantic model so a file written by an
older or damaged process is validated before it is trusted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ---------------------------------------------------------------------------
# Enumerated vocabularies
# ---------------------------------------------------------------------------

type Direction = Literal["debit", "credit", "unknown"]
"""Whether funds left (debit) or reached (credit) the user's account."""

type Method = Literal[
    "upi",
    "debit_card",
    "credit_card",
    "netbanking",
    "wallet",
    "atm",
    "neft",
    "rtgs",
    "imps",
    "unknown",
]
"""Payment rail a message refers to."""

type IngestOutcome = Literal["not_financial", "no_amount", "duplicate", "merged", "created"]
"""What the ingestion pipeline did with one message."""


# ---------------------------------------------------------------------------
# Pipeline values
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawMessage:
    """A notification as delivered by the device bridge.

    ``received_at`` is a naive local timestamp; bank messages quote local
    wall-clock time without a zone and all window comparisons happen in that
    frame.
    """

    sender: str
    text: str
    received_at: datetime

    @classmethod
    def from_epoch_ms(cls, sender: str, text: str, received_at_epoch_ms: int) -> RawMessage:
        return cls(
            sender=sender,
            text=text,
            received_at=datetime.fromtimestamp(received_at_epoch_ms / 1000),
        )


@dataclass(frozen=True, slots=True)
class ParsedMessage:
    """Result of a single pattern-extraction pass over one message."""

    amount: Decimal | None
    direction: Direction
    method: Method
    occurred_at: datetime
    merchant: str | None
    last4: str | None
    reference_id: str | None
    available_balance: Decimal | None
    category: str
    category_confidence: float
    parse_confidence: float
    needs_review: bool
    raw_text: str
    # False when ``occurred_at`` fell back to the received timestamp.
    date_found: bool = False


@dataclass(frozen=True, slots=True)
class Prediction:
    """Classifier verdict for one text.

    ``confidence`` is rounded to two decimals; ``probabilities`` keeps the full
    normalized distribution (or the single fallback entry when ``source`` is
    ``"keyword"``).
    """

    category: str
    confidence: float
    probabilities: dict[str, float] = field(default_factory=dict)
    source: Literal["model", "keyword"] = "model"


@dataclass(frozen=True, slots=True)
class ClassifierStats:
    document_count: int
    vocabulary_size: int
    version: int
    last_updated: datetime


@dataclass(frozen=True, slots=True)
class IngestResult:
    """Outcome of ingesting one message.

    ``transaction_id`` is set for ``created`` and ``merged`` (the id of the
    manual entry that was corroborated) and ``None`` otherwise.
    """

    outcome: IngestOutcome
    transaction_id: int | None = None
    parsed: ParsedMessage | None = None
    prediction: Prediction | None = None

    @property
    def produced_transaction(self) -> bool:
        return self.outcome in ("created", "merged")


class InboundMessage(BaseModel):
    """Boundary shape ``{sender, text, receivedAtEpochMs}`` from the device bridge."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sender: str
    text: str
    received_at_epoch_ms: int = Field(alias="receivedAtEpochMs", ge=0)

    def to_raw(self) -> RawMessage:
        return RawMessage.from_epoch_ms(self.sender, self.text, self.received_at_epoch_ms)


# ---------------------------------------------------------------------------
# Persisted classifier state
# ---------------------------------------------------------------------------


class ClassifierSnapshot(BaseModel):
    """On-disk shape of the Naive Bayes model.

    Vocabulary is not stored; it is the key set of ``word_counts``.
    """

    model_config = ConfigDict(strict=False, extra="ignore")

    word_counts: dict[str, dict[str, int]] = Field(default_factory=dict)
    category_counts: dict[str, int] = Field(default_factory=dict)
    total_documents: int = 0
    version: int = 1
    last_updated: datetime

    @field_validator("category_counts")
    @classmethod
    def _non_negative_category_counts(cls, v: dict[str, int]) -> dict[str, int]:
        if any(n < 0 for n in v.values()):
            raise ValueError("category counts must be non-negative")
        return v

    @field_validator("word_counts")
    @classmethod
    def _non_negative_word_counts(
        cls, v: dict[str, dict[str, int]]
    ) -> dict[str, dict[str, int]]:
        for per_category in v.values():
            if any(n < 0 for n in per_category.values()):
                raise ValueError("word counts must be non-negative")
        return v

    @model_validator(mode="after")
    def _documents_add_up(self) -> ClassifierSnapshot:
        if self.total_documents != sum(self.category_counts.values()):
            raise ValueError(
                "total_documents must equal the sum of category_counts "
                f"({self.total_documents} != {sum(self.category_counts.values())})"
            )
        return self


__all__ = [
    "Direction",
    "Method",
    "IngestOutcome",
    "RawMessage",
    "ParsedMessage",
    "Prediction",
    "ClassifierStats",
    "IngestResult",
    "ClassifierSnapshot",
    "InboundMessage",
]
