"""Multinomial Naive Bayes category classifier with online learning.

Lifecycle::

    UNINITIALIZED --first use--> INITIALIZING --> READY
          ^                                         |
          +------------------- reset() -------------+

On first use the classifier loads the stored snapshot. When there is none, or
it holds zero documents, or it fails validation, the model is trained from the
keyword table's synthetic corpus and persisted. Every later mutation
(``add_document``, ``learn``) persists the full model before returning.

All reads and writes of the count tables happen under one re-entrant lock, so
two learning events never interleave their read-modify-write.
"""

from __future__ import annotations

import math
import re
import threading
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Final, Protocol

from .keyword_map import CATEGORIES, keyword_fallback, training_corpus
from .logging_setup import get_logger
from .model_store import FileModelStore
from .models import ClassifierSnapshot, ClassifierStats, Prediction

_SMOOTHING: Final = 1
_FALLBACK_BELOW: Final = 0.15
_LEARN_WEIGHT: Final = 3
_MEMORY_KEY_LEN: Final = 100

_NON_ALNUM: Final = re.compile(r"[^a-z0-9]+")

_logger = get_logger("sms_ledger.classifier")


class ClassifierState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class MerchantRecorder(Protocol):
    def remember(self, merchant: str, category: str) -> None: ...


def tokenize(text: str) -> list[str]:
    """Lower-case, split on non-alphanumerics, drop one-character tokens."""

    return [t for t in _NON_ALNUM.sub(" ", text.lower()).split() if len(t) > 1]


class NaiveBayesClassifier:
    """Category classifier owned by the ingestion pipeline.

    Parameters
    ----------
    store:
        Snapshot storage. ``None`` keeps the model in memory only.
    memory:
        Optional merchant memory; ``learn`` records the corrected text there.
    clock:
        Source of naive local timestamps for ``last_updated``.
    """

    def __init__(
        self,
        store: FileModelStore | None = None,
        *,
        memory: MerchantRecorder | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._memory = memory
        self._clock = clock
        self._lock = threading.RLock()
        self._state = ClassifierState.UNINITIALIZED
        self._clear()

    # ------------------------------------------------------------------
    # Model state
    # ------------------------------------------------------------------

    def _clear(self) -> None:
        self._word_counts: dict[str, dict[str, int]] = {}
        self._category_counts: dict[str, int] = {}
        # category -> sum of word counts over the vocabulary
        self._category_words: dict[str, int] = {}
        self._total_documents = 0
        self._version = 1
        self._last_updated: datetime | None = None

    def _restore(self, snapshot: ClassifierSnapshot) -> None:
        self._word_counts = {w: dict(per) for w, per in snapshot.word_counts.items()}
        self._category_counts = dict(snapshot.category_counts)
        self._category_words = {}
        for per in self._word_counts.values():
            for category, n in per.items():
                self._category_words[category] = self._category_words.get(category, 0) + n
        self._total_documents = snapshot.total_documents
        self._version = snapshot.version
        self._last_updated = snapshot.last_updated

    def snapshot(self) -> ClassifierSnapshot:
        with self._lock:
            self._ensure_ready()
            assert self._last_updated is not None
            return ClassifierSnapshot(
                word_counts={w: dict(per) for w, per in self._word_counts.items()},
                category_counts=dict(self._category_counts),
                total_documents=self._total_documents,
                version=self._version,
                last_updated=self._last_updated,
            )

    @property
    def state(self) -> ClassifierState:
        return self._state

    def _touch(self) -> None:
        now = self._clock()
        if self._last_updated is not None and now <= self._last_updated:
            now = self._last_updated + timedelta(microseconds=1)
        self._last_updated = now

    def _persist(self) -> None:
        if self._store is None:
            return
        try:
            self._store.save(self.snapshot())
        except OSError:
            _logger.error("classifier:save_failed; serving the in-memory model", exc_info=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Load the stored model or bootstrap one from the keyword corpus."""

        with self._lock:
            if self._state is not ClassifierState.UNINITIALIZED:
                return
            self._state = ClassifierState.INITIALIZING
            try:
                loaded = self._store.load() if self._store is not None else None
                if loaded is not None and loaded.total_documents > 0:
                    self._restore(loaded)
                    _logger.info(
                        "classifier:loaded documents=%d version=%d",
                        self._total_documents,
                        self._version,
                    )
                else:
                    self._bootstrap()
            except BaseException:
                self._clear()
                self._state = ClassifierState.UNINITIALIZED
                raise
            self._state = ClassifierState.READY

    def _bootstrap(self) -> None:
        self._clear()
        self._train(training_corpus())
        self._touch()
        # READY already so snapshot() does not recurse into initialize().
        self._state = ClassifierState.READY
        self._persist()
        _logger.info(
            "classifier:bootstrapped documents=%d vocabulary=%d",
            self._total_documents,
            len(self._word_counts),
        )

    def _ensure_ready(self) -> None:
        if self._state is ClassifierState.UNINITIALIZED:
            self.initialize()

    def reset(self) -> None:
        """Drop the stored and in-memory model, then re-bootstrap."""

        with self._lock:
            if self._store is not None:
                try:
                    self._store.delete()
                except OSError:
                    _logger.error("classifier:delete_failed", exc_info=True)
            self._clear()
            self._state = ClassifierState.UNINITIALIZED
            self.initialize()

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def _add(self, text: str, category: str) -> None:
        self._category_counts[category] = self._category_counts.get(category, 0) + 1
        self._total_documents += 1
        for token in tokenize(text):
            per = self._word_counts.setdefault(token, {})
            per[category] = per.get(category, 0) + 1
            self._category_words[category] = self._category_words.get(category, 0) + 1

    def _train(self, documents: Iterable[tuple[str, str]]) -> None:
        for text, category in documents:
            self._add(text, category)

    def add_document(self, text: str, category: str) -> None:
        """Train on one labelled document and persist."""

        if not category.strip():
            raise ValueError("category must be non-empty")
        with self._lock:
            self._ensure_ready()
            self._add(text, category)
            self._touch()
            self._persist()

    def learn(self, text: str, category: str) -> None:
        """Apply a user correction.

        The text is added three times, plus once more as its rejoined tokens,
        so corrections outweigh the synthetic corpus. The model version is
        bumped and the model persisted before the merchant memory is updated.
        """

        if not category.strip():
            raise ValueError("category must be non-empty")
        with self._lock:
            self._ensure_ready()
            for _ in range(_LEARN_WEIGHT):
                self._add(text, category)
            tokens = tokenize(text)
            if tokens:
                self._add(" ".join(tokens), category)
            self._version += 1
            self._touch()
            self._persist()
            _logger.info(
                "classifier:learned category=%r version=%d text=%r",
                category,
                self._version,
                text[:50],
            )
        if self._memory is not None:
            self._memory.remember(text[:_MEMORY_KEY_LEN].lower(), category)

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def _categories(self) -> list[str]:
        # Corrections may introduce labels outside the fixed set.
        return list(dict.fromkeys([*CATEGORIES, *self._category_counts]))

    def categories(self) -> list[str]:
        """Fixed categories followed by any label learned from corrections."""

        with self._lock:
            self._ensure_ready()
            return self._categories()

    def _log_scores(self, tokens: list[str]) -> dict[str, float]:
        categories = self._categories()
        vocabulary_size = len(self._word_counts)
        prior_denominator = self._total_documents + _SMOOTHING * len(categories)
        scores: dict[str, float] = {}
        for category in categories:
            score = math.log(
                (self._category_counts.get(category, 0) + _SMOOTHING) / prior_denominator
            )
            denominator = self._category_words.get(category, 0) + _SMOOTHING * vocabulary_size
            for token in tokens:
                count = self._word_counts.get(token, {}).get(category, 0)
                score += math.log((count + _SMOOTHING) / denominator)
            scores[category] = score
        return scores

    def predict(self, text: str) -> Prediction:
        """Return the most probable category for ``text``.

        When the winner's probability is under 0.15 the keyword fallback is
        consulted and wins if it is more confident. Otherwise the model's
        answer stands, however weak.
        """

        with self._lock:
            self._ensure_ready()
            scores = self._log_scores(tokenize(text))

        top = max(scores.values())
        exp_scores = {c: math.exp(s - top) for c, s in scores.items()}
        total = sum(exp_scores.values())
        probabilities = {c: e / total for c, e in exp_scores.items()}

        best_category, best_probability = "", -1.0
        for category, probability in probabilities.items():
            if probability > best_probability:
                best_category, best_probability = category, probability

        if best_probability < _FALLBACK_BELOW:
            fallback = keyword_fallback(text)
            if fallback.confidence > best_probability:
                return Prediction(
                    category=fallback.category,
                    confidence=fallback.confidence,
                    probabilities={fallback.category: fallback.confidence},
                    source="keyword",
                )

        return Prediction(
            category=best_category,
            confidence=round(best_probability, 2),
            probabilities=probabilities,
            source="model",
        )

    def get_stats(self) -> ClassifierStats:
        with self._lock:
            self._ensure_ready()
            assert self._last_updated is not None
            return ClassifierStats(
                document_count=self._total_documents,
                vocabulary_size=len(self._word_counts),
                version=self._version,
                last_updated=self._last_updated,
            )


__all__ = [
    "ClassifierState",
    "MerchantRecorder",
    "NaiveBayesClassifier",
    "tokenize",
]
