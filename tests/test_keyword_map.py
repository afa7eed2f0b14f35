from __future__ import annotations

import pytest

from sms_ledger.keyword_map import (
    CATEGORIES,
    DEFAULT_CATEGORY,
    FALLBACK_HIT_CONFIDENCE,
    FALLBACK_MISS_CONFIDENCE,
    KEYWORD_MAP,
    categorize,
    keyword_confidence,
    keyword_fallback,
    training_corpus,
)


def test_keywords_are_upper_case_and_map_into_fixed_categories() -> None:
    for keyword, category in KEYWORD_MAP.items():
        assert keyword == keyword.upper()
        assert category in CATEGORIES


def test_default_category_is_last() -> None:
    assert CATEGORIES[-1] == DEFAULT_CATEGORY == "General Expense"


def test_keyword_confidence_grows_with_length_and_caps() -> None:
    assert keyword_confidence("EMI") == pytest.approx(0.59)
    assert keyword_confidence("GROCERY") == pytest.approx(0.71)
    assert keyword_confidence("CREDIT CARD BILL") == pytest.approx(0.9)


def test_categorize_prefers_most_specific_keyword() -> None:
    guess = categorize("paid for grocery shopping via upi")
    assert guess.category == "Groceries"
    assert guess.confidence == pytest.approx(0.71)


def test_categorize_includes_merchant_text() -> None:
    guess = categorize("Rs 250 debited", merchant="NETFLIX.COM")
    assert guess.category == "Entertainment & Subscriptions"


def test_categorize_learned_merchant_wins() -> None:
    guess = categorize(
        "paid for grocery shopping", merchant="Corner Store", learned={"corner store": "Pet Expenses"}
    )
    assert guess.category == "Pet Expenses"
    assert guess.confidence == pytest.approx(0.95)


def test_categorize_learned_match_is_substring_either_way() -> None:
    learned = {"kirana": "Groceries"}
    assert categorize("x", merchant="Sharma Kirana Store", learned=learned).category == "Groceries"


def test_categorize_default_when_nothing_matches() -> None:
    guess = categorize("Rs 99 debited")
    assert guess.category == DEFAULT_CATEGORY
    assert guess.confidence == pytest.approx(0.3)


def test_keyword_fallback_longest_keyword_wins() -> None:
    # PETSHOP contains SHOP; the longer key is the more specific one.
    assert keyword_fallback("paid at petshop").category == "Pet Expenses"
    assert keyword_fallback("paid at petshop").confidence == FALLBACK_HIT_CONFIDENCE


def test_keyword_fallback_miss() -> None:
    guess = keyword_fallback("zzzz qqqq")
    assert guess.category == DEFAULT_CATEGORY
    assert guess.confidence == FALLBACK_MISS_CONFIDENCE


def test_training_corpus_has_five_documents_per_keyword() -> None:
    docs = list(training_corpus())
    assert len(docs) == 5 * len(KEYWORD_MAP)
    assert ("payment to swiggy", "Food & Dining") in docs
    assert {category for _, category in docs} == set(CATEGORIES)


def test_keyword_confidence_is_monotonic_in_length() -> None:
    ordered = sorted(KEYWORD_MAP, key=len)
    values = [keyword_confidence(k) for k in ordered]
    assert values == sorted(values)
