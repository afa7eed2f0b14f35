from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from sms_ledger.patterns import (
    count_financial_indicators,
    extract_amount,
    extract_balance,
    extract_datetime,
    extract_direction,
    extract_last4,
    extract_merchant,
    extract_method,
    extract_reference_id,
    is_financial_message,
    mask_sensitive_data,
    parse_message,
    score_parse,
)

EXAMPLE = (
    "Rs 1,500.00 debited from A/c XX1234 on 07-Dec-24 by UPI/merchant@paytm for "
    "grocery shopping. Avl Bal Rs 25,450.00"
)


# ---- Amounts -----------------------------------------------------------------


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Rs 1,500.00 debited from A/c XX1234", Decimal("1500.00")),
        ("Rs.250 spent on your card", Decimal("250")),
        ("INR 2,00,000 credited to your account", Decimal("200000")),
        ("₹499.50 paid to SWIGGY", Decimal("499.50")),
        ("Amount: 750 debited via UPI", Decimal("750")),
    ],
)
def test_extract_amount_reads_currency_forms(text: str, expected: Decimal) -> None:
    assert extract_amount(text) == expected


def test_extract_amount_keeps_paise() -> None:
    # 1,500.75 is fifteen hundred rupees and seventy-five paise, not 150075.
    assert extract_amount("Rs 1,500.75 debited") == Decimal("1500.75")


def test_extract_amount_none_without_currency() -> None:
    assert extract_amount("Your OTP is 482913. Do not share it.") is None


def test_extract_amount_ignores_rs_inside_words() -> None:
    assert extract_amount("yours 123 truly") is None


# ---- Direction and method ----------------------------------------------------


def test_direction_debit_and_credit() -> None:
    assert extract_direction("Rs 100 debited from A/c") == "debit"
    assert extract_direction("Rs 100 credited to A/c") == "credit"
    assert extract_direction("Your request is being processed") == "unknown"


def test_direction_debit_wins_when_both_present() -> None:
    text = "Rs 100 debited from A/c XX1234 and credited to A/c XX9876"
    assert extract_direction(text) == "debit"


def test_direction_requires_whole_words() -> None:
    # "unpaid" must not count as "paid".
    assert extract_direction("Reminder: your bill of Rs 300 is unpaid") == "unknown"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Paid via UPI at the ATM counter", "upi"),
        ("Rs 2000 withdrawn at ATM", "atm"),
        ("Rs 5000 sent via IMPS", "imps"),
        ("NEFT transfer of Rs 10000", "neft"),
        ("RTGS of Rs 300000 credited", "rtgs"),
        ("spent on your Credit Card XX4321", "credit_card"),
        ("spent on your Debit Card XX4321", "debit_card"),
        ("Rs 100 added to Mobikwik wallet", "wallet"),
        ("paid using Net Banking", "netbanking"),
        ("Rs 100 debited", "unknown"),
    ],
)
def test_extract_method_precedence(text: str, expected: str) -> None:
    assert extract_method(text) == expected


# ---- Dates -------------------------------------------------------------------


def test_extract_datetime_with_time() -> None:
    assert extract_datetime("debited on 05-12-2024 at 14:30") == datetime(2024, 12, 5, 14, 30)


def test_extract_datetime_two_digit_year_and_pm() -> None:
    assert extract_datetime("on 05/12/24 02:15 pm") == datetime(2024, 12, 5, 14, 15)


def test_extract_datetime_date_only_is_midnight() -> None:
    assert extract_datetime("credited on 01-01-2025") == datetime(2025, 1, 1)


def test_extract_datetime_rejects_impossible_date() -> None:
    assert extract_datetime("debited on 31/02/24") is None


def test_extract_datetime_month_names_are_not_parsed() -> None:
    assert extract_datetime(EXAMPLE) is None


# ---- Merchant, account, reference, balance -----------------------------------


def test_merchant_prefers_upi_handle() -> None:
    assert extract_merchant(EXAMPLE) == "merchant@paytm"


def test_merchant_from_preposition() -> None:
    assert extract_merchant("Rs 250 paid to SWIGGY on 05-12-24") == "SWIGGY"


def test_merchant_absent() -> None:
    assert extract_merchant("Rs 250 debited") is None


def test_last4_variants() -> None:
    assert extract_last4("debited from A/c XX1234") == "1234"
    assert extract_last4("spent on card ending 5678") == "5678"
    assert extract_last4("Rs 100 debited") is None


def test_reference_id_requires_a_digit() -> None:
    assert extract_reference_id("UPI Ref No 412345678901") == "412345678901"
    assert extract_reference_id("txn id ABC") is None


def test_balance_after_amount() -> None:
    assert extract_balance(EXAMPLE) == Decimal("25450.00")
    assert extract_balance("Rs 100 debited") is None


# ---- Gate and masking --------------------------------------------------------


def test_financial_gate_requires_two_indicators() -> None:
    assert is_financial_message("Rs 500 debited") is True
    assert count_financial_indicators("Flat sale Rs 500 off today") == 1
    assert is_financial_message("Flat sale Rs 500 off today") is False
    assert is_financial_message("Get 50% off on your next order!") is False


def test_mask_account_number_keeps_last_four() -> None:
    assert mask_sensitive_data("A/c 123456789012 debited") == "A/c XXXX9012 debited"


def test_mask_mobile_number_keeps_prefix() -> None:
    assert mask_sensitive_data("call 9876543210 now") == "call 98XXXX3210 now"


def test_mask_ten_digit_non_mobile() -> None:
    assert mask_sensitive_data("ref 5123456789") == "ref XXXX6789"


def test_mask_leaves_short_numbers() -> None:
    text = "Rs 1,500.00 on 07-12-24 OTP 12345678"
    assert mask_sensitive_data(text) == text


# ---- Composition -------------------------------------------------------------


def test_score_parse_weights() -> None:
    full = score_parse(
        amount=Decimal("1"),
        direction="debit",
        method="upi",
        merchant="x",
        reference_id="1",
    )
    assert full == 1.0
    partial = score_parse(
        amount=Decimal("1"), direction="debit", method="unknown", merchant=None, reference_id=None
    )
    assert partial == pytest.approx(0.65)


def test_parse_message_end_to_end() -> None:
    received = datetime(2024, 12, 7, 9, 41)
    parsed = parse_message(EXAMPLE, received)

    assert parsed.amount == Decimal("1500")
    assert parsed.direction == "debit"
    assert parsed.method == "upi"
    assert parsed.merchant == "merchant@paytm"
    assert parsed.category == "Groceries"
    assert parsed.category_confidence == pytest.approx(0.71)
    assert parsed.parse_confidence >= 0.8
    assert parsed.needs_review is False
    assert parsed.last4 == "1234"
    assert parsed.available_balance == Decimal("25450.00")
    assert parsed.occurred_at == received
    assert parsed.date_found is False
    assert parsed.raw_text == EXAMPLE


def test_parse_message_unknown_direction_needs_review() -> None:
    parsed = parse_message("Rs 500 UPI transaction XX1234", datetime(2024, 1, 1))
    assert parsed.direction == "unknown"
    assert parsed.needs_review is True


def test_parse_message_uses_learned_merchant() -> None:
    parsed = parse_message(
        "Rs 250 paid to Sharma Tutors on 05-12-24 via UPI",
        learned={"sharma tutors": "Education"},
    )
    assert parsed.merchant == "Sharma Tutors"
    assert parsed.category == "Education"
    assert parsed.category_confidence == pytest.approx(0.95)
    assert parsed.occurred_at == datetime(2024, 12, 5)


def test_mask_sixteen_digit_card_number() -> None:
    masked = mask_sensitive_data("Card 4111111111111111 used for Rs 99")
    assert masked == "Card XXXX1111 used for Rs 99"


def test_parse_confidence_grows_with_each_field() -> None:
    bare = parse_message("Rs 500 UPI payment XX1234", datetime(2024, 1, 1))
    richer = parse_message("Rs 500 debited via UPI to SWIGGY ref 556677", datetime(2024, 1, 1))
    assert richer.parse_confidence > bare.parse_confidence
