"""Static keyword → category table and the helpers built on it.

The same table drives three things:

- parse-time categorization (:func:`categorize`), which scores every keyword
  contained in the message and keeps the most specific one;
- the classifier's keyword fallback (:func:`keyword_fallback`);
- the synthetic bootstrap corpus (:func:`training_corpus`) the Naive Bayes
  model is trained on before it has seen any user correction.

Keywords are upper-case. Their tokens are not shared between categories so the
bootstrap corpus keeps every keyword separable.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Final, NamedTuple

DEFAULT_CATEGORY: Final[str] = "General Expense"

_LEARNED_CONFIDENCE: Final[float] = 0.95
_DEFAULT_CONFIDENCE: Final[float] = 0.3
_KEYWORD_BASE: Final[float] = 0.5
_KEYWORD_PER_CHAR: Final[float] = 0.03
_KEYWORD_CAP: Final[float] = 0.9

FALLBACK_HIT_CONFIDENCE: Final[float] = 0.85
FALLBACK_MISS_CONFIDENCE: Final[float] = 0.1

_CATEGORY_KEYWORDS: Final[dict[str, tuple[str, ...]]] = {
    "Transport & Travel": (
        "IRCTC", "RAIL", "TRAIN", "REDBUS", "CAB", "UBER", "OLA", "RAPIDO", "PARKING",
        "TOLL", "PETROL", "FUEL", "FASTAG", "METRO", "FLIGHT", "AIRLINE", "INDIGO",
        "SPICEJET", "AIRINDIA",
    ),
    "Medical & Healthcare": (
        "PHARMA", "MEDICAL", "CHEMIST", "HOSPITAL", "CLINIC", "PATHLAB", "HEALTH",
        "APOLLO", "MEDPLUS", "NETMEDS", "PHARMEASY", "1MG", "DIAGNOSTIC",
    ),
    "Office & Business Supplies": (
        "STATIONERY", "STATIONARY", "OFFICE", "PRINT", "XEROX", "PAPER", "CARTRIDGE",
        "TONER",
    ),
    "Shopping & Retail": (
        "AMAZON", "FLIPKART", "AJIO", "MYNTRA", "SHOP", "MART", "DEPARTMENT", "DMART",
        "BIGBAZAAR", "LIFESTYLE", "PANTALOONS", "WESTSIDE", "MEESHO",
    ),
    "Groceries": (
        "GROCERY", "FOODS", "SUPERMARKET", "VEGETABLE", "FRUITS", "DAIRY", "MILK",
        "BIGBASKET", "GROFERS", "BLINKIT", "ZEPTO", "INSTAMART", "JIOMART", "SUGAR",
        "RICE", "ATTA",
    ),
    "Food & Dining": (
        "CAFE", "BAKERY", "RESTAURANT", "HOTEL", "FOOD", "SWIGGY", "ZOMATO", "DOMINOS",
        "PIZZA", "KFC", "MCDONALDS", "STARBUCKS", "CCD", "DUNKIN",
    ),
    "Entertainment & Subscriptions": (
        "SPOTIFY", "NETFLIX", "HOTSTAR", "OTT", "PRIME", "SUBSCRIPTION", "YOUTUBE",
        "DISNEY", "SONYLIV", "ZEE5", "JIOCINEMA", "GAANA", "WYNK",
    ),
    "Bills & Utilities": (
        "ELECTRICITY", "MSEB", "MAHAVITARAN", "GAS", "CYLINDER", "WATER", "BESCOM",
        "TATAPOWER", "ADANI", "PIPED", "INDANE", "BHARAT", "HP GAS",
    ),
    "Telecom Recharge": (
        "MOBILE", "RECHARGE", "WIFI", "DATA", "POSTPAID", "PREPAID", "JIO", "AIRTEL",
        "BSNL", "VODAFONE", "BROADBAND", "ACT FIBERNET",
    ),
    "Housing": (
        "RENT", "HOSTEL", "MAINTENANCE", "SOCIETY", "APARTMENT", "FLAT", "PAYING GUEST",
    ),
    "Education": (
        "SCHOOL", "COLLEGE", "TUITION", "FEES", "BOOKS", "UNIVERSITY", "INSTITUTE",
        "COACHING", "BYJU", "UNACADEMY", "VEDANTU", "UDEMY", "COURSERA",
    ),
    "Loan & EMI": (
        "EMI", "LOAN", "HOME LOAN", "BAJAJ", "MORTGAGE", "DEBIT CARD BILL",
        "CREDIT CARD BILL",
    ),
    "Insurance": (
        "INSURANCE", "PREMIUM", "LIC", "POLICY", "ICICI PRUDENTIAL", "HDFC LIFE",
        "SBI LIFE", "MAX LIFE",
    ),
    "Donations": ("DONATION", "TEMPLE", "CHARITY", "NGO", "TRUST", "KETTO", "MILAAP"),
    "Assets & Precious Items": (
        "GOLD", "JEWELLERY", "JEWELRY", "SILVER", "DIAMOND", "TANISHQ", "KALYAN", "MALABAR",
    ),
    "Investments": (
        "SIP", "MUTUAL FUND", "MF", "SHARE", "STOCK", "DEMAT", "BROKER", "ZERODHA",
        "GROWW", "UPSTOX", "ANGEL", "KUVERA", "SMALLCASE",
    ),
    "Gaming & Entertainment": (
        "GAME", "GAMING", "ESPORTS", "DREAM11", "PUBG", "PLAYSTORE", "STEAM",
    ),
    "Personal Care": (
        "BEAUTY", "SALON", "SPA", "PERSONAL CARE", "PARLOUR", "NYKAA", "PURPLLE", "LAKME",
    ),
    "Vehicle Maintenance": (
        "BIKE", "CAR SERVICE", "GARAGE", "SERVICE", "MECHANIC", "TYRE", "BATTERY", "WASHING",
    ),
    "Pet Expenses": ("PET", "VET", "PETSHOP", "VETERINARY", "PEDIGREE"),
    "Electronics": (
        "APPLIANCE", "ELECTRONICS", "VIJAY SALES", "RELIANCE DIGITAL", "SAMSUNG", "APPLE",
        "CROMA", "ONEPLUS",
    ),
    "Home Services": (
        "CLEANING", "LAUNDRY", "REPAIR", "PLUMBER", "ELECTRICIAN", "CARPENTER",
        "URBANCLAP", "URBAN COMPANY",
    ),
    "Sports & Fitness": ("FITNESS", "GYM", "SPORTS", "CULT", "DECATHLON"),
    "Travel Planning": (
        "TRAVEL AGENCY", "TOUR", "MAKEMYTRIP", "GOIBIBO", "CLEARTRIP", "YATRA", "BOOKING",
        "AIRBNB", "OYO",
    ),
    "Gifts": ("GIFTS", "TOYS", "ARCHIES", "FERNS", "FLOWERS"),
    "Government / Taxes": ("TAX", "GST", "INCOME TAX", "CHALLAN", "STAMP"),
    "Bank Fees": ("CHARGEBACK", "ANNUAL FEE", "LATE FEE", "PENALTY", "INTEREST", "CHARGES"),
    "Cash Withdrawal": ("CASH", "ATM", "WITHDRAWAL", "WITHDRAW"),
    "Wallet Payment": (
        "WALLET", "PAYTM", "MOBIKWIK", "FREECHARGE", "PHONEPE", "GPAY", "AMAZONPAY",
    ),
    "Personal Transfers": ("TRANSFER", "NEFT", "RTGS", "IMPS", "SELF", "UPI"),
    "Salary": ("SALARY", "PAYROLL", "WAGES", "STIPEND", "BONUS"),
    "Refund": ("REFUND", "REVERSAL", "REVERSED", "CASHBACK"),
    DEFAULT_CATEGORY: ("UNKNOWN", "OTHERS", "MISC", "MISCELLANEOUS"),
}

KEYWORD_MAP: Final[dict[str, str]] = {
    keyword: category
    for category, keywords in _CATEGORY_KEYWORDS.items()
    for keyword in keywords
}
"""Upper-case keyword → category label, in declaration order."""

CATEGORIES: Final[tuple[str, ...]] = tuple(_CATEGORY_KEYWORDS)
"""The fixed category set (declaration order, ``General Expense`` last)."""

# Longest first so a specific key ("PETSHOP") is found before a key it contains ("SHOP").
_FALLBACK_ORDER: Final[tuple[tuple[str, str], ...]] = tuple(
    sorted(KEYWORD_MAP.items(), key=lambda kv: -len(kv[0]))
)

_TEMPLATES: Final[tuple[str, ...]] = (
    "{k}",
    "payment to {k}",
    "{k} transaction",
    "debited for {k}",
    "credited from {k}",
)


class CategoryGuess(NamedTuple):
    category: str
    confidence: float


def keyword_confidence(keyword: str) -> float:
    """Longer keywords are more specific: ``min(0.9, 0.5 + 0.03 * len)``."""

    return min(_KEYWORD_CAP, _KEYWORD_BASE + _KEYWORD_PER_CHAR * len(keyword))


def _learned_lookup(merchant: str, learned: Mapping[str, str]) -> str | None:
    needle = merchant.strip().lower()
    if not needle:
        return None
    for key, category in learned.items():
        if needle in key or key in needle:
            return category
    return None


def categorize(
    text: str,
    merchant: str | None = None,
    *,
    learned: Mapping[str, str] | None = None,
) -> CategoryGuess:
    """Guess a category for a message at parse time.

    Order:
    1. merchant memory (``learned`` maps lower-cased merchant keys to
       categories; substring match in either direction) at 0.95;
    2. the highest-confidence keyword contained in ``text + merchant``;
    3. ``General Expense`` at 0.3.
    """

    if merchant and learned:
        hit = _learned_lookup(merchant, learned)
        if hit is not None:
            return CategoryGuess(hit, _LEARNED_CONFIDENCE)

    haystack = f"{text} {merchant or ''}".lower()
    best = CategoryGuess(DEFAULT_CATEGORY, _DEFAULT_CONFIDENCE)
    for keyword, category in KEYWORD_MAP.items():
        if keyword.lower() in haystack:
            confidence = keyword_confidence(keyword)
            if confidence > best.confidence:
                best = CategoryGuess(category, confidence)
    return best


def keyword_fallback(text: str) -> CategoryGuess:
    """Classifier fallback: the longest keyword contained in ``text`` wins."""

    upper = text.upper()
    for keyword, category in _FALLBACK_ORDER:
        if keyword in upper:
            return CategoryGuess(category, FALLBACK_HIT_CONFIDENCE)
    return CategoryGuess(DEFAULT_CATEGORY, FALLBACK_MISS_CONFIDENCE)


def training_corpus() -> Iterator[tuple[str, str]]:
    """Yield ``(text, category)`` bootstrap documents, five per keyword."""

    for keyword, category in KEYWORD_MAP.items():
        k = keyword.lower()
        for template in _TEMPLATES:
            yield template.format(k=k), category


__all__ = [
    "DEFAULT_CATEGORY",
    "FALLBACK_HIT_CONFIDENCE",
    "FALLBACK_MISS_CONFIDENCE",
    "KEYWORD_MAP",
    "CATEGORIES",
    "CategoryGuess",
    "keyword_confidence",
    "categorize",
    "keyword_fallback",
    "training_corpus",
]
