"""
Regular expression table for transaction emails.

All patterns are compiled once at import. Case-insensitive unless noted.
"""

import re

# Amounts: optional currency marker, Indian or western digit grouping, up to two decimals.
AMOUNT_PATTERN = re.compile(
    r"(?<![\w.,/-])"
    r"(?P<currency>INR|Rs\.?|₹|USD|\$)?\s?"
    r"(?P<value>\d{1,3}(?:,\d{2,3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)"
    r"(?![\d,]|\.\d)",
    re.IGNORECASE,
)

# Bare integers (no currency, separators or decimals) that look like dates, times or ids
BARE_AMOUNT_MAX_DIGITS = 5
DATE_JOINERS = frozenset("-/:")
_MONTH = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*"
MONTH_BEFORE_PATTERN = re.compile(rf"\b{_MONTH}\.?,?\s*$", re.IGNORECASE)
MONTH_AFTER_PATTERN = re.compile(rf"\s*{_MONTH}\b", re.IGNORECASE)

AMOUNT_KEYWORD_PATTERN = re.compile(
    r"\b(total|net|amount|paid|debited|received)\b", re.IGNORECASE
)

# Filters
OTP_PATTERN = re.compile(
    r"\b(OTP|one[- ]time password|verification code|security code)\b", re.IGNORECASE
)
FAILED_PATTERN = re.compile(
    r"\b(failed|declined|unsuccessful|cancelled|canceled|blocked)\b", re.IGNORECASE
)

# Direction
SUBJECT_DEBIT_PATTERN = re.compile(r"\b(debited|payment)\b", re.IGNORECASE)
SUBJECT_CREDIT_PATTERN = re.compile(r"\b(credited|refund|reversal)\b", re.IGNORECASE)
SUBSCRIPTION_PATTERN = re.compile(
    r"\b(subscription\s+(?:renewal|renewed)|renewal\s+of\s+(?:your\s+)?subscription"
    r"|auto[- ]?pay|autodebit|auto[- ]debit|recurring|mandate|standing\s+instruction)\b",
    re.IGNORECASE,
)
WALLET_PATTERN = re.compile(r"\bwallet\b", re.IGNORECASE)
WALLET_CREDIT_PATTERN = re.compile(
    r"\b(?:transferred|added|loaded)\s+to\s+(?:your\s+)?(?:\w+\s+)?wallet\b", re.IGNORECASE
)
CREDIT_KEYWORD_PATTERN = re.compile(
    r"\b(credited|deposit(?:ed)?|received|refund(?:ed)?|cashback)\b", re.IGNORECASE
)
DEBIT_KEYWORD_PATTERN = re.compile(
    r"\b(debited|paid|payment|sent|spent|withdrawn|purchase|charged)\b", re.IGNORECASE
)
REFUND_PHRASE_PATTERN = re.compile(
    r"\b(refund(?:ed)?\s+(?:of|for|to|has|is)|reversal|reversed|amount\s+reversed)\b",
    re.IGNORECASE,
)
LOOSE_CREDIT_PATTERN = re.compile(r"\bcredited\s+(?:to|with)\b", re.IGNORECASE)
LOOSE_DEBIT_PATTERN = re.compile(r"\b(?:debited\s+from|paid\s+to)\b", re.IGNORECASE)

# Vendor
UPI_VENDOR_PATTERN = re.compile(
    r"\b(?:UPI|VPA)\b[^.\n]{0,40}?\bto\s+(?P<vendor>[^\n]{2,80})", re.IGNORECASE
)
PAYMENT_TO_PATTERN = re.compile(
    r"\b(?:payment\s+to|paid\s+to|paid\s+for)\s+(?P<vendor>[^\n]{2,80})", re.IGNORECASE
)
PREPOSITION_PATTERN = re.compile(r"\b(?:to|at|from|via|by)\s+(?=[A-Za-z])", re.IGNORECASE)

# Metadata
VPA_PATTERN = re.compile(r"[\w.\-]+@[A-Za-z]{2,}(?![\w@]|\.\w)")
ACCOUNT_SUFFIX_PATTERN = re.compile(
    r"\b(?:a/c|acct|account|ac|card)"
    r"(?:\s+(?:no\.?|number|ending(?:\s+(?:in|with))?))?"
    r"\s*[:.]?\s*[xX*]*(\d{2,4})\b",
    re.IGNORECASE,
)
REFERENCE_PATTERN = re.compile(
    r"\b(?:(?:ref(?:erence)?|txn|transaction|utr|rrn)\s*)+"
    r"(?:no\.?|number|id)?\s*(?:is\b)?\s*[:#.]?\s*"
    r"(?P<ref>[A-Za-z0-9]{6,30})\b",
    re.IGNORECASE,
)
PAYMENT_METHOD_PATTERNS = (
    ("UPI", re.compile(r"\b(UPI|VPA)\b", re.IGNORECASE)),
    ("Credit Card", re.compile(r"\bcredit\s+card\b", re.IGNORECASE)),
    ("Debit Card", re.compile(r"\bdebit\s+card\b", re.IGNORECASE)),
    ("Net Banking", re.compile(r"\b(net\s*banking|NEFT|IMPS|RTGS)\b", re.IGNORECASE)),
    ("Wallet", re.compile(r"\bwallet\b", re.IGNORECASE)),
)

# Vendor cleanup helpers (not case-sensitive tokens; compared lowercased)
DATE_TOKEN_PATTERN = re.compile(
    r"^(\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}|\d{1,2}(st|nd|rd|th)?|"
    r"jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[.,]?$",
    re.IGNORECASE,
)
NUMBER_TOKEN_PATTERN = re.compile(r"^[\d.,:/#-]+$")
CURRENCY_TOKEN_PATTERN = re.compile(r"^(?:rs\.?|inr|usd|₹|\$)[\d.,]*$", re.IGNORECASE)
WHITESPACE_PATTERN = re.compile(r"\s+")
