"""
Raw vendor extraction.

Tries an ordered chain of strategies and keeps the first cleaned result of at
least three characters. Falls back to UNKNOWN_MERCHANT.
"""

import re

from fintrack.features.gmail_import.domain import UNKNOWN_MERCHANT
from fintrack.features.gmail_import.parsing import patterns

MIN_VENDOR_LENGTH = 3
MAX_VENDOR_WORDS = 4
MAX_SUBJECT_TOKENS = 3
_VENDOR_WINDOW = 80

# Sender domain fragment -> merchant name
SENDER_DOMAIN_MERCHANTS: dict[str, str] = {
    "swiggy": "Swiggy",
    "zomato": "Zomato",
    "amazon": "Amazon",
    "flipkart": "Flipkart",
    "uber": "Uber",
    "olacabs": "Ola",
    "netflix": "Netflix",
    "spotify": "Spotify",
    "paytm": "Paytm",
    "phonepe": "PhonePe",
    "myntra": "Myntra",
    "bigbasket": "BigBasket",
    "zepto": "Zepto",
    "blinkit": "Blinkit",
    "irctc": "IRCTC",
    "makemytrip": "MakeMyTrip",
}

# A vendor phrase ends at any of these
_STOP_TOKENS = frozenset(
    {
        "on", "dated", "date", "ref", "reference", "order", "no", "no.", "number",
        "txn", "transaction", "upi", "rs", "rs.", "inr", "for", "via", "using",
        "your", "account", "a/c", "ac", "acct", "card", "is", "has", "was", "at",
        "from", "to", "by", "with", "of", "and", "towards", "info", "avl", "bal",
        "balance", "utr", "rrn", "id", "successful", "successfully",
    }
)

# Skipped only when leading
_LEADING_FILLERS = frozenset({"the", "a", "an", "m/s", "m/s.", "mr", "mr.", "ms", "ms.", "vpa"})

_SUBJECT_STOPWORDS = frozenset(
    {
        "your", "the", "for", "of", "on", "in", "is", "has", "been", "from", "to",
        "at", "with", "and", "you", "we", "have", "transaction", "transactions",
        "alert", "alerts", "payment", "payments", "debited", "credited", "successful",
        "order", "receipt", "confirmation", "confirmed", "account", "bank", "upi",
        "txn", "update", "notification", "info", "information", "details", "received",
        "thank", "thanks", "dear", "customer", "inr", "done", "new", "our", "this",
    }
)

_EDGE_PUNCTUATION = ".,;:!?()[]{}\"'*-|"
_DIGIT_PATTERN = re.compile(r"\d")


def _is_terminal_token(token: str) -> bool:
    lowered = token.lower()
    return (
        lowered in _STOP_TOKENS
        or bool(patterns.DATE_TOKEN_PATTERN.match(lowered))
        or bool(patterns.NUMBER_TOKEN_PATTERN.match(lowered))
        or bool(patterns.CURRENCY_TOKEN_PATTERN.match(lowered))
    )


def clean_vendor(fragment: str) -> str:
    """Trim a text fragment down to the vendor phrase it starts with."""
    words: list[str] = []
    for raw_token in fragment.split():
        token = raw_token.strip(_EDGE_PUNCTUATION)
        if not token:
            continue

        if "@" in token and patterns.VPA_PATTERN.fullmatch(token):
            token = token.split("@", 1)[0]

        if not words and token.lower() in _LEADING_FILLERS:
            continue
        if _is_terminal_token(token):
            break

        words.append(token)
        if len(words) >= MAX_VENDOR_WORDS or raw_token.endswith((".", ",", ";")):
            break

    return " ".join(words).strip(_EDGE_PUNCTUATION + " ")


def _accept(candidate: str) -> str | None:
    return candidate if len(candidate) >= MIN_VENDOR_LENGTH else None


def from_upi_payment(body: str) -> str | None:
    match = patterns.UPI_VENDOR_PATTERN.search(body)
    return _accept(clean_vendor(match.group("vendor"))) if match else None


def from_payment_to(body: str) -> str | None:
    match = patterns.PAYMENT_TO_PATTERN.search(body)
    return _accept(clean_vendor(match.group("vendor"))) if match else None


def from_preposition(body: str) -> str | None:
    for match in patterns.PREPOSITION_PATTERN.finditer(body):
        fragment = body[match.end() : match.end() + _VENDOR_WINDOW]
        vendor = _accept(clean_vendor(fragment))
        if vendor:
            return vendor
    return None


def from_sender_domain(sender_domain: str) -> str | None:
    domain = sender_domain.lower()
    if not domain:
        return None
    for fragment, merchant in SENDER_DOMAIN_MERCHANTS.items():
        if fragment in domain:
            return merchant
    return None


def from_subject(subject: str) -> str | None:
    tokens = []
    for raw_token in subject.split():
        token = raw_token.strip(_EDGE_PUNCTUATION)
        if len(token) <= 2 or _DIGIT_PATTERN.search(token):
            continue
        if token.lower() in _SUBJECT_STOPWORDS:
            continue
        tokens.append(token)
        if len(tokens) == MAX_SUBJECT_TOKENS:
            break
    return _accept(" ".join(tokens))


def extract_raw_vendor(body: str, subject: str = "", sender_domain: str = "") -> str:
    return (
        from_upi_payment(body)
        or from_payment_to(body)
        or from_preposition(body)
        or from_sender_domain(sender_domain)
        or from_subject(subject)
        or UNKNOWN_MERCHANT
    )
