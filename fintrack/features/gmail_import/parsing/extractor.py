"""
Transaction Text Extractor

Turns one Gmail message into a confidence-scored TransactionCandidate, or None
when the email is not an actionable transaction (OTP, failed payment, no
amount, no direction).
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from fintrack.features.gmail_import.domain import (
    UNKNOWN_MERCHANT,
    AmountMatch,
    TransactionCandidate,
    confidence_from_score,
)
from fintrack.features.gmail_import.parsing import patterns
from fintrack.features.gmail_import.parsing.direction import DirectionResult, determine_direction
from fintrack.features.gmail_import.parsing.text_extraction import extract_body_text
from fintrack.features.gmail_import.parsing.vendor import extract_raw_vendor
from fintrack.infrastructure.observability.logging import get_logger
from fintrack.models.domain.gmail_domain import GmailMessage

logger = get_logger(__name__)

_CENT = Decimal("0.01")

# Amount selection rule -> score contribution
AMOUNT_SCORES = {"single": 30, "keyword_proximity": 20, "largest_value": 10}


def parse_amount(raw: str) -> Decimal | None:
    """'₹2,500.00' -> Decimal('2500.00'). Returns None for zero or unparseable input."""
    digits = raw
    for marker in ("INR", "inr", "Rs.", "rs.", "Rs", "rs", "RS", "₹", "USD", "usd", "$"):
        digits = digits.replace(marker, "")
    digits = digits.replace(",", "").strip()
    try:
        value = Decimal(digits).quantize(_CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    return value if value > 0 else None


def _is_date_or_id(text: str, match, account_spans: list[tuple[int, int]]) -> bool:
    """True when a bare integer is really part of a date, time, account number or reference."""
    start, end = match.span("value")
    if end - start > patterns.BARE_AMOUNT_MAX_DIGITS:
        return True
    if (start and text[start - 1] in patterns.DATE_JOINERS) or (
        end < len(text) and text[end] in patterns.DATE_JOINERS
    ):
        return True
    if patterns.MONTH_BEFORE_PATTERN.search(text[:start]) or patterns.MONTH_AFTER_PATTERN.match(
        text, end
    ):
        return True
    return any(span_start <= start < span_end for span_start, span_end in account_spans)


def extract_amounts(text: str) -> list[AmountMatch]:
    """
    Find every amount-like substring with its offset.

    The currency marker is optional. A bare integer is skipped when it reads
    as a date, a time, an account suffix or a long reference number.
    """
    account_spans = [m.span(1) for m in patterns.ACCOUNT_SUFFIX_PATTERN.finditer(text)]
    matches: list[AmountMatch] = []
    for match in patterns.AMOUNT_PATTERN.finditer(text):
        value_text = match.group("value")
        bare = not match.group("currency") and "." not in value_text and "," not in value_text
        if bare and _is_date_or_id(text, match, account_spans):
            continue
        value = parse_amount(value_text)
        if value is None:
            continue
        matches.append(AmountMatch(raw=match.group(0).strip(), value=value, index=match.start()))
    return matches


def select_primary_amount(amounts: list[AmountMatch], text: str) -> tuple[AmountMatch, str]:
    if len(amounts) == 1:
        return amounts[0], "single"

    keyword = patterns.AMOUNT_KEYWORD_PATTERN.search(text)
    if keyword:
        nearest = min(amounts, key=lambda amount: abs(amount.index - keyword.start()))
        return nearest, "keyword_proximity"

    return max(amounts, key=lambda amount: amount.value), "largest_value"


def extract_vpa(text: str) -> str | None:
    match = patterns.VPA_PATTERN.search(text)
    return match.group(0) if match else None


def extract_account_suffix(text: str) -> str | None:
    match = patterns.ACCOUNT_SUFFIX_PATTERN.search(text)
    return match.group(1) if match else None


def extract_reference_id(text: str) -> str | None:
    # "transaction successful" also matches; keep looking for a token with digits
    for match in patterns.REFERENCE_PATTERN.finditer(text):
        if any(ch.isdigit() for ch in match.group("ref")):
            return match.group("ref")
    return None


def extract_payment_method(text: str) -> str | None:
    for method, pattern in patterns.PAYMENT_METHOD_PATTERNS:
        if pattern.search(text):
            return method
    return None


def _direction_points(confidence: float) -> int:
    if confidence >= 0.8:
        return 30
    if confidence >= 0.5:
        return 20
    return 10


def calculate_confidence(
    amount_rule: str, direction: DirectionResult, raw_vendor: str, metadata: dict[str, Any]
) -> str:
    score = AMOUNT_SCORES[amount_rule]
    score += _direction_points(direction.confidence)
    if metadata.get("vpa") or metadata.get("account_last4"):
        score += 15
    score += 5 if raw_vendor == UNKNOWN_MERCHANT else 25
    return confidence_from_score(score)


def parse_email_message(message: GmailMessage | dict) -> TransactionCandidate | None:
    if isinstance(message, dict):
        message = GmailMessage(message)

    body = extract_body_text(message)
    subject = message.subject or ""

    if patterns.OTP_PATTERN.search(body) or patterns.OTP_PATTERN.search(subject):
        logger.debug("Skipping OTP/security email", message_id=message.id)
        return None

    if patterns.FAILED_PATTERN.search(body):
        logger.debug("Skipping failed transaction email", message_id=message.id)
        return None

    amounts = extract_amounts(body)
    if not amounts:
        logger.debug("No amount found in email", message_id=message.id)
        return None

    primary, amount_rule = select_primary_amount(amounts, body)

    direction = determine_direction(subject, body)
    if direction is None:
        logger.debug("Could not determine direction", message_id=message.id)
        return None

    raw_vendor = extract_raw_vendor(body, subject, message.sender_domain)

    metadata: dict[str, Any] = {
        "vpa": extract_vpa(body),
        "account_last4": extract_account_suffix(body),
        "reference_id": extract_reference_id(body),
        "payment_method": extract_payment_method(body),
        "original_subject": subject,
        "sender_email": message.sender_email,
        "amount_source": amount_rule,
        "direction_rule": direction.rule,
        "direction_confidence": direction.confidence,
    }

    return TransactionCandidate(
        gmail_message_id=message.id,
        amount=primary.value,
        direction=direction.direction,
        raw_vendor=raw_vendor,
        occurred_at=message.received_at or datetime.now(UTC),
        metadata=metadata,
        confidence=calculate_confidence(amount_rule, direction, raw_vendor, metadata),
    )


def parse_email_batch(messages: list[GmailMessage | dict]) -> list[TransactionCandidate]:
    """Parse many messages. A message that raises is logged and skipped."""
    parsed = []
    for message in messages:
        message_id = message.get("id") if isinstance(message, dict) else message.id
        try:
            candidate = parse_email_message(message)
        except Exception as e:
            logger.error("Error parsing message", message_id=message_id, error=str(e))
            continue
        if candidate is not None:
            parsed.append(candidate)
    return parsed
