"""
Domain models for the Gmail import feature.

Plain dataclasses shared by the parser, repositories, services and API
layers. Parsing output (TransactionCandidate) is frozen; persisted rows
mirror the pending_transactions / expenses tables.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

Direction = Literal["debit", "credit"]
Confidence = Literal["high", "medium", "low"]

UNKNOWN_MERCHANT = "Unknown Merchant"
DEFAULT_CATEGORY = "Uncategorized"
DEFAULT_PAYMENT_METHOD = "UPI"
TAG_GMAIL_AUTO = "gmail-auto"
TAG_GMAIL_IMPORT = "gmail-import"

_CONFIDENCE_RANK = {"low": 0, "medium": 1, "high": 2}


def combine_confidence(*levels: Confidence) -> Confidence:
    """Worst-of combination: any low -> low, else any medium -> medium, else high."""
    return min(levels, key=lambda level: _CONFIDENCE_RANK[level])


def confidence_from_score(score: int) -> Confidence:
    if score >= 70:
        return "high"
    if score >= 40:
        return "medium"
    return "low"


@dataclass(frozen=True, slots=True)
class AmountMatch:
    """One amount-like substring found in the body text."""

    raw: str
    value: Decimal
    index: int


@dataclass(frozen=True, slots=True)
class TransactionCandidate:
    """Parser output for a single email. Never persisted as-is."""

    gmail_message_id: str
    amount: Decimal
    direction: Direction
    raw_vendor: str
    occurred_at: datetime
    metadata: dict[str, Any]
    confidence: Confidence


@dataclass(frozen=True, slots=True)
class MerchantMatch:
    vendor: str
    confidence: Confidence


@dataclass(frozen=True, slots=True)
class NormalizedTransaction:
    """A candidate extended with its owner, normalized vendor and combined confidence."""

    user_id: str
    gmail_message_id: str
    amount: Decimal
    direction: Direction
    vendor: str
    raw_vendor: str
    occurred_at: datetime
    metadata: dict[str, Any]
    confidence: Confidence
    reference_id: str | None = None
    category: str = DEFAULT_CATEGORY
    description: str = ""

    @classmethod
    def from_candidate(
        cls,
        candidate: TransactionCandidate,
        *,
        user_id: str,
        merchant: MerchantMatch,
    ) -> "NormalizedTransaction":
        return cls(
            user_id=user_id,
            gmail_message_id=candidate.gmail_message_id,
            amount=candidate.amount,
            direction=candidate.direction,
            vendor=merchant.vendor,
            raw_vendor=candidate.raw_vendor,
            occurred_at=candidate.occurred_at,
            metadata=dict(candidate.metadata),
            confidence=combine_confidence(candidate.confidence, merchant.confidence),
            reference_id=candidate.metadata.get("reference_id"),
        )


@dataclass(slots=True)
class PendingTransaction:
    """Represents a pending_transactions row."""

    id: str
    user_id: str
    gmail_message_id: str
    amount: Decimal
    direction: Direction
    vendor: str
    raw_vendor: str
    occurred_at: datetime
    reference_id: str | None
    confidence: Confidence
    metadata: dict[str, Any]
    category: str
    description: str
    is_confirmed: bool
    confirmed_at: datetime | None
    created_at: datetime | None = None


@dataclass(slots=True)
class Expense:
    """Represents an expenses row created from Gmail data."""

    id: str
    user_id: str
    description: str
    amount: Decimal
    category: str
    expense_date: datetime
    payment_method: str
    tags: list[str]
    notes: str
    gmail_message_id: str | None = None


@dataclass(slots=True)
class SyncState:
    """Per-user sync bookkeeping stored on the users row."""

    user_id: str
    processed_message_ids: set[str] = field(default_factory=set)
    last_auto_sync: datetime | None = None
    sync_error: str | None = None


@dataclass(slots=True)
class SyncStats:
    """Counters for one sync run."""

    fetched: int = 0
    parsed: int = 0
    saved: int = 0
    skipped: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def record_error(self, message_id: str, error: str) -> None:
        self.errors.append({"id": message_id, "error": error})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ConfirmationResult:
    confirmed: int
    expenses_created: int


def gmail_expense_fields(
    *,
    user_id: str,
    gmail_message_id: str,
    vendor: str,
    amount: Decimal,
    occurred_at: datetime,
    metadata: dict[str, Any],
    reference_id: str | None,
    category: str | None,
    description: str | None,
    auto_imported: bool,
) -> dict[str, Any]:
    """Keyword arguments for ExpenseRepository.create for a Gmail-sourced debit."""
    tag = TAG_GMAIL_AUTO if auto_imported else TAG_GMAIL_IMPORT
    prefix = "Auto-imported from Gmail" if auto_imported else "Imported from Gmail"
    return {
        "user_id": user_id,
        "description": description or f"{vendor} transaction",
        "amount": amount,
        "category": category or DEFAULT_CATEGORY,
        "expense_date": occurred_at,
        "payment_method": (metadata or {}).get("payment_method") or DEFAULT_PAYMENT_METHOD,
        "tags": [tag],
        "notes": f"{prefix}. Ref: {reference_id or 'N/A'}",
        "gmail_message_id": gmail_message_id,
    }
