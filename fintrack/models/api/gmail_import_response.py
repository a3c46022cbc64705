"""
Gmail import API response models.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import Field

from fintrack.features.gmail_import.domain import PendingTransaction
from fintrack.models.api.gmail_import_request import CamelModel


class GmailConnectionStatusResponse(CamelModel):
    connected: bool
    last_fetch_at: datetime | None = None


class SyncStatsResponse(CamelModel):
    fetched: int
    parsed: int
    saved: int
    skipped: int
    errors: list[dict[str, str]] = Field(default_factory=list)
    message: str = ""


class PendingTransactionResponse(CamelModel):
    id: str
    gmail_message_id: str
    amount: Decimal
    direction: str
    vendor: str
    raw_vendor: str
    date: datetime
    reference_id: str | None = None
    confidence: str
    category: str
    description: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_confirmed: bool = False

    @classmethod
    def from_domain(cls, txn: PendingTransaction) -> "PendingTransactionResponse":
        return cls(
            id=txn.id,
            gmail_message_id=txn.gmail_message_id,
            amount=txn.amount,
            direction=txn.direction,
            vendor=txn.vendor,
            raw_vendor=txn.raw_vendor,
            date=txn.occurred_at,
            reference_id=txn.reference_id,
            confidence=txn.confidence,
            category=txn.category,
            description=txn.description,
            metadata=txn.metadata,
            is_confirmed=txn.is_confirmed,
        )


class PendingListResponse(CamelModel):
    count: int
    transactions: list[PendingTransactionResponse]


class PendingMutationResponse(CamelModel):
    success: bool = True
    message: str
    transaction: PendingTransactionResponse | None = None


class ConfirmResponse(CamelModel):
    success: bool = True
    confirmed: int
    expenses_created: int
    message: str


class RevokeResponse(CamelModel):
    success: bool = True
    revoked: bool
    pending_deleted: int
    message: str


class MerchantEntry(CamelModel):
    key: str
    name: str


class MerchantListResponse(CamelModel):
    count: int
    merchants: list[MerchantEntry]
