"""
Domain subpackage for the Gmail import feature.
"""

from .models import (
    DEFAULT_CATEGORY,
    DEFAULT_PAYMENT_METHOD,
    TAG_GMAIL_AUTO,
    TAG_GMAIL_IMPORT,
    UNKNOWN_MERCHANT,
    AmountMatch,
    Confidence,
    ConfirmationResult,
    Direction,
    Expense,
    MerchantMatch,
    NormalizedTransaction,
    PendingTransaction,
    SyncState,
    SyncStats,
    TransactionCandidate,
    combine_confidence,
    confidence_from_score,
    gmail_expense_fields,
)

__all__ = [
    "DEFAULT_CATEGORY",
    "DEFAULT_PAYMENT_METHOD",
    "TAG_GMAIL_AUTO",
    "TAG_GMAIL_IMPORT",
    "UNKNOWN_MERCHANT",
    "AmountMatch",
    "Confidence",
    "ConfirmationResult",
    "Direction",
    "Expense",
    "MerchantMatch",
    "NormalizedTransaction",
    "PendingTransaction",
    "SyncState",
    "SyncStats",
    "TransactionCandidate",
    "combine_confidence",
    "confidence_from_score",
    "gmail_expense_fields",
]
