"""
Confirmation Workflow - turns reviewed pending transactions into ledger entries.
"""

from datetime import UTC, datetime

from fintrack.features.gmail_import.domain import ConfirmationResult, gmail_expense_fields
from fintrack.features.gmail_import.repository import (
    ExpenseRepository,
    PendingTransactionRepository,
)
from fintrack.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ConfirmationService:
    async def confirm_transactions(
        self, user_id: str, transaction_ids: list[str]
    ) -> ConfirmationResult:
        """
        Confirm the user's unconfirmed rows among transaction_ids.

        Debits become expenses; credits are only marked confirmed. Ids that are
        unknown, foreign or already confirmed are ignored, so repeating a call
        is harmless.
        """
        pending = await PendingTransactionRepository.find_unconfirmed_by_ids(
            user_id, transaction_ids
        )
        if not pending:
            return ConfirmationResult(confirmed=0, expenses_created=0)

        expenses_created = 0
        for txn in pending:
            if txn.direction != "debit":
                continue

            expense = await ExpenseRepository.create(
                **gmail_expense_fields(
                    user_id=user_id,
                    gmail_message_id=txn.gmail_message_id,
                    vendor=txn.vendor,
                    amount=txn.amount,
                    occurred_at=txn.occurred_at,
                    metadata=txn.metadata,
                    reference_id=txn.reference_id,
                    category=txn.category,
                    description=txn.description,
                    auto_imported=False,
                )
            )
            if expense is not None:
                expenses_created += 1
            else:
                logger.info(
                    "Expense already exists for Gmail message",
                    user_id=user_id,
                    message_id=txn.gmail_message_id,
                )

        confirmed = await PendingTransactionRepository.mark_confirmed(
            user_id, [txn.id for txn in pending], datetime.now(UTC)
        )

        logger.info(
            "Pending transactions confirmed",
            user_id=user_id,
            requested=len(transaction_ids),
            confirmed=confirmed,
            expenses_created=expenses_created,
        )
        return ConfirmationResult(confirmed=confirmed, expenses_created=expenses_created)


confirmation_service = ConfirmationService()
