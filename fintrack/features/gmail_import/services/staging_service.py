"""
Deduplication and staging of parsed Gmail transactions.
"""

from fintrack.config import settings
from fintrack.features.gmail_import.domain import (
    Expense,
    NormalizedTransaction,
    PendingTransaction,
    gmail_expense_fields,
)
from fintrack.features.gmail_import.repository import (
    ExpenseRepository,
    PendingTransactionRepository,
)
from fintrack.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class StagingService:
    async def is_duplicate(self, user_id: str, gmail_message_id: str) -> bool:
        return await PendingTransactionRepository.exists_for_message(
            user_id, gmail_message_id
        ) or await ExpenseRepository.exists_for_message(user_id, gmail_message_id)

    async def save_if_new(
        self,
        user_id: str,
        transaction: NormalizedTransaction,
        gmail_message_id: str,
        *,
        auto_confirm: bool | None = None,
    ) -> PendingTransaction | Expense | None:
        """
        Persist a transaction unless the message was already staged or booked.

        Default mode stages a PendingTransaction. With auto-confirm, debits go
        straight to the ledger as an Expense and credits are dropped. Returns
        None for duplicates and dropped credits. The exists check only saves a
        write; the unique constraints decide under concurrency.
        """
        if auto_confirm is None:
            auto_confirm = settings.GMAIL_AUTO_CONFIRM_TRANSACTIONS

        if await self.is_duplicate(user_id, gmail_message_id):
            logger.debug("Duplicate Gmail transaction", user_id=user_id, message_id=gmail_message_id)
            return None

        if auto_confirm:
            if transaction.direction != "debit":
                logger.debug(
                    "Auto-confirm skips credit transaction",
                    user_id=user_id,
                    message_id=gmail_message_id,
                )
                return None

            return await ExpenseRepository.create(
                **gmail_expense_fields(
                    user_id=user_id,
                    gmail_message_id=gmail_message_id,
                    vendor=transaction.vendor,
                    amount=transaction.amount,
                    occurred_at=transaction.occurred_at,
                    metadata=transaction.metadata,
                    reference_id=transaction.reference_id,
                    category=transaction.category,
                    description=transaction.description,
                    auto_imported=True,
                )
            )

        pending = await PendingTransactionRepository.insert_if_absent(transaction)
        if pending is None:
            logger.debug(
                "Pending transaction already staged concurrently",
                user_id=user_id,
                message_id=gmail_message_id,
            )
        return pending


staging_service = StagingService()


async def save_if_new(
    user_id: str, transaction: NormalizedTransaction, gmail_message_id: str
) -> PendingTransaction | Expense | None:
    return await staging_service.save_if_new(user_id, transaction, gmail_message_id)
