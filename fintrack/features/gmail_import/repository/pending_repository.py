"""
Persistence for pending_transactions.

The (user_id, gmail_message_id) unique constraint is the authoritative
duplicate guard. insert_if_absent relies on it rather than on a prior read.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from psycopg.types.json import Jsonb

from fintrack.db.helpers import (
    execute_query,
    fetch_all,
    fetch_one,
    fetch_val,
    with_db_retry,
)
from fintrack.features.gmail_import.domain import NormalizedTransaction, PendingTransaction
from fintrack.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Columns a user may edit on an unconfirmed row, mapped from API field names
EDITABLE_COLUMNS = {
    "vendor": "vendor",
    "category": "category",
    "amount": "amount",
    "date": "occurred_at",
    "description": "description",
}


class PendingTransactionRepository:
    SELECT_COLUMNS = """
        id, user_id, gmail_message_id, amount, direction, vendor, raw_vendor,
        occurred_at, reference_id, confidence, metadata, category, description,
        is_confirmed, confirmed_at, created_at
    """

    @classmethod
    def _row_to_pending(cls, row: dict | None) -> PendingTransaction | None:
        if not row:
            return None

        return PendingTransaction(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            gmail_message_id=row["gmail_message_id"],
            amount=Decimal(row["amount"]),
            direction=row["direction"],
            vendor=row["vendor"],
            raw_vendor=row["raw_vendor"],
            occurred_at=row["occurred_at"],
            reference_id=row.get("reference_id"),
            confidence=row["confidence"],
            metadata=row.get("metadata") or {},
            category=row["category"],
            description=row.get("description") or "",
            is_confirmed=row["is_confirmed"],
            confirmed_at=row.get("confirmed_at"),
            created_at=row.get("created_at"),
        )

    @classmethod
    @with_db_retry(max_retries=2)
    async def insert_if_absent(cls, transaction: NormalizedTransaction) -> PendingTransaction | None:
        """Insert a new unconfirmed row. Returns None when the message is already staged."""

        query = f"""
            INSERT INTO pending_transactions (
                user_id, gmail_message_id, amount, direction, vendor, raw_vendor,
                occurred_at, reference_id, confidence, metadata, category, description
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id, gmail_message_id) DO NOTHING
            RETURNING {cls.SELECT_COLUMNS}
        """

        row = await fetch_one(
            query,
            (
                transaction.user_id,
                transaction.gmail_message_id,
                transaction.amount,
                transaction.direction,
                transaction.vendor,
                transaction.raw_vendor,
                transaction.occurred_at,
                transaction.reference_id,
                transaction.confidence,
                Jsonb(transaction.metadata),
                transaction.category,
                transaction.description,
            ),
        )
        return cls._row_to_pending(row)

    @classmethod
    async def exists_for_message(cls, user_id: str, gmail_message_id: str) -> bool:
        query = """
            SELECT EXISTS(
                SELECT 1 FROM pending_transactions
                WHERE user_id = %s AND gmail_message_id = %s
            )
        """
        return bool(await fetch_val(query, (user_id, gmail_message_id)))

    @classmethod
    async def list_unconfirmed(cls, user_id: str) -> list[PendingTransaction]:
        """Unconfirmed rows for a user, newest first."""

        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM pending_transactions
            WHERE user_id = %s AND is_confirmed = FALSE
            ORDER BY occurred_at DESC, created_at DESC
        """
        rows = await fetch_all(query, (user_id,))
        return [cls._row_to_pending(row) for row in rows]

    @classmethod
    async def find_unconfirmed_by_ids(
        cls, user_id: str, transaction_ids: list[str]
    ) -> list[PendingTransaction]:
        if not transaction_ids:
            return []

        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM pending_transactions
            WHERE user_id = %s
              AND is_confirmed = FALSE
              AND id::text = ANY(%s)
        """
        rows = await fetch_all(query, (user_id, list(transaction_ids)))
        return [cls._row_to_pending(row) for row in rows]

    @classmethod
    async def update_unconfirmed(
        cls, user_id: str, transaction_id: str, changes: dict[str, Any]
    ) -> PendingTransaction | None:
        """
        Apply a partial update to an unconfirmed row owned by the user.

        Unknown keys are ignored. Returns None if no row matched.
        """
        assignments = []
        params: list[Any] = []
        for field_name, value in changes.items():
            column = EDITABLE_COLUMNS.get(field_name)
            if column is None:
                continue
            assignments.append(f"{column} = %s")
            params.append(value)

        if not assignments:
            return await cls.find_unconfirmed(user_id, transaction_id)

        query = f"""
            UPDATE pending_transactions
            SET {", ".join(assignments)}, updated_at = NOW()
            WHERE id::text = %s AND user_id = %s AND is_confirmed = FALSE
            RETURNING {cls.SELECT_COLUMNS}
        """
        row = await fetch_one(query, (*params, transaction_id, user_id))
        if row:
            logger.info(
                "Pending transaction updated",
                user_id=user_id,
                transaction_id=transaction_id,
                fields=sorted(changes),
            )
        return cls._row_to_pending(row)

    @classmethod
    async def find_unconfirmed(cls, user_id: str, transaction_id: str) -> PendingTransaction | None:
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM pending_transactions
            WHERE id::text = %s AND user_id = %s AND is_confirmed = FALSE
        """
        return cls._row_to_pending(await fetch_one(query, (transaction_id, user_id)))

    @classmethod
    async def delete_unconfirmed(cls, user_id: str, transaction_id: str) -> bool:
        query = """
            DELETE FROM pending_transactions
            WHERE id::text = %s AND user_id = %s AND is_confirmed = FALSE
        """
        deleted = await execute_query(query, (transaction_id, user_id))
        return deleted > 0

    @classmethod
    async def mark_confirmed(
        cls, user_id: str, transaction_ids: list[str], confirmed_at: datetime
    ) -> int:
        """Flip is_confirmed false -> true. Already-confirmed rows are left untouched."""
        if not transaction_ids:
            return 0

        query = """
            UPDATE pending_transactions
            SET is_confirmed = TRUE,
                confirmed_at = %s,
                updated_at = NOW()
            WHERE user_id = %s
              AND is_confirmed = FALSE
              AND id::text = ANY(%s)
        """
        return await execute_query(query, (confirmed_at, user_id, list(transaction_ids)))

    @classmethod
    async def delete_all_unconfirmed(cls, user_id: str) -> int:
        query = "DELETE FROM pending_transactions WHERE user_id = %s AND is_confirmed = FALSE"
        deleted = await execute_query(query, (user_id,))
        logger.info("Unconfirmed pending transactions deleted", user_id=user_id, count=deleted)
        return deleted
