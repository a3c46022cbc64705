"""
Persistence for ledger expenses created from Gmail data.
"""

from datetime import datetime
from decimal import Decimal

from fintrack.db.helpers import DatabaseError, fetch_one, fetch_val, with_db_retry
from fintrack.features.gmail_import.domain import Expense
from fintrack.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ExpenseRepository:
    SELECT_COLUMNS = """
        id, user_id, description, amount, category, expense_date,
        payment_method, tags, notes, gmail_message_id
    """

    @classmethod
    def _row_to_expense(cls, row: dict | None) -> Expense | None:
        if not row:
            return None

        return Expense(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            description=row["description"],
            amount=Decimal(row["amount"]),
            category=row["category"],
            expense_date=row["expense_date"],
            payment_method=row["payment_method"],
            tags=list(row.get("tags") or []),
            notes=row.get("notes") or "",
            gmail_message_id=row.get("gmail_message_id"),
        )

    @classmethod
    async def exists_for_message(cls, user_id: str, gmail_message_id: str) -> bool:
        query = """
            SELECT EXISTS(
                SELECT 1 FROM expenses
                WHERE user_id = %s AND gmail_message_id = %s
            )
        """
        return bool(await fetch_val(query, (user_id, gmail_message_id)))

    @classmethod
    @with_db_retry(max_retries=2)
    async def create(
        cls,
        *,
        user_id: str,
        description: str,
        amount: Decimal,
        category: str,
        expense_date: datetime,
        payment_method: str,
        tags: list[str],
        notes: str,
        gmail_message_id: str | None = None,
    ) -> Expense | None:
        """
        Insert an expense. Returns None when an expense already exists for the
        same Gmail message (partial unique index on user_id, gmail_message_id).
        """
        query = f"""
            INSERT INTO expenses (
                user_id, description, amount, category, expense_date,
                payment_method, tags, notes, gmail_message_id
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id, gmail_message_id) WHERE gmail_message_id IS NOT NULL
            DO NOTHING
            RETURNING {cls.SELECT_COLUMNS}
        """
        row = await fetch_one(
            query,
            (
                user_id,
                description,
                amount,
                category,
                expense_date,
                payment_method,
                list(tags),
                notes,
                gmail_message_id,
            ),
        )
        expense = cls._row_to_expense(row)
        if expense is None and gmail_message_id is None:
            raise DatabaseError("Failed to create expense", operation="create_expense")

        if expense:
            logger.info(
                "Expense created from Gmail",
                user_id=user_id,
                expense_id=expense.id,
                gmail_message_id=gmail_message_id,
            )
        return expense
