"""
Per-user Gmail sync bookkeeping on the users table.
"""

from fintrack.db.helpers import execute_query, fetch_one, with_db_retry
from fintrack.features.gmail_import.domain import SyncState
from fintrack.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

_MAX_ERROR_LENGTH = 500


class SyncStateRepository:
    @classmethod
    async def load(cls, user_id: str) -> SyncState:
        """Return the user's sync state. A missing user yields an empty state."""

        query = """
            SELECT gmail_message_ids_processed, last_gmail_auto_sync, gmail_sync_error
            FROM users
            WHERE id = %s
        """
        row = await fetch_one(query, (user_id,))
        if not row:
            return SyncState(user_id=user_id)

        return SyncState(
            user_id=user_id,
            processed_message_ids=set(row.get("gmail_message_ids_processed") or []),
            last_auto_sync=row.get("last_gmail_auto_sync"),
            sync_error=row.get("gmail_sync_error"),
        )

    @classmethod
    @with_db_retry(max_retries=2)
    async def save_success(cls, user_id: str, message_ids: set[str]) -> None:
        """
        Union the handled ids into the stored set, stamp the sync time and clear
        the last error. The union happens in SQL so overlapping runs cannot drop ids.
        """
        query = """
            UPDATE users
            SET gmail_message_ids_processed = ARRAY(
                    SELECT DISTINCT unnest(gmail_message_ids_processed || %s::text[])
                ),
                last_gmail_auto_sync = NOW(),
                gmail_sync_error = NULL
            WHERE id = %s
        """
        await execute_query(query, (sorted(message_ids), user_id))
        logger.debug("Gmail sync state saved", user_id=user_id, new_ids=len(message_ids))

    @classmethod
    async def record_error(cls, user_id: str, error_message: str) -> None:
        query = "UPDATE users SET gmail_sync_error = %s WHERE id = %s"
        await execute_query(query, ((error_message or "")[:_MAX_ERROR_LENGTH], user_id))
