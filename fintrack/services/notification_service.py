"""
User-facing notifications (notifications table). Writes are fire-and-forget.
"""

from typing import Literal

import psycopg

from fintrack.db.helpers import DatabaseError, fetch_val
from fintrack.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

NotificationType = Literal["gmail_token_error", "gmail_sync_success", "system", "general"]

GMAIL_RECONNECT_TITLE = "Gmail Connection Lost"
GMAIL_RECONNECT_MESSAGE = (
    "We lost access to your Gmail account. "
    "Please reconnect to continue automatic transaction imports."
)
GMAIL_RECONNECT_ACTION_URL = "/profile?gmail=reconnect"


class NotificationService:
    async def create(
        self,
        *,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        action_url: str | None = None,
    ) -> str | None:
        """Insert a notification. Returns its id, or None if the write failed."""
        query = """
            INSERT INTO notifications (user_id, type, title, message, action_url)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id
        """
        try:
            notification_id = await fetch_val(query, (user_id, type, title, message, action_url))
        except (DatabaseError, psycopg.Error) as e:
            logger.error(
                "Failed to create notification", user_id=user_id, type=type, error=str(e)
            )
            return None

        logger.info("Notification created", user_id=user_id, type=type)
        return str(notification_id) if notification_id else None

    async def notify_gmail_reconnect(self, user_id: str) -> str | None:
        return await self.create(
            user_id=user_id,
            type="gmail_token_error",
            title=GMAIL_RECONNECT_TITLE,
            message=GMAIL_RECONNECT_MESSAGE,
            action_url=GMAIL_RECONNECT_ACTION_URL,
        )


notification_service = NotificationService()
