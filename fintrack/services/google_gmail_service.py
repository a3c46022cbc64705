"""
Google Gmail API Service - read-only message listing for transaction import.
Handles the HTTP session, retry policy, error mapping and relevance query building.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from fintrack.config import settings
from fintrack.infrastructure.observability.logging import get_logger
from fintrack.models.domain.gmail_domain import GmailMessage
from fintrack.services.gmail_credential_service import gmail_credential_service

logger = get_logger(__name__)

GMAIL_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1"
GMAIL_USER_ID = "me"

REQUEST_TIMEOUT = 30  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
MAX_PAGE_SIZE = 500

RELEVANCE_SUBJECT_KEYWORDS = ("payment", "credited", "debited", "transaction")


class GoogleGmailError(Exception):
    """Custom exception for Google Gmail API errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
        self.response_data = response_data or {}


def build_relevance_query(
    window_days: int, sender_patterns: list[str] | None = None, now: datetime | None = None
) -> str:
    """
    Gmail search query for likely transaction emails within the window.

    e.g. after:1700000000 (from:alerts@hdfcbank.net OR subject:(payment OR credited ...))
    """
    since = (now or datetime.now(UTC)) - timedelta(days=max(window_days, 1))
    clauses = [f"from:{pattern}" for pattern in (sender_patterns or [])]
    clauses.append(f"subject:({' OR '.join(RELEVANCE_SUBJECT_KEYWORDS)})")
    return f"after:{int(since.timestamp())} ({' OR '.join(clauses)})"


class GoogleGmailService:
    """
    Pure Gmail API client. Blocking requests calls run in a worker thread so
    concurrent per-user syncs do not stall the event loop.
    """

    def __init__(self):
        self._session = self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=MAX_RETRIES,
            backoff_factor=BACKOFF_FACTOR,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        session.mount("https://", HTTPAdapter(max_retries=retry_strategy))
        return session

    def _get_auth_headers(self, access_token: str) -> dict:
        return {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}

    def _handle_api_response(self, response: requests.Response, operation: str) -> dict:
        """
        Raises:
            GoogleGmailError: carrying the HTTP status so callers can spot 401s
        """
        if response.ok:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error(f"Failed to parse Gmail API {operation} response", error=str(e))
                raise GoogleGmailError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.text else {}
        except ValueError:
            error_data = {}

        error_info = error_data.get("error", {}) if isinstance(error_data, dict) else {}
        if not isinstance(error_info, dict):
            error_info = {"status": str(error_info)}
        error_status = error_info.get("status") or str(response.status_code)
        error_message = error_info.get("message", f"HTTP {response.status_code}")

        logger.error(
            f"Gmail API {operation} failed",
            status_code=response.status_code,
            error_status=error_status,
            error_message=error_message,
        )

        if response.status_code == 401:
            message = f"invalid_credentials: Gmail authorization expired ({error_message})"
        else:
            message = f"Gmail API error ({error_status}): {error_message}"

        raise GoogleGmailError(
            message,
            error_code=error_status,
            status_code=response.status_code,
            response_data=error_data,
        )

    def _get(self, path: str, access_token: str, params: dict[str, Any], operation: str) -> dict:
        try:
            response = self._session.get(
                f"{GMAIL_API_BASE_URL}/users/{GMAIL_USER_ID}/{path}",
                headers=self._get_auth_headers(access_token),
                params=params,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error(f"Gmail API {operation} request failed", error=str(e))
            raise GoogleGmailError(f"Gmail request failed: {e}") from e
        return self._handle_api_response(response, operation)

    async def list_message_ids(self, access_token: str, query: str, max_results: int) -> list[str]:
        """Message ids matching the query, newest first, capped at max_results."""
        ids: list[str] = []
        page_token = None

        while len(ids) < max_results:
            params: dict[str, Any] = {
                "q": query,
                "maxResults": min(max_results - len(ids), MAX_PAGE_SIZE),
            }
            if page_token:
                params["pageToken"] = page_token

            data = await asyncio.to_thread(
                self._get, "messages", access_token, params, "list_messages"
            )
            ids.extend(message["id"] for message in data.get("messages", []))

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        return ids[:max_results]

    async def get_message(self, access_token: str, message_id: str) -> GmailMessage:
        data = await asyncio.to_thread(
            self._get, f"messages/{message_id}", access_token, {"format": "full"}, "get_message"
        )
        return GmailMessage(data)


google_gmail_service = GoogleGmailService()


async def fetch_messages(
    user_id: str,
    *,
    max_results: int,
    window_days: int,
    query: str | None = None,
) -> list[GmailMessage]:
    """
    Fetch candidate transaction emails for a user.

    Raises:
        CredentialError: the user has no usable credential
        GoogleGmailError: the Gmail API rejected the listing (status_code set)
    """
    access_token = await gmail_credential_service.get_valid_access_token(user_id)
    query = query or build_relevance_query(window_days, settings.gmail_sender_patterns())

    message_ids = await google_gmail_service.list_message_ids(access_token, query, max_results)

    messages = []
    for message_id in message_ids:
        try:
            messages.append(await google_gmail_service.get_message(access_token, message_id))
        except GoogleGmailError as e:
            if e.status_code in (400, 401):
                raise
            logger.warning("Failed to get Gmail message", user_id=user_id, message_id=message_id, error=str(e))

    await gmail_credential_service.mark_fetched(user_id)
    logger.info(
        "Gmail messages fetched", user_id=user_id, listed=len(message_ids), fetched=len(messages)
    )
    return messages
