"""
Thin client for the two Google OAuth calls the Gmail import needs:
refreshing an access token and revoking a grant on disconnect.
"""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import httpx

from fintrack.config import settings
from fintrack.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"

OAUTH_TIMEOUT_SECONDS = 10
OAUTH_ATTEMPTS = 3
TRANSIENT_STATUSES = frozenset({429, 500, 502, 503, 504})


class GoogleOAuthError(Exception):
    """Google rejected an OAuth call or could not be reached."""

    def __init__(self, message: str, error_code: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code


@dataclass
class TokenResponse:
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "TokenResponse":
        access_token = payload.get("access_token")
        if not access_token:
            raise GoogleOAuthError("Token response missing access_token")

        expires_in = payload.get("expires_in")
        expires_at = (
            datetime.now(UTC) + timedelta(seconds=int(expires_in)) if expires_in else None
        )
        return cls(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_at=expires_at,
        )


def _error_from_response(response: httpx.Response, operation: str) -> GoogleOAuthError:
    try:
        error_code = response.json().get("error", "unknown_error")
    except ValueError:
        error_code = None

    logger.error(
        "Google OAuth call rejected",
        operation=operation,
        status_code=response.status_code,
        error_code=error_code,
    )
    return GoogleOAuthError(
        f"Google {operation} failed: {error_code or f'HTTP {response.status_code}'}",
        error_code=error_code,
        status_code=response.status_code,
    )


class GoogleOAuthService:
    def __init__(self):
        self.client_id = settings.GOOGLE_CLIENT_ID
        self.client_secret = settings.GOOGLE_CLIENT_SECRET

    async def _post_form(self, url: str, form: dict, operation: str) -> httpx.Response:
        """POST a form, retrying network errors and transient statuses with backoff."""
        async with httpx.AsyncClient(timeout=OAUTH_TIMEOUT_SECONDS) as client:
            for attempt in range(1, OAUTH_ATTEMPTS + 1):
                last_attempt = attempt == OAUTH_ATTEMPTS
                try:
                    response = await client.post(url, data=form)
                except httpx.RequestError as e:
                    if last_attempt:
                        raise GoogleOAuthError(f"Google {operation} unreachable: {e}") from e
                    logger.warning(
                        "Google OAuth network error, retrying",
                        operation=operation,
                        attempt=attempt,
                        error=str(e),
                    )
                else:
                    if response.status_code not in TRANSIENT_STATUSES or last_attempt:
                        return response
                    logger.warning(
                        "Google OAuth transient status, retrying",
                        operation=operation,
                        attempt=attempt,
                        status_code=response.status_code,
                    )
                await asyncio.sleep(2**attempt)

        raise GoogleOAuthError(f"Google {operation} failed")

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """
        Exchange a refresh token for a new access token.

        Raises GoogleOAuthError; `error_code == "invalid_grant"` means the user
        revoked access and must reconnect.
        """
        response = await self._post_form(
            GOOGLE_TOKEN_URL,
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
            operation="token_refresh",
        )
        if not response.is_success:
            raise _error_from_response(response, "token_refresh")

        try:
            token = TokenResponse.from_payload(response.json())
        except ValueError as e:
            raise GoogleOAuthError(f"Unreadable token response: {e}") from e

        # Google normally keeps the existing refresh token
        token.refresh_token = token.refresh_token or refresh_token
        logger.info("Gmail access token refreshed", expires_at=token.expires_at)
        return token

    async def revoke_token(self, token: str) -> bool:
        """Revoke a grant. Failures are logged and reported as False."""
        try:
            response = await self._post_form(
                GOOGLE_REVOKE_URL, {"token": token}, operation="token_revocation"
            )
        except GoogleOAuthError as e:
            logger.error("Gmail token revocation failed", error=str(e))
            return False

        if response.status_code != 200:
            logger.warning("Gmail token revocation rejected", status_code=response.status_code)
            return False
        return True


google_oauth_service = GoogleOAuthService()
