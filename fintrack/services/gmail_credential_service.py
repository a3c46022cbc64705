"""
Gmail Credential Service - stored OAuth credentials for Gmail read access.

Credentials live in gmail_tokens, Fernet-encrypted. Access tokens are
refreshed on demand. Refresh is serialized per user in-process with an
asyncio.Lock, and across processes by an UPDATE guarded on the expiry value
that was read, so a slower refresher never overwrites a newer token.
"""

import asyncio
from collections import defaultdict
from datetime import UTC, datetime, timedelta
from typing import Any

from fintrack.db.helpers import execute_query, fetch_all, fetch_one, with_db_retry
from fintrack.infrastructure.observability.logging import get_logger
from fintrack.services.google_oauth_service import GoogleOAuthError, google_oauth_service
from fintrack.services.infrastructure.encryption_service import (
    EncryptionError,
    decrypt_oauth_tokens,
    encrypt_oauth_tokens,
)

logger = get_logger(__name__)

TOKEN_REFRESH_BUFFER_MINUTES = 5

# Google error codes that mean the grant is gone for good
_PERMANENT_OAUTH_ERRORS = {"invalid_grant", "invalid_token", "unauthorized_client"}


class CredentialError(Exception):
    """Raised when a user's Gmail credential is missing, unusable or revoked."""

    def __init__(
        self,
        message: str,
        user_id: str | None = None,
        recoverable: bool = True,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.user_id = user_id
        self.recoverable = recoverable
        self.status_code = status_code


class GmailCredentialService:
    TOKEN_COLUMNS = """
        user_id, encrypted_access_token, encrypted_refresh_token,
        token_expiry, last_fetch_at, is_active
    """

    def __init__(self):
        self._refresh_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def _load_active(self, user_id: str) -> dict[str, Any] | None:
        query = f"SELECT {self.TOKEN_COLUMNS} FROM gmail_tokens WHERE user_id = %s AND is_active = TRUE"
        return await fetch_one(query, (user_id,))

    @staticmethod
    def _needs_refresh(row: dict[str, Any]) -> bool:
        expiry = row.get("token_expiry")
        if expiry is None:
            return True
        return expiry <= datetime.now(UTC) + timedelta(minutes=TOKEN_REFRESH_BUFFER_MINUTES)

    def _decrypt(self, user_id: str, row: dict[str, Any]) -> tuple[str, str | None]:
        try:
            return decrypt_oauth_tokens(
                row["encrypted_access_token"], row.get("encrypted_refresh_token")
            )
        except EncryptionError as e:
            logger.error("Stored Gmail credential cannot be decrypted", user_id=user_id)
            raise CredentialError(
                "invalid_credentials: stored credential unreadable", user_id=user_id, recoverable=False
            ) from e

    async def get_valid_access_token(self, user_id: str) -> str:
        """
        Return a usable access token, refreshing it first when it is about to expire.

        Raises:
            CredentialError: not connected, or the refresh was rejected by Google.
        """
        row = await self._load_active(user_id)
        if not row:
            raise CredentialError("Gmail not connected", user_id=user_id, recoverable=False)

        if not self._needs_refresh(row):
            access_token, _ = self._decrypt(user_id, row)
            return access_token

        async with self._refresh_locks[user_id]:
            # Another task may have refreshed while we waited
            row = await self._load_active(user_id)
            if not row:
                raise CredentialError("Gmail not connected", user_id=user_id, recoverable=False)
            if not self._needs_refresh(row):
                access_token, _ = self._decrypt(user_id, row)
                return access_token

            return await self._refresh(user_id, row)

    async def _refresh(self, user_id: str, row: dict[str, Any]) -> str:
        _, refresh_token = self._decrypt(user_id, row)
        if not refresh_token:
            raise CredentialError(
                "invalid_grant: no refresh token available", user_id=user_id, recoverable=False
            )

        try:
            token_response = await google_oauth_service.refresh_access_token(refresh_token)
        except GoogleOAuthError as e:
            permanent = e.error_code in _PERMANENT_OAUTH_ERRORS or e.status_code in (400, 401)
            logger.warning(
                "Gmail token refresh failed",
                user_id=user_id,
                error_code=e.error_code,
                status_code=e.status_code,
                permanent=permanent,
            )
            raise CredentialError(
                f"{e.error_code or 'refresh_failed'}: {e}",
                user_id=user_id,
                recoverable=not permanent,
                status_code=e.status_code,
            ) from e

        new_expiry = token_response.expires_at or datetime.now(UTC) + timedelta(hours=1)
        query = """
            UPDATE gmail_tokens
            SET encrypted_access_token = %s,
                encrypted_refresh_token = %s,
                token_expiry = %s,
                updated_at = NOW()
            WHERE user_id = %s AND token_expiry IS NOT DISTINCT FROM %s
        """
        encrypted_access, encrypted_refresh = encrypt_oauth_tokens(
            token_response.access_token, token_response.refresh_token
        )
        updated = await execute_query(
            query,
            (
                encrypted_access,
                encrypted_refresh,
                new_expiry,
                user_id,
                row.get("token_expiry"),
            ),
        )

        if updated == 0:
            # Lost the race to another process; use whatever it stored
            logger.info("Gmail token refreshed concurrently elsewhere", user_id=user_id)
            current = await self._load_active(user_id)
            if not current:
                raise CredentialError("Gmail not connected", user_id=user_id, recoverable=False)
            access_token, _ = self._decrypt(user_id, current)
            return access_token

        logger.info("Gmail token refreshed", user_id=user_id, new_expiry=new_expiry.isoformat())
        return token_response.access_token

    @with_db_retry(max_retries=2)
    async def deactivate(self, user_id: str) -> bool:
        query = "UPDATE gmail_tokens SET is_active = FALSE, updated_at = NOW() WHERE user_id = %s"
        updated = await execute_query(query, (user_id,))
        logger.info("Gmail credential deactivated", user_id=user_id, updated=updated)
        return updated > 0

    async def get_connection_status(self, user_id: str) -> dict[str, Any]:
        row = await self._load_active(user_id)
        return {
            "connected": row is not None,
            "last_fetch_at": row.get("last_fetch_at") if row else None,
        }

    async def mark_fetched(self, user_id: str) -> None:
        await execute_query(
            "UPDATE gmail_tokens SET last_fetch_at = NOW() WHERE user_id = %s", (user_id,)
        )

    async def revoke(self, user_id: str) -> bool:
        """
        Revoke the grant at Google (best effort) and remove the stored credential.

        Returns:
            True if a stored credential was removed.
        """
        row = await fetch_one(
            f"SELECT {self.TOKEN_COLUMNS} FROM gmail_tokens WHERE user_id = %s", (user_id,)
        )
        if not row:
            return False

        try:
            access_token, refresh_token = decrypt_oauth_tokens(
                row["encrypted_access_token"], row.get("encrypted_refresh_token")
            )
        except EncryptionError:
            logger.warning("Skipping remote revoke, credential unreadable", user_id=user_id)
        else:
            revoked = await google_oauth_service.revoke_token(refresh_token or access_token)
            if not revoked:
                logger.warning("Remote Gmail revoke failed, deleting local credential", user_id=user_id)

        deleted = await execute_query("DELETE FROM gmail_tokens WHERE user_id = %s", (user_id,))
        logger.info("Gmail credential revoked", user_id=user_id)
        return deleted > 0

    async def list_active_user_ids(self) -> list[str]:
        rows = await fetch_all(
            "SELECT user_id FROM gmail_tokens WHERE is_active = TRUE ORDER BY user_id"
        )
        return [str(row["user_id"]) for row in rows]


gmail_credential_service = GmailCredentialService()
