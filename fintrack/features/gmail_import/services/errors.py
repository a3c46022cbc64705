"""
Error types and classification for Gmail import.
"""

from fintrack.services.gmail_credential_service import CredentialError

CREDENTIAL_ERROR_MARKERS = ("invalid_grant", "invalid_token", "invalid_credentials", "unauthorized")
CREDENTIAL_ERROR_STATUS_CODES = (400, 401)


class GmailSyncError(Exception):
    """A user's sync could not complete (fetch-level failure)."""

    def __init__(self, message: str, user_id: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.user_id = user_id
        self.status_code = status_code


def is_credential_error(exc: BaseException) -> bool:
    """True if the error means the user's Gmail credential is expired, revoked or invalid."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))

        if isinstance(current, CredentialError) and not current.recoverable:
            return True
        if getattr(current, "status_code", None) in CREDENTIAL_ERROR_STATUS_CODES:
            return True
        text = str(current).lower()
        if any(marker in text for marker in CREDENTIAL_ERROR_MARKERS):
            return True

        current = current.__cause__
    return False
