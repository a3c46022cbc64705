"""
Encryption for stored Gmail OAuth tokens (Fernet, symmetric).
"""

from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from fintrack.config import settings
from fintrack.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class EncryptionError(Exception):
    """Custom exception for encryption/decryption errors."""


@lru_cache(maxsize=4)
def _fernet_for(key: str) -> Fernet:
    return Fernet(key.encode("utf-8"))


def _get_fernet() -> Fernet:
    if not settings.ENCRYPTION_KEY:
        raise EncryptionError("ENCRYPTION_KEY not configured in environment")

    try:
        return _fernet_for(settings.ENCRYPTION_KEY)
    except (ValueError, TypeError) as e:
        logger.error("Failed to initialize Fernet cipher", error=str(e))
        raise EncryptionError(f"Invalid encryption key: {e}") from e


def encrypt_token(token: str) -> bytes:
    """Encrypt a token for BYTEA storage."""
    if not token or not isinstance(token, str):
        raise EncryptionError("Token must be a non-empty string")

    return _get_fernet().encrypt(token.encode("utf-8"))


def decrypt_token(encrypted_token: bytes | memoryview) -> str:
    """
    Decrypt a token read from the database.

    Raises:
        EncryptionError: If the value is empty, corrupted or encrypted with another key
    """
    if isinstance(encrypted_token, memoryview):
        encrypted_token = encrypted_token.tobytes()
    if not encrypted_token or not isinstance(encrypted_token, bytes):
        raise EncryptionError("Encrypted token must be non-empty bytes")

    try:
        return _get_fernet().decrypt(encrypted_token).decode("utf-8")
    except InvalidToken as e:
        logger.error("Token decryption failed - invalid token")
        raise EncryptionError("Invalid or corrupted token") from e


def encrypt_oauth_tokens(
    access_token: str, refresh_token: str | None = None
) -> tuple[bytes, bytes | None]:
    encrypted_access = encrypt_token(access_token)
    encrypted_refresh = encrypt_token(refresh_token) if refresh_token else None
    return encrypted_access, encrypted_refresh


def decrypt_oauth_tokens(
    encrypted_access: bytes, encrypted_refresh: bytes | None = None
) -> tuple[str, str | None]:
    access_token = decrypt_token(encrypted_access)
    refresh_token = decrypt_token(encrypted_refresh) if encrypted_refresh else None
    return access_token, refresh_token
