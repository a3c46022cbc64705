import base64
import os

import pytest
from cryptography.fernet import Fernet

# Must be set before fintrack.config is imported anywhere
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("ENABLE_GMAIL_CRON", "false")
os.environ.setdefault("REDIS_URL", "")

from fintrack.auth.verify import admin_dependency, auth_dependency  # noqa: E402


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def build_gmail_message(
    message_id: str = "msg-1",
    *,
    subject: str = "",
    body: str = "",
    sender: str = "HDFC Bank <alerts@hdfcbank.net>",
    html: str | None = None,
    snippet: str = "",
    internal_date: str = "1715500000000",
) -> dict:
    """Gmail API message resource (format=full) with a multipart body."""
    parts = [{"mimeType": "text/plain", "body": {"data": _b64(body)}}] if body else []
    if html is not None:
        parts.append({"mimeType": "text/html", "body": {"data": _b64(html)}})

    return {
        "id": message_id,
        "threadId": f"thread-{message_id}",
        "labelIds": ["INBOX"],
        "snippet": snippet,
        "internalDate": internal_date,
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [
                {"name": "Subject", "value": subject},
                {"name": "From", "value": sender},
            ],
            "parts": parts,
        },
    }


@pytest.fixture
def gmail_message():
    return build_gmail_message


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": "user-123"}

    return _override


@pytest.fixture
def admin_override():
    def _override():
        return {"sub": "admin-1", "app_metadata": {"role": "admin"}}

    return _override


@pytest.fixture
def apply_auth_override(auth_override, admin_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override
        app.dependency_overrides[admin_dependency] = admin_override

    return _apply
