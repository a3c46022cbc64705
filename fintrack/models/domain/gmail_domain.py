"""
Read-only view over a Gmail API message resource (format=full).
"""

from datetime import UTC, datetime
from email.utils import parseaddr
from typing import Any


class GmailMessage:
    def __init__(self, data: dict):
        self.id: str = data.get("id") or ""
        self.snippet: str = data.get("snippet") or ""
        self.internal_date = data.get("internalDate")
        self.payload: dict[str, Any] = data.get("payload") or {}

        self.headers = {
            header["name"].lower(): header.get("value") or ""
            for header in self.payload.get("headers") or []
            if header.get("name")
        }
        name, address = parseaddr(self.headers.get("from", ""))
        self.sender_name = name.strip().strip('"')
        self.sender_email = (address or self.headers.get("from", "")).strip()

    @property
    def subject(self) -> str:
        return self.headers.get("subject", "")

    @property
    def sender_domain(self) -> str:
        _, at, domain = self.sender_email.rpartition("@")
        return domain.lower() if at else ""

    @property
    def received_at(self) -> datetime | None:
        """Gmail's internalDate (epoch millis) as an aware UTC datetime."""
        try:
            return datetime.fromtimestamp(int(self.internal_date) / 1000, tz=UTC)
        except (TypeError, ValueError, OSError, OverflowError):
            return None
