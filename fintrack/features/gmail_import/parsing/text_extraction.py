"""
Plain-text body extraction for Gmail messages.
"""

import base64
import binascii
import html

from bs4 import BeautifulSoup

from fintrack.features.gmail_import.parsing.patterns import WHITESPACE_PATTERN
from fintrack.infrastructure.observability.logging import get_logger
from fintrack.models.domain.gmail_domain import GmailMessage

logger = get_logger(__name__)


def collapse_whitespace(text: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def decode_part_data(data: str | None) -> str:
    """Decode a Gmail URL-safe base64 body payload. Missing padding is tolerated."""
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as e:
        logger.warning("Failed to decode message part", error=str(e))
        return ""


def html_to_text(markup: str) -> str:
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "head"]):
        tag.decompose()
    return soup.get_text(" ")


def _find_part(part: dict, mime_type: str) -> str | None:
    """Depth-first search for the first part of the given MIME type with data."""
    if part.get("mimeType") == mime_type:
        data = (part.get("body") or {}).get("data")
        if data:
            return decode_part_data(data)

    for child in part.get("parts") or []:
        found = _find_part(child, mime_type)
        if found:
            return found
    return None


def extract_body_text(message: GmailMessage) -> str:
    """
    Obtain the plain-text body of a message.

    The provider snippet wins when present. Otherwise the MIME tree is walked
    for text/plain, then text/html (tags stripped, entities decoded). A flat
    payload without a MIME type is decoded as-is.
    """
    if message.snippet:
        return collapse_whitespace(html.unescape(message.snippet))

    payload = message.payload
    text = _find_part(payload, "text/plain")
    if text is None:
        markup = _find_part(payload, "text/html")
        if markup is not None:
            text = html_to_text(markup)

    if text is None and not payload.get("parts"):
        text = decode_part_data((payload.get("body") or {}).get("data"))

    return collapse_whitespace(html.unescape(text or ""))
