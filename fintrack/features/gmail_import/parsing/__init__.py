"""
Email parsing: body text, amounts, direction, vendor and metadata.
"""

from .extractor import parse_email_batch, parse_email_message

__all__ = ["parse_email_batch", "parse_email_message"]
