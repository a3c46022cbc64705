"""
In-memory merchant dictionary: short-form key -> canonical merchant name.

Keys are stored upper-cased and scanned in insertion order, so more specific
keys (AMAZON PRIME) are listed before their prefixes (AMAZON). Runtime
additions are not persisted.
"""

from collections.abc import Iterable

from fintrack.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MERCHANTS: tuple[tuple[str, str], ...] = (
    ("SWIGGY", "Swiggy"),
    ("ZOMATO", "Zomato"),
    ("PAYTM", "Paytm"),
    ("PHONEPE", "PhonePe"),
    ("PHONE PE", "PhonePe"),
    ("GOOGLE PAY", "Google Pay"),
    ("GOOGLEPAY", "Google Pay"),
    ("GPAY", "Google Pay"),
    ("AMAZON PRIME", "Amazon Prime"),
    ("PRIME VIDEO", "Amazon Prime"),
    ("PRIME", "Amazon Prime"),
    ("AMAZON", "Amazon"),
    ("AMZN", "Amazon"),
    ("FLIPKART", "Flipkart"),
    ("MYNTRA", "Myntra"),
    ("UBER", "Uber"),
    ("OLACABS", "Ola"),
    ("OLA", "Ola"),
    ("NETFLIX", "Netflix"),
    ("SPOTIFY", "Spotify"),
    ("BIGBASKET", "BigBasket"),
    ("BIG BASKET", "BigBasket"),
    ("BLINKIT", "Blinkit"),
    ("GROFERS", "Blinkit"),
    ("ZEPTO", "Zepto"),
    ("IRCTC", "IRCTC"),
    ("MAKEMYTRIP", "MakeMyTrip"),
    ("MMT", "MakeMyTrip"),
    ("AIRTEL", "Airtel"),
    ("JIO", "Jio"),
)


class MerchantDictionary:
    """Mutable lookup the normalizer reads from."""

    def __init__(self, entries: Iterable[tuple[str, str]] = ()):
        self._entries: dict[str, str] = {}
        for key, name in entries:
            self._entries[self._normalize_key(key)] = name.strip()

    @classmethod
    def with_defaults(cls) -> "MerchantDictionary":
        return cls(DEFAULT_MERCHANTS)

    @staticmethod
    def _normalize_key(key: str) -> str:
        return " ".join(key.split()).upper()

    def add(self, key: str, name: str) -> tuple[str, str]:
        """Add or replace an entry. Returns the stored (key, name)."""
        normalized_key = self._normalize_key(key)
        if not normalized_key or not name.strip():
            raise ValueError("Merchant key and name must be non-empty")

        self._entries[normalized_key] = name.strip()
        logger.info("Merchant dictionary entry added", key=normalized_key, merchant=name.strip())
        return normalized_key, name.strip()

    def items(self) -> list[tuple[str, str]]:
        return list(self._entries.items())

    def canonical_names(self) -> list[str]:
        return list(dict.fromkeys(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self._normalize_key(key) in self._entries


merchant_dictionary = MerchantDictionary.with_defaults()
