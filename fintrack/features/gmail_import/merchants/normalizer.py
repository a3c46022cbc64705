"""
Merchant Normalizer - maps raw vendor strings onto canonical merchant names.
"""

from difflib import SequenceMatcher

from fintrack.features.gmail_import.domain import MerchantMatch
from fintrack.features.gmail_import.merchants.dictionary import (
    MerchantDictionary,
    merchant_dictionary,
)

UNKNOWN_VENDOR = "Unknown"
HIGH_SIMILARITY = 0.7
MEDIUM_SIMILARITY = 0.5


def similarity(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    return SequenceMatcher(None, a, b).ratio()


def title_case(value: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in value.strip().lower().split())


class MerchantNormalizer:
    def __init__(self, dictionary: MerchantDictionary):
        self.dictionary = dictionary

    def _best_fuzzy_match(self, cleaned: str) -> tuple[str | None, float]:
        folded = cleaned.casefold()
        best_name, best_score = None, 0.0
        for name in self.dictionary.canonical_names():
            score = similarity(folded, name.casefold())
            if score > best_score:
                best_name, best_score = name, score
        return best_name, best_score

    def match_vendor(self, raw_vendor: str | None) -> MerchantMatch:
        """
        Dictionary substring match first, then fuzzy similarity against the
        canonical names, then the title-cased input with low confidence.
        """
        if not raw_vendor or not raw_vendor.strip():
            return MerchantMatch(vendor=UNKNOWN_VENDOR, confidence="low")

        cleaned = " ".join(raw_vendor.split()).upper()

        for key, name in self.dictionary.items():
            if key in cleaned:
                return MerchantMatch(vendor=name, confidence="high")

        best_name, best_score = self._best_fuzzy_match(cleaned)
        if best_name and best_score >= HIGH_SIMILARITY:
            return MerchantMatch(vendor=best_name, confidence="high")
        if best_name and best_score >= MEDIUM_SIMILARITY:
            return MerchantMatch(vendor=best_name, confidence="medium")

        return MerchantMatch(vendor=title_case(raw_vendor), confidence="low")


merchant_normalizer = MerchantNormalizer(merchant_dictionary)


def match_vendor(raw_vendor: str | None) -> MerchantMatch:
    """Convenience function using the shared dictionary."""
    return merchant_normalizer.match_vendor(raw_vendor)
