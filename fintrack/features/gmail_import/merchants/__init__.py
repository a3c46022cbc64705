from .dictionary import MerchantDictionary, merchant_dictionary
from .normalizer import MerchantNormalizer, match_vendor, merchant_normalizer

__all__ = [
    "MerchantDictionary",
    "MerchantNormalizer",
    "match_vendor",
    "merchant_dictionary",
    "merchant_normalizer",
]
