"""
Module 'pricing' (feature-first): point d'entrée public du moteur de prix par lots.
"""

from .engine import FIXED_PRICES, PACK_SIZES, MAX_TABULATED, price_for, price_for_major, to_minor_units, best_packs
from .schemas import PriceQuote, quote

__all__ = [
    "FIXED_PRICES",
    "PACK_SIZES",
    "MAX_TABULATED",
    "price_for",
    "price_for_major",
    "to_minor_units",
    "best_packs",
    "PriceQuote",
    "quote",
]
