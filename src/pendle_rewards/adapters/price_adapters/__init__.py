from __future__ import annotations

from .base import BasePriceAdapter, PriceCacheEntry
from .coingecko import CoinGeckoPriceCache, atomic_write_json

__all__ = ["BasePriceAdapter", "CoinGeckoPriceCache", "PriceCacheEntry", "atomic_write_json"]
