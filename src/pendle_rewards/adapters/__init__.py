from __future__ import annotations

from .price_adapters import BasePriceAdapter, CoinGeckoPriceCache

__all__ = ["BasePriceAdapter", "CoinGeckoPriceCache"]
