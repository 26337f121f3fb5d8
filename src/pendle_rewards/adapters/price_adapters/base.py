from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class PriceCacheEntry:
    """A USD (or other quote currency) price and when it was fetched."""

    price: float
    timestamp: int  # epoch milliseconds


class BasePriceAdapter(ABC):
    """Abstract base class for price adapters."""

    @property
    @abstractmethod
    def adapter_name(self) -> str:
        """Return the name of this adapter."""
        ...

    @abstractmethod
    async def get_price(self, feed_id: str, currency: str = "usd") -> float:
        """Return the price of ``feed_id`` quoted in ``currency``."""
        ...

    @abstractmethod
    def feed_id_for_address(self, address: str) -> str | None:
        """Map a token address to this adapter's feed identifier."""
        ...

    async def get_prices(
        self, feed_ids: list[str], currency: str = "usd"
    ) -> dict[str, float]:
        """Fetch several prices, each going through ``get_price``."""
        prices: dict[str, float] = {}
        for feed_id in feed_ids:
            prices[feed_id] = await self.get_price(feed_id, currency)
        return prices
