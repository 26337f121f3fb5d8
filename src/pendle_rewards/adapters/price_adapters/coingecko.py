"""CoinGecko price adapter with a persistent JSON cache.

Cache file layout::

    {"<feed id>": {"<currency>": {"price": 1.23, "timestamp": 1700000000000}}}

Entries younger than ``timeout_minutes`` are served without a request. When
a refresh fails the last stored entry is returned regardless of its age, so
a price may be arbitrarily stale during an outage.
A store that cannot be written is kept in memory only.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable

import requests

from ...constants import COINGECKO_TOKEN_IDS, DEFAULT_COINGECKO_API_URL
from ...errors import InvalidInput, PriceUnavailable
from ...logger import get_logger
from .base import BasePriceAdapter, PriceCacheEntry

logger = get_logger(__name__)

PriceStore = dict[str, dict[str, PriceCacheEntry]]


def atomic_write_json(path: Path, payload: Any) -> None:
    """Write JSON to ``path`` through a sibling temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class CoinGeckoPriceCache(BasePriceAdapter):
    """USD prices from the CoinGecko ``/simple/price`` endpoint."""

    def __init__(
        self,
        path: str | Path,
        *,
        api_url: str = DEFAULT_COINGECKO_API_URL,
        timeout_minutes: float = 2.0,
        request_timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ):
        self.path = Path(path)
        self.api_url = api_url.rstrip("/")
        self.request_timeout = request_timeout
        self._clock = clock
        self._timeout_minutes = 0.0
        self.timeout_minutes = timeout_minutes
        self._store: PriceStore = self._load()

    @property
    def adapter_name(self) -> str:
        return "coingecko"

    @property
    def timeout_minutes(self) -> float:
        return self._timeout_minutes

    @timeout_minutes.setter
    def timeout_minutes(self, value: float) -> None:
        if value <= 0:
            raise InvalidInput(f"Cache timeout must be positive, got {value}")
        self._timeout_minutes = float(value)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _load(self) -> PriceStore:
        if not self.path.exists():
            logger.debug("No price cache at %s, starting empty", self.path)
            return {}

        try:
            with self.path.open(encoding="utf-8") as f:
                raw = json.load(f)
            store: PriceStore = {}
            for feed_id, by_currency in raw.items():
                store[feed_id] = {
                    currency: PriceCacheEntry(
                        price=float(entry["price"]),
                        timestamp=int(entry["timestamp"]),
                    )
                    for currency, entry in by_currency.items()
                }
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(
                "Ignoring unreadable price cache %s: %s", self.path, e
            )
            return {}

        logger.debug("Loaded %d cached price feed(s) from %s", len(store), self.path)
        return store

    def _save(self) -> None:
        payload = {
            feed_id: {currency: asdict(entry) for currency, entry in by_currency.items()}
            for feed_id, by_currency in self._store.items()
        }
        atomic_write_json(self.path, payload)

    def _persist(self) -> None:
        try:
            self._save()
        except OSError as e:
            logger.warning("Could not write price cache %s: %s", self.path, e)

    def cached_entry(self, feed_id: str, currency: str = "usd") -> PriceCacheEntry | None:
        return self._store.get(feed_id, {}).get(currency.lower())

    def _is_fresh(self, entry: PriceCacheEntry) -> bool:
        age_ms = self._now_ms() - entry.timestamp
        return age_ms < self._timeout_minutes * 60 * 1000

    def _request(self, feed_id: str, currency: str) -> dict[str, Any]:
        response = requests.get(
            f"{self.api_url}/simple/price",
            params={"ids": feed_id, "vs_currencies": currency},
            headers={"Accept": "application/json"},
            timeout=self.request_timeout,
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected CoinGecko payload: {data!r}")
        return data

    async def fetch_price(self, feed_id: str, currency: str = "usd") -> float:
        """Request a price from CoinGecko, bypassing the cache.

        Raises:
            requests.RequestException: On transport failure or HTTP error status.
            ValueError: If the payload lacks the feed or currency.
        """
        logger.debug("Fetching %s/%s price from CoinGecko", feed_id, currency)
        data = await asyncio.to_thread(self._request, feed_id, currency)
        try:
            return float(data[feed_id][currency])
        except (KeyError, TypeError) as e:
            raise ValueError(
                f"CoinGecko response has no {currency} price for {feed_id}"
            ) from e

    async def get_price(self, feed_id: str, currency: str = "usd") -> float:
        """Return a fresh cached price, refreshing from CoinGecko when stale.

        Raises:
            PriceUnavailable: If the fetch fails and nothing is cached.
        """
        currency = currency.lower()
        entry = self.cached_entry(feed_id, currency)
        if entry is not None and self._is_fresh(entry):
            logger.debug("Price cache hit for %s/%s", feed_id, currency)
            return entry.price

        try:
            price = await self.fetch_price(feed_id, currency)
        except (requests.RequestException, ValueError) as e:
            if entry is not None:
                logger.warning(
                    "Price fetch for %s failed (%s); using cached price from %d",
                    feed_id,
                    e,
                    entry.timestamp,
                )
                return entry.price
            raise PriceUnavailable(
                f"No price available for {feed_id}/{currency}: {e}"
            ) from e

        self._store.setdefault(feed_id, {})[currency] = PriceCacheEntry(
            price=price, timestamp=self._now_ms()
        )
        self._persist()
        return price

    def feed_id_for_address(self, address: str) -> str | None:
        return COINGECKO_TOKEN_IDS.get(address.lower())

    def clear(self) -> None:
        """Drop every cached price and persist the empty store."""
        self._store = {}
        self._persist()
        logger.info("Cleared price cache %s", self.path)

    def clear_feed(self, feed_id: str) -> None:
        if self._store.pop(feed_id, None) is not None:
            self._persist()
            logger.info("Cleared cached prices for %s", feed_id)
