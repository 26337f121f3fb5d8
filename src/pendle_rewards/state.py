"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .adapters.price_adapters.coingecko import CoinGeckoPriceCache
from .clients.chain import ChainReader
from .clients.subgraph import SubgraphClient, SubgraphPager
from .metadata import MetadataCache
from .settings import RewardsSettings


@dataclass
class AppState:
    """Container for application-wide state and dependencies.

    Built once per process and passed through the pipeline so the caches are
    explicit objects rather than module globals.
    """

    settings: RewardsSettings
    logger: logging.Logger
    chain: ChainReader
    pager: SubgraphPager
    metadata: MetadataCache
    prices: CoinGeckoPriceCache

    @classmethod
    def from_settings(
        cls, settings: RewardsSettings, logger: logging.Logger
    ) -> "AppState":
        """Wire the default collaborators from settings."""
        chain = ChainReader.from_settings(settings)
        client = SubgraphClient(
            settings.subgraph_url, request_timeout=settings.request_timeout
        )
        return cls(
            settings=settings,
            logger=logger,
            chain=chain,
            pager=SubgraphPager(client, page_size=settings.page_size),
            metadata=MetadataCache(chain),
            prices=CoinGeckoPriceCache(
                settings.price_cache_path,
                api_url=settings.price_api_url,
                timeout_minutes=settings.price_cache_timeout_minutes,
                request_timeout=settings.request_timeout,
            ),
        )
