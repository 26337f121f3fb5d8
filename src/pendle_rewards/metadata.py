"""Process-lifetime cache of token and market descriptors.

Resolution results are cached on first lookup and never refetched: a token
whose metadata read failed stays ``Unresolved`` for the rest of the process
even if the contract later becomes readable.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Union

from .clients.chain import MarketTokens
from .constants import ZERO_ADDRESS
from .errors import ContractReadError
from .logger import get_logger

logger = get_logger(__name__)

UNKNOWN_TOKEN_NAME = "Unknown Token"
UNKNOWN_TOKEN_SYMBOL = "UNKNOWN"
UNKNOWN_TOKEN_DECIMALS = 18


@dataclass(frozen=True)
class TokenDescriptor:
    address: str
    name: str
    symbol: str
    decimals: int


@dataclass(frozen=True)
class Resolved:
    descriptor: TokenDescriptor

    @property
    def address(self) -> str:
        return self.descriptor.address


@dataclass(frozen=True)
class Unresolved:
    """Metadata could not be read for ``address``."""

    address: str
    reason: str

    @property
    def descriptor(self) -> TokenDescriptor:
        return TokenDescriptor(
            address=self.address,
            name=UNKNOWN_TOKEN_NAME,
            symbol=UNKNOWN_TOKEN_SYMBOL,
            decimals=UNKNOWN_TOKEN_DECIMALS,
        )


TokenResolution = Union[Resolved, Unresolved]


@dataclass(frozen=True)
class MarketDescriptor:
    address: str
    principal_token: TokenDescriptor | None
    yield_token: TokenDescriptor | None
    standardized_yield: TokenDescriptor | None
    reward_tokens: tuple[TokenDescriptor, ...]
    created_at: datetime | None = None

    def reward_token_at(self, index: int) -> TokenDescriptor | None:
        if 0 <= index < len(self.reward_tokens):
            return self.reward_tokens[index]
        return None


class MetadataReader(Protocol):
    async def token_name(self, token: str) -> str: ...

    async def token_symbol(self, token: str) -> str: ...

    async def token_decimals(self, token: str) -> int: ...

    async def market_tokens(self, market: str) -> MarketTokens: ...

    async def reward_tokens(self, market: str) -> list[str]: ...


class MetadataCache:
    """Token and market descriptor cache keyed by lowercase address."""

    def __init__(self, reader: MetadataReader):
        self._reader = reader
        self._tokens: dict[str, TokenResolution] = {}
        self._markets: dict[str, MarketDescriptor] = {}

    def __len__(self) -> int:
        return len(self._tokens)

    async def lookup_token(self, address: str) -> TokenResolution:
        key = address.lower()
        cached = self._tokens.get(key)
        if cached is not None:
            return cached

        if key == ZERO_ADDRESS:
            result: TokenResolution = Unresolved(address=ZERO_ADDRESS, reason="zero address")
        else:
            result = await self._read_token(address)

        self._tokens[key] = result
        return result

    async def _read_token(self, address: str) -> TokenResolution:
        try:
            name, symbol, decimals = await asyncio.gather(
                self._reader.token_name(address),
                self._reader.token_symbol(address),
                self._reader.token_decimals(address),
            )
        except ContractReadError as e:
            logger.warning("Could not read token metadata for %s: %s", address, e)
            return Unresolved(address=address, reason=str(e))

        if decimals < 0:
            logger.warning("Token %s reports negative decimals %d", address, decimals)
            return Unresolved(address=address, reason=f"invalid decimals {decimals}")

        logger.debug("Resolved token %s as %s (%d decimals)", address, symbol, decimals)
        return Resolved(
            TokenDescriptor(address=address, name=name, symbol=symbol, decimals=decimals)
        )

    async def resolve_token(self, address: str) -> TokenDescriptor:
        """Return the descriptor for ``address``, or the unknown-token sentinel."""
        return (await self.lookup_token(address)).descriptor

    async def resolve_market(
        self,
        address: str,
        principal_token: str | None = None,
        created_at: datetime | None = None,
    ) -> MarketDescriptor:
        """Return the cached market descriptor, reading it on first use.

        ``principal_token`` is a subgraph-supplied PT address used when the
        on-chain ``readTokens()`` read fails.
        """
        key = address.lower()
        cached = self._markets.get(key)
        if cached is not None:
            return cached

        try:
            tokens, reward_addresses = await asyncio.gather(
                self._reader.market_tokens(address),
                self._reader.reward_tokens(address),
            )
        except ContractReadError as e:
            logger.warning("Could not read market %s: %s", address, e)
            fallback_pt = (
                await self.resolve_token(principal_token) if principal_token else None
            )
            descriptor = MarketDescriptor(
                address=address,
                principal_token=fallback_pt,
                yield_token=None,
                standardized_yield=None,
                reward_tokens=(),
                created_at=created_at,
            )
            self._markets[key] = descriptor
            return descriptor

        sy, pt, yt = await asyncio.gather(
            self.resolve_token(tokens.standardized_yield),
            self.resolve_token(tokens.principal_token),
            self.resolve_token(tokens.yield_token),
        )
        rewards = await asyncio.gather(
            *(self.resolve_token(token) for token in reward_addresses)
        )

        descriptor = MarketDescriptor(
            address=address,
            principal_token=pt,
            yield_token=yt,
            standardized_yield=sy,
            reward_tokens=tuple(rewards),
            created_at=created_at,
        )
        logger.info(
            "Market %s: PT=%s, %d reward token(s)",
            address,
            pt.symbol,
            len(descriptor.reward_tokens),
        )
        self._markets[key] = descriptor
        return descriptor
