"""Turn raw ``RedeemRewards`` subgraph records into token-aware events.

The indexer stores each reward's token as a reference into the market's
``getRewardTokens()`` list. Three encodings exist in indexed data:

* ``"0"``, ``"1"``, ... : decimal index (current indexer);
* ``"0x<40 hex>"``: the reward token address itself (early indexer);
* any other ``"0x..."``: bytes whose first byte is the index (early indexer).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..constants import ZERO_ADDRESS
from ..logger import get_logger
from ..metadata import MarketDescriptor, MetadataCache, TokenDescriptor, Unresolved
from ..units import format_units

logger = get_logger(__name__)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_HEX_BYTE_RE = re.compile(r"^0x[0-9a-fA-F]{2}")


class TokenReferenceEncoding(str, Enum):
    DECIMAL_INDEX = "decimal_index"
    ADDRESS = "address"
    HEX_FIRST_BYTE = "hex_first_byte"
    INVALID = "invalid"


@dataclass(frozen=True)
class TokenReference:
    raw: str
    encoding: TokenReferenceEncoding
    index: int | None = None
    address: str | None = None


@dataclass(frozen=True)
class RewardLine:
    reference: str
    encoding: TokenReferenceEncoding
    token: TokenDescriptor
    amount: int
    amount_formatted: str


@dataclass
class RedeemEvent:
    id: str
    user: str
    market: MarketDescriptor
    timestamp: datetime
    transaction_hash: str
    rewards: list[RewardLine] = field(default_factory=list)
    unresolved_rewards: list[RewardLine] = field(default_factory=list)

    @property
    def all_rewards(self) -> list[RewardLine]:
        return [*self.rewards, *self.unresolved_rewards]


def decode_token_reference(raw: str) -> TokenReference:
    """Classify a raw reward token reference by its encoding."""
    text = str(raw).strip()

    if text.isdigit():
        return TokenReference(
            raw=raw, encoding=TokenReferenceEncoding.DECIMAL_INDEX, index=int(text)
        )

    if _ADDRESS_RE.match(text):
        return TokenReference(
            raw=raw, encoding=TokenReferenceEncoding.ADDRESS, address=text
        )

    if _HEX_BYTE_RE.match(text):
        return TokenReference(
            raw=raw,
            encoding=TokenReferenceEncoding.HEX_FIRST_BYTE,
            index=int(text[2:4], 16),
        )

    return TokenReference(raw=raw, encoding=TokenReferenceEncoding.INVALID)


def select_reward_token(reference: TokenReference, market: MarketDescriptor) -> str:
    """Return the reward token address a reference points to.

    Unknown addresses, out-of-range indexes and invalid references map to the
    zero address.
    """
    if reference.encoding is TokenReferenceEncoding.ADDRESS:
        assert reference.address is not None
        wanted = reference.address.lower()
        for token in market.reward_tokens:
            if token.address.lower() == wanted:
                return token.address
        return ZERO_ADDRESS

    if reference.index is not None:
        token = market.reward_token_at(reference.index)
        if token is not None:
            return token.address

    return ZERO_ADDRESS


def _parse_timestamp(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _raw_reward_items(record: dict[str, Any]) -> list[tuple[str, Any]]:
    """Extract ``(reference, amount)`` pairs from either record shape."""
    if record.get("rewards") is not None:
        return [(item["token"], item["amount"]) for item in record["rewards"]]
    return [(str(i), amount) for i, amount in enumerate(record.get("amounts") or [])]


class RewardEnricher:
    """Resolve markets, tokens and amounts for redemption records."""

    def __init__(self, metadata: MetadataCache):
        self.metadata = metadata

    async def enrich_line(
        self, market: MarketDescriptor, raw_reference: str, raw_amount: Any
    ) -> tuple[RewardLine, bool]:
        """Build one reward line; the flag is True when the line can be totalled.

        A malformed or negative amount yields a zero line that goes with the
        unresolved rewards.
        """
        reference = decode_token_reference(raw_reference)
        if reference.encoding is TokenReferenceEncoding.INVALID:
            logger.warning(
                "Unparsable reward token reference %r in market %s",
                raw_reference,
                market.address,
            )

        token_address = select_reward_token(reference, market)
        resolution = await self.metadata.lookup_token(token_address)
        token = resolution.descriptor
        resolved = not isinstance(resolution, Unresolved)
        try:
            amount = int(raw_amount)
            formatted = format_units(amount, token.decimals)
        except (TypeError, ValueError) as e:
            logger.warning(
                "Dropping reward amount %r for token %s in market %s: %s",
                raw_amount,
                token.address,
                market.address,
                e,
            )
            amount, formatted, resolved = 0, format_units(0, token.decimals), False

        line = RewardLine(
            reference=str(raw_reference),
            encoding=reference.encoding,
            token=token,
            amount=amount,
            amount_formatted=formatted,
        )
        return line, resolved

    async def enrich(self, record: dict[str, Any]) -> RedeemEvent:
        market_raw = record["market"]
        if isinstance(market_raw, str):
            market_raw = {"address": market_raw}

        created_at = market_raw.get("createdAt")
        market = await self.metadata.resolve_market(
            market_raw.get("address") or market_raw["id"],
            principal_token=market_raw.get("principalToken"),
            created_at=_parse_timestamp(created_at) if created_at else None,
        )

        event = RedeemEvent(
            id=record["id"],
            user=record["user"],
            market=market,
            timestamp=_parse_timestamp(record["blockTimestamp"]),
            transaction_hash=record["transactionHash"],
        )

        for raw_reference, raw_amount in _raw_reward_items(record):
            line, resolved = await self.enrich_line(market, raw_reference, raw_amount)
            if resolved:
                event.rewards.append(line)
            else:
                event.unresolved_rewards.append(line)

        if event.unresolved_rewards:
            logger.warning(
                "Event %s has %d unresolved reward line(s)",
                event.id,
                len(event.unresolved_rewards),
            )
        return event

    async def enrich_all(self, records: list[dict[str, Any]]) -> list[RedeemEvent]:
        """Enrich records in order, sharing the metadata cache."""
        return [await self.enrich(record) for record in records]
