"""Market-level reward reports: claims, rate updates and the current rate."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from ..clients.subgraph import market_rewards_query, reward_updates_query
from ..constants import SECONDS_PER_YEAR, ZERO_ADDRESS
from ..domain import MarketRewardClaim, RewardRateSnapshot, RewardUpdate
from ..errors import ContractReadError, PriceUnavailable
from ..metadata import MarketDescriptor, TokenDescriptor, Unresolved
from ..state import AppState
from .timeframe import since_timestamp

APR_UNAVAILABLE = "Requires TVL data for calculation"
PENDLE_FEED_ID = "pendle"


@dataclass
class CurrentRewardRate:
    snapshot: RewardRateSnapshot
    market: MarketDescriptor
    pendle_token: TokenDescriptor
    pendle_price: float | None
    estimated_apr: str = APR_UNAVAILABLE

    @property
    def pendle_per_year(self) -> int:
        return self.snapshot.pendle_per_sec * SECONDS_PER_YEAR


@dataclass
class MarketRewardInfo:
    market: str
    time_range: str
    current_rate: CurrentRewardRate
    updates: list[RewardUpdate]
    claims: list[MarketRewardClaim]


async def resolve_pendle_token(state: AppState) -> TokenDescriptor:
    """PENDLE token descriptor from ``GaugeController.pendle()``.

    Falls back to the unknown-token placeholder when the gauge read fails.
    """
    try:
        address = await state.chain.pendle_token()
    except ContractReadError as e:
        state.logger.warning("Could not read PENDLE token address: %s", e)
        return Unresolved(address=ZERO_ADDRESS, reason=str(e)).descriptor
    return await state.metadata.resolve_token(address)


async def fetch_reward_snapshot(state: AppState, market: str) -> RewardRateSnapshot:
    data = await state.chain.reward_data(market)
    return RewardRateSnapshot(
        market=market,
        pendle_per_sec=data.pendle_per_sec,
        accumulated_pendle=data.accumulated_pendle,
        last_updated=data.last_updated,
        incentive_ends_at=data.incentive_ends_at,
    )


async def fetch_claimed_rewards(
    state: AppState, market: str, since: int
) -> list[MarketRewardClaim]:
    records = await state.pager.fetch_all(market_rewards_query(market, since))
    state.logger.info("Found %d claimed rewards for market %s", len(records), market)
    return [MarketRewardClaim.from_record(record) for record in records]


async def fetch_reward_updates(
    state: AppState, market: str, since: int
) -> list[RewardUpdate]:
    records = await state.pager.fetch_all(reward_updates_query(market, since))
    state.logger.info("Found %d reward updates for market %s", len(records), market)
    return [RewardUpdate.from_record(record) for record in records]


async def fetch_pendle_price(state: AppState, pendle: TokenDescriptor) -> float | None:
    feed_id = state.prices.feed_id_for_address(pendle.address) or PENDLE_FEED_ID
    try:
        return await state.prices.get_price(feed_id)
    except PriceUnavailable as e:
        state.logger.warning("PENDLE price unavailable: %s", e)
        return None


async def current_reward_rate(
    state: AppState, market: str, with_price: bool = True
) -> CurrentRewardRate:
    """Read the gauge controller reward data for ``market``.

    The PENDLE price is only looked up when ``with_price`` is set.

    Raises:
        ContractReadError: If ``rewardData(market)`` cannot be read.
    """
    snapshot, pendle, descriptor = await asyncio.gather(
        fetch_reward_snapshot(state, market),
        resolve_pendle_token(state),
        state.metadata.resolve_market(market),
    )
    price = await fetch_pendle_price(state, pendle) if with_price else None

    return CurrentRewardRate(
        snapshot=snapshot,
        market=descriptor,
        pendle_token=pendle,
        pendle_price=price,
    )


def pendle_token_of(rate: CurrentRewardRate | None) -> TokenDescriptor:
    """PENDLE descriptor of a rate, or the placeholder when the rate is missing."""
    if rate is None:
        return Unresolved(address=ZERO_ADDRESS, reason="reward rate unavailable").descriptor
    return rate.pendle_token


async def header_reward_rate(state: AppState, market: str) -> CurrentRewardRate | None:
    """Current rate for a report header; ``None`` when the gauge read fails."""
    try:
        return await current_reward_rate(state, market, with_price=False)
    except ContractReadError as e:
        state.logger.warning("Could not read reward rate of %s: %s", market, e)
        return None


async def collect_claimed_rewards(
    state: AppState, market: str, time_range: str, now: int | None = None
) -> tuple[list[MarketRewardClaim], CurrentRewardRate | None]:
    """Claims in the window plus the current rate used by the report header."""
    since = since_timestamp(time_range, now)
    claims, rate = await asyncio.gather(
        fetch_claimed_rewards(state, market, since),
        header_reward_rate(state, market),
    )
    return claims, rate


async def collect_reward_updates(
    state: AppState, market: str, time_range: str, now: int | None = None
) -> tuple[list[RewardUpdate], CurrentRewardRate | None]:
    since = since_timestamp(time_range, now)
    updates, rate = await asyncio.gather(
        fetch_reward_updates(state, market, since),
        header_reward_rate(state, market),
    )
    return updates, rate


async def collect_market_info(
    state: AppState, market: str, time_range: str, now: int | None = None
) -> MarketRewardInfo:
    """Fetch claims, rate updates and the current rate concurrently."""
    since = since_timestamp(time_range, now)
    state.logger.info(
        "Fetching all reward information for market %s since %d...", market, since
    )
    claims, updates, rate = await asyncio.gather(
        fetch_claimed_rewards(state, market, since),
        fetch_reward_updates(state, market, since),
        current_reward_rate(state, market),
    )
    return MarketRewardInfo(
        market=market,
        time_range=time_range,
        current_rate=rate,
        updates=updates,
        claims=claims,
    )
