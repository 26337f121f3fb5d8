"""User reward redemption history."""

from __future__ import annotations

from dataclasses import dataclass

from ..clients.subgraph import redeem_rewards_query
from ..processors import RedeemEvent, RewardEnricher, TokenTotal, total_rewards_by_token
from ..state import AppState
from .timeframe import since_timestamp


@dataclass
class UserRewardsResult:
    user: str
    time_range: str
    since: int
    events: list[RedeemEvent]
    totals: list[TokenTotal]


async def collect_user_rewards(
    state: AppState, user: str, time_range: str, now: int | None = None
) -> UserRewardsResult:
    """Fetch and enrich every reward redemption of ``user`` in the window."""
    log = state.logger
    since = since_timestamp(time_range, now)

    log.info("Fetching reward redemptions for user %s since %d...", user, since)
    records = await state.pager.fetch_all(redeem_rewards_query(user, since))
    log.info("Found %d redemption events", len(records))

    events = await RewardEnricher(state.metadata).enrich_all(records)

    return UserRewardsResult(
        user=user,
        time_range=time_range,
        since=since,
        events=events,
        totals=total_rewards_by_token(events),
    )
