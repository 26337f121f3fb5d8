"""Per-user position reports: reward APR and PT fixed yield."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone

from ..errors import ContractReadError, InvalidInput
from ..metadata import MarketDescriptor
from ..processors import PortfolioItem, PricedReward, PTPosition, PTPricingEngine
from ..processors.aggregation import build_portfolio_item
from ..state import AppState

POSITION_LP = "LP"
POSITION_PT = "PT"
POSITION_NONE = "NONE"


@dataclass(frozen=True)
class UserPosition:
    type: str
    balance: int


@dataclass
class PositionAPRResult:
    market: MarketDescriptor
    position: UserPosition
    rewards: list[PricedReward]
    item: PortfolioItem


async def get_user_position(state: AppState, market: str, user: str) -> UserPosition:
    """LP balance of the market if non-zero, else the user's PT balance."""
    try:
        lp_balance = await state.chain.balance_of(market, user)
        if lp_balance > 0:
            return UserPosition(type=POSITION_LP, balance=lp_balance)

        tokens = await state.chain.market_tokens(market)
        pt_balance = await state.chain.balance_of(tokens.principal_token, user)
    except ContractReadError as e:
        state.logger.warning("Could not read position of %s in %s: %s", user, market, e)
        return UserPosition(type=POSITION_NONE, balance=0)

    return UserPosition(type=POSITION_PT, balance=pt_balance)


async def get_pending_rewards(
    state: AppState, market: MarketDescriptor, user: str
) -> list[PricedReward]:
    """Accrued, unclaimed rewards of ``user`` for each market reward token.

    Tokens without a price feed are valued at 0 without a price request.
    """
    rewards: list[PricedReward] = []
    for token in market.reward_tokens:
        try:
            accrued = await state.chain.user_reward_accrued(
                market.address, token.address, user
            )
        except ContractReadError as e:
            state.logger.warning(
                "Could not read accrued %s for %s: %s", token.symbol, user, e
            )
            accrued = 0

        feed_id = state.prices.feed_id_for_address(token.address)
        price = await state.prices.get_price(feed_id) if feed_id else 0.0
        state.logger.debug(
            "Pending %s: %d raw at $%s", token.symbol, accrued, price
        )
        rewards.append(PricedReward(token=token, amount=accrued, price_usd=price))
    return rewards


async def calculate_position_apr(
    state: AppState,
    market: str,
    user: str,
    deposit_usd: float,
    deposit_date: datetime,
    now: datetime | None = None,
) -> PositionAPRResult:
    """Reward APR of a position from its pending rewards and deposit.

    Raises:
        InvalidInput: If the deposit is not positive, the user holds neither
            LP nor PT, or the deposit date is not in the past.
        PriceUnavailable: If a reward token price cannot be obtained.
    """
    if deposit_usd <= 0:
        raise InvalidInput(f"Deposit amount must be a positive number, got {deposit_usd}")
    now = now or datetime.now(timezone.utc)

    descriptor = await state.metadata.resolve_market(market)
    position = await get_user_position(state, market, user)
    if position.balance == 0:
        raise InvalidInput(f"User {user} has no LP or PT tokens in market {market}")

    rewards = await get_pending_rewards(state, descriptor, user)
    pt_symbol = descriptor.principal_token.symbol if descriptor.principal_token else None

    item = build_portfolio_item(
        market=market,
        name=pt_symbol or "Pendle Market",
        position_type="Pendle Market",
        deposit_asset=pt_symbol or POSITION_LP,
        deposit_amount=deposit_usd,
        deposit_value_usd=deposit_usd,
        deposit_time=deposit_date,
        rewards=rewards,
        now=now,
    )
    state.logger.info("Position APR for %s in %s: %s%%", user, market, item.apr)
    return PositionAPRResult(
        market=descriptor, position=position, rewards=rewards, item=item
    )


async def calculate_pt_rewards(
    state: AppState,
    market: str,
    user: str,
    deposit_amount: float | None = None,
    purchase_date: datetime | None = None,
    now: int | None = None,
) -> tuple[PTPosition | None, MarketDescriptor]:
    """Fixed-yield analysis of the user's PT position in ``market``."""
    engine = PTPricingEngine(state.chain, state.settings.pendle_router_address)
    position = await engine.calculate(
        market,
        user,
        deposit_amount=deposit_amount,
        purchase_date=purchase_date,
        now=int(time.time()) if now is None else now,
    )
    descriptor = await state.metadata.resolve_market(market)
    return position, descriptor
