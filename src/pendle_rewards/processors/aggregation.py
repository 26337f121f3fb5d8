from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from ..constants import PENDLE_APP_MARKET_URL, SECONDS_PER_DAY
from ..domain import RewardUpdate
from ..errors import InvalidInput
from ..metadata import TokenDescriptor
from ..units import format_units
from .reward_enricher import RedeemEvent


@dataclass
class TokenTotal:
    """Summed raw amount of one reward token."""

    token: TokenDescriptor
    amount: int = 0

    @property
    def formatted(self) -> str:
        return format_units(self.amount, self.token.decimals)


def total_rewards_by_token(
    events: Iterable[RedeemEvent], include_unresolved: bool = True
) -> list[TokenTotal]:
    """Group reward lines by token address and sum their raw amounts.

    Totals are returned in order of first appearance. Lines with unresolved
    tokens are summed under their placeholder address unless
    ``include_unresolved`` is False.
    """
    totals: dict[str, TokenTotal] = {}
    for event in events:
        lines = event.all_rewards if include_unresolved else event.rewards
        for line in lines:
            key = line.token.address.lower()
            if key not in totals:
                totals[key] = TokenTotal(token=line.token)
            totals[key].amount += line.amount
    return list(totals.values())


def calculate_apr(
    deposited_usd: float, total_rewards_usd: float, days_elapsed: float
) -> float:
    """Annualise a reward return, in percent rounded to 2 decimals.

    Raises:
        InvalidInput: If the deposit or elapsed days are not positive, or the
            rewards are negative.
    """
    if deposited_usd <= 0:
        raise InvalidInput(f"Deposit value must be positive, got {deposited_usd}")
    if total_rewards_usd < 0:
        raise InvalidInput(f"Rewards value must be non-negative, got {total_rewards_usd}")
    if days_elapsed <= 0:
        raise InvalidInput(f"Elapsed days must be positive, got {days_elapsed}")

    return_rate = total_rewards_usd / deposited_usd
    return round(return_rate * (365 / days_elapsed) * 100, 2)


def round_to_significant_digits(value: float | int | str | Decimal, digits: int = 6) -> str:
    """Round to ``digits`` significant digits and render without exponent."""
    if digits < 1:
        raise InvalidInput(f"Significant digits must be at least 1, got {digits}")
    try:
        number = Decimal(str(value))
    except ArithmeticError as e:
        raise InvalidInput(f"Not a number: {value!r}") from e
    if not number.is_finite():
        raise InvalidInput(f"Not a finite number: {value!r}")
    if number == 0:
        return "0"

    exponent = number.adjusted() - digits + 1
    rounded = number.quantize(Decimal(1).scaleb(exponent), rounding=ROUND_HALF_UP)
    return format(rounded.normalize(), "f")


def average_pendle_per_sec(updates: Sequence[RewardUpdate]) -> int:
    """Integer mean of the emission rate across updates; 0 when empty."""
    if not updates:
        return 0
    return sum(update.pendle_per_sec for update in updates) // len(updates)


@dataclass(frozen=True)
class PricedReward:
    """A pending reward amount with its USD valuation."""

    token: TokenDescriptor
    amount: int
    price_usd: float

    @property
    def formatted(self) -> str:
        return format_units(self.amount, self.token.decimals)

    @property
    def value_usd(self) -> float:
        return float(Decimal(self.formatted) * Decimal(str(self.price_usd)))


@dataclass
class PortfolioItem:
    """One report row describing a position and its reward APR."""

    name: str = ""
    address: str = ""
    type: str = ""
    deposit_time: str = ""
    deposit_asset0: str = ""
    deposit_amount0: str = ""
    deposit_value0: str = ""
    deposit_value: str = ""
    reward_asset0: str = ""
    reward_amount0: str = ""
    reward_value0: str = ""
    reward_asset1: str = ""
    reward_amount1: str = ""
    reward_value1: str = ""
    reward_value: str = ""
    total_days: str = ""
    apr: str = ""
    deposit_link: str = ""

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def build_portfolio_item(
    *,
    market: str,
    name: str,
    position_type: str,
    deposit_asset: str,
    deposit_amount: float | str,
    deposit_value_usd: float,
    deposit_time: datetime,
    rewards: Sequence[PricedReward],
    now: datetime,
) -> PortfolioItem:
    """Compute the APR of a position and lay it out as a ``PortfolioItem``.

    Only the first two rewards get their own columns; all of them count
    towards the total reward value.
    """
    days_elapsed = (now - deposit_time).total_seconds() / SECONDS_PER_DAY
    total_rewards_usd = sum(reward.value_usd for reward in rewards)
    apr = calculate_apr(deposit_value_usd, total_rewards_usd, days_elapsed)

    item = PortfolioItem(
        name=name,
        address=market,
        type=position_type,
        deposit_time=deposit_time.strftime("%y/%m/%d %H:%M:%S"),
        deposit_asset0=deposit_asset,
        deposit_amount0=round_to_significant_digits(deposit_amount),
        deposit_value0=round_to_significant_digits(deposit_value_usd),
        deposit_value=round_to_significant_digits(deposit_value_usd),
        reward_value=round_to_significant_digits(total_rewards_usd),
        total_days=round_to_significant_digits(days_elapsed, 4),
        apr=round_to_significant_digits(apr),
        deposit_link=PENDLE_APP_MARKET_URL.format(market=market),
    )

    if len(rewards) > 0:
        item.reward_asset0 = rewards[0].token.symbol
        item.reward_amount0 = round_to_significant_digits(rewards[0].formatted)
        item.reward_value0 = round_to_significant_digits(rewards[0].value_usd)
    if len(rewards) > 1:
        item.reward_asset1 = rewards[1].token.symbol
        item.reward_amount1 = round_to_significant_digits(rewards[1].formatted)
        item.reward_value1 = round_to_significant_digits(rewards[1].value_usd)

    return item
