"""Build the TSV and JSON representations of each report."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

from ..domain import MarketRewardClaim, RewardUpdate
from ..metadata import MarketDescriptor, TokenDescriptor
from ..pipeline.market_rewards import CurrentRewardRate, MarketRewardInfo, pendle_token_of
from ..pipeline.positions import PositionAPRResult
from ..processors import PTPosition, RedeemEvent
from ..units import format_units
from .tsv import TsvReport

USER_REWARDS_COLUMNS = (
    "Timestamp",
    "Date",
    "Transaction Hash",
    "Market",
    "Market Address",
    "Token",
    "Amount",
)
MARKET_REWARDS_COLUMNS = ("Timestamp", "Date", "Market", "Amount", "Token", "Block Number")
REWARD_UPDATES_COLUMNS = (
    "Timestamp",
    "Date",
    "Market",
    "PENDLE/sec",
    "Incentive Ends At",
    "Incentive Duration (Days)",
    "Block Number",
)
CURRENT_RATE_COLUMNS = (
    "Market",
    "PENDLE/sec",
    "PENDLE/year",
    "PENDLE Price",
    "Est. APR",
    "Accumulated PENDLE",
    "Last Updated",
    "Incentive Ends At",
    "PT Symbol",
    "SY Symbol",
    "YT Symbol",
    "Reward Tokens",
)
PT_REWARDS_COLUMNS = (
    "Market Address",
    "PT Symbol",
    "Maturity Date",
    "Days To Maturity",
    "PT Price",
    "PT Balance",
    "Estimated Purchase Price",
    "Deposit Amount",
    "Implied Rate (%)",
    "Fixed APY (%)",
    "Current Value",
    "Value at Maturity",
    "Projected Gain (%)",
)
POSITION_APR_COLUMNS = (
    "Name",
    "Address",
    "Type",
    "Deposit Time",
    "Deposit Asset",
    "Deposit Amount",
    "Deposit Value",
    "Reward Asset 0",
    "Reward Amount 0",
    "Reward Value 0",
    "Reward Asset 1",
    "Reward Amount 1",
    "Reward Value 1",
    "Total Reward Value",
    "Total Days",
    "APR (%)",
    "Deposit Link",
)


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _display(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _token_label(token: TokenDescriptor | None) -> str:
    if token is None:
        return "N/A (N/A)"
    return f"{token.symbol} ({token.address})"


def _market_name(market: MarketDescriptor) -> str:
    return market.principal_token.symbol if market.principal_token else "Unknown Market"


def incentive_countdown(ends_at: datetime, now: datetime) -> tuple[int, int]:
    """Whole days and hours left until ``ends_at``, never negative."""
    seconds = max(0, int((ends_at - now).total_seconds()))
    return seconds // 86400, (seconds % 86400) // 3600


def degraded_market_header(title: str, market: str, now: datetime) -> list[str]:
    return [
        f"# {title}",
        f"# Generated: {_iso(now)}",
        f"# Market: {market}",
        "# Error retrieving market details",
        "# ",
    ]


def market_header(
    title: str, rate: CurrentRewardRate, now: datetime, detailed: bool = False
) -> list[str]:
    """Header block describing a market and its current PENDLE incentive."""
    market = rate.market
    snapshot = rate.snapshot
    pendle = rate.pendle_token
    days, hours = incentive_countdown(snapshot.incentive_ends, now)

    lines = [
        f"# {title}",
        f"# Generated: {_iso(now)}",
        f"# Market: {market.address}",
        "# ",
        f"# Principal Token: {_token_label(market.principal_token)}",
        f"# Standardized Yield: {_token_label(market.standardized_yield)}",
        f"# Yield Token: {_token_label(market.yield_token)}",
        "# ",
        f"# Current PENDLE reward rate: "
        f"{format_units(snapshot.pendle_per_sec, pendle.decimals)} PENDLE/second",
    ]
    if detailed:
        price = f"${rate.pendle_price:.4f}" if rate.pendle_price is not None else "N/A"
        lines += [
            f"# PENDLE price: {price}",
            f"# Estimated APR: {rate.estimated_apr}",
            "# ",
            f"# Accumulated unclaimed PENDLE: "
            f"{format_units(snapshot.accumulated_pendle, pendle.decimals)}",
            f"# Last updated: {_iso(snapshot.last_updated_at)}",
        ]
    lines += [
        f"# Incentive ends in: {days} days, {hours} hours "
        f"({_iso(snapshot.incentive_ends)})",
        "# ",
        f"# Reward tokens: {', '.join(t.symbol for t in market.reward_tokens)}",
        "# ",
    ]
    return lines


def _history_header(
    market: str, rate: CurrentRewardRate | None, now: datetime
) -> list[str]:
    title = "Market Rewards Report"
    if rate is None:
        return degraded_market_header(title, market, now)
    return market_header(title, rate, now)


def user_header(user: str, events: list[RedeemEvent], now: datetime) -> list[str]:
    lines = [
        "# User Rewards Redemption Report",
        f"# Generated: {_iso(now)}",
        f"# User Address: {user}",
        "# ",
        "# This report contains all PENDLE reward redemptions by this user",
        "# along with SY token rewards (rewards from the underlying yield source)",
        "# ",
    ]

    markets: dict[str, MarketDescriptor] = {}
    for event in events:
        markets.setdefault(event.market.address.lower(), event.market)

    if markets:
        lines.append("# Markets with redemptions:")
        for market in markets.values():
            lines += ["# ", f"# Market: {market.address} ({_market_name(market)})"]
            if market.principal_token:
                lines.append(f"# Principal Token (PT): {_token_label(market.principal_token)}")
            if market.yield_token:
                lines.append(f"# Yield Token (YT): {_token_label(market.yield_token)}")
            if market.standardized_yield:
                lines.append(
                    f"# Standardized Yield (SY): {_token_label(market.standardized_yield)}"
                )
        lines.append("# ")

    reward_tokens: dict[str, str] = {}
    for event in events:
        for line in event.rewards:
            reward_tokens.setdefault(line.token.address.lower(), _token_label(line.token))
    if reward_tokens:
        lines += [f"# Reward tokens: {', '.join(reward_tokens.values())}", "# "]

    return lines


def build_user_rewards_report(
    user: str, time_range: str, events: list[RedeemEvent], now: datetime
) -> TsvReport:
    """One row per resolved reward line of each redemption."""
    rows = [
        [
            _iso(event.timestamp),
            _display(event.timestamp),
            event.transaction_hash,
            _market_name(event.market),
            event.market.address,
            line.token.symbol,
            line.amount_formatted,
        ]
        for event in events
        for line in event.rewards
    ]
    return TsvReport(
        name="user_rewards",
        address=user,
        time_range=time_range,
        header=user_header(user, events, now),
        columns=USER_REWARDS_COLUMNS,
        rows=rows,
    )


def build_market_rewards_report(
    market: str,
    time_range: str,
    claims: list[MarketRewardClaim],
    rate: CurrentRewardRate | None,
    now: datetime,
) -> TsvReport:
    pendle = pendle_token_of(rate)
    rows = [
        [
            _iso(claim.timestamp),
            _display(claim.timestamp),
            claim.market,
            format_units(claim.amount, pendle.decimals),
            pendle.symbol,
            str(claim.block_number),
        ]
        for claim in claims
    ]
    return TsvReport(
        name="market_rewards",
        address=market,
        time_range=time_range,
        header=_history_header(market, rate, now),
        columns=MARKET_REWARDS_COLUMNS,
        rows=rows,
    )


def build_reward_updates_report(
    market: str,
    time_range: str,
    updates: list[RewardUpdate],
    rate: CurrentRewardRate | None,
    now: datetime,
) -> TsvReport:
    pendle = pendle_token_of(rate)
    rows = [
        [
            _iso(update.timestamp),
            _display(update.timestamp),
            update.market,
            format_units(update.pendle_per_sec, pendle.decimals),
            _iso(update.incentive_ends_at),
            f"{update.incentive_duration_days:.1f}",
            str(update.block_number),
        ]
        for update in updates
    ]
    return TsvReport(
        name="reward_updates",
        address=market,
        time_range=time_range,
        header=_history_header(market, rate, now),
        columns=REWARD_UPDATES_COLUMNS,
        rows=rows,
    )


def build_current_rate_report(
    market: str, rate: CurrentRewardRate, now: datetime
) -> TsvReport:
    snapshot = rate.snapshot
    pendle = rate.pendle_token
    descriptor = rate.market

    def symbol(token: TokenDescriptor | None) -> str:
        return token.symbol if token else "N/A"

    row = [
        market,
        format_units(snapshot.pendle_per_sec, pendle.decimals),
        format_units(rate.pendle_per_year, pendle.decimals),
        f"${rate.pendle_price:.4f}" if rate.pendle_price is not None else "N/A",
        rate.estimated_apr,
        format_units(snapshot.accumulated_pendle, pendle.decimals),
        _iso(snapshot.last_updated_at),
        _iso(snapshot.incentive_ends),
        symbol(descriptor.principal_token),
        symbol(descriptor.standardized_yield),
        symbol(descriptor.yield_token),
        ",".join(t.symbol for t in descriptor.reward_tokens),
    ]
    return TsvReport(
        name="current_reward_rate",
        address=market,
        header=market_header("Current Reward Rate Report", rate, now, detailed=True),
        columns=CURRENT_RATE_COLUMNS,
        rows=[row],
    )


def pt_header(position: PTPosition, market: MarketDescriptor, now: datetime) -> list[str]:
    quote = position.quote
    assert quote.tokens is not None
    return [
        "# Pendle PT Rewards Report",
        f"# Generated: {_iso(now)}",
        f"# Market: {position.market_address} ({position.pt_symbol})",
        "# ",
        f"# Principal Token: {_token_label(market.principal_token)}",
        f"# Standardized Yield: {_token_label(market.standardized_yield)}",
        f"# Yield Token: {_token_label(market.yield_token)}",
        "# ",
        f"# Implied Rate (annualized): {quote.implied_rate_percent:.2f}%",
        f"# Calculated Fixed APY: {quote.fixed_apy:.2f}%",
        f"# PT Price (calculated): {quote.price:.6f}",
        f"# Maturity Date: {position.maturity_date.isoformat()} "
        f"({quote.days_to_maturity:.2f} days remaining)",
        "# ",
        f"# User holds {quote.tokens:.6f} {position.pt_symbol}",
        f"# Estimated Initial Value: ${quote.initial_value:.4f}",
        f"# Current Value: ${quote.current_value:.4f}",
        f"# Value at Maturity: ${quote.value_at_maturity:.4f}",
        f"# Projected Gain: ${quote.gain_absolute:.4f} ({quote.gain_percentage:.2f}%)",
        "# ",
    ]


def build_pt_rewards_report(
    position: PTPosition, market: MarketDescriptor, now: datetime
) -> TsvReport:
    quote = position.quote
    assert quote.tokens is not None
    row = [
        position.market_address,
        position.pt_symbol,
        position.maturity_date.isoformat(),
        f"{quote.days_to_maturity:.2f}",
        f"{quote.price:.6f}",
        f"{quote.tokens:.6f}",
        f"{quote.purchase_price:.6f}",
        str(position.deposit_amount) if position.deposit_amount is not None else "Unknown",
        f"{quote.implied_rate_percent:.2f}",
        f"{quote.fixed_apy:.2f}",
        f"{quote.current_value:.4f}",
        f"{quote.value_at_maturity:.4f}",
        f"{quote.gain_percentage:.2f}",
    ]
    return TsvReport(
        name="pt_rewards",
        address=position.market_address,
        header=pt_header(position, market, now),
        columns=PT_REWARDS_COLUMNS,
        rows=[row],
    )


def build_position_apr_report(
    market: str, user: str, result: PositionAPRResult, now: datetime
) -> TsvReport:
    item = result.item
    header = [
        "# Position APR Report",
        f"# Generated: {_iso(now)}",
        f"# Market: {market} ({_market_name(result.market)})",
        f"# User Address: {user}",
        f"# Position: {result.position.type}",
        "# ",
    ]
    row = [
        item.name,
        item.address,
        item.type,
        item.deposit_time,
        item.deposit_asset0,
        item.deposit_amount0,
        item.deposit_value,
        item.reward_asset0,
        item.reward_amount0,
        item.reward_value0,
        item.reward_asset1,
        item.reward_amount1,
        item.reward_value1,
        item.reward_value,
        item.total_days,
        item.apr,
        item.deposit_link,
    ]
    return TsvReport(
        name="position_apr",
        address=user,
        header=header,
        columns=POSITION_APR_COLUMNS,
        rows=[row],
    )


def _token_dict(token: TokenDescriptor | None) -> dict[str, Any] | None:
    return asdict(token) if token else None


def _market_dict(market: MarketDescriptor) -> dict[str, Any]:
    return {
        "address": market.address,
        "principalToken": _token_dict(market.principal_token),
        "standardizedYield": _token_dict(market.standardized_yield),
        "yieldToken": _token_dict(market.yield_token),
        "rewardTokens": [asdict(t) for t in market.reward_tokens],
    }


def current_rate_to_dict(rate: CurrentRewardRate) -> dict[str, Any]:
    snapshot = rate.snapshot
    pendle = rate.pendle_token
    return {
        "market": snapshot.market,
        "marketInfo": _market_dict(rate.market),
        "pendlePerSec": str(snapshot.pendle_per_sec),
        "pendlePerSecFormatted": format_units(snapshot.pendle_per_sec, pendle.decimals),
        "accumulatedPendle": str(snapshot.accumulated_pendle),
        "accumulatedPendleFormatted": format_units(
            snapshot.accumulated_pendle, pendle.decimals
        ),
        "lastUpdated": _iso(snapshot.last_updated_at),
        "incentiveEndsAt": _iso(snapshot.incentive_ends),
        "pendleToken": asdict(pendle),
        "pendlePrice": rate.pendle_price,
        "estimatedRewardAPR": rate.estimated_apr,
    }


def updates_to_dicts(updates: list[RewardUpdate], pendle: TokenDescriptor) -> list[dict[str, Any]]:
    return [
        {
            "id": update.id,
            "market": update.market,
            "pendlePerSec": str(update.pendle_per_sec),
            "pendlePerSecFormatted": format_units(update.pendle_per_sec, pendle.decimals),
            "incentiveEndsAt": _iso(update.incentive_ends_at),
            "timestamp": _iso(update.timestamp),
            "blockNumber": str(update.block_number),
            "token": asdict(pendle),
        }
        for update in updates
    ]


def claims_to_dicts(claims: list[MarketRewardClaim], pendle: TokenDescriptor) -> list[dict[str, Any]]:
    return [
        {
            "id": claim.id,
            "market": claim.market,
            "amount": str(claim.amount),
            "amountFormatted": format_units(claim.amount, pendle.decimals),
            "timestamp": _iso(claim.timestamp),
            "blockNumber": str(claim.block_number),
            "token": asdict(pendle),
        }
        for claim in claims
    ]


def market_info_files(info: MarketRewardInfo) -> dict[str, Any]:
    """Filename to JSON payload for the combined market report."""
    pendle = info.current_rate.pendle_token
    base = f"market_{info.market[:8]}"
    return {
        f"{base}_current_rate.json": current_rate_to_dict(info.current_rate),
        f"{base}_updates_{info.time_range}.json": updates_to_dicts(info.updates, pendle),
        f"{base}_claimed_{info.time_range}.json": claims_to_dicts(info.claims, pendle),
    }
