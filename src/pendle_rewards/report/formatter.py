"""Rich console summaries for the report commands."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table

from ..domain import MarketRewardClaim, RewardUpdate
from ..metadata import MarketDescriptor, TokenDescriptor
from ..pipeline.market_rewards import CurrentRewardRate, MarketRewardInfo
from ..pipeline.positions import PositionAPRResult
from ..pipeline.user_rewards import UserRewardsResult
from ..processors import PTPosition, average_pendle_per_sec
from ..units import format_units

MAX_DISPLAY = 5

console = Console()


def _truncate_address(address: str) -> str:
    """Truncate address for display."""
    return f"{address[:10]}...{address[-4:]}"


def _when(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _key_value_table(style: str = "cyan") -> Table:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Key", style="dim")
    table.add_column("Value", style=style)
    return table


def _market_panel(market: MarketDescriptor) -> Panel:
    table = _key_value_table()
    table.add_row("Address", market.address)
    for label, token in (
        ("Principal Token", market.principal_token),
        ("Standardized Yield", market.standardized_yield),
        ("Yield Token", market.yield_token),
    ):
        if token is not None:
            table.add_row(label, f"{token.symbol} ({_truncate_address(token.address)})")
    table.add_row(
        "Reward Tokens",
        ", ".join(t.symbol for t in market.reward_tokens) or "[dim]<none>[/]",
    )
    return Panel(table, title="[bold]Market Information[/]", border_style="blue")


def print_exported(path: Path) -> None:
    console.print(f"[green]Report saved to:[/] {path}")


def print_error(message: str) -> None:
    console.print(f"[bold red]Error:[/] {message}")


def print_user_rewards(result: UserRewardsResult) -> None:
    console.print(f"\nFound [bold]{len(result.events)}[/] redemption events")

    totals = Table(title="Total Rewards Summary", expand=True)
    totals.add_column("Token", style="cyan", no_wrap=True)
    totals.add_column("Address", style="dim")
    totals.add_column("Amount", justify="right", style="green")
    for total in result.totals:
        totals.add_row(total.token.symbol, total.token.address, total.formatted)
    console.print(totals)

    if not result.events:
        return

    shown = result.events[:MAX_DISPLAY]
    recent = Table(
        title=f"Most Recent Redemption Events (showing {len(shown)} of {len(result.events)})",
        expand=True,
    )
    recent.add_column("Date", no_wrap=True)
    recent.add_column("Transaction", style="dim")
    recent.add_column("Market", style="cyan")
    recent.add_column("Rewards", justify="right", style="green")
    for event in shown:
        market = event.market
        name = market.principal_token.symbol if market.principal_token else "Unknown"
        rewards = "\n".join(f"{line.amount_formatted} {line.token.symbol}" for line in event.rewards)
        recent.add_row(
            _when(event.timestamp),
            _truncate_address(event.transaction_hash),
            f"{name} ({_truncate_address(market.address)})",
            rewards or "[dim]<none>[/]",
        )
    console.print(recent)


def _rate_table(rate: CurrentRewardRate, now: datetime) -> Table:
    snapshot = rate.snapshot
    pendle = rate.pendle_token
    days_left = max(0.0, (snapshot.incentive_ends - now).total_seconds() / 86400)

    table = _key_value_table("green")
    table.add_row("PENDLE per second", format_units(snapshot.pendle_per_sec, pendle.decimals))
    table.add_row("PENDLE per year", format_units(rate.pendle_per_year, pendle.decimals))
    table.add_row(
        "PENDLE price",
        f"${rate.pendle_price:.4f}" if rate.pendle_price is not None else "N/A",
    )
    table.add_row("Estimated APR", rate.estimated_apr)
    table.add_row(
        "Accumulated PENDLE", format_units(snapshot.accumulated_pendle, pendle.decimals)
    )
    table.add_row("Last updated", _when(snapshot.last_updated_at))
    table.add_row("Incentive ends at", _when(snapshot.incentive_ends))
    table.add_row("Incentive period", f"{days_left:.1f} days remaining")
    return table


def print_current_rate(rate: CurrentRewardRate, now: datetime) -> None:
    console.print(
        Panel(
            Group(
                Panel(_rate_table(rate, now), title="[bold]Current Reward Rate[/]", border_style="green"),
                _market_panel(rate.market),
            ),
            title=f"[bold white]{rate.snapshot.market}[/]",
            border_style="white",
        )
    )


def print_claimed_rewards(claims: list[MarketRewardClaim], pendle: TokenDescriptor) -> None:
    console.print(f"\nFound [bold]{len(claims)}[/] claimed rewards")
    if claims:
        total = sum(claim.amount for claim in claims)
        console.print(
            f"Total claimed: [green]{format_units(total, pendle.decimals)}[/] {pendle.symbol}"
        )


def print_reward_updates(updates: list[RewardUpdate], pendle: TokenDescriptor) -> None:
    console.print(f"\nFound [bold]{len(updates)}[/] reward updates")
    if updates:
        latest = updates[0]
        table = _key_value_table("green")
        table.add_row("Date", _when(latest.timestamp))
        table.add_row("PENDLE/sec", format_units(latest.pendle_per_sec, pendle.decimals))
        table.add_row("Incentive ends at", _when(latest.incentive_ends_at))
        table.add_row("Incentive duration", f"{latest.incentive_duration_days:.1f} days")
        console.print(Panel(table, title="[bold]Latest Update[/]", border_style="green"))
    if len(updates) > 1:
        average = average_pendle_per_sec(updates)
        console.print(
            f"Average PENDLE/sec: [green]{format_units(average, pendle.decimals)}[/] "
            f"over {len(updates)} updates"
        )


def print_market_info(info: MarketRewardInfo, now: datetime) -> None:
    rate = info.current_rate
    pendle = rate.pendle_token
    print_current_rate(rate, now)

    history = Table(title="Reward Rate Update History", expand=True)
    history.add_column("Date", no_wrap=True)
    history.add_column("PENDLE/sec", justify="right", style="green")
    history.add_column("Until")
    for update in info.updates[:MAX_DISPLAY]:
        history.add_row(
            _when(update.timestamp),
            format_units(update.pendle_per_sec, pendle.decimals),
            _when(update.incentive_ends_at),
        )
    console.print(history)
    if len(info.updates) > MAX_DISPLAY:
        console.print(f"...and {len(info.updates) - MAX_DISPLAY} more updates")

    claims = Table(title="Claimed Rewards History", expand=True)
    claims.add_column("Date", no_wrap=True)
    claims.add_column("Claimed", justify="right", style="green")
    for claim in info.claims[:MAX_DISPLAY]:
        claims.add_row(
            _when(claim.timestamp),
            f"{format_units(claim.amount, pendle.decimals)} {pendle.symbol}",
        )
    console.print(claims)
    if len(info.claims) > MAX_DISPLAY:
        console.print(f"...and {len(info.claims) - MAX_DISPLAY} more claims")

    total = sum(claim.amount for claim in info.claims)
    console.print(
        f"Total {pendle.symbol} claimed: [bold green]{format_units(total, pendle.decimals)}[/]"
    )


def print_position_apr(result: PositionAPRResult) -> None:
    item = result.item
    table = _key_value_table("green")
    table.add_row("Market", f"{item.name} ({item.address})")
    table.add_row("Position", result.position.type)
    table.add_row("Deposit", f"${item.deposit_value} on {item.deposit_time}")
    for reward in result.rewards:
        table.add_row(
            f"Pending {reward.token.symbol}",
            f"{reward.formatted} (${reward.value_usd:.4f})",
        )
    table.add_row("Total reward value", f"${item.reward_value}")
    table.add_row("Days elapsed", item.total_days)
    table.add_row("[bold]APR[/]", f"[bold]{item.apr}%[/]")
    console.print(Panel(table, title="[bold]Position APR[/]", border_style="green"))


def print_pt_position(position: PTPosition) -> None:
    quote = position.quote
    table = _key_value_table("green")
    table.add_row("Market", f"{position.pt_symbol} ({position.market_address})")
    table.add_row(
        "Maturity Date",
        f"{position.maturity_date.isoformat()} ({quote.days_to_maturity:.2f} days remaining)",
    )
    table.add_row("PT Token Balance", f"{quote.tokens:.6f}")
    table.add_row("Estimated Initial Value", f"${quote.initial_value:.4f}")
    table.add_row("Current Value", f"${quote.current_value:.4f}")
    table.add_row("Value at Maturity", f"${quote.value_at_maturity:.4f}")
    table.add_row("Implied Rate", f"{quote.implied_rate_percent:.2f}%")
    table.add_row("PT Price", f"{quote.price:.6f}")
    table.add_row("Estimated Purchase Price", f"{quote.purchase_price:.6f}")
    table.add_row("Fixed APY", f"{quote.fixed_apy:.2f}%")
    table.add_row(
        "Projected Gain",
        f"${quote.gain_absolute:.4f} ({quote.gain_percentage:.2f}%)",
    )
    console.print(Panel(table, title="[bold]Pendle PT Rewards Analysis[/]", border_style="cyan"))
