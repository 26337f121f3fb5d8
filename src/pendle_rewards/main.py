"""CLI entrypoint for pendle-rewards."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, Coroutine

import typer

from .errors import RewardsError
from .logger import setup_logging
from .pipeline.timeframe import DEFAULT_TIME_RANGE, parse_date
from .settings import RewardsSettings
from .state import AppState

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Pendle reward, APR and PT yield reports for Sonic markets.",
)

TimeRangeArg = Annotated[
    str,
    typer.Argument(help="day, week, month, all, or a YYYY-MM-DD start date."),
]


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("pendle_rewards")


def _state(ctx: typer.Context) -> AppState:
    settings: RewardsSettings = ctx.obj
    return AppState.from_settings(settings, _build_logger())


def _execute(coro: Coroutine[Any, Any, None]) -> None:
    """Run a command coroutine, turning library errors into exit code 1."""
    from .report.formatter import print_error

    try:
        asyncio.run(coro)
    except RewardsError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


def _parse_date_option(value: str, param: str) -> datetime:
    try:
        return parse_date(value)
    except ValueError as e:
        raise typer.BadParameter(
            f"expected a YYYY-MM-DD date, got {value!r}", param_hint=param
        ) from e


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [pendle_rewards] table).",
        ),
    ] = None,
    rpc_url: Annotated[
        str | None,
        typer.Option("--rpc-url", help="Sonic RPC endpoint."),
    ] = None,
    subgraph_url: Annotated[
        str | None,
        typer.Option("--subgraph-url", help="Rewards subgraph GraphQL endpoint."),
    ] = None,
    export_dir: Annotated[
        Path | None,
        typer.Option("--export-dir", help="Directory receiving TSV/JSON exports."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option("--show-config", help="Print effective config and exit."),
    ] = False,
):
    """Load configuration shared by every report command."""
    if config_path:
        os.environ["PENDLE_REWARDS_CONFIG"] = str(config_path)

    init_kwargs: dict[str, Any] = {}
    if rpc_url is not None:
        init_kwargs["rpc_url"] = rpc_url
    if subgraph_url is not None:
        init_kwargs["subgraph_url"] = subgraph_url
    if export_dir is not None:
        init_kwargs["export_dir"] = export_dir
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    settings = RewardsSettings(**init_kwargs)
    setup_logging(settings.log_level)

    if show_config:
        typer.echo(json.dumps(settings.as_safe_dict(), indent=2))
        raise typer.Exit(code=0)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)

    ctx.obj = settings


@app.command("user-rewards")
def user_rewards(
    ctx: typer.Context,
    user: Annotated[str, typer.Argument(help="User wallet address.")],
    time_range: TimeRangeArg = DEFAULT_TIME_RANGE,
):
    """Reward redemptions of a user, with per-token totals."""
    from .pipeline.user_rewards import collect_user_rewards
    from .report import build_user_rewards_report, write_tsv
    from .report.formatter import print_exported, print_user_rewards

    state = _state(ctx)

    async def run() -> None:
        result = await collect_user_rewards(state, user, time_range)
        print_user_rewards(result)
        now = datetime.now(timezone.utc)
        report = build_user_rewards_report(user, time_range, result.events, now)
        print_exported(write_tsv(report, state.settings.export_dir, now))

    _execute(run())


@app.command("market-rewards")
def market_rewards(
    ctx: typer.Context,
    market: Annotated[str, typer.Argument(help="Pendle market address.")],
    time_range: TimeRangeArg = DEFAULT_TIME_RANGE,
):
    """PENDLE rewards claimed by a market."""
    from .pipeline.market_rewards import collect_claimed_rewards, pendle_token_of
    from .report import build_market_rewards_report, write_tsv
    from .report.formatter import print_claimed_rewards, print_exported

    state = _state(ctx)

    async def run() -> None:
        claims, rate = await collect_claimed_rewards(state, market, time_range)
        print_claimed_rewards(claims, pendle_token_of(rate))
        now = datetime.now(timezone.utc)
        report = build_market_rewards_report(market, time_range, claims, rate, now)
        print_exported(write_tsv(report, state.settings.export_dir, now))

    _execute(run())


@app.command("reward-updates")
def reward_updates(
    ctx: typer.Context,
    market: Annotated[str, typer.Argument(help="Pendle market address.")],
    time_range: TimeRangeArg = DEFAULT_TIME_RANGE,
):
    """History of a market's PENDLE emission rate."""
    from .pipeline.market_rewards import collect_reward_updates, pendle_token_of
    from .report import build_reward_updates_report, write_tsv
    from .report.formatter import print_exported, print_reward_updates

    state = _state(ctx)

    async def run() -> None:
        updates, rate = await collect_reward_updates(state, market, time_range)
        print_reward_updates(updates, pendle_token_of(rate))
        now = datetime.now(timezone.utc)
        report = build_reward_updates_report(market, time_range, updates, rate, now)
        print_exported(write_tsv(report, state.settings.export_dir, now))

    _execute(run())


@app.command("reward-rate")
def reward_rate(
    ctx: typer.Context,
    market: Annotated[str, typer.Argument(help="Pendle market address.")],
):
    """Current PENDLE reward rate of a market."""
    from .pipeline.market_rewards import current_reward_rate
    from .report import build_current_rate_report, write_tsv
    from .report.formatter import print_current_rate, print_exported

    state = _state(ctx)

    async def run() -> None:
        rate = await current_reward_rate(state, market)
        now = datetime.now(timezone.utc)
        print_current_rate(rate, now)
        report = build_current_rate_report(market, rate, now)
        print_exported(write_tsv(report, state.settings.export_dir, now))

    _execute(run())


@app.command("market-info")
def market_info(
    ctx: typer.Context,
    market: Annotated[str, typer.Argument(help="Pendle market address.")],
    time_range: TimeRangeArg = DEFAULT_TIME_RANGE,
):
    """Claims, rate updates and current rate of a market, exported as JSON."""
    from .pipeline.market_rewards import collect_market_info
    from .report import market_info_files, write_json
    from .report.formatter import print_exported, print_market_info

    state = _state(ctx)

    async def run() -> None:
        info = await collect_market_info(state, market, time_range)
        print_market_info(info, datetime.now(timezone.utc))
        for filename, payload in market_info_files(info).items():
            print_exported(write_json(payload, state.settings.export_dir, filename))

    _execute(run())


@app.command("position-apr")
def position_apr(
    ctx: typer.Context,
    market: Annotated[str, typer.Argument(help="Pendle market address.")],
    user: Annotated[str, typer.Argument(help="User wallet address.")],
    deposit_usd: Annotated[float, typer.Argument(help="Deposit value in USD.")],
    deposit_date: Annotated[str, typer.Argument(help="Deposit date (YYYY-MM-DD).")],
):
    """Reward APR of a user's LP or PT position from pending rewards."""
    from .pipeline.positions import calculate_position_apr
    from .report import build_position_apr_report, write_tsv
    from .report.formatter import print_exported, print_position_apr

    deposited_at = _parse_date_option(deposit_date, "DEPOSIT_DATE")
    state = _state(ctx)

    async def run() -> None:
        now = datetime.now(timezone.utc)
        result = await calculate_position_apr(
            state, market, user, deposit_usd, deposited_at, now=now
        )
        print_position_apr(result)
        report = build_position_apr_report(market, user, result, now)
        print_exported(write_tsv(report, state.settings.export_dir, now))

    _execute(run())


@app.command("pt-rewards")
def pt_rewards(
    ctx: typer.Context,
    market: Annotated[str, typer.Argument(help="Pendle market address.")],
    user: Annotated[str, typer.Argument(help="User wallet address.")],
    deposit: Annotated[
        float | None, typer.Argument(help="Amount paid for the PT position.")
    ] = None,
    purchase_date: Annotated[
        str | None, typer.Argument(help="Purchase date (YYYY-MM-DD).")
    ] = None,
):
    """Fixed-yield analysis of a user's PT position."""
    from .pipeline.positions import calculate_pt_rewards
    from .report import build_pt_rewards_report, write_tsv
    from .report.formatter import console, print_exported, print_pt_position

    purchased_at = (
        _parse_date_option(purchase_date, "DATE") if purchase_date else None
    )
    state = _state(ctx)

    async def run() -> None:
        position, descriptor = await calculate_pt_rewards(
            state, market, user, deposit_amount=deposit, purchase_date=purchased_at
        )
        if position is None:
            console.print("[yellow]No PT tokens data available[/]")
            return
        print_pt_position(position)
        now = datetime.now(timezone.utc)
        report = build_pt_rewards_report(position, descriptor, now)
        print_exported(write_tsv(report, state.settings.export_dir, now))

    _execute(run())


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
