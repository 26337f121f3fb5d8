from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import MARKET, PT_TOKEN, SY_TOKEN, TOKEN_A, TOKEN_B, USER, YT_TOKEN
from pendle_rewards.clients.chain import MarketState
from pendle_rewards.domain import MarketRewardClaim, RewardRateSnapshot, RewardUpdate
from pendle_rewards.metadata import MarketDescriptor, TokenDescriptor, Unresolved
from pendle_rewards.pipeline.market_rewards import (
    APR_UNAVAILABLE,
    CurrentRewardRate,
    MarketRewardInfo,
)
from pendle_rewards.processors import PTPosition, RedeemEvent, RewardLine, price_pt
from pendle_rewards.processors.reward_enricher import TokenReferenceEncoding
from pendle_rewards.report import (
    build_current_rate_report,
    build_market_rewards_report,
    build_pt_rewards_report,
    build_reward_updates_report,
    build_user_rewards_report,
    market_info_files,
)
from pendle_rewards.report.generator import incentive_countdown

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)

AAA = TokenDescriptor(TOKEN_A, "Token A", "AAA", 6)
PENDLE = TokenDescriptor(TOKEN_B, "Pendle", "PENDLE", 18)
PT = TokenDescriptor(PT_TOKEN, "PT wstkscUSD", "PT-wstkscUSD", 6)
SY = TokenDescriptor(SY_TOKEN, "SY wstkscUSD", "SY-wstkscUSD", 6)
YT = TokenDescriptor(YT_TOKEN, "YT wstkscUSD", "YT-wstkscUSD", 6)
MARKET_DESCRIPTOR = MarketDescriptor(
    address=MARKET,
    principal_token=PT,
    yield_token=YT,
    standardized_yield=SY,
    reward_tokens=(PENDLE, AAA),
)


@pytest.fixture
def rate() -> CurrentRewardRate:
    snapshot = RewardRateSnapshot(
        market=MARKET,
        pendle_per_sec=5 * 10**16,
        accumulated_pendle=12 * 10**18,
        last_updated=int(NOW.timestamp()) - 60,
        incentive_ends_at=int((NOW + timedelta(days=2, hours=5)).timestamp()),
    )
    return CurrentRewardRate(
        snapshot=snapshot, market=MARKET_DESCRIPTOR, pendle_token=PENDLE, pendle_price=None
    )


def _line(token: TokenDescriptor, amount: int, amount_formatted: str) -> RewardLine:
    return RewardLine(
        reference="0",
        encoding=TokenReferenceEncoding.DECIMAL_INDEX,
        token=token,
        amount=amount,
        amount_formatted=amount_formatted,
    )


def test_incentive_countdown():
    assert incentive_countdown(NOW + timedelta(days=3, hours=4, minutes=59), NOW) == (3, 4)
    assert incentive_countdown(NOW - timedelta(days=1), NOW) == (0, 0)


def test_user_rewards_report_skips_unresolved_lines():
    unknown = Unresolved(address="0x" + "0" * 40, reason="zero address").descriptor
    event = RedeemEvent(
        id="0xe-1",
        user=USER,
        market=MARKET_DESCRIPTOR,
        timestamp=NOW,
        transaction_hash="0xabc",
        rewards=[_line(AAA, 1_000_000, "1.0")],
        unresolved_rewards=[_line(unknown, 2_000_000, "0.000000000002")],
    )

    report = build_user_rewards_report(USER, "week", [event], NOW)

    assert report.rows == [
        [
            "2025-03-01T00:00:00Z",
            "2025-03-01 00:00:00",
            "0xabc",
            "PT-wstkscUSD",
            MARKET,
            "AAA",
            "1.0",
        ]
    ]
    assert f"# Market: {MARKET} (PT-wstkscUSD)" in report.header
    assert f"# Reward tokens: AAA ({TOKEN_A})" in report.header
    assert report.time_range == "week"


def test_market_rewards_report(rate):
    claim = MarketRewardClaim(
        id="0xc", market=MARKET, amount=15 * 10**17, timestamp=NOW, block_number=42
    )

    report = build_market_rewards_report(MARKET, "month", [claim], rate, NOW)

    assert report.rows == [
        ["2025-03-01T00:00:00Z", "2025-03-01 00:00:00", MARKET, "1.5", "PENDLE", "42"]
    ]
    assert "# Current PENDLE reward rate: 0.05 PENDLE/second" in report.header
    assert "# Incentive ends in: 2 days, 5 hours (2025-03-03T05:00:00Z)" in report.header
    assert "# Reward tokens: PENDLE, AAA" in report.header


def test_reward_updates_report(rate):
    update = RewardUpdate(
        id="0xu",
        market=MARKET,
        pendle_per_sec=10**17,
        incentive_ends_at=NOW + timedelta(days=7),
        timestamp=NOW - timedelta(hours=12),
        block_number=7,
    )

    report = build_reward_updates_report(MARKET, "all", [update], rate, NOW)

    assert report.rows[0][3:] == ["0.1", "2025-03-08T00:00:00Z", "7.5", "7"]


def test_current_rate_report(rate):
    report = build_current_rate_report(MARKET, rate, NOW)

    (row,) = report.rows
    assert row[1] == "0.05"
    assert row[2] == "1576800.0"
    assert row[3] == "N/A"
    assert row[4] == APR_UNAVAILABLE
    assert row[8:] == ["PT-wstkscUSD", "SY-wstkscUSD", "YT-wstkscUSD", "PENDLE,AAA"]
    assert "# PENDLE price: N/A" in report.header
    assert "# Accumulated unclaimed PENDLE: 12.0" in report.header


def test_pt_rewards_report():
    expiry = int(NOW.timestamp()) + 365 * 86_400
    state = MarketState(
        total_pt=1, total_sy=1, total_lp=1, expiry=expiry, last_ln_implied_rate=0
    )
    position = PTPosition(
        market_address=MARKET,
        pt_address=PT_TOKEN,
        pt_symbol="PT-wstkscUSD",
        expiry=expiry,
        raw_ln_implied_rate=0,
        quote=price_pt(state, int(NOW.timestamp()), tokens_held=2.0),
    )

    report = build_pt_rewards_report(position, MARKET_DESCRIPTOR, NOW)

    assert report.rows[0] == [
        MARKET,
        "PT-wstkscUSD",
        "2026-03-01",
        "365.00",
        "1.000000",
        "2.000000",
        "1.000000",
        "Unknown",
        "0.00",
        "0.00",
        "2.0000",
        "2.0000",
        "0.00",
    ]
    assert "# User holds 2.000000 PT-wstkscUSD" in report.header


def test_market_info_files(rate):
    claim = MarketRewardClaim(
        id="0xc", market=MARKET, amount=10**18, timestamp=NOW, block_number=1
    )
    info = MarketRewardInfo(
        market=MARKET, time_range="week", current_rate=rate, updates=[], claims=[claim]
    )

    files = market_info_files(info)

    prefix = f"market_{MARKET[:8]}"
    assert sorted(files) == sorted(
        [
            f"{prefix}_current_rate.json",
            f"{prefix}_updates_week.json",
            f"{prefix}_claimed_week.json",
        ]
    )
    current = files[f"{prefix}_current_rate.json"]
    assert current["pendlePerSecFormatted"] == "0.05"
    assert current["pendlePrice"] is None
    assert current["marketInfo"]["rewardTokens"][0]["symbol"] == "PENDLE"
    assert files[f"{prefix}_claimed_week.json"][0]["amountFormatted"] == "1.0"
    assert files[f"{prefix}_updates_week.json"] == []


def test_history_reports_without_reward_rate():
    claim = MarketRewardClaim(
        id="0xc", market=MARKET, amount=15 * 10**17, timestamp=NOW, block_number=42
    )

    report = build_market_rewards_report(MARKET, "all", [claim], None, NOW)

    assert report.header == [
        "# Market Rewards Report",
        "# Generated: 2025-03-01T00:00:00Z",
        f"# Market: {MARKET}",
        "# Error retrieving market details",
        "# ",
    ]
    assert report.rows[0][3:5] == ["1.5", "UNKNOWN"]

    updates = build_reward_updates_report(MARKET, "all", [], None, NOW)
    assert "# Error retrieving market details" in updates.header
