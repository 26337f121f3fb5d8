from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import MARKET, TOKEN_A, TOKEN_B
from pendle_rewards.domain import RewardUpdate
from pendle_rewards.errors import InvalidInput
from pendle_rewards.metadata import TokenDescriptor
from pendle_rewards.processors import (
    PricedReward,
    average_pendle_per_sec,
    build_portfolio_item,
    calculate_apr,
    round_to_significant_digits,
)

AAA = TokenDescriptor(address=TOKEN_A, name="Token A", symbol="AAA", decimals=6)
BBB = TokenDescriptor(address=TOKEN_B, name="Token B", symbol="BBB", decimals=18)
START = datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_calculate_apr():
    assert calculate_apr(100, 10, 365) == 10.00
    assert calculate_apr(1000, 100, 365) == 10.0
    assert calculate_apr(1000, 10, 36.5) == 10.0
    assert calculate_apr(1000, 0, 10) == 0.0


@pytest.mark.parametrize(
    "deposit, rewards, days",
    [(0, 1, 1), (-5, 1, 1), (100, -1, 1), (100, 1, 0), (100, 1, -2)],
)
def test_calculate_apr_rejects_bad_input(deposit, rewards, days):
    with pytest.raises(InvalidInput):
        calculate_apr(deposit, rewards, days)


@pytest.mark.parametrize(
    "value, digits, expected",
    [
        (1234.5678, 6, "1234.57"),
        (0.000123456789, 6, "0.000123457"),
        (1234567, 6, "1234570"),
        (100, 6, "100"),
        ("2.5", 1, "3"),
        (36.5, 6, "36.5"),
        (0, 6, "0"),
        ("0.000", 4, "0"),
    ],
)
def test_round_to_significant_digits(value, digits, expected):
    assert round_to_significant_digits(value, digits) == expected


@pytest.mark.parametrize("value", ["abc", float("nan"), float("inf")])
def test_round_to_significant_digits_rejects_non_numbers(value):
    with pytest.raises(InvalidInput):
        round_to_significant_digits(value)


def _update(pendle_per_sec: int) -> RewardUpdate:
    return RewardUpdate(
        id=f"0x{pendle_per_sec}",
        market=MARKET,
        pendle_per_sec=pendle_per_sec,
        incentive_ends_at=START + timedelta(days=7),
        timestamp=START,
        block_number=1,
    )


def test_average_pendle_per_sec():
    assert average_pendle_per_sec([]) == 0
    assert average_pendle_per_sec([_update(10), _update(20), _update(25)]) == 18
    assert _update(1).incentive_duration_days == 7.0


def test_priced_reward_value():
    reward = PricedReward(token=AAA, amount=10_000_000, price_usd=2.5)

    assert reward.formatted == "10.0"
    assert reward.value_usd == 25.0


def test_build_portfolio_item():
    rewards = [
        PricedReward(token=AAA, amount=10_000_000, price_usd=2.5),
        PricedReward(token=BBB, amount=5 * 10**18, price_usd=1.0),
        PricedReward(token=BBB, amount=10**18, price_usd=0.0),
    ]

    item = build_portfolio_item(
        market=MARKET,
        name="PT-wstkscUSD",
        position_type="Pendle Market",
        deposit_asset="PT-wstkscUSD",
        deposit_amount="1052.631579",
        deposit_value_usd=1000.0,
        deposit_time=START,
        rewards=rewards,
        now=START + timedelta(days=30),
    )

    assert item.deposit_time == "25/01/01 00:00:00"
    assert item.deposit_amount0 == "1052.63"
    assert item.deposit_value == "1000"
    assert (item.reward_asset0, item.reward_amount0, item.reward_value0) == ("AAA", "10", "25")
    assert (item.reward_asset1, item.reward_amount1, item.reward_value1) == ("BBB", "5", "5")
    assert item.reward_value == "30"
    assert item.total_days == "30"
    assert item.apr == "36.5"
    assert MARKET in item.deposit_link
    assert item.to_dict()["type"] == "Pendle Market"


def test_build_portfolio_item_without_rewards():
    item = build_portfolio_item(
        market=MARKET,
        name="Pendle Market",
        position_type="Pendle Market",
        deposit_asset="LP",
        deposit_amount=12.5,
        deposit_value_usd=500.0,
        deposit_time=START,
        rewards=[],
        now=START + timedelta(days=1),
    )

    assert item.apr == "0"
    assert item.reward_asset0 == ""
    assert item.reward_value == "0"
