from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import MARKET, PT_TOKEN, TOKEN_A, TOKEN_B, USER
from pendle_rewards.constants import ZERO_ADDRESS
from pendle_rewards.metadata import MetadataCache
from pendle_rewards.processors import (
    RewardEnricher,
    TokenReferenceEncoding,
    decode_token_reference,
    select_reward_token,
    total_rewards_by_token,
)


def _record(rewards=None, amounts=None, market=None, event_id="0xevent-0"):
    record = {
        "id": event_id,
        "user": USER,
        "market": market
        or {
            "id": MARKET,
            "address": MARKET,
            "principalToken": PT_TOKEN,
            "createdAt": "1735689600",
        },
        "blockTimestamp": "1738000000",
        "transactionHash": "0x" + "ab" * 32,
    }
    if rewards is not None:
        record["rewards"] = [
            {"id": f"{event_id}-{i}", "token": token, "amount": amount}
            for i, (token, amount) in enumerate(rewards)
        ]
    if amounts is not None:
        record["amounts"] = amounts
    return record


@pytest.fixture
def enricher(chain):
    return RewardEnricher(MetadataCache(chain))


@pytest.mark.parametrize(
    "raw, encoding, index",
    [
        ("0", TokenReferenceEncoding.DECIMAL_INDEX, 0),
        ("12", TokenReferenceEncoding.DECIMAL_INDEX, 12),
        ("0x01", TokenReferenceEncoding.HEX_FIRST_BYTE, 1),
        ("0x0a00000000", TokenReferenceEncoding.HEX_FIRST_BYTE, 10),
        (TOKEN_A, TokenReferenceEncoding.ADDRESS, None),
        ("0x1", TokenReferenceEncoding.INVALID, None),
        ("reward", TokenReferenceEncoding.INVALID, None),
        ("", TokenReferenceEncoding.INVALID, None),
    ],
)
def test_decode_token_reference(raw, encoding, index):
    reference = decode_token_reference(raw)

    assert reference.encoding is encoding
    assert reference.index == index


@pytest.mark.asyncio
async def test_select_reward_token(chain):
    market = await MetadataCache(chain).resolve_market(MARKET)

    assert select_reward_token(decode_token_reference("1"), market) == TOKEN_B
    assert select_reward_token(decode_token_reference("0x00ff"), market) == TOKEN_A
    assert select_reward_token(decode_token_reference("2"), market) == ZERO_ADDRESS
    assert select_reward_token(decode_token_reference("0x05"), market) == ZERO_ADDRESS
    assert select_reward_token(decode_token_reference("bogus"), market) == ZERO_ADDRESS


@pytest.mark.asyncio
async def test_enrich_formats_with_token_decimals(enricher):
    event = await enricher.enrich(_record(rewards=[("0", "1000000"), ("1", "2000000")]))

    assert [line.token.symbol for line in event.rewards] == ["AAA", "BBB"]
    assert [line.amount_formatted for line in event.rewards] == [
        "1.0",
        "0.000000000002",
    ]
    assert event.unresolved_rewards == []
    assert event.market.principal_token.symbol == "PT-wstkscUSD"
    assert event.market.created_at == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert event.timestamp == datetime.fromtimestamp(1738000000, tz=timezone.utc)


@pytest.mark.asyncio
async def test_out_of_range_index_becomes_unknown_line(enricher):
    event = await enricher.enrich(_record(rewards=[("0", "5"), ("7", "2000000")]))

    assert len(event.rewards) == 1
    (unknown,) = event.unresolved_rewards
    assert unknown.token.address == ZERO_ADDRESS
    assert unknown.token.symbol == "UNKNOWN"
    assert unknown.amount_formatted == "0.000000000002"
    assert len(event.all_rewards) == 2


@pytest.mark.asyncio
async def test_legacy_address_reference(enricher):
    event = await enricher.enrich(
        _record(rewards=[(TOKEN_B, "10"), ("0x" + "9" * 40, "10")])
    )

    assert event.rewards[0].token.address == TOKEN_B
    assert event.rewards[0].encoding is TokenReferenceEncoding.ADDRESS
    assert event.unresolved_rewards[0].token.address == ZERO_ADDRESS


@pytest.mark.asyncio
async def test_legacy_hex_first_byte_reference(enricher):
    event = await enricher.enrich(_record(rewards=[("0x01" + "00" * 31, "3")]))

    assert event.rewards[0].token.symbol == "BBB"
    assert event.rewards[0].encoding is TokenReferenceEncoding.HEX_FIRST_BYTE


@pytest.mark.asyncio
async def test_amounts_list_uses_positions(enricher):
    event = await enricher.enrich(_record(amounts=["1500000", "0"]))

    assert [(line.token.symbol, line.amount) for line in event.rewards] == [
        ("AAA", 1500000),
        ("BBB", 0),
    ]
    assert event.rewards[0].amount_formatted == "1.5"


@pytest.mark.asyncio
async def test_unreadable_market_keeps_subgraph_principal_token(chain, enricher):
    chain.broken.add(MARKET)

    event = await enricher.enrich(_record(rewards=[("0", "1")]))

    assert event.market.principal_token.symbol == "PT-wstkscUSD"
    assert event.market.reward_tokens == ()
    assert event.unresolved_rewards[0].token.address == ZERO_ADDRESS


@pytest.mark.asyncio
async def test_market_given_as_plain_address(enricher):
    event = await enricher.enrich(_record(rewards=[("0", "1")], market=MARKET))

    assert event.market.address == MARKET
    assert event.market.created_at is None


@pytest.mark.asyncio
async def test_totals_conserve_amounts(enricher):
    big = 10**30
    records = [
        _record(rewards=[("0", str(big)), ("1", "7")], event_id="0xe-1"),
        _record(rewards=[("1", str(big - 1)), ("9", "4")], event_id="0xe-2"),
        _record(rewards=[("0", "1"), ("9", "6")], event_id="0xe-3"),
    ]
    events = await enricher.enrich_all(records)

    totals = total_rewards_by_token(events)

    assert [total.token.symbol for total in totals] == ["AAA", "BBB", "UNKNOWN"]
    assert [total.amount for total in totals] == [big + 1, big + 6, 10]
    assert sum(total.amount for total in totals) == sum(
        line.amount for event in events for line in event.all_rewards
    )
    assert totals[0].formatted == "1000000000000000000000000.000001"


@pytest.mark.asyncio
async def test_totals_can_skip_unresolved(enricher):
    events = [await enricher.enrich(_record(rewards=[("0", "1"), ("9", "6")]))]

    totals = total_rewards_by_token(events, include_unresolved=False)

    assert [total.token.symbol for total in totals] == ["AAA"]


@pytest.mark.asyncio
async def test_malformed_amounts_become_zero_unresolved_lines(enricher, caplog):
    record = _record(rewards=[("0", "1000000"), ("1", "-5"), ("0", "1.5e6"), ("1", None)])

    event = await enricher.enrich(record)

    assert [line.amount for line in event.rewards] == [1000000]
    assert [
        (line.token.symbol, line.amount, line.amount_formatted)
        for line in event.unresolved_rewards
    ] == [("BBB", 0, "0.0"), ("AAA", 0, "0.0"), ("BBB", 0, "0.0")]
    assert "Dropping reward amount '-5'" in caplog.text

    totals = total_rewards_by_token([event])
    assert [(total.token.symbol, total.amount) for total in totals] == [
        ("AAA", 1000000),
        ("BBB", 0),
    ]
