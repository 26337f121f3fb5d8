from __future__ import annotations

import logging
from collections import Counter
from types import SimpleNamespace

import pytest

from pendle_rewards.clients.chain import MarketState, MarketTokens, RewardData
from pendle_rewards.errors import ContractReadError, PriceUnavailable
from pendle_rewards.metadata import MetadataCache

TOKEN_A = "0x00000000000000000000000000000000000000a1"
TOKEN_B = "0x00000000000000000000000000000000000000b2"
PT_TOKEN = "0x0000000000000000000000000000000000000c03"
SY_TOKEN = "0x0000000000000000000000000000000000000d04"
YT_TOKEN = "0x0000000000000000000000000000000000000e05"
MARKET = "0x00000000000000000000000000000000000f0006"
USER = "0x1111111111111111111111111111111111111111"


class FakeChain:
    """In-memory stand-in for ``ChainReader`` with per-method call counts."""

    def __init__(self):
        self.tokens: dict[str, tuple[str, str, int]] = {}
        self.markets: dict[str, tuple[MarketTokens, list[str]]] = {}
        self.balances: dict[tuple[str, str], int] = {}
        self.expiries: dict[str, int] = {}
        self.states: dict[str, MarketState] = {}
        self.accrued: dict[tuple[str, str, str], int] = {}
        self.reward_datas: dict[str, RewardData] = {}
        self.pendle_address: str | None = None
        self.broken: set[str] = set()
        self.calls: Counter[str] = Counter()

    def _check(self, method: str, address: str) -> None:
        self.calls[method] += 1
        if address.lower() in self.broken:
            raise ContractReadError(f"{method}() reverted on {address}")

    def add_token(self, address: str, name: str, symbol: str, decimals: int) -> None:
        self.tokens[address.lower()] = (name, symbol, decimals)

    async def token_name(self, token: str) -> str:
        self._check("name", token)
        return self.tokens[token.lower()][0]

    async def token_symbol(self, token: str) -> str:
        self._check("symbol", token)
        return self.tokens[token.lower()][1]

    async def token_decimals(self, token: str) -> int:
        self._check("decimals", token)
        return self.tokens[token.lower()][2]

    async def balance_of(self, token: str, account: str) -> int:
        self._check("balanceOf", token)
        return self.balances.get((token.lower(), account.lower()), 0)

    async def market_tokens(self, market: str) -> MarketTokens:
        self._check("readTokens", market)
        return self.markets[market.lower()][0]

    async def reward_tokens(self, market: str) -> list[str]:
        self._check("getRewardTokens", market)
        return list(self.markets[market.lower()][1])

    async def market_expiry(self, market: str) -> int:
        self._check("expiry", market)
        return self.expiries[market.lower()]

    async def market_state(self, market: str, router: str) -> MarketState:
        self._check("readState", market)
        return self.states[market.lower()]

    async def user_reward_accrued(self, market: str, token: str, user: str) -> int:
        self._check("userReward", market)
        return self.accrued.get((market.lower(), token.lower(), user.lower()), 0)

    async def pendle_token(self) -> str:
        self.calls["pendle"] += 1
        if self.pendle_address is None:
            raise ContractReadError("pendle() reverted")
        return self.pendle_address

    async def reward_data(self, market: str) -> RewardData:
        self._check("rewardData", market)
        return self.reward_datas[market.lower()]


@pytest.fixture
def chain() -> FakeChain:
    fake = FakeChain()
    fake.add_token(TOKEN_A, "Token A", "AAA", 6)
    fake.add_token(TOKEN_B, "Token B", "BBB", 18)
    fake.add_token(PT_TOKEN, "PT wstkscUSD", "PT-wstkscUSD", 6)
    fake.add_token(SY_TOKEN, "SY wstkscUSD", "SY-wstkscUSD", 6)
    fake.add_token(YT_TOKEN, "YT wstkscUSD", "YT-wstkscUSD", 6)
    fake.markets[MARKET.lower()] = (
        MarketTokens(
            standardized_yield=SY_TOKEN, principal_token=PT_TOKEN, yield_token=YT_TOKEN
        ),
        [TOKEN_A, TOKEN_B],
    )
    return fake


class FakePager:
    """Serves canned subgraph records per entity and records the queries."""

    def __init__(self, records: dict[str, list[dict]] | None = None):
        self.records = records or {}
        self.queries = []

    async def fetch_all(self, query):
        self.queries.append(query)
        return list(self.records.get(query.entity, []))


class FakePrices:
    """Price source keyed by feed id; unknown feeds are unavailable."""

    def __init__(self, prices: dict[str, float] | None = None, feeds: dict[str, str] | None = None):
        self.prices = prices or {}
        self.feeds = {k.lower(): v for k, v in (feeds or {}).items()}
        self.requested: list[str] = []

    def feed_id_for_address(self, address: str) -> str | None:
        return self.feeds.get(address.lower())

    async def get_price(self, feed_id: str, currency: str = "usd") -> float:
        self.requested.append(feed_id)
        if feed_id not in self.prices:
            raise PriceUnavailable(f"No price available for {feed_id}/{currency}")
        return self.prices[feed_id]


@pytest.fixture
def pager() -> FakePager:
    return FakePager()


@pytest.fixture
def prices() -> FakePrices:
    return FakePrices()


@pytest.fixture
def app_state(chain, pager, prices, tmp_path):
    settings = SimpleNamespace(
        pendle_router_address="0x888888888889758F76e7103c6CbF23ABbF58F946",
        export_dir=tmp_path / "exports",
    )
    return SimpleNamespace(
        settings=settings,
        logger=logging.getLogger("pendle_rewards.tests"),
        chain=chain,
        pager=pager,
        metadata=MetadataCache(chain),
        prices=prices,
    )
