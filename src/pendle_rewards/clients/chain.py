"""Async facade over the web3 contract reads used by the reports.

Every read runs the blocking web3 call in a worker thread, so independent
reads can be awaited jointly with ``asyncio.gather``. Failures of any kind
(reverts, ABI mismatches, provider errors) surface as ``ContractReadError``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from eth_typing import URI, ChecksumAddress
from web3 import Web3

from ..abi import load_erc20_abi, load_gauge_controller_abi, load_pendle_market_abi
from ..errors import ContractReadError
from ..logger import TRACE, get_logger
from ..settings import RewardsSettings

logger = get_logger(__name__)


@dataclass(frozen=True)
class MarketTokens:
    """Constituent token addresses returned by ``PendleMarket.readTokens()``."""

    standardized_yield: str
    principal_token: str
    yield_token: str


@dataclass(frozen=True)
class MarketState:
    """Subset of ``PendleMarket.readState(router)`` used for PT pricing."""

    total_pt: int
    total_sy: int
    total_lp: int
    expiry: int
    last_ln_implied_rate: int


@dataclass(frozen=True)
class RewardData:
    """Raw ``GaugeController.rewardData(market)`` tuple."""

    pendle_per_sec: int
    accumulated_pendle: int
    last_updated: int
    incentive_ends_at: int


class ChainReader:
    """Contract read interface for ERC20 tokens, markets and the gauge controller."""

    def __init__(self, w3: Web3, gauge_controller_address: str):
        self.w3 = w3
        self.gauge_controller_address = gauge_controller_address

    @classmethod
    def from_settings(cls, settings: RewardsSettings) -> "ChainReader":
        w3 = Web3(
            Web3.HTTPProvider(
                URI(settings.rpc_url),
                request_kwargs={"timeout": settings.request_timeout},
            )
        )
        return cls(w3, settings.gauge_controller_address)

    def _checksum(self, address: str) -> ChecksumAddress:
        try:
            return Web3.to_checksum_address(address)
        except ValueError as e:
            raise ContractReadError(f"Invalid address {address!r}: {e}") from e

    async def _call(
        self, address: str, abi: list[dict], fn_name: str, *args: Any
    ) -> Any:
        contract = self.w3.eth.contract(address=self._checksum(address), abi=abi)
        fn = contract.functions[fn_name](*args)
        logger.log(TRACE, "eth_call %s.%s%s", address, fn_name, args)
        try:
            return await asyncio.to_thread(fn.call)
        except Exception as e:
            raise ContractReadError(
                f"Call {fn_name}() on {address} failed: {e}"
            ) from e

    # --- ERC20 ---

    async def token_name(self, token: str) -> str:
        return str(await self._call(token, load_erc20_abi(), "name"))

    async def token_symbol(self, token: str) -> str:
        return str(await self._call(token, load_erc20_abi(), "symbol"))

    async def token_decimals(self, token: str) -> int:
        return int(await self._call(token, load_erc20_abi(), "decimals"))

    async def balance_of(self, token: str, account: str) -> int:
        return int(
            await self._call(
                token, load_erc20_abi(), "balanceOf", self._checksum(account)
            )
        )

    # --- PendleMarket ---

    async def market_tokens(self, market: str) -> MarketTokens:
        sy, pt, yt = await self._call(market, load_pendle_market_abi(), "readTokens")
        return MarketTokens(standardized_yield=sy, principal_token=pt, yield_token=yt)

    async def reward_tokens(self, market: str) -> list[str]:
        tokens = await self._call(market, load_pendle_market_abi(), "getRewardTokens")
        return list(tokens)

    async def market_expiry(self, market: str) -> int:
        return int(await self._call(market, load_pendle_market_abi(), "expiry"))

    async def market_state(self, market: str, router: str) -> MarketState:
        state = await self._call(
            market, load_pendle_market_abi(), "readState", self._checksum(router)
        )
        try:
            return MarketState(
                total_pt=int(state[0]),
                total_sy=int(state[1]),
                total_lp=int(state[2]),
                expiry=int(state[5]),
                last_ln_implied_rate=int(state[8]),
            )
        except (IndexError, TypeError, ValueError) as e:
            raise ContractReadError(
                f"Unexpected readState() payload from {market}: {state!r}"
            ) from e

    async def user_reward_accrued(self, market: str, token: str, user: str) -> int:
        _index, accrued = await self._call(
            market,
            load_pendle_market_abi(),
            "userReward",
            self._checksum(token),
            self._checksum(user),
        )
        return int(accrued)

    # --- GaugeController ---

    async def pendle_token(self) -> str:
        return str(
            await self._call(
                self.gauge_controller_address, load_gauge_controller_abi(), "pendle"
            )
        )

    async def reward_data(self, market: str) -> RewardData:
        data = await self._call(
            self.gauge_controller_address,
            load_gauge_controller_abi(),
            "rewardData",
            self._checksum(market),
        )
        pendle_per_sec, accumulated, last_updated, incentive_ends_at = data
        return RewardData(
            pendle_per_sec=int(pendle_per_sec),
            accumulated_pendle=int(accumulated),
            last_updated=int(last_updated),
            incentive_ends_at=int(incentive_ends_at),
        )
