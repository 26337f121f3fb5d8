"""Principal token pricing from on-chain market state.

The model discounts 1.0 (the PT redemption value at maturity) with the
market's implied annual rate using simple interest:

    price = 1 / (1 + rate * years_to_maturity)

where ``rate = exp(lastLnImpliedRate / 1e18) - 1``. This is an approximation
of the AMM curve, good enough for reporting, not for trading.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from typing import Protocol

from ..clients.chain import MarketState, MarketTokens
from ..constants import (
    PT_PURCHASE_PRICE_CEILING,
    PT_PURCHASE_PRICE_FLOOR,
    SECONDS_PER_DAY,
    SECONDS_PER_YEAR,
)
from ..errors import ContractReadError, InvalidInput, MarketStateUnavailable
from ..logger import get_logger
from ..units import format_units

logger = get_logger(__name__)

LN_RATE_SCALE = 10**18


@dataclass(frozen=True)
class PTQuote:
    """Output of :func:`price_pt`.

    The position fields (``tokens`` onwards) are ``None`` when neither a
    token balance nor a deposit amount was supplied.
    """

    seconds_to_maturity: int
    normalized_ln_rate: float
    implied_rate_percent: float
    price: float
    purchase_price: float
    seconds_from_purchase_to_maturity: int | None = None
    tokens: float | None = None
    current_value: float | None = None
    value_at_maturity: float | None = None
    initial_value: float | None = None
    gain_absolute: float | None = None
    gain_percentage: float | None = None

    @property
    def days_to_maturity(self) -> float:
        return self.seconds_to_maturity / SECONDS_PER_DAY

    @property
    def fixed_apy(self) -> float:
        return round(self.implied_rate_percent, 2)


def implied_rate_percent(ln_implied_rate: int) -> float:
    """Annual implied rate in percent from the 1e18-scaled ln rate."""
    return (math.exp(ln_implied_rate / LN_RATE_SCALE) - 1) * 100


def discount_price(rate_percent: float, seconds_to_maturity: int) -> float:
    """PT price for a horizon; exactly 1.0 once matured."""
    if seconds_to_maturity <= 0:
        return 1.0
    years = seconds_to_maturity / SECONDS_PER_YEAR
    return 1.0 / (1.0 + (rate_percent / 100) * years)


def clamp_purchase_price(price: float) -> float:
    return max(PT_PURCHASE_PRICE_FLOOR, min(PT_PURCHASE_PRICE_CEILING, price))


def price_pt(
    state: MarketState,
    now: int,
    tokens_held: float | None = None,
    deposit_amount: float | None = None,
    purchase_time: int | None = None,
) -> PTQuote:
    """Price a principal token and, optionally, project a position to maturity.

    Args:
        state: Market state holding ``expiry`` and ``last_ln_implied_rate``.
        now: Current unix timestamp in seconds.
        tokens_held: PT balance in whole tokens; ignored if ``deposit_amount``
            is given.
        deposit_amount: Amount paid for the position. Tokens are then derived
            as ``deposit_amount / purchase_price``.
        purchase_time: Unix timestamp of the purchase. Without it the current
            price doubles as the purchase price.

    Raises:
        InvalidInput: On a non-positive deposit, a negative balance or a zero
            initial position value.
    """
    seconds_to_maturity = max(0, state.expiry - now)
    normalized = state.last_ln_implied_rate / LN_RATE_SCALE
    rate = implied_rate_percent(state.last_ln_implied_rate)
    price = discount_price(rate, seconds_to_maturity)

    purchase_horizon: int | None = None
    if purchase_time is not None:
        purchase_horizon = max(0, state.expiry - purchase_time)
        purchase_price = clamp_purchase_price(discount_price(rate, purchase_horizon))
    else:
        purchase_price = price

    quote = PTQuote(
        seconds_to_maturity=seconds_to_maturity,
        normalized_ln_rate=normalized,
        implied_rate_percent=rate,
        price=price,
        purchase_price=purchase_price,
        seconds_from_purchase_to_maturity=purchase_horizon,
    )

    if deposit_amount is not None:
        if deposit_amount <= 0:
            raise InvalidInput(f"Deposit amount must be positive, got {deposit_amount}")
        tokens = deposit_amount / purchase_price
    elif tokens_held is not None:
        if tokens_held < 0:
            raise InvalidInput(f"Token balance must be non-negative, got {tokens_held}")
        tokens = tokens_held
    else:
        return quote

    value_at_maturity = tokens * 1.0
    initial_value = tokens * purchase_price
    if initial_value == 0:
        raise InvalidInput("Initial position value is zero; gain percentage is undefined")

    return replace(
        quote,
        tokens=tokens,
        current_value=tokens * price,
        value_at_maturity=value_at_maturity,
        initial_value=initial_value,
        gain_absolute=value_at_maturity - initial_value,
        gain_percentage=(value_at_maturity / initial_value - 1) * 100,
    )


@dataclass(frozen=True)
class PTPosition:
    market_address: str
    pt_address: str
    pt_symbol: str
    expiry: int
    raw_ln_implied_rate: int
    quote: PTQuote
    deposit_amount: float | None = None
    purchase_date: datetime | None = None
    now: int = 0

    @property
    def maturity_date(self) -> date:
        return datetime.fromtimestamp(self.expiry, tz=timezone.utc).date()

    @property
    def days_since_purchase(self) -> float:
        if self.purchase_date is None:
            return 0.0
        return (self.now - self.purchase_date.timestamp()) / SECONDS_PER_DAY


class PTReader(Protocol):
    async def market_tokens(self, market: str) -> MarketTokens: ...

    async def market_expiry(self, market: str) -> int: ...

    async def token_decimals(self, token: str) -> int: ...

    async def token_symbol(self, token: str) -> str: ...

    async def balance_of(self, token: str, account: str) -> int: ...

    async def market_state(self, market: str, router: str) -> MarketState: ...


class PTPricingEngine:
    """Reads market state and prices a user's PT position."""

    def __init__(self, reader: PTReader, router_address: str):
        self.reader = reader
        self.router_address = router_address

    async def calculate(
        self,
        market: str,
        user: str,
        deposit_amount: float | None = None,
        purchase_date: datetime | None = None,
        now: int | None = None,
    ) -> PTPosition | None:
        """Return the priced position, or ``None`` if the user holds no PT.

        Raises:
            MarketStateUnavailable: If any contract read fails.
        """
        now = int(time.time()) if now is None else now

        try:
            tokens, expiry = await asyncio.gather(
                self.reader.market_tokens(market),
                self.reader.market_expiry(market),
            )
            pt = tokens.principal_token
            decimals, symbol, balance = await asyncio.gather(
                self.reader.token_decimals(pt),
                self.reader.token_symbol(pt),
                self.reader.balance_of(pt, user),
            )
            state = await self.reader.market_state(market, self.router_address)
        except ContractReadError as e:
            raise MarketStateUnavailable(
                f"Could not read PT market state for {market}: {e}"
            ) from e

        logger.debug(
            "Market %s: PT=%s expiry=%d totalPt=%d totalSy=%d lnRate=%d",
            market,
            pt,
            expiry,
            state.total_pt,
            state.total_sy,
            state.last_ln_implied_rate,
        )

        tokens_held = float(format_units(balance, decimals))
        if deposit_amount is None and tokens_held <= 0:
            logger.info("User %s holds no %s", user, symbol)
            return None

        quote = price_pt(
            state,
            now,
            tokens_held=tokens_held,
            deposit_amount=deposit_amount,
            purchase_time=int(purchase_date.timestamp()) if purchase_date else None,
        )

        return PTPosition(
            market_address=market,
            pt_address=pt,
            pt_symbol=symbol,
            expiry=expiry,
            raw_ln_implied_rate=state.last_ln_implied_rate,
            quote=quote,
            deposit_amount=deposit_amount,
            purchase_date=purchase_date,
            now=now,
        )
