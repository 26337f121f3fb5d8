"""Sonic deployment addresses and protocol constants."""

from typing import TypedDict


class PendleContracts(TypedDict):
    gauge_controller: str
    pendle_router: str


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

SONIC_CONTRACTS: PendleContracts = {
    "gauge_controller": "0xeE708FC793a02F1eDd5BB9DBD7fD13010D1F7136",
    "pendle_router": "0x888888888889758F76e7103c6CbF23ABbF58F946",
}

DEFAULT_SONIC_RPC_URL = "https://rpc.soniclabs.com"
DEFAULT_SUBGRAPH_URL = "https://api.studio.thegraph.com/query/107620/pendle-sonic-rewards/version/latest"
DEFAULT_COINGECKO_API_URL = "https://api.coingecko.com/api/v3"
DEFAULT_PRICE_CACHE_PATH = "./crypto-price-cache.json"
DEFAULT_EXPORT_DIR = "exports"

# The Graph caps `first` at 1000
MAX_SUBGRAPH_PAGE_SIZE = 1000

SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

# Sanity bound for the estimated PT purchase price
PT_PURCHASE_PRICE_FLOOR = 0.95
PT_PURCHASE_PRICE_CEILING = 0.99

# lowercase token address -> CoinGecko id
COINGECKO_TOKEN_IDS: dict[str, str] = {
    # PENDLE
    "0xd9eaa386ccd65f30b366d6b9e34e1a4d7bd21dbc": "pendle",
    # USDC.e
    "0xd988097fb8612ae489eb654958ee926fd7ce18b5": "usd-coin",
    # wstkscUSD, priced as USDT
    "0xf6e2ddf7a149c171e591c8d58449e371e6dc7570": "tether",
    # S
    "0xf1ef7d2d4c0c881cd634481e0586ed5d2871a74b": "sonic-token",
}

PENDLE_APP_MARKET_URL = (
    "https://app.pendle.finance/trade/markets/{market}/swap?view=pt&chain=sonic"
)
