from __future__ import annotations

from .aggregation import (
    PortfolioItem,
    PricedReward,
    TokenTotal,
    average_pendle_per_sec,
    build_portfolio_item,
    calculate_apr,
    round_to_significant_digits,
    total_rewards_by_token,
)
from .pt_pricing import PTPosition, PTPricingEngine, PTQuote, price_pt
from .reward_enricher import (
    RedeemEvent,
    RewardEnricher,
    RewardLine,
    TokenReference,
    TokenReferenceEncoding,
    decode_token_reference,
    select_reward_token,
)

__all__ = [
    "PortfolioItem",
    "PricedReward",
    "TokenTotal",
    "average_pendle_per_sec",
    "build_portfolio_item",
    "calculate_apr",
    "round_to_significant_digits",
    "total_rewards_by_token",
    "PTPosition",
    "PTPricingEngine",
    "PTQuote",
    "price_pt",
    "RedeemEvent",
    "RewardEnricher",
    "RewardLine",
    "TokenReference",
    "TokenReferenceEncoding",
    "decode_token_reference",
    "select_reward_token",
]
