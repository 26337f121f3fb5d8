"""Domain models for market reward reports."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


def _utc(timestamp: Any) -> datetime:
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc)


@dataclass(frozen=True)
class RewardRateSnapshot:
    """Raw ``GaugeController.rewardData(market)`` values for one market."""

    market: str
    pendle_per_sec: int
    accumulated_pendle: int
    last_updated: int
    incentive_ends_at: int

    @property
    def last_updated_at(self) -> datetime:
        return _utc(self.last_updated)

    @property
    def incentive_ends(self) -> datetime:
        return _utc(self.incentive_ends_at)


@dataclass(frozen=True)
class MarketRewardClaim:
    """A PENDLE claim by a market from the gauge controller."""

    id: str
    market: str
    amount: int
    timestamp: datetime
    block_number: int

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "MarketRewardClaim":
        return cls(
            id=record["id"],
            market=record["market"],
            amount=int(record["amount"]),
            timestamp=_utc(record["timestamp"]),
            block_number=int(record["blockNumber"]),
        )


@dataclass(frozen=True)
class RewardUpdate:
    """A change of a market's PENDLE emission rate."""

    id: str
    market: str
    pendle_per_sec: int
    incentive_ends_at: datetime
    timestamp: datetime
    block_number: int

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "RewardUpdate":
        return cls(
            id=record["id"],
            market=record["market"],
            pendle_per_sec=int(record["pendlePerSec"]),
            incentive_ends_at=_utc(record["incentiveEndsAt"]),
            timestamp=_utc(record["timestamp"]),
            block_number=int(record["blockNumber"]),
        )

    @property
    def incentive_duration_days(self) -> float:
        return (self.incentive_ends_at - self.timestamp).total_seconds() / 86400
