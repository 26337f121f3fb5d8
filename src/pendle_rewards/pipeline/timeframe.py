"""Time range arguments of the report commands."""

from __future__ import annotations

import time
from datetime import datetime, timezone

from ..constants import SECONDS_PER_DAY
from ..logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIME_RANGE = "month"

RELATIVE_RANGES: dict[str, int] = {
    "day": SECONDS_PER_DAY,
    "week": 7 * SECONDS_PER_DAY,
    "month": 30 * SECONDS_PER_DAY,
}


def parse_date(value: str) -> datetime:
    """Parse ``YYYY-MM-DD`` (or a full ISO timestamp) as a UTC datetime."""
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def since_timestamp(time_range: str, now: int | None = None) -> int:
    """Unix timestamp at which a report window starts.

    Accepts ``day``, ``week``, ``month``, ``all`` or a ``YYYY-MM-DD`` date.
    Anything else falls back to one month.
    """
    now = int(time.time()) if now is None else now
    key = time_range.strip().lower()

    if key == "all":
        return 0
    if key in RELATIVE_RANGES:
        return now - RELATIVE_RANGES[key]

    try:
        return int(parse_date(time_range).timestamp())
    except ValueError:
        logger.warning(
            "Unrecognised time range %r, defaulting to %s", time_range, DEFAULT_TIME_RANGE
        )
        return now - RELATIVE_RANGES[DEFAULT_TIME_RANGE]
