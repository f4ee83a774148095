"""
Per-key rate limiting over the usage log.

The window is approximated by counting api_usage_logs rows for the key in
the trailing 60 seconds and trailing 24 hours. Counts are eventually
consistent, so a burst of concurrent requests may slip a few calls past a
limit; there is no shared counter to lock.

Limits:
- Per minute: key's rate_limit_per_minute (default 60)
- Per day: key's rate_limit_per_day (default 10000)

Rejected requests get 429 with X-RateLimit-Limit and are not logged as usage.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from public_api_server.errors import TooManyRequests
from public_api_server.logging_config import get_logger, log_rate_limit_exceeded
from public_api_server.models import ApiKeyRecord
from public_api_server.store import RecordStore, eq, gte

logger = get_logger("rate_limiter")

DEFAULT_RATE_LIMIT_PER_MINUTE = 60
DEFAULT_RATE_LIMIT_PER_DAY = 10000

MINUTE_WINDOW = timedelta(seconds=60)
DAY_WINDOW = timedelta(hours=24)


@dataclass
class RateLimitStatus:
    """Window counts observed before the current request."""
    minute_count: int
    minute_limit: int
    day_count: int
    day_limit: int

    @property
    def day_usage_percent(self) -> float:
        return self.day_count / self.day_limit * 100


async def count_requests_since(store: RecordStore, key_id: str, since: datetime) -> int:
    """
    Count usage rows for a key newer than `since`.

    If the count fails the request is allowed (fail open) and the error logged.
    """
    try:
        return await store.count(
            "api_usage_logs",
            [eq("api_key_id", key_id), gte("created_at", since)],
        )
    except Exception as e:
        logger.warning("rate_limit_count_failed", key_id=key_id, error=str(e))
        return 0


async def check_rate_limits(
    store: RecordStore,
    key: ApiKeyRecord,
    now: datetime,
    default_per_minute: int = DEFAULT_RATE_LIMIT_PER_MINUTE,
    default_per_day: int = DEFAULT_RATE_LIMIT_PER_DAY,
) -> RateLimitStatus:
    """
    Enforce the minute limit, then the day limit.

    Args:
        store: Record store holding the usage log
        key: Authenticated key
        now: Current time
        default_per_minute: Limit used when the key has none
        default_per_day: Limit used when the key has none

    Returns:
        The counts seen, for the usage warning check

    Raises:
        TooManyRequests: If either window is full
    """
    minute_limit = key.rate_limit_per_minute or default_per_minute
    day_limit = key.rate_limit_per_day or default_per_day

    minute_count = await count_requests_since(store, key.id, now - MINUTE_WINDOW)
    if minute_count >= minute_limit:
        log_rate_limit_exceeded(key.api_key, "minute", minute_limit, minute_count)
        raise TooManyRequests(
            "Rate limit exceeded (per minute)",
            extra={"limit": minute_limit, "reset_in": "60 seconds"},
            headers={"X-RateLimit-Limit": str(minute_limit)},
        )

    day_count = await count_requests_since(store, key.id, now - DAY_WINDOW)
    if day_count >= day_limit:
        log_rate_limit_exceeded(key.api_key, "day", day_limit, day_count)
        raise TooManyRequests(
            "Rate limit exceeded (per day)",
            extra={"limit": day_limit, "reset_in": "24 hours"},
            headers={"X-RateLimit-Limit": str(day_limit)},
        )

    return RateLimitStatus(
        minute_count=minute_count,
        minute_limit=minute_limit,
        day_count=day_count,
        day_limit=day_limit,
    )


def warning_threshold_crossed(
    count: int, limit: int, thresholds: Iterable[int] = (80, 95)
) -> Optional[int]:
    """
    Threshold whose one-percent band [t, t+1) contains the current usage.

    The band is narrow so that, with integer counts, a warning fires about
    once per threshold per day.
    """
    if limit <= 0:
        return None
    percent = count / limit * 100
    for threshold in thresholds:
        if threshold <= percent < threshold + 1:
            return threshold
    return None
