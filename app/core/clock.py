"""
Time source for refill arithmetic.

Every component that needs "now" takes a clock callable instead of reading the
system time directly, so tests can drive the token bucket minute by minute.

Timestamps are naive UTC datetimes: SQLite does not round-trip tzinfo, and
mixing aware and naive values would make comparisons raise.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_epoch_seconds(moment: datetime) -> float:
    """Convert a naive UTC datetime to UNIX epoch seconds."""
    return moment.replace(tzinfo=timezone.utc).timestamp()
