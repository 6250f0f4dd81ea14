"""
Admission decisions.

AdmissionController.admit() returns exactly one of these. The HTTP layer
turns them into pass-through headers, a 429 or a 403.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union


@dataclass(frozen=True)
class Allowed:
    """Request admitted; tokens were charged."""
    tokens_remaining: int
    limit: int
    reset_epoch: int


@dataclass(frozen=True)
class Denied:
    """Not enough tokens; the denial was counted in the abuse window."""
    tokens_remaining: int
    reset_seconds: int
    attempt_count: int
    attempts_reset_minutes: Optional[int]
    warning_message: str
    error: str = "Rate limit exceeded"


@dataclass(frozen=True)
class Blacklisted:
    """Subject is suspended, either already or by this very request."""
    reason: str
    blacklisted_until: datetime
    hours_remaining: int
    error: str = "User is blacklisted"


Decision = Union[Allowed, Denied, Blacklisted]
