"""
Per-user admission limits for the queue state machine.

Implements a daily counter plus a sliding window of recent admission
timestamps. Unlike a service-side limiter, nothing here reads a clock: ``now``
is the trusted log time passed in by the caller, so every replica reaches the
same decision for the same event.
"""

import math
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

DAY_MS = 86_400_000

REASON_DAILY_CAP = "daily_cap"
REASON_WINDOW_CAP = "window_cap"


@dataclass(frozen=True)
class RateLimits:
    """Limits applied to every non-administrator sender."""

    daily_cap: int = 1500
    window_ms: int = 60_000
    window_cap: int = 10


@dataclass
class RateDecision:
    """Result of checking one sender against its counters."""

    allowed: bool
    daily_count: int
    window: List[float] = field(default_factory=list)
    reason: Optional[str] = None


def day_key(now: float) -> int:
    """UTC day bucket of a trusted timestamp."""
    return math.floor(now / DAY_MS)


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def evaluate(
    daily_count: Any, window: Any, now: float, limits: RateLimits
) -> RateDecision:
    """Check whether a sender may be admitted at ``now``.

    Stale window entries (older than ``now - window_ms``) are evicted in the
    returned decision; the caller only persists them on admission.

    Args:
        daily_count: Stored counter for the current day (None or junk counts as 0)
        window: Stored list of recent admission timestamps
        now: Trusted time in milliseconds
        limits: Limits to apply

    Returns:
        RateDecision with the cleaned counters
    """
    count = daily_count if isinstance(daily_count, int) and not isinstance(daily_count, bool) else 0
    if count >= limits.daily_cap:
        return RateDecision(allowed=False, daily_count=count, reason=REASON_DAILY_CAP)

    cutoff = now - limits.window_ms
    recent = [ts for ts in (window if isinstance(window, list) else []) if _is_timestamp(ts) and ts >= cutoff]
    if len(recent) >= limits.window_cap:
        return RateDecision(
            allowed=False, daily_count=count, window=recent, reason=REASON_WINDOW_CAP
        )

    return RateDecision(allowed=True, daily_count=count, window=recent)


def record(decision: RateDecision, now: float, limits: RateLimits) -> Tuple[int, List[float]]:
    """Counters to persist after an admission.

    Returns:
        Tuple of (new daily count, new window holding at most window_cap entries)
    """
    window = decision.window + [now]
    if len(window) > limits.window_cap:
        window = window[-limits.window_cap:]
    return decision.daily_count + 1, window
