"""
Retry, backoff and grace rules for completion calls.
"""

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff plus the grace windows that turn a failure into a silent retry.

    A completion that fails every retry is *abandoned* (no reply, the same
    seq is tried again) while either grace window is open, and answered with
    the apology text otherwise:

    - success grace: the endpoint answered successfully shortly before
    - warm-up grace: the seq was first claimed shortly before
    """

    max_retries: int = 3
    base_delay: float = 1.0
    exponential_base: float = 2.0
    max_delay: float = 10.0
    success_grace_ms: int = 15_000
    warmup_grace_ms: int = 30_000

    def delay(self, attempt: int) -> float:
        """Backoff in seconds before retry number ``attempt`` (0-based)."""
        return min(self.base_delay * (self.exponential_base**attempt), self.max_delay)

    def delays(self) -> List[float]:
        return [self.delay(attempt) for attempt in range(self.max_retries)]

    def within_grace(
        self, now_ms: float, last_success_ms: Optional[float], first_seen_ms: Optional[float]
    ) -> bool:
        if last_success_ms is not None and now_ms - last_success_ms < self.success_grace_ms:
            return True
        if first_seen_ms is not None and now_ms - first_seen_ms < self.warmup_grace_ms:
            return True
        return False

    @classmethod
    def from_settings(cls, oracle_settings) -> "RetryPolicy":
        return cls(
            success_grace_ms=oracle_settings.success_grace_ms,
            warmup_grace_ms=oracle_settings.warmup_grace_ms,
        )
