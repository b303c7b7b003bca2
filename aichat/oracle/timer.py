"""
Trusted clock feed.

The administrator node appends its wall clock to the log at a fixed interval.
The state machine only ever reads time from these events.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from aichat.contract.models import timer_event
from aichat.exceptions import AiChatException
from aichat.ledger import Ledger
from aichat.metrics import aichat_loop_errors_total

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class TimerFeature:
    """Appends ``currentTime`` every ``interval_ms``.

    Args:
        ledger: Log the clock is appended to
        address: Administrator address signing the events
        interval_ms: Update interval
    """

    def __init__(
        self,
        ledger: Ledger,
        address: str,
        interval_ms: int = 1000,
        clock: Callable[[], int] = _now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.ledger = ledger
        self.address = address
        self.interval_ms = interval_ms
        self.clock = clock
        self.sleep = sleep
        self._running = False

    async def tick(self) -> int:
        now = self.clock()
        await self.ledger.append(timer_event(self.address, now))
        return now

    async def run(self) -> None:
        self._running = True
        logger.info(f"Timer feature started (every {self.interval_ms}ms)")
        while self._running:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except AiChatException as e:
                logger.warning(f"Timer update failed: {e.message}")
            except Exception as e:
                aichat_loop_errors_total.labels(error_type=type(e).__name__).inc()
                logger.exception(f"Timer loop error: {e}")
            await self.sleep(self.interval_ms / 1000)
        logger.info("Timer feature stopped")

    def stop(self) -> None:
        self._running = False
