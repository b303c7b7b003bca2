"""
Oracle consumer loop.

Drains the replicated work queue one position at a time:

    Idle -> Dequeued -> Posted -> Idle

Each ``step`` reads the pointers, enforces the backlog cap, handles stuck or
unprocessable positions with fast-forward control ops and otherwise composes a
context, calls the completion endpoint, posts the sanitized reply and commits
the result. ``run`` repeats ``step`` until stopped; no error ends the loop.

Only one consumer may run per deployment: on the writable replica whose
address is the administrator.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from aichat.contract import keys
from aichat.contract.models import PendingEntry, QueueType, fast_forward_event, result_event
from aichat.exceptions import AiChatException, ReplicationLag, StuckInflight
from aichat.ledger import Ledger, wait_for
from aichat.metrics import (
    aichat_backlog,
    aichat_commits_total,
    aichat_fast_forward_total,
    aichat_inflight,
    aichat_loop_errors_total,
    aichat_oracle_steps_total,
)
from aichat.oracle.completion import CompletionClient
from aichat.oracle.context import ContextComposer, HistoryPair
from aichat.oracle.inflight import InflightMarker, InflightTable
from aichat.oracle.sanitizer import ReplySanitizer
from aichat.oracle.transport import ChatTransport

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 2000
REPLY_MAX_CHARS = 2000


def _now_ms() -> float:
    return time.time() * 1000


class StepResult(str, Enum):
    IDLE = "idle"  # nothing queued
    LAG = "lag"  # pending entry not visible yet
    BUSY = "busy"  # seq inflight and within TTL
    RETRY = "retry"  # stuck seq released for another attempt
    SKIPPED = "skipped"  # fast-forwarded past the seq
    ABANDONED = "abandoned"  # endpoint failed inside a grace window
    COMMITTED = "committed"
    FAILED = "failed"  # post or commit failed, seq released


class ConsumerState(str, Enum):
    IDLE = "idle"
    DEQUEUED = "dequeued"
    POSTED = "posted"


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def next_summary(summary: str, sender: str, prompt: str, reply: str) -> str:
    """Rolling summary after one more Q/A turn, keeping the most recent text."""
    return f"{summary or ''}\nQ({sender}): {prompt}\nA: {reply}"[-SUMMARY_MAX_CHARS:]


class OracleConsumer:
    """Single consumer of the work queue.

    Args:
        ledger: Replicated log and view
        client: Completion endpoint client
        composer: Context composer
        sanitizer: Reply sanitizer
        transport: Where replies are posted
        inflight: Inflight table owned by this consumer
        address: Address control and result events are signed with
        max_backlog: Entries beyond this many are fast-forwarded
        history_window: Prior done entries read for context
        poll_interval_ms: Sleep between idle iterations
        commit_poll_timeout_ms: How long to wait for a commit to become visible
        startup_fast_forward: Skip the backlog that existed before start
    """

    def __init__(
        self,
        ledger: Ledger,
        client: CompletionClient,
        composer: ContextComposer,
        sanitizer: ReplySanitizer,
        transport: ChatTransport,
        inflight: InflightTable,
        address: str,
        max_backlog: int = 20,
        history_window: int = 64,
        poll_interval_ms: int = 1000,
        commit_poll_timeout_ms: int = 5000,
        startup_fast_forward: bool = True,
        clock: Callable[[], float] = _now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.ledger = ledger
        self.client = client
        self.composer = composer
        self.sanitizer = sanitizer
        self.transport = transport
        self.inflight = inflight
        self.address = address
        self.max_backlog = max_backlog
        self.history_window = history_window
        self.poll_interval_ms = poll_interval_ms
        self.commit_poll_timeout_ms = commit_poll_timeout_ms
        self.startup_fast_forward = startup_fast_forward
        self.clock = clock
        self.sleep = sleep

        self.state = ConsumerState.IDLE
        self.last_result: Optional[Dict[str, Any]] = None
        self.last_step: Optional[StepResult] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def pointers(self) -> Tuple[int, int]:
        """(process_seq, message_seq) as seen in the view."""
        return (
            _as_int(self.ledger.get(keys.PROCESS_SEQ)),
            _as_int(self.ledger.get(keys.MESSAGE_SEQ)),
        )

    async def fast_forward(self, seq: int, reason: str) -> None:
        """Append a fast-forward control op.

        Raises:
            CommitFailure: If the control op could not be appended
        """
        await self.ledger.append(fast_forward_event(self.address, seq))
        aichat_fast_forward_total.labels(reason=reason).inc()
        logger.warning(f"Fast-forward to seq {seq} ({reason})")

    async def startup(self) -> None:
        """Skip the backlog that queued up while no oracle was running."""
        if not self.startup_fast_forward:
            return
        process_seq, message_seq = self.pointers()
        if message_seq > process_seq:
            await self.fast_forward(message_seq, "startup")

    async def step(self) -> StepResult:
        process_seq, message_seq = self.pointers()

        if message_seq - process_seq > self.max_backlog:
            target = message_seq - self.max_backlog
            await self.fast_forward(target, "backlog")
            process_seq = target

        self.inflight.prune(process_seq)
        aichat_backlog.set(max(0, message_seq - process_seq))
        aichat_inflight.set(self.inflight.active_count)

        if message_seq <= process_seq:
            return StepResult.IDLE

        seq = process_seq + 1
        raw = self.ledger.get(keys.pending_key(seq))
        if raw is None:
            logger.debug(ReplicationLag(seq).message)
            return StepResult.LAG

        now = self.clock()
        if self.inflight.is_active(seq):
            if not self.inflight.is_expired(seq, now):
                return StepResult.BUSY
            marker = self.inflight.expire(seq)
            if self.inflight.exhausted(seq):
                logger.warning(StuckInflight(seq, marker.retries).message)
                await self.fast_forward(seq, "stuck")
                self.inflight.forget(seq)
                return StepResult.SKIPPED
            logger.warning(f"Seq {seq} exceeded inflight TTL, retrying")
            return StepResult.RETRY

        if self.inflight.exhausted(seq):
            marker = self.inflight.get(seq)
            logger.warning(f"Seq {seq} failed {marker.failures} times, skipping")
            await self.fast_forward(seq, "failures")
            self.inflight.forget(seq)
            return StepResult.SKIPPED

        if not isinstance(raw, dict) or raw.get("type") not in (
            QueueType.TAGGED.value,
            QueueType.RANDOM.value,
        ):
            await self.fast_forward(seq, "malformed")
            return StepResult.SKIPPED

        entry = PendingEntry.from_dict(raw)
        admin = self.ledger.get(keys.ADMIN)
        if admin and entry.sender == admin:
            await self.fast_forward(seq, "self")
            return StepResult.SKIPPED

        marker = self.inflight.claim(seq, now)
        self.state = ConsumerState.DEQUEUED
        try:
            return await self._process(seq, entry, marker)
        except AiChatException as e:
            self.inflight.release(seq, failed=True)
            logger.error(f"Seq {seq} failed ({e.__class__.__name__}): {e.message}")
            return StepResult.FAILED
        except Exception:
            self.inflight.release(seq, failed=True)
            raise
        finally:
            self.state = ConsumerState.IDLE

    def _history(self, seq: int) -> List[HistoryPair]:
        if self.history_window <= 0:
            return []
        pairs = []
        for i in range(max(1, seq - self.history_window), seq):
            done = self.ledger.get(keys.done_key(i))
            if isinstance(done, dict):
                pairs.append(
                    HistoryPair(
                        prompt=done.get("prompt") or "", reply=done.get("reply") or ""
                    )
                )
        return pairs

    async def _process(
        self, seq: int, entry: PendingEntry, marker: InflightMarker
    ) -> StepResult:
        summary = self.ledger.get(keys.SUMMARY)
        summary = summary if isinstance(summary, str) else ""

        context = self.composer.compose(summary, self._history(seq), entry.prompt)
        outcome = await self.client.complete(
            context, entry.prompt, seq=seq, first_seen_ms=marker.first_seen
        )
        if outcome.abandoned:
            self.inflight.release(seq)
            return StepResult.ABANDONED

        tag = self.sanitizer.resolve_tag(entry.sender, self.transport.get_nick(entry.sender))
        body = self.sanitizer.demote_mentions(outcome.text, tag)
        prepared = self.sanitizer.fit(body, tag, self.transport.prepare)

        await self.transport.post(prepared)
        self.state = ConsumerState.POSTED

        reply = body[:REPLY_MAX_CHARS]
        await self.ledger.append(
            result_event(
                self.address,
                entry.type,
                seq,
                reply,
                next_summary(summary, entry.sender, entry.prompt, body),
            )
        )
        aichat_commits_total.labels(queue=entry.type.value).inc()
        self.last_result = {
            "seq": seq,
            "from": entry.sender,
            "type": entry.type.value,
            "outcome": outcome.kind.value,
            "attempts": outcome.attempts,
            "reply": reply[:200],
            "posted_bytes": prepared.size,
            "at": self.clock(),
        }

        visible = await wait_for(
            self.ledger,
            keys.PROCESS_SEQ,
            lambda value: _as_int(value) >= seq,
            self.commit_poll_timeout_ms,
        )
        if visible:
            self.inflight.release(seq)
        else:
            # Marker stays active until the TTL so the seq is not posted twice
            logger.info(f"Commit of seq {seq} not visible after {self.commit_poll_timeout_ms}ms")
        return StepResult.COMMITTED

    async def run(self) -> None:
        """Consume until ``stop`` is called or the task is cancelled."""
        self._running = True
        logger.info(f"Oracle consumer started as {self.address[:12]}")
        try:
            await self.startup()
        except Exception as e:
            aichat_loop_errors_total.labels(error_type=type(e).__name__).inc()
            logger.exception(f"Startup fast-forward failed: {e}")

        while self._running:
            try:
                result = await self.step()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                result = StepResult.FAILED
                aichat_loop_errors_total.labels(error_type=type(e).__name__).inc()
                logger.exception(f"Oracle loop error: {e}")

            self.last_step = result
            aichat_oracle_steps_total.labels(result=result.value).inc()
            if result not in (StepResult.COMMITTED, StepResult.SKIPPED):
                await self.sleep(self.poll_interval_ms / 1000)

        logger.info("Oracle consumer stopped")

    def stop(self) -> None:
        self._running = False

    def snapshot(self) -> Dict[str, Any]:
        process_seq, message_seq = self.pointers()
        return {
            "running": self._running,
            "state": self.state.value,
            "last_step": self.last_step.value if self.last_step else None,
            "process_seq": process_seq,
            "message_seq": message_seq,
            "inflight": self.inflight.snapshot(),
        }
