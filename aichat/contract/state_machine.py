"""
Deterministic queue state machine.

Applies one ordered log event at a time to the replicated view. Every replica
replaying the same log with the same ContractSettings ends up with the same
view: handlers read time only from the ``currentTime`` key, never from the
wall clock, and perform no I/O beyond the store they are handed.

Writes of one event are staged in a WriteBatch and committed together when
the handler returns.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Set

from pydantic import ValidationError

from aichat.contract import keys
from aichat.contract.classifier import classify
from aichat.contract.models import (
    AI_FEATURE,
    CONTROL_KEY,
    CURRENT_TIME_KEY,
    FAST_FORWARD,
    RESULT_KEY,
    TIMER_FEATURE,
    AdminEvent,
    ChatMessageEvent,
    DoneEntry,
    FeatureEvent,
    NickEvent,
    PendingEntry,
    QueueType,
    parse_event,
)
from aichat.contract.rate_limiter import RateLimits, day_key, evaluate, record
from aichat.store.base import KeyValueStore

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 2000


class WriteBatch:
    """Read-through overlay collecting the writes of a single event."""

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._puts: Dict[str, Any] = {}
        self._deletes: Set[str] = set()

    def get(self, key: str) -> Optional[Any]:
        if key in self._deletes:
            return None
        if key in self._puts:
            return self._puts[key]
        return self._store.get(key)

    def put(self, key: str, value: Any) -> None:
        self._deletes.discard(key)
        self._puts[key] = value

    def delete(self, key: str) -> None:
        self._puts.pop(key, None)
        self._deletes.add(key)

    @property
    def empty(self) -> bool:
        return not self._puts and not self._deletes

    def commit(self) -> None:
        if not self.empty:
            self._store.write_batch(dict(self._puts), set(self._deletes))
        self._puts = {}
        self._deletes = set()


@dataclass
class ApplyResult:
    """What applying one event did to the view (consumed by the ledger for metrics)."""

    event_type: str
    action: str
    reason: Optional[str] = None
    seq: Optional[int] = None
    queue_type: Optional[QueueType] = None


def _as_int(value: Any) -> Optional[int]:
    """Integers only; bools and floats with a fraction are rejected."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _as_time(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


class QueueStateMachine:
    """Turns chat events into an ordered, rate-limited work queue.

    Args:
        rules: ContractSettings (trigger token, reply marker, caps, divisor)
    """

    def __init__(self, rules):
        self.rules = rules
        self.limits = RateLimits(
            daily_cap=rules.daily_cap,
            window_ms=rules.window_ms,
            window_cap=rules.window_cap,
        )

    def apply(self, event: Dict[str, Any], store: KeyValueStore) -> ApplyResult:
        """Apply one log event to the view.

        Malformed events are ignored so that every replica skips them alike.
        """
        try:
            parsed = parse_event(event)
        except ValidationError as e:
            logger.debug(f"Ignoring malformed event: {e.error_count()} validation errors")
            return ApplyResult(event_type="invalid", action="ignored", reason="malformed")

        batch = WriteBatch(store)
        if isinstance(parsed, ChatMessageEvent):
            result = self._on_message(parsed, batch)
        elif isinstance(parsed, FeatureEvent):
            result = self._on_feature(parsed, batch)
        elif isinstance(parsed, AdminEvent):
            result = self._on_admin(parsed, batch)
        else:
            result = self._on_nick(parsed, batch)
        batch.commit()
        return result

    # ------------------------------------------------------------------
    # Chat messages
    # ------------------------------------------------------------------

    def _on_message(self, event: ChatMessageEvent, batch: WriteBatch) -> ApplyResult:
        now = _as_time(batch.get(keys.CURRENT_TIME))

        count = _as_int(batch.get(keys.MESSAGE_COUNT)) or 0
        if now is not None:
            batch.put(keys.message_timestamp_key(count), now)
        batch.put(keys.MESSAGE_COUNT, count + 1)

        def skip(reason: str) -> ApplyResult:
            return ApplyResult(event_type="msg", action="skipped", reason=reason)

        if self.rules.reply_marker in event.attachments:
            return skip("reply_marker")
        if now is None:
            return skip("no_time")
        if event.address == batch.get(keys.ADMIN):
            return skip("admin")

        sender = event.address
        day_counter = keys.day_counter_key(sender, day_key(now))
        window = keys.window_key(sender)

        decision = evaluate(batch.get(day_counter), batch.get(window), now, self.limits)
        if not decision.allowed:
            logger.debug(f"Rate limited {sender[:12]}: {decision.reason}")
            return ApplyResult(event_type="msg", action="rejected", reason=decision.reason)

        classification = classify(
            event.msg, now, self.rules.trigger_token, self.rules.selection_divisor
        )
        if not classification.accepted:
            return ApplyResult(
                event_type="msg", action="rejected", reason=classification.reason
            )

        next_seq = (_as_int(batch.get(keys.MESSAGE_SEQ)) or 0) + 1
        entry = PendingEntry(
            sender=sender,
            prompt=classification.prompt,
            type=classification.queue_type,
            timestamp=now,
        )
        batch.put(keys.pending_key(next_seq), entry.to_dict())

        daily_count, recent = record(decision, now, self.limits)
        batch.put(window, recent)
        batch.put(day_counter, daily_count)
        batch.put(keys.MESSAGE_SEQ, next_seq)

        return ApplyResult(
            event_type="msg",
            action="enqueued",
            seq=next_seq,
            queue_type=classification.queue_type,
        )

    # ------------------------------------------------------------------
    # Feature events (timer, oracle results and control ops)
    # ------------------------------------------------------------------

    def _on_feature(self, event: FeatureEvent, batch: WriteBatch) -> ApplyResult:
        admin = batch.get(keys.ADMIN)
        if admin is None or event.address != admin:
            return ApplyResult(event_type="feature", action="ignored", reason="not_admin")

        if event.feature == TIMER_FEATURE and event.key == CURRENT_TIME_KEY:
            return self._on_timer(event.value, batch)
        if event.feature == AI_FEATURE and event.key == RESULT_KEY:
            return self._on_result(event.value, batch)
        if event.feature == AI_FEATURE and event.key == CONTROL_KEY:
            return self._on_control(event.value, batch)
        return ApplyResult(event_type="feature", action="ignored", reason="unknown_feature")

    def _on_timer(self, value: Any, batch: WriteBatch) -> ApplyResult:
        now = _as_time(value)
        if now is None:
            return ApplyResult(event_type="timer", action="ignored", reason="malformed")

        current = _as_time(batch.get(keys.CURRENT_TIME))
        if current is not None and now < current:
            return ApplyResult(event_type="timer", action="ignored", reason="not_monotonic")

        batch.put(keys.CURRENT_TIME, now)
        return ApplyResult(event_type="timer", action="clock")

    def _on_result(self, value: Any, batch: WriteBatch) -> ApplyResult:
        if not isinstance(value, dict):
            return ApplyResult(event_type="result", action="ignored", reason="malformed")
        seq = _as_int(value.get("seq"))
        if seq is None or seq < 1:
            return ApplyResult(event_type="result", action="ignored", reason="bad_seq")

        message_seq = _as_int(batch.get(keys.MESSAGE_SEQ)) or 0
        if seq > message_seq:
            return ApplyResult(
                event_type="result", action="ignored", reason="beyond_message_seq", seq=seq
            )

        reply = value.get("reply")
        reply = reply if isinstance(reply, str) else ""

        raw_pending = batch.get(keys.pending_key(seq))
        if isinstance(raw_pending, dict):
            done = DoneEntry(
                sender=raw_pending.get("from", ""),
                prompt=raw_pending.get("prompt") or "",
                reply=reply,
                timestamp=raw_pending.get("timestamp", 0),
            )
            batch.put(keys.done_key(seq), done.to_dict())
            batch.delete(keys.pending_key(seq))

        summary = value.get("summary")
        if isinstance(summary, str):
            batch.put(keys.SUMMARY, summary[-SUMMARY_MAX_CHARS:])

        process_seq = _as_int(batch.get(keys.PROCESS_SEQ)) or 0
        if seq > process_seq:
            batch.put(keys.PROCESS_SEQ, seq)

        return ApplyResult(
            event_type="result",
            action="committed",
            seq=seq,
            queue_type=QueueType.normalize(value.get("queue")),
        )

    def _on_control(self, value: Any, batch: WriteBatch) -> ApplyResult:
        if not isinstance(value, dict) or value.get("op") != FAST_FORWARD:
            return ApplyResult(event_type="control", action="ignored", reason="unknown_op")
        seq = _as_int(value.get("seq"))
        if seq is None:
            return ApplyResult(event_type="control", action="ignored", reason="bad_seq")

        process_seq = _as_int(batch.get(keys.PROCESS_SEQ)) or 0
        message_seq = _as_int(batch.get(keys.MESSAGE_SEQ)) or 0
        target = max(process_seq, min(seq, message_seq))
        if target <= process_seq:
            return ApplyResult(
                event_type="control", action="ignored", reason="no_advance", seq=process_seq
            )

        batch.put(keys.PROCESS_SEQ, target)
        return ApplyResult(event_type="control", action="fast_forward", seq=target)

    # ------------------------------------------------------------------
    # Administrative events
    # ------------------------------------------------------------------

    def _on_admin(self, event: AdminEvent, batch: WriteBatch) -> ApplyResult:
        if batch.get(keys.ADMIN) is not None:
            return ApplyResult(event_type="admin", action="ignored", reason="already_set")
        batch.put(keys.ADMIN, event.address)
        return ApplyResult(event_type="admin", action="admin")

    def _on_nick(self, event: NickEvent, batch: WriteBatch) -> ApplyResult:
        batch.put(keys.nick_key(event.address), event.nick)
        return ApplyResult(event_type="nick", action="nick")


def replay(
    events: Iterable[Dict[str, Any]], store: KeyValueStore, rules
) -> KeyValueStore:
    """Rebuild a view by applying events in order."""
    machine = QueueStateMachine(rules)
    for event in events:
        machine.apply(event, store)
    return store
