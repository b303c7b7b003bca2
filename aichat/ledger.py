"""
Replicated log interface and the local reference log.

The consensus substrate that orders events between peers lives outside this
project. ``Ledger`` is the seam the oracle and the HTTP API talk to: append an
event, read the replayed view. ``LocalLedger`` is a single-process log that
applies each appended event through the QueueStateMachine immediately; it
backs the API, development setups and the test suite.
"""

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from aichat.contract import keys
from aichat.contract.state_machine import ApplyResult, QueueStateMachine
from aichat.exceptions import AdmissionRejected, CommitFailure
from aichat.metrics import aichat_admissions_total, aichat_backlog, aichat_rejections_total
from aichat.store.base import KeyValueStore

logger = logging.getLogger(__name__)


class Ledger(ABC):
    """Ordered, append-only event log with a replayed key/value view."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Read a key from the replayed view."""
        pass

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """List view keys starting with prefix."""
        pass

    @abstractmethod
    async def append(self, event: Dict[str, Any]) -> None:
        """Submit an event for ordering.

        Raises:
            CommitFailure: If the event could not be appended
        """
        pass

    @property
    @abstractmethod
    def writable(self) -> bool:
        """Whether this peer may append events."""
        pass


class LocalLedger(Ledger):
    """In-process log applying events synchronously on append.

    Args:
        store: View store the state machine writes into
        state_machine: Rules applied to every event
        writable: Whether appends are accepted
    """

    def __init__(
        self,
        store: KeyValueStore,
        state_machine: QueueStateMachine,
        writable: bool = True,
    ):
        self.store = store
        self.state_machine = state_machine
        self._writable = writable
        self._log: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    @property
    def writable(self) -> bool:
        return self._writable

    @writable.setter
    def writable(self, value: bool) -> None:
        self._writable = value

    def get(self, key: str) -> Optional[Any]:
        return self.store.get(key)

    def keys(self, prefix: str = "") -> List[str]:
        return self.store.keys(prefix)

    async def append(self, event: Dict[str, Any]) -> None:
        self.append_sync(event)

    def append_sync(self, event: Dict[str, Any]) -> ApplyResult:
        """Append and apply an event, returning what it did to the view."""
        if not self._writable:
            raise CommitFailure("Ledger is read-only on this peer")

        try:
            # The log keeps its own serialized copy of every event
            copied = json.loads(json.dumps(event))
        except (TypeError, ValueError) as e:
            raise CommitFailure(f"Event is not serializable: {e}") from e

        # An event joins the log only once its writes reached the view
        with self._lock:
            try:
                result = self.state_machine.apply(copied, self.store)
            except Exception as e:
                logger.error(f"View write failed, event not appended: {e}")
                raise CommitFailure(f"View write failed: {e}") from e
            self._log.append(copied)

        self._record(result)
        return result

    def _record(self, result: ApplyResult) -> None:
        if result.action == "enqueued" and result.queue_type is not None:
            aichat_admissions_total.labels(type=result.queue_type.value).inc()
            logger.info(f"Enqueued seq {result.seq} ({result.queue_type.value})")
        elif result.action == "rejected":
            aichat_rejections_total.labels(reason=result.reason).inc()
            logger.debug(AdmissionRejected(result.reason).message)
        elif result.action == "fast_forward":
            logger.warning(f"process_seq fast-forwarded to {result.seq}")

        if result.event_type in ("msg", "result", "control"):
            message_seq = self.store.get(keys.MESSAGE_SEQ) or 0
            process_seq = self.store.get(keys.PROCESS_SEQ) or 0
            aichat_backlog.set(max(0, message_seq - process_seq))

    @property
    def length(self) -> int:
        with self._lock:
            return len(self._log)

    def events(self, start: int = 0) -> List[Dict[str, Any]]:
        """Copy of the log from position start."""
        with self._lock:
            return [json.loads(json.dumps(e)) for e in self._log[start:]]

    def rebuild(self, store: KeyValueStore) -> KeyValueStore:
        """Replay the whole log into another store.

        Replicas replaying the same log must arrive at identical views.
        """
        for event in self.events():
            self.state_machine.apply(event, store)
        return store


async def wait_for(
    ledger: Ledger, key: str, predicate, timeout_ms: int, interval_ms: int = 50
) -> bool:
    """Poll the view until predicate(value) holds or the timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    while True:
        if predicate(ledger.get(key)):
            return True
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(interval_ms / 1000)
