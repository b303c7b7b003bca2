"""
============================================================================
FALLBACK IMPLEMENTATION: In-Memory View Store
============================================================================

Holds the replayed view in a dict guarded by a re-entrant lock.

Values are copied through a JSON round trip on the way in and out so callers
never share mutable objects with the view, the same as a real replica that
only ever sees serialized values.

LIMITATIONS:
------------
* Non-Persistent: the view is lost on restart and rebuilt by replaying the log
* Single-Instance: cannot be shared across processes

See: aichat/store/factory.py for fallback activation logic
"""

import json
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from aichat.store.base import KeyValueStore

logger = logging.getLogger(__name__)


def _copy(value: Any) -> Any:
    return json.loads(json.dumps(value))


class InMemoryStore(KeyValueStore):
    """In-memory view storage."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.RLock()
        logger.info("Started in-memory view store")

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def put(self, key: str, value: Any) -> None:
        raw = json.dumps(value)
        with self._lock:
            self._data[key] = raw

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    def write_batch(self, puts: Dict[str, Any], deletes: Iterable[str]) -> None:
        """Apply all writes under one lock acquisition."""
        encoded = {key: json.dumps(value) for key, value in puts.items()}
        with self._lock:
            self._data.update(encoded)
            for key in deletes:
                self._data.pop(key, None)

    def snapshot(self) -> Dict[str, Any]:
        """Copy of the whole view (used by replay comparisons)."""
        with self._lock:
            return {key: json.loads(raw) for key, raw in self._data.items()}
