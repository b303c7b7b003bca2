"""
Inflight table of the oracle consumer.

Tracks which queue positions the oracle is working on so a seq whose result
was posted but is not yet visible is not processed twice. Local to one
consumer instance and lost on restart.
"""

import threading
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional


@dataclass
class InflightMarker:
    seq: int
    first_seen: float
    since: float
    retries: int = 0
    failures: int = 0
    active: bool = True


class InflightTable:
    """Bounded seq -> InflightMarker map.

    Inactive markers are kept so ``first_seen``, ``retries`` and
    ``failures`` survive a release; they are pruned once process_seq passes
    them.

    Args:
        ttl_ms: Age after which an active marker counts as stuck
        max_retries: TTL breaches tolerated before the seq is exhausted
        max_failures: Post/commit failures tolerated before the seq is exhausted
        max_entries: Upper bound on tracked markers
    """

    def __init__(
        self,
        ttl_ms: int,
        max_retries: int = 1,
        max_failures: int = 3,
        max_entries: int = 256,
    ):
        self.ttl_ms = ttl_ms
        self.max_retries = max_retries
        self.max_failures = max_failures
        self.max_entries = max_entries
        self._markers: Dict[int, InflightMarker] = {}
        self._lock = threading.Lock()

    def claim(self, seq: int, now: float) -> InflightMarker:
        with self._lock:
            marker = self._markers.get(seq)
            if marker is None:
                marker = InflightMarker(seq=seq, first_seen=now, since=now)
                self._markers[seq] = marker
                self._evict()
            else:
                marker.since = now
                marker.active = True
            return marker

    def get(self, seq: int) -> Optional[InflightMarker]:
        with self._lock:
            return self._markers.get(seq)

    def is_active(self, seq: int) -> bool:
        marker = self.get(seq)
        return marker is not None and marker.active

    def is_expired(self, seq: int, now: float) -> bool:
        marker = self.get(seq)
        return marker is not None and marker.active and now - marker.since >= self.ttl_ms

    def expire(self, seq: int) -> Optional[InflightMarker]:
        """Record a TTL breach and deactivate the marker."""
        with self._lock:
            marker = self._markers.get(seq)
            if marker is not None:
                marker.retries += 1
                marker.active = False
            return marker

    def release(self, seq: int, failed: bool = False) -> Optional[InflightMarker]:
        with self._lock:
            marker = self._markers.get(seq)
            if marker is not None:
                marker.active = False
                if failed:
                    marker.failures += 1
            return marker

    def exhausted(self, seq: int) -> bool:
        marker = self.get(seq)
        if marker is None:
            return False
        return marker.retries > self.max_retries or marker.failures >= self.max_failures

    def forget(self, seq: int) -> None:
        with self._lock:
            self._markers.pop(seq, None)

    def prune(self, process_seq: int) -> int:
        """Drop markers for positions already committed or skipped."""
        with self._lock:
            stale = [seq for seq in self._markers if seq <= process_seq]
            for seq in stale:
                del self._markers[seq]
            return len(stale)

    def _evict(self) -> None:
        while len(self._markers) > self.max_entries:
            inactive = [s for s, m in self._markers.items() if not m.active]
            victim = min(inactive) if inactive else min(self._markers)
            del self._markers[victim]

    @property
    def active_count(self) -> int:
        with self._lock:
            return sum(1 for m in self._markers.values() if m.active)

    def __len__(self) -> int:
        with self._lock:
            return len(self._markers)

    def snapshot(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [asdict(m) for _, m in sorted(self._markers.items())]
