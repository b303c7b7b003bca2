"""
============================================================================
PRIMARY IMPLEMENTATION: Redis View Store
============================================================================

FEATURES:
---------
* Persistent Storage: the replayed view survives process restarts
* Connection Pooling: one pool shared by the state machine and the oracle
* Atomic Batches: every state machine step is written in one MULTI/EXEC
* Prometheus Metrics: operation counts and latency

Errors propagate to the caller. A view write that silently failed would make
this replica diverge from every other one.

See: aichat/store/factory.py for fallback logic
"""

import json
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import redis
from prometheus_client import Counter, Histogram

from aichat.store.base import KeyValueStore

logger = logging.getLogger(__name__)

redis_operations = Counter(
    "aichat_redis_operations_total",
    "Total Redis view operations",
    ["operation", "status"],  # get/put/delete/batch, success/error
)

redis_latency = Histogram(
    "aichat_redis_operation_duration_seconds",
    "Redis view operation latency",
    ["operation"],
)


class RedisStore(KeyValueStore):
    """Redis-backed view storage with connection pooling."""

    def __init__(self, redis_url: str, key_prefix: str = "aichat:"):
        """Initialize Redis store with connection pooling.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379/0)
            key_prefix: Namespace prepended to every key
        """
        self._prefix = key_prefix
        try:
            pool = redis.ConnectionPool.from_url(
                redis_url,
                max_connections=20,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            self._client = redis.Redis(connection_pool=pool)
            self._client.ping()
            logger.info(f"Connected to Redis with connection pool: {redis_url}")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _observe(self, operation: str, start_time: float, status: str) -> None:
        redis_operations.labels(operation=operation, status=status).inc()
        redis_latency.labels(operation=operation).observe(time.time() - start_time)

    def get(self, key: str) -> Optional[Any]:
        start_time = time.time()
        try:
            raw = self._client.get(self._key(key))
        except redis.RedisError:
            self._observe("get", start_time, "error")
            raise
        self._observe("get", start_time, "success")
        return json.loads(raw) if raw is not None else None

    def put(self, key: str, value: Any) -> None:
        start_time = time.time()
        try:
            self._client.set(self._key(key), json.dumps(value))
        except redis.RedisError:
            self._observe("put", start_time, "error")
            raise
        self._observe("put", start_time, "success")

    def delete(self, key: str) -> None:
        start_time = time.time()
        try:
            self._client.delete(self._key(key))
        except redis.RedisError:
            self._observe("delete", start_time, "error")
            raise
        self._observe("delete", start_time, "success")

    def keys(self, prefix: str = "") -> List[str]:
        cut = len(self._prefix)
        found = [k[cut:] for k in self._client.scan_iter(match=self._key(prefix) + "*")]
        return sorted(found)

    def write_batch(self, puts: Dict[str, Any], deletes: Iterable[str]) -> None:
        """Apply all writes in one transaction."""
        start_time = time.time()
        try:
            pipe = self._client.pipeline(transaction=True)
            for key, value in puts.items():
                pipe.set(self._key(key), json.dumps(value))
            for key in deletes:
                pipe.delete(self._key(key))
            pipe.execute()
        except redis.RedisError:
            self._observe("batch", start_time, "error")
            raise
        self._observe("batch", start_time, "success")

    def health_check(self) -> bool:
        """Check Redis connection health.

        Returns:
            True if Redis is responsive, False otherwise
        """
        try:
            self._client.ping()
            return True
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    def close(self) -> None:
        self._client.connection_pool.disconnect()
        logger.info("Closed Redis connection pool")
