"""
Factory for view store creation.

Dual-backend storage:

1. PRIMARY: Redis - persistent view, atomic batches, metrics
2. FALLBACK: In-Memory - activated automatically if Redis is unreachable

A fresh in-memory view is rebuilt by replaying the log from the start.
"""

import logging
from typing import Optional

from aichat.store.base import KeyValueStore
from aichat.store.fallback import InMemoryStore
from aichat.store.primary import RedisStore

logger = logging.getLogger(__name__)


def create_store(
    backend: str = "redis",
    redis_url: Optional[str] = None,
    key_prefix: str = "aichat:",
) -> KeyValueStore:
    """Create a view store with automatic fallback.

    Args:
        backend: 'redis' (production) or 'memory' (fallback/dev)
        redis_url: Redis connection URL (e.g., redis://localhost:6379/0)
        key_prefix: Namespace for Redis keys

    Returns:
        KeyValueStore implementation
    """
    if backend == "redis":
        if not redis_url:
            logger.warning("Redis URL not provided, falling back to in-memory store")
            return _create_fallback_store()

        try:
            logger.info(f"Attempting to connect to Redis: {redis_url}")
            store = RedisStore(redis_url, key_prefix=key_prefix)
            logger.info("[SUCCESS] Redis view store initialized (PRIMARY)")
            return store
        except Exception as e:
            logger.error(f"[FAILED] Failed to initialize Redis store: {e}")
            return _create_fallback_store()

    logger.info("In-memory store explicitly requested via backend='memory'")
    return InMemoryStore()


def _create_fallback_store() -> InMemoryStore:
    logger.warning("[FALLBACK ACTIVATED] Using in-memory view store")
    logger.warning("The view will be rebuilt from the log after a restart")
    return InMemoryStore()
