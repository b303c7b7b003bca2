"""
Storage module for the replicated view.

Architecture:
- primary/: Redis implementation
- fallback/: In-memory implementation
- factory.py: Automatic backend selection with fallback
"""

from aichat.store.base import KeyValueStore
from aichat.store.factory import create_store
from aichat.store.fallback import InMemoryStore
from aichat.store.primary import RedisStore

__all__ = [
    "KeyValueStore",
    "InMemoryStore",
    "RedisStore",
    "create_store",
]
