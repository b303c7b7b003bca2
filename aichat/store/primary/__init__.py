"""
PRIMARY Implementation: Redis View Store

Use this backend for:
- Production deployments
- Views that must survive a restart without a full log replay

See redis_store.py for implementation details.
"""

from .redis_store import RedisStore

__all__ = ["RedisStore"]
