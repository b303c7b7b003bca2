"""
FALLBACK Implementation: In-Memory View Store

Automatically activated when:
- Redis connection fails
- Redis URL not configured
- Explicitly requested for development/testing

See memory.py for implementation details.
"""

from .memory import InMemoryStore

__all__ = ["InMemoryStore"]
