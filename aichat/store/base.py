"""
Abstract base class for the replicated view store.

The view is the key/value state produced by replaying the ordered log. Values
are JSON-compatible (numbers, strings, lists, dicts, None is never stored).
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional


class KeyValueStore(ABC):
    """Abstract base class for view storage backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the value stored under key, or None."""
        pass

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value under key."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key (no-op when missing)."""
        pass

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """List keys starting with prefix, sorted."""
        pass

    def write_batch(self, puts: Dict[str, Any], deletes: Iterable[str]) -> None:
        """Apply a group of writes.

        Backends override this to make the group atomic. Deletes are applied
        after puts.

        Args:
            puts: Key/value pairs to store
            deletes: Keys to remove
        """
        for key, value in puts.items():
            self.put(key, value)
        for key in deletes:
            self.delete(key)

    def health_check(self) -> bool:
        """Check backend health."""
        return True

    def close(self) -> None:
        """Release backend resources."""
        return None
