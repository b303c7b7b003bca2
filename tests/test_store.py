"""
Tests for the view stores and backend selection.

Redis is mocked; the in-memory store is exercised directly.
"""

from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError


@pytest.mark.unit
class TestInMemoryStore:
    def test_put_get_delete(self):
        from aichat.store import InMemoryStore

        store = InMemoryStore()
        store.put("pending/1", {"from": "x", "prompt": "hi"})

        assert store.get("pending/1") == {"from": "x", "prompt": "hi"}

        store.delete("pending/1")

        assert store.get("pending/1") is None

    def test_values_are_copies(self):
        from aichat.store import InMemoryStore

        store = InMemoryStore()
        window = [1, 2]
        store.put("rate/window/x", window)
        window.append(3)
        store.get("rate/window/x").append(4)

        assert store.get("rate/window/x") == [1, 2]

    def test_keys_by_prefix(self):
        from aichat.store import InMemoryStore

        store = InMemoryStore()
        for key in ("pending/2", "pending/1", "done/1"):
            store.put(key, {})

        assert store.keys("pending/") == ["pending/1", "pending/2"]
        assert len(store.keys()) == 3

    def test_write_batch(self):
        from aichat.store import InMemoryStore

        store = InMemoryStore()
        store.put("pending/1", {"prompt": "hi"})

        store.write_batch({"done/1": {"reply": "yo"}, "process_seq": 1}, ["pending/1"])

        assert store.snapshot() == {"done/1": {"reply": "yo"}, "process_seq": 1}

    def test_health_check(self):
        from aichat.store import InMemoryStore

        assert InMemoryStore().health_check() is True


@pytest.mark.unit
class TestRedisStore:
    """Tests for RedisStore with a mocked client."""

    @patch("aichat.store.primary.redis_store.redis.Redis")
    def test_get_decodes_json(self, mock_redis_class):
        from aichat.store.primary.redis_store import RedisStore

        mock_client = MagicMock()
        mock_client.get.return_value = '{"reply": "gm"}'
        mock_redis_class.return_value = mock_client

        store = RedisStore(redis_url="redis://localhost:6379/0")

        assert store.get("done/1") == {"reply": "gm"}
        mock_client.get.assert_called_once_with("aichat:done/1")

    @patch("aichat.store.primary.redis_store.redis.Redis")
    def test_missing_key(self, mock_redis_class):
        from aichat.store.primary.redis_store import RedisStore

        mock_client = MagicMock()
        mock_client.get.return_value = None
        mock_redis_class.return_value = mock_client

        assert RedisStore(redis_url="redis://localhost:6379/0").get("x") is None

    @patch("aichat.store.primary.redis_store.redis.Redis")
    def test_write_batch_uses_transaction(self, mock_redis_class):
        from aichat.store.primary.redis_store import RedisStore

        mock_client = MagicMock()
        pipe = MagicMock()
        mock_client.pipeline.return_value = pipe
        mock_redis_class.return_value = mock_client

        store = RedisStore(redis_url="redis://localhost:6379/0", key_prefix="t:")
        store.write_batch({"process_seq": 3}, ["pending/3"])

        mock_client.pipeline.assert_called_once_with(transaction=True)
        pipe.set.assert_called_once_with("t:process_seq", "3")
        pipe.delete.assert_called_once_with("t:pending/3")
        pipe.execute.assert_called_once()

    @patch("aichat.store.primary.redis_store.redis.Redis")
    def test_errors_propagate(self, mock_redis_class):
        from aichat.store.primary.redis_store import RedisStore

        mock_client = MagicMock()
        mock_client.get.side_effect = RedisConnectionError("gone")
        mock_redis_class.return_value = mock_client

        store = RedisStore(redis_url="redis://localhost:6379/0")

        with pytest.raises(RedisConnectionError):
            store.get("x")

    @patch("aichat.store.primary.redis_store.redis.Redis")
    def test_keys_strip_prefix(self, mock_redis_class):
        from aichat.store.primary.redis_store import RedisStore

        mock_client = MagicMock()
        mock_client.scan_iter.return_value = iter(["aichat:pending/2", "aichat:pending/1"])
        mock_redis_class.return_value = mock_client

        store = RedisStore(redis_url="redis://localhost:6379/0")

        assert store.keys("pending/") == ["pending/1", "pending/2"]
        mock_client.scan_iter.assert_called_once_with(match="aichat:pending/*")

    @patch("aichat.store.primary.redis_store.redis.Redis")
    def test_health_check_failure(self, mock_redis_class):
        from aichat.store.primary.redis_store import RedisStore

        mock_client = MagicMock()
        mock_redis_class.return_value = mock_client
        store = RedisStore(redis_url="redis://localhost:6379/0")

        mock_client.ping.side_effect = RedisConnectionError("gone")

        assert store.health_check() is False


@pytest.mark.integration
class TestStoreFactory:
    """Tests for backend selection and fallback."""

    def test_falls_back_to_memory_on_redis_failure(self):
        from aichat.store import InMemoryStore, create_store

        with patch(
            "aichat.store.factory.RedisStore",
            side_effect=RedisConnectionError("Connection refused"),
        ):
            store = create_store(backend="redis", redis_url="redis://localhost:6379/0")

        assert isinstance(store, InMemoryStore)

    def test_falls_back_without_url(self):
        from aichat.store import InMemoryStore, create_store

        assert isinstance(create_store(backend="redis", redis_url=None), InMemoryStore)

    def test_memory_requested(self):
        from aichat.store import InMemoryStore, create_store

        assert isinstance(create_store(backend="memory"), InMemoryStore)

    def test_redis_when_available(self):
        from aichat.store import create_store

        with patch("aichat.store.factory.RedisStore") as mock_store:
            store = create_store(backend="redis", redis_url="redis://localhost:6379/0")

        assert store is mock_store.return_value
