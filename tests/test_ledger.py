"""
Tests for the local ledger and commit polling.
"""

import pytest

ADMIN = "a" * 64
ALICE = "b" * 64


@pytest.mark.unit
class TestLocalLedger:
    def test_append_returns_apply_result(self, ledger):
        from aichat.contract.models import chat_message

        result = ledger.append_sync(chat_message(ALICE, "@ai hi"))

        assert result.action == "enqueued"
        assert result.seq == 1

    def test_log_keeps_order(self, ledger):
        from aichat.contract.models import chat_message

        ledger.append_sync(chat_message(ALICE, "first"))
        ledger.append_sync(chat_message(ALICE, "second"))

        assert ledger.length == 4
        assert [e.get("msg") for e in ledger.events(2)] == ["first", "second"]

    def test_events_are_copies(self, ledger):
        ledger.events()[0]["address"] = "tampered"

        assert ledger.events()[0]["address"] == ADMIN

    def test_read_only_rejects_appends(self, ledger):
        from aichat.contract.models import chat_message
        from aichat.exceptions import CommitFailure

        ledger.writable = False

        with pytest.raises(CommitFailure):
            ledger.append_sync(chat_message(ALICE, "@ai hi"))

    def test_unserializable_event(self, ledger):
        from aichat.exceptions import CommitFailure

        with pytest.raises(CommitFailure):
            ledger.append_sync({"type": "msg", "address": ALICE, "msg": object()})

    def test_malformed_event_logged_and_ignored(self, ledger, store):
        before = store.snapshot()

        result = ledger.append_sync({"type": "unknown"})

        assert result.reason == "malformed"
        assert ledger.length == 3
        assert store.snapshot() == before

    def test_failed_view_write_not_appended(self, ledger, store, machine):
        import redis

        from aichat.contract.models import chat_message
        from aichat.exceptions import CommitFailure
        from aichat.store import InMemoryStore

        original = store.write_batch
        calls = {"n": 0}

        def flaky_write_batch(puts, deletes):
            calls["n"] += 1
            if calls["n"] == 1:
                raise redis.ConnectionError("connection refused")
            return original(puts, deletes)

        store.write_batch = flaky_write_batch

        with pytest.raises(CommitFailure) as exc_info:
            ledger.append_sync(chat_message(ALICE, "@ai price?"))

        assert isinstance(exc_info.value.__cause__, redis.ConnectionError)
        assert ledger.length == 2
        assert store.get("message_seq") is None
        assert ledger.rebuild(InMemoryStore()).snapshot() == store.snapshot()

        # The next append goes through normally
        result = ledger.append_sync(chat_message(ALICE, "@ai price?"))
        assert result.seq == 1
        assert ledger.rebuild(InMemoryStore()).snapshot() == store.snapshot()

    def test_rejection_logged(self, ledger, caplog):
        import logging

        from aichat.contract.models import chat_message

        with caplog.at_level(logging.DEBUG, logger="aichat.ledger"):
            ledger.append_sync(chat_message(ALICE, "@ai"))

        assert "Admission rejected: empty_prompt" in caplog.text

    @pytest.mark.asyncio
    async def test_async_append(self, ledger):
        from aichat.contract.models import nick_event

        await ledger.append(nick_event(ALICE, "satoshi"))

        assert ledger.get(f"nick/{ALICE}") == "satoshi"


@pytest.mark.unit
class TestWaitFor:
    @pytest.mark.asyncio
    async def test_visible_immediately(self, ledger):
        from aichat.ledger import wait_for

        assert await wait_for(ledger, "admin", lambda v: v == ADMIN, timeout_ms=10)

    @pytest.mark.asyncio
    async def test_times_out(self, ledger):
        from aichat.ledger import wait_for

        assert not await wait_for(
            ledger, "process_seq", lambda v: (v or 0) >= 1, timeout_ms=60, interval_ms=10
        )
