"""
Tests for runtime wiring and operator diagnostics.
"""

import pytest

ADMIN = "a" * 64
ALICE = "b" * 64
NOW = 1_700_000_000_000


def make_runtime(**overrides):
    from aichat.oracle.tokenizer import HeuristicTokenCounter
    from aichat.runtime import OracleRuntime
    from aichat.settings import Settings
    from aichat.store import InMemoryStore

    values = {
        "api_key": "test-api-key",
        "node_address": ADMIN,
        "admin_address": ADMIN,
        "oracle_enabled": False,
    }
    values.update(overrides)
    return OracleRuntime(
        Settings(**values), store=InMemoryStore(), token_counter=HeuristicTokenCounter()
    )


@pytest.mark.integration
class TestOracleRuntime:
    @pytest.mark.asyncio
    async def test_bootstrap_sets_admin(self):
        runtime = make_runtime()

        await runtime.bootstrap()

        assert runtime.admin == ADMIN
        assert runtime.is_oracle_peer

    @pytest.mark.asyncio
    async def test_bootstrap_keeps_existing_admin(self):
        from aichat.contract.models import admin_event

        runtime = make_runtime()
        runtime.ledger.append_sync(admin_event(ALICE))

        await runtime.bootstrap()

        assert runtime.admin == ALICE
        assert not runtime.is_oracle_peer

    @pytest.mark.asyncio
    async def test_start_and_stop_features(self):
        runtime = make_runtime()

        await runtime.start()
        assert runtime.features == ["timer"]

        await runtime.stop()
        assert runtime.features == []

    @pytest.mark.asyncio
    async def test_oracle_task_started_when_enabled(self):
        runtime = make_runtime(oracle_enabled=True)

        await runtime.start()
        try:
            assert sorted(runtime.features) == ["oracle", "timer"]
        finally:
            await runtime.stop()

    @pytest.mark.asyncio
    async def test_non_admin_node_runs_nothing(self):
        runtime = make_runtime(node_address=ALICE)

        await runtime.start()

        assert runtime.features == []
        await runtime.stop()

    def test_wiring_follows_settings(self):
        runtime = make_runtime()

        assert runtime.client.policy.warmup_grace_ms == runtime.settings.oracle.warmup_grace_ms
        assert runtime.inflight.max_failures == runtime.settings.oracle.max_process_attempts
        assert runtime.consumer.sanitizer.trigger_word == "ai"
        assert runtime.transport.reply_marker == "ai-reply"


@pytest.mark.unit
class TestDiagnostics:
    def test_state_snapshot(self, runtime):
        from aichat.contract.models import chat_message
        from aichat.diagnostics import state_snapshot

        runtime.ledger.append_sync(chat_message(ALICE, "@ai price?"))

        data = state_snapshot(runtime)

        assert data["current_time"] == NOW
        assert data["backlog"] == 1
        assert data["next_pending_key"] == "pending/1"
        assert data["next_pending"]["from"] == ALICE
        assert data["messages"] == 1

    def test_rate_snapshot_without_clock(self):
        from aichat.diagnostics import rate_snapshot

        runtime = make_runtime()

        assert "error" in rate_snapshot(runtime, ALICE)

    def test_rate_snapshot(self, runtime):
        from aichat.contract.models import chat_message
        from aichat.diagnostics import rate_snapshot

        runtime.ledger.append_sync(chat_message(ALICE, "@ai price?"))

        data = rate_snapshot(runtime, ALICE)

        assert data["daily_count"] == 1
        assert data["window"] == [NOW]
        assert data["oldest_age_ms"] == 0

    def test_inflight_snapshot_blocking_seq(self, runtime):
        from aichat.contract.models import chat_message
        from aichat.diagnostics import inflight_snapshot

        runtime.ledger.append_sync(chat_message(ALICE, "@ai price?"))
        runtime.inflight.claim(1, NOW)

        data = inflight_snapshot(runtime)

        assert data["likely_blocking_seq"] == 1
        assert data["details"][0]["has_pending"] is True
        assert data["details"][0]["age_ms"] == 0

    @pytest.mark.asyncio
    async def test_fast_forward_defaults_to_message_seq(self, runtime):
        from aichat.contract.models import chat_message
        from aichat.diagnostics import request_fast_forward

        for i in range(3):
            runtime.ledger.append_sync(chat_message(ALICE, f"@ai {i}"))

        result = await request_fast_forward(runtime)

        assert result == {"requested": True, "seq": 3, "process_seq": 3}

    @pytest.mark.asyncio
    async def test_fast_forward_clamped(self, runtime):
        from aichat.contract.models import chat_message
        from aichat.diagnostics import request_fast_forward

        runtime.ledger.append_sync(chat_message(ALICE, "@ai hi"))

        result = await request_fast_forward(runtime, 99)

        assert result["seq"] == 1

    @pytest.mark.asyncio
    async def test_fast_forward_without_advance(self, runtime):
        from aichat.diagnostics import request_fast_forward

        result = await request_fast_forward(runtime, 0)

        assert result["requested"] is False

    @pytest.mark.asyncio
    async def test_requires_oracle_peer(self, runtime):
        from aichat.diagnostics import ai_last, request_fast_forward
        from aichat.exceptions import NotOraclePeer

        runtime.ledger.writable = False

        with pytest.raises(NotOraclePeer):
            ai_last(runtime)
        with pytest.raises(NotOraclePeer):
            await request_fast_forward(runtime, 1)
