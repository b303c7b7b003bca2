"""
Shared pytest fixtures for the chat oracle tests.

This file contains reusable fixtures for:
- Environment setup
- View store, state machine and local ledger with a trusted clock
- A fully wired oracle consumer with an injectable clock
- FastAPI test client
"""

import os
from typing import Dict, Generator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

ADMIN = "a" * 64
ALICE = "b" * 64
BOB = "c" * 64
CAROL = "d" * 64

# 2023-11-14T22:13:20Z, minute and day boundaries are irrelevant unless a test says so
NOW = 1_700_000_000_000


# ============================================================================
# Environment Setup
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Set up test environment variables before any tests run."""
    os.environ["API_KEY"] = "test-api-key"
    os.environ["NODE_ADDRESS"] = ADMIN
    os.environ["ADMIN_ADDRESS"] = ADMIN
    os.environ["STORE_BACKEND"] = "memory"

    # The global settings object may have been created during collection
    from aichat.settings import settings

    settings.api_key = "test-api-key"
    settings.node_address = ADMIN
    settings.admin_address = ADMIN

    yield


# ============================================================================
# Contract fixtures
# ============================================================================


@pytest.fixture
def rules():
    """Contract rules with production defaults."""
    from aichat.settings import ContractSettings

    return ContractSettings(
        trigger_token="@ai",
        reply_marker="ai-reply",
        daily_cap=1500,
        window_ms=60000,
        window_cap=10,
        selection_divisor=20,
        msg_max_bytes=65536,
    )


@pytest.fixture
def store():
    from aichat.store import InMemoryStore

    return InMemoryStore()


@pytest.fixture
def machine(rules):
    from aichat.contract import QueueStateMachine

    return QueueStateMachine(rules)


@pytest.fixture
def ledger(store, machine):
    """Local ledger with the administrator set and the trusted clock at NOW."""
    from aichat.contract.models import admin_event, timer_event
    from aichat.ledger import LocalLedger

    ledger = LocalLedger(store, machine)
    ledger.append_sync(admin_event(ADMIN))
    ledger.append_sync(timer_event(ADMIN, NOW))
    return ledger


@pytest.fixture
def ask(ledger):
    """Append a chat message and return the ApplyResult."""
    from aichat.contract.models import chat_message

    def _ask(address: str, msg: str, attachments=None):
        return ledger.append_sync(chat_message(address, msg, attachments))

    return _ask


# ============================================================================
# Oracle fixtures
# ============================================================================


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def composer():
    from aichat.oracle.context import ContextComposer, ContextLimits
    from aichat.oracle.tokenizer import HeuristicTokenCounter

    return ContextComposer(
        persona="You are a helpful chat participant.",
        limits=ContextLimits(),
        counter=HeuristicTokenCounter(),
        model="test-model",
    )


@pytest.fixture
def completion_client(composer, clock):
    """Completion client whose HTTP seam (_post) is an AsyncMock."""
    from aichat.oracle.completion import CompletionClient
    from aichat.oracle.retry import RetryPolicy

    client = CompletionClient(
        endpoint="http://127.0.0.1:8000/v1/chat/completions",
        composer=composer,
        policy=RetryPolicy(success_grace_ms=0, warmup_grace_ms=0),
        clock=clock,
        sleep=AsyncMock(),
    )
    client._post = AsyncMock(return_value="the answer")
    return client


@pytest.fixture
def consumer(ledger, completion_client, composer, clock):
    """Oracle consumer posting as the administrator, no startup fast-forward."""
    from aichat.oracle.consumer import OracleConsumer
    from aichat.oracle.inflight import InflightTable
    from aichat.oracle.sanitizer import ReplySanitizer
    from aichat.oracle.transport import LedgerChatTransport

    transport = LedgerChatTransport(
        ledger, address=ADMIN, reply_marker="ai-reply", max_bytes=65536
    )
    return OracleConsumer(
        ledger=ledger,
        client=completion_client,
        composer=composer,
        sanitizer=ReplySanitizer("ai"),
        transport=transport,
        inflight=InflightTable(ttl_ms=120000, max_retries=1, max_failures=3),
        address=ADMIN,
        max_backlog=20,
        poll_interval_ms=1,
        commit_poll_timeout_ms=100,
        startup_fast_forward=False,
        clock=clock,
        sleep=AsyncMock(),
    )


# ============================================================================
# FastAPI Test Client
# ============================================================================


@pytest.fixture
def runtime():
    """Runtime on an in-memory view with the oracle loop disabled."""
    from aichat.contract.models import admin_event, timer_event
    from aichat.oracle.tokenizer import HeuristicTokenCounter
    from aichat.runtime import OracleRuntime
    from aichat.settings import Settings
    from aichat.store import InMemoryStore

    config = Settings(
        api_key="test-api-key",
        node_address=ADMIN,
        admin_address=ADMIN,
        oracle_enabled=False,
    )
    runtime = OracleRuntime(
        config, store=InMemoryStore(), token_counter=HeuristicTokenCounter()
    )
    runtime.ledger.append_sync(admin_event(ADMIN))
    runtime.ledger.append_sync(timer_event(ADMIN, NOW))
    return runtime


@pytest.fixture
def client(runtime) -> Generator[TestClient, None, None]:
    """FastAPI test client using the runtime fixture."""
    from aichat.main import app

    # The lifespan starts the timer feature; keep the trusted clock at NOW
    runtime.timer.clock = lambda: NOW
    app.state.runtime = runtime
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.state.runtime = None


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    """Return authentication headers for API requests."""
    return {"X-API-Key": "test-api-key"}
