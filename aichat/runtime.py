"""
Application runtime: builds the store, ledger and oracle from settings and
owns the background tasks (timer feed and consumer loop).
"""

import asyncio
import logging
from typing import List, Optional

from aichat.contract import keys
from aichat.contract.models import admin_event
from aichat.contract.state_machine import QueueStateMachine
from aichat.ledger import LocalLedger
from aichat.oracle.completion import CompletionClient
from aichat.oracle.consumer import OracleConsumer
from aichat.oracle.context import ContextComposer, ContextLimits
from aichat.oracle.inflight import InflightTable
from aichat.oracle.retry import RetryPolicy
from aichat.oracle.sanitizer import ReplySanitizer
from aichat.oracle.timer import TimerFeature
from aichat.oracle.tokenizer import TokenCounter, create_token_counter
from aichat.oracle.transport import LedgerChatTransport
from aichat.settings import Settings
from aichat.store import KeyValueStore, create_store

logger = logging.getLogger(__name__)


class OracleRuntime:
    """Everything one node runs.

    Args:
        config: Application settings
        store: View store (created from settings when omitted)
        token_counter: Token counter (tiktoken or heuristic when omitted)
    """

    def __init__(
        self,
        config: Settings,
        store: Optional[KeyValueStore] = None,
        token_counter: Optional[TokenCounter] = None,
    ):
        self.settings = config
        oracle = config.oracle

        self.store = store or create_store(
            backend=config.store.backend,
            redis_url=config.store.redis_url,
            key_prefix=config.store.key_prefix,
        )
        self.state_machine = QueueStateMachine(config.contract)
        self.ledger = LocalLedger(self.store, self.state_machine)

        self.composer = ContextComposer(
            persona=oracle.persona,
            limits=ContextLimits.from_settings(oracle),
            counter=token_counter or create_token_counter(oracle.model),
            model=oracle.model,
            temperature=oracle.temperature,
        )
        self.client = CompletionClient(
            endpoint=oracle.endpoint,
            composer=self.composer,
            policy=RetryPolicy.from_settings(oracle),
            api_key=oracle.api_key,
            api_key_header=oracle.api_key_header,
            api_key_scheme=oracle.api_key_scheme,
            timeout_seconds=oracle.request_timeout_seconds,
            apology_text=oracle.apology_text,
        )
        self.inflight = InflightTable(
            ttl_ms=oracle.inflight_ttl_ms,
            max_retries=oracle.inflight_max_retries,
            max_failures=oracle.max_process_attempts,
        )
        self.transport = LedgerChatTransport(
            self.ledger,
            address=config.node_address,
            reply_marker=config.contract.reply_marker,
            max_bytes=config.contract.msg_max_bytes,
        )
        self.consumer = OracleConsumer(
            ledger=self.ledger,
            client=self.client,
            composer=self.composer,
            sanitizer=ReplySanitizer(config.contract.trigger_word),
            transport=self.transport,
            inflight=self.inflight,
            address=config.node_address,
            max_backlog=oracle.max_backlog,
            history_window=oracle.history_window,
            poll_interval_ms=oracle.poll_interval_ms,
            commit_poll_timeout_ms=oracle.commit_poll_timeout_ms,
            startup_fast_forward=oracle.startup_fast_forward,
        )
        self.timer = TimerFeature(
            self.ledger,
            address=config.node_address,
            interval_ms=config.timer.update_interval_ms,
        )
        self._tasks: List[asyncio.Task] = []

    @property
    def admin(self) -> Optional[str]:
        return self.ledger.get(keys.ADMIN)

    @property
    def is_oracle_peer(self) -> bool:
        """Administrator node with a writable log."""
        return self.ledger.writable and self.admin == self.settings.node_address

    async def bootstrap(self) -> None:
        """Write the administrator address to a fresh log."""
        admin = self.settings.admin_address
        if admin and self.admin is None and self.ledger.writable:
            await self.ledger.append(admin_event(admin))
            logger.info(f"Administrator set to {admin[:12]}")

    async def start(self) -> None:
        await self.bootstrap()

        if not self.is_oracle_peer:
            logger.info("Not the oracle peer (admin + writable), features not started")
            return

        self._tasks.append(asyncio.create_task(self.timer.run(), name="aichat-timer"))
        if self.settings.oracle_enabled:
            self._tasks.append(
                asyncio.create_task(self.consumer.run(), name="aichat-oracle")
            )
            logger.info(
                f"Oracle started: model={self.settings.oracle.model}, "
                f"endpoint={self.settings.oracle.endpoint}"
            )
        else:
            logger.info("Oracle disabled via ORACLE_ENABLED")

    async def stop(self) -> None:
        self.consumer.stop()
        self.timer.stop()
        for task in self._tasks:
            task.cancel()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
                logger.warning(f"Background task ended with error: {result}")
        self._tasks = []

        try:
            self.store.close()
        except Exception as e:
            logger.warning(f"Error closing view store: {e}")
        logger.info("Runtime stopped")

    @property
    def features(self) -> List[str]:
        running = [task.get_name() for task in self._tasks if not task.done()]
        return [name.replace("aichat-", "") for name in running]
