"""
Completion endpoint client.

One HTTP POST per attempt against an OpenAI-compatible chat completions
endpoint. ``request`` raises EndpointFailure; ``complete`` wraps it with
retries and grace handling and never raises.

Retry behavior (default policy):
- Attempt 0 sends the full composed context
- Up to 3 retries send a minimized context after 1s, 2s, 4s
- All failed: abandoned inside a grace window, apology otherwise
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

import aiohttp

from aichat.exceptions import EndpointFailure
from aichat.metrics import (
    aichat_completion_latency_seconds,
    aichat_completion_outcomes_total,
    aichat_completion_requests_total,
)
from aichat.oracle.context import ComposedContext, ContextComposer, Message
from aichat.oracle.retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_APOLOGY = "Sorry, the AI endpoint failed."


def _now_ms() -> float:
    return time.time() * 1000


class CompletionOutcomeKind(str, Enum):
    REPLY = "reply"
    APOLOGY = "apology"
    ABANDONED = "abandoned"


@dataclass
class CompletionOutcome:
    kind: CompletionOutcomeKind
    text: str = ""
    attempts: int = 0
    error: Optional[str] = None

    @property
    def abandoned(self) -> bool:
        return self.kind == CompletionOutcomeKind.ABANDONED


@dataclass
class CallDiagnostics:
    """Record of one HTTP attempt."""

    seq: Optional[int]
    attempt: int
    minimized: bool
    latency_ms: float
    payload_bytes: int
    status: Optional[int] = None
    error: Optional[str] = None
    at_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CompletionClient:
    """Client for the completion endpoint.

    Args:
        endpoint: Chat completions URL
        composer: Builds request bodies and minimized retry contexts
        policy: Retry and grace rules
        api_key: Optional endpoint key
        api_key_header: Header carrying the key
        api_key_scheme: Prefix for the key, only used with the Authorization header
        timeout_seconds: Bound on a single attempt
        apology_text: Reply used when every retry failed outside grace
        clock: Returns milliseconds (injectable for tests)
        sleep: Awaitable sleep in seconds (injectable for tests)
    """

    def __init__(
        self,
        endpoint: str,
        composer: ContextComposer,
        policy: Optional[RetryPolicy] = None,
        api_key: Optional[str] = None,
        api_key_header: str = "Authorization",
        api_key_scheme: str = "Bearer",
        timeout_seconds: float = 60,
        apology_text: str = DEFAULT_APOLOGY,
        clock: Callable[[], float] = _now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        history_size: int = 50,
    ):
        self.endpoint = endpoint
        self.composer = composer
        self.policy = policy or RetryPolicy()
        self.api_key = api_key
        self.api_key_header = api_key_header
        self.api_key_scheme = api_key_scheme
        self.timeout_seconds = timeout_seconds
        self.apology_text = apology_text
        self.clock = clock
        self.sleep = sleep

        self.last_success_ms: Optional[float] = None
        self.recent_calls: Deque[CallDiagnostics] = deque(maxlen=history_size)

    @property
    def last_call(self) -> Optional[CallDiagnostics]:
        return self.recent_calls[-1] if self.recent_calls else None

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            if self.api_key_header.lower() == "authorization" and self.api_key_scheme:
                headers[self.api_key_header] = f"{self.api_key_scheme} {self.api_key}"
            else:
                headers[self.api_key_header] = self.api_key
        return headers

    async def _post(self, body: Dict[str, Any]) -> str:
        """Send one request and return the reply text.

        Raises:
            EndpointFailure: On non-2xx status, transport error or timeout
        """
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.endpoint,
                    headers=self.headers(),
                    json=body,
                    timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                ) as resp:
                    if not 200 <= resp.status < 300:
                        error_text = await resp.text()
                        raise EndpointFailure(
                            f"Endpoint error {resp.status}: {error_text[:200]}",
                            status=resp.status,
                        )
                    data = await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise EndpointFailure(f"Endpoint connection error: {e}") from e
        except asyncio.TimeoutError as e:
            raise EndpointFailure(
                f"Endpoint timed out after {self.timeout_seconds}s"
            ) from e
        except ValueError as e:
            raise EndpointFailure(f"Endpoint returned invalid JSON: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        return content if isinstance(content, str) else ""

    async def request(
        self,
        messages: List[Message],
        seq: Optional[int] = None,
        attempt: int = 0,
        minimized: bool = False,
    ) -> str:
        """Single attempt with diagnostics and metrics.

        Raises:
            EndpointFailure: If the attempt failed
        """
        body = self.composer.build_request(messages)
        payload_bytes = self.composer.request_size(messages)
        started = time.monotonic()
        diag = CallDiagnostics(
            seq=seq,
            attempt=attempt,
            minimized=minimized,
            latency_ms=0.0,
            payload_bytes=payload_bytes,
            at_ms=self.clock(),
        )

        try:
            text = await self._post(body)
        except EndpointFailure as e:
            diag.latency_ms = (time.monotonic() - started) * 1000
            diag.status = e.status
            diag.error = e.message
            self.recent_calls.append(diag)
            aichat_completion_requests_total.labels(
                status="http_error" if e.status else "transport_error"
            ).inc()
            logger.warning(
                f"Completion attempt {attempt} for seq {seq} failed: {e.message}",
                extra={"seq": seq, "attempt": attempt, "payload_bytes": payload_bytes},
            )
            raise

        diag.latency_ms = (time.monotonic() - started) * 1000
        diag.status = 200
        self.recent_calls.append(diag)
        self.last_success_ms = self.clock()
        aichat_completion_requests_total.labels(status="success").inc()
        aichat_completion_latency_seconds.observe(diag.latency_ms / 1000)
        logger.info(
            f"Completion for seq {seq} succeeded: {len(text)} chars in {diag.latency_ms:.0f}ms",
            extra={"seq": seq, "attempt": attempt},
        )
        return text

    async def complete(
        self,
        context: ComposedContext,
        prompt: str,
        seq: Optional[int] = None,
        first_seen_ms: Optional[float] = None,
    ) -> CompletionOutcome:
        """Get a reply for a composed context.

        Args:
            context: Full context for the first attempt
            prompt: Original prompt, used for the minimized retry context
            seq: Queue position (diagnostics only)
            first_seen_ms: When the seq was first claimed (warm-up grace)

        Returns:
            CompletionOutcome (never raises)
        """
        last_error: Optional[str] = None
        attempts = 0

        try:
            attempts += 1
            text = await self.request(context.messages, seq=seq, attempt=0)
            return self._finish(CompletionOutcome(CompletionOutcomeKind.REPLY, text, attempts))
        except EndpointFailure as e:
            last_error = e.message

        minimal = self.composer.minimal(prompt)
        for retry, delay in enumerate(self.policy.delays(), start=1):
            await self.sleep(delay)
            try:
                attempts += 1
                text = await self.request(minimal, seq=seq, attempt=retry, minimized=True)
                return self._finish(
                    CompletionOutcome(CompletionOutcomeKind.REPLY, text, attempts)
                )
            except EndpointFailure as e:
                last_error = e.message

        if self.policy.within_grace(self.clock(), self.last_success_ms, first_seen_ms):
            logger.warning(
                f"Completion for seq {seq} failed {attempts} times inside grace window, "
                f"will retry later"
            )
            return self._finish(
                CompletionOutcome(
                    CompletionOutcomeKind.ABANDONED, "", attempts, error=last_error
                )
            )

        logger.error(
            f"Completion for seq {seq} failed after {attempts} attempts: {last_error}"
        )
        return self._finish(
            CompletionOutcome(
                CompletionOutcomeKind.APOLOGY, self.apology_text, attempts, error=last_error
            )
        )

    def _finish(self, outcome: CompletionOutcome) -> CompletionOutcome:
        aichat_completion_outcomes_total.labels(outcome=outcome.kind.value).inc()
        return outcome

    async def ping(self) -> Dict[str, Any]:
        """Send a tiny request to check the endpoint is reachable."""
        try:
            text = await self.request(self.composer.minimal("ping"), attempt=0)
            ok, error = True, None
        except EndpointFailure as e:
            text, ok, error = "", False, e.message
        last = self.last_call
        return {
            "ok": ok,
            "endpoint": self.endpoint,
            "status": last.status if last else None,
            "latency_ms": round(last.latency_ms, 1) if last else None,
            "error": error,
            "reply_preview": text[:80],
        }
