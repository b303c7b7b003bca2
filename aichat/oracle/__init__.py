"""
AI oracle: the single consumer of the chat work queue.

- tokenizer.py: Token counting (tiktoken or heuristic)
- context.py: Bounded context composition
- retry.py: Backoff and grace rules
- completion.py: Completion endpoint client
- sanitizer.py: Mention demotion and size fitting
- transport.py: Reply posting
- inflight.py: Inflight table
- consumer.py: Consumer loop
- timer.py: Trusted clock feed
"""

from aichat.oracle.completion import CompletionClient, CompletionOutcome, CompletionOutcomeKind
from aichat.oracle.consumer import OracleConsumer, StepResult
from aichat.oracle.context import ContextComposer, ContextLimits, HistoryPair
from aichat.oracle.inflight import InflightTable
from aichat.oracle.retry import RetryPolicy
from aichat.oracle.sanitizer import ReplySanitizer
from aichat.oracle.timer import TimerFeature
from aichat.oracle.tokenizer import create_token_counter
from aichat.oracle.transport import LedgerChatTransport

__all__ = [
    "CompletionClient",
    "CompletionOutcome",
    "CompletionOutcomeKind",
    "ContextComposer",
    "ContextLimits",
    "HistoryPair",
    "InflightTable",
    "LedgerChatTransport",
    "OracleConsumer",
    "ReplySanitizer",
    "RetryPolicy",
    "StepResult",
    "TimerFeature",
    "create_token_counter",
]
