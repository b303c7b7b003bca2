"""
Context composition for completion requests.

Builds the message list sent to the model: persona, compact rolling summary,
prior Q/A turns oldest-first and the current prompt. The result is bounded
twice, first by a token budget and then by a byte ceiling on the serialized
request, using the same truncation cascade:

1. Drop the oldest history pair
2. Shrink the summary by 20% (not below SUMMARY_FLOOR chars)
3. Shrink the prompt by 10% (not below PROMPT_FLOOR chars)

Composition is a pure function of its inputs and the configured limits.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence

from aichat.oracle.tokenizer import TokenCounter

logger = logging.getLogger(__name__)

SUMMARY_PREFIX = "Conversation summary (compact):\n"
SUMMARY_TOKEN_LIMIT = 512
SUMMARY_CHAR_CUT = 2048
SUMMARY_FLOOR = 128
PROMPT_FLOOR = 64

MINIMAL_SYSTEM = "Answer the user briefly."
MINIMAL_PROMPT_CHARS = 1000

Message = Dict[str, str]


@dataclass
class HistoryPair:
    """One resolved prompt and the reply committed for it."""

    prompt: str
    reply: str

    def to_messages(self) -> List[Message]:
        messages = []
        if self.prompt:
            messages.append({"role": "user", "content": self.prompt})
        if self.reply:
            messages.append({"role": "assistant", "content": self.reply})
        return messages


@dataclass
class ContextLimits:
    max_context_tokens: int = 32768
    max_reply_tokens: int = 1024
    headroom_tokens: int = 512
    max_request_bytes: int = 256 * 1024
    history_window: int = 64

    @property
    def token_budget(self) -> int:
        return self.max_context_tokens - self.max_reply_tokens - self.headroom_tokens

    @classmethod
    def from_settings(cls, oracle_settings) -> "ContextLimits":
        return cls(
            max_context_tokens=oracle_settings.max_context_tokens,
            max_reply_tokens=oracle_settings.max_reply_tokens,
            headroom_tokens=oracle_settings.context_headroom_tokens,
            max_request_bytes=oracle_settings.max_request_bytes,
            history_window=oracle_settings.history_window,
        )


@dataclass
class ComposedContext:
    """Bounded message list plus what had to be cut to get there."""

    messages: List[Message]
    tokens: int
    request_bytes: int
    pairs_used: int = 0
    pairs_dropped: int = 0
    summary_trimmed: bool = False
    prompt_trimmed: bool = False
    notes: List[str] = field(default_factory=list)

    @property
    def over_budget(self) -> bool:
        return "over_budget" in self.notes


class ContextComposer:
    """Composes bounded completion contexts.

    Args:
        persona: System message sent first
        limits: Token and byte limits
        counter: Token counter
        model: Model name placed in the request body
        temperature: Sampling temperature placed in the request body
    """

    def __init__(
        self,
        persona: str,
        limits: ContextLimits,
        counter: TokenCounter,
        model: str,
        temperature: float = 0.7,
    ):
        self.persona = persona
        self.limits = limits
        self.counter = counter
        self.model = model
        self.temperature = temperature

    def build_request(self, messages: List[Message]) -> Dict:
        """Request body for an OpenAI-compatible chat completions endpoint."""
        return {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "max_tokens": self.limits.max_reply_tokens,
            "temperature": self.temperature,
        }

    def request_size(self, messages: List[Message]) -> int:
        return len(json.dumps(self.build_request(messages)).encode("utf-8"))

    def count_tokens(self, messages: List[Message]) -> int:
        return sum(self.counter.count(m["content"]) for m in messages)

    def _assemble(
        self, summary: str, pairs: Sequence[HistoryPair], prompt: str
    ) -> List[Message]:
        messages = [
            {"role": "system", "content": self.persona},
            {"role": "system", "content": SUMMARY_PREFIX + summary},
        ]
        for pair in pairs:
            messages.extend(pair.to_messages())
        messages.append({"role": "user", "content": prompt})
        return messages

    def _cascade(
        self,
        summary: str,
        pairs: List[HistoryPair],
        prompt: str,
        over: Callable[[List[Message]], bool],
    ):
        messages = self._assemble(summary, pairs, prompt)

        while over(messages) and pairs:
            pairs.pop(0)
            messages = self._assemble(summary, pairs, prompt)

        while over(messages) and len(summary) > SUMMARY_FLOOR:
            summary = summary[: math.floor(len(summary) * 0.8)]
            messages = self._assemble(summary, pairs, prompt)

        while over(messages) and len(prompt) > PROMPT_FLOOR:
            prompt = prompt[: math.floor(len(prompt) * 0.9)]
            messages = self._assemble(summary, pairs, prompt)

        return summary, pairs, prompt, messages

    def compose(
        self, summary: str, history: Sequence[HistoryPair], prompt: str
    ) -> ComposedContext:
        """Build a context that fits the token budget and the byte ceiling.

        Args:
            summary: Rolling summary (may be empty)
            history: Prior turns, oldest first
            prompt: Current prompt

        Returns:
            ComposedContext; ``over_budget`` is set when the floors were hit
            and the context still does not fit
        """
        summary = summary or ""
        if self.counter.count(summary) > SUMMARY_TOKEN_LIMIT:
            summary = summary[:SUMMARY_CHAR_CUT]

        window = self.limits.history_window
        pairs = list(history)[-window:] if window > 0 else []
        original_pairs = len(pairs)
        original_summary = summary
        original_prompt = prompt

        budget = self.limits.token_budget
        summary, pairs, prompt, messages = self._cascade(
            summary, pairs, prompt, lambda m: self.count_tokens(m) > budget
        )

        max_bytes = self.limits.max_request_bytes
        summary, pairs, prompt, messages = self._cascade(
            summary, pairs, prompt, lambda m: self.request_size(m) > max_bytes
        )

        context = ComposedContext(
            messages=messages,
            tokens=self.count_tokens(messages),
            request_bytes=self.request_size(messages),
            pairs_used=len(pairs),
            pairs_dropped=original_pairs - len(pairs),
            summary_trimmed=summary != original_summary,
            prompt_trimmed=prompt != original_prompt,
        )
        if context.tokens > budget or context.request_bytes > max_bytes:
            context.notes.append("over_budget")
            logger.warning(
                f"Context still over budget after truncation: "
                f"{context.tokens} tokens, {context.request_bytes} bytes"
            )
        elif context.pairs_dropped or context.summary_trimmed or context.prompt_trimmed:
            logger.debug(
                f"Context truncated: dropped {context.pairs_dropped} pairs, "
                f"summary_trimmed={context.summary_trimmed}, "
                f"prompt_trimmed={context.prompt_trimmed}"
            )
        return context

    def minimal(self, prompt: str) -> List[Message]:
        """Short instruction plus truncated prompt, used for retries."""
        return [
            {"role": "system", "content": MINIMAL_SYSTEM},
            {"role": "user", "content": (prompt or "")[:MINIMAL_PROMPT_CHARS]},
        ]
