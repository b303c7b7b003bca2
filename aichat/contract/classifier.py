"""
Prompt classification for incoming chat messages.

A message joins the queue either because it mentions the trigger token
(tagged) or because a deterministic lottery over its text and the current
minute picked it (random participation, roughly one in ``divisor``).
"""

import math
import re
from dataclasses import dataclass
from typing import Optional

from aichat.contract.models import QueueType

SCORE_MODULUS = 0x7FFFFFFF
MINUTE_MS = 60_000

REASON_EMPTY_PROMPT = "empty_prompt"
REASON_HAS_MENTION = "has_mention"
REASON_NOT_SELECTED = "not_selected"


@dataclass(frozen=True)
class Classification:
    """Queue type and prompt for a message, or the reason it is not queued."""

    queue_type: Optional[QueueType]
    prompt: str = ""
    reason: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.queue_type is not None


def extract_tagged_prompt(msg: str, trigger_token: str) -> Optional[str]:
    """Text following the first trigger mention, or None when there is none.

    One leading colon is dropped ("@ai: hello" -> "hello").
    """
    match = re.search(re.escape(trigger_token), msg, re.IGNORECASE)
    if match is None:
        return None
    prompt = msg[match.end():].strip()
    if prompt.startswith(":"):
        prompt = prompt[1:].strip()
    return prompt


def participation_score(msg: str) -> int:
    """Running sum of UTF-16 code units, bounded by SCORE_MODULUS.

    Characters outside the BMP count as their two surrogate units, so the
    score matches logs written by peers that index strings in UTF-16.
    """
    data = msg.encode("utf-16-le", errors="surrogatepass")
    acc = 0
    for i in range(0, len(data), 2):
        acc = (acc + int.from_bytes(data[i:i + 2], "little")) % SCORE_MODULUS
    return acc


def is_selected(msg: str, now: float, divisor: int) -> bool:
    """Deterministic random participation test for (text, minute bucket)."""
    minute_key = math.floor(now / MINUTE_MS)
    return (participation_score(msg) + minute_key) % divisor == 0


def classify(msg: str, now: float, trigger_token: str, divisor: int) -> Classification:
    """Decide whether and how a chat message is queued.

    Args:
        msg: Raw chat message
        now: Trusted time in milliseconds
        trigger_token: Mention that tags the oracle, e.g. "@ai"
        divisor: Random participation selects one bucket in ``divisor``

    Returns:
        Classification
    """
    tagged = extract_tagged_prompt(msg, trigger_token)
    if tagged is not None:
        if tagged == "":
            return Classification(None, reason=REASON_EMPTY_PROMPT)
        return Classification(QueueType.TAGGED, prompt=tagged)

    # Random participation never picks messages addressed to someone
    if "@" in msg:
        return Classification(None, reason=REASON_HAS_MENTION)
    if not is_selected(msg, now, divisor):
        return Classification(None, reason=REASON_NOT_SELECTED)

    prompt = msg.strip()
    if prompt == "":
        return Classification(None, reason=REASON_EMPTY_PROMPT)
    return Classification(QueueType.RANDOM, prompt=prompt)
