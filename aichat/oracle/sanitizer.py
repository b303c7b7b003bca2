"""
Reply sanitizing and size fitting.

Model output is posted to the same public chat the state machine reads, so
any mention left in it could queue another prompt. Mentions are demoted to
plain text and the reply carries exactly one leading mention of the asker.
"""

import logging
import math
import re
from typing import Callable, Optional, TypeVar

from aichat.exceptions import TransportSizeOverflow

logger = logging.getLogger(__name__)

TRIMMED_NOTICE = "(reply trimmed)"
MIN_SHRINK_CHARS = 200
MAX_FIT_ATTEMPTS = 10

_YOU_MENTION = re.compile(r"@you\b", re.IGNORECASE)
_ADDRESS_MENTION = re.compile(r"@([a-f0-9]{64})\b", re.IGNORECASE)

T = TypeVar("T")


class ReplySanitizer:
    """Rewrites model output before it is posted.

    Args:
        trigger_word: Trigger token without '@' (e.g. "ai")
        max_attempts: Shrink steps tried before the trimmed notice is used
    """

    def __init__(self, trigger_word: str = "ai", max_attempts: int = MAX_FIT_ATTEMPTS):
        self.trigger_word = trigger_word
        self.max_attempts = max_attempts
        self._trigger_mention = re.compile(
            r"@" + re.escape(trigger_word) + r"\b", re.IGNORECASE
        )

    def resolve_tag(self, address: str, nick: Optional[str]) -> str:
        """Nickname when set, address otherwise.

        A nickname equal to the trigger word would re-trigger the queue, so
        it falls back to the address as well.
        """
        if isinstance(nick, str) and nick.strip():
            if nick.strip().lower() != self.trigger_word.lower():
                return nick
        return address

    def demote_mentions(self, text: str, tag: str) -> str:
        if not isinstance(text, str):
            return ""
        text = _YOU_MENTION.sub("you", text)
        text = self._trigger_mention.sub(lambda m: m.group(0)[1:], text)
        if tag:
            tag_mention = re.compile(r"\B@" + re.escape(tag) + r"(?!\w)", re.IGNORECASE)
            text = tag_mention.sub(tag, text)
        text = _ADDRESS_MENTION.sub(r"\1", text)
        return text

    @staticmethod
    def mention(tag: str) -> str:
        return f"@{tag}"

    def compose(self, body: str, tag: str) -> str:
        return f"{self.mention(tag)} {body}"

    def trimmed_notice(self, tag: str) -> str:
        return f"{self.mention(tag)} {TRIMMED_NOTICE}"

    def fit(self, body: str, tag: str, prepare: Callable[[str], T]) -> T:
        """Prepare ``@tag body``, shrinking the body until the transport accepts it.

        Each step removes 20% of the body, at least MIN_SHRINK_CHARS
        characters. Once the body is empty or the attempts run out the
        trimmed notice is prepared instead.

        Args:
            body: Sanitized reply text
            tag: Resolved display tag
            prepare: Builds a transport message, raising TransportSizeOverflow when too large

        Returns:
            Whatever ``prepare`` returned for the first text that fit
        """
        candidate = body
        for attempt in range(self.max_attempts):
            try:
                return prepare(self.compose(candidate, tag))
            except TransportSizeOverflow as e:
                cut = max(len(candidate) - math.floor(len(candidate) * 0.8), MIN_SHRINK_CHARS)
                next_len = max(0, len(candidate) - cut)
                logger.debug(
                    f"Reply of {e.size} bytes over limit {e.limit}, "
                    f"shrinking {len(candidate)} -> {next_len} chars (step {attempt + 1})"
                )
                if next_len <= 0:
                    break
                candidate = candidate[:next_len]

        logger.warning(f"Reply for @{tag} could not be fitted, posting trimmed notice")
        return prepare(self.trimmed_notice(tag))
