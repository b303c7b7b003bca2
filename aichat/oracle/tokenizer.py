"""
Token counting for context budgeting.

Exact counts come from tiktoken. Unknown model names fall back to the
cl100k_base encoding; if no encoding can be loaded at all (offline host with
an empty tiktoken cache) counting degrades to ceil(len / 4).
"""

import logging
import math
from abc import ABC, abstractmethod

import tiktoken

logger = logging.getLogger(__name__)

FALLBACK_ENCODING = "cl100k_base"


class TokenCounter(ABC):
    """Counts tokens of a string."""

    @abstractmethod
    def count(self, text: str) -> int:
        pass


class HeuristicTokenCounter(TokenCounter):
    """Roughly four characters per token."""

    def count(self, text: str) -> int:
        return math.ceil(len(text or "") / 4)


class TiktokenCounter(TokenCounter):
    """Exact counts with a tiktoken encoding.

    Raises:
        Exception: Whatever tiktoken raises when the encoding cannot be loaded
    """

    def __init__(self, model: str):
        try:
            self.encoding = tiktoken.encoding_for_model(model)
        except KeyError:
            self.encoding = tiktoken.get_encoding(FALLBACK_ENCODING)
        self._fallback = HeuristicTokenCounter()

    def count(self, text: str) -> int:
        if not text:
            return 0
        try:
            return len(self.encoding.encode(text, disallowed_special=()))
        except Exception as e:  # noqa: BLE001
            logger.debug(f"tiktoken encode failed, using heuristic: {e}")
            return self._fallback.count(text)


def create_token_counter(model: str) -> TokenCounter:
    """Exact counter when an encoding can be loaded, heuristic otherwise."""
    try:
        counter = TiktokenCounter(model)
        logger.info(f"Token counting with tiktoken encoding '{counter.encoding.name}'")
        return counter
    except Exception as e:  # noqa: BLE001
        logger.warning(f"tiktoken encoding unavailable ({e}), using ceil(len/4) heuristic")
        return HeuristicTokenCounter()
