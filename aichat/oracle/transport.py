"""
Public chat transport used by the oracle to post replies.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from aichat.contract import keys
from aichat.contract.models import chat_message
from aichat.exceptions import TransportSizeOverflow
from aichat.ledger import Ledger

logger = logging.getLogger(__name__)


@dataclass
class PreparedMessage:
    """Chat message ready to be posted."""

    text: str
    address: str
    attachments: List[str] = field(default_factory=list)
    size: int = 0

    def to_event(self) -> Dict[str, Any]:
        return chat_message(self.address, self.text, self.attachments)


class ChatTransport(ABC):
    """Where replies are posted and nicknames are looked up."""

    @abstractmethod
    def get_nick(self, address: str) -> Optional[str]:
        pass

    @abstractmethod
    def prepare(self, text: str) -> PreparedMessage:
        """Build a reply message.

        Raises:
            TransportSizeOverflow: If the message exceeds the size limit
        """
        pass

    @abstractmethod
    async def post(self, message: PreparedMessage) -> None:
        pass


class LedgerChatTransport(ChatTransport):
    """Posts replies as chat messages on the ledger, marked as automated replies.

    Args:
        ledger: Log the replies are appended to
        address: Address the oracle posts as
        reply_marker: Attachment that makes the state machine skip the reply
        max_bytes: Size limit of a serialized chat message
    """

    def __init__(self, ledger: Ledger, address: str, reply_marker: str, max_bytes: int):
        self.ledger = ledger
        self.address = address
        self.reply_marker = reply_marker
        self.max_bytes = max_bytes

    def get_nick(self, address: str) -> Optional[str]:
        nick = self.ledger.get(keys.nick_key(address))
        return nick if isinstance(nick, str) else None

    def prepare(self, text: str) -> PreparedMessage:
        message = PreparedMessage(
            text=text, address=self.address, attachments=[self.reply_marker]
        )
        message.size = len(json.dumps(message.to_event()).encode("utf-8"))
        if message.size > self.max_bytes:
            raise TransportSizeOverflow(message.size, self.max_bytes)
        return message

    async def post(self, message: PreparedMessage) -> None:
        await self.ledger.append(message.to_event())
        logger.debug(f"Posted reply of {message.size} bytes")
