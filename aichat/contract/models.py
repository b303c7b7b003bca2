"""
Queue entries and log events.

Entries are plain dataclasses serialized with ``to_dict``/``from_dict`` (the
view only stores JSON). Log events are pydantic models validated on replay;
an event that fails validation is ignored by every replica alike.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

AI_FEATURE = "ai"
TIMER_FEATURE = "timer"

RESULT_KEY = "ai_result"
CONTROL_KEY = "ai_ctrl"
CURRENT_TIME_KEY = "currentTime"

FAST_FORWARD = "fast_forward"


class QueueType(str, Enum):
    """Classification of a queued prompt. Both share one sequence space."""

    TAGGED = "tagged"
    RANDOM = "random"

    @classmethod
    def normalize(cls, value: Any) -> "QueueType":
        """Anything other than 'random' is treated as the tagged queue."""
        return cls.RANDOM if value == cls.RANDOM.value else cls.TAGGED


@dataclass
class PendingEntry:
    """Admitted prompt waiting for the oracle."""

    sender: str
    prompt: str
    type: QueueType
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.sender,
            "prompt": self.prompt,
            "type": self.type.value,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PendingEntry":
        return cls(
            sender=data.get("from", ""),
            prompt=data.get("prompt") or "",
            type=QueueType(data["type"]),
            timestamp=data.get("timestamp", 0),
        )


@dataclass
class DoneEntry:
    """Resolved prompt with the reply the oracle committed."""

    sender: str
    prompt: str
    reply: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.sender,
            "prompt": self.prompt,
            "reply": self.reply,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DoneEntry":
        return cls(
            sender=data.get("from", ""),
            prompt=data.get("prompt") or "",
            reply=data.get("reply") or "",
            timestamp=data.get("timestamp", 0),
        )


# ============================================================================
# Log events
# ============================================================================


class ChatMessageEvent(BaseModel):
    """Public chat message as ordered by the log."""

    type: Literal["msg"] = "msg"
    address: str = Field(min_length=1)
    msg: str
    attachments: List[str] = Field(default_factory=list)


class FeatureEvent(BaseModel):
    """Data injected by a feature (timer, ai oracle) running on the admin node."""

    type: Literal["feature"] = "feature"
    feature: str = Field(min_length=1)
    key: str = Field(min_length=1, max_length=256)
    value: Any = None
    address: str = Field(min_length=1)


class AdminEvent(BaseModel):
    """Bootstrap of the administrator identity (first writer wins)."""

    type: Literal["admin"] = "admin"
    address: str = Field(min_length=1)


class NickEvent(BaseModel):
    """Display nickname for an address."""

    type: Literal["nick"] = "nick"
    address: str = Field(min_length=1)
    nick: str = Field(min_length=1, max_length=64)


LogEvent = Annotated[
    Union[ChatMessageEvent, FeatureEvent, AdminEvent, NickEvent],
    Field(discriminator="type"),
]

_event_adapter = TypeAdapter(LogEvent)


def parse_event(data: Dict[str, Any]):
    """Validate a raw log event.

    Raises:
        pydantic.ValidationError: If the event is malformed
    """
    return _event_adapter.validate_python(data)


# ============================================================================
# Event builders
# ============================================================================


def chat_message(
    address: str, msg: str, attachments: Optional[List[str]] = None
) -> Dict[str, Any]:
    return ChatMessageEvent(
        address=address, msg=msg, attachments=attachments or []
    ).model_dump()


def result_event(
    address: str,
    queue: QueueType,
    seq: int,
    reply: str,
    summary: Optional[str] = None,
) -> Dict[str, Any]:
    value: Dict[str, Any] = {"queue": queue.value, "seq": seq, "reply": reply}
    if summary is not None:
        value["summary"] = summary
    return FeatureEvent(
        feature=AI_FEATURE, key=RESULT_KEY, value=value, address=address
    ).model_dump()


def fast_forward_event(address: str, seq: int) -> Dict[str, Any]:
    value = {"op": FAST_FORWARD, "queue": QueueType.TAGGED.value, "seq": seq}
    return FeatureEvent(
        feature=AI_FEATURE, key=CONTROL_KEY, value=value, address=address
    ).model_dump()


def timer_event(address: str, now_ms: int) -> Dict[str, Any]:
    return FeatureEvent(
        feature=TIMER_FEATURE, key=CURRENT_TIME_KEY, value=now_ms, address=address
    ).model_dump()


def admin_event(address: str) -> Dict[str, Any]:
    return AdminEvent(address=address).model_dump()


def nick_event(address: str, nick: str) -> Dict[str, Any]:
    return NickEvent(address=address, nick=nick).model_dump()
