"""
Pydantic models for the chat oracle API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class ChatPostRequest(BaseModel):
    """Chat message to append to the log."""

    address: str = Field(
        min_length=1,
        max_length=128,
        description="Sender address",
        json_schema_extra={"example": "a" * 64},
    )
    msg: str = Field(
        min_length=1,
        max_length=64 * 1024,
        description="Message text. Mention @ai to ask the oracle.",
        json_schema_extra={"example": "@ai price?"},
    )
    attachments: List[str] = Field(default_factory=list, max_length=16)

    @field_validator("address")
    @classmethod
    def strip_address(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Address cannot be empty or whitespace only")
        return v


class NickRequest(BaseModel):
    """Display nickname for an address."""

    address: str = Field(min_length=1, max_length=128)
    nick: str = Field(min_length=1, max_length=64, json_schema_extra={"example": "satoshi"})

    @field_validator("nick")
    @classmethod
    def strip_nick(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Nick cannot be empty or whitespace only")
        if "@" in v:
            raise ValueError("Nick cannot contain '@'")
        return v


class AppendResponse(BaseModel):
    """What appending an event did to the view."""

    action: str
    reason: Optional[str] = None
    seq: Optional[int] = None
    type: Optional[str] = None


class QueueStatus(BaseModel):
    message_seq: int
    process_seq: int
    backlog: int
    pending: List[int]
    summary: str = ""


class QueueEntryResponse(BaseModel):
    seq: int
    entry: Dict[str, Any]
