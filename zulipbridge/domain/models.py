"""Domain models for the Zulip bridge."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


# ============================================================================
# Enums
# ============================================================================


class EventKind(str, Enum):
    """Relay event kinds. A plain message carries no kind."""

    message = ""
    msg_delete = "msg_delete"


class AdapterStatus(str, Enum):
    """Adapter operational status."""

    offline = "offline"
    ready = "ready"
    recovering = "recovering"
    error = "error"


# ============================================================================
# Relay (bus side) models
# ============================================================================


class FileInfo(BaseModel):
    """A file attached to a relayed message by another adapter."""

    name: str = Field(default="", description="Original filename")
    comment: str = Field(default="", description="Caption sent along with the file")
    url: str = Field(default="", description="Where the file can be downloaded")
    size: int = Field(default=0, description="Size in bytes")


class RelayMessage(BaseModel):
    """Platform-agnostic message exchanged over the bus."""

    event: EventKind = Field(default=EventKind.message)
    id: str = Field(default="", description="Remote id of the message being edited or deleted")
    username: str = Field(default="")
    text: str = Field(default="")
    channel: str = Field(default="")
    account: str = Field(default="")
    user_id: str = Field(default="")
    avatar: str = Field(default="")
    files: list[FileInfo] = Field(default_factory=list)
    # files the originating adapter refused to download
    oversize_files: list[FileInfo] = Field(default_factory=list)


class ChannelInfo(BaseModel):
    """Channel join notification sent by the bus."""

    name: str
    account: str = ""
    topic: str = Field(default="", description="Zulip topic to use for this channel")


# ============================================================================
# Zulip side models
# ============================================================================


class Session(BaseModel):
    """Credentials plus the server-side event queue we are reading from."""

    email: str
    api_key: str
    base_url: str
    queue_id: Optional[str] = None
    last_event_id: int = -1


class StreamInfo(BaseModel):
    stream_id: int
    name: str


class StreamMessage(BaseModel):
    """Body of a Zulip stream message."""

    stream: str
    topic: str
    content: str


class ZulipEvent(BaseModel):
    """A `message` event pulled from a Zulip event queue."""

    id: int = Field(description="Queue event id, used as the poll cursor")
    type: str = Field(default="message")
    message_id: int = Field(default=0)
    sender_email: str = Field(default="")
    sender_id: int = Field(default=0)
    sender_full_name: str = Field(default="")
    avatar_url: str = Field(default="")
    stream_id: Optional[int] = None
    content: str = Field(default="")

    @classmethod
    def from_event(cls, raw: dict[str, Any]) -> "ZulipEvent":
        msg = raw.get("message") or {}
        return cls(
            id=raw["id"],
            type=raw.get("type", "message"),
            message_id=msg.get("id", 0),
            sender_email=msg.get("sender_email", ""),
            sender_id=msg.get("sender_id", 0),
            sender_full_name=msg.get("sender_full_name", ""),
            avatar_url=msg.get("avatar_url") or "",
            stream_id=msg.get("stream_id"),
            content=msg.get("content", ""),
        )


# ============================================================================
# Outbound actions
# ============================================================================


@dataclass(frozen=True)
class Post:
    message: RelayMessage


@dataclass(frozen=True)
class Edit:
    message: RelayMessage


@dataclass(frozen=True)
class Delete:
    message_id: str


@dataclass(frozen=True)
class Upload:
    message: RelayMessage


OutboundAction = Union[Post, Edit, Delete, Upload]


def classify(msg: RelayMessage) -> OutboundAction:
    """Resolve a relay message into exactly one outbound action.

    Precedence is delete, then upload (the message carries files), then
    edit (message carries a remote id), then a plain post. Files the origin
    refused don't make an upload; they only produce notices.
    """
    if msg.event == EventKind.msg_delete:
        return Delete(message_id=msg.id)
    if msg.files:
        return Upload(message=msg)
    if msg.id:
        return Edit(message=msg)
    return Post(message=msg)


@dataclass
class Attachment:
    """A staged file, ready to be composed into message content."""

    comment: str = ""
    url: str = ""

    def compose(self) -> str:
        if self.url and self.comment:
            return f"{self.comment}: {self.url}"
        if self.url:
            return self.url
        if self.comment:
            return f"{self.comment}: "
        return ""


@dataclass
class StagedAttachments:
    notices: list[RelayMessage] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
