"""Data models shared by the chat components.

All models use camelCase field names because they are serialised verbatim
onto the wire for the browser client.
"""
import time
import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    """Moderation role. Absence from the role map means MEMBER."""
    ADMIN = "admin"
    MODERATOR = "moderator"
    MEMBER = "member"


class PresenceStatus(str, Enum):
    AVAILABLE = "available"
    AWAY = "away"
    BUSY = "busy"
    DND = "dnd"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"
    BOT = "bot"


# Presence colors handed out on join
COLOR_PALETTE = [
    "#EF4444", "#F97316", "#F59E0B", "#EAB308", "#84CC16",
    "#22C55E", "#10B981", "#14B8A6", "#06B6D4", "#0EA5E9",
    "#3B82F6", "#6366F1", "#8B5CF6", "#A855F7", "#D946EF",
    "#EC4899", "#F43F5E",
]


class Session(BaseModel):
    """A live connection that has joined the chat.

    Attributes:
        id: Connection identifier (also the voice signalling address).
        username: Self-asserted display name; not unique.
        color: Presence color picked from COLOR_PALETTE.
        role: Role resolved from the persisted role map at join time.
        status: Presence status.
        customStatus: Free-text status line.
        joinedAt: Unix timestamp of the join.
    """
    id: str
    username: str
    color: str
    role: Role = Role.MEMBER
    status: PresenceStatus = PresenceStatus.AVAILABLE
    customStatus: str = ""
    joinedAt: float = Field(default_factory=time.time)


class UserRef(BaseModel):
    """Author snapshot embedded in a message at send time."""
    id: str
    username: str
    color: str = ""
    role: Optional[Role] = None


class FileDescriptor(BaseModel):
    """Stored-file description returned by the upload service."""
    url: str
    filename: str
    originalName: str
    size: int = 0
    mimetype: str = "application/octet-stream"


class Message(BaseModel):
    """A message in the bounded history buffer.

    ``reactions`` maps an emoji to the usernames that reacted with it. The
    user lists behave as sets and an emoji with no users is never kept.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: MessageType = MessageType.TEXT
    content: Union[str, FileDescriptor]
    channelId: str = "general"
    parentId: Optional[str] = None
    replies: List[str] = Field(default_factory=list)
    user: Optional[UserRef] = None
    timestamp: float = Field(default_factory=time.time)
    edited: bool = False
    reactions: Dict[str, List[str]] = Field(default_factory=dict)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value):
        # Histories exported by older clients carry ISO-8601 strings.
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
        return value


class VoiceParticipant(BaseModel):
    id: str
    username: str
    muted: bool = False
    deafened: bool = False


class ScreenShare(BaseModel):
    """Holder of the single global screen-share slot."""
    id: str
    username: str
    streamId: Optional[str] = None


class ForumReply(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    body: str
    author: str
    authorColor: str = ""
    createdAt: float = Field(default_factory=time.time)


class ForumTopic(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    body: str
    tags: List[str] = Field(default_factory=list)
    author: str
    authorColor: str = ""
    createdAt: float = Field(default_factory=time.time)
    resolved: bool = False
    replies: List[ForumReply] = Field(default_factory=list)
