"""Inbound WebSocket events as a tagged union of pydantic models.

Every client frame is an envelope ``{"type": <event>, "data": <payload>}``.
``parse_command`` validates it into exactly one of the command models below,
discriminated on ``type``; the dispatcher then routes each command class to
the component that owns it.

Shorthand payloads accepted from the browser client:
    - ``message`` may carry a bare string (the text content)
    - ``image`` may carry a bare string (the image URL)
    - ``typing`` may carry a bare boolean
"""
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

from .schemas import PresenceStatus, Role


# =============================================================================
# Payloads
# =============================================================================


class MessagePayload(BaseModel):
    content: str
    parentId: Optional[str] = None
    channelId: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"content": value}
        return value


class ImagePayload(BaseModel):
    url: str = Field(..., min_length=1)
    channelId: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_url(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"url": value}
        return value


class FilePayload(BaseModel):
    url: str = Field(..., min_length=1)
    filename: str
    originalName: str
    size: int = 0
    mimetype: str = "application/octet-stream"
    channelId: Optional[str] = None


class EditMessagePayload(BaseModel):
    messageId: str
    newContent: str


class DeleteMessagePayload(BaseModel):
    messageId: str


class ReactionPayload(BaseModel):
    messageId: str
    emoji: str = Field(..., min_length=1, max_length=32)


class TypingPayload(BaseModel):
    isTyping: bool
    channelId: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_flag(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return {"isTyping": value}
        return value


class StatusPayload(BaseModel):
    status: PresenceStatus = PresenceStatus.AVAILABLE
    customStatus: str = Field(default="", max_length=128)


class SetRolePayload(BaseModel):
    targetUsername: str
    newRole: Role


class KickPayload(BaseModel):
    targetUsername: str


class MutePayload(BaseModel):
    targetUsername: str
    duration: float = Field(..., gt=0, description="Mute length in minutes")


class VoiceSignalPayload(BaseModel):
    to: str
    signal: Any = None


class ForumTopicPayload(BaseModel):
    title: str
    body: str
    tags: List[str] = Field(default_factory=list)


class ForumReplyPayload(BaseModel):
    topicId: str
    body: str


class ForumResolvePayload(BaseModel):
    topicId: str


# =============================================================================
# Commands (one per event name)
# =============================================================================


class JoinCommand(BaseModel):
    type: Literal["join"]
    data: str

    @field_validator("data")
    @classmethod
    def _username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("username must not be empty")
        if ":" in value:
            # ":" separates the pair in direct-message channel ids
            raise ValueError("username must not contain ':'")
        return value


class JoinChannelCommand(BaseModel):
    type: Literal["join-channel"]
    data: str


class SendMessageCommand(BaseModel):
    type: Literal["message"]
    data: MessagePayload


class SendImageCommand(BaseModel):
    type: Literal["image"]
    data: ImagePayload


class SendFileCommand(BaseModel):
    type: Literal["file"]
    data: FilePayload


class EditMessageCommand(BaseModel):
    type: Literal["edit-message"]
    data: EditMessagePayload


class DeleteMessageCommand(BaseModel):
    type: Literal["delete-message"]
    data: DeleteMessagePayload


class AddReactionCommand(BaseModel):
    type: Literal["add-reaction"]
    data: ReactionPayload


class RemoveReactionCommand(BaseModel):
    type: Literal["remove-reaction"]
    data: ReactionPayload


class TypingCommand(BaseModel):
    type: Literal["typing"]
    data: TypingPayload


class SetStatusCommand(BaseModel):
    type: Literal["set-status"]
    data: StatusPayload


class CreateChannelCommand(BaseModel):
    type: Literal["create-channel"]
    data: str


class SetRoleCommand(BaseModel):
    type: Literal["set-role"]
    data: SetRolePayload


class KickUserCommand(BaseModel):
    type: Literal["kick-user"]
    data: KickPayload


class MuteUserCommand(BaseModel):
    type: Literal["mute-user"]
    data: MutePayload


class VoiceJoinCommand(BaseModel):
    type: Literal["voice-join"]
    data: Any = None


class VoiceLeaveCommand(BaseModel):
    type: Literal["voice-leave"]
    data: Any = None


class VoiceSignalCommand(BaseModel):
    type: Literal["voice-signal"]
    data: VoiceSignalPayload


class VoiceMuteCommand(BaseModel):
    type: Literal["voice-mute"]
    data: bool


class VoiceDeafenCommand(BaseModel):
    type: Literal["voice-deafen"]
    data: bool


class VoiceSpeakingCommand(BaseModel):
    type: Literal["voice-speaking"]
    data: bool


class ScreenShareStartCommand(BaseModel):
    type: Literal["screen-share-start"]
    data: Optional[str] = None


class ScreenShareStopCommand(BaseModel):
    type: Literal["screen-share-stop"]
    data: Any = None


class ForumCreateTopicCommand(BaseModel):
    type: Literal["forum-create-topic"]
    data: ForumTopicPayload


class ForumReplyCommand(BaseModel):
    type: Literal["forum-reply"]
    data: ForumReplyPayload


class ForumResolveCommand(BaseModel):
    type: Literal["forum-resolve"]
    data: ForumResolvePayload


COMMAND_TYPES = (
    JoinCommand,
    JoinChannelCommand,
    SendMessageCommand,
    SendImageCommand,
    SendFileCommand,
    EditMessageCommand,
    DeleteMessageCommand,
    AddReactionCommand,
    RemoveReactionCommand,
    TypingCommand,
    SetStatusCommand,
    CreateChannelCommand,
    SetRoleCommand,
    KickUserCommand,
    MuteUserCommand,
    VoiceJoinCommand,
    VoiceLeaveCommand,
    VoiceSignalCommand,
    VoiceMuteCommand,
    VoiceDeafenCommand,
    VoiceSpeakingCommand,
    ScreenShareStartCommand,
    ScreenShareStopCommand,
    ForumCreateTopicCommand,
    ForumReplyCommand,
    ForumResolveCommand,
)

Command = Annotated[Union[COMMAND_TYPES], Field(discriminator="type")]

_command_adapter = TypeAdapter(Command)


def parse_command(raw: Any) -> BaseModel:
    """Validate a raw envelope into its command model.

    Raises:
        pydantic.ValidationError: Unknown event name or malformed payload.
    """
    return _command_adapter.validate_python(raw)
