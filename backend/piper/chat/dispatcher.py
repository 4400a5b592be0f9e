"""Routes parsed inbound commands to the component that owns them."""
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .commands import (
    COMMAND_TYPES,
    AddReactionCommand,
    CreateChannelCommand,
    DeleteMessageCommand,
    EditMessageCommand,
    ForumCreateTopicCommand,
    ForumReplyCommand,
    ForumResolveCommand,
    JoinChannelCommand,
    JoinCommand,
    KickUserCommand,
    MuteUserCommand,
    RemoveReactionCommand,
    ScreenShareStartCommand,
    ScreenShareStopCommand,
    SendFileCommand,
    SendImageCommand,
    SendMessageCommand,
    SetRoleCommand,
    SetStatusCommand,
    TypingCommand,
    VoiceDeafenCommand,
    VoiceJoinCommand,
    VoiceLeaveCommand,
    VoiceMuteCommand,
    VoiceSignalCommand,
    VoiceSpeakingCommand,
    parse_command,
)
from .errors import ChatError, MuteRejection
from .schemas import FileDescriptor, MessageType, Session

if TYPE_CHECKING:
    from .state import ChatState

logger = logging.getLogger(__name__)

Handler = Callable[[str, Optional[Session], Any], Awaitable[None]]


class EventDispatcher:
    """Validates inbound envelopes and calls exactly one handler per event.

    Errors:
        - malformed envelopes are logged and dropped
        - events other than ``join`` from a connection without a session
          are ignored
        - ChatError from a handler is logged; MuteRejection additionally
          sends the private ``muted`` notice to the sender
    """

    def __init__(self, state: "ChatState") -> None:
        self._state = state
        self._handlers: Dict[Type[BaseModel], Handler] = {
            JoinCommand: self._on_join,
            JoinChannelCommand: self._on_join_channel,
            SendMessageCommand: self._on_message,
            SendImageCommand: self._on_image,
            SendFileCommand: self._on_file,
            EditMessageCommand: self._on_edit,
            DeleteMessageCommand: self._on_delete,
            AddReactionCommand: self._on_add_reaction,
            RemoveReactionCommand: self._on_remove_reaction,
            TypingCommand: self._on_typing,
            SetStatusCommand: self._on_set_status,
            CreateChannelCommand: self._on_create_channel,
            SetRoleCommand: self._on_set_role,
            KickUserCommand: self._on_kick,
            MuteUserCommand: self._on_mute,
            VoiceJoinCommand: self._on_voice_join,
            VoiceLeaveCommand: self._on_voice_leave,
            VoiceSignalCommand: self._on_voice_signal,
            VoiceMuteCommand: self._on_voice_mute,
            VoiceDeafenCommand: self._on_voice_deafen,
            VoiceSpeakingCommand: self._on_voice_speaking,
            ScreenShareStartCommand: self._on_screen_share_start,
            ScreenShareStopCommand: self._on_screen_share_stop,
            ForumCreateTopicCommand: self._on_forum_create_topic,
            ForumReplyCommand: self._on_forum_reply,
            ForumResolveCommand: self._on_forum_resolve,
        }
        missing = [c.__name__ for c in COMMAND_TYPES if c not in self._handlers]
        if missing:
            raise RuntimeError(f"No handler registered for: {', '.join(missing)}")

    async def dispatch(self, conn_id: str, raw: Any) -> None:
        """Handle one raw inbound envelope from ``conn_id``."""
        try:
            command = parse_command(raw)
        except PydanticValidationError as e:
            event = raw.get("type", "?") if isinstance(raw, dict) else "?"
            logger.warning(f"[Dispatch] Dropping malformed {event!r} from {conn_id}: {e.error_count()} error(s)")
            return

        session = self._state.sessions.get(conn_id)
        if session is None and not isinstance(command, JoinCommand):
            logger.debug(f"[Dispatch] Ignoring {command.type!r} before join from {conn_id}")
            return

        handler = self._handlers[type(command)]
        try:
            await handler(conn_id, session, command)
        except MuteRejection as e:
            minutes = self._state.moderation.remaining_minutes(e)
            await self._state.connections.send(
                conn_id, "muted", {"duration": minutes, "until": e.until}
            )
            await self._state.connections.send(
                conn_id, "system-message", f"You are muted for {minutes} more minute(s)."
            )
        except ChatError as e:
            logger.info(f"[Dispatch] {command.type} from {conn_id} rejected: {e}")

    async def disconnect(self, conn_id: str) -> None:
        """Run the ordered cleanup for a closed transport."""
        await self._state.disconnect(conn_id)

    # -------------------------------------------------------------------------
    # Session registry / channel router
    # -------------------------------------------------------------------------

    async def _on_join(self, conn_id, session, command: JoinCommand) -> None:
        await self._state.sessions.join(conn_id, command.data)

    async def _on_join_channel(self, conn_id, session, command: JoinChannelCommand) -> None:
        await self._state.channels.join_channel(session, command.data)

    async def _on_set_status(self, conn_id, session, command: SetStatusCommand) -> None:
        await self._state.sessions.set_status(
            session, command.data.status, command.data.customStatus
        )

    async def _on_create_channel(self, conn_id, session, command: CreateChannelCommand) -> None:
        await self._state.channels.create_channel(session, command.data)

    # -------------------------------------------------------------------------
    # Message store
    # -------------------------------------------------------------------------

    async def _on_message(self, conn_id, session, command: SendMessageCommand) -> None:
        payload = command.data
        await self._state.messages.append(
            session,
            payload.content,
            channel_id=payload.channelId,
            parent_id=payload.parentId,
        )

    async def _on_image(self, conn_id, session, command: SendImageCommand) -> None:
        await self._state.messages.append(
            session,
            command.data.url,
            message_type=MessageType.IMAGE,
            channel_id=command.data.channelId,
        )

    async def _on_file(self, conn_id, session, command: SendFileCommand) -> None:
        payload = command.data
        descriptor = FileDescriptor(**payload.model_dump(exclude={"channelId"}))
        await self._state.messages.append(
            session,
            descriptor,
            message_type=MessageType.FILE,
            channel_id=payload.channelId,
        )

    async def _on_edit(self, conn_id, session, command: EditMessageCommand) -> None:
        await self._state.messages.edit(session, command.data.messageId, command.data.newContent)

    async def _on_delete(self, conn_id, session, command: DeleteMessageCommand) -> None:
        await self._state.messages.delete(session, command.data.messageId)

    async def _on_add_reaction(self, conn_id, session, command: AddReactionCommand) -> None:
        await self._state.messages.add_reaction(session, command.data.messageId, command.data.emoji)

    async def _on_remove_reaction(self, conn_id, session, command: RemoveReactionCommand) -> None:
        await self._state.messages.remove_reaction(session, command.data.messageId, command.data.emoji)

    async def _on_typing(self, conn_id, session, command: TypingCommand) -> None:
        await self._state.typing.update(session, command.data.isTyping, command.data.channelId)

    # -------------------------------------------------------------------------
    # Moderation
    # -------------------------------------------------------------------------

    async def _on_set_role(self, conn_id, session, command: SetRoleCommand) -> None:
        await self._state.moderation.set_role(
            session, command.data.targetUsername, command.data.newRole
        )

    async def _on_kick(self, conn_id, session, command: KickUserCommand) -> None:
        await self._state.moderation.kick(session, command.data.targetUsername)

    async def _on_mute(self, conn_id, session, command: MuteUserCommand) -> None:
        await self._state.moderation.mute(
            session, command.data.targetUsername, command.data.duration
        )

    # -------------------------------------------------------------------------
    # Voice
    # -------------------------------------------------------------------------

    async def _on_voice_join(self, conn_id, session, command: VoiceJoinCommand) -> None:
        await self._state.voice.join(session)

    async def _on_voice_leave(self, conn_id, session, command: VoiceLeaveCommand) -> None:
        await self._state.voice.leave(conn_id)

    async def _on_voice_signal(self, conn_id, session, command: VoiceSignalCommand) -> None:
        await self._state.voice.relay_signal(conn_id, command.data.to, command.data.signal)

    async def _on_voice_mute(self, conn_id, session, command: VoiceMuteCommand) -> None:
        await self._state.voice.set_muted(conn_id, command.data)

    async def _on_voice_deafen(self, conn_id, session, command: VoiceDeafenCommand) -> None:
        await self._state.voice.set_deafened(conn_id, command.data)

    async def _on_voice_speaking(self, conn_id, session, command: VoiceSpeakingCommand) -> None:
        await self._state.voice.speaking(session, command.data)

    async def _on_screen_share_start(self, conn_id, session, command: ScreenShareStartCommand) -> None:
        await self._state.voice.start_screen_share(session, command.data)

    async def _on_screen_share_stop(self, conn_id, session, command: ScreenShareStopCommand) -> None:
        await self._state.voice.stop_screen_share(conn_id)

    # -------------------------------------------------------------------------
    # Forum
    # -------------------------------------------------------------------------

    async def _on_forum_create_topic(self, conn_id, session, command: ForumCreateTopicCommand) -> None:
        payload = command.data
        await self._state.forum.create_topic(session, payload.title, payload.body, payload.tags)

    async def _on_forum_reply(self, conn_id, session, command: ForumReplyCommand) -> None:
        await self._state.forum.reply(session, command.data.topicId, command.data.body)

    async def _on_forum_resolve(self, conn_id, session, command: ForumResolveCommand) -> None:
        await self._state.forum.resolve(session, command.data.topicId)
