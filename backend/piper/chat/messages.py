"""Bounded, ordered message log shared by every channel.

The store is one global FIFO buffer (500 messages by default) for all
channels and direct-message conversations together: once it is full the
oldest message is evicted whatever channel it belongs to. Every mutation
rewrites the ``messages`` snapshot in full.

Broadcast scopes:
    - new user/bot messages        -> subscribers of the message's channel
    - system messages              -> everyone
    - edits, reactions, reply links -> everyone (``message-updated``)
    - deletes, imports, clears     -> everyone (full ``history``)
"""
import logging
from typing import TYPE_CHECKING, Any, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .errors import AuthorizationError, NotFoundError, ValidationError
from .schemas import FileDescriptor, Message, MessageType, Role, Session, UserRef

if TYPE_CHECKING:
    from .state import ChatState

logger = logging.getLogger(__name__)

REQUIRED_IMPORT_FIELDS = ("id", "type", "content", "timestamp")

WEBHOOK_AUTHOR_ID = "webhook"
WEBHOOK_COLOR = "#6366F1"


class MessageStore:
    """Owns the history buffer; all message mutations go through here."""

    def __init__(self, state: "ChatState") -> None:
        self._state = state
        self.max_messages = state.settings.max_messages
        self.messages: List[Message] = []

    # -------------------------------------------------------------------------
    # Buffer primitives
    # -------------------------------------------------------------------------

    def load(self) -> None:
        stored = self._state.store.load("messages", [])
        loaded: List[Message] = []
        for item in stored if isinstance(stored, list) else []:
            try:
                loaded.append(self._restore(item))
            except PydanticValidationError:
                logger.warning("[Messages] Skipping unreadable stored message")
        self.messages = loaded[-self.max_messages:]
        logger.info(f"[Messages] Loaded {len(self.messages)} messages")

    def _restore(self, item: Any) -> Message:
        # Messages without a channel belong to the configured default channel
        if isinstance(item, dict) and item.get("channelId") is None:
            item = {**item, "channelId": self._state.settings.default_channel}
        return Message.model_validate(item)

    def persist(self) -> bool:
        return self._state.store.save(
            "messages", [m.model_dump(mode="json") for m in self.messages]
        )

    def history(self) -> List[Message]:
        return list(self.messages)

    def get(self, message_id: str) -> Optional[Message]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    def push(self, message: Message) -> None:
        """Append to the buffer, evicting the oldest entries past capacity."""
        self.messages.append(message)
        overflow = len(self.messages) - self.max_messages
        if overflow > 0:
            del self.messages[:overflow]

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    async def append(
        self,
        session: Session,
        content: Union[str, FileDescriptor],
        *,
        message_type: MessageType = MessageType.TEXT,
        channel_id: Optional[str] = None,
        parent_id: Optional[str] = None,
    ) -> Message:
        """Store a message sent by a live session and deliver it.

        Raises:
            MuteRejection: The sender has an unexpired mute.
            NotFoundError: The target channel does not exist for this sender.
            ValidationError: Empty text content.
        """
        state = self._state
        state.moderation.check_mute(session.username)

        channel_id = (
            channel_id
            or state.channels.channel_of(session.id)
            or state.settings.default_channel
        )
        if not state.channels.can_access(channel_id, session.username):
            raise NotFoundError(f"unknown channel {channel_id!r}")
        if isinstance(content, str) and not content.strip():
            raise ValidationError("message content is empty")

        message = Message(
            type=message_type,
            content=content,
            channelId=channel_id,
            parentId=parent_id,
            user=UserRef(
                id=session.id,
                username=session.username,
                color=session.color,
                role=session.role,
            ),
            timestamp=state.clock(),
        )
        return await self._publish(message)

    async def post_bot(
        self, channel_id: str, content: str, username: Optional[str] = None
    ) -> Message:
        """Store a bot message synthesised by the webhook endpoint."""
        if not self._state.channels.exists(channel_id):
            raise NotFoundError(f"unknown channel {channel_id!r}")
        if not content.strip():
            raise ValidationError("message content is empty")
        message = Message(
            type=MessageType.BOT,
            content=content,
            channelId=channel_id,
            user=UserRef(
                id=WEBHOOK_AUTHOR_ID,
                username=username or "Webhook",
                color=WEBHOOK_COLOR,
            ),
            timestamp=self._state.clock(),
        )
        return await self._publish(message)

    async def post_system(self, text: str, channel_id: Optional[str] = None) -> Message:
        """Store a system notice and broadcast it to every connection."""
        message = Message(
            type=MessageType.SYSTEM,
            content=text,
            channelId=channel_id or self._state.settings.default_channel,
            timestamp=self._state.clock(),
        )
        self.push(message)
        self.persist()
        await self._state.connections.broadcast("message", message)
        return message

    async def _publish(self, message: Message) -> Message:
        # Buffer and reply link are settled before the first await, so the
        # channel sees messages in the order they were pushed.
        # A reply whose parent was already evicted is stored without a link.
        parent = self.get(message.parentId) if message.parentId else None
        if parent is not None:
            parent.replies.append(message.id)
        elif message.parentId:
            logger.info(f"[Messages] Parent {message.parentId} not in buffer, reply is orphaned")

        self.push(message)
        self.persist()
        await self._state.channels.broadcast(message.channelId, "message", message)
        if parent is not None:
            await self._state.connections.broadcast("message-updated", parent)
        return message

    # -------------------------------------------------------------------------
    # Edits, deletes, reactions
    # -------------------------------------------------------------------------

    def _require(self, message_id: str) -> Message:
        message = self.get(message_id)
        if message is None:
            raise NotFoundError(f"message {message_id} not found")
        return message

    async def edit(self, session: Session, message_id: str, new_content: str) -> Message:
        message = self._require(message_id)
        if message.user is None or message.user.username != session.username:
            raise AuthorizationError("only the author may edit a message")
        if message.type != MessageType.TEXT:
            raise ValidationError("only text messages can be edited")
        if not new_content.strip():
            raise ValidationError("message content is empty")

        message.content = new_content
        message.edited = True
        self.persist()
        await self._state.connections.broadcast("message-updated", message)
        return message

    async def delete(self, session: Session, message_id: str) -> None:
        message = self._require(message_id)
        is_author = message.user is not None and message.user.username == session.username
        if not is_author and session.role not in (Role.ADMIN, Role.MODERATOR):
            raise AuthorizationError("not allowed to delete this message")

        self.messages.remove(message)
        if message.parentId:
            parent = self.get(message.parentId)
            if parent is not None and message.id in parent.replies:
                parent.replies.remove(message.id)
        self.persist()
        logger.info(f"[Messages] {session.username} deleted {message_id}")
        await self._state.connections.broadcast("history", self.history())

    async def add_reaction(self, session: Session, message_id: str, emoji: str) -> Message:
        message = self._require(message_id)
        users = message.reactions.setdefault(emoji, [])
        if session.username not in users:
            users.append(session.username)
        self.persist()
        await self._state.connections.broadcast("message-updated", message)
        return message

    async def remove_reaction(self, session: Session, message_id: str, emoji: str) -> Message:
        message = self._require(message_id)
        users = message.reactions.get(emoji)
        if users is not None:
            if session.username in users:
                users.remove(session.username)
            if not users:
                del message.reactions[emoji]
        self.persist()
        await self._state.connections.broadcast("message-updated", message)
        return message

    # -------------------------------------------------------------------------
    # Import / export
    # -------------------------------------------------------------------------

    def export_all(self) -> List[dict]:
        return [m.model_dump(mode="json") for m in self.messages]

    async def import_all(self, items: Any) -> int:
        """Replace the buffer with an imported history.

        Raises:
            ValidationError: Payload is not a list, or an item is missing
                one of id/type/content/timestamp or fails validation.
        """
        if not isinstance(items, list):
            raise ValidationError("import payload must be a list of messages")

        imported: List[Message] = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise ValidationError(f"item {index} is not an object")
            missing = [f for f in REQUIRED_IMPORT_FIELDS if item.get(f) is None]
            if missing:
                raise ValidationError(f"item {index} is missing {', '.join(missing)}")
            try:
                imported.append(self._restore(item))
            except PydanticValidationError as e:
                raise ValidationError(f"item {index} is invalid: {e.error_count()} error(s)") from e

        self.messages = imported[-self.max_messages:]
        self.persist()
        logger.info(f"[Messages] Imported {len(self.messages)} messages")
        await self._state.connections.broadcast("history", self.history())
        return len(self.messages)

    async def clear(self) -> int:
        count = len(self.messages)
        self.messages = []
        self.persist()
        logger.info(f"[Messages] Cleared {count} messages")
        await self._state.connections.broadcast("history", self.history())
        return count
