"""Application state shared by every chat event handler.

One ``ChatState`` owns all in-memory chat state (sessions, subscriptions,
the message buffer, roles and mutes, the voice roster, the screen-share
slot, typing flags and forum topics). It is created by the application
factory and passed explicitly to every handler; components reach each other
through it and mutate only their own data.

Handlers change state synchronously before their first ``await``, so on a
single event loop no handler can observe another's half-applied update.
"""
import logging
import time
from typing import Callable, Optional

from piper.config import ChatSettings
from piper.storage import SnapshotStore

from .channels import ChannelRouter
from .connections import ConnectionManager
from .dispatcher import EventDispatcher
from .forum import ForumBoard
from .messages import MessageStore
from .moderation import ModerationEngine
from .sessions import SessionRegistry
from .typing_tracker import TypingTracker
from .voice import VoiceRelay

logger = logging.getLogger(__name__)


class ChatState:
    def __init__(
        self,
        settings: Optional[ChatSettings] = None,
        store: Optional[SnapshotStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or ChatSettings()
        self.store = store or SnapshotStore(self.settings.data_dir)
        self.clock = clock

        self.connections = ConnectionManager()
        self.moderation = ModerationEngine(self)
        self.sessions = SessionRegistry(self)
        self.channels = ChannelRouter(self)
        self.messages = MessageStore(self)
        self.voice = VoiceRelay(self)
        self.typing = TypingTracker(self)
        self.forum = ForumBoard(self)
        self.dispatcher = EventDispatcher(self)

    def load(self) -> None:
        """Restore persisted channels, roles, messages and forum topics."""
        self.channels.load()
        self.moderation.roles.load()
        self.messages.load()
        self.forum.load()

    async def disconnect(self, conn_id: str, *, close_code: Optional[int] = None) -> None:
        """Tear down a connection in a fixed order.

        1. release the screen-share slot if this connection holds it
        2. leave the voice roster and notify the remaining participants
        3. drop the session and broadcast the user list
        4. announce the departure with a global system message

        Safe to call more than once for the same connection.
        """
        websocket = self.connections.disconnect(conn_id)
        if websocket is not None and close_code is not None:
            await self.connections.close(websocket, code=close_code)
        self.channels.unsubscribe(conn_id)

        await self.voice.stop_screen_share(conn_id)
        await self.voice.leave(conn_id)

        session = self.sessions.remove(conn_id)
        if session is None:
            return
        self.typing.forget(session.username)
        logger.info(f"[State] {session.username} disconnected ({conn_id})")
        await self.sessions.broadcast_roster()
        await self.messages.post_system(f"{session.username} left the chat")
