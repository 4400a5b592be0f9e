"""Session registry: who is connected, under which name, role and status."""
import logging
import random
from typing import TYPE_CHECKING, Dict, List, Optional

from .schemas import COLOR_PALETTE, PresenceStatus, Session

if TYPE_CHECKING:
    from .state import ChatState

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Live sessions keyed by connection id.

    Usernames are self-asserted and not unique: two connections may join
    under the same name and are then both affected by role changes, kicks
    and mutes aimed at that name.
    """

    def __init__(self, state: "ChatState") -> None:
        self._state = state
        # connection id -> Session
        self.sessions: Dict[str, Session] = {}

    def get(self, conn_id: str) -> Optional[Session]:
        return self.sessions.get(conn_id)

    def by_username(self, username: str) -> List[Session]:
        return [s for s in self.sessions.values() if s.username == username]

    def roster(self) -> List[Session]:
        return list(self.sessions.values())

    async def join(self, conn_id: str, username: str) -> Session:
        """Register a session and bring the joiner up to date.

        The joiner alone receives history, channels, forum topics and the
        voice roster; everyone then receives the new user list and a system
        message announcing the join.
        """
        state = self._state
        role = state.moderation.roles.resolve_for_join(username)
        session = Session(
            id=conn_id,
            username=username,
            color=random.choice(COLOR_PALETTE),
            role=role,
            joinedAt=state.clock(),
        )
        self.sessions[conn_id] = session
        state.channels.subscribe(conn_id, state.settings.default_channel)
        logger.info(f"[Sessions] {username} joined as {role.value} ({conn_id})")

        conns = state.connections
        await conns.send(conn_id, "history", state.messages.history())
        await conns.send(conn_id, "channels", state.channels.names())
        await conns.send(conn_id, "forum-topics", state.forum.topics)
        await conns.send(conn_id, "voice-users", state.voice.roster())
        if state.voice.screen_share is not None:
            await conns.send(conn_id, "screen-share-started", state.voice.screen_share)

        await self.broadcast_roster()
        await state.messages.post_system(f"{username} joined the chat")
        return session

    async def set_status(
        self, session: Session, status: PresenceStatus, custom_status: str
    ) -> None:
        session.status = status
        session.customStatus = custom_status.strip()
        await self.broadcast_roster()

    def remove(self, conn_id: str) -> Optional[Session]:
        return self.sessions.pop(conn_id, None)

    async def broadcast_roster(self) -> None:
        await self._state.connections.broadcast("users", self.roster())
