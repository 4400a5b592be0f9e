"""Channel router: one active channel subscription per connection.

Channel-scoped events (ordinary messages, typing) only reach the current
subscribers of their channel. Clients hold the whole bounded history and
filter it by ``channelId`` locally, so switching channels needs no replay.

Direct-message channels are never registered. Their id is derived from the
sorted pair of usernames and they exist as soon as a message targets them.
"""
import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from .errors import NotFoundError, ValidationError
from .schemas import Session

if TYPE_CHECKING:
    from .state import ChatState

logger = logging.getLogger(__name__)

DM_PREFIX = "dm:"


def dm_channel_id(first: str, second: str) -> str:
    """Deterministic direct-message channel id for two usernames."""
    return DM_PREFIX + ":".join(sorted([first, second]))


def is_dm_channel(channel_id: str) -> bool:
    return channel_id.startswith(DM_PREFIX)


def is_dm_participant(channel_id: str, username: str) -> bool:
    if not is_dm_channel(channel_id):
        return False
    pair = channel_id[len(DM_PREFIX):].split(":")
    return len(pair) == 2 and username in pair


class ChannelRouter:
    """Owns the channel list and every connection's current subscription."""

    def __init__(self, state: "ChatState") -> None:
        self._state = state
        settings = state.settings
        self.channels: List[str] = [settings.default_channel, settings.forum_channel]
        # connection id -> channel id
        self.subscriptions: Dict[str, str] = {}

    def load(self) -> None:
        stored = self._state.store.load("channels", [])
        for name in stored:
            if isinstance(name, str) and name not in self.channels:
                self.channels.append(name)
        logger.info(f"[Channels] Loaded {len(self.channels)} channels")

    def persist(self) -> bool:
        return self._state.store.save("channels", self.channels)

    def names(self) -> List[str]:
        return list(self.channels)

    def exists(self, channel_id: str) -> bool:
        return channel_id in self.channels or is_dm_channel(channel_id)

    def can_access(self, channel_id: str, username: str) -> bool:
        if is_dm_channel(channel_id):
            return is_dm_participant(channel_id, username)
        return channel_id in self.channels

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, conn_id: str, channel_id: str) -> Optional[str]:
        """Switch a connection to ``channel_id``; returns the previous channel."""
        previous = self.subscriptions.get(conn_id)
        self.subscriptions[conn_id] = channel_id
        return previous

    def unsubscribe(self, conn_id: str) -> Optional[str]:
        return self.subscriptions.pop(conn_id, None)

    def channel_of(self, conn_id: str) -> Optional[str]:
        return self.subscriptions.get(conn_id)

    def subscribers(self, channel_id: str) -> List[str]:
        return [
            conn_id for conn_id, channel in self.subscriptions.items()
            if channel == channel_id
        ]

    async def join_channel(self, session: Session, channel_id: str) -> None:
        if not self.can_access(channel_id, session.username):
            raise NotFoundError(f"unknown channel {channel_id!r}")
        previous = self.subscribe(session.id, channel_id)
        logger.debug(f"[Channels] {session.username}: {previous} -> {channel_id}")

    async def broadcast(
        self,
        channel_id: str,
        event: str,
        data=None,
        exclude: Optional[str] = None,
    ) -> None:
        """Send an event to the current subscribers of one channel."""
        targets = [c for c in self.subscribers(channel_id) if c != exclude]
        await self._state.connections.send_many(targets, event, data)

    # -------------------------------------------------------------------------
    # Channel creation
    # -------------------------------------------------------------------------

    async def create_channel(self, session: Session, name: str) -> str:
        name = name.strip()
        max_length = self._state.settings.max_channel_name_length
        if not name:
            raise ValidationError("channel name is empty")
        if len(name) > max_length:
            raise ValidationError(f"channel name longer than {max_length} characters")
        if is_dm_channel(name):
            raise ValidationError("channel names may not use the direct-message prefix")
        if name in self.channels:
            raise ValidationError(f"channel {name!r} already exists")

        self.channels.append(name)
        self.persist()
        logger.info(f"[Channels] {session.username} created #{name}")

        await self._state.connections.broadcast("channels", self.names())
        await self._state.messages.post_system(
            f"{session.username} created channel #{name}"
        )
        return name
