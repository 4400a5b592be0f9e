"""Per-channel typing indicators.

The server keeps no timers: a client is expected to send ``false`` after
about a second without keystrokes. All the server does is remember the last
flag per (channel, username) and relay it to the other subscribers of that
channel.
"""
import logging
from typing import TYPE_CHECKING, List, Optional, Set, Tuple

from .errors import NotFoundError
from .schemas import Session

if TYPE_CHECKING:
    from .state import ChatState

logger = logging.getLogger(__name__)


class TypingTracker:
    def __init__(self, state: "ChatState") -> None:
        self._state = state
        # (channel id, username) pairs currently typing
        self.typing: Set[Tuple[str, str]] = set()

    def typing_in(self, channel_id: str) -> List[str]:
        return sorted(user for channel, user in self.typing if channel == channel_id)

    async def update(
        self, session: Session, is_typing: bool, channel_id: Optional[str] = None
    ) -> None:
        """Record and relay a typing flag.

        Raises:
            NotFoundError: The channel is unknown or a DM the sender is not in.
        """
        channel_id = channel_id or self._state.channels.channel_of(session.id)
        if channel_id is None:
            return
        if not self._state.channels.can_access(channel_id, session.username):
            raise NotFoundError(f"unknown channel {channel_id!r}")

        key = (channel_id, session.username)
        if is_typing:
            self.typing.add(key)
        else:
            self.typing.discard(key)

        await self._state.channels.broadcast(
            channel_id,
            "typing",
            {"user": session.username, "isTyping": is_typing, "channelId": channel_id},
            exclude=session.id,
        )

    def forget(self, username: str) -> None:
        self.typing = {key for key in self.typing if key[1] != username}
