"""Voice signalling relay and the screen-share slot.

Voice uses a full mesh: every pair of participants negotiates its own peer
connection. The server never touches media; it only forwards opaque
offer/answer/ICE payloads between connection ids.

When someone joins, each participant already in voice is told individually
(``voice-user-joined``) and initiates its own offer toward the newcomer.
The newcomer is never introduced to itself.

The voice roster is independent of channel subscriptions: a connection can
be in voice while viewing any text channel.
"""
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .schemas import ScreenShare, Session, VoiceParticipant

if TYPE_CHECKING:
    from .state import ChatState

logger = logging.getLogger(__name__)


class VoiceRelay:
    """Voice roster, signal forwarding, speaking fan-out and screen sharing."""

    def __init__(self, state: "ChatState") -> None:
        self._state = state
        # connection id -> participant, in join order
        self.participants: Dict[str, VoiceParticipant] = {}
        self.screen_share: Optional[ScreenShare] = None

    def roster(self) -> List[VoiceParticipant]:
        return list(self.participants.values())

    def is_member(self, conn_id: str) -> bool:
        return conn_id in self.participants

    async def _broadcast_roster(self) -> None:
        await self._state.connections.broadcast("voice-users", self.roster())

    # -------------------------------------------------------------------------
    # Membership
    # -------------------------------------------------------------------------

    async def join(self, session: Session) -> bool:
        if session.id in self.participants:
            return False

        existing = list(self.participants)
        self.participants[session.id] = VoiceParticipant(id=session.id, username=session.username)
        logger.info(f"[Voice] {session.username} joined voice ({len(self.participants)} in voice)")

        # One introduction per pre-existing peer; each of them sends the offer.
        intro = {"id": session.id, "username": session.username}
        for peer_id in existing:
            await self._state.connections.send(peer_id, "voice-user-joined", intro)

        await self._broadcast_roster()
        return True

    async def leave(self, conn_id: str) -> bool:
        participant = self.participants.pop(conn_id, None)
        if participant is None:
            return False
        logger.info(f"[Voice] {participant.username} left voice")

        await self._state.connections.send_many(list(self.participants), "voice-user-left", conn_id)
        await self._broadcast_roster()
        return True

    # -------------------------------------------------------------------------
    # Signalling
    # -------------------------------------------------------------------------

    async def relay_signal(self, from_id: str, to_id: str, signal: Any) -> bool:
        """Forward an opaque signalling payload; dropped if the peer is gone."""
        if not self._state.connections.is_connected(to_id):
            logger.debug(f"[Voice] Dropping signal from {from_id} to departed {to_id}")
            return False
        return await self._state.connections.send(
            to_id, "voice-signal", {"from": from_id, "signal": signal}
        )

    async def set_muted(self, conn_id: str, muted: bool) -> None:
        participant = self.participants.get(conn_id)
        if participant is None:
            return
        # Deafened implies muted.
        participant.muted = muted or participant.deafened
        await self._broadcast_roster()

    async def set_deafened(self, conn_id: str, deafened: bool) -> None:
        participant = self.participants.get(conn_id)
        if participant is None:
            return
        participant.deafened = deafened
        if deafened:
            participant.muted = True
        await self._broadcast_roster()

    async def speaking(self, session: Session, is_speaking: bool) -> None:
        # Goes to every connection, not just the voice roster.
        await self._state.connections.broadcast(
            "voice-speaking", {"id": session.id, "speaking": is_speaking}
        )

    # -------------------------------------------------------------------------
    # Screen share
    # -------------------------------------------------------------------------

    async def start_screen_share(self, session: Session, stream_id: Optional[str] = None) -> bool:
        if self.screen_share is not None:
            logger.debug(
                f"[Voice] Screen share refused for {session.username}; "
                f"held by {self.screen_share.username}"
            )
            return False
        self.screen_share = ScreenShare(id=session.id, username=session.username, streamId=stream_id)
        logger.info(f"[Voice] {session.username} started screen sharing")
        await self._state.connections.broadcast("screen-share-started", self.screen_share)
        return True

    async def stop_screen_share(self, conn_id: str) -> bool:
        if self.screen_share is None or self.screen_share.id != conn_id:
            return False
        self.screen_share = None
        logger.info(f"[Voice] Screen share released by {conn_id}")
        await self._state.connections.broadcast("screen-share-stopped", {"id": conn_id})
        return True
