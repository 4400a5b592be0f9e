"""Role hierarchy, kicks and time-boxed mutes.

Roles are persisted per username (``roles`` snapshot) and survive
reconnects. The very first joiner on a fresh deployment becomes admin; from
then on at least one admin always remains, because the sole admin cannot
demote themselves.

Mutes are held in memory only and expire lazily: ``check_mute`` deletes an
expired record when it discovers one on the send path. Nothing sweeps them
in the background, and a restart clears them all.
"""
import logging
import math
from typing import TYPE_CHECKING, Dict, List

from .errors import AuthorizationError, MuteRejection
from .schemas import Role, Session

if TYPE_CHECKING:
    from .state import ChatState

logger = logging.getLogger(__name__)

KICK_CLOSE_CODE = 4001


class RoleAssignments:
    """Persisted username -> role map. MEMBER is never stored."""

    def __init__(self, state: "ChatState") -> None:
        self._state = state
        self.roles: Dict[str, Role] = {}

    def load(self) -> None:
        stored = self._state.store.load("roles", {})
        roles: Dict[str, Role] = {}
        for username, value in (stored.items() if isinstance(stored, dict) else []):
            try:
                role = Role(value)
            except ValueError:
                logger.warning(f"[Roles] Ignoring unknown role {value!r} for {username}")
                continue
            if role != Role.MEMBER:
                roles[username] = role
        self.roles = roles
        logger.info(f"[Roles] Loaded {len(self.roles)} role assignments")

    def persist(self) -> bool:
        return self._state.store.save(
            "roles", {username: role.value for username, role in self.roles.items()}
        )

    def role_of(self, username: str) -> Role:
        return self.roles.get(username, Role.MEMBER)

    def admins(self) -> List[str]:
        return [u for u, role in self.roles.items() if role == Role.ADMIN]

    def assign(self, username: str, role: Role) -> None:
        if role == Role.MEMBER:
            self.roles.pop(username, None)
        else:
            self.roles[username] = role
        self.persist()

    def resolve_for_join(self, username: str) -> Role:
        """Role for a joining user; bootstraps the first admin."""
        if not self.admins():
            logger.info(f"[Roles] No admin on record, {username} becomes admin")
            self.assign(username, Role.ADMIN)
        return self.role_of(username)


class ModerationEngine:
    """Authorisation checks and moderation actions.

    Hierarchy:
        - admin: may change roles, kick and mute anyone
        - moderator: may kick and mute members only
        - member: no moderation rights
    """

    def __init__(self, state: "ChatState") -> None:
        self._state = state
        self.roles = RoleAssignments(state)
        # username -> mute expiry (unix seconds)
        self.mutes: Dict[str, float] = {}

    def can_moderate(self, actor: Session, target_username: str) -> bool:
        if actor.role == Role.ADMIN:
            return True
        if actor.role == Role.MODERATOR:
            return self.roles.role_of(target_username) == Role.MEMBER
        return False

    # -------------------------------------------------------------------------
    # Roles
    # -------------------------------------------------------------------------

    async def set_role(self, actor: Session, target_username: str, new_role: Role) -> None:
        if actor.role != Role.ADMIN:
            raise AuthorizationError(f"{actor.username} may not change roles")
        if (
            target_username == actor.username
            and new_role != Role.ADMIN
            and self.roles.admins() == [actor.username]
        ):
            raise AuthorizationError("the only admin cannot step down")

        self.roles.assign(target_username, new_role)
        logger.info(f"[Moderation] {actor.username} set {target_username} to {new_role.value}")

        sessions = self._state.sessions
        for session in sessions.by_username(target_username):
            session.role = new_role
            await self._state.connections.send(session.id, "role-updated", new_role)
        await sessions.broadcast_roster()

    # -------------------------------------------------------------------------
    # Kick
    # -------------------------------------------------------------------------

    async def kick(self, actor: Session, target_username: str) -> int:
        """Notify and force-disconnect every live session of ``target_username``."""
        if not self.can_moderate(actor, target_username):
            raise AuthorizationError(f"{actor.username} may not kick {target_username}")

        targets = self._state.sessions.by_username(target_username)
        for session in targets:
            await self._state.connections.send(session.id, "kicked", {"by": actor.username})
            await self._state.disconnect(session.id, close_code=KICK_CLOSE_CODE)
        logger.info(f"[Moderation] {actor.username} kicked {target_username} ({len(targets)} sessions)")
        return len(targets)

    # -------------------------------------------------------------------------
    # Mute
    # -------------------------------------------------------------------------

    async def mute(self, actor: Session, target_username: str, minutes: float) -> float:
        if not self.can_moderate(actor, target_username):
            raise AuthorizationError(f"{actor.username} may not mute {target_username}")

        until = self._state.clock() + minutes * 60
        self.mutes[target_username] = until
        logger.info(f"[Moderation] {actor.username} muted {target_username} for {minutes} min")

        notice = {"duration": minutes, "until": until}
        for session in self._state.sessions.by_username(target_username):
            await self._state.connections.send(session.id, "muted", notice)
        return until

    def check_mute(self, username: str) -> None:
        """Raise MuteRejection if ``username`` is muted; drop an expired record."""
        until = self.mutes.get(username)
        if until is None:
            return
        now = self._state.clock()
        if now >= until:
            del self.mutes[username]
            return
        raise MuteRejection(username, until, until - now)

    @staticmethod
    def remaining_minutes(rejection: MuteRejection) -> int:
        return max(1, math.ceil(rejection.remaining_seconds / 60))
