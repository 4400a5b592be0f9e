"""Error taxonomy for chat event handling.

Components raise these while handling an inbound event; the dispatcher
catches them per event so that nothing crosses the connection boundary
except the deliberate notices (``muted``, ``kicked``, ``role-updated``).
"""


class ChatError(Exception):
    """Base class for rejected chat operations."""


class AuthorizationError(ChatError):
    """The acting session lacks the role required for the operation."""


class ValidationError(ChatError):
    """The request was malformed (bad name, empty content, bad import)."""


class NotFoundError(ChatError):
    """The referenced message, channel or topic does not exist."""


class MuteRejection(ChatError):
    """The sender is muted; carries the expiry so a notice can be sent."""

    def __init__(self, username: str, until: float, remaining_seconds: float) -> None:
        super().__init__(f"{username} is muted until {until:.0f}")
        self.username = username
        self.until = until
        self.remaining_seconds = remaining_seconds
