"""WebSocket connection registry and fan-out primitives.

Every outbound frame is an envelope ``{"type": <event>, "data": <payload>}``.
Payloads may be pydantic models (or lists of them); they are converted with
FastAPI's ``jsonable_encoder`` before sending.

Performance Notes:
    - Fan-out uses asyncio.gather() for concurrent delivery
    - A connection whose send fails is dropped from the registry; its own
      receive loop performs the ordered disconnect cleanup afterwards
    - Broadcasts are fire-and-forget: there is no backpressure at this layer
"""
import asyncio
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


def envelope(event: str, data: Any = None) -> dict:
    """Build the wire envelope for an outbound event."""
    return {"type": event, "data": jsonable_encoder(data)}


class ConnectionManager:
    """Tracks live WebSocket connections by connection id.

    The connection id is generated server-side on accept and is the only
    identifier peers use to address each other (voice signalling, kicks).
    """

    def __init__(self) -> None:
        # connection id -> WebSocket
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        """Accept a WebSocket and register it under a fresh connection id."""
        await websocket.accept()
        conn_id = str(uuid.uuid4())
        self.register(conn_id, websocket)
        logger.info(f"[Connections] Accepted {conn_id} ({len(self.active_connections)} live)")
        return conn_id

    def register(self, conn_id: str, websocket: Any) -> None:
        self.active_connections[conn_id] = websocket

    def disconnect(self, conn_id: str) -> Optional[WebSocket]:
        """Forget a connection. Returns its socket if it was still registered."""
        return self.active_connections.pop(conn_id, None)

    def is_connected(self, conn_id: str) -> bool:
        return conn_id in self.active_connections

    def connection_ids(self) -> List[str]:
        return list(self.active_connections)

    async def close(self, websocket: WebSocket, code: int = 1000) -> None:
        """Close a socket that has already been removed from the registry."""
        try:
            await websocket.close(code=code)
        except RuntimeError as e:
            # Already closed by the peer
            logger.debug(f"[Connections] Close ignored: {e}")

    async def send(self, conn_id: str, event: str, data: Any = None) -> bool:
        """Send one event to one connection. Unknown ids are dropped silently."""
        websocket = self.active_connections.get(conn_id)
        if websocket is None:
            return False
        ok = await self._safe_send(websocket, envelope(event, data))
        if not ok:
            self._cleanup_connections([conn_id])
        return ok

    async def send_many(
        self, conn_ids: Iterable[str], event: str, data: Any = None
    ) -> None:
        """Send the same event to several connections concurrently."""
        targets = [
            (conn_id, self.active_connections[conn_id])
            for conn_id in conn_ids
            if conn_id in self.active_connections
        ]
        if not targets:
            return

        message = envelope(event, data)
        results = await asyncio.gather(
            *[self._safe_send(websocket, message) for _, websocket in targets],
            return_exceptions=True
        )

        # Remove failed connections
        failed = [
            conn_id for (conn_id, _), success in zip(targets, results)
            if success is not True
        ]
        self._cleanup_connections(failed)

    async def broadcast(
        self, event: str, data: Any = None, exclude: Optional[str] = None
    ) -> None:
        """Send an event to every live connection (optionally except one)."""
        await self.send_many(
            [conn_id for conn_id in self.active_connections if conn_id != exclude],
            event,
            data,
        )

    async def _safe_send(self, connection: WebSocket, message: dict) -> bool:
        """Send a message to a WebSocket connection with error handling.

        Returns:
            True if successful, False if connection failed.
        """
        try:
            await connection.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to connection: {e}")
            return False

    def _cleanup_connections(self, failed_ids: List[str]) -> None:
        for conn_id in failed_ids:
            if self.active_connections.pop(conn_id, None) is not None:
                logger.debug(f"Removed dead connection {conn_id}")
