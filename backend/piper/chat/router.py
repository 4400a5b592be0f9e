"""Chat router providing the WebSocket endpoint and history HTTP routes.

This module provides:
    - WebSocket /ws: realtime chat events (see ``commands`` for the inbound
      catalogue)
    - GET /api/history/export: download the message buffer as JSON
    - POST /api/history/import: replace the buffer from an exported file
    - DELETE /api/history: clear the buffer

Connection lifecycle:
    1. accept, assign a connection id and send ``connected``
    2. relay every inbound envelope to the dispatcher
    3. on disconnect (or any receive failure) run the ordered cleanup
"""
import json
import logging

import anyio
from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from .errors import ValidationError
from .state import ChatState

logger = logging.getLogger(__name__)

router = APIRouter()


def get_chat_state(request: Request) -> ChatState:
    return request.app.state.chat


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Realtime chat connection.

    Every frame in either direction is ``{"type": <event>, "data": <payload>}``.
    The first outbound frame is ``connected`` carrying the connection id that
    other peers use to address this client (voice signalling).
    """
    state: ChatState = websocket.app.state.chat
    conn_id = await state.connections.connect(websocket)
    logger.info(f"[WS] New connection {conn_id}")

    try:
        await state.connections.send(conn_id, "connected", {"id": conn_id})

        while state.connections.is_connected(conn_id):
            text = await websocket.receive_text()
            try:
                raw = json.loads(text)
            except json.JSONDecodeError:
                logger.warning(f"[WS] Ignoring non-JSON frame from {conn_id}")
                continue
            logger.debug("[WS] %s received: type=%s", conn_id, raw.get("type", "?") if isinstance(raw, dict) else "?")
            await state.dispatcher.dispatch(conn_id, raw)

    except WebSocketDisconnect as e:
        logger.info(f"[WS] {conn_id} disconnected (code={e.code})")
    except RuntimeError as e:
        # Socket closed server-side, e.g. after a kick
        logger.debug(f"[WS] {conn_id} receive loop ended: {e}")
    finally:
        # Cleanup must finish even when the handler task is being cancelled
        with anyio.CancelScope(shield=True):
            await state.dispatcher.disconnect(conn_id)


# =============================================================================
# History import / export
# =============================================================================


@router.get("/api/history/export")
async def export_history(request: Request) -> JSONResponse:
    """Download the whole message buffer as ``chat-history.json``."""
    state = get_chat_state(request)
    return JSONResponse(
        content=state.messages.export_all(),
        headers={"Content-Disposition": 'attachment; filename="chat-history.json"'},
    )


@router.post("/api/history/import")
async def import_history(request: Request) -> JSONResponse:
    """Replace the buffer with an uploaded history.

    Returns:
        ``{"imported": n}`` on success, HTTP 400 ``{"error": ...}`` when the
        body is not a list of messages each carrying id/type/content/timestamp.
    """
    state = get_chat_state(request)
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Request body must be JSON"})

    try:
        count = await state.messages.import_all(payload)
    except ValidationError as e:
        logger.info(f"[History] Import rejected: {e}")
        return JSONResponse(status_code=400, content={"error": str(e)})
    return JSONResponse(content={"imported": count})


@router.delete("/api/history")
async def clear_history(request: Request) -> dict:
    state = get_chat_state(request)
    count = await state.messages.clear()
    return {"cleared": count}
