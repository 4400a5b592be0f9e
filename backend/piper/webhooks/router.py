"""FastAPI router for incoming webhooks.

    POST /api/webhooks/{channel_id}
    X-Webhook-Secret: <secret from piper.secrets.yaml>

    {"content": "Deploy finished", "username": "CI"}
"""
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import BaseModel, Field

from piper.chat.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


class WebhookMessage(BaseModel):
    content: str = ""
    username: Optional[str] = Field(None, max_length=64)


@router.post("/{channel_id}")
async def post_webhook_message(
    request: Request,
    channel_id: str,
    body: WebhookMessage,
    x_webhook_secret: Optional[str] = Header(None),
) -> dict:
    """Post a bot message into ``channel_id``.

    Raises:
        HTTPException 503: No webhook secret is configured
        HTTPException 401: Missing or wrong X-Webhook-Secret
        HTTPException 404: Unknown channel
        HTTPException 400: Empty content
    """
    expected = request.app.state.config.secrets.webhook.secret
    if not expected:
        raise HTTPException(status_code=503, detail="Webhooks are not configured")
    if not x_webhook_secret or not hmac.compare_digest(
        x_webhook_secret.encode(), expected.encode()
    ):
        logger.warning(f"[Webhook] Rejected post to {channel_id}: bad secret")
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

    state = request.app.state.chat
    try:
        message = await state.messages.post_bot(channel_id, body.content, body.username)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"[Webhook] Posted to #{channel_id} as {message.user.username}")
    return {"ok": True, "id": message.id}
