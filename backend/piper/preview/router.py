"""FastAPI router for link previews."""
import logging

from fastapi import APIRouter, HTTPException, Query, Request

from .service import LinkPreview, LinkPreviewService, PreviewError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["preview"])


@router.get("/preview", response_model=LinkPreview)
async def link_preview(
    request: Request,
    url: str = Query(..., description="Absolute http(s) URL to preview"),
):
    """Get title, description, image and domain for a URL.

    Raises:
        HTTPException 400: If the URL is not http(s)
        HTTPException 502: If the page could not be fetched
    """
    service: LinkPreviewService = getattr(request.app.state, "previews", None)
    if service is None:
        raise HTTPException(status_code=404, detail="Link previews are disabled")

    try:
        return await service.fetch(url)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PreviewError as e:
        raise HTTPException(status_code=502, detail=f"Could not fetch preview: {e}")
