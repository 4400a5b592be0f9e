"""FastAPI router for file upload endpoints."""
import logging

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse

from .schemas import UploadResponse
from .service import FileStorageService, FileTooLargeError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


def get_upload_service(request: Request) -> FileStorageService:
    service = getattr(request.app.state, "uploads", None)
    if service is None:
        raise HTTPException(status_code=404, detail="Uploads are disabled")
    return service


@router.post("/upload", response_model=UploadResponse)
async def upload_file(request: Request, file: UploadFile = File(...)):
    """Upload a chat attachment.

    Returns:
        UploadResponse; the client sends it on as a ``file`` chat event.

    Raises:
        HTTPException 400: If the file is empty
        HTTPException 413: If the file exceeds the configured limit
    """
    service = get_upload_service(request)
    content = await file.read()
    mimetype = file.content_type or "application/octet-stream"

    try:
        stored = service.save_file(file.filename or "unnamed", content, mimetype)
    except FileTooLargeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"[Uploads] {stored.original_name} stored as {stored.filename}")
    return UploadResponse(
        url=f"/uploads/{stored.filename}",
        filename=stored.filename,
        originalName=stored.original_name,
        size=stored.size,
        mimetype=stored.mimetype,
    )


@router.get("/uploads/{filename}")
async def download_file(request: Request, filename: str):
    service = get_upload_service(request)
    file_path = service.get_file_path(filename)
    if file_path is None:
        raise HTTPException(status_code=404, detail="File not found")

    stored = service.get_file(filename)
    return FileResponse(path=file_path, media_type=stored.mimetype)
