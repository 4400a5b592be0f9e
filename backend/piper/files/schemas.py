"""Pydantic schemas for file uploads.

- StoredFile: complete upload record kept in DuckDB
- UploadResponse: body returned by ``POST /upload``; the same shape is the
  file descriptor clients embed in ``file`` chat messages
"""
import time

from pydantic import BaseModel, Field


class StoredFile(BaseModel):
    """Metadata for an uploaded file.

    ``filename`` is the UUID-based name on disk; ``original_name`` is what
    the uploader called it and is only used for display.
    """
    filename: str = Field(..., description="Filename on disk (UUID-based)")
    original_name: str = Field(..., description="Original filename")
    mimetype: str = Field(..., description="MIME type of the file")
    size: int = Field(..., description="File size in bytes")
    uploaded_at: float = Field(default_factory=time.time, description="Upload timestamp")


class UploadResponse(BaseModel):
    url: str
    filename: str
    originalName: str
    size: int
    mimetype: str
