"""File storage service.

Handles file storage on disk and metadata tracking in DuckDB.
Files are stored in: {upload_dir}/{uuid}.{ext}
"""
import logging
import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

import duckdb

from .schemas import StoredFile

logger = logging.getLogger(__name__)

_STORED_NAME = re.compile(r"^[0-9a-f\-]{36}(\.[A-Za-z0-9]{1,16})?$")


class FileTooLargeError(ValueError):
    pass


class FileStorageService:
    """Service for managing uploaded files."""

    def __init__(self, upload_dir: str, db_path: str, max_size_bytes: int):
        self._upload_dir = Path(upload_dir)
        self._db_path = db_path
        self.max_size_bytes = max_size_bytes

        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._upload_dir.mkdir(parents=True, exist_ok=True)
        self._initialize_db()

    @property
    def upload_dir(self) -> Path:
        return self._upload_dir

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create database connection."""
        if self._connection is None:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self._connection = duckdb.connect(self._db_path)
        return self._connection

    def _initialize_db(self) -> None:
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS uploads (
                filename VARCHAR PRIMARY KEY,
                original_name VARCHAR NOT NULL,
                mimetype VARCHAR NOT NULL,
                size BIGINT NOT NULL,
                uploaded_at TIMESTAMP NOT NULL
            )
        """)

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def save_file(self, original_name: str, content: bytes, mimetype: str) -> StoredFile:
        """Save an uploaded file to disk and record metadata.

        Raises:
            FileTooLargeError: If the file exceeds the configured limit.
            ValueError: If the file is empty.
        """
        size = len(content)
        if size > self.max_size_bytes:
            raise FileTooLargeError(
                f"File size ({size} bytes) exceeds limit ({self.max_size_bytes} bytes)"
            )
        if size == 0:
            raise ValueError("File is empty")

        ext = Path(original_name).suffix.lower()
        if not re.fullmatch(r"\.[a-z0-9]{1,16}", ext):
            ext = ""
        stored = StoredFile(
            filename=f"{uuid.uuid4()}{ext}",
            original_name=original_name,
            mimetype=mimetype,
            size=size,
        )

        file_path = self._upload_dir / stored.filename
        file_path.write_bytes(content)
        logger.info(f"[Uploads] Saved {file_path} ({size} bytes)")

        self._get_connection().execute(
            """
            INSERT INTO uploads (filename, original_name, mimetype, size, uploaded_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                stored.filename,
                stored.original_name,
                stored.mimetype,
                stored.size,
                datetime.fromtimestamp(stored.uploaded_at),
            ],
        )
        return stored

    def get_file(self, filename: str) -> Optional[StoredFile]:
        """Get file metadata by stored filename."""
        result = self._get_connection().execute(
            """
            SELECT filename, original_name, mimetype, size, uploaded_at
            FROM uploads
            WHERE filename = ?
            """,
            [filename],
        ).fetchone()

        if not result:
            return None

        return StoredFile(
            filename=result[0],
            original_name=result[1],
            mimetype=result[2],
            size=result[3],
            uploaded_at=result[4].timestamp() if result[4] else 0,
        )

    def get_file_path(self, filename: str) -> Optional[Path]:
        """Path on disk for a stored filename, or None if unknown or missing."""
        if not _STORED_NAME.match(filename):
            return None
        if self.get_file(filename) is None:
            return None
        file_path = self._upload_dir / filename
        if not file_path.exists():
            return None
        return file_path
