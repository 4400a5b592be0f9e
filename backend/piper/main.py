"""Piper Chat backend application.

This is the main entry point for the Piper realtime chat service.

Modules:
    - chat: WebSocket events, sessions, channels, messages, moderation,
      voice signalling, typing indicators and the forum
    - files: attachment uploads with DuckDB metadata
    - preview: OpenGraph link previews
    - webhooks: bot messages posted by external services
    - storage: JSON snapshot persistence
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from piper import __version__
from piper.chat.router import router as chat_router
from piper.chat.state import ChatState
from piper.config import AppConfig, get_config
from piper.files.router import router as files_router
from piper.files.service import FileStorageService
from piper.preview.router import router as preview_router
from piper.preview.service import LinkPreviewService
from piper.storage import SnapshotStore
from piper.webhooks.router import router as webhooks_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# httpx/httpcore log every connection made by the preview fetcher;
# uvicorn.access logs every upload download.
for _noisy in (
    "httpx",
    "httpcore",
    "uvicorn.access",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    config: AppConfig = app.state.config
    logger.info(
        f"Piper running on http://{config.server.host}:{config.server.port} "
        f"({len(app.state.chat.messages.messages)} messages restored)"
    )

    yield  # Application runs here

    # Shutdown
    if app.state.previews is not None:
        await app.state.previews.aclose()
    if app.state.uploads is not None:
        app.state.uploads.close()
    logger.info("Application shutdown complete")


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the FastAPI application around a fresh ChatState."""
    config = config or get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in piper.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)

    app = FastAPI(
        title="Piper Chat API",
        description="Realtime chat coordination service",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    state = ChatState(config.chat, store=SnapshotStore(config.chat.data_dir))
    state.load()
    app.state.config = config
    app.state.chat = state

    app.state.uploads = None
    if config.uploads.enabled:
        app.state.uploads = FileStorageService(
            upload_dir=config.uploads.upload_dir,
            db_path=config.uploads.db_path,
            max_size_bytes=config.uploads.max_file_size_bytes,
        )

    app.state.previews = None
    if config.preview.enabled:
        app.state.previews = LinkPreviewService(
            cache_size=config.preview.cache_size,
            timeout=config.preview.timeout_seconds,
        )

    # Register all routers
    app.include_router(chat_router)
    app.include_router(files_router)
    app.include_router(preview_router)
    app.include_router(webhooks_router)

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint."""
        return {"status": "ok"}

    return app


def run() -> None:
    """Console entry point: serve the app with the configured host/port."""
    config = get_config()
    uvicorn.run(
        "piper.main:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
    )


if __name__ == "__main__":
    run()
