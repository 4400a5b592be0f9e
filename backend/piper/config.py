"""Piper application configuration.

Loads settings from two YAML files:
  * piper.settings.yaml: non-secret configuration
  * piper.secrets.yaml: secrets (never committed)

Relative paths in the ``chat``/``uploads`` sections are resolved against the
directory that holds the settings file, so a deployment can keep its data
next to its configuration.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("piper.settings.yaml")
SECRETS_FILE  = Path("piper.secrets.yaml")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _resolve(base_dir: Path, value: str) -> str:
    path = Path(value).expanduser()
    if path.is_absolute():
        return str(path)
    return str(base_dir / path)


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class WebhookSecrets(BaseModel):
    secret: Optional[str] = None


class Secrets(BaseModel):
    webhook: WebhookSecrets = Field(default_factory=WebhookSecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str  = "0.0.0.0"
    port:            int  = 3001
    reload:          bool = False
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingSettings(BaseModel):
    level: str = "info"


class ChatSettings(BaseModel):
    """Limits and locations for the realtime chat core."""
    max_messages:            int = 500
    max_channel_name_length: int = 20
    default_channel:         str = "general"
    forum_channel:           str = "forum"
    data_dir:                str = "./data"

    @field_validator("max_messages", "max_channel_name_length")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value


class UploadSettings(BaseModel):
    enabled:          bool = True
    upload_dir:       str  = "./uploads"
    db_path:          str  = "./uploads.duckdb"
    max_file_size_mb: int  = 10

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


class PreviewSettings(BaseModel):
    enabled:         bool  = True
    cache_size:      int   = 100
    timeout_seconds: float = 5.0


class AppConfig(BaseModel):
    server:   ServerSettings  = Field(default_factory=ServerSettings)
    logging:  LoggingSettings = Field(default_factory=LoggingSettings)
    chat:     ChatSettings    = Field(default_factory=ChatSettings)
    uploads:  UploadSettings  = Field(default_factory=UploadSettings)
    preview:  PreviewSettings = Field(default_factory=PreviewSettings)
    secrets:  Secrets         = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
) -> AppConfig:
    """Load and merge settings + secrets into a single *AppConfig* object."""
    settings_path = Path(settings_path or SETTINGS_FILE)
    secrets_path = Path(secrets_path or settings_path.with_name(SECRETS_FILE.name))

    settings_data = _load_yaml(settings_path)
    secrets_data  = _load_yaml(secrets_path)

    # Merge: secrets live under the "secrets" key in AppConfig
    settings_data["secrets"] = secrets_data

    config = AppConfig(**settings_data)

    base_dir = settings_path.resolve().parent
    config.chat.data_dir = _resolve(base_dir, config.chat.data_dir)
    config.uploads.upload_dir = _resolve(base_dir, config.uploads.upload_dir)
    config.uploads.db_path = _resolve(base_dir, config.uploads.db_path)

    logger.info(
        "Settings loaded (server=%s:%s, data_dir=%s, webhook_secret=%s)",
        config.server.host,
        config.server.port,
        config.chat.data_dir,
        "set" if config.secrets.webhook.secret else "unset",
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration (used by tests)."""
    global _config
    _config = None
