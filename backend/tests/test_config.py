"""Tests for settings loading and path resolution."""
from pathlib import Path

import pytest
from pydantic import ValidationError

from piper.config import get_config, load_config, reset_config


def test_defaults_when_files_missing(tmp_path):
    """Missing settings and secrets files fall back to defaults."""
    cfg = load_config(settings_path=tmp_path / "piper.settings.yaml")
    assert cfg.server.port == 3001
    assert cfg.chat.max_messages == 500
    assert cfg.chat.max_channel_name_length == 20
    assert cfg.preview.cache_size == 100
    assert cfg.secrets.webhook.secret is None


def test_relative_paths_resolve_against_settings_dir(tmp_path):
    settings_file = tmp_path / "piper.settings.yaml"
    settings_file.write_text(
        "chat:\n"
        "  data_dir: state\n"
        "uploads:\n"
        "  upload_dir: files/uploads\n"
        "  db_path: files/uploads.duckdb\n",
        encoding="utf-8",
    )

    cfg = load_config(settings_path=settings_file)
    assert Path(cfg.chat.data_dir) == tmp_path / "state"
    assert Path(cfg.uploads.upload_dir) == tmp_path / "files" / "uploads"
    assert Path(cfg.uploads.db_path) == tmp_path / "files" / "uploads.duckdb"


def test_absolute_paths_unchanged(tmp_path):
    absolute = tmp_path / "elsewhere" / "data"
    settings_file = tmp_path / "piper.settings.yaml"
    settings_file.write_text(f"chat:\n  data_dir: {absolute}\n", encoding="utf-8")

    cfg = load_config(settings_path=settings_file)
    assert Path(cfg.chat.data_dir) == absolute


def test_secrets_loaded_from_sibling_file(tmp_path):
    settings_file = tmp_path / "piper.settings.yaml"
    settings_file.write_text("server:\n  port: 4000\n", encoding="utf-8")
    (tmp_path / "piper.secrets.yaml").write_text(
        "webhook:\n  secret: hunter2\n", encoding="utf-8"
    )

    cfg = load_config(settings_path=settings_file)
    assert cfg.server.port == 4000
    assert cfg.secrets.webhook.secret == "hunter2"


def test_upload_limit_in_bytes(tmp_path):
    settings_file = tmp_path / "piper.settings.yaml"
    settings_file.write_text("uploads:\n  max_file_size_mb: 2\n", encoding="utf-8")
    cfg = load_config(settings_path=settings_file)
    assert cfg.uploads.max_file_size_bytes == 2 * 1024 * 1024


def test_non_positive_limits_rejected(tmp_path):
    settings_file = tmp_path / "piper.settings.yaml"
    settings_file.write_text("chat:\n  max_messages: 0\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_config(settings_path=settings_file)


def test_get_config_is_cached(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    reset_config()
    try:
        assert get_config() is get_config()
    finally:
        reset_config()
