"""Tests for whole-file JSON snapshot persistence."""
from piper.storage import SnapshotStore


class TestSnapshotStore:
    def test_missing_snapshot_returns_default(self, tmp_path):
        store = SnapshotStore(tmp_path / "data")
        assert store.load("messages", []) == []

    def test_save_then_load(self, tmp_path):
        store = SnapshotStore(tmp_path / "data")
        assert store.save("roles", {"alice": "admin"}) is True
        assert store.path_for("roles").exists()
        assert not store.path_for("roles").with_suffix(".json.tmp").exists()
        assert store.load("roles", {}) == {"alice": "admin"}

    def test_corrupt_snapshot_falls_back_to_default(self, tmp_path):
        store = SnapshotStore(tmp_path)
        store.path_for("channels").write_text("{not json", encoding="utf-8")
        assert store.load("channels", ["general"]) == ["general"]

    def test_unserialisable_payload_reports_failure(self, tmp_path):
        store = SnapshotStore(tmp_path)
        assert store.save("forum", {"bad": object()}) is False
        assert not store.path_for("forum").exists()

    def test_unwritable_directory_reports_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        store = SnapshotStore(blocker / "data")
        assert store.save("messages", []) is False

    def test_unicode_preserved(self, tmp_path):
        store = SnapshotStore(tmp_path)
        store.save("messages", [{"content": "héllo 👋"}])
        assert "👋" in store.path_for("messages").read_text(encoding="utf-8")
