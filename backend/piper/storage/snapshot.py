"""Whole-file JSON snapshots of the chat state.

Each named snapshot (``messages``, ``channels``, ``roles``, ``forum``) lives
in its own ``<name>.json`` file under the data directory and is rewritten in
full on every change. Writes go to a temporary sibling first and are moved
into place with ``os.replace`` so a crash never leaves a half-written file.

Durability is best-effort: failures are logged and reported through the
return value, never raised to callers.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Union

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Reads and writes named JSON snapshots in a data directory."""

    def __init__(self, data_dir: Union[str, Path]) -> None:
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def path_for(self, name: str) -> Path:
        return self._data_dir / f"{name}.json"

    def load(self, name: str, default: Any) -> Any:
        """Load a snapshot, returning ``default`` if it is missing or unreadable."""
        path = self.path_for(name)
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("[Snapshot] Could not read %s, using defaults", path)
            return default

    def save(self, name: str, payload: Any) -> bool:
        """Persist a snapshot. Returns False (and logs) if the write failed."""
        path = self.path_for(name)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError):
            logger.exception("[Snapshot] Failed to persist %s", path)
            return False
        logger.debug("[Snapshot] Wrote %s", path)
        return True
