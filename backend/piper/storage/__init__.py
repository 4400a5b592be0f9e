"""Durable snapshot storage for chat state."""
from .snapshot import SnapshotStore

__all__ = ["SnapshotStore"]
