from __future__ import annotations

from .cache import CURRENT_CID_FILE, DirectorySnapshotSource, FetchInterrupted, SnapshotSource

__all__ = [
    "CURRENT_CID_FILE",
    "DirectorySnapshotSource",
    "FetchInterrupted",
    "SnapshotSource",
]
