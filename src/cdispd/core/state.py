"""Disk-backed state markers for dispatched components.

One empty file per component lives in the state directory:

- ``mark(name)``  creates or touches ``<state_dir>/<name>``,
- ``clear(name)`` removes it; a missing file is not an error.

Both operations are idempotent. I/O problems never abort a cycle: they are
logged as warnings and reported back as ``StateStoreIOFailure`` conditions.
Without a state directory the store is a no-op.
"""

from __future__ import annotations

from pathlib import Path

from cdispd.core.contracts.dispatch import Condition, ConditionKind
from cdispd.core.settings import get_logger

logger = get_logger("cdispd.state")


class FileStateStore:
    """Persist per-component markers under ``base_dir``."""

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir: Path | None = base_dir

    @property
    def enabled(self) -> bool:
        return self.base_dir is not None

    def marker(self, name: str) -> Path | None:
        """Return the marker path of ``name`` (``None`` when disabled)."""
        return self.base_dir / name if self.base_dir is not None else None

    def mark(self, name: str) -> Condition | None:
        """Create or touch the marker of ``name``."""
        path = self.marker(name)
        if path is None:
            return None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.touch()
        except OSError as exc:
            message = f"Cannot update state for component {name} (state file={path}, status={exc})"
            return self._failure(name, message)
        logger.debug("state marker %s updated", path)
        return None

    def clear(self, name: str) -> Condition | None:
        """Remove the marker of ``name`` if present."""
        path = self.marker(name)
        if path is None:
            return None
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            return self._failure(name, f"Cannot remove state {path}: {exc}")
        logger.debug("state marker %s cleared", path)
        return None

    def marked(self) -> tuple[str, ...]:
        """Return the names currently marked, sorted (stable for tests)."""
        if self.base_dir is None or not self.base_dir.is_dir():
            return ()
        return tuple(sorted(p.name for p in self.base_dir.iterdir() if p.is_file()))

    @staticmethod
    def _failure(name: str, message: str) -> Condition:
        logger.warning(message)
        return Condition(kind=ConditionKind.STATE_STORE_IO_FAILURE, message=message, component=name)


__all__ = ["FileStateStore"]
