# -----------------------------------------------------------------------------
# This module provides the snapshot sources consumed by the dispatch daemon:
#   - `SnapshotSource`: the narrow protocol the daemon depends on
#   - `DirectorySnapshotSource`: reads profiles from a configuration cache
#
# Cache layout
# ------------
# The cache root holds a `current.cid` file with the id of the most recent
# profile and one `profile.<cid>.json` file per retained profile:
#
#     /var/lib/ccm/current.cid          -> "42\n"
#     /var/lib/ccm/profile.42.json      -> {"software": {...}, ...}
#
# The producer writes the profile first and updates `current.cid` last, so a
# missing profile for the current id only means it is not visible yet.
# -----------------------------------------------------------------------------
from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from cdispd.core.contracts.snapshot import Snapshot, SnapshotError, load_snapshot
from cdispd.core.settings import get_logger

logger = get_logger("cdispd.ccm")

CURRENT_CID_FILE = "current.cid"


class FetchInterrupted(SnapshotError):
    """Raised when a stop was requested while waiting for a profile."""


class SnapshotSource(Protocol):
    """Where the daemon gets profiles from."""

    def current_id(self) -> int | None: ...

    def fetch(self, should_stop: Callable[[], bool] | None = None) -> Snapshot: ...


@dataclass(slots=True)
class DirectorySnapshotSource:
    """Read profiles from a directory-based configuration cache.

    Parameters
    ----------
    cache_root:
        Directory containing ``current.cid`` and the profile files.
    wait_seconds:
        Delay between two checks while :meth:`fetch` waits for a profile.
    max_wait:
        Give up after this many seconds (``None`` waits forever).
    """

    cache_root: Path
    wait_seconds: float = 1.0
    max_wait: float | None = None
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def profile_path(self, cid: int) -> Path:
        return self.cache_root / f"profile.{cid}.json"

    def current_id(self) -> int | None:
        """Return the id in ``current.cid``, or ``None`` when there is none yet.

        Raises
        ------
        SnapshotError
            If the cid file holds something other than an integer.
        """
        cid_file = self.cache_root / CURRENT_CID_FILE
        try:
            raw = cid_file.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise SnapshotError(f"cannot read {cid_file}: {exc}") from exc
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError as exc:
            raise SnapshotError(f"{cid_file} does not hold a profile id: {raw!r}") from exc

    def fetch(self, should_stop: Callable[[], bool] | None = None) -> Snapshot:
        """Block until the current profile is available and return it.

        ``should_stop`` is checked before every wait; once it returns True the
        wait is abandoned with :class:`FetchInterrupted`.
        """
        waited = 0.0
        while True:
            cid = self.current_id()
            if cid is not None and self.profile_path(cid).exists():
                return load_snapshot(self.profile_path(cid), cid)

            if should_stop is not None and should_stop():
                raise FetchInterrupted(
                    f"stop requested while waiting for a profile under {self.cache_root}"
                )
            if self.max_wait is not None and waited >= self.max_wait:
                raise SnapshotError(f"no profile available under {self.cache_root}")
            logger.debug("waiting for a profile under %s", self.cache_root)
            self.sleep(self.wait_seconds)
            waited += self.wait_seconds


__all__ = ["CURRENT_CID_FILE", "DirectorySnapshotSource", "FetchInterrupted", "SnapshotSource"]
