"""
Cycle journal: one JSON file per executed dispatch cycle.

- Directory:        ``journal_dir`` setting (``CDISPD_JOURNAL_DIR``)
- Filename pattern: ``YYYYmmddTHHMMSSffffffZ_cid{new_id:08d}.json``
- Content:          a JSON object mirroring :class:`CycleRecord`

Timestamps are captured in UTC and serialized as ISO-8601 strings with a
trailing ``"Z"`` at the moment the record is built, so the record itself is
plain data and can be written or re-read without conversion.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from cdispd.core.contracts.dispatch import CycleReport
from cdispd.core.settings import get_logger

logger = get_logger("cdispd.journal")


@dataclass(frozen=True, slots=True)
class CycleRecord:
    """
    Immutable record of one comparison cycle.

    Attributes
    ----------
    timestamp : str
        UTC capture time, e.g. "2026-10-17T10:00:00.123456Z".
    new_id : int
        Configuration id of the compared snapshot.
    pivot_id : int
        Configuration id of the pivot it was compared against.
    dispatched : list[str]
        Names handed to the invoker (``["ALL"]`` for a forced full run).
    forced_all : bool
        Whether the previous failure forced a run of every active component.
    success : bool
        Invocation outcome; True when nothing had to run.
    conditions : list[str]
        Messages of every condition raised during the cycle.
    """

    timestamp: str
    new_id: int
    pivot_id: int
    dispatched: list[str] = field(default_factory=list)
    forced_all: bool = False
    success: bool = True
    conditions: list[str] = field(default_factory=list)

    @classmethod
    def from_report(cls, report: CycleReport) -> CycleRecord:
        ts_str = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
        return cls(
            timestamp=ts_str,
            new_id=report.new_id,
            pivot_id=report.old_id,
            dispatched=["ALL"] if report.forced_all else list(report.invoked),
            forced_all=report.forced_all,
            success=report.success,
            conditions=[c.message for c in report.all_conditions()],
        )


class JournalWriter:
    """Persist cycle records to disk as JSON files and read them back."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir: Path = base_dir

    def write(self, record: CycleRecord) -> Path:
        """Write ``record`` to disk and return the created file path."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        safe_ts = record.timestamp.replace("-", "").replace(":", "").replace(".", "")
        path = self.base_dir / f"{safe_ts}_cid{record.new_id:08d}.json"

        with path.open("w", encoding="utf-8") as f:
            json.dump(asdict(record), f, ensure_ascii=False, indent=2)
            f.write("\n")
        logger.debug("cycle for profile %s journaled to %s", record.new_id, path)
        return path

    def read(self) -> list[CycleRecord]:
        """Return every journaled record, oldest first."""
        if not self.base_dir.is_dir():
            return []
        records: list[CycleRecord] = []
        for path in sorted(self.base_dir.glob("*.json")):
            with path.open("r", encoding="utf-8") as f:
                records.append(CycleRecord(**json.load(f)))
        return records


__all__ = ["CycleRecord", "JournalWriter"]
