# scripts/smoke.py
"""
Smoke Test Script for the cdispd dispatch loop.

Builds a throw-away configuration cache, publishes a few profiles and runs
the daemon over them in dry-run mode, printing what would be dispatched.

Usage
-----
1. Dry run with the default scenario:
    $ uv run python scripts/smoke.py

2. Keep the generated cache and journal for inspection:
    $ uv run python scripts/smoke.py --keep /tmp/cdispd-smoke
"""

import argparse
import json
import logging
import sys
import tempfile
import traceback
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from cdispd.core.journal import JournalWriter
from cdispd.core.settings import Settings
from cdispd.pipelines.daemon import DispatchDaemon

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

# --------------------------------------------------------------------------- #
# Test Data
# --------------------------------------------------------------------------- #
PROFILES: list[dict[str, Any]] = [
    {
        "software": {
            "components": {
                "sshd": {"active": True, "dispatch": True, "port": 22},
                "cron": {"active": True, "dispatch": True},
            },
            "packages": {"ncm_2dsshd": {"version": "1.0"}, "ncm_2dcron": {"version": "1.0"}},
        },
    },
    {
        "software": {
            "components": {
                "sshd": {"active": True, "dispatch": True, "port": 2222},
                "cron": {"active": False, "dispatch": True},
                "ntpd": {"active": True, "dispatch": True, "register_change": ["/system/time"]},
            },
            "packages": {"ncm_2dsshd": {"version": "1.0"}, "ncm_2dcron": {"version": "1.0"}},
        },
        "system": {"time": {"servers": ["ntp1", "ntp2"]}},
    },
]


def _publish(cache: Path, cid: int, profile: dict[str, Any]) -> None:
    (cache / f"profile.{cid}.json").write_text(json.dumps(profile), encoding="utf-8")
    (cache / "current.cid").write_text(f"{cid}\n", encoding="utf-8")


def main() -> None:
    """Execute the smoke test workflow."""
    parser = argparse.ArgumentParser(description="Run cdispd Smoke Test")
    parser.add_argument("--keep", type=str, help="Directory to keep the cache and journal in")
    args = parser.parse_args()

    root = Path(args.keep) if args.keep else Path(tempfile.mkdtemp(prefix="cdispd-smoke-"))
    cache = root / "cache"
    cache.mkdir(parents=True, exist_ok=True)
    print(f"\n📂 Using cache: {cache}")

    cfg = Settings(
        cache_root=cache,
        interval=0.1,
        dry_run=True,
        journal_dir=root / "journal",
        state_dir=root / "state",
    )

    try:
        _publish(cache, 1, PROFILES[0])
        daemon = DispatchDaemon.from_settings(cfg)
        daemon.start()

        for cid, profile in enumerate(PROFILES[1:], start=2):
            _publish(cache, cid, profile)
            report = daemon.poll()
            if report is None:
                print(f"  profile {cid}: nothing to compare")
                continue
            print(f"  profile {cid}: would dispatch {', '.join(report.invoked) or '-'}")
            for condition in report.all_conditions():
                print(f"    ⚠ {condition.kind.value}: {condition.message}")
    except Exception as exc:
        print(f"\n❌ Smoke run crashed: {exc}")
        traceback.print_exc()
        return

    print("\n" + "=" * 60)
    print("✅ Smoke run finished")
    print("=" * 60)
    for record in JournalWriter(root / "journal").read():
        print(f"  {record.timestamp}  {record.pivot_id} -> {record.new_id}: {record.dispatched}")


if __name__ == "__main__":
    main()
