"""
Integration tests for the polling loop.

The loop is driven with a scripted snapshot source and a fake invoker, so the
pivot retention rule can be followed across several profiles.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

from cdispd.ccm.cache import DirectorySnapshotSource
from cdispd.core.contracts.dispatch import ALL
from cdispd.core.contracts.snapshot import Snapshot, SnapshotError
from cdispd.core.journal import JournalWriter
from cdispd.core.settings import Settings
from cdispd.pipelines.daemon import DispatchDaemon
from cdispd.pipelines.dispatch import DispatchDriver


def _daemon(source: Any, invoker: Any, **kwargs: Any) -> DispatchDaemon:
    return DispatchDaemon(source, DispatchDriver(invoker), interval=0.01, **kwargs)


def test_first_profile_becomes_pivot_without_dispatch(
    make_snapshot: Callable[..., Snapshot],
    comp: Callable[..., dict[str, Any]],
    source_factory: Callable[..., Any],
    invoker_factory: Callable[..., Any],
) -> None:
    invoker = invoker_factory()
    source = source_factory([make_snapshot(1, {"sshd": comp()})])
    daemon = _daemon(source, invoker)

    daemon.run(max_polls=2)

    assert daemon.pivot.pivot.config_id == 1
    assert invoker.calls == []
    assert source.fetches == 1, "an unchanged id must not be re-read"


def test_pivot_retention_on_failure(
    make_snapshot: Callable[..., Snapshot],
    comp: Callable[..., dict[str, Any]],
    source_factory: Callable[..., Any],
    invoker_factory: Callable[..., Any],
) -> None:
    """A -> B fails; C has A's content: C is diffed against A and ALL is run."""
    a = make_snapshot(1, {"sshd": comp(port=22)})
    b = make_snapshot(2, {"sshd": comp(port=2222)})
    c = make_snapshot(3, {"sshd": comp(port=22)})

    invoker = invoker_factory([False, True])
    daemon = _daemon(source_factory([a, b, c]), invoker)
    daemon.start()

    first = daemon.poll()
    assert first is not None and first.success is False
    assert invoker.calls[0][0] == {"sshd"}
    assert daemon.pivot.pivot is a
    assert daemon.pivot.last_run_failed is True

    second = daemon.poll()
    assert second is not None and second.old_id == 1
    assert second.forced_all is True
    assert invoker.calls[1][0] is ALL
    assert daemon.pivot.pivot is c
    assert daemon.pivot.last_run_failed is False


def test_failed_component_is_retried_against_stale_pivot(
    make_snapshot: Callable[..., Snapshot],
    comp: Callable[..., dict[str, Any]],
    source_factory: Callable[..., Any],
    invoker_factory: Callable[..., Any],
) -> None:
    a = make_snapshot(1, {"sshd": comp(port=22), "cron": comp()})
    b = make_snapshot(2, {"sshd": comp(port=2222), "cron": comp()})
    c = make_snapshot(3, {"sshd": comp(port=2222), "cron": comp(hour=3)})

    invoker = invoker_factory([False, True])
    daemon = _daemon(source_factory([a, b, c]), invoker)
    daemon.start()
    daemon.poll()
    report = daemon.poll()

    assert report is not None
    assert invoker.calls[1][0] == {"sshd", "cron"}


def test_fetch_errors_are_survived(
    make_snapshot: Callable[..., Snapshot],
    comp: Callable[..., dict[str, Any]],
    source_factory: Callable[..., Any],
    invoker_factory: Callable[..., Any],
) -> None:
    a = make_snapshot(1, {})
    b = make_snapshot(2, {"sshd": comp()})
    invoker = invoker_factory()
    daemon = _daemon(source_factory([a, SnapshotError("truncated profile"), b]), invoker)
    daemon.start()

    assert daemon.poll() is None
    assert daemon.poll() is not None
    assert invoker.calls[0][0] == {"sshd"}


def test_stop_request_ends_loop_at_boundary(
    make_snapshot: Callable[..., Snapshot],
    source_factory: Callable[..., Any],
    invoker_factory: Callable[..., Any],
) -> None:
    source = source_factory([make_snapshot(1, {})])
    daemon = _daemon(source, invoker_factory())
    daemon.start()
    daemon.request_stop()

    daemon.run()

    assert daemon.stopping is True
    assert source.fetches == 1


def test_restart_reloads_settings_during_wait(
    tmp_path: Path,
    make_snapshot: Callable[..., Snapshot],
    source_factory: Callable[..., Any],
    invoker_factory: Callable[..., Any],
) -> None:
    reloaded = Settings(interval=5.0, journal_dir=tmp_path / "journal")
    daemon = _daemon(
        source_factory([make_snapshot(1, {})]), invoker_factory(), reloader=lambda: reloaded
    )
    daemon.start()
    daemon.request_restart()

    daemon.run(max_polls=2)

    assert daemon.interval == 5.0
    assert daemon.journal is not None
    assert daemon.pivot.pivot.config_id == 1


def test_cycles_are_journaled(
    tmp_path: Path,
    make_snapshot: Callable[..., Snapshot],
    comp: Callable[..., dict[str, Any]],
    source_factory: Callable[..., Any],
    invoker_factory: Callable[..., Any],
) -> None:
    journal = JournalWriter(tmp_path / "journal")
    source = source_factory([make_snapshot(1, {}), make_snapshot(2, {"sshd": comp()})])
    daemon = _daemon(source, invoker_factory(), journal=journal)

    daemon.run(max_polls=1)

    [record] = journal.read()
    assert record.new_id == 2 and record.pivot_id == 1
    assert record.dispatched == ["sshd"]


def test_directory_source_end_to_end(
    tmp_path: Path,
    comp: Callable[..., dict[str, Any]],
    invoker_factory: Callable[..., Any],
) -> None:
    def publish(cid: int, components: dict[str, Any]) -> None:
        profile = {"software": {"components": components}}
        (tmp_path / f"profile.{cid}.json").write_text(json.dumps(profile), encoding="utf-8")
        (tmp_path / "current.cid").write_text(f"{cid}\n", encoding="utf-8")

    publish(1, {"sshd": comp()})
    invoker = invoker_factory()
    cfg = Settings(cache_root=tmp_path, interval=0.01, state_dir=tmp_path / "state")
    daemon = DispatchDaemon.from_settings(cfg, invoker=invoker)
    daemon.start()

    publish(2, {"sshd": comp(), "cron": comp()})
    daemon.poll()

    assert invoker.calls[0][0] == {"cron"}
    assert (tmp_path / "state" / "cron").is_file()
    assert isinstance(daemon.source, DirectorySnapshotSource)


def test_failed_profile_is_retried_on_next_poll(
    make_snapshot: Callable[..., Snapshot],
    comp: Callable[..., dict[str, Any]],
    source_factory: Callable[..., Any],
    invoker_factory: Callable[..., Any],
) -> None:
    a = make_snapshot(1, {"sshd": comp(port=22)})
    b = make_snapshot(2, {"sshd": comp(port=2222)})
    invoker = invoker_factory([False, True])
    daemon = _daemon(source_factory([a, b]), invoker)
    daemon.start()

    first = daemon.poll()
    retry = daemon.poll()

    assert first is not None and first.success is False
    assert retry is not None and retry.success is True
    assert retry.old_id == 1 and retry.new_id == 2
    assert [call[0] for call in invoker.calls] == [{"sshd"}, {"sshd"}]
    assert daemon.pivot.pivot is b
    # Once accepted, the same id is left alone.
    assert daemon.poll() is None
    assert len(invoker.calls) == 2


def test_stop_interrupts_wait_for_missing_profile(
    tmp_path: Path,
    comp: Callable[..., dict[str, Any]],
    invoker_factory: Callable[..., Any],
) -> None:
    profile = {"software": {"components": {"sshd": comp()}}}
    (tmp_path / "profile.1.json").write_text(json.dumps(profile), encoding="utf-8")
    (tmp_path / "current.cid").write_text("1\n", encoding="utf-8")

    naps: list[float] = []
    source = DirectorySnapshotSource(tmp_path, sleep=naps.append)
    invoker = invoker_factory()
    daemon = DispatchDaemon.from_settings(
        Settings(cache_root=tmp_path), source=source, invoker=invoker
    )
    daemon.start()

    # Profile 2 is announced but never becomes visible.
    (tmp_path / "current.cid").write_text("2\n", encoding="utf-8")

    def nap_then_stop(seconds: float) -> None:
        naps.append(seconds)
        daemon.request_stop()

    source.sleep = nap_then_stop

    assert daemon.poll() is None
    assert len(naps) == 1
    assert invoker.calls == []
    assert daemon.pivot.pivot.config_id == 1
