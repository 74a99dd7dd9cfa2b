"""
Polling loop of the dispatch daemon.

The loop is single-threaded and cooperative. Each iteration is one *poll*:

1. fetch the current snapshot from the source;
2. ask the pivot state machine whether it needs a comparison cycle;
3. run the cycle through the dispatch driver and feed the outcome back;
4. wait ``interval`` seconds.

Signals
-------
- SIGTERM / SIGINT request a stop. The flag is only looked at between polls,
  so a diff or an invocation in progress always completes first; the wait is
  woken up early and a wait for a not yet visible profile is abandoned.
- SIGHUP requests a restart (settings reloaded, driver rebuilt). It is applied
  during the wait, never in the middle of a cycle. The pivot is preserved.
"""

from __future__ import annotations

import signal
import threading
from collections.abc import Callable
from types import FrameType

from cdispd.ccm.cache import DirectorySnapshotSource, FetchInterrupted, SnapshotSource
from cdispd.core.contracts.dispatch import CycleReport
from cdispd.core.contracts.snapshot import Snapshot, SnapshotError
from cdispd.core.journal import CycleRecord, JournalWriter
from cdispd.core.pivot import PivotDecision, PivotStateMachine
from cdispd.core.settings import Settings, get_logger
from cdispd.ncd.invoker import Invoker
from cdispd.pipelines.dispatch import DispatchDriver

logger = get_logger("cdispd.daemon")


class DispatchDaemon:
    """
    Tie a snapshot source, the pivot state machine and the driver together.

    Parameters
    ----------
    source:
        Where snapshots come from.
    driver:
        Runs one comparison cycle.
    interval:
        Seconds between two polls.
    journal:
        Optional writer receiving one record per executed cycle.
    reloader:
        Called on restart to obtain fresh settings. Without it a restart
        request is acknowledged and ignored.
    """

    def __init__(
        self,
        source: SnapshotSource,
        driver: DispatchDriver,
        *,
        interval: float = 60.0,
        pivot: PivotStateMachine | None = None,
        journal: JournalWriter | None = None,
        reloader: Callable[[], Settings] | None = None,
        invoker: Invoker | None = None,
    ) -> None:
        self.source = source
        self.driver = driver
        self.interval = interval
        self.pivot = pivot or PivotStateMachine()
        self.journal = journal
        self._reloader = reloader
        self._invoker = invoker
        self._wake = threading.Event()
        self._stop_requested = False
        self._restart_requested = False

    @classmethod
    def from_settings(
        cls,
        cfg: Settings,
        *,
        source: SnapshotSource | None = None,
        invoker: Invoker | None = None,
        reloader: Callable[[], Settings] | None = None,
    ) -> DispatchDaemon:
        """Wire a daemon (source, driver, journal) from the settings."""
        return cls(
            source or DirectorySnapshotSource(cfg.cache_root),
            DispatchDriver.from_settings(cfg, invoker),
            interval=cfg.interval,
            journal=JournalWriter(cfg.journal_dir) if cfg.journal_dir else None,
            reloader=reloader,
            invoker=invoker,
        )

    # ------------------------------- Signals --------------------------------

    def install_signal_handlers(self) -> None:
        """Route SIGTERM/SIGINT to a stop and SIGHUP to a restart request."""
        signal.signal(signal.SIGTERM, self._on_stop_signal)
        signal.signal(signal.SIGINT, self._on_stop_signal)
        if hasattr(signal, "SIGHUP"):
            signal.signal(signal.SIGHUP, self._on_restart_signal)

    def _on_stop_signal(self, signum: int, _frame: FrameType | None) -> None:
        logger.info("signal %s received, stopping at the next cycle boundary", signum)
        self.request_stop()

    def _on_restart_signal(self, signum: int, _frame: FrameType | None) -> None:
        logger.info("signal %s received, restart deferred to the next wait", signum)
        self.request_restart()

    def request_stop(self) -> None:
        self._stop_requested = True
        self._wake.set()

    def request_restart(self) -> None:
        self._restart_requested = True
        self._wake.set()

    @property
    def stopping(self) -> bool:
        return self._stop_requested

    # ------------------------------- Loop -----------------------------------

    def start(self) -> Snapshot:
        """Fetch the initial profile and accept it as pivot.

        Raises
        ------
        SnapshotError
            If no initial profile can be obtained at all.
        """
        snapshot = self.source.fetch()
        self.pivot.initialize(snapshot)
        return snapshot

    def poll(self) -> CycleReport | None:
        """Handle the current snapshot once; return the cycle report if one ran."""
        try:
            # Cheap check first: an already handled id needs no profile read.
            if self.pivot.already_handled(self.source.current_id()):
                return None
            snapshot = self.source.fetch(should_stop=lambda: self._stop_requested)
        except FetchInterrupted as exc:
            logger.info("%s", exc)
            return None
        except SnapshotError as exc:
            logger.error("cannot fetch current profile: %s", exc)
            return None

        decision = self.pivot.evaluate(snapshot)
        if decision is not PivotDecision.COMPARE:
            logger.debug("profile %s: %s", snapshot.config_id, decision.value)
            return None

        report = self.driver.run_cycle(self.pivot.pivot, snapshot, self.pivot.last_run_failed)
        self.pivot.record(snapshot, report.outcome)

        if self.journal is not None:
            try:
                self.journal.write(CycleRecord.from_report(report))
            except OSError as exc:
                logger.warning("cannot journal cycle for profile %s: %s", snapshot.config_id, exc)
        return report

    def run(self, max_polls: int | None = None) -> None:
        """Poll until a stop is requested (or ``max_polls`` polls were done)."""
        if self.pivot.accepted is None:
            self.start()

        polls = 0
        while not self._stop_requested:
            self.poll()
            polls += 1
            if max_polls is not None and polls >= max_polls:
                break
            self._wait()

        logger.info("dispatch loop terminated")

    def _wait(self) -> None:
        self._wake.wait(self.interval)
        self._wake.clear()
        if self._restart_requested and not self._stop_requested:
            self._restart()

    def _restart(self) -> None:
        self._restart_requested = False
        if self._reloader is None:
            logger.info("restart requested, no settings reloader configured")
            return
        cfg = self._reloader()
        self.driver = DispatchDriver.from_settings(cfg, self._invoker)
        self.interval = cfg.interval
        self.journal = JournalWriter(cfg.journal_dir) if cfg.journal_dir else None
        logger.info("settings reloaded (interval=%ss)", cfg.interval)


__all__ = ["DispatchDaemon"]
