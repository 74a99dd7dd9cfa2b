"""
Pivot state machine: when may the comparison baseline advance?

The *pivot* is the last snapshot accepted as the baseline for comparisons.
It only advances after a successful dispatch run. After a failure it stays
put and ``last_run_failed`` is raised, so the failed snapshot (on every poll)
or any later one is diffed against the same stale pivot and the failed
components stay eligible for dispatch until they succeed or are deactivated.

Transitions happen only at cycle boundaries:

- :meth:`PivotStateMachine.evaluate` decides what to do with a new snapshot;
- :meth:`PivotStateMachine.record` applies the outcome of a cycle.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from cdispd.core.contracts.dispatch import InvocationOutcome
from cdispd.core.contracts.snapshot import Snapshot
from cdispd.core.settings import get_logger

logger = get_logger("cdispd.pivot")


class PivotDecision(str, Enum):
    """What the daemon should do with a freshly fetched snapshot."""

    SAME_ID = "same_id"
    UNCHANGED = "unchanged"
    COMPARE = "compare"


class PivotState(BaseModel):
    """JSON-safe view of the long-lived state, for logs and the journal."""

    accepted_id: int | None = None
    accepted_checksum: str | None = None
    last_run_failed: bool = False
    last_seen_id: int | None = None


class PivotStateMachine:
    """
    Track the accepted snapshot and whether the last dispatch run failed.

    Attributes
    ----------
    accepted : Snapshot | None
        The pivot. ``None`` until :meth:`initialize` is called.
    last_run_failed : bool
        Outcome of the most recent invocation attempt.
    last_seen_id : int | None
        Id of the last snapshot evaluated. While the last run succeeded a
        profile is handled once; after a failure it is compared again on every
        poll until a run succeeds.
    """

    __slots__ = ("accepted", "last_run_failed", "last_seen_id")

    def __init__(self, accepted: Snapshot | None = None) -> None:
        self.accepted: Snapshot | None = accepted
        self.last_run_failed: bool = False
        self.last_seen_id: int | None = accepted.config_id if accepted else None

    def initialize(self, snapshot: Snapshot) -> None:
        """Accept ``snapshot`` as the first pivot without dispatching anything."""
        self.accepted = snapshot
        self.last_run_failed = False
        self.last_seen_id = snapshot.config_id
        logger.info("initial profile %s accepted as pivot", snapshot.config_id)

    def already_handled(self, cid: int | None) -> bool:
        """Return True when profile ``cid`` needs no new comparison cycle."""
        if cid is None or self.accepted is None:
            return False
        if cid == self.accepted.config_id:
            return True
        return cid == self.last_seen_id and not self.last_run_failed

    @property
    def pivot(self) -> Snapshot:
        if self.accepted is None:
            raise RuntimeError("pivot state machine used before initialize()")
        return self.accepted

    def evaluate(self, snapshot: Snapshot) -> PivotDecision:
        """
        Decide whether ``snapshot`` needs a comparison cycle.

        Returns
        -------
        PivotDecision
            ``SAME_ID`` if this profile id was already handled (see
            :meth:`already_handled`); ``COMPARE`` if its content differs from
            the pivot or the last run failed; ``UNCHANGED`` otherwise.
        """
        pivot = self.pivot
        if self.already_handled(snapshot.config_id):
            return PivotDecision.SAME_ID

        self.last_seen_id = snapshot.config_id

        if snapshot.root_checksum != pivot.root_checksum:
            logger.info("new profile %s differs from pivot %s", snapshot.config_id, pivot.config_id)
            return PivotDecision.COMPARE

        if self.last_run_failed:
            logger.info(
                "new profile %s equals pivot %s but the last run failed",
                snapshot.config_id,
                pivot.config_id,
            )
            return PivotDecision.COMPARE

        logger.info("new profile %s has the same content as pivot, ignored", snapshot.config_id)
        return PivotDecision.UNCHANGED

    def record(self, snapshot: Snapshot, outcome: InvocationOutcome) -> None:
        """Apply the outcome of the cycle that compared ``snapshot`` to the pivot."""
        if outcome.success:
            self.accepted = snapshot
            self.last_run_failed = False
            logger.info("profile %s accepted as new pivot", snapshot.config_id)
        else:
            self.last_run_failed = True
            logger.warning(
                "dispatch for profile %s failed, keeping pivot %s",
                snapshot.config_id,
                self.pivot.config_id,
            )

    def state(self) -> PivotState:
        return PivotState(
            accepted_id=self.accepted.config_id if self.accepted else None,
            accepted_checksum=self.accepted.root_checksum if self.accepted else None,
            last_run_failed=self.last_run_failed,
            last_seen_id=self.last_seen_id,
        )


__all__ = ["PivotDecision", "PivotState", "PivotStateMachine"]
