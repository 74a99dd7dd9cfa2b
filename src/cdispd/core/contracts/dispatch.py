"""
Dispatch contracts: options, conditions, plans and cycle reports.

This module defines the data structures exchanged between the diff engine,
the dispatch driver and the invoker.

- :class:`CompareOptions`: subscription toggles used while diffing.
- :class:`InvocationOptions`: pass-through options for the invoker.
- :class:`Condition`: a non-fatal problem noticed during a cycle.
- :class:`DispatchPlan`: the "forward-looking" diff result (what to run).
- :class:`CycleReport`: the "backward-looking" summary (what was run).
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

# --------------------------------------------------------------------------- #
# Options
# --------------------------------------------------------------------------- #


class CompareOptions(BaseModel):
    """Which implicit paths a component subscribes to."""

    model_config = ConfigDict(frozen=True)

    auto_register_component_path: bool = Field(
        default=True,
        description="Subscribe every component to /software/components/<name>.",
    )
    auto_register_package_path: bool = Field(
        default=True,
        description="Subscribe every component to its package path.",
    )


class InvocationOptions(BaseModel):
    """Options handed verbatim to the reconfiguration program."""

    model_config = ConfigDict(frozen=True)

    state_dir: Path | None = None
    retries: int | None = None
    timeout: int | None = None
    profile_id: str | None = None
    dry_run: bool = False


# --------------------------------------------------------------------------- #
# Conditions
# --------------------------------------------------------------------------- #


class ConditionKind(str, Enum):
    """Taxonomy of the non-fatal conditions a cycle may raise."""

    MISCONFIGURED_COMPONENT = "misconfigured_component"
    MISSING_COMPONENTS_PATH = "missing_components_path"
    DANGLING_SUBSCRIPTION = "dangling_subscription"
    INVOCATION_FAILURE = "invocation_failure"
    STATE_STORE_IO_FAILURE = "state_store_io_failure"


class Condition(BaseModel):
    """A logged, non-fatal problem attached to a plan or a report."""

    model_config = ConfigDict(frozen=True)

    kind: ConditionKind
    message: str
    component: str | None = None
    path: str | None = None


# --------------------------------------------------------------------------- #
# Diff result
# --------------------------------------------------------------------------- #


class AllComponents(Enum):
    """Sentinel asking the invoker to run every active component."""

    ALL = "all"


ALL = AllComponents.ALL


class DispatchPlan(BaseModel):
    """
    Result of comparing two snapshots.

    Fields
    ------
    dispatch:
        The DispatchSet: component names to invoke in this cycle.
    cleared:
        Names whose state marker must be removed (removed, deactivated or
        inactive components).
    conditions:
        Conditions raised while extracting and comparing.
    """

    model_config = ConfigDict(frozen=True)

    dispatch: frozenset[str] = frozenset()
    cleared: frozenset[str] = frozenset()
    conditions: tuple[Condition, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.dispatch


# --------------------------------------------------------------------------- #
# Invocation and cycle results
# --------------------------------------------------------------------------- #


class InvocationOutcome(BaseModel):
    """What happened when the reconfiguration program was (or was not) run."""

    model_config = ConfigDict(frozen=True)

    success: bool
    command: tuple[str, ...] = ()
    return_code: int | None = None
    message: str | None = None

    @classmethod
    def skipped(cls, message: str = "nothing to do") -> InvocationOutcome:
        """Outcome of a cycle that did not need to invoke anything."""
        return cls(success=True, message=message)


class CycleReport(BaseModel):
    """
    Structured summary of one comparison cycle.

    Fields
    ------
    old_id / new_id:
        Configuration ids of the pivot and of the compared snapshot.
    plan:
        The diff result.
    invoked:
        Names passed to the invoker (sorted), empty when nothing ran.
    forced_all:
        True when a failed previous run forced a run of every active component.
    outcome:
        The invocation outcome; its ``success`` drives the pivot.
    conditions:
        Conditions raised after diffing (marker I/O, invocation failure).
    """

    old_id: int
    new_id: int
    plan: DispatchPlan
    invoked: tuple[str, ...] = ()
    forced_all: bool = False
    outcome: InvocationOutcome
    conditions: tuple[Condition, ...] = ()

    @property
    def success(self) -> bool:
        return self.outcome.success

    def all_conditions(self) -> tuple[Condition, ...]:
        """Conditions from the diff followed by the ones raised afterwards."""
        return self.plan.conditions + self.conditions


__all__ = [
    "ALL",
    "AllComponents",
    "CompareOptions",
    "Condition",
    "ConditionKind",
    "CycleReport",
    "DispatchPlan",
    "InvocationOptions",
    "InvocationOutcome",
]
