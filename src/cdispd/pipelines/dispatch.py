"""
Dispatch driver: one comparison cycle, from two snapshots to an outcome.

Flow Overview
-------------
1. **Diff**: the :class:`DiffEngine` compares the pivot with the new snapshot
   and returns a :class:`DispatchPlan`.
2. **Decide**:
   - empty plan, last run succeeded: nothing is invoked (success);
   - empty plan, last run failed: every active component is invoked so the
     failed ones get another chance;
   - otherwise exactly the DispatchSet is invoked.
3. **Invoke**: the :class:`Invoker` runs synchronously; its failure is
   reported through the outcome, never raised.
4. **Markers**: dispatched names are marked and cleared names unmarked in the
   state store. Dry runs leave markers untouched.

The driver holds no state between cycles; ``last_run_failed`` comes from the
pivot state machine and the returned report feeds it back.
"""

from __future__ import annotations

from cdispd.core.contracts.dispatch import (
    ALL,
    CompareOptions,
    Condition,
    ConditionKind,
    CycleReport,
    DispatchPlan,
    InvocationOptions,
    InvocationOutcome,
)
from cdispd.core.contracts.snapshot import Snapshot
from cdispd.core.diff import DiffEngine
from cdispd.core.settings import Settings, get_logger
from cdispd.core.state import FileStateStore
from cdispd.ncd.invoker import Invoker, NcdInvoker

logger = get_logger("cdispd.dispatch")


class DispatchDriver:
    """
    Run comparison cycles with a fixed set of collaborators.

    Parameters
    ----------
    invoker:
        Runs the selected components.
    state_store:
        Receives marker updates; a disabled store makes them no-ops.
    compare_options / invocation_options:
        Opaque configuration handed to the diff engine and the invoker.
    """

    def __init__(
        self,
        invoker: Invoker,
        state_store: FileStateStore | None = None,
        *,
        compare_options: CompareOptions | None = None,
        invocation_options: InvocationOptions | None = None,
    ) -> None:
        self.invoker = invoker
        self.state_store = state_store or FileStateStore()
        self.engine = DiffEngine(compare_options)
        self.invocation_options = invocation_options or InvocationOptions()

    @classmethod
    def from_settings(cls, cfg: Settings, invoker: Invoker | None = None) -> DispatchDriver:
        """Wire a driver from the daemon settings."""
        return cls(
            invoker or NcdInvoker(executable=cfg.ncd_command),
            FileStateStore(cfg.state_dir),
            compare_options=cfg.compare_options(),
            invocation_options=cfg.invocation_options(),
        )

    # ------------------------------- Cycle ----------------------------------

    def run_cycle(self, old: Snapshot, new: Snapshot, last_run_failed: bool) -> CycleReport:
        """Compare ``old`` with ``new``, invoke what is needed and report."""
        plan = self.engine.diff(old, new)

        forced_all = False
        invoked: tuple[str, ...] = ()
        conditions: list[Condition] = []

        if plan.is_empty and not last_run_failed:
            logger.info("no component to dispatch for profile %s", new.config_id)
            outcome = InvocationOutcome.skipped()
        elif plan.is_empty:
            logger.info("previous run failed, running all active components")
            forced_all = True
            outcome = self.invoker.invoke(ALL, self.invocation_options)
        else:
            invoked = tuple(sorted(plan.dispatch))
            logger.info("dispatching components: %s", ", ".join(invoked))
            outcome = self.invoker.invoke(plan.dispatch, self.invocation_options)

        if not outcome.success:
            conditions.append(
                Condition(
                    kind=ConditionKind.INVOCATION_FAILURE,
                    message=outcome.message or "component invocation failed",
                )
            )

        if not self.invocation_options.dry_run:
            conditions.extend(self._update_markers(plan))

        return CycleReport(
            old_id=old.config_id,
            new_id=new.config_id,
            plan=plan,
            invoked=invoked,
            forced_all=forced_all,
            outcome=outcome,
            conditions=tuple(conditions),
        )

    def _update_markers(self, plan: DispatchPlan) -> list[Condition]:
        problems: list[Condition] = []
        for name in sorted(plan.dispatch):
            if (failure := self.state_store.mark(name)) is not None:
                problems.append(failure)
        for name in sorted(plan.cleared):
            if (failure := self.state_store.clear(name)) is not None:
                problems.append(failure)
        return problems


__all__ = ["DispatchDriver"]
