"""
Diff engine: decide which components a new snapshot must re-run.

Flow Overview
-------------
Both snapshots go through the component registry, then every component is
classified in this precedence:

1. **New & active** (only in the new snapshot): dispatched when active.
2. **Removed** (only in the old snapshot): never dispatched, marker cleared.
3. **Present in both**, first matching rule wins:
   a. inactive -> active: dispatched, subscriptions not evaluated;
   b. active -> inactive: not dispatched, marker cleared;
   c. still inactive: marker cleared;
   d. still active: dispatched if one of its subscribed paths changed.

A status can only change when both ``active`` flags are declared; otherwise it
is treated as unchanged so that ambiguous input never triggers a run.

Dispatching also honours the ``dispatch`` flag: components with
``dispatch: false`` are never auto-invoked, and an undeclared flag is a
misconfiguration.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cdispd.core.contracts.component import ComponentConfig
from cdispd.core.contracts.dispatch import (
    CompareOptions,
    Condition,
    ConditionKind,
    DispatchPlan,
)
from cdispd.core.contracts.snapshot import Snapshot
from cdispd.core.registry import extract
from cdispd.core.settings import get_logger
from cdispd.core.subscriptions import resolve

logger = get_logger("cdispd.diff")


@dataclass
class _PlanBuilder:
    """Mutable accumulator, local to a single ``diff()`` call."""

    dispatch: set[str] = field(default_factory=set)
    cleared: set[str] = field(default_factory=set)
    conditions: list[Condition] = field(default_factory=list)

    def warn(self, kind: ConditionKind, message: str, **where: str) -> None:
        logger.warning(message)
        self.conditions.append(Condition(kind=kind, message=message, **where))

    def error(self, kind: ConditionKind, message: str, **where: str) -> None:
        logger.error(message)
        self.conditions.append(Condition(kind=kind, message=message, **where))

    def build(self) -> DispatchPlan:
        return DispatchPlan(
            dispatch=frozenset(self.dispatch),
            cleared=frozenset(self.cleared),
            conditions=tuple(self.conditions),
        )


class DiffEngine:
    """
    Compare two snapshots and return the components to dispatch.

    The engine is stateless; the same instance can serve every cycle.
    """

    def __init__(self, options: CompareOptions | None = None) -> None:
        self.options: CompareOptions = options or CompareOptions()

    # ------------------------------- Public API -----------------------------

    def diff(self, old: Snapshot, new: Snapshot) -> DispatchPlan:
        """
        Return the :class:`DispatchPlan` turning ``old`` into ``new``.

        ``diff(s, s)`` is always empty: with identical snapshots no status
        changes and no subscribed path changes.
        """
        plan = _PlanBuilder()

        old_extraction = extract(old)
        new_extraction = extract(new, required=True)
        plan.conditions.extend(new_extraction.conditions)

        old_components = old_extraction.components
        new_components = new_extraction.components

        for name in sorted(old_components.keys() - new_components.keys()):
            # Removal alone never triggers a run.
            logger.debug("component %s: removed from profile", name)
            plan.cleared.add(name)

        for name in sorted(new_components.keys() - old_components.keys()):
            config = new_components[name]
            if self._is_active(config, plan):
                logger.debug("component %s: new and active", name)
                self._add(config, plan)

        for name in sorted(old_components.keys() & new_components.keys()):
            self._compare_present(old_components[name], new_components[name], old, new, plan)

        result = plan.build()
        logger.info(
            "profile %s vs %s: dispatch=%s cleared=%s",
            old.config_id,
            new.config_id,
            sorted(result.dispatch),
            sorted(result.cleared),
        )
        return result

    # ------------------------------- Rules ----------------------------------

    def _compare_present(
        self,
        old_config: ComponentConfig,
        new_config: ComponentConfig,
        old: Snapshot,
        new: Snapshot,
        plan: _PlanBuilder,
    ) -> None:
        name = new_config.name

        if old_config.active is None or new_config.active is None:
            which = "old" if old_config.active is None else "new"
            plan.warn(
                ConditionKind.MISCONFIGURED_COMPONENT,
                f"component {name} has no 'active' property defined in its {which} "
                "profile, status assumed unchanged",
                component=name,
            )
        elif new_config.active and not old_config.active:
            logger.debug("component %s: status changed to active", name)
            self._add(new_config, plan)
            return
        elif old_config.active and not new_config.active:
            logger.debug("component %s: status changed to NOT active", name)
            plan.cleared.add(name)
            return

        if not new_config.active:
            logger.debug("component %s is NOT active, skipping", name)
            plan.cleared.add(name)
            return

        if self._subscriptions_changed(new_config, old, new, plan):
            logger.debug("component %s: CPE changed", name)
            self._add(new_config, plan)
        else:
            logger.debug("component %s has not changed its CPE", name)

    def _subscriptions_changed(
        self,
        config: ComponentConfig,
        old: Snapshot,
        new: Snapshot,
        plan: _PlanBuilder,
    ) -> bool:
        """Return True as soon as one subscribed path differs between snapshots."""
        name = config.name
        for path in resolve(name, config, self.options):
            if not new.element_exists(path):
                plan.error(
                    ConditionKind.DANGLING_SUBSCRIPTION,
                    f"{path} doesn't exist in new profile: component {name} "
                    "has subscribed a non existent path",
                    component=name,
                    path=path,
                )
                continue

            if not old.element_exists(path):
                logger.debug("%s doesn't exist in previous profile, assumed changed", path)
                return True

            if old.get_checksum(path) != new.get_checksum(path):
                logger.debug("path %s subscribed by component %s has changed", path, name)
                return True

        return False

    def _is_active(self, config: ComponentConfig, plan: _PlanBuilder) -> bool:
        if config.active is None:
            plan.warn(
                ConditionKind.MISCONFIGURED_COMPONENT,
                f"component {config.name} has no 'active' property defined in the "
                "profile, assumed inactive",
                component=config.name,
            )
            return False
        return config.active

    def _add(self, config: ComponentConfig, plan: _PlanBuilder) -> None:
        name = config.name
        if config.dispatch is None:
            plan.warn(
                ConditionKind.MISCONFIGURED_COMPONENT,
                f"no dispatch flag defined for component {name}, not added to list",
                component=name,
            )
            return
        if not config.dispatch:
            logger.debug("component %s marked to not dispatch, NOT added", name)
            return
        plan.dispatch.add(name)


def diff(old: Snapshot, new: Snapshot, options: CompareOptions | None = None) -> DispatchPlan:
    """Functional shortcut for ``DiffEngine(options).diff(old, new)``."""
    return DiffEngine(options).diff(old, new)


__all__ = ["DiffEngine", "diff"]
