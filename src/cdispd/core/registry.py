"""
Component registry: one extraction step from a snapshot to typed configs.

The diff engine never walks the raw profile tree itself. It receives a mapping
of component name to :class:`ComponentConfig` built here, where missing or
malformed properties are encoded as ``None`` instead of raising.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import TypeAdapter, ValidationError

from cdispd.core.contracts.component import COMPONENTS_PATH, ComponentConfig
from cdispd.core.contracts.dispatch import Condition, ConditionKind
from cdispd.core.contracts.snapshot import Snapshot
from cdispd.core.settings import get_logger

logger = get_logger("cdispd.registry")

_BOOL = TypeAdapter(bool)


@dataclass(frozen=True, slots=True)
class ComponentExtraction:
    """Components declared by one snapshot, plus the conditions met on the way."""

    components: Mapping[str, ComponentConfig] = field(default_factory=dict)
    conditions: tuple[Condition, ...] = ()


def _flag(name: str, prop: str, value: Any) -> bool | None:
    """Parse a boolean property; anything unparseable counts as undeclared."""
    if value is None or isinstance(value, bool):
        return value
    try:
        return _BOOL.validate_python(value)
    except ValidationError:
        logger.debug("component %s: ignoring non-boolean %r=%r", name, prop, value)
        return None


def _registered_changes(name: str, value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        logger.debug("component %s: register_change is not a list, ignored", name)
        return ()
    return tuple(str(path) for path in value if isinstance(path, str))


def component_from_tree(name: str, subtree: Any) -> ComponentConfig:
    """Build the typed view of one ``/software/components/<name>`` subtree."""
    props: Mapping[str, Any] = subtree if isinstance(subtree, dict) else {}
    return ComponentConfig(
        name=name,
        active=_flag(name, "active", props.get("active")),
        dispatch=_flag(name, "dispatch", props.get("dispatch")),
        registered_changes=_registered_changes(name, props.get("register_change")),
    )


def extract(snapshot: Snapshot, *, required: bool = False) -> ComponentExtraction:
    """
    Return every component declared in ``snapshot``.

    Parameters
    ----------
    snapshot:
        The profile to read.
    required:
        True for the newly observed snapshot. A missing components path is
        then reported as a ``MissingComponentsPath`` condition; for the pivot
        it simply means there were no prior components.
    """
    if not snapshot.element_exists(COMPONENTS_PATH):
        if not required:
            return ComponentExtraction()
        message = f"profile {snapshot.config_id} has no {COMPONENTS_PATH} path defined"
        logger.error(message)
        condition = Condition(
            kind=ConditionKind.MISSING_COMPONENTS_PATH,
            message=message,
            path=COMPONENTS_PATH,
        )
        return ComponentExtraction(conditions=(condition,))

    tree = snapshot.get_tree(COMPONENTS_PATH)
    if not isinstance(tree, dict):
        return ComponentExtraction()

    components = {name: component_from_tree(name, sub) for name, sub in tree.items()}
    return ComponentExtraction(components=components)


__all__ = ["ComponentExtraction", "component_from_tree", "extract"]
