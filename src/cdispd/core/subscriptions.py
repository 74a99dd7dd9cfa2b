"""
Subscription resolver: which profile paths may trigger a component.

A component is re-run when one of its Configuration Path Entries (CPEs)
changes. The list is built from:

- the component's own configuration path (unless auto-registration of
  component paths is disabled),
- the component's package path (unless auto-registration of package paths is
  disabled),
- every path it explicitly subscribed to through ``register_change``.

This is pure path construction; no snapshot is consulted here.
"""

from __future__ import annotations

import re

from cdispd.core.contracts.component import PACKAGES_PATH, ComponentConfig
from cdispd.core.contracts.dispatch import CompareOptions
from cdispd.core.contracts.snapshot import normalize_path
from cdispd.core.settings import get_logger

logger = get_logger("cdispd.subscriptions")

#: Packages of configuration components are named ``ncm-<component>``.
PACKAGE_PREFIX = "ncm-"

_UNSAFE = re.compile(r"[^A-Za-z0-9]")


def escape(name: str) -> str:
    """Escape a name into a single path segment (``ncm-foo`` -> ``ncm_2dfoo``)."""
    return _UNSAFE.sub(lambda m: f"_{ord(m.group(0)):x}", name)


def package_path(name: str) -> str:
    """Return the profile path of the package delivering component ``name``."""
    return f"{PACKAGES_PATH}/{escape(PACKAGE_PREFIX + name)}"


def resolve(name: str, config: ComponentConfig, options: CompareOptions) -> tuple[str, ...]:
    """Return the ordered CPEs of component ``name``; duplicates are harmless."""
    paths: list[str] = []

    if options.auto_register_component_path:
        paths.append(config.config_path)

    if options.auto_register_package_path:
        paths.append(package_path(name))

    paths.extend(normalize_path(p) for p in config.registered_changes)

    logger.debug("component %s subscribes to %s", name, paths)
    return tuple(paths)


__all__ = ["PACKAGE_PREFIX", "escape", "package_path", "resolve"]
