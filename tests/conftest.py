"""Shared fixtures: profile builders and fake collaborators.

The fakes stand in for the configuration cache and for ``ncm-ncd`` so that
the comparison engine, the driver and the loop can be exercised in-process.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

import pytest

from cdispd.core.contracts.dispatch import (
    AllComponents,
    InvocationOptions,
    InvocationOutcome,
)
from cdispd.core.contracts.snapshot import Snapshot

SnapshotFactory = Callable[..., Snapshot]


def component(
    active: bool | None = True,
    dispatch: bool | None = True,
    register_change: list[str] | None = None,
    **props: Any,
) -> dict[str, Any]:
    """Return a component subtree; ``None`` flags are left undeclared."""
    tree: dict[str, Any] = dict(props)
    if active is not None:
        tree["active"] = active
    if dispatch is not None:
        tree["dispatch"] = dispatch
    if register_change is not None:
        tree["register_change"] = register_change
    return tree


def build_snapshot(
    cid: int,
    components: dict[str, dict[str, Any]] | None = None,
    **extra: Any,
) -> Snapshot:
    """Build a snapshot whose ``/software/components`` holds ``components``.

    Keyword arguments become additional top-level subtrees. Passing
    ``components=None`` leaves ``/software/components`` out entirely.
    """
    software: dict[str, Any] = {"packages": extra.pop("packages", {})}
    if components is not None:
        software["components"] = components
    return Snapshot.from_tree(cid, {"software": software, **extra})


@pytest.fixture
def make_snapshot() -> SnapshotFactory:
    return build_snapshot


@pytest.fixture
def comp() -> Callable[..., dict[str, Any]]:
    return component


class FakeInvoker:
    """Records every invocation and answers with scripted outcomes."""

    def __init__(self, results: Iterable[bool] = ()) -> None:
        self.results = list(results)
        self.calls: list[tuple[frozenset[str] | AllComponents, InvocationOptions]] = []

    def invoke(
        self,
        target: frozenset[str] | AllComponents,
        options: InvocationOptions,
    ) -> InvocationOutcome:
        self.calls.append((target, options))
        success = self.results.pop(0) if self.results else True
        return InvocationOutcome(
            success=success,
            return_code=0 if success else 1,
            message=None if success else "ncm-ncd exited with status 1",
        )


class FakeSource:
    """Serves a scripted sequence of snapshots; the last one repeats."""

    def __init__(self, snapshots: Iterable[Snapshot | Exception]) -> None:
        self.queue = list(snapshots)
        self.fetches = 0

    def current_id(self) -> int | None:
        head = self.queue[0] if self.queue else None
        return head.config_id if isinstance(head, Snapshot) else None

    def fetch(self, should_stop: Callable[[], bool] | None = None) -> Snapshot:
        self.fetches += 1
        item = self.queue.pop(0) if len(self.queue) > 1 else self.queue[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def invoker_factory() -> Callable[..., FakeInvoker]:
    return FakeInvoker


@pytest.fixture
def source_factory() -> Callable[..., FakeSource]:
    return FakeSource


