"""
Snapshot contracts: immutable views of a node profile.

A profile is a tree of configuration elements addressed by slash-separated
paths. ``/`` is the root, mapping children are addressed by key and list items
by their index (``/software/components/foo/register_change/0``).

Checksums
---------
Each element carries the SHA-256 of the canonical JSON encoding of its
subtree (sorted keys, compact separators). Equal content yields equal
checksums, so two retrievals of the same profile compare equal path by path
and a change anywhere below a path changes that path's checksum.

Design Notes
------------
- **Immutability**: ``Snapshot`` and ``Element`` are frozen dataclasses and the
  element index is a read-only mapping.
- **Eager indexing**: every path is indexed once at construction so the diff
  engine only does dictionary lookups.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

ROOT_PATH = "/"


class SnapshotError(RuntimeError):
    """Raised when a profile cannot be read or decoded into a snapshot."""


def _checksum(value: Any) -> str:
    """Return the content checksum of a decoded JSON value."""
    canonical = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def join_path(parent: str, child: str | int) -> str:
    """Append ``child`` to ``parent`` without doubling the root slash."""
    if parent == ROOT_PATH:
        return f"/{child}"
    return f"{parent}/{child}"


def normalize_path(path: str) -> str:
    """Strip trailing slashes so ``/a/b/`` and ``/a/b`` address the same element."""
    stripped = path.rstrip("/")
    return stripped or ROOT_PATH


@dataclass(frozen=True, slots=True)
class Element:
    """
    One node of the configuration tree.

    Attributes
    ----------
    path : str
        Absolute slash-separated path of the element.
    checksum : str
        Content checksum of the whole subtree rooted here.
    value : Any
        The decoded JSON subtree (shared with the parent, never mutated).
    """

    path: str
    checksum: str
    value: Any


def _index(path: str, value: Any, out: dict[str, Element]) -> None:
    out[path] = Element(path=path, checksum=_checksum(value), value=value)
    if isinstance(value, dict):
        for key, child in value.items():
            _index(join_path(path, str(key)), child, out)
    elif isinstance(value, list):
        for pos, child in enumerate(value):
            _index(join_path(path, pos), child, out)


@dataclass(frozen=True, slots=True)
class Snapshot:
    """
    Immutable configuration tree at a given configuration id.

    Attributes
    ----------
    config_id : int
        Totally ordered profile identifier, increasing per node.
    elements : Mapping[str, Element]
        Read-only index of every element by path.
    """

    config_id: int
    elements: Mapping[str, Element] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_tree(cls, config_id: int, tree: Mapping[str, Any]) -> Snapshot:
        """Build a snapshot by indexing every element of a decoded profile."""
        index: dict[str, Element] = {}
        _index(ROOT_PATH, dict(tree), index)
        return cls(config_id=config_id, elements=MappingProxyType(index))

    # ------------------------------- Lookups --------------------------------

    def element_exists(self, path: str) -> bool:
        """Return True if ``path`` addresses an element of this snapshot."""
        return normalize_path(path) in self.elements

    def get_element(self, path: str) -> Element:
        """Return the element at ``path``; raise ``KeyError`` if absent."""
        return self.elements[normalize_path(path)]

    def get_checksum(self, path: str) -> str:
        """Return the checksum of the element at ``path``."""
        return self.get_element(path).checksum

    def get_tree(self, path: str) -> Any:
        """Return the decoded subtree at ``path``."""
        return self.get_element(path).value

    @property
    def root_checksum(self) -> str:
        """Checksum of the whole profile."""
        return self.elements[ROOT_PATH].checksum


def load_snapshot(path: Path, config_id: int) -> Snapshot:
    """
    Read a profile JSON file and index it as a :class:`Snapshot`.

    Raises
    ------
    SnapshotError
        If the file cannot be read, is not valid JSON, or its top level is not
        a JSON object.
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            tree = json.load(f)
    except OSError as exc:
        raise SnapshotError(f"cannot read profile {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"profile {path} is not valid JSON: {exc}") from exc

    if not isinstance(tree, dict):
        raise SnapshotError(f"profile {path} must hold a JSON object at top level")
    return Snapshot.from_tree(config_id, tree)


__all__ = [
    "ROOT_PATH",
    "Element",
    "Snapshot",
    "SnapshotError",
    "join_path",
    "load_snapshot",
    "normalize_path",
]
