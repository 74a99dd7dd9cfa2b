"""
Component contracts: typed view of ``/software/components/<name>``.

Every flag is optional on purpose. A profile that omits ``active`` or
``dispatch`` is misconfigured, and the diff engine has to tell "false" apart
from "not declared" to apply its conservative rules.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

#: Root of the component declarations in a profile.
COMPONENTS_PATH = "/software/components"

#: Root of the package declarations in a profile.
PACKAGES_PATH = "/software/packages"


class ComponentConfig(BaseModel):
    """
    Declared properties of one configuration component.

    Parameters
    ----------
    name:
        Component name, unique within a snapshot.
    active:
        Whether the component is enabled. ``None`` when not declared.
    dispatch:
        Whether the component may be invoked automatically on change.
        ``None`` when not declared.
    registered_changes:
        Extra paths the component subscribes to, in declared order. Read from
        the ``register_change`` property.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    active: bool | None = None
    dispatch: bool | None = None
    registered_changes: tuple[str, ...] = Field(default=(), alias="register_change")

    @property
    def config_path(self) -> str:
        """Absolute profile path of this component's own configuration."""
        return f"{COMPONENTS_PATH}/{self.name}"


__all__ = ["COMPONENTS_PATH", "PACKAGES_PATH", "ComponentConfig"]
