"""Core package initializer for cdispd.

Holds the comparison engine and its data model. Settings and logging live in
``cdispd.core.settings``:
    from cdispd.core.settings import settings, load_settings, Settings, get_logger
"""

from __future__ import annotations

__all__ = ["__doc__"]
