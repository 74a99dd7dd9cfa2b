"""Pipeline entry points for cdispd.

Currently exposed:

- :class:`DispatchDriver`: one comparison cycle, implemented in ``dispatch.py``.
- :class:`DispatchDaemon`: the signal-aware polling loop, in ``daemon.py``.
"""

from __future__ import annotations

from .daemon import DispatchDaemon
from .dispatch import DispatchDriver

__all__ = ["DispatchDaemon", "DispatchDriver"]
