"""cdispd package bootstrap.

The configuration dispatch daemon watches profile snapshots for a managed node
and re-invokes the configuration components whose subscribed paths changed.
"""

from __future__ import annotations

__all__ = ["__version__"]
__version__ = "0.1.0"
