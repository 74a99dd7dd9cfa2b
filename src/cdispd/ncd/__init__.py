from __future__ import annotations

from .invoker import Invoker, NcdInvoker, Target, build_command

__all__ = [
    "Invoker",
    "NcdInvoker",
    "Target",
    "build_command",
]
