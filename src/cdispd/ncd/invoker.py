# -----------------------------------------------------------------------------
# This module provides the invoker used by the dispatch driver to run the
# external reconfiguration program (`ncm-ncd`):
#   - `Invoker`: the narrow protocol the driver depends on
#   - `NcdInvoker`: builds the command line and runs it synchronously
#
# Command line
# ------------
#     ncm-ncd --configure [--state DIR] [--retries N] [--timeout N]
#             [--useprofile ID] (--all | COMPONENT...)
#
# The call blocks the cycle until the program exits. Timeouts and retries are
# the program's business; they are passed through and never re-implemented
# here. A non-zero exit code or a program that cannot be started is reported
# as a failed outcome, not raised.
# -----------------------------------------------------------------------------
from __future__ import annotations

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from cdispd.core.contracts.dispatch import (
    AllComponents,
    InvocationOptions,
    InvocationOutcome,
)
from cdispd.core.settings import get_logger

logger = get_logger("cdispd.ncd")

Target = frozenset[str] | AllComponents


class Invoker(Protocol):
    """Runs configuration components."""

    def invoke(self, target: Target, options: InvocationOptions) -> InvocationOutcome: ...


def build_command(executable: str, target: Target, options: InvocationOptions) -> list[str]:
    """Return the argv for running ``target`` with the pass-through ``options``."""
    argv = [executable, "--configure"]

    if options.state_dir is not None:
        argv += ["--state", str(options.state_dir)]
    if options.retries is not None:
        argv += ["--retries", str(options.retries)]
    if options.timeout is not None:
        argv += ["--timeout", str(options.timeout)]
    if options.profile_id is not None:
        argv += ["--useprofile", options.profile_id]

    if isinstance(target, AllComponents):
        argv.append("--all")
    else:
        argv.extend(sorted(target))
    return argv


@dataclass(slots=True)
class NcdInvoker:
    """Synchronous subprocess invoker for ``ncm-ncd``.

    Parameters
    ----------
    executable:
        Program name or path, ``ncm-ncd`` by default.
    extra_args:
        Arguments inserted right after the executable (e.g. a wrapper's own flags).
    """

    executable: str = "ncm-ncd"
    extra_args: Sequence[str] = ()

    def invoke(self, target: Target, options: InvocationOptions) -> InvocationOutcome:
        """Run the program and return its outcome.

        With ``options.dry_run`` nothing is executed and the outcome is a
        success carrying the command that would have run.
        """
        argv = build_command(self.executable, target, options)
        argv[1:1] = list(self.extra_args)
        command = tuple(argv)

        if options.dry_run:
            logger.info("dry run, would execute: %s", " ".join(command))
            return InvocationOutcome(success=True, command=command, message="dry run")

        logger.info("executing: %s", " ".join(command))
        try:
            proc = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as exc:
            message = f"cannot execute {self.executable}: {exc}"
            logger.error(message)
            return InvocationOutcome(success=False, command=command, message=message)

        if proc.stdout:
            logger.debug("%s output:\n%s", self.executable, proc.stdout.rstrip())

        if proc.returncode != 0:
            message = f"{self.executable} exited with status {proc.returncode}"
            if proc.stderr and proc.stderr.strip():
                message = f"{message}: {proc.stderr.strip().splitlines()[-1]}"
            logger.error(message)
            return InvocationOutcome(
                success=False,
                command=command,
                return_code=proc.returncode,
                message=message,
            )

        logger.info("%s completed successfully", self.executable)
        return InvocationOutcome(success=True, command=command, return_code=0)


__all__ = ["Invoker", "NcdInvoker", "Target", "build_command"]
