"""Tests for the ``ncm-ncd`` invoker; ``subprocess.run`` is always mocked."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

from cdispd.core.contracts.dispatch import ALL, InvocationOptions
from cdispd.ncd.invoker import NcdInvoker, build_command


def test_build_command_for_components() -> None:
    options = InvocationOptions(state_dir=Path("/var/run/cdispd"), retries=2, timeout=300)
    argv = build_command("ncm-ncd", frozenset({"sshd", "accounts"}), options)

    assert argv == [
        "ncm-ncd",
        "--configure",
        "--state",
        "/var/run/cdispd",
        "--retries",
        "2",
        "--timeout",
        "300",
        "accounts",
        "sshd",
    ]


def test_build_command_for_all() -> None:
    argv = build_command("ncm-ncd", ALL, InvocationOptions(profile_id="42"))
    assert argv == ["ncm-ncd", "--configure", "--useprofile", "42", "--all"]


def test_dry_run_never_executes() -> None:
    with patch("cdispd.ncd.invoker.subprocess.run") as mock_run:
        outcome = NcdInvoker().invoke(frozenset({"sshd"}), InvocationOptions(dry_run=True))

    mock_run.assert_not_called()
    assert outcome.success is True
    assert outcome.command[-1] == "sshd"


def test_zero_exit_is_success() -> None:
    done = subprocess.CompletedProcess(args=[], returncode=0, stdout="ok\n", stderr="")
    with patch("cdispd.ncd.invoker.subprocess.run", return_value=done) as mock_run:
        outcome = NcdInvoker(executable="/usr/sbin/ncm-ncd").invoke(ALL, InvocationOptions())

    assert outcome.success is True
    assert outcome.return_code == 0
    assert mock_run.call_args.args[0] == ("/usr/sbin/ncm-ncd", "--configure", "--all")


def test_non_zero_exit_is_failure() -> None:
    done = subprocess.CompletedProcess(
        args=[], returncode=2, stdout="", stderr="trace\n[ERROR] 1 component failed\n"
    )
    with patch("cdispd.ncd.invoker.subprocess.run", return_value=done):
        outcome = NcdInvoker().invoke(frozenset({"sshd"}), InvocationOptions())

    assert outcome.success is False
    assert outcome.return_code == 2
    assert outcome.message is not None and "1 component failed" in outcome.message


def test_missing_executable_is_failure() -> None:
    with patch("cdispd.ncd.invoker.subprocess.run", side_effect=FileNotFoundError("ncm-ncd")):
        outcome = NcdInvoker().invoke(frozenset({"sshd"}), InvocationOptions())

    assert outcome.success is False
    assert outcome.message is not None and "cannot execute" in outcome.message
