# src/cdispd/cli.py
"""
cdispd Command Line Interface (CLI).

This module implements the terminal interface using `typer` and `rich`.

Commands
--------
- **run**: the dispatch daemon, polling the configuration cache in the
  foreground until SIGTERM/SIGINT.
- **compare**: diff two profile files and show which components would be
  dispatched, without invoking anything.
- **history**: show the cycle journal.

Usage
-----
    $ cdispd run --interval 30 --state /var/run/ncm-cdispd --noaction
    $ cdispd compare profile.41.json profile.42.json
    $ cdispd history --journal /var/lib/ncm-cdispd/journal
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from cdispd import __version__
from cdispd.core.contracts.dispatch import CompareOptions, DispatchPlan
from cdispd.core.contracts.snapshot import SnapshotError, load_snapshot
from cdispd.core.diff import DiffEngine
from cdispd.core.journal import JournalWriter
from cdispd.core.settings import Settings, load_settings
from cdispd.pipelines.daemon import DispatchDaemon

# Ensure .env overrides are in the environment before settings are read
load_dotenv()

app = typer.Typer(
    help="cdispd: dispatch configuration components when the node profile changes.",
    rich_markup_mode="markdown",
)
console = Console()


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #


def _apply_overrides(cfg: Settings, overrides: dict[str, Any]) -> Settings:
    """Return a copy of ``cfg`` with every non-None command line value applied."""
    update = {k: v for k, v in overrides.items() if v is not None}
    return cfg.model_copy(update=update) if update else cfg


def _reload_settings(overrides: dict[str, Any]) -> Settings:
    """Re-read env / `.env` files, then re-apply the command line flags."""
    load_dotenv(override=True)
    load_settings.cache_clear()
    return _apply_overrides(load_settings(), overrides)


def _render_plan(plan: DispatchPlan) -> None:
    """Render a dispatch plan as a table followed by its conditions."""
    table = Table(title="Dispatch decision")
    table.add_column("Component", style="bold")
    table.add_column("Action")

    for name in sorted(plan.dispatch):
        table.add_row(name, "[green]dispatch[/green]")
    for name in sorted(plan.cleared - plan.dispatch):
        table.add_row(name, "[dim]clear state[/dim]")

    if plan.dispatch or plan.cleared:
        console.print(table)
    else:
        console.print("[dim]No component to dispatch.[/dim]")

    for condition in plan.conditions:
        console.print(f"[yellow]⚠ {condition.kind.value}:[/yellow] {condition.message}")


# --------------------------------------------------------------------------- #
# Commands
# --------------------------------------------------------------------------- #


@app.command()  # type: ignore[misc]
def run(
    interval: Annotated[
        float | None,
        typer.Option("--interval", "-i", min=0.1, help="Seconds between two profile checks."),
    ] = None,
    cache_root: Annotated[
        Path | None,
        typer.Option("--cache-root", help="Configuration cache directory."),
    ] = None,
    state: Annotated[
        Path | None,
        typer.Option("--state", help="Directory of per-component state markers."),
    ] = None,
    journal: Annotated[
        Path | None,
        typer.Option("--journal", help="Directory receiving one JSON record per cycle."),
    ] = None,
    noautoregcomp: Annotated[
        bool,
        typer.Option("--noautoregcomp", help="Do not subscribe components to their own path."),
    ] = False,
    noautoregpkg: Annotated[
        bool,
        typer.Option("--noautoregpkg", help="Do not subscribe components to their package."),
    ] = False,
    noaction: Annotated[
        bool,
        typer.Option("--noaction", help="Compute decisions but never run the components."),
    ] = False,
    ncd_retries: Annotated[
        int | None,
        typer.Option("--ncd-retries", min=0, help="Passed to ncm-ncd as --retries."),
    ] = None,
    ncd_timeout: Annotated[
        int | None,
        typer.Option("--ncd-timeout", min=0, help="Passed to ncm-ncd as --timeout."),
    ] = None,
    ncd_useprofile: Annotated[
        str | None,
        typer.Option("--ncd-useprofile", help="Passed to ncm-ncd as --useprofile."),
    ] = None,
    max_polls: Annotated[
        int | None,
        typer.Option("--max-polls", min=1, help="Exit after this many polls."),
    ] = None,
    once: Annotated[
        bool,
        typer.Option("--once", help="Poll a single time, then exit."),
    ] = False,
) -> None:
    """
    Run the dispatch daemon in the foreground.

    The first profile found in the cache becomes the comparison baseline;
    components are dispatched on every later profile change.
    """
    overrides: dict[str, Any] = {
        "interval": interval,
        "cache_root": cache_root,
        "state_dir": state,
        "journal_dir": journal,
        "auto_register_component": False if noautoregcomp else None,
        "auto_register_package": False if noautoregpkg else None,
        "dry_run": True if noaction else None,
        "ncd_retries": ncd_retries,
        "ncd_timeout": ncd_timeout,
        "ncd_useprofile": ncd_useprofile,
    }
    cfg = _apply_overrides(load_settings(), overrides)

    if not cfg.cache_root.is_dir():
        console.print(f"[bold red]❌ Cache root not found:[/bold red] {cfg.cache_root}")
        raise typer.Exit(code=1)

    console.print(
        Panel.fit(
            f"[bold cyan]cdispd {__version__}[/bold cyan]\n"
            f"Cache: [u]{cfg.cache_root}[/u]  Interval: {cfg.interval:g}s"
            + ("  [yellow](noaction)[/yellow]" if cfg.dry_run else ""),
            border_style="cyan",
        )
    )

    daemon = DispatchDaemon.from_settings(cfg, reloader=lambda: _reload_settings(overrides))

    try:
        daemon.start()
    except SnapshotError as e:
        console.print(f"\n[bold red]❌ Cannot read initial profile:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    daemon.install_signal_handlers()
    daemon.run(max_polls=1 if once else max_polls)


@app.command()  # type: ignore[misc]
def compare(
    old: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, readable=True, help="Pivot profile (JSON)."),
    ],
    new: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, readable=True, help="New profile (JSON)."),
    ],
    noautoregcomp: Annotated[
        bool,
        typer.Option("--noautoregcomp", help="Do not subscribe components to their own path."),
    ] = False,
    noautoregpkg: Annotated[
        bool,
        typer.Option("--noautoregpkg", help="Do not subscribe components to their package."),
    ] = False,
) -> None:
    """
    Show which components a change from OLD to NEW would dispatch.

    Nothing is invoked and no state marker is touched.
    """
    try:
        old_snapshot = load_snapshot(old, 0)
        new_snapshot = load_snapshot(new, 1)
    except SnapshotError as e:
        console.print(f"\n[bold red]❌ Profile Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    options = CompareOptions(
        auto_register_component_path=not noautoregcomp,
        auto_register_package_path=not noautoregpkg,
    )
    _render_plan(DiffEngine(options).diff(old_snapshot, new_snapshot))


@app.command()  # type: ignore[misc]
def history(
    journal: Annotated[
        Path | None,
        typer.Option("--journal", help="Journal directory (defaults to CDISPD_JOURNAL_DIR)."),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Show the last N cycles.")] = 20,
) -> None:
    """Show the most recent dispatch cycles recorded in the journal."""
    journal_dir = journal or load_settings().journal_dir
    if journal_dir is None:
        console.print("[bold red]❌ No journal directory configured.[/bold red]")
        raise typer.Exit(code=1)

    records = JournalWriter(journal_dir).read()[-limit:]
    if not records:
        console.print("[dim]Journal is empty.[/dim]")
        return

    table = Table(title=f"Dispatch history ({journal_dir})")
    table.add_column("Time")
    table.add_column("Profile", justify="right")
    table.add_column("Pivot", justify="right")
    table.add_column("Dispatched")
    table.add_column("Result")
    for rec in records:
        result = "[green]ok[/green]" if rec.success else "[red]failed[/red]"
        table.add_row(
            rec.timestamp,
            str(rec.new_id),
            str(rec.pivot_id),
            ", ".join(rec.dispatched) or "-",
            result,
        )
    console.print(table)


if __name__ == "__main__":
    app()
