"""CLI entry point for armp."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path

import pandas as pd
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table as RichTable

from armp import REQUIRED_COLUMNS, __version__
from armp.errors import GENERIC_FAILURE_MESSAGE, EmptyInputError, SchemaError
from armp.io import read_file
from armp.models import Finding, FindingStatus
from armp.pipeline import compute_dashboard_stats, compute_leaderboard, findings_to_frame
from armp.session import AppView, IngestSession, SessionPhase, SessionState

app = typer.Typer(
    name="armp",
    help="armp — Audit findings spreadsheets into dashboard stats and team leaderboards.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


class ViewOption(str, Enum):
    dashboard = "dashboard"
    findings = "findings"
    leaderboard = "leaderboard"
    all = "all"


_VIEWS: dict[ViewOption, list[AppView]] = {
    ViewOption.dashboard: [AppView.DASHBOARD],
    ViewOption.findings: [AppView.FINDINGS],
    ViewOption.leaderboard: [AppView.LEADERBOARD],
    ViewOption.all: [AppView.DASHBOARD, AppView.FINDINGS, AppView.LEADERBOARD],
}

_STATUS_STYLES: dict[FindingStatus, str] = {
    FindingStatus.OPEN: "yellow",
    FindingStatus.CLOSED_TIMELY: "green",
    FindingStatus.CLOSED_LATE: "bright_black",
    FindingStatus.REOPENED: "red",
}


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logger = logging.getLogger("armp")
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(console=console, show_path=False))
    logger.setLevel(logging.DEBUG)


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"armp v{__version__}")
        raise typer.Exit()


def _status_printer(echo: Callable[..., None]) -> Callable[[SessionState], None]:
    def _on_change(state: SessionState) -> None:
        if state.phase is SessionPhase.LOADING:
            echo(f"[blue]>[/blue] Processing \"{state.file_name}\" …")
        elif state.phase is SessionPhase.READY:
            echo(f"  Successfully processed \"{state.file_name}\" ({len(state.findings)} findings)")

    return _on_change


def _load(input_file: Path, quiet: bool) -> SessionState:
    session = IngestSession()
    session.subscribe(_status_printer(_printer(quiet)))
    return asyncio.run(
        session.upload(input_file.name, lambda: asyncio.to_thread(read_file, input_file))
    )


def _exit_on_failure(state: SessionState) -> None:
    if state.phase is SessionPhase.READY:
        return
    _err(escape(state.error or GENERIC_FAILURE_MESSAGE))
    error_type = state.error_type
    if error_type is not None and issubclass(error_type, (SchemaError, EmptyInputError)):
        console.print(f"  Required columns: {', '.join(REQUIRED_COLUMNS)}")
    raise typer.Exit(code=1 if state.error == GENERIC_FAILURE_MESSAGE else 2)


def _format_points(points: int) -> str:
    if points > 0:
        return f"[green]+{points}[/green]"
    if points < 0:
        return f"[red]{points}[/red]"
    return f"[dim]{points}[/dim]"


# ── Views ────────────────────────────────────────────────────────


def _render_dashboard(findings: Sequence[Finding], _limit: int | None) -> None:
    stats = compute_dashboard_stats(findings)
    tbl = RichTable(title="Dashboard", show_lines=True)
    tbl.add_column("Metric", style="bold")
    tbl.add_column("Value", justify="right")
    tbl.add_row("Total Findings", str(stats.total))
    tbl.add_row("Open Findings", str(stats.open))
    tbl.add_row("Closed Findings", str(stats.closed))
    tbl.add_row("Re-Opened Findings", str(stats.reopened))
    tbl.add_row("Avg. Time to Close (Days)", stats.avg_days_to_close_display)
    console.print(tbl)


def _render_findings(findings: Sequence[Finding], limit: int | None) -> None:
    frame = findings_to_frame(findings)
    shown = frame if limit is None else frame.head(limit)
    tbl = RichTable(title="Findings")
    for name in frame.columns:
        numeric = name in ("Reopen Count", "Points")
        tbl.add_column(name, justify="center" if numeric else "left")
    for finding, (_, row) in zip(findings, shown.iterrows()):
        closed = row["Closed Date"]
        style = _STATUS_STYLES[finding.status]
        tbl.add_row(
            escape(row["Category"]),
            escape(row["Question"]),
            escape(row["Responsible Team"]),
            row["Finding Date"].isoformat(),
            "N/A" if pd.isna(closed) else closed.isoformat(),
            f"[{style}]{row['Status']}[/{style}]",
            str(row["Reopen Count"]),
            _format_points(int(row["Points"])),
        )
    console.print(tbl)
    if len(shown) < len(frame):
        console.print(f"  [dim]… {len(frame) - len(shown)} more findings not shown[/dim]")


def _render_leaderboard(findings: Sequence[Finding], _limit: int | None) -> None:
    tbl = RichTable(title="Team Leaderboard", show_lines=True)
    tbl.add_column("#", justify="right")
    tbl.add_column("Team", style="bold")
    tbl.add_column("Points", justify="right")
    tbl.add_column("Timely Closed", justify="right")
    tbl.add_column("Late Closed", justify="right")
    tbl.add_column("Re-Opened", justify="right")
    tbl.add_column("Still Open", justify="right")
    for rank, entry in enumerate(compute_leaderboard(findings), 1):
        tbl.add_row(
            str(rank),
            escape(entry.team_name),
            f"{entry.total_points} pts",
            str(entry.timely_closed),
            str(entry.late_closed),
            str(entry.reopened),
            str(entry.still_open),
        )
    console.print(tbl)


_RENDERERS: dict[AppView, Callable[[Sequence[Finding], int | None], None]] = {
    AppView.DASHBOARD: _render_dashboard,
    AppView.FINDINGS: _render_findings,
    AppView.LEADERBOARD: _render_leaderboard,
}


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """armp CLI."""


# ── run command ──────────────────────────────────────────────────


@app.command()
def run(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the audit findings XLSX (or CSV) file.",
        exists=True, readable=True,
    ),
    view: ViewOption = typer.Option(
        ViewOption.all, "--view",
        help="Which view to show: dashboard, findings, leaderboard, or all.",
    ),
    limit: int | None = typer.Option(
        None, "--limit",
        min=1,
        help="Show at most this many rows in the findings listing.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; views are still printed.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log ingestion details.",
    ),
) -> None:
    """Ingest a findings sheet and print the dashboard, findings and leaderboard."""
    _configure_logging(verbose)
    if not quiet:
        console.print(Panel(
            f"[bold]armp[/bold] v{__version__}\nInput: {input_file}",
            title="Import Audit Data", border_style="blue",
        ))

    state = _load(input_file, quiet)
    _exit_on_failure(state)

    for app_view in _VIEWS[view]:
        _RENDERERS[app_view](state.findings, limit)


# ── validate command ─────────────────────────────────────────────


@app.command()
def validate(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the audit findings XLSX (or CSV) file.",
        exists=True, readable=True,
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress the summary table.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log ingestion details.",
    ),
) -> None:
    """Check that a file ingests cleanly without printing the views.

    Exit 0 = OK, exit 2 = the file was rejected.
    """
    _configure_logging(verbose)
    state = _load(input_file, quiet)

    if not quiet:
        tbl = RichTable(title="Validation Summary", show_lines=True)
        tbl.add_column("Check", style="bold")
        tbl.add_column("Result")
        tbl.add_row("File", input_file.name)
        tbl.add_row("Findings", str(len(state.findings)))
        if state.phase is SessionPhase.READY:
            tbl.add_row("Status", "[green]PASS[/green]")
        else:
            tbl.add_row("Error", f"[yellow]{escape(state.error or '')}[/yellow]")
            tbl.add_row("Status", "[red]FAIL[/red]")
        console.print(tbl)

    _exit_on_failure(state)
