"""Rich output formatting helpers for the refswap CLI.

Provides the conversion summary table, per-document error lines and the
logging handler setup shared by all commands.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from refswap.core.models import DocumentReport

console = Console()
err_console = Console(stderr=True)


def configure_logging(verbose: bool = False) -> None:
    """Route the ``refswap`` logger to stderr through Rich.

    Args:
        verbose: Log DEBUG and above instead of WARNING and above.
    """
    logger = logging.getLogger("refswap")
    logger.handlers.clear()
    handler = RichHandler(console=err_console, show_time=False, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def print_conversion_results(reports: list[DocumentReport]) -> None:
    """Print one table row per converted reference plus failed documents.

    Args:
        reports: Reports returned by ``convert_projects``.
    """
    if not reports:
        console.print("[dim]No project files found.[/dim]")
        return

    table = Table(title="Assembly Reference Conversion", show_header=True, header_style="bold")
    table.add_column("Project", style="bold")
    table.add_column("Reference")
    table.add_column("Package")
    table.add_column("Version", justify="right")
    table.add_column("Source", style="dim")

    for report in reports:
        for outcome in report.converted:
            table.add_row(
                report.path.name, outcome.reference, outcome.package_id,
                outcome.version, outcome.registry_name,
            )

    if table.row_count:
        console.print(table)
    for report in reports:
        if report.failed:
            console.print(Text.assemble(("ERROR ", "bold red"), (f"{report.path}: ", "bold"),
                                        (report.error or "", "")))
    _print_summary(reports)


def _print_summary(reports: list[DocumentReport]) -> None:
    """Print a one-line summary after the results table."""
    converted = sum(len(r.converted) for r in reports)
    skipped = sum(len(r.skipped) for r in reports)
    saved = sum(1 for r in reports if r.saved)
    failed = sum(1 for r in reports if r.failed)
    parts = [f"[bold]{len(reports)}[/bold] projects processed"]
    parts.append(f"[green]{converted} converted[/green]")
    if skipped:
        parts.append(f"[yellow]{skipped} skipped[/yellow]")
    parts.append(f"{saved} saved")
    if failed:
        parts.append(f"[red]{failed} failed[/red]")
    console.print(" | ".join(parts))


def reports_to_json(reports: list[DocumentReport]) -> list[dict[str, Any]]:
    """Convert reports to JSON-serializable dicts."""
    out: list[dict[str, Any]] = []
    for report in reports:
        out.append({
            "path": str(report.path),
            "saved": report.saved,
            "error": report.error,
            "outcomes": [
                {**asdict(o), "status": o.status.value} for o in report.outcomes
            ],
        })
    return out
