"""Rich console utilities for component-harvester output."""

import os
from typing import Any, List, Sequence, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from ._fetch import FetchOutcome, Request

IS_CI = os.getenv("CI") == "true"

custom_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "skip": "yellow",
    }
)

# Shared console instance
console = Console(theme=custom_theme, color_system="auto")

_STATUS_STYLES = {"success": "success", "skip": "skip", "failure": "error"}


def _outcome_detail(outcome: FetchOutcome) -> str:
    if outcome.is_success and outcome.fetch_result is not None:
        return outcome.fetch_result.location
    if outcome.is_skip:
        return outcome.skip_reason or ""
    return str(outcome.error)


def print_outcomes_table(requests: Sequence[Request], title: str = "Fetch results") -> None:
    """
    Print one row per request: resolved coordinate, status and detail.

    Args:
        requests: Completed requests
        title: Table title
    """
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Component", style="cyan")
    table.add_column("Status")
    table.add_column("Detail", overflow="fold")

    for request in requests:
        outcome = request.outcome
        if outcome is None:
            table.add_row(escape(request.url), "pending", "")
            continue
        style = _STATUS_STYLES[outcome.status]
        table.add_row(escape(request.url), f"[{style}]{outcome.status}[/{style}]", escape(_outcome_detail(outcome)))

    console.print(table)


def print_summary_table(title: str, data: List[Tuple[str, Any]]) -> None:
    """
    Print a summary table of (label, value) rows, skipping empty values.

    Args:
        title: Table title
        data: List of (label, value) tuples
    """
    data = [(label, value) for label, value in data if value]
    if not data:
        return

    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for label, value in data:
        table.add_row(label, str(value))

    console.print(table)


def print_final_failure(message: str) -> None:
    """Print final failure message."""
    console.print()
    if not IS_CI:
        console.rule("[bold red]FAILED[/bold red]", style="red")
    console.print(f"[bold red]{escape(message)}[/bold red]")
    console.print()
