"""Preflight check output formatters.

Rich table and JSON output for preflight check results.
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from kiln_core.preflight.models import CheckResult, CheckStatus, PreflightResult

_ICONS = {
    CheckStatus.PASSED: "✅",
    CheckStatus.FAILED: "❌",
    CheckStatus.WARNING: "⚠️",
    CheckStatus.SKIPPED: "⏭️",
    CheckStatus.ERROR: "💥",
}

_COLORS = {
    CheckStatus.PASSED: "green",
    CheckStatus.FAILED: "red",
    CheckStatus.WARNING: "yellow",
    CheckStatus.SKIPPED: "dim",
    CheckStatus.ERROR: "red bold",
}


def format_result_table(result: PreflightResult, console: Console | None = None) -> None:
    """Print preflight results as a Rich panel and table.

    Example:
        >>> format_result_table(runner.run())
    """
    if console is None:
        console = Console()

    color = _COLORS[result.overall_status]
    header_text = Text()
    header_text.append("KILN PREFLIGHT CHECK REPORT\n\n", style="bold")
    header_text.append(f"Status: {_ICONS[result.overall_status]} ", style=color)
    header_text.append(result.overall_status.value.upper(), style=f"bold {color}")
    header_text.append(f"\nChecks: {result.passed_count} passed, {result.failed_count} failed")
    if result.total_duration_ms > 0:
        header_text.append(f"\nDuration: {result.total_duration_ms}ms")

    console.print(Panel(header_text, title="[bold]Preflight Results[/bold]"))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Status", width=3, justify="center")
    table.add_column("Check", min_width=14)
    table.add_column("Message", min_width=30)
    table.add_column("Duration", justify="right", width=10)

    for check in result.checks:
        duration = f"{check.duration_ms}ms" if check.duration_ms > 0 else "-"
        table.add_row(
            _ICONS[check.status],
            Text(check.name, style=_COLORS[check.status]),
            Text(check.message or "-", style="dim" if not check.message else ""),
            duration,
        )

    console.print(table)

    failed_checks = [c for c in result.checks if c.failed]
    if failed_checks:
        console.print()
        console.print("[bold red]Failed Check Details:[/bold red]")
        for check in failed_checks:
            console.print(f"  [red]• {check.name}[/red]: {check.message}")
            for problem in check.details.get("problems", []):
                console.print(f"    - {problem}", style="dim")
            if check.hint:
                console.print(f"    hint: {check.hint}", style="dim")


def format_result_json(result: PreflightResult, pretty: bool = True) -> str:
    """Format preflight results as JSON."""
    data = _result_to_dict(result)
    if pretty:
        return json.dumps(data, indent=2, default=str)
    return json.dumps(data, default=str)


def _result_to_dict(result: PreflightResult) -> dict[str, Any]:
    return {
        "status": result.overall_status.value,
        "passed": result.passed,
        "summary": {
            "total": len(result.checks),
            "passed": result.passed_count,
            "failed": result.failed_count,
        },
        "duration_ms": result.total_duration_ms,
        "started_at": result.started_at.isoformat(),
        "finished_at": result.finished_at.isoformat() if result.finished_at else None,
        "checks": [_check_to_dict(check) for check in result.checks],
    }


def _check_to_dict(check: CheckResult) -> dict[str, Any]:
    return {
        "name": check.name,
        "status": check.status.value,
        "passed": check.passed,
        "message": check.message,
        "hint": check.hint,
        "details": check.details,
        "duration_ms": check.duration_ms,
    }


def print_result(
    result: PreflightResult,
    output_format: str = "table",
    console: Console | None = None,
) -> None:
    """Print preflight results in the given format ("table" or "json")."""
    if console is None:
        console = Console()

    if output_format == "json":
        # Raw JSON keeps the output parseable
        console.file.write(format_result_json(result, pretty=True) + "\n")
    else:
        format_result_table(result, console)
