"""Rich console output utilities for kiln-cli.

This module provides formatted console output with Rich,
supporting colored success/error/warning messages and
respecting NO_COLOR environment variable.

Messages are plain text. Square brackets in paths and names are printed
literally, and a message is never wrapped mid-line, so a path or digest
is always copyable.
"""

from __future__ import annotations

import json
import os
from typing import Any

from rich.console import Console
from rich.markup import escape

# Rich respects NO_COLOR itself; --no-color forces it as well
_force_no_color = os.environ.get("NO_COLOR") is not None


def create_console(no_color: bool = False) -> Console:
    """Create a Rich Console instance with appropriate color settings.

    Args:
        no_color: If True, disable colored output. Also respects NO_COLOR env var.

    Returns:
        Configured Console instance.
    """
    force_terminal = None
    if no_color or _force_no_color:
        force_terminal = False
    return Console(force_terminal=force_terminal, no_color=no_color or _force_no_color)


# Default console instance
console = create_console()


def _print(icon: str, message: str, kwargs: dict[str, Any]) -> None:
    kwargs.setdefault("soft_wrap", True)
    console.print(f"{icon}{escape(message)}", **kwargs)


def success(message: str, **kwargs: Any) -> None:
    """Print a success message with green checkmark.

    Example:
        >>> success("Configuration valid")
        ✓ Configuration valid
    """
    _print("[green]✓[/green] ", message, kwargs)


def error(message: str, **kwargs: Any) -> None:
    """Print an error message with red X.

    Example:
        >>> error("Application build failed with exit code 101")
        ✗ Application build failed with exit code 101
    """
    _print("[red]✗[/red] ", message, kwargs)


def warning(message: str, **kwargs: Any) -> None:
    """Print a warning message with yellow triangle."""
    _print("[yellow]⚠[/yellow] ", message, kwargs)


def info(message: str, **kwargs: Any) -> None:
    """Print an informational message."""
    _print("", message, kwargs)


def diagnostics(text: str) -> None:
    """Print builder output verbatim (no markup), dimmed."""
    console.print(text, style="dim", markup=False, highlight=False)


def print_json(data: dict[str, Any] | list[Any], **kwargs: Any) -> None:
    """Print JSON data with syntax highlighting.

    Example:
        >>> print_json({"name": "htmlwordpress-api", "port": 3000})
        {
          "name": "htmlwordpress-api",
          "port": 3000
        }
    """
    console.print_json(json.dumps(data, default=str), **kwargs)


def set_no_color(no_color: bool) -> None:
    """Update the global console to enable/disable colors."""
    global console
    console = create_console(no_color=no_color)
