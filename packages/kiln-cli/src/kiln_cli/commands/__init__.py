"""CLI command modules.

This package contains the implementation of all CLI subcommands. They are
loaded lazily by ``kiln_cli.main.LazyGroup``.
"""

from __future__ import annotations

__all__: list[str] = []
