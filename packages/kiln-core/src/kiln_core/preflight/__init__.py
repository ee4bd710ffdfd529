"""Preflight validation.

Checks that predict whether a build can succeed: builder installed,
manifest resolvable, cache writable, CA bundle available.
"""

from __future__ import annotations

from kiln_core.preflight.config import PreflightConfig
from kiln_core.preflight.models import CheckResult, CheckStatus, PreflightResult
from kiln_core.preflight.output import format_result_json, format_result_table, print_result
from kiln_core.preflight.runner import PreflightRunner, run_preflight

__all__ = [
    "CheckResult",
    "CheckStatus",
    "PreflightConfig",
    "PreflightResult",
    "PreflightRunner",
    "format_result_json",
    "format_result_table",
    "print_result",
    "run_preflight",
]
