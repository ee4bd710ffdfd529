"""Dependency cache preflight check."""

from __future__ import annotations

from kiln_core.cache import DependencyCache
from kiln_core.preflight.checks.base import BaseCheck
from kiln_core.preflight.models import CheckResult, CheckStatus


class CacheCheck(BaseCheck):
    """Verify that the dependency cache root is writable."""

    def __init__(self, cache: DependencyCache) -> None:
        super().__init__(name="cache")
        self.cache = cache

    def _execute(self) -> CheckResult:
        self.cache.ensure_writable()
        entries = self.cache.entries()
        return self._make_result(
            CheckStatus.PASSED,
            f"Cache at {self.cache.root} is writable ({len(entries)} entries)",
            details={
                "root": str(self.cache.root),
                "entries": len(entries),
                "size_bytes": sum(entry.size_bytes for entry in entries),
            },
        )
