"""Preflight check implementations."""

from __future__ import annotations

from kiln_core.preflight.checks.base import BaseCheck
from kiln_core.preflight.checks.cache import CacheCheck
from kiln_core.preflight.checks.certificate import CertificateCheck
from kiln_core.preflight.checks.manifest import ManifestCheck
from kiln_core.preflight.checks.toolchain import ToolchainCheck

__all__ = [
    "BaseCheck",
    "CacheCheck",
    "CertificateCheck",
    "ManifestCheck",
    "ToolchainCheck",
]
