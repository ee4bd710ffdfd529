"""Security utilities for kiln.

This module provides credential detection for values that end up baked
into runtime image metadata.
"""

from __future__ import annotations

from kiln_core.security.env_secrets import (
    CredentialDetectedError,
    EnvSecret,
    reject_credentials,
    scan_environment,
)

__all__ = [
    "CredentialDetectedError",
    "EnvSecret",
    "reject_credentials",
    "scan_environment",
]
