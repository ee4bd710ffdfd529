"""Trusted CA bundle discovery.

The runtime image carries exactly one file besides the artifact: the
trusted certificate authority bundle, so the application can verify TLS
peers. The bundle comes from ``runtime.ca_bundle`` or, by default, from the
host's OpenSSL configuration.
"""

from __future__ import annotations

import ssl
from pathlib import Path

import structlog

from kiln_core.errors import RuntimePrerequisiteError
from kiln_core.schemas import RuntimeConfig

logger = structlog.get_logger(__name__)

PEM_CERTIFICATE_MARKER = b"-----BEGIN CERTIFICATE-----"

# Common distribution locations, checked after OpenSSL's own defaults
WELL_KNOWN_CA_BUNDLES = (
    "/etc/ssl/certs/ca-certificates.crt",
    "/etc/pki/tls/certs/ca-bundle.crt",
    "/etc/ssl/ca-bundle.pem",
    "/etc/ssl/cert.pem",
)


def default_ca_bundle() -> Path | None:
    """First existing CA bundle among OpenSSL's defaults and well-known paths."""
    paths = ssl.get_default_verify_paths()
    candidates = [paths.cafile, paths.openssl_cafile, *WELL_KNOWN_CA_BUNDLES]
    for candidate in candidates:
        if candidate and Path(candidate).is_file():
            return Path(candidate)
    return None


def count_certificates(data: bytes) -> int:
    """Number of PEM certificates in a bundle."""
    return data.count(PEM_CERTIFICATE_MARKER)


def locate_ca_bundle(config: RuntimeConfig) -> Path:
    """Find and check the CA bundle to install.

    Args:
        config: Runtime configuration (``ca_bundle`` overrides discovery).

    Returns:
        Host path of a readable, non-empty PEM bundle.

    Raises:
        RuntimePrerequisiteError: If the bundle is missing, unreadable,
            empty, or holds no PEM certificate.
    """
    if config.ca_bundle is not None:
        bundle: Path | None = Path(config.ca_bundle).expanduser()
        source = "runtime.ca_bundle"
    else:
        bundle = default_ca_bundle()
        source = "system default"

    if bundle is None:
        raise RuntimePrerequisiteError(
            "Trusted CA bundle not found; set runtime.ca_bundle in kiln.yaml",
            internal_details=f"searched OpenSSL defaults and {', '.join(WELL_KNOWN_CA_BUNDLES)}",
        )
    if not bundle.is_file():
        raise RuntimePrerequisiteError(f"Trusted CA bundle not found: {bundle}")

    try:
        data = bundle.read_bytes()
    except OSError as e:
        raise RuntimePrerequisiteError(
            f"Trusted CA bundle is not readable: {bundle}",
            internal_details=str(e),
        ) from e

    if not data.strip():
        raise RuntimePrerequisiteError(f"Trusted CA bundle is empty: {bundle}")
    certificates = count_certificates(data)
    if certificates == 0:
        raise RuntimePrerequisiteError(f"Trusted CA bundle holds no PEM certificates: {bundle}")

    logger.debug("ca_bundle_located", path=str(bundle), source=source, certificates=certificates)
    return bundle
