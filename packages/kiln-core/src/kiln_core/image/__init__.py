"""Runtime image assembly: CA bundle, OCI layout, surface check, Containerfile."""

from __future__ import annotations

from kiln_core.image.certificates import count_certificates, default_ca_bundle, locate_ca_bundle
from kiln_core.image.containerfile import render_containerfile, render_runtime_containerfile
from kiln_core.image.layout import ImageConfig, OciImage, OciLayoutWriter, read_image_config
from kiln_core.image.surface import allowed_entries, verify_minimal_surface

__all__ = [
    "ImageConfig",
    "OciImage",
    "OciLayoutWriter",
    "allowed_entries",
    "count_certificates",
    "default_ca_bundle",
    "locate_ca_bundle",
    "read_image_config",
    "render_containerfile",
    "render_runtime_containerfile",
    "verify_minimal_surface",
]
