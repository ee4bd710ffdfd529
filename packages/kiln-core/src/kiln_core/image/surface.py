"""Minimal runtime surface check.

The runtime image holds the compiled artifact, the trusted CA bundle, and
the directories leading to them and to the working directory. Nothing else
is allowed: no toolchain, no sources, no intermediate build output, no
links or device nodes.
"""

from __future__ import annotations

import os
import stat
from pathlib import Path, PurePosixPath

import structlog

from kiln_core.errors import ImageSurfaceError
from kiln_core.models import RuntimeImage

logger = structlog.get_logger(__name__)


def _with_parents(image_path: str) -> set[str]:
    path = PurePosixPath(image_path)
    return {str(parent) for parent in path.parents if str(parent) != "/"} | {str(path)}


def allowed_entries(image: RuntimeImage) -> tuple[set[str], set[str]]:
    """Image paths allowed as (regular files, directories)."""
    files = {image.executable, image.ca_bundle}
    directories = _with_parents(image.workdir)
    for path in files:
        directories |= {str(parent) for parent in PurePosixPath(path).parents if str(parent) != "/"}
    return files, directories


def verify_minimal_surface(rootfs: Path, image: RuntimeImage) -> None:
    """Walk rootfs and reject anything outside the image contract.

    Args:
        rootfs: Host directory holding the image filesystem.
        image: Runtime image record naming the allowed entries.

    Raises:
        ImageSurfaceError: If an unexpected entry exists, or the artifact
            or CA bundle is missing or not a regular file.
    """
    allowed_files, allowed_dirs = allowed_entries(image)
    offending: list[str] = []
    seen_files: set[str] = set()

    for dirpath, dirnames, filenames in os.walk(rootfs):
        current = Path(dirpath)
        for name in [*dirnames, *filenames]:
            path = current / name
            image_path = "/" + path.relative_to(rootfs).as_posix()
            mode = path.lstat().st_mode
            if stat.S_ISDIR(mode):
                if image_path not in allowed_dirs:
                    offending.append(f"{image_path}/")
            elif stat.S_ISREG(mode):
                if image_path in allowed_files:
                    seen_files.add(image_path)
                else:
                    offending.append(image_path)
            else:
                # Symlinks, devices, sockets and FIFOs
                offending.append(f"{image_path} (not a regular file)")

    for required in sorted(allowed_files - seen_files):
        offending.append(f"{required} (missing)")

    executable = image.host_path(image.executable)
    if image.executable in seen_files and not os.access(executable, os.X_OK):
        offending.append(f"{image.executable} (not executable)")

    if offending:
        raise ImageSurfaceError(offending, internal_details=f"rootfs={rootfs}")

    logger.debug("image_surface_verified", rootfs=str(rootfs), files=sorted(seen_files))
