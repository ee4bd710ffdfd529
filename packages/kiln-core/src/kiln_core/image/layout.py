"""OCI image layout writer.

Packs the runtime rootfs into a single-layer OCI image
(https://github.com/opencontainers/image-spec/blob/main/image-layout.md)
that ``skopeo``, ``podman`` or ``crane`` can load or push directly. The
layer is reproducible: entries are sorted, ownership is root, and all
timestamps (tar and gzip) are zero, so identical inputs always give an
identical manifest digest.

The layout holds the kiln layer and nothing else. It is not based on
``runtime.base_image``: a dynamically linked executable needs the base
image's C library, so the layout only runs once it is stacked on that
base (the rendered Containerfile does this). The base is recorded under
``ANNOTATION_RUNTIME_BASE`` rather than the OCI base-name annotation,
which would claim the base layers are present.
"""

from __future__ import annotations

import gzip
import hashlib
import io
import json
import os
import platform
import stat
import tarfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

MEDIA_TYPE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_CONFIG = "application/vnd.oci.image.config.v1+json"
MEDIA_TYPE_LAYER = "application/vnd.oci.image.layer.v1.tar+gzip"

ANNOTATION_RUNTIME_BASE = "dev.kiln.image.runtime-base"
ANNOTATION_TITLE = "org.opencontainers.image.title"
ANNOTATION_VERSION = "org.opencontainers.image.version"
ANNOTATION_REF_NAME = "org.opencontainers.image.ref.name"

OCI_LAYOUT_VERSION = "1.0.0"

_GOARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
}


class ImageConfig(BaseModel):
    """Process metadata written into the OCI image config.

    Attributes:
        env: Environment defaults, in order.
        exposed_ports: Advertised TCP ports.
        command: Launch command.
        workdir: Working directory.
        base_image: Base image recorded as an annotation.
        title: Image title annotation.
        version: Image version annotation and ref name.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    env: dict[str, str] = Field(default_factory=dict)
    exposed_ports: list[int] = Field(default_factory=list)
    command: list[str] = Field(..., min_length=1)
    workdir: str = Field(default="/")
    base_image: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    version: str = Field(default="latest", min_length=1)


class OciDescriptor(BaseModel):
    """Content descriptor of a blob in the layout."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    media_type: str
    digest: str
    size: int

    def to_json(self) -> dict[str, Any]:
        return {"mediaType": self.media_type, "digest": self.digest, "size": self.size}


class OciImage(BaseModel):
    """Descriptors of a written image layout."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    manifest: OciDescriptor
    config: OciDescriptor
    layer: OciDescriptor
    diff_id: str


def host_architecture() -> str:
    """Host CPU architecture in OCI (GOARCH) naming."""
    machine = platform.machine().lower()
    return _GOARCH.get(machine, machine or "amd64")


def _canonical_json(document: dict[str, Any]) -> bytes:
    return json.dumps(document, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _normalize(info: tarfile.TarInfo) -> tarfile.TarInfo:
    info.uid = 0
    info.gid = 0
    info.uname = ""
    info.gname = ""
    info.mtime = 0
    return info


def build_layer(rootfs: Path) -> bytes:
    """Reproducible uncompressed tar of rootfs.

    Only directories and regular files are packed; paths are relative to
    the image root.
    """
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for dirpath, dirnames, filenames in os.walk(rootfs):
            dirnames.sort()
            current = Path(dirpath)
            for name in dirnames:
                path = current / name
                info = tar.gettarinfo(str(path), arcname=path.relative_to(rootfs).as_posix())
                tar.addfile(_normalize(info))
            for name in sorted(filenames):
                path = current / name
                mode = path.lstat().st_mode
                if not stat.S_ISREG(mode):
                    continue
                info = tar.gettarinfo(str(path), arcname=path.relative_to(rootfs).as_posix())
                with path.open("rb") as f:
                    tar.addfile(_normalize(info), f)
    return buffer.getvalue()


def _gzip(data: bytes) -> bytes:
    buffer = io.BytesIO()
    with gzip.GzipFile(fileobj=buffer, mode="wb", mtime=0, filename="") as gz:
        gz.write(data)
    return buffer.getvalue()


class OciLayoutWriter:
    """Write an OCI image layout directory.

    Example:
        >>> writer = OciLayoutWriter(Path("image/oci"))
        >>> image = writer.write(Path("image/rootfs"), config)
        >>> image.manifest.digest
        'sha256:...'
    """

    def __init__(self, layout_dir: Path) -> None:
        self.layout_dir = layout_dir
        self.blobs_dir = layout_dir / "blobs" / "sha256"

    def _write_blob(self, media_type: str, data: bytes) -> OciDescriptor:
        hex_digest = hashlib.sha256(data).hexdigest()
        self.blobs_dir.mkdir(parents=True, exist_ok=True)
        (self.blobs_dir / hex_digest).write_bytes(data)
        return OciDescriptor(media_type=media_type, digest=f"sha256:{hex_digest}", size=len(data))

    def write(self, rootfs: Path, config: ImageConfig) -> OciImage:
        """Pack rootfs and write config, manifest, index and oci-layout."""
        layer_tar = build_layer(rootfs)
        diff_id = f"sha256:{hashlib.sha256(layer_tar).hexdigest()}"
        layer = self._write_blob(MEDIA_TYPE_LAYER, _gzip(layer_tar))

        image_config = {
            "architecture": host_architecture(),
            "os": "linux",
            "config": {
                "Env": [f"{key}={value}" for key, value in config.env.items()],
                "ExposedPorts": {f"{port}/tcp": {} for port in config.exposed_ports},
                "Cmd": list(config.command),
                "WorkingDir": config.workdir,
            },
            "rootfs": {"type": "layers", "diff_ids": [diff_id]},
            "history": [{"created_by": "kiln runtime assembly", "comment": config.title}],
        }
        config_descriptor = self._write_blob(MEDIA_TYPE_CONFIG, _canonical_json(image_config))

        manifest = {
            "schemaVersion": 2,
            "mediaType": MEDIA_TYPE_MANIFEST,
            "config": config_descriptor.to_json(),
            "layers": [layer.to_json()],
            "annotations": {
                ANNOTATION_RUNTIME_BASE: config.base_image,
                ANNOTATION_TITLE: config.title,
                ANNOTATION_VERSION: config.version,
            },
        }
        manifest_descriptor = self._write_blob(MEDIA_TYPE_MANIFEST, _canonical_json(manifest))

        index = {
            "schemaVersion": 2,
            "manifests": [
                {
                    **manifest_descriptor.to_json(),
                    "annotations": {ANNOTATION_REF_NAME: config.version},
                }
            ],
        }
        (self.layout_dir / "index.json").write_bytes(_canonical_json(index))
        (self.layout_dir / "oci-layout").write_bytes(
            _canonical_json({"imageLayoutVersion": OCI_LAYOUT_VERSION})
        )

        return OciImage(
            manifest=manifest_descriptor,
            config=config_descriptor,
            layer=layer,
            diff_id=diff_id,
        )


def read_image_config(layout_dir: Path) -> dict[str, Any]:
    """Load the image config of the first manifest in a layout.

    Raises:
        FileNotFoundError: If the layout or a referenced blob is missing.
        ValueError: If index.json references no manifest.
    """
    index = json.loads((layout_dir / "index.json").read_text())
    manifests = index.get("manifests") or []
    if not manifests:
        raise ValueError(f"No image manifest in {layout_dir / 'index.json'}")

    def blob(digest: str) -> dict[str, Any]:
        algorithm, _, hex_digest = digest.partition(":")
        return json.loads((layout_dir / "blobs" / algorithm / hex_digest).read_text())

    manifest = blob(manifests[0]["digest"])
    return blob(manifest["config"]["digest"])
