"""Build pipeline records.

Each stage hands an immutable record to the next:

    DependencyBuildOutput -> CompiledArtifact -> RuntimeImage

and the pipeline summarises a run in a BuildReport, written to
``.kiln/build_report.json`` by ``kiln build``.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field

from kiln_core.cache.models import KILN_CORE_VERSION, CacheEntry
from kiln_core.manifest import DependencyManifest

IMAGE_RECORD_FILE_NAME = "image.json"


class DependencyBuildOutput(BaseModel):
    """Result of the dependency build stage.

    Attributes:
        manifest: Resolved manifest; its digest keys the cache entry.
        entry: Cache entry holding the compiled dependency set.
        cache_hit: True if the entry existed and nothing was compiled.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    manifest: DependencyManifest
    entry: CacheEntry
    cache_hit: bool = Field(default=False, description="Served from the cache")


class CompiledArtifact(BaseModel):
    """The single executable produced by the application build stage.

    Attributes:
        name: Executable name.
        path: Collected artifact location on the host.
        sha256: Content digest of the artifact.
        size_bytes: Artifact size.
        source_digest: Digest of the application source tree it was built from.
        manifest_digest: Digest of the dependency manifest it was linked against.
        built_at: Completion time (UTC).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Executable name")
    path: str = Field(..., min_length=1, description="Artifact location")
    sha256: str = Field(..., min_length=64, max_length=64, description="Artifact digest")
    size_bytes: int = Field(..., ge=0, description="Artifact size")
    source_digest: str = Field(..., min_length=64, max_length=64, description="Source digest")
    manifest_digest: str = Field(
        ...,
        min_length=64,
        max_length=64,
        description="Dependency manifest digest",
    )
    built_at: datetime = Field(..., description="Completion time (UTC)")


class RuntimeImage(BaseModel):
    """Assembled runtime image record (``image.json``).

    Paths under ``image_dir`` are host paths; ``executable``, ``ca_bundle``
    and ``workdir`` are paths inside the image.

    Attributes:
        name: Executable name.
        image_dir: Directory holding rootfs/, oci/, Containerfile and image.json.
        base_image: Runtime base image name.
        executable: Absolute path of the artifact inside the image.
        artifact_sha256: Digest of the installed artifact.
        ca_bundle: Image path of the trusted CA bundle.
        ca_bundle_sha256: Digest of the installed CA bundle.
        workdir: Process working directory.
        env: Default environment, in declaration order.
        exposed_ports: Advertised TCP ports.
        command: Launch command (the executable alone).
        log_variable: Logging verbosity variable name.
        port_variable: Listening port variable name.
        manifest_digest: OCI manifest digest of the image.
        created_at: Assembly time (UTC).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Executable name")
    image_dir: str = Field(..., min_length=1, description="Image output directory")
    base_image: str = Field(..., min_length=1, description="Runtime base image")
    executable: str = Field(..., min_length=1, description="Executable path in the image")
    artifact_sha256: str = Field(..., min_length=64, max_length=64, description="Artifact digest")
    ca_bundle: str = Field(..., min_length=1, description="CA bundle path in the image")
    ca_bundle_sha256: str = Field(
        ...,
        min_length=64,
        max_length=64,
        description="CA bundle digest",
    )
    workdir: str = Field(..., min_length=1, description="Working directory")
    env: dict[str, str] = Field(default_factory=dict, description="Default environment")
    exposed_ports: list[int] = Field(default_factory=list, description="Advertised TCP ports")
    command: list[str] = Field(..., min_length=1, max_length=1, description="Launch command")
    log_variable: str = Field(..., min_length=1, description="Log level variable")
    port_variable: str = Field(..., min_length=1, description="Port variable")
    manifest_digest: str = Field(..., description="OCI manifest digest")
    created_at: datetime = Field(..., description="Assembly time (UTC)")

    @property
    def rootfs(self) -> Path:
        """Host path of the image filesystem."""
        return Path(self.image_dir) / "rootfs"

    @property
    def oci_dir(self) -> Path:
        """Host path of the OCI image layout."""
        return Path(self.image_dir) / "oci"

    @property
    def containerfile(self) -> Path:
        """Host path of the rendered Containerfile."""
        return Path(self.image_dir) / "Containerfile"

    def host_path(self, image_path: str) -> Path:
        """Map an absolute image path onto the host rootfs."""
        return self.rootfs.joinpath(*PurePosixPath(image_path).parts[1:])

    @classmethod
    def from_dir(cls, image_dir: Path) -> RuntimeImage:
        """Load the record written by the runtime assembly stage.

        Host paths resolve against ``image_dir``, not the directory the
        image was assembled in, so a copied or moved image is inspected
        and launched where it now is.

        Raises:
            FileNotFoundError: If image_dir holds no image.json.
            pydantic.ValidationError: If the record is invalid.
        """
        record = image_dir / IMAGE_RECORD_FILE_NAME
        if not record.is_file():
            raise FileNotFoundError(f"File not found: {record}")
        image = cls.model_validate_json(record.read_text())
        return image.model_copy(update={"image_dir": str(image_dir.resolve())})


class BuildReport(BaseModel):
    """Summary of one pipeline run.

    Example:
        >>> report = BuildPipeline(spec, Path(".")).run()
        >>> report.cache_hit
        True
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., description="Artifact name")
    manifest_digest: str = Field(..., description="Dependency cache key")
    cache_hit: bool = Field(..., description="Dependency stage served from cache")
    artifact: CompiledArtifact
    image: RuntimeImage
    started_at: datetime = Field(..., description="Run start (UTC)")
    finished_at: datetime = Field(..., description="Run end (UTC)")
    kiln_version: str = Field(default=KILN_CORE_VERSION, description="kiln-core version")

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()
