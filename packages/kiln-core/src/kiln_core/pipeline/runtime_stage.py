"""Runtime assembly stage.

Builds the deployable image from nothing but the compiled artifact and the
trusted CA bundle. The toolchain, the sources and the intermediate build
output never reach the image.
"""

from __future__ import annotations

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path

import structlog

from kiln_core.errors import RuntimePrerequisiteError
from kiln_core.image import (
    ImageConfig,
    OciImage,
    OciLayoutWriter,
    locate_ca_bundle,
    render_runtime_containerfile,
    verify_minimal_surface,
)
from kiln_core.models import IMAGE_RECORD_FILE_NAME, CompiledArtifact, RuntimeImage
from kiln_core.observability import stage_span
from kiln_core.pipeline.workspace import reset_directory, sha256_file
from kiln_core.schemas import CA_BUNDLE_IMAGE_PATH, BuildSpec

logger = structlog.get_logger(__name__)

STAGE_NAME = "runtime"
STAGING_DIR_NAME = "image.partial"

EXECUTABLE_MODE = 0o755
DATA_FILE_MODE = 0o644
DIRECTORY_MODE = 0o755


class RuntimeAssemblyStage:
    """Assemble ``<work_dir>/image`` from a compiled artifact.

    Args:
        spec: Build specification.
        work_dir: Scratch directory; the image is written to ``<work_dir>/image``.

    Example:
        >>> image = RuntimeAssemblyStage(spec, Path(".kiln")).run(artifact)
        >>> image.command
        ['/usr/local/bin/htmlwordpress-api']
    """

    def __init__(self, spec: BuildSpec, work_dir: Path) -> None:
        self.spec = spec
        self.image_dir = work_dir.resolve() / "image"
        self._log = logger.bind(stage=STAGE_NAME, name=spec.name)

    def run(self, artifact: CompiledArtifact) -> RuntimeImage:
        """Assemble, verify and package the runtime image.

        The image is assembled beside ``image_dir`` and only replaces the
        previous image once it has been verified and packaged. A failed
        run leaves the previous image as it was.

        Raises:
            RuntimePrerequisiteError: If the CA bundle cannot be installed
                or the image cannot be written.
            ImageSurfaceError: If the assembled rootfs holds unexpected entries.
        """
        runtime = self.spec.runtime
        staging = self.image_dir.with_name(STAGING_DIR_NAME)
        with stage_span(STAGE_NAME, artifact_sha256=artifact.sha256[:12]) as s:
            ca_bundle = locate_ca_bundle(runtime)
            try:
                image, oci = self._assemble(artifact, ca_bundle, staging)
                if self.image_dir.exists():
                    shutil.rmtree(self.image_dir)
                staging.rename(self.image_dir)
            except OSError as e:
                raise RuntimePrerequisiteError(
                    "Could not write the runtime image",
                    internal_details=f"{type(e).__name__}: {e}",
                ) from e
            finally:
                if staging.exists():
                    shutil.rmtree(staging)
            s.set_attribute("kiln.image_digest", image.manifest_digest)

        self._log.info(
            "image_assembled",
            image_dir=str(self.image_dir),
            digest=image.manifest_digest,
            layer_size=oci.layer.size,
        )
        return image

    def _assemble(
        self, artifact: CompiledArtifact, ca_bundle: Path, staging: Path
    ) -> tuple[RuntimeImage, OciImage]:
        runtime = self.spec.runtime
        reset_directory(staging)
        executable = runtime.install_path(self.spec.name)
        pending = RuntimeImage(
            name=self.spec.name,
            image_dir=str(staging),
            base_image=runtime.base_image,
            executable=executable,
            artifact_sha256=artifact.sha256,
            ca_bundle=CA_BUNDLE_IMAGE_PATH,
            ca_bundle_sha256=sha256_file(ca_bundle),
            workdir=runtime.workdir,
            env=runtime.image_env(),
            exposed_ports=list(runtime.expose),
            command=[executable],
            log_variable=runtime.log_variable,
            port_variable=runtime.port_variable,
            manifest_digest="",
            created_at=datetime.now(timezone.utc),
        )

        self._install(Path(artifact.path), pending.host_path(executable), EXECUTABLE_MODE)
        self._install(ca_bundle, pending.host_path(CA_BUNDLE_IMAGE_PATH), DATA_FILE_MODE)
        workdir = pending.host_path(runtime.workdir)
        workdir.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)

        verify_minimal_surface(pending.rootfs, pending)

        oci = OciLayoutWriter(pending.oci_dir).write(
            pending.rootfs,
            ImageConfig(
                env=pending.env,
                exposed_ports=pending.exposed_ports,
                command=pending.command,
                workdir=pending.workdir,
                base_image=pending.base_image,
                title=self.spec.name,
                version=self.spec.version,
            ),
        )
        image = pending.model_copy(
            update={"manifest_digest": oci.manifest.digest, "image_dir": str(self.image_dir)}
        )
        pending.containerfile.write_text(render_runtime_containerfile(image))
        (staging / IMAGE_RECORD_FILE_NAME).write_text(image.model_dump_json(indent=2))
        return image, oci

    @staticmethod
    def _install(source: Path, destination: Path, mode: int) -> None:
        destination.parent.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
        shutil.copyfile(source, destination)
        os.chmod(destination, mode)
