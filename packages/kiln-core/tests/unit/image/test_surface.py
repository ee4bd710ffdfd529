"""Tests for the minimal runtime surface check."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from kiln_core import BuildSpec
from kiln_core.errors import ImageSurfaceError
from kiln_core.image import allowed_entries, verify_minimal_surface
from kiln_core.models import CompiledArtifact, RuntimeImage
from kiln_core.pipeline import RuntimeAssemblyStage


@pytest.fixture
def image(spec: BuildSpec, work_dir: Path, compiled_artifact: CompiledArtifact) -> RuntimeImage:
    return RuntimeAssemblyStage(spec, work_dir).run(compiled_artifact)


def offending(image: RuntimeImage) -> list[str]:
    with pytest.raises(ImageSurfaceError) as exc_info:
        verify_minimal_surface(image.rootfs, image)
    return exc_info.value.offending_paths


class TestAllowedEntries:
    """Tests for allowed_entries."""

    def test_files_and_parents(self, image: RuntimeImage) -> None:
        files, directories = allowed_entries(image)
        assert files == {"/usr/local/bin/htmlwordpress-api", "/etc/ssl/certs/ca-certificates.crt"}
        assert directories == {
            "/app",
            "/etc",
            "/etc/ssl",
            "/etc/ssl/certs",
            "/usr",
            "/usr/local",
            "/usr/local/bin",
        }


class TestVerifyMinimalSurface:
    """Tests for verify_minimal_surface."""

    @pytest.mark.requirement("minimal-runtime")
    def test_assembled_image_passes(self, image: RuntimeImage) -> None:
        verify_minimal_surface(image.rootfs, image)

    @pytest.mark.requirement("minimal-runtime")
    def test_extra_file_rejected(self, image: RuntimeImage) -> None:
        (image.rootfs / "usr" / "local" / "bin" / "cargo").write_text("")
        assert offending(image) == ["/usr/local/bin/cargo"]

    def test_extra_directory_rejected(self, image: RuntimeImage) -> None:
        (image.rootfs / "src").mkdir()
        assert offending(image) == ["/src/"]

    def test_symlink_rejected(self, image: RuntimeImage) -> None:
        os.symlink("/usr/local/bin/htmlwordpress-api", image.rootfs / "app" / "server")
        assert offending(image) == ["/app/server (not a regular file)"]

    def test_missing_ca_bundle(self, image: RuntimeImage) -> None:
        image.host_path(image.ca_bundle).unlink()
        assert offending(image) == ["/etc/ssl/certs/ca-certificates.crt (missing)"]

    def test_artifact_not_executable(self, image: RuntimeImage) -> None:
        image.host_path(image.executable).chmod(0o644)
        assert offending(image) == ["/usr/local/bin/htmlwordpress-api (not executable)"]

    def test_message_truncated(self, image: RuntimeImage) -> None:
        for n in range(12):
            (image.rootfs / "app" / f"leftover-{n:02d}.o").write_text("")

        with pytest.raises(ImageSurfaceError, match=r"\(and 2 more\)") as exc_info:
            verify_minimal_surface(image.rootfs, image)

        assert len(exc_info.value.offending_paths) == 12
