"""Tests for manifest digesting (the dependency cache key)."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from kiln_core import BuildSpec, DependencyManifest, ManifestResolutionError
from kiln_core.manifest import compute_manifest_digest, read_manifest_contents


class TestComputeManifestDigest:
    """Tests for compute_manifest_digest."""

    @pytest.mark.requirement("dependency-cache")
    def test_digest_is_deterministic(self) -> None:
        contents = [("Cargo.toml", b"[package]\n"), ("Cargo.lock", b"version = 3\n")]
        assert compute_manifest_digest(contents) == compute_manifest_digest(list(contents))

    def test_digest_format(self) -> None:
        digest = compute_manifest_digest([("Cargo.toml", b"")])
        assert len(digest) == 64
        int(digest, 16)

    def test_matches_documented_construction(self) -> None:
        expected = hashlib.sha256(b"Cargo.toml\x003\x00abc").hexdigest()
        assert compute_manifest_digest([("Cargo.toml", b"abc")]) == expected

    @pytest.mark.requirement("dependency-cache")
    def test_any_byte_change_changes_digest(self) -> None:
        base = [("Cargo.toml", b'serde = "1.0"\n'), ("Cargo.lock", b"a")]
        changed = [("Cargo.toml", b'serde = "1.1"\n'), ("Cargo.lock", b"a")]
        assert compute_manifest_digest(base) != compute_manifest_digest(changed)

    def test_moving_bytes_between_files_changes_digest(self) -> None:
        first = [("Cargo.toml", b"ab"), ("Cargo.lock", b"c")]
        second = [("Cargo.toml", b"a"), ("Cargo.lock", b"bc")]
        assert compute_manifest_digest(first) != compute_manifest_digest(second)

    def test_order_matters(self) -> None:
        a = ("Cargo.toml", b"x")
        b = ("Cargo.lock", b"y")
        assert compute_manifest_digest([a, b]) != compute_manifest_digest([b, a])

    def test_renaming_a_file_changes_digest(self) -> None:
        assert compute_manifest_digest([("Cargo.toml", b"x")]) != compute_manifest_digest(
            [("cargo.toml", b"x")]
        )


class TestDependencyManifest:
    """Tests for reading manifests from a project."""

    def test_load(self, project_dir: Path, spec: BuildSpec) -> None:
        manifest = DependencyManifest.load(project_dir, spec)
        toml = (project_dir / "Cargo.toml").read_bytes()
        assert manifest.files[0].path == "Cargo.toml"
        assert manifest.files[0].sha256 == hashlib.sha256(toml).hexdigest()
        assert manifest.files[0].size_bytes == len(toml)
        assert manifest.short_digest == manifest.digest[:12]

    def test_source_changes_do_not_change_digest(
        self, project_dir: Path, spec: BuildSpec
    ) -> None:
        before = DependencyManifest.load(project_dir, spec).digest
        (project_dir / "src" / "main.rs").write_text("fn main() { println!(\"changed\"); }\n")
        assert DependencyManifest.load(project_dir, spec).digest == before

    def test_lock_change_changes_digest(self, project_dir: Path, spec: BuildSpec) -> None:
        before = DependencyManifest.load(project_dir, spec).digest
        with (project_dir / "Cargo.lock").open("a") as f:
            f.write("\n")
        assert DependencyManifest.load(project_dir, spec).digest != before

    def test_missing_files_reported_together(self, tmp_path: Path, spec: BuildSpec) -> None:
        with pytest.raises(ManifestResolutionError) as exc_info:
            read_manifest_contents(tmp_path, spec)
        assert exc_info.value.problems == [
            "Cargo.toml: file not found",
            "Cargo.lock: file not found",
        ]
