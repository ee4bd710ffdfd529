"""Tests for dependency manifest resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from kiln_core import BuildSpec, ManifestResolutionError
from kiln_core.manifest import (
    CargoManifestResolver,
    GenericManifestResolver,
    get_resolver,
    load_manifest,
    resolve_dependencies,
)
from kiln_core.schemas import DependencyConfig

LOCK = b"""\
version = 3

[[package]]
name = "api"
version = "0.1.0"

[[package]]
name = "serde"
version = "1.0.203"

[[package]]
name = "rand"
version = "0.7.3"

[[package]]
name = "rand"
version = "0.8.5"

[[package]]
name = "shared"
version = "0.2.0"

[[package]]
name = "cc"
version = "1.0.98"
"""


def resolve(manifest: bytes, lock: bytes = LOCK) -> list:
    resolver = CargoManifestResolver(DependencyConfig())
    return resolver.resolve([("Cargo.toml", manifest), ("Cargo.lock", lock)])


class TestCargoResolver:
    """Tests for CargoManifestResolver."""

    @pytest.mark.requirement("manifest-resolution")
    def test_resolves_registry_dependencies(self) -> None:
        resolved = resolve(
            b'[package]\nname = "api"\n\n[dependencies]\nserde = { version = "1.0" }\n'
        )
        assert len(resolved) == 1
        assert resolved[0].name == "serde"
        assert resolved[0].requirement == "1.0"
        assert resolved[0].locked_version == "1.0.203"
        assert resolved[0].source == "registry"

    def test_picks_newest_matching_locked_version(self) -> None:
        resolved = resolve(b'[package]\nname = "api"\n\n[dependencies]\nrand = "0.7"\n')
        assert resolved[0].locked_version == "0.7.3"

    def test_path_dependency_needs_presence_only(self) -> None:
        resolved = resolve(
            b'[package]\nname = "api"\n\n[dependencies]\nshared = { path = "../shared" }\n'
        )
        assert resolved[0].source == "path"
        assert resolved[0].requirement is None

    def test_renamed_package(self) -> None:
        resolved = resolve(
            b'[package]\nname = "api"\n\n'
            b'[dependencies]\nserialization = { package = "serde", version = "1" }\n'
        )
        assert resolved[0].name == "serde"

    def test_build_and_target_dependencies(self) -> None:
        resolved = resolve(
            b'[package]\nname = "api"\n\n'
            b'[build-dependencies]\ncc = "1.0"\n\n'
            b"[target.'cfg(unix)'.dependencies]\nrand = \"0.8\"\n"
        )
        assert [dep.name for dep in resolved] == ["cc", "rand"]

    def test_dev_dependencies_are_ignored(self) -> None:
        resolved = resolve(b'[package]\nname = "api"\n\n[dev-dependencies]\nmissing = "1"\n')
        assert resolved == []

    @pytest.mark.requirement("manifest-resolution")
    def test_unsatisfied_requirement(self) -> None:
        with pytest.raises(ManifestResolutionError) as exc_info:
            resolve(b'[package]\nname = "api"\n\n[dependencies]\nserde = "2"\n')
        assert exc_info.value.problems == [
            "serde: requirement 2 not satisfied by locked 1.0.203"
        ]

    def test_missing_from_lock(self) -> None:
        with pytest.raises(ManifestResolutionError) as exc_info:
            resolve(b'[package]\nname = "api"\n\n[dependencies]\ntokio = "1"\n')
        assert exc_info.value.problems == ["tokio: not present in Cargo.lock"]

    def test_reports_every_problem(self) -> None:
        with pytest.raises(ManifestResolutionError) as exc_info:
            resolve(
                b'[package]\nname = "api"\n\n'
                b'[dependencies]\ntokio = "1"\nserde = "2"\naxum = { version = "nope" }\n'
            )
        assert len(exc_info.value.problems) == 3

    def test_stale_lock_for_package(self) -> None:
        with pytest.raises(ManifestResolutionError) as exc_info:
            resolve(b'[package]\nname = "renamed"\n')
        assert "lock file is stale" in exc_info.value.problems[0]

    def test_invalid_toml(self) -> None:
        with pytest.raises(ManifestResolutionError) as exc_info:
            resolve(b"[package\n")
        assert exc_info.value.problems[0].startswith("Cargo.toml: invalid TOML")

    def test_missing_lock_content(self) -> None:
        resolver = CargoManifestResolver(DependencyConfig())
        with pytest.raises(ManifestResolutionError) as exc_info:
            resolver.resolve([("Cargo.toml", b'[package]\nname = "api"\n')])
        assert exc_info.value.problems == ["Cargo.lock: file not found"]

    def test_malformed_lock_entry(self) -> None:
        with pytest.raises(ManifestResolutionError) as exc_info:
            resolve(b'[package]\nname = "api"\n', lock=LOCK + b'\n[[package]]\nname = "x"\n')
        assert "malformed [[package]] entry" in exc_info.value.problems[0]

    def test_user_message_lists_problems(self) -> None:
        with pytest.raises(ManifestResolutionError) as exc_info:
            resolve(b'[package]\nname = "api"\n\n[dependencies]\ntokio = "1"\n')
        assert exc_info.value.user_message.startswith("Dependency manifest cannot be resolved:")
        assert "  - tokio: not present in Cargo.lock" in exc_info.value.user_message


class TestResolverSelection:
    """Tests for get_resolver and the project-level helpers."""

    def test_cargo_toolchain(self, spec: BuildSpec) -> None:
        assert isinstance(get_resolver(spec), CargoManifestResolver)

    def test_generic_toolchain(self) -> None:
        spec = BuildSpec.model_validate(
            {
                "name": "svc",
                "toolchain": {"kind": "generic", "build_command": ["make"]},
                "dependencies": {"manifest": "deps.txt", "lockfile": "deps.lock"},
            }
        )
        resolver = get_resolver(spec)
        assert isinstance(resolver, GenericManifestResolver)
        assert resolver.resolve([("deps.txt", b"anything")]) == []

    def test_resolve_sample_project(self, project_dir: Path, spec: BuildSpec) -> None:
        resolved = resolve_dependencies(project_dir, spec)
        assert {dep.name: dep.locked_version for dep in resolved} == {
            "axum": "0.7.5",
            "serde": "1.0.203",
            "tokio": "1.38.0",
        }

    def test_load_manifest_resolves_first(self, project_dir: Path, spec: BuildSpec) -> None:
        lock = project_dir / "Cargo.lock"
        lock.write_text(lock.read_text().replace('version = "1.0.203"', 'version = "0.9.0"'))
        with pytest.raises(ManifestResolutionError):
            load_manifest(project_dir, spec)
        manifest = load_manifest(project_dir, spec, resolve=False)
        assert [f.path for f in manifest.files] == ["Cargo.toml", "Cargo.lock"]
