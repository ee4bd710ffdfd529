"""Shared test fixtures for kiln packages.

Exports:
    Project fixtures:
        make_cargo_project: Write a small Cargo project with kiln.yaml
        write_ca_bundle: Write a PEM CA bundle
        SAMPLE_CA_PEM: A self-signed certificate in PEM form

    Toolchain fixtures:
        TOOLCHAIN_SCRIPT: Path of the fake cargo-like builder
        fake_build_command: Build command that runs the fake builder
        read_build_log: Parse the fake builder's event log

Usage:
    ```python
    from testing.fixtures.projects import make_cargo_project

    project = make_cargo_project(tmp_path / "api", name="htmlwordpress-api")
    spec = BuildSpec.from_yaml(project / "kiln.yaml")
    ```
"""

from __future__ import annotations
