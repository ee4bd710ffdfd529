"""Shared testing infrastructure for kiln.

This package provides reusable test fixtures for testing across the kiln
packages.

Modules:
    fixtures: Sample projects, a fake builder toolchain and a CA bundle

Usage:
    In your conftest.py:
        from testing.fixtures.projects import make_cargo_project
        from testing.fixtures.toolchain import fake_build_command
"""

from __future__ import annotations
