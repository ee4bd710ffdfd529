"""Build pipeline: dependency build, application build, runtime assembly."""

from __future__ import annotations

from kiln_core.pipeline.application_stage import STEPS, ApplicationBuildStage
from kiln_core.pipeline.dependency_stage import DependencyBuildStage
from kiln_core.pipeline.pipeline import DEFAULT_WORK_DIR, BuildPipeline
from kiln_core.pipeline.runner import CommandRunner
from kiln_core.pipeline.runtime_stage import RuntimeAssemblyStage

__all__ = [
    "DEFAULT_WORK_DIR",
    "STEPS",
    "ApplicationBuildStage",
    "BuildPipeline",
    "CommandRunner",
    "DependencyBuildStage",
    "RuntimeAssemblyStage",
]
