"""Launch configuration for an assembled runtime image.

The application reads its configuration once at process start: the image
defaults, with any variables the hosting platform sets at container start
taking precedence. Changing the port or log level therefore never needs a
rebuild.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import NoReturn

import structlog
from pydantic import BaseModel, ConfigDict, Field

from kiln_core.errors import ConfigurationError
from kiln_core.models import RuntimeImage
from kiln_core.schemas.runtime import ENV_NAME_PATTERN

logger = structlog.get_logger(__name__)


class LaunchConfig(BaseModel):
    """Resolved process configuration, fixed before the process starts.

    Attributes:
        executable: Host path of the artifact in the image rootfs.
        argv: Process arguments (the executable name alone).
        env: Complete process environment.
        port: Listening port the application will bind.
        log_level: Logging verbosity the application will use.
        workdir: Host path of the working directory.

    Example:
        >>> config = LaunchConfig.from_image(image, {"PORT": "8080"})
        >>> config.port
        8080
        >>> config.log_level
        'info'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    executable: str = Field(..., min_length=1, description="Artifact path")
    argv: list[str] = Field(..., min_length=1, max_length=1, description="Process arguments")
    env: dict[str, str] = Field(default_factory=dict, description="Process environment")
    port: int = Field(..., ge=1, le=65535, description="Listening port")
    log_level: str = Field(..., description="Logging verbosity")
    workdir: str = Field(..., min_length=1, description="Working directory")

    @classmethod
    def from_image(
        cls,
        image: RuntimeImage,
        overrides: Mapping[str, str] | None = None,
    ) -> LaunchConfig:
        """Combine image defaults with start-time overrides.

        Args:
            image: Assembled runtime image record.
            overrides: Variables set by the platform at container start.

        Returns:
            Immutable LaunchConfig.

        Raises:
            ConfigurationError: If an override name is invalid or the port
                variable is not a valid TCP port.
        """
        overrides = dict(overrides or {})
        for name in overrides:
            if not re.match(ENV_NAME_PATTERN, name):
                raise ConfigurationError(f"Invalid environment variable name: {name!r}")

        env = {**image.env, **overrides}
        raw_port = env.get(image.port_variable)
        if raw_port is None:
            raise ConfigurationError(
                f"{image.port_variable} is not set",
                field_path=image.port_variable,
            )
        try:
            port = int(raw_port.strip())
        except ValueError:
            port = 0
        if not 1 <= port <= 65535:
            raise ConfigurationError(
                f"Invalid port {raw_port!r}: expected an integer between 1 and 65535",
                field_path=image.port_variable,
            )

        config = cls(
            executable=str(image.host_path(image.executable)),
            argv=[image.name],
            env=env,
            port=port,
            log_level=env.get(image.log_variable, ""),
            workdir=str(image.host_path(image.workdir)),
        )
        logger.debug(
            "launch_config_resolved",
            name=image.name,
            port=port,
            log_level=config.log_level,
            overridden=sorted(overrides),
        )
        return config


def launch(config: LaunchConfig) -> NoReturn:
    """Replace the current process with the artifact.

    No shell is involved and no arguments are passed beyond the executable
    name.

    Raises:
        ConfigurationError: If the artifact is missing or not executable.
    """
    executable = Path(config.executable)
    if not os.access(executable, os.X_OK):
        raise ConfigurationError(f"Artifact is missing or not executable: {executable}")

    logger.info("process_launching", executable=str(executable), port=config.port)
    os.chdir(config.workdir)
    os.execve(executable, config.argv, config.env)
