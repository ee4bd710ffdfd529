"""Runtime image configuration for kiln.

This module defines the process metadata recorded in the runtime image:
the logging and port variables consumed by the application binary, the
advertised ports, and where the artifact and CA bundle are installed.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing_extensions import Self

from kiln_core.schemas.paths import is_within, validate_absolute_path

DEFAULT_BASE_IMAGE = "debian:bookworm-slim"
DEFAULT_LOG_VARIABLE = "RUST_LOG"
DEFAULT_LOG_LEVEL = "info"
DEFAULT_PORT_VARIABLE = "PORT"
DEFAULT_PORT = 3000

# Where the CA bundle lands inside the image (Debian ca-certificates layout)
CA_BUNDLE_IMAGE_PATH = "/etc/ssl/certs/ca-certificates.crt"

ENV_NAME_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"


class RuntimeConfig(BaseModel):
    """Runtime environment of the deployable image.

    The log and port settings are defaults only: the application binary
    reads them once at process start and the hosting platform may override
    them when the container starts.

    Attributes:
        base_image: Runtime base image name (recorded as an annotation and
            used by the rendered Containerfile).
        workdir: Working directory of the launched process.
        install_dir: Fixed directory holding the artifact.
        log_variable: Name of the logging verbosity variable.
        log_level: Default logging verbosity.
        port_variable: Name of the listening port variable.
        port: Default listening port.
        expose: Advertised TCP ports.
        env: Additional environment defaults.
        ca_bundle: Host path of the trusted CA bundle to install
            (auto-detected when None).

    Example:
        >>> runtime = RuntimeConfig()
        >>> runtime.image_env()
        {'RUST_LOG': 'info', 'PORT': '3000'}
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_image: str = Field(default=DEFAULT_BASE_IMAGE, min_length=1, description="Base image")
    workdir: str = Field(default="/app", description="Process working directory")
    install_dir: str = Field(default="/usr/local/bin", description="Artifact directory")
    log_variable: str = Field(
        default=DEFAULT_LOG_VARIABLE,
        pattern=ENV_NAME_PATTERN,
        description="Logging verbosity variable",
    )
    log_level: str = Field(default=DEFAULT_LOG_LEVEL, min_length=1, description="Default log level")
    port_variable: str = Field(
        default=DEFAULT_PORT_VARIABLE,
        pattern=ENV_NAME_PATTERN,
        description="Listening port variable",
    )
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535, description="Default listening port")
    expose: list[int] = Field(
        default_factory=lambda: [DEFAULT_PORT],
        description="Advertised TCP ports",
    )
    env: dict[str, str] = Field(default_factory=dict, description="Extra environment defaults")
    ca_bundle: str | None = Field(default=None, description="Host CA bundle path")

    @field_validator("workdir", "install_dir")
    @classmethod
    def check_image_path(cls, v: str) -> str:
        return validate_absolute_path(v)

    @field_validator("expose")
    @classmethod
    def check_ports(cls, v: list[int]) -> list[int]:
        """Ports must be valid and unique."""
        for port in v:
            if not 1 <= port <= 65535:
                raise ValueError(f"port out of range: {port}")
        if len(set(v)) != len(v):
            raise ValueError("exposed ports must be unique")
        return v

    @field_validator("env")
    @classmethod
    def check_env_names(cls, v: dict[str, str]) -> dict[str, str]:
        for name in v:
            if not re.match(ENV_NAME_PATTERN, name):
                raise ValueError(f"invalid environment variable name: {name!r}")
        return v

    @model_validator(mode="after")
    def check_consistency(self) -> Self:
        """Cross-field rules.

        Raises:
            ValueError: If the log and port variables collide, ``env``
                redefines either of them, the default port is not advertised,
                or a directory collides with the CA bundle path.
        """
        if self.log_variable == self.port_variable:
            raise ValueError("log_variable and port_variable must differ")
        for reserved in (self.log_variable, self.port_variable):
            if reserved in self.env:
                raise ValueError(
                    f"env must not set {reserved}; use log_level/port instead"
                )
        if self.expose and self.port not in self.expose:
            raise ValueError(f"default port {self.port} is not in expose {self.expose}")
        for field_name in ("workdir", "install_dir"):
            if is_within(getattr(self, field_name), CA_BUNDLE_IMAGE_PATH):
                raise ValueError(
                    f"{field_name} must not be at or below the CA bundle {CA_BUNDLE_IMAGE_PATH}"
                )
        return self

    def install_path(self, name: str) -> str:
        """Absolute image path of the artifact."""
        return str(PurePosixPath(self.install_dir) / name)

    def image_env(self) -> dict[str, str]:
        """Environment defaults in image order: log, port, then extras."""
        env = {
            self.log_variable: self.log_level,
            self.port_variable: str(self.port),
        }
        env.update(self.env)
        return env
