"""kiln init command - Scaffold a build specification."""

from __future__ import annotations

import re
from pathlib import Path

import click

from kiln_cli.output import error, success, warning

KILN_YAML_TEMPLATE = """\
# {{ name }} - kiln build specification
# yaml-language-server: $schema=./schemas/kiln.schema.json
#
# Dependencies are compiled once per manifest digest and cached; the
# application is compiled against them and shipped alone in the image.

name: {{ name }}
version: "1.0.0"

toolchain:
  kind: {{ toolchain }}
  build_command: {{ build_command | tojson }}
  builder_image: {{ builder_image }}

dependencies:
  manifest: {{ manifest }}
  lockfile: {{ lockfile }}
  output_dir: target

application:
  entry_point: {{ entry_point }}

runtime:
  base_image: debian:bookworm-slim
  workdir: /app
  install_dir: /usr/local/bin
  log_variable: RUST_LOG
  log_level: info
  port_variable: PORT
  port: 3000
  expose: [3000]
"""

_TOOLCHAIN_DEFAULTS = {
    "cargo": {
        "build_command": ["cargo", "build", "--release"],
        "builder_image": "rust:latest",
        "manifest": "Cargo.toml",
        "lockfile": "Cargo.lock",
        "entry_point": "src/main.rs",
    },
    "generic": {
        "build_command": ["make", "release"],
        "builder_image": "debian:bookworm",
        "manifest": "deps.txt",
        "lockfile": "deps.lock",
        "entry_point": "src/main.c",
    },
}


@click.command()
@click.option(
    "-n",
    "--name",
    "name",
    type=str,
    default=None,
    help="Artifact name [default: current directory name]",
)
@click.option(
    "-t",
    "--toolchain",
    "toolchain",
    type=click.Choice(sorted(_TOOLCHAIN_DEFAULTS)),
    default="cargo",
    help="Toolchain family [default: cargo]",
)
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Overwrite an existing kiln.yaml",
)
def init(name: str | None, toolchain: str, force: bool) -> None:
    """Scaffold a kiln.yaml build specification.

    The defaults build a Rust web service with `cargo build --release`,
    listening on port 3000 with `RUST_LOG=info`.

    Examples:

        kiln init

        kiln init --name htmlwordpress-api

        kiln init --toolchain generic --force
    """
    from kiln_core.schemas.build_spec import ARTIFACT_NAME_PATTERN, BUILD_SPEC_FILE_NAME

    if name is None:
        name = Path.cwd().name

    spec_path = Path(BUILD_SPEC_FILE_NAME)
    existed = spec_path.exists()
    if existed and not force:
        error(f"{BUILD_SPEC_FILE_NAME} already exists.")
        error("Use --force to overwrite.")
        raise SystemExit(1)

    if not re.match(ARTIFACT_NAME_PATTERN, name):
        error(f"Invalid artifact name: {name}")
        error("Use letters, digits, '.', '_' and '-', starting with a letter.")
        raise SystemExit(1)

    try:
        from jinja2.sandbox import SandboxedEnvironment

        env = SandboxedEnvironment(trim_blocks=True, lstrip_blocks=True)
        content = env.from_string(KILN_YAML_TEMPLATE).render(
            name=name,
            toolchain=toolchain,
            **_TOOLCHAIN_DEFAULTS[toolchain],
        )
        spec_path.write_text(content)

    except PermissionError:
        error("Cannot write to current directory.")
        raise SystemExit(2) from None

    if existed:
        warning(f"Overwrote existing {BUILD_SPEC_FILE_NAME}")
    success(f"Created {BUILD_SPEC_FILE_NAME} for {name}")
