"""Containerfile rendering.

Two renderings of the same build:
- render_runtime_containerfile: the runtime stage only, written next to an
  assembled image so hosts that build from a Containerfile can produce the
  same image from ``rootfs/``.
- render_containerfile: the complete two-stage recipe (placeholder
  dependency build, real build, minimal runtime stage) for ``kiln render``.
"""

from __future__ import annotations

import json
import shlex
from pathlib import PurePosixPath

from jinja2.sandbox import SandboxedEnvironment

from kiln_core.models import RuntimeImage
from kiln_core.schemas import BuildSpec

# Build directory inside the builder stage
BUILDER_WORKDIR = "/build"

RUNTIME_TEMPLATE = """\
# {{ name }} runtime image (assembled by kiln)
# Build context: this directory
FROM {{ base_image }}
COPY rootfs/ /
{% for key, value in env.items() %}
ENV {{ key }}={{ value | dq }}
{% endfor %}
{% for port in exposed_ports %}
EXPOSE {{ port }}
{% endfor %}
WORKDIR {{ workdir }}
CMD {{ command | tojson_list }}
"""

RECIPE_TEMPLATE = """\
# {{ name }} build recipe (rendered by kiln)
#
# Stage 1 compiles the dependency set against a placeholder entry point so
# the layer is reused while {{ manifest_files | join(" and ") }} are unchanged.
# Stage 2 replaces the placeholder with the real source and rebuilds.

FROM {{ builder_image }} AS builder
WORKDIR {{ builder_workdir }}
COPY {{ manifest_files | join(" ") }} ./
RUN mkdir -p {{ entry_point_dir | sh }} && printf {{ placeholder | printf_arg }} > {{ entry_point | sh }}
RUN {{ build_command | tojson_list }}
RUN rm {{ entry_point | sh }}
COPY . .
RUN touch {{ entry_point | sh }}
RUN {{ build_command | tojson_list }}

FROM {{ base_image }}
RUN apt-get update \\
    && apt-get install -y --no-install-recommends ca-certificates \\
    && rm -rf /var/lib/apt/lists/*
COPY --from=builder {{ builder_artifact }} {{ executable }}
{% for key, value in env.items() %}
ENV {{ key }}={{ value | dq }}
{% endfor %}
{% for port in exposed_ports %}
EXPOSE {{ port }}
{% endfor %}
WORKDIR {{ workdir }}
CMD {{ command | tojson_list }}
"""


def _double_quoted(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _json_list(values: list[str]) -> str:
    return json.dumps(list(values), ensure_ascii=False)


def _printf_argument(text: str) -> str:
    # printf format with escaped backslashes, percent signs and newlines
    escaped = text.replace("\\", "\\\\").replace("%", "%%").replace("\n", "\\n")
    return shlex.quote(escaped)


def _environment() -> SandboxedEnvironment:
    env = SandboxedEnvironment(trim_blocks=True, lstrip_blocks=True, keep_trailing_newline=True)
    env.filters["dq"] = _double_quoted
    env.filters["tojson_list"] = _json_list
    env.filters["printf_arg"] = _printf_argument
    env.filters["sh"] = shlex.quote
    return env


def render_runtime_containerfile(image: RuntimeImage, *, base_image: str | None = None) -> str:
    """Render the runtime stage for an assembled image directory."""
    return (
        _environment()
        .from_string(RUNTIME_TEMPLATE)
        .render(
            name=image.name,
            base_image=base_image or image.base_image,
            env=image.env,
            exposed_ports=image.exposed_ports,
            workdir=image.workdir,
            command=image.command,
        )
    )


def render_containerfile(spec: BuildSpec) -> str:
    """Render the complete two-stage build recipe for a build specification.

    Example:
        >>> print(render_containerfile(BuildSpec(name="htmlwordpress-api")))
        # htmlwordpress-api build recipe (rendered by kiln)
        ...
    """
    entry_point = spec.application.entry_point
    executable = spec.runtime.install_path(spec.name)
    return (
        _environment()
        .from_string(RECIPE_TEMPLATE)
        .render(
            name=spec.name,
            builder_image=spec.toolchain.builder_image,
            builder_workdir=BUILDER_WORKDIR,
            manifest_files=list(spec.dependencies.files),
            entry_point=entry_point,
            entry_point_dir=str(PurePosixPath(entry_point).parent),
            placeholder=spec.dependencies.placeholder,
            build_command=spec.toolchain.build_command,
            builder_artifact=str(PurePosixPath(BUILDER_WORKDIR) / spec.artifact_path),
            base_image=spec.runtime.base_image,
            executable=executable,
            env=spec.runtime.image_env(),
            exposed_ports=spec.runtime.expose,
            workdir=spec.runtime.workdir,
            command=[executable],
        )
    )
