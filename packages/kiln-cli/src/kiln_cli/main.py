"""CLI entry point for kiln.

This module defines the main CLI group using the LazyGroup pattern so
that ``kiln --help`` does not import the build pipeline.
"""

from __future__ import annotations

import importlib
from typing import Any

import click
import rich_click as rclick

from kiln_cli import __version__
from kiln_cli.output import set_no_color

# Configure rich-click for better help formatting
rclick.rich_click.TEXT_MARKUP = "markdown"
rclick.rich_click.SHOW_ARGUMENTS = True
rclick.rich_click.GROUP_ARGUMENTS_OPTIONS = True

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LazyGroup(rclick.RichGroup):
    """Click group that loads commands lazily.

    Commands are only imported when actually invoked, not at import time.

    Attributes:
        lazy_subcommands: Mapping of command names to module paths.
    """

    def __init__(
        self,
        *args: Any,
        lazy_subcommands: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize LazyGroup.

        Args:
            *args: Positional arguments for parent class.
            lazy_subcommands: Mapping of command name to module path.
                Format: {"build": "kiln_cli.commands.build.build"}
            **kwargs: Keyword arguments for parent class.
        """
        super().__init__(*args, **kwargs)
        self.lazy_subcommands: dict[str, str] = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        commands = set(super().list_commands(ctx))
        commands.update(self.lazy_subcommands.keys())
        return sorted(commands)

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        cmd = super().get_command(ctx, cmd_name)  # type: ignore[arg-type]
        if cmd is not None:
            return cmd

        if cmd_name not in self.lazy_subcommands:
            return None

        module_path = self.lazy_subcommands[cmd_name]
        module_name, attr_name = module_path.rsplit(".", 1)
        mod = importlib.import_module(module_name)
        return getattr(mod, attr_name)  # type: ignore[no-any-return]


LAZY_COMMANDS = {
    "init": "kiln_cli.commands.init.init",
    "validate": "kiln_cli.commands.validate.validate",
    "build": "kiln_cli.commands.build.build",
    "preflight": "kiln_cli.commands.preflight.preflight",
    "inspect": "kiln_cli.commands.inspect.inspect",
    "run": "kiln_cli.commands.run.run",
    "cache": "kiln_cli.commands.cache.cache",
    "render": "kiln_cli.commands.render.render",
    "schema": "kiln_cli.commands.schema.schema",
}


def _configure_logging(ctx: click.Context, param: click.Parameter, value: str) -> str:
    """Configure structlog once the log level is known."""
    from kiln_core.observability import configure_logging

    json_format = bool(ctx.params.get("log_json", False))
    configure_logging(log_level=value, json_format=json_format)
    return value


@click.command(cls=LazyGroup, lazy_subcommands=LAZY_COMMANDS)
@click.version_option(version=__version__, prog_name="kiln")
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable colored output.",
    is_eager=True,
    expose_value=False,
    callback=lambda ctx, param, value: set_no_color(value) if value else None,
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    is_eager=True,
    help="Emit log records as JSON lines.",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    envvar="KILN_LOG_LEVEL",
    show_default=True,
    callback=_configure_logging,
    help="Log level for pipeline events (stderr).",
)
def cli(log_json: bool, log_level: str) -> None:
    """kiln - dependency-caching builds and minimal runtime images.

    Compiles a project's dependencies once per manifest, compiles the
    application against them, and assembles an image holding only the
    executable and a trusted CA bundle.

    **Getting Started:**

    - `kiln init` - Create kiln.yaml
    - `kiln preflight` - Check the toolchain, manifest, cache and CA bundle
    - `kiln build` - Run the three build stages
    - `kiln run --dry-run` - Show the resolved launch configuration
    """


if __name__ == "__main__":
    cli()
