"""CLI entry point for kiln.

Defines the main CLI group with lazily loaded subcommands so that
``kiln --help`` stays fast.
"""

from __future__ import annotations

import importlib
from typing import Any

import click
import rich_click as rclick

from kiln_cli import __version__
from kiln_cli.output import set_no_color

rclick.rich_click.TEXT_MARKUP = "markdown"
rclick.rich_click.SHOW_ARGUMENTS = True
rclick.rich_click.GROUP_ARGUMENTS_OPTIONS = True


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
    "preflight": "kiln_cli.commands.preflight.preflight",
    "build": "kiln_cli.commands.build.build",
    "render": "kiln_cli.commands.render.render",
    "verify": "kiln_cli.commands.verify.verify",
    "run": "kiln_cli.commands.run.run",
    "schema": "kiln_cli.commands.schema.schema",
}


def _remember_log_format(ctx: click.Context, param: click.Parameter, value: str) -> str:
    ctx.meta["kiln.log_format"] = value
    return value


def _configure_logging(ctx: click.Context, param: click.Parameter, value: str) -> str:
    from kiln_core.observability import configure_logging

    json_format = ctx.meta.get("kiln.log_format") == "json"
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
    "--log-format",
    type=click.Choice(["console", "json"]),
    default="console",
    envvar="KILN_LOG_FORMAT",
    is_eager=True,
    expose_value=False,
    callback=_remember_log_format,
    help="Log format on stderr [default: console]",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    envvar="KILN_LOG_LEVEL",
    expose_value=False,
    callback=_configure_logging,
    help="Log level [default: WARNING]",
)
def cli() -> None:
    """kiln - staged builds that keep build-time secrets out of runtime images.

    The build stage compiles your source with a build-time database
    connection descriptor; the runtime stage starts from a minimal base
    image and receives only the compiled artifact.

    **Getting Started:**

    - `kiln init` - Create kiln.yaml
    - `kiln validate` - Validate your configuration
    - `kiln preflight` - Check toolchain, value and validation resource
    - `kiln build` - Run the build and runtime stages
    - `kiln render` - Write an equivalent two-stage Dockerfile
    """
    pass


if __name__ == "__main__":
    cli()
