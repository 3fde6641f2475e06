"""kiln init command - Scaffold kiln.yaml for a project."""

from __future__ import annotations

import re
from pathlib import Path

import click

from kiln_cli.output import error, info, success, warning

KILN_YAML_TEMPLATE = """\
# {{ name }} - kiln pipeline configuration
# yaml-language-server: $schema=./schemas/kiln.schema.json
#
# The build-time value is never written here. Export it in the shell that
# runs `kiln build`:
#
#   export {{ value_name }}=postgres://...@localhost:5432/{{ name }}

name: {{ name }}
version: "0.1.0"

build:
  toolchain:
    name: rust
    version: "{{ toolchain_version }}"
    image: rust:{{ toolchain_version }}
    backend: {{ backend }}
    command: [cargo, build, --release]
  context:
    path: .
    exclude: [target, .git, .kiln]
  config_value:
    name: {{ value_name }}
  artifact:
    name: {{ artifact }}

runtime:
  base_image: ubuntu:22.04
  workdir: /usr/local/bin

validation:
  mode: {{ mode }}
{% if mode == "fixture" %}
  fixture: {{ fixture }}
{% endif %}
"""

FIXTURE_TEMPLATE = """\
# Schema fixture served to the compiler instead of a live database.
dialect: postgres
tables:
  users:
    columns:
      id: integer
      name: {type: text, nullable: false}
"""

KILNIGNORE_TEMPLATE = """\
# Paths excluded from the build context
target
.git
.kiln
*.log
.env
"""


@click.command()
@click.option(
    "-n",
    "--name",
    "name",
    type=str,
    default=None,
    help="Pipeline name [default: current directory name]",
)
@click.option(
    "-a",
    "--artifact",
    "artifact",
    type=str,
    default=None,
    help="Artifact (binary) name [default: pipeline name]",
)
@click.option(
    "--mode",
    type=click.Choice(["live", "fixture"]),
    default="live",
    help="Schema validation mode [default: live]",
)
@click.option(
    "--backend",
    type=click.Choice(["container", "local"]),
    default="container",
    help="Build backend [default: container]",
)
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Overwrite existing files",
)
def init(name: str | None, artifact: str | None, mode: str, backend: str, force: bool) -> None:
    """Scaffold kiln.yaml for a project.

    Creates kiln.yaml and a .kilnignore. In fixture mode a sample schema
    fixture is created as well.

    Examples:

        kiln init

        kiln init --name user-service --mode fixture

        kiln init --backend local --force
    """
    if name is None:
        name = Path.cwd().name
    artifact = artifact or name

    kiln_yaml_path = Path("kiln.yaml")
    if kiln_yaml_path.exists() and not force:
        error("kiln.yaml already exists.")
        error("Use --force to overwrite.")
        raise SystemExit(1)

    from kiln_core.schemas.references import NAME_PATTERN

    for label, value in (("pipeline", name), ("artifact", artifact)):
        if not re.match(NAME_PATTERN, value):
            error(f"Invalid {label} name: {value}")
            error("Names must start with a letter (letters, digits, '.', '-', '_' allowed).")
            raise SystemExit(1)

    from jinja2.sandbox import SandboxedEnvironment

    env = SandboxedEnvironment(trim_blocks=True, lstrip_blocks=True)
    fixture = "schema/fixture.yaml"
    content = env.from_string(KILN_YAML_TEMPLATE).render(
        name=name,
        artifact=artifact,
        mode=mode,
        backend=backend,
        fixture=fixture,
        value_name="DATABASE_URL",
        toolchain_version="1.88",
    )

    try:
        kiln_yaml_path.write_text(content)
        success("Created kiln.yaml")

        ignore_path = Path(".kilnignore")
        if ignore_path.exists():
            warning(".kilnignore already exists, leaving it unchanged")
        else:
            ignore_path.write_text(KILNIGNORE_TEMPLATE)
            success("Created .kilnignore")

        if mode == "fixture":
            fixture_path = Path(fixture)
            if fixture_path.exists() and not force:
                warning(f"{fixture} already exists, leaving it unchanged")
            else:
                fixture_path.parent.mkdir(parents=True, exist_ok=True)
                fixture_path.write_text(FIXTURE_TEMPLATE)
                success(f"Created {fixture}")

    except PermissionError:
        error("Permission denied: cannot write to the current directory")
        raise SystemExit(2) from None

    info("")
    info("Next steps:")
    info("  1. Review kiln.yaml")
    if mode == "live":
        info("  2. export DATABASE_URL=postgres://...")
    info("  3. kiln build")
