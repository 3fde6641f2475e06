"""End-to-end CLI workflow with the local backend.

Runs validate, render, build, verify and run against one project, the way
a developer would from a shell.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from kiln_cli.main import cli

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(sys.platform == "win32", reason="requires a POSIX shell"),
]


def test_live_workflow(
    isolated_runner: CliRunner,
    create_project: Callable[..., Path],
    pipeline_data: dict[str, Any],
    database_url: str,
    capfd: pytest.CaptureFixture[str],
) -> None:
    """validate -> render -> build -> verify -> run."""
    create_project(pipeline_data)
    env = {"DATABASE_URL": database_url}

    validated = isolated_runner.invoke(cli, ["validate"])
    assert validated.exit_code == 0, validated.output

    rendered = isolated_runner.invoke(cli, ["render", "--output", "rendered"])
    assert rendered.exit_code == 0, rendered.output
    assert database_url not in Path("rendered/Dockerfile").read_text()

    built = isolated_runner.invoke(cli, ["build", "--format", "json"], env=env)
    assert built.exit_code == 0, built.output
    summary = json.loads(built.stdout)
    assert summary["leak_scan"] == "clean"

    verified = isolated_runner.invoke(cli, ["verify"], env=env)
    assert verified.exit_code == 0, verified.output

    capfd.readouterr()
    ran = isolated_runner.invoke(cli, ["run"])
    assert ran.exit_code == 7
    assert "hello from app" in capfd.readouterr().out

    # Nothing written by the pipeline holds the value
    for path in Path(".kiln").rglob("*"):
        if path.is_file():
            assert b"s3cret-pw" not in path.read_bytes(), path


def test_fixture_workflow_without_value(
    isolated_runner: CliRunner,
    create_project: Callable[..., Path],
    pipeline_data: dict[str, Any],
) -> None:
    """Fixture mode builds with no build-time value in the environment."""
    pipeline_data["validation"] = {"mode": "fixture", "fixture": "schema/fixture.yaml"}
    create_project(pipeline_data)

    built = isolated_runner.invoke(
        cli, ["build", "--format", "json"], env={"DATABASE_URL": None}
    )

    assert built.exit_code == 0, built.output
    summary = json.loads(built.stdout)
    assert summary["leak_scan"] == "skipped"
    assert summary["artifact"]["validation_mode"] == "fixture"

    verified = isolated_runner.invoke(cli, ["verify"], env={"DATABASE_URL": None})
    assert verified.exit_code == 0
    assert "leak scan skipped" in verified.output
