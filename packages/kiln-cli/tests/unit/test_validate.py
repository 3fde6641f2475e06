"""Unit tests for the validate command."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml
from click.testing import CliRunner

from kiln_cli.main import cli


class TestValidateCommand:
    """Tests for kiln validate."""

    def test_valid(
        self,
        isolated_runner: CliRunner,
        create_project: Callable[..., Path],
        pipeline_data: dict[str, Any],
    ) -> None:
        """A valid file prints a summary."""
        create_project(pipeline_data)

        result = isolated_runner.invoke(cli, ["validate"])

        assert result.exit_code == 0, result.output
        assert "Configuration valid" in result.output
        assert "target/release/app -> /usr/local/bin/app" in result.output
        assert "Validation: live" in result.output

    def test_explicit_file(
        self,
        isolated_runner: CliRunner,
        pipeline_data: dict[str, Any],
    ) -> None:
        Path("services").mkdir()
        Path("services/kiln.yaml").write_text(yaml.safe_dump(pipeline_data))

        result = isolated_runner.invoke(cli, ["validate", "--file", "services/kiln.yaml"])
        assert result.exit_code == 0

    def test_not_found(self, isolated_runner: CliRunner) -> None:
        """No kiln.yaml anywhere is an environment error."""
        result = isolated_runner.invoke(cli, ["validate"])

        assert result.exit_code == 2
        assert "kiln init" in result.output

    def test_explicit_file_missing(self, isolated_runner: CliRunner) -> None:
        result = isolated_runner.invoke(cli, ["validate", "-f", "nope.yaml"])
        assert result.exit_code == 2
        assert "File not found: nope.yaml" in result.output

    def test_invalid_yaml(self, isolated_runner: CliRunner) -> None:
        Path("kiln.yaml").write_text("name: [unclosed\n")

        result = isolated_runner.invoke(cli, ["validate"])

        assert result.exit_code == 1
        assert "Invalid YAML" in result.output

    def test_schema_violation(
        self,
        isolated_runner: CliRunner,
        pipeline_data: dict[str, Any],
    ) -> None:
        """Field errors name the offending field."""
        pipeline_data["runtime"]["base_image"] = "ubuntu"
        Path("kiln.yaml").write_text(yaml.safe_dump(pipeline_data))

        result = isolated_runner.invoke(cli, ["validate"])

        assert result.exit_code == 1
        assert "runtime.base_image" in result.output

    def test_embedded_credential(
        self,
        isolated_runner: CliRunner,
        pipeline_data: dict[str, Any],
        database_url: str,
    ) -> None:
        """A pasted connection descriptor is rejected without echoing it."""
        content = yaml.safe_dump(pipeline_data) + f"# {database_url}\n"
        Path("kiln.yaml").write_text(content)

        result = isolated_runner.invoke(cli, ["validate"])

        assert result.exit_code == 1
        assert "potential credential" in result.output
        assert "s3cret-pw" not in result.output
