"""Unit tests for the init command."""

from __future__ import annotations

from pathlib import Path

import yaml
from click.testing import CliRunner

from kiln_cli.main import cli
from kiln_core.schemas import PipelineSpec, ValidationMode


class TestInitCommand:
    """Tests for kiln init."""

    def test_creates_valid_kiln_yaml(self, isolated_runner: CliRunner) -> None:
        """The generated kiln.yaml validates against PipelineSpec."""
        result = isolated_runner.invoke(cli, ["init", "--name", "user-service"])

        assert result.exit_code == 0, result.output
        assert "Created kiln.yaml" in result.output
        spec = PipelineSpec.from_yaml(Path("kiln.yaml"))
        assert spec.name == "user-service"
        assert spec.build.artifact.name == "user-service"
        assert spec.build.toolchain.image == "rust:1.88"
        assert spec.validation.mode == ValidationMode.LIVE
        assert Path(".kilnignore").exists()
        assert "export DATABASE_URL" in result.output

    def test_artifact_name(self, isolated_runner: CliRunner) -> None:
        """--artifact names the binary separately from the pipeline."""
        result = isolated_runner.invoke(cli, ["init", "--name", "svc", "--artifact", "svc-bin"])

        assert result.exit_code == 0
        data = yaml.safe_load(Path("kiln.yaml").read_text())
        assert data["name"] == "svc"
        assert data["build"]["artifact"]["name"] == "svc-bin"

    def test_default_name_is_directory(self, isolated_runner: CliRunner) -> None:
        """Without --name the current directory name is used."""
        result = isolated_runner.invoke(cli, ["init"])

        assert result.exit_code == 0, result.output
        data = yaml.safe_load(Path("kiln.yaml").read_text())
        assert data["name"] == Path.cwd().name

    def test_fixture_mode(self, isolated_runner: CliRunner) -> None:
        """Fixture mode also writes a schema fixture."""
        result = isolated_runner.invoke(
            cli, ["init", "--name", "app", "--mode", "fixture", "--backend", "local"]
        )

        assert result.exit_code == 0, result.output
        spec = PipelineSpec.from_yaml(Path("kiln.yaml"))
        assert spec.validation.mode == ValidationMode.FIXTURE
        assert spec.validation.fixture == "schema/fixture.yaml"
        assert spec.build.toolchain.backend.value == "local"
        assert Path("schema/fixture.yaml").exists()
        assert "export DATABASE_URL" not in result.output

    def test_refuses_to_overwrite(self, isolated_runner: CliRunner) -> None:
        """An existing kiln.yaml is kept unless --force is given."""
        Path("kiln.yaml").write_text("name: keep\n")

        result = isolated_runner.invoke(cli, ["init", "--name", "app"])

        assert result.exit_code == 1
        assert "already exists" in result.output
        assert Path("kiln.yaml").read_text() == "name: keep\n"

    def test_force_overwrites(self, isolated_runner: CliRunner) -> None:
        Path("kiln.yaml").write_text("name: keep\n")
        Path(".kilnignore").write_text("custom\n")

        result = isolated_runner.invoke(cli, ["init", "--name", "app", "--force"])

        assert result.exit_code == 0
        assert "name: app" in Path("kiln.yaml").read_text()
        assert Path(".kilnignore").read_text() == "custom\n"
        assert "leaving it unchanged" in result.output

    def test_invalid_name(self, isolated_runner: CliRunner) -> None:
        """Names must be usable as file names."""
        result = isolated_runner.invoke(cli, ["init", "--name", "1bad/name"])

        assert result.exit_code == 1
        assert "Invalid pipeline name" in result.output
        assert not Path("kiln.yaml").exists()

    def test_generated_file_has_no_credentials(self, isolated_runner: CliRunner) -> None:
        """The generated file passes the credential check used on load."""
        from kiln_core.security import detect_credentials_in_file

        isolated_runner.invoke(cli, ["init", "--name", "app"])
        assert detect_credentials_in_file(Path("kiln.yaml")) == []
