"""Unit tests for pipeline result and error output."""

from __future__ import annotations

import hashlib
import io
import json
from datetime import UTC, datetime

from rich.console import Console

from kiln_core.build.models import ArtifactManifest, ToolchainRecord
from kiln_core.errors import (
    CompilationError,
    EnvironmentUnavailableError,
    PreflightError,
    SchemaValidationError,
)
from kiln_core.observability import register_redaction
from kiln_core.pipeline import PipelineResult, format_error_json, print_pipeline_result
from kiln_core.preflight.models import CheckResult, CheckStatus, PreflightResult
from kiln_core.runtime import ImageConfig
from kiln_core.schemas import BuildBackend, ValidationMode
from kiln_core.security import ValueFingerprint

SHA = hashlib.sha256(b"app").hexdigest()


def _result(docker_tag: str | None = None) -> PipelineResult:
    manifest = ArtifactManifest(
        pipeline="app",
        pipeline_version="1.0.0",
        name="app",
        build_path="target/release/app",
        sha256=SHA,
        size_bytes=3,
        toolchain=ToolchainRecord(
            name="rust", version="1.88", backend=BuildBackend.CONTAINER, reference="rust:1.88"
        ),
        source_digest=SHA,
        validation_mode=ValidationMode.LIVE,
        value_name="DATABASE_URL",
        started_at=datetime.now(UTC),
    )
    image = ImageConfig(
        name="app",
        version="1.0.0",
        base_image="ubuntu:22.04",
        workdir="/usr/local/bin",
        entrypoint=["./app"],
        artifact="app",
        artifact_path="/usr/local/bin/app",
        artifact_sha256=SHA,
    )
    return PipelineResult(
        pipeline="app",
        version="1.0.0",
        handoff_dir=".kiln/handoff",
        image_dir=".kiln/image",
        artifact=manifest,
        image=image,
        preflight=PreflightResult(),
        docker_tag=docker_tag,
    )


class TestPrintPipelineResult:
    """Tests for print_pipeline_result."""

    def test_table(self) -> None:
        """The summary shows the artifact and the image."""
        buffer = io.StringIO()
        print_pipeline_result(
            _result("app:1.0.0"), console=Console(file=buffer, width=160, no_color=True)
        )
        output = buffer.getvalue()

        assert "SUCCEEDED" in output
        assert SHA in output
        assert "rust:1.88 (container)" in output
        assert "/usr/local/bin$ ./app" in output
        assert "app:1.0.0" in output

    def test_json(self) -> None:
        """JSON output is parseable and has the manifest."""
        buffer = io.StringIO()
        print_pipeline_result(_result(), output_format="json", console=Console(file=buffer))
        data = json.loads(buffer.getvalue())

        assert data["status"] == "succeeded"
        assert data["exit_code"] == 0
        assert data["artifact"]["sha256"] == SHA
        assert data["image"]["entrypoint"] == ["./app"]
        assert data["docker_tag"] is None


class TestFormatErrorJson:
    """Tests for format_error_json."""

    def test_compilation_error(self) -> None:
        """Compiler diagnostics and exit code are included."""
        error = SchemaValidationError(
            "Schema validation failed",
            exit_code=101,
            diagnostics='relation "users" does not exist',
            matched_pattern="does not exist",
        )
        data = json.loads(format_error_json(error))

        assert data["exit_code"] == 101
        assert data["error_kind"] == "SchemaValidationError"
        assert data["diagnostics"] == 'relation "users" does not exist'

    def test_preflight_error(self) -> None:
        """A preflight failure reports its cause and the check results."""
        result = PreflightResult(
            checks=[
                CheckResult(
                    name="toolchain",
                    status=CheckStatus.FAILED,
                    message="missing",
                    exit_code=2,
                ),
            ],
            overall_status=CheckStatus.FAILED,
        )
        error = PreflightError(
            result, EnvironmentUnavailableError("missing", component="toolchain")
        )
        data = json.loads(format_error_json(error))

        assert data["exit_code"] == 2
        assert data["error_kind"] == "EnvironmentUnavailableError"
        assert data["preflight"]["counts"]["failed"] == 1
        assert data["preflight"]["exit_code"] == 2
        assert "diagnostics" not in data

    def test_message_is_redacted(self) -> None:
        """Registered values never appear in the message."""
        register_redaction(ValueFingerprint.of("hunter2-secret"))
        error = CompilationError("failed near hunter2-secret", exit_code=1)
        assert "hunter2-secret" not in format_error_json(error)

    def test_plain_exception(self) -> None:
        """Non-kiln errors use their string form."""
        data = json.loads(format_error_json(PermissionError("denied")))
        assert data == {
            "status": "failed",
            "exit_code": 2,
            "error_kind": "PermissionError",
            "message": "denied",
        }
