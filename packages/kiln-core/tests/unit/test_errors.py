"""Unit tests for the kiln exception hierarchy."""

from __future__ import annotations

import pytest

from kiln_core.errors import (
    BuildValueError,
    CompilationError,
    ConfigurationError,
    HandoffError,
    KilnError,
    PreflightError,
    SchemaValidationError,
    SecretLeakError,
)
from kiln_core.observability import register_redaction
from kiln_core.preflight.models import PreflightResult
from kiln_core.security import ValueFingerprint


class TestConfigurationError:
    """Tests for ConfigurationError."""

    def test_context_in_message(self) -> None:
        """File, line and field are appended to the message."""
        error = ConfigurationError(
            "Invalid value",
            file_path="kiln.yaml",
            line_number=4,
            field_path="build.artifact.path",
        )
        assert str(error) == (
            "Invalid value (in kiln.yaml, line 4, field 'build.artifact.path')"
        )
        assert error.field_path == "build.artifact.path"

    def test_plain_message(self) -> None:
        """Without context the message is unchanged."""
        assert str(ConfigurationError("Invalid value")) == "Invalid value"


class TestBuildValueError:
    """Tests for BuildValueError."""

    def test_names_variable(self) -> None:
        """The message names where the value was expected."""
        error = BuildValueError("DATABASE_URL", "CI_DATABASE_URL", reason="missing")
        assert error.user_message == (
            "Build-time value 'DATABASE_URL' is missing. "
            "Expected in environment variable: CI_DATABASE_URL"
        )
        assert isinstance(error, ConfigurationError)

    def test_hint(self) -> None:
        """A hint is appended in parentheses."""
        error = BuildValueError("DATABASE_URL", "DATABASE_URL", "malformed", hint="no host")
        assert error.user_message.endswith("(no host)")


class TestCompilationErrors:
    """Tests for CompilationError and SchemaValidationError."""

    def test_schema_validation_is_compilation(self) -> None:
        """Schema mismatches are a kind of compilation failure."""
        error = SchemaValidationError(
            "mismatch", exit_code=101, diagnostics="d", matched_pattern="p"
        )
        assert isinstance(error, CompilationError)
        assert (error.exit_code, error.diagnostics, error.matched_pattern) == (101, "d", "p")


class TestInternalDetails:
    """Tests for internal detail logging."""

    def test_internal_details_logged_redacted(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Internal details are logged with registered values masked."""
        register_redaction(ValueFingerprint.of("s3cret-pw"))
        KilnError("Build failed", internal_details="connect to kiln:s3cret-pw@db failed")

        captured = capsys.readouterr()
        assert "kiln_error" in captured.out
        assert "s3cret-pw" not in captured.out
        assert "**********" in captured.out

    def test_not_logged_without_details(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Nothing is logged without internal details."""
        HandoffError("missing", artifact_name="app", expected_path="target/release/app")
        assert "kiln_error" not in capsys.readouterr().out


class TestSecretLeakError:
    """Tests for SecretLeakError."""

    def test_locations(self) -> None:
        """Locations are listed in the message."""
        error = SecretLeakError(["rootfs/usr/local/bin/app", "handoff/artifact.json"])
        assert "rootfs/usr/local/bin/app, handoff/artifact.json" in error.user_message
        assert error.user_message.endswith("The image was discarded.")


class TestPreflightError:
    """Tests for PreflightError."""

    def test_wraps_cause(self) -> None:
        """The cause's message becomes the preflight error's message."""
        cause = ConfigurationError("Base image 'ubuntu' is not pinned")
        error = PreflightError(PreflightResult(), cause)
        assert error.user_message == cause.user_message
        assert error.cause is cause
