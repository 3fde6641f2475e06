"""Custom exception hierarchy for kiln-core.

This module defines the exception classes raised by the build pipeline:
- KilnError: Base exception for all kiln errors
- EnvironmentUnavailableError: Toolchain, docker or base image missing
- ConfigurationError / BuildValueError: Bad pipeline file or build-time value
- ValidationResourceError: Live validation resource unreachable
- CompilationError / SchemaValidationError: Compiler rejected the source
- HandoffError / SecretLeakError: Internal invariant violations
- PreflightError: A preflight check stopped the run

Design:
- User-facing messages are safe to display (no internal details)
- Technical details are logged internally via structlog
- No error is retried; every error aborts the pipeline
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from kiln_core.observability import redact

if TYPE_CHECKING:
    from kiln_core.preflight.models import PreflightResult

logger = structlog.get_logger(__name__)


class KilnError(Exception):
    """Base exception for kiln.

    All kiln exceptions inherit from this class. User-facing messages
    are safe to display; technical details are logged internally.

    Args:
        user_message: Safe message to display to the user. Should NOT contain
            build-time values, stack traces, or other internal details.
        internal_details: Optional technical details for logging. This is
            logged internally but NEVER exposed to the user.

    Example:
        >>> raise KilnError(
        ...     "Build failed",
        ...     internal_details="workspace /tmp/kiln-build-x1 vanished mid-build"
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        """Initialize KilnError with user message and optional internal details.

        Args:
            user_message: Safe message to display to the user.
            internal_details: Technical details for internal logging only.
        """
        super().__init__(user_message)
        self.user_message = user_message

        if internal_details:
            logger.error(
                "kiln_error",
                error_type=self.__class__.__name__,
                user_message=redact(user_message),
                internal_details=redact(internal_details),
            )


class ValidationError(KilnError):
    """Raised when pipeline file validation fails.

    Use this exception when:
    - kiln.yaml schema validation fails
    - Field values don't meet constraints
    - Credentials are found embedded in the pipeline file
    """

    pass


class ConfigurationError(KilnError):
    """Raised when configuration file parsing or validation fails.

    Provides file path and field context for actionable error messages.

    Attributes:
        file_path: Path to the configuration file (if known).
        field_path: Dot-separated path to the invalid field (e.g., "build.artifact.path").
        line_number: Line number in the file where error occurred (if available).

    Example:
        >>> raise ConfigurationError(
        ...     "Artifact path escapes the build context",
        ...     file_path="kiln.yaml",
        ...     field_path="build.artifact.path",
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        file_path: str | None = None,
        field_path: str | None = None,
        line_number: int | None = None,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ConfigurationError with context.

        Args:
            user_message: Safe message to display to the user.
            file_path: Path to the configuration file (optional).
            field_path: Dot-separated path to the field (optional).
            line_number: Line number in the file (optional).
            internal_details: Technical details for internal logging only.
        """
        context_parts: list[str] = []
        if file_path:
            context_parts.append(f"in {file_path}")
        if line_number:
            context_parts.append(f"line {line_number}")
        if field_path:
            context_parts.append(f"field '{field_path}'")

        if context_parts:
            full_message = f"{user_message} ({', '.join(context_parts)})"
        else:
            full_message = user_message

        super().__init__(full_message, internal_details=internal_details)

        self.file_path = file_path
        self.field_path = field_path
        self.line_number = line_number


class BuildValueError(ConfigurationError):
    """Raised when the build-time configuration value is missing or malformed.

    Always raised before any compilation attempt begins. The message names
    the expected environment variable, never the value itself.

    Attributes:
        value_name: Name the value is exported under (e.g., DATABASE_URL).
        source_env_var: Invoker environment variable the value is read from.
        reason: Short reason ("missing", "malformed").

    Example:
        >>> raise BuildValueError(
        ...     value_name="DATABASE_URL",
        ...     source_env_var="DATABASE_URL",
        ...     reason="missing",
        ... )
        # User sees: "Build-time value 'DATABASE_URL' is missing.
        #            Expected in environment variable: DATABASE_URL"
    """

    def __init__(
        self,
        value_name: str,
        source_env_var: str,
        reason: str = "missing",
        *,
        hint: str | None = None,
        internal_details: str | None = None,
    ) -> None:
        """Initialize BuildValueError.

        Args:
            value_name: Name of the build-time value.
            source_env_var: Environment variable expected to hold it.
            reason: Why the value was rejected.
            hint: Optional extra guidance appended to the message.
            internal_details: Technical details for internal logging only.
        """
        user_message = (
            f"Build-time value '{value_name}' is {reason}. "
            f"Expected in environment variable: {source_env_var}"
        )
        if hint:
            user_message = f"{user_message} ({hint})"

        super().__init__(user_message, internal_details=internal_details)

        self.value_name = value_name
        self.source_env_var = source_env_var
        self.reason = reason


class EnvironmentUnavailableError(KilnError):
    """Raised when part of the build or runtime environment is unavailable.

    Use this exception when:
    - The compiler is not on PATH (local backend)
    - The pinned toolchain version does not match
    - docker is not installed or the daemon is unreachable
    - A toolchain or base image cannot be pulled
    - A workspace or output directory cannot be removed

    Attributes:
        component: What is unavailable ("toolchain", "docker", "base_image",
            "workspace", "handoff", "image").
        reference: The pinned reference that was requested.
    """

    def __init__(
        self,
        user_message: str,
        *,
        component: str,
        reference: str | None = None,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(user_message, internal_details=internal_details)
        self.component = component
        self.reference = reference


class ValidationResourceError(KilnError):
    """Raised when the schema validation resource cannot be used.

    In live mode this means the resource named by the build-time value is
    unreachable; in fixture mode, that the schema fixture is missing or
    invalid. Either way the compiler could not complete its validation, so
    the build stops before compiling.
    """

    pass


class CompilationError(KilnError):
    """Raised when the compiler/validator exits non-zero.

    The compiler's exit code is preserved so the CLI can propagate it
    unchanged.

    Attributes:
        exit_code: The compiler process exit code.
        diagnostics: Compiler output (stderr then stdout), with build-time
            values masked.

    Example:
        >>> raise CompilationError(
        ...     "Compilation failed",
        ...     exit_code=101,
        ...     diagnostics="error[E0425]: cannot find value `x` in this scope",
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        exit_code: int,
        diagnostics: str = "",
        internal_details: str | None = None,
    ) -> None:
        super().__init__(user_message, internal_details=internal_details)
        self.exit_code = exit_code
        self.diagnostics = diagnostics


class SchemaValidationError(CompilationError):
    """Raised when compilation failed because of a live-schema mismatch.

    Distinguished from other compilation errors by matching the compiler
    diagnostics against the pipeline's schema error patterns.

    Attributes:
        matched_pattern: The pattern that classified the failure.
    """

    def __init__(
        self,
        user_message: str,
        *,
        exit_code: int,
        diagnostics: str = "",
        matched_pattern: str,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(
            user_message,
            exit_code=exit_code,
            diagnostics=diagnostics,
            internal_details=internal_details,
        )
        self.matched_pattern = matched_pattern


class HandoffError(KilnError):
    """Raised when the artifact handoff between stages is broken.

    This indicates a pipeline bug rather than a user error: the build stage
    reported success but the artifact is absent, duplicated, or does not
    match its manifest.

    Attributes:
        artifact_name: Name of the expected artifact.
        expected_path: Where the artifact was expected.
    """

    def __init__(
        self,
        user_message: str,
        *,
        artifact_name: str,
        expected_path: str,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(user_message, internal_details=internal_details)
        self.artifact_name = artifact_name
        self.expected_path = expected_path


class SecretLeakError(KilnError):
    """Raised when the build-time value is found in the runtime image.

    Attributes:
        locations: Image-relative paths of files containing the value.
    """

    def __init__(
        self,
        locations: list[str],
        *,
        internal_details: str | None = None,
    ) -> None:
        joined = ", ".join(locations) if locations else "unknown"
        user_message = (
            f"Build-time value found in runtime image: {joined}. "
            "The image was discarded."
        )
        super().__init__(user_message, internal_details=internal_details)
        self.locations = locations


class PreflightError(KilnError):
    """Raised when a preflight check stops a pipeline run.

    Wraps the error of the first failed check so callers can both display
    the preflight result and map the failure to its original error kind.

    Attributes:
        result: The preflight result (a PreflightResult).
        cause: The kiln error of the first failed check.
    """

    def __init__(self, result: PreflightResult, cause: KilnError) -> None:
        super().__init__(cause.user_message)
        self.result = result
        self.cause = cause
