"""Preflight result models.

A preflight result answers one question before anything compiles: can
this pipeline build here? Each failed check carries the exit code a build
would stop with and what to do about it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from kiln_core.exit_codes import EXIT_SUCCESS, EXIT_USER_ERROR
from kiln_core.schemas import BuildBackend, ValidationMode


class CheckStatus(str, Enum):
    """Outcome of one preflight check.

    SKIPPED means the check did not apply (e.g. no build-time value in
    fixture mode). ERROR means the check itself broke, as opposed to
    finding a problem.
    """

    PASSED = "passed"
    SKIPPED = "skipped"
    FAILED = "failed"
    ERROR = "error"


class CheckResult(BaseModel):
    """Result of a single preflight check.

    Attributes:
        name: Check name ("build_value", "toolchain", "validation_resource",
            "base_image").
        status: Check outcome.
        message: What the check found, with the build-time value masked.
        details: Names, hosts and references; never the build-time value.
        error_kind: Error class behind a failure.
        exit_code: Exit code a build stops with on this failure.
        remedy: What to change before building again.
        duration_ms: Check duration in milliseconds.

    Example:
        >>> CheckResult(
        ...     name="toolchain",
        ...     status=CheckStatus.FAILED,
        ...     message="docker CLI not found on PATH",
        ...     error_kind="EnvironmentUnavailableError",
        ...     exit_code=2,
        ...     remedy="Install docker, or build with --backend local",
        ... ).failed
        True
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    status: CheckStatus
    message: str = ""
    details: dict[str, Any] = Field(default_factory=dict)
    error_kind: str | None = None
    exit_code: int | None = Field(default=None, ge=1)
    remedy: str | None = None
    duration_ms: int = Field(default=0, ge=0)

    @property
    def passed(self) -> bool:
        return self.status in (CheckStatus.PASSED, CheckStatus.SKIPPED)

    @property
    def failed(self) -> bool:
        return self.status in (CheckStatus.FAILED, CheckStatus.ERROR)


class PreflightResult(BaseModel):
    """All preflight check results for one pipeline.

    Attributes:
        pipeline: Pipeline name.
        backend: Build backend the checks ran for.
        validation_mode: How the compiler validates queries (live or fixture).
        fail_fast: Whether checks stopped at the first failure.
        checks: Results of the checks that ran, in order.
        not_run: Checks skipped because an earlier one failed (fail-fast).
        overall_status: Aggregate status.
        total_duration_ms: Total duration in milliseconds.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    pipeline: str | None = None
    backend: BuildBackend | None = None
    validation_mode: ValidationMode | None = None
    fail_fast: bool = False
    checks: list[CheckResult] = Field(default_factory=list)
    not_run: list[str] = Field(default_factory=list)
    overall_status: CheckStatus = CheckStatus.PASSED
    total_duration_ms: int = Field(default=0, ge=0)

    @property
    def passed(self) -> bool:
        return self.overall_status in (CheckStatus.PASSED, CheckStatus.SKIPPED)

    @property
    def failed(self) -> bool:
        return self.overall_status in (CheckStatus.FAILED, CheckStatus.ERROR)

    @property
    def passed_count(self) -> int:
        return sum(1 for c in self.checks if c.passed)

    @property
    def failed_count(self) -> int:
        return sum(1 for c in self.checks if c.failed)

    @property
    def first_failure(self) -> CheckResult | None:
        """The first failed check, in execution order."""
        return next((c for c in self.checks if c.failed), None)

    @property
    def exit_code(self) -> int:
        """Exit code of the first failure, or 0 when the build can go ahead."""
        failure = self.first_failure
        if failure is None:
            return EXIT_SUCCESS
        return failure.exit_code or EXIT_USER_ERROR
