"""Preflight check runner.

Orchestrates execution of the pipeline's preflight checks.
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence

import structlog

from kiln_core.build.toolchain import Toolchain
from kiln_core.observability import span
from kiln_core.oracle.base import SchemaOracle
from kiln_core.preflight.checks import (
    BaseCheck,
    BaseImageCheck,
    BuildValueCheck,
    ToolchainCheck,
    ValidationResourceCheck,
)
from kiln_core.preflight.models import CheckResult, CheckStatus, PreflightResult
from kiln_core.runtime.docker import DockerImageBuilder
from kiln_core.schemas import BuildBackend, PipelineSpec, ValidationMode

logger = structlog.get_logger(__name__)


def build_checks(
    spec: PipelineSpec,
    toolchain: Toolchain,
    oracle: SchemaOracle,
    environ: Mapping[str, str],
    *,
    builder: DockerImageBuilder | None = None,
) -> list[BaseCheck]:
    """Build the checks for a pipeline, in execution order.

    The build-time value is checked first: it is the cheapest check and
    the live validation probe needs it.

    Args:
        spec: Pipeline spec.
        toolchain: Selected toolchain backend.
        oracle: Selected schema oracle.
        environ: Invoker environment holding the build-time value.
        builder: Docker image builder when a tagged image will be built.
    """
    return [
        BuildValueCheck(
            spec.build.config_value,
            environ,
            required=oracle.requires_value,
        ),
        ToolchainCheck(toolchain),
        ValidationResourceCheck(oracle, timeout_seconds=spec.validation.probe_timeout_seconds),
        BaseImageCheck(spec.runtime.base_image, builder=builder),
    ]


class PreflightRunner:
    """Runs preflight checks and aggregates results.

    Attributes:
        checks: Checks to run, in order
        fail_fast: Stop on first failure
        pipeline: Pipeline name recorded on the result
        backend: Build backend the checks are for
        validation_mode: Validation mode the checks are for

    Example:
        >>> runner = PreflightRunner(
        ...     build_checks(spec, toolchain, oracle, os.environ),
        ...     pipeline=spec.name,
        ...     backend=toolchain.backend,
        ... )
        >>> runner.run().exit_code
        0
    """

    def __init__(
        self,
        checks: Sequence[BaseCheck],
        fail_fast: bool = False,
        *,
        pipeline: str | None = None,
        backend: BuildBackend | None = None,
        validation_mode: ValidationMode | None = None,
    ) -> None:
        self.checks = list(checks)
        self.fail_fast = fail_fast
        self.pipeline = pipeline
        self.backend = backend
        self.validation_mode = validation_mode
        self._log = logger.bind(component="preflight_runner", pipeline=pipeline)

    def run(self) -> PreflightResult:
        """Run the checks, stopping at the first failure when fail-fast."""
        start_time = time.monotonic()
        results: list[CheckResult] = []
        not_run: list[str] = []

        with span("preflight", attributes={"checks": len(self.checks)}, log_end=False):
            for index, check in enumerate(self.checks):
                result = check.run()
                results.append(result)

                if self.fail_fast and result.failed:
                    not_run = [c.name for c in self.checks[index + 1 :]]
                    self._log.warning(
                        "fail_fast_triggered",
                        check=check.name,
                        exit_code=result.exit_code,
                        not_run=not_run,
                    )
                    break

        total_duration_ms = int((time.monotonic() - start_time) * 1000)
        overall_status = self._determine_overall_status(results)

        self._log.info(
            "preflight_completed",
            overall_status=overall_status.value,
            total_duration_ms=total_duration_ms,
            passed=sum(1 for r in results if r.passed),
            failed=sum(1 for r in results if r.failed),
        )

        return PreflightResult(
            pipeline=self.pipeline,
            backend=self.backend,
            validation_mode=self.validation_mode,
            fail_fast=self.fail_fast,
            checks=results,
            not_run=not_run,
            overall_status=overall_status,
            total_duration_ms=total_duration_ms,
        )

    def _determine_overall_status(self, results: list[CheckResult]) -> CheckStatus:
        """ERROR outranks FAILED; nothing ran, or nothing applied, is SKIPPED."""
        statuses = {r.status for r in results}
        for status in (CheckStatus.ERROR, CheckStatus.FAILED, CheckStatus.PASSED):
            if status in statuses:
                return status
        return CheckStatus.SKIPPED
