"""Base class for preflight checks."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any

import structlog

from kiln_core.errors import KilnError
from kiln_core.exit_codes import EXIT_USER_ERROR, exit_code_for
from kiln_core.observability import redact
from kiln_core.preflight.models import CheckResult, CheckStatus

logger = structlog.get_logger(__name__)


class BaseCheck(ABC):
    """Base class for preflight checks.

    Provides timing, logging and error conversion. A KilnError raised by
    ``_execute`` becomes a FAILED result carrying the exit code a build
    would stop with, and is kept on ``error`` so the pipeline runner can
    re-raise the original error kind. Anything else is an ERROR result
    with ``error_exit_code``.

    Attributes:
        name: Check name for identification
        timeout_seconds: Maximum time for check execution
        error: The kiln error behind the last failure, if any
        error_exit_code: Exit code when the check itself breaks

    Example:
        >>> class MyCheck(BaseCheck):
        ...     def _execute(self) -> CheckResult:
        ...         return self._make_result(CheckStatus.PASSED, "ok")
    """

    error_exit_code: int = EXIT_USER_ERROR

    def __init__(self, name: str, timeout_seconds: int = 30) -> None:
        self.name = name
        self.timeout_seconds = timeout_seconds
        self.error: KilnError | None = None
        self._log = logger.bind(check=name)

    def run(self) -> CheckResult:
        """Run the check with timing and error handling."""
        start_time = time.monotonic()
        self.error = None

        self._log.info("check_started", timeout_seconds=self.timeout_seconds)

        try:
            result = self._execute()
        except KilnError as e:
            self.error = e
            exit_code = exit_code_for(e)
            self._log.warning("check_failed", error_kind=type(e).__name__, exit_code=exit_code)
            return CheckResult(
                name=self.name,
                status=CheckStatus.FAILED,
                message=redact(e.user_message),
                error_kind=type(e).__name__,
                exit_code=exit_code,
                remedy=self.remedy(e),
                duration_ms=self._elapsed(start_time),
            )
        except TimeoutError:
            self._log.error("check_timeout", timeout_seconds=self.timeout_seconds)
            return CheckResult(
                name=self.name,
                status=CheckStatus.ERROR,
                message=f"Check timed out after {self.timeout_seconds}s",
                error_kind="TimeoutError",
                exit_code=self.error_exit_code,
                duration_ms=self._elapsed(start_time),
            )
        except Exception as e:
            self._log.error("check_error", error=redact(str(e)))
            return CheckResult(
                name=self.name,
                status=CheckStatus.ERROR,
                message=f"Check failed with error: {type(e).__name__}",
                details={"error": redact(str(e))},
                error_kind=type(e).__name__,
                exit_code=self.error_exit_code,
                duration_ms=self._elapsed(start_time),
            )

        final_result = result.model_copy(update={"duration_ms": self._elapsed(start_time)})
        self._log.info(
            "check_completed",
            status=final_result.status.value,
            duration_ms=final_result.duration_ms,
        )
        return final_result

    @staticmethod
    def _elapsed(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1000)

    @abstractmethod
    def _execute(self) -> CheckResult:
        """Execute the actual check logic.

        Raises:
            KilnError: Converted to a FAILED result by run().
            Any other exception is converted to an ERROR result.
        """

    def remedy(self, error: KilnError) -> str | None:
        """What the invoker should change after ``error``, if known."""
        return None

    def _make_result(
        self,
        status: CheckStatus,
        message: str = "",
        details: dict[str, Any] | None = None,
    ) -> CheckResult:
        """Create a CheckResult with common fields."""
        return CheckResult(
            name=self.name,
            status=status,
            message=message,
            details=details or {},
        )
