"""Schema validation resource check."""

from __future__ import annotations

from kiln_core.errors import KilnError, ValidationResourceError
from kiln_core.oracle.base import SchemaOracle
from kiln_core.preflight.checks.base import BaseCheck
from kiln_core.preflight.models import CheckResult, CheckStatus
from kiln_core.schemas import ValidationMode


class ValidationResourceCheck(BaseCheck):
    """Probes the schema oracle the compiler will validate against.

    Live mode: TCP reachability of the database named by the build-time
    value. Fixture mode: the schema fixture loads and validates.
    """

    def __init__(self, oracle: SchemaOracle, timeout_seconds: int = 10) -> None:
        super().__init__(name="validation_resource", timeout_seconds=timeout_seconds)
        self.oracle = oracle

    def _execute(self) -> CheckResult:
        description = self.oracle.probe()
        return self._make_result(
            status=CheckStatus.PASSED,
            message=description,
            details={"mode": self.oracle.mode.value},
        )

    def remedy(self, error: KilnError) -> str | None:
        if not isinstance(error, ValidationResourceError):
            return None
        if self.oracle.mode == ValidationMode.FIXTURE:
            return "Point validation.fixture at a schema file inside the build context"
        return (
            "Start the database the build-time value names, or build offline "
            "with validation.mode: fixture"
        )
