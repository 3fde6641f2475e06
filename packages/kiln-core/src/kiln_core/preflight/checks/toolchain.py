"""Toolchain availability check."""

from __future__ import annotations

from kiln_core.build.toolchain import Toolchain
from kiln_core.errors import EnvironmentUnavailableError, KilnError
from kiln_core.exit_codes import EXIT_ENVIRONMENT_ERROR
from kiln_core.preflight.checks.base import BaseCheck
from kiln_core.preflight.models import CheckResult, CheckStatus
from kiln_core.schemas import BuildBackend


class ToolchainCheck(BaseCheck):
    """Verifies the pinned toolchain can run.

    Container backend: docker is installed and the toolchain image is
    present or pullable. Local backend: the compiler is on PATH and its
    version probe reports the pinned version.
    """

    error_exit_code = EXIT_ENVIRONMENT_ERROR

    def __init__(self, toolchain: Toolchain) -> None:
        super().__init__(name="toolchain", timeout_seconds=60)
        self.toolchain = toolchain

    def _execute(self) -> CheckResult:
        resolved = self.toolchain.ensure_available()
        return self._make_result(
            status=CheckStatus.PASSED,
            message=f"{self.toolchain.backend.value}: {resolved.splitlines()[0]}",
            details={
                "backend": self.toolchain.backend.value,
                "reference": self.toolchain.reference,
            },
        )

    def remedy(self, error: KilnError) -> str | None:
        if not isinstance(error, EnvironmentUnavailableError):
            return None
        if error.component == "docker":
            return "Install docker and start the daemon, or build with --backend local"
        if self.toolchain.backend == BuildBackend.CONTAINER:
            return f"Check registry access for {self.toolchain.reference}"
        return (
            f"Install {self.toolchain.reference} on PATH, "
            "or build with --backend container"
        )
