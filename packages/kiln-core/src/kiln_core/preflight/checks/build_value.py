"""Build-time value presence and format check."""

from __future__ import annotations

from collections.abc import Mapping

from kiln_core.build.value import validate_descriptor
from kiln_core.errors import BuildValueError, KilnError
from kiln_core.preflight.checks.base import BaseCheck
from kiln_core.preflight.models import CheckResult, CheckStatus
from kiln_core.schemas import BuildValueConfig


class BuildValueCheck(BaseCheck):
    """Verifies the build-time value is present and well formed.

    Only the variable names and the descriptor's scheme and host appear
    in the result, never the descriptor itself.

    Attributes:
        config: Build-time value configuration.
        required: False in fixture mode, where a missing value is skipped.
    """

    def __init__(
        self,
        config: BuildValueConfig,
        environ: Mapping[str, str],
        *,
        required: bool = True,
    ) -> None:
        super().__init__(name="build_value", timeout_seconds=1)
        self.config = config
        self.environ = environ
        self.required = required

    def _execute(self) -> CheckResult:
        raw = self.environ.get(self.config.source_env_var, "")
        details = {"name": self.config.name, "source_env_var": self.config.source_env_var}

        if not raw:
            if not self.required:
                return self._make_result(
                    status=CheckStatus.SKIPPED,
                    message=f"{self.config.source_env_var} not set (not needed in fixture mode)",
                    details=details,
                )
            raise BuildValueError(self.config.name, self.config.source_env_var, reason="missing")

        if not self.required:
            return self._make_result(
                status=CheckStatus.PASSED,
                message=f"{self.config.source_env_var} set (not exported in fixture mode)",
                details=details,
            )

        endpoint = validate_descriptor(raw, self.config)
        return self._make_result(
            status=CheckStatus.PASSED,
            message=f"{self.config.source_env_var} is a {endpoint.scheme} descriptor",
            details={**details, "scheme": endpoint.scheme, "host": endpoint.host},
        )

    def remedy(self, error: KilnError) -> str | None:
        if not isinstance(error, BuildValueError):
            return None
        if error.reason == "missing":
            return (
                f"export {self.config.source_env_var}=<descriptor> before building, "
                "or switch to validation.mode: fixture"
            )
        schemes = " or ".join(f"{scheme}://" for scheme in self.config.schemes)
        kind = f"a {schemes} URL" if schemes else "a URL"
        host = " naming a host" if self.config.require_host else ""
        return f"Set {self.config.source_env_var} to {kind}{host}"
