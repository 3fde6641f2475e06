"""Runtime base image check."""

from __future__ import annotations

from kiln_core.errors import ConfigurationError, EnvironmentUnavailableError, KilnError
from kiln_core.exit_codes import EXIT_ENVIRONMENT_ERROR
from kiln_core.preflight.checks.base import BaseCheck
from kiln_core.preflight.models import CheckResult, CheckStatus
from kiln_core.runtime.docker import DockerImageBuilder
from kiln_core.schemas import is_pinned_reference


class BaseImageCheck(BaseCheck):
    """Verifies the runtime base image is pinned.

    When a tagged container image will be built, also verifies docker can
    use the base image.
    """

    error_exit_code = EXIT_ENVIRONMENT_ERROR

    def __init__(
        self,
        base_image: str,
        *,
        builder: DockerImageBuilder | None = None,
    ) -> None:
        super().__init__(name="base_image", timeout_seconds=60)
        self.base_image = base_image
        self.builder = builder

    def _execute(self) -> CheckResult:
        if not is_pinned_reference(self.base_image):
            raise ConfigurationError(
                f"Base image '{self.base_image}' is not pinned",
                field_path="runtime.base_image",
            )
        if self.builder is None:
            return self._make_result(
                status=CheckStatus.PASSED,
                message=f"{self.base_image} (pinned)",
            )

        self.builder.ensure_available(self.base_image)
        return self._make_result(
            status=CheckStatus.PASSED,
            message=f"{self.base_image} available",
        )

    def remedy(self, error: KilnError) -> str | None:
        if isinstance(error, ConfigurationError):
            return "Pin runtime.base_image to an explicit tag (not latest) or a sha256 digest"
        if isinstance(error, EnvironmentUnavailableError) and error.component == "docker":
            return "Install docker and start the daemon, or build without --tag"
        if isinstance(error, EnvironmentUnavailableError):
            return f"Check registry access, or docker pull {self.base_image} by hand"
        return None
