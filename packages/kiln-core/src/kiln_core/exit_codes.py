"""Exit code policy for pipeline runs.

- 0: both stages completed and the artifact is confirmed in the image
- compiler's own exit code: compilation (or schema validation) failed
- 1: configuration or validation errors
- 2: environment errors (toolchain, docker, filesystem)
- 3: internal invariant violations (handoff, secret leak)
"""

from __future__ import annotations

from kiln_core.errors import (
    CompilationError,
    EnvironmentUnavailableError,
    HandoffError,
    PreflightError,
    SecretLeakError,
)

EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1
EXIT_ENVIRONMENT_ERROR = 2
EXIT_INVARIANT_VIOLATION = 3


def exit_code_for(error: BaseException) -> int:
    """Map an error raised by a pipeline run to the process exit code.

    Example:
        >>> exit_code_for(CompilationError("failed", exit_code=101))
        101
    """
    if isinstance(error, PreflightError):
        return exit_code_for(error.cause)
    if isinstance(error, CompilationError):
        return error.exit_code or EXIT_USER_ERROR
    if isinstance(error, (HandoffError, SecretLeakError)):
        return EXIT_INVARIANT_VIOLATION
    if isinstance(error, (EnvironmentUnavailableError, OSError)):
        return EXIT_ENVIRONMENT_ERROR
    return EXIT_USER_ERROR
