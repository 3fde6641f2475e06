"""CLI error handling for kiln-cli.

Wraps kiln-core exceptions into user-friendly messages and maps them to
the pipeline exit code policy:

- 0: success
- 1: configuration or validation errors
- 2: environment errors (missing files, toolchain, docker, permissions)
- 3: internal invariant violations (handoff, secret leak)
- any other code: the compiler's own exit code
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, NoReturn

import click
from pydantic import ValidationError as PydanticValidationError

from kiln_cli import output
from kiln_cli.output import error

if TYPE_CHECKING:
    from pydantic_core import ErrorDetails

EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1
EXIT_SYSTEM_ERROR = 2


class CLIError(click.ClickException):
    """CLI-specific exception with exit code support.

    Attributes:
        message: User-facing error message.
        exit_code: Exit code for the CLI (default: 1).
    """

    def __init__(self, message: str, exit_code: int = EXIT_USER_ERROR) -> None:
        super().__init__(message)
        self.exit_code = exit_code

    def show(self, file: object = None) -> None:
        """Display the error message using Rich formatting.

        Args:
            file: Output file (unused, for Click compatibility).
        """
        error(self.format_message())


def format_pydantic_error(err: PydanticValidationError) -> str:
    """Format Pydantic validation error into user-friendly message.

    Example:
        >>> format_pydantic_error(err)
        "Validation failed:\\n  - build.artifact.name: Field required"
    """
    errors: list[ErrorDetails] = err.errors()
    lines = ["Validation failed:"]

    for e in errors:
        loc = ".".join(str(x) for x in e["loc"])
        msg = e["msg"]
        lines.append(f"  - {loc}: {msg}" if loc else f"  - {msg}")

    return "\n".join(lines)


def handle_yaml_error(err: Exception, file_path: str) -> NoReturn:
    """Handle YAML parsing errors with line number information.

    Raises:
        CLIError: Always raises with formatted error message.
    """
    error_msg = str(err)
    if hasattr(err, "problem_mark") and err.problem_mark is not None:
        mark = err.problem_mark
        line = mark.line + 1
        col = mark.column + 1
        error_msg = f"YAML syntax error at line {line}, column {col}: {err.problem}"  # type: ignore[attr-defined]

    raise CLIError(f"Invalid YAML in {file_path}: {error_msg}")


def handle_validation_error(err: PydanticValidationError, file_path: str) -> NoReturn:
    """Handle Pydantic validation errors with user-friendly messages.

    Raises:
        CLIError: Always raises with formatted error message.
    """
    formatted = format_pydantic_error(err)
    raise CLIError(f"Invalid configuration in {file_path}:\n{formatted}")


def handle_file_not_found(file_path: str) -> NoReturn:
    """Handle file not found errors with helpful suggestions.

    Raises:
        CLIError: Always raises with formatted error message.
    """
    raise CLIError(
        f"File not found: {file_path}\n\n"
        "Run 'kiln init' to create a new project, or use --file to specify a path.",
        exit_code=EXIT_SYSTEM_ERROR,
    )


def handle_permission_error(path: str, operation: str = "access") -> NoReturn:
    """Handle permission errors.

    Raises:
        CLIError: Always raises with formatted error message.
    """
    raise CLIError(
        f"Permission denied: Cannot {operation} {path}",
        exit_code=EXIT_SYSTEM_ERROR,
    )


def report_pipeline_error(err: BaseException, output_format: str = "table") -> NoReturn:
    """Report a failed pipeline run and exit with its mapped code.

    Compiler diagnostics are printed verbatim (with the build-time value
    masked) to stderr. In JSON mode the whole failure is one JSON document
    on stdout.

    Raises:
        SystemExit: Always, with the code from the exit code policy.
    """
    from kiln_core.errors import CompilationError, KilnError, PreflightError
    from kiln_core.observability import redact
    from kiln_core.pipeline import exit_code_for, format_error_json
    from kiln_core.preflight import print_result

    exit_code = exit_code_for(err)

    if output_format == "json":
        output.console.file.write(format_error_json(err) + "\n")
        raise SystemExit(exit_code)

    if isinstance(err, PreflightError):
        print_result(err.result, output_format="table", console=output.console)
        err = err.cause

    message = err.user_message if isinstance(err, KilnError) else str(err)
    error(redact(message))
    if isinstance(err, CompilationError) and err.diagnostics:
        output.diagnostics(err.diagnostics)
    raise SystemExit(exit_code)


def exit_with_error(message: str, exit_code: int = EXIT_USER_ERROR) -> NoReturn:
    """Exit the CLI with an error message.

    Note:
        This function never returns - it always calls sys.exit().
    """
    error(message)
    sys.exit(exit_code)
