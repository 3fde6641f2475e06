"""Preflight report rendering.

The table report answers whether ``kiln build`` can go ahead for this
pipeline, backend and validation mode. Every failed check names the exit
code the build would stop with and what to change. The JSON report carries
the same content for CI.
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from kiln_core.preflight.models import CheckResult, CheckStatus, PreflightResult

# Mark and style per status
STATUS_MARKS: dict[CheckStatus, tuple[str, str]] = {
    CheckStatus.PASSED: ("ok", "green"),
    CheckStatus.SKIPPED: ("skip", "dim"),
    CheckStatus.FAILED: ("FAIL", "red"),
    CheckStatus.ERROR: ("ERROR", "bold red"),
}


def _verdict(result: PreflightResult) -> tuple[str, str]:
    if result.passed:
        return "Ready to build", "bold green"
    return f"Build would stop with exit code {result.exit_code}", "bold red"


def _run_settings(result: PreflightResult) -> str:
    backend = result.backend.value if result.backend else "default"
    mode = result.validation_mode.value if result.validation_mode else "default"
    fail_fast = "on" if result.fail_fast else "off"
    return f"Backend: {backend}   Validation: {mode}   Fail-fast: {fail_fast}"


def _describe_failure(check: CheckResult) -> Text:
    line = Text()
    line.append(f"  {check.name}", style="red")
    cause = check.error_kind or check.status.value
    line.append(f" ({cause}, exit {check.exit_code})", style="dim")
    line.append(f": {check.message}")
    if check.remedy:
        line.append(f"\n    Fix: {check.remedy}", style="yellow")
    for key, value in check.details.items():
        line.append(f"\n    {key}: {value}", style="dim")
    return line


def format_result_table(result: PreflightResult, console: Console | None = None) -> None:
    """Print a preflight report: verdict panel, one row per check, then fixes."""
    if console is None:
        console = Console()

    header = Text()
    header.append(*_verdict(result))
    header.append(f"\n{_run_settings(result)}")
    header.append(
        f"\n{result.passed_count} of {len(result.checks)} checks passed"
        f" in {result.total_duration_ms}ms"
    )
    title = f"Preflight: {result.pipeline}" if result.pipeline else "Preflight"
    console.print(Panel(header, title=f"[bold]{title}[/bold]", expand=False))

    table = Table(show_header=True, header_style="bold")
    table.add_column("", width=5)
    table.add_column("Check", min_width=20)
    table.add_column("Result", min_width=30)
    table.add_column("Exit", justify="right", width=4)

    for check in result.checks:
        mark, style = STATUS_MARKS[check.status]
        table.add_row(
            Text(mark, style=style),
            check.name,
            Text(check.message or "-", style="" if check.message else "dim"),
            str(check.exit_code) if check.failed else "",
        )
    for name in result.not_run:
        table.add_row(
            Text("-", style="dim"),
            Text(name, style="dim"),
            Text("not run", style="dim"),
            "",
        )
    console.print(table)

    failures = [c for c in result.checks if c.failed]
    if failures:
        console.print()
        console.print(Text("Before building:", style="bold"))
        for check in failures:
            console.print(_describe_failure(check))


def result_to_dict(result: PreflightResult) -> dict[str, Any]:
    """Convert a preflight result to a JSON-serializable dictionary."""
    return {
        "pipeline": result.pipeline,
        "backend": result.backend.value if result.backend else None,
        "validation_mode": result.validation_mode.value if result.validation_mode else None,
        "fail_fast": result.fail_fast,
        "status": result.overall_status.value,
        "ready": result.passed,
        "exit_code": result.exit_code,
        "counts": {
            "passed": result.passed_count,
            "failed": result.failed_count,
            "not_run": len(result.not_run),
        },
        "duration_ms": result.total_duration_ms,
        "checks": [check.model_dump(mode="json") for check in result.checks],
        "not_run": list(result.not_run),
    }


def format_result_json(result: PreflightResult, pretty: bool = True) -> str:
    return json.dumps(result_to_dict(result), indent=2 if pretty else None)


def print_result(
    result: PreflightResult,
    output_format: str = "table",
    console: Console | None = None,
) -> None:
    """Print a preflight report as a table or as JSON."""
    if console is None:
        console = Console()

    if output_format == "json":
        # Raw JSON, bypassing Rich formatting so the output stays parseable
        console.file.write(format_result_json(result) + "\n")
    else:
        format_result_table(result, console)
