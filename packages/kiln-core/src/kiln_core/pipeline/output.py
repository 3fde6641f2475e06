"""Pipeline run output formatters.

Rich summary and JSON output for pipeline results and failures.
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from kiln_core.errors import CompilationError, KilnError, PreflightError
from kiln_core.observability import redact
from kiln_core.exit_codes import exit_code_for
from kiln_core.pipeline.models import PipelineResult
from kiln_core.preflight.output import result_to_dict as preflight_to_dict


def format_result_table(result: PipelineResult, console: Console | None = None) -> None:
    """Print a pipeline result as a Rich panel and table."""
    if console is None:
        console = Console()

    header = Text()
    header.append(f"{result.pipeline} {result.version}\n\n", style="bold")
    header.append("Status: ", style="green")
    header.append("SUCCEEDED", style="bold green")
    header.append(f"\nLeak scan: {result.leak_scan}")
    header.append(f"\nDuration: {result.duration_ms}ms")
    console.print(Panel(header, title="[bold]Build Results[/bold]"))

    artifact = result.artifact
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Artifact", artifact.name)
    table.add_row("SHA-256", artifact.sha256)
    table.add_row("Size", f"{artifact.size_bytes} bytes")
    toolchain = artifact.toolchain
    table.add_row("Toolchain", f"{toolchain.reference} ({toolchain.backend.value})")
    table.add_row("Validation", artifact.validation_mode.value)
    table.add_row("Source digest", artifact.source_digest)
    table.add_row("Base image", result.image.base_image)
    table.add_row("Entrypoint", f"{result.image.workdir}$ {' '.join(result.image.entrypoint)}")
    table.add_row("Handoff", result.handoff_dir)
    table.add_row("Image", result.image_dir)
    if result.docker_tag:
        table.add_row("Docker tag", result.docker_tag)
    console.print(table)


def result_to_dict(result: PipelineResult) -> dict[str, Any]:
    """Convert PipelineResult to a JSON-serializable dictionary."""
    return {
        "status": "succeeded",
        "exit_code": 0,
        "pipeline": result.pipeline,
        "version": result.version,
        "handoff_dir": result.handoff_dir,
        "image_dir": result.image_dir,
        "artifact": result.artifact.model_dump(mode="json"),
        "image": result.image.model_dump(mode="json"),
        "leak_scan": result.leak_scan,
        "docker_tag": result.docker_tag,
        "duration_ms": result.duration_ms,
    }


def error_to_dict(error: BaseException) -> dict[str, Any]:
    """Convert a pipeline failure to a JSON-serializable dictionary."""
    kind_error = error.cause if isinstance(error, PreflightError) else error
    message = error.user_message if isinstance(error, KilnError) else str(error)
    data: dict[str, Any] = {
        "status": "failed",
        "exit_code": exit_code_for(error),
        "error_kind": type(kind_error).__name__,
        "message": redact(message),
    }
    if isinstance(kind_error, CompilationError):
        data["diagnostics"] = kind_error.diagnostics
    if isinstance(error, PreflightError):
        data["preflight"] = preflight_to_dict(error.result)
    return data


def format_error_json(error: BaseException) -> str:
    """Format a pipeline failure as indented JSON."""
    return json.dumps(error_to_dict(error), indent=2, default=str)


def print_pipeline_result(
    result: PipelineResult,
    output_format: str = "table",
    console: Console | None = None,
) -> None:
    """Print a pipeline result in the given format ("table" or "json")."""
    if console is None:
        console = Console()

    if output_format == "json":
        json_str = json.dumps(result_to_dict(result), indent=2, default=str)
        if console.file is not None:
            console.file.write(json_str + "\n")
        else:
            print(json_str)
    else:
        format_result_table(result, console)
