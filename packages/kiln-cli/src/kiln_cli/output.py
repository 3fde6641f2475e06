"""Rich console output utilities for kiln-cli.

Colored success/error/warning messages on a shared console that respects
the NO_COLOR environment variable and the --no-color flag.
"""

from __future__ import annotations

import json
import os
from typing import Any

from rich.console import Console

# Rich already respects NO_COLOR; the flag is honored through set_no_color
_force_no_color = os.environ.get("NO_COLOR") is not None


def create_console(no_color: bool = False, stderr: bool = False) -> Console:
    """Create a Rich Console instance with appropriate color settings.

    Args:
        no_color: If True, disable colored output. Also respects NO_COLOR env var.
        stderr: If True, write to stderr instead of stdout.

    Returns:
        Configured Console instance.
    """
    force_terminal = None
    if no_color or _force_no_color:
        force_terminal = False
    return Console(
        force_terminal=force_terminal,
        no_color=no_color or _force_no_color,
        stderr=stderr,
        highlight=False,
    )


# Default console instances
console = create_console()
err_console = create_console(stderr=True)


def success(message: str, **kwargs: Any) -> None:
    """Print a success message with green checkmark.

    Example:
        >>> success("Configuration valid")
        ✓ Configuration valid
    """
    console.print(f"[green]✓[/green] {message}", **kwargs)


def error(message: str, **kwargs: Any) -> None:
    """Print an error message with red X.

    Example:
        >>> error("Artifact 'user-service' missing from handoff")
        ✗ Artifact 'user-service' missing from handoff
    """
    console.print(f"[red]✗[/red] {message}", **kwargs)


def warning(message: str, **kwargs: Any) -> None:
    """Print a warning message with yellow triangle."""
    console.print(f"[yellow]⚠[/yellow] {message}", **kwargs)


def info(message: str, **kwargs: Any) -> None:
    """Print an informational message."""
    console.print(message, **kwargs)


def diagnostics(text: str) -> None:
    """Print compiler diagnostics verbatim on stderr."""
    err_console.out(text.rstrip("\n"), highlight=False)


def print_json(data: dict[str, Any], **kwargs: Any) -> None:
    """Print JSON data with syntax highlighting.

    Example:
        >>> print_json({"name": "user-service", "version": "1.0.0"})
        {
          "name": "user-service",
          "version": "1.0.0"
        }
    """
    console.print_json(json.dumps(data, default=str), **kwargs)


def set_no_color(no_color: bool) -> None:
    """Update the global consoles to enable/disable colors.

    Note:
        This updates the module-level console instances.
    """
    global console, err_console
    console = create_console(no_color=no_color)
    err_console = create_console(no_color=no_color, stderr=True)
