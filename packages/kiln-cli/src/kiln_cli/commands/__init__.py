"""CLI command modules.

Each module holds one subcommand, loaded lazily by kiln_cli.main.
"""

from __future__ import annotations

__all__: list[str] = []
