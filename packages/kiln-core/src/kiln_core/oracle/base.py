"""Schema oracle interface.

A schema oracle is what the compiler's query validation consults: either
the live database named by the build-time value, or a deterministic
schema fixture standing in for it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from kiln_core.schemas import ValidationMode

if TYPE_CHECKING:
    from kiln_core.build.value import BuildTimeValue


class SchemaOracle(ABC):
    """Serves the compiler's schema checks.

    Attributes:
        mode: Validation mode this oracle implements.
        requires_value: Whether compilation needs the build-time value.
    """

    mode: ValidationMode
    requires_value: bool

    @abstractmethod
    def probe(self) -> str:
        """Check the oracle is usable before compiling.

        Returns:
            Human-readable description of what was checked.

        Raises:
            ValidationResourceError: If the oracle cannot be used.
        """

    @abstractmethod
    def compile_environment(
        self,
        value: BuildTimeValue | None,
        compile_root: str,
    ) -> dict[str, str]:
        """Variables exported into the compile process.

        Args:
            value: The build-time value, if any. Its entries may only be
                read here, while the compile step is about to run.
            compile_root: Build context root as seen by the compiler.
        """
