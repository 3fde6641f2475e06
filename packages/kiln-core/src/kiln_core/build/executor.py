"""Build stage executor.

Given a build context source and the build-time value, produce exactly one
named artifact in a handoff directory, or fail. The build workspace is a
fresh temporary directory that is removed when the stage ends, whether it
succeeded or not. Nothing is retried.
"""

from __future__ import annotations

import re
import shutil
import tempfile
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from kiln_core.build.context import BuildContext, file_sha256, remove_tree
from kiln_core.build.models import (
    MANIFEST_FILE_NAME,
    ArtifactHandoff,
    ArtifactManifest,
    ToolchainRecord,
)
from kiln_core.build.toolchain import CompileOutcome, Toolchain
from kiln_core.build.value import BuildTimeValue, RevokedValueError
from kiln_core.errors import (
    BuildValueError,
    CompilationError,
    EnvironmentUnavailableError,
    HandoffError,
    SchemaValidationError,
    ValidationResourceError,
)
from kiln_core.schemas import PipelineSpec

if TYPE_CHECKING:
    from kiln_core.oracle.base import SchemaOracle

logger = structlog.get_logger(__name__)

WORKSPACE_PREFIX = "kiln-build-"


def classify_failure(outcome: CompileOutcome, patterns: Iterable[str]) -> CompilationError:
    """Turn a failed compile outcome into the matching error.

    Diagnostics matching one of the schema error patterns yield a
    SchemaValidationError; anything else is a plain CompilationError.
    Both keep the compiler's exit code.
    """
    diagnostics = outcome.diagnostics
    for pattern in patterns:
        if re.search(pattern, diagnostics, re.IGNORECASE | re.MULTILINE):
            return SchemaValidationError(
                f"Schema validation failed during compilation (exit code {outcome.exit_code})",
                exit_code=outcome.exit_code,
                diagnostics=diagnostics,
                matched_pattern=pattern,
            )
    return CompilationError(
        f"Compilation failed with exit code {outcome.exit_code}",
        exit_code=outcome.exit_code,
        diagnostics=diagnostics,
    )


class BuildStageExecutor:
    """Runs the build stage and promotes the single artifact.

    Attributes:
        spec: Pipeline spec.
        source: Absolute path of the source tree.
        handoff_dir: Directory the artifact is promoted into.
        toolchain: Pinned toolchain backend.
        oracle: Schema oracle serving the compiler's validation.

    Example:
        >>> executor = BuildStageExecutor(spec, source, handoff_dir, toolchain, oracle)
        >>> handoff = executor.execute(value)
        >>> handoff.manifest.name
        'user-service'
    """

    def __init__(
        self,
        spec: PipelineSpec,
        source: Path,
        handoff_dir: Path,
        toolchain: Toolchain,
        oracle: SchemaOracle,
        *,
        extra_excludes: Iterable[str] = (),
    ) -> None:
        self.spec = spec
        self.source = source
        self.handoff_dir = handoff_dir
        self.toolchain = toolchain
        self.oracle = oracle
        self.extra_excludes = tuple(extra_excludes)
        self._log = logger.bind(pipeline=spec.name, artifact=spec.build.artifact.name)

    def execute(self, value: BuildTimeValue | None) -> ArtifactHandoff:
        """Compile the source and promote the artifact.

        The value is revoked when this returns or raises.

        Args:
            value: Build-time value. Required unless the oracle serves the
                schema without it (fixture mode).

        Returns:
            ArtifactHandoff for the promoted artifact.

        Raises:
            BuildValueError: If a required value is missing or revoked.
            EnvironmentUnavailableError: If the toolchain is unavailable.
            ValidationResourceError: If the schema fixture is not in the context.
            CompilationError: If the compiler exits non-zero.
            SchemaValidationError: If that failure is a schema mismatch.
            HandoffError: If the compiler succeeded but the artifact is absent.
        """
        try:
            return self._execute(value)
        finally:
            if value is not None:
                value.revoke()

    def _execute(self, value: BuildTimeValue | None) -> ArtifactHandoff:
        value_config = self.spec.build.config_value
        if self.oracle.requires_value and (value is None or value.revoked):
            raise BuildValueError(value_config.name, value_config.source_env_var, reason="missing")

        self.toolchain.ensure_available()

        started_at = datetime.now(UTC)
        workspace = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX))
        self._log.debug("workspace_created", workspace=str(workspace))
        try:
            handoff = self._build(workspace, value, started_at)
        except BaseException:
            self._discard_workspace(workspace)
            raise

        try:
            remove_tree(workspace)
        except EnvironmentUnavailableError:
            remove_tree(self.handoff_dir, component="handoff")
            raise
        self._log.debug("workspace_removed", workspace=str(workspace))
        return handoff

    def _discard_workspace(self, workspace: Path) -> None:
        # The build error propagates; a cleanup failure is only logged
        try:
            remove_tree(workspace)
        except EnvironmentUnavailableError as e:
            self._log.error(
                "workspace_cleanup_failed",
                workspace=str(workspace),
                error=e.user_message,
            )
        else:
            self._log.debug("workspace_removed", workspace=str(workspace))

    def _build(
        self,
        workspace: Path,
        value: BuildTimeValue | None,
        started_at: datetime,
    ) -> ArtifactHandoff:
        value_config = self.spec.build.config_value
        context = BuildContext.snapshot(
            self.source,
            workspace / "context",
            self.spec.build.context,
            extra_excludes=self.extra_excludes,
        )
        self._check_fixture_in_context(context)

        compile_root = self.toolchain.compile_root(context.root)
        try:
            exports = self.oracle.compile_environment(value, compile_root)
        except RevokedValueError:
            raise BuildValueError(
                value_config.name, value_config.source_env_var, reason="revoked"
            ) from None

        try:
            outcome = self.toolchain.compile(context.root, exports)
        finally:
            exports.clear()
            if value is not None:
                value.revoke()

        if not outcome.succeeded:
            raise classify_failure(outcome, self.spec.validation.schema_error_patterns)

        self._log.info("compile_succeeded", duration_ms=outcome.duration_ms)
        return self._promote(context, outcome, started_at)

    def _check_fixture_in_context(self, context: BuildContext) -> None:
        fixture = self.spec.validation.fixture
        if self.oracle.requires_value or fixture is None:
            return
        if not (context.root / fixture).is_file():
            raise ValidationResourceError(
                f"Schema fixture '{fixture}' is not part of the build context "
                "(missing or excluded)"
            )

    def _promote(
        self,
        context: BuildContext,
        outcome: CompileOutcome,
        started_at: datetime,
    ) -> ArtifactHandoff:
        artifact = self.spec.build.artifact
        built = context.root / artifact.build_path

        if built.is_symlink() or not built.is_file():
            raise HandoffError(
                f"Compiler reported success but artifact '{artifact.name}' "
                f"was not produced at {artifact.build_path}",
                artifact_name=artifact.name,
                expected_path=artifact.build_path,
            )

        staging = self.handoff_dir.with_name(f".{self.handoff_dir.name}.partial")
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)
        try:
            promoted = staging / artifact.name
            shutil.copy2(built, promoted)
            promoted.chmod(0o755)

            toolchain = self.toolchain.config
            manifest = ArtifactManifest(
                pipeline=self.spec.name,
                pipeline_version=self.spec.version,
                name=artifact.name,
                build_path=artifact.build_path,
                sha256=file_sha256(promoted),
                size_bytes=promoted.stat().st_size,
                toolchain=ToolchainRecord(
                    name=toolchain.name,
                    version=toolchain.version,
                    backend=self.toolchain.backend,
                    reference=self.toolchain.reference,
                ),
                source_digest=context.digest,
                validation_mode=self.oracle.mode,
                value_name=self.spec.build.config_value.name,
                started_at=started_at,
                compile_duration_ms=outcome.duration_ms,
            )
            manifest.to_json_file(staging / MANIFEST_FILE_NAME)

            if self.handoff_dir.exists():
                shutil.rmtree(self.handoff_dir)
            staging.rename(self.handoff_dir)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        self._log.info(
            "artifact_promoted",
            handoff=str(self.handoff_dir),
            sha256=manifest.sha256,
            size_bytes=manifest.size_bytes,
        )
        return ArtifactHandoff(directory=self.handoff_dir, manifest=manifest)
