"""Pipeline runner: preflight, build stage, runtime assembly, leak scan.

The two stages run strictly in sequence and share nothing except the
artifact handoff. The runner is the only place that sees both the
build-time value (through the build stage) and the runtime image; it uses
a fingerprint captured before the value is revoked to confirm the value
never reached the image.
"""

from __future__ import annotations

import os
import time
from collections.abc import Mapping
from pathlib import Path

import structlog

from kiln_core.build.context import remove_tree
from kiln_core.build.executor import BuildStageExecutor
from kiln_core.build.models import MANIFEST_FILE_NAME, ArtifactHandoff
from kiln_core.build.toolchain import Toolchain, create_toolchain
from kiln_core.build.value import BuildTimeValue
from kiln_core.errors import (
    EnvironmentUnavailableError,
    KilnError,
    PreflightError,
    SecretLeakError,
    ValidationResourceError,
)
from kiln_core.exit_codes import EXIT_ENVIRONMENT_ERROR
from kiln_core.observability import span
from kiln_core.oracle import SchemaOracle, create_oracle
from kiln_core.pipeline.models import PipelineResult
from kiln_core.preflight import BaseCheck, PreflightResult, PreflightRunner, build_checks
from kiln_core.resolver import LoadedPipeline
from kiln_core.runtime import DockerImageBuilder, RuntimeImage, RuntimeImageAssembler
from kiln_core.schemas import BuildBackend, PipelineSpec
from kiln_core.security import ValueFingerprint, scan_tree

logger = structlog.get_logger(__name__)

HANDOFF_DIR_NAME = "handoff"
IMAGE_DIR_NAME = "image"

def scan_image(image: RuntimeImage, fingerprint: ValueFingerprint) -> list[str]:
    """Image-relative paths of files containing the fingerprinted value."""
    return scan_tree(image.directory, fingerprint)


class PipelineRunner:
    """Runs a pipeline end to end.

    Attributes:
        pipeline: Loaded pipeline file.
        output_dir: Directory receiving the handoff and image directories.
        backend: Build backend override.
        tag: Tag for an optional docker build of the runtime image.

    Example:
        >>> runner = PipelineRunner(PipelineResolver().load(), Path(".kiln"))
        >>> result = runner.run()
        >>> result.image.entrypoint
        ['./user-service']
    """

    def __init__(
        self,
        pipeline: LoadedPipeline,
        output_dir: Path,
        *,
        backend: BuildBackend | None = None,
        tag: str | None = None,
        environ: Mapping[str, str] | None = None,
        toolchain: Toolchain | None = None,
        builder: DockerImageBuilder | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.output_dir = output_dir.resolve()
        self.backend = backend
        self.tag = tag
        self.environ = dict(os.environ if environ is None else environ)
        self.toolchain = toolchain or create_toolchain(
            pipeline.spec.build.toolchain, backend, environ=self.environ
        )
        if builder is None and tag:
            builder = DockerImageBuilder()
        self.builder = builder
        self._log = logger.bind(pipeline=pipeline.spec.name)

    @property
    def spec(self) -> PipelineSpec:
        return self.pipeline.spec

    @property
    def handoff_dir(self) -> Path:
        return self.output_dir / HANDOFF_DIR_NAME

    @property
    def image_dir(self) -> Path:
        return self.output_dir / IMAGE_DIR_NAME

    def _load_value(self) -> BuildTimeValue | None:
        # Format is checked by BuildValueCheck
        return BuildTimeValue.from_environment(
            self.spec.build.config_value,
            self.environ,
            required=False,
        )

    def _create_oracle(self, value: BuildTimeValue | None) -> SchemaOracle:
        return create_oracle(self.spec, value, self.pipeline.fixture_path)

    def _excludes(self) -> list[str]:
        try:
            relative = self.output_dir.relative_to(self.pipeline.context_root)
        except ValueError:
            return []
        return [relative.as_posix()]

    def _preflight_runner(
        self,
        checks: list[BaseCheck],
        oracle: SchemaOracle,
        *,
        fail_fast: bool,
    ) -> PreflightRunner:
        return PreflightRunner(
            checks,
            fail_fast=fail_fast,
            pipeline=self.spec.name,
            backend=self.toolchain.backend,
            validation_mode=oracle.mode,
        )

    def preflight(self, *, fail_fast: bool = False) -> tuple[PreflightResult, list[BaseCheck]]:
        """Run the preflight checks only.

        Returns:
            The aggregated result and the checks that ran.
        """
        value = self._load_value()
        try:
            oracle = self._create_oracle(value)
            checks = build_checks(
                self.spec,
                self.toolchain,
                oracle,
                self.environ,
                builder=self.builder,
            )
            return self._preflight_runner(checks, oracle, fail_fast=fail_fast).run(), checks
        finally:
            if value is not None:
                value.revoke()

    def run(self) -> PipelineResult:
        """Run preflight, the build stage, runtime assembly and the leak scan.

        Returns:
            PipelineResult of a successful run.

        Raises:
            PreflightError: If a preflight check failed (wraps its error).
            EnvironmentUnavailableError: If the previous run's outputs can't be
                removed.
            KilnError: Any error of the build or runtime stage.
        """
        start = time.monotonic()
        spec = self.spec
        attributes = {"pipeline": spec.name, "artifact": spec.build.artifact.name}
        self.clear_outputs()
        value = self._load_value()
        try:
            oracle = self._create_oracle(value)
            checks = build_checks(
                spec, self.toolchain, oracle, self.environ, builder=self.builder
            )
            preflight = self._preflight_runner(checks, oracle, fail_fast=True).run()
            if preflight.failed:
                raise PreflightError(preflight, self.preflight_error(preflight, checks))

            fingerprint = value.fingerprint() if value is not None else None

            executor = BuildStageExecutor(
                spec,
                self.pipeline.context_root,
                self.handoff_dir,
                self.toolchain,
                oracle,
                extra_excludes=self._excludes(),
            )
            with span("build_stage", attributes=attributes):
                handoff = executor.execute(value)
        finally:
            if value is not None:
                value.revoke()

        with span("runtime_assembly", attributes=attributes):
            image = self._assemble(handoff)

        leak_scan = "skipped"
        if fingerprint is not None:
            self._scan_for_leaks(handoff, image, fingerprint)
            leak_scan = "clean"

        docker_tag = None
        if self.tag and self.builder is not None:
            docker_tag = self.builder.build(image, self.tag)

        duration_ms = int((time.monotonic() - start) * 1000)
        self._log.info("pipeline_succeeded", duration_ms=duration_ms, leak_scan=leak_scan)
        return PipelineResult(
            pipeline=spec.name,
            version=spec.version,
            handoff_dir=str(handoff.directory),
            image_dir=str(image.directory),
            artifact=handoff.manifest,
            image=image.config,
            preflight=preflight,
            leak_scan=leak_scan,
            docker_tag=docker_tag,
            duration_ms=duration_ms,
        )

    def clear_outputs(self) -> None:
        """Remove the handoff and image of an earlier run.

        A run that fails at any stage must not leave a previous run's
        outputs looking like its own.

        Raises:
            EnvironmentUnavailableError: If either directory can't be removed.
        """
        remove_tree(self.handoff_dir, component="handoff")
        remove_tree(self.image_dir, component="image")

    def _withdraw(self, *directories: Path) -> None:
        # The error that caused the withdrawal propagates
        for directory in directories:
            try:
                remove_tree(directory, component=directory.name)
            except EnvironmentUnavailableError as e:
                self._log.error("withdraw_failed", directory=str(directory), error=e.user_message)

    def preflight_error(
        self,
        result: PreflightResult,
        checks: list[BaseCheck],
    ) -> KilnError:
        """Error standing for the first failed check of a preflight result."""
        failure = result.first_failure
        if failure is None:
            return ValidationResourceError("Preflight checks failed")
        for check in checks:
            if check.name == failure.name and check.error is not None:
                return check.error

        message = f"Preflight check '{failure.name}' failed: {failure.message}"
        if failure.exit_code == EXIT_ENVIRONMENT_ERROR:
            return EnvironmentUnavailableError(message, component=failure.name)
        return ValidationResourceError(message)

    def _assemble(self, handoff: ArtifactHandoff) -> RuntimeImage:
        assembler = RuntimeImageAssembler(self.spec.runtime, self.image_dir)
        image = assembler.assemble(handoff)
        try:
            assembler.verify(image)
        except KilnError:
            self._withdraw(image.directory)
            raise
        return image

    def _scan_for_leaks(
        self,
        handoff: ArtifactHandoff,
        image: RuntimeImage,
        fingerprint: ValueFingerprint,
    ) -> None:
        hits = scan_image(image, fingerprint)
        manifest_hit = fingerprint.occurs_in(handoff.manifest_path.read_bytes())
        if not hits and not manifest_hit:
            self._log.info("leak_scan_clean", image=str(image.directory))
            return

        locations = list(hits)
        if manifest_hit:
            locations.append(f"{HANDOFF_DIR_NAME}/{MANIFEST_FILE_NAME}")
        self._withdraw(image.directory, handoff.directory)
        self._log.error("leak_detected", locations=locations)
        raise SecretLeakError(locations)
