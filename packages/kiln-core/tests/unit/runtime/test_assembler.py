"""Unit tests for the runtime image assembler."""

from __future__ import annotations

import hashlib
from datetime import UTC, datetime
from pathlib import Path

import pytest

from kiln_core.build.models import ArtifactHandoff, ArtifactManifest, ToolchainRecord
from kiln_core.errors import HandoffError
from kiln_core.runtime import (
    CONTAINERFILE_NAME,
    ImageConfig,
    RuntimeImage,
    RuntimeImageAssembler,
    verify_image,
)
from kiln_core.schemas import BuildBackend, RuntimeConfig, ValidationMode

ARTIFACT_BYTES = b"#!/bin/sh\necho hello\n"


def _handoff(directory: Path, content: bytes = ARTIFACT_BYTES) -> ArtifactHandoff:
    directory.mkdir(parents=True)
    (directory / "app").write_bytes(content)
    manifest = ArtifactManifest(
        pipeline="app",
        pipeline_version="1.0.0",
        name="app",
        build_path="target/release/app",
        sha256=hashlib.sha256(ARTIFACT_BYTES).hexdigest(),
        size_bytes=len(ARTIFACT_BYTES),
        toolchain=ToolchainRecord(
            name="fakec", version="1.0", backend=BuildBackend.LOCAL, reference="fakec 1.0"
        ),
        source_digest="0" * 64,
        validation_mode=ValidationMode.LIVE,
        value_name="DATABASE_URL",
        started_at=datetime.now(UTC),
    )
    handoff = ArtifactHandoff(directory=directory, manifest=manifest)
    manifest.to_json_file(handoff.manifest_path)
    return handoff


@pytest.fixture
def runtime_config() -> RuntimeConfig:
    return RuntimeConfig(base_image="ubuntu:22.04", workdir="/usr/local/bin")


class TestAssemble:
    """Tests for RuntimeImageAssembler.assemble."""

    def test_image_holds_only_the_artifact(
        self, tmp_path: Path, runtime_config: RuntimeConfig
    ) -> None:
        """rootfs holds exactly one file at the artifact's fixed path."""
        handoff = _handoff(tmp_path / "handoff")
        assembler = RuntimeImageAssembler(runtime_config, tmp_path / "image")

        image = assembler.assemble(handoff)

        files = [p for p in image.rootfs.rglob("*") if p.is_file()]
        assert files == [image.rootfs / "usr" / "local" / "bin" / "app"]
        assert image.artifact_path.read_bytes() == ARTIFACT_BYTES
        assert image.artifact_path.stat().st_mode & 0o777 == 0o755
        assert image.config.entrypoint == ["./app"]
        assert image.config.artifact_path == "/usr/local/bin/app"
        assert image.config.labels["org.opencontainers.image.base.name"] == "ubuntu:22.04"
        assembler.verify(image)

    def test_writes_config_and_containerfile(
        self, tmp_path: Path, runtime_config: RuntimeConfig
    ) -> None:
        """image.json round-trips and the Containerfile uses the base image."""
        image = RuntimeImageAssembler(runtime_config, tmp_path / "image").assemble(
            _handoff(tmp_path / "handoff")
        )

        loaded = RuntimeImage.load(tmp_path / "image")
        assert loaded.config == image.config
        containerfile = (tmp_path / "image" / CONTAINERFILE_NAME).read_text()
        assert containerfile.startswith("# app 1.0.0 runtime image\nFROM ubuntu:22.04\n")

    def test_replaces_previous_image(
        self, tmp_path: Path, runtime_config: RuntimeConfig
    ) -> None:
        """A stale image directory is replaced, not merged."""
        image_dir = tmp_path / "image"
        (image_dir / "rootfs" / "etc").mkdir(parents=True)
        (image_dir / "rootfs" / "etc" / "stale").write_text("old")

        image = RuntimeImageAssembler(runtime_config, image_dir).assemble(
            _handoff(tmp_path / "handoff")
        )

        assert not (image_dir / "rootfs" / "etc").exists()
        verify_image(image)

    def test_missing_artifact(self, tmp_path: Path, runtime_config: RuntimeConfig) -> None:
        """A handoff without its artifact is rejected."""
        handoff = _handoff(tmp_path / "handoff")
        handoff.artifact_path.unlink()

        with pytest.raises(HandoffError, match="missing from handoff"):
            RuntimeImageAssembler(runtime_config, tmp_path / "image").assemble(handoff)
        assert not (tmp_path / "image").exists()

    def test_extra_file_in_handoff(self, tmp_path: Path, runtime_config: RuntimeConfig) -> None:
        """A handoff holding anything besides the artifact is rejected."""
        handoff = _handoff(tmp_path / "handoff")
        (handoff.directory / "libextra.so").write_bytes(b"\x7fELF")

        with pytest.raises(HandoffError, match="more than one artifact: libextra.so"):
            RuntimeImageAssembler(runtime_config, tmp_path / "image").assemble(handoff)

    def test_digest_mismatch(self, tmp_path: Path, runtime_config: RuntimeConfig) -> None:
        """A tampered artifact is rejected."""
        handoff = _handoff(tmp_path / "handoff", content=b"tampered")

        with pytest.raises(HandoffError, match="does not match its manifest digest"):
            RuntimeImageAssembler(runtime_config, tmp_path / "image").assemble(handoff)
        assert not (tmp_path / ".image.partial").exists()

    def test_user_is_recorded(self, tmp_path: Path) -> None:
        """The runtime user ends up in image.json and the Containerfile."""
        config = RuntimeConfig(base_image="ubuntu:22.04", workdir="/srv", user="nobody")
        image = RuntimeImageAssembler(config, tmp_path / "image").assemble(
            _handoff(tmp_path / "handoff")
        )
        assert image.config.user == "nobody"
        assert "USER nobody" in image.containerfile_path.read_text()


class TestVerifyImage:
    """Tests for verify_image."""

    @pytest.fixture
    def image(self, tmp_path: Path, runtime_config: RuntimeConfig) -> RuntimeImage:
        return RuntimeImageAssembler(runtime_config, tmp_path / "image").assemble(
            _handoff(tmp_path / "handoff")
        )

    def test_extra_file(self, image: RuntimeImage) -> None:
        """Anything besides the artifact in rootfs fails verification."""
        (image.rootfs / "usr" / "local" / "bin" / ".env").write_text("DATABASE_URL=x")
        with pytest.raises(HandoffError, match="exactly one file"):
            verify_image(image)

    def test_missing_artifact(self, image: RuntimeImage) -> None:
        """An empty rootfs fails verification."""
        image.artifact_path.unlink()
        with pytest.raises(HandoffError, match="found: nothing"):
            verify_image(image)

    def test_modified_artifact(self, image: RuntimeImage) -> None:
        """A changed artifact fails verification."""
        image.artifact_path.write_bytes(b"changed")
        with pytest.raises(HandoffError, match="does not match digest"):
            verify_image(image)

    def test_wrong_entrypoint(self, image: RuntimeImage) -> None:
        """The entrypoint must invoke the artifact."""
        config = ImageConfig.model_validate(
            {**image.config.model_dump(), "entrypoint": ["/bin/sh", "-c", "./app"]}
        )
        with pytest.raises(HandoffError, match="does not invoke the artifact"):
            verify_image(RuntimeImage(directory=image.directory, config=config))
