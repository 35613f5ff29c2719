"""
Install use case — the full bootstrap pipeline.

    platform → version → locate → [workspace] retrieve → verify → extract
    → locate binary → install

Each stage returns a StageResult. The pipeline stops at the first
failure; nothing after the verifier ever sees unverified bytes, and
nothing is written to the install directory before extraction and
lookup have succeeded. The workspace is removed on every exit path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from cfspeed_bootstrap.core.models.artifact import ArtifactDescriptor, InstalledBinary
from cfspeed_bootstrap.core.models.installer_config import InstallerConfig
from cfspeed_bootstrap.core.models.outcome import StageError, StageResult
from cfspeed_bootstrap.core.models.platform import PlatformTriple
from cfspeed_bootstrap.core.services import (
    artifact_locator,
    extractor,
    installer,
    integrity,
    platform_resolver,
    retriever,
    version_resolver,
)
from cfspeed_bootstrap.core.services.workspace import Workspace


@dataclass
class InstallResult:
    """Outcome of one installer run (or one plan)."""

    platform: PlatformTriple | None = None
    version: str | None = None
    artifact: ArtifactDescriptor | None = None
    installed: InstalledBinary | None = None
    stages: list[StageResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.stages) and all(s.ok for s in self.stages)

    @property
    def error(self) -> StageError | None:
        for stage in self.stages:
            if stage.failed:
                return stage.error
        return None

    def record(self, result: StageResult) -> bool:
        """Append a stage result. Returns False if it failed."""
        self.stages.append(result)
        return result.ok

    def to_dict(self) -> dict:
        err = self.error
        return {
            "ok": self.ok,
            "platform": self.platform.target if self.platform else None,
            "version": self.version,
            "archive": self.artifact.archive_file_name if self.artifact else None,
            "archive_url": self.artifact.archive_url if self.artifact else None,
            "digest_url": self.artifact.digest_url if self.artifact else None,
            "installed": (
                self.installed.model_dump(mode="json") if self.installed else None
            ),
            "error": err.model_dump(mode="json") if err else None,
            "stages": [
                {"stage": s.stage, "ok": s.ok} for s in self.stages
            ],
        }


def plan_install(
    config: InstallerConfig,
    *,
    host: tuple[str, str] | None = None,
) -> InstallResult:
    """Resolve platform, version and artifact URLs without downloading.

    Args:
        config: Installer settings. ``config.version`` pins the release.
        host: ``(kernel name, machine)`` to classify instead of this host.
    """
    result = InstallResult()

    kernel_name, machine = host or platform_resolver.host_identity()
    if not result.record(platform_resolver.resolve_platform(kernel_name, machine)):
        return result
    result.platform = result.stages[-1].value

    resolved = version_resolver.resolve_version(
        config.version,
        api_base_url=config.api_base_url,
        repo=config.repo,
        timeout=config.timeout,
    )
    if not result.record(resolved):
        return result
    result.version = resolved.value

    result.artifact = artifact_locator.locate_artifact(config, result.version, result.platform)
    result.record(StageResult.success("locate_artifact", result.artifact))
    return result


def run_install(
    config: InstallerConfig,
    *,
    host: tuple[str, str] | None = None,
    workspace_dir: Path | None = None,
) -> InstallResult:
    """Download, verify, unpack and install the release binary.

    Args:
        config: Installer settings.
        host: ``(kernel name, machine)`` override for platform resolution.
        workspace_dir: Parent for the temp workspace (default: system temp).

    Returns:
        InstallResult. ``ok`` is True only if every stage succeeded.
    """
    result = plan_install(config, host=host)
    if not result.ok:
        return result
    artifact = result.artifact
    assert artifact is not None and result.version is not None

    with Workspace(base_dir=workspace_dir) as ws:
        fetched = retriever.retrieve_artifact(artifact, ws.path, timeout=config.timeout)
        if not result.record(fetched):
            return result
        archive: Path = fetched.value["archive"]
        sidecar: Path = fetched.value["digest"]

        if not result.record(integrity.verify_artifact(archive, sidecar)):
            return result

        unpacked = extractor.extract_archive(archive, ws.path / "extracted")
        if not result.record(unpacked):
            return result

        found = extractor.locate_binary(unpacked.value, artifact, workspace=ws.path)
        if not result.record(found):
            return result

        placed = installer.install_binary(
            found.value, config.install_dir, artifact.binary_name, result.version,
        )
        if not result.record(placed):
            return result
        result.installed = placed.value

    return result
