"""
Artifact models — what gets downloaded and how it is checked.

``ArtifactDescriptor`` is built once per run by the artifact locator.
``DigestEntry`` is one parsed line of a ``.sha256`` sidecar file.
``InstalledBinary`` is what the run reports on success.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from cfspeed_bootstrap.core.models.platform import PlatformTriple


class ArtifactDescriptor(BaseModel):
    """Everything needed to fetch and unpack one release artifact."""

    model_config = ConfigDict(frozen=True)

    binary_name: str
    package_prefix: str
    platform: PlatformTriple
    version: str

    archive_file_name: str
    archive_url: str
    digest_url: str

    # Directories inside the archive that may hold the binary, most
    # specific first. The archive root is always tried last.
    nested_dirs: tuple[str, ...] = ()

    @property
    def digest_file_name(self) -> str:
        """Filename of the digest sidecar, as published next to the archive."""
        return self.digest_url.rsplit("/", 1)[-1]


class DigestEntry(BaseModel):
    """One ``<hex>  <filename>`` line of a digest sidecar."""

    model_config = ConfigDict(frozen=True)

    algorithm: str = "sha256"
    expected_hex: str
    subject: str


class DigestRecord(BaseModel):
    """All usable entries parsed from a sidecar file."""

    source: str = ""
    entries: list[DigestEntry] = Field(default_factory=list)
    skipped_lines: list[str] = Field(default_factory=list)

    def entries_for(self, file_name: str) -> list[DigestEntry]:
        """All entries whose subject is ``file_name``, in file order."""
        return [e for e in self.entries if e.subject == file_name]


class InstalledBinary(BaseModel):
    """The binary as placed in the install directory."""

    path: Path
    version: str
    sha256: str = ""
    on_path: bool = False
