"""
Platform model — the (architecture, operating-system) pair a release is built for.

Values are the release host's target-triple vocabulary, so they can be
dropped straight into an artifact filename.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class OSKind(str, Enum):
    """Operating systems with published release artifacts."""

    LINUX_MUSL = "unknown-linux-musl"
    MACOS = "apple-darwin"


class ArchKind(str, Enum):
    """CPU architectures with published release artifacts."""

    X86_64 = "x86_64"
    AARCH64 = "aarch64"


class PlatformTriple(BaseModel):
    """Resolved host platform. Frozen once built."""

    model_config = ConfigDict(frozen=True)

    os: OSKind
    arch: ArchKind

    @property
    def target(self) -> str:
        """Target triple as used in release filenames, e.g. ``x86_64-unknown-linux-musl``."""
        return f"{self.arch.value}-{self.os.value}"

    def __str__(self) -> str:
        return self.target
