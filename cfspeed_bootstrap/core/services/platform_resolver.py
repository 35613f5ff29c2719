"""
Platform resolver — map ``uname -s`` / ``uname -m`` to a release target triple.

The table is closed: anything not listed is a ClassificationError.
There is no fuzzy matching, because a wrong guess would download a
binary that cannot run on this host.
"""

from __future__ import annotations

import logging
import platform

from cfspeed_bootstrap.core.models.outcome import ErrorKind, StageResult
from cfspeed_bootstrap.core.models.platform import ArchKind, OSKind, PlatformTriple

logger = logging.getLogger(__name__)

STAGE = "platform"

# Kernel name (uname -s) → OS in the release vocabulary.
# Linux builds are static musl binaries, so any Linux libc works.
_OS_MAP: dict[str, OSKind] = {
    "Linux": OSKind.LINUX_MUSL,
    "Darwin": OSKind.MACOS,
}

# Machine (uname -m) → architecture. macOS reports arm64, Linux aarch64.
_ARCH_MAP: dict[str, ArchKind] = {
    "x86_64": ArchKind.X86_64,
    "arm64": ArchKind.AARCH64,
    "aarch64": ArchKind.AARCH64,
}


def host_identity() -> tuple[str, str]:
    """Return the running host's ``(kernel name, machine)`` pair."""
    uname = platform.uname()
    return uname.system, uname.machine


def resolve_platform(kernel_name: str, machine: str) -> StageResult:
    """Classify a host.

    Args:
        kernel_name: As reported by ``uname -s`` (e.g. ``Linux``).
        machine: As reported by ``uname -m`` (e.g. ``x86_64``).

    Returns:
        Success with a ``PlatformTriple`` value, or a ClassificationError
        naming the literal value that was not recognized.
    """
    os_kind = _OS_MAP.get(kernel_name)
    if os_kind is None:
        return StageResult.failure(
            STAGE,
            ErrorKind.CLASSIFICATION,
            f"Unsupported OS: {kernel_name!r}",
            kernel_name=kernel_name,
            supported=sorted(_OS_MAP),
        )
    logger.info("OS: %s", os_kind.value)

    arch_kind = _ARCH_MAP.get(machine)
    if arch_kind is None:
        return StageResult.failure(
            STAGE,
            ErrorKind.CLASSIFICATION,
            f"Unsupported architecture: {machine!r}",
            machine=machine,
            supported=sorted(_ARCH_MAP),
        )
    logger.info("Architecture: %s", arch_kind.value)

    return StageResult.success(STAGE, PlatformTriple(os=os_kind, arch=arch_kind))


def detect_platform() -> StageResult:
    """Classify the host this process runs on."""
    kernel_name, machine = host_identity()
    return resolve_platform(kernel_name, machine)
