"""
Domain models — Pydantic types for the installer.

    from cfspeed_bootstrap.core.models import PlatformTriple, ArtifactDescriptor, StageResult
"""

from cfspeed_bootstrap.core.models.artifact import (
    ArtifactDescriptor,
    DigestEntry,
    DigestRecord,
    InstalledBinary,
)
from cfspeed_bootstrap.core.models.installer_config import InstallerConfig
from cfspeed_bootstrap.core.models.outcome import ErrorKind, StageError, StageResult
from cfspeed_bootstrap.core.models.platform import ArchKind, OSKind, PlatformTriple

__all__ = [
    # artifact.py
    "ArtifactDescriptor",
    "DigestEntry",
    "DigestRecord",
    "InstalledBinary",
    # installer_config.py
    "InstallerConfig",
    # outcome.py
    "ErrorKind",
    "StageError",
    "StageResult",
    # platform.py
    "ArchKind",
    "OSKind",
    "PlatformTriple",
]
