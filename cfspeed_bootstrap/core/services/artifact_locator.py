"""
Artifact locator — release filenames and URLs, derived, never discovered.

The archive name must match the release host's naming exactly. A typo
here does not fail locally; it shows up later as an HTTP 404.
"""

from __future__ import annotations

import logging

from cfspeed_bootstrap.core.models.artifact import ArtifactDescriptor
from cfspeed_bootstrap.core.models.installer_config import InstallerConfig
from cfspeed_bootstrap.core.models.platform import PlatformTriple

logger = logging.getLogger(__name__)


def archive_file_name(package_prefix: str, triple: PlatformTriple, archive_ext: str) -> str:
    """e.g. ``cloudflare-speed-cli_x86_64-unknown-linux-musl.tar.xz``."""
    return f"{package_prefix}_{triple.target}.{archive_ext.lstrip('.')}"


def release_base(release_base_url: str, repo: str, version: str) -> str:
    """Download prefix shared by every asset of one release."""
    return f"{release_base_url.rstrip('/')}/{repo}/releases/download/{version}"


def locate_artifact(
    config: InstallerConfig,
    version: str,
    triple: PlatformTriple,
) -> ArtifactDescriptor:
    """Build the descriptor for ``version`` on ``triple``.

    Pure: no I/O. Both URLs hang off one release base, so the archive
    and its digest always belong to the same release.
    """
    file_name = archive_file_name(config.package_prefix, triple, config.archive_ext)
    base = release_base(config.release_base_url, config.repo, version)
    archive_url = f"{base}/{file_name}"
    digest_url = f"{archive_url}{config.digest_suffix}"

    # Releases have shipped the binary at the archive root and under a
    # per-platform directory; both directory spellings have been seen.
    stem = file_name[: -(len(config.archive_ext.lstrip(".")) + 1)]
    nested = (stem, f"{config.package_prefix}-{triple.target}")
    nested = tuple(dict.fromkeys(nested))

    logger.info("Download URL: %s", archive_url)
    logger.info("SHA256 URL: %s", digest_url)

    return ArtifactDescriptor(
        binary_name=config.binary_name,
        package_prefix=config.package_prefix,
        platform=triple,
        version=version,
        archive_file_name=file_name,
        archive_url=archive_url,
        digest_url=digest_url,
        nested_dirs=nested,
    )
