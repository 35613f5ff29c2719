"""
Version resolver — which release tag to install.

An explicit version is trusted verbatim and the network is never
touched. Otherwise the GitHub "latest release" endpoint is queried
and only its ``tag_name`` field is used.
"""

from __future__ import annotations

import logging
import re

from cfspeed_bootstrap.core.models.outcome import ErrorKind, StageResult
from cfspeed_bootstrap.core.services import retriever

logger = logging.getLogger(__name__)

STAGE = "version"

# Template syntax that means a variable was never substituted.
_PLACEHOLDER_RE = re.compile(r"\$\{|\$[A-Za-z_]|\{\{|%\(|<[A-Za-z_]+>")


def latest_release_url(api_base_url: str, repo: str) -> str:
    """GitHub API URL of the latest published release of ``repo``."""
    return f"{api_base_url.rstrip('/')}/repos/{repo}/releases/latest"


def check_tag(value: object, source: str) -> StageResult:
    """Accept ``value`` as a release tag, or explain why it is not one."""
    if not isinstance(value, str) or not value.strip():
        return StageResult.failure(
            STAGE, ErrorKind.VERSION_RESOLUTION,
            "Could not resolve latest version" if source == "api" else "Version is empty",
            source=source, value=repr(value),
        )
    if any(ch.isspace() for ch in value):
        return StageResult.failure(
            STAGE, ErrorKind.VERSION_RESOLUTION,
            f"Version {value!r} contains whitespace",
            source=source,
        )
    if _PLACEHOLDER_RE.search(value) or value[0] in "'\"" or value[-1] in "'\"":
        return StageResult.failure(
            STAGE, ErrorKind.VERSION_RESOLUTION,
            f"Version {value!r} looks like an unexpanded placeholder",
            source=source,
        )
    return StageResult.success(STAGE, value)


def resolve_version(
    explicit: str | None,
    *,
    api_base_url: str,
    repo: str,
    timeout: float = 15.0,
) -> StageResult:
    """Resolve the release tag for this run.

    Args:
        explicit: Pinned version from config/env/CLI. ``None`` or blank
            means "latest".
        api_base_url: Base of the releases API (``https://api.github.com``).
        repo: ``owner/name`` of the release repository.
        timeout: HTTP timeout for the API query.

    Returns:
        Success with the tag string, or a VersionResolutionError.
    """
    if explicit is not None and explicit.strip():
        result = check_tag(explicit, "override")
        if result.ok:
            logger.info("Version: %s (pinned)", explicit)
        return result

    url = latest_release_url(api_base_url, repo)
    logger.info("Fetching latest version...")
    fetched = retriever.fetch_json(
        url, timeout=timeout, stage=STAGE, kind=ErrorKind.VERSION_RESOLUTION,
    )
    if fetched.failed:
        return fetched

    data = fetched.value
    if not isinstance(data, dict):
        return StageResult.failure(
            STAGE, ErrorKind.VERSION_RESOLUTION,
            "Could not resolve latest version",
            url=url, reason=f"expected a JSON object, got {type(data).__name__}",
        )

    result = check_tag(data.get("tag_name"), "api")
    if result.failed:
        assert result.error is not None
        result.error.details["url"] = url
        return result

    logger.info("Version: %s", result.value)
    return result
