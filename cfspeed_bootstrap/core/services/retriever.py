"""
Retriever — plain HTTP GETs for release metadata and release files.

One attempt per URL. No retries, no mirrors: the user re-runs the
installer if the network was flaky. Failures carry the URL and, when
the server answered, its literal status code.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from cfspeed_bootstrap import __version__
from cfspeed_bootstrap.core.models.artifact import ArtifactDescriptor
from cfspeed_bootstrap.core.models.outcome import ErrorKind, StageResult

logger = logging.getLogger(__name__)

STAGE = "retrieve"

USER_AGENT = f"cfspeed-bootstrap/{__version__}"
_CHUNK = 8192


def remote_file_name(url: str) -> str:
    """Last path segment of ``url`` — the name the file is saved under."""
    name = unquote(urlparse(url).path.rsplit("/", 1)[-1])
    if not name or name in (".", ".."):
        raise ValueError(f"URL has no file name: {url}")
    return name


def _request(url: str, accept: str | None = None) -> urllib.request.Request:
    headers = {"User-Agent": USER_AGENT}
    if accept:
        headers["Accept"] = accept
    return urllib.request.Request(url, headers=headers)


def _failure(kind: ErrorKind, url: str, exc: BaseException, stage: str) -> StageResult:
    """Translate a transport exception into a failed result."""
    if isinstance(exc, urllib.error.HTTPError):
        return StageResult.failure(
            stage, kind, f"Failed to download {url}",
            url=url, http_status=exc.code, reason=str(exc.reason),
        )
    if isinstance(exc, urllib.error.URLError):
        reason = exc.reason
    else:
        reason = exc
    return StageResult.failure(
        stage, kind, f"Failed to download {url}",
        url=url, http_status=None, reason=str(reason),
    )


def download(
    url: str,
    dest_dir: Path,
    *,
    timeout: float = 60.0,
) -> StageResult:
    """Stream ``url`` into ``dest_dir``, keeping the remote file name.

    Returns:
        Success with the saved ``Path``, or a RetrievalError. A partially
        written file is removed before a failure is returned.
    """
    try:
        target = dest_dir / remote_file_name(url)
    except ValueError as exc:
        return StageResult.failure(STAGE, ErrorKind.RETRIEVAL, str(exc), url=url)

    logger.info("Downloading %s...", target.name)
    written = 0
    try:
        with urllib.request.urlopen(_request(url), timeout=timeout) as resp:
            status = getattr(resp, "status", 200)
            if not 200 <= status < 300:
                return StageResult.failure(
                    STAGE, ErrorKind.RETRIEVAL, f"Failed to download {url}",
                    url=url, http_status=status,
                )
            with open(target, "wb") as f:
                while True:
                    chunk = resp.read(_CHUNK)
                    if not chunk:
                        break
                    f.write(chunk)
                    written += len(chunk)
    except (OSError, http.client.HTTPException) as exc:
        target.unlink(missing_ok=True)
        return _failure(ErrorKind.RETRIEVAL, url, exc, STAGE)

    logger.debug("Saved %s (%d bytes)", target, written)
    return StageResult.success(STAGE, target)


def fetch_json(
    url: str,
    *,
    timeout: float = 15.0,
    stage: str = STAGE,
    kind: ErrorKind = ErrorKind.RETRIEVAL,
) -> StageResult:
    """GET a JSON document.

    Returns:
        Success with the decoded document, or a ``kind`` failure
        recorded against ``stage``.
    """
    try:
        req = _request(url, accept="application/vnd.github+json")
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            body = resp.read()
    except (OSError, http.client.HTTPException) as exc:
        return _failure(kind, url, exc, stage)

    try:
        data: Any = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        return StageResult.failure(
            stage, kind, f"Response from {url} is not valid JSON",
            url=url, reason=str(exc),
        )
    return StageResult.success(stage, data)


def retrieve_artifact(
    artifact: ArtifactDescriptor,
    workspace: Path,
    *,
    timeout: float = 60.0,
) -> StageResult:
    """Download the archive, then its digest sidecar, into ``workspace``.

    Returns:
        Success with ``{"archive": Path, "digest": Path}``, or the first
        RetrievalError. The digest is not fetched if the archive failed.
    """
    archive = download(artifact.archive_url, workspace, timeout=timeout)
    if archive.failed:
        return archive

    digest = download(artifact.digest_url, workspace, timeout=timeout)
    if digest.failed:
        return digest

    return StageResult.success(
        STAGE, {"archive": archive.value, "digest": digest.value},
    )
