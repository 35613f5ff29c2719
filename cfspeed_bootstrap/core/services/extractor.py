"""
Extractor — unpack a verified archive and find the binary inside it.

Release archives have not been consistent about layout: some put the
binary at the root, others under a per-platform directory. Lookup
tries each known directory, then the root. A new layout means a new
entry in ``ArtifactDescriptor.nested_dirs``.
"""

from __future__ import annotations

import logging
import lzma
import tarfile
from pathlib import Path

from cfspeed_bootstrap.core.models.artifact import ArtifactDescriptor
from cfspeed_bootstrap.core.models.outcome import ErrorKind, StageResult

logger = logging.getLogger(__name__)

EXTRACT_STAGE = "extract"
LOCATE_STAGE = "locate"


def extract_archive(archive: Path, dest: Path) -> StageResult:
    """Unpack ``archive`` (any tar compression) into ``dest``.

    Uses the ``data`` extraction filter: absolute paths, ``..`` escapes
    and device files are refused.

    Returns:
        Success with ``dest``, or an ExtractionError.
    """
    logger.info("Extracting archive...")
    dest.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive, "r:*") as tf:
            tf.extractall(dest, filter="data")
    except (tarfile.TarError, lzma.LZMAError, EOFError, OSError) as exc:
        return StageResult.failure(
            EXTRACT_STAGE, ErrorKind.EXTRACTION,
            f"Extract failed for {archive.name}: {exc}",
            file=str(archive),
        )
    return StageResult.success(EXTRACT_STAGE, dest)


def candidate_paths(root: Path, artifact: ArtifactDescriptor) -> list[Path]:
    """Where the binary may sit under ``root``, in lookup order."""
    paths = [root / d / artifact.binary_name for d in artifact.nested_dirs]
    paths.append(root / artifact.binary_name)
    return paths


def list_tree(root: Path) -> list[str]:
    """Every path under ``root``, relative, directories marked with ``/``."""
    listing = []
    for p in sorted(root.rglob("*")):
        rel = p.relative_to(root).as_posix()
        listing.append(f"{rel}/" if p.is_dir() else rel)
    return listing


def locate_binary(
    root: Path,
    artifact: ArtifactDescriptor,
    workspace: Path | None = None,
) -> StageResult:
    """Find the extracted binary.

    Args:
        root: Directory the archive was extracted into.
        artifact: Supplies the binary name and nested directory names.
        workspace: Directory to list in the failure report
            (default: ``root``).

    Returns:
        Success with the binary ``Path``, or a BinaryNotFoundError that
        lists the workspace contents.
    """
    tried = candidate_paths(root, artifact)
    for path in tried:
        if path.is_file():
            logger.debug("Found binary at %s", path.relative_to(root))
            return StageResult.success(LOCATE_STAGE, path)

    listed_root = workspace or root
    return StageResult.failure(
        LOCATE_STAGE, ErrorKind.BINARY_NOT_FOUND,
        f"Binary not found at {tried[-1].relative_to(root)}",
        tried=[str(p.relative_to(root)) for p in tried],
        workspace=str(listed_root),
        contents=list_tree(listed_root),
    )
