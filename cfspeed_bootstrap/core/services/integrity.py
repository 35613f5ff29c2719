"""
Integrity verifier — check a downloaded archive against its ``.sha256`` sidecar.

Sidecar format is ``sha256sum`` output: ``<hex>  <filename>`` per line.
Published sidecars sometimes carry CRLF line endings or trailing blank
lines; both are normalized away before parsing, so the same sidecar
verifies identically whichever line ending it was written with.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path

from cfspeed_bootstrap.core.models.artifact import DigestEntry, DigestRecord
from cfspeed_bootstrap.core.models.outcome import ErrorKind, StageResult

logger = logging.getLogger(__name__)

STAGE = "verify"

_HEX_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def sidecar_lines(text: str) -> list[str]:
    """Strip carriage returns and drop blank or whitespace-only lines."""
    lines = []
    for line in text.replace("\r", "").split("\n"):
        if line.strip():
            lines.append(line)
    return lines


def parse_sidecar(text: str, source: str = "") -> DigestRecord:
    """Parse sidecar text into a DigestRecord.

    Lines that are not ``<64 hex>  <name>`` are kept in
    ``skipped_lines`` rather than rejected outright; verification fails
    later if no usable entry names the artifact.
    """
    record = DigestRecord(source=source)
    for line in sidecar_lines(text):
        parts = line.strip().split(None, 1)
        if len(parts) != 2 or not _HEX_RE.match(parts[0]):
            logger.warning("Ignoring malformed checksum line: %r", line)
            record.skipped_lines.append(line)
            continue
        expected, subject = parts
        # "*name" is sha256sum's binary-mode marker
        subject = subject.strip().removeprefix("*")
        record.entries.append(DigestEntry(
            expected_hex=expected.lower(),
            subject=Path(subject).name,
        ))
    return record


def file_sha256(path: Path) -> str:
    """Hex SHA-256 of a file, read in chunks."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def verify_artifact(archive: Path, sidecar: Path) -> StageResult:
    """Verify ``archive`` against the matching entry of ``sidecar``.

    Returns:
        Success with the matched ``DigestEntry``, or an IntegrityError
        carrying the expected and actual digests.
    """
    logger.info("Verifying checksum...")
    try:
        text = sidecar.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        return StageResult.failure(
            STAGE, ErrorKind.INTEGRITY,
            f"Cannot read checksum file {sidecar.name}",
            file=str(sidecar), reason=str(exc),
        )

    record = parse_sidecar(text, source=sidecar.name)
    matches = record.entries_for(archive.name)
    if not matches:
        return StageResult.failure(
            STAGE, ErrorKind.INTEGRITY,
            f"No checksum entry for {archive.name} in {sidecar.name}",
            file=archive.name,
            listed=[e.subject for e in record.entries] or None,
            malformed_lines=record.skipped_lines or None,
        )

    # Repeated lines are fine; lines that disagree are not.
    digests = sorted({e.expected_hex for e in matches})
    if len(digests) > 1:
        return StageResult.failure(
            STAGE, ErrorKind.INTEGRITY,
            f"Conflicting checksum entries for {archive.name} in {sidecar.name}",
            file=archive.name,
            expected=digests,
        )
    entry = matches[0]

    try:
        actual = file_sha256(archive)
    except OSError as exc:
        return StageResult.failure(
            STAGE, ErrorKind.INTEGRITY,
            f"Cannot read {archive.name}",
            file=str(archive), reason=str(exc),
        )

    if actual != entry.expected_hex:
        return StageResult.failure(
            STAGE, ErrorKind.INTEGRITY,
            f"Checksum verification failed for {archive.name}",
            file=archive.name,
            expected=entry.expected_hex,
            actual=actual,
        )

    logger.info("%s: OK", archive.name)
    return StageResult.success(STAGE, entry)
