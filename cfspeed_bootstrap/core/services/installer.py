"""
Installer — place the verified binary in the per-user bin directory.

The copy goes to a temp file next to the destination and is renamed
over it, so ``{install_dir}/{binary}`` is either the previous binary
or the complete new one. Reinstalling overwrites; there are no
side-by-side versions.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from cfspeed_bootstrap.core.models.artifact import InstalledBinary
from cfspeed_bootstrap.core.models.outcome import ErrorKind, StageResult
from cfspeed_bootstrap.core.services.integrity import file_sha256

logger = logging.getLogger(__name__)

STAGE = "install"

# rwxr-xr-x
BINARY_MODE = 0o755


def dir_on_path(directory: Path, path_env: str | None = None) -> bool:
    """Whether ``directory`` is one of the entries of ``PATH``."""
    raw = os.environ.get("PATH", "") if path_env is None else path_env
    target = directory.expanduser().resolve()
    for entry in raw.split(os.pathsep):
        if not entry:
            continue
        try:
            if Path(entry).expanduser().resolve() == target:
                return True
        except OSError:
            continue
    return False


def install_binary(
    source: Path,
    install_dir: Path,
    binary_name: str,
    version: str,
) -> StageResult:
    """Copy ``source`` to ``install_dir/binary_name`` with mode 0755.

    Returns:
        Success with an ``InstalledBinary``, or an InstallError.
    """
    install_dir = install_dir.expanduser()
    target = install_dir / binary_name

    try:
        install_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return StageResult.failure(
            STAGE, ErrorKind.INSTALL,
            f"Cannot create install directory {install_dir}",
            path=str(install_dir), reason=str(exc),
        )

    tmp_path: str | None = None
    try:
        fd, tmp_path = tempfile.mkstemp(dir=install_dir, prefix=f".{binary_name}.", suffix=".tmp")
        with os.fdopen(fd, "wb") as out, open(source, "rb") as src:
            shutil.copyfileobj(src, out)
        os.chmod(tmp_path, BINARY_MODE)
        digest = file_sha256(Path(tmp_path))
        os.replace(tmp_path, target)
        tmp_path = None
    except OSError as exc:
        return StageResult.failure(
            STAGE, ErrorKind.INSTALL,
            f"Cannot install {binary_name} to {install_dir}",
            path=str(target), reason=str(exc),
        )
    finally:
        if tmp_path is not None:
            Path(tmp_path).unlink(missing_ok=True)

    installed = InstalledBinary(
        path=target.resolve(),
        version=version,
        sha256=digest,
        on_path=dir_on_path(install_dir),
    )
    logger.info("Installed %s %s to %s", binary_name, version, install_dir)
    return StageResult.success(STAGE, installed)
