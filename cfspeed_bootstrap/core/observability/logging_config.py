"""
Logging configuration — set up once by the CLI entrypoint.

Stage progress ("OS: ...", "Downloading ...", "Verifying checksum...")
is logged at INFO by the ``cfspeed_bootstrap`` loggers and shown on
stderr by default, one bare line per step. Warnings and errors get a
``Warning:`` / ``Error:`` prefix. Stdout is left to the final report,
so ``cfspeed-install install --json`` stays machine-readable.

Levels are resolved in precedence order:
    --debug  >  --quiet  >  CFSPEED_LOG_LEVEL env var  >  INFO

Optional file output via CFSPEED_LOG_FILE / CFSPEED_LOG_FILE_LEVEL.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping

PACKAGE_LOGGER = "cfspeed_bootstrap"

_FMT_PROGRESS = "%(message)s"

# --verbose / --debug and the log file
_FMT_DETAILED = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s"
_DATEFMT_CONSOLE = "%H:%M:%S"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"


class ProgressFormatter(logging.Formatter):
    """One line per record, shaped like a shell installer's stderr.

    INFO and DEBUG records print as the bare message. WARNING and above
    are prefixed with their level (``Error: ...``). With ``detailed``
    every line carries a timestamp, level and logger instead.
    """

    def __init__(self, detailed: bool = False) -> None:
        if detailed:
            super().__init__(_FMT_DETAILED, datefmt=_DATEFMT_CONSOLE)
        else:
            super().__init__(_FMT_PROGRESS)
        self.detailed = detailed

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if self.detailed or record.levelno < logging.WARNING:
            return line
        return f"{record.levelname.capitalize()}: {line}"


def resolve_level(
    *,
    debug: bool = False,
    quiet: bool = False,
    env: Mapping[str, str] | None = None,
) -> str:
    """Pick the console level name from CLI flags and the environment."""
    if debug:
        return "DEBUG"
    if quiet:
        return "WARNING"
    return (env or {}).get("CFSPEED_LOG_LEVEL") or "INFO"


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    log_file_level: str | None = None,
    detailed: bool = False,
) -> None:
    """Configure logging for the whole process.

    Only this package's loggers follow ``level``; everything else stays
    at WARNING unless ``level`` is DEBUG.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to ``level``.
        detailed: Timestamped console lines (implied at DEBUG).
    """
    numeric_level = _parse_level(level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(ProgressFormatter(detailed=detailed or numeric_level <= logging.DEBUG))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    package_level = numeric_level
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        package_level = min(package_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_DETAILED, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    logging.getLogger(PACKAGE_LOGGER).setLevel(package_level)
    root.setLevel(numeric_level if numeric_level <= logging.DEBUG else logging.WARNING)

    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Convert a level name to its numeric constant (INFO if unknown)."""
    numeric = getattr(logging, level.upper(), None) if level else None
    if not isinstance(numeric, int):
        return logging.INFO
    return numeric
