"""
Workspace — the run's private temp directory.

Created before the first download, removed with everything in it when
the run ends: normal return, any exception, Ctrl-C, or SIGTERM/SIGHUP.
Nothing outside the ``with`` block may keep paths into it.
"""

from __future__ import annotations

import logging
import shutil
import signal
import tempfile
import threading
from pathlib import Path
from types import FrameType, TracebackType

logger = logging.getLogger(__name__)

# SIGINT already raises KeyboardInterrupt. These are turned into
# SystemExit so the with-block unwinds and cleanup runs.
_TERMINATING_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGTERM", None), getattr(signal, "SIGHUP", None))
    if sig is not None
)


class Interrupted(SystemExit):
    """Raised inside the workspace when a terminating signal arrives."""

    def __init__(self, signum: int) -> None:
        super().__init__(128 + signum)
        self.signum = signum


def _raise_interrupted(signum: int, frame: FrameType | None) -> None:
    raise Interrupted(signum)


class Workspace:
    """Context manager owning one temp directory.

    Usage::

        with Workspace() as ws:
            retriever.download(url, ws.path)
        # ws.path no longer exists here
    """

    def __init__(self, prefix: str = "cfspeed-install-", base_dir: Path | None = None) -> None:
        self.prefix = prefix
        self.base_dir = base_dir
        self._path: Path | None = None
        self._saved_handlers: dict[int, object] = {}

    @property
    def path(self) -> Path:
        if self._path is None:
            raise RuntimeError("Workspace is not open")
        return self._path

    @property
    def is_open(self) -> bool:
        return self._path is not None

    def __enter__(self) -> Workspace:
        self._install_signal_handlers()
        try:
            self._path = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.base_dir))
        except BaseException:
            self._restore_signal_handlers()
            raise
        logger.debug("Workspace %s", self._path)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        # A signal landing mid-rmtree would leave a half-deleted tree;
        # hold it, Ctrl-C included, until removal is done.
        pending: list[int] = []
        held = self._defer_signals(pending)
        try:
            self.cleanup()
        finally:
            for sig, handler in held.items():
                signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
            self._restore_signal_handlers()
        if pending and exc is None:
            if pending[0] == signal.SIGINT:
                raise KeyboardInterrupt
            raise Interrupted(pending[0])

    def cleanup(self) -> None:
        """Remove the directory tree. Safe to call more than once."""
        path, self._path = self._path, None
        if path is None:
            return
        shutil.rmtree(path, ignore_errors=True)
        if path.exists():
            logger.warning("Could not fully remove workspace %s", path)
        else:
            logger.debug("Removed workspace %s", path)

    def _install_signal_handlers(self) -> None:
        # signal.signal only works from the main thread
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in _TERMINATING_SIGNALS:
            self._saved_handlers[sig] = signal.signal(sig, _raise_interrupted)

    def _defer_signals(self, pending: list[int]) -> dict[int, object]:
        """Queue incoming signals in ``pending``. Returns SIGINT's prior handler."""
        if threading.current_thread() is not threading.main_thread():
            return {}

        def _hold(signum: int, frame: FrameType | None) -> None:
            pending.append(signum)

        for sig in self._saved_handlers:
            signal.signal(sig, _hold)
        return {signal.SIGINT: signal.signal(signal.SIGINT, _hold)}

    def _restore_signal_handlers(self) -> None:
        for sig, handler in self._saved_handlers.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
        self._saved_handlers.clear()
