"""
Shared test fixtures — a fake release host and archive builders.
"""

from __future__ import annotations

import functools
import json
import threading
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

from cfspeed_bootstrap.core.models.installer_config import InstallerConfig
from tests.release_fixtures import (
    ARCHIVE,
    BINARY,
    BINARY_BYTES,
    REPO,
    TARGET,
    FakeRelease,
    build_archive,
    sha256_hex,
)


@pytest.fixture
def release_root(tmp_path: Path) -> Path:
    """Directory served by ``release_server``."""
    root = tmp_path / "www"
    root.mkdir()
    return root


@pytest.fixture
def publish(release_root: Path):
    """Factory: publish a release into ``release_root``.

    Args (keyword):
        version: Release tag.
        layout: ``"nested"`` (archive-stem dir), ``"nested-alt"``
            (``{package}-{target}`` dir), ``"root"``, or ``"missing"``.
        binary: Binary contents.
        crlf: Write the sidecar with CRLF line endings.
        digest: Override the hex written into the sidecar.
        latest: Also publish the ``releases/latest`` API document.
    """

    def _publish(
        version: str = "v0.1.0",
        *,
        layout: str = "nested",
        binary: bytes = BINARY_BYTES,
        crlf: bool = False,
        digest: str | None = None,
        latest: bool = True,
    ) -> FakeRelease:
        release_dir = release_root / REPO / "releases" / "download" / version
        archive = release_dir / ARCHIVE

        if layout == "nested":
            members = {f"{BINARY}_{TARGET}/{BINARY}": binary, f"{BINARY}_{TARGET}/README.md": b"readme\n"}
        elif layout == "nested-alt":
            members = {f"{BINARY}-{TARGET}/{BINARY}": binary}
        elif layout == "root":
            members = {BINARY: binary, "LICENSE": b"MIT\n"}
        elif layout == "missing":
            members = {"docs/README.md": b"nothing here\n"}
        else:
            raise ValueError(layout)
        build_archive(archive, members)

        hex_digest = digest or sha256_hex(archive.read_bytes())
        eol = "\r\n" if crlf else "\n"
        sidecar = release_dir / f"{ARCHIVE}.sha256"
        sidecar.write_bytes(f"{hex_digest}  {ARCHIVE}{eol}{eol}".encode())

        if latest:
            api = release_root / "api" / "repos" / REPO / "releases"
            api.mkdir(parents=True, exist_ok=True)
            (api / "latest").write_text(json.dumps({"tag_name": version, "name": version}))

        return FakeRelease(root=release_root, version=version, archive=archive, sidecar=sidecar)

    return _publish


class _QuietHandler(SimpleHTTPRequestHandler):
    def log_message(self, format, *args):  # noqa: A002
        pass


@pytest.fixture
def release_server(release_root: Path):
    """Serve ``release_root`` over HTTP on localhost; yields the base URL."""
    handler = functools.partial(_QuietHandler, directory=str(release_root))
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    """Destination bin directory (not created up front)."""
    return tmp_path / "home" / ".local" / "bin"


@pytest.fixture
def make_config(release_server: str, install_dir: Path):
    """Factory: InstallerConfig pointed at the fake release host."""

    def _make(**overrides) -> InstallerConfig:
        data = {
            "release_base_url": release_server,
            "api_base_url": f"{release_server}/api",
            "install_dir": install_dir,
            "timeout": 10,
        }
        data.update(overrides)
        return InstallerConfig(**data)

    return _make
