"""
End-to-end tests for the install pipeline against a local release host.
"""

import os
import signal
import stat
import subprocess
import sys
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

from cfspeed_bootstrap.core.models import ErrorKind
from cfspeed_bootstrap.core.services import platform_resolver, retriever
from cfspeed_bootstrap.core.use_cases.install import plan_install, run_install
from tests.release_fixtures import ARCHIVE, BINARY, BINARY_BYTES, LINUX_X86


@pytest.fixture
def ws_parent(tmp_path: Path) -> Path:
    """Parent for workspaces, so leftovers are easy to spot."""
    d = tmp_path / "tmp"
    d.mkdir()
    return d


class TestPlan:
    def test_end_to_end_names(self, make_config):
        result = plan_install(make_config(version="v0.1.0"), host=LINUX_X86)
        assert result.ok
        assert result.artifact.archive_file_name == "cloudflare-speed-cli_x86_64-unknown-linux-musl.tar.xz"
        assert result.artifact.digest_url == result.artifact.archive_url + ".sha256"

    def test_latest_from_api(self, publish, make_config):
        publish("v0.3.0")
        result = plan_install(make_config(), host=LINUX_X86)
        assert result.version == "v0.3.0"
        assert "/releases/download/v0.3.0/" in result.artifact.archive_url

    def test_unsupported_platform_stops_early(self, make_config, monkeypatch):
        monkeypatch.setattr(retriever, "fetch_json", None)
        result = plan_install(make_config(), host=("Windows_NT", "AMD64"))
        assert not result.ok
        assert result.error.kind is ErrorKind.CLASSIFICATION
        assert result.version is None
        assert [s.stage for s in result.stages] == ["platform"]


class TestRunInstall:
    @pytest.mark.parametrize("layout", ["nested", "nested-alt", "root"])
    def test_installs_each_layout(self, publish, make_config, install_dir, ws_parent, layout):
        publish(layout=layout)
        result = run_install(make_config(version="v0.1.0"), host=LINUX_X86, workspace_dir=ws_parent)

        assert result.ok, result.error
        target = install_dir / BINARY
        assert target.read_bytes() == BINARY_BYTES
        assert stat.S_IMODE(target.stat().st_mode) == 0o755
        assert result.installed.path == target.resolve()
        assert result.installed.version == "v0.1.0"
        assert list(ws_parent.iterdir()) == []

    def test_crlf_sidecar(self, publish, make_config, install_dir, ws_parent):
        publish(crlf=True)
        result = run_install(make_config(version="v0.1.0"), host=LINUX_X86, workspace_dir=ws_parent)
        assert result.ok, result.error

    def test_digest_mismatch_installs_nothing(self, publish, make_config, install_dir, ws_parent):
        publish(digest="0" * 64)
        result = run_install(make_config(version="v0.1.0"), host=LINUX_X86, workspace_dir=ws_parent)

        assert not result.ok
        assert result.error.kind is ErrorKind.INTEGRITY
        assert result.error.details["expected"] == "0" * 64
        assert not (install_dir / BINARY).exists()
        assert list(ws_parent.iterdir()) == []
        assert "extract" not in [s.stage for s in result.stages]

    def test_missing_release_is_retrieval_error(self, make_config, install_dir, ws_parent):
        result = run_install(make_config(version="v9.9.9"), host=LINUX_X86, workspace_dir=ws_parent)
        assert result.error.kind is ErrorKind.RETRIEVAL
        assert result.error.details["http_status"] == 404
        assert result.error.details["url"].endswith(f"/v9.9.9/{ARCHIVE}")
        assert not install_dir.exists()
        assert list(ws_parent.iterdir()) == []

    def test_binary_missing_from_archive(self, publish, make_config, install_dir, ws_parent):
        publish(layout="missing")
        result = run_install(make_config(version="v0.1.0"), host=LINUX_X86, workspace_dir=ws_parent)
        assert result.error.kind is ErrorKind.BINARY_NOT_FOUND
        assert any(line.endswith("README.md") for line in result.error.details["contents"])
        assert not (install_dir / BINARY).exists()
        assert list(ws_parent.iterdir()) == []

    def test_reinstall_is_idempotent(self, publish, make_config, install_dir, ws_parent):
        publish()
        config = make_config(version="v0.1.0")
        first = run_install(config, host=LINUX_X86, workspace_dir=ws_parent)
        second = run_install(config, host=LINUX_X86, workspace_dir=ws_parent)

        assert first.ok and second.ok
        assert first.installed.sha256 == second.installed.sha256
        assert [p.name for p in install_dir.iterdir()] == [BINARY]
        assert stat.S_IMODE((install_dir / BINARY).stat().st_mode) == 0o755
        assert list(ws_parent.iterdir()) == []

    def test_upgrade_overwrites(self, publish, make_config, install_dir, ws_parent):
        publish("v0.1.0", binary=b"old")
        publish("v0.2.0", binary=b"new")
        run_install(make_config(version="v0.1.0"), host=LINUX_X86, workspace_dir=ws_parent)
        result = run_install(make_config(), host=LINUX_X86, workspace_dir=ws_parent)
        assert result.version == "v0.2.0"
        assert (install_dir / BINARY).read_bytes() == b"new"

    def test_interrupt_mid_retrieval_cleans_workspace(self, publish, make_config, ws_parent, monkeypatch):
        publish()
        real_download = retriever.download

        def _interrupt_on_sidecar(url, dest_dir, **kwargs):
            if url.endswith(".sha256"):
                raise KeyboardInterrupt
            return real_download(url, dest_dir, **kwargs)

        monkeypatch.setattr(retriever, "download", _interrupt_on_sidecar)
        with pytest.raises(KeyboardInterrupt):
            run_install(make_config(version="v0.1.0"), host=LINUX_X86, workspace_dir=ws_parent)
        assert list(ws_parent.iterdir()) == []

    def test_to_dict(self, publish, make_config, ws_parent):
        publish()
        data = run_install(make_config(version="v0.1.0"), host=LINUX_X86, workspace_dir=ws_parent).to_dict()
        assert data["ok"] is True
        assert data["archive"] == ARCHIVE
        assert data["installed"]["version"] == "v0.1.0"
        assert data["error"] is None
        assert [s["stage"] for s in data["stages"]] == [
            "platform", "version", "locate_artifact", "retrieve", "verify", "extract", "locate", "install",
        ]


REPO_ROOT = Path(__file__).resolve().parents[1]


class _StallingHandler(BaseHTTPRequestHandler):
    """Sends headers and the first few KiB of any file, then hangs."""

    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Length", str(1 << 20))
        self.end_headers()
        self.wfile.write(b"\0" * 4096)
        self.wfile.flush()
        self.server.release.wait(30)

    def log_message(self, format, *args):  # noqa: A002
        pass


@pytest.fixture
def stalling_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _StallingHandler)
    server.release = threading.Event()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.release.set()
        server.shutdown()
        server.server_close()


def _wait_for(predicate, timeout=15.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        found = predicate()
        if found:
            return found
        time.sleep(0.05)
    return None


@pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX signals")
class TestTerminatedProcess:
    def test_sigterm_mid_download_removes_workspace(self, stalling_server, install_dir, ws_parent, tmp_path):
        host = platform_resolver.detect_platform()
        if host.failed:
            pytest.skip(f"unsupported test host: {host.error.message}")

        env = {
            **os.environ,
            "PYTHONPATH": os.pathsep.join(filter(None, [str(REPO_ROOT), os.environ.get("PYTHONPATH")])),
            "TMPDIR": str(ws_parent),
            "CFSPEED_RELEASE_BASE_URL": stalling_server,
            "CFSPEED_INSTALL_DIR": str(install_dir),
            "CFSPEED_VERSION": "v0.1.0",
        }
        proc = subprocess.Popen(
            [sys.executable, "-m", "cfspeed_bootstrap.main", "--quiet", "install"],
            cwd=tmp_path,
            env=env,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
        try:
            partial = _wait_for(lambda: list(ws_parent.glob("cfspeed-install-*/*.tar.xz")))
            assert partial, "archive download never started"
            proc.send_signal(signal.SIGTERM)
            _, stderr = proc.communicate(timeout=15)
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.communicate()

        assert proc.returncode == 128 + signal.SIGTERM, stderr.decode(errors="replace")
        assert list(ws_parent.iterdir()) == []
        assert not (install_dir / BINARY).exists()
