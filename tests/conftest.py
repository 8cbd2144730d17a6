"""
Pytest configuration and shared fixtures for discovery harness tests.

This module provides common fixtures for both unit and integration tests:
throwaway control-group descriptors, in-memory resolution writers, and a
local HTTP server standing in for the proxy or the discovery backend.
"""

import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

from discovery_harness.hosts import InMemoryResolutionWriter


@pytest.fixture
def cgroup_file(tmp_path):
    """Return a factory writing a control-group descriptor with given content."""

    def write(content: str) -> Path:
        path = tmp_path / "cgroup"
        path.write_text(content)
        return path

    return write


@pytest.fixture
def memory_writer():
    """Provide an in-memory name resolution writer."""
    return InMemoryResolutionWriter()


@pytest.fixture
def mock_env_vars(tmp_path):
    """Provide harness environment variables pointing at test paths."""
    return {
        "LOG_LEVEL": "DEBUG",
        "HARNESS_COMPOSE_DIR": str(Path(__file__).parent / "integration" / "resources" / "compose"),
        "HARNESS_FIXTURES_DIR": str(Path(__file__).parent / "integration" / "fixtures"),
        "HARNESS_HOSTS_FILE": str(tmp_path / "hosts"),
        "HARNESS_CGROUP_FILE": str(tmp_path / "cgroup"),
        "HARNESS_POLL_INTERVAL": "0.05",
    }


@pytest.fixture
def mock_config(mock_env_vars, monkeypatch):
    """Set up mock environment variables for testing."""
    for key, value in mock_env_vars.items():
        monkeypatch.setenv(key, value)
    return mock_env_vars


class _RouteHandler(BaseHTTPRequestHandler):
    """Answers from the server's route table, 404 for anything else."""

    def do_GET(self):
        status, body = self.server.routes.get(self.path, (404, "404 page not found\n"))
        payload = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def http_server():
    """Run a local HTTP server whose routes tests can change at runtime."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _RouteHandler)
    server.routes = {}
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    server.url = f"http://127.0.0.1:{server.server_address[1]}"
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def unused_url():
    """A URL nothing listens on."""
    import socket

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}"


FAKE_PROXY_SOURCE = '''#!{python}
import sys
from http.server import BaseHTTPRequestHandler, HTTPServer

config_file = sys.argv[1].split("=", 1)[1]
with open(config_file) as f:
    port = int(f.read().split("=", 1)[1])


class Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        self.send_response(404)
        self.end_headers()
        self.wfile.write(b"404 page not found\\n")

    def log_message(self, format, *args):
        pass


print("fake proxy listening on", port, flush=True)
HTTPServer(("127.0.0.1", port), Handler).serve_forever()
'''


@pytest.fixture
def fake_proxy(tmp_path, unused_url):
    """
    An executable standing in for the proxy under test.

    It accepts --configFile=<path>, reads "port = N" from that file and
    answers 404 to every request, like an unconfigured proxy.
    """
    import stat
    import sys

    binary = tmp_path / "fake-proxy"
    binary.write_text(FAKE_PROXY_SOURCE.replace("{python}", sys.executable))
    binary.chmod(binary.stat().st_mode | stat.S_IXUSR)

    port = int(unused_url.rsplit(":", 1)[1])
    config_file = tmp_path / "proxy.toml"
    config_file.write_text(f"port = {port}")

    return {"binary": str(binary), "config_file": config_file, "url": unused_url}
