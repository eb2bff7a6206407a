"""
pytest configuration and fixtures.
"""

import errno
import socket
import threading
from pathlib import Path
from typing import Generator, List, Optional

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tinyhttp import TinyHTTPServer, ServerConfig
from tinyhttp.core import AddressAllowlist
from tinyhttp.handlers import ContentSource


PAGES = {
    "index.htm": b"<html><body><h1>Welcome to TinyHTTP</h1></body></html>\n",
    "404.htm": b"<html><body><h1>404 - Not found</h1></body></html>\n",
    "server_stop.htm": b"<html><body><h1>Server stopping</h1></body></html>\n",
    "about.htm": b"<html><body>About</body></html>\n",
}


# =============================================================================
# FILESYSTEM FIXTURES
# =============================================================================

@pytest.fixture
def pages() -> dict:
    """Name → bytes of every page in the test document root."""
    return dict(PAGES)


@pytest.fixture
def document_root(tmp_path: Path) -> Path:
    """Document root with the welcome, 404, shutdown and an ordinary page."""
    root = tmp_path / "Data"
    root.mkdir()
    for name, body in PAGES.items():
        (root / name).write_bytes(body)
    return root


@pytest.fixture
def command_dir(tmp_path: Path) -> Path:
    """Directory with a succeeding and a failing shell script."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()

    hello = bin_dir / "hello"
    hello.write_text("#!/bin/sh\necho hello from tinyhttp\n")
    hello.chmod(0o755)

    fail = bin_dir / "fail"
    fail.write_text("#!/bin/sh\necho partial\nexit 3\n")
    fail.chmod(0o755)

    quiet = bin_dir / "quiet"
    quiet.write_text("#!/bin/sh\nexit 0\n")
    quiet.chmod(0o755)

    return bin_dir


@pytest.fixture
def allowlist_file(tmp_path: Path) -> Path:
    """Allowlist admitting only the loopback host."""
    path = tmp_path / "AllowedClientAddresses.txt"
    path.write_text("127.0.0.1 255.255.255.255\n")
    return path


@pytest.fixture
def content(document_root: Path, command_dir: Path) -> ContentSource:
    """Content source over the test document root."""
    return ContentSource(str(document_root), command_dir=str(command_dir))


@pytest.fixture
def config(document_root: Path, command_dir: Path, allowlist_file: Path) -> ServerConfig:
    """Test server configuration on an OS-assigned port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        document_root=str(document_root),
        command_dir=str(command_dir),
        allowlist_path=str(allowlist_file),
        log_level="WARNING",
    )


# =============================================================================
# FAKE SOCKETS
# =============================================================================

class FakeClientSocket:
    """Client socket double: scripted request bytes, recorded writes."""

    def __init__(self, request: bytes = b"", send_limit: Optional[int] = None):
        self.request = request
        self.send_limit = send_limit
        self.sent: List[bytes] = []
        self.recv_calls: List[int] = []
        self.closed = False

    def recv(self, size: int) -> bytes:
        self.recv_calls.append(size)
        data, self.request = self.request[:size], self.request[size:]
        return data

    def send(self, data: bytes) -> int:
        if self.closed:
            raise OSError(errno.EBADF, "Bad file descriptor")
        count = len(data) if self.send_limit is None else min(len(data), self.send_limit)
        self.sent.append(bytes(data[:count]))
        return count

    def shutdown(self, how: int) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    @property
    def data(self) -> bytes:
        return b"".join(self.sent)


class FakeListeningSocket:
    """
    Listening socket double.

    accept() hands out the queued events in order: (client, address)
    tuples are returned, OSError instances are raised. Once the queue is
    empty accept() fails with EINVAL, which ends the loop.
    """

    def __init__(self, events: list):
        self.events = list(events)
        self.closed = False

    def accept(self):
        if not self.events:
            raise OSError(errno.EINVAL, "Invalid argument")
        event = self.events.pop(0)
        if isinstance(event, OSError):
            raise event
        return event

    def getsockname(self):
        return ("127.0.0.1", 0)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client():
    """Factory for FakeClientSocket."""
    return FakeClientSocket


@pytest.fixture
def fake_listener():
    """Factory for FakeListeningSocket."""
    return FakeListeningSocket


# =============================================================================
# LIVE SERVER
# =============================================================================

class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # Not a test class, despite the name

    def __init__(self, server: TinyHTTPServer):
        self.server = server
        self.exit_code: Optional[int] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def _run(self):
        self.exit_code = self.server.run()

    def start(self):
        """Start server in background thread and wait until it listens."""
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_listening(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def request(self, raw: bytes) -> bytes:
        """Send raw request bytes and read the whole response."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=5.0) as client:
            client.sendall(raw)
            chunks = []
            while True:
                chunk = client.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def join(self, timeout: float = 5.0) -> bool:
        """Wait for the server thread. Returns True if it finished."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def stop(self):
        """Stop the server through the shutdown route if still running."""
        if self._thread and self._thread.is_alive() and self.server.acceptor.is_listening:
            try:
                self.request(b"GET /server_stop.htm HTTP/1.1\r\n\r\n")
            except OSError:
                pass
        if self._thread:
            self._thread.join(timeout=5.0)


@pytest.fixture
def test_server(config: ServerConfig) -> Generator[TestServer, None, None]:
    """Create and start a test server."""
    test_srv = TestServer(TinyHTTPServer(config))
    test_srv.start()

    yield test_srv

    test_srv.stop()


@pytest.fixture
def start_server():
    """Factory starting a TestServer around a prepared TinyHTTPServer."""
    started = []

    def start(server: TinyHTTPServer) -> TestServer:
        test_srv = TestServer(server)
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield start

    for test_srv in started:
        test_srv.stop()


def split_response(response: bytes):
    """Split a raw response into (status line, headers dict, body)."""
    head, _, body = response.partition(b"\r\n\r\n")
    lines = head.decode("ascii").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(": ")
        headers[name] = value
    return lines[0], headers, body


@pytest.fixture
def parse_response():
    """Helper splitting a raw response into status line, headers, body."""
    return split_response


@pytest.fixture
def allow_loopback() -> AddressAllowlist:
    """Allowlist admitting only 127.0.0.1."""
    return AddressAllowlist.from_lines(["127.0.0.1 255.255.255.255"])
