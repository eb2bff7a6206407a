"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps an accepted client socket with the three operations the server
needs: one bounded read, unretried writes, and a close that always runs.

=============================================================================
ONE READ, NO REASSEMBLY
=============================================================================

TCP is a byte stream. A request can arrive in several chunks:

    Client sends:   "GET /index.htm HTTP/1.1\r\n"
    recv() #1  →    "GET /ind"
    recv() #2  →    "ex.htm HTTP/1.1\r\n"

A general-purpose server loops until it has the whole message. This one
does NOT: it performs a single recv() of buffer_size bytes (1 KiB) and
works with whatever arrived. Requests longer than the buffer are
truncated. The request line of a well-behaved client arrives in the first
segment, and the bounded read keeps memory per connection fixed.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──────► READING ──────► ROUTING ──────► RESPONDING ──────┐
     │             │               │                │             │
     │             │               │                │             ▼
     └─────────────┴───────────────┴────────────────┴────────► CLOSED

Denied peers go straight from NEW to CLOSED. Every path ends in CLOSED.

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field

from ..diagnostics import log_failed_call


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"                  # Just accepted
    READING = "reading"          # Doing the single read
    ROUTING = "routing"          # Request line being routed
    RESPONDING = "responding"    # Writing header and body
    CLOSED = "closed"            # Socket released


@dataclass
class Connection:
    """
    Represents one accepted client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        buffer_size: Size of the single read.
        id: Short identifier for log lines.
        state: Current connection state.
        created_at: Timestamp when the connection was accepted.
        bytes_sent: Total bytes written so far.
    """

    socket: socket.socket
    address: tuple
    buffer_size: int = 1024

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    bytes_sent: int = 0

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return self.address[0]

    @property
    def client_port(self) -> int:
        """Get the client port."""
        return self.address[1]

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> bytes:
        """
        Read the request with one bounded recv().

        Returns:
            Up to buffer_size bytes. Empty bytes if the client closed the
            connection or the read failed.
        """
        self.state = ConnectionState.READING

        try:
            data = self.socket.recv(self.buffer_size)
        except OSError as e:
            log_failed_call(logger, f"[{self.id}] read()", -1, errno=e.errno)
            return b""

        if len(data) == self.buffer_size:
            logger.debug(f"[{self.id}] Request filled the {self.buffer_size} byte buffer, rest ignored")

        return data

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> bool:
        """
        Write data with a single send(), without retrying.

        A short write is logged and left as is.

        Args:
            data: Bytes to send.

        Returns:
            True if every byte was written.
        """
        self.state = ConnectionState.RESPONDING

        try:
            sent = self.socket.send(data)
        except OSError as e:
            log_failed_call(logger, f"[{self.id}] write()", -1, errno=e.errno)
            return False

        self.bytes_sent += sent

        if sent != len(data):
            log_failed_call(logger, f"[{self.id}] write() of {len(data)} bytes", sent)
            return False

        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection.

        shutdown(SHUT_WR) sends FIN so the client sees a clean end of
        stream, then close() releases the descriptor. Safe to call twice.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.close()
        except OSError as e:
            log_failed_call(logger, f"[{self.id}] close()", -1, errno=e.errno, level=logging.WARNING)

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensure connection is closed."""
        self.close()
        return False
