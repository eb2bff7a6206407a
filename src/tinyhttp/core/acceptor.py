"""
=============================================================================
ACCEPTOR: THE LISTENING SOCKET AND THE ACCEPT LOOP
=============================================================================

Owns the one listening socket and decides, connection by connection,
whether the server keeps running.

=============================================================================
SOCKET LIFECYCLE (Server Side)
=============================================================================

    1. socket()    Create a TCP socket
    2. bind()      Reserve 0.0.0.0:80
    3. listen(2)   Queue at most 2 pending connections
    4. accept()    Block until a client connects (no timeout)
    5. close()     Release the socket when the loop ends

=============================================================================
THE LOOP
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          Accept Loop                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   while outcome is CONTINUE:                                         │
    │       │                                                              │
    │       ├──► accept()                                                  │
    │       │       ├── EINVAL / EBADF  → FATAL_ERROR(-errno), leave       │
    │       │       └── other error     → log, CONTINUE                    │
    │       │                                                              │
    │       ├──► allowlist.is_allowed(peer)?                               │
    │       │       └── no  → log, close, CONTINUE (zero bytes sent)       │
    │       │                                                              │
    │       └──► outcome = handler(conn)     ← STOP on the shutdown route  │
    │               └── conn closed afterwards, always                     │
    │                                                                      │
    │   close listening socket (always)                                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Connections are handled one at a time, on the calling thread. A slow
client or a slow command blocks every other client until it finishes.

Why is EINVAL fatal? accept() returns it when the socket is no longer
listening. Retrying can never succeed, so continuing would spin the CPU
in a tight loop. EBADF (socket closed under us) is the same situation.

=============================================================================
"""

import errno
import socket
import logging
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from ..diagnostics import log_event, log_failed_call
from .allowlist import AddressAllowlist
from .connection import Connection
from .outcome import CONTINUE, BindError, ListenError, LoopOutcome


logger = logging.getLogger(__name__)


# accept() errors after which the loop cannot make progress
FATAL_ACCEPT_ERRNOS = frozenset({errno.EINVAL, errno.EBADF})


ConnectionHandler = Callable[[Connection], LoopOutcome]


class Acceptor:
    """
    Listening socket plus the sequential accept loop.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       Acceptor Internals                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    open()            socket(), bind(), listen(backlog)               │
    │        │                                                             │
    │        ▼                                                             │
    │    serve(handler)    loop until STOP or FATAL_ERROR                  │
    │        │                                                             │
    │        └──► _accept_once()                                           │
    │                 accept() → allowlist → handler(conn) → close        │
    │                                                                      │
    │    close()           release the listening socket                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        acceptor = Acceptor(config, allowlist)
        outcome = acceptor.start(handle_connection)   # blocks
        sys.exit(outcome.exit_code)
    """

    def __init__(
        self,
        config: ServerConfig,
        allowlist: AddressAllowlist,
        listening_socket: Optional[socket.socket] = None,
    ):
        """
        Args:
            config: Host, port, backlog and read buffer size.
            allowlist: Peers allowed to get an answer.
            listening_socket: An already listening socket to use instead of
                              creating one in open().
        """
        self.config = config
        self.allowlist = allowlist

        self._socket: Optional[socket.socket] = listening_socket

        # Set once listen() succeeded; tests and embedders wait on it
        self._listening_event = threading.Event()
        if listening_socket is not None:
            self._listening_event.set()

    @property
    def is_listening(self) -> bool:
        return self._socket is not None and self._listening_event.is_set()

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (IP, port); reflects the real port when config.port is 0."""
        if self._socket is not None:
            return self._socket.getsockname()[:2]
        return (self.config.host, self.config.port)

    # =========================================================================
    # SETUP
    # =========================================================================

    def _create_socket(self) -> socket.socket:
        """Create the TCP socket with SO_REUSEADDR set."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP)

        # Restarting right after a stop would otherwise fail with
        # "Address already in use" while the old socket sits in TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        return sock

    def open(self) -> None:
        """
        Create, bind and listen.

        Raises:
            BindError: Socket creation or bind() failed.
            ListenError: listen() failed.
        """
        logger.debug("Creating socket ...")
        try:
            sock = self._create_socket()
        except OSError as e:
            log_failed_call(logger, "socket()", -1, errno=e.errno, level=logging.CRITICAL)
            raise BindError(f"Cannot create socket: {e}") from e

        logger.debug("Binding socket ...")
        try:
            sock.bind((self.config.host, self.config.port))
        except OSError as e:
            log_failed_call(logger, "bind()", -1, errno=e.errno, level=logging.CRITICAL)
            sock.close()
            raise BindError(f"Cannot bind to {self.config.host}:{self.config.port}: {e}") from e

        try:
            sock.listen(self.config.backlog)
        except OSError as e:
            log_failed_call(logger, "listen()", -1, errno=e.errno, level=logging.CRITICAL)
            sock.close()
            raise ListenError(f"Cannot listen on {self.config.host}:{self.config.port}: {e}") from e

        self._socket = sock
        self._listening_event.set()

        host, port = self.address
        logger.info(f"Listening on {host}:{port} (backlog {self.config.backlog})")

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for open() to finish.

        Returns:
            True if the socket is listening, False on timeout.
        """
        return self._listening_event.wait(timeout)

    # =========================================================================
    # ACCEPT LOOP
    # =========================================================================

    def start(self, handler: ConnectionHandler) -> LoopOutcome:
        """Open the socket and run the accept loop. Blocks."""
        self.open()
        return self.serve(handler)

    def serve(self, handler: ConnectionHandler) -> LoopOutcome:
        """
        Accept connections until STOP or FATAL_ERROR.

        The listening socket is closed when this returns, whatever the
        reason (including KeyboardInterrupt).

        Args:
            handler: Called with each allowed connection; its outcome
                     decides whether the loop goes on.

        Returns:
            The outcome that ended the loop.

        Raises:
            RuntimeError: The socket is not open (open() never ran, or the
                          acceptor was already closed).
        """
        if self._socket is None:
            raise RuntimeError("Acceptor is not listening, call open() first")

        logger.debug("Processing requests ...")

        outcome = CONTINUE
        try:
            while not outcome.ends_loop:
                outcome = self._accept_once(handler)
        finally:
            self.close()

        return outcome

    def _accept_once(self, handler: ConnectionHandler) -> LoopOutcome:
        """Accept one connection and see it through to its close."""
        try:
            client_socket, client_address = self._socket.accept()
        except OSError as e:
            log_failed_call(logger, "accept()", -1, errno=e.errno)
            if e.errno in FATAL_ACCEPT_ERRNOS:
                return LoopOutcome.fatal(-e.errno)
            return CONTINUE

        conn = Connection(
            socket=client_socket,
            address=client_address,
            buffer_size=self.config.buffer_size,
        )

        logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}:{conn.client_port}")

        with conn:
            if not self.allowlist.is_allowed(conn.client_ip):
                log_event(
                    logger,
                    f"[{conn.id}] Invalid client address {conn.client_ip}:{conn.client_port}",
                    logging.WARNING,
                )
                return CONTINUE

            return handler(conn)

    def close(self) -> None:
        """Close the listening socket. Safe to call twice."""
        if self._socket is None:
            return

        logger.debug("Closing socket ...")
        try:
            self._socket.close()
        except OSError as e:
            log_failed_call(logger, "close()", -1, errno=e.errno, level=logging.WARNING)

        self._socket = None
        self._listening_event.clear()
        logger.info("Acceptor stopped")
