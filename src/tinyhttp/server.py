"""
=============================================================================
TINYHTTP SERVER
=============================================================================

Ties the components together into a running server.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    TINYHTTP ARCHITECTURE                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │  TinyHTTPServer │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────────┐  ┌──────────────┐      │
    │    │   Acceptor   │───►│ConnectionHandler │─►│RequestRouter │      │
    │    │ + Allowlist  │    │ read/frame/write │  └──────┬───────┘      │
    │    └──────────────┘    └────────┬─────────┘         │              │
    │                                 │                   ▼              │
    │                        ┌────────▼────────┐  ┌──────────────┐       │
    │                        │ ResponseFramer  │  │ContentSource │       │
    │                        └─────────────────┘  └──────────────┘       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. ACCEPT          Acceptor accepts the TCP connection
    2. ALLOWLIST       Peer not listed → close, nothing sent
    3. READ            One recv() of at most 1 KiB
    4. ROUTE           "GET <target>" → root / static / execute / shutdown
    5. CONTENT         File bytes, command output, or the 404 page
    6. FRAME           Status line + Date/Server/Content-Length/Content-Type
    7. WRITE           Header, then body, as two writes
    8. CLOSE           Always
    9. LOOP            Unless the shutdown page was just served

=============================================================================
"""

import logging
import time
from typing import Optional

from . import __version__
from .config import ServerConfig
from .core import Acceptor, AddressAllowlist, Connection, ConnectionState
from .core.outcome import CONTINUE, EXIT_INTERRUPTED, LoopOutcome
from .diagnostics import RequestLog, access_timestamp, log_access
from .handlers import ContentSource
from .http import RequestRouter, ResponseFramer, Route


logger = logging.getLogger(__name__)


class ConnectionHandler:
    """
    Drives one allowed connection: read, route, respond.

    The Acceptor closes the connection afterwards, so this never has to.
    Errors stay inside: whatever happens, the accept loop gets an outcome.
    """

    def __init__(self, router: RequestRouter, framer: ResponseFramer, log_format: str = "text"):
        self.router = router
        self.framer = framer
        self.log_format = log_format

    def __call__(self, conn: Connection) -> LoopOutcome:
        """
        Handle a connection.

        Args:
            conn: Accepted connection from an allowed peer.

        Returns:
            The loop outcome decided by the router (CONTINUE on errors).
        """
        start_time = time.time()

        logger.debug(f"[{conn.id}] Processing request ...")

        # ─────────────────────────────────────────────────────────────────
        # READ (single bounded read)
        # ─────────────────────────────────────────────────────────────────
        raw_request = conn.read_request()

        # ─────────────────────────────────────────────────────────────────
        # ROUTE
        # ─────────────────────────────────────────────────────────────────
        conn.state = ConnectionState.ROUTING

        try:
            route = self.router.parse_request_line(raw_request)
            result = self.router.handle(route)
        except Exception as e:
            logger.exception(f"[{conn.id}] Request handling error: {e}")
            return CONTINUE

        # ─────────────────────────────────────────────────────────────────
        # RESPOND (header and body are separate writes, no retries)
        # ─────────────────────────────────────────────────────────────────
        if result.has_response:
            logger.debug(f"[{conn.id}] Sending header ...")
            conn.send(self.framer.build_header(result.status, len(result.body)))

            if result.body:
                logger.debug(f"[{conn.id}] Sending data ...")
                conn.send(result.body)

        self._log_access(conn, route, result.status.code if result.has_response else 0,
                         len(result.body), start_time)

        return result.outcome

    def _log_access(self, conn: Connection, route: Route, status_code: int,
                    content_length: int, start_time: float):
        log_access(
            RequestLog(
                client_ip=conn.client_ip,
                target=route.target,
                route=route.kind.value,
                status_code=status_code,
                content_length=content_length,
                duration_ms=(time.time() - start_time) * 1000,
                timestamp=access_timestamp(),
            ),
            self.log_format,
        )


class TinyHTTPServer:
    """
    Single-threaded HTTP/1.x server for a fixed document root.

    =========================================================================
    USAGE
    =========================================================================

        config = ServerConfig(port=8080, document_root="./Data")
        server = TinyHTTPServer(config)     # loads the allowlist
        exit_code = server.run()            # blocks until GET /server_stop.htm

    =========================================================================
    ARCHITECTURE
    =========================================================================

    - ServerConfig:      configuration
    - AddressAllowlist:  loaded here, handed to the Acceptor
    - Acceptor:          listening socket and accept loop
    - ConnectionHandler: per-connection read/route/respond
    - RequestRouter:     request line → route → content
    - ContentSource:     files and command output
    - ResponseFramer:    status line and headers

    =========================================================================
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        allowlist: Optional[AddressAllowlist] = None,
    ):
        """
        Initialize the server.

        Args:
            config: Server configuration. Uses the defaults if not provided.
            allowlist: Pre-built allowlist. Loaded from
                       config.allowlist_path if not provided.

        Raises:
            ValueError: Invalid configuration.
            AllowlistError: The allowlist file cannot be opened.
        """
        self.config = config or ServerConfig()
        self.config.validate()  # Fail-fast on invalid config

        if allowlist is None:
            allowlist = AddressAllowlist.load(self.config.allowlist_path)
        self.allowlist = allowlist

        # ─────────────────────────────────────────────────────────────────
        # CONTENT AND ROUTING
        # ─────────────────────────────────────────────────────────────────

        self.content = ContentSource(
            document_root=self.config.document_root,
            max_file_size=self.config.max_file_size,
            command_dir=self.config.resolved_command_dir,
            allowed_commands=self.config.allowed_commands,
            output_file=self.config.output_file,
        )

        self.router = RequestRouter(
            self.content,
            index_file=self.config.index_file,
            not_found_file=self.config.not_found_file,
            stop_file=self.config.stop_file,
            max_target_length=self.config.max_target_length,
        )

        self.framer = ResponseFramer(server_name=self.config.server_name)

        self.handler = ConnectionHandler(self.router, self.framer, self.config.log_format)

        # ─────────────────────────────────────────────────────────────────
        # NETWORKING
        # ─────────────────────────────────────────────────────────────────

        self.acceptor = Acceptor(self.config, self.allowlist)

    def run(self) -> int:
        """
        Open the socket and serve until stopped. Blocks.

        Returns:
            Process exit code: 0 after the shutdown route, -errno after a
            fatal accept error, 130 on Ctrl+C.

        Raises:
            BindError, ListenError: The socket could not be set up.
        """
        logger.info(f"TinyHTTP - Version {__version__}")

        try:
            outcome = self.acceptor.start(self.handler)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
            return EXIT_INTERRUPTED

        logger.info(f"Server stopped ({outcome.kind.value}, exit code {outcome.exit_code})")
        return outcome.exit_code

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        """Wait until the listening socket is ready."""
        return self.acceptor.wait_until_listening(timeout)

    @property
    def address(self):
        """Bound (IP, port)."""
        return self.acceptor.address


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on config."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("tinyhttp").setLevel(level)


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. Component wiring: config, allowlist, content, router, framer, acceptor
# 2. Per-connection flow: read → route → frame → write → close
# 3. Exit codes: 0 on the shutdown route, -errno on fatal accept errors
#
# KEY DESIGN DECISIONS:
# - One connection at a time, on the main thread
# - No timeouts; only the shutdown route or a fatal error ends the loop
# - Errors are logged, never raised into the accept loop
# =============================================================================
