"""
=============================================================================
REQUEST ROUTING
=============================================================================

Parses the request line and decides what the response will be.

=============================================================================
THE REQUEST LINE
=============================================================================

Only the first line matters; headers, if the client sends any, are ignored.

    GET /index.htm HTTP/1.1\r\n
    ─┬─ ────┬─────
     │      └── target: one token, at most 16 bytes
     └── the only supported method

Anything else (POST, a missing target, a target that is too long) is an
INVALID route. Invalid requests get no response at all: the connection is
simply closed.

=============================================================================
ROUTE TABLE (evaluated top to bottom, first match wins)
=============================================================================

    ┌──────────────────────┬─────────────┬──────────────────────────────┐
    │ Target               │ Route       │ Response                     │
    ├──────────────────────┼─────────────┼──────────────────────────────┤
    │ /                    │ ROOT        │ index.htm                    │
    │ /execute/<name>      │ EXECUTE     │ stdout of <name>             │
    │ /server_stop.htm     │ SHUTDOWN    │ server_stop.htm, then STOP   │
    │ anything else        │ STATIC      │ the file, or 404.htm         │
    └──────────────────────┴─────────────┴──────────────────────────────┘

The order matters: /execute/server_stop.htm is an EXECUTE route, because
the prefix rule is checked before the exact shutdown match.

=============================================================================
"""

import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..core.outcome import CONTINUE, STOP, LoopOutcome
from ..diagnostics import log_event
from ..handlers.content import ContentSource
from .response import NOT_FOUND, OK, STOPPING, ResponseStatus


logger = logging.getLogger(__name__)


EXECUTE_PREFIX = "/execute/"
SHUTDOWN_TARGET = "/server_stop.htm"

# Method, whitespace, one non-whitespace token (first line only)
REQUEST_LINE = re.compile(rb"^GET[ \t]+(\S+)")


class RouteKind(Enum):
    """Classified intent of a request target."""
    ROOT = "root"
    STATIC_FILE = "static"
    EXECUTE = "execute"
    SHUTDOWN = "shutdown"
    INVALID = "invalid"


@dataclass(frozen=True)
class Route:
    """
    A classified request target.

    Attributes:
        kind: Which route table row matched.
        target: The request target as received ("-" when invalid).
        argument: File path for STATIC_FILE, command name for EXECUTE,
                  empty otherwise.
    """

    kind: RouteKind
    target: str = "-"
    argument: str = ""


INVALID = Route(RouteKind.INVALID)


@dataclass
class RouteResult:
    """
    What the connection handler should send, and what the loop does next.

    status is None for invalid requests: nothing is sent.
    """

    status: Optional[ResponseStatus]
    body: bytes
    outcome: LoopOutcome

    @property
    def has_response(self) -> bool:
        return self.status is not None


def classify(path: str) -> Route:
    """
    Map a request target to a route, in fixed priority order.

    Args:
        path: Request target, e.g. "/", "/execute/uptime".

    Returns:
        ROOT, EXECUTE, SHUTDOWN or STATIC_FILE route.
    """
    if path == "/":
        return Route(RouteKind.ROOT, path)

    if path.startswith(EXECUTE_PREFIX):
        return Route(RouteKind.EXECUTE, path, path[len(EXECUTE_PREFIX):])

    if path == SHUTDOWN_TARGET:
        return Route(RouteKind.SHUTDOWN, path)

    return Route(RouteKind.STATIC_FILE, path, path)


def parse_request_line(raw: bytes, max_target_length: int = 16) -> Route:
    """
    Parse "GET <target>" from the raw request bytes and classify it.

    Args:
        raw: Bytes from the single read of the connection.
        max_target_length: Longest accepted target, in bytes.

    Returns:
        The classified route, or INVALID.
    """
    first_line = raw.split(b"\n", 1)[0]

    match = REQUEST_LINE.match(first_line)
    if match is None:
        log_event(logger, f"Invalid request: {first_line.strip()[:64]!r}", logging.ERROR)
        return INVALID

    target = match.group(1)
    if len(target) > max_target_length:
        log_event(
            logger,
            f"Invalid request: target longer than {max_target_length} bytes",
            logging.ERROR,
        )
        return INVALID

    # Undecodable bytes survive as surrogates and map back to the same
    # file name bytes when the path is opened
    return classify(os.fsdecode(target))


class RequestRouter:
    """
    Routes requests to the content source and frames the result.

    =========================================================================
    USAGE
    =========================================================================

        router = RequestRouter(ContentSource("../Data"))

        route = router.parse_request_line(b"GET / HTTP/1.1\\r\\n")
        result = router.handle(route)

        result.status    # OK
        result.body      # contents of index.htm
        result.outcome   # CONTINUE

    =========================================================================
    """

    def __init__(
        self,
        content: ContentSource,
        index_file: str = "index.htm",
        not_found_file: str = "404.htm",
        stop_file: str = "server_stop.htm",
        max_target_length: int = 16,
    ):
        self.content = content
        self.index_file = index_file
        self.not_found_file = not_found_file
        self.stop_file = stop_file
        self.max_target_length = max_target_length

    def parse_request_line(self, raw: bytes) -> Route:
        """Parse the request line with this router's target limit."""
        return parse_request_line(raw, self.max_target_length)

    def handle(self, route: Route) -> RouteResult:
        """
        Produce the response for a route.

        Args:
            route: Classified request.

        Returns:
            Status and body to send (status None for invalid requests)
            and the loop outcome.
        """
        logger.debug(f"Processing GET {route.target} as {route.kind.value} ...")

        if route.kind is RouteKind.INVALID:
            return RouteResult(None, b"", CONTINUE)

        if route.kind is RouteKind.ROOT:
            return self._respond(self.content.read_static_file("/" + self.index_file), OK)

        if route.kind is RouteKind.EXECUTE:
            return self._respond(self.content.capture_command_output(route.argument), OK)

        if route.kind is RouteKind.SHUTDOWN:
            logger.info("Shutdown requested")
            return self._respond(
                self.content.read_static_file("/" + self.stop_file), STOPPING, STOP
            )

        return self._respond(self.content.read_static_file(route.argument), OK)

    def _respond(
        self,
        body: Optional[bytes],
        status: ResponseStatus,
        outcome: LoopOutcome = CONTINUE,
    ) -> RouteResult:
        """Wrap found content, or fall back to the 404 page."""
        if body is None:
            return RouteResult(NOT_FOUND, self._not_found_body(), outcome)
        return RouteResult(status, body, outcome)

    def _not_found_body(self) -> bytes:
        """
        Body of the 404 page.

        The fallback is tried once; if the 404 page itself is missing the
        response goes out with an empty body.
        """
        body = self.content.read_static_file("/" + self.not_found_file)
        if body is None:
            log_event(logger, f"404 page {self.not_found_file} is missing", logging.ERROR)
            return b""
        return body
