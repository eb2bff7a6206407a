"""
=============================================================================
HTTP RESPONSE FRAMING
=============================================================================

Builds the status line and header block that precede every response body.

=============================================================================
RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  ┌─ STATUS LINE ──────────────────────────────────────────────────┐ │
    │  │    HTTP/1.1 200 OK\r\n                                         │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ HEADERS (always these five, always this order) ───────────────┐ │
    │  │    Date: Thu Jan 15 12:30:45 2026 GMT\r\n                      │ │
    │  │    Server: TinyHTTP\r\n                                         │ │
    │  │    Content-Length: 1234\r\n                                    │ │
    │  │    Content-Type: text/html\r\n                                 │ │
    │  │    \r\n                              ← end of headers          │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ BODY (sent separately by the connection handler) ─────────────┐ │
    │  │    <html>...</html>                                             │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE DATE FORMAT
=============================================================================

The Date header uses the classic C asctime() layout of the current UTC
time, followed by " GMT":

    Thu Jan 15 12:30:45 2026 GMT
    Thu Jan  5 12:30:45 2026 GMT      ← day of month is SPACE padded

This is not the RFC 7231 IMF-fixdate ("Thu, 15 Jan 2026 ...") but browsers
accept it; RFC 7231 lists asctime as an obsolete format recipients must
still understand.

If the clock cannot be read, the literal error text is sent in its place.
A response is never dropped because of the Date header.

=============================================================================
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from ..diagnostics import log_event


logger = logging.getLogger(__name__)


CONTENT_TYPE = "text/html"
DATE_ERROR = "ERROR  time(  )  failed"


@dataclass(frozen=True)
class ResponseStatus:
    """
    Status code and reason phrase for the status line.

    Only the module constants below are ever produced by the server.
    """

    code: int
    reason: str

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 404 ERROR" """
        return f"HTTP/1.1 {self.code} {self.reason}"


OK = ResponseStatus(200, "OK")
NOT_FOUND = ResponseStatus(404, "ERROR")
STOPPING = ResponseStatus(200, "STOPPING")


def format_asctime(timestamp: float) -> str:
    """
    Format a POSIX timestamp the way C asctime(gmtime(t)) does,
    without the trailing newline.

    Raises:
        OverflowError, OSError, ValueError: timestamp out of range.
    """
    return time.asctime(time.gmtime(timestamp))


class ResponseFramer:
    """
    Builds response preambles.

    No state besides the server name and clock, so one instance serves
    the whole process.

    Usage:
        framer = ResponseFramer()
        header = framer.build_header(OK, len(body))
        # b"HTTP/1.1 200 OK\r\nDate: ...\r\n...\r\n\r\n"
    """

    def __init__(self, server_name: str = "TinyHTTP", clock: Callable[[], float] = time.time):
        """
        Args:
            server_name: Value of the Server header.
            clock: Returns the current POSIX time. Injected by tests.
        """
        self.server_name = server_name
        self._clock = clock

    def current_date(self) -> str:
        """Date header value, or the error literal if the clock fails."""
        try:
            return format_asctime(self._clock())
        except (OverflowError, OSError, ValueError) as e:
            log_event(logger, f"Cannot read the current time: {e}", logging.ERROR)
            return DATE_ERROR

    def build_header(self, status: ResponseStatus, content_length: int) -> bytes:
        """
        Build the status line and headers for a response.

        Args:
            status: Status code and reason phrase.
            content_length: Body size in bytes.

        Returns:
            Header block ending with the blank line, ready for the socket.
        """
        lines = [
            status.status_line,
            f"Date: {self.current_date()} GMT",
            f"Server: {self.server_name}",
            f"Content-Length: {content_length}",
            f"Content-Type: {CONTENT_TYPE}",
            "",
        ]

        # Join with CRLF; the trailing CRLF closes the empty line
        header = "\r\n".join(lines) + "\r\n"

        logger.debug(f"Header built: {status.status_line}, {content_length} bytes")

        return header.encode("ascii", errors="replace")
