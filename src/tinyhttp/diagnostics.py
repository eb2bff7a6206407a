"""
=============================================================================
DIAGNOSTICS: EVENT LOGGING AND ACCESS LOG
=============================================================================

The server has no error pages for the operator, only logs. Everything an
operator can learn about a failure comes through here.

=============================================================================
TWO CALL SHAPES
=============================================================================

Callers pick the shape explicitly:

    log_event(logger, "Invalid request")
        └── a plain message, optionally at a chosen level

    log_failed_call(logger, "accept()", -1, errno=22)
        └── a system call (or similar) failed with a return code

    ┌─────────────────────────────────────────────────────────────────────┐
    │  ERROR  accept() failed (returned -1, errno=22)                     │
    │  ─────  ───────────────────────────────────────                     │
    │  level  context + return code                                       │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ACCESS LOG
=============================================================================

One line per answered connection on the "tinyhttp.access" logger:

    TEXT (default):
        127.0.0.1 - - [18/Oct/2026:10:55:36 +0000] "GET /" 200 1234 0.52ms

    JSON (for log aggregators):
        {"client_ip": "127.0.0.1", "target": "/", "status_code": 200, ...}

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional


# ═══════════════════════════════════════════════════════════════════════════
# LOGGER CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════
# Namespaced so operators can route access lines separately:
#   logging.getLogger("tinyhttp.access").addHandler(file_handler)
# ═══════════════════════════════════════════════════════════════════════════
access_logger = logging.getLogger("tinyhttp.access")


def log_event(logger: logging.Logger, message: str, level: int = logging.INFO) -> None:
    """Log a plain diagnostic message."""
    logger.log(level, message)


def log_failed_call(
    logger: logging.Logger,
    context: str,
    return_code: int,
    errno: Optional[int] = None,
    level: int = logging.ERROR,
) -> None:
    """
    Log a failed call together with its return code.

    Args:
        logger: Module logger of the caller.
        context: What was called, e.g. "accept()" or "write()".
        return_code: Value returned by the call.
        errno: OS error number, when there is one.
        level: Logging level (ERROR unless the failure is only a warning).
    """
    details = f"returned {return_code}"
    if errno is not None:
        details += f", errno={errno}"
    logger.log(level, f"{context} failed ({details})")


@dataclass
class RequestLog:
    """
    Structured access log entry for one connection.

    Fields:
        client_ip:      Peer address
        target:         Request target, "-" when the request line was invalid
        route:          Route kind (root, static, execute, shutdown, invalid)
        status_code:    Status sent back, 0 when nothing was sent
        content_length: Body bytes sent
        duration_ms:    Time from accept to close
        timestamp:      When the connection was handled
    """

    client_ip: str
    target: str
    route: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "client_ip": self.client_ip,
            "target": self.target,
            "route": self.route,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Format in the Apache log style."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"GET {self.target}" {self.status_code or "-"} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


def log_access(entry: RequestLog, log_format: str = "text") -> None:
    """Emit an access log line in the configured format."""
    if log_format == "json":
        access_logger.info(json.dumps(entry.to_dict()))
    else:
        access_logger.info(entry.to_text())


def access_timestamp() -> str:
    """Timestamp in the access log format (local time)."""
    return time.strftime("%d/%b/%Y:%H:%M:%S %z")
