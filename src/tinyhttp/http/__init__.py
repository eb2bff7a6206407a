"""
=============================================================================
HTTP PROTOCOL MODULE
=============================================================================

    router.py    "GET <target>" → Route → RouteResult
    response.py  ResponseStatus → status line + header block

=============================================================================
"""

from .response import (
    ResponseStatus,
    ResponseFramer,
    format_asctime,
    OK,          # 200 OK
    NOT_FOUND,   # 404 ERROR
    STOPPING,    # 200 STOPPING (shutdown page)
)
from .router import (
    Route,
    RouteKind,
    RouteResult,
    RequestRouter,
    classify,
    parse_request_line,
)

__all__ = [
    # Response framing
    "ResponseStatus",
    "ResponseFramer",
    "format_asctime",
    "OK",
    "NOT_FOUND",
    "STOPPING",

    # Routing
    "Route",
    "RouteKind",
    "RouteResult",
    "RequestRouter",
    "classify",
    "parse_request_line",
]
