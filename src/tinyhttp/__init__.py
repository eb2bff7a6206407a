"""
=============================================================================
TINYHTTP - A MINIMAL ALLOWLISTED HTTP SERVER
=============================================================================

A single-process HTTP/1.x server that:

    - accepts one TCP connection at a time
    - answers only peers listed in an IPv4 allowlist
    - serves static files from one document root
    - serves the stdout of whitelisted commands (GET /execute/<name>)
    - stops when GET /server_stop.htm is requested

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    tinyhttp/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m tinyhttp)
    ├── config.py            # ServerConfig dataclass
    ├── diagnostics.py       # Event logging call shapes, access log
    ├── server.py            # TinyHTTPServer, ConnectionHandler
    │
    ├── core/                # Networking
    │   ├── acceptor.py      # Listening socket and accept loop
    │   ├── allowlist.py     # Client address allowlist
    │   ├── connection.py    # Client connection wrapper
    │   └── outcome.py       # Loop outcomes, exit codes, setup errors
    │
    ├── http/                # Protocol
    │   ├── response.py      # Status line and header framing
    │   └── router.py        # Request line parsing and routing
    │
    └── handlers/            # Content
        └── content.py       # Static files and command output

=============================================================================
QUICK START
=============================================================================

    from tinyhttp import TinyHTTPServer, ServerConfig

    config = ServerConfig(
        port=8080,
        document_root="./Data",
        allowlist_path="./AllowedClientAddresses.txt",
    )
    exit_code = TinyHTTPServer(config).run()

=============================================================================
"""

__version__ = "1.0.0"

from .server import TinyHTTPServer
from .config import ServerConfig

__all__ = ["TinyHTTPServer", "ServerConfig", "__version__"]
