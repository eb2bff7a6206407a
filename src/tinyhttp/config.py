"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the TinyHTTP server.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m tinyhttp --port 8080                            │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── TINYHTTP_PORT=8080 python -m tinyhttp                     │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
DIRECTORY LAYOUT (defaults)
=============================================================================

The defaults assume the server is started from a sibling directory of the
data, e.g. from deploy/bin:

    deploy/
    ├── AllowedClientAddresses.txt    ← allowlist_path
    ├── Data/                         ← document_root
    │   ├── index.htm                 ← served for GET /
    │   ├── 404.htm                   ← served for anything missing
    │   ├── server_stop.htm           ← served for GET /server_stop.htm
    │   └── Output.txt                ← last captured command output
    └── bin/                          ← working directory
        └── (python -m tinyhttp)

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import FrozenSet, Optional


@dataclass
class ServerConfig:
    """
    Configuration for the TinyHTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size

    CONTENT
    - document_root, index_file, not_found_file, stop_file
    - max_file_size, max_target_length

    COMMAND EXECUTION
    - command_dir, allowed_commands, output_file

    ACCESS CONTROL
    - allowlist_path

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """Address to bind to. "0.0.0.0" listens on every interface."""

    port: int = 80
    """Port to listen on. Ports below 1024 need root on Unix. 0 = OS picks."""

    backlog: int = 2
    """Queued connections before the kernel refuses new ones."""

    buffer_size: int = 1024
    """
    Size of the single read done per connection.
    Requests longer than this are truncated, not accumulated.
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    document_root: str = "../Data"
    """Directory every served file must live in."""

    index_file: str = "index.htm"
    """Welcome page served for GET /."""

    not_found_file: str = "404.htm"
    """Page served with 404 when content is missing."""

    stop_file: str = "server_stop.htm"
    """Page served for the shutdown route."""

    max_file_size: int = 16 * 1024
    """
    Largest number of bytes read from a file.
    A file of exactly this size logs a possible-truncation warning.
    """

    max_target_length: int = 16
    """Longest request target accepted, in bytes. Longer targets are invalid."""

    # ─────────────────────────────────────────────────────────────────────
    # COMMAND EXECUTION
    # ─────────────────────────────────────────────────────────────────────

    command_dir: Optional[str] = None
    """
    Directory holding the executables reachable through /execute/<name>.
    None = the document root.
    """

    allowed_commands: Optional[FrozenSet[str]] = None
    """
    Names that may be executed. None = any plain file name found in
    command_dir. An empty set disables the execute route.
    """

    output_file: str = "Output.txt"
    """File inside the document root that receives command output."""

    # ─────────────────────────────────────────────────────────────────────
    # ACCESS CONTROL
    # ─────────────────────────────────────────────────────────────────────

    allowlist_path: str = "../AllowedClientAddresses.txt"
    """Allowlist file. Missing file = startup failure."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Access log format: 'text' (Apache style) or 'json'."""

    server_name: str = "TinyHTTP"
    """Value of the Server header."""

    @property
    def resolved_command_dir(self) -> str:
        """Command directory, falling back to the document root."""
        return self.command_dir or self.document_root

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        TINYHTTP_HOST        Bind address (default: 0.0.0.0)
        TINYHTTP_PORT        Port (default: 80)
        TINYHTTP_ROOT        Document root (default: ../Data)
        TINYHTTP_ALLOWLIST   Allowlist file (default: ../AllowedClientAddresses.txt)
        TINYHTTP_COMMANDS    Command directory (default: document root)
        TINYHTTP_ALLOW_COMMANDS  Comma-separated command names (default: any)
        TINYHTTP_LOG_LEVEL   Logging level (default: INFO)
        TINYHTTP_LOG_FORMAT  text or json (default: text)

        =====================================================================
        """
        allowed = os.getenv("TINYHTTP_ALLOW_COMMANDS")

        return cls(
            host=os.getenv("TINYHTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("TINYHTTP_PORT", "80")),
            document_root=os.getenv("TINYHTTP_ROOT", "../Data"),
            allowlist_path=os.getenv("TINYHTTP_ALLOWLIST", "../AllowedClientAddresses.txt"),
            command_dir=os.getenv("TINYHTTP_COMMANDS"),
            allowed_commands=(
                frozenset(name.strip() for name in allowed.split(",") if name.strip())
                if allowed is not None else None
            ),
            log_level=os.getenv("TINYHTTP_LOG_LEVEL", "INFO"),
            log_format=os.getenv("TINYHTTP_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Runs at startup so a bad value fails before the socket is opened.

        Raises:
            ValueError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 0:
            raise ValueError("backlog must be >= 0")

        if self.buffer_size < 16:
            raise ValueError("buffer_size must be >= 16")

        if self.max_file_size < 1:
            raise ValueError("max_file_size must be >= 1")

        if self.max_target_length < 1:
            raise ValueError("max_target_length must be >= 1")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', not {self.log_format!r}")

        for name in ("index_file", "not_found_file", "stop_file", "output_file"):
            value = getattr(self, name)
            if not value or "/" in value or value in (".", ".."):
                raise ValueError(f"{name} must be a plain file name, not {value!r}")


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. Type-safe configuration with dataclass
# 2. Environment variable support (TINYHTTP_*)
# 3. Validation at startup (fail-fast)
# 4. Defaults match the ../Data deployment layout
# =============================================================================
