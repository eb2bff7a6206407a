"""
=============================================================================
TINYHTTP CLI ENTRY POINT
=============================================================================

    # Defaults: 0.0.0.0:80, ../Data, ../AllowedClientAddresses.txt
    python -m tinyhttp

    # Unprivileged port, explicit paths
    python -m tinyhttp --port 8080 --root ./Data --allowlist ./allow.txt

    # Only these commands may run through /execute/<name>
    python -m tinyhttp --commands ./bin --allow-command uptime --allow-command df

The process exit code is the server's: 0 after GET /server_stop.htm,
a setup code (2-5) when startup fails, -errno after a fatal accept error.

=============================================================================
"""

import argparse
import logging
import sys

from . import __version__
from .config import ServerConfig
from .core.outcome import EXIT_CONFIG, SetupError
from .server import TinyHTTPServer, setup_logging


logger = logging.getLogger("tinyhttp")


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser. Defaults come from the environment."""
    defaults = ServerConfig.from_env()

    parser = argparse.ArgumentParser(
        prog="tinyhttp",
        description="Minimal allowlisted HTTP server for a fixed document root",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m tinyhttp                                # Port 80, ../Data
  python -m tinyhttp --port 8080 --root ./Data      # Custom port and root
  python -m tinyhttp --allow-command uptime         # Restrict /execute/
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Address to bind to (default: {defaults.host})"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})"
    )

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT AND ACCESS ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--root", "-r",
        default=defaults.document_root,
        help=f"Document root (default: {defaults.document_root})"
    )

    parser.add_argument(
        "--allowlist", "-a",
        default=defaults.allowlist_path,
        help=f"Allowed client addresses file (default: {defaults.allowlist_path})"
    )

    parser.add_argument(
        "--commands", "-c",
        default=defaults.command_dir,
        help="Directory of executables for /execute/<name> (default: document root)"
    )

    parser.add_argument(
        "--allow-command",
        action="append",
        dest="allowed_commands",
        default=None,
        metavar="NAME",
        help="Command allowed through /execute/ (repeatable; default: any in --commands)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING AND META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=defaults.log_level.upper(),
        help=f"Logging level (default: {defaults.log_level.upper()})"
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=defaults.log_format,
        help=f"Access log format (default: {defaults.log_format})"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"TinyHTTP {__version__}"
    )

    parser.set_defaults(env_allowed_commands=defaults.allowed_commands)

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Translate parsed arguments into a ServerConfig."""
    if args.allowed_commands is not None:
        allowed = frozenset(args.allowed_commands)
    else:
        allowed = args.env_allowed_commands

    return ServerConfig(
        host=args.host,
        port=args.port,
        document_root=args.root,
        allowlist_path=args.allowlist,
        command_dir=args.commands,
        allowed_commands=allowed,
        log_level=args.log_level,
        log_format=args.log_format,
    )


def main(argv=None) -> int:
    """
    Main CLI entry point.

    Returns:
        Process exit code.
    """
    try:
        config = config_from_args(build_parser().parse_args(argv))
    except ValueError as e:
        # Bad TINYHTTP_* value; logging is not configured yet
        logger.critical(f"Invalid configuration: {e}")
        return EXIT_CONFIG

    setup_logging(config)

    try:
        server = TinyHTTPServer(config)
        return server.run()
    except SetupError as e:
        logger.critical(f"Startup failed: {e}")
        return e.exit_code
    except ValueError as e:
        logger.critical(f"Invalid configuration: {e}")
        return EXIT_CONFIG


# =============================================================================
# ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    sys.exit(main())
