"""
=============================================================================
CONTENT SOURCE
=============================================================================

Turns a request path into the bytes of a response body. The bytes come
from one of two places:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        CONTENT SOURCES                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   STATIC FILE                      COMMAND OUTPUT                   │
    │   ───────────                      ──────────────                   │
    │                                                                      │
    │   GET /about.htm                   GET /execute/uptime              │
    │        │                                │                           │
    │        ▼                                ▼                           │
    │   <root>/about.htm                 <commands>/uptime > Output.txt   │
    │        │                                │                           │
    │        ▼                                ▼                           │
    │   read (max 16 KiB)                read <root>/Output.txt           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Missing content is not an error here: every lookup returns either the
bytes or None, and the router turns None into the 404 page.

=============================================================================
SECURITY: PATH TRAVERSAL AND COMMAND INJECTION
=============================================================================

    GET /../../etc/passwd
        full_path = (root / "../../etc/passwd").resolve()
        full_path.relative_to(root)     ← raises, request gets a 404

    GET /execute/rm%20-rf
        Only a plain file name from the command directory may run, and it
        runs without a shell, so there is nothing to inject into.

=============================================================================
"""

import logging
import re
import subprocess
from pathlib import Path
from typing import FrozenSet, Optional

from ..diagnostics import log_event, log_failed_call


logger = logging.getLogger(__name__)


# Plain file name: no separators, no leading dot
COMMAND_NAME = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.\-]*$")


class ContentSource:
    """
    Resolves request paths to body bytes.

    =========================================================================
    USAGE
    =========================================================================

        content = ContentSource(document_root="../Data")

        content.read_static_file("/index.htm")      # b"<html>..." or None
        content.capture_command_output("uptime")    # stdout bytes or None

    =========================================================================
    """

    def __init__(
        self,
        document_root: str,
        max_file_size: int = 16 * 1024,
        command_dir: Optional[str] = None,
        allowed_commands: Optional[FrozenSet[str]] = None,
        output_file: str = "Output.txt",
    ):
        """
        Args:
            document_root: Directory all served files must live in.
            max_file_size: Most bytes read from a single file.
            command_dir: Directory of executables for /execute/.
                         Defaults to the document root.
            allowed_commands: Names that may run. None = any plain name
                              present in command_dir.
            output_file: File in the document root receiving command stdout.
        """
        # Resolve to absolute path (the confinement check depends on it)
        self.document_root = Path(document_root).resolve()
        self.command_dir = Path(command_dir).resolve() if command_dir else self.document_root
        self.max_file_size = max_file_size
        self.allowed_commands = allowed_commands
        self.output_file = output_file

        if not self.document_root.is_dir():
            logger.warning(f"Document root does not exist: {self.document_root}")

    # =========================================================================
    # STATIC FILES
    # =========================================================================

    def _resolve(self, base: Path, relative: str) -> Optional[Path]:
        """Resolve relative under base, or None if it escapes base or is not a valid path."""
        try:
            full_path = (base / relative.lstrip("/")).resolve()
        except (ValueError, OSError, RuntimeError) as e:
            # Embedded NUL byte, symlink loop
            log_event(logger, f"Invalid file name {relative!r}: {e}", logging.WARNING)
            return None

        try:
            full_path.relative_to(base)
        except ValueError:
            logger.warning(f"Path traversal attempt: {relative!r}")
            return None
        return full_path

    def read_static_file(self, path: str) -> Optional[bytes]:
        """
        Read a file from the document root.

        Args:
            path: Request path, e.g. "/index.htm".

        Returns:
            File bytes (at most max_file_size), or None when the file is
            missing, unreadable, empty or outside the document root.
        """
        logger.debug(f"Reading file {path} ...")

        full_path = self._resolve(self.document_root, path)
        if full_path is None:
            return None

        if not full_path.is_file():
            log_event(logger, f"Invalid file name: {path}", logging.WARNING)
            return None

        try:
            with open(full_path, "rb") as f:
                data = f.read(self.max_file_size)
        except OSError as e:
            log_failed_call(logger, f"read({path})", -1, errno=e.errno)
            return None

        # ─────────────────────────────────────────────────────────────────
        # BUFFER LIMIT
        # ─────────────────────────────────────────────────────────────────
        # A file that fills the buffer exactly might be longer. It is still
        # served, truncated to the buffer size.
        if len(data) == self.max_file_size:
            log_event(
                logger,
                f"The file {path} may be longer than the internal buffer "
                f"({self.max_file_size} bytes)",
                logging.WARNING,
            )

        if not data:
            log_event(logger, f"Empty file: {path}", logging.WARNING)
            return None

        return data

    # =========================================================================
    # COMMAND OUTPUT
    # =========================================================================

    def _resolve_command(self, command: str) -> Optional[Path]:
        """Map a command name to an executable path, or None if not allowed."""
        if not COMMAND_NAME.match(command):
            log_event(logger, f"Rejected command name: {command!r}", logging.WARNING)
            return None

        if self.allowed_commands is not None and command not in self.allowed_commands:
            log_event(logger, f"Command not in the allowed set: {command}", logging.WARNING)
            return None

        executable = self._resolve(self.command_dir, command)
        if executable is None or not executable.is_file():
            log_event(logger, f"Unknown command: {command}", logging.WARNING)
            return None

        return executable

    def capture_command_output(self, command: str) -> Optional[bytes]:
        """
        Run a command and return what it wrote to stdout.

        stdout goes to the output file in the document root, which is then
        read back like any static file.

        Args:
            command: Name of an executable in the command directory.

        Returns:
            Captured stdout, or None if the command is not allowed, cannot
            start, exits non-zero, or prints nothing.
        """
        executable = self._resolve_command(command)
        if executable is None:
            return None

        output_path = self.document_root / self.output_file

        logger.debug(f"Executing {executable} > {output_path} ...")

        try:
            with open(output_path, "wb") as output:
                completed = subprocess.run(
                    [str(executable)],
                    stdin=subprocess.DEVNULL,
                    stdout=output,
                    cwd=str(self.command_dir),
                    check=False,
                )
        except OSError as e:
            log_failed_call(logger, f"execute({command})", -1, errno=e.errno)
            return None

        if completed.returncode != 0:
            log_failed_call(logger, f"execute({command})", completed.returncode)
            return None

        return self.read_static_file("/" + self.output_file)


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. Static files are confined to the document root
# 2. Reads are bounded; a full buffer logs a truncation warning
# 3. Commands run without a shell, by plain name, from one directory
# 4. "Not found" is a return value (None), never an exception
# =============================================================================
