"""
=============================================================================
LOOP OUTCOMES, EXIT CODES AND SETUP ERRORS
=============================================================================

The accept loop never sees an exception coming out of a connection. Every
connection ends with a LoopOutcome that tells the loop what to do next:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          LOOP OUTCOMES                              │
    ├──────────────────┬──────────────────────────────────────────────────┤
    │  CONTINUE        │  Accept the next connection (the default)        │
    │  STOP            │  Shutdown page was served, leave the loop        │
    │  FATAL_ERROR     │  accept() cannot recover, leave with -errno      │
    └──────────────────┴──────────────────────────────────────────────────┘

Startup is different: a missing allowlist or an unusable port means there
is nothing to serve, so those failures ARE raised (as SetupError) and the
CLI turns them into a process exit code.

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum


# ─────────────────────────────────────────────────────────────────────────
# PROCESS EXIT CODES
# ─────────────────────────────────────────────────────────────────────────
# One code per setup failure site so the operator can tell them apart
# from the shell. Fatal accept failures exit with -errno instead.

EXIT_OK = 0
EXIT_ALLOWLIST = 2
EXIT_BIND = 3
EXIT_LISTEN = 4
EXIT_CONFIG = 5
EXIT_INTERRUPTED = 130


class OutcomeKind(Enum):
    """What the accept loop does after a connection."""
    CONTINUE = "continue"
    STOP = "stop"
    FATAL_ERROR = "fatal_error"


@dataclass(frozen=True)
class LoopOutcome:
    """
    Signal threaded from request handling back to the accept loop.

    Use the module-level CONTINUE and STOP instances, or fatal(code)
    for an unrecoverable accept failure.

    Attributes:
        kind: Continue, stop or fatal error.
        code: Exit code carried by FATAL_ERROR (negative errno), else 0.
    """

    kind: OutcomeKind
    code: int = 0

    @classmethod
    def fatal(cls, code: int) -> "LoopOutcome":
        """Create a FATAL_ERROR outcome carrying an exit code."""
        return cls(OutcomeKind.FATAL_ERROR, code)

    @property
    def ends_loop(self) -> bool:
        """True for STOP and FATAL_ERROR."""
        return self.kind is not OutcomeKind.CONTINUE

    @property
    def exit_code(self) -> int:
        """Process exit code for this outcome."""
        if self.kind is OutcomeKind.FATAL_ERROR:
            return self.code
        return EXIT_OK


CONTINUE = LoopOutcome(OutcomeKind.CONTINUE)
STOP = LoopOutcome(OutcomeKind.STOP)


# =============================================================================
# SETUP ERRORS
# =============================================================================

class SetupError(Exception):
    """
    Startup failed before the accept loop could run.

    Attributes:
        exit_code: Process exit code identifying the failure site.
    """

    exit_code = 1

    def __init__(self, message: str, exit_code: int = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class AllowlistError(SetupError):
    """The allowlist source could not be opened."""
    exit_code = EXIT_ALLOWLIST


class BindError(SetupError):
    """The listening socket could not be created or bound."""
    exit_code = EXIT_BIND


class ListenError(SetupError):
    """listen() failed on the bound socket."""
    exit_code = EXIT_LISTEN
