"""
=============================================================================
CORE NETWORKING MODULE
=============================================================================

Low-level pieces that talk to sockets:

    Acceptor          listening socket, accept loop, allowlist check
    AddressAllowlist  which peers may be answered
    Connection        one accepted client socket
    LoopOutcome       what the accept loop does after a connection

=============================================================================
"""

from .acceptor import Acceptor
from .allowlist import AddressAllowlist, AddressMaskEntry
from .connection import Connection, ConnectionState
from .outcome import (
    LoopOutcome, OutcomeKind, CONTINUE, STOP,
    SetupError, AllowlistError, BindError, ListenError,
)

__all__ = [
    "Acceptor",          # Listening socket and accept loop
    "AddressAllowlist",  # Allowed peer networks
    "AddressMaskEntry",  # One (network, mask) pair
    "Connection",        # Wrapper for client socket
    "ConnectionState",   # Enum for connection lifecycle states
    "LoopOutcome",       # Continue / stop / fatal error
    "OutcomeKind",
    "CONTINUE",
    "STOP",
    "SetupError",        # Base class of startup failures
    "AllowlistError",
    "BindError",
    "ListenError",
]
