"""
=============================================================================
CLIENT ADDRESS ALLOWLIST
=============================================================================

Only peers listed in the allowlist file get an answer. Everyone else is
disconnected before a single byte of their request is read.

=============================================================================
FILE FORMAT
=============================================================================

One network per line, address then mask, both dotted-quad IPv4:

    127.0.0.1     255.255.255.255     ← exactly this host
    192.168.1.0   255.255.255.0       ← the whole 192.168.1.x subnet
    0.0.0.0       0.0.0.0             ← everybody (mask of zero)

Malformed lines are skipped with a warning. Blank lines and lines starting
with '#' are ignored.

=============================================================================
MATCHING
=============================================================================

A candidate is allowed when, for some entry:

    (candidate & mask) == (network_address & mask)

    ┌─────────────────────────────────────────────────────────────────────┐
    │   candidate   192.168.1.57   →  C0 A8 01 39                         │
    │   mask        255.255.255.0  →  FF FF FF 00                         │
    │   ─────────────────────────────────────────                         │
    │   masked                        C0 A8 01 00                         │
    │                                                                      │
    │   network     192.168.1.0    →  C0 A8 01 00   & mask = C0 A8 01 00  │
    │                                                                      │
    │   Equal → allowed                                                    │
    └─────────────────────────────────────────────────────────────────────┘

An EMPTY allowlist allows nobody. The server fails closed.

=============================================================================
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Iterable, Tuple, Union

from ..diagnostics import log_event
from .outcome import AllowlistError


logger = logging.getLogger(__name__)


Candidate = Union[str, int, ipaddress.IPv4Address]


@dataclass(frozen=True)
class AddressMaskEntry:
    """One allowlist line: a network address and its mask, as 32-bit ints."""

    network_address: int
    mask: int

    def matches(self, candidate: int) -> bool:
        """Apply the mask-equality rule to a 32-bit candidate."""
        return (candidate & self.mask) == (self.network_address & self.mask)

    def __str__(self) -> str:
        return f"{ipaddress.IPv4Address(self.network_address)}/{ipaddress.IPv4Address(self.mask)}"


def _parse_ipv4(token: str) -> int:
    """Parse a dotted quad into a 32-bit int. Raises ValueError if invalid."""
    return int(ipaddress.IPv4Address(token))


class AddressAllowlist:
    """
    Immutable set of permitted (network, mask) pairs.

    Built once at startup and handed to the Acceptor; nothing mutates it
    afterwards, so it needs no locking.

    Usage:
        allowlist = AddressAllowlist.load("../AllowedClientAddresses.txt")
        if allowlist.is_allowed("192.168.1.57"):
            ...
    """

    def __init__(self, entries: Iterable[AddressMaskEntry] = ()):
        self._entries: Tuple[AddressMaskEntry, ...] = tuple(entries)

    @property
    def entries(self) -> Tuple[AddressMaskEntry, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    # =========================================================================
    # LOADING
    # =========================================================================

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "AddressAllowlist":
        """
        Parse allowlist lines.

        Each line needs at least two whitespace-separated tokens; anything
        after the second token is ignored.

        Args:
            lines: Text lines (with or without trailing newlines).

        Returns:
            Allowlist holding every valid line, in file order.
        """
        entries = []

        for line_number, line in enumerate(lines, start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue

            tokens = stripped.split()
            if len(tokens) < 2:
                log_event(logger, f"Invalid line {line_number}: {stripped!r}", logging.WARNING)
                continue

            try:
                entry = AddressMaskEntry(
                    network_address=_parse_ipv4(tokens[0]),
                    mask=_parse_ipv4(tokens[1]),
                )
            except ValueError:
                log_event(
                    logger,
                    f"Invalid address or mask on line {line_number}: {stripped!r}",
                    logging.WARNING,
                )
                continue

            entries.append(entry)

        return cls(entries)

    @classmethod
    def load(cls, path: str) -> "AddressAllowlist":
        """
        Load the allowlist from a text file.

        Raises:
            AllowlistError: If the file cannot be opened. This is fatal at
                            startup; malformed lines are not.
        """
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as source:
                allowlist = cls.from_lines(source)
        except OSError as e:
            logger.critical(f"Cannot open allowlist {path}: {e}")
            raise AllowlistError(f"Cannot open allowlist {path}: {e}") from e

        if not allowlist:
            logger.warning(f"Allowlist {path} has no valid entries, every client will be rejected")
        else:
            logger.info(f"Loaded {len(allowlist)} allowlist entries from {path}")

        return allowlist

    # =========================================================================
    # MEMBERSHIP
    # =========================================================================

    def is_allowed(self, candidate: Candidate) -> bool:
        """
        Check a peer address against every entry.

        Args:
            candidate: IPv4 address as a dotted quad, an int or an
                       ipaddress.IPv4Address.

        Returns:
            True if any entry matches. False for an empty allowlist and
            for anything that is not an IPv4 address.
        """
        try:
            value = int(ipaddress.IPv4Address(candidate))
        except (ValueError, TypeError):
            return False

        return any(entry.matches(value) for entry in self._entries)
