"""
Unit tests for the client address allowlist.
"""

import ipaddress
import logging

import pytest

from tinyhttp.core import AddressAllowlist, AddressMaskEntry, AllowlistError
from tinyhttp.core.outcome import EXIT_ALLOWLIST


def entry(address: str, mask: str) -> AddressMaskEntry:
    return AddressMaskEntry(int(ipaddress.IPv4Address(address)), int(ipaddress.IPv4Address(mask)))


class TestAddressMaskEntry:
    """Tests for the mask-equality rule."""

    def test_host_entry(self):
        """Test a full mask matches one address only."""
        host = entry("10.1.2.3", "255.255.255.255")

        assert host.matches(int(ipaddress.IPv4Address("10.1.2.3")))
        assert not host.matches(int(ipaddress.IPv4Address("10.1.2.4")))

    def test_subnet_entry(self):
        """Test a /24 mask matches the whole subnet."""
        subnet = entry("192.168.1.0", "255.255.255.0")

        assert subnet.matches(int(ipaddress.IPv4Address("192.168.1.57")))
        assert subnet.matches(int(ipaddress.IPv4Address("192.168.1.255")))
        assert not subnet.matches(int(ipaddress.IPv4Address("192.168.2.1")))

    def test_network_host_bits_are_masked(self):
        """Test host bits in the listed address do not matter."""
        subnet = entry("192.168.1.99", "255.255.255.0")

        assert subnet.matches(int(ipaddress.IPv4Address("192.168.1.1")))

    def test_zero_mask_matches_everything(self):
        """Test a zero mask admits every address."""
        anyone = entry("1.2.3.4", "0.0.0.0")

        assert anyone.matches(0)
        assert anyone.matches(int(ipaddress.IPv4Address("203.0.113.9")))

    def test_str(self):
        """Test the readable form."""
        assert str(entry("10.0.0.0", "255.0.0.0")) == "10.0.0.0/255.0.0.0"


class TestFromLines:
    """Tests for AddressAllowlist.from_lines."""

    def test_parse_lines(self):
        """Test valid lines become entries in file order."""
        allowlist = AddressAllowlist.from_lines([
            "127.0.0.1 255.255.255.255\n",
            "192.168.1.0\t255.255.255.0\n",
        ])

        assert len(allowlist) == 2
        assert allowlist.entries[0] == entry("127.0.0.1", "255.255.255.255")
        assert allowlist.entries[1] == entry("192.168.1.0", "255.255.255.0")

    def test_extra_tokens_ignored(self):
        """Test anything after the mask is ignored."""
        allowlist = AddressAllowlist.from_lines(["10.0.0.0 255.0.0.0 office network"])

        assert list(allowlist) == [entry("10.0.0.0", "255.0.0.0")]

    def test_blank_and_comment_lines(self):
        """Test blank lines and comments are skipped silently."""
        allowlist = AddressAllowlist.from_lines([
            "# lab machines",
            "",
            "   ",
            "10.0.0.1 255.255.255.255",
        ])

        assert len(allowlist) == 1

    def test_malformed_lines_skipped(self, caplog):
        """Test malformed lines are skipped with a warning."""
        caplog.set_level(logging.WARNING, logger="tinyhttp")

        allowlist = AddressAllowlist.from_lines([
            "127.0.0.1",
            "999.0.0.1 255.255.255.255",
            "127.0.0.1 not-a-mask",
            "::1 255.255.255.255",
            "127.0.0.1 255.255.255.255",
        ])

        assert len(allowlist) == 1
        assert "Invalid line 1" in caplog.text
        assert "Invalid address or mask on line 2" in caplog.text
        assert "Invalid address or mask on line 3" in caplog.text
        assert "Invalid address or mask on line 4" in caplog.text

    def test_entries_are_immutable(self):
        """Test entries cannot be modified after loading."""
        allowlist = AddressAllowlist.from_lines(["127.0.0.1 255.255.255.255"])

        assert isinstance(allowlist.entries, tuple)
        with pytest.raises(AttributeError):
            allowlist.entries[0].mask = 0


class TestLoad:
    """Tests for AddressAllowlist.load."""

    def test_load_file(self, tmp_path):
        """Test loading from a file."""
        path = tmp_path / "allow.txt"
        path.write_text("127.0.0.1 255.255.255.255\n10.0.0.0 255.0.0.0\n")

        allowlist = AddressAllowlist.load(str(path))

        assert len(allowlist) == 2
        assert allowlist.is_allowed("10.20.30.40")

    def test_missing_file(self, tmp_path):
        """Test a missing file is a setup error with its own exit code."""
        with pytest.raises(AllowlistError) as exc_info:
            AddressAllowlist.load(str(tmp_path / "missing.txt"))

        assert exc_info.value.exit_code == EXIT_ALLOWLIST

    def test_empty_file_warns(self, tmp_path, caplog):
        """Test an empty file loads, with a warning that nobody gets in."""
        caplog.set_level(logging.WARNING, logger="tinyhttp")
        path = tmp_path / "allow.txt"
        path.write_text("")

        allowlist = AddressAllowlist.load(str(path))

        assert len(allowlist) == 0
        assert "no valid entries" in caplog.text


class TestIsAllowed:
    """Tests for AddressAllowlist.is_allowed."""

    @pytest.fixture
    def allowlist(self) -> AddressAllowlist:
        return AddressAllowlist.from_lines([
            "127.0.0.1 255.255.255.255",
            "192.168.1.0 255.255.255.0",
        ])

    @pytest.mark.parametrize("candidate,allowed", [
        ("127.0.0.1", True),
        ("127.0.0.2", False),
        ("192.168.1.1", True),
        ("192.168.1.254", True),
        ("192.168.0.1", False),
        ("8.8.8.8", False),
    ])
    def test_candidates(self, allowlist, candidate, allowed):
        """Test dotted-quad candidates against the entries."""
        assert allowlist.is_allowed(candidate) is allowed

    def test_int_and_address_candidates(self, allowlist):
        """Test ints and IPv4Address objects are accepted too."""
        assert allowlist.is_allowed(int(ipaddress.IPv4Address("192.168.1.7")))
        assert allowlist.is_allowed(ipaddress.IPv4Address("127.0.0.1"))

    def test_empty_allowlist_rejects_everyone(self):
        """Test an empty allowlist fails closed."""
        allowlist = AddressAllowlist()

        assert not allowlist.is_allowed("127.0.0.1")
        assert not allowlist.is_allowed("0.0.0.0")

    def test_non_ipv4_rejected(self, allowlist):
        """Test IPv6 and garbage are never allowed."""
        assert not allowlist.is_allowed("::1")
        assert not allowlist.is_allowed("localhost")
        assert not allowlist.is_allowed(None)
