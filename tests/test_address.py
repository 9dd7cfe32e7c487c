"""
Tests for core/address.py - peer address parsing and discovery.
"""

import unittest

from cliprelay.core.address import PeerAddress, local_ipv4
from cliprelay.core.errors import ConfigError


class TestPeerAddress(unittest.TestCase):

    def test_parse_host_and_port(self):
        address = PeerAddress.parse("10.0.0.81:8080")
        self.assertEqual(address.host, "10.0.0.81")
        self.assertEqual(address.port, 8080)
        self.assertEqual(str(address), "10.0.0.81:8080")

    def test_parse_strips_whitespace_and_ipv6_brackets(self):
        self.assertEqual(PeerAddress.parse("  host.local:1 "), PeerAddress("host.local", 1))
        self.assertEqual(PeerAddress.parse("[::1]:9191"), PeerAddress("::1", 9191))

    def test_parse_rejects_partial_addresses(self):
        for value in ("10.0.0.81", ":8080", "host:", "host:http", "host:99999"):
            with self.subTest(value=value):
                with self.assertRaises(ConfigError):
                    PeerAddress.parse(value)

    def test_missing_host_is_config_error(self):
        with self.assertRaises(ConfigError):
            PeerAddress("", 80)

    def test_config_error_is_value_error(self):
        self.assertTrue(issubclass(ConfigError, ValueError))

    def test_from_peername_uses_remote_ip_and_configured_port(self):
        address = PeerAddress.from_peername(("192.168.1.20", 51234), 9191)
        self.assertEqual(address, PeerAddress("192.168.1.20", 9191))

    def test_from_ipv6_peername(self):
        address = PeerAddress.from_peername(("::1", 51234, 0, 0), 9191)
        self.assertEqual(address, PeerAddress("::1", 9191))

    def test_ensure_resolvable_accepts_ip_literal(self):
        address = PeerAddress("127.0.0.1", 8080)
        self.assertIs(address.ensure_resolvable(), address)

    def test_ensure_resolvable_rejects_unknown_host(self):
        with self.assertRaises(ConfigError):
            PeerAddress("no-such-host.invalid", 8080).ensure_resolvable()


class TestLocalIpv4(unittest.TestCase):

    def test_loopback_probe_returns_loopback(self):
        self.assertEqual(local_ipv4("127.0.0.1"), "127.0.0.1")


if __name__ == "__main__":
    unittest.main()
