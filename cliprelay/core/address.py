"""Peer addresses and local interface discovery.

A PeerAddress is built three ways:
- parsed from configuration ("10.0.0.81:8080")
- discovered from the machine's outbound interface (local_ipv4)
- derived from an accepted connection's remote IP plus a configured port
"""

import socket
from dataclasses import dataclass
from typing import Any, Tuple

from cliprelay.core.errors import ConfigError

# Routed address used only to select the outbound interface. No packet is sent.
PROBE_HOST = "8.8.8.8"


@dataclass(frozen=True)
class PeerAddress:
    """A fully resolved (host, port) pair."""

    host: str
    port: int

    def __post_init__(self) -> None:
        if not self.host:
            raise ConfigError(f"Address is missing a host (port {self.port})")
        if not 0 <= self.port <= 65535:
            raise ConfigError(f"Port out of range: {self.port}")

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def parse(cls, value: str) -> "PeerAddress":
        """
        Parse a "host:port" string.

        Raises:
            ConfigError: If the host or port part is missing or malformed
        """
        host, sep, port = value.strip().rpartition(":")
        if not sep or not host:
            raise ConfigError(f"Expected HOST:PORT, got '{value}'")
        try:
            port_number = int(port)
        except ValueError:
            raise ConfigError(f"Invalid port in address '{value}'") from None
        return cls(host=host.strip("[]"), port=port_number)

    @classmethod
    def from_peername(cls, peername: Tuple[Any, ...], port: int) -> "PeerAddress":
        """Combine the remote IP of an accepted socket with a configured port."""
        return cls(host=peername[0], port=port)

    def ensure_resolvable(self) -> "PeerAddress":
        """
        Check that the host resolves to at least one stream address.

        Run once at startup so a bad hostname fails before the control
        loop starts rather than on every connect attempt.
        """
        try:
            socket.getaddrinfo(self.host, self.port, type=socket.SOCK_STREAM)
        except socket.gaierror as e:
            raise ConfigError(f"Cannot resolve address {self}: {e}") from e
        return self


def local_ipv4(probe_host: str = PROBE_HOST) -> str:
    """
    Return the IPv4 address of the interface used for outbound traffic.

    Connecting a UDP socket only selects a route, so this works without
    network access to the probe host.

    Raises:
        ConfigError: If no IPv4 route is available
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect((probe_host, 80))
        return sock.getsockname()[0]
    except OSError as e:
        raise ConfigError(f"Could not discover local IPv4 address: {e}") from e
    finally:
        sock.close()
