"""
Multicast connectivity checks.

Before every query round we make sure the local network lets us join the
mDNS multicast groups, otherwise the query itself would fail. The probe
sockets are closed right away: the query opens its own sockets on the same
port.
"""
import socket
import struct
from dataclasses import dataclass

import structlog

from ..config import DiscoveryConfig

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Connectivity:
    """IP versions usable for the next query."""

    ipv4: bool = False
    ipv6: bool = False

    def available(self) -> bool:
        return self.ipv4 or self.ipv6


def _allow_reuse(sock: socket.socket) -> None:
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    if hasattr(socket, "SO_REUSEPORT"):
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        except OSError:
            pass  # Not supported by every kernel


def probe_ipv4(group: str, port: int) -> bool:
    """Return True if we can join the IPv4 multicast group on port."""
    sock = None
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        _allow_reuse(sock)
        sock.bind(("", port))
        mreq = struct.pack("4s4s", socket.inet_aton(group), socket.inet_aton("0.0.0.0"))
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
        return True
    except OSError as e:
        logger.debug("IPv4 multicast unavailable", group=group, port=port, error=str(e))
        return False
    finally:
        if sock is not None:
            sock.close()


def probe_ipv6(group: str, port: int) -> bool:
    """Return True if we can join the IPv6 multicast group on port."""
    sock = None
    try:
        sock = socket.socket(socket.AF_INET6, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        _allow_reuse(sock)
        sock.bind(("", port))
        mreq = socket.inet_pton(socket.AF_INET6, group) + struct.pack("@I", 0)
        sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_JOIN_GROUP, mreq)
        return True
    except OSError as e:
        logger.debug("IPv6 multicast unavailable", group=group, port=port, error=str(e))
        return False
    finally:
        if sock is not None:
            sock.close()


def check_connectivity(config: DiscoveryConfig) -> Connectivity:
    """Check which IP versions can be used for mDNS on the current network."""
    return Connectivity(
        ipv4=probe_ipv4(config.ipv4_group, config.mdns_port),
        ipv6=probe_ipv6(config.ipv6_group, config.mdns_port),
    )
