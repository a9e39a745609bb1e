"""Network interface enumeration for mdns-discovery."""

import socket
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import psutil
import structlog

logger = structlog.get_logger(__name__)


@dataclass
class NetworkInterface:
    """A network interface eligible for mDNS queries."""

    name: str
    index: int = 0
    hardware_addr: str = ""
    ipv4: List[str] = field(default_factory=list)
    ipv6: List[str] = field(default_factory=list)


def _is_valid_hardware_addr(addr: Optional[str]) -> bool:
    if not addr:
        return False
    # Loopback and some virtual links report an all-zero MAC.
    return any(c not in "0:-." for c in addr)


def _is_multicast_capable(flags: str) -> bool:
    # Windows reports no flags at all; trust the interface there.
    if not flags:
        return True
    return "multicast" in flags.split(",")


def _interface_index(name: str) -> int:
    try:
        return socket.if_nametoindex(name)
    except OSError:
        return 0


def _collect_addresses(name: str, addrs: Iterable) -> NetworkInterface:
    netif = NetworkInterface(name=name, index=_interface_index(name))
    for addr in addrs:
        if addr.family == psutil.AF_LINK:
            netif.hardware_addr = addr.address or ""
        elif addr.family == socket.AF_INET:
            netif.ipv4.append(addr.address)
        elif addr.family == socket.AF_INET6:
            # Drop the zone identifier, e.g. fe80::1%eth0
            netif.ipv6.append(addr.address.split('%')[0])
    return netif


def available_interfaces(names: Optional[List[str]] = None) -> List[NetworkInterface]:
    """Get interfaces that are up, multicast capable and have a hardware address.

    Args:
        names: Optional allow-list of interface names. Empty or None means all.

    Returns:
        List[NetworkInterface]: Eligible interfaces, possibly empty.
    """
    try:
        all_addrs = psutil.net_if_addrs()
        all_stats = psutil.net_if_stats()
    except OSError as e:
        logger.warning("Failed to enumerate network interfaces", error=str(e))
        return []

    out: List[NetworkInterface] = []
    for name, addrs in all_addrs.items():
        if names and name not in names:
            continue

        stats = all_stats.get(name)
        if stats is None or not stats.isup:
            continue

        if not _is_multicast_capable(getattr(stats, "flags", "")):
            continue

        netif = _collect_addresses(name, addrs)
        if not _is_valid_hardware_addr(netif.hardware_addr):
            continue

        out.append(netif)

    logger.debug("Eligible network interfaces", interfaces=[n.name for n in out])
    return out
