"""Tests for network interface enumeration."""

import socket
from types import SimpleNamespace
from unittest.mock import patch

import psutil

from mdns_discovery.discovery.network import NetworkInterface, available_interfaces


def addr(family, address):
    return SimpleNamespace(family=family, address=address, netmask=None, broadcast=None, ptp=None)


def stats(isup=True, flags="up,broadcast,running,multicast"):
    return SimpleNamespace(isup=isup, duplex=0, speed=1000, mtu=1500, flags=flags)


MOCK_ADDRS = {
    "lo": [
        addr(psutil.AF_LINK, "00:00:00:00:00:00"),
        addr(socket.AF_INET, "127.0.0.1"),
        addr(socket.AF_INET6, "::1"),
    ],
    "eth0": [
        addr(psutil.AF_LINK, "aa:bb:cc:dd:ee:ff"),
        addr(socket.AF_INET, "192.168.1.100"),
        addr(socket.AF_INET6, "fe80::1234%eth0"),
    ],
    "wlan0": [
        addr(psutil.AF_LINK, "11:22:33:44:55:66"),
        addr(socket.AF_INET, "10.0.0.7"),
    ],
    "tun0": [
        addr(socket.AF_INET, "10.8.0.2"),
    ],
}

MOCK_STATS = {
    "lo": stats(flags="up,loopback,running"),
    "eth0": stats(),
    "wlan0": stats(isup=False),
    "tun0": stats(flags="up,pointopoint,running,noarp,multicast"),
}


def list_with(addrs=MOCK_ADDRS, if_stats=MOCK_STATS, names=None):
    with patch("psutil.net_if_addrs", return_value=addrs), \
         patch("psutil.net_if_stats", return_value=if_stats), \
         patch("socket.if_nametoindex", return_value=2):
        return available_interfaces(names)


def test_only_up_multicast_interfaces_with_hardware_address():
    interfaces = list_with()
    assert [i.name for i in interfaces] == ["eth0"]


def test_interface_details():
    eth0 = list_with()[0]
    assert eth0 == NetworkInterface(
        name="eth0",
        index=2,
        hardware_addr="aa:bb:cc:dd:ee:ff",
        ipv4=["192.168.1.100"],
        ipv6=["fe80::1234"],  # Zone identifier stripped
    )


def test_interface_without_multicast_flag_is_skipped():
    interfaces = list_with(if_stats={**MOCK_STATS, "eth0": stats(flags="up,broadcast,running")})
    assert interfaces == []


def test_missing_flags_are_treated_as_multicast_capable():
    interfaces = list_with(if_stats={**MOCK_STATS, "eth0": stats(flags="")})
    assert [i.name for i in interfaces] == ["eth0"]


def test_interface_without_stats_is_skipped():
    interfaces = list_with(if_stats={"lo": MOCK_STATS["lo"]})
    assert interfaces == []


def test_allow_list_restricts_interfaces():
    if_stats = {**MOCK_STATS, "wlan0": stats()}
    assert [i.name for i in list_with(if_stats=if_stats)] == ["eth0", "wlan0"]
    assert [i.name for i in list_with(if_stats=if_stats, names=["wlan0"])] == ["wlan0"]


def test_enumeration_error_yields_no_interfaces():
    with patch("psutil.net_if_addrs", side_effect=OSError("Test error")):
        assert available_interfaces() == []


def test_index_lookup_failure_defaults_to_zero():
    with patch("psutil.net_if_addrs", return_value=MOCK_ADDRS), \
         patch("psutil.net_if_stats", return_value=MOCK_STATS), \
         patch("socket.if_nametoindex", side_effect=OSError("no such device")):
        interfaces = available_interfaces()
    assert interfaces[0].index == 0
