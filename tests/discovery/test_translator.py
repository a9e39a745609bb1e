"""Tests for translating raw mDNS replies into ports."""

from mdns_discovery.config import DiscoveryConfig
from mdns_discovery.discovery.translator import to_discovery_port
from mdns_discovery.models.port import ServiceEntry

SERVICE_TYPE = DiscoveryConfig().service_fqdn


def make_entry(**overrides) -> ServiceEntry:
    values = dict(
        name="myboard._arduino._tcp.local.",
        host="myboard.local.",
        addr_v4="192.168.1.5",
        addr_v6="fe80::1",
        port=80,
        info_fields=["board=uno", "ssh_upload=no", "tcp_check=no", "auth_upload=yes"],
    )
    values.update(overrides)
    return ServiceEntry(**values)


def test_translates_arduino_entry():
    port = to_discovery_port(make_entry(), SERVICE_TYPE)

    assert port is not None
    assert port.address == "192.168.1.5"
    assert port.address_label == "myboard at 192.168.1.5"
    assert port.protocol == "network"
    assert port.protocol_label == "Network Port"
    assert list(port.properties.items()) == [
        ("hostname", "myboard.local."),
        ("port", "80"),
        ("board", "uno"),
        (".", "uno"),
        ("ssh_upload", "no"),
        ("tcp_check", "no"),
        ("auth_upload", "yes"),
    ]


def test_rejects_other_services():
    assert to_discovery_port(make_entry(name="printer._ipp._tcp.local."), SERVICE_TYPE) is None
    # The suffix must include the domain.
    assert to_discovery_port(make_entry(name="myboard._arduino._tcp"), SERVICE_TYPE) is None


def test_custom_service_type():
    entry = make_entry(name="node._esp._tcp.local.")
    assert to_discovery_port(entry, SERVICE_TYPE) is None
    assert to_discovery_port(entry, "_esp._tcp.local.") is not None


def test_custom_domain():
    entry = make_entry(name="myboard._arduino._tcp.lan.")
    assert to_discovery_port(entry, SERVICE_TYPE) is None
    assert to_discovery_port(entry, DiscoveryConfig(domain="lan").service_fqdn) is not None


def test_prefers_ipv4_then_ipv6():
    assert to_discovery_port(make_entry(addr_v4=None), SERVICE_TYPE).address == "fe80::1"

    port = to_discovery_port(make_entry(addr_v4=None, addr_v6=None), SERVICE_TYPE)
    assert port.address == ""
    assert port.address_label == "myboard at "


def test_drops_malformed_text_fields():
    port = to_discovery_port(make_entry(info_fields=["novalue", "a=b=c", "key=value", "empty="]), SERVICE_TYPE)

    assert "novalue" not in port.properties
    assert "a" not in port.properties
    assert port.properties["key"] == "value"
    assert port.properties["empty"] == ""
    assert "." not in port.properties


def test_label_falls_back_to_service_name_without_host():
    port = to_discovery_port(make_entry(host=""), SERVICE_TYPE)
    assert port.address_label == "myboard._arduino._tcp.local. at 192.168.1.5"


def test_identity_key():
    port = to_discovery_port(make_entry(), SERVICE_TYPE)
    assert port.identity_key() == "192.168.1.5:80 uno"

    no_board = to_discovery_port(make_entry(info_fields=[]), SERVICE_TYPE)
    assert no_board.identity_key() == "192.168.1.5:80 "
