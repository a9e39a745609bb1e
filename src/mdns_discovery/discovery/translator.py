"""Translation of raw mDNS replies into discovery ports."""

from typing import Optional

import structlog

from ..models.port import LEGACY_BOARD_KEY, Port, ServiceEntry

logger = structlog.get_logger(__name__)


def _label_name(entry: ServiceEntry) -> str:
    if entry.host:
        return entry.host.split(".")[0]
    return entry.name


def to_discovery_port(entry: ServiceEntry, service_type: str) -> Optional[Port]:
    """Convert a raw reply into a Port.

    ``service_type`` is the fully qualified type that was queried, e.g.
    ``_arduino._tcp.local.``. Returns None for replies of other services; a
    query can pick up unrelated answers sent to the multicast group.
    """
    if not entry.name.endswith(service_type):
        logger.debug("Ignoring reply for another service", name=entry.name)
        return None

    ip = ""
    if entry.addr_v4:
        ip = entry.addr_v4
    elif entry.addr_v6:
        ip = entry.addr_v6

    properties: dict[str, str] = {
        "hostname": entry.host,
        "port": str(entry.port),
    }
    for info_field in entry.info_fields:
        split = info_field.split("=")
        if len(split) != 2:
            continue
        key, value = split
        properties[key] = value
        if key == "board":
            properties[LEGACY_BOARD_KEY] = value

    return Port(
        address=ip,
        address_label=f"{_label_name(entry)} at {ip}",
        properties=properties,
    )
