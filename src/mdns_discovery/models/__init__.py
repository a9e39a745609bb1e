"""
Data models for mdns-discovery.
"""
from .common import BasePydanticModel, EventType
from .port import (
    LEGACY_BOARD_KEY,
    NETWORK_PROTOCOL,
    NETWORK_PROTOCOL_LABEL,
    Port,
    ServiceEntry,
)

__all__ = [
    "BasePydanticModel",
    "EventType",
    "LEGACY_BOARD_KEY",
    "NETWORK_PROTOCOL",
    "NETWORK_PROTOCOL_LABEL",
    "Port",
    "ServiceEntry",
]
