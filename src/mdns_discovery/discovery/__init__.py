"""
mDNS network port discovery: interface enumeration, connectivity checks,
per-interface queries, reply translation and the TTL ports cache.
"""
from .cache import PortsCache
from .connectivity import Connectivity, check_connectivity
from .discovery_service import MDNSDiscovery, SyncSession
from .network import NetworkInterface, available_interfaces
from .query import Querier, QueryParams, ZeroconfQuerier, make_query_params
from .translator import to_discovery_port

__all__ = [
    "Connectivity",
    "MDNSDiscovery",
    "NetworkInterface",
    "PortsCache",
    "Querier",
    "QueryParams",
    "SyncSession",
    "ZeroconfQuerier",
    "available_interfaces",
    "check_connectivity",
    "make_query_params",
    "to_discovery_port",
]
