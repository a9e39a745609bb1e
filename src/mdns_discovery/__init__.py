"""mdns-discovery - pluggable discovery that finds network boards via mDNS.

Boards advertising the ``_arduino._tcp`` service are queried periodically on
every eligible network interface and reported as network ports.
"""

__version__ = "1.0.0"

from .config import Config
from .discovery import MDNSDiscovery

__all__ = ["Config", "MDNSDiscovery"]
