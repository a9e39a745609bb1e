"""
Custom exceptions for mdns-discovery.
"""


class DiscoveryError(Exception):
    """Base class for all discovery errors."""
    pass

class AlreadySyncingError(DiscoveryError):
    """Raised when START_SYNC is requested while a sync session is active."""
    def __init__(self, message: str = "already syncing"):
        super().__init__(message)

class QueryError(DiscoveryError):
    """Raised when the mDNS query on a single interface fails."""
    def __init__(self, interface: str, message: str):
        super().__init__(f"mDNS query on interface {interface} failed: {message}")
        self.interface = interface
        self.original_message = message

class CommandError(DiscoveryError):
    """Raised for malformed or misordered protocol commands."""
    pass
