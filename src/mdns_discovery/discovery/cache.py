"""
TTL cache of discovered ports.

Every port found by a query is stored under its identity key. A port that
is not seen again within the TTL is dropped and the deletion callback is
invoked, so the caller can emit a "remove" event. Renewing a port pushes
its deadline forward and cancels the task waiting on the old one.
"""
import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from ..models.port import Port

logger = structlog.get_logger(__name__)

DeletionCallback = Callable[[Port], None]


@dataclass
class _CacheItem:
    port: Port
    deadline: float
    waiter: asyncio.Task | None = None


class PortsCache:
    """
    Stores discovered ports with a TTL.

    All reads and writes of the internal map happen while holding a single
    asyncio.Lock. The deletion callback also runs under the lock, so a
    renewal can never slip in between the expiry check and the removal.
    """

    def __init__(self, ttl_seconds: float, deletion_callback: DeletionCallback):
        self.ttl_seconds = ttl_seconds
        self._deletion_callback = deletion_callback
        self._data: dict[str, _CacheItem] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def ports(self) -> list[Port]:
        """Snapshot of the ports currently alive, oldest first."""
        return [item.port for item in self._data.values()]

    async def store_or_update(self, port: Port) -> bool:
        """
        Stores a new port and starts its TTL, or renews the TTL of a known one.

        Returns True if the port was already cached (renewed), False if it
        is new and the caller should announce it.
        """
        key = port.identity_key()
        async with self._lock:
            deadline = asyncio.get_running_loop().time() + self.ttl_seconds
            item = self._data.get(key)
            existed = item is not None
            if item is None:
                item = _CacheItem(port=port, deadline=deadline)
                self._data[key] = item
            else:
                # The old waiter exits on cancellation without removing anything.
                item.waiter.cancel()
                item.port = port
                item.deadline = deadline
            item.waiter = asyncio.create_task(
                self._expire(key, item, deadline), name=f"port-ttl:{key}"
            )
        logger.debug("Port cached", key=key, renewed=existed, ttl=self.ttl_seconds)
        return existed

    async def _expire(self, key: str, item: _CacheItem, deadline: float) -> None:
        loop = asyncio.get_running_loop()
        await asyncio.sleep(max(0.0, deadline - loop.time()))
        async with self._lock:
            if self._data.get(key) is not item or item.deadline != deadline:
                # Renewed or cleared while we were waiting for the lock.
                return
            del self._data[key]
            logger.debug("Port TTL expired", key=key)
            try:
                self._deletion_callback(item.port)
            except Exception as e:
                logger.exception("Error in port deletion callback", key=key, error=str(e))

    async def clear(self) -> int:
        """
        Removes all stored ports and cancels their TTL tasks.
        The deletion callback is not invoked. Returns the number of dropped ports.
        """
        async with self._lock:
            count = len(self._data)
            for item in self._data.values():
                if item.waiter is not None:
                    item.waiter.cancel()
            self._data.clear()
        if count:
            logger.debug("Ports cache cleared", dropped=count)
        return count
