"""
Network port discovery over mDNS.

MDNSDiscovery periodically queries every eligible network interface for
boards advertising the configured service, and reports ports appearing and
disappearing through the callbacks given to start_sync().
"""
import asyncio
import itertools
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any, List, Optional

import structlog

from ..config import DiscoveryConfig
from ..exceptions import AlreadySyncingError, QueryError
from ..models.port import Port, ServiceEntry
from .cache import PortsCache
from .connectivity import Connectivity, check_connectivity
from .network import NetworkInterface, available_interfaces
from .query import Querier, ZeroconfQuerier, make_query_params
from .translator import to_discovery_port

logger = structlog.get_logger(__name__)

PortCallback = Callable[[Port], None]
ErrorCallback = Callable[[str], None]

# Posted by the query loop once it has stopped and all its queries returned.
_END_OF_REPLIES = object()


@dataclass(eq=False)
class SyncSession:
    """State of one START_SYNC .. STOP interval, shared by all its tasks."""

    id: int
    on_add: PortCallback
    on_remove: PortCallback
    on_error: ErrorCallback
    cache: PortsCache
    # Raw replies of every per-interface query, merged.
    replies: asyncio.Queue = field(default_factory=asyncio.Queue)
    # Replies forwarded by the relay while the session is open.
    entries: asyncio.Queue = field(default_factory=asyncio.Queue)
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)
    tasks: set = field(default_factory=set)
    consumer: Optional[asyncio.Task] = None
    closed: bool = False

    def spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=f"{name}:{self.id}")
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    def report_error(self, message: str) -> None:
        if self.closed:
            return
        try:
            self.on_error(message)
        except Exception as e:
            logger.exception("Error in discovery error callback", session=self.id, error=str(e))


class MDNSDiscovery:
    """
    Discovers network ports with periodic mDNS queries.

    Each session runs three kinds of background tasks: the query loop, which
    owns the merged reply queue; the relay, which forwards replies to the
    consumer only while the session is open; and the consumer, which feeds
    translated ports into the session's PortsCache.
    """

    def __init__(
        self,
        config: Optional[DiscoveryConfig] = None,
        querier: Optional[Querier] = None,
        connectivity_checker: Callable[[DiscoveryConfig], Connectivity] = check_connectivity,
        interfaces_lister: Callable[[Optional[List[str]]], List[NetworkInterface]] = available_interfaces,
    ):
        self.config = config or DiscoveryConfig()
        self._querier: Querier = querier or ZeroconfQuerier()
        self._check_connectivity = connectivity_checker
        self._list_interfaces = interfaces_lister
        self._session: Optional[SyncSession] = None
        self._session_ids = itertools.count(1)
        # Tasks of stopped sessions still waiting for in-flight queries.
        self._draining: set[asyncio.Task] = set()
        self.logger = logger.bind(service="MDNSDiscovery")

    @property
    def is_syncing(self) -> bool:
        return self._session is not None

    def hello(self, user_agent: str, protocol_version: int) -> None:
        """Handles the protocol handshake."""
        # zeroconf logs every malformed packet it sees on the network.
        logging.getLogger("zeroconf").setLevel(logging.ERROR)
        self.logger.info("Hello received", user_agent=user_agent, protocol_version=protocol_version)

    async def start(self) -> None:
        self.logger.debug("Start received.")

    async def start_sync(self, on_add: PortCallback, on_remove: PortCallback, on_error: ErrorCallback) -> None:
        """
        Starts the query loop. Ports are reported through on_add the first
        time they are seen and through on_remove when their TTL expires.
        Raises AlreadySyncingError if a session is already running.
        """
        if self._session is not None:
            raise AlreadySyncingError()

        session_id = next(self._session_ids)
        session = SyncSession(
            id=session_id,
            on_add=on_add,
            on_remove=on_remove,
            on_error=on_error,
            cache=PortsCache(self.config.ports_ttl_seconds, on_remove),
        )
        session.consumer = session.spawn(self._consume(session), "mdns-consumer")
        session.spawn(self._relay(session), "mdns-relay")
        session.spawn(self._query_loop(session), "mdns-query-loop")
        self._session = session
        self.logger.info(
            "Sync session started",
            session=session.id,
            interval=self.config.query_interval_seconds,
            ttl=self.config.ports_ttl_seconds,
        )

    async def stop(self) -> None:
        """
        Stops the running session, if any. Queries already in flight are
        left to finish and their replies are dropped. Cached ports are
        discarded without reporting their removal.
        """
        session = self._session
        if session is None:
            return
        self._session = None

        session.closed = True
        session.stop_event.set()
        if session.consumer is not None:
            session.consumer.cancel()
        for task in session.tasks - {session.consumer}:
            self._draining.add(task)
            task.add_done_callback(self._draining.discard)
        dropped = await session.cache.clear()
        self.logger.info("Sync session stopped", session=session.id, dropped_ports=dropped)

    async def quit(self, timeout: Optional[float] = None) -> None:
        """Stops discovery and waits for lingering queries to return."""
        await self.stop()
        if not self._draining:
            return
        if timeout is None:
            timeout = self.config.discovery_timeout_seconds + self.config.resolve_timeout_ms / 1000 + 1
        _, still_running = await asyncio.wait(set(self._draining), timeout=timeout)
        if still_running:
            self.logger.warning("Some discovery tasks did not finish before quit", count=len(still_running))

    async def _query_loop(self, session: SyncSession) -> None:
        log = self.logger.bind(session=session.id)
        try:
            while not session.stop_event.is_set():
                await self._run_round(session)
                try:
                    await asyncio.wait_for(session.stop_event.wait(), timeout=self.config.query_interval_seconds)
                except TimeoutError:
                    continue
        except Exception as e:
            log.exception("Query loop failed", error=str(e))
            session.report_error(f"mDNS query loop failed: {e}")
        finally:
            session.replies.put_nowait(_END_OF_REPLIES)
            log.debug("Query loop ended.")

    async def _run_round(self, session: SyncSession) -> None:
        log = self.logger.bind(session=session.id)

        conn = self._check_connectivity(self.config)
        if not conn.available():
            log.info("No multicast connectivity, skipping query round.")
            return

        interfaces = self._list_interfaces(self.config.network_interfaces or None)
        if not interfaces:
            log.debug("No valid network interfaces, skipping query round.")
            return

        log.debug("Query round started", interfaces=[n.name for n in interfaces], ipv4=conn.ipv4, ipv6=conn.ipv6)
        await asyncio.gather(*(self._query_interface(session, netif, conn) for netif in interfaces))

    async def _query_interface(self, session: SyncSession, netif: NetworkInterface, conn: Connectivity) -> None:
        params = make_query_params(
            netif,
            conn,
            service=self.config.service_name,
            domain=self.config.domain,
            timeout=self.config.discovery_timeout_seconds,
            resolve_timeout_ms=self.config.resolve_timeout_ms,
        )
        try:
            await self._querier.query(params, session.replies)
        except Exception as e:
            err = QueryError(netif.name, str(e))
            self.logger.warning("mDNS query failed", session=session.id, interface=netif.name, error=str(e))
            session.report_error(str(err))

    async def _relay(self, session: SyncSession) -> None:
        while True:
            entry = await session.replies.get()
            if entry is _END_OF_REPLIES:
                break
            if session.closed:
                # Keep draining so late queries never block, but deliver nothing.
                continue
            session.entries.put_nowait(entry)
        self.logger.debug("Relay drained", session=session.id)

    async def _consume(self, session: SyncSession) -> None:
        while True:
            entry: ServiceEntry = await session.entries.get()
            port = to_discovery_port(entry, self.config.service_fqdn)
            if port is None:
                continue
            renewed = await session.cache.store_or_update(port)
            if renewed or session.closed:
                continue
            self.logger.info("Port discovered", session=session.id, address=port.address, label=port.address_label)
            try:
                session.on_add(port)
            except Exception as e:
                self.logger.exception("Error in port add callback", session=session.id, error=str(e))
