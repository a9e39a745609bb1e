"""
Per-interface mDNS queries.

A query browses one service type on one network interface for a bounded
amount of time and puts every resolved instance on the given queue as a
raw ServiceEntry. Queries are not meant to be interrupted: callers wait for
them to return on their own.
"""
import asyncio
from dataclasses import dataclass
from typing import Protocol

import structlog
from zeroconf import IPVersion, ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from ..models.port import ServiceEntry
from .connectivity import Connectivity
from .network import NetworkInterface

logger = structlog.get_logger(__name__)


@dataclass
class QueryParams:
    """Parameters of a single mDNS query on one interface."""

    service: str
    domain: str
    timeout: float
    interface: NetworkInterface
    disable_ipv4: bool = False
    disable_ipv6: bool = False
    resolve_timeout_ms: int = 3000

    @property
    def service_type(self) -> str:
        return f"{self.service}.{self.domain}."


def make_query_params(
    netif: NetworkInterface,
    conn: Connectivity,
    service: str,
    domain: str,
    timeout: float,
    resolve_timeout_ms: int = 3000,
) -> QueryParams:
    return QueryParams(
        service=service,
        domain=domain,
        timeout=timeout,
        interface=netif,
        disable_ipv4=not conn.ipv4,
        disable_ipv6=not conn.ipv6,
        resolve_timeout_ms=resolve_timeout_ms,
    )


class Querier(Protocol):
    """Runs one timed mDNS query and delivers raw replies to a queue."""

    async def query(self, params: QueryParams, entries: asyncio.Queue) -> None:
        ...


def decode_txt(text: bytes | None) -> list[str]:
    """Split raw TXT record data into its length-prefixed strings."""
    fields: list[str] = []
    if not text:
        return fields
    i = 0
    while i < len(text):
        length = text[i]
        chunk = text[i + 1:i + 1 + length]
        i += 1 + length
        if chunk:
            fields.append(chunk.decode("utf-8", errors="replace"))
    return fields


def service_entry_from_info(info: AsyncServiceInfo) -> ServiceEntry:
    """Build a raw ServiceEntry from a resolved zeroconf service info."""
    ipv4 = info.parsed_addresses(IPVersion.V4Only)
    ipv6 = info.parsed_addresses(IPVersion.V6Only)
    return ServiceEntry(
        name=info.name,
        host=info.server or "",
        addr_v4=ipv4[0] if ipv4 else None,
        addr_v6=ipv6[0] if ipv6 else None,
        port=info.port or 0,
        info_fields=decode_txt(info.text),
    )


def _zeroconf_interfaces(params: QueryParams) -> tuple[list, IPVersion]:
    interfaces: list = []
    if not params.disable_ipv4:
        interfaces.extend(params.interface.ipv4)
    if not params.disable_ipv6 and params.interface.index:
        # IPv6 multicast membership is set per interface index.
        interfaces.append(params.interface.index)

    has_v4 = any(isinstance(i, str) for i in interfaces)
    has_v6 = any(isinstance(i, int) for i in interfaces)
    if has_v4 and has_v6:
        version = IPVersion.All
    elif has_v6:
        version = IPVersion.V6Only
    else:
        version = IPVersion.V4Only
    return interfaces, version


class ZeroconfQuerier:
    """Querier backed by python-zeroconf, bound to a single interface per query."""

    async def query(self, params: QueryParams, entries: asyncio.Queue) -> None:
        log = logger.bind(interface=params.interface.name, service_type=params.service_type)
        interfaces, ip_version = _zeroconf_interfaces(params)
        if not interfaces:
            log.debug("Interface has no usable address for the enabled IP versions, skipping query.")
            return

        pending: set[asyncio.Task] = set()
        aiozc = AsyncZeroconf(interfaces=interfaces, ip_version=ip_version)
        try:
            def on_service_state_change(
                zeroconf: Zeroconf, service_type: str, name: str, state_change: ServiceStateChange
            ) -> None:
                if state_change not in (ServiceStateChange.Added, ServiceStateChange.Updated):
                    return
                task = asyncio.create_task(self._resolve(zeroconf, service_type, name, params, entries))
                pending.add(task)
                task.add_done_callback(pending.discard)

            browser = AsyncServiceBrowser(
                aiozc.zeroconf, [params.service_type], handlers=[on_service_state_change]
            )
            log.debug("mDNS query started", timeout=params.timeout)
            try:
                await asyncio.sleep(params.timeout)
            finally:
                await browser.async_cancel()
                if pending:
                    await asyncio.gather(*pending, return_exceptions=True)
        finally:
            await aiozc.async_close()
        log.debug("mDNS query finished")

    async def _resolve(
        self,
        zc: Zeroconf,
        service_type: str,
        name: str,
        params: QueryParams,
        entries: asyncio.Queue,
    ) -> None:
        log = logger.bind(interface=params.interface.name, service_name=name)
        try:
            info = AsyncServiceInfo(service_type, name)
            if not await info.async_request(zc, params.resolve_timeout_ms):
                log.debug("Failed to resolve mDNS service info (request timed out or no info).")
                return
            await entries.put(service_entry_from_info(info))
        except Exception as e:
            log.exception("Error resolving mDNS service info", error=str(e))
