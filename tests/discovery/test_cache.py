"""Tests for the TTL ports cache."""

import asyncio

import pytest

from mdns_discovery.discovery.cache import PortsCache
from mdns_discovery.models.port import Port


def make_port(address="192.168.1.5", port="80", board="uno", **extra) -> Port:
    properties = {"hostname": "myboard.local.", "port": port, "board": board}
    properties.update(extra)
    return Port(address=address, address_label=f"myboard at {address}", properties=properties)


@pytest.fixture
def removed():
    return []


async def test_first_sighting_is_reported_as_new(removed):
    cache = PortsCache(60, removed.append)
    assert await cache.store_or_update(make_port()) is False
    assert len(cache) == 1
    assert "192.168.1.5:80 uno" in cache
    await cache.clear()


async def test_renewal_keeps_one_entry_and_latest_port(removed):
    cache = PortsCache(60, removed.append)
    first = make_port(fw_version="1.0")
    second = make_port(fw_version="1.1")

    assert await cache.store_or_update(first) is False
    assert await cache.store_or_update(second) is True

    assert len(cache) == 1
    assert cache.ports() == [second]
    await cache.clear()


async def test_ports_differing_in_identity_fields_are_not_merged(removed):
    cache = PortsCache(60, removed.append)
    ports = [
        make_port(),
        make_port(address="192.168.1.6"),
        make_port(port="8080"),
        make_port(board="mkr1000"),
    ]
    results = [await cache.store_or_update(p) for p in ports]

    assert results == [False, False, False, False]
    assert len(cache) == 4
    await cache.clear()


async def test_expired_port_is_removed_once(removed):
    cache = PortsCache(0.05, removed.append)
    port = make_port()
    await cache.store_or_update(port)

    await asyncio.sleep(0.3)

    assert removed == [port]
    assert len(cache) == 0


async def test_remove_is_measured_from_the_last_sighting(removed):
    cache = PortsCache(0.4, removed.append)
    port = make_port()

    await cache.store_or_update(port)
    await asyncio.sleep(0.2)
    assert await cache.store_or_update(port) is True

    # Past the first deadline, before the renewed one.
    await asyncio.sleep(0.3)
    assert removed == []
    assert len(cache) == 1

    await asyncio.sleep(0.4)
    assert removed == [port]
    assert len(cache) == 0


async def test_port_can_be_added_again_after_expiry(removed):
    cache = PortsCache(0.05, removed.append)
    port = make_port()

    assert await cache.store_or_update(port) is False
    await asyncio.sleep(0.2)
    assert removed == [port]

    assert await cache.store_or_update(port) is False
    await cache.clear()


async def test_clear_does_not_report_removals(removed):
    cache = PortsCache(0.1, removed.append)
    for board in ("uno", "nano", "mega"):
        await cache.store_or_update(make_port(board=board))

    assert await cache.clear() == 3
    await asyncio.sleep(0.3)

    assert removed == []
    assert len(cache) == 0


async def test_clear_on_empty_cache(removed):
    cache = PortsCache(60, removed.append)
    assert await cache.clear() == 0


async def test_simultaneous_sightings_create_one_entry(removed):
    cache = PortsCache(60, removed.append)
    results = await asyncio.gather(
        cache.store_or_update(make_port()),
        cache.store_or_update(make_port()),
    )

    assert sorted(results) == [False, True]
    assert len(cache) == 1
    await cache.clear()


async def test_failing_deletion_callback_still_removes_port():
    def explode(port):
        raise RuntimeError("listener gone")

    cache = PortsCache(0.05, explode)
    await cache.store_or_update(make_port())
    await asyncio.sleep(0.3)

    assert len(cache) == 0


async def test_expiry_with_outdated_deadline_keeps_renewed_port(removed):
    cache = PortsCache(60, removed.append)
    port = make_port()
    await cache.store_or_update(port)
    key = port.identity_key()
    item = cache._data[key]

    # A waiter that reached its old deadline after the port was renewed.
    await cache._expire(key, item, item.deadline - 30)

    assert removed == []
    assert key in cache
    await cache.clear()


async def test_expiry_after_clear_reports_nothing(removed):
    cache = PortsCache(60, removed.append)
    port = make_port()
    await cache.store_or_update(port)
    key = port.identity_key()
    item = cache._data[key]
    await cache.clear()

    await cache._expire(key, item, item.deadline - 60)

    assert removed == []
    assert len(cache) == 0
