"""
Pluggable discovery protocol server.

Reads one command per line (HELLO, START, LIST, START_SYNC, STOP, QUIT)
and answers with JSON messages, pushing "add"/"remove" events while a
START_SYNC session is running.
"""
import asyncio
import json
import re
import sys
from collections.abc import AsyncIterator
from enum import Enum
from typing import Any, Dict, Optional, TextIO

import structlog

from .discovery.discovery_service import MDNSDiscovery
from .exceptions import AlreadySyncingError, CommandError
from .models.common import EventType
from .models.port import Port

logger = structlog.get_logger(__name__)

PROTOCOL_VERSION = 1

_HELLO_ARGS = re.compile(r'^(\d+)\s+"([^"]*)"$')


class ServerMode(str, Enum):
    IDLE = "idle"
    STARTED = "started"
    SYNCING = "syncing"


async def stdin_lines() -> AsyncIterator[str]:
    """Yields lines read from stdin without blocking the event loop."""
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return
        yield line


class DiscoveryServer:
    """Runs the discovery protocol on top of an MDNSDiscovery."""

    def __init__(self, discovery: MDNSDiscovery, output: Optional[TextIO] = None):
        self.discovery = discovery
        self.output = output or sys.stdout
        self.mode = ServerMode.IDLE
        self._hello_done = False
        # Ports known in START mode, answered to LIST.
        self._listed_ports: Dict[str, Port] = {}
        self.logger = logger.bind(component="DiscoveryServer")

    def _send(self, message: Dict[str, Any]) -> None:
        self.output.write(json.dumps(message, indent=2) + "\n")
        self.output.flush()

    def _send_ok(self, event_type: str) -> None:
        self._send({"eventType": event_type, "message": "OK"})

    def _send_error(self, event_type: str, message: str) -> None:
        self._send({"eventType": event_type, "error": True, "message": message})

    async def run(self, lines: AsyncIterator[str]) -> None:
        """Processes commands until QUIT or the end of input."""
        async for line in lines:
            command = line.strip()
            if not command:
                continue
            try:
                if not await self.handle_command(command):
                    return
            except CommandError as e:
                self.logger.debug("Rejected command", command=command, error=str(e))
                self._send_error("command_error", str(e))
        # Input closed without QUIT.
        await self.discovery.quit()

    async def handle_command(self, line: str) -> bool:
        """Executes a single command line. Returns False once QUIT is processed."""
        name, _, args = line.partition(" ")
        name = name.upper()

        if name == "QUIT":
            await self.discovery.quit()
            self._send_ok("quit")
            return False

        if not self._hello_done:
            if name != "HELLO":
                raise CommandError("First command must be HELLO")
            self._hello(args.strip())
            return True

        handler = {
            "HELLO": self._hello_again,
            "START": self._start,
            "LIST": self._list,
            "START_SYNC": self._start_sync,
            "STOP": self._stop,
        }.get(name)
        if handler is None:
            raise CommandError(f"Command {name} not supported")
        await handler()
        return True

    def _hello(self, args: str) -> None:
        match = _HELLO_ARGS.match(args)
        if match is None:
            raise CommandError("Invalid HELLO command")
        protocol_version, user_agent = int(match.group(1)), match.group(2)
        if protocol_version > PROTOCOL_VERSION:
            self.logger.info("Client requested a newer protocol", requested=protocol_version, supported=PROTOCOL_VERSION)
        self.discovery.hello(user_agent, protocol_version)
        self._hello_done = True
        self._send({"eventType": "hello", "protocolVersion": PROTOCOL_VERSION, "message": "OK"})

    async def _hello_again(self) -> None:
        raise CommandError("HELLO already called")

    async def _start(self) -> None:
        if self.mode != ServerMode.IDLE:
            raise CommandError(f"Discovery already {self.mode.value}")
        await self.discovery.start()
        self._listed_ports.clear()
        try:
            await self.discovery.start_sync(self._remember_port, self._forget_port, self._log_error)
        except AlreadySyncingError as e:
            self._send_error("start", str(e))
            return
        self.mode = ServerMode.STARTED
        self._send_ok("start")

    async def _list(self) -> None:
        if self.mode != ServerMode.STARTED:
            raise CommandError("Discovery not STARTed")
        self._send({
            "eventType": "list",
            "ports": [port.to_json_dict() for port in self._listed_ports.values()],
        })

    async def _start_sync(self) -> None:
        if self.mode == ServerMode.STARTED:
            raise CommandError("Discovery already STARTed, cannot START_SYNC")
        try:
            await self.discovery.start_sync(
                lambda port: self._send_event(EventType.ADD, port),
                lambda port: self._send_event(EventType.REMOVE, port),
                lambda message: self._send_error("start_sync", message),
            )
        except AlreadySyncingError as e:
            self._send_error("start_sync", str(e))
            return
        self.mode = ServerMode.SYNCING
        self._send_ok("start_sync")

    async def _stop(self) -> None:
        if self.mode == ServerMode.IDLE:
            raise CommandError("Discovery already STOPped")
        await self.discovery.stop()
        self._listed_ports.clear()
        self.mode = ServerMode.IDLE
        self._send_ok("stop")

    def _send_event(self, event_type: EventType, port: Port) -> None:
        self._send({"eventType": event_type.value, "port": port.to_json_dict()})

    def _remember_port(self, port: Port) -> None:
        self._listed_ports[port.identity_key()] = port

    def _forget_port(self, port: Port) -> None:
        self._listed_ports.pop(port.identity_key(), None)

    def _log_error(self, message: str) -> None:
        self.logger.warning("Discovery error while STARTed", message=message)
