"""Server discovery backends.

A backend answers ``discover(timeout) -> list[ServerInfo]``. The session
does not care whether the list comes from configuration or the network.
"""

from __future__ import annotations

import asyncio
import json
from typing import Protocol

from pydantic import ValidationError

from nexuflex.config.schema import DEFAULT_PORT, KnownServerConfig, ServerConfig
from nexuflex.logging import get_logger
from nexuflex.types import NexuflexModel, ServerInfo

log = get_logger("discovery")

DISCOVERY_PREFIX = "NEXUFLEX_DISCOVERY"
DEFAULT_MULTICAST_ADDRESS = "239.0.0.1:5000"


class DiscoveryBackend(Protocol):
    async def discover(self, timeout: float) -> list[ServerInfo]: ...


class DiscoveryPacket(NexuflexModel):
    """A server's reply to a discovery request."""

    type: str = "response"
    token: str = ""
    address: str = ""
    port: int = DEFAULT_PORT
    name: str = ""
    version: str = ""
    tls: bool = False
    description: str = ""
    hostname: str = ""


def parse_address(value: str, default_port: int) -> tuple[str, int]:
    """Split ``host:port``; a missing port falls back to ``default_port``."""
    host, sep, port = value.rpartition(":")
    if not sep:
        return value, default_port
    try:
        return host, int(port)
    except ValueError as e:
        raise ValueError(f"invalid port in address {value!r}") from e


def parse_discovery_packet(data: bytes, sender_host: str) -> ServerInfo | None:
    """Decode a discovery reply. Returns None for anything that is not one.

    A reply without an address is attributed to the sender of the datagram.
    """
    try:
        packet = DiscoveryPacket.model_validate(json.loads(data.decode("utf-8")))
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
        log.debug("Ignoring malformed discovery packet from %s: %s", sender_host, e)
        return None
    if packet.type != "response":
        return None
    return ServerInfo(
        hostname=packet.hostname or packet.name,
        address=packet.address or sender_host,
        port=packet.port,
        short_name=packet.name,
        description=packet.description,
        tls_enabled=packet.tls,
        version=packet.version,
    )


class StaticDiscovery:
    """Returns the servers listed in configuration."""

    def __init__(self, servers: list[KnownServerConfig]) -> None:
        self._servers = list(servers)

    async def discover(self, timeout: float) -> list[ServerInfo]:
        return [
            ServerInfo(
                hostname=s.address,
                address=s.address,
                port=s.port,
                short_name=s.name,
                description=s.description,
                tls_enabled=s.tls,
            )
            for s in self._servers
        ]


class _DiscoveryProtocol(asyncio.DatagramProtocol):
    def __init__(self) -> None:
        self.servers: dict[tuple[str, int], ServerInfo] = {}

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        server = parse_discovery_packet(data, addr[0])
        if server is None:
            return
        key = (server.address, server.port)
        if key not in self.servers:
            log.debug("Discovered %s at %s:%d", server.display_name, *key)
            self.servers[key] = server

    def error_received(self, exc: Exception) -> None:
        log.debug("Discovery socket error: %s", exc)


class MulticastDiscovery:
    """Sends a discovery datagram to a multicast group and collects replies.

    The request is ``NEXUFLEX_DISCOVERY:<token>``; servers answer with a JSON
    packet of ``type`` "response". Replies are gathered until the timeout and
    de-duplicated by address and port.
    """

    def __init__(
        self,
        token: str = DISCOVERY_PREFIX,
        multicast_address: str = DEFAULT_MULTICAST_ADDRESS,
    ) -> None:
        self.token = token
        self.group, self.port = parse_address(multicast_address, 5000)

    @property
    def request(self) -> bytes:
        return f"{DISCOVERY_PREFIX}:{self.token}".encode()

    async def discover(self, timeout: float) -> list[ServerInfo]:
        loop = asyncio.get_running_loop()
        try:
            transport, protocol = await loop.create_datagram_endpoint(
                _DiscoveryProtocol, local_addr=("0.0.0.0", 0)
            )
        except OSError as e:
            log.warning("Cannot open discovery socket: %s", e)
            return []

        try:
            transport.sendto(self.request, (self.group, self.port))
            await asyncio.sleep(timeout)
        finally:
            transport.close()

        servers = list(protocol.servers.values())
        log.info("Discovery found %d server(s)", len(servers))
        return servers


def discovery_from_config(server: ServerConfig) -> DiscoveryBackend:
    """Static discovery when servers are configured, multicast otherwise."""
    if server.known_servers:
        return StaticDiscovery(server.known_servers)
    return MulticastDiscovery(server.discovery_token, server.multicast_address)
