"""Destination endpoints and ``host:port`` resolution."""

from __future__ import annotations

import ipaddress
import logging
from logging import Formatter, BASIC_FORMAT
import socket
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from ..errors import ConfigurationError, EndpointFormatError, ResolutionError

logger = logging.getLogger(__name__)
handler = logging.StreamHandler()
handler.setLevel(logging.INFO)
handler.setFormatter(Formatter(BASIC_FORMAT))
logger.addHandler(handler)

# Returns getaddrinfo-style tuples; only the sockaddr element is inspected.
HostLookup = Callable[[str], Sequence[tuple]]

MAX_PORT = 65535


@dataclass(frozen=True, slots=True)
class Endpoint:
    """An IPv4 address and UDP port."""

    address: ipaddress.IPv4Address
    port: int

    def __post_init__(self) -> None:
        if not (0 <= self.port <= MAX_PORT):
            raise ValueError(f"port must be within 0-{MAX_PORT}, got {self.port}")

    @property
    def host(self) -> str:
        return str(self.address)

    @property
    def packed(self) -> bytes:
        """The 4-byte network order address."""

        return self.address.packed

    @property
    def sockaddr(self) -> tuple[str, int]:
        return (self.host, self.port)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


def default_lookup(host: str) -> Sequence[tuple]:
    return socket.getaddrinfo(host, None, socket.AF_INET, socket.SOCK_DGRAM)


def parse_port(text: str, *, what: str = "port") -> int:
    """Parse a decimal port number, raising :class:`ConfigurationError`."""

    text = text.strip()
    if not (text.isascii() and text.isdigit()):
        raise ConfigurationError(f"Invalid {what}: {text!r} is not a decimal number")
    port = int(text)
    if port > MAX_PORT:
        raise ConfigurationError(f"{what} must be between 0 and {MAX_PORT}, got {port}")
    return port


def resolve_endpoint(text: str, *, lookup: HostLookup = default_lookup) -> Endpoint:
    """Turn ``host:port`` into an :class:`Endpoint`.

    IPv4 literals are parsed directly; anything else goes through ``lookup``,
    which blocks without a timeout. The first IPv4 result wins.
    """

    host, sep, port_text = text.rpartition(":")
    if not sep:
        raise EndpointFormatError(
            f"Address must be in format IP:PORT or hostname:PORT, got {text!r}"
        )
    host = host.strip()
    if not host:
        raise EndpointFormatError(f"Missing host in destination {text!r}")
    try:
        port = parse_port(port_text)
    except ConfigurationError as exc:
        raise EndpointFormatError(f"Bad destination {text!r}: {exc}") from exc

    try:
        return Endpoint(ipaddress.IPv4Address(host), port)
    except ipaddress.AddressValueError:
        pass

    logger.debug("Resolving hostname %s", host)
    try:
        results = lookup(host)
    except (OSError, UnicodeError) as exc:
        raise ResolutionError(f"Could not resolve hostname {host!r}: {exc}") from exc

    for result in results:
        sockaddr = result[4]
        try:
            address = ipaddress.IPv4Address(sockaddr[0])
        except (ipaddress.AddressValueError, IndexError, TypeError):
            continue
        logger.debug("Resolved %s to %s", host, address)
        return Endpoint(address, port)
    raise ResolutionError(f"Could not resolve hostname {host!r}: no IPv4 address found")


def resolve_endpoints(
    texts: Iterable[str], *, lookup: HostLookup = default_lookup
) -> tuple[Endpoint, ...]:
    """Resolve each destination in order; the first failure propagates."""

    return tuple(resolve_endpoint(text, lookup=lookup) for text in texts)
