"""The UDP socket the forwarder receives on and sends from."""

from __future__ import annotations

import logging
from logging import Formatter, BASIC_FORMAT
import socket

from ..errors import ListenSocketError
from .endpoint import Endpoint

logger = logging.getLogger(__name__)
handler = logging.StreamHandler()
handler.setLevel(logging.INFO)
handler.setFormatter(Formatter(BASIC_FORMAT))
logger.addHandler(handler)

# 65535 - 20 byte IP header - 8 byte UDP header
MAX_UDP_PAYLOAD = 65507
DEFAULT_RECV_BUFFER_BYTES = 1024 * 1024


class ListenSocket:
    """IPv4 UDP socket bound on all interfaces.

    ``receive`` is bounded by ``poll_interval`` so the caller regains control
    periodically even when no traffic arrives.
    """

    def __init__(
        self,
        *,
        port: int,
        host: str = "0.0.0.0",
        poll_interval: float = 0.25,
        recv_buffer_bytes: int = DEFAULT_RECV_BUFFER_BYTES,
    ):
        self.host = host
        self.port = port
        self.poll_interval = poll_interval
        self.recv_buffer_bytes = recv_buffer_bytes
        self._sock: socket.socket | None = None

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    @property
    def bound_port(self) -> int:
        """Port actually bound, which differs from ``port`` when binding to 0."""

        if self._sock is None:
            return self.port
        return self._sock.getsockname()[1]

    def open(self) -> None:
        if self._sock:
            return
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as exc:
            raise ListenSocketError(f"Failed to create socket: {exc}") from exc

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        except OSError as exc:
            logger.warning("Failed to set SO_REUSEADDR: %s", exc)
        if self.recv_buffer_bytes:
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, self.recv_buffer_bytes)
            except OSError as exc:
                logger.warning("Failed to set receive buffer size: %s", exc)

        try:
            sock.bind((self.host, self.port))
        except OSError as exc:
            sock.close()
            raise ListenSocketError(
                f"Failed to bind socket to {self.host}:{self.port}: {exc}"
            ) from exc
        sock.settimeout(self.poll_interval)
        self._sock = sock
        logger.debug("Listen socket bound on %s:%s", self.host, self.bound_port)

    def close(self) -> None:
        if self._sock:
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None

    def receive(self) -> tuple[bytes, tuple[str, int]]:
        """Receive one datagram.

        Raises :class:`socket.timeout` when ``poll_interval`` elapses without
        traffic. Any other ``OSError`` is passed through.
        """

        if not self._sock:
            raise OSError("listen socket is not open")
        return self._sock.recvfrom(MAX_UDP_PAYLOAD)

    def send_to(self, payload: bytes, destination: Endpoint) -> int:
        if not self._sock:
            raise OSError("listen socket is not open")
        return self._sock.sendto(payload, destination.sockaddr)

    def __enter__(self) -> "ListenSocket":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
