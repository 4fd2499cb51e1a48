"""UDP fan-out forwarding engine."""

from __future__ import annotations

import enum
import logging
from logging import Formatter, BASIC_FORMAT
import socket
from dataclasses import dataclass, field
from typing import Callable

from .configs import ForwarderConfig
from .errors import FatalReceiveError, TransientSendError
from .shutdown import ShutdownController
from .transport import Endpoint, ListenSocket, RateLimiter
from .utils import monotonic_s

logger = logging.getLogger(__name__)
handler = logging.StreamHandler()
handler.setLevel(logging.INFO)
handler.setFormatter(Formatter(BASIC_FORMAT))
logger.addHandler(handler)

Source = tuple[str, int]


class EngineState(enum.Enum):
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


@dataclass(slots=True)
class ForwardResult:
    """Outcome of handing one datagram to :meth:`ForwardingEngine.process`."""

    source: Source
    size: int
    admitted: bool
    attempted: tuple[Endpoint, ...] = ()
    failures: tuple[TransientSendError, ...] = ()

    @property
    def delivered_all(self) -> bool:
        return self.admitted and not self.failures


@dataclass(slots=True)
class ForwarderStats:
    """Running totals, logged when the engine stops."""

    received: int = 0
    forwarded: int = 0
    rate_limited: int = 0
    send_failures: int = 0
    discarded_on_shutdown: int = 0
    started: float = field(default_factory=monotonic_s)

    @property
    def uptime_sec(self) -> float:
        return max(0.0, monotonic_s() - self.started)


class ForwardingEngine:
    """Receive on one port and replicate every admitted datagram to all destinations.

    The engine is single threaded. The only state shared with the outside is
    the :class:`ShutdownController` flag, which is checked once after every
    receive.
    """

    def __init__(
        self,
        config: ForwarderConfig,
        *,
        shutdown: ShutdownController | None = None,
        rate_limiter: RateLimiter | None = None,
        socket_factory: Callable[[], ListenSocket] | None = None,
        clock: Callable[[], float] = monotonic_s,
    ):
        self.config = config
        self.shutdown = shutdown or ShutdownController()
        self.rate_limiter = rate_limiter or RateLimiter(
            config.rate_limit, max_sources=config.max_tracked_sources
        )
        self._socket_factory = socket_factory
        self._clock = clock
        self._socket: ListenSocket | None = None
        self._state = EngineState.STOPPED
        self.stats = ForwarderStats()

    # ------------------------------------------------------------------ #
    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def listen_socket(self) -> ListenSocket | None:
        return self._socket

    def start(self) -> None:
        """Open the listen socket and enter ``RUNNING``.

        Raises :class:`~udp_fanout.errors.ListenSocketError` if binding fails.
        """

        if self._state is not EngineState.STOPPED:
            return
        sock = self._build_socket()
        sock.open()
        self._socket = sock
        self.stats = ForwarderStats()
        self._state = EngineState.RUNNING
        self._log_banner()

    def run(self) -> ForwarderStats:
        """Forward until shutdown is requested, then close and return totals.

        The socket is closed and the engine left ``STOPPED`` however the loop
        exits, so a later :meth:`start` can bind again.
        """

        self.start()
        assert self._socket is not None
        try:
            while self._state is EngineState.RUNNING:
                try:
                    payload, source = self._socket.receive()
                except (socket.timeout, InterruptedError):
                    payload, source = None, None
                except OSError as exc:
                    logger.error("Failed to receive packet: %s", exc)
                    raise FatalReceiveError(f"recvfrom failed: {exc}") from exc

                if self.shutdown.requested:
                    self._state = EngineState.DRAINING
                    logger.warning(
                        "Shutdown requested (signal count %d). Shutting down gracefully...",
                        self.shutdown.signal_count,
                    )
                    if payload is not None:
                        self.stats.discarded_on_shutdown += 1
                        logger.debug(
                            "Shutdown requested; dropping %d bytes from %s:%s",
                            len(payload),
                            *source,
                        )
                    break

                if payload is None:
                    self.rate_limiter.evict_stale(self._clock())
                    continue
                self.process(payload, source)
        finally:
            if self._state is not EngineState.STOPPED:
                self._stop()
        return self.stats

    def process(self, payload: bytes, source: Source) -> ForwardResult:
        """Rate-check one datagram and fan it out to every destination in order."""

        self.stats.received += 1
        size = len(payload)
        if not self.rate_limiter.admit(source[0], self._clock()):
            self.stats.rate_limited += 1
            if self.config.verbose:
                logger.info("[RATE LIMITED] From %s:%s (%d bytes)", source[0], source[1], size)
            return ForwardResult(source=source, size=size, admitted=False)

        failures: list[TransientSendError] = []
        for destination in self.config.destinations:
            failure = self._send_one(payload, destination)
            if failure is not None:
                failures.append(failure)
                logger.warning("Failed to forward packet from %s:%s to %s", source[0], source[1], failure)

        self.stats.send_failures += len(failures)
        if not failures:
            self.stats.forwarded += 1
            if self.config.verbose:
                logger.info(
                    "Forwarded %d bytes from %s:%s to %d destinations",
                    size,
                    source[0],
                    source[1],
                    len(self.config.destinations),
                )
        return ForwardResult(
            source=source,
            size=size,
            admitted=True,
            attempted=self.config.destinations,
            failures=tuple(failures),
        )

    # ------------------------------------------------------------------ #
    def _send_one(self, payload: bytes, destination: Endpoint) -> TransientSendError | None:
        assert self._socket is not None
        try:
            sent = self._socket.send_to(payload, destination)
        except OSError as exc:
            return TransientSendError(destination, expected=len(payload), cause=exc)
        if sent != len(payload):
            return TransientSendError(destination, sent=sent, expected=len(payload))
        return None

    def _stop(self) -> None:
        if self._socket:
            self._socket.close()
        self._state = EngineState.STOPPED
        self.rate_limiter.clear()
        logger.info(
            "Forwarder stopped after %.1fs: received=%d forwarded=%d rate_limited=%d send_failures=%d",
            self.stats.uptime_sec,
            self.stats.received,
            self.stats.forwarded,
            self.stats.rate_limited,
            self.stats.send_failures,
        )

    def _log_banner(self) -> None:
        assert self._socket is not None
        logger.info("UDP forwarder listening on port %s", self._socket.bound_port)
        logger.info("Destinations (%d):", len(self.config.destinations))
        for destination in self.config.destinations:
            logger.info("  - %s", destination)
        if self.rate_limiter.enabled:
            logger.info("Rate limit: %d packets/sec per source", self.rate_limiter.limit)
        else:
            logger.info("Rate limit: disabled")
        logger.info("Verbose mode: %s", "enabled" if self.config.verbose else "disabled")

    def _build_socket(self) -> ListenSocket:
        if self._socket_factory:
            return self._socket_factory()
        return ListenSocket(
            port=self.config.listen_port,
            poll_interval=self.config.poll_interval,
            recv_buffer_bytes=self.config.recv_buffer_bytes,
        )
