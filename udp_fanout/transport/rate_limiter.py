"""Per-source fixed-window rate limiting."""

from __future__ import annotations

import logging
from logging import Formatter, BASIC_FORMAT
from collections import OrderedDict
from dataclasses import dataclass

logger = logging.getLogger(__name__)
handler = logging.StreamHandler()
handler.setLevel(logging.INFO)
handler.setFormatter(Formatter(BASIC_FORMAT))
logger.addHandler(handler)

DEFAULT_RATE_LIMIT = 1000
DEFAULT_MAX_SOURCES = 65536


@dataclass(slots=True)
class RateWindow:
    """Packet count for one source inside the current window."""

    window_start: float
    count: int = 0


class RateLimiter:
    """Fixed-window packet limiter keyed by source IP.

    At most ``max_sources`` windows are tracked. The table is kept in
    least-recently-used order and a new source arriving at a full table evicts
    the oldest one, which then starts a fresh window if it returns. Not
    thread-safe; the forwarding loop is the only caller.
    """

    def __init__(
        self,
        limit: int = DEFAULT_RATE_LIMIT,
        *,
        window_sec: float = 1.0,
        max_sources: int = DEFAULT_MAX_SOURCES,
    ):
        if limit < 0:
            raise ValueError("limit cannot be negative")
        if window_sec <= 0:
            raise ValueError("window_sec must be greater than zero")
        if max_sources < 1:
            raise ValueError("max_sources must be at least 1")
        self._limit = limit
        self._window_sec = window_sec
        self._max_sources = max_sources
        self._windows: OrderedDict[str, RateWindow] = OrderedDict()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def enabled(self) -> bool:
        return self._limit > 0

    @property
    def tracked_sources(self) -> int:
        return len(self._windows)

    def admit(self, source_ip: str, now: float) -> bool:
        """Return ``True`` if a packet from ``source_ip`` at ``now`` may pass."""

        if not self.enabled:
            return True

        window = self._windows.get(source_ip)
        if window is None:
            window = self._insert(source_ip, now)
        else:
            self._windows.move_to_end(source_ip)

        if now - window.window_start >= self._window_sec:
            window.count = 0
            window.window_start = now

        if window.count >= self._limit:
            return False
        window.count += 1
        return True

    def evict_stale(self, now: float) -> int:
        """Drop windows that would be reset on their next packet anyway."""

        stale = [
            source_ip
            for source_ip, window in self._windows.items()
            if now - window.window_start >= self._window_sec
        ]
        for source_ip in stale:
            del self._windows[source_ip]
        if stale:
            logger.debug("Swept %d stale rate windows", len(stale))
        return len(stale)

    def clear(self) -> None:
        self._windows.clear()

    def _insert(self, source_ip: str, now: float) -> RateWindow:
        if len(self._windows) >= self._max_sources:
            evicted, _ = self._windows.popitem(last=False)
            logger.debug("Rate table full (%d sources); evicted %s", self._max_sources, evicted)
        window = RateWindow(window_start=now)
        self._windows[source_ip] = window
        return window
