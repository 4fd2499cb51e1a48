"""Signal-driven cooperative shutdown."""

from __future__ import annotations

import logging
from logging import Formatter, BASIC_FORMAT
import os
import signal
import threading
from types import FrameType
from typing import Callable, Iterable

logger = logging.getLogger(__name__)
handler = logging.StreamHandler()
handler.setLevel(logging.INFO)
handler.setFormatter(Formatter(BASIC_FORMAT))
logger.addHandler(handler)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)
FORCE_EXIT_CODE = 1


class ShutdownController:
    """Turns SIGINT/SIGTERM into a flag the forwarding loop polls.

    The first and second signal only set the flag. The third terminates the
    process immediately through ``exit_func`` without draining.
    """

    def __init__(
        self,
        *,
        exit_func: Callable[[int], object] = os._exit,
        force_after: int = 3,
    ):
        if force_after < 1:
            raise ValueError("force_after must be at least 1")
        self._exit_func = exit_func
        self._force_after = force_after
        self._count = 0
        self._requested = threading.Event()
        self._previous: dict[int, object] = {}

    @property
    def requested(self) -> bool:
        return self._requested.is_set()

    @property
    def signal_count(self) -> int:
        return self._count

    def request(self) -> None:
        """Ask the engine to drain without going through a signal."""

        self._requested.set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._requested.wait(timeout)

    def handle(self, signum: int, frame: FrameType | None = None) -> None:
        """Signal handler. Only counts, sets the flag or forces the exit.

        Logging the drain is left to the forwarding loop, which sees the flag
        after its current receive returns.
        """

        self._count += 1
        if self._count >= self._force_after:
            self._exit_func(FORCE_EXIT_CODE)
            return
        self._requested.set()

    # ------------------------------------------------------------------ #
    def install(self, signals: Iterable[int] = DEFAULT_SIGNALS) -> None:
        """Register :meth:`handle` for ``signals``; main thread only."""

        for signum in signals:
            self._previous[signum] = signal.signal(signum, self.handle)
        logger.debug("Shutdown handler installed for %s", sorted(self._previous))

    def uninstall(self) -> None:
        for signum, previous in self._previous.items():
            # None means the previous handler was not installed from Python.
            signal.signal(signum, previous if previous is not None else signal.SIG_DFL)  # type: ignore[arg-type]
        self._previous.clear()

    def __enter__(self) -> "ShutdownController":
        self.install()
        return self

    def __exit__(self, *exc_info) -> None:
        self.uninstall()
