"""Monotonic seconds clock; callers take it as an injectable default."""

from __future__ import annotations

import time


def monotonic_s() -> float:
    """Return the monotonic clock in seconds."""

    return time.monotonic()
