"""Small utilities shared across modules."""

from .time import monotonic_s

__all__ = ["monotonic_s"]
