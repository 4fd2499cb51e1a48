"""Configuration models for the forwarder."""

from .forwarder import ForwarderConfig

__all__ = ["ForwarderConfig"]
