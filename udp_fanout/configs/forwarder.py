"""Pydantic configuration object describing one forwarder instance."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..errors import ConfigurationError
from ..transport.endpoint import (
    MAX_PORT,
    Endpoint,
    HostLookup,
    default_lookup,
    parse_port,
    resolve_endpoints,
)
from ..transport.listen_socket import DEFAULT_RECV_BUFFER_BYTES
from ..transport.rate_limiter import DEFAULT_MAX_SOURCES, DEFAULT_RATE_LIMIT


class ForwarderConfig(BaseModel):
    """Immutable runtime configuration for :class:`~udp_fanout.ForwardingEngine`."""

    model_config = ConfigDict(frozen=True)

    listen_port: int
    destinations: Tuple[Endpoint, ...]
    rate_limit: int = DEFAULT_RATE_LIMIT
    verbose: bool = False
    # Reserved for an external loader; the forwarder never reads it.
    config_file: Optional[Path] = None
    max_tracked_sources: int = DEFAULT_MAX_SOURCES
    poll_interval: float = 0.25
    recv_buffer_bytes: int = DEFAULT_RECV_BUFFER_BYTES

    @field_validator("listen_port")
    @classmethod
    def _ensure_port(cls, value: int) -> int:
        if not (0 <= value <= MAX_PORT):
            raise ValueError(f"listen_port must be within 0-{MAX_PORT}")
        return value

    @field_validator("destinations")
    @classmethod
    def _ensure_destinations(cls, value: Tuple[Endpoint, ...]) -> Tuple[Endpoint, ...]:
        if not value:
            raise ValueError("at least one destination is required")
        return value

    @field_validator("rate_limit")
    @classmethod
    def _ensure_rate_limit(cls, value: int) -> int:
        if value < 0:
            raise ValueError("rate_limit cannot be negative")
        return value

    @field_validator("max_tracked_sources")
    @classmethod
    def _ensure_capacity(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_tracked_sources must be at least 1")
        return value

    @field_validator("poll_interval")
    @classmethod
    def _ensure_poll_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("poll_interval must be greater than zero")
        return value

    @field_validator("recv_buffer_bytes")
    @classmethod
    def _ensure_recv_buffer(cls, value: int) -> int:
        if value < 0:
            raise ValueError("recv_buffer_bytes cannot be negative")
        return value

    @property
    def rate_limiting_enabled(self) -> bool:
        return self.rate_limit > 0

    @classmethod
    def from_strings(
        cls,
        listen_port: str,
        destinations: Sequence[str],
        *,
        rate_limit: str | int = DEFAULT_RATE_LIMIT,
        verbose: bool = False,
        lookup: HostLookup = default_lookup,
        **overrides,
    ) -> "ForwarderConfig":
        """Build a config from raw command line strings.

        Destinations are resolved here, once. Resolution failures propagate as
        :class:`~udp_fanout.errors.ResolutionError`; everything else that is
        wrong surfaces as :class:`~udp_fanout.errors.ConfigurationError`.
        """

        port = parse_port(str(listen_port), what="listen port")
        limit = _parse_rate_limit(rate_limit)
        if not destinations:
            raise ConfigurationError("at least one destination is required")
        endpoints = resolve_endpoints(destinations, lookup=lookup)
        try:
            return cls(
                listen_port=port,
                destinations=endpoints,
                rate_limit=limit,
                verbose=verbose,
                **overrides,
            )
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc


def _parse_rate_limit(value: str | int) -> int:
    try:
        limit = int(str(value).strip())
    except ValueError as exc:
        raise ConfigurationError(f"Invalid rate limit value: {value!r}") from exc
    if limit < 0:
        raise ConfigurationError(f"Rate limit cannot be negative, got {limit}")
    return limit
