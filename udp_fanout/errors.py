"""Exception hierarchy for the forwarder."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .transport.endpoint import Endpoint


class ForwarderError(Exception):
    """Base class for every error raised by :mod:`udp_fanout`."""


class ConfigurationError(ForwarderError, ValueError):
    """Invalid command line or configuration value."""


class EndpointFormatError(ConfigurationError):
    """A destination string is not of the form ``host:port``."""


class ResolutionError(ForwarderError):
    """A destination hostname could not be resolved to an IPv4 address."""


class ListenSocketError(ForwarderError):
    """The listen socket could not be created or bound."""


class FatalReceiveError(ForwarderError):
    """Receiving from the listen socket failed for a reason other than a timeout."""


class TransientSendError(ForwarderError):
    """A single destination failed during fan-out.

    These are collected and logged by the engine rather than raised, so the
    remaining destinations and the receive loop are unaffected.
    """

    def __init__(
        self,
        destination: "Endpoint",
        *,
        sent: int | None = None,
        expected: int,
        cause: BaseException | None = None,
    ):
        self.destination = destination
        self.sent = sent
        self.expected = expected
        self.cause = cause
        if cause is not None:
            detail = f"sendto failed: {cause}"
        else:
            detail = f"partial send ({sent}/{expected} bytes)"
        super().__init__(f"{destination}: {detail}")

    @property
    def partial(self) -> bool:
        return self.cause is None
