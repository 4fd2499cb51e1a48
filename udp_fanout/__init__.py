"""Public package surface for the UDP fan-out forwarder."""

__version__ = "2.0.0"

from .configs import ForwarderConfig  # noqa: E402
from .forwarder import EngineState, ForwarderStats, ForwardingEngine, ForwardResult  # noqa: E402
from .shutdown import ShutdownController  # noqa: E402
from .transport import Endpoint, RateLimiter, resolve_endpoint  # noqa: E402

__all__ = [
    "Endpoint",
    "EngineState",
    "ForwardResult",
    "ForwarderConfig",
    "ForwarderStats",
    "ForwardingEngine",
    "RateLimiter",
    "ShutdownController",
    "resolve_endpoint",
]
