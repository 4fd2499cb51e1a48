"""UDP transport primitives used by the forwarding engine."""

from .endpoint import Endpoint, resolve_endpoint, resolve_endpoints
from .listen_socket import MAX_UDP_PAYLOAD, ListenSocket
from .rate_limiter import RateLimiter, RateWindow

__all__ = [
    "Endpoint",
    "ListenSocket",
    "MAX_UDP_PAYLOAD",
    "RateLimiter",
    "RateWindow",
    "resolve_endpoint",
    "resolve_endpoints",
]
