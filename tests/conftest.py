from __future__ import annotations

import ipaddress

import pytest

from udp_fanout.configs import ForwarderConfig
from udp_fanout.transport import Endpoint


def make_endpoint(text: str) -> Endpoint:
    host, _, port = text.rpartition(":")
    return Endpoint(ipaddress.IPv4Address(host), int(port))


@pytest.fixture()
def destinations() -> tuple[Endpoint, ...]:
    return (
        make_endpoint("127.0.0.1:9001"),
        make_endpoint("127.0.0.1:9002"),
        make_endpoint("127.0.0.1:9003"),
    )


@pytest.fixture()
def forwarder_config(destinations: tuple[Endpoint, ...]) -> ForwarderConfig:
    return ForwarderConfig(listen_port=9999, destinations=destinations, rate_limit=0)
