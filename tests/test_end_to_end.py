from __future__ import annotations

import ipaddress
import logging
import socket
import threading

import pytest

from udp_fanout import EngineState, ForwarderConfig, ForwardingEngine, ShutdownController
from udp_fanout.transport import Endpoint

LOOPBACK = "127.0.0.1"


def _receiver() -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind((LOOPBACK, 0))
    sock.settimeout(2.0)
    return sock


def test_loopback_fan_out_with_rate_limit(caplog: pytest.LogCaptureFixture) -> None:
    receivers = [_receiver(), _receiver()]
    sender = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    destinations = tuple(
        Endpoint(ipaddress.IPv4Address(LOOPBACK), rx.getsockname()[1]) for rx in receivers
    )
    config = ForwarderConfig(
        listen_port=0,
        destinations=destinations,
        rate_limit=2,
        verbose=True,
        poll_interval=0.05,
    )
    shutdown = ShutdownController()
    engine = ForwardingEngine(config, shutdown=shutdown)
    caplog.set_level(logging.INFO, logger="udp_fanout")

    engine.start()
    assert engine.listen_socket is not None
    listen_port = engine.listen_socket.bound_port
    thread = threading.Thread(target=engine.run, daemon=True)
    thread.start()
    try:
        for payload in (b"one", b"two", b"three"):
            sender.sendto(payload, (LOOPBACK, listen_port))

        for rx in receivers:
            assert [rx.recvfrom(65535)[0] for _ in range(2)] == [b"one", b"two"]
        for rx in receivers:
            rx.settimeout(0.3)
            with pytest.raises(socket.timeout):
                rx.recvfrom(65535)
    finally:
        shutdown.request()
        thread.join(timeout=2.0)
        sender.close()
        for rx in receivers:
            rx.close()

    assert not thread.is_alive()
    assert engine.state is EngineState.STOPPED
    assert engine.stats.forwarded == 2
    assert engine.stats.rate_limited == 1
    assert any("RATE LIMITED" in record.getMessage() for record in caplog.records)
