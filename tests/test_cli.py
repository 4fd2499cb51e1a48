from __future__ import annotations

import signal
import socket

import pytest

from udp_fanout import ForwarderConfig, ShutdownController
from udp_fanout.cli import main, parse_config
from udp_fanout.errors import FatalReceiveError, ListenSocketError


def _no_lookup(host: str):
    raise AssertionError(f"unexpected DNS lookup for {host}")


def _failing_lookup(host: str):
    raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")


class DummyEngine:
    def __init__(self, config: ForwarderConfig, shutdown: ShutdownController, *, fail_on: str | None = None):
        self.config = config
        self.shutdown = shutdown
        self.fail_on = fail_on
        self.handler_during_run = None
        self.ran = False

    def start(self) -> None:
        if self.fail_on == "start":
            raise ListenSocketError("Failed to bind socket to 0.0.0.0:9999: Address already in use")

    def run(self) -> None:
        self.ran = True
        self.handler_during_run = signal.getsignal(signal.SIGINT)
        if self.fail_on == "run":
            raise FatalReceiveError("recvfrom failed: Bad file descriptor")


def test_help_exits_zero(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["--help"], lookup=_no_lookup)
    assert exc_info.value.code == 0
    out = capsys.readouterr().out
    assert "usage: udp-fanout" in out
    assert "--rate LIMIT" in out


def test_parse_config_reads_options() -> None:
    config = parse_config(["-v", "-r", "500", "9999", "10.0.0.1:7777", "10.0.0.2:7777"], lookup=_no_lookup)
    assert config.verbose is True
    assert config.rate_limit == 500
    assert config.listen_port == 9999
    assert [str(endpoint) for endpoint in config.destinations] == ["10.0.0.1:7777", "10.0.0.2:7777"]


def test_parse_config_defaults() -> None:
    config = parse_config(["9999", "10.0.0.1:7777"], lookup=_no_lookup)
    assert config.verbose is False
    assert config.rate_limit == 1000


@pytest.mark.parametrize(
    "argv",
    [
        ["70000", "127.0.0.1:9001"],
        ["-r", "-5", "9999", "127.0.0.1:9001"],
        ["--rate", "many", "9999", "127.0.0.1:9001"],
        ["9999"],
        ["9999", "127.0.0.1"],
        ["--bogus", "9999", "127.0.0.1:9001"],
    ],
)
def test_configuration_errors_exit_one(argv: list[str]) -> None:
    assert main(argv, lookup=_no_lookup) == 1


def test_unresolvable_destination_exits_one() -> None:
    assert main(["9999", "256.0.0.1:80"], lookup=_failing_lookup) == 1


def test_clean_run_exits_zero_and_restores_signal_handlers() -> None:
    engines: list[DummyEngine] = []

    def factory(config: ForwarderConfig, shutdown: ShutdownController) -> DummyEngine:
        engine = DummyEngine(config, shutdown)
        engines.append(engine)
        return engine

    previous = signal.getsignal(signal.SIGINT)
    assert main(["9999", "127.0.0.1:9001"], lookup=_no_lookup, engine_factory=factory) == 0  # type: ignore[arg-type]
    (engine,) = engines
    assert engine.ran
    assert engine.handler_during_run == engine.shutdown.handle
    assert signal.getsignal(signal.SIGINT) == previous


@pytest.mark.parametrize("fail_on", ["start", "run"])
def test_socket_and_receive_failures_exit_one(fail_on: str) -> None:
    def factory(config: ForwarderConfig, shutdown: ShutdownController) -> DummyEngine:
        return DummyEngine(config, shutdown, fail_on=fail_on)

    assert main(["9999", "127.0.0.1:9001"], lookup=_no_lookup, engine_factory=factory) == 1  # type: ignore[arg-type]


def test_signal_during_resolution_is_handled_and_skips_startup() -> None:
    built: list[DummyEngine] = []

    def interrupting_lookup(host: str):
        handler = signal.getsignal(signal.SIGINT)
        assert isinstance(getattr(handler, "__self__", None), ShutdownController)
        handler(signal.SIGINT, None)
        return [(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP, "", ("10.0.0.5", 0))]

    def factory(config: ForwarderConfig, shutdown: ShutdownController) -> DummyEngine:
        engine = DummyEngine(config, shutdown)
        built.append(engine)
        return engine

    previous = signal.getsignal(signal.SIGINT)
    assert main(["9999", "relay.example:7777"], lookup=interrupting_lookup, engine_factory=factory) == 0  # type: ignore[arg-type]
    assert built == []
    assert signal.getsignal(signal.SIGINT) == previous


def test_signal_handlers_are_restored_after_configuration_error() -> None:
    previous = signal.getsignal(signal.SIGTERM)
    assert main(["70000", "127.0.0.1:9001"], lookup=_no_lookup) == 1
    assert signal.getsignal(signal.SIGTERM) == previous
