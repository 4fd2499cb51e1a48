"""Command line front end: ``udp-fanout [options] <listen_port> <dest> [dest ...]``."""

from __future__ import annotations

import argparse
import logging
from logging import Formatter, BASIC_FORMAT
import sys
from typing import Callable, Sequence

from . import __version__
from .configs import ForwarderConfig
from .errors import ConfigurationError, FatalReceiveError, ListenSocketError, ResolutionError
from .forwarder import ForwardingEngine
from .shutdown import ShutdownController
from .transport.endpoint import HostLookup, default_lookup
from .transport.rate_limiter import DEFAULT_RATE_LIMIT

logger = logging.getLogger(__name__)
handler = logging.StreamHandler()
handler.setLevel(logging.INFO)
handler.setFormatter(Formatter(BASIC_FORMAT))
logger.addHandler(handler)

EPILOG = """
Examples:
  udp-fanout 9999 192.168.1.100:8888 192.168.1.101:8888
  udp-fanout -v -r 500 9999 10.0.0.1:7777 10.0.0.2:7777 10.0.0.3:7777
  udp-fanout --help
"""


class _ArgumentParser(argparse.ArgumentParser):
    """Report syntax errors as :class:`ConfigurationError` so they exit with 1."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        raise ConfigurationError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="udp-fanout",
        description=f"UDP Forwarder v{__version__} - duplicate UDP traffic to multiple destinations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (show forwarded and rate limited packets)",
    )
    parser.add_argument(
        "-r",
        "--rate",
        metavar="LIMIT",
        default=str(DEFAULT_RATE_LIMIT),
        help=f"Rate limit in packets/sec per source IP, 0 to disable (default {DEFAULT_RATE_LIMIT})",
    )
    parser.add_argument("listen_port", help="UDP port to listen on (0-65535)")
    parser.add_argument(
        "destinations",
        nargs="+",
        metavar="dest",
        help="Destination address in format IP:PORT or hostname:PORT",
    )
    return parser


def parse_config(
    argv: Sequence[str] | None = None, *, lookup: HostLookup = default_lookup
) -> ForwarderConfig:
    """Parse ``argv`` into a resolved, validated :class:`ForwarderConfig`.

    ``--help`` exits the interpreter with status 0 before anything else runs.
    """

    args = build_parser().parse_args(argv)
    return ForwarderConfig.from_strings(
        args.listen_port,
        args.destinations,
        rate_limit=args.rate,
        verbose=args.verbose,
        lookup=lookup,
    )


def main(
    argv: Sequence[str] | None = None,
    *,
    lookup: HostLookup = default_lookup,
    engine_factory: Callable[[ForwarderConfig, ShutdownController], ForwardingEngine] | None = None,
) -> int:
    """Run the forwarder; return the process exit code.

    Signal handlers are installed before argument parsing and restored on
    return.
    """

    logging.getLogger("udp_fanout").setLevel(logging.INFO)
    shutdown = ShutdownController()
    shutdown.install()
    try:
        return _run(argv, shutdown, lookup=lookup, engine_factory=engine_factory)
    finally:
        shutdown.uninstall()


def _run(
    argv: Sequence[str] | None,
    shutdown: ShutdownController,
    *,
    lookup: HostLookup,
    engine_factory: Callable[[ForwarderConfig, ShutdownController], ForwardingEngine] | None,
) -> int:
    try:
        config = parse_config(argv, lookup=lookup)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 1
    except ResolutionError as exc:
        logger.error("Resolution error: %s", exc)
        return 1

    if shutdown.requested:
        logger.warning("Shutdown requested during startup; not starting forwarder")
        return 0

    if engine_factory:
        engine = engine_factory(config, shutdown)
    else:
        engine = ForwardingEngine(config, shutdown=shutdown)

    try:
        engine.start()
    except ListenSocketError as exc:
        logger.error("Socket error: %s", exc)
        return 1

    try:
        engine.run()
    except FatalReceiveError as exc:
        logger.error("Forwarder failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
