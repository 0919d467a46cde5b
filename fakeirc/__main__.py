#!/usr/bin/env python3
"""
Fake IRC server entry point.

Usage: python -m fakeirc [PORT]

Every line typed on standard input is sent to all connected clients.
"""

import argparse
import logging
import os
import sys

from fakeirc.config import load_config
from fakeirc.server.acceptor import ServerBindError
from fakeirc.service import FakeIrcService


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"PORT argument is not a number: {value}")
    if port < 0 or port > 65535:
        raise argparse.ArgumentTypeError(f"PORT out of range: {port}")
    return port


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="fake-irc-server",
        description="Fake IRC server: broadcasts every stdin line to all connected clients",
    )
    parser.add_argument("port", nargs="?", type=_port, default=None,
                        help="TCP port to listen on (default: 1234)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    # Set default log level from environment, or INFO if not set
    log_level = os.getenv("FAKEIRC_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = load_config()
    except ValueError:
        return 1
    logging.getLogger().setLevel(config.log_level.upper())
    if args.port is not None:
        config.port = args.port

    service = FakeIrcService(config, operator_input=sys.stdin)
    try:
        service.run()
    except ServerBindError as e:
        logging.error(f"Can't create listener: {e}")
        return 1
    except KeyboardInterrupt:
        logging.info("Shutdown requested")
        service.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
