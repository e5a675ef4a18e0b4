"""mDNS-SD browser entry point.

Usage:
    python -m mdns_browser [--query TYPE] [--interface IFACE] [--log-to PATH]
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys

from . import APP_DESCRIPTION, __version__
from .app import run
from .config import BrowserConfig, default_config_path
from .controller import ExitReason


def _setup_logging(config: BrowserConfig) -> None:
    # The terminal belongs to the UI: log to a file or nowhere.
    if config.log_to:
        level = logging.DEBUG if config.debug else logging.INFO
        logging.basicConfig(
            filename=config.log_to,
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    else:
        logging.getLogger().addHandler(logging.NullHandler())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mdns-browser", description=APP_DESCRIPTION)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to config.json (default: $MDNS_BROWSER_CONFIG or ~/.config/mdns-browser/config.json)",
    )
    parser.add_argument(
        "--query",
        default=None,
        help="mDNS service query (default: _services._dns-sd._udp.local.)",
    )
    parser.add_argument(
        "--interface",
        default=None,
        help="Interfaces to browse on: all, default, ipv4, ipv6 or comma-separated addresses",
    )
    parser.add_argument(
        "--log-to",
        metavar="PATH",
        default=None,
        help="Write logs to this file",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--ignore-case",
        action="store_true",
        help="Match filter patterns case-insensitively",
    )
    parser.add_argument(
        "--no-wrap",
        action="store_true",
        help="Stop at the ends of the list instead of wrapping around",
    )
    return parser


def load_config(args: argparse.Namespace) -> BrowserConfig:
    config_path = args.config or default_config_path()
    config = BrowserConfig.load(config_path) if config_path else BrowserConfig()

    # CLI overrides
    if args.query:
        config.query = args.query
    if args.interface:
        config.interface = args.interface
    if args.log_to:
        config.log_to = args.log_to
    if args.debug:
        config.debug = True
    if args.ignore_case:
        config.ignore_case = True
    if args.no_wrap:
        config.wrap_selection = False
    return config


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args)
    _setup_logging(config)
    logger = logging.getLogger(__name__)

    try:
        config.validate()
    except ValueError as exc:
        print(f"mdns-browser: {exc}", file=sys.stderr)
        return 2

    # SIGTERM takes the same path as Ctrl-C so the terminal is restored.
    signal.signal(signal.SIGTERM, signal.default_int_handler)

    try:
        reason = run(config)
    except KeyboardInterrupt:
        logger.info("Interrupted — shutting down")
        return 0

    if reason is ExitReason.CHANNEL_CLOSED:
        print("mdns-browser: event source closed unexpectedly", file=sys.stderr)
        if config.log_to:
            print(f"see {config.log_to} for details", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
