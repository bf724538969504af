"""
Cadence - Entry Point

Run with: python -m cadence
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from cadence import __version__
from cadence.config import ConfigError, ServerConfig, load_config
from cadence.server import CadenceServer


def setup_logging(verbose: bool = False, level: str = "INFO") -> None:
    """Configure logging for the application."""
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="cadence",
        description="Cadence - Remote control daemon for a media playback engine",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="TOML configuration file (default: built-in defaults)",
    )

    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=None,
        help="Control port (default: 30001)",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host address to bind to (default: 127.0.0.1)",
    )

    parser.add_argument(
        "--web-port",
        type=int,
        default=None,
        help="Enable the HTTP/JSON-RPC API on this port (default: disabled)",
    )

    parser.add_argument(
        "--read-timeout",
        type=float,
        default=None,
        help="Seconds to wait for a complete request (default: no limit)",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Load the config file (if any) and apply command line overrides."""
    config = load_config(args.config)
    return config.with_overrides(
        host=args.host,
        port=args.port,
        web_port=args.web_port,
        read_timeout=args.read_timeout,
    )


async def run_server(config: ServerConfig) -> None:
    """Start and run the Cadence server."""
    server = CadenceServer(config)
    await server.run()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the application."""
    args = parse_args(argv)

    try:
        config = build_config(args)
    except ConfigError as e:
        setup_logging(verbose=args.verbose)
        logging.getLogger(__name__).error("Configuration error: %s", e)
        return 1

    setup_logging(verbose=args.verbose, level=config.log_level)

    logger = logging.getLogger(__name__)
    logger.info("Starting Cadence %s...", __version__)

    try:
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    logger.info("Server stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
