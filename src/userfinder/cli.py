"""Command-line interface for the userfinder service.

Runs the HTTP listener until SIGINT/SIGTERM. No arguments are required;
``--config`` and ``--verbose`` only adjust settings and log level.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="userfinder",
        description="HTTP service for finding users by display name",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/userfinder.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the userfinder CLI."""
    args = parse_args(argv)

    from userfinder.config.settings import load_settings
    from userfinder.endpoint.lifecycle import ListenerLifecycle
    from userfinder.endpoint.server import create_app
    from userfinder.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    server = settings.server
    logger.info("Starting userfinder on port %d", server.port)
    lifecycle = ListenerLifecycle(
        create_app(server),
        host=server.host,
        port=server.port,
        grace_period=server.grace_period,
    )
    lifecycle.run()


if __name__ == "__main__":
    main()
