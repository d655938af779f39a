"""Argument parsing, configuration loading, and daemon bootstrap."""

from __future__ import annotations

import argparse
import logging
import sys

from .config import DEFAULT_CONFIG_PATH, load_config
from .daemon import Daemon
from .exceptions import ConfigError, GKEDiscoveryError
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gke-prometheus-discovery",
        description="Keeps Prometheus kubernetes_sd scrape configs in sync with GKE clusters",
    )
    parser.add_argument(
        "-c", "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the YAML configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single reconciliation cycle and exit",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate the configuration file and exit",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load config (minimal logging until config is loaded)
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    configure_logging(config.logging)

    if args.validate:
        logger.info("Configuration is valid")
        return 0

    try:
        daemon = Daemon(config)
        if args.once:
            logger.info("Running single reconciliation cycle (--once)")
            result = daemon.run_once()
            logger.info(
                "Cycle finished: %s", result.state.value,
                extra={
                    "added": sorted(result.added),
                    "removed": sorted(result.removed),
                    "skipped": sorted(result.skipped),
                },
            )
        else:
            daemon.run()
    except GKEDiscoveryError as exc:
        logger.error("Fatal error: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0

    return 0
