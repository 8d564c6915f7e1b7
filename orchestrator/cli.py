"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the relay.

- Provides argparse-based CLI
- Loads configuration from file, environment and .env
- Serves the HTTP surface with uvicorn

============================================================
USAGE
============================================================
python -m orchestrator.cli config.json
python -m orchestrator.cli --log-level DEBUG
RELAY_CONFIG=/etc/relay.json python -m orchestrator.cli

============================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from core.exceptions import ConfigurationError, SnapshotLoadError
from dashboard.api import create_app

from .config import RelayConfig, load_config
from .core import create_runtime


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="grafana-prowl-relay",
        description="Relay Grafana alert webhooks to Prowl push notifications",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration path resolution:
  1. positional CONFIG argument
  2. $RELAY_CONFIG
  3. ./config.json

Examples:
  %(prog)s config.json
  %(prog)s --test-mode --log-level DEBUG
        """
    )

    parser.add_argument(
        "config",
        nargs="?",
        metavar="CONFIG",
        help="Path to the JSON configuration file",
    )

    # --------------------------------------------------------
    # Runtime Options
    # --------------------------------------------------------
    runtime_group = parser.add_argument_group("Runtime Options")

    runtime_group.add_argument(
        "--test-mode",
        action="store_true",
        help="Log notifications instead of sending them",
    )

    runtime_group.add_argument(
        "--bind",
        type=str,
        metavar="HOST:PORT",
        help="Override bind_host from the configuration",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: from configuration)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Logging format (default: from configuration)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    return parser


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> RelayConfig:
    """
    Load configuration and apply CLI overrides.

    Raises:
        ConfigurationError: If the resulting configuration is invalid
    """
    config = load_config(args.config)

    overrides = {}
    if args.test_mode:
        overrides["test_mode"] = True
    if args.bind:
        overrides["bind_host"] = args.bind
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_format:
        overrides["log_format"] = args.log_format

    if overrides:
        data = {**vars(config), **overrides}
        config = RelayConfig.from_dict(data)
    return config


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2

    try:
        runtime = create_runtime(config)
    except SnapshotLoadError as e:
        logging.getLogger(__name__).critical(f"Cannot start: {e.message} | {e.context}")
        return 1

    host, port = config.listen_address()
    app = create_app(runtime)

    try:
        uvicorn.run(app, host=host, port=port, log_config=None)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130
    return 0


__all__ = [
    "create_parser",
    "build_config",
    "main",
]


if __name__ == "__main__":
    sys.exit(main())
