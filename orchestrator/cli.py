"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the chain metrics aggregator.

- Provides argparse-based CLI
- Runs sync passes once or on a fixed tick
- Serves the read API
- Loads configuration from a YAML file or the environment

============================================================
USAGE
============================================================
python -m orchestrator.cli --mode full --single-cycle
python -m orchestrator.cli --mode metrics --metrics avgTps,txCount
python -m orchestrator.cli --mode icm --single-cycle
python -m orchestrator.cli --mode serve --port 8000

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from chain_sources.models import MetricType
from core.config import AppConfig
from core.exceptions import ConfigurationError
from core.logging_config import setup_logging
from database.engine import DatabasePersistenceError, initialize_database
from ingestion.service import IngestionService, SyncReport


logger = logging.getLogger(__name__)

MODES = ("registry", "chains", "metrics", "icm", "full", "serve")


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="chain-metrics",
        description="Chain registry and metrics aggregator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Runtime Modes:
  registry  - Sync chain descriptors from the registry checkout
  chains    - Sync chain list and validators from the explorer API
  metrics   - Fetch daily metric series for every known chain
  icm       - Recount daily cross-chain (ICM) messages per chain pair
  full      - registry, then chains, then metrics, then icm
  serve     - Serve the read API

Examples:
  %(prog)s --mode full --single-cycle
  %(prog)s --mode metrics --metrics avgTps,txCount --tick-interval 3600
  %(prog)s --mode serve --port 8000
        """
    )

    # --------------------------------------------------------
    # Mode Selection
    # --------------------------------------------------------
    parser.add_argument(
        "--mode", "-m",
        type=str,
        choices=MODES,
        default="full",
        help="Runtime mode (default: full)",
    )

    # --------------------------------------------------------
    # Execution Options
    # --------------------------------------------------------
    execution_group = parser.add_argument_group("Execution Options")

    execution_group.add_argument(
        "--tick-interval",
        type=int,
        default=3600,
        metavar="SECONDS",
        help="Seconds between cycles (default: 3600 = 1 hour)",
    )

    execution_group.add_argument(
        "--single-cycle",
        action="store_true",
        help="Run a single cycle and exit (no loop)",
    )

    execution_group.add_argument(
        "--metrics",
        type=str,
        metavar="LIST",
        help="Comma-separated metric types (default: all configured)",
    )

    # --------------------------------------------------------
    # Server Options
    # --------------------------------------------------------
    server_group = parser.add_argument_group("Server Options")

    server_group.add_argument("--host", type=str, default="0.0.0.0")
    server_group.add_argument("--port", type=int, default=8000)

    # --------------------------------------------------------
    # Configuration / Logging Options
    # --------------------------------------------------------
    config_group = parser.add_argument_group("Configuration Options")

    config_group.add_argument(
        "--config",
        type=str,
        metavar="PATH",
        help="YAML configuration file (default: environment variables)",
    )

    config_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    config_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default=None,
        help="Logging format (default: LOG_FORMAT or text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def parse_metric_list(value: Optional[str]) -> Optional[List[MetricType]]:
    """
    Raises:
        ValueError: Unknown metric name
    """
    if not value:
        return None
    return [MetricType.parse(name.strip()) for name in value.split(",") if name.strip()]


def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Returns:
        List of validation errors
    """
    errors = []

    if args.tick_interval < 1:
        errors.append("--tick-interval must be at least 1 second")

    try:
        parse_metric_list(args.metrics)
    except ValueError as e:
        errors.append(f"--metrics: {e}")

    if not (0 < args.port < 65536):
        errors.append("--port must be between 1 and 65535")

    return errors


def load_config(args: argparse.Namespace) -> AppConfig:
    config = AppConfig.from_yaml(args.config) if args.config else AppConfig.from_env()
    if args.log_level:
        config.logging.level = args.log_level
    if args.log_format:
        config.logging.format = args.log_format
    return config


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def _log_report(report: SyncReport) -> None:
    logger.info(f"Cycle report: {json.dumps(report.to_dict(), default=str)}")


async def async_main(args: argparse.Namespace, config: AppConfig, session_factory) -> int:
    """
    Run sync cycles.

    Returns:
        Exit code
    """
    service = IngestionService(config, session_factory)
    metric_types = parse_metric_list(args.metrics)

    try:
        while True:
            report = await service.run_cycle(args.mode, metric_types)
            _log_report(report)

            if args.single_cycle:
                return 0 if report.ok else 1

            logger.info(f"Next cycle in {args.tick_interval}s")
            await asyncio.sleep(args.tick_interval)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        service.stop()
        await service.close()


def serve(args: argparse.Namespace, config: AppConfig, session_factory) -> int:
    import uvicorn

    from api.app import create_app

    app = create_app(
        session_factory,
        history_days=config.metrics.history_days,
        icm_history_days=config.icm.history_days,
    )
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


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

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    try:
        config = load_config(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logging.level, config.logging.format)
    print_banner(args, config)

    try:
        session_factory = initialize_database(config.database.url, echo=config.database.echo)
    except DatabasePersistenceError as e:
        logger.error(f"Database unavailable: {e}")
        return 1

    if args.mode == "serve":
        return serve(args, config, session_factory)

    try:
        return asyncio.run(async_main(args, config, session_factory))
    except KeyboardInterrupt:
        return 130


def print_banner(args: argparse.Namespace, config: AppConfig) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print("  CHAIN METRICS AGGREGATOR")
    print("=" * 60)
    print(f"  Mode:       {args.mode}")
    print(f"  Registry:   {config.registry.path}")
    print(f"  Database:   {config.database.url.split('@')[-1]}")
    print(f"  Log Level:  {config.logging.level}")
    if args.mode != "serve":
        print(f"  Interval:   {'single cycle' if args.single_cycle else f'{args.tick_interval}s'}")
    print("=" * 60)
    print()


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
