"""
Command-line entry point.

Usage:
    granulewatch config.yaml
    granulewatch config.yaml --rounds 3
    granulewatch config.yaml --watch-dir /mnt/incoming --log-level DEBUG
"""

import argparse
import logging
import sys
from datetime import datetime
from typing import List, Optional

from granulewatch import __version__
from granulewatch.config import ConfigError, load_config
from granulewatch.watch import GroupOutcome, WatchEngine

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(level=getattr(logging, level), format=LOG_FORMAT)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="granulewatch",
        description="Watch a directory tree for complete granule groups and run a pipeline for each",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
A group is processed once, after all required files are present and none of
them changed size or modification time over one poll period. Files modified
before startup never open a group.

Examples:
  %(prog)s watcher.yaml                   # Continuous polling
  %(prog)s watcher.yaml --rounds 3        # Three scans, wait for runs, exit
  %(prog)s watcher.yaml --log-level DEBUG # Show every command invocation
        """,
    )

    parser.add_argument("config", help="YAML configuration file")

    parser.add_argument(
        "--rounds",
        type=int,
        default=None,
        metavar="N",
        help="Stop after N scan rounds and wait for dispatched pipelines (default: poll forever)",
    )

    parser.add_argument(
        "--watch-dir",
        default=None,
        metavar="DIR",
        help="Override WatchDir from the configuration",
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        Exit code (0 = success, 1 = configuration error or failed run)
    """
    launch_time = datetime.now()
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.rounds is not None and args.rounds < 1:
        logger.error("--rounds must be at least 1")
        return 1

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Failed to parse config: {e}")
        return 1

    if args.watch_dir:
        config = config.model_copy(update={"watch_dir": args.watch_dir})

    logger.info(f"Watching {config.watch_dir} for {len(config.required)} required file kinds")
    logger.info(f"Directory check period {config.period}s")

    engine = WatchEngine.from_config(config, launch_time=launch_time)
    try:
        if args.rounds is not None:
            outcomes = engine.run_rounds(args.rounds)
            return 1 if GroupOutcome.FAILED in outcomes else 0
        engine.run_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down, waiting for running pipelines")
    finally:
        engine.shutdown(wait=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
