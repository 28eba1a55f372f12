"""Command line entry point for the pattern search engine."""

import argparse
import logging
import sys
from typing import List, Optional

from .config.settings import load_config
from .core.constants import APP_NAME, VERSION
from .core.exceptions import ApplicationError, ConfigError, PatternError
from .core.logging_config import configure_logging, logging_manager
from .services.engine import SearchEngine
from .utils.file_utils import clean_directory, ensure_directory_exists

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Search generated QR codes for an exact occurrence of a binary pattern.",
    )
    parser.add_argument("--config", default="config.json", help="Path to config.json (default: %(default)s)")
    parser.add_argument("--env-file", default=None, help="Optional .env file with PATTERN_HUNTER_* overrides")
    parser.add_argument("-p", "--pattern", help="Pattern file name inside the templates directory")
    parser.add_argument("-w", "--workers", type=int, help="Number of worker processes (0 = CPU count - 1)")
    parser.add_argument("-d", "--duration", type=float, help="Stop after this many seconds")
    parser.add_argument("-m", "--max-matches", type=int, help="Stop after this many matches")
    parser.add_argument("--list-patterns", action="store_true", help="List available patterns and exit")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Override the configured log level")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def prompt_for_pattern(patterns: List[str]) -> Optional[str]:
    """Ask the user to pick a pattern by number. Returns None on empty or invalid input."""
    print("Available patterns:")
    for i, name in enumerate(patterns, start=1):
        print(f"  {i}. {name}")
    try:
        answer = input(f"Select a pattern [1-{len(patterns)}]: ").strip()
    except EOFError:
        return None
    if not answer.isdigit() or not 1 <= int(answer) <= len(patterns):
        print(f"Invalid selection '{answer}'")
        return None
    return patterns[int(answer) - 1]


def choose_pattern(engine: SearchEngine, requested: Optional[str]) -> Optional[str]:
    if requested:
        return requested
    patterns = engine.list_patterns()
    if not patterns:
        logger.error(f"No pattern images found in '{engine.config.templates_dir}'")
        return None
    if not sys.stdin.isatty():
        logger.error("No pattern given and no terminal to prompt on; use --pattern")
        return None
    return prompt_for_pattern(patterns)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config, env_file=args.env_file)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(
        log_level="DEBUG" if config.debug and not args.log_level else (args.log_level or config.log_level),
        log_dir=config.log_dir,
        enable_file_logging=config.enable_file_logging,
        structured_logging=config.structured_logging,
        application_name=APP_NAME,
    )
    if args.log_level:
        config.log_level = args.log_level
    if args.workers is not None:
        if args.workers < 0:
            logger.error("--workers must not be negative")
            return 2
        config.worker_count = args.workers

    engine = SearchEngine(config)
    try:
        if args.list_patterns:
            for name in engine.list_patterns():
                print(name)
            return 0

        pattern_name = choose_pattern(engine, args.pattern or config.pattern_file)
        if pattern_name is None:
            return 2
        engine.select_pattern(pattern_name)

        if config.clean_uploads_on_startup:
            clean_directory(config.uploads_dir)
        else:
            ensure_directory_exists(config.uploads_dir)

        logger.info(f"Starting search with {config.resolved_worker_count()} workers. Press Ctrl+C to stop.")
        try:
            snapshot = engine.run(duration=args.duration, max_matches=args.max_matches)
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping search")
            snapshot = engine.stop()

        print(f"Searched {snapshot.searched_count} candidates, {snapshot.match_count} matches recorded.")
        for record in engine.session.matches:
            label = " (self-test)" if record.is_self_test else ""
            print(f"  {record.timestamp} {record.payload} at ({record.location.x}, {record.location.y})"
                  f" -> {record.artifact_path}{label}")
        return 0
    except PatternError as e:
        logger.error(f"Cannot use pattern: {e}")
        return 1
    except ApplicationError as e:
        logger.error(f"Search failed: {e}")
        return 1
    finally:
        engine.close()
        logging_manager.shutdown()


if __name__ == "__main__":
    sys.exit(main())
