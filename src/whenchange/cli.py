"""
CLI for running a command whenever watched files change.

Usage:
    whenchange -p '*.go' go build
    whenchange -p ./src/ -d 2s mvn test-compile
    whenchange -p docs --no-recursive -- make html
"""

import argparse
import logging
import os
import signal
import sys
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

from . import __version__
from .config import DEFAULT_DELAY_TEXT, DEFAULT_SHELL, EngineConfig
from .engine import WatchEngine
from .exceptions import WatchSetupError

logger = logging.getLogger("whenchange")


class GracefulShutdown:
    """Stop the engine on SIGINT/SIGTERM."""

    def __init__(self, engine: WatchEngine):
        self.engine = engine
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True
        self.engine.stop()


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if verbose:
        # watchdog's own debug output is rarely what the user wants
        logging.getLogger("watchdog").setLevel(logging.INFO)


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser.

    Defaults for --shell and --delay come from WHENCHANGE_SHELL and
    WHENCHANGE_DELAY when set.
    """
    parser = argparse.ArgumentParser(
        prog="whenchange",
        description="Run a shell command when files change.",
        epilog="Examples:\n"
        "  whenchange -p '*.go' go build        # Rebuild when a Go file changes\n"
        "  whenchange -p ./src/ mvn test-compile # Watch src and all its sub-directories\n"
        "\n"
        "All positional arguments compose the command to execute.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-p", "--path",
        dest="paths",
        action="append",
        metavar="PATH",
        help="File, directory or glob pattern to watch (repeatable, default: .)",
    )
    parser.add_argument(
        "-r", "--recursive",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Also watch all sub-directories of watched directories",
    )
    parser.add_argument(
        "-d", "--delay",
        default=os.environ.get("WHENCHANGE_DELAY", DEFAULT_DELAY_TEXT),
        help="Minimum time between two runs for the same path, e.g. 500ms, 2s (default: %(default)s)",
    )
    parser.add_argument(
        "--shell",
        default=os.environ.get("WHENCHANGE_SHELL", DEFAULT_SHELL),
        help="Shell used to run the command as '<shell> -c <command>' (default: %(default)s)",
    )
    parser.add_argument(
        "-i", "--ignore",
        action="append",
        metavar="PATTERN",
        help="Extra glob pattern for paths to ignore (repeatable)",
    )
    parser.add_argument(
        "--timeout",
        help="Kill the command if it runs longer than this duration",
    )
    parser.add_argument(
        "--capture",
        action="store_true",
        help="Capture command output and print it once the command finishes",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Output debug information",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Command to run on change",
    )

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    args = build_parser().parse_args(argv)
    if args.command and args.command[0] == "--":
        args.command = args.command[1:]
    return args


def build_config(args: argparse.Namespace) -> EngineConfig:
    return EngineConfig.from_options(
        paths=args.paths,
        recursive=args.recursive,
        delay=args.delay,
        shell=args.shell,
        command=args.command,
        ignore=args.ignore,
        timeout=args.timeout,
        capture_output=args.capture,
    )


def main(argv: Optional[List[str]] = None) -> None:
    """
    Main entry point for the whenchange CLI.

    Exits with status 1 if watching cannot be set up.
    """
    load_dotenv(find_dotenv(usecwd=True))
    args = parse_args(argv)
    configure_logging(args.verbose)

    config = build_config(args)
    logger.debug(f"Command to execute: {list(config.command.args)}")
    logger.debug(f"Path list {config.patterns}")
    if config.command.is_empty:
        logger.warning("No command given, changes will only be logged")

    try:
        with WatchEngine(config) as engine:
            engine.start()
            GracefulShutdown(engine)
            logger.info("Press Ctrl+C to stop")
            engine.run()
    except WatchSetupError as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)

    logger.info("Stopped")


if __name__ == "__main__":
    main()
