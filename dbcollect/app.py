"""Command-line entry point running a single custom query."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Sequence

from .collector import Collector
from .config import CONFIG_FILE, load_config
from .errors import (
    CollectorError,
    ConfigError,
    EmptyResultError,
    InvalidParamsError,
)

LOG = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_EMPTY = 3

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbcollect",
        description="Run a named custom query and print its rows as a JSON array.",
    )
    parser.add_argument("--config", type=Path, default=None, help=f"config file (default: {CONFIG_FILE})")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        type=str.upper,
        choices=LOG_LEVELS,
        help="logging level (default: WARNING)",
    )
    parser.add_argument("session", help="configured session name")
    parser.add_argument("params", nargs="*", help="query name followed by its positional arguments")
    return parser


def run(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, execute the query and return a process exit code."""

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        collector = Collector(load_config(args.config))
        output = asyncio.run(collector.custom_query(args.session, args.params))
    except EmptyResultError as exc:
        print(exc, file=sys.stderr)
        return EXIT_EMPTY
    except (ConfigError, InvalidParamsError) as exc:
        print(exc, file=sys.stderr)
        return EXIT_USAGE
    except CollectorError as exc:
        LOG.debug("Collection failed", exc_info=True)
        print(exc, file=sys.stderr)
        return EXIT_FAILURE
    print(output)
    return 0


def main() -> None:
    """Invoke the command-line collector."""

    sys.exit(run())


if __name__ == "__main__":
    main()
