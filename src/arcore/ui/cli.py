from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from sqlalchemy import create_engine

from arcore.app import purge_deferred_bindings
from arcore.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _non_negative_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid number of days: {value}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("Days must be non-negative")
    return parsed


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="arcore maintenance commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    purge = subparsers.add_parser(
        "purge-bindings",
        help="Delete uncommitted deferred bindings older than the retention age",
    )
    purge.add_argument(
        "--days",
        type=_non_negative_int,
        default=None,
        help="Retention age in days (defaults to ARCORE_BINDING_RETENTION_DAYS)",
    )
    purge.add_argument(
        "--database-uri",
        type=str,
        help="Database to purge (defaults to DATABASE_URI or the data dir)",
    )

    return parser.parse_args(list(argv))


def main(argv: Sequence[str] | None = None) -> int:
    """Main application entry point."""
    load_dotenv()
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)

    try:
        if parsed_args.command == "purge-bindings":
            engine = None
            if parsed_args.database_uri:
                engine = create_engine(parsed_args.database_uri)
            removed = purge_deferred_bindings(days=parsed_args.days, engine=engine)
            log.info("Purged %s deferred binding(s)", removed)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        return 1
    return 0


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    signal(SIGINT, sigint_handler)
    sys.exit(main())


if __name__ == "__main__":
    run()
