#!/usr/bin/env python3

# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from stakeledger import app
from stakeledger.common.logging import configure_logging
from stakeledger.config.errors import ConfigurationError
from stakeledger.errors import StakeLedgerError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

log = logging.getLogger("stakeledger.main")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


COMMANDS: dict[str, str] = {
    "ingest": "Fetch delegation events from every provider and append to the ledger",
    "rebuild": "Regenerate feed, exports and aggregates from the ledger",
    "health": "Recompute ingestion-health.json from published artifacts",
    "repair": "Wide ingest, forced rebuild and health reconciliation",
    "pending-unbonding": "Build the pending unbonding schedule",
    "unbonding-flows": "Classify where matured unbondings went",
}


def _dispatch(command: str) -> None:
    if command == "repair":
        outcome = app.repair()
        if not outcome.succeeded:
            raise StakeLedgerError(
                f"Repair failed during {outcome.failed_stage}: {outcome.error}"
            )
        return
    handler: Callable[[], object] = getattr(app, command.replace("-", "_"))
    handler()


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cosmos Hub delegation ledger pipeline")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, help_text in COMMANDS.items():
        subparsers.add_parser(name, help=help_text)
    return parser.parse_args(list(argv))


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    parsed_args = _parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
    try:
        _dispatch(parsed_args.command)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(EXIT_USAGE)
    except StakeLedgerError as exc:
        log.error("%s failed: %s", parsed_args.command, exc)  # noqa: TRY400
        sys.exit(EXIT_FAILURE)
    except Exception:  # noqa: BLE001
        log.exception("%s failed unexpectedly", parsed_args.command)
        sys.exit(EXIT_FAILURE)
    sys.exit(EXIT_OK)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    print("\nClosed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
