from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from venuecal.app import add_venue, reconcile_venues, seed_venues
from venuecal.config import configure_logging, level_from_name
from venuecal.config.env import optional_env_var

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile venue event calendars")
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level name (defaults to VENUECAL_LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile = subparsers.add_parser("reconcile", help="Ingest candidate events for venues")
    reconcile.add_argument(
        "--candidates",
        type=Path,
        help="JSON file mapping venue names to candidate events (skips the extraction service)",
    )
    reconcile.add_argument(
        "--venue",
        dest="venues",
        action="append",
        help="Only process the named venue (repeatable)",
    )
    reconcile.add_argument(
        "--pause-seconds",
        type=float,
        help="Pause between venues (defaults to config)",
    )

    venue = subparsers.add_parser("venue", help="Venue management commands")
    venue_sub = venue.add_subparsers(dest="venue_command", required=True)
    venue_add = venue_sub.add_parser("add", help="Register a venue")
    venue_add.add_argument("--name", type=str, required=True, help="Venue name")
    venue_add.add_argument("--website", type=str, help="Venue website")
    venue_add.add_argument("--events-path", type=str, help="Path of the events page")
    venue_add.add_argument(
        "--timezone",
        type=str,
        help="IANA timezone of the venue (defaults to the configured target timezone)",
    )
    venue_add.add_argument(
        "--not-crawlable",
        dest="crawlable",
        action="store_false",
        help="Register the venue without scheduling it for reconciliation",
    )

    seed = subparsers.add_parser("seed", help="Register venues listed in a JSON file")
    seed.add_argument("path", type=Path, help="JSON list of venues")

    return parser.parse_args(list(argv))


class StopRequest:
    """SIGINT handler: the first Ctrl+C stops after the current venue, the second exits."""

    def __init__(self) -> None:
        self.event = asyncio.Event()

    def __call__(self, _signal_received: int, _frame: FrameType | None) -> None:
        if self.event.is_set():
            log.info("Closed by user (Ctrl+C)")
            sys.exit(0)
        log.info("Stopping after the current venue (Ctrl+C again to exit now)")
        self.event.set()


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    configure_logging(
        level=level_from_name(parsed_args.log_level or optional_env_var("VENUECAL_LOG_LEVEL"))
    )

    try:
        if parsed_args.command == "reconcile":
            stop = StopRequest()
            signal(SIGINT, stop)
            summary = reconcile_venues(
                candidates_path=parsed_args.candidates,
                venue_names=parsed_args.venues,
                pause_seconds=parsed_args.pause_seconds,
                stop=stop.event,
            )
            log.info(
                "Reconciliation finished: created=%s venues=%s skipped=%s failed=%s",
                summary.created,
                len(summary.reports),
                len(summary.skipped_venues),
                len(summary.failed_venues),
            )
            if summary.failed_venues:
                sys.exit(1)
        elif parsed_args.command == "venue" and parsed_args.venue_command == "add":
            venue = add_venue(
                parsed_args.name,
                website=parsed_args.website,
                events_path=parsed_args.events_path,
                timezone=parsed_args.timezone,
                crawlable=parsed_args.crawlable,
            )
            log.info("Venue %s: %s", venue.name, venue.id)
        elif parsed_args.command == "seed":
            venues = seed_venues(parsed_args.path)
            log.info("Seeded %s venue(s)", len(venues))
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


if __name__ == "__main__":
    main()
