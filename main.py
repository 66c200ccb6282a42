"""
Command-line entry point for the booking engine.

Prints availability for a partner and date, or runs the offline console demo.
Partners without a stored schedule or bay plan use the default policy
(closed Sunday, 08:00-18:00 weekdays, 09:00-14:00 Saturday, 3 wash bays and
1 detailing bay).

Usage:
    Availability:  python main.py slots sparkle-wash 2025-03-11 --category wash --duration 30
    Console demo:  python main.py console --scenario race
"""

import argparse
import json
import logging

from washbay.config import settings
from washbay.tools.availability import check_availability

logger = logging.getLogger(__name__)


def _run_slots(args: argparse.Namespace) -> int:
    result = check_availability(args.partner_id, args.date, args.category, args.duration)
    print(json.dumps(result, indent=2))
    return 0 if result["success"] else 1


def _run_console_mode(args: argparse.Namespace) -> int:
    """Start the offline console demo."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"{settings.service_name} command line")
    subcommands = parser.add_subparsers(dest="command", required=True)

    slots = subcommands.add_parser("slots", help="List bookable windows as JSON.")
    slots.add_argument("partner_id", help="Partner whose bays are queried.")
    slots.add_argument("date", help="Date to query (YYYY-MM-DD).")
    slots.add_argument(
        "--category",
        choices=["wash", "detailing", "other"],
        default="wash",
        help="Bay category (default: wash).",
    )
    slots.add_argument(
        "--duration",
        type=int,
        default=settings.booking_rules.default_duration_minutes,
        help="Service duration in minutes.",
    )
    slots.set_defaults(handler=_run_slots)

    console = subcommands.add_parser("console", help="Run the offline console demo.")
    console.add_argument(
        "--scenario",
        choices=["booking", "race", "cancel"],
        default=None,
        help="Play one scenario instead of all of them.",
    )
    console.set_defaults(handler=_run_console_mode)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
