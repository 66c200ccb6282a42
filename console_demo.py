"""
Offline console demo: drives the real booking engine through scripted scenarios.

Runs against an in-memory ledger with a fixed clock (Monday 10 March 2025,
09:00), so every run prints the same windows and outcomes. No network, no
database. Designed for live demo walkthroughs.

Usage:
    python console_demo.py
    python console_demo.py --scenario race
    python console_demo.py --scenario cancel
"""

import argparse
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable

from washbay.tools import runtime
from washbay.tools.availability import check_availability, get_week_timeline
from washbay.tools.booking import (
    cancel_booking,
    create_booking,
    quote_price,
    reschedule_booking,
    update_booking_status,
)
from washbay.tools.partners import get_capacity
from washbay.tools.services import register_demo_services

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_NOW = datetime(2025, 3, 10, 9, 0)
DEMO_PARTNER = "sparkle-wash"


class ConsoleSession:
    """Plays booking scenarios against a fresh engine and prints each step."""

    def __init__(self) -> None:
        runtime.reset(clock=lambda: DEMO_NOW)
        self.service_ids = register_demo_services(DEMO_PARTNER)
        self.wash_service = self.service_ids[0]

    def step(self, text: str) -> None:
        print(f"\n{BLUE}{BOLD}>{RESET} {BLUE}{text}{RESET}")

    def report(self, result: dict) -> None:
        if result.get("success"):
            print(f"{GREEN}  {result['message']}{RESET}")
        else:
            print(f"{RED}  [{result.get('error')}] {result['message']}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    # ------------------------------------------------------------------ #
    # Scenarios
    # ------------------------------------------------------------------ #

    def scenario_booking(self) -> None:
        self.step("Customer checks wash availability for Tuesday 11 March")
        availability = check_availability(DEMO_PARTNER, "2025-03-11", "wash", 30)
        self.report(availability)
        for window in availability["windows"][:4]:
            self.system_log(
                f"{window['start_time']}-{window['end_time']}: "
                f"{window['free_bay_count']} bay(s) free"
            )

        self.step("Customer asks for a premium price on an SUV with a tyre shine")
        quote = quote_price(
            self.wash_service, "SUV", "premium", [{"product_id": "tyre-shine", "price": "5.00"}]
        )
        self.report(quote)
        self.system_log(f"Breakdown: {quote.get('pricing')}")

        self.step("Customer books 10:00-10:30")
        result = create_booking(
            DEMO_PARTNER, "cust-ada", self.wash_service, "2025-03-11", "10:00", "10:30",
            vehicle_body_type="SUV", subscription_tier="premium",
        )
        self.report(result)
        if not result["success"]:
            return
        booking_id = result["booking"]["booking_id"]

        self.step("Availability at 10:15 now shows one bay fewer")
        after = check_availability(DEMO_PARTNER, "2025-03-11", "wash", 30)
        for window in after["windows"]:
            if window["start_time"] in ("10:00", "10:15", "10:45"):
                self.system_log(f"{window['start_time']}: {window['free_bay_count']} bay(s) free")

        self.step("Partner starts and completes the wash")
        self.report(update_booking_status(booking_id, "in_progress"))
        self.report(update_booking_status(booking_id, "completed"))

        self.step("Partner tries to mark it delivered (not a collection service)")
        self.report(update_booking_status(booking_id, "picked"))

    def scenario_race(self) -> None:
        capacity = get_capacity(DEMO_PARTNER)
        self.step(
            f"Five customers race for Wednesday 12 March 11:00 "
            f"({capacity['capacity_by_category']['wash']} wash bays)"
        )

        def _attempt(n: int) -> dict:
            return create_booking(
                DEMO_PARTNER, f"cust-{n}", self.wash_service, "2025-03-12", "11:00", "11:30"
            )

        with ThreadPoolExecutor(max_workers=5) as pool:
            results = list(pool.map(_attempt, range(1, 6)))

        for n, result in enumerate(results, start=1):
            bay = result["booking"]["bay_id"] if result["success"] else "-"
            colour = GREEN if result["success"] else YELLOW
            print(f"{colour}  cust-{n}: {result.get('error', 'booked')} ({bay}){RESET}")

        winners = sum(1 for r in results if r["success"])
        self.system_log(f"{winners} winner(s), {len(results) - winners} turned away")

        self.step("Partner timeline for the week")
        timeline = get_week_timeline(DEMO_PARTNER, "2025-03-10")
        for day in timeline["days"]:
            usage = day["capacity_usage"]
            self.system_log(
                f"{day['date']} {day['day_of_week']:<9} "
                f"wash {usage['wash']['used']}/{usage['wash']['total']}  "
                f"detailing {usage['detailing']['used']}/{usage['detailing']['total']}"
            )

    def scenario_cancel(self) -> None:
        self.step("Customer books Thursday 13 March 09:00")
        result = create_booking(
            DEMO_PARTNER, "cust-bob", self.wash_service, "2025-03-13", "09:00", "09:30"
        )
        self.report(result)
        if not result["success"]:
            return
        booking_id = result["booking"]["booking_id"]

        self.step("Customer tries to move it to Sunday")
        self.report(reschedule_booking(booking_id, "2025-03-16", "10:00", "10:30"))

        self.step("Customer moves it to Friday 14 March 15:00")
        moved = reschedule_booking(booking_id, "2025-03-14", "15:00", "15:30", reason="Work clash")
        self.report(moved)
        if moved["success"]:
            self.system_log(f"Reschedule count: {moved['booking']['reschedule_count']}")

        self.step("Customer cancels with plenty of notice")
        self.report(cancel_booking(booking_id, reason="Car sold"))

        self.step("Another customer books this afternoon, then tries to cancel")
        late = create_booking(
            DEMO_PARTNER, "cust-cy", self.wash_service, "2025-03-10", "14:00", "14:30"
        )
        self.report(late)
        if late["success"]:
            self.report(cancel_booking(late["booking"]["booking_id"]))

    SCENARIOS: dict[str, str] = {
        "booking": "scenario_booking",
        "race": "scenario_race",
        "cancel": "scenario_cancel",
    }

    def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        method_name = self.SCENARIOS.get(scenario)
        if not method_name:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  WASHBAY SLOT ENGINE - Scenario: {scenario}{RESET}")
        print(f"{BOLD}  Partner: {DEMO_PARTNER}  Clock: {DEMO_NOW:%a %d %b %Y %H:%M}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        scenario_fn: Callable[[], None] = getattr(self, method_name)
        scenario_fn()

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def run(self) -> None:
        for scenario in self.SCENARIOS:
            ConsoleSession().run_scenario(scenario)


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline booking engine demo")
    parser.add_argument(
        "--scenario",
        choices=list(ConsoleSession.SCENARIOS),
        default=None,
        help="Play one scenario instead of all of them",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()


if __name__ == "__main__":
    main()
