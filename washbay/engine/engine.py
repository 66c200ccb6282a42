"""
Booking engine: one object wiring the stores, calculators, allocator and
lifecycle manager together.

Every API surface (customer app, partner app, admin) talks to the same
engine instance instead of re-implementing the overlap math per route.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from washbay.engine.allocator import ReservationAllocator
from washbay.engine.lifecycle import BookingLifecycleManager, slot_start_datetime
from washbay.engine.slot_calculator import (
    MSG_PARTNER_CLOSED,
    calculate_windows,
    empty_result_message,
)
from washbay.schemas.booking_schema import ACTIVE_STATUSES, AvailabilityQuery, AvailabilityResponse
from washbay.schemas.capacity_schema import ServiceCategory
from washbay.schemas.schedule_schema import DAY_NAMES
from washbay.stores.ledger import BookingLedger
from washbay.stores.partner_store import CapacityStore, ScheduleStore
from washbay.stores.service_catalog import ServiceCatalog
from washbay.utils import day_of_week

logger = logging.getLogger(__name__)

MSG_OUTSIDE_BOOKING_WINDOW = "This date is outside the advance booking window"
MSG_DAY_OVER = "No windows left today"


class BookingEngine:
    """Composition root for a single ledger and its collaborators."""

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        lock_timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        cancellation_window_hours: Optional[int] = None,
        max_reschedules: Optional[int] = None,
        allow_rescheduling: Optional[bool] = None,
    ) -> None:
        self.schedules = ScheduleStore()
        self.capacities = CapacityStore()
        self.services = ServiceCatalog()
        self.ledger = BookingLedger()
        self.allocator = ReservationAllocator(
            self.ledger, self.schedules, self.capacities, lock_timeout=lock_timeout
        )
        self.lifecycle = BookingLifecycleManager(
            self.ledger,
            self.schedules,
            self.services,
            self.allocator,
            clock=clock,
            max_retries=max_retries,
            cancellation_window_hours=cancellation_window_hours,
            max_reschedules=max_reschedules,
            allow_rescheduling=allow_rescheduling,
        )

    def availability(self, query: AvailabilityQuery) -> AvailabilityResponse:
        """
        List bookable windows for a partner, date and category.

        Only windows ``create`` would accept right now are listed: nothing
        outside the partner's advance-booking range, and nothing today
        whose start has already passed.
        """
        schedule = self.schedules.get(query.partner_id)
        capacity = self.capacities.get(query.partner_id)
        bookings = self.ledger.active_bookings(query.partner_id, query.date, query.category)
        windows = calculate_windows(
            schedule, capacity, bookings, query.date, query.category, query.duration_minutes
        )

        now = self.lifecycle.clock()
        days_ahead = (query.date - now.date()).days
        if not 0 <= days_ahead <= schedule.max_advance_days:
            bookable = []
        else:
            bookable = [w for w in windows if slot_start_datetime(query.date, w.start) >= now]

        if bookable:
            message = f"{len(bookable)} window(s) available."
        elif not schedule.day_for(query.date).is_open:
            message = MSG_PARTNER_CLOSED
        elif not 0 <= days_ahead <= schedule.max_advance_days:
            message = MSG_OUTSIDE_BOOKING_WINDOW
        elif windows:
            message = MSG_DAY_OVER
        else:
            message = empty_result_message(schedule, capacity, query.date, query.category)
        return AvailabilityResponse(
            partner_id=query.partner_id,
            date=query.date,
            category=query.category,
            windows=bookable,
            capacity_by_category=capacity.capacity_by_category,
            message=message,
        )

    def week_timeline(self, partner_id: str, week_start: date) -> list[dict]:
        """Per-day bookings and bay usage for the seven days from ``week_start``."""
        capacity = self.capacities.get(partner_id).capacity_by_category
        week_end = week_start + timedelta(days=6)
        bookings = self.ledger.list_bookings(
            partner_id=partner_id, date_from=week_start, date_to=week_end
        )

        days = []
        for offset in range(7):
            current = week_start + timedelta(days=offset)
            day_bookings = [b for b in bookings if b.slot_date == current]
            usage = {
                category.value: {
                    "used": sum(
                        1 for b in day_bookings
                        if b.category == category and b.status in ACTIVE_STATUSES
                    ),
                    "total": capacity[category.value],
                }
                for category in ServiceCategory
            }
            days.append({
                "date": current.isoformat(),
                "day_of_week": DAY_NAMES[day_of_week(current)],
                "bookings": day_bookings,
                "capacity_usage": usage,
            })
        return days
