"""
Slot calculator: which windows of a day can still be booked.

Pure functions over a schedule, a capacity plan and a snapshot of
bookings. Used by the availability read path and, through the same
overlap test, by the reservation allocator at commit time.

Overlap rule: an existing booking blocks its bay over
``[b.start, b.end + buffer)``. The buffer is only added after the
existing booking, never before it and never to the candidate's end, so a
new booking may finish right when an existing one starts.
"""

import logging
from datetime import date
from typing import Iterable, Optional

from washbay.config import settings
from washbay.errors import InvalidRequest
from washbay.schemas.booking_schema import AvailabilityWindow, Booking
from washbay.schemas.capacity_schema import Bay, CapacityPlan, ServiceCategory
from washbay.schemas.schedule_schema import WeeklySchedule

logger = logging.getLogger(__name__)

MSG_PARTNER_CLOSED = "Partner is not available on this day"
MSG_NO_BAYS = "No bays available for this service category"
MSG_FULLY_BOOKED = "No free bays left on this day"


def overlaps(start: int, end: int, booked_start: int, booked_end: int, buffer_minutes: int) -> bool:
    """Half-open overlap of ``[start, end)`` with ``[booked_start, booked_end + buffer)``."""
    return start < booked_end + buffer_minutes and booked_start < end


def occupied_bay_ids(
    bookings: Iterable[Booking], start: int, end: int, buffer_minutes: int
) -> set[str]:
    """Bays held by active bookings that collide with ``[start, end)``."""
    return {
        b.bay_id
        for b in bookings
        if b.bay_id and b.is_active and overlaps(start, end, b.slot_start, b.slot_end, buffer_minutes)
    }


def free_bays(
    capacity: CapacityPlan,
    bookings: Iterable[Booking],
    category: ServiceCategory,
    start: int,
    end: int,
    buffer_minutes: int,
) -> list[Bay]:
    """Active bays of the category not held for ``[start, end)``, in declared order."""
    used = occupied_bay_ids(bookings, start, end, buffer_minutes)
    return [bay for bay in capacity.bays_for(category) if bay.bay_id not in used]


def _relevant_bookings(
    bookings: Iterable[Booking], partner_id: str, slot_date: date, category: ServiceCategory
) -> list[Booking]:
    return [
        b
        for b in bookings
        if b.partner_id == partner_id
        and b.slot_date == slot_date
        and b.category == category
        and b.is_active
    ]


def _check_inputs(duration_minutes: int, step_minutes: int) -> None:
    if duration_minutes <= 0:
        raise InvalidRequest(f"Duration must be a positive number of minutes, got {duration_minutes}")
    if step_minutes <= 0:
        raise InvalidRequest(f"Step must be a positive number of minutes, got {step_minutes}")


def calculate_windows(
    schedule: WeeklySchedule,
    capacity: CapacityPlan,
    bookings: Iterable[Booking],
    slot_date: date,
    category: ServiceCategory,
    duration_minutes: int,
    step_minutes: Optional[int] = None,
) -> list[AvailabilityWindow]:
    """
    List the bookable windows for a day.

    Candidate starts run from each open block's start up to
    ``block.end - duration`` inclusive, on the step grid. A candidate is
    returned when at least one bay of the category is free for it.

    Returns:
        Windows ordered by start time. Empty when the day is closed or the
        partner has no bays for the category.

    Raises:
        InvalidRequest: If duration or step is not positive.
    """
    step = step_minutes if step_minutes is not None else settings.booking_rules.slot_step_minutes
    _check_inputs(duration_minutes, step)
    category = ServiceCategory(category)

    day = schedule.day_for(slot_date)
    if not day.is_enabled:
        return []

    category_bays = capacity.bays_for(category)
    total_bays = len(category_bays)
    if total_bays == 0:
        return []
    category_bay_ids = {bay.bay_id for bay in category_bays}

    relevant = _relevant_bookings(bookings, schedule.partner_id, slot_date, category)
    windows: list[AvailabilityWindow] = []
    for block in day.time_blocks:
        for start in range(block.start, block.end - duration_minutes + 1, step):
            end = start + duration_minutes
            used = occupied_bay_ids(relevant, start, end, schedule.buffer_minutes) & category_bay_ids
            free_count = total_bays - len(used)
            if free_count > 0:
                windows.append(AvailabilityWindow(start=start, end=end, free_bay_count=free_count))

    logger.debug(
        "Partner %s %s %s: %d window(s) of %d min",
        schedule.partner_id, slot_date.isoformat(), category.value, len(windows), duration_minutes,
    )
    return windows


def window_within_open_hours(schedule: WeeklySchedule, slot_date: date, start: int, end: int) -> bool:
    """Check ``[start, end)`` lies inside one open block of the day."""
    day = schedule.day_for(slot_date)
    if not day.is_enabled:
        return False
    return any(block.start <= start and end <= block.end for block in day.time_blocks)


def window_on_grid(
    schedule: WeeklySchedule,
    slot_date: date,
    start: int,
    end: int,
    step_minutes: Optional[int] = None,
) -> bool:
    """Check ``[start, end)`` is one of the candidate windows the calculator produces."""
    step = step_minutes if step_minutes is not None else settings.booking_rules.slot_step_minutes
    day = schedule.day_for(slot_date)
    return any(
        block.start <= start and end <= block.end and (start - block.start) % step == 0
        for block in day.time_blocks
    )


def empty_result_message(
    schedule: WeeklySchedule, capacity: CapacityPlan, slot_date: date, category: ServiceCategory
) -> str:
    """Explain why a day has no windows."""
    if not schedule.day_for(slot_date).is_enabled:
        return MSG_PARTNER_CLOSED
    if not capacity.bays_for(ServiceCategory(category)):
        return MSG_NO_BAYS
    return MSG_FULLY_BOOKED
