"""
Partner administration: weekly opening schedule and bay counts.

Writes replace the stored record and bump the store version, so the next
availability query sees the new policy. Existing bookings are left in place.
"""

import logging
from typing import Optional, TypedDict

from pydantic import ValidationError

from washbay.errors import BookingEngineError
from washbay.schemas.schedule_schema import WeeklySchedule
from washbay.tools.runtime import failure, get_engine
from washbay.utils import minutes_to_time

logger = logging.getLogger(__name__)


class ScheduleResult(TypedDict, total=False):
    success: bool
    message: str
    error: str
    schedule: dict


class CapacityResult(TypedDict, total=False):
    success: bool
    message: str
    error: str
    bays: list[dict]
    capacity_by_category: dict[str, int]


def set_weekly_schedule(
    partner_id: str,
    days: list[dict],
    buffer_minutes: int = 15,
    max_advance_days: int = 14,
) -> ScheduleResult:
    """
    Store a partner's opening schedule.

    ``days`` holds seven entries (``day_of_week`` 0 = Sunday) with
    ``is_enabled`` and ``time_blocks`` of ``{"start": "HH:MM", "end": "HH:MM"}``.
    """
    try:
        schedule = WeeklySchedule(
            partner_id=partner_id,
            days=days,
            buffer_minutes=buffer_minutes,
            max_advance_days=max_advance_days,
        )
        get_engine().schedules.upsert(schedule)
    except (BookingEngineError, ValidationError) as exc:
        return failure(exc)

    open_days = sum(1 for d in schedule.days if d.is_open)
    logger.info("Schedule updated for %s: %d open day(s)", partner_id, open_days)
    return {
        "success": True,
        "message": f"Schedule saved with {open_days} open day(s).",
        "schedule": get_weekly_schedule(partner_id),
    }


def get_weekly_schedule(partner_id: str) -> dict:
    """Return the stored schedule, or the default policy if none is stored."""
    schedule = get_engine().schedules.get(partner_id)
    return {
        "partner_id": schedule.partner_id,
        "buffer_minutes": schedule.buffer_minutes,
        "max_advance_days": schedule.max_advance_days,
        "days": [
            {
                "day_of_week": d.day_of_week,
                "day_name": d.day_name,
                "is_enabled": d.is_enabled,
                "time_blocks": [
                    {"start": minutes_to_time(b.start), "end": minutes_to_time(b.end)}
                    for b in d.time_blocks
                ],
            }
            for d in schedule.days
        ],
    }


def set_capacity_counts(
    partner_id: str,
    wash: int = 0,
    detailing: int = 0,
    other: Optional[int] = None,
) -> CapacityResult:
    """Replace a partner's bays with ``n`` generated bays per category."""
    counts = {"wash": wash, "detailing": detailing, "other": other or 0}
    try:
        get_engine().capacities.set_counts(partner_id, counts)
    except (BookingEngineError, ValidationError) as exc:
        return failure(exc)

    logger.info("Capacity updated for %s: %s", partner_id, counts)
    result = get_capacity(partner_id)
    result["message"] = "Capacity updated."
    return result


def get_capacity(partner_id: str) -> CapacityResult:
    """Return a partner's bays and the active count per category."""
    plan = get_engine().capacities.get(partner_id)
    return {
        "success": True,
        "message": f"{len(plan.bays)} bay(s) configured.",
        "bays": [b.model_dump(mode="json") for b in plan.bays],
        "capacity_by_category": plan.capacity_by_category,
    }
