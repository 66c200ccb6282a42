"""
Availability queries over the shared booking engine.

Windows are computed from the partner's stored schedule, bay plan and the
live ledger on every call; nothing is cached between calls.
"""

import logging
from datetime import date
from typing import Optional, TypedDict, Union

from pydantic import TypeAdapter, ValidationError

from washbay.config import settings
from washbay.errors import BookingEngineError
from washbay.schemas.booking_schema import AvailabilityQuery
from washbay.tools.runtime import failure, get_engine

logger = logging.getLogger(__name__)

_DATE = TypeAdapter(date)


class WindowSummary(TypedDict):
    start_time: str
    end_time: str
    free_bay_count: int


class AvailabilityResult(TypedDict, total=False):
    """Result from check_availability."""

    success: bool
    available: bool
    date: str
    category: str
    windows: list[WindowSummary]
    capacity_by_category: dict[str, int]
    message: str
    error: str


class CategoryUsage(TypedDict):
    used: int
    total: int


class TimelineDay(TypedDict):
    date: str
    day_of_week: str
    bookings: list[dict]
    capacity_usage: dict[str, CategoryUsage]


class TimelineResult(TypedDict, total=False):
    """Result from get_week_timeline."""

    success: bool
    week_start: str
    days: list[TimelineDay]
    message: str
    error: str


def check_availability(
    partner_id: str,
    date: Union[str, date],
    category: str = "wash",
    duration_minutes: Optional[int] = None,
) -> AvailabilityResult:
    """
    List bookable windows for a partner's bays on one date.

    An empty window list is a successful result; ``message`` says whether
    the partner is closed, has no bays for the category, or is fully booked.
    """
    try:
        query = AvailabilityQuery(
            partner_id=partner_id,
            date=date,
            category=category,
            duration_minutes=duration_minutes or settings.booking_rules.default_duration_minutes,
        )
        response = get_engine().availability(query)
    except (BookingEngineError, ValidationError) as exc:
        return failure(exc)

    logger.debug(
        "Availability for %s on %s (%s): %d window(s)",
        partner_id, query.date, query.category.value, len(response.windows),
    )
    return {
        "success": True,
        "available": bool(response.windows),
        "date": response.date.isoformat(),
        "category": response.category.value,
        "windows": [
            {
                "start_time": w.start_time,
                "end_time": w.end_time,
                "free_bay_count": w.free_bay_count,
            }
            for w in response.windows
        ],
        "capacity_by_category": response.capacity_by_category,
        "message": response.message,
    }


def get_week_timeline(partner_id: str, week_start: Union[str, date]) -> TimelineResult:
    """Seven days of bookings and bay usage starting at ``week_start``."""
    try:
        start = _DATE.validate_python(week_start)
    except ValidationError as exc:
        return failure(exc)

    days = get_engine().week_timeline(partner_id, start)
    return {
        "success": True,
        "week_start": start.isoformat(),
        "days": [
            {**day, "bookings": [b.model_dump(mode="json") for b in day["bookings"]]}
            for day in days
        ],
        "message": f"Timeline for the week of {start.isoformat()}.",
    }
