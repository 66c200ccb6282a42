"""Weekly partner schedule models and the default opening policy."""

from datetime import date
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, Field, model_validator

from washbay.utils import MINUTES_PER_DAY, day_of_week, minutes_to_time, time_to_minutes

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def _coerce_clock_time(value):
    if isinstance(value, str):
        return time_to_minutes(value)
    return value


# Minute-of-day that also accepts "HH:MM" input
ClockMinutes = Annotated[int, BeforeValidator(_coerce_clock_time), Field(ge=0, le=MINUTES_PER_DAY)]


class TimeBlock(BaseModel):
    """An open period within a day, as minute-of-day ``[start, end)``."""
    start: ClockMinutes
    end: ClockMinutes

    @model_validator(mode="after")
    def _check_order(self) -> "TimeBlock":
        if self.start >= self.end:
            raise ValueError(
                f"Time block start {minutes_to_time(self.start)} must be before "
                f"end {minutes_to_time(self.end)}"
            )
        return self

    def label(self) -> str:
        return f"{minutes_to_time(self.start)}-{minutes_to_time(self.end)}"


class DaySchedule(BaseModel):
    """Availability for one day of the week (0 = Sunday)."""
    day_of_week: int = Field(ge=0, le=6)
    is_enabled: bool = True
    time_blocks: list[TimeBlock] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_blocks(self) -> "DaySchedule":
        if not self.is_enabled and self.time_blocks:
            raise ValueError(f"{DAY_NAMES[self.day_of_week]} is disabled but has time blocks")
        self.time_blocks.sort(key=lambda b: b.start)
        for prev, nxt in zip(self.time_blocks, self.time_blocks[1:]):
            if nxt.start < prev.end:
                raise ValueError(
                    f"Overlapping time blocks on {DAY_NAMES[self.day_of_week]}: "
                    f"{prev.label()} and {nxt.label()}"
                )
        return self

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]

    @property
    def is_open(self) -> bool:
        return self.is_enabled and bool(self.time_blocks)


class WeeklySchedule(BaseModel):
    """
    A partner's recurring weekly availability.

    ``buffer_minutes`` is the idle time a bay needs after a booking ends;
    ``max_advance_days`` is the furthest day, counted from today, that may
    be booked.
    """
    partner_id: str
    days: list[DaySchedule]
    buffer_minutes: int = Field(default=15, ge=0)
    max_advance_days: int = Field(default=14, ge=0)

    @model_validator(mode="after")
    def _check_days(self) -> "WeeklySchedule":
        self.days.sort(key=lambda d: d.day_of_week)
        if [d.day_of_week for d in self.days] != list(range(7)):
            raise ValueError("A weekly schedule needs exactly one entry per day of week 0-6")
        return self

    def day_for(self, slot_date: date) -> DaySchedule:
        return self.days[day_of_week(slot_date)]


def default_schedule(partner_id: str) -> WeeklySchedule:
    """Opening policy used when a partner has not stored a schedule.

    Closed Sunday, open 08:00-18:00 on weekdays and 09:00-14:00 on Saturday.
    """
    days = []
    for index in range(7):
        if index == 0:
            days.append(DaySchedule(day_of_week=0, is_enabled=False))
        elif index == 6:
            days.append(DaySchedule(day_of_week=6, time_blocks=[TimeBlock(start=540, end=840)]))
        else:
            days.append(DaySchedule(day_of_week=index, time_blocks=[TimeBlock(start=480, end=1080)]))
    return WeeklySchedule(partner_id=partner_id, days=days, buffer_minutes=15, max_advance_days=14)
