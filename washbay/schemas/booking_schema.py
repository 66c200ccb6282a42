"""Booking records and the request/response shapes of the booking API."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field, model_validator

from washbay.schemas.capacity_schema import ServiceCategory
from washbay.schemas.pricing_schema import PriceBreakdown, ProductLineItem, SubscriptionTier
from washbay.schemas.schedule_schema import ClockMinutes
from washbay.utils import minutes_to_time


class BookingStatus(str, Enum):
    BOOKED = "booked"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PICKED = "picked"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


# Only bookings in these states occupy a bay.
ACTIVE_STATUSES = frozenset({BookingStatus.BOOKED, BookingStatus.IN_PROGRESS})


class Actor(str, Enum):
    CUSTOMER = "customer"
    PARTNER = "partner"


class SlotWindow(BaseModel):
    """A requested ``[start, end)`` window on a calendar date."""
    slot_date: date
    start: ClockMinutes
    end: ClockMinutes

    @model_validator(mode="after")
    def _check_order(self) -> "SlotWindow":
        if self.start >= self.end:
            raise ValueError("Slot start must be before slot end")
        return self

    @property
    def duration(self) -> int:
        return self.end - self.start

    def label(self) -> str:
        return f"{self.slot_date.isoformat()} {minutes_to_time(self.start)}-{minutes_to_time(self.end)}"


class RescheduledSlot(BaseModel):
    """The window a booking held before it was moved."""
    slot_date: date
    slot_start: int
    slot_end: int
    bay_id: Optional[str] = None
    status: BookingStatus = BookingStatus.RESCHEDULED
    rescheduled_at: datetime
    rescheduled_by: Actor
    reason: Optional[str] = None


class StatusChange(BaseModel):
    """One entry in a booking's status log."""
    status: BookingStatus
    changed_at: datetime
    trigger: Optional[str] = None
    actor: Optional[Actor] = None


class Booking(BaseModel):
    """A reservation of one bay for one window."""
    booking_id: str
    booking_number: str
    partner_id: str
    customer_id: str
    service_id: str
    service_name: str = ""
    service_type: str = "book_me"
    category: ServiceCategory
    slot_date: date
    slot_start: int
    slot_end: int
    bay_id: Optional[str] = None
    bay_name: Optional[str] = None
    status: BookingStatus = BookingStatus.BOOKED
    pricing: PriceBreakdown
    vehicle_body_type: str = "Sedan"
    subscription_tier: SubscriptionTier = SubscriptionTier.BASIC
    products: list[ProductLineItem] = Field(default_factory=list)
    notes: Optional[str] = None

    created_at: datetime
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[Actor] = None
    cancellation_reason: Optional[str] = None
    rescheduled_from_date: Optional[date] = None
    rescheduled_from_start: Optional[int] = None
    rescheduled_from_end: Optional[int] = None
    rescheduled_at: Optional[datetime] = None
    rescheduled_by: Optional[Actor] = None
    reschedule_count: int = 0
    reschedule_history: list[RescheduledSlot] = Field(default_factory=list)
    status_history: list[StatusChange] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def window(self) -> SlotWindow:
        return SlotWindow(slot_date=self.slot_date, start=self.slot_start, end=self.slot_end)

    @property
    def partition_key(self) -> tuple[str, str, date]:
        return (self.partner_id, self.category.value, self.slot_date)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def start_time(self) -> str:
        return minutes_to_time(self.slot_start)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def end_time(self) -> str:
        return minutes_to_time(self.slot_end)


class AvailabilityWindow(BaseModel):
    """A bookable window and how many bays are still free for it."""
    start: int
    end: int
    free_bay_count: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end)


class AvailabilityQuery(BaseModel):
    partner_id: str
    date: date
    category: ServiceCategory = ServiceCategory.WASH
    duration_minutes: int = Field(default=30, gt=0)


class AvailabilityResponse(BaseModel):
    """Result of an availability query."""
    partner_id: str
    date: date
    category: ServiceCategory
    windows: list[AvailabilityWindow] = Field(default_factory=list)
    capacity_by_category: dict[str, int] = Field(default_factory=dict)
    message: str = ""


class CreateBookingRequest(BaseModel):
    """Validated booking creation request."""
    partner_id: str
    customer_id: str
    service_id: str
    category: Optional[ServiceCategory] = None
    date: date
    start: ClockMinutes
    end: ClockMinutes
    vehicle_body_type: str = "Sedan"
    products: list[ProductLineItem] = Field(default_factory=list)
    subscription_tier: SubscriptionTier = SubscriptionTier.BASIC
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_order(self) -> "CreateBookingRequest":
        if self.start >= self.end:
            raise ValueError("Slot start must be before slot end")
        return self

    @property
    def window(self) -> SlotWindow:
        return SlotWindow(slot_date=self.date, start=self.start, end=self.end)


class CancelBookingRequest(BaseModel):
    booking_id: str
    reason: Optional[str] = None
    actor: Actor = Actor.CUSTOMER


class RescheduleBookingRequest(BaseModel):
    booking_id: str
    new_date: date
    new_start: ClockMinutes
    new_end: ClockMinutes
    actor: Actor = Actor.CUSTOMER
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_order(self) -> "RescheduleBookingRequest":
        if self.new_start >= self.new_end:
            raise ValueError("Slot start must be before slot end")
        return self

    @property
    def window(self) -> SlotWindow:
        return SlotWindow(slot_date=self.new_date, start=self.new_start, end=self.new_end)


class StatusUpdateRequest(BaseModel):
    booking_id: str
    target_status: BookingStatus


class PriceQuoteRequest(BaseModel):
    """Pricing preview input; nothing is reserved."""
    service_id: str
    vehicle_body_type: str = "Sedan"
    subscription_tier: SubscriptionTier = SubscriptionTier.BASIC
    products: list[ProductLineItem] = Field(default_factory=list)
