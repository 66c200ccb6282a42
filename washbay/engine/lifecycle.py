"""
Booking lifecycle manager.

Owns creation, cancellation, rescheduling and status advances. Creation
and rescheduling go through the reservation allocator; cancellation and
status writes go through the allocator's partition-locked commits. Only
``AllocationTimeout`` is retried here, a bounded number of times; every
other failure propagates unchanged.
"""

import secrets
import string
import uuid
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional, TypeVar

from washbay.config import settings
from washbay.engine.allocator import ReservationAllocator
from washbay.engine.pricing import calculate_price
from washbay.engine.state_machine import BookingStateMachine
from washbay.errors import (
    AllocationTimeout,
    CancellationWindowViolated,
    InvalidStatusTransition,
    NotFound,
    OutsideBookingWindow,
    PartnerClosed,
    RescheduleLimitReached,
)
from washbay.logging_context import get_request_logger
from washbay.schemas.booking_schema import (
    Actor,
    Booking,
    BookingStatus,
    CreateBookingRequest,
    PriceQuoteRequest,
    RescheduledSlot,
    SlotWindow,
    StatusChange,
)
from washbay.schemas.pricing_schema import PriceBreakdown
from washbay.schemas.schedule_schema import WeeklySchedule
from washbay.stores.ledger import BookingLedger
from washbay.stores.partner_store import ScheduleStore
from washbay.stores.service_catalog import ServiceCatalog
from washbay.utils import minutes_to_time

logger = get_request_logger(__name__)

T = TypeVar("T")

_BOOKING_NUMBER_ALPHABET = string.ascii_uppercase + string.digits

# Statuses that only their own operation may set
_DEDICATED_OPERATIONS = {
    BookingStatus.CANCELLED: "cancel",
    BookingStatus.RESCHEDULED: "reschedule",
}


def generate_booking_number(now: datetime) -> str:
    """Human-facing booking reference: ``BK-YYYYMM-XXXXXX``."""
    suffix = "".join(secrets.choice(_BOOKING_NUMBER_ALPHABET) for _ in range(6))
    return f"BK-{now:%Y%m}-{suffix}"


def slot_start_datetime(slot_date: date, slot_start: int) -> datetime:
    return datetime.combine(slot_date, time()) + timedelta(minutes=slot_start)


def _log_status(
    current: Booking, target: BookingStatus, now: datetime, actor: Optional[Actor] = None
) -> list[StatusChange]:
    """Validate the move to ``target`` and return the extended status log."""
    trigger = BookingStateMachine(current.status, current.service_type).trigger_for(target)
    entry = StatusChange(status=target, changed_at=now, trigger=trigger.value, actor=actor)
    return [*current.status_history, entry]


class BookingLifecycleManager:
    """
    Applies the booking state machine and its guards.

    ``clock`` returns the current local time; tests inject a fixed clock to
    exercise the advance-booking and cancellation boundaries.
    """

    def __init__(
        self,
        ledger: BookingLedger,
        schedules: ScheduleStore,
        services: ServiceCatalog,
        allocator: ReservationAllocator,
        clock: Optional[Callable[[], datetime]] = None,
        max_retries: Optional[int] = None,
        cancellation_window_hours: Optional[int] = None,
        max_reschedules: Optional[int] = None,
        allow_rescheduling: Optional[bool] = None,
    ) -> None:
        self.ledger = ledger
        self.schedules = schedules
        self.services = services
        self.allocator = allocator
        self.clock = clock or datetime.now
        self.max_retries = max_retries if max_retries is not None else settings.allocation.max_retries
        self.cancellation_window = timedelta(
            hours=cancellation_window_hours
            if cancellation_window_hours is not None
            else settings.booking_rules.cancellation_window_hours
        )
        self.max_reschedules = (
            max_reschedules if max_reschedules is not None else settings.booking_rules.max_reschedules
        )
        self.allow_rescheduling = (
            allow_rescheduling
            if allow_rescheduling is not None
            else settings.booking_rules.allow_rescheduling
        )

    # --- Guards ---

    def _with_retry(self, operation: Callable[[], T]) -> T:
        for attempt in range(self.max_retries + 1):
            try:
                return operation()
            except AllocationTimeout:
                if attempt == self.max_retries:
                    raise
                logger.warning(
                    "Allocation timed out (attempt %d of %d), retrying",
                    attempt + 1, self.max_retries + 1,
                )
        raise AssertionError("unreachable")

    def check_booking_window(self, schedule: WeeklySchedule, window: SlotWindow) -> None:
        """
        Validate the day is open and within the advance-booking range.

        Raises:
            PartnerClosed: The partner does not open on that day.
            OutsideBookingWindow: The date is in the past, the start time has
                already passed today, or the date is beyond ``max_advance_days``.
        """
        day = schedule.day_for(window.slot_date)
        if not day.is_open:
            raise PartnerClosed(f"Partner is not available on {day.day_name}s.")

        now = self.clock()
        days_in_advance = (window.slot_date - now.date()).days
        if days_in_advance < 0:
            raise OutsideBookingWindow("Cannot book in the past.")
        if days_in_advance > schedule.max_advance_days:
            raise OutsideBookingWindow(
                f"Bookings can only be made up to {schedule.max_advance_days} days in advance."
            )
        if slot_start_datetime(window.slot_date, window.start) < now:
            raise OutsideBookingWindow(
                f"The {minutes_to_time(window.start)} slot has already started."
            )

    def _check_active(self, booking: Booking, operation: str) -> None:
        if not booking.is_active:
            raise InvalidStatusTransition(
                f"Cannot {operation} a booking that is '{booking.status.value}'."
            )

    def _check_reschedule_limit(self, booking: Booking) -> None:
        if not self.allow_rescheduling:
            raise RescheduleLimitReached("Rescheduling is not available; please cancel and rebook.")
        if booking.reschedule_count >= self.max_reschedules:
            raise RescheduleLimitReached(
                f"Booking {booking.booking_number} has already been rescheduled "
                f"{booking.reschedule_count} time(s); the limit is {self.max_reschedules}."
            )

    # --- Operations ---

    def quote(self, request: PriceQuoteRequest) -> PriceBreakdown:
        """Price a service without reserving anything."""
        service = self.services.get(request.service_id)
        return calculate_price(
            service.body_type_pricing,
            request.vehicle_body_type,
            request.subscription_tier,
            request.products,
        )

    def create(self, request: CreateBookingRequest) -> Booking:
        """
        Validate, price and reserve a new booking.

        Raises:
            NotFound: Unknown service, or the service belongs to another partner.
            PartnerClosed, OutsideBookingWindow: The window fails the schedule guards.
            SlotUnavailable: No bay is free for the window.
            AllocationTimeout: The ledger stayed contended through every retry.
        """
        service = self.services.get(request.service_id)
        if service.partner_id != request.partner_id:
            raise NotFound(
                f"Service {request.service_id} is not offered by partner {request.partner_id}."
            )

        schedule = self.schedules.get(request.partner_id)
        window = request.window
        self.check_booking_window(schedule, window)

        pricing = calculate_price(
            service.body_type_pricing,
            request.vehicle_body_type,
            request.subscription_tier,
            request.products,
        )
        now = self.clock()
        draft = Booking(
            booking_id=uuid.uuid4().hex,
            booking_number=generate_booking_number(now),
            partner_id=request.partner_id,
            customer_id=request.customer_id,
            service_id=service.service_id,
            service_name=service.name,
            service_type=service.service_type,
            category=request.category or service.category,
            slot_date=window.slot_date,
            slot_start=window.start,
            slot_end=window.end,
            status=BookingStatus.BOOKED,
            pricing=pricing,
            vehicle_body_type=request.vehicle_body_type,
            subscription_tier=request.subscription_tier,
            products=list(request.products),
            notes=request.notes,
            status_history=[StatusChange(status=BookingStatus.BOOKED, changed_at=now)],
            created_at=now,
            updated_at=now,
        )

        booking = self._with_retry(lambda: self.allocator.claim(draft))
        logger.info(
            "Booking created: %s for customer %s on %s (%s)",
            booking.booking_number, booking.customer_id, window.label(), booking.bay_id,
        )
        return booking

    def cancel(
        self, booking_id: str, actor: Actor = Actor.CUSTOMER, reason: Optional[str] = None
    ) -> Booking:
        """
        Cancel a booking and free its bay.

        Raises:
            NotFound: Unknown booking.
            InvalidStatusTransition: The booking no longer holds a bay.
            CancellationWindowViolated: Less than the cancellation window
                remains before the slot starts.
        """
        actor = Actor(actor)
        now = self.clock()

        def _cancel(current: Booking) -> Booking:
            self._check_active(current, "cancel")

            lead_time = slot_start_datetime(current.slot_date, current.slot_start) - now
            if lead_time < self.cancellation_window:
                hours = int(self.cancellation_window.total_seconds() // 3600)
                raise CancellationWindowViolated(
                    f"Bookings can only be cancelled {hours} hours in advance."
                )

            history = _log_status(current, BookingStatus.CANCELLED, now, actor)
            return current.model_copy(update={
                "status": BookingStatus.CANCELLED,
                "status_history": history,
                "cancelled_at": now,
                "cancelled_by": actor,
                "cancellation_reason": reason or f"Cancelled by {actor.value}",
                "updated_at": now,
            })

        booking = self._with_retry(lambda: self.allocator.release(booking_id, _cancel))
        logger.info("Booking cancelled: %s by %s", booking.booking_number, actor.value)
        return booking

    def reschedule(
        self,
        booking_id: str,
        new_window: SlotWindow,
        actor: Actor = Actor.CUSTOMER,
        reason: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking to a new window, keeping its id.

        The new bay is secured before the old one is let go; if the new
        window cannot be claimed the booking is left exactly as it was.

        Raises:
            NotFound: Unknown booking.
            InvalidStatusTransition: The booking no longer holds a bay.
            RescheduleLimitReached: Rescheduling is switched off, or the booking
                has been moved too many times.
            PartnerClosed, OutsideBookingWindow, SlotUnavailable,
            AllocationTimeout: As for ``create``.
        """
        actor = Actor(actor)
        existing = self.ledger.get(booking_id)
        self._check_active(existing, "reschedule")
        self._check_reschedule_limit(existing)
        self.check_booking_window(self.schedules.get(existing.partner_id), new_window)
        now = self.clock()

        def _record_move(current: Booking) -> Booking:
            self._check_active(current, "reschedule")
            self._check_reschedule_limit(current)
            previous = RescheduledSlot(
                slot_date=current.slot_date,
                slot_start=current.slot_start,
                slot_end=current.slot_end,
                bay_id=current.bay_id,
                rescheduled_at=now,
                rescheduled_by=actor,
                reason=reason,
            )
            return current.model_copy(update={
                "rescheduled_from_date": current.slot_date,
                "rescheduled_from_start": current.slot_start,
                "rescheduled_from_end": current.slot_end,
                "rescheduled_at": now,
                "rescheduled_by": actor,
                "reschedule_count": current.reschedule_count + 1,
                "reschedule_history": [*current.reschedule_history, previous],
                "notes": reason or current.notes,
                "updated_at": now,
            })

        booking = self._with_retry(
            lambda: self.allocator.reclaim(booking_id, new_window, _record_move)
        )
        logger.info(
            "Booking rescheduled: %s to %s by %s",
            booking.booking_number, new_window.label(), actor.value,
        )
        return booking

    def advance_status(self, booking_id: str, target: BookingStatus) -> Booking:
        """
        Move a booking to the next status in its sequence.

        Cancellation has its own guards and must go through ``cancel``.

        Raises:
            NotFound: Unknown booking.
            InvalidStatusTransition: ``target`` is not the immediate successor.
        """
        target = BookingStatus(target)
        if target in _DEDICATED_OPERATIONS:
            raise InvalidStatusTransition(
                f"Status '{target.value}' is set by the {_DEDICATED_OPERATIONS[target]} "
                "operation, not by a status update."
            )
        now = self.clock()

        def _advance(current: Booking) -> Booking:
            update: dict = {
                "status": target,
                "status_history": _log_status(current, target, now),
                "updated_at": now,
            }
            if target == BookingStatus.IN_PROGRESS:
                update["started_at"] = now
            elif target == BookingStatus.COMPLETED:
                update["completed_at"] = now
            elif target == BookingStatus.DELIVERED:
                update["delivered_at"] = now
            return current.model_copy(update=update)

        booking = self._with_retry(lambda: self.allocator.commit(booking_id, _advance))
        logger.info("Booking %s status -> %s", booking.booking_number, target.value)
        return booking
