"""
Booking operations over the shared booking engine.

Each function validates its input, runs one lifecycle operation and returns
a result dict. Engine failures come back as ``success: False`` with the
failure ``error`` kind; they are never raised to the caller.
"""

import logging
from datetime import date
from typing import Optional, TypedDict, Union

from pydantic import ValidationError

from washbay.errors import BookingEngineError
from washbay.logging_context import get_request_logger, new_request_id
from washbay.schemas.booking_schema import (
    Booking,
    BookingStatus,
    CancelBookingRequest,
    CreateBookingRequest,
    PriceQuoteRequest,
    RescheduleBookingRequest,
    StatusUpdateRequest,
)
from washbay.schemas.capacity_schema import ServiceCategory
from washbay.tools import runtime
from washbay.tools.runtime import failure, get_engine

logger = get_request_logger(__name__)


class BookingResult(TypedDict, total=False):
    """Result from create_booking, cancel_booking, reschedule_booking or update_booking_status."""

    success: bool
    message: str
    error: str
    retryable: bool
    booking: dict


class BookingListResult(TypedDict, total=False):
    success: bool
    message: str
    error: str
    bookings: list[dict]


class QuoteResult(TypedDict, total=False):
    """Result from quote_price. Amounts are decimal strings."""

    success: bool
    message: str
    error: str
    pricing: dict


def _dump(booking: Booking) -> dict:
    return booking.model_dump(mode="json")


def create_booking(
    partner_id: str,
    customer_id: str,
    service_id: str,
    date: Union[str, date],
    start_time: str,
    end_time: str,
    vehicle_body_type: str = "Sedan",
    category: Optional[str] = None,
    subscription_tier: str = "basic",
    products: Optional[list[dict]] = None,
    notes: Optional[str] = None,
) -> BookingResult:
    """Reserve a bay for a customer and return the confirmed booking."""
    new_request_id()
    try:
        request = CreateBookingRequest(
            partner_id=partner_id,
            customer_id=customer_id,
            service_id=service_id,
            category=category,
            date=date,
            start=start_time,
            end=end_time,
            vehicle_body_type=vehicle_body_type,
            subscription_tier=subscription_tier,
            products=products or [],
            notes=notes,
        )
        booking = get_engine().lifecycle.create(request)
    except (BookingEngineError, ValidationError) as exc:
        return failure(exc)

    return {
        "success": True,
        "message": (
            f"Booking confirmed. Reference number: {booking.booking_number}. "
            f"{booking.service_name} on {booking.slot_date.isoformat()} "
            f"{booking.start_time}-{booking.end_time} in {booking.bay_name}."
        ),
        "booking": _dump(booking),
    }


def cancel_booking(
    booking_id: str, reason: Optional[str] = None, actor: str = "customer"
) -> BookingResult:
    """Cancel a booking and release its bay."""
    new_request_id()
    try:
        request = CancelBookingRequest(booking_id=booking_id, reason=reason, actor=actor)
        booking = get_engine().lifecycle.cancel(request.booking_id, request.actor, request.reason)
    except (BookingEngineError, ValidationError) as exc:
        return failure(exc)

    return {
        "success": True,
        "message": f"Booking {booking.booking_number} has been cancelled.",
        "booking": _dump(booking),
    }


def reschedule_booking(
    booking_id: str,
    new_date: Union[str, date],
    new_start_time: str,
    new_end_time: str,
    actor: str = "customer",
    reason: Optional[str] = None,
) -> BookingResult:
    """Move a booking to a new window; on failure the booking is unchanged."""
    new_request_id()
    try:
        request = RescheduleBookingRequest(
            booking_id=booking_id,
            new_date=new_date,
            new_start=new_start_time,
            new_end=new_end_time,
            actor=actor,
            reason=reason,
        )
        booking = get_engine().lifecycle.reschedule(
            request.booking_id, request.window, request.actor, request.reason
        )
    except (BookingEngineError, ValidationError) as exc:
        return failure(exc)

    return {
        "success": True,
        "message": (
            f"Booking {booking.booking_number} rescheduled to "
            f"{booking.slot_date.isoformat()} {booking.start_time}-{booking.end_time}."
        ),
        "booking": _dump(booking),
    }


def update_booking_status(booking_id: str, status: str) -> BookingResult:
    """Advance a booking to its next status (in_progress, completed, ...)."""
    new_request_id()
    try:
        request = StatusUpdateRequest(booking_id=booking_id, target_status=status)
        booking = get_engine().lifecycle.advance_status(request.booking_id, request.target_status)
    except (BookingEngineError, ValidationError) as exc:
        return failure(exc)

    return {
        "success": True,
        "message": f"Booking {booking.booking_number} is now {booking.status.value}.",
        "booking": _dump(booking),
    }


def get_booking(booking_id: str) -> Optional[dict]:
    """Retrieve a booking by id."""
    try:
        return _dump(get_engine().ledger.get(booking_id))
    except BookingEngineError:
        return None


def list_bookings(
    partner_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> BookingListResult:
    """Filter bookings by partner, customer, status, category and date range."""
    try:
        bookings = get_engine().ledger.list_bookings(
            partner_id=partner_id,
            customer_id=customer_id,
            status=BookingStatus(status) if status else None,
            category=ServiceCategory(category) if category else None,
            date_from=date.fromisoformat(date_from) if date_from else None,
            date_to=date.fromisoformat(date_to) if date_to else None,
        )
    except ValueError as exc:
        logger.info("Invalid booking filter: %s", exc)
        return {"success": False, "error": "invalid_request", "message": f"Invalid filter - {exc}."}

    return {
        "success": True,
        "message": f"{len(bookings)} booking(s) found.",
        "bookings": [_dump(b) for b in bookings],
    }


def quote_price(
    service_id: str,
    vehicle_body_type: str = "Sedan",
    subscription_tier: str = "basic",
    products: Optional[list[dict]] = None,
) -> QuoteResult:
    """Price a service for a body type without reserving a bay."""
    try:
        request = PriceQuoteRequest(
            service_id=service_id,
            vehicle_body_type=vehicle_body_type,
            subscription_tier=subscription_tier,
            products=products or [],
        )
        breakdown = get_engine().lifecycle.quote(request)
    except (BookingEngineError, ValidationError) as exc:
        return failure(exc)

    return {
        "success": True,
        "message": f"Total {breakdown.final_price} for a {vehicle_body_type}.",
        "pricing": breakdown.model_dump(mode="json"),
    }


def reset() -> None:
    """Clear all bookings, schedules and services. Used by test fixtures for isolation."""
    runtime.reset()
