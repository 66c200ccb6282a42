"""Failure kinds raised by the booking engine.

Each error carries a stable ``kind`` string that API layers map to a
user-facing message and status code. Only ``AllocationTimeout`` is
retryable with the same request.
"""


class BookingEngineError(Exception):
    """Base class for every engine failure."""

    kind: str = "engine_error"
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PartnerClosed(BookingEngineError):
    """Requested day or time falls outside the partner's open schedule."""

    kind = "partner_closed"


class OutsideBookingWindow(BookingEngineError):
    """Requested date is in the past or beyond the advance-booking limit."""

    kind = "outside_booking_window"


class SlotUnavailable(BookingEngineError):
    """No free bay for the requested window, including lost races."""

    kind = "slot_unavailable"


class AllocationTimeout(BookingEngineError):
    """The ledger partition lock could not be acquired in time."""

    kind = "allocation_timeout"
    retryable = True


class InvalidStatusTransition(BookingEngineError):
    kind = "invalid_status_transition"


class CancellationWindowViolated(BookingEngineError):
    kind = "cancellation_window_violated"


class RescheduleLimitReached(BookingEngineError):
    kind = "reschedule_limit_reached"


class NotFound(BookingEngineError):
    """Referenced booking, partner or service does not exist."""

    kind = "not_found"


class InvalidRequest(BookingEngineError, ValueError):
    """Input failed validation before any scheduling logic ran."""

    kind = "invalid_request"
