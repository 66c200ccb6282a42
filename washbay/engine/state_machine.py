"""
Finite state machine for booking status.

Main path: booked -> in_progress -> completed. Pick-up/drop-off services
continue completed -> picked -> out_for_delivery -> delivered. Cancellation
is only reachable while the booking still holds its bay.

Usage:
    sm = BookingStateMachine(BookingStatus.BOOKED)
    sm.transition_to(BookingStatus.IN_PROGRESS)
    assert sm.current_status == BookingStatus.IN_PROGRESS
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from washbay.errors import InvalidStatusTransition
from washbay.schemas.booking_schema import BookingStatus

logger = logging.getLogger(__name__)

DELIVERY_SERVICE_TYPES = frozenset({"pick_by_me"})


class BookingTrigger(str, Enum):
    """Events that move a booking between statuses."""
    START = "start"
    COMPLETE = "complete"
    PICK_UP = "pick_up"
    DISPATCH = "dispatch"
    DELIVER = "deliver"
    CANCEL = "cancel"


@dataclass
class Transition:
    """A single valid status transition."""
    from_status: BookingStatus
    to_status: BookingStatus
    trigger: BookingTrigger
    guard: Optional[Callable[[str], bool]] = None


def _offers_delivery(service_type: str) -> bool:
    return service_type in DELIVERY_SERVICE_TYPES


class BookingStateMachine:
    """
    Status transitions for a single booking.

    Only the immediate successor of the current status is accepted;
    anything else raises ``InvalidStatusTransition`` naming the allowed
    targets.
    """

    TRANSITIONS: list[Transition] = [
        # --- Service ---
        Transition(BookingStatus.BOOKED, BookingStatus.IN_PROGRESS, BookingTrigger.START),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED, BookingTrigger.COMPLETE),

        # --- Delivery sub-path ---
        Transition(BookingStatus.COMPLETED, BookingStatus.PICKED, BookingTrigger.PICK_UP,
                   guard=_offers_delivery),
        Transition(BookingStatus.PICKED, BookingStatus.OUT_FOR_DELIVERY, BookingTrigger.DISPATCH,
                   guard=_offers_delivery),
        Transition(BookingStatus.OUT_FOR_DELIVERY, BookingStatus.DELIVERED, BookingTrigger.DELIVER,
                   guard=_offers_delivery),

        # --- Cancellation ---
        Transition(BookingStatus.BOOKED, BookingStatus.CANCELLED, BookingTrigger.CANCEL),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED, BookingTrigger.CANCEL),
    ]

    def __init__(self, status: BookingStatus = BookingStatus.BOOKED, service_type: str = "book_me") -> None:
        self._current_status = BookingStatus(status)
        self._service_type = service_type

    @property
    def current_status(self) -> BookingStatus:
        return self._current_status

    def _allowed(self) -> list[Transition]:
        return [
            t for t in self.TRANSITIONS
            if t.from_status == self._current_status
            and (t.guard is None or t.guard(self._service_type))
        ]

    def valid_targets(self) -> list[BookingStatus]:
        """Return every status reachable in one step."""
        return [t.to_status for t in self._allowed()]

    def can_transition(self, target: BookingStatus) -> bool:
        return BookingStatus(target) in self.valid_targets()

    def trigger_for(self, target: BookingStatus) -> BookingTrigger:
        """
        Return the trigger that moves the booking to ``target``.

        Raises:
            InvalidStatusTransition: If ``target`` is not an immediate successor.
        """
        target = BookingStatus(target)
        for t in self._allowed():
            if t.to_status == target:
                return t.trigger

        valid = [s.value for s in self.valid_targets()]
        raise InvalidStatusTransition(
            f"Cannot move a booking from '{self._current_status.value}' "
            f"to '{target.value}'. Valid next statuses: {valid}"
        )

    def transition_to(self, target: BookingStatus) -> BookingStatus:
        """Move to ``target`` and return it."""
        target = BookingStatus(target)
        trigger = self.trigger_for(target)
        logger.debug(
            "Status transition: %s -> %s (trigger: %s)",
            self._current_status.value, target.value, trigger.value,
        )
        self._current_status = target
        return target

    def is_terminal(self) -> bool:
        """No further transition is possible."""
        return not self._allowed()
