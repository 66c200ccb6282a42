"""
Reservation allocator: binds a requested window to a specific bay.

Every claim re-runs the slot calculator's overlap test against the
current ledger while holding the partition lock for
``(partner_id, category, date)``, so two concurrent requests for
overlapping windows can never end up on the same bay. The loser gets
``SlotUnavailable`` and must re-query availability; a lock wait that runs
out gets ``AllocationTimeout`` and may retry the same request.
"""

from typing import Callable, Optional

from washbay.config import settings
from washbay.engine.slot_calculator import free_bays, window_on_grid, window_within_open_hours
from washbay.errors import PartnerClosed, SlotUnavailable
from washbay.logging_context import get_request_logger
from washbay.schemas.booking_schema import Booking, SlotWindow
from washbay.schemas.capacity_schema import Bay, ServiceCategory
from washbay.schemas.schedule_schema import WeeklySchedule
from washbay.stores.ledger import BookingLedger, partition_key
from washbay.stores.partner_store import CapacityStore, ScheduleStore

logger = get_request_logger(__name__)

BookingMutation = Callable[[Booking], Booking]


class ReservationAllocator:
    """Atomic bay assignment on top of the booking ledger."""

    def __init__(
        self,
        ledger: BookingLedger,
        schedules: ScheduleStore,
        capacities: CapacityStore,
        lock_timeout: Optional[float] = None,
        step_minutes: Optional[int] = None,
    ) -> None:
        self.ledger = ledger
        self.schedules = schedules
        self.capacities = capacities
        self.lock_timeout = (
            lock_timeout if lock_timeout is not None else settings.allocation.lock_timeout_sec
        )
        self.step_minutes = (
            step_minutes if step_minutes is not None else settings.booking_rules.slot_step_minutes
        )

    def check_window(self, schedule: WeeklySchedule, window: SlotWindow) -> None:
        """Reject windows the slot calculator would never offer."""
        if not window_within_open_hours(schedule, window.slot_date, window.start, window.end):
            raise PartnerClosed(f"Partner is not open for {window.label()}.")
        if not window_on_grid(schedule, window.slot_date, window.start, window.end, self.step_minutes):
            raise SlotUnavailable(
                f"{window.label()} is not a bookable window; "
                f"starts must fall on the {self.step_minutes}-minute grid."
            )

    def _pick_bay(
        self,
        partner_id: str,
        category: ServiceCategory,
        window: SlotWindow,
        exclude_booking_id: Optional[str] = None,
    ) -> Bay:
        schedule = self.schedules.get(partner_id)
        capacity = self.capacities.get(partner_id)
        current = self.ledger.active_bookings(
            partner_id, window.slot_date, category, exclude_booking_id=exclude_booking_id
        )
        candidates = free_bays(
            capacity, current, category, window.start, window.end, schedule.buffer_minutes
        )
        if not candidates:
            logger.warning(
                "No free %s bay for partner %s at %s", category.value, partner_id, window.label()
            )
            raise SlotUnavailable(
                f"No available bays for {window.label()}. Please choose another time."
            )
        return candidates[0]

    def claim(self, draft: Booking) -> Booking:
        """
        Reserve the lowest-ordered free bay for a new booking and insert it.

        Raises:
            PartnerClosed: The window is outside the partner's open hours.
            SlotUnavailable: The window is off-grid or no bay is free at commit time.
            AllocationTimeout: The partition lock was not acquired in time.
        """
        schedule = self.schedules.get(draft.partner_id)
        window = draft.window
        self.check_window(schedule, window)

        with self.ledger.partition(draft.partition_key, self.lock_timeout):
            bay = self._pick_bay(draft.partner_id, draft.category, window)
            booking = draft.model_copy(update={"bay_id": bay.bay_id, "bay_name": bay.display_name})
            self.ledger.insert(booking)

        logger.info(
            "Claimed %s for booking %s at %s", bay.bay_id, booking.booking_id, window.label()
        )
        return booking

    def reclaim(self, booking_id: str, window: SlotWindow, mutate: BookingMutation) -> Booking:
        """
        Move an existing booking to ``window`` on a freshly claimed bay.

        Both the old and the new partition are locked while the new bay is
        chosen, and the move is a single ledger write: the old bay is freed
        in the same step that the new one is taken. ``mutate`` runs under
        the locks on the current record and may raise to abort the move.
        """
        while True:
            current = self.ledger.get(booking_id)
            old_key = current.partition_key
            new_key = partition_key(current.partner_id, current.category, window.slot_date)
            self.check_window(self.schedules.get(current.partner_id), window)

            with self.ledger.partitions([old_key, new_key], self.lock_timeout):
                current = self.ledger.get(booking_id)
                if current.partition_key != old_key:
                    continue
                prepared = mutate(current)
                bay = self._pick_bay(
                    current.partner_id, current.category, window, exclude_booking_id=booking_id
                )
                moved = prepared.model_copy(update={
                    "slot_date": window.slot_date,
                    "slot_start": window.start,
                    "slot_end": window.end,
                    "bay_id": bay.bay_id,
                    "bay_name": bay.display_name,
                })
                self.ledger.replace(moved)

            logger.info(
                "Moved booking %s to %s on %s", booking_id, window.label(), bay.bay_id
            )
            return moved

    def release(self, booking_id: str, mutate: BookingMutation) -> Booking:
        """
        Apply a status write that takes the booking out of the active set.

        The bay is free for other claims as soon as the write lands.
        """
        def _release(current: Booking) -> Booking:
            updated = mutate(current)
            if updated.is_active:
                raise ValueError(f"Release of {booking_id} left it in active status {updated.status}")
            return updated

        released = self.ledger.update(booking_id, _release, self.lock_timeout)
        logger.info("Released %s held by booking %s", released.bay_id, booking_id)
        return released

    def commit(self, booking_id: str, mutate: BookingMutation) -> Booking:
        """Apply any other status write under the booking's partition lock."""
        return self.ledger.update(booking_id, mutate, self.lock_timeout)
