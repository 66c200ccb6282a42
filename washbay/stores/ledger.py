"""
Booking ledger: the system of record for placed bookings.

Contention is scoped to a partition key of ``(partner_id, category, date)``.
Any write that could change which bays are occupied in a partition must
hold that partition's lock; partitions are independent and proceed in
parallel. Lock acquisition is bounded and fails with ``AllocationTimeout``.

Records handed out are deep copies. Bookings are never deleted. A
partition lock only exists while some caller holds or waits on it.
"""

import logging
import threading
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable, Iterator, Optional

from washbay.errors import AllocationTimeout, NotFound
from washbay.schemas.booking_schema import ACTIVE_STATUSES, Booking, BookingStatus
from washbay.schemas.capacity_schema import ServiceCategory

logger = logging.getLogger(__name__)

PartitionKey = tuple[str, str, date]


def partition_key(partner_id: str, category: ServiceCategory, slot_date: date) -> PartitionKey:
    return (partner_id, ServiceCategory(category).value, slot_date)


@dataclass
class _PartitionLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class BookingLedger:
    """Thread-safe in-memory booking store with per-partition locks."""

    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._lock = threading.RLock()
        self._partition_locks: dict[PartitionKey, _PartitionLock] = {}

    # --- Contention control ---

    def _check_out(self, key: PartitionKey) -> threading.Lock:
        with self._lock:
            entry = self._partition_locks.get(key)
            if entry is None:
                entry = self._partition_locks[key] = _PartitionLock()
            entry.users += 1
            return entry.lock

    def _check_in(self, key: PartitionKey) -> None:
        with self._lock:
            entry = self._partition_locks[key]
            entry.users -= 1
            if entry.users == 0:
                del self._partition_locks[key]

    @property
    def open_partitions(self) -> int:
        """Partitions with a current holder or waiter."""
        with self._lock:
            return len(self._partition_locks)

    @contextmanager
    def partition(self, key: PartitionKey, timeout: float) -> Iterator[None]:
        """Hold the lock for one partition, waiting at most ``timeout`` seconds."""
        lock = self._check_out(key)
        try:
            if not lock.acquire(timeout=timeout):
                logger.warning("Timed out after %.2fs waiting for partition %s", timeout, key)
                raise AllocationTimeout(
                    f"Could not reserve {key[1]} capacity on {key[2].isoformat()} in time; "
                    "please retry."
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._check_in(key)

    @contextmanager
    def partitions(self, keys: Iterable[PartitionKey], timeout: float) -> Iterator[None]:
        """Hold several partition locks, acquired in sorted order."""
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                stack.enter_context(self.partition(key, timeout))
            yield

    # --- Reads ---

    def get(self, booking_id: str) -> Booking:
        with self._lock:
            booking = self._bookings.get(booking_id)
            if booking is None:
                raise NotFound(f"Booking {booking_id} not found.")
            return booking.model_copy(deep=True)

    def active_bookings(
        self,
        partner_id: str,
        slot_date: date,
        category: ServiceCategory,
        exclude_booking_id: Optional[str] = None,
    ) -> list[Booking]:
        """Bookings currently holding a bay in one partition, ordered by start."""
        category = ServiceCategory(category)
        with self._lock:
            found = [
                b.model_copy(deep=True)
                for b in self._bookings.values()
                if b.partner_id == partner_id
                and b.slot_date == slot_date
                and b.category == category
                and b.status in ACTIVE_STATUSES
                and b.booking_id != exclude_booking_id
            ]
        return sorted(found, key=lambda b: (b.slot_start, b.booking_id))

    def list_bookings(
        self,
        partner_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
        category: Optional[ServiceCategory] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Booking]:
        """Filter bookings; all bounds are inclusive."""
        with self._lock:
            found = [
                b.model_copy(deep=True)
                for b in self._bookings.values()
                if (partner_id is None or b.partner_id == partner_id)
                and (customer_id is None or b.customer_id == customer_id)
                and (status is None or b.status == status)
                and (category is None or b.category == category)
                and (date_from is None or b.slot_date >= date_from)
                and (date_to is None or b.slot_date <= date_to)
            ]
        return sorted(found, key=lambda b: (b.slot_date, b.slot_start, b.booking_id))

    # --- Writes ---

    def insert(self, booking: Booking) -> Booking:
        with self._lock:
            if booking.booking_id in self._bookings:
                raise ValueError(f"Booking {booking.booking_id} already exists")
            self._bookings[booking.booking_id] = booking.model_copy(deep=True)
        return booking

    def replace(self, booking: Booking) -> Booking:
        with self._lock:
            if booking.booking_id not in self._bookings:
                raise NotFound(f"Booking {booking.booking_id} not found.")
            self._bookings[booking.booking_id] = booking.model_copy(deep=True)
        return booking

    def update(
        self, booking_id: str, mutate: Callable[[Booking], Booking], timeout: float
    ) -> Booking:
        """
        Apply ``mutate`` to the current record under its partition lock.

        The booking is re-read after the lock is taken. If a concurrent
        reschedule moved it to another partition in the meantime, the
        lookup is repeated against the new partition.
        """
        while True:
            key = self.get(booking_id).partition_key
            with self.partition(key, timeout):
                current = self.get(booking_id)
                if current.partition_key != key:
                    continue
                return self.replace(mutate(current))

    def reset(self) -> None:
        """Clear all bookings. Used by test fixtures for isolation."""
        with self._lock:
            self._bookings.clear()
