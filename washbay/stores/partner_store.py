"""
Per-partner schedule and capacity stores.

Both are read-mostly singletons keyed by partner. When a partner has no
stored record, ``get`` returns the default policy without persisting it.
Every write bumps ``version`` and notifies invalidation listeners so that
callers caching reads can drop stale entries.
"""

import logging
import threading
from typing import Callable, Generic, TypeVar

from pydantic import BaseModel

from washbay.errors import InvalidRequest
from washbay.schemas.capacity_schema import CapacityPlan, ServiceCategory, default_capacity
from washbay.schemas.schedule_schema import WeeklySchedule, default_schedule

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)
InvalidationListener = Callable[[str], None]


class _PartnerStore(Generic[RecordT]):
    """Thread-safe in-memory store of one record per partner."""

    def __init__(self, default_factory: Callable[[str], RecordT]) -> None:
        self._default_factory = default_factory
        self._records: dict[str, RecordT] = {}
        self._lock = threading.RLock()
        self._version = 0
        self._listeners: list[InvalidationListener] = []

    @property
    def version(self) -> int:
        return self._version

    def get(self, partner_id: str) -> RecordT:
        """Return the partner's record, or the default policy if none is stored."""
        with self._lock:
            record = self._records.get(partner_id)
            if record is not None:
                return record.model_copy(deep=True)
        return self._default_factory(partner_id)

    def has(self, partner_id: str) -> bool:
        with self._lock:
            return partner_id in self._records

    def upsert(self, record: RecordT) -> RecordT:
        partner_id = record.partner_id  # type: ignore[attr-defined]
        with self._lock:
            self._records[partner_id] = record.model_copy(deep=True)
            self._version += 1
            listeners = list(self._listeners)
        logger.info("%s updated for partner %s", type(record).__name__, partner_id)
        for listener in listeners:
            listener(partner_id)
        return record

    def add_invalidation_listener(self, listener: InvalidationListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def reset(self) -> None:
        """Drop all stored records. Used by test fixtures for isolation."""
        with self._lock:
            self._records.clear()
            self._version += 1


class ScheduleStore(_PartnerStore[WeeklySchedule]):
    def __init__(self) -> None:
        super().__init__(default_schedule)


class CapacityStore(_PartnerStore[CapacityPlan]):
    def __init__(self) -> None:
        super().__init__(default_capacity)

    def set_counts(self, partner_id: str, counts: dict[str, int]) -> CapacityPlan:
        """Replace a partner's bays with generated bays per category."""
        normalized = {}
        for key, count in counts.items():
            try:
                normalized[ServiceCategory(key)] = count
            except ValueError:
                raise InvalidRequest(f"Unknown service category: {key!r}") from None
        return self.upsert(CapacityPlan.from_counts(partner_id, normalized))
