from washbay.engine.allocator import ReservationAllocator
from washbay.engine.engine import BookingEngine
from washbay.engine.lifecycle import BookingLifecycleManager
from washbay.engine.pricing import calculate_price
from washbay.engine.slot_calculator import calculate_windows
from washbay.engine.state_machine import BookingStateMachine, BookingTrigger

__all__ = [
    "BookingEngine",
    "BookingLifecycleManager",
    "BookingStateMachine",
    "BookingTrigger",
    "ReservationAllocator",
    "calculate_price",
    "calculate_windows",
]
