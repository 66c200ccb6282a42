"""Shared test fixtures and helpers."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import pytest

from washbay.engine.engine import BookingEngine
from washbay.schemas.booking_schema import Booking, BookingStatus, SlotWindow
from washbay.schemas.capacity_schema import ServiceCategory
from washbay.schemas.pricing_schema import BodyTypePrice, PriceBreakdown, ServiceDefinition
from washbay.schemas.schedule_schema import default_schedule
from washbay.tools import runtime

PARTNER = "partner-1"

# Monday 10 March 2025, 09:00 local
NOW = datetime(2025, 3, 10, 9, 0)
MONDAY = date(2025, 3, 10)
TUESDAY = date(2025, 3, 11)
WEDNESDAY = date(2025, 3, 12)
SATURDAY = date(2025, 3, 15)
SUNDAY = date(2025, 3, 16)


class FixedClock:
    """Callable clock whose time the test moves by hand."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def engine(clock):
    return BookingEngine(clock=clock, lock_timeout=0.5, max_retries=1)


@pytest.fixture
def wash_service(engine):
    return engine.services.register(make_service())


@pytest.fixture
def delivery_service(engine):
    return engine.services.register(
        make_service(service_id="svc-collect", name="Collect & Wash", service_type="pick_by_me")
    )


@pytest.fixture
def schedule():
    return default_schedule(PARTNER)


@pytest.fixture
def tools_clock():
    """Fresh shared engine for the tool functions, on a fixed clock."""
    fixed = FixedClock()
    runtime.reset(clock=fixed)
    yield fixed
    runtime.reset()


def make_service(
    service_id: str = "svc-wash",
    partner_id: str = PARTNER,
    name: str = "Exterior Wash",
    category: ServiceCategory = ServiceCategory.WASH,
    service_type: str = "book_me",
    prices: Optional[dict[str, str]] = None,
) -> ServiceDefinition:
    """Helper to create a ServiceDefinition priced at 20.00 for a Sedan."""
    prices = prices or {"Sedan": "20.00", "SUV": "25.00"}
    return ServiceDefinition(
        service_id=service_id,
        partner_id=partner_id,
        name=name,
        category=category,
        service_type=service_type,
        body_type_pricing=[
            BodyTypePrice(body_type=body, price=Decimal(price)) for body, price in prices.items()
        ],
    )


def make_pricing(amount: str = "20.00") -> PriceBreakdown:
    value = Decimal(amount)
    return PriceBreakdown(
        base_price=value,
        subscription_discount=Decimal("0.00"),
        products_total=Decimal("0.00"),
        subtotal=value,
        platform_fee=Decimal("0.00"),
        partner_payout=value,
        final_price=value,
    )


def make_booking(
    start: str = "10:00",
    end: str = "10:30",
    slot_date: date = TUESDAY,
    bay_id: Optional[str] = None,
    status: BookingStatus = BookingStatus.BOOKED,
    category: ServiceCategory = ServiceCategory.WASH,
    partner_id: str = PARTNER,
    booking_id: Optional[str] = None,
) -> Booking:
    """Helper to create a Booking record with sensible defaults."""
    window = make_window(start, end, slot_date)
    return Booking(
        booking_id=booking_id or uuid.uuid4().hex,
        booking_number="BK-202503-TEST01",
        partner_id=partner_id,
        customer_id="cust-1",
        service_id="svc-wash",
        service_name="Exterior Wash",
        category=category,
        slot_date=window.slot_date,
        slot_start=window.start,
        slot_end=window.end,
        bay_id=bay_id,
        status=status,
        pricing=make_pricing(),
        created_at=NOW,
    )


def make_window(start: str, end: str, slot_date: date = TUESDAY) -> SlotWindow:
    return SlotWindow(slot_date=slot_date, start=start, end=end)
