"""Tests for booking creation, cancellation, rescheduling and status advances."""

import re
from datetime import date, datetime
from decimal import Decimal

import pytest

from washbay.engine.engine import BookingEngine
from washbay.errors import (
    AllocationTimeout,
    CancellationWindowViolated,
    InvalidStatusTransition,
    NotFound,
    OutsideBookingWindow,
    PartnerClosed,
    RescheduleLimitReached,
    SlotUnavailable,
)
from washbay.schemas.booking_schema import (
    Actor,
    AvailabilityQuery,
    BookingStatus,
    CreateBookingRequest,
    PriceQuoteRequest,
)
from washbay.schemas.capacity_schema import ServiceCategory
from washbay.schemas.pricing_schema import ProductLineItem, SubscriptionTier
from tests.conftest import (
    MONDAY,
    PARTNER,
    SATURDAY,
    SUNDAY,
    TUESDAY,
    WEDNESDAY,
    make_service,
    make_window,
)


def make_request(
    start: str = "10:00",
    end: str = "10:30",
    slot_date: date = TUESDAY,
    service_id: str = "svc-wash",
    customer_id: str = "cust-1",
    **kwargs,
) -> CreateBookingRequest:
    """Helper to create a CreateBookingRequest for the test partner."""
    return CreateBookingRequest(
        partner_id=PARTNER,
        customer_id=customer_id,
        service_id=service_id,
        date=slot_date,
        start=start,
        end=end,
        **kwargs,
    )


def _free_at(engine, slot_date: date, start: str) -> int:
    response = engine.availability(AvailabilityQuery(partner_id=PARTNER, date=slot_date))
    for window in response.windows:
        if window.start_time == start:
            return window.free_bay_count
    return 0


@pytest.fixture
def lifecycle(engine, wash_service):
    return engine.lifecycle


class TestCreate:
    def test_creates_booked_record(self, lifecycle):
        booking = lifecycle.create(make_request())
        assert booking.status == BookingStatus.BOOKED
        assert booking.bay_id == "bay-w1"
        assert booking.category == ServiceCategory.WASH
        assert booking.service_name == "Exterior Wash"
        assert booking.start_time == "10:00"
        assert booking.end_time == "10:30"

    def test_booking_number_format(self, lifecycle):
        booking = lifecycle.create(make_request())
        assert re.fullmatch(r"BK-202503-[A-Z0-9]{6}", booking.booking_number)

    def test_booking_is_priced(self, lifecycle):
        booking = lifecycle.create(make_request(vehicle_body_type="SUV"))
        assert booking.pricing.base_price == Decimal("25.00")
        assert booking.pricing.final_price == Decimal("26.25")

    def test_premium_with_products(self, lifecycle):
        booking = lifecycle.create(make_request(
            subscription_tier=SubscriptionTier.PREMIUM,
            products=[ProductLineItem(product_id="wax", price=Decimal("10.00"))],
        ))
        assert booking.pricing.subtotal == Decimal("28.00")
        assert booking.pricing.final_price == Decimal("29.40")

    def test_reduces_availability(self, engine, lifecycle):
        lifecycle.create(make_request())
        assert _free_at(engine, TUESDAY, "10:15") == 2
        assert _free_at(engine, TUESDAY, "10:45") == 3

    def test_unknown_service(self, lifecycle):
        with pytest.raises(NotFound):
            lifecycle.create(make_request(service_id="svc-missing"))

    def test_service_of_other_partner(self, engine, lifecycle):
        engine.services.register(make_service(service_id="svc-other", partner_id="partner-2"))
        with pytest.raises(NotFound):
            lifecycle.create(make_request(service_id="svc-other"))

    def test_closed_day(self, lifecycle):
        with pytest.raises(PartnerClosed):
            lifecycle.create(make_request(slot_date=SUNDAY))

    def test_full_window(self, lifecycle):
        for n in range(3):
            lifecycle.create(make_request(customer_id=f"cust-{n}"))
        with pytest.raises(SlotUnavailable):
            lifecycle.create(make_request(customer_id="cust-late"))


class TestAdvanceBookingWindow:
    def test_last_bookable_day(self, lifecycle):
        # 14 days after Monday 10 March
        booking = lifecycle.create(make_request(slot_date=date(2025, 3, 24)))
        assert booking.slot_date == date(2025, 3, 24)

    def test_one_day_beyond_limit(self, lifecycle):
        with pytest.raises(OutsideBookingWindow):
            lifecycle.create(make_request(slot_date=date(2025, 3, 25)))

    def test_yesterday(self, lifecycle, clock):
        clock.now = datetime(2025, 3, 11, 9, 0)
        with pytest.raises(OutsideBookingWindow):
            lifecycle.create(make_request(slot_date=MONDAY))

    def test_today_later_slot(self, lifecycle):
        booking = lifecycle.create(make_request("14:00", "14:30", slot_date=MONDAY))
        assert booking.slot_date == MONDAY

    def test_today_slot_already_started(self, lifecycle):
        with pytest.raises(OutsideBookingWindow):
            lifecycle.create(make_request("08:30", "09:00", slot_date=MONDAY))

    def test_zero_advance_days_allows_only_today(self, engine, lifecycle):
        schedule = engine.schedules.get(PARTNER).model_copy(update={"max_advance_days": 0})
        engine.schedules.upsert(schedule)
        lifecycle.create(make_request("14:00", "14:30", slot_date=MONDAY))
        with pytest.raises(OutsideBookingWindow):
            lifecycle.create(make_request())


class TestAvailabilityMatchesBookingWindow:
    def _query(self, engine, slot_date):
        return engine.availability(AvailabilityQuery(partner_id=PARTNER, date=slot_date))

    def test_today_hides_started_windows(self, engine):
        response = self._query(engine, MONDAY)
        assert response.windows[0].start_time == "09:00"

    def test_today_between_grid_points(self, engine, clock):
        clock.now = datetime(2025, 3, 10, 9, 5)
        assert self._query(engine, MONDAY).windows[0].start_time == "09:15"

    def test_every_listed_window_can_be_booked(self, engine, lifecycle, clock):
        clock.now = datetime(2025, 3, 10, 17, 20)
        windows = self._query(engine, MONDAY).windows
        assert [w.start_time for w in windows] == ["17:30"]
        lifecycle.create(make_request(windows[0].start_time, windows[0].end_time, MONDAY))

    def test_after_closing_today(self, engine, clock):
        clock.now = datetime(2025, 3, 10, 18, 0)
        response = self._query(engine, MONDAY)
        assert response.windows == []
        assert response.message == "No windows left today"

    def test_last_bookable_day_is_listed(self, engine):
        assert self._query(engine, date(2025, 3, 24)).windows

    @pytest.mark.parametrize("slot_date", [date(2025, 3, 25), date(2025, 3, 7)])
    def test_dates_outside_range_are_empty(self, engine, slot_date):
        response = self._query(engine, slot_date)
        assert response.windows == []
        assert response.message == "This date is outside the advance booking window"

    def test_closed_day_message_wins(self, engine):
        response = self._query(engine, date(2025, 3, 30))
        assert response.message == "Partner is not available on this day"


class TestCancel:
    def test_exactly_at_window_boundary(self, lifecycle, clock):
        booking = lifecycle.create(make_request())
        clock.now = datetime(2025, 3, 10, 10, 0)
        cancelled = lifecycle.cancel(booking.booking_id)
        assert cancelled.status == BookingStatus.CANCELLED

    def test_one_minute_inside_window(self, lifecycle, clock):
        booking = lifecycle.create(make_request())
        clock.now = datetime(2025, 3, 10, 10, 1)
        with pytest.raises(CancellationWindowViolated):
            lifecycle.cancel(booking.booking_id)

    def test_records_actor_and_reason(self, lifecycle):
        booking = lifecycle.create(make_request())
        cancelled = lifecycle.cancel(booking.booking_id, Actor.PARTNER, "Bay maintenance")
        assert cancelled.cancelled_by == Actor.PARTNER
        assert cancelled.cancellation_reason == "Bay maintenance"
        assert cancelled.cancelled_at is not None

    def test_default_reason_names_actor(self, lifecycle):
        booking = lifecycle.create(make_request())
        assert lifecycle.cancel(booking.booking_id).cancellation_reason == "Cancelled by customer"

    def test_frees_the_bay(self, engine, lifecycle):
        booking = lifecycle.create(make_request())
        lifecycle.cancel(booking.booking_id)
        assert _free_at(engine, TUESDAY, "10:00") == 3

    def test_cannot_cancel_twice(self, lifecycle):
        booking = lifecycle.create(make_request())
        lifecycle.cancel(booking.booking_id)
        with pytest.raises(InvalidStatusTransition):
            lifecycle.cancel(booking.booking_id)

    def test_cannot_cancel_completed(self, lifecycle):
        booking = lifecycle.create(make_request())
        lifecycle.advance_status(booking.booking_id, BookingStatus.IN_PROGRESS)
        lifecycle.advance_status(booking.booking_id, BookingStatus.COMPLETED)
        with pytest.raises(InvalidStatusTransition):
            lifecycle.cancel(booking.booking_id)

    def test_unknown_booking(self, lifecycle):
        with pytest.raises(NotFound):
            lifecycle.cancel("missing")


class TestReschedule:
    def test_keeps_identity_and_records_history(self, lifecycle):
        booking = lifecycle.create(make_request())
        moved = lifecycle.reschedule(
            booking.booking_id, make_window("11:00", "11:30", WEDNESDAY), reason="Work clash"
        )
        assert moved.booking_id == booking.booking_id
        assert moved.booking_number == booking.booking_number
        assert moved.status == BookingStatus.BOOKED
        assert moved.slot_date == WEDNESDAY
        assert moved.start_time == "11:00"
        assert moved.reschedule_count == 1
        assert moved.rescheduled_from_date == TUESDAY
        assert moved.rescheduled_from_start == 600

        [previous] = moved.reschedule_history
        assert previous.status == BookingStatus.RESCHEDULED
        assert previous.slot_date == TUESDAY
        assert previous.bay_id == "bay-w1"
        assert previous.reason == "Work clash"

    def test_frees_old_window(self, engine, lifecycle):
        booking = lifecycle.create(make_request())
        lifecycle.reschedule(booking.booking_id, make_window("11:00", "11:30", WEDNESDAY))
        assert _free_at(engine, TUESDAY, "10:00") == 3
        assert _free_at(engine, WEDNESDAY, "11:00") == 2

    def test_failure_leaves_booking_unchanged(self, engine, lifecycle):
        booking = lifecycle.create(make_request())
        for n in range(3):
            lifecycle.create(make_request("11:00", "11:30", WEDNESDAY, customer_id=f"cust-{n}"))

        with pytest.raises(SlotUnavailable):
            lifecycle.reschedule(booking.booking_id, make_window("11:00", "11:30", WEDNESDAY))

        current = engine.ledger.get(booking.booking_id)
        assert current.slot_date == TUESDAY
        assert current.bay_id == "bay-w1"
        assert current.reschedule_count == 0
        assert _free_at(engine, TUESDAY, "10:00") == 2

    def test_to_closed_day(self, lifecycle):
        booking = lifecycle.create(make_request())
        with pytest.raises(PartnerClosed):
            lifecycle.reschedule(booking.booking_id, make_window("10:00", "10:30", SUNDAY))

    def test_beyond_advance_limit(self, lifecycle):
        booking = lifecycle.create(make_request())
        with pytest.raises(OutsideBookingWindow):
            lifecycle.reschedule(booking.booking_id, make_window("10:00", "10:30", date(2025, 3, 25)))

    def test_limit_reached(self, lifecycle):
        booking = lifecycle.create(make_request())
        lifecycle.reschedule(booking.booking_id, make_window("11:00", "11:30"))
        lifecycle.reschedule(booking.booking_id, make_window("12:00", "12:30"))
        with pytest.raises(RescheduleLimitReached):
            lifecycle.reschedule(booking.booking_id, make_window("13:00", "13:30"))

    def test_rescheduling_switched_off(self, clock):
        engine = BookingEngine(clock=clock, allow_rescheduling=False)
        engine.services.register(make_service())
        booking = engine.lifecycle.create(make_request())
        with pytest.raises(RescheduleLimitReached, match="not available"):
            engine.lifecycle.reschedule(booking.booking_id, make_window("11:00", "11:30"))
        assert engine.ledger.get(booking.booking_id).start_time == "10:00"

    def test_cancelled_booking(self, lifecycle):
        booking = lifecycle.create(make_request())
        lifecycle.cancel(booking.booking_id)
        with pytest.raises(InvalidStatusTransition):
            lifecycle.reschedule(booking.booking_id, make_window("11:00", "11:30"))

    def test_saturday_hours_apply(self, lifecycle):
        booking = lifecycle.create(make_request())
        with pytest.raises(PartnerClosed):
            lifecycle.reschedule(booking.booking_id, make_window("15:00", "15:30", SATURDAY))


class TestAdvanceStatus:
    def test_service_path_stamps_times(self, lifecycle, clock):
        booking = lifecycle.create(make_request("14:00", "14:30", slot_date=MONDAY))
        clock.now = datetime(2025, 3, 10, 14, 0)
        started = lifecycle.advance_status(booking.booking_id, BookingStatus.IN_PROGRESS)
        assert started.started_at == clock.now
        clock.now = datetime(2025, 3, 10, 14, 30)
        done = lifecycle.advance_status(booking.booking_id, "completed")
        assert done.status == BookingStatus.COMPLETED
        assert done.completed_at == clock.now

    def test_completed_frees_bay(self, engine, lifecycle):
        booking = lifecycle.create(make_request())
        lifecycle.advance_status(booking.booking_id, BookingStatus.IN_PROGRESS)
        assert _free_at(engine, TUESDAY, "10:00") == 2
        lifecycle.advance_status(booking.booking_id, BookingStatus.COMPLETED)
        assert _free_at(engine, TUESDAY, "10:00") == 3

    def test_cannot_skip(self, lifecycle):
        booking = lifecycle.create(make_request())
        with pytest.raises(InvalidStatusTransition):
            lifecycle.advance_status(booking.booking_id, BookingStatus.COMPLETED)

    def test_delivery_needs_collection_service(self, lifecycle):
        booking = lifecycle.create(make_request())
        lifecycle.advance_status(booking.booking_id, BookingStatus.IN_PROGRESS)
        lifecycle.advance_status(booking.booking_id, BookingStatus.COMPLETED)
        with pytest.raises(InvalidStatusTransition):
            lifecycle.advance_status(booking.booking_id, BookingStatus.PICKED)

    def test_delivery_path(self, lifecycle, delivery_service):
        booking = lifecycle.create(make_request(service_id=delivery_service.service_id))
        for status in (
            BookingStatus.IN_PROGRESS,
            BookingStatus.COMPLETED,
            BookingStatus.PICKED,
            BookingStatus.OUT_FOR_DELIVERY,
            BookingStatus.DELIVERED,
        ):
            booking = lifecycle.advance_status(booking.booking_id, status)
        assert booking.status == BookingStatus.DELIVERED
        assert booking.delivered_at is not None

    @pytest.mark.parametrize("target", [BookingStatus.CANCELLED, BookingStatus.RESCHEDULED])
    def test_dedicated_statuses_refused(self, lifecycle, target):
        booking = lifecycle.create(make_request())
        with pytest.raises(InvalidStatusTransition):
            lifecycle.advance_status(booking.booking_id, target)


class TestStatusHistory:
    def test_creation_is_first_entry(self, lifecycle):
        booking = lifecycle.create(make_request())
        [entry] = booking.status_history
        assert entry.status == BookingStatus.BOOKED
        assert entry.trigger is None
        assert entry.changed_at == booking.created_at

    def test_advances_are_logged_with_triggers(self, engine, lifecycle, clock):
        booking = lifecycle.create(make_request("14:00", "14:30", slot_date=MONDAY))
        clock.now = datetime(2025, 3, 10, 14, 0)
        lifecycle.advance_status(booking.booking_id, BookingStatus.IN_PROGRESS)
        clock.now = datetime(2025, 3, 10, 14, 30)
        lifecycle.advance_status(booking.booking_id, BookingStatus.COMPLETED)

        history = engine.ledger.get(booking.booking_id).status_history
        assert [h.status for h in history] == [
            BookingStatus.BOOKED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED,
        ]
        assert [h.trigger for h in history] == [None, "start", "complete"]
        assert history[-1].changed_at == clock.now

    def test_cancel_records_actor(self, lifecycle):
        booking = lifecycle.create(make_request())
        cancelled = lifecycle.cancel(booking.booking_id, actor=Actor.PARTNER)
        entry = cancelled.status_history[-1]
        assert entry.status == BookingStatus.CANCELLED
        assert entry.trigger == "cancel"
        assert entry.actor == Actor.PARTNER

    def test_reschedule_does_not_change_status_log(self, lifecycle):
        booking = lifecycle.create(make_request())
        moved = lifecycle.reschedule(booking.booking_id, make_window("11:00", "11:30"))
        assert moved.status_history == booking.status_history

    def test_refused_transition_leaves_log_untouched(self, engine, lifecycle):
        booking = lifecycle.create(make_request())
        with pytest.raises(InvalidStatusTransition):
            lifecycle.advance_status(booking.booking_id, BookingStatus.COMPLETED)
        assert len(engine.ledger.get(booking.booking_id).status_history) == 1


class TestQuote:
    def test_quote_matches_booking_price(self, lifecycle):
        quote = lifecycle.quote(PriceQuoteRequest(service_id="svc-wash", vehicle_body_type="SUV"))
        booking = lifecycle.create(make_request(vehicle_body_type="SUV"))
        assert quote == booking.pricing

    def test_quote_does_not_reserve(self, engine, lifecycle):
        lifecycle.quote(PriceQuoteRequest(service_id="svc-wash"))
        assert engine.ledger.list_bookings() == []


class TestRetry:
    def test_timeout_is_retried(self, engine, lifecycle, monkeypatch):
        original = engine.allocator.claim
        calls = []

        def _flaky_claim(draft):
            calls.append(draft.booking_id)
            if len(calls) == 1:
                raise AllocationTimeout("contended")
            return original(draft)

        monkeypatch.setattr(engine.allocator, "claim", _flaky_claim)
        booking = lifecycle.create(make_request())
        assert booking.bay_id == "bay-w1"
        assert len(calls) == 2

    def test_retries_are_bounded(self, engine, lifecycle, monkeypatch):
        calls = []

        def _always_timeout(draft):
            calls.append(draft.booking_id)
            raise AllocationTimeout("contended")

        monkeypatch.setattr(engine.allocator, "claim", _always_timeout)
        with pytest.raises(AllocationTimeout):
            lifecycle.create(make_request())
        # max_retries=1 in the engine fixture
        assert len(calls) == 2

    def test_slot_unavailable_is_not_retried(self, engine, lifecycle, monkeypatch):
        calls = []

        def _full(draft):
            calls.append(draft.booking_id)
            raise SlotUnavailable("full")

        monkeypatch.setattr(engine.allocator, "claim", _full)
        with pytest.raises(SlotUnavailable):
            lifecycle.create(make_request())
        assert len(calls) == 1
