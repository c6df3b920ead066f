"""Tests for BookingOrchestrator: the submit path end to end."""

import asyncio
from datetime import date, datetime, timezone

import pytest

from coordinator.booking.availability import AvailabilityChecker
from coordinator.booking.orchestrator import (
    MSG_ALREADY_BOOKED,
    MSG_CREATE_FAILED,
    BookingOrchestrator,
    redact_pii,
)
from coordinator.calendar_providers.memory import InMemoryCalendarGateway
from coordinator.errors import RemoteError, Unauthenticated
from coordinator.models.booking import Accepted, BookingRequest, Rejected

CAL = "cal-1"


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _alice(**overrides) -> BookingRequest:
    fields = {
        "name": "Alice",
        "email": "a@x.com",
        "start_date": "2024-06-01",
        "end_date": "2024-06-03",
    }
    fields.update(overrides)
    return BookingRequest(**fields)


@pytest.fixture
def gateway():
    return InMemoryCalendarGateway()


@pytest.fixture
def orchestrator(gateway):
    return BookingOrchestrator(gateway, AvailabilityChecker(gateway), CAL)


class TestValidationShortCircuit:
    @pytest.mark.parametrize("field", ["name", "email", "start_date", "end_date"])
    async def test_missing_field_makes_no_gateway_call(self, gateway, orchestrator, field):
        outcome = await orchestrator.submit(_alice(**{field: ""}))

        assert isinstance(outcome, Rejected)
        assert outcome.reason == "validation"
        assert gateway.calls == []

    async def test_inverted_range_makes_no_gateway_call(self, gateway, orchestrator):
        outcome = await orchestrator.submit(_alice(start_date="2024-06-05"))

        assert isinstance(outcome, Rejected)
        assert outcome.errors == ["Start date must be before end date."]
        assert gateway.calls == []


class TestSubmit:
    async def test_accepts_on_empty_calendar(self, gateway, orchestrator):
        outcome = await orchestrator.submit(_alice())

        assert isinstance(outcome, Accepted)
        [event] = gateway.events(CAL)
        assert event.id == outcome.event_id
        assert event.start == "2024-06-01"
        # inclusive end date + 1 day for the exclusive all-day end
        assert event.end == "2024-06-04"
        assert event.summary == "PENDING Booking: Alice"
        assert event.description == "Booking for Alice (a@x.com)"
        assert event.status_property == "pending"

    async def test_post_write_check_reports_match(self, orchestrator):
        outcome = await orchestrator.submit(_alice())
        assert outcome.calendar_match is True

    async def test_busy_calendar_rejected_without_create(self, gateway, orchestrator):
        gateway.add_busy(CAL, _utc(2024, 6, 1), _utc(2024, 6, 3))

        outcome = await orchestrator.submit(_alice())

        assert outcome == Rejected(errors=[MSG_ALREADY_BOOKED], reason="conflict")
        assert "create_event" not in gateway.call_names()

    async def test_second_overlapping_booking_rejected(self, orchestrator):
        first = await orchestrator.submit(_alice())
        second = await orchestrator.submit(_alice(name="Bob", start_date="2024-06-02", end_date="2024-06-05"))

        assert isinstance(first, Accepted)
        assert isinstance(second, Rejected)
        assert second.reason == "conflict"

    async def test_unauthenticated_gateway_rejected(self):
        gw = InMemoryCalendarGateway(authenticated=False)
        orchestrator = BookingOrchestrator(gw, AvailabilityChecker(gw), CAL)

        outcome = await orchestrator.submit(_alice())

        assert isinstance(outcome, Rejected)
        assert gw.calls == []

    async def test_create_failure(self, gateway, orchestrator):
        gateway.fail_on["create_event"] = RemoteError("rate limited", status_code=429)

        outcome = await orchestrator.submit(_alice())

        assert outcome == Rejected(errors=[MSG_CREATE_FAILED], reason="write_failure")

    async def test_create_unauthenticated_is_write_failure(self, gateway, orchestrator):
        gateway.fail_on["create_event"] = Unauthenticated("token revoked")

        outcome = await orchestrator.submit(_alice())

        assert outcome.reason == "write_failure"

    async def test_create_timeout(self):
        class SlowCreate(InMemoryCalendarGateway):
            async def create_event(self, *args, **kwargs):
                await asyncio.sleep(1)
                return "never"

        gw = SlowCreate()
        orchestrator = BookingOrchestrator(gw, AvailabilityChecker(gw), CAL, timeout=0.01)

        outcome = await orchestrator.submit(_alice())

        assert outcome == Rejected(errors=[MSG_CREATE_FAILED], reason="write_failure")

    async def test_verification_failure_does_not_block(self, gateway, orchestrator):
        gateway.fail_on["list_events"] = RemoteError("backend error")

        outcome = await orchestrator.submit(_alice())

        assert isinstance(outcome, Accepted)
        assert outcome.calendar_match is None

    async def test_strips_name_and_email(self, gateway, orchestrator):
        await orchestrator.submit(_alice(name="  Alice ", email=" a@x.com "))
        [event] = gateway.events(CAL)
        assert event.summary == "PENDING Booking: Alice"
        assert event.description == "Booking for Alice (a@x.com)"


class TestVerifyOnCalendar:
    async def test_timed_events_ignored(self, gateway, orchestrator):
        from coordinator.calendar_providers.base import RemoteEvent

        gateway.add_event(
            CAL,
            RemoteEvent(
                id="meeting",
                start="2024-06-01T10:00:00+00:00",
                end="2024-06-01T11:00:00+00:00",
            ),
        )
        assert await orchestrator.verify_on_calendar(date(2024, 6, 1), date(2024, 6, 3)) is False


class TestRedactPii:
    def test_redacts_email(self):
        assert redact_pii("user@example.com") == "use***om"

    def test_redacts_short_value(self):
        assert redact_pii("abc") == "***"
