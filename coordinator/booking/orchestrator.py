"""Booking submission: validate, check availability, create the event.

The calendar is the system of record; nothing is kept locally. Two
concurrent submissions for overlapping dates can both see the range as
free before either writes. There is no reservation layer to stop that.

Typical use::

    orchestrator = BookingOrchestrator(gateway, checker, calendar_id)
    outcome = await orchestrator.submit(BookingRequest(...))
    if outcome.status == "accepted":
        ...
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from typing import Optional

from coordinator.booking.availability import AvailabilityChecker, day_window
from coordinator.booking.validator import parse_day, validate
from coordinator.calendar_providers.base import CalendarGateway
from coordinator.models.booking import (
    Accepted,
    BookingOutcome,
    BookingRequest,
    BookingStatus,
    Rejected,
)

log = logging.getLogger("coordinator.booking.orchestrator")

MSG_ALREADY_BOOKED = "dates already booked"
MSG_CREATE_FAILED = "failed to create calendar event"

PENDING_PREFIX = "PENDING "


def redact_pii(value: str) -> str:
    """Mask PII for logging, showing first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


def booking_summary(name: str) -> str:
    return f"{PENDING_PREFIX}Booking: {name}"


def booking_description(name: str, email: str) -> str:
    return f"Booking for {name} ({email})"


class BookingOrchestrator:
    """Turns a booking request into a pending calendar event, or a rejection."""

    def __init__(
        self,
        gateway: CalendarGateway,
        checker: AvailabilityChecker,
        calendar_id: str,
        timeout: Optional[float] = None,
    ) -> None:
        self._gateway = gateway
        self._checker = checker
        self._calendar_id = calendar_id
        self._timeout = timeout

    @property
    def calendar_id(self) -> str:
        return self._calendar_id

    async def submit(self, request: BookingRequest) -> BookingOutcome:
        errors = validate(request)
        if errors:
            log.info("Booking request rejected by validation: %d error(s)", len(errors))
            return Rejected(errors=[e.message for e in errors], reason="validation")

        # validate() guarantees both parse
        start_date = parse_day(request.start_date)
        end_date = parse_day(request.end_date)
        name = request.name.strip()
        email = request.email.strip()

        if not await self._checker.is_free(self._calendar_id, start_date, end_date):
            log.info("Booking %s..%s rejected: calendar busy", start_date, end_date)
            return Rejected(errors=[MSG_ALREADY_BOOKED], reason="conflict")

        # All-day events end exclusively; the guest's end date is inclusive.
        end_exclusive = end_date + timedelta(days=1)
        try:
            event_id = await asyncio.wait_for(
                self._gateway.create_event(
                    self._calendar_id,
                    summary=booking_summary(name),
                    description=booking_description(name, email),
                    start_date=start_date,
                    end_date=end_exclusive,
                    status=BookingStatus.PENDING.value,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            log.warning("Creating booking event timed out after %ss", self._timeout)
            return Rejected(errors=[MSG_CREATE_FAILED], reason="write_failure")
        except Exception:
            log.exception(
                "Failed to create booking event for %s", redact_pii(email)
            )
            return Rejected(errors=[MSG_CREATE_FAILED], reason="write_failure")

        log.info(
            "Booking event %s created for %s (%s..%s)",
            event_id, redact_pii(email), start_date, end_date,
        )

        calendar_match = await self.verify_on_calendar(start_date, end_date)
        if calendar_match is False:
            log.warning("Booking event %s not visible on calendar after creation", event_id)

        return Accepted(event_id=event_id, calendar_match=calendar_match)

    async def verify_on_calendar(
        self, start_date: date, end_date: date
    ) -> Optional[bool]:
        """Check that an all-day event overlapping the range is listed.

        Diagnostic only. Returns None when the listing itself fails.
        """
        time_min, time_max = day_window(start_date, end_date)
        try:
            events = await asyncio.wait_for(
                self._gateway.list_events(
                    self._calendar_id, time_min, time_max, single_events=True
                ),
                timeout=self._timeout,
            )
        except Exception as exc:
            log.warning("Post-write calendar check failed: %r", exc)
            return None

        start_s, end_s = start_date.isoformat(), end_date.isoformat()
        return any(
            event.is_all_day and event.start <= end_s and event.end >= start_s
            for event in events
        )
