"""Availability checking against the calendar's free/busy data.

``AvailabilityChecker.is_free`` is fail-closed: any doubt about the
calendar (no credential, remote error, timeout) answers "not free".
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from coordinator.calendar_providers.base import CalendarGateway

log = logging.getLogger("coordinator.booking.availability")


def day_window(start_date: date, end_date: date) -> tuple[datetime, datetime]:
    """UTC-midnight bounds of ``[start_date, end_date)``.

    A single-day range (start == end) is widened to cover that day, since an
    empty window can't be queried.
    """
    if end_date <= start_date:
        end_date = start_date + timedelta(days=1)
    return (
        datetime.combine(start_date, time.min, tzinfo=timezone.utc),
        datetime.combine(end_date, time.min, tzinfo=timezone.utc),
    )


class AvailabilityChecker:
    """Answers whether a date range is free on a calendar."""

    def __init__(
        self, gateway: CalendarGateway, timeout: Optional[float] = None
    ) -> None:
        self._gateway = gateway
        self._timeout = timeout

    async def is_free(
        self, calendar_id: str, start_date: date, end_date: date
    ) -> bool:
        """True iff the calendar reports no busy time in ``[start_date, end_date)``.

        Never raises. Returns False without calling the calendar when the
        gateway has no credential, and False on any error or timeout.
        """
        if not self._gateway.is_authenticated:
            log.warning("Availability check on %s skipped: not authenticated", calendar_id)
            return False

        time_min, time_max = day_window(start_date, end_date)
        try:
            busy = await asyncio.wait_for(
                self._gateway.query_free_busy(calendar_id, time_min, time_max),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            log.warning(
                "Free/busy query on %s timed out after %ss", calendar_id, self._timeout
            )
            return False
        except Exception:
            log.exception("Free/busy query on %s failed", calendar_id)
            return False

        if busy:
            log.info(
                "Calendar %s busy between %s and %s (%d interval(s))",
                calendar_id, start_date, end_date, len(busy),
            )
        return not busy
