"""In-memory calendar gateway.

Backs the ``memory`` gateway mode for local development and stands in for
Google in tests. Supports failure injection per method and records every
call so tests can assert on what reached the calendar.
"""

from __future__ import annotations

import copy
import logging
from datetime import date, datetime, time, timezone
from typing import Any, Optional
from uuid import uuid4

from coordinator.errors import EventNotFound, Unauthenticated

from .base import BusyInterval, CalendarGateway, RemoteEvent

logger = logging.getLogger(__name__)


def _parse_bound(value: str) -> datetime:
    """Turn an all-day date or RFC 3339 string into an aware datetime."""
    if len(value) == 10:
        return datetime.combine(date.fromisoformat(value), time.min, tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


class InMemoryCalendarGateway(CalendarGateway):
    """CalendarGateway holding events in a dict, keyed by calendar id."""

    def __init__(self, authenticated: bool = True) -> None:
        self.authenticated = authenticated
        self._events: dict[str, dict[str, RemoteEvent]] = {}
        self._busy: dict[str, list[BusyInterval]] = {}
        # method name -> exception raised on the next calls to that method
        self.fail_on: dict[str, Exception] = {}
        self.calls: list[tuple[str, tuple]] = []
        self.patches: list[tuple[str, dict[str, Any]]] = []

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------

    def add_event(self, calendar_id: str, event: RemoteEvent) -> RemoteEvent:
        self._events.setdefault(calendar_id, {})[event.id] = event
        return event

    def add_busy(self, calendar_id: str, start: datetime, end: datetime) -> None:
        """Mark a window busy without an event behind it (foreign calendars, etc.)."""
        self._busy.setdefault(calendar_id, []).append(
            BusyInterval(start=_aware(start), end=_aware(end))
        )

    def events(self, calendar_id: str) -> list[RemoteEvent]:
        return list(self._events.get(calendar_id, {}).values())

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _enter(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if not self.authenticated:
            raise Unauthenticated("In-memory calendar is not authenticated.")
        exc = self.fail_on.get(name)
        if exc is not None:
            raise exc

    def _lookup(self, calendar_id: str, event_id: str) -> RemoteEvent:
        try:
            return self._events[calendar_id][event_id]
        except KeyError:
            raise EventNotFound(f"Event {event_id} not found", status_code=404) from None

    def _overlapping(
        self, calendar_id: str, time_min: datetime, time_max: Optional[datetime]
    ) -> list[RemoteEvent]:
        time_min = _aware(time_min)
        matches = []
        for event in self._events.get(calendar_id, {}).values():
            start, end = _parse_bound(event.start), _parse_bound(event.end)
            if end <= time_min:
                continue
            if time_max is not None and start >= _aware(time_max):
                continue
            matches.append(event)
        return matches

    # ------------------------------------------------------------------
    # CalendarGateway interface
    # ------------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self.authenticated

    async def query_free_busy(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[BusyInterval]:
        self._enter("query_free_busy", calendar_id, time_min, time_max)
        busy = [
            BusyInterval(start=_parse_bound(e.start), end=_parse_bound(e.end))
            for e in self._overlapping(calendar_id, time_min, time_max)
        ]
        lo, hi = _aware(time_min), _aware(time_max)
        busy.extend(
            b for b in self._busy.get(calendar_id, []) if b.start < hi and b.end > lo
        )
        return sorted(busy, key=lambda b: b.start)

    async def list_events(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: Optional[datetime] = None,
        *,
        single_events: bool = True,
        order_by: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> list[RemoteEvent]:
        self._enter("list_events", calendar_id, time_min, time_max)
        events = self._overlapping(calendar_id, time_min, time_max)
        if order_by == "startTime":
            events.sort(key=lambda e: _parse_bound(e.start))
        if max_results:
            events = events[:max_results]
        return [copy.copy(e) for e in events]

    async def create_event(
        self,
        calendar_id: str,
        summary: str,
        description: str,
        start_date: date,
        end_date: date,
        status: Optional[str] = None,
    ) -> str:
        self._enter("create_event", calendar_id, summary, start_date, end_date)
        event = RemoteEvent(
            id=uuid4().hex,
            summary=summary,
            description=description,
            start=start_date.isoformat(),
            end=end_date.isoformat(),
            status_property=status,
        )
        self.add_event(calendar_id, event)
        logger.info("Created event %s on in-memory calendar %s", event.id, calendar_id)
        return event.id

    async def get_event(self, calendar_id: str, event_id: str) -> RemoteEvent:
        self._enter("get_event", calendar_id, event_id)
        return copy.copy(self._lookup(calendar_id, event_id))

    async def patch_event(
        self, calendar_id: str, event_id: str, fields: dict[str, Any]
    ) -> None:
        self._enter("patch_event", calendar_id, event_id)
        event = self._lookup(calendar_id, event_id)
        self.patches.append((event_id, dict(fields)))
        if "summary" in fields:
            event.summary = fields["summary"]
        if "description" in fields:
            event.description = fields["description"]
        if "status" in fields:
            event.status_property = fields["status"]

    async def delete_event(self, calendar_id: str, event_id: str) -> None:
        self._enter("delete_event", calendar_id, event_id)
        self._lookup(calendar_id, event_id)
        del self._events[calendar_id][event_id]
