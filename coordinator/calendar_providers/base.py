"""Abstract base class for calendar gateways.

Defines the interface the booking core uses for free/busy checks and
event reads and writes. Any calendar backend (Google, in-memory, etc.)
implements this ABC.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

# Private extended property holding the structured booking status.
STATUS_PROPERTY = "bookingStatus"


@dataclass
class BusyInterval:
    """A busy window reported by a free/busy query."""

    start: datetime
    end: datetime


@dataclass
class RemoteEvent:
    """An event as stored on the remote calendar.

    ``start`` and ``end`` keep the raw value sent by the backend: a
    ``YYYY-MM-DD`` string for all-day events, an RFC 3339 string otherwise.
    """

    id: str
    summary: str = ""
    description: str = ""
    start: str = ""
    end: str = ""
    status_property: Optional[str] = None

    @property
    def is_all_day(self) -> bool:
        return len(self.start) == 10 and len(self.end) == 10


class CalendarGateway(ABC):
    """Abstract calendar backend.

    Every call may raise ``Unauthenticated`` (no usable credential) or
    ``RemoteError``. Calls addressing a single event raise
    ``EventNotFound`` when the event is gone.
    """

    @property
    @abstractmethod
    def is_authenticated(self) -> bool:
        """True when a credential for the remote calendar is available."""

    @abstractmethod
    async def query_free_busy(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[BusyInterval]:
        """Return busy intervals on the calendar within ``[time_min, time_max)``."""

    @abstractmethod
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
        """List events overlapping the window.

        Args:
            calendar_id: The calendar to query.
            time_min: Lower bound (exclusive) on event end.
            time_max: Upper bound (exclusive) on event start. ``None`` means
                unbounded.
            single_events: Expand recurring events into instances.
            order_by: ``"startTime"`` to sort by start.
            max_results: Cap on the number of events returned.
        """

    @abstractmethod
    async def create_event(
        self,
        calendar_id: str,
        summary: str,
        description: str,
        start_date: date,
        end_date: date,
        status: Optional[str] = None,
    ) -> str:
        """Create an all-day event and return its id.

        ``end_date`` is exclusive, following the all-day event convention.
        ``status`` is stored in the private ``bookingStatus`` property.
        """

    @abstractmethod
    async def get_event(self, calendar_id: str, event_id: str) -> RemoteEvent:
        """Fetch a single event."""

    @abstractmethod
    async def patch_event(
        self, calendar_id: str, event_id: str, fields: dict[str, Any]
    ) -> None:
        """Update the given fields of an event.

        Recognised keys: ``summary``, ``description`` and ``status`` (the
        structured booking status).
        """

    @abstractmethod
    async def delete_event(self, calendar_id: str, event_id: str) -> None:
        """Delete an event from the calendar."""
