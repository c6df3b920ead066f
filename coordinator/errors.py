"""Exception hierarchy for the property coordinator.

Two families:
  - CalendarError: raised by calendar gateways (remote boundary)
  - BookingError: raised by the booking core to its callers

The booking core catches CalendarError at its boundary and converts it,
except Unauthenticated, which is surfaced as-is so the web layer can send
the owner through the OAuth flow again.
"""

from __future__ import annotations


class CalendarError(Exception):
    """Base class for failures talking to the remote calendar."""


class Unauthenticated(CalendarError):
    """No valid credential is available for the remote calendar."""


class RemoteError(CalendarError):
    """The remote calendar rejected or failed a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EventNotFound(RemoteError):
    """The requested event does not exist (or was deleted) on the calendar."""


class BookingError(Exception):
    """Base class for failures reported by the booking core."""


class NotFound(BookingError):
    """Target event is missing on approve/reject."""

    def __init__(self, event_id: str) -> None:
        super().__init__(f"Booking {event_id} not found on the calendar.")
        self.event_id = event_id


class RemoteWriteFailure(BookingError):
    """A create/patch/delete against the calendar failed.

    ``partial`` is set when an earlier write of the same operation already
    succeeded, e.g. a rejection that was patched to DECLINED but could not
    be deleted.
    """

    def __init__(self, message: str, *, partial: bool = False) -> None:
        super().__init__(message)
        self.partial = partial


class RemoteReadFailure(BookingError):
    """The calendar could not be read for the owner listing."""


class UnknownProperty(BookingError):
    """The configured property key has no calendar mapping."""

    def __init__(self, property_key: str) -> None:
        super().__init__(f"No calendar configured for property {property_key!r}.")
        self.property_key = property_key


class InvalidTransition(BookingError):
    """The booking's current status does not allow the requested action."""

    def __init__(self, event_id: str, status: str, action: str) -> None:
        super().__init__(f"Booking {event_id} is {status} and cannot be {action}.")
        self.event_id = event_id
        self.status = status
