"""Pydantic models for booking requests, outcomes and the owner listing."""

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


class BookingRequest(BaseModel):
    """Raw booking form as submitted by the guest.

    Dates stay strings here; the validator owns parsing.
    """

    name: str = ""
    email: str = ""
    start_date: str = ""  # YYYY-MM-DD
    end_date: str = ""  # YYYY-MM-DD, inclusive


class ValidationErrorKind(str, Enum):
    MISSING_FIELD = "missing_field"
    INVALID_DATE = "invalid_date"
    INVALID_RANGE = "invalid_range"


class ValidationError(BaseModel):
    """A user-correctable problem with a booking request."""

    kind: ValidationErrorKind
    message: str
    field: Optional[str] = None


class Accepted(BaseModel):
    """Booking created on the calendar, awaiting owner approval.

    ``calendar_match`` is the post-write check: whether an overlapping event
    was seen on the calendar right after creation (``None`` if the check
    itself failed). It is diagnostic only.
    """

    status: Literal["accepted"] = "accepted"
    event_id: str
    calendar_match: Optional[bool] = None


class Rejected(BaseModel):
    """Booking refused. ``errors`` are human-readable messages."""

    status: Literal["rejected"] = "rejected"
    errors: list[str]
    reason: Literal["validation", "conflict", "write_failure"]


BookingOutcome = Union[Accepted, Rejected]


class BookingSummary(BaseModel):
    """One row of the owner's booking list."""

    event_id: str
    summary: str
    guest: str
    start: str
    end: str
    status: BookingStatus
