"""Data models for the booking layer."""

from .booking import (
    Accepted,
    BookingOutcome,
    BookingRequest,
    BookingStatus,
    BookingSummary,
    Rejected,
    ValidationError,
    ValidationErrorKind,
)

__all__ = [
    "Accepted",
    "BookingOutcome",
    "BookingRequest",
    "BookingStatus",
    "BookingSummary",
    "Rejected",
    "ValidationError",
    "ValidationErrorKind",
]
