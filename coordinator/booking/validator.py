"""Structural validation of booking requests.

No calendar access happens here. Every rule runs; all violations are
returned together so the guest can fix the form in one pass.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from coordinator.models.booking import (
    BookingRequest,
    ValidationError,
    ValidationErrorKind,
)

DATE_FORMAT = "%Y-%m-%d"

_REQUIRED_FIELDS = (
    ("name", "Name"),
    ("email", "Email"),
    ("start_date", "Start date"),
    ("end_date", "End date"),
)


def parse_day(value: str) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` calendar day, or return None."""
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError:
        return None


def validate(request: BookingRequest) -> list[ValidationError]:
    errors: list[ValidationError] = []

    for field, label in _REQUIRED_FIELDS:
        if not getattr(request, field).strip():
            errors.append(
                ValidationError(
                    kind=ValidationErrorKind.MISSING_FIELD,
                    field=field,
                    message=f"{label} is required.",
                )
            )

    parsed: dict[str, Optional[date]] = {}
    for field, label in _REQUIRED_FIELDS[2:]:
        raw = getattr(request, field)
        if not raw.strip():
            parsed[field] = None
            continue
        parsed[field] = parse_day(raw)
        if parsed[field] is None:
            errors.append(
                ValidationError(
                    kind=ValidationErrorKind.INVALID_DATE,
                    field=field,
                    message=f"{label} must be a date in YYYY-MM-DD format.",
                )
            )

    start, end = parsed["start_date"], parsed["end_date"]
    if start is not None and end is not None and start > end:
        errors.append(
            ValidationError(
                kind=ValidationErrorKind.INVALID_RANGE,
                message="Start date must be before end date.",
            )
        )

    return errors
