"""Booking core: validation, availability, submission and owner actions."""

from .availability import AvailabilityChecker
from .orchestrator import BookingOrchestrator
from .reconciler import StatusReconciler, derive_status
from .validator import validate

__all__ = [
    "AvailabilityChecker",
    "BookingOrchestrator",
    "StatusReconciler",
    "derive_status",
    "validate",
]
