"""Calendar gateway abstractions and implementations."""

from .base import BusyInterval, CalendarGateway, RemoteEvent
from .memory import InMemoryCalendarGateway

__all__ = ["CalendarGateway", "BusyInterval", "RemoteEvent", "InMemoryCalendarGateway"]
