"""Booking coordinator for a single rental property backed by Google Calendar."""

__version__ = "0.1.0"
