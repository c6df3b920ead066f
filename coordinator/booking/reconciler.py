"""Owner actions on bookings and the owner's booking list.

Booking status lives on the calendar event itself, in two places:

  - the ``bookingStatus`` private extended property (authoritative when set)
  - the summary prefix (``PENDING``, ``CONFIRMED``, ``DECLINED``/``CANCELLED``),
    kept for humans looking at the calendar and for events created before
    the property existed

Events with neither are reported as confirmed. That includes entries the
owner added by hand, which may not be bookings at all.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from coordinator.calendar_providers.base import CalendarGateway, RemoteEvent
from coordinator.errors import (
    EventNotFound,
    InvalidTransition,
    NotFound,
    RemoteReadFailure,
    RemoteWriteFailure,
    Unauthenticated,
)
from coordinator.models.booking import BookingStatus, BookingSummary

log = logging.getLogger("coordinator.booking.reconciler")

_PREFIX_STATUS = (
    (("PENDING",), BookingStatus.PENDING),
    (("DECLINED", "CANCELLED"), BookingStatus.DECLINED),
    (("CONFIRMED",), BookingStatus.CONFIRMED),
)


def derive_status(event: RemoteEvent) -> BookingStatus:
    """Booking status of a calendar event."""
    if event.status_property:
        try:
            return BookingStatus(event.status_property)
        except ValueError:
            log.warning(
                "Event %s has unknown bookingStatus %r; falling back to title",
                event.id, event.status_property,
            )

    summary = event.summary or ""
    for prefixes, status in _PREFIX_STATUS:
        if summary.startswith(prefixes):
            return status
    return BookingStatus.CONFIRMED


def replace_pending_prefix(summary: str, replacement: str) -> str:
    """Swap a literal leading ``"PENDING "`` for ``replacement``; otherwise unchanged."""
    if summary.startswith("PENDING "):
        return replacement + summary[len("PENDING "):]
    return summary


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class StatusReconciler:
    """Approves and rejects bookings, and lists upcoming ones for the owner."""

    def __init__(
        self,
        gateway: CalendarGateway,
        calendar_id: str,
        *,
        window_days: int = 90,
        max_results: int = 50,
        timeout: Optional[float] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._gateway = gateway
        self._calendar_id = calendar_id
        self._window_days = window_days
        self._max_results = max_results
        self._timeout = timeout
        self._clock = clock

    # ── Owner actions ─────────────────────────────────────────

    async def approve(self, event_id: str) -> None:
        """Mark a booking CONFIRMED.

        A booking that is already declined (left on the calendar by a
        failed reject) stays declined.

        Raises:
            NotFound: the event is gone.
            InvalidTransition: the booking is declined.
            RemoteWriteFailure: the event could not be read or patched.
            Unauthenticated: no usable calendar credential.
        """
        event = await self._fetch(event_id)
        status = derive_status(event)
        if status is BookingStatus.DECLINED:
            raise InvalidTransition(event_id, status.value, "approved")
        fields = {
            "summary": replace_pending_prefix(event.summary, "CONFIRMED "),
            "description": (event.description or "")
            + f"\nApproved on {_timestamp(self._clock())}",
            "status": BookingStatus.CONFIRMED.value,
        }
        await self._patch(event_id, fields)
        log.info("Booking %s approved", event_id)

    async def reject(self, event_id: str) -> None:
        """Mark a booking DECLINED, then remove it from the calendar.

        The patch comes first so the declined state is visible in the
        calendar's trash. If the delete fails after that, the event stays
        on the calendar as DECLINED and ``RemoteWriteFailure(partial=True)``
        is raised.
        """
        event = await self._fetch(event_id)
        fields = {
            "summary": replace_pending_prefix(event.summary, "DECLINED "),
            "description": (event.description or "")
            + f"\nDeclined on {_timestamp(self._clock())}",
            "status": BookingStatus.DECLINED.value,
        }
        await self._patch(event_id, fields)

        try:
            await self._call(self._gateway.delete_event(self._calendar_id, event_id))
        except Unauthenticated:
            raise
        except EventNotFound:
            log.warning("Booking %s vanished before delete; treating as removed", event_id)
        except Exception as exc:
            log.exception("Booking %s declined but could not be deleted", event_id)
            raise RemoteWriteFailure(
                f"Booking {event_id} was marked DECLINED but could not be removed "
                "from the calendar.",
                partial=True,
            ) from exc
        log.info("Booking %s rejected", event_id)

    # ── Read path ─────────────────────────────────────────────

    async def list_bookings(self, now: Optional[datetime] = None) -> list[BookingSummary]:
        """Upcoming events in the owner window, with derived status.

        Raises:
            RemoteReadFailure: the calendar could not be listed.
            Unauthenticated: no usable calendar credential.
        """
        now = now or self._clock()
        until = now + timedelta(days=self._window_days)
        try:
            events = await self._call(
                self._gateway.list_events(
                    self._calendar_id,
                    now,
                    until,
                    single_events=True,
                    order_by="startTime",
                    max_results=self._max_results,
                )
            )
        except Unauthenticated:
            raise
        except Exception as exc:
            log.exception("Listing bookings on %s failed", self._calendar_id)
            raise RemoteReadFailure(f"Could not load bookings: {exc}") from exc

        return [
            BookingSummary(
                event_id=event.id,
                summary=event.summary or "No title",
                guest=event.description or "",
                start=event.start,
                end=event.end,
                status=derive_status(event),
            )
            for event in events
        ]

    # ── Helpers ───────────────────────────────────────────────

    async def _call(self, coro) -> Any:
        return await asyncio.wait_for(coro, timeout=self._timeout)

    async def _fetch(self, event_id: str) -> RemoteEvent:
        try:
            return await self._call(self._gateway.get_event(self._calendar_id, event_id))
        except Unauthenticated:
            raise
        except EventNotFound:
            raise NotFound(event_id) from None
        except Exception as exc:
            log.exception("Could not load booking %s", event_id)
            raise RemoteWriteFailure(f"Could not load booking {event_id}.") from exc

    async def _patch(self, event_id: str, fields: dict[str, Any]) -> None:
        try:
            await self._call(
                self._gateway.patch_event(self._calendar_id, event_id, fields)
            )
        except Unauthenticated:
            raise
        except EventNotFound:
            raise NotFound(event_id) from None
        except Exception as exc:
            log.exception("Could not update booking %s", event_id)
            raise RemoteWriteFailure(f"Could not update booking {event_id}.") from exc
