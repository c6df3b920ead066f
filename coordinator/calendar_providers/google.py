"""Google Calendar gateway implementation.

Uses the owner's OAuth user credential (from ``CredentialStore``) to talk to
the Calendar API v3. The client library is synchronous, so every request is
executed in the default thread pool.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from functools import partial
from typing import Any, Callable, Optional

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from coordinator.credentials import CredentialStore
from coordinator.errors import EventNotFound, RemoteError, Unauthenticated

from .base import STATUS_PROPERTY, BusyInterval, CalendarGateway, RemoteEvent

logger = logging.getLogger(__name__)


class GoogleCalendarGateway(CalendarGateway):
    """CalendarGateway backed by Google Calendar API v3."""

    def __init__(self, credential_store: CredentialStore) -> None:
        self._credential_store = credential_store
        self._service = None
        self._service_credentials = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_service(self):
        """Return an API client for the current credential.

        The client is rebuilt when the credential store hands out a new
        credential (after the OAuth callback).
        """
        creds = self._credential_store.get_credentials()
        if self._service is None or creds is not self._service_credentials:
            self._service = build(
                "calendar", "v3", credentials=creds, cache_discovery=False
            )
            self._service_credentials = creds
        return self._service

    async def _run_in_executor(self, func, *args, **kwargs) -> Any:
        """Run a synchronous Google API call in the default thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, partial(func, *args, **kwargs)
        )

    async def _execute(self, make_request: Callable[[Any], Any]) -> Any:
        """Build and execute an API request off the event loop.

        ``make_request`` receives the service client. The credential fetch
        (which may refresh the token over the network), the client build and
        the request itself all run in the executor.
        """

        def _call():
            return make_request(self._get_service()).execute()

        try:
            return await self._run_in_executor(_call)
        except HttpError as exc:
            raise self._translate(exc) from exc
        except RefreshError as exc:
            raise Unauthenticated(str(exc)) from exc
        except (TransportError, httplib2.HttpLib2Error, OSError) as exc:
            raise RemoteError(f"Calendar API unreachable: {exc}") from exc

    @staticmethod
    def _translate(exc: HttpError) -> Exception:
        status = exc.resp.status
        if status == 401:
            return Unauthenticated("Google rejected the credential.")
        if status in (404, 410):
            return EventNotFound(str(exc), status_code=status)
        return RemoteError(str(exc), status_code=status)

    @staticmethod
    def _to_rfc3339(dt: datetime) -> str:
        """Convert a datetime to an RFC 3339 string with timezone."""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.isoformat()

    @staticmethod
    def _to_remote_event(item: dict) -> RemoteEvent:
        start = item.get("start", {})
        end = item.get("end", {})
        private = item.get("extendedProperties", {}).get("private", {})
        return RemoteEvent(
            id=item["id"],
            summary=item.get("summary", ""),
            description=item.get("description", ""),
            start=start.get("date") or start.get("dateTime", ""),
            end=end.get("date") or end.get("dateTime", ""),
            status_property=private.get(STATUS_PROPERTY),
        )

    # ------------------------------------------------------------------
    # CalendarGateway interface
    # ------------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self._credential_store.is_authenticated

    async def query_free_busy(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[BusyInterval]:
        body = {
            "timeMin": self._to_rfc3339(time_min),
            "timeMax": self._to_rfc3339(time_max),
            "items": [{"id": calendar_id}],
        }
        response = await self._execute(
            lambda service: service.freebusy().query(body=body)
        )

        calendar = response.get("calendars", {}).get(calendar_id, {})
        if calendar.get("errors"):
            # Google reports per-calendar problems (notFound, etc.) inline.
            reasons = ", ".join(e.get("reason", "unknown") for e in calendar["errors"])
            raise RemoteError(f"Free/busy query failed for {calendar_id}: {reasons}")

        return [
            BusyInterval(
                start=datetime.fromisoformat(interval["start"]),
                end=datetime.fromisoformat(interval["end"]),
            )
            for interval in calendar.get("busy", [])
        ]

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
        params: dict[str, Any] = {
            "calendarId": calendar_id,
            "timeMin": self._to_rfc3339(time_min),
            "singleEvents": single_events,
        }
        if time_max is not None:
            params["timeMax"] = self._to_rfc3339(time_max)
        if order_by:
            params["orderBy"] = order_by
        if max_results:
            params["maxResults"] = max_results

        response = await self._execute(
            lambda service: service.events().list(**params)
        )
        return [self._to_remote_event(item) for item in response.get("items", [])]

    async def create_event(
        self,
        calendar_id: str,
        summary: str,
        description: str,
        start_date: date,
        end_date: date,
        status: Optional[str] = None,
    ) -> str:
        body: dict[str, Any] = {
            "summary": summary,
            "description": description,
            "start": {"date": start_date.isoformat()},
            "end": {"date": end_date.isoformat()},
        }
        if status:
            body["extendedProperties"] = {"private": {STATUS_PROPERTY: status}}

        result = await self._execute(
            lambda service: service.events().insert(calendarId=calendar_id, body=body)
        )
        logger.info("Created event %s on calendar %s", result["id"], calendar_id)
        return result["id"]

    async def get_event(self, calendar_id: str, event_id: str) -> RemoteEvent:
        item = await self._execute(
            lambda service: service.events().get(calendarId=calendar_id, eventId=event_id)
        )
        return self._to_remote_event(item)

    async def patch_event(
        self, calendar_id: str, event_id: str, fields: dict[str, Any]
    ) -> None:
        body: dict[str, Any] = {
            key: fields[key] for key in ("summary", "description") if key in fields
        }
        if "status" in fields:
            body["extendedProperties"] = {"private": {STATUS_PROPERTY: fields["status"]}}

        await self._execute(
            lambda service: service.events().patch(
                calendarId=calendar_id, eventId=event_id, body=body
            )
        )
        logger.info("Patched event %s on calendar %s", event_id, calendar_id)

    async def delete_event(self, calendar_id: str, event_id: str) -> None:
        await self._execute(
            lambda service: service.events().delete(
                calendarId=calendar_id, eventId=event_id
            )
        )
        logger.info("Deleted event %s on calendar %s", event_id, calendar_id)
