"""Tests for CalendarGateway ABC, InMemoryCalendarGateway and GoogleCalendarGateway."""

from datetime import date, datetime, timezone
from unittest.mock import MagicMock, patch

import httplib2
import pytest
from googleapiclient.errors import HttpError

from coordinator.calendar_providers.base import (
    BusyInterval,
    CalendarGateway,
    RemoteEvent,
)
from coordinator.calendar_providers.memory import InMemoryCalendarGateway
from coordinator.credentials import CredentialStore
from coordinator.errors import EventNotFound, RemoteError, Unauthenticated


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# ── RemoteEvent / ABC contract ──────────────────────────────────────


class TestDataclasses:
    def test_remote_event_defaults(self):
        event = RemoteEvent(id="e1")
        assert event.summary == ""
        assert event.description == ""
        assert event.status_property is None

    def test_all_day_detection(self):
        assert RemoteEvent(id="a", start="2024-06-01", end="2024-06-04").is_all_day
        assert not RemoteEvent(
            id="b", start="2024-06-01T10:00:00+00:00", end="2024-06-01T11:00:00+00:00"
        ).is_all_day


class TestCalendarGatewayABC:
    def test_cannot_instantiate(self):
        """CalendarGateway is abstract; it can't be instantiated directly."""
        with pytest.raises(TypeError):
            CalendarGateway()

    def test_in_memory_is_a_gateway(self):
        assert isinstance(InMemoryCalendarGateway(), CalendarGateway)


# ── InMemoryCalendarGateway ─────────────────────────────────────────


class TestInMemoryGateway:
    @pytest.mark.asyncio
    async def test_created_event_is_busy(self):
        gw = InMemoryCalendarGateway()
        await gw.create_event("cal", "PENDING Booking: Bo", "", date(2024, 6, 1), date(2024, 6, 4))

        busy = await gw.query_free_busy("cal", _utc(2024, 6, 3), _utc(2024, 6, 5))
        assert busy == [BusyInterval(start=_utc(2024, 6, 1), end=_utc(2024, 6, 4))]

    @pytest.mark.asyncio
    async def test_exclusive_end_is_free(self):
        gw = InMemoryCalendarGateway()
        await gw.create_event("cal", "x", "", date(2024, 6, 1), date(2024, 6, 4))

        assert await gw.query_free_busy("cal", _utc(2024, 6, 4), _utc(2024, 6, 6)) == []

    @pytest.mark.asyncio
    async def test_other_calendar_unaffected(self):
        gw = InMemoryCalendarGateway()
        await gw.create_event("cal", "x", "", date(2024, 6, 1), date(2024, 6, 4))

        assert await gw.query_free_busy("other", _utc(2024, 6, 1), _utc(2024, 6, 4)) == []

    @pytest.mark.asyncio
    async def test_list_orders_and_caps(self):
        gw = InMemoryCalendarGateway()
        gw.add_event("cal", RemoteEvent(id="late", start="2024-06-10", end="2024-06-11"))
        gw.add_event("cal", RemoteEvent(id="early", start="2024-06-02", end="2024-06-03"))
        gw.add_event("cal", RemoteEvent(id="mid", start="2024-06-05", end="2024-06-06"))

        events = await gw.list_events(
            "cal", _utc(2024, 6, 1), _utc(2024, 7, 1), order_by="startTime", max_results=2
        )
        assert [e.id for e in events] == ["early", "mid"]

    @pytest.mark.asyncio
    async def test_unauthenticated_raises(self):
        gw = InMemoryCalendarGateway(authenticated=False)
        with pytest.raises(Unauthenticated):
            await gw.list_events("cal", _utc(2024, 6, 1))

    @pytest.mark.asyncio
    async def test_failure_injection(self):
        gw = InMemoryCalendarGateway()
        gw.fail_on["create_event"] = RemoteError("quota exceeded", status_code=403)
        with pytest.raises(RemoteError):
            await gw.create_event("cal", "x", "", date(2024, 6, 1), date(2024, 6, 2))
        assert gw.events("cal") == []

    @pytest.mark.asyncio
    async def test_missing_event(self):
        gw = InMemoryCalendarGateway()
        with pytest.raises(EventNotFound):
            await gw.get_event("cal", "nope")
        with pytest.raises(EventNotFound):
            await gw.delete_event("cal", "nope")


# ── GoogleCalendarGateway tests (mocked API) ────────────────────────


def _http_error(status: int) -> HttpError:
    return HttpError(
        httplib2.Response({"status": str(status)}),
        b'{"error": {"message": "failure"}}',
    )


class TestGoogleCalendarGateway:
    @pytest.fixture
    def gateway_and_service(self):
        """Create a GoogleCalendarGateway with mocked Google APIs."""
        from coordinator.calendar_providers.google import GoogleCalendarGateway

        store = MagicMock(spec=CredentialStore)
        store.is_authenticated = True
        store.get_credentials.return_value = MagicMock()

        with patch("coordinator.calendar_providers.google.build") as mock_build:
            gateway = GoogleCalendarGateway(store)
            gateway._get_service()
        return gateway, mock_build.return_value

    @pytest.mark.asyncio
    async def test_free_busy_empty(self, gateway_and_service):
        gateway, service = gateway_and_service
        service.freebusy.return_value.query.return_value.execute.return_value = {
            "calendars": {"cal": {"busy": []}}
        }

        busy = await gateway.query_free_busy("cal", _utc(2024, 6, 1), _utc(2024, 6, 3))

        assert busy == []
        body = service.freebusy.return_value.query.call_args.kwargs["body"]
        assert body["timeMin"] == "2024-06-01T00:00:00+00:00"
        assert body["timeMax"] == "2024-06-03T00:00:00+00:00"
        assert body["items"] == [{"id": "cal"}]

    @pytest.mark.asyncio
    async def test_free_busy_parses_intervals(self, gateway_and_service):
        gateway, service = gateway_and_service
        service.freebusy.return_value.query.return_value.execute.return_value = {
            "calendars": {
                "cal": {
                    "busy": [
                        {"start": "2024-06-01T00:00:00+00:00", "end": "2024-06-02T00:00:00+00:00"}
                    ]
                }
            }
        }

        busy = await gateway.query_free_busy("cal", _utc(2024, 6, 1), _utc(2024, 6, 3))

        assert busy == [BusyInterval(start=_utc(2024, 6, 1), end=_utc(2024, 6, 2))]

    @pytest.mark.asyncio
    async def test_free_busy_calendar_error(self, gateway_and_service):
        """Per-calendar errors in the free/busy payload are failures, not 'free'."""
        gateway, service = gateway_and_service
        service.freebusy.return_value.query.return_value.execute.return_value = {
            "calendars": {"cal": {"errors": [{"domain": "global", "reason": "notFound"}], "busy": []}}
        }

        with pytest.raises(RemoteError):
            await gateway.query_free_busy("cal", _utc(2024, 6, 1), _utc(2024, 6, 3))

    @pytest.mark.asyncio
    async def test_create_all_day_event(self, gateway_and_service):
        gateway, service = gateway_and_service
        service.events.return_value.insert.return_value.execute.return_value = {"id": "evt_123"}

        event_id = await gateway.create_event(
            "cal",
            summary="PENDING Booking: Alice",
            description="Booking for Alice (a@x.com)",
            start_date=date(2024, 6, 1),
            end_date=date(2024, 6, 4),
            status="pending",
        )

        assert event_id == "evt_123"
        service.events.return_value.insert.assert_called_once_with(
            calendarId="cal",
            body={
                "summary": "PENDING Booking: Alice",
                "description": "Booking for Alice (a@x.com)",
                "start": {"date": "2024-06-01"},
                "end": {"date": "2024-06-04"},
                "extendedProperties": {"private": {"bookingStatus": "pending"}},
            },
        )

    @pytest.mark.asyncio
    async def test_get_event_maps_fields(self, gateway_and_service):
        gateway, service = gateway_and_service
        service.events.return_value.get.return_value.execute.return_value = {
            "id": "evt_1",
            "summary": "CONFIRMED Booking: Bo",
            "start": {"date": "2024-06-01"},
            "end": {"date": "2024-06-03"},
            "extendedProperties": {"private": {"bookingStatus": "confirmed"}},
        }

        event = await gateway.get_event("cal", "evt_1")

        assert event == RemoteEvent(
            id="evt_1",
            summary="CONFIRMED Booking: Bo",
            description="",
            start="2024-06-01",
            end="2024-06-03",
            status_property="confirmed",
        )

    @pytest.mark.asyncio
    async def test_list_events_timed_event(self, gateway_and_service):
        gateway, service = gateway_and_service
        service.events.return_value.list.return_value.execute.return_value = {
            "items": [
                {
                    "id": "evt_2",
                    "start": {"dateTime": "2024-06-01T10:00:00Z"},
                    "end": {"dateTime": "2024-06-01T11:00:00Z"},
                }
            ]
        }

        events = await gateway.list_events(
            "cal", _utc(2024, 6, 1), _utc(2024, 6, 2), order_by="startTime", max_results=50
        )

        assert events[0].start == "2024-06-01T10:00:00Z"
        assert not events[0].is_all_day
        kwargs = service.events.return_value.list.call_args.kwargs
        assert kwargs["orderBy"] == "startTime"
        assert kwargs["maxResults"] == 50
        assert kwargs["singleEvents"] is True

    @pytest.mark.asyncio
    async def test_patch_sends_status_property(self, gateway_and_service):
        gateway, service = gateway_and_service
        service.events.return_value.patch.return_value.execute.return_value = {}

        await gateway.patch_event("cal", "evt_1", {"summary": "CONFIRMED x", "status": "confirmed"})

        service.events.return_value.patch.assert_called_once_with(
            calendarId="cal",
            eventId="evt_1",
            body={
                "summary": "CONFIRMED x",
                "extendedProperties": {"private": {"bookingStatus": "confirmed"}},
            },
        )

    @pytest.mark.asyncio
    async def test_http_404_is_event_not_found(self, gateway_and_service):
        gateway, service = gateway_and_service
        service.events.return_value.get.return_value.execute.side_effect = _http_error(404)

        with pytest.raises(EventNotFound):
            await gateway.get_event("cal", "gone")

    @pytest.mark.asyncio
    async def test_http_401_is_unauthenticated(self, gateway_and_service):
        gateway, service = gateway_and_service
        service.events.return_value.delete.return_value.execute.side_effect = _http_error(401)

        with pytest.raises(Unauthenticated):
            await gateway.delete_event("cal", "evt_1")

    @pytest.mark.asyncio
    async def test_http_500_is_remote_error(self, gateway_and_service):
        gateway, service = gateway_and_service
        service.events.return_value.insert.return_value.execute.side_effect = _http_error(500)

        with pytest.raises(RemoteError) as exc_info:
            await gateway.create_event("cal", "s", "d", date(2024, 6, 1), date(2024, 6, 2))
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_transport_failure_is_remote_error(self, gateway_and_service):
        gateway, service = gateway_and_service
        service.events.return_value.list.return_value.execute.side_effect = (
            httplib2.ServerNotFoundError("Unable to find the server")
        )

        with pytest.raises(RemoteError) as exc_info:
            await gateway.list_events("cal", _utc(2024, 6, 1))
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_no_credential_is_unauthenticated(self):
        from coordinator.calendar_providers.google import GoogleCalendarGateway

        store = MagicMock(spec=CredentialStore)
        store.get_credentials.side_effect = Unauthenticated("not connected")
        gateway = GoogleCalendarGateway(store)

        with pytest.raises(Unauthenticated):
            await gateway.query_free_busy("cal", _utc(2024, 6, 1), _utc(2024, 6, 2))
