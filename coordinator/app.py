"""FastAPI application: HTTP endpoints for the property coordinator.

Endpoints:

  GET  /                          Status: auth established, active calendar
  GET  /health                    Health check
  POST /booking                   Guest booking form (name, email, startDate, endDate)
  GET  /owner                     Upcoming bookings with status
  POST /owner/approve/{event_id}  Confirm a pending booking
  POST /owner/reject/{event_id}   Decline and remove a booking
  GET  /auth/google               Start the owner's Google OAuth flow
  GET  /oauth2callback            OAuth redirect target
  GET  /list-events               Next raw calendar events (debugging)

Responses are JSON; page rendering lives outside this service.
"""

from __future__ import annotations

# Load .env into os.environ before settings are read.
from dotenv import load_dotenv
load_dotenv()

import asyncio
import dataclasses
import logging
import time
from datetime import datetime, timezone
from typing import Optional

# Configure root logger early so all app loggers have a handler when run
# via `uvicorn coordinator.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import FastAPI, Form, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse

from coordinator.booking.availability import AvailabilityChecker
from coordinator.booking.orchestrator import BookingOrchestrator, redact_pii
from coordinator.booking.reconciler import StatusReconciler
from coordinator.calendar_providers.base import CalendarGateway
from coordinator.calendar_providers.memory import InMemoryCalendarGateway
from coordinator.config import Settings, settings
from coordinator.credentials import CredentialStore, OAuthFlow
from coordinator.errors import (
    InvalidTransition,
    NotFound,
    RemoteError,
    RemoteReadFailure,
    RemoteWriteFailure,
    Unauthenticated,
    UnknownProperty,
)
from coordinator.models.booking import Accepted, BookingRequest
from coordinator.properties import PropertyResolver

log = logging.getLogger("coordinator.app")

_START_TIME = time.time()

AUTH_PATH = "/auth/google"

_REJECTION_STATUS = {
    "validation": 400,
    "conflict": 409,
    "write_failure": 502,
}


def _build_gateway(app_settings: Settings, credential_store: CredentialStore) -> CalendarGateway:
    if app_settings.calendar_gateway == "memory":
        log.info("Using in-memory calendar gateway")
        return InMemoryCalendarGateway()

    from coordinator.calendar_providers.google import GoogleCalendarGateway

    return GoogleCalendarGateway(credential_store)


def create_app(
    app_settings: Optional[Settings] = None,
    *,
    gateway: Optional[CalendarGateway] = None,
    credential_store: Optional[CredentialStore] = None,
    oauth_flow: Optional[OAuthFlow] = None,
    resolver: Optional[PropertyResolver] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to the ones described by ``app_settings``; tests
    pass their own.
    """
    cfg = app_settings or settings

    if credential_store is None:
        credential_store = CredentialStore(cfg.google_token_file)
        credential_store.load()
    if gateway is None:
        gateway = _build_gateway(cfg, credential_store)
    if oauth_flow is None:
        oauth_flow = OAuthFlow(cfg.google_client_secrets_file, cfg.google_redirect_uri)
    if resolver is None:
        resolver = PropertyResolver.from_file(cfg.calendars_file)

    try:
        calendar_id: Optional[str] = resolver.resolve_calendar_id(cfg.property_key)
    except UnknownProperty as exc:
        log.error("%s", exc)
        calendar_id = None

    app = FastAPI(
        title="Property Coordinator",
        description="Booking requests and owner approval over a Google calendar",
        version="0.1.0",
    )
    app.state.gateway = gateway
    app.state.credential_store = credential_store

    def _require_calendar() -> str:
        if calendar_id is None:
            raise UnknownProperty(cfg.property_key)
        return calendar_id

    def _orchestrator() -> BookingOrchestrator:
        checker = AvailabilityChecker(gateway, timeout=cfg.remote_timeout_seconds)
        return BookingOrchestrator(
            gateway, checker, _require_calendar(), timeout=cfg.remote_timeout_seconds
        )

    def _reconciler() -> StatusReconciler:
        return StatusReconciler(
            gateway,
            _require_calendar(),
            window_days=cfg.owner_window_days,
            max_results=cfg.owner_max_results,
            timeout=cfg.remote_timeout_seconds,
        )

    # ── Error mapping ──────────────────────────────────────────

    @app.exception_handler(Unauthenticated)
    async def _unauthenticated(request: Request, exc: Unauthenticated) -> JSONResponse:
        return JSONResponse(
            {"error": "Google authentication required.", "detail": str(exc), "auth_url": AUTH_PATH},
            status_code=401,
        )

    @app.exception_handler(NotFound)
    async def _not_found(request: Request, exc: NotFound) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=404)

    @app.exception_handler(InvalidTransition)
    async def _invalid_transition(request: Request, exc: InvalidTransition) -> JSONResponse:
        return JSONResponse({"error": str(exc), "status": exc.status}, status_code=409)

    @app.exception_handler(RemoteWriteFailure)
    async def _write_failure(request: Request, exc: RemoteWriteFailure) -> JSONResponse:
        return JSONResponse({"error": str(exc), "partial": exc.partial}, status_code=502)

    @app.exception_handler(RemoteReadFailure)
    async def _read_failure(request: Request, exc: RemoteReadFailure) -> JSONResponse:
        return JSONResponse({"bookings": [], "error": str(exc)}, status_code=502)

    @app.exception_handler(RemoteError)
    async def _remote_error(request: Request, exc: RemoteError) -> JSONResponse:
        return JSONResponse({"error": f"Calendar request failed: {exc}"}, status_code=502)

    @app.exception_handler(UnknownProperty)
    async def _unknown_property(request: Request, exc: UnknownProperty) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=503)

    # ── Health / status ────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({"status": "ok", "uptime": uptime})

    @app.get("/")
    async def index() -> JSONResponse:
        return JSONResponse({
            "title": "Property Coordinator",
            "auth_established": gateway.is_authenticated,
            "property_key": cfg.property_key,
            "calendar_id": calendar_id,
        })

    # ── Guest booking ──────────────────────────────────────────

    @app.post("/booking")
    async def submit_booking(
        name: str = Form(""),
        email: str = Form(""),
        startDate: str = Form(""),
        endDate: str = Form(""),
    ) -> JSONResponse:
        """Validate, check the calendar, and create a pending booking."""
        request = BookingRequest(
            name=name, email=email, start_date=startDate, end_date=endDate
        )
        log.info(
            "Booking request from %s for %s..%s", redact_pii(email), startDate, endDate
        )
        outcome = await _orchestrator().submit(request)

        debug = {
            "auth_established": gateway.is_authenticated,
            "calendar_id": calendar_id,
            "submitted_dates": {"start_date": startDate, "end_date": endDate},
            "calendar_event_match": (
                outcome.calendar_match if isinstance(outcome, Accepted) else None
            ),
        }

        if isinstance(outcome, Accepted):
            return JSONResponse({
                "status": outcome.status,
                "event_id": outcome.event_id,
                "message": "Your booking request has been received!",
                "debug": debug,
            })

        return JSONResponse(
            {
                "status": outcome.status,
                "reason": outcome.reason,
                "errors": outcome.errors,
                "form": {"name": name, "email": email, "startDate": startDate, "endDate": endDate},
                "debug": debug,
            },
            status_code=_REJECTION_STATUS[outcome.reason],
        )

    # ── Owner dashboard ────────────────────────────────────────

    @app.get("/owner")
    async def owner_dashboard() -> JSONResponse:
        if not gateway.is_authenticated:
            raise Unauthenticated("Google account not connected.")
        bookings = await _reconciler().list_bookings()
        return JSONResponse({
            "title": "Owner Dashboard",
            "bookings": [b.model_dump(mode="json") for b in bookings],
            "error": None,
        })

    @app.post("/owner/approve/{event_id}")
    async def approve_booking(event_id: str) -> RedirectResponse:
        await _reconciler().approve(event_id)
        return RedirectResponse("/owner", status_code=303)

    @app.post("/owner/reject/{event_id}")
    async def reject_booking(event_id: str) -> RedirectResponse:
        await _reconciler().reject(event_id)
        return RedirectResponse("/owner", status_code=303)

    # ── Google OAuth ───────────────────────────────────────────

    @app.get(AUTH_PATH)
    async def google_auth():
        try:
            url = oauth_flow.authorization_url()
        except Unauthenticated as exc:
            log.error("Cannot start OAuth flow: %s", exc)
            return JSONResponse({"error": str(exc)}, status_code=503)
        return RedirectResponse(url, status_code=302)

    @app.get("/oauth2callback")
    async def oauth2callback(code: str = ""):
        if not code:
            return JSONResponse({"error": "Missing authorization code."}, status_code=400)
        loop = asyncio.get_running_loop()
        try:
            creds = await loop.run_in_executor(None, oauth_flow.exchange_code, code)
        except Exception as e:
            log.warning("OAuth code exchange failed: %s", e)
            return JSONResponse({"error": f"Authentication failed: {e}"}, status_code=400)
        await loop.run_in_executor(None, credential_store.update, creds)
        return PlainTextResponse("Authentication successful! You can close this window.")

    @app.get("/list-events")
    async def list_events():
        if not gateway.is_authenticated:
            return RedirectResponse(AUTH_PATH, status_code=302)
        events = await gateway.list_events(
            _require_calendar(),
            datetime.now(timezone.utc),
            max_results=10,
            single_events=True,
            order_by="startTime",
        )
        return JSONResponse([dataclasses.asdict(e) for e in events])

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    for warning in settings.validate_startup():
        log.warning(warning)

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "coordinator.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
