"""Application configuration via environment variables."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic_settings import BaseSettings

log = logging.getLogger("coordinator.config")


class Settings(BaseSettings):
    # Property
    property_key: str = "campbell_ave"
    calendars_file: str = "calendars.json"

    # Google Calendar
    calendar_gateway: str = "google"  # "google" or "memory"
    google_client_secrets_file: str = "credentials.json"
    google_token_file: str = "token.json"
    google_redirect_uri: str = ""
    remote_timeout_seconds: float = 10.0

    # Owner dashboard
    owner_window_days: int = 90
    owner_max_results: int = 50

    # Server
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        if self.calendar_gateway not in ("google", "memory"):
            raise ValueError(
                f"CALENDAR_GATEWAY must be 'google' or 'memory', got {self.calendar_gateway!r}."
            )

        if self.remote_timeout_seconds <= 0:
            raise ValueError("REMOTE_TIMEOUT_SECONDS must be positive.")

        if not Path(self.calendars_file).exists():
            warnings.append(
                f"CALENDARS_FILE {self.calendars_file} not found: bookings will fail "
                f"until {self.property_key!r} is mapped to a calendar."
            )

        if self.calendar_gateway == "google":
            if not Path(self.google_client_secrets_file).exists():
                warnings.append(
                    f"GOOGLE_CLIENT_SECRETS_FILE {self.google_client_secrets_file} not found: "
                    "owner cannot connect a Google account."
                )
            if not Path(self.google_token_file).exists():
                warnings.append(
                    "No Google token yet. Visit /auth/google to connect the owner's calendar."
                )
        else:
            warnings.append(
                "CALENDAR_GATEWAY=memory: bookings are kept in process memory only."
            )

        return warnings


settings = Settings()
