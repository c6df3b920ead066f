"""Property → calendar id lookup.

The mapping lives in a small JSON file (``calendars.json``)::

    {"campbell_ave": "abc123@group.calendar.google.com"}

One property is active per deployment, chosen by ``PROPERTY_KEY``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from coordinator.errors import UnknownProperty

log = logging.getLogger("coordinator.properties")


class PropertyResolver:
    def __init__(self, calendars: dict[str, str]) -> None:
        self._calendars = dict(calendars)

    @classmethod
    def from_file(cls, path: str | Path) -> "PropertyResolver":
        path = Path(path)
        if not path.exists():
            log.warning("Calendar mapping %s not found; no properties configured", path)
            return cls({})
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a JSON object of property → calendar id")
        log.info("Loaded %d property calendar(s) from %s", len(data), path)
        return cls({str(k): str(v) for k, v in data.items()})

    @property
    def property_keys(self) -> list[str]:
        return sorted(self._calendars)

    def resolve_calendar_id(self, property_key: str) -> str:
        try:
            return self._calendars[property_key]
        except KeyError:
            raise UnknownProperty(property_key) from None
