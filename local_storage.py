"""
Single-blob key-value backend.

Every event lives in one JSON mapping (eventKey -> record) stored under a
fixed key. Each operation reads the whole table and rewrites it; two
processes sharing the directory overwrite each other at table granularity.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from schemas import Event, serialize_event, validate_event
from storage import EventAlreadyExists, EventNotFound

STORAGE_KEY = "five-or-die-events"


class LocalStorageProvider:
    def __init__(self, directory: Union[str, Path] = "data", storage_key: str = STORAGE_KEY):
        self._dir = Path(directory)
        self._path = self._dir / f"{storage_key}.json"

    @property
    def path(self) -> Path:
        return self._path

    def _get_events(self) -> Dict[str, Dict[str, Any]]:
        if not self._path.exists():
            return {}
        data = self._path.read_text(encoding="utf-8")
        return json.loads(data) if data else {}

    def _save_events(self, events: Dict[str, Dict[str, Any]]) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(events, f)
            os.replace(tmp, self._path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def create_event(self, event: Event) -> None:
        events = self._get_events()
        if event.event_key in events:
            raise EventAlreadyExists(event.event_key)
        events[event.event_key] = serialize_event(event)
        self._save_events(events)

    def get_event(self, event_key: str) -> Optional[Event]:
        record = self._get_events().get(event_key)
        if record is None:
            return None
        return validate_event(record)

    def update_event(self, event: Event) -> None:
        events = self._get_events()
        if event.event_key not in events:
            raise EventNotFound(event.event_key)
        events[event.event_key] = serialize_event(event)
        self._save_events(events)

    def delete_event(self, event_key: str) -> None:
        events = self._get_events()
        events.pop(event_key, None)
        self._save_events(events)

    def list_events(self) -> List[Event]:
        return [validate_event(record) for record in self._get_events().values()]
