"""
Object-store backend: one JSON object per event at ``<bucket>/<eventKey>.json``.

Listing is refused so a public bucket is never enumerated through the app.
Reads collapse every failure (missing, unreachable, corrupt) to ``None``.
"""

import json
import logging
from typing import List, Optional

import requests

from schemas import CURRENT_SCHEMA_VERSION, Event, SchemaError, serialize_event, validate_event
from storage import (
    EventAlreadyExists,
    EventNotFound,
    StorageError,
    TransportError,
    UnsupportedOperation,
)

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


class S3Provider:
    def __init__(
        self,
        bucket_url: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.bucket_url = bucket_url if bucket_url.endswith("/") else bucket_url + "/"
        self.session = session or requests.Session()
        self.timeout = timeout

    def get_event_url(self, event_key: str) -> str:
        return f"{self.bucket_url}{event_key}.json"

    def _prepare(self, event: Event) -> str:
        data = serialize_event(event)
        data["schemaVersion"] = CURRENT_SCHEMA_VERSION
        validate_event(data)
        return json.dumps(data, allow_nan=False)

    def _put(self, event: Event, action: str, conditional: bool = False) -> None:
        body = self._prepare(event)
        headers = dict(JSON_HEADERS)
        if conditional:
            headers["If-None-Match"] = "*"
        try:
            response = self.session.put(
                self.get_event_url(event.event_key),
                data=body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Failed to {action} event: {exc}") from exc

        if conditional and response.status_code == 412:
            raise EventAlreadyExists(event.event_key)
        if not response.ok:
            raise TransportError(
                f"Failed to {action} event: {response.reason}",
                status_code=response.status_code,
                reason=response.reason,
            )

    def create_event(self, event: Event) -> None:
        # Stores that ignore If-None-Match will overwrite an existing object.
        self._put(event, "create", conditional=True)

    def get_event(self, event_key: str) -> Optional[Event]:
        try:
            response = self.session.get(self.get_event_url(event_key), timeout=self.timeout)
            if not response.ok:
                if response.status_code == 404:
                    return None
                raise TransportError(
                    f"Failed to fetch event: {response.reason}",
                    status_code=response.status_code,
                    reason=response.reason,
                )
            return validate_event(response.json())
        except (requests.RequestException, ValueError, StorageError, SchemaError) as exc:
            logger.error("Error fetching event %s: %s", event_key, exc)
            return None

    def update_event(self, event: Event) -> None:
        # Not transactional with the write below.
        if self.get_event(event.event_key) is None:
            raise EventNotFound(event.event_key)
        self._put(event, "update")

    def delete_event(self, event_key: str) -> None:
        try:
            response = self.session.delete(self.get_event_url(event_key), timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Failed to delete event: {exc}") from exc

        if not response.ok and response.status_code != 404:
            raise TransportError(
                f"Failed to delete event: {response.reason}",
                status_code=response.status_code,
                reason=response.reason,
            )

    def list_events(self) -> List[Event]:
        raise UnsupportedOperation("Listing events is not supported")
