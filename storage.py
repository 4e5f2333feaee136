"""
Storage contract, errors and backend registry.

Both backends implement ``StorageProvider``. The app is handed a provider
explicitly (see ``main.create_app``); ``initialize_storage``/``get_storage``
keep one process-wide instance for callers that want it.
"""

import logging
import os
from collections.abc import Mapping
from typing import Any, List, Optional, Protocol, runtime_checkable

from schemas import Event

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base class for storage failures."""


class EventAlreadyExists(StorageError):
    def __init__(self, event_key: str):
        super().__init__(f"Event already exists: {event_key}")
        self.event_key = event_key


class EventNotFound(StorageError):
    def __init__(self, event_key: str):
        super().__init__(f"Event not found: {event_key}")
        self.event_key = event_key


class UnsupportedOperation(StorageError):
    """The backend refuses the operation as a matter of policy."""


class TransportError(StorageError):
    def __init__(self, message: str, status_code: Optional[int] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class StorageNotInitialized(StorageError):
    pass


class UnknownStorageConfig(StorageError):
    pass


@runtime_checkable
class StorageProvider(Protocol):
    """Event persistence. ``update_event`` replaces the whole record."""

    def create_event(self, event: Event) -> None: ...

    def get_event(self, event_key: str) -> Optional[Event]: ...

    def update_event(self, event: Event) -> None: ...

    def delete_event(self, event_key: str) -> None: ...

    def list_events(self) -> List[Event]: ...


# ---------------------------------------------------------------------------
# Factory & registry
# ---------------------------------------------------------------------------
LOCAL_STORAGE = "localStorage"
REMOTE_STORAGE_TYPES = ("s3", "remote")

_storage: Optional[StorageProvider] = None


def create_storage(config: Mapping) -> StorageProvider:
    """Build a provider from a tagged config.

    ``{"type": "localStorage", "directory": "data"}`` or
    ``{"type": "s3", "bucketUrl": "https://..."}`` (``"remote"`` and
    ``baseUrl`` are accepted as synonyms).
    """
    # Imported here so the backends can depend on this module's errors.
    from local_storage import LocalStorageProvider
    from s3_storage import S3Provider

    kind = config.get("type")
    if kind == LOCAL_STORAGE:
        directory = config.get("directory")
        if directory:
            return LocalStorageProvider(directory)
        return LocalStorageProvider()
    if kind in REMOTE_STORAGE_TYPES:
        base_url = config.get("bucketUrl") or config.get("baseUrl")
        if not base_url:
            raise UnknownStorageConfig(f"Storage provider type {kind!r} requires a bucketUrl")
        return S3Provider(base_url)
    raise UnknownStorageConfig(f"Unknown storage provider type: {kind!r}")


def initialize_storage(config: Mapping) -> StorageProvider:
    """Replace the process-wide provider. No guard against calling twice."""
    global _storage
    _storage = create_storage(config)
    return _storage


def get_storage() -> StorageProvider:
    if _storage is None:
        raise StorageNotInitialized("Storage not initialized")
    return _storage


def reset_storage() -> None:
    global _storage
    _storage = None


def storage_config_from_env() -> dict[str, Any]:
    bucket_url = os.getenv("S3_BUCKET_URL")
    if bucket_url:
        logger.info("Using S3 storage provider")
        return {"type": "s3", "bucketUrl": bucket_url}
    logger.info("Using localStorage provider")
    return {"type": LOCAL_STORAGE, "directory": os.getenv("EVENTS_DATA_DIR", "data")}
