"""
Tests for the object-store backend (s3_storage.py)
"""

import json

import pytest
import requests

from conftest import BUCKET_URL, FakeBucket
from s3_storage import S3Provider
from schemas import EventValidationError
from storage import EventAlreadyExists, EventNotFound, TransportError, UnsupportedOperation


class TestAddressing:
    def test_normalizes_trailing_slash(self):
        """Should build the same object URL with or without a trailing slash"""
        with_slash = S3Provider(BUCKET_URL + "/", session=FakeBucket())
        without = S3Provider(BUCKET_URL, session=FakeBucket())

        assert with_slash.bucket_url == without.bucket_url == BUCKET_URL + "/"
        assert without.get_event_url("abc") == f"{BUCKET_URL}/abc.json"


class TestWrites:
    def test_create_puts_json(self, s3_storage, bucket, event):
        """Should PUT the versioned JSON record to the event's URL"""
        s3_storage.create_event(event)

        method, url, headers = bucket.calls[-1]
        assert method == "PUT"
        assert url == f"{BUCKET_URL}/{event.event_key}.json"
        assert headers["Content-Type"] == "application/json"
        assert bucket.stored(event.event_key)["schemaVersion"] == "1"
        assert bucket.stored(event.event_key)["adminToken"] == event.admin_token

    def test_create_is_conditional(self, s3_storage, bucket, event):
        """Should report an existing object when the store honours If-None-Match"""
        s3_storage.create_event(event)

        with pytest.raises(EventAlreadyExists):
            s3_storage.create_event(event)

    def test_create_overwrites_when_store_ignores_condition(self, event):
        """Should upsert on stores that ignore conditional writes"""
        bucket = FakeBucket(honour_conditional_writes=False)
        provider = S3Provider(BUCKET_URL, session=bucket)
        provider.create_event(event)
        provider.create_event(event.model_copy(update={"name": "Second"}))

        assert bucket.stored(event.event_key)["name"] == "Second"

    def test_invalid_event_never_sent(self, s3_storage, bucket, event):
        """Should validate before any network call"""
        broken = event.model_copy(update={"max_players": 0})

        with pytest.raises(EventValidationError):
            s3_storage.create_event(broken)

        assert bucket.calls == []

    def test_error_status_is_transport_error(self, s3_storage, bucket, event):
        """Should surface non-success responses with their status"""
        bucket.status_override = (403, "Forbidden")

        with pytest.raises(TransportError) as excinfo:
            s3_storage.create_event(event)

        assert excinfo.value.status_code == 403
        assert "Forbidden" in str(excinfo.value)

    def test_network_fault_is_transport_error(self, s3_storage, bucket, event):
        """Should wrap connection failures"""
        bucket.raise_on_request = requests.ConnectionError("connection refused")

        with pytest.raises(TransportError) as excinfo:
            s3_storage.create_event(event)

        assert excinfo.value.status_code is None
        assert isinstance(excinfo.value.__cause__, requests.ConnectionError)

    def test_update_prereads(self, s3_storage, bucket, event):
        """Should GET before PUT when updating"""
        s3_storage.create_event(event)
        bucket.calls.clear()

        s3_storage.update_event(event.model_copy(update={"teams_locked": True}))

        assert [c[0] for c in bucket.calls] == ["GET", "PUT"]
        assert "If-None-Match" not in bucket.calls[-1][2]
        assert bucket.stored(event.event_key)["teamsLocked"] is True

    def test_update_when_store_down_is_not_found(self, s3_storage, bucket, event):
        """Should report a missing event when the pre-read fails"""
        bucket.status_override = (503, "Service Unavailable")

        with pytest.raises(EventNotFound):
            s3_storage.update_event(event)


class TestReads:
    def test_missing_is_none(self, s3_storage):
        """Should map 404 to None"""
        assert s3_storage.get_event("missing") is None

    def test_server_error_is_none(self, s3_storage, bucket, event, caplog):
        """Should collapse a failing store into an absent event and log it"""
        s3_storage.create_event(event)
        bucket.status_override = (500, "Internal Server Error")

        assert s3_storage.get_event(event.event_key) is None
        assert "Error fetching event" in caplog.text

    def test_network_fault_is_none(self, s3_storage, bucket):
        """Should collapse connection failures into an absent event"""
        bucket.raise_on_request = requests.ConnectionError("unreachable")

        assert s3_storage.get_event("anything") is None

    def test_unknown_version_is_none(self, s3_storage, bucket, event):
        """Should treat records of an unknown version as absent"""
        s3_storage.create_event(event)
        record = bucket.stored(event.event_key)
        record["schemaVersion"] = "99"
        bucket.objects[s3_storage.get_event_url(event.event_key)] = json.dumps(record)

        assert s3_storage.get_event(event.event_key) is None

    def test_garbage_body_is_none(self, s3_storage, bucket):
        """Should treat an undecodable body as absent"""
        bucket.objects[s3_storage.get_event_url("junk")] = "<html>oops</html>"

        assert s3_storage.get_event("junk") is None


class TestDeleteAndList:
    def test_delete_removes(self, s3_storage, bucket, event):
        s3_storage.create_event(event)
        s3_storage.delete_event(event.event_key)

        assert bucket.calls[-1][0] == "DELETE"
        assert s3_storage.get_event(event.event_key) is None

    def test_delete_error_status(self, s3_storage, bucket):
        """Should raise for non-404 failures"""
        bucket.status_override = (500, "Internal Server Error")

        with pytest.raises(TransportError) as excinfo:
            s3_storage.delete_event("abc")

        assert excinfo.value.status_code == 500

    def test_list_refused_even_with_objects(self, s3_storage, event):
        """Should never enumerate the bucket"""
        s3_storage.create_event(event)

        with pytest.raises(UnsupportedOperation):
            s3_storage.list_events()
