"""Shared fixtures: sample events, both storage backends and an API client."""

import json

import pytest
import requests
from fastapi.testclient import TestClient

from local_storage import LocalStorageProvider
from main import create_app
from s3_storage import S3Provider
from schemas import Event, Player

BUCKET_URL = "https://bucket.example.com/events"


def make_response(status_code, reason="", body=None):
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.encoding = "utf-8"
    response._content = (body or "").encode("utf-8")
    return response


class FakeBucket:
    """Object store reachable through the requests.Session methods S3Provider uses."""

    def __init__(self, honour_conditional_writes=True):
        self.objects = {}
        self.calls = []
        self.honour_conditional_writes = honour_conditional_writes
        self.raise_on_request = None
        self.status_override = None

    def _intercept(self, method, url, headers=None):
        self.calls.append((method, url, headers or {}))
        if self.raise_on_request is not None:
            raise self.raise_on_request
        if self.status_override is not None:
            return make_response(*self.status_override)
        return None

    def put(self, url, data=None, headers=None, timeout=None):
        override = self._intercept("PUT", url, headers)
        if override is not None:
            return override
        headers = headers or {}
        if self.honour_conditional_writes and headers.get("If-None-Match") == "*" and url in self.objects:
            return make_response(412, "Precondition Failed")
        self.objects[url] = data
        return make_response(200, "OK")

    def get(self, url, timeout=None):
        override = self._intercept("GET", url)
        if override is not None:
            return override
        if url not in self.objects:
            return make_response(404, "Not Found")
        return make_response(200, "OK", self.objects[url])

    def delete(self, url, timeout=None):
        override = self._intercept("DELETE", url)
        if override is not None:
            return override
        if url not in self.objects:
            return make_response(404, "Not Found")
        del self.objects[url]
        return make_response(204, "No Content")

    def stored(self, event_key):
        return json.loads(self.objects[f"{BUCKET_URL}/{event_key}.json"])


@pytest.fixture
def make_event():
    def _make(**overrides):
        data = dict(
            event_key="k3yAbc_123",
            admin_token="adm1nT0ken-abcdefghi",
            name="Thursday Five-a-side",
            date="2026-10-22T19:00",
            location="Powerleague Shoreditch",
            max_players=10,
            price_total=60.0,
            creator="Sam",
            players=[Player(name="Sam", has_paid=False, team=None)],
        )
        data.update(overrides)
        return Event(**data)

    return _make


@pytest.fixture
def event(make_event):
    return make_event()


@pytest.fixture
def local_storage(tmp_path):
    return LocalStorageProvider(tmp_path)


@pytest.fixture
def bucket():
    return FakeBucket()


@pytest.fixture
def s3_storage(bucket):
    return S3Provider(BUCKET_URL, session=bucket)


@pytest.fixture(params=["local", "s3"])
def provider(request, tmp_path):
    if request.param == "local":
        return LocalStorageProvider(tmp_path)
    return S3Provider(BUCKET_URL, session=FakeBucket())


@pytest.fixture
def client(local_storage):
    return TestClient(create_app(local_storage))
