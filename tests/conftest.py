"""Pytest configuration and fixtures for paypal-rest tests.

This file provides:
- RecordingTransport: httpx.MockTransport that records every request
- Fixtures: configured stores, clients wired to the recording transport,
  and isolation of the process-wide default client
"""

from __future__ import annotations

import json
from threading import Lock
from typing import Any, Callable, Generator

import httpx
import pytest

from paypal_rest import resource
from paypal_rest.config_store import ConfigStore
from paypal_rest.connection import ConnectionProvider
from paypal_rest.resource import RestClient

BASE_URL = "https://api.example.com/v1/"

Handler = Callable[[httpx.Request], httpx.Response]


def json_response(body: Any, status_code: int = 200) -> httpx.Response:
    """Build a JSON response the way the service sends them."""
    return httpx.Response(
        status_code,
        content=json.dumps(body).encode("utf-8"),
        headers={"content-type": "application/json"},
    )


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served.

    The responder can be swapped between calls. Requests are recorded before
    the handler runs, so failing handlers still leave a trace.

    Usage:
        transport = RecordingTransport(lambda request: json_response({}))
        ...
        transport.requests[-1].url
    """

    def __init__(self, handler: Handler | None = None) -> None:
        self.respond: Handler = handler or (lambda request: json_response({"ok": True}))
        self.requests: list[httpx.Request] = []
        self._lock = Lock()
        super().__init__(self._dispatch)

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        request.read()
        with self._lock:
            self.requests.append(request)
        return self.respond(request)


def make_store(endpoint: str = BASE_URL, extra: dict[str, str] | None = None) -> ConfigStore:
    """Create an initialized ConfigStore pointing at endpoint."""
    store = ConfigStore()
    store.load({"service.EndPoint": endpoint, **(extra or {})})
    return store


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def store() -> ConfigStore:
    return make_store()


@pytest.fixture
def client(store: ConfigStore, transport: RecordingTransport) -> Generator[RestClient, None, None]:
    """RestClient with BASE_URL configured and the recording transport."""
    with RestClient(
        config_store=store,
        connection_provider=ConnectionProvider(transport=transport),
    ) as rest_client:
        yield rest_client


@pytest.fixture(autouse=True)
def isolate_default_client() -> Generator[None, None, None]:
    """Every test starts and ends without a process-wide client."""
    resource.reset_default_client()
    yield
    resource.reset_default_client()


@pytest.fixture
def default_client(transport: RecordingTransport) -> RestClient:
    """Install a process-wide client using the bundled default configuration."""
    rest_client = RestClient(connection_provider=ConnectionProvider(transport=transport))
    resource._default_client = rest_client
    return rest_client
