"""Shared test fixtures for all test modules."""

from datetime import datetime, timezone

import httpx
import pytest

from tsquery.storage import BackendAdapter

ENV_VARS = [
    "DATASOURCE_URL",
    "DATASOURCE_TYPE",
    "DATASOURCE_LOOKBACK",
    "DATASOURCE_QUERY_STEP",
    "DATASOURCE_USERNAME",
    "DATASOURCE_PASSWORD",
    "DATASOURCE_BEARER_TOKEN",
]

# 2024-01-01T00:00:00Z
EVAL_TS = datetime(2024, 1, 1, tzinfo=timezone.utc)
EVAL_UNIX = 1704067200

PROM_VECTOR = {
    "status": "success",
    "data": {
        "resultType": "vector",
        "result": [
            {"metric": {"__name__": "up", "job": "node", "instance": "host:9100"}, "value": [1704067200, "1"]},
            {"metric": {"__name__": "up", "job": "api", "instance": "host:8080"}, "value": [1704067200, "0"]},
        ],
    },
}

PROM_MATRIX = {
    "status": "success",
    "data": {
        "resultType": "matrix",
        "result": [
            {
                "metric": {"__name__": "http_requests_total", "code": "200"},
                "values": [[1704067200, "10"], [1704067260, "12"], [1704067320, "15"]],
            },
        ],
    },
}

GRAPHITE_RENDER = [
    {
        "target": "servers.web1.cpu",
        "tags": {"name": "servers.web1.cpu", "dc": "eu"},
        "datapoints": [[1.5, 1704067140], [2.5, 1704067200]],
    },
    {"target": "servers.web2.cpu", "tags": {"name": "servers.web2.cpu"}, "datapoints": []},
]


class TrackingStream(httpx.AsyncByteStream):
    """Response body that remembers whether it was closed."""

    def __init__(self, data: bytes):
        self.data = data
        self.closed = False
        self.close_calls = 0

    async def __aiter__(self):
        yield self.data

    async def aclose(self):
        self.closed = True
        self.close_calls += 1


class RecordingHandler:
    """MockTransport handler that records requests and replays a canned response."""

    def __init__(self, status_code=200, json=None, content=None, stream=None, exc=None):
        self.status_code = status_code
        self.json = json
        self.content = content
        self.stream = stream
        self.exc = exc
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        if self.stream is not None:
            return httpx.Response(self.status_code, stream=self.stream)
        if self.json is not None:
            return httpx.Response(self.status_code, json=self.json)
        return httpx.Response(self.status_code, content=self.content or b"")

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep datasource settings from the host environment out of tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_client():
    """Build an AsyncClient backed by a mock transport."""
    def _make(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return _make


@pytest.fixture
def make_adapter(make_client):
    """Build a BackendAdapter that talks to the given handler."""
    def _make(handler, url="http://host:8400/", **kwargs) -> BackendAdapter:
        return BackendAdapter(url, make_client(handler), **kwargs)
    return _make
