import datetime as dt
import json
from unittest.mock import MagicMock

import pytest

from datadog_logs.concurrency import ConcurrencyGate
from datadog_logs.ingest import LogsSearchFetcher
from datadog_logs.retrieval import BulkLimits, RetrievalOrchestrator
from datadog_logs.storage import PageCache


T0 = dt.datetime(2024, 1, 15, 10, 0, 0, tzinfo=dt.timezone.utc)
T1 = dt.datetime(2024, 1, 15, 11, 0, 0, tzinfo=dt.timezone.utc)


def make_record(record_id="log-1", message="boom", status="error", timestamp="2024-01-15T10:30:00Z", **extra):
    attributes = {
        "timestamp": timestamp,
        "message": message,
        "status": status,
        "service": "web-app",
        "source": "nginx",
        "host": "web-01",
        "tags": ["env:prod", "version:1.2.3", "team:core"],
    }
    attributes.update(extra)
    return {"id": record_id, "type": "log", "attributes": attributes}


def make_response(status_code=200, payload=None, text=None, headers=None):
    """A stand-in for ``requests.Response`` with just what the fetcher reads."""

    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    if text is None:
        text = json.dumps(payload) if payload is not None else ""
    response.text = text
    if payload is not None:
        response.json.return_value = payload
    else:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    return response


def page_payload(records, after=None):
    payload = {"data": records, "meta": {"page": {}}}
    if after:
        payload["meta"]["page"]["after"] = after
    return payload


@pytest.fixture
def session():
    mock_session = MagicMock()
    mock_session.headers = {}
    return mock_session


@pytest.fixture
def fetcher(session):
    return LogsSearchFetcher(
        api_key="api-key",
        app_key="app-key",
        backoff_seconds=0.0,
        max_backoff_seconds=0.0,
        session=session,
    )


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def cache(fake_clock):
    return PageCache(ttl=30.0, clock=fake_clock)


@pytest.fixture
def orchestrator(fetcher, cache):
    return RetrievalOrchestrator(
        fetcher=fetcher,
        cache=cache,
        gate=ConcurrencyGate(5),
        bulk_limits=BulkLimits(initial_delay=0.0, page_delay=0.0, max_page_delay=0.0),
    )
