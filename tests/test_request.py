import datetime as dt

import pytest

from conftest import T0, T1
from datadog_logs.retrieval import LogQueryRequest, PageFingerprint
from datadog_logs.translation import QueryTranslator


def fingerprint(query="service:web-app status:error", cursor="", page_size=100):
    request = LogQueryRequest(query=query, from_time=T0, to_time=T1, cursor=cursor, page_size=page_size)
    return PageFingerprint.for_request(QueryTranslator().translate(request.query), request)


class TestLogQueryRequest:
    def test_inverted_range_rejected(self):
        with pytest.raises(ValueError):
            LogQueryRequest(query="error", from_time=T1, to_time=T0)

    def test_page_size_defaults_and_caps(self):
        assert LogQueryRequest(query="", from_time=T0, to_time=T1, page_size=0).page_size == 100
        assert LogQueryRequest(query="", from_time=T0, to_time=T1, page_size=5000).page_size == 1000

    def test_naive_times_treated_as_utc(self):
        request = LogQueryRequest(query="", from_time=T0.replace(tzinfo=None), to_time=T1)
        assert request.from_time == T0
        assert request.from_time.tzinfo == dt.timezone.utc


class TestPageFingerprint:
    def test_identical_requests_share_a_key(self):
        assert fingerprint() == fingerprint()
        assert fingerprint().cache_key == fingerprint().cache_key

    def test_each_field_changes_the_key(self):
        base = fingerprint().cache_key
        assert fingerprint(cursor="c1").cache_key != base
        assert fingerprint(page_size=50).cache_key != base
        assert fingerprint(query="service:other").cache_key != base

    def test_equivalent_raw_queries_share_a_key(self):
        assert fingerprint("level:error").cache_key == fingerprint("status:ERROR").cache_key

    def test_key_layout(self):
        key = fingerprint().cache_key
        from_ms = int(T0.timestamp() * 1000)
        to_ms = int(T1.timestamp() * 1000)
        assert key == f"logs:service:web-app status:ERROR:{from_ms}:{to_ms}:first:100"

    def test_literal_first_cursor_differs_from_first_page(self):
        assert fingerprint(cursor="first").cache_key != fingerprint().cache_key
        assert fingerprint(cursor="first").cache_key.endswith(":%66irst:100")
        assert fingerprint(cursor="%66irst").cache_key != fingerprint(cursor="first").cache_key

    def test_cursor_is_percent_encoded(self):
        assert fingerprint(cursor="a:b/c").cache_key.endswith(":a%3Ab%2Fc:100")
