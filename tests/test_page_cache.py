from conftest import T0, T1
from datadog_logs.ingest import LogEntry
from datadog_logs.retrieval import LogQueryRequest, PageFingerprint
from datadog_logs.storage import PageCache


def make_fingerprint(cursor=""):
    request = LogQueryRequest(query="error", from_time=T0, to_time=T1, cursor=cursor)
    return PageFingerprint.for_request("error", request)


ENTRIES = [LogEntry(id="a", timestamp=T0, body="one"), LogEntry(id="b", timestamp=T0, body="two")]


class TestPageCache:
    def test_put_then_get(self, cache):
        fp = make_fingerprint()
        cache.put(fp, ENTRIES, "c1")
        page = cache.get(fp)
        assert page is not None
        assert page.entries == tuple(ENTRIES)
        assert page.next_cursor == "c1"

    def test_miss_for_other_fingerprint(self, cache):
        cache.put(make_fingerprint(), ENTRIES, "c1")
        assert cache.get(make_fingerprint(cursor="c1")) is None

    def test_entry_expires_after_ttl(self, cache, fake_clock):
        fp = make_fingerprint()
        cache.put(fp, ENTRIES, "")
        fake_clock.advance(30.0)
        assert cache.get(fp) is not None
        fake_clock.advance(0.5)
        assert cache.get(fp) is None
        assert len(cache) == 0

    def test_custom_ttl_on_lookup(self, cache, fake_clock):
        fp = make_fingerprint()
        cache.put(fp, ENTRIES, "")
        fake_clock.advance(10.0)
        assert cache.get(fp, ttl=5.0) is None

    def test_sweep_removes_only_expired(self, cache, fake_clock):
        cache.put(make_fingerprint(), ENTRIES, "")
        fake_clock.advance(20.0)
        cache.put(make_fingerprint(cursor="c1"), ENTRIES, "")
        fake_clock.advance(15.0)
        assert cache.sweep_expired() == 1
        assert len(cache) == 1

    def test_stored_page_is_a_snapshot(self, cache):
        fp = make_fingerprint()
        entries = list(ENTRIES)
        cache.put(fp, entries, "")
        entries.append(LogEntry(id="c", timestamp=T0))
        assert len(cache.get(fp).entries) == 2

    def test_disabled_cache_stores_nothing(self, fake_clock):
        cache = PageCache(enabled=False, clock=fake_clock)
        fp = make_fingerprint()
        cache.put(fp, ENTRIES, "c1")
        assert cache.get(fp) is None
        assert len(cache) == 0

    def test_clear(self, cache):
        cache.put(make_fingerprint(), ENTRIES, "")
        cache.clear()
        assert len(cache) == 0
