"""Log volume histograms computed from already-fetched entries.

The histogram is derived from the cached first page of a logs query, so a
volume panel never triggers its own upstream request. Buckets cover the
whole requested range and are zero-filled.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from ..ingest.records import LogEntry, ensure_utc

_EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)

_BUCKET_STEPS = (
    (dt.timedelta(minutes=5), dt.timedelta(seconds=10)),
    (dt.timedelta(minutes=15), dt.timedelta(seconds=30)),
    (dt.timedelta(hours=1), dt.timedelta(minutes=1)),
    (dt.timedelta(hours=6), dt.timedelta(minutes=5)),
    (dt.timedelta(hours=24), dt.timedelta(minutes=15)),
    (dt.timedelta(days=7), dt.timedelta(hours=1)),
)
_WIDEST_BUCKET = dt.timedelta(hours=4)


def bucket_duration(span: dt.timedelta) -> dt.timedelta:
    """Pick a bucket width that keeps the histogram readable for ``span``."""

    for limit, width in _BUCKET_STEPS:
        if span <= limit:
            return width
    return _WIDEST_BUCKET


def _truncate(instant: dt.datetime, width: dt.timedelta) -> dt.datetime:
    offset = (instant - _EPOCH) // width
    return _EPOCH + offset * width


@dataclass
class VolumeSeries:
    """Entry counts per time bucket."""

    ref_id: str
    bucket_width: dt.timedelta
    times: List[dt.datetime] = field(default_factory=list)
    counts: List[int] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=lambda: {"level": "logs"})

    @property
    def total(self) -> int:
        return sum(self.counts)

    def to_dict(self) -> dict:
        return {
            "refId": self.ref_id,
            "bucketSeconds": int(self.bucket_width.total_seconds()),
            "labels": dict(self.labels),
            "points": [[instant.isoformat(), count] for instant, count in zip(self.times, self.counts)],
        }


def empty_volume(ref_id: str, from_time: dt.datetime, to_time: dt.datetime) -> VolumeSeries:
    span = ensure_utc(to_time) - ensure_utc(from_time)
    return VolumeSeries(ref_id=f"log-volume-{ref_id}", bucket_width=bucket_duration(span))


def build_volume(
    entries: Iterable[LogEntry],
    from_time: dt.datetime,
    to_time: dt.datetime,
    ref_id: str = "A",
) -> VolumeSeries:
    """Count ``entries`` into buckets spanning ``from_time``..``to_time``."""

    start = ensure_utc(from_time)
    end = ensure_utc(to_time)
    width = bucket_duration(end - start)
    first_bucket = _truncate(start, width)

    buckets: Dict[dt.datetime, int] = {}
    cursor = first_bucket
    while cursor <= end:
        buckets[cursor] = 0
        cursor += width

    for entry in entries:
        if entry.timestamp is None:
            continue
        bucket = _truncate(ensure_utc(entry.timestamp), width)
        if bucket in buckets:
            buckets[bucket] += 1

    times = sorted(buckets)
    return VolumeSeries(
        ref_id=f"log-volume-{ref_id}",
        bucket_width=width,
        times=times,
        counts=[buckets[instant] for instant in times],
    )
