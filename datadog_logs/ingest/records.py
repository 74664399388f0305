"""Normalized log records built from Datadog search responses."""

from __future__ import annotations

import dataclasses
import datetime as dt
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

VALID_SEVERITIES = ("DEBUG", "INFO", "WARN", "ERROR", "FATAL", "TRACE")

# Attributes lifted into dedicated LogEntry fields; everything else stays in
# ``attributes``.
_STANDARD_ATTRIBUTES = frozenset(
    {"message", "status", "service", "source", "host", "tags", "timestamp", "env", "version"}
)

_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")
_FALLBACK_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S")


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def ensure_utc(value: dt.datetime) -> dt.datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def to_epoch_millis(value: dt.datetime) -> int:
    return int(ensure_utc(value).timestamp() * 1000)


def format_iso(value: dt.datetime) -> str:
    """Render an instant the way the search API expects its time bounds."""

    return ensure_utc(value).replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(raw: Any) -> Optional[dt.datetime]:
    """Parse the ``timestamp`` attribute of a log record.

    Accepts ISO-8601 strings (with ``Z`` or an offset, any fraction length),
    ``YYYY-MM-DD HH:MM:SS`` strings and epoch numbers (seconds, or milliseconds
    when the value is too large to be seconds). Returns ``None`` when the value
    cannot be interpreted.
    """

    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        seconds = raw / 1000.0 if raw > 1e12 else float(raw)
        return dt.datetime.fromtimestamp(seconds, tz=dt.timezone.utc)
    if not isinstance(raw, str) or not raw.strip():
        return None

    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_PATTERN.sub(r"\1", text)
    try:
        return ensure_utc(dt.datetime.fromisoformat(text))
    except ValueError:
        pass

    for fmt in _FALLBACK_FORMATS:
        try:
            return dt.datetime.strptime(raw.strip(), fmt).replace(tzinfo=dt.timezone.utc)
        except ValueError:
            continue
    return None


def parse_tags(raw_tags: Any) -> Dict[str, str]:
    """Split Datadog ``key:value`` tag strings; bare tags are ignored."""

    tags: Dict[str, str] = {}
    if not isinstance(raw_tags, list):
        return tags
    for tag in raw_tags:
        if not isinstance(tag, str) or ":" not in tag:
            continue
        key, value = tag.split(":", 1)
        tags[key] = value
    return tags


def _string_attribute(attributes: Dict[str, Any], key: str) -> str:
    value = attributes.get(key)
    return value if isinstance(value, str) else ""


@dataclass(frozen=True)
class LogEntry:
    """One log line returned by the search API."""

    id: str
    timestamp: Optional[dt.datetime]
    body: str = ""
    severity: str = ""
    service: str = ""
    source: str = ""
    host: str = ""
    env: str = ""
    version: str = ""
    tags: Dict[str, str] = field(default_factory=dict)
    attributes: Dict[str, Any] = field(default_factory=dict)

    def validate(self, index: int) -> List[str]:
        """Describe problems with this entry without rejecting it."""

        problems: List[str] = []
        if self.timestamp is None:
            problems.append(f"Entry {index}: missing or invalid timestamp")
        if self.severity and self.severity.upper() not in VALID_SEVERITIES:
            problems.append(f"Entry {index}: invalid log severity '{self.severity}'")
        return problems

    def sanitized(self) -> "LogEntry":
        return dataclasses.replace(
            self,
            timestamp=ensure_utc(self.timestamp) if self.timestamp is not None else utc_now(),
            body=self.body.strip(),
            severity=self.severity.upper(),
            service=self.service.strip(),
            source=self.source.strip(),
            host=self.host.strip(),
            env=self.env.strip(),
            version=self.version.strip(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "body": self.body,
            "severity": self.severity,
            "labels": {
                "service": self.service,
                "source": self.source,
                "host": self.host,
                "env": self.env,
                "version": self.version,
                "tags": dict(self.tags),
                "attributes": dict(self.attributes),
            },
        }


def parse_log_record(record: Dict[str, Any]) -> Optional[LogEntry]:
    """Convert one ``data`` element of a search response.

    Records without an ``attributes`` object are skipped (``None``).
    """

    record_id = record.get("id")
    attributes = record.get("attributes")
    if not isinstance(attributes, dict):
        return None

    timestamp = parse_timestamp(attributes.get("timestamp"))
    if timestamp is None and "timestamp" in attributes:
        logger.warning(
            "logs.record.bad_timestamp",
            extra={"record_id": record_id, "raw_timestamp": attributes.get("timestamp")},
        )

    tags = parse_tags(attributes.get("tags"))
    env = _string_attribute(attributes, "env") or tags.get("env", "")
    version = _string_attribute(attributes, "version") or tags.get("version", "")

    return LogEntry(
        id=record_id if isinstance(record_id, str) else "",
        timestamp=timestamp,
        body=_string_attribute(attributes, "message"),
        severity=_string_attribute(attributes, "status").upper(),
        service=_string_attribute(attributes, "service"),
        source=_string_attribute(attributes, "source"),
        host=_string_attribute(attributes, "host"),
        env=env,
        version=version,
        tags=tags,
        attributes={key: value for key, value in attributes.items() if key not in _STANDARD_ATTRIBUTES},
    )


def parse_log_records(records: Iterable[Any]) -> List[LogEntry]:
    """Parse, validate and sanitize the ``data`` array of a search response."""

    entries: List[LogEntry] = []
    problems: List[str] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            logger.warning(
                "logs.record.skipped",
                extra={"index": index, "reason": f"unexpected type {type(record).__name__}"},
            )
            continue
        entry = parse_log_record(record)
        if entry is None:
            logger.warning(
                "logs.record.skipped",
                extra={"index": index, "record_id": record.get("id"), "reason": "missing attributes"},
            )
            continue
        problems.extend(entry.validate(len(entries)))
        entries.append(entry.sanitized())

    if problems:
        logger.warning(
            "logs.record.validation",
            extra={"error_count": len(problems), "errors": problems},
        )
    return entries
