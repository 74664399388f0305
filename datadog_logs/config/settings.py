"""Datasource settings loaded from the environment or plugin instance data."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..errors import AuthenticationError

DEFAULT_SITE = "datadoghq.com"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class DatasourceSettings:
    site: str = DEFAULT_SITE
    api_key: str = ""
    app_key: str = ""
    default_page_size: int = 100
    max_page_size: int = 1000
    cache_ttl_seconds: float = 30.0
    cache_enabled: bool = True
    max_concurrent_requests: int = 5
    request_timeout: float = 30.0
    max_retries: int = 2
    backoff_seconds: float = 3.0
    max_backoff_seconds: float = 15.0
    bulk_max_pages: int = 3
    bulk_max_entries: int = 3000
    bulk_page_size: int = 500

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DatasourceSettings":
        """Build settings from ``DATADOG_*`` variables with defaults."""

        env = os.environ if environ is None else environ
        return cls(
            site=env.get("DATADOG_SITE", "") or DEFAULT_SITE,
            api_key=env.get("DATADOG_API_KEY", ""),
            app_key=env.get("DATADOG_APP_KEY", ""),
            cache_ttl_seconds=float(env.get("DATADOG_LOGS_CACHE_TTL", cls.cache_ttl_seconds)),
            cache_enabled=not _parse_bool(env.get("DISABLE_CACHE", "false")),
            max_concurrent_requests=int(env.get("DATADOG_MAX_CONCURRENCY", cls.max_concurrent_requests)),
        )

    @classmethod
    def from_instance_settings(
        cls,
        json_data: Optional[Mapping[str, Any]],
        secure_json_data: Optional[Mapping[str, str]],
        environ: Optional[Mapping[str, str]] = None,
    ) -> "DatasourceSettings":
        """Build settings from a Grafana datasource instance.

        ``json_data`` carries the public options (``site``); the decrypted
        ``secure_json_data`` carries ``apiKey`` and ``appKey``. The cache
        switch still honors ``DISABLE_CACHE`` for local development.
        """

        json_data = json_data or {}
        secure_json_data = secure_json_data or {}
        env = os.environ if environ is None else environ
        return cls(
            site=str(json_data.get("site") or DEFAULT_SITE),
            api_key=secure_json_data.get("apiKey", ""),
            app_key=secure_json_data.get("appKey", ""),
            cache_enabled=not _parse_bool(env.get("DISABLE_CACHE", "false")),
        )

    def validate(self) -> None:
        """Raise :class:`AuthenticationError` when a credential is missing."""

        if not self.api_key:
            raise AuthenticationError("missing apiKey in secure data")
        if not self.app_key:
            raise AuthenticationError("missing appKey in secure data")
