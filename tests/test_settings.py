import pytest

from datadog_logs.config import DatasourceSettings
from datadog_logs.errors import AuthenticationError


class TestFromEnv:
    def test_defaults(self):
        settings = DatasourceSettings.from_env({})
        assert settings.site == "datadoghq.com"
        assert settings.cache_enabled
        assert settings.cache_ttl_seconds == 30.0
        assert settings.max_concurrent_requests == 5
        assert settings.max_retries == 2

    def test_overrides(self):
        settings = DatasourceSettings.from_env(
            {
                "DATADOG_SITE": "datadoghq.eu",
                "DATADOG_API_KEY": "k",
                "DATADOG_APP_KEY": "a",
                "DISABLE_CACHE": "true",
                "DATADOG_LOGS_CACHE_TTL": "10",
                "DATADOG_MAX_CONCURRENCY": "2",
            }
        )
        assert settings.site == "datadoghq.eu"
        assert settings.api_key == "k"
        assert not settings.cache_enabled
        assert settings.cache_ttl_seconds == 10.0
        assert settings.max_concurrent_requests == 2


class TestFromInstanceSettings:
    def test_reads_secure_keys(self):
        settings = DatasourceSettings.from_instance_settings(
            {"site": "us3.datadoghq.com"}, {"apiKey": "k", "appKey": "a"}, environ={}
        )
        assert settings.site == "us3.datadoghq.com"
        assert settings.api_key == "k"
        assert settings.app_key == "a"
        settings.validate()

    def test_missing_site_defaults(self):
        settings = DatasourceSettings.from_instance_settings(None, None, environ={"DISABLE_CACHE": "1"})
        assert settings.site == "datadoghq.com"
        assert not settings.cache_enabled


class TestValidate:
    def test_missing_api_key(self):
        with pytest.raises(AuthenticationError, match="apiKey"):
            DatasourceSettings(app_key="a").validate()

    def test_missing_app_key(self):
        with pytest.raises(AuthenticationError, match="appKey"):
            DatasourceSettings(api_key="k").validate()
