"""Tests for KrakenSettings environment loading and validation."""

import httpx
import pytest
from pydantic import ValidationError

from kraken_clients.config import (
    DEFAULT_REST_URL,
    DEFAULT_WS_AUTH_URL,
    DEFAULT_WS_URL,
    KrakenSettings,
)
from kraken_clients.rest.client import KrakenRestClient

_ENV_VARS = [
    "KRAKEN_API_KEY",
    "KRAKEN_API_SECRET",
    "KRAKEN_BASE_URL",
    "KRAKEN_WS_URL",
    "KRAKEN_WS_AUTH_URL",
    "KRAKEN_RATE_LIMIT_PER_SECOND",
    "KRAKEN_RATE_LIMIT_BURST",
    "KRAKEN_RATE_LIMIT_PUBLIC",
    "KRAKEN_REQUEST_TIMEOUT_SECONDS",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:
    """Settings with nothing configured."""

    def test_defaults(self, clean_env):
        settings = KrakenSettings(_env_file=None)

        assert settings.api_key is None
        assert settings.api_secret is None
        assert settings.base_url == DEFAULT_REST_URL
        assert settings.ws_url == DEFAULT_WS_URL
        assert settings.ws_auth_url == DEFAULT_WS_AUTH_URL
        assert settings.rate_limit_per_second == 1.0
        assert settings.rate_limit_burst == 15.0
        assert settings.rate_limit_public is False
        assert settings.request_timeout_seconds is None

    def test_credentials_incomplete_by_default(self, clean_env):
        credentials = KrakenSettings(_env_file=None).credentials()

        assert credentials.api_key is None
        assert credentials.api_secret is None
        assert not credentials.is_complete


class TestEnvironment:
    """KRAKEN_* variables."""

    def test_loads_prefixed_variables(self, clean_env):
        clean_env.setenv("KRAKEN_API_KEY", "key-123")
        clean_env.setenv("KRAKEN_API_SECRET", "c2VjcmV0")
        clean_env.setenv("KRAKEN_RATE_LIMIT_PER_SECOND", "2.5")
        clean_env.setenv("KRAKEN_RATE_LIMIT_BURST", "4")
        clean_env.setenv("KRAKEN_RATE_LIMIT_PUBLIC", "true")

        settings = KrakenSettings(_env_file=None)

        assert settings.api_key == "key-123"
        assert settings.api_secret.get_secret_value() == "c2VjcmV0"
        assert settings.rate_limit_per_second == 2.5
        assert settings.rate_limit_burst == 4.0
        assert settings.rate_limit_public is True

    def test_secret_is_hidden(self, clean_env):
        clean_env.setenv("KRAKEN_API_SECRET", "c2VjcmV0")

        settings = KrakenSettings(_env_file=None)

        assert "c2VjcmV0" not in repr(settings)
        assert "c2VjcmV0" not in str(settings.model_dump())
        assert "c2VjcmV0" not in repr(settings.credentials())

    def test_blank_key_treated_as_missing(self, clean_env):
        clean_env.setenv("KRAKEN_API_KEY", "   ")

        assert KrakenSettings(_env_file=None).api_key is None

    def test_trailing_slash_stripped(self, clean_env):
        clean_env.setenv("KRAKEN_BASE_URL", "https://api.example.test/")
        clean_env.setenv("KRAKEN_WS_URL", "wss://ws.example.test/v2/")

        settings = KrakenSettings(_env_file=None)

        assert settings.base_url == "https://api.example.test"
        assert settings.ws_url == "wss://ws.example.test/v2"


class TestValidation:
    """Rejected values."""

    @pytest.mark.parametrize("rate", ["0", "-1"])
    def test_rate_must_be_positive(self, clean_env, rate):
        clean_env.setenv("KRAKEN_RATE_LIMIT_PER_SECOND", rate)

        with pytest.raises(ValidationError):
            KrakenSettings(_env_file=None)

    def test_burst_must_not_be_negative(self, clean_env):
        clean_env.setenv("KRAKEN_RATE_LIMIT_BURST", "-0.5")

        with pytest.raises(ValidationError):
            KrakenSettings(_env_file=None)


class TestFromSettings:
    """Clients built from settings."""

    @pytest.mark.asyncio
    async def test_rest_client_uses_settings(self, clean_env):
        clean_env.setenv("KRAKEN_API_KEY", "key-123")
        clean_env.setenv("KRAKEN_API_SECRET", "c2VjcmV0")
        clean_env.setenv("KRAKEN_BASE_URL", "https://api.example.test/")
        clean_env.setenv("KRAKEN_RATE_LIMIT_PER_SECOND", "3")
        clean_env.setenv("KRAKEN_RATE_LIMIT_BURST", "1")

        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"error": [], "result": {"unixtime": 1, "rfc1123": "x"}})

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = KrakenRestClient.from_settings(KrakenSettings(_env_file=None), http_client=http_client)

        await client.get_server_time()

        assert str(seen[0].url) == "https://api.example.test/0/public/Time"
        assert client.dispatcher.credentials.api_key == "key-123"
        assert client.dispatcher.credentials.api_secret == "c2VjcmV0"
        assert client.dispatcher.rate_limiter.capacity == 4
        await http_client.aclose()
