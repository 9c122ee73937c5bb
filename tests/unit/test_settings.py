"""Unit tests for client settings."""

from pydantic import SecretStr

from specforge.settings import Settings, settings_token_getter


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.api_base_url == "http://localhost:8080/api/v1"
        assert settings.stream_connect_timeout == 10.0
        assert settings.log_level == "INFO"

    def test_only_client_fields(self):
        assert set(Settings.model_fields) == {
            "log_level",
            "api_base_url",
            "api_token",
            "http_timeout",
            "stream_connect_timeout",
        }

    def test_trailing_slash_stripped(self):
        settings = Settings(_env_file=None, api_base_url="http://x/api/v1/")
        assert settings.api_base_url == "http://x/api/v1"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SPECFORGE_API_BASE_URL", "https://forge.example/api/v1")
        monkeypatch.setenv("SPECFORGE_API_TOKEN", "from-env")
        settings = Settings(_env_file=None)
        assert settings.api_base_url == "https://forge.example/api/v1"
        assert settings.api_token.get_secret_value() == "from-env"


class TestTokenGetter:
    def test_returns_token(self, test_settings):
        assert settings_token_getter(test_settings)() == "test-token"

    def test_empty_token_is_none(self):
        settings = Settings(_env_file=None, api_token=SecretStr(""))
        assert settings_token_getter(settings)() is None
