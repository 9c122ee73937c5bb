"""Shared test fixtures for the SpecForge streaming client."""

import pytest
from pydantic import SecretStr

from specforge.settings import Settings


@pytest.fixture
def test_settings() -> Settings:
    """Provide test settings with safe defaults."""
    return Settings(
        _env_file=None,
        api_base_url="http://api.test/api/v1",
        api_token=SecretStr("test-token"),
    )


@pytest.fixture
def mock_settings(test_settings: Settings, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Mock get_settings() to return test settings."""
    from specforge import settings

    monkeypatch.setattr(settings, "get_settings", lambda: test_settings)
    return test_settings
