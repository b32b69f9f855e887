"""Unit tests for environment driven settings."""

import pytest
from pydantic import ValidationError

from core.settings import Settings


def test_settings_read_from_environment(monkeypatch):
    """Test values come from the environment at construction time."""
    monkeypatch.setenv("HUB_MAX_CLIENTS", "7")
    monkeypatch.setenv("HUB_SEND_TIMEOUT", "0.5")
    monkeypatch.setenv("HUB_ECHO_TO_SENDER", "false")
    monkeypatch.setenv("HUB_CORS_ORIGINS", "http://a.example, http://b.example")

    settings = Settings()

    assert settings.MAX_CLIENTS == 7
    assert settings.SEND_TIMEOUT == 0.5
    assert settings.ECHO_TO_SENDER is False
    assert settings.CORS_ORIGINS == ["http://a.example", "http://b.example"]


@pytest.mark.parametrize("name, value", [
    ("HUB_MAX_CLIENTS", "0"),
    ("HUB_SEND_TIMEOUT", "-1"),
    ("HUB_MAX_MESSAGE_SIZE", "0"),
    ("HUB_MAX_CLIENTS", "lots"),
])
def test_settings_reject_bad_environment_values(monkeypatch, name, value):
    """Test limits are enforced on values taken from the environment."""
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings()


def test_settings_reject_bad_explicit_values():
    """Test limits are enforced on explicit values."""
    with pytest.raises(ValidationError):
        Settings(MAX_CLIENTS=0)
