"""Tests for environment settings."""

import pytest
from pydantic import ValidationError as PydanticValidationError
from src.config import DEFAULT_REDIRECT_URI, Settings


@pytest.mark.unit
def test_settings_defaults(monkeypatch):
    for name in ("PORT", "APP_TIMEZONE", "GOOGLE_REDIRECT_URI", "SEED_DEMO_TASKS", "DB_RECONNECT_INTERVAL_SECONDS"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.port == 3001
    assert settings.app_timezone == "America/New_York"
    assert settings.google_redirect_uri == DEFAULT_REDIRECT_URI
    assert settings.db_reconnect_interval_seconds == 30
    assert settings.seed_demo_tasks is False
    assert not settings.supabase_configured
    assert not settings.calendar_configured
    assert not settings.canvas_configured


@pytest.mark.unit
def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    monkeypatch.setenv("CANVAS_API_URL", "https://canvas.example.edu/")
    monkeypatch.setenv("CANVAS_ACCESS_TOKEN", "1234~token")
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "client")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "   ")
    monkeypatch.setenv("SEED_DEMO_TASKS", "true")
    monkeypatch.setenv("PORT", "8080")

    settings = Settings.from_env()

    assert settings.supabase_configured
    assert settings.canvas_configured
    assert settings.canvas_api_url == "https://canvas.example.edu"
    assert not settings.calendar_configured
    assert settings.seed_demo_tasks is True
    assert settings.port == 8080


@pytest.mark.unit
def test_unknown_timezone_rejected():
    with pytest.raises(PydanticValidationError, match="Unknown timezone"):
        Settings(app_timezone="Mars/Olympus_Mons")

    assert Settings(app_timezone="Europe/Berlin").app_timezone == "Europe/Berlin"


@pytest.mark.unit
def test_from_env_falls_back_on_invalid_values(monkeypatch):
    monkeypatch.setenv("APP_TIMEZONE", "Mars/Olympus_Mons")
    monkeypatch.setenv("DB_RECONNECT_INTERVAL_SECONDS", "soon")
    monkeypatch.setenv("HTTP_TIMEOUT_SECONDS", "0")
    monkeypatch.setenv("PORT", "http")

    settings = Settings.from_env()

    assert settings.app_timezone == "America/New_York"
    assert settings.db_reconnect_interval_seconds == 30
    assert settings.http_timeout_seconds == 10
    assert settings.port == 3001
