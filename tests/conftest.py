"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import MagicMock

# Integration credentials must come from the fixtures, never the developer's shell
for _name in (
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "CANVAS_API_URL",
    "CANVAS_ACCESS_TOKEN",
):
    os.environ.pop(_name, None)
os.environ.setdefault("LOG_FORMAT", "text")

from src.config import Settings
from src.context import AppContext, set_app_context
from src.services.calendar_bridge import CalendarBridge, CalendarSession
from src.services.canvas_client import CanvasClient
from src.services.supabase_client import SupabaseConnection
from src.services.task_repository import TaskRepository
from src.models.calendar import OAuthTokens


@pytest.fixture
def settings():
    """Settings with no durable store and every integration configured."""
    return Settings(
        google_client_id="test-client-id.apps.googleusercontent.com",
        google_client_secret="test-client-secret",
        google_redirect_uri="http://localhost:3001/api/calendar/callback",
        canvas_api_url="https://canvas.example.edu",
        canvas_access_token="1234~canvas-test-token",
        app_timezone="America/New_York",
        app_base_url="/",
    )


@pytest.fixture
def bare_settings():
    """Settings with nothing configured."""
    return Settings()


@pytest.fixture
def supabase_settings():
    return Settings(
        supabase_url="https://test.supabase.co",
        supabase_service_role_key="test-key",
        db_reconnect_interval_seconds=30,
    )


@pytest.fixture
def repository(settings):
    """Repository running on the in-memory store."""
    return TaskRepository(SupabaseConnection(settings))


@pytest.fixture
def calendar_session():
    return CalendarSession()


@pytest.fixture
def connected_session():
    return CalendarSession(OAuthTokens(access_token="ya29.test-access-token", refresh_token="1//refresh"))


@pytest.fixture
def mock_calendar_service():
    """Google Calendar service mock: ``service.events().list(...).execute()``."""
    service = MagicMock()
    service.events.return_value.list.return_value.execute.return_value = {"items": []}
    service.events.return_value.insert.return_value.execute.return_value = {"id": "evt_123"}
    return service


@pytest.fixture
def make_context(settings, repository):
    """Build an AppContext with optional Canvas transport and calendar fakes."""
    def _make(
        canvas_transport=None,
        calendar_session=None,
        calendar_service=None,
        context_settings=None,
        token_transport=None,
    ):
        active_settings = context_settings or settings
        session = calendar_session or CalendarSession()
        bridge_kwargs = {"transport": token_transport}
        if calendar_service is not None:
            bridge_kwargs["service_factory"] = lambda credentials: calendar_service
        bridge = CalendarBridge(active_settings, session, **bridge_kwargs)

        canvas_factory = None
        if canvas_transport is not None:
            canvas_factory = lambda: CanvasClient(
                active_settings.canvas_api_url,
                active_settings.canvas_access_token,
                transport=canvas_transport,
            )

        return AppContext(
            active_settings,
            repository,
            calendar_session=session,
            calendar_bridge=bridge,
            canvas_client_factory=canvas_factory,
        )

    return _make


@pytest.fixture
def app_context(make_context):
    return make_context()


@pytest.fixture
def installed_context(app_context):
    """Install ``app_context`` as the process-wide context for handler tests."""
    set_app_context(app_context)
    yield app_context
    set_app_context(None)
