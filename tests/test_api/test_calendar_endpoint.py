"""Tests for the Google Calendar endpoint."""

import pytest
from urllib.parse import parse_qs, urlsplit

import httpx

from api.google_calendar import dispatch
from src.utils.http import handle_request
from tests.utils.assertions import assert_error_response
from tests.utils.factories import create_google_event
from tests.utils.helpers import create_request, response_json


async def call(ctx, method, action, body=None, query=None):
    request = create_request(method=method, path=f"/api/calendar/{action}", body=body, query=query)
    return await handle_request(dispatch, request, ctx)


def redirect_params(response) -> dict:
    return parse_qs(urlsplit(response["headers"]["Location"]).query)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_status_not_connected(app_context):
    body = response_json(await call(app_context, "GET", "status"))
    assert body["configured"] is True
    assert body["connected"] is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_auth_redirects_to_consent_screen(app_context):
    response = await call(app_context, "GET", "auth")

    assert response["statusCode"] == 302
    assert response["headers"]["Location"].startswith("https://accounts.google.com/o/oauth2/v2/auth?")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_auth_not_configured_is_400(make_context, bare_settings):
    ctx = make_context(context_settings=bare_settings)
    assert_error_response(await call(ctx, "GET", "auth"), 400, "Google Calendar not configured")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_callback_connects(make_context):
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"access_token": "ya29.token", "expires_in": 3600})
    )
    ctx = make_context(token_transport=transport)

    response = await call(ctx, "GET", "callback", query={"code": "4/code"})

    assert response["statusCode"] == 302
    assert redirect_params(response) == {"calendar_connected": ["true"]}
    assert ctx.calendar_session.connected


@pytest.mark.unit
@pytest.mark.asyncio
async def test_callback_without_code(app_context):
    response = await call(app_context, "GET", "callback")
    assert redirect_params(response) == {"calendar_error": ["no_code"]}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_callback_with_provider_error(app_context):
    response = await call(app_context, "GET", "callback", query={"error": "access_denied"})
    assert redirect_params(response) == {"calendar_error": ["access_denied"]}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_callback_exchange_failure(make_context):
    transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))
    ctx = make_context(token_transport=transport)

    response = await call(ctx, "GET", "callback", query={"code": "expired"})

    assert response["statusCode"] == 302
    assert "calendar_error" in redirect_params(response)
    assert not ctx.calendar_session.connected


@pytest.mark.unit
@pytest.mark.asyncio
async def test_events_require_connection(app_context):
    assert_error_response(await call(app_context, "GET", "events"), 401)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_events_listed(make_context, connected_session, mock_calendar_service):
    mock_calendar_service.events.return_value.list.return_value.execute.return_value = {
        "items": [create_google_event("evt_1", all_day=True)],
    }
    ctx = make_context(calendar_session=connected_session, calendar_service=mock_calendar_service)

    response = await call(ctx, "GET", "events")

    events = response_json(response)
    assert response["statusCode"] == 200
    assert events[0]["id"] == "evt_1"
    assert events[0]["allDay"] is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sync_task_links_event_to_stored_task(make_context, connected_session, mock_calendar_service):
    ctx = make_context(calendar_session=connected_session, calendar_service=mock_calendar_service)
    task = await ctx.repository.create_task({"title": "Midterm", "dueDate": "2024-12-15"})

    response = await call(ctx, "POST", "sync-task", body=task.to_api())

    assert response["statusCode"] == 200
    assert response_json(response)["eventId"] == "evt_123"
    assert (await ctx.repository.get_task(task.id)).calendar_event_id == "evt_123"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sync_unsaved_task(make_context, connected_session, mock_calendar_service):
    ctx = make_context(calendar_session=connected_session, calendar_service=mock_calendar_service)

    response = await call(ctx, "POST", "sync-task", body={"id": "never-saved", "title": "Quiz", "dueDate": "2024-12-15"})

    body = response_json(response)
    assert body["success"] is True
    assert body["eventId"] == "evt_123"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sync_task_not_connected_is_401(app_context):
    assert_error_response(await call(app_context, "POST", "sync-task", body={"title": "x"}), 401)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sync_task_missing_fields_is_400(make_context, connected_session, mock_calendar_service):
    ctx = make_context(calendar_session=connected_session, calendar_service=mock_calendar_service)
    assert_error_response(
        await call(ctx, "POST", "sync-task", body={"title": "x"}),
        400,
        "Title and due date are required",
    )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_disconnect(make_context, connected_session):
    ctx = make_context(calendar_session=connected_session)

    response = await call(ctx, "POST", "disconnect")

    assert response_json(response)["success"] is True
    assert not connected_session.connected
    assert response_json(await call(ctx, "GET", "status"))["connected"] is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_wrong_method_is_405(app_context):
    assert_error_response(await call(app_context, "GET", "disconnect"), 405)
    assert_error_response(await call(app_context, "GET", "unknown"), 404)
