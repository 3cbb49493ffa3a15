"""Google Calendar endpoint for Vercel: OAuth flow, events, task sync."""

from urllib.parse import urlencode

from src.context import AppContext, get_app_context
from src.utils.errors import DashboardError, NotFoundError
from src.utils.http import (
    json_response,
    make_handler,
    method_not_allowed,
    not_found,
    parse_json_body,
    path_segments,
    query_param,
    redirect_response,
)
from src.utils.logging import get_structured_logger
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)

PREFIX = "/api/calendar"

ROUTES = {
    "status": "GET",
    "auth": "GET",
    "callback": "GET",
    "disconnect": "POST",
    "events": "GET",
    "sync-task": "POST",
}


def ui_redirect(ctx: AppContext, **params: str) -> dict:
    base = ctx.settings.app_base_url
    separator = "&" if "?" in base else "?"
    return redirect_response(f"{base}{separator}{urlencode(params)}")


async def oauth_callback(request: dict, ctx: AppContext) -> dict:
    """Finish the consent flow and send the browser back to the UI."""
    error = query_param(request, "error")
    if error:
        return ui_redirect(ctx, calendar_error=error)

    code = query_param(request, "code")
    if not code:
        return ui_redirect(ctx, calendar_error="no_code")

    try:
        await ctx.calendar.complete_authorization(code)
    except DashboardError as e:
        logger.error("OAuth callback error", error=str(e))
        return ui_redirect(ctx, calendar_error=str(e))
    return ui_redirect(ctx, calendar_connected="true")


async def sync_task(request: dict, ctx: AppContext) -> dict:
    payload = parse_json_body(request)
    event_id = await ctx.calendar.sync_task(payload)

    task_id = payload.get("id")
    if task_id:
        try:
            await ctx.repository.update_task(str(task_id), {"calendarEventId": event_id})
        except NotFoundError:
            logger.info("Synced task is not stored, event id not linked", task_id=task_id)

    return json_response(200, {
        "success": True,
        "eventId": event_id,
        "message": "Task synced to Google Calendar",
    })


async def dispatch(request: dict, ctx: AppContext) -> dict:
    """Route a calendar request."""
    method = request.get("method", "GET").upper()
    segments = path_segments(request.get("path", ""), PREFIX)
    action = segments[0] if len(segments) == 1 else None

    if action not in ROUTES:
        return not_found()
    if method != ROUTES[action]:
        return method_not_allowed()

    if action == "status":
        return json_response(200, ctx.calendar.status())

    if action == "auth":
        return redirect_response(ctx.calendar.authorization_url())

    if action == "callback":
        return await oauth_callback(request, ctx)

    if action == "disconnect":
        ctx.calendar.disconnect()
        return json_response(200, {"success": True, "message": "Disconnected from Google Calendar"})

    if action == "events":
        events = await ctx.calendar.list_events()
        return json_response(200, [event.to_api() for event in events])

    return await sync_task(request, ctx)


handler = make_handler(dispatch, get_app_context)
