"""Health check endpoint."""

from datetime import datetime, timezone

from src.context import AppContext, get_app_context
from src.utils.http import json_response, make_handler
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()

SERVICE_NAME = "academic-dashboard-backend"


def _configured(flag: bool) -> str:
    return "configured" if flag else "not configured"


async def dispatch(request: dict, ctx: AppContext) -> dict:
    """Report liveness plus which subsystems are configured (GET and POST alike)."""
    settings = ctx.settings
    return json_response(200, {
        "status": "ok",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "storage": ctx.repository.active_backend(),
        "supabase": _configured(settings.supabase_configured),
        "googleCalendar": _configured(settings.calendar_configured),
        "canvas": _configured(settings.canvas_configured),
    })


handler = make_handler(dispatch, get_app_context)
