"""Canvas LMS endpoint for Vercel: status, courses, assignments, import."""

from src.context import AppContext, get_app_context
from src.services.canvas_importer import CanvasImporter
from src.utils.http import (
    json_response,
    make_handler,
    method_not_allowed,
    not_found,
    parse_json_body,
    path_segments,
    query_param,
)
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()

PREFIX = "/api/canvas"


def canvas_status(ctx: AppContext) -> dict:
    configured = ctx.settings.canvas_configured
    return {
        "configured": configured,
        "apiUrl": ctx.settings.canvas_api_url,
        "message": (
            "Canvas is configured and ready"
            if configured
            else "Canvas not configured. Add CANVAS_API_URL and CANVAS_ACCESS_TOKEN to .env"
        ),
    }


async def dispatch(request: dict, ctx: AppContext) -> dict:
    """Route a Canvas request."""
    method = request.get("method", "GET").upper()
    segments = path_segments(request.get("path", ""), PREFIX)
    action = segments[0] if len(segments) == 1 else None

    if action == "status":
        if method != "GET":
            return method_not_allowed()
        return json_response(200, canvas_status(ctx))

    if action not in ("courses", "assignments", "import"):
        return not_found()

    expected = "POST" if action == "import" else "GET"
    if method != expected:
        return method_not_allowed()

    body = parse_json_body(request) if action == "import" else {}

    async with ctx.canvas_client() as client:
        importer = CanvasImporter(client, ctx.repository, ctx.settings.app_timezone)

        if action == "courses":
            courses = await importer.list_courses()
            return json_response(200, [course.to_api() for course in courses])

        if action == "assignments":
            assignments = await importer.list_assignments(query_param(request, "courseId"))
            return json_response(200, [a.to_api() for a in assignments])

        result = await importer.import_assignments(
            course_id=body.get("courseId"),
            assignment_ids=body.get("assignmentIds"),
        )
        return json_response(200, result.to_api())


handler = make_handler(dispatch, get_app_context)
