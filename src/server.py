"""Local development server routing every /api resource.

Run with ``python -m src.server``; reads ``.env`` from the working directory.
"""

from http.server import ThreadingHTTPServer

from dotenv import load_dotenv

from src.utils.http import make_handler, not_found
from src.utils.logging import get_structured_logger
from src.utils.logging_config import LoggingConfig

logger = get_structured_logger(__name__)


def build_routes() -> dict:
    from api import canvas, google_calendar, health, tasks

    return {
        tasks.PREFIX: tasks.dispatch,
        canvas.PREFIX: canvas.dispatch,
        google_calendar.PREFIX: google_calendar.dispatch,
        "/api/health": health.dispatch,
    }


def make_router(routes: dict):
    """Dispatch to the resource whose prefix matches the request path."""

    async def route(request: dict, ctx) -> dict:
        path = request.get("path", "")
        for prefix, dispatch in routes.items():
            if path == prefix or path.startswith(prefix + "/"):
                return await dispatch(request, ctx)
        return not_found()

    return route


def main() -> None:
    load_dotenv()
    LoggingConfig.setup_logging(force=True)

    from src.context import get_app_context

    ctx = get_app_context()
    port = ctx.settings.port
    server = ThreadingHTTPServer(("0.0.0.0", port), make_handler(make_router(build_routes()), get_app_context))
    logger.info(
        "Server running",
        url=f"http://localhost:{port}",
        tasks_api=f"http://localhost:{port}/api/tasks",
        calendar_api=f"http://localhost:{port}/api/calendar",
        canvas_api=f"http://localhost:{port}/api/canvas",
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Server stopping")
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
