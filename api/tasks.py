"""Tasks CRUD endpoint for Vercel: /api/tasks and /api/tasks/<id>."""

from src.context import AppContext, get_app_context
from src.utils.http import (
    empty_response,
    json_response,
    make_handler,
    method_not_allowed,
    not_found,
    parse_json_body,
    path_segments,
)
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()

PREFIX = "/api/tasks"


async def dispatch(request: dict, ctx: AppContext) -> dict:
    """Route a tasks request to the repository."""
    method = request.get("method", "GET").upper()
    segments = path_segments(request.get("path", ""), PREFIX)
    repository = ctx.repository

    if not segments:
        if method == "GET":
            tasks = await repository.list_tasks()
            return json_response(200, [task.to_api() for task in tasks])
        if method == "POST":
            task = await repository.create_task(parse_json_body(request))
            return json_response(201, task.to_api())
        return method_not_allowed()

    if len(segments) != 1:
        return not_found()

    task_id = segments[0]
    if method == "GET":
        task = await repository.get_task(task_id)
        return json_response(200, task.to_api())
    if method == "PUT":
        task = await repository.update_task(task_id, parse_json_body(request))
        return json_response(200, task.to_api())
    if method == "DELETE":
        await repository.delete_task(task_id)
        return empty_response(204)
    return method_not_allowed()


handler = make_handler(dispatch, get_app_context)
