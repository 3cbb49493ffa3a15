"""HTTP plumbing shared by the serverless handlers and the dev server.

Handlers are written as ``async def dispatch(request, ctx) -> response``
over plain dicts, the same shape Vercel uses:

    request  = {"method", "path", "headers", "body", "query"}
    response = {"statusCode", "headers", "body"}

``make_handler`` turns such a dispatcher into the ``BaseHTTPRequestHandler``
subclass that Vercel's Python runtime looks for.
"""

import asyncio
import json
from http.server import BaseHTTPRequestHandler
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import parse_qsl, urlsplit

from src.utils.errors import DashboardError, ValidationError
from src.utils.logging import correlation_context, get_structured_logger
from src.utils.logging_config import LoggingConfig

logger = get_structured_logger(__name__)

Dispatch = Callable[[dict, Any], Awaitable[dict]]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Correlation-ID",
}


def json_response(status: int, body: Any, headers: Optional[dict] = None) -> dict:
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json", **(headers or {})},
        "body": json.dumps(body),
    }


def empty_response(status: int = 204) -> dict:
    return {"statusCode": status, "headers": {}, "body": ""}


def redirect_response(location: str) -> dict:
    return {"statusCode": 302, "headers": {"Location": location}, "body": ""}


def error_response(status: int, message: str) -> dict:
    return json_response(status, {"error": message})


def not_found() -> dict:
    return error_response(404, "Not found")


def method_not_allowed() -> dict:
    return error_response(405, "Method not allowed")


def get_header(request: dict, name: str) -> Optional[str]:
    wanted = name.lower()
    for key, value in (request.get("headers") or {}).items():
        if key.lower() == wanted:
            return value
    return None


def query_param(request: dict, name: str) -> Optional[str]:
    value = (request.get("query") or {}).get(name)
    if isinstance(value, list):
        value = value[0] if value else None
    return value or None


def parse_json_body(request: dict) -> dict:
    """Decode the request body as a JSON object; empty bodies give ``{}``."""
    raw = request.get("body")
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise ValidationError("Request body is not valid UTF-8")
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("Request body is not valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def path_segments(path: str, prefix: str) -> list[str]:
    """Segments after ``prefix``: ``/api/tasks/abc`` with ``/api/tasks`` gives ``["abc"]``."""
    rest = (path or "").split("?", 1)[0]
    if rest.startswith(prefix):
        rest = rest[len(prefix):]
    return [segment for segment in rest.split("/") if segment]


async def handle_request(dispatch: Dispatch, request: dict, ctx: Any) -> dict:
    """Run ``dispatch`` with correlation tracking and error mapping."""
    correlation_header = LoggingConfig.LOG_CORRELATION_ID_HEADER
    with correlation_context(get_header(request, correlation_header)) as correlation_id:
        method = (request.get("method") or "GET").upper()
        if method == "OPTIONS":
            response = empty_response(204)
        else:
            try:
                response = await dispatch(request, ctx)
            except DashboardError as e:
                logger.warning(
                    "Request failed",
                    method=method,
                    path=request.get("path"),
                    error_type=type(e).__name__,
                    status_code=e.status_code,
                    error=str(e),
                )
                response = error_response(e.status_code, str(e))
            except Exception as e:
                logger.error(
                    "Unhandled error processing request",
                    exc_info=True,
                    method=method,
                    path=request.get("path"),
                    error=str(e),
                )
                response = error_response(500, "Internal server error")

        response["headers"] = {
            **CORS_HEADERS,
            correlation_header: correlation_id,
            **response.get("headers", {}),
        }
        logger.info(
            "Request handled",
            method=method,
            path=request.get("path"),
            status_code=response["statusCode"],
        )
        return response


def make_handler(dispatch: Dispatch, context_provider: Callable[[], Any]) -> type:
    """Build a ``BaseHTTPRequestHandler`` subclass serving ``dispatch``."""

    class handler(BaseHTTPRequestHandler):
        """Serverless function handler."""

        def _content_length(self) -> Optional[int]:
            try:
                length = int(self.headers.get('Content-Length', 0) or 0)
            except ValueError:
                return None
            return length if length >= 0 else None

        def _build_request(self, method: str, content_length: int) -> dict:
            raw_body = self.rfile.read(content_length) if content_length > 0 else b""
            parsed = urlsplit(self.path)
            return {
                "method": method,
                "path": parsed.path,
                "headers": dict(self.headers.items()),
                "body": raw_body,
                "query": dict(parse_qsl(parsed.query)),
            }

        def _write_response(self, response: dict) -> None:
            payload = (response.get("body") or "").encode('utf-8')
            self.send_response(response["statusCode"])
            for key, value in response.get("headers", {}).items():
                self.send_header(key, value)
            self.send_header('Content-Length', str(len(payload)))
            self.end_headers()
            if payload:
                self.wfile.write(payload)

        def _handle(self, method: str) -> None:
            content_length = self._content_length()
            if content_length is None:
                response = error_response(400, "Invalid Content-Length header")
                response["headers"] = {**CORS_HEADERS, **response["headers"]}
                self._write_response(response)
                return
            request = self._build_request(method, content_length)
            response = asyncio.run(handle_request(dispatch, request, context_provider()))
            self._write_response(response)

        def do_GET(self):
            self._handle("GET")

        def do_POST(self):
            self._handle("POST")

        def do_PUT(self):
            self._handle("PUT")

        def do_DELETE(self):
            self._handle("DELETE")

        def do_OPTIONS(self):
            self._handle("OPTIONS")

        def log_message(self, format, *args):
            # Access lines go through the structured logger instead of stderr
            logger.debug("HTTP access", line=format % args)

    return handler
