"""Test helper functions."""

import json
from io import BytesIO
from typing import Any, Dict, Optional, Union
from unittest.mock import MagicMock

import httpx


def create_request(
    method: str = "GET",
    path: str = "/api/tasks",
    body: Union[Dict[str, Any], str, None] = None,
    query: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Create a Vercel-style request dict for testing."""
    if headers is None:
        headers = {"content-type": "application/json"}

    if body is None:
        raw_body = ""
    elif isinstance(body, dict):
        raw_body = json.dumps(body)
    else:
        raw_body = body

    return {
        "method": method,
        "path": path,
        "headers": headers,
        "body": raw_body,
        "query": query or {},
    }


def response_json(response: Dict[str, Any]) -> Any:
    return json.loads(response["body"]) if response["body"] else None


def canvas_transport(
    routes: Dict[str, Any],
    calls: Optional[list] = None,
) -> httpx.MockTransport:
    """MockTransport answering Canvas API paths.

    ``routes`` maps a path relative to ``/api/v1`` to either a JSON payload
    (200) or an ``(status_code, payload)`` tuple. Unknown paths give 404.
    """
    def handle(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith("/api/v1"):
            path = path[len("/api/v1"):]
        if calls is not None:
            calls.append((path, dict(request.url.params)))
        if path not in routes:
            return httpx.Response(404, json={"errors": [{"message": "not found"}]})
        answer = routes[path]
        if isinstance(answer, tuple):
            status, payload = answer
            return httpx.Response(status, json=payload)
        return httpx.Response(200, json=answer)

    return httpx.MockTransport(handle)


def mock_supabase_query(data: Optional[list] = None, error: Optional[Exception] = None) -> MagicMock:
    """Chainable PostgREST query mock whose ``execute()`` returns ``data``."""
    query = MagicMock()
    for method in ("select", "eq", "order", "limit", "insert", "update", "delete"):
        getattr(query, method).return_value = query
    if error is not None:
        query.execute.side_effect = error
    else:
        query.execute.return_value = MagicMock(data=data if data is not None else [])
    return query


def mock_supabase_client(query: MagicMock) -> MagicMock:
    client = MagicMock()
    client.table.return_value = query
    return client


class StubConnection:
    """Durable-store connection whose availability the test controls."""

    def __init__(self, available: bool = True, configured: bool = True):
        self.available = available
        self.configured = configured
        self.failures: list = []

    def is_available(self) -> bool:
        return self.available

    def mark_unavailable(self, error: Exception) -> None:
        self.failures.append(error)
        self.available = False


class MockSocket:
    """Minimal socket feeding one raw HTTP request to a handler class."""

    def __init__(self, raw_request: bytes):
        self.raw_request = raw_request
        self.sent = b""

    def makefile(self, *args, **kwargs):
        return BytesIO(self.raw_request)

    def sendall(self, data):
        self.sent += bytes(data)

    def close(self):
        pass
