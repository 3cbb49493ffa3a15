"""Tests for health check endpoint."""

import pytest
import json
from io import BytesIO
from unittest.mock import Mock
from http.server import BaseHTTPRequestHandler

from api.health import handler
from tests.utils.helpers import MockSocket


def run_handler(raw_request: bytes, method: str):
    h = handler(MockSocket(raw_request), ("127.0.0.1", 8000), None)

    h.wfile = BytesIO()
    h.send_response = Mock()
    h.send_header = Mock()
    h.end_headers = Mock()

    getattr(h, f"do_{method}")()
    h.wfile.seek(0)
    return h, json.loads(h.wfile.read().decode('utf-8'))


@pytest.mark.unit
def test_health_handler_class():
    """Test that handler is a BaseHTTPRequestHandler subclass."""
    assert issubclass(handler, BaseHTTPRequestHandler)


@pytest.mark.unit
def test_health_get_request(installed_context):
    """Test GET request to health endpoint."""
    h, response_data = run_handler(b"GET /api/health HTTP/1.1\r\n\r\n", "GET")

    assert h.send_response.call_args[0][0] == 200
    assert response_data["status"] == "ok"
    assert response_data["service"] == "academic-dashboard-backend"
    assert response_data["storage"] == "memory"
    assert response_data["supabase"] == "not configured"
    assert response_data["googleCalendar"] == "configured"
    assert response_data["canvas"] == "configured"

    sent_headers = {call[0][0]: call[0][1] for call in h.send_header.call_args_list}
    assert sent_headers["Content-Type"] == "application/json"
    assert sent_headers["Access-Control-Allow-Origin"] == "*"


@pytest.mark.unit
def test_health_post_request(installed_context):
    """Test POST request to health endpoint."""
    h, response_data = run_handler(b"POST /api/health HTTP/1.1\r\n\r\n", "POST")

    assert h.send_response.called
    assert response_data["status"] == "ok"
