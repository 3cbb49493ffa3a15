"""Canvas LMS REST client."""

from typing import Any, Optional
import httpx

from src.config import Settings
from src.utils.errors import ExternalServiceError, IntegrationNotConfiguredError
from src.utils.logging import get_structured_logger, mask_sensitive_data

logger = get_structured_logger(__name__)

PAGE_SIZE = 50


class CanvasClient:
    """Thin async wrapper over the Canvas ``/api/v1`` endpoints.

    Use as an async context manager; the underlying httpx client lives for
    the duration of the ``async with`` block.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "CanvasClient":
        self._http = httpx.AsyncClient(
            base_url=f"{self.base_url}/api/v1",
            headers={"Authorization": f"Bearer {self._access_token}"},
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._http is not None:
            await self._http.aclose()
            self._http = None
        return False

    async def _get(self, path: str, params: Optional[dict] = None) -> Any:
        if self._http is None:
            raise RuntimeError("CanvasClient must be used inside 'async with'")
        try:
            response = await self._http.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Canvas API error response",
                path=path,
                status_code=e.response.status_code,
                body=mask_sensitive_data(e.response.text[:200]),
            )
            raise ExternalServiceError(
                f"Canvas API returned {e.response.status_code} for {path}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Canvas API request failed", path=path, error=mask_sensitive_data(str(e)))
            raise ExternalServiceError(f"Canvas API request failed: {e}") from e

    async def list_courses(self) -> list[dict]:
        return await self._get("/courses", {"enrollment_state": "active", "per_page": PAGE_SIZE})

    async def get_course(self, course_id: str) -> dict:
        return await self._get(f"/courses/{course_id}")

    async def list_course_assignments(self, course_id: str) -> list[dict]:
        return await self._get(
            f"/courses/{course_id}/assignments",
            {"per_page": PAGE_SIZE, "order_by": "due_at"},
        )

    async def get_assignment(self, course_id: str, assignment_id: str) -> dict:
        return await self._get(f"/courses/{course_id}/assignments/{assignment_id}")

    async def list_upcoming_events(self) -> list[dict]:
        return await self._get("/users/self/upcoming_events", {"per_page": PAGE_SIZE})


def canvas_client_from_settings(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CanvasClient:
    if not settings.canvas_configured:
        raise IntegrationNotConfiguredError("Canvas not configured")
    return CanvasClient(
        settings.canvas_api_url,
        settings.canvas_access_token,
        timeout=settings.http_timeout_seconds,
        transport=transport,
    )
