"""Runtime settings read from the environment."""

import os
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from pydantic import BaseModel, Field, field_validator

from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

DEFAULT_REDIRECT_URI = "http://localhost:3001/api/calendar/callback"
DEFAULT_TIMEZONE = "America/New_York"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes")


def _env_str(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None


def _env_number(name: str, default, cast: Callable = float, valid: Callable = lambda v: v >= 0):
    """Numeric env var; malformed or out-of-range values keep ``default``."""
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        value = None
    if value is None or not valid(value):
        logger.warning("Ignoring invalid setting", variable=name, value=raw, default=default)
        return default
    return value


def is_known_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def _env_timezone() -> str:
    name = _env_str("APP_TIMEZONE") or DEFAULT_TIMEZONE
    if not is_known_timezone(name):
        logger.warning("Unknown APP_TIMEZONE, using default", value=name, default=DEFAULT_TIMEZONE)
        return DEFAULT_TIMEZONE
    return name


class Settings(BaseModel):
    """Process configuration.

    Integration credentials are optional; a missing value leaves the
    subsystem in its "not configured" state instead of failing startup.
    """
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    db_reconnect_interval_seconds: float = Field(default=30.0, ge=0)
    seed_demo_tasks: bool = False

    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_redirect_uri: str = DEFAULT_REDIRECT_URI

    canvas_api_url: Optional[str] = None
    canvas_access_token: Optional[str] = None

    app_timezone: str = DEFAULT_TIMEZONE
    app_base_url: str = "/"
    http_timeout_seconds: float = Field(default=10.0, gt=0)
    port: int = 3001

    @field_validator("app_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        if not is_known_timezone(value):
            raise ValueError(f"Unknown timezone: {value}")
        return value

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        canvas_url = _env_str("CANVAS_API_URL")
        return cls(
            supabase_url=_env_str("SUPABASE_URL"),
            supabase_service_role_key=_env_str("SUPABASE_SERVICE_ROLE_KEY"),
            db_reconnect_interval_seconds=_env_number("DB_RECONNECT_INTERVAL_SECONDS", 30.0),
            seed_demo_tasks=_env_flag("SEED_DEMO_TASKS"),
            google_client_id=_env_str("GOOGLE_CLIENT_ID"),
            google_client_secret=_env_str("GOOGLE_CLIENT_SECRET"),
            google_redirect_uri=_env_str("GOOGLE_REDIRECT_URI") or DEFAULT_REDIRECT_URI,
            canvas_api_url=canvas_url.rstrip("/") if canvas_url else None,
            canvas_access_token=_env_str("CANVAS_ACCESS_TOKEN"),
            app_timezone=_env_timezone(),
            app_base_url=_env_str("APP_BASE_URL") or "/",
            http_timeout_seconds=_env_number("HTTP_TIMEOUT_SECONDS", 10.0, valid=lambda v: v > 0),
            port=_env_number("PORT", 3001, cast=int, valid=lambda v: 0 < v < 65536),
        )

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)

    @property
    def calendar_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)

    @property
    def canvas_configured(self) -> bool:
        return bool(self.canvas_api_url and self.canvas_access_token)
