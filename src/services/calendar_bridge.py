"""Google Calendar bridge - OAuth session handling and task/event translation."""

import threading
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Optional
from urllib.parse import urlencode

import httpx
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from src.config import Settings
from src.models.calendar import CalendarEvent, OAuthTokens
from src.utils.errors import (
    ExternalServiceError,
    IntegrationNotConfiguredError,
    UnauthorizedError,
    ValidationError,
)
from src.utils.logging import get_structured_logger, mask_sensitive_data, mask_token, timed

logger = get_structured_logger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/calendar.events",
]
CALENDAR_ID = "primary"
EVENT_WINDOW_DAYS = 30
MAX_EVENTS = 50
DEFAULT_EVENT_DURATION = timedelta(hours=1)
EVENT_TITLE_PREFIX = "📚 "
DEFAULT_EVENT_DESCRIPTION = "Created from Academic Dashboard"


class CalendarSession:
    """OAuth tokens for the single connected Google account.

    Held in process memory only and shared by every request; a restart
    drops the connection.
    """

    def __init__(self, tokens: Optional[OAuthTokens] = None):
        self._tokens = tokens
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._tokens is not None

    @property
    def tokens(self) -> Optional[OAuthTokens]:
        return self._tokens

    def store(self, tokens: OAuthTokens) -> None:
        with self._lock:
            self._tokens = tokens

    def update_access_token(self, access_token: str, expires_at: Optional[datetime] = None) -> None:
        with self._lock:
            if self._tokens is not None:
                self._tokens = self._tokens.model_copy(
                    update={"access_token": access_token, "expires_at": expires_at}
                )

    def clear(self) -> None:
        with self._lock:
            self._tokens = None


def build_calendar_service(credentials: Credentials) -> Any:
    return build("calendar", "v3", credentials=credentials, cache_discovery=False)


def _rfc3339(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def build_event_body(
    title: str,
    due_date: str,
    time_slot: str = "",
    description: str = "",
    tz_name: str = "America/New_York",
) -> dict:
    """Google event body for a task.

    A ``time_slot`` gives a one-hour timed event; without one the event is
    all-day on ``due_date`` (Google's end date is exclusive).
    """
    try:
        day = date.fromisoformat(due_date)
    except (TypeError, ValueError):
        raise ValidationError("dueDate must be YYYY-MM-DD")

    if time_slot:
        try:
            start_time = time.fromisoformat(time_slot)
        except (TypeError, ValueError):
            raise ValidationError("timeSlot must be HH:MM")
        start_at = datetime.combine(day, start_time)
        end_at = start_at + DEFAULT_EVENT_DURATION
        start = {"dateTime": start_at.isoformat(), "timeZone": tz_name}
        end = {"dateTime": end_at.isoformat(), "timeZone": tz_name}
    else:
        start = {"date": day.isoformat()}
        end = {"date": (day + timedelta(days=1)).isoformat()}

    return {
        "summary": f"{EVENT_TITLE_PREFIX}{title}",
        "description": description or DEFAULT_EVENT_DESCRIPTION,
        "start": start,
        "end": end,
    }


class CalendarBridge:
    """Lists and creates events on the connected Google Calendar."""

    def __init__(
        self,
        settings: Settings,
        session: CalendarSession,
        service_factory: Callable[[Credentials], Any] = build_calendar_service,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.session = session
        self._service_factory = service_factory
        self._transport = transport

    @property
    def configured(self) -> bool:
        return self.settings.calendar_configured

    def status(self) -> dict:
        connected = self.session.connected
        if not self.configured:
            message = "Google Calendar not configured. Add GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET to .env"
        elif connected:
            message = "Connected to Google Calendar"
        else:
            message = "Not connected - click Connect to authorize"
        return {"configured": self.configured, "connected": connected, "message": message}

    def _require_configured(self) -> None:
        if not self.configured:
            raise IntegrationNotConfiguredError("Google Calendar not configured")

    def authorization_url(self, state: Optional[str] = None) -> str:
        """Consent-screen URL requesting offline access to the calendar scopes."""
        self._require_configured()
        params = {
            "client_id": self.settings.google_client_id,
            "redirect_uri": self.settings.google_redirect_uri,
            "response_type": "code",
            "scope": " ".join(CALENDAR_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def complete_authorization(self, code: str) -> OAuthTokens:
        """Exchange an authorization code and store the resulting tokens."""
        self._require_configured()
        if not code:
            raise ValidationError("Authorization code is required")

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.http_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    GOOGLE_OAUTH_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.settings.google_client_id,
                        "client_secret": self.settings.google_client_secret,
                        "redirect_uri": self.settings.google_redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Google token exchange failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "Google token exchange rejected",
                status_code=response.status_code,
                body=mask_sensitive_data(response.text[:200]),
            )
            raise ExternalServiceError(f"Google token exchange failed ({response.status_code})")

        try:
            payload = response.json()
            expires_in = payload.get("expires_in")
            tokens = OAuthTokens(
                access_token=payload.get("access_token") or "",
                refresh_token=payload.get("refresh_token"),
                expires_at=(
                    datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
                    if expires_in else None
                ),
                scope=payload.get("scope"),
                token_type=payload.get("token_type") or "Bearer",
            )
        except (ValueError, TypeError) as e:
            raise ExternalServiceError("Google token endpoint returned an invalid response") from e

        self.session.store(tokens)
        logger.info(
            "Google Calendar connected",
            access_token=mask_token(tokens.access_token),
            has_refresh_token=bool(tokens.refresh_token),
        )
        return tokens

    def disconnect(self) -> None:
        self.session.clear()
        logger.info("Google Calendar disconnected")

    def _credentials(self) -> Credentials:
        tokens = self.session.tokens
        if tokens is None:
            raise UnauthorizedError("Not connected to Google Calendar")
        expiry = tokens.expires_at.astimezone(timezone.utc).replace(tzinfo=None) if tokens.expires_at else None
        return Credentials(
            token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_uri=GOOGLE_OAUTH_TOKEN_URL,
            client_id=self.settings.google_client_id,
            client_secret=self.settings.google_client_secret,
            scopes=CALENDAR_SCOPES,
            expiry=expiry,
        )

    def _remember_refreshed_token(self, credentials: Credentials) -> None:
        tokens = self.session.tokens
        if tokens is not None and credentials.token and credentials.token != tokens.access_token:
            expires_at = credentials.expiry.replace(tzinfo=timezone.utc) if credentials.expiry else None
            self.session.update_access_token(credentials.token, expires_at)

    @timed("calendar_list_events", logger=logger)
    async def list_events(self, now: Optional[datetime] = None) -> list[CalendarEvent]:
        """Events in the next 30 days, by start time, at most 50.

        A 401 from Google drops the session so the UI asks to reconnect.
        """
        credentials = self._credentials()
        now = now or datetime.now(timezone.utc)
        try:
            service = self._service_factory(credentials)
            response = service.events().list(
                calendarId=CALENDAR_ID,
                timeMin=_rfc3339(now),
                timeMax=_rfc3339(now + timedelta(days=EVENT_WINDOW_DAYS)),
                singleEvents=True,
                orderBy="startTime",
                maxResults=MAX_EVENTS,
            ).execute()
        except RefreshError as e:
            self.session.clear()
            logger.warning("Google token refresh failed, session dropped", error=str(e))
            raise UnauthorizedError("Token expired, please reconnect") from e
        except HttpError as e:
            if e.resp.status == 401:
                self.session.clear()
                logger.warning("Google rejected calendar token, session dropped")
                raise UnauthorizedError("Token expired, please reconnect") from e
            logger.error("Failed to fetch calendar events", status_code=e.resp.status, error=str(e))
            raise ExternalServiceError("Failed to fetch calendar events") from e
        except OSError as e:
            logger.error("Calendar request failed", error=str(e))
            raise ExternalServiceError("Failed to fetch calendar events") from e

        self._remember_refreshed_token(credentials)
        return [CalendarEvent.from_google(item) for item in response.get("items", [])]

    @timed("calendar_sync_task", logger=logger)
    async def sync_task(self, task: dict) -> str:
        """Create a calendar event for ``task`` and return its event id."""
        if not self.session.connected:
            raise UnauthorizedError("Not connected to Google Calendar")

        title = task.get("title")
        title = title.strip() if isinstance(title, str) else ""
        due_date = task.get("dueDate") or task.get("due_date") or ""
        if not title or not due_date:
            raise ValidationError("Title and due date are required")

        body = build_event_body(
            title=title,
            due_date=due_date,
            time_slot=task.get("timeSlot") or task.get("time_slot") or "",
            description=str(task.get("description") or ""),
            tz_name=self.settings.app_timezone,
        )

        credentials = self._credentials()
        try:
            service = self._service_factory(credentials)
            event = service.events().insert(calendarId=CALENDAR_ID, body=body).execute()
        except RefreshError as e:
            self.session.clear()
            raise UnauthorizedError("Token expired, please reconnect") from e
        except HttpError as e:
            logger.error("Failed to sync task to calendar", status_code=e.resp.status, error=str(e))
            raise ExternalServiceError("Failed to sync task to calendar") from e
        except OSError as e:
            logger.error("Calendar request failed", error=str(e))
            raise ExternalServiceError("Failed to sync task to calendar") from e

        self._remember_refreshed_token(credentials)
        event_id = event.get("id")
        logger.info("Task synced to Google Calendar", event_id=event_id, all_day="date" in body["start"])
        return event_id
