"""Calendar models - OAuth tokens and the event shape returned to the UI."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class OAuthTokens(BaseModel):
    """Token pair returned by the Google token endpoint."""
    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None
    token_type: str = "Bearer"


class CalendarEvent(BaseModel):
    """Calendar event as listed by the dashboard."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str = ""
    description: str = ""
    start: Optional[str] = None
    end: Optional[str] = None
    all_day: bool = False

    @classmethod
    def from_google(cls, item: dict) -> "CalendarEvent":
        start = item.get("start") or {}
        end = item.get("end") or {}
        return cls(
            id=item["id"],
            title=item.get("summary") or "",
            description=item.get("description") or "",
            start=start.get("dateTime") or start.get("date"),
            end=end.get("dateTime") or end.get("date"),
            all_day=not start.get("dateTime"),
        )

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
