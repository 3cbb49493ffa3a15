"""Task model - the single persisted entity of the dashboard."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator
from pydantic.alias_generators import to_camel

from src.utils.errors import ValidationError


class Priority(str, Enum):
    """Task priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(str, Enum):
    """Kanban columns."""
    TODO = "todo"
    PROGRESS = "progress"
    DONE = "done"


class TaskSource(str, Enum):
    """Provenance of a task."""
    MANUAL = "manual"
    CANVAS = "canvas"
    CALENDAR = "calendar"


# Set by the repository, never taken from a caller's payload
READ_ONLY_FIELDS = frozenset({"id", "created_at", "updated_at"})


class Task(BaseModel):
    """Task model.

    Field names are snake_case (durable store columns); the JSON API uses the
    camelCase aliases.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )

    id: Optional[str] = None
    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Free text")
    due_date: str = Field(default="", description="YYYY-MM-DD or empty")
    time_slot: str = Field(default="", description="HH:MM or empty")
    priority: Priority = Priority.MEDIUM.value
    status: TaskStatus = TaskStatus.TODO.value
    source: TaskSource = TaskSource.MANUAL.value
    external_id: Optional[str] = Field(None, description="ID in the originating system")
    canvas_course_id: Optional[str] = None
    canvas_course_name: Optional[str] = None
    calendar_event_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def _title_not_blank(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("Title is required")
        return value.strip() if isinstance(value, str) else value

    @field_validator("description", mode="before")
    @classmethod
    def _description_default(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("priority", "status", "source", mode="before")
    @classmethod
    def _blank_enum_takes_default(cls, value: Any, info) -> Any:
        if value is None or value == "":
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("due_date", mode="before")
    @classmethod
    def _check_due_date(cls, value: Any) -> Any:
        if value is None or value == "":
            return ""
        try:
            datetime.strptime(str(value), "%Y-%m-%d")
        except ValueError:
            raise ValueError("dueDate must be YYYY-MM-DD")
        return str(value)

    @field_validator("time_slot", mode="before")
    @classmethod
    def _check_time_slot(cls, value: Any) -> Any:
        if value is None or value == "":
            return ""
        text = str(value)
        try:
            parsed = datetime.strptime(text, "%H:%M")
        except ValueError:
            raise ValueError("timeSlot must be HH:MM")
        return parsed.strftime("%H:%M")

    @field_validator("external_id", "canvas_course_id", mode="before")
    @classmethod
    def _ids_as_text(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return str(value)

    def to_api(self) -> dict:
        """Serialize for the JSON API (camelCase keys)."""
        return self.model_dump(mode="json", by_alias=True)

    def to_row(self) -> dict:
        """Serialize for the durable store (snake_case columns, no id)."""
        return self.model_dump(mode="json", exclude={"id"})


_ALIAS_TO_FIELD = {
    (info.alias or name): name for name, info in Task.model_fields.items()
}


def normalize_task_fields(fields: dict) -> dict:
    """Map a caller payload (camelCase or snake_case) onto writable Task fields.

    Unknown keys and read-only fields are dropped.
    """
    normalized = {}
    for key, value in (fields or {}).items():
        name = _ALIAS_TO_FIELD.get(key, key if key in Task.model_fields else None)
        if name is None or name in READ_ONLY_FIELDS:
            continue
        normalized[name] = value
    return normalized


def describe_validation_error(exc: PydanticValidationError) -> str:
    """Flatten pydantic errors into one caller-facing message."""
    parts = []
    for error in exc.errors():
        field = ".".join(str(p) for p in error.get("loc", ())) or "task"
        message = error.get("msg", "invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        parts.append(f"{to_camel(field)}: {message}")
    return "; ".join(parts)


def build_task(data: dict) -> Task:
    """Validate ``data`` into a Task, raising the dashboard ValidationError."""
    try:
        return Task.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(describe_validation_error(e)) from e
