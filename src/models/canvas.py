"""Canvas-facing models: courses, assignments, and import results."""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.task import Task


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class CanvasCourse(_CamelModel):
    """Active enrollment as shown in the course picker."""
    id: Any
    name: str
    code: Optional[str] = None
    enrollment_term: Optional[Any] = None


class CanvasAssignment(_CamelModel):
    """Assignment preview listed before import."""
    id: Any
    title: str
    description: str = ""
    due_date: Optional[str] = Field(None, description="Raw Canvas due_at timestamp")
    course_id: Optional[Any] = None
    course_name: str = ""
    points_possible: Optional[float] = None
    submission_types: list[str] = Field(default_factory=list)
    html_url: Optional[str] = None


class ImportedTask(BaseModel):
    """A task produced by an import, with whether it reached storage."""
    task: Task
    persisted: bool = True

    def to_api(self) -> dict:
        return {**self.task.to_api(), "persisted": self.persisted}


class ImportResult(BaseModel):
    """Outcome of one Canvas import run."""
    entries: list[ImportedTask] = Field(default_factory=list)
    skipped_existing: int = 0

    @property
    def imported_count(self) -> int:
        return len(self.entries)

    @property
    def tasks(self) -> list[Task]:
        return [entry.task for entry in self.entries]

    def to_api(self) -> dict:
        count = self.imported_count
        return {
            "success": True,
            "importedCount": count,
            "tasks": [entry.to_api() for entry in self.entries],
            "message": f"Imported {count} assignment(s) from Canvas",
        }
