"""Canvas assignment import - fetch, filter, dedup, and map assignments to tasks."""

import html
import re
from datetime import datetime
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from src.models.canvas import CanvasAssignment, CanvasCourse, ImportedTask, ImportResult
from src.models.task import Priority, TaskSource, TaskStatus, build_task
from src.services.canvas_client import CanvasClient
from src.services.task_repository import TaskRepository, generate_task_id, utc_now_iso
from src.utils.errors import ExternalServiceError, PersistenceError, ValidationError
from src.utils.logging import get_structured_logger, log_timing

logger = get_structured_logger(__name__)

DESCRIPTION_MAX_LENGTH = 500

_TAG_RE = re.compile(r"<[^>]*>")
_SPACE_RE = re.compile(r"\s+")


def strip_html(text: Optional[str], max_length: int = DESCRIPTION_MAX_LENGTH) -> str:
    """Plain-text version of a Canvas HTML description, truncated."""
    if not text:
        return ""
    plain = html.unescape(_TAG_RE.sub(" ", text))
    plain = _SPACE_RE.sub(" ", plain).strip()
    return plain[:max_length]


def split_due_at(due_at: Optional[str], tz_name: str) -> tuple[str, str]:
    """Split an ISO-8601 ``due_at`` into local (YYYY-MM-DD, HH:MM).

    Unparseable or missing values give two empty strings.
    """
    if not due_at:
        return "", ""
    try:
        moment = datetime.fromisoformat(due_at.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable Canvas due_at", due_at=due_at)
        return "", ""
    if moment.tzinfo is not None:
        moment = moment.astimezone(ZoneInfo(tz_name))
    return moment.strftime("%Y-%m-%d"), moment.strftime("%H:%M")


def unwrap_upcoming_event(event: dict) -> dict:
    """Upcoming-event entries nest the assignment; flatten to assignment shape."""
    nested = event.get("assignment")
    if isinstance(nested, dict):
        return {"context_name": event.get("context_name"), **nested}
    return event


def is_listable(assignment: dict) -> bool:
    return bool(assignment.get("name")) and bool(assignment.get("due_at"))


def format_course(course: dict) -> CanvasCourse:
    return CanvasCourse(
        id=course.get("id"),
        name=course.get("name"),
        code=course.get("course_code"),
        enrollment_term=course.get("enrollment_term_id"),
    )


def format_assignment(assignment: dict) -> CanvasAssignment:
    return CanvasAssignment(
        id=assignment.get("id"),
        title=assignment.get("name"),
        description=assignment.get("description") or "",
        due_date=assignment.get("due_at"),
        course_id=assignment.get("course_id"),
        course_name=assignment.get("context_name") or "",
        points_possible=assignment.get("points_possible"),
        submission_types=assignment.get("submission_types") or [],
        html_url=assignment.get("html_url"),
    )


def assignment_to_task_fields(
    assignment: dict,
    course_id: Optional[str],
    course_name: str,
    tz_name: str,
) -> dict:
    """Map a Canvas assignment onto Task fields.

    Priority and status are never taken from Canvas.
    """
    due_date, time_slot = split_due_at(assignment.get("due_at"), tz_name)
    resolved_course_id = assignment.get("course_id") or course_id
    return {
        "title": assignment.get("name"),
        "description": strip_html(assignment.get("description")),
        "due_date": due_date,
        "time_slot": time_slot,
        "priority": Priority.MEDIUM.value,
        "status": TaskStatus.TODO.value,
        "source": TaskSource.CANVAS.value,
        "external_id": str(assignment.get("id")),
        "canvas_course_id": str(resolved_course_id) if resolved_course_id else None,
        "canvas_course_name": course_name or assignment.get("context_name") or "",
    }


class CanvasImporter:
    """Reads Canvas data and materializes assignments as tasks exactly once."""

    def __init__(self, client: CanvasClient, repository: TaskRepository, tz_name: str):
        self.client = client
        self.repository = repository
        self.tz_name = tz_name

    async def list_courses(self) -> list[CanvasCourse]:
        courses = await self.client.list_courses()
        return [format_course(c) for c in courses if c.get("name")]

    async def list_assignments(self, course_id: Optional[str] = None) -> list[CanvasAssignment]:
        if course_id:
            raw = await self.client.list_course_assignments(course_id)
            assignments = [{**a, "course_id": a.get("course_id") or course_id} for a in raw]
        else:
            assignments = await self._upcoming_assignments()
        return [format_assignment(a) for a in assignments if is_listable(a)]

    async def _upcoming_assignments(self) -> list[dict]:
        events = await self.client.list_upcoming_events()
        return [unwrap_upcoming_event(e) for e in events if e.get("type") == "assignment"]

    async def _fetch_by_ids(self, course_id: str, assignment_ids: Iterable) -> list[dict]:
        fetched = []
        for assignment_id in assignment_ids:
            try:
                fetched.append(await self.client.get_assignment(course_id, str(assignment_id)))
            except ExternalServiceError as e:
                logger.warning(
                    "Skipping Canvas assignment that failed to load",
                    assignment_id=str(assignment_id),
                    course_id=course_id,
                    error=str(e),
                )
        return fetched

    async def _resolve_course_name(self, course_id: Optional[str]) -> str:
        if not course_id:
            return ""
        try:
            course = await self.client.get_course(course_id)
            return course.get("name") or ""
        except ExternalServiceError as e:
            logger.info("Could not fetch Canvas course name", course_id=course_id, error=str(e))
            return ""

    async def _select_candidates(
        self,
        course_id: Optional[str],
        assignment_ids: Optional[list],
    ) -> list[dict]:
        if assignment_ids is not None and not isinstance(assignment_ids, list):
            raise ValidationError("assignmentIds must be a list")
        if assignment_ids:
            if not course_id:
                raise ValidationError("courseId is required when importing by assignmentIds")
            # Requested by id: a missing due date does not exclude the assignment
            fetched = await self._fetch_by_ids(course_id, assignment_ids)
            return [a for a in fetched if a.get("name")]
        if course_id:
            assignments = await self.client.list_course_assignments(course_id)
            return [a for a in assignments if is_listable(a)]
        return [a for a in await self._upcoming_assignments() if is_listable(a)]

    async def import_assignments(
        self,
        course_id: Optional[str] = None,
        assignment_ids: Optional[list] = None,
    ) -> ImportResult:
        """Import assignments, skipping ones already imported.

        Listing failures raise ExternalServiceError; per-assignment failures
        only lower the imported count.
        """
        course_id = str(course_id) if course_id else None
        result = ImportResult()

        with log_timing("canvas_import", logger=logger, course_id=course_id):
            candidates = await self._select_candidates(course_id, assignment_ids)
            course_name = await self._resolve_course_name(course_id)

            for assignment in candidates:
                external_id = str(assignment.get("id"))
                existing = await self.repository.find_by_external_id(TaskSource.CANVAS.value, external_id)
                if existing is not None:
                    logger.info(
                        "Skipping already imported assignment",
                        external_id=external_id,
                        task_id=existing.id,
                    )
                    result.skipped_existing += 1
                    continue

                fields = assignment_to_task_fields(assignment, course_id, course_name, self.tz_name)
                entry = await self._store(fields)
                if entry is not None:
                    result.entries.append(entry)

        logger.info(
            "Canvas import finished",
            course_id=course_id,
            candidates=len(candidates),
            imported=result.imported_count,
            skipped_existing=result.skipped_existing,
        )
        return result

    async def _store(self, fields: dict) -> Optional[ImportedTask]:
        try:
            task = await self.repository.create_task(fields, fallback=False)
            return ImportedTask(task=task)
        except ValidationError as e:
            logger.warning("Skipping invalid Canvas assignment", external_id=fields.get("external_id"), error=str(e))
            return None
        except PersistenceError as e:
            logger.warning(
                "Imported assignment not persisted",
                external_id=fields.get("external_id"),
                error=str(e),
            )
            now = utc_now_iso()
            transient = build_task({**fields, "id": generate_task_id(), "created_at": now, "updated_at": now})
            return ImportedTask(task=transient, persisted=False)
