"""Task repository with a durable (Supabase) store and an in-memory fallback."""

import abc
import threading
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from ulid import ULID

from src.models.task import Task, TaskSource, build_task, normalize_task_fields
from src.services.supabase_client import (
    SupabaseConnection,
    delete_task_row,
    insert_task,
    select_task,
    select_task_by_external_id,
    select_tasks,
    update_task_row,
)
from src.utils.errors import NotFoundError, PersistenceError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


def generate_task_id() -> str:
    """Generate a text-based task ID (ULID format)."""
    return str(ULID())


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def _newest_first(tasks: list[Task]) -> list[Task]:
    # Stable sort over reversed insertion order keeps later inserts first on ties
    return sorted(reversed(tasks), key=lambda t: t.created_at or "", reverse=True)


class TaskStore(abc.ABC):
    """Storage backend for tasks."""

    name = "abstract"

    @abc.abstractmethod
    async def fetch_all(self) -> list[Task]:
        ...

    @abc.abstractmethod
    async def fetch(self, task_id: str) -> Optional[Task]:
        ...

    @abc.abstractmethod
    async def fetch_by_external_id(self, source: str, external_id: str) -> Optional[Task]:
        ...

    @abc.abstractmethod
    async def insert(self, task: Task) -> Task:
        ...

    @abc.abstractmethod
    async def update(self, task_id: str, changes: dict) -> Optional[Task]:
        """Apply already-validated column changes; None when the id is absent."""

    @abc.abstractmethod
    async def delete(self, task_id: str) -> bool:
        ...


class InMemoryTaskStore(TaskStore):
    """Process-local task list, guarded by a mutex for threaded servers."""

    name = "memory"

    def __init__(self, tasks: Optional[list[Task]] = None):
        self._tasks: list[Task] = list(tasks or [])
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._tasks)

    async def fetch_all(self) -> list[Task]:
        with self._lock:
            return [t.model_copy() for t in _newest_first(self._tasks)]

    async def fetch(self, task_id: str) -> Optional[Task]:
        with self._lock:
            for task in self._tasks:
                if task.id == task_id:
                    return task.model_copy()
        return None

    async def fetch_by_external_id(self, source: str, external_id: str) -> Optional[Task]:
        with self._lock:
            for task in self._tasks:
                if task.source == source and task.external_id == external_id:
                    return task.model_copy()
        return None

    async def insert(self, task: Task) -> Task:
        stored = task.model_copy(update={"id": generate_task_id()})
        with self._lock:
            self._tasks.append(stored)
        return stored.model_copy()

    async def update(self, task_id: str, changes: dict) -> Optional[Task]:
        with self._lock:
            for index, task in enumerate(self._tasks):
                if task.id == task_id:
                    updated = task.model_copy(update=changes)
                    self._tasks[index] = updated
                    return updated.model_copy()
        return None

    async def delete(self, task_id: str) -> bool:
        with self._lock:
            for index, task in enumerate(self._tasks):
                if task.id == task_id:
                    del self._tasks[index]
                    return True
        return False


class SupabaseTaskStore(TaskStore):
    """Tasks table in Supabase. Every method raises PersistenceError on failure."""

    name = "supabase"

    def __init__(self, connection: SupabaseConnection):
        self.connection = connection

    async def fetch_all(self) -> list[Task]:
        rows = await select_tasks(self.connection.client())
        return [Task.model_validate(row) for row in rows]

    async def fetch(self, task_id: str) -> Optional[Task]:
        row = await select_task(self.connection.client(), task_id)
        return Task.model_validate(row) if row else None

    async def fetch_by_external_id(self, source: str, external_id: str) -> Optional[Task]:
        row = await select_task_by_external_id(self.connection.client(), source, external_id)
        return Task.model_validate(row) if row else None

    async def insert(self, task: Task) -> Task:
        row = await insert_task(self.connection.client(), task.to_row())
        return Task.model_validate(row)

    async def update(self, task_id: str, changes: dict) -> Optional[Task]:
        row = await update_task_row(self.connection.client(), task_id, changes)
        return Task.model_validate(row) if row else None

    async def delete(self, task_id: str) -> bool:
        return await delete_task_row(self.connection.client(), task_id)


class TaskRepository:
    """CRUD over tasks, choosing the backend on every call.

    The durable store is used whenever ``connection.is_available()`` says so.
    A durable failure marks the connection down and the call is re-run on
    the in-memory store, unless the caller opts out with ``fallback=False``.
    Without fallback a configured but unreachable store raises
    PersistenceError instead of writing to memory.
    """

    def __init__(
        self,
        connection: SupabaseConnection,
        durable: Optional[TaskStore] = None,
        memory: Optional[InMemoryTaskStore] = None,
    ):
        self.connection = connection
        self.durable = durable if durable is not None else SupabaseTaskStore(connection)
        self.memory = memory if memory is not None else InMemoryTaskStore()

    def active_backend(self) -> str:
        return self.durable.name if self.connection.is_available() else self.memory.name

    async def _run(self, operation: str, *args, fallback: bool = True):
        if self.connection.is_available():
            try:
                return await getattr(self.durable, operation)(*args)
            except PersistenceError as e:
                self.connection.mark_unavailable(e)
                if not fallback:
                    raise
                logger.warning(
                    "Durable store failed, falling back to memory",
                    operation=operation,
                    error=str(e),
                )
        elif not fallback and self.connection.configured:
            raise PersistenceError("Durable store unavailable")
        return await getattr(self.memory, operation)(*args)

    async def list_tasks(self) -> list[Task]:
        return await self._run("fetch_all")

    async def get_task(self, task_id: str) -> Task:
        task = await self._run("fetch", task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def find_by_external_id(self, source: str, external_id: str) -> Optional[Task]:
        return await self._run("fetch_by_external_id", source, str(external_id))

    async def create_task(self, fields: dict, fallback: bool = True) -> Task:
        """Validate ``fields``, apply defaults and store a new task."""
        now = utc_now_iso()
        task = build_task({**normalize_task_fields(fields), "created_at": now, "updated_at": now})
        created = await self._run("insert", task, fallback=fallback)
        logger.info("Task created", task_id=created.id, source=created.source)
        return created

    async def update_task(self, task_id: str, fields: dict) -> Task:
        """Merge ``fields`` over the stored task; unspecified fields keep their values."""
        existing = await self.get_task(task_id)
        changes = normalize_task_fields(fields)
        merged = build_task({**existing.model_dump(), **changes, "updated_at": utc_now_iso()})

        column_changes = {
            name: value
            for name, value in merged.model_dump(mode="json").items()
            if name in changes or name == "updated_at"
        }
        updated = await self._run("update", task_id, column_changes)
        if updated is None:
            raise NotFoundError("Task not found")
        logger.info("Task updated", task_id=task_id, fields=sorted(changes))
        return updated

    async def delete_task(self, task_id: str) -> None:
        deleted = await self._run("delete", task_id)
        if not deleted:
            raise NotFoundError("Task not found")
        logger.info("Task deleted", task_id=task_id)


def demo_tasks(today: Optional[date] = None) -> list[Task]:
    """Sample study tasks for seeding the in-memory store."""
    today = today or date.today()
    samples = [
        {
            "title": "Complete CS 101 Assignment",
            "description": "Finish the programming assignment on data structures",
            "due_date": today.isoformat(),
            "time_slot": "14:00",
            "priority": "high",
            "status": "progress",
        },
        {
            "title": "Study for Math Exam",
            "description": "Review chapters 5-8 on calculus",
            "due_date": (today + timedelta(days=2)).isoformat(),
            "time_slot": "09:00",
            "priority": "high",
        },
        {
            "title": "Read Biology Chapter",
            "description": "Chapter 12: Cell Division",
            "due_date": (today + timedelta(days=3)).isoformat(),
            "time_slot": "16:00",
        },
    ]
    tasks = []
    for sample in samples:
        now = utc_now_iso()
        tasks.append(build_task({
            **sample,
            "id": generate_task_id(),
            "source": TaskSource.MANUAL.value,
            "created_at": now,
            "updated_at": now,
        }))
    return tasks
