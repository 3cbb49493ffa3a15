"""Supabase client wrapper, connection liveness tracking, and tasks table helpers."""

import threading
import time
from typing import Callable, Optional
from supabase import create_client, Client
from supabase.client import ClientOptions

from src.config import Settings
from src.utils.errors import PersistenceError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

TASKS_TABLE = "tasks"

# Global client instance (singleton pattern)
_client: Optional[Client] = None
_client_lock = threading.Lock()


def get_supabase_client(settings: Optional[Settings] = None) -> Client:
    """Get or create Supabase client singleton."""
    global _client

    with _client_lock:
        if _client is None:
            settings = settings or Settings.from_env()
            if not settings.supabase_configured:
                raise PersistenceError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

            options = ClientOptions(
                auto_refresh_token=False,
                persist_session=False,
                postgrest_client_timeout=settings.http_timeout_seconds,
            )

            _client = create_client(settings.supabase_url, settings.supabase_service_role_key, options)
            logger.info("Supabase client initialized", url=settings.supabase_url)

    return _client


def reset_supabase_client() -> None:
    """Drop the cached client so the next call builds a fresh one."""
    global _client
    with _client_lock:
        _client = None


class SupabaseConnection:
    """Tracks whether the durable store is reachable right now.

    ``is_available()`` is evaluated on every repository call. A connected
    store stays connected until an operation fails; a disconnected one is
    checked again once ``db_reconnect_interval_seconds`` have passed.
    """

    def __init__(
        self,
        settings: Settings,
        client_factory: Optional[Callable[[], Client]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self._client_factory = client_factory or (lambda: get_supabase_client(settings))
        self._clock = clock
        self._connected = False
        self._last_attempt: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return self.settings.supabase_configured

    @property
    def state(self) -> str:
        if not self.configured:
            return "not configured"
        return "connected" if self._connected else "disconnected"

    def is_available(self) -> bool:
        if not self.configured:
            return False
        if self._connected:
            return True
        if (
            self._last_attempt is not None
            and self._clock() - self._last_attempt < self.settings.db_reconnect_interval_seconds
        ):
            return False
        return self.connect()

    def connect(self) -> bool:
        """Query the tasks table and record the outcome."""
        with self._lock:
            self._last_attempt = self._clock()
            try:
                client = self._client_factory()
                client.table(TASKS_TABLE).select("id").limit(1).execute()
            except Exception as e:
                self._connected = False
                logger.warning(
                    "Supabase unavailable, using in-memory storage",
                    error=str(e),
                    retry_in_seconds=self.settings.db_reconnect_interval_seconds,
                )
                return False

            if not self._connected:
                logger.info("Supabase connected", url=self.settings.supabase_url)
            self._connected = True
            return True

    def mark_unavailable(self, error: Exception) -> None:
        with self._lock:
            if self._connected:
                logger.warning("Supabase connection lost", error=str(error))
            self._connected = False
            self._last_attempt = self._clock()

    def client(self) -> Client:
        return self._client_factory()


# Tasks table operations
async def select_tasks(client: Client) -> list[dict]:
    """All task rows, newest first."""
    try:
        result = client.table(TASKS_TABLE).select("*").order("created_at", desc=True).execute()
        return result.data if result.data else []
    except Exception as e:
        raise PersistenceError(f"Failed to list tasks: {e}")


async def select_task(client: Client, task_id: str) -> Optional[dict]:
    try:
        result = client.table(TASKS_TABLE).select("*").eq("id", task_id).execute()
        return result.data[0] if result.data else None
    except Exception as e:
        raise PersistenceError(f"Failed to get task: {e}")


async def select_task_by_external_id(client: Client, source: str, external_id: str) -> Optional[dict]:
    try:
        result = (
            client.table(TASKS_TABLE)
            .select("*")
            .eq("source", source)
            .eq("external_id", external_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None
    except Exception as e:
        raise PersistenceError(f"Failed to look up task by external id: {e}")


async def insert_task(client: Client, row: dict) -> dict:
    try:
        result = client.table(TASKS_TABLE).insert(row).execute()
    except Exception as e:
        raise PersistenceError(f"Failed to create task: {e}")
    if result.data:
        return result.data[0]
    raise PersistenceError("Failed to create task: no data returned")


async def update_task_row(client: Client, task_id: str, updates: dict) -> Optional[dict]:
    """Returns None when no row has ``task_id``."""
    try:
        result = client.table(TASKS_TABLE).update(updates).eq("id", task_id).execute()
        return result.data[0] if result.data else None
    except Exception as e:
        raise PersistenceError(f"Failed to update task: {e}")


async def delete_task_row(client: Client, task_id: str) -> bool:
    """Returns False when no row has ``task_id``."""
    try:
        result = client.table(TASKS_TABLE).delete().eq("id", task_id).execute()
        return bool(result.data)
    except Exception as e:
        raise PersistenceError(f"Failed to delete task: {e}")
