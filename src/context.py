"""Application context - the per-process wiring of settings, storage and integrations."""

import threading
from typing import Callable, Optional

from src.config import Settings
from src.services.calendar_bridge import CalendarBridge, CalendarSession
from src.services.canvas_client import CanvasClient, canvas_client_from_settings
from src.services.supabase_client import SupabaseConnection
from src.services.task_repository import InMemoryTaskStore, TaskRepository, demo_tasks
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


class AppContext:
    """Everything a request handler needs.

    Handlers receive the context explicitly; tests build their own with
    fakes instead of patching module globals.
    """

    def __init__(
        self,
        settings: Settings,
        repository: TaskRepository,
        calendar_session: Optional[CalendarSession] = None,
        calendar_bridge: Optional[CalendarBridge] = None,
        canvas_client_factory: Optional[Callable[[], CanvasClient]] = None,
    ):
        self.settings = settings
        self.repository = repository
        self.calendar_session = calendar_session or CalendarSession()
        self.calendar = calendar_bridge or CalendarBridge(settings, self.calendar_session)
        self._canvas_client_factory = canvas_client_factory or (
            lambda: canvas_client_from_settings(settings)
        )

    def canvas_client(self) -> CanvasClient:
        """New Canvas client; raises IntegrationNotConfiguredError when unset."""
        return self._canvas_client_factory()

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        connection = SupabaseConnection(settings)
        memory = InMemoryTaskStore(demo_tasks() if settings.seed_demo_tasks else None)
        repository = TaskRepository(connection, memory=memory)
        logger.info(
            "Application context created",
            supabase="configured" if settings.supabase_configured else "not configured",
            google_calendar="configured" if settings.calendar_configured else "not configured",
            canvas="configured" if settings.canvas_configured else "not configured",
        )
        return cls(settings, repository)


_context: Optional[AppContext] = None
_context_lock = threading.Lock()


def get_app_context() -> AppContext:
    """Process-wide context, created from the environment on first use."""
    global _context
    with _context_lock:
        if _context is None:
            _context = AppContext.from_settings(Settings.from_env())
    return _context


def set_app_context(context: Optional[AppContext]) -> None:
    """Replace (or with None, reset) the process-wide context."""
    global _context
    with _context_lock:
        _context = context
