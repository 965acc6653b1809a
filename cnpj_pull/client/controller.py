"""Client-side lifecycle of a discovery run that survives view changes."""

import asyncio
import logging
import time
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

import httpx

from cnpj_pull.errors import DiscoveryError
from cnpj_pull.models import FilterSet, ProgressSnapshot, ResolvedEntity, RunStats
from .result_cache import ResultCache
from .transport import DiscoveryClient

logger = logging.getLogger(__name__)


class TaskState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.ERROR, TaskState.CANCELLED})


@dataclass
class BackgroundTask:
    """State of one run as seen by the client."""

    id: str
    filters: FilterSet
    state: TaskState = TaskState.SEARCHING
    matches: list[ResolvedEntity] = field(default_factory=list)
    progress: ProgressSnapshot = field(default_factory=ProgressSnapshot)
    stats: Optional[RunStats] = None
    status_message: str = ""
    started_at: datetime = field(default_factory=datetime.utcnow)
    processing_started_at: Optional[float] = None
    completed_at: Optional[datetime] = None
    attached: bool = True
    has_notified: bool = False
    error: Optional[str] = None
    from_cache: bool = False

    @property
    def is_running(self) -> bool:
        return self.state not in TERMINAL_STATES

    def eta_seconds(self, now: float) -> Optional[float]:
        """Estimated seconds left in the processing phase."""
        if self.state is not TaskState.PROCESSING or self.processing_started_at is None:
            return None
        processed, total = self.progress.processed, self.progress.total
        elapsed = now - self.processing_started_at
        if processed <= 0 or total <= processed or elapsed <= 0:
            return None
        return (total - processed) * elapsed / processed


CompletionListener = Callable[[BackgroundTask], None]


def _task_id() -> str:
    return f"cnpj-pull-{uuid.uuid4().hex}"


class BackgroundTaskController:
    """Owns at most one discovery run at a time.

    Views come and go; the run continues until it completes, fails or is
    cancelled. Completion listeners fire once per run.
    """

    def __init__(
        self,
        transport: Optional[DiscoveryClient] = None,
        cache: Optional[ResultCache] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.transport = transport or DiscoveryClient()
        self.cache = cache if cache is not None else ResultCache()
        self.clock = clock
        self._task: Optional[BackgroundTask] = None
        self._runner: Optional[asyncio.Task] = None
        self._listeners: list[CompletionListener] = []

    @property
    def task(self) -> Optional[BackgroundTask]:
        return self._task

    @property
    def state(self) -> TaskState:
        return self._task.state if self._task else TaskState.IDLE

    def add_completion_listener(self, listener: CompletionListener) -> None:
        self._listeners.append(listener)

    def start(self, filters: FilterSet, fresh: bool = False) -> BackgroundTask:
        """Start a run, replacing any current one.

        Raises FilterValidationError before anything else happens.
        """
        filters.require()
        self.cancel()

        task = BackgroundTask(id=_task_id(), filters=filters)
        self._task = task

        cached = None if fresh else self.cache.get(filters)
        if cached is not None:
            logger.info(f"Using cached results for {filters.segment}/{filters.region}")
            task.matches = list(cached.matches)
            task.stats = cached.stats
            task.progress = ProgressSnapshot(**cached.stats.model_dump(exclude={"processing_time_ms"}))
            task.from_cache = True
            self._complete(task)
            return task

        task.status_message = "Starting search"
        self._runner = asyncio.create_task(self._consume(task))
        return task

    def cancel(self) -> bool:
        """Cancel the running task. No-op if nothing is running."""
        task = self._task
        if task is None or task.state in TERMINAL_STATES:
            return False
        task.state = TaskState.CANCELLED
        task.status_message = "Cancelled"
        task.completed_at = datetime.utcnow()
        if self._runner is not None and not self._runner.done():
            self._runner.cancel()
        logger.info(f"Cancelled {task.id}")
        return True

    def clear(self) -> None:
        """Cancel any run and forget it."""
        self.cancel()
        self._task = None
        self._runner = None

    def detach(self) -> None:
        """Move the run to the background."""
        if self._task is not None:
            self._task.attached = False

    def attach(self) -> None:
        if self._task is not None:
            self._task.attached = True

    async def wait(self) -> Optional[BackgroundTask]:
        """Wait for the current run to stop."""
        runner = self._runner
        if runner is not None:
            try:
                await runner
            except asyncio.CancelledError:
                if not runner.cancelled():
                    raise
        return self._task

    async def _consume(self, task: BackgroundTask) -> None:
        try:
            async with aclosing(self.transport.stream(task.filters)) as events:
                async for event in events:
                    if not self._apply(task, event):
                        break
            if task.state not in TERMINAL_STATES:
                self._fail(task, "Stream ended before the run completed")
        except asyncio.CancelledError:
            if task.state not in TERMINAL_STATES:
                task.state = TaskState.CANCELLED
            raise
        except (httpx.HTTPError, DiscoveryError) as e:
            if task.state not in TERMINAL_STATES:
                self._fail(task, str(e))
        except Exception as e:
            logger.exception(f"Run {task.id} stopped unexpectedly: {e}")
            if task.state not in TERMINAL_STATES:
                self._fail(task, f"Unexpected transport failure: {e}")

    def _apply(self, task: BackgroundTask, event) -> bool:
        """Apply one event; False once the task should stop reading."""
        if task is not self._task or task.state in TERMINAL_STATES:
            return False

        if event.type == "status":
            task.status_message = event.message
        elif event.type == "search_progress":
            task.progress = task.progress.model_copy(update={
                "queries_completed": event.queries_completed,
                "total_queries": event.total_queries,
                "candidates_found": event.candidates_found,
            })
            task.status_message = f"Searched {event.queries_completed}/{event.total_queries} queries"
        elif event.type == "search_complete":
            task.state = TaskState.PROCESSING
            task.processing_started_at = self.clock()
            task.progress = task.progress.model_copy(update={"candidates_found": event.total_candidates})
            task.status_message = f"Validating {event.total_candidates} candidates"
        elif event.type == "match":
            task.matches.append(event.entity)
            task.progress = event.progress
        elif event.type == "progress":
            task.progress = event.progress
        elif event.type == "complete":
            task.stats = event.stats
            task.progress = ProgressSnapshot(**event.stats.model_dump(exclude={"processing_time_ms"}))
            self.cache.put(task.filters, task.matches, event.stats)
            self._complete(task)
            return False
        elif event.type == "error":
            self._fail(task, event.message)
            return False
        return True

    def _complete(self, task: BackgroundTask) -> None:
        task.state = TaskState.COMPLETED
        task.completed_at = datetime.utcnow()
        task.status_message = f"Found {len(task.matches)} active companies"
        self._notify(task)

    def _fail(self, task: BackgroundTask, message: str) -> None:
        task.state = TaskState.ERROR
        task.error = message
        task.status_message = message
        task.completed_at = datetime.utcnow()
        logger.warning(f"Run {task.id} failed: {message}")

    def _notify(self, task: BackgroundTask) -> None:
        if task.has_notified:
            return
        task.has_notified = True
        for listener in self._listeners:
            try:
                listener(task)
            except Exception as e:
                logger.error(f"Completion listener failed: {e}")
