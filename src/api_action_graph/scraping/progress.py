"""Progress event channel and in-memory task store.

Publishing never blocks and never raises into the pipeline. Slow queue
subscribers lose their oldest events, and failing callbacks are logged.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from ..models import PipelineResult, ProgressEventType, ProgressUpdate
from .logging_config import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[ProgressUpdate], Any]


class ProgressChannel:
    """Fan-out of progress updates to callbacks and bounded queues."""

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._callbacks: list[ProgressCallback] = []
        self._queues: list[asyncio.Queue] = []
        self._last_progress = 0.0
        self.history: list[ProgressUpdate] = []

    def subscribe(self, callback: ProgressCallback) -> None:
        """Register a callback invoked for every update."""
        self._callbacks.append(callback)

    def subscribe_queue(self) -> asyncio.Queue:
        """Get a bounded queue receiving every later update."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._queues.append(queue)
        return queue

    def unsubscribe_queue(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def publish(self, update: ProgressUpdate) -> ProgressUpdate:
        """Deliver an update without waiting on any subscriber.

        Progress is clamped so it never decreases across the channel's life,
        and an update without a percentage carries the last one forward.
        Callbacks run before this returns; coroutine callbacks are scheduled
        on the running loop.

        Returns:
            The update as delivered.
        """
        if update.progress is None or update.progress < self._last_progress:
            update = update.model_copy(update={"progress": self._last_progress})
        self._last_progress = update.progress

        self.history.append(update)

        for queue in self._queues:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(update)

        for callback in self._callbacks:
            self._deliver(callback, update)

        return update

    def emit(
        self,
        type: ProgressEventType,
        message: str,
        data: Any = None,
        progress: float | None = None,
    ) -> ProgressUpdate:
        """Build and publish an update."""
        return self.publish(ProgressUpdate(type=type, message=message, data=data, progress=progress))

    @staticmethod
    def _deliver(callback: ProgressCallback, update: ProgressUpdate) -> None:
        try:
            outcome = callback(update)
            if asyncio.iscoroutine(outcome):
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    outcome.close()
                    raise
                loop.create_task(outcome).add_done_callback(_log_callback_failure)
        except Exception as e:
            logger.warning("progress_callback_failed", event_type=update.type.value, error=str(e))


def _log_callback_failure(future: asyncio.Future) -> None:
    if not future.cancelled() and future.exception() is not None:
        logger.warning("progress_callback_failed", error=str(future.exception()))


@dataclass
class TaskRecord:
    """State of one pipeline run tracked by the store."""

    task_id: str
    updates: list[ProgressUpdate] = field(default_factory=list)
    result: PipelineResult | None = None
    error: str | None = None
    done: bool = False
    touched_at: float = 0.0


class TaskStore:
    """In-memory registry of pipeline runs with TTL expiry.

    Ids are generated independently of the URL being processed, so
    concurrent runs for the same URL never collide.
    """

    def __init__(self, ttl_s: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_s = ttl_s
        self._clock = clock
        self._tasks: dict[str, TaskRecord] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def create(self) -> TaskRecord:
        """Register a new task."""
        self.purge_expired()
        task = TaskRecord(task_id=uuid.uuid4().hex, touched_at=self._clock())
        self._tasks[task.task_id] = task
        logger.debug("task_created", task_id=task.task_id)
        return task

    def get(self, task_id: str) -> TaskRecord | None:
        """Get a live task, or None if unknown or expired."""
        task = self._tasks.get(task_id)
        if task is None:
            return None
        if self._is_expired(task):
            del self._tasks[task_id]
            return None
        return task

    def append_update(self, task_id: str, update: ProgressUpdate) -> None:
        """Record a progress update on a task.

        Raises:
            KeyError: If the task is unknown or expired.
        """
        task = self._require(task_id)
        task.updates.append(update)
        task.touched_at = self._clock()

    def complete(
        self,
        task_id: str,
        result: PipelineResult | None = None,
        error: str | None = None,
    ) -> TaskRecord:
        """Mark a task finished with its result or error.

        Raises:
            KeyError: If the task is unknown or expired.
        """
        task = self._require(task_id)
        task.result = result
        task.error = error
        task.done = True
        task.touched_at = self._clock()
        logger.debug("task_completed", task_id=task_id, failed=error is not None)
        return task

    def purge_expired(self) -> int:
        """Drop every expired task. Returns how many were dropped."""
        expired = [task_id for task_id, task in self._tasks.items() if self._is_expired(task)]
        for task_id in expired:
            del self._tasks[task_id]
        if expired:
            logger.debug("tasks_purged", count=len(expired))
        return len(expired)

    def channel_for(self, task_id: str, queue_size: int = 100) -> ProgressChannel:
        """Get a channel whose updates are recorded on the task."""
        self._require(task_id)
        channel = ProgressChannel(queue_size=queue_size)
        channel.subscribe(lambda update: self._record_if_live(task_id, update))
        return channel

    def _record_if_live(self, task_id: str, update: ProgressUpdate) -> None:
        if self.get(task_id) is not None:
            self.append_update(task_id, update)

    def _require(self, task_id: str) -> TaskRecord:
        task = self.get(task_id)
        if task is None:
            raise KeyError(f"Unknown or expired task: {task_id}")
        return task

    def _is_expired(self, task: TaskRecord) -> bool:
        return self._clock() - task.touched_at > self.ttl_s
