"""Aggregate task progress for observers that do not care about single steps."""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Protocol

from toolpilot.agent.types import AgentStep

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TaskProgress:
    task_id: str
    total_steps: int
    current_step_label: str
    progress_percent: int
    status: TaskStatus = TaskStatus.RUNNING
    steps: tuple[AgentStep, ...] = ()
    error: str | None = None


def percent_done(steps: tuple[AgentStep, ...]) -> int:
    if not steps:
        return 0
    terminal = sum(1 for step in steps if step.status.terminal)
    return terminal * 100 // len(steps)


class TaskReporter(Protocol):
    def start(self, progress: TaskProgress) -> None:
        ...

    def update(self, progress: TaskProgress) -> None:
        ...

    def complete(self, progress: TaskProgress) -> None:
        ...

    def fail(self, progress: TaskProgress, error: str) -> None:
        ...


class LoggingTaskReporter:
    def start(self, progress: TaskProgress) -> None:
        logger.info(f"Task {progress.task_id} started: {progress.current_step_label} ({progress.total_steps} steps)")

    def update(self, progress: TaskProgress) -> None:
        logger.info(f"Task {progress.task_id}: {progress.progress_percent}% - {progress.current_step_label}")

    def complete(self, progress: TaskProgress) -> None:
        logger.info(f"Task {progress.task_id} completed")

    def fail(self, progress: TaskProgress, error: str) -> None:
        logger.warning(f"Task {progress.task_id} failed: {error}")


TaskSubscriber = Callable[[TaskProgress], None]


class BackgroundTaskTracker:
    """Keeps the progress of the current task in memory and fans it out to subscribers."""

    def __init__(self):
        self._current: TaskProgress | None = None
        self._subscribers: list[TaskSubscriber] = []

    @property
    def current(self) -> TaskProgress | None:
        return self._current

    def is_running(self) -> bool:
        return self._current is not None and self._current.status == TaskStatus.RUNNING

    def subscribe(self, subscriber: TaskSubscriber) -> Callable[[], None]:
        """Register *subscriber*; the returned callable removes it again."""
        self._subscribers.append(subscriber)

        def unsubscribe():
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def start(self, progress: TaskProgress) -> None:
        self._publish(replace(progress, status=TaskStatus.RUNNING))

    def update(self, progress: TaskProgress) -> None:
        self._publish(replace(progress, status=TaskStatus.RUNNING))

    def complete(self, progress: TaskProgress) -> None:
        self._publish(replace(progress, status=TaskStatus.COMPLETED, progress_percent=100))

    def fail(self, progress: TaskProgress, error: str) -> None:
        self._publish(replace(progress, status=TaskStatus.FAILED, error=error))

    def clear(self) -> None:
        self._current = None

    def _publish(self, progress: TaskProgress) -> None:
        self._current = progress
        for subscriber in list(self._subscribers):
            try:
                subscriber(progress)
            except Exception as e:
                logger.warning(f"Task subscriber failed: {e}", exc_info=True)
