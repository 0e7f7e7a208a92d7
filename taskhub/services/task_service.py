from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping

from taskhub.auth.session import SessionResolver
from taskhub.domain.clock import utcnow
from taskhub.domain.entities import Found, TaskEntity, TaskStatistics, UserIdentity
from taskhub.domain.enums import StatusFilter, TaskPriority, TaskStatus
from taskhub.domain.errors import Unauthorized, ValidationError
from taskhub.infra.repository import TaskRepository

from .formatter import TaskView, format_task
from .validation import validate_task_input

logger = logging.getLogger(__name__)

UPCOMING_WINDOW = timedelta(days=7)
DEFAULT_OVERVIEW_LIMIT = 3


def _require_user(session: SessionResolver) -> UserIdentity:
    user = session.current_user()
    if user is None:
        raise Unauthorized()
    return user


def _parse_status_filter(value: str | StatusFilter) -> TaskStatus | None:
    try:
        status_filter = StatusFilter(value)
    except ValueError:
        raise ValidationError(
            {"status": "Status filter must be one of " + ", ".join(f.value for f in StatusFilter)}
        ) from None
    if status_filter is StatusFilter.ALL:
        return None
    return TaskStatus(status_filter.value)


def _completion_percentage(completed: int, total: int) -> int:
    if total == 0:
        return 0
    # Integer round-half-up of 100 * completed / total.
    return (200 * completed + total) // (2 * total)


def compute_statistics(tasks: list[TaskEntity], now: datetime) -> TaskStatistics:
    total = len(tasks)
    completed = sum(1 for task in tasks if task.status is TaskStatus.COMPLETED)
    in_progress = sum(1 for task in tasks if task.status is TaskStatus.IN_PROGRESS)
    high_priority = sum(1 for task in tasks if task.priority is TaskPriority.HIGH)
    overdue = sum(
        1
        for task in tasks
        if task.status is not TaskStatus.COMPLETED
        and task.due_date is not None
        and task.due_date < now
    )
    return TaskStatistics(
        total=total,
        completed=completed,
        in_progress=in_progress,
        high_priority=high_priority,
        overdue=overdue,
        completion_percentage=_completion_percentage(completed, total),
    )


class TaskService:
    """Task operations on behalf of an authenticated caller.

    Every public method takes the caller's ``SessionResolver`` first and
    raises ``Unauthorized`` when it resolves to nobody. Lookups of a task that
    is missing and of a task owned by someone else give the same result.
    """

    def __init__(self, repo: TaskRepository, clock: Callable[[], datetime] = utcnow) -> None:
        self._repo = repo
        self._clock = clock

    def list_tasks(self, session: SessionResolver, status_filter: str = "all") -> list[TaskView]:
        user = _require_user(session)
        status = _parse_status_filter(status_filter)
        return [format_task(task) for task in self._repo.find_many(user.id, status)]

    def get_task(self, session: SessionResolver, task_id: str) -> TaskView | None:
        user = _require_user(session)
        lookup = self._repo.find_one(user.id, task_id)
        if not isinstance(lookup, Found):
            return None
        return format_task(lookup.task)

    def create_task(self, session: SessionResolver, data: Mapping[str, Any]) -> TaskView:
        user = _require_user(session)
        fields = validate_task_input(data, partial=False)
        task = self._repo.insert(user.id, fields)
        logger.info("Created task %s for user %s", task.id, user.id)
        return format_task(task)

    def update_task(
        self, session: SessionResolver, task_id: str, data: Mapping[str, Any]
    ) -> TaskView | None:
        user = _require_user(session)
        lookup = self._repo.find_one(user.id, task_id)
        if not isinstance(lookup, Found):
            logger.warning("Update of unknown task %s by user %s", task_id, user.id)
            return None
        fields = validate_task_input(data, partial=True)
        task = self._repo.update(lookup.task.id, fields)
        if task is None:
            return None
        logger.info("Updated task %s (%s)", task.id, ", ".join(sorted(fields)) or "no fields")
        return format_task(task)

    def toggle_status(self, session: SessionResolver, task_id: str) -> TaskView | None:
        user = _require_user(session)
        lookup = self._repo.find_one(user.id, task_id)
        if not isinstance(lookup, Found):
            logger.warning("Toggle of unknown task %s by user %s", task_id, user.id)
            return None
        new_status = lookup.task.status.toggled()
        task = self._repo.update(lookup.task.id, {"status": new_status})
        if task is None:
            return None
        logger.info("Task %s is now %s", task.id, task.status.value)
        return format_task(task)

    def delete_task(self, session: SessionResolver, task_id: str) -> bool:
        user = _require_user(session)
        lookup = self._repo.find_one(user.id, task_id)
        if not isinstance(lookup, Found):
            logger.warning("Delete of unknown task %s by user %s", task_id, user.id)
            return False
        self._repo.remove(lookup.task.id)
        logger.info("Deleted task %s", lookup.task.id)
        return True

    def get_statistics(self, session: SessionResolver) -> TaskStatistics:
        user = _require_user(session)
        # One read; every count comes from this snapshot.
        tasks = self._repo.find_many(user.id)
        return compute_statistics(tasks, self._clock())

    def upcoming_tasks(
        self, session: SessionResolver, limit: int = DEFAULT_OVERVIEW_LIMIT
    ) -> list[TaskView]:
        user = _require_user(session)
        now = self._clock()
        tasks = self._repo.find_upcoming(user.id, now, now + UPCOMING_WINDOW, limit)
        return [format_task(task) for task in tasks]

    def recent_tasks(
        self, session: SessionResolver, limit: int = DEFAULT_OVERVIEW_LIMIT
    ) -> list[TaskView]:
        user = _require_user(session)
        return [format_task(task) for task in self._repo.find_recent(user.id, limit)]

    def high_priority_tasks(
        self, session: SessionResolver, limit: int = DEFAULT_OVERVIEW_LIMIT
    ) -> list[TaskView]:
        user = _require_user(session)
        return [format_task(task) for task in self._repo.find_high_priority(user.id, limit)]
