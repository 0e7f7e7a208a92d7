from __future__ import annotations

from enum import StrEnum


class TaskStatus(StrEnum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"

    def toggled(self) -> "TaskStatus":
        if self is TaskStatus.COMPLETED:
            return TaskStatus.IN_PROGRESS
        return TaskStatus.COMPLETED


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class StatusFilter(StrEnum):
    ALL = "all"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
