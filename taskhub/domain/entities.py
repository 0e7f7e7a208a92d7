from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .enums import TaskPriority, TaskStatus


@dataclass(frozen=True)
class UserIdentity:
    id: str
    name: str
    email: str


@dataclass(frozen=True)
class TaskEntity:
    id: str
    title: str
    description: str
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[datetime]
    estimated_hours: Optional[float]
    created_at: datetime
    updated_at: datetime
    owner_id: str


@dataclass(frozen=True)
class Found:
    task: TaskEntity


@dataclass(frozen=True)
class NotFound:
    """Task is absent or belongs to someone else; callers cannot tell which."""


NOT_FOUND = NotFound()

Lookup = Found | NotFound


@dataclass(frozen=True)
class TaskStatistics:
    total: int
    completed: int
    in_progress: int
    high_priority: int
    overdue: int
    completion_percentage: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "completed": self.completed,
            "inProgress": self.in_progress,
            "highPriority": self.high_priority,
            "overdue": self.overdue,
            "completionPercentage": self.completion_percentage,
        }
