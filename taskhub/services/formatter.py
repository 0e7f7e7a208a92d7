from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from taskhub.domain.clock import ensure_utc
from taskhub.domain.entities import TaskEntity


@dataclass(frozen=True)
class TaskView:
    """A task in its serialized shape, as handed back to callers."""

    id: str
    title: str
    description: str
    status: str
    priority: str
    due_date: Optional[str]
    estimated_hours: Optional[float]
    created_at: str
    updated_at: str
    owner_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "dueDate": self.due_date,
            "estimatedHours": self.estimated_hours,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "userId": self.owner_id,
        }


def format_instant(value: datetime) -> str:
    # Always emit microseconds so parsing back gives the same instant.
    return ensure_utc(value).isoformat(timespec="microseconds")


def format_task(task: TaskEntity) -> TaskView:
    return TaskView(
        id=task.id,
        title=task.title,
        description=task.description or "",
        status=task.status.value,
        priority=task.priority.value,
        due_date=format_instant(task.due_date) if task.due_date else None,
        estimated_hours=task.estimated_hours,
        created_at=format_instant(task.created_at),
        updated_at=format_instant(task.updated_at),
        owner_id=task.owner_id,
    )
