from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from taskhub.domain.clock import ensure_utc, utcnow
from taskhub.domain.entities import NOT_FOUND, Found, Lookup, TaskEntity
from taskhub.domain.enums import TaskPriority, TaskStatus
from taskhub.domain.errors import StorageError

from .models import TaskModel, new_id

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {"title", "description", "status", "priority", "due_date", "estimated_hours"}
)


def _to_entity(model: TaskModel) -> TaskEntity:
    return TaskEntity(
        id=model.id,
        title=model.title,
        description=model.description,
        status=TaskStatus(model.status),
        priority=TaskPriority(model.priority),
        due_date=ensure_utc(model.due_date) if model.due_date else None,
        estimated_hours=model.estimated_hours,
        created_at=ensure_utc(model.created_at),
        updated_at=ensure_utc(model.updated_at),
        owner_id=model.owner_id,
    )


def _column_value(value):
    # Enums are persisted by their string value.
    if isinstance(value, (TaskStatus, TaskPriority)):
        return value.value
    return value


class TaskRepository:
    """Task persistence. Every read is scoped by owner id."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.exception("Task storage failed during %s", action)
            raise StorageError("Task storage failed") from exc

    def insert(self, owner_id: str, fields: dict) -> TaskEntity:
        now = utcnow()
        with self._session("insert") as session:
            task = TaskModel(
                id=new_id(),
                title=fields["title"],
                description=fields.get("description") or "",
                status=TaskStatus.IN_PROGRESS.value,
                priority=_column_value(fields["priority"]),
                due_date=fields.get("due_date"),
                estimated_hours=fields.get("estimated_hours"),
                created_at=now,
                updated_at=now,
                owner_id=owner_id,
            )
            session.add(task)
            session.commit()
            return _to_entity(task)

    def find_many(self, owner_id: str, status: Optional[TaskStatus] = None) -> list[TaskEntity]:
        with self._session("find_many") as session:
            stmt = select(TaskModel).where(TaskModel.owner_id == owner_id)
            if status is not None:
                stmt = stmt.where(TaskModel.status == status.value)
            stmt = stmt.order_by(TaskModel.updated_at.desc(), TaskModel.id.desc())
            return [_to_entity(task) for task in session.scalars(stmt)]

    def find_one(self, owner_id: str, task_id: str) -> Lookup:
        with self._session("find_one") as session:
            stmt = select(TaskModel).where(
                TaskModel.id == task_id,
                TaskModel.owner_id == owner_id,
            )
            task = session.scalars(stmt).first()
            return Found(_to_entity(task)) if task else NOT_FOUND

    def update(self, task_id: str, fields: dict) -> Optional[TaskEntity]:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update task fields: {', '.join(sorted(unknown))}")

        with self._session("update") as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return None
            for key, value in fields.items():
                setattr(task, key, _column_value(value))
            task.updated_at = max(utcnow(), ensure_utc(task.created_at))
            session.commit()
            return _to_entity(task)

    def remove(self, task_id: str) -> None:
        with self._session("remove") as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return
            session.delete(task)
            session.commit()

    def find_recent(self, owner_id: str, limit: int) -> list[TaskEntity]:
        with self._session("find_recent") as session:
            stmt = (
                select(TaskModel)
                .where(TaskModel.owner_id == owner_id)
                .order_by(TaskModel.updated_at.desc(), TaskModel.id.desc())
                .limit(limit)
            )
            return [_to_entity(task) for task in session.scalars(stmt)]

    def find_upcoming(
        self, owner_id: str, start: datetime, end: datetime, limit: int
    ) -> list[TaskEntity]:
        with self._session("find_upcoming") as session:
            stmt = (
                select(TaskModel)
                .where(
                    TaskModel.owner_id == owner_id,
                    TaskModel.status == TaskStatus.IN_PROGRESS.value,
                    TaskModel.due_date.is_not(None),
                    TaskModel.due_date.between(start, end),
                )
                .order_by(TaskModel.due_date.asc(), TaskModel.id.asc())
                .limit(limit)
            )
            return [_to_entity(task) for task in session.scalars(stmt)]

    def find_high_priority(self, owner_id: str, limit: int) -> list[TaskEntity]:
        with self._session("find_high_priority") as session:
            stmt = (
                select(TaskModel)
                .where(
                    TaskModel.owner_id == owner_id,
                    TaskModel.priority == TaskPriority.HIGH.value,
                    TaskModel.status == TaskStatus.IN_PROGRESS.value,
                )
                .order_by(
                    TaskModel.due_date.is_(None),
                    TaskModel.due_date.asc(),
                    TaskModel.id.asc(),
                )
                .limit(limit)
            )
            return [_to_entity(task) for task in session.scalars(stmt)]
