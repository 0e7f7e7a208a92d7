"""Task input rules shared by the create and update paths.

Each field is optional on its own but constrained when present. Creation adds
the required-field check on top of the same model, so the two paths cannot
drift apart.
"""
from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from taskhub.domain.clock import ensure_utc
from taskhub.domain.enums import TaskPriority, TaskStatus
from taskhub.domain.errors import ValidationError

TITLE_MAX_LENGTH = 200

REQUIRED_ON_CREATE = {
    "title": "Title is required",
    "priority": "Priority is required",
}


def _choices(enum_cls) -> str:
    return ", ".join(member.value for member in enum_cls)


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse an ISO date or date-time into an aware UTC datetime."""
    if value is None or value == "":
        return None
    try:
        if isinstance(value, datetime):
            return ensure_utc(value)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        if isinstance(value, str):
            return ensure_utc(datetime.fromisoformat(value.strip()))
    except (ValueError, OverflowError):
        # Unparseable, or outside the representable range once moved to UTC.
        pass
    raise ValueError("Due date must be a valid date")


class TaskFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    estimated_hours: Optional[float] = Field(default=None, alias="estimatedHours")

    @field_validator("title", mode="before")
    @classmethod
    def _check_title(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Title is required")
        value = value.strip()
        if len(value) > TITLE_MAX_LENGTH:
            raise ValueError(f"Title must be at most {TITLE_MAX_LENGTH} characters")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _check_description(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("Description must be text")
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _check_status(cls, value: Any) -> TaskStatus:
        try:
            return TaskStatus(value)
        except ValueError:
            raise ValueError(f"Status must be one of {_choices(TaskStatus)}") from None

    @field_validator("priority", mode="before")
    @classmethod
    def _check_priority(cls, value: Any) -> TaskPriority:
        try:
            return TaskPriority(value)
        except ValueError:
            raise ValueError(f"Priority must be one of {_choices(TaskPriority)}") from None

    @field_validator("due_date", mode="before")
    @classmethod
    def _check_due_date(cls, value: Any) -> Optional[datetime]:
        return parse_instant(value)

    @field_validator("estimated_hours", mode="before")
    @classmethod
    def _check_estimated_hours(cls, value: Any) -> Optional[float]:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("Estimated hours must be a number")
        try:
            value = float(value)
        except OverflowError:
            raise ValueError("Estimated hours must be a non-negative number") from None
        if not math.isfinite(value) or value < 0:
            raise ValueError("Estimated hours must be a non-negative number")
        return value


def _collect_errors(exc: PydanticValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for error in exc.errors():
        field = str(error["loc"][0]) if error["loc"] else "input"
        cause = error.get("ctx", {}).get("error")
        errors.setdefault(field, str(cause) if cause else error["msg"])
    return errors


def validate_task_input(data: Any, *, partial: bool) -> dict[str, Any]:
    """Validate a task field bundle and return only the supplied fields.

    Keys come back in storage form (``due_date``, ``estimated_hours``).
    Raises ``ValidationError`` with one message per offending field.
    """
    if not isinstance(data, Mapping):
        raise ValidationError({"input": "Task data must be a mapping"})

    payload = dict(data)
    if not partial:
        # Creation never takes a caller-supplied status.
        payload.pop("status", None)

    try:
        parsed = TaskFields.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(_collect_errors(exc)) from None

    supplied = set(parsed.model_fields_set)
    if not partial:
        missing = {
            field: message
            for field, message in REQUIRED_ON_CREATE.items()
            if field not in supplied
        }
        if missing:
            raise ValidationError(missing)

    return parsed.model_dump(include=supplied)
