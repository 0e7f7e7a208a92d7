from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from taskhub.auth.session import ANONYMOUS, StaticSession
from taskhub.domain.clock import utcnow
from taskhub.domain.entities import NOT_FOUND, Found, TaskEntity, UserIdentity
from taskhub.domain.enums import TaskPriority, TaskStatus
from taskhub.domain.errors import StorageError, Unauthorized, ValidationError
from taskhub.services.task_service import TaskService

ALICE = UserIdentity(id="u-alice", name="Alice", email="alice@example.com")
BOB = UserIdentity(id="u-bob", name="Bob", email="bob@example.com")


class FakeRepo:
    def __init__(self) -> None:
        self.tasks: list[TaskEntity] = []
        self.writes = 0
        self.reads = 0
        self._id = 1

    def insert(self, owner_id: str, fields: dict) -> TaskEntity:
        now = utcnow()
        task = TaskEntity(
            id=f"t{self._id}",
            title=fields["title"],
            description=fields.get("description") or "",
            status=TaskStatus.IN_PROGRESS,
            priority=TaskPriority(fields["priority"]),
            due_date=fields.get("due_date"),
            estimated_hours=fields.get("estimated_hours"),
            created_at=now,
            updated_at=now,
            owner_id=owner_id,
        )
        self.tasks.append(task)
        self._id += 1
        self.writes += 1
        return task

    def find_many(self, owner_id: str, status: TaskStatus | None = None) -> list[TaskEntity]:
        self.reads += 1
        owned = [
            t for t in self.tasks
            if t.owner_id == owner_id and (status is None or t.status is status)
        ]
        return sorted(owned, key=lambda t: (t.updated_at, int(t.id[1:])), reverse=True)

    def find_one(self, owner_id: str, task_id: str):
        task = next((t for t in self.tasks if t.id == task_id and t.owner_id == owner_id), None)
        return Found(task) if task else NOT_FOUND

    def update(self, task_id: str, fields: dict) -> TaskEntity | None:
        task = next((t for t in self.tasks if t.id == task_id), None)
        if not task:
            return None
        updated = replace(task, **fields, updated_at=utcnow())
        self.tasks = [updated if t.id == task_id else t for t in self.tasks]
        self.writes += 1
        return updated

    def remove(self, task_id: str) -> None:
        self.tasks = [t for t in self.tasks if t.id != task_id]
        self.writes += 1

    def find_recent(self, owner_id: str, limit: int) -> list[TaskEntity]:
        return self.find_many(owner_id)[:limit]

    def find_upcoming(self, owner_id, start, end, limit):
        hits = [
            t for t in self.find_many(owner_id, TaskStatus.IN_PROGRESS)
            if t.due_date is not None and start <= t.due_date <= end
        ]
        return sorted(hits, key=lambda t: t.due_date)[:limit]

    def find_high_priority(self, owner_id, limit):
        hits = [
            t for t in self.find_many(owner_id, TaskStatus.IN_PROGRESS)
            if t.priority is TaskPriority.HIGH
        ]
        far_future = datetime.max.replace(tzinfo=timezone.utc)
        return sorted(hits, key=lambda t: t.due_date or far_future)[:limit]


@pytest.fixture()
def repo() -> FakeRepo:
    return FakeRepo()


@pytest.fixture()
def service(repo: FakeRepo) -> TaskService:
    return TaskService(repo)


alice_session = StaticSession(ALICE)
bob_session = StaticSession(BOB)


def test_create_task_scenario(service: TaskService) -> None:
    task = service.create_task(alice_session, {
        "title": "Write spec",
        "priority": "high",
        "dueDate": None,
        "estimatedHours": 3,
    })

    assert task.status == "in-progress"
    assert task.description == ""
    assert task.id
    assert task.created_at == task.updated_at
    assert task.estimated_hours == 3.0
    assert task.owner_id == ALICE.id


def test_create_ignores_smuggled_status(service: TaskService) -> None:
    for status in ("completed", "archived", None):
        task = service.create_task(alice_session, {"title": "Sneaky", "priority": "low", "status": status})
        assert task.status == "in-progress"


def test_create_rejects_invalid_input_without_writing(service: TaskService, repo: FakeRepo) -> None:
    with pytest.raises(ValidationError) as excinfo:
        service.create_task(alice_session, {"title": "  ", "priority": "urgent"})

    assert set(excinfo.value.errors) == {"title", "priority"}
    assert repo.writes == 0


def test_every_operation_requires_a_user(service: TaskService) -> None:
    calls = [
        lambda: service.list_tasks(ANONYMOUS),
        lambda: service.get_task(ANONYMOUS, "t1"),
        lambda: service.create_task(ANONYMOUS, {"title": "x", "priority": "low"}),
        lambda: service.update_task(ANONYMOUS, "t1", {"title": "y"}),
        lambda: service.toggle_status(ANONYMOUS, "t1"),
        lambda: service.delete_task(ANONYMOUS, "t1"),
        lambda: service.get_statistics(ANONYMOUS),
        lambda: service.upcoming_tasks(ANONYMOUS),
        lambda: service.recent_tasks(ANONYMOUS),
        lambda: service.high_priority_tasks(ANONYMOUS),
    ]
    for call in calls:
        with pytest.raises(Unauthorized):
            call()


def test_other_users_tasks_look_missing(service: TaskService, repo: FakeRepo) -> None:
    task = service.create_task(alice_session, {"title": "Private", "priority": "medium"})

    assert service.get_task(bob_session, task.id) is None
    assert service.update_task(bob_session, task.id, {"title": "Mine now"}) is None
    assert service.toggle_status(bob_session, task.id) is None
    assert service.delete_task(bob_session, task.id) is False
    assert service.list_tasks(bob_session, "all") == []

    # Same answer as for an id that never existed.
    assert service.get_task(bob_session, "t999") is None
    assert service.delete_task(bob_session, "t999") is False

    unchanged = service.get_task(alice_session, task.id)
    assert unchanged == task


def test_toggle_twice_restores_status(service: TaskService) -> None:
    task = service.create_task(alice_session, {"title": "Flip", "priority": "low"})

    first = service.toggle_status(alice_session, task.id)
    second = service.toggle_status(alice_session, task.id)

    assert first.status == "completed"
    assert second.status == "in-progress"


def test_toggle_completed_task(service: TaskService) -> None:
    task = service.create_task(alice_session, {"title": "Done", "priority": "low"})
    service.update_task(alice_session, task.id, {"status": "completed"})

    assert service.toggle_status(alice_session, task.id).status == "in-progress"
    assert service.toggle_status(alice_session, task.id).status == "completed"


def test_update_with_unknown_priority_leaves_storage_alone(
    service: TaskService, repo: FakeRepo
) -> None:
    task = service.create_task(alice_session, {"title": "Stable", "priority": "low"})
    writes = repo.writes

    with pytest.raises(ValidationError) as excinfo:
        service.update_task(alice_session, task.id, {"priority": "urgent"})

    assert "priority" in excinfo.value.errors
    assert repo.writes == writes
    assert service.get_task(alice_session, task.id) == task


def test_update_validates_status_values(service: TaskService) -> None:
    task = service.create_task(alice_session, {"title": "Status", "priority": "low"})

    with pytest.raises(ValidationError):
        service.update_task(alice_session, task.id, {"status": "archived"})


def test_partial_update_only_touches_supplied_fields(service: TaskService) -> None:
    task = service.create_task(alice_session, {
        "title": "Original",
        "description": "keep me",
        "priority": "medium",
        "estimatedHours": 2,
    })

    updated = service.update_task(alice_session, task.id, {"title": "Renamed"})

    assert updated.title == "Renamed"
    assert updated.description == "keep me"
    assert updated.priority == "medium"
    assert updated.estimated_hours == 2.0
    assert updated.updated_at >= updated.created_at


def test_delete_removes_task(service: TaskService) -> None:
    task = service.create_task(alice_session, {"title": "Bye", "priority": "low"})

    assert service.delete_task(alice_session, task.id) is True
    assert service.get_task(alice_session, task.id) is None
    assert service.delete_task(alice_session, task.id) is False


def test_list_filters_partition_all(service: TaskService) -> None:
    ids = [
        service.create_task(alice_session, {"title": f"Task {n}", "priority": "low"}).id
        for n in range(5)
    ]
    service.toggle_status(alice_session, ids[1])
    service.toggle_status(alice_session, ids[3])

    everything = {t.id for t in service.list_tasks(alice_session, "all")}
    done = {t.id for t in service.list_tasks(alice_session, "completed")}
    open_ = {t.id for t in service.list_tasks(alice_session, "in-progress")}

    assert done == {ids[1], ids[3]}
    assert done.isdisjoint(open_)
    assert done | open_ == everything


def test_list_rejects_unknown_filter(service: TaskService) -> None:
    with pytest.raises(ValidationError):
        service.list_tasks(alice_session, "archived")


def test_statistics_high_priority(service: TaskService) -> None:
    service.create_task(alice_session, {"title": "Big", "priority": "high"})
    service.create_task(alice_session, {"title": "Small", "priority": "low"})

    stats = service.get_statistics(alice_session)

    assert stats.high_priority == 1
    assert stats.total == 2


def test_statistics_overdue(service: TaskService) -> None:
    past = (utcnow() - timedelta(hours=1)).isoformat()
    service.create_task(alice_session, {"title": "Late", "priority": "medium", "dueDate": past})
    done = service.create_task(alice_session, {"title": "Late but done", "priority": "low", "dueDate": past})
    service.toggle_status(alice_session, done.id)

    assert service.get_statistics(alice_session).overdue == 1


def test_statistics_empty(service: TaskService) -> None:
    stats = service.get_statistics(alice_session)

    assert stats.total == 0
    assert stats.completion_percentage == 0


def test_statistics_reads_once_and_adds_up(service: TaskService, repo: FakeRepo) -> None:
    ids = [
        service.create_task(alice_session, {"title": f"T{n}", "priority": "medium"}).id
        for n in range(3)
    ]
    service.toggle_status(alice_session, ids[0])
    service.create_task(bob_session, {"title": "Not counted", "priority": "high"})
    reads = repo.reads

    stats = service.get_statistics(alice_session)

    assert repo.reads == reads + 1
    assert stats.completed + stats.in_progress == stats.total == 3
    assert stats.completion_percentage == round(100 * 1 / 3)
    assert stats.high_priority == 0
    assert stats.to_dict()["completionPercentage"] == 33


def test_completion_percentage_rounds_half_up(service: TaskService) -> None:
    ids = [
        service.create_task(alice_session, {"title": f"T{n}", "priority": "low"}).id
        for n in range(8)
    ]
    service.toggle_status(alice_session, ids[0])

    # 12.5% rounds up, unlike Python's round().
    assert service.get_statistics(alice_session).completion_percentage == 13


def test_overview_queries(service: TaskService) -> None:
    now = utcnow()
    soon = service.create_task(alice_session, {
        "title": "Soon", "priority": "high", "dueDate": (now + timedelta(days=1)).isoformat(),
    })
    later = service.create_task(alice_session, {
        "title": "Later", "priority": "high", "dueDate": (now + timedelta(days=3)).isoformat(),
    })
    service.create_task(alice_session, {
        "title": "Far", "priority": "low", "dueDate": (now + timedelta(days=30)).isoformat(),
    })
    service.create_task(alice_session, {"title": "Whenever", "priority": "high"})

    upcoming = service.upcoming_tasks(alice_session)
    assert [t.id for t in upcoming] == [soon.id, later.id]

    high = service.high_priority_tasks(alice_session)
    assert [t.title for t in high] == ["Soon", "Later", "Whenever"]

    recent = service.recent_tasks(alice_session, limit=2)
    assert [t.title for t in recent] == ["Whenever", "Far"]


class BrokenUpdateRepo(FakeRepo):
    def update(self, task_id: str, fields: dict) -> TaskEntity | None:
        raise StorageError("Task storage failed")


def test_storage_failure_on_update_propagates() -> None:
    repo = BrokenUpdateRepo()
    service = TaskService(repo)
    task = service.create_task(alice_session, {"title": "Fragile", "priority": "low"})

    with pytest.raises(StorageError):
        service.update_task(alice_session, task.id, {"title": "Never saved"})
    with pytest.raises(StorageError):
        service.toggle_status(alice_session, task.id)

    assert service.get_task(alice_session, task.id) == task


def test_out_of_range_input_is_a_validation_error(service: TaskService, repo: FakeRepo) -> None:
    bad_inputs = [
        {"dueDate": "0001-01-01T00:00:00+01:00"},
        {"dueDate": "9999-12-31T23:00:00-05:00"},
        {"estimatedHours": 10**400},
    ]
    for extra in bad_inputs:
        with pytest.raises(ValidationError):
            service.create_task(alice_session, {"title": "x", "priority": "low", **extra})

    assert repo.writes == 0
