from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from planner.domain.entities import TaskEntity
from planner.domain.enums import TaskStatus
from planner.domain.filters import TaskFilters
from planner.services.task_service import TaskService

NOW = datetime(2024, 1, 10, 9, 30, tzinfo=timezone.utc)

TASK_FIELDS = (
    "title",
    "description",
    "completed",
    "completed_date",
    "due_date",
    "planned_date",
    "recurrence",
    "activity",
    "matter",
    "user",
)


class FakeRepo:
    def __init__(self) -> None:
        self.tasks: list[TaskEntity] = []
        self.writes: list[tuple] = []
        self.fail_create = False
        self.fail_update = False
        self._id = 1

    def add(self, **data) -> TaskEntity:
        task = self._build(data)
        self.tasks.append(task)
        return task

    def list_tasks(self, filters: TaskFilters, now: datetime) -> list[TaskEntity]:
        return self.tasks

    def get_task(self, task_id: int) -> TaskEntity | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    def create_task(self, data: dict) -> TaskEntity:
        if self.fail_create:
            raise ConnectionError("store unavailable")
        self.writes.append(("create", dict(data)))
        return self.add(**data)

    def update_task(self, task_id: int, data: dict) -> TaskEntity | None:
        if self.fail_update:
            raise ConnectionError("store unavailable")
        self.writes.append(("update", task_id, dict(data)))
        task = self.get_task(task_id)
        if not task:
            return None
        changes = {key: value for key, value in data.items() if key in TASK_FIELDS}
        if "status" in data:
            changes["status"] = TaskStatus(data["status"])
        updated = replace(task, **changes)
        self.tasks = [updated if t.id == task_id else t for t in self.tasks]
        return updated

    def delete_task(self, task_id: int) -> None:
        self.tasks = [t for t in self.tasks if t.id != task_id]

    def get_stats(self, now: datetime) -> dict[str, int]:
        return {"total": len(self.tasks)}

    def _build(self, data: dict) -> TaskEntity:
        status = TaskStatus(data.get("status", "pending"))
        task = TaskEntity(
            id=self._id,
            title=data.get("title", ""),
            description=data.get("description", ""),
            status=status,
            completed=data.get("completed", status == TaskStatus.COMPLETED),
            completed_date=data.get("completed_date"),
            due_date=data.get("due_date"),
            planned_date=data.get("planned_date"),
            recurrence=data.get("recurrence"),
            activity=data.get("activity"),
            matter=data.get("matter"),
            user=data.get("user"),
            created_at=NOW,
            updated_at=NOW,
        )
        self._id += 1
        return task


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def repo() -> FakeRepo:
    return FakeRepo()


@pytest.fixture
def service(repo: FakeRepo) -> TaskService:
    return TaskService(repo, clock=lambda: NOW)


@pytest.fixture
def recurring_task(repo: FakeRepo) -> TaskEntity:
    return repo.add(
        title="Recurring Task",
        description="Desc",
        status="pending",
        due_date=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
        recurrence=json.dumps({"frequency": "daily", "interval": 1}),
        activity="activity-7",
        matter="matter-3",
        user="user-1",
    )
