from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from planner.domain.dates import LocalDates
from planner.domain.entities import NextTaskDraft, TaskEntity
from planner.domain.enums import TaskStatus
from planner.domain.errors import TaskAlreadyCompletedError, TaskNotFoundError
from planner.domain.filters import TaskFilters
from planner.domain.recurrence import next_due_date, parse_rule, serialize_rule
from planner.infra.repository import TaskRepository

from .locks import TaskLocks
from .recurring_commit import TwoStepCommit

logger = logging.getLogger(__name__)

DATETIME_FIELDS = ("due_date", "planned_date", "completed_date")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskService:
    def __init__(
        self,
        repo: TaskRepository,
        clock: Callable[[], datetime] = utcnow,
        locks: TaskLocks | None = None,
        dates: LocalDates | None = None,
    ) -> None:
        self._repo = repo
        self._clock = clock
        self._locks = locks if locks is not None else TaskLocks()
        self._dates = dates or LocalDates()

    def now(self) -> datetime:
        return self._clock()

    def list_tasks(self, filters: TaskFilters, now: datetime | None = None) -> list[TaskEntity]:
        return self._repo.list_tasks(filters, now or self._clock())

    def get_task(self, task_id: int) -> TaskEntity | None:
        return self._repo.get_task(task_id)

    def create_task(self, data: dict) -> TaskEntity:
        normalized = self._normalize_data(data)
        normalized.setdefault("status", TaskStatus.PENDING.value)
        normalized.setdefault("completed", normalized["status"] == TaskStatus.COMPLETED.value)
        return self._repo.create_task(normalized)

    def update_task(self, task_id: int, data: dict) -> TaskEntity | None:
        normalized = self._normalize_data(data)
        status = normalized.get("status")
        if status == TaskStatus.COMPLETED.value and "completed_date" not in normalized:
            normalized["completed_date"] = self._clock()
        if status and status != TaskStatus.COMPLETED.value:
            normalized["completed_date"] = None
        return self._repo.update_task(task_id, normalized)

    def delete_task(self, task_id: int) -> None:
        self._repo.delete_task(task_id)

    def get_stats(self, now: datetime | None = None) -> dict[str, int]:
        return self._repo.get_stats(now or self._clock())

    def update_status(
        self,
        task: TaskEntity,
        new_status: TaskStatus | str,
        now: datetime | None = None,
    ) -> TaskEntity:
        """Change a task's status, spawning the next occurrence when a recurring task completes.

        Only a forward completion of a task with an active rule takes the
        two-step path; when the rule has run past its end date the task is
        completed like any other.
        """
        now = now or self._clock()
        new_status = TaskStatus(new_status)
        with self._locks.hold(task.id):
            task = self._reload(task)
            if self.is_recurring_completion(task, new_status):
                draft = self.build_next_occurrence(task, now)
                if draft is not None:
                    return TwoStepCommit(self._repo, task, draft).run()
            return self._apply_status(task, new_status, now)

    def complete_recurring(self, task: TaskEntity, draft: NextTaskDraft) -> TaskEntity:
        """Complete ``task`` and create ``draft`` as its successor.

        The associations always come from ``task``, whatever the draft says.
        Raises ``TaskAlreadyCompletedError`` when the task was completed while
        the draft was pending; no successor is created then.
        """
        with self._locks.hold(task.id):
            task = self._reload(task)
            if task.completed:
                logger.warning("Task %s is already completed; no next occurrence created", task.id)
                raise TaskAlreadyCompletedError(task.id)
            draft = replace(draft, activity=task.activity, matter=task.matter, user=task.user)
            draft.due_date = _to_utc(draft.due_date)
            return TwoStepCommit(self._repo, task, draft).run()

    @staticmethod
    def is_recurring_completion(task: TaskEntity, new_status: TaskStatus | str) -> bool:
        return (
            TaskStatus(new_status) == TaskStatus.COMPLETED
            and not task.completed
            and parse_rule(task.recurrence) is not None
        )

    def build_next_occurrence(self, task: TaskEntity, now: datetime | None = None) -> NextTaskDraft | None:
        """Draft of the task that follows ``task``, stepped on the local calendar."""
        rule = parse_rule(task.recurrence)
        if rule is None:
            return None

        base = self._dates.to_local(task.due_date or now or self._clock())
        try:
            next_due = _to_utc(next_due_date(base, rule))
        except (OverflowError, ValueError) as exc:
            logger.warning("Recurrence of task %s has no representable next date: %s", task.id, exc)
            return None
        if next_due is None:
            logger.info("Recurrence of task %s ended on %s", task.id, rule.end_date)
            return None

        return NextTaskDraft(
            title=task.title,
            description=task.description,
            due_date=next_due,
            recurrence=task.recurrence,
            activity=task.activity,
            matter=task.matter,
            user=task.user,
        )

    def _reload(self, task: TaskEntity) -> TaskEntity:
        # Another completion may have landed while waiting for the lock.
        current = self._repo.get_task(task.id)
        if current is None:
            raise TaskNotFoundError(task.id)
        return current

    def _apply_status(self, task: TaskEntity, status: TaskStatus, now: datetime) -> TaskEntity:
        completed = status == TaskStatus.COMPLETED
        updated = self._repo.update_task(
            task.id,
            {
                "status": status.value,
                "completed": completed,
                "completed_date": now if completed else None,
            },
        )
        if updated is None:
            raise TaskNotFoundError(task.id)
        return updated

    def _normalize_data(self, data: dict) -> dict:
        normalized = dict(data)
        if "status" in normalized:
            normalized["status"] = TaskStatus(normalized["status"]).value
            normalized["completed"] = normalized["status"] == TaskStatus.COMPLETED.value
        if "recurrence" in normalized:
            normalized["recurrence"] = _normalize_recurrence(normalized["recurrence"])
        for key in DATETIME_FIELDS:
            if key in normalized:
                normalized[key] = _to_utc(normalized[key])
        return normalized


def _normalize_recurrence(value: object) -> str | None:
    rule = parse_rule(value)
    if rule is None:
        return None
    # Strings are kept verbatim so the stored rule round-trips unchanged.
    return value if isinstance(value, str) else serialize_rule(rule)


def _to_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
