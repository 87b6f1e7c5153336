from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func, or_, select

from planner.domain.entities import TaskEntity
from planner.domain.enums import TaskStatus
from planner.domain.filters import TaskFilters

from .db import SessionLocal
from .models import TaskModel

STATUS_COMPLETED = TaskStatus.COMPLETED.value


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_entity(model: TaskModel) -> TaskEntity:
    return TaskEntity(
        id=model.id,
        title=model.title,
        description=model.description,
        status=TaskStatus(model.status),
        completed=model.completed,
        completed_date=_aware(model.completed_date),
        due_date=_aware(model.due_date),
        planned_date=_aware(model.planned_date),
        recurrence=model.recurrence,
        activity=model.activity,
        matter=model.matter,
        user=model.user,
        created_at=_aware(model.created_at),
        updated_at=_aware(model.updated_at),
    )


def _apply_filters(stmt, filters: TaskFilters, now: datetime) -> object:
    if filters.filter_key == "open":
        stmt = stmt.where(TaskModel.completed.is_(False))
    elif filters.filter_key == "completed":
        stmt = stmt.where(TaskModel.completed.is_(True))
    elif filters.filter_key == "overdue":
        stmt = stmt.where(
            TaskModel.due_date.is_not(None),
            TaskModel.due_date < now,
            TaskModel.completed.is_(False),
        )
    elif filters.filter_key == "upcoming":
        horizon = now + timedelta(days=7)
        stmt = stmt.where(
            TaskModel.due_date.is_not(None),
            TaskModel.due_date.between(now, horizon),
            TaskModel.completed.is_(False),
        )

    if filters.status:
        stmt = stmt.where(TaskModel.status == TaskStatus(filters.status).value)
    if filters.activity:
        stmt = stmt.where(TaskModel.activity == filters.activity)
    if filters.matter:
        stmt = stmt.where(TaskModel.matter == filters.matter)

    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(
            or_(
                TaskModel.title.ilike(pattern),
                TaskModel.description.ilike(pattern),
            )
        )

    return stmt


class TaskRepository:
    def __init__(self, session_factory=SessionLocal) -> None:
        self._session_factory = session_factory

    def list_tasks(self, filters: TaskFilters, now: datetime) -> list[TaskEntity]:
        with self._session_factory() as session:
            stmt = select(TaskModel)
            stmt = _apply_filters(stmt, filters, now)
            stmt = stmt.order_by(
                TaskModel.completed.asc(),
                TaskModel.due_date.is_(None),
                TaskModel.due_date.asc(),
                TaskModel.created_at.desc(),
            )
            return [_to_entity(task) for task in session.scalars(stmt)]

    def get_task(self, task_id: int) -> Optional[TaskEntity]:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            return _to_entity(task) if task else None

    def create_task(self, data: dict) -> TaskEntity:
        with self._session_factory() as session:
            task = TaskModel(**data)
            session.add(task)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def update_task(self, task_id: int, data: dict) -> Optional[TaskEntity]:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return None
            for key, value in data.items():
                setattr(task, key, value)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def delete_task(self, task_id: int) -> None:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return
            session.delete(task)
            session.commit()

    def get_stats(self, now: datetime) -> dict[str, int]:
        with self._session_factory() as session:
            total = session.scalar(select(func.count()).select_from(TaskModel)) or 0
            completed = session.scalar(
                select(func.count()).select_from(TaskModel).where(TaskModel.completed.is_(True))
            ) or 0
            overdue = session.scalar(
                select(func.count())
                .select_from(TaskModel)
                .where(
                    TaskModel.due_date.is_not(None),
                    TaskModel.due_date < now,
                    TaskModel.completed.is_(False),
                )
            ) or 0
            recurring = session.scalar(
                select(func.count())
                .select_from(TaskModel)
                .where(TaskModel.recurrence.is_not(None), TaskModel.completed.is_(False))
            ) or 0
            return {
                "total": total,
                "open": total - completed,
                "completed": completed,
                "overdue": overdue,
                "recurring": recurring,
            }
