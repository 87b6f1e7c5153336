from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .enums import TaskStatus


@dataclass(frozen=True)
class TaskEntity:
    id: int | None
    title: str
    description: str
    status: TaskStatus
    completed: bool
    completed_date: Optional[datetime]
    due_date: Optional[datetime]
    planned_date: Optional[datetime]
    recurrence: str | None
    activity: str | None
    matter: str | None
    user: str | None
    created_at: datetime
    updated_at: datetime


@dataclass
class NextTaskDraft:
    """Unsaved successor of a recurring task.

    Editable until the completion is confirmed; the associations are copied
    from the original task and stay read-only.
    """

    title: str
    description: str
    due_date: Optional[datetime]
    recurrence: str | None
    activity: str | None
    matter: str | None
    user: str | None
    status: TaskStatus = TaskStatus.PENDING
    planned_date: Optional[datetime] = field(default=None)

    @property
    def completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def to_fields(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "completed": self.completed,
            "due_date": self.due_date,
            "planned_date": self.planned_date,
            "recurrence": self.recurrence,
            "activity": self.activity,
            "matter": self.matter,
            "user": self.user,
        }
