"""Interception of "mark complete" on recurring tasks.

Completing a recurring task does not write anything straight away. The
workflow computes the next occurrence, hands it to the caller as a draft and
waits: the user may edit the draft, then either confirm (original completed,
successor created) or cancel (nothing written). Every other status change is
applied immediately.

    IDLE --request(recurring completion)--> AWAITING_CONFIRMATION
    AWAITING_CONFIRMATION --edit--> AWAITING_CONFIRMATION
    AWAITING_CONFIRMATION --confirm--> COMMITTING --> IDLE
    AWAITING_CONFIRMATION --cancel--> IDLE
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from planner.domain.dates import LocalDates
from planner.domain.entities import NextTaskDraft, TaskEntity
from planner.domain.enums import TaskStatus, WorkflowState
from planner.domain.errors import (
    DraftFieldError,
    DraftValidationError,
    WorkflowBusyError,
    WorkflowStateError,
)
from planner.domain.recurrence import format_rule, parse_rule, serialize_rule

from .task_service import TaskService

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"title", "description", "status", "due_date", "recurrence"})


@dataclass(frozen=True)
class StatusChangeResult:
    task: TaskEntity | None = None
    draft: NextTaskDraft | None = None

    @property
    def intercepted(self) -> bool:
        return self.draft is not None


class CompletionWorkflow:
    def __init__(
        self,
        service: TaskService,
        dates: LocalDates | None = None,
        on_success: Callable[[TaskEntity], None] | None = None,
    ) -> None:
        self._service = service
        self._dates = dates or LocalDates()
        self._on_success = on_success
        self.state = WorkflowState.IDLE
        self._task: TaskEntity | None = None
        self._draft: NextTaskDraft | None = None

    @property
    def task(self) -> TaskEntity | None:
        return self._task

    @property
    def draft(self) -> NextTaskDraft | None:
        return self._draft

    @property
    def busy(self) -> bool:
        return self.state != WorkflowState.IDLE

    def request_status_change(
        self,
        task: TaskEntity,
        new_status: TaskStatus | str,
        now: datetime | None = None,
    ) -> StatusChangeResult:
        if self.busy:
            raise WorkflowBusyError(
                f"Cannot change task {task.id}: completion of task "
                f"{self._task.id if self._task else None} is still pending"
            )

        new_status = TaskStatus(new_status)
        if self._service.is_recurring_completion(task, new_status):
            draft = self._service.build_next_occurrence(task, now)
            if draft is not None:
                self._task = task
                self._draft = draft
                self.state = WorkflowState.AWAITING_CONFIRMATION
                logger.debug("Completion of task %s awaits confirmation", task.id)
                return StatusChangeResult(draft=draft)

        updated = self._service.update_status(task, new_status, now)
        self._notify(updated)
        return StatusChangeResult(task=updated)

    def edit_draft_field(self, field: str, value: Any) -> None:
        draft = self._require_draft()
        if field not in EDITABLE_FIELDS:
            raise DraftFieldError(field)

        if field == "title":
            draft.title = value or ""
        elif field == "description":
            draft.description = value or ""
        elif field == "status":
            draft.status = TaskStatus(value)
        elif field == "due_date":
            draft.due_date = self._parse_due_date(value)
        elif field == "recurrence":
            draft.recurrence = serialize_rule(parse_rule(value))

    def confirm_draft(self) -> TaskEntity:
        draft = self._require_draft()
        if not draft.title.strip():
            raise DraftValidationError("The next task needs a title")

        task = self._task
        self.state = WorkflowState.COMMITTING
        try:
            updated = self._service.complete_recurring(task, draft)
        finally:
            self._reset()
        self._notify(updated)
        return updated

    def cancel_draft(self) -> None:
        if self.state == WorkflowState.COMMITTING:
            raise WorkflowStateError("Completion is already being committed")
        if self._task is not None:
            logger.debug("Completion of task %s cancelled", self._task.id)
        self._reset()

    def draft_view(self) -> dict[str, Any]:
        draft = self._require_draft()
        return {
            "title": draft.title,
            "description": draft.description,
            "status": draft.status,
            "completed": draft.completed,
            "due_date": draft.due_date,
            "due_date_local": self._dates.to_local_date_string(draft.due_date),
            "recurrence": parse_rule(draft.recurrence),
            "recurrence_label": format_rule(parse_rule(draft.recurrence)),
            "association_label": association_label(draft),
        }

    def _require_draft(self) -> NextTaskDraft:
        if self.state != WorkflowState.AWAITING_CONFIRMATION or self._draft is None:
            raise WorkflowStateError(f"No draft awaiting confirmation (state={self.state})")
        return self._draft

    def _parse_due_date(self, value: Any) -> datetime | None:
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value.astimezone(timezone.utc)
        try:
            return self._dates.to_absolute_instant(str(value))
        except ValueError as exc:
            raise DraftValidationError(f"Invalid due date {value!r}: expected YYYY-MM-DD") from exc

    def _notify(self, task: TaskEntity) -> None:
        if self._on_success is not None:
            self._on_success(task)

    def _reset(self) -> None:
        self.state = WorkflowState.IDLE
        self._task = None
        self._draft = None


def association_label(draft: NextTaskDraft) -> str:
    if draft.activity:
        return f"Activity: {draft.activity}"
    if draft.matter:
        return f"Matter: {draft.matter}"
    return "No association"
