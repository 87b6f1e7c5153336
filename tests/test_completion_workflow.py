from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from planner.domain.dates import LocalDates
from planner.domain.enums import TaskStatus, WorkflowState
from planner.domain.errors import (
    DraftFieldError,
    DraftValidationError,
    TaskAlreadyCompletedError,
    WorkflowBusyError,
    WorkflowStateError,
)
from planner.services.completion_workflow import CompletionWorkflow
from planner.services.task_service import TaskService

UTC = timezone.utc


@pytest.fixture
def committed() -> list:
    return []


@pytest.fixture
def workflow(service, committed) -> CompletionWorkflow:
    return CompletionWorkflow(service, LocalDates("UTC"), on_success=committed.append)


def test_completing_recurring_task_awaits_confirmation(repo, workflow, recurring_task) -> None:
    result = workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)

    assert result.intercepted
    assert result.task is None
    assert workflow.state == WorkflowState.AWAITING_CONFIRMATION
    assert result.draft.due_date == datetime(2024, 1, 2, 12, 0, tzinfo=UTC)
    assert result.draft.status == TaskStatus.PENDING
    assert result.draft.completed is False
    assert repo.writes == []


def test_confirming_unedited_draft_commits_both_writes(repo, workflow, recurring_task, committed) -> None:
    workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)

    updated = workflow.confirm_draft()

    assert workflow.state == WorkflowState.IDLE
    assert [write[0] for write in repo.writes] == ["update", "create"]
    assert repo.writes[0][2] == {"status": "completed", "completed": True}
    assert updated.completed is True
    successor = repo.tasks[-1]
    assert successor.due_date == datetime(2024, 1, 2, 12, 0, tzinfo=UTC)
    assert successor.status == TaskStatus.PENDING
    assert successor.recurrence == recurring_task.recurrence
    assert (successor.activity, successor.matter, successor.user) == ("activity-7", "matter-3", "user-1")
    assert committed == [updated]


def test_cancelling_draft_writes_nothing(repo, workflow, recurring_task, committed) -> None:
    workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)

    workflow.cancel_draft()

    assert workflow.state == WorkflowState.IDLE
    assert workflow.draft is None
    assert repo.writes == []
    assert repo.get_task(recurring_task.id).completed is False
    assert committed == []


def test_edited_draft_is_what_gets_created(repo, workflow, recurring_task) -> None:
    workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)

    workflow.edit_draft_field("title", "Renamed")
    workflow.edit_draft_field("description", "<p>new</p>")
    workflow.edit_draft_field("status", "blocked")
    workflow.edit_draft_field("due_date", "2024-02-15")
    workflow.edit_draft_field("recurrence", {"frequency": "monthly", "interval": 2})
    workflow.confirm_draft()

    successor = repo.tasks[-1]
    assert successor.title == "Renamed"
    assert successor.description == "<p>new</p>"
    assert successor.status == TaskStatus.BLOCKED
    assert successor.completed is False
    assert successor.due_date == datetime(2024, 2, 15, tzinfo=UTC)
    assert json.loads(successor.recurrence) == {"frequency": "monthly", "interval": 2}
    assert successor.activity == "activity-7"


def test_edited_status_completed_keeps_flag_in_sync(repo, workflow, recurring_task) -> None:
    workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)
    workflow.edit_draft_field("status", TaskStatus.COMPLETED)
    workflow.confirm_draft()

    successor = repo.tasks[-1]
    assert successor.status == TaskStatus.COMPLETED
    assert successor.completed is True


def test_clearing_recurrence_and_due_date_in_draft(repo, workflow, recurring_task) -> None:
    workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)
    workflow.edit_draft_field("recurrence", None)
    workflow.edit_draft_field("due_date", "")
    workflow.confirm_draft()

    successor = repo.tasks[-1]
    assert successor.recurrence is None
    assert successor.due_date is None


def test_due_date_edit_uses_local_timezone(service, repo, recurring_task) -> None:
    workflow = CompletionWorkflow(service, LocalDates("America/Argentina/Buenos_Aires"))
    workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)

    workflow.edit_draft_field("due_date", "2024-03-01")

    assert workflow.draft.due_date == datetime(2024, 3, 1, 3, 0, tzinfo=UTC)


@pytest.mark.parametrize("field", ["activity", "matter", "user", "completed", "id"])
def test_associations_and_unknown_fields_are_read_only(workflow, recurring_task, field) -> None:
    workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)

    with pytest.raises(DraftFieldError):
        workflow.edit_draft_field(field, "x")


def test_blank_title_blocks_confirmation(repo, workflow, recurring_task) -> None:
    workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)
    workflow.edit_draft_field("title", "   ")

    with pytest.raises(DraftValidationError):
        workflow.confirm_draft()

    assert workflow.state == WorkflowState.AWAITING_CONFIRMATION
    assert repo.writes == []


def test_second_request_while_pending_is_rejected(repo, workflow, recurring_task) -> None:
    other = repo.add(title="Other")
    workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)

    with pytest.raises(WorkflowBusyError):
        workflow.request_status_change(other, TaskStatus.BLOCKED)
    with pytest.raises(WorkflowBusyError):
        workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)

    assert repo.writes == []


def test_confirm_or_edit_without_draft_fails(workflow) -> None:
    with pytest.raises(WorkflowStateError):
        workflow.confirm_draft()
    with pytest.raises(WorkflowStateError):
        workflow.edit_draft_field("title", "x")


def test_non_completion_change_is_applied_directly(repo, workflow, recurring_task, committed) -> None:
    result = workflow.request_status_change(recurring_task, TaskStatus.WAITING_RESPONSE)

    assert not result.intercepted
    assert result.task.status == TaskStatus.WAITING_RESPONSE
    assert workflow.state == WorkflowState.IDLE
    assert [write[0] for write in repo.writes] == ["update"]
    assert committed == [result.task]


def test_non_recurring_completion_is_applied_directly(repo, workflow, now) -> None:
    task = repo.add(title="Once")

    result = workflow.request_status_change(task, TaskStatus.COMPLETED)

    assert not result.intercepted
    assert result.task.completed_date == now
    assert len(repo.writes) == 1


def test_recurrence_past_end_date_is_not_intercepted(repo, workflow) -> None:
    task = repo.add(
        title="Last one",
        due_date=datetime(2024, 6, 30, tzinfo=UTC),
        recurrence=json.dumps({"frequency": "monthly", "endDate": "2024-07-15"}),
    )

    result = workflow.request_status_change(task, TaskStatus.COMPLETED)

    assert not result.intercepted
    assert result.task.completed is True
    assert len(repo.tasks) == 1


def test_failed_commit_returns_to_idle(repo, workflow, recurring_task, committed) -> None:
    workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)
    repo.fail_create = True

    with pytest.raises(ConnectionError):
        workflow.confirm_draft()

    assert workflow.state == WorkflowState.IDLE
    assert repo.get_task(recurring_task.id).completed is True
    assert committed == []


def test_draft_view_for_display(workflow, recurring_task) -> None:
    workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)

    view = workflow.draft_view()

    assert view["title"] == "Recurring Task"
    assert view["due_date_local"] == "2024-01-02"
    assert view["recurrence_label"] == "daily"
    assert view["association_label"] == "Activity: activity-7"
    assert view["completed"] is False


def test_draft_due_date_follows_local_month_end(repo, now) -> None:
    madrid = LocalDates("Europe/Madrid")
    workflow = CompletionWorkflow(TaskService(repo, clock=lambda: now, dates=madrid), madrid)
    task = repo.add(
        title="Close the books",
        due_date=madrid.to_absolute_instant("2025-01-31"),
        recurrence=json.dumps({"frequency": "monthly"}),
    )

    workflow.request_status_change(task, TaskStatus.COMPLETED)

    assert workflow.draft_view()["due_date_local"] == "2025-02-28"


def test_invalid_due_date_text_is_a_validation_error(workflow, recurring_task) -> None:
    workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)
    before = workflow.draft.due_date

    with pytest.raises(DraftValidationError):
        workflow.edit_draft_field("due_date", "garbage")

    assert workflow.draft.due_date == before
    assert workflow.state == WorkflowState.AWAITING_CONFIRMATION


def test_task_completed_elsewhere_while_pending_is_reported(repo, workflow, recurring_task, committed) -> None:
    workflow.request_status_change(recurring_task, TaskStatus.COMPLETED)
    repo.update_task(recurring_task.id, {"status": "completed", "completed": True})
    repo.writes.clear()

    with pytest.raises(TaskAlreadyCompletedError):
        workflow.confirm_draft()

    assert workflow.state == WorkflowState.IDLE
    assert committed == []
    assert repo.writes == []
    assert len(repo.tasks) == 1


def test_out_of_range_rule_is_applied_directly(repo, workflow, now) -> None:
    task = repo.add(title="Centennial", recurrence=json.dumps({"frequency": "yearly", "interval": 100000}))

    result = workflow.request_status_change(task, TaskStatus.COMPLETED)

    assert not result.intercepted
    assert result.task.completed_date == now
    assert len(repo.tasks) == 1
