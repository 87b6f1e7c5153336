from __future__ import annotations


class PlannerError(Exception):
    """Base class for errors raised by the planner core."""


class TaskNotFoundError(PlannerError):
    def __init__(self, task_id: int | None) -> None:
        super().__init__(f"Task {task_id} does not exist")
        self.task_id = task_id


class WorkflowStateError(PlannerError):
    """Operation is not valid in the workflow's current state."""


class WorkflowBusyError(WorkflowStateError):
    """A completion draft is already pending confirmation."""


class TaskAlreadyCompletedError(WorkflowStateError):
    def __init__(self, task_id: int | None) -> None:
        super().__init__(f"Task {task_id} was already completed; no next occurrence was created")
        self.task_id = task_id


class DraftFieldError(PlannerError):
    def __init__(self, field: str) -> None:
        super().__init__(f"Draft field '{field}' is not editable")
        self.field = field


class DraftValidationError(PlannerError):
    pass
