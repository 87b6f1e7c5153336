from __future__ import annotations

from enum import StrEnum


class TaskStatus(StrEnum):
    PENDING = "pending"
    WAITING_RESPONSE = "waiting_response"
    BLOCKED = "blocked"
    COMPLETED = "completed"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS = {
    TaskStatus.PENDING: "Pending",
    TaskStatus.WAITING_RESPONSE: "Waiting for response",
    TaskStatus.BLOCKED: "Blocked",
    TaskStatus.COMPLETED: "Completed",
}


class RecurrenceFrequency(StrEnum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class WorkflowState(StrEnum):
    IDLE = "idle"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMMITTING = "committing"


class CommitPhase(StrEnum):
    PENDING = "pending"
    ORIGINAL_COMPLETED = "original_completed"
    SUCCESSOR_CREATED = "successor_created"
    FAILED_COMPLETING = "failed_completing"
    FAILED_CREATING = "failed_creating"
