"""Completion of a recurring task as two separate writes.

The store has no transactions, so the original is marked completed first and
the successor is created afterwards. If the second write fails the original
stays completed without a successor; that state is recorded on the commit
object and logged, and the store error is re-raised to the caller.
"""
from __future__ import annotations

import logging

from planner.domain.entities import NextTaskDraft, TaskEntity
from planner.domain.enums import CommitPhase, TaskStatus
from planner.domain.errors import TaskNotFoundError
from planner.infra.repository import TaskRepository

logger = logging.getLogger(__name__)


class TwoStepCommit:
    def __init__(self, repo: TaskRepository, original: TaskEntity, draft: NextTaskDraft) -> None:
        self._repo = repo
        self.original = original
        self.draft = draft
        self.phase = CommitPhase.PENDING
        self.completed_task: TaskEntity | None = None
        self.successor: TaskEntity | None = None

    @property
    def partially_applied(self) -> bool:
        return self.phase == CommitPhase.FAILED_CREATING

    def run(self) -> TaskEntity:
        if self.phase != CommitPhase.PENDING:
            raise RuntimeError(f"Commit already ran (phase={self.phase})")

        try:
            # This path does not set completed_date.
            updated = self._repo.update_task(
                self.original.id,
                {"status": TaskStatus.COMPLETED.value, "completed": True},
            )
            if updated is None:
                raise TaskNotFoundError(self.original.id)
        except Exception:
            self.phase = CommitPhase.FAILED_COMPLETING
            raise
        self.completed_task = updated
        self.phase = CommitPhase.ORIGINAL_COMPLETED

        try:
            self.successor = self._repo.create_task(self.draft.to_fields())
        except Exception:
            self.phase = CommitPhase.FAILED_CREATING
            logger.exception(
                "Task %s completed but its next occurrence could not be created",
                self.original.id,
            )
            raise
        self.phase = CommitPhase.SUCCESSOR_CREATED
        logger.info(
            "Task %s completed, next occurrence %s due %s",
            self.original.id,
            self.successor.id,
            self.successor.due_date,
        )
        return updated
