from __future__ import annotations

import logging

from PySide6.QtCore import QDate
from PySide6.QtWidgets import (
    QCheckBox,
    QDateEdit,
    QDialog,
    QFormLayout,
    QFrame,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QTextEdit,
    QVBoxLayout,
)

from planner.domain.errors import DraftValidationError, TaskAlreadyCompletedError
from planner.services.completion_workflow import CompletionWorkflow

from .widgets import RecurrenceSelector, StatusComboBox

logger = logging.getLogger(__name__)


class RecurringCompletionDialog(QDialog):
    """Review and edit the next occurrence before completing a recurring task."""

    def __init__(self, workflow: CompletionWorkflow, parent=None):
        super().__init__(parent)
        self.workflow = workflow
        self.setWindowTitle("Confirm next recurring task")
        self.setObjectName("RecurringCompletionDialog")
        self.resize(520, 480)

        view = workflow.draft_view()
        self._initial_due = view["due_date_local"]

        intro = QLabel(
            "Completing this task creates its next occurrence. "
            "You can adjust it before confirming."
        )
        intro.setWordWrap(True)

        self.title_input = QLineEdit(view["title"])
        self.title_input.setPlaceholderText("Task title")
        self.title_input.textChanged.connect(lambda _text: self._sync_confirm())

        self.status_input = StatusComboBox()
        self.status_input.set_status(view["status"])

        self.due_enabled = QCheckBox("Due date")
        self.due_input = QDateEdit()
        self.due_input.setCalendarPopup(True)
        self.due_input.setDisplayFormat("dd/MM/yyyy")
        if view["due_date_local"]:
            self.due_enabled.setChecked(True)
            self.due_input.setDate(QDate.fromString(view["due_date_local"], "yyyy-MM-dd"))
        else:
            self.due_input.setDate(QDate.currentDate())
        self.due_input.setEnabled(self.due_enabled.isChecked())
        self.due_enabled.toggled.connect(self.due_input.setEnabled)

        self.recurrence_input = RecurrenceSelector()
        self.recurrence_input.set_rule(view["recurrence"])

        association = QLabel(view["association_label"])
        association.setProperty("class", "association")

        self.description_input = QTextEdit()
        self.description_input.setPlainText(view["description"])

        due_row = QHBoxLayout()
        due_row.addWidget(self.due_enabled)
        due_row.addWidget(self.due_input, 1)

        form = QFormLayout()
        form.addRow("Title", self.title_input)
        form.addRow("Status", self.status_input)
        form.addRow(due_row)
        form.addRow("Repeats", self.recurrence_input)
        form.addRow("Association", association)
        form.addRow("Description", self.description_input)

        self.cancel_button = QPushButton("Cancel")
        self.cancel_button.setProperty("variant", "ghost")
        self.cancel_button.clicked.connect(self.reject)

        self.confirm_button = QPushButton("Confirm and complete")
        self.confirm_button.setDefault(True)
        self.confirm_button.clicked.connect(self.confirm)

        buttons = QHBoxLayout()
        buttons.addStretch()
        buttons.addWidget(self.cancel_button)
        buttons.addWidget(self.confirm_button)

        card = QFrame()
        card.setObjectName("DialogCard")
        card_layout = QVBoxLayout(card)
        card_layout.setContentsMargins(16, 16, 16, 16)
        card_layout.setSpacing(12)
        card_layout.addWidget(intro)
        card_layout.addLayout(form)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.addWidget(card)
        layout.addLayout(buttons)

        self._sync_confirm()

    def confirm(self) -> None:
        self.confirm_button.setEnabled(False)
        try:
            self._push_edits()
            self.workflow.confirm_draft()
        except DraftValidationError as exc:
            QMessageBox.warning(self, "Check the next task", str(exc))
            self._sync_confirm()
            return
        except TaskAlreadyCompletedError as exc:
            QMessageBox.information(self, "Already completed", str(exc))
            super().reject()
            return
        except Exception as exc:  # noqa: BLE001
            logger.exception("Completing recurring task failed")
            QMessageBox.critical(self, "Error", f"Could not complete the task.\n{exc}")
            super().reject()
            return
        self.accept()

    def reject(self) -> None:
        if self.workflow.draft is not None:
            self.workflow.cancel_draft()
        super().reject()

    def _push_edits(self) -> None:
        self.workflow.edit_draft_field("title", self.title_input.text())
        self.workflow.edit_draft_field("description", self.description_input.toPlainText())
        self.workflow.edit_draft_field("status", self.status_input.status())
        due = self.due_input.date().toString("yyyy-MM-dd") if self.due_enabled.isChecked() else ""
        # An untouched date keeps the calculated time of day.
        if due != self._initial_due:
            self.workflow.edit_draft_field("due_date", due)
        self.workflow.edit_draft_field("recurrence", self.recurrence_input.rule())

    def _sync_confirm(self) -> None:
        self.confirm_button.setEnabled(bool(self.title_input.text().strip()))
