from __future__ import annotations

import logging

from PySide6.QtCore import QDate, Qt
from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QCheckBox,
    QDateEdit,
    QFrame,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMessageBox,
    QPushButton,
    QSplitter,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from planner.config import SETTINGS
from planner.domain.dates import LocalDates
from planner.domain.entities import TaskEntity
from planner.domain.enums import TaskStatus
from planner.domain.filters import TaskFilters
from planner.domain.recurrence import serialize_rule
from planner.infra.repository import TaskRepository
from planner.services.completion_workflow import CompletionWorkflow
from planner.services.task_service import TaskService

from .dialogs import RecurringCompletionDialog
from .widgets import RecurrenceSelector, StatusComboBox, TaskItemWidget

logger = logging.getLogger(__name__)

FILTERS = [
    ("All", "all"),
    ("Open", "open"),
    ("Overdue", "overdue"),
    ("Next 7 days", "upcoming"),
    ("Completed", "completed"),
]


class MainWindow(QWidget):
    def __init__(self, service: TaskService | None = None):
        super().__init__()
        self.setWindowTitle("Planner")
        self.resize(1100, 700)

        self.dates = LocalDates(SETTINGS.timezone)
        self.service = service or TaskService(TaskRepository(), dates=self.dates)
        self.workflow = CompletionWorkflow(self.service, self.dates, on_success=self._on_task_changed)

        self.current_task: TaskEntity | None = None
        self.current_filter = "all"

        main_layout = QHBoxLayout(self)
        main_layout.setContentsMargins(12, 12, 12, 12)

        splitter = QSplitter(Qt.Horizontal)
        main_layout.addWidget(splitter)
        splitter.addWidget(self._build_sidebar())
        splitter.addWidget(self._build_center())
        splitter.addWidget(self._build_detail_panel())
        splitter.setSizes([200, 500, 400])

        self.refresh_tasks()

        QShortcut(QKeySequence("Ctrl+N"), self, self.new_task)
        QShortcut(QKeySequence("Ctrl+S"), self, self.save_task)

    def _build_sidebar(self) -> QWidget:
        frame = QFrame()
        frame.setObjectName("Sidebar")
        layout = QVBoxLayout(frame)
        layout.setContentsMargins(12, 12, 12, 12)

        title = QLabel("Filters")
        title.setProperty("class", "sidebar-title")
        layout.addWidget(title)

        self.filter_list = QListWidget()
        self.filter_list.setObjectName("FilterList")
        for label, key in FILTERS:
            item = QListWidgetItem(label)
            item.setData(Qt.UserRole, key)
            self.filter_list.addItem(item)
        self.filter_list.setCurrentRow(0)
        self.filter_list.currentItemChanged.connect(self.on_filter_change)
        layout.addWidget(self.filter_list)
        layout.addStretch()
        return frame

    def _build_center(self) -> QWidget:
        frame = QFrame()
        frame.setObjectName("CenterPanel")
        layout = QVBoxLayout(frame)
        layout.setContentsMargins(12, 12, 12, 12)

        header = QHBoxLayout()
        header_title = QLabel("My tasks")
        header_title.setProperty("class", "panel-title")
        self.stats_label = QLabel("")
        self.stats_label.setProperty("class", "stats-badge")
        header.addWidget(header_title)
        header.addStretch()
        header.addWidget(self.stats_label)

        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search")
        self.search_input.textChanged.connect(lambda _text: self.refresh_tasks())

        self.task_list = QListWidget()
        self.task_list.setObjectName("TaskList")
        self.task_list.currentItemChanged.connect(self.on_task_selected)

        layout.addLayout(header)
        layout.addWidget(self.search_input)
        layout.addWidget(self.task_list)
        return frame

    def _build_detail_panel(self) -> QWidget:
        frame = QFrame()
        frame.setObjectName("DetailPanel")
        layout = QVBoxLayout(frame)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(8)

        self.title_input = QLineEdit()
        self.title_input.setPlaceholderText("Title")

        self.description_input = QTextEdit()
        self.description_input.setPlaceholderText("Description")

        self.due_enabled = QCheckBox("Due date")
        self.due_input = QDateEdit()
        self.due_input.setCalendarPopup(True)
        self.due_input.setDisplayFormat("dd/MM/yyyy")
        self.due_input.setDate(QDate.currentDate())
        self.due_input.setEnabled(False)
        self.due_enabled.toggled.connect(self.due_input.setEnabled)
        due_row = QHBoxLayout()
        due_row.addWidget(self.due_enabled)
        due_row.addWidget(self.due_input, 1)

        self.recurrence_input = RecurrenceSelector()

        self.status_input = StatusComboBox()
        self.apply_status_button = QPushButton("Set status")
        self.apply_status_button.setProperty("variant", "secondary")
        self.apply_status_button.clicked.connect(self.apply_status)
        status_row = QHBoxLayout()
        status_row.addWidget(self.status_input, 1)
        status_row.addWidget(self.apply_status_button)

        self.done_button = QPushButton("Mark complete")
        self.done_button.clicked.connect(self.toggle_done)

        save_button = QPushButton("Save")
        save_button.clicked.connect(self.save_task)
        new_button = QPushButton("New")
        new_button.setProperty("variant", "secondary")
        new_button.clicked.connect(self.new_task)
        delete_button = QPushButton("Delete")
        delete_button.setProperty("variant", "ghost")
        delete_button.clicked.connect(self.delete_task)

        actions = QHBoxLayout()
        actions.addWidget(save_button)
        actions.addWidget(new_button)
        actions.addStretch()
        actions.addWidget(delete_button)

        layout.addWidget(QLabel("Task"))
        layout.addWidget(self.title_input)
        layout.addLayout(due_row)
        layout.addWidget(QLabel("Repeats"))
        layout.addWidget(self.recurrence_input)
        layout.addWidget(QLabel("Status"))
        layout.addLayout(status_row)
        layout.addWidget(self.done_button)
        layout.addWidget(QLabel("Description"))
        layout.addWidget(self.description_input, 1)
        layout.addLayout(actions)

        self._sync_status_controls()
        return frame

    def refresh_tasks(self) -> None:
        now = self.service.now()
        filters = TaskFilters(filter_key=self.current_filter, search=self.search_input.text().strip() or None)
        tasks = self.service.list_tasks(filters, now)

        self.task_list.blockSignals(True)
        self.task_list.clear()
        selected_row = -1
        for row, task in enumerate(tasks):
            item = QListWidgetItem()
            item.setData(Qt.UserRole, task)
            widget = TaskItemWidget(task, self.dates, now)
            item.setSizeHint(widget.sizeHint())
            self.task_list.addItem(item)
            self.task_list.setItemWidget(item, widget)
            if self.current_task and task.id == self.current_task.id:
                selected_row = row
                self.current_task = task
        if selected_row >= 0:
            self.task_list.setCurrentRow(selected_row)
        self.task_list.blockSignals(False)

        stats = self.service.get_stats(now)
        self.stats_label.setText(
            f"{stats['open']} open · {stats['overdue']} overdue · {stats['completed']} done"
        )
        self._sync_status_controls()

    def on_filter_change(self, current: QListWidgetItem) -> None:
        if current is None:
            return
        self.current_filter = current.data(Qt.UserRole)
        self.refresh_tasks()

    def on_task_selected(self, current: QListWidgetItem, _previous=None) -> None:
        if current is None:
            return
        task = current.data(Qt.UserRole)
        self.current_task = task
        self.populate_form(task)

    def populate_form(self, task: TaskEntity) -> None:
        self.title_input.setText(task.title)
        self.description_input.setPlainText(task.description)
        due = self.dates.to_local_date_string(task.due_date)
        self.due_enabled.setChecked(bool(due))
        self.due_input.setDate(QDate.fromString(due, "yyyy-MM-dd") if due else QDate.currentDate())
        self.recurrence_input.set_rule(task.recurrence)
        self.status_input.set_status(task.status)
        self._sync_status_controls()

    def clear_form(self) -> None:
        self.current_task = None
        self.title_input.clear()
        self.description_input.clear()
        self.due_enabled.setChecked(False)
        self.due_input.setDate(QDate.currentDate())
        self.recurrence_input.set_rule(None)
        self.status_input.set_status(TaskStatus.PENDING)
        self.task_list.clearSelection()
        self._sync_status_controls()

    def new_task(self) -> None:
        self.clear_form()
        self.title_input.setFocus()

    def save_task(self) -> None:
        title = self.title_input.text().strip()
        if not title:
            QMessageBox.warning(self, "Title required", "Give the task a title.")
            return

        due = self.due_input.date().toString("yyyy-MM-dd") if self.due_enabled.isChecked() else ""
        data = {
            "title": title,
            "description": self.description_input.toPlainText(),
            "due_date": self.dates.to_absolute_instant(due),
            "recurrence": serialize_rule(self.recurrence_input.rule()),
        }
        try:
            if self.current_task is None:
                data["status"] = self.status_input.status()
                self.current_task = self.service.create_task(data)
            else:
                self.current_task = self.service.update_task(self.current_task.id, data)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Saving task failed")
            QMessageBox.critical(self, "Error", f"Could not save the task.\n{exc}")
            return
        self.refresh_tasks()

    def apply_status(self) -> None:
        self.request_status(self.status_input.status())

    def toggle_done(self) -> None:
        if self.current_task is None:
            return
        target = TaskStatus.PENDING if self.current_task.completed else TaskStatus.COMPLETED
        self.request_status(target)

    def request_status(self, status: TaskStatus) -> None:
        if self.current_task is None:
            QMessageBox.warning(self, "No task", "Save the task first.")
            return
        try:
            result = self.workflow.request_status_change(self.current_task, status)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Status change failed")
            QMessageBox.critical(self, "Error", f"Could not update the task.\n{exc}")
            return

        if result.intercepted:
            self._sync_status_controls()
            RecurringCompletionDialog(self.workflow, self).exec()
        self.refresh_tasks()
        if self.current_task:
            self.populate_form(self.current_task)

    def delete_task(self) -> None:
        if self.current_task is None:
            return
        confirm = QMessageBox.question(
            self,
            "Delete task",
            f"Delete “{self.current_task.title}”?",
        )
        if confirm != QMessageBox.Yes:
            return
        self.service.delete_task(self.current_task.id)
        self.clear_form()
        self.refresh_tasks()

    def _on_task_changed(self, task: TaskEntity) -> None:
        if self.current_task and task.id == self.current_task.id:
            self.current_task = task

    def _sync_status_controls(self) -> None:
        # Disabled while a completion draft is waiting for confirmation.
        enabled = self.current_task is not None and not self.workflow.busy
        self.apply_status_button.setEnabled(enabled)
        self.done_button.setEnabled(enabled)
        if self.current_task is not None and self.current_task.completed:
            self.done_button.setText("Reopen")
        else:
            self.done_button.setText("Mark complete")
