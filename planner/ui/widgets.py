from __future__ import annotations

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QComboBox,
    QHBoxLayout,
    QLabel,
    QSizePolicy,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)

from planner.domain.dates import LocalDates
from planner.domain.entities import TaskEntity
from planner.domain.enums import RecurrenceFrequency, TaskStatus
from planner.domain.recurrence import (
    RECURRENCE_OPTIONS,
    UNIT_NAMES,
    RecurrenceRule,
    format_rule,
    parse_rule,
)

STATUS_OPTIONS = [(status.label, status.value) for status in TaskStatus]

STATUS_COLORS = {
    TaskStatus.PENDING: "#9CA3AF",
    TaskStatus.WAITING_RESPONSE: "#E0B25B",
    TaskStatus.BLOCKED: "#E24A4A",
    TaskStatus.COMPLETED: "#7CC4A1",
}


class StatusComboBox(QComboBox):
    def __init__(self, parent=None):
        super().__init__(parent)
        for label, value in STATUS_OPTIONS:
            self.addItem(label, value)

    def status(self) -> TaskStatus:
        return TaskStatus(self.currentData())

    def set_status(self, status: TaskStatus | str) -> None:
        index = self.findData(TaskStatus(status).value)
        self.setCurrentIndex(max(index, 0))


class RecurrenceSelector(QWidget):
    """Frequency picker plus "every N <unit>" spin box.

    Keeps days of week and end date of the rule it was given, since neither
    has an editor here.
    """

    changed = Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self._base: RecurrenceRule | None = None

        self.frequency = QComboBox()
        for label, value in RECURRENCE_OPTIONS:
            self.frequency.addItem(label, value.value)
        self.frequency.currentIndexChanged.connect(lambda _index: self._sync_interval())

        self.every_label = QLabel("every")
        self.interval = QSpinBox()
        self.interval.setRange(1, 999)
        self.interval.valueChanged.connect(lambda _value: self.changed.emit())
        self.unit_label = QLabel("")

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(6)
        layout.addWidget(self.frequency)
        layout.addWidget(self.every_label)
        layout.addWidget(self.interval)
        layout.addWidget(self.unit_label)
        layout.addStretch()

        self._sync_interval()

    def rule(self) -> RecurrenceRule | None:
        frequency = RecurrenceFrequency(self.frequency.currentData())
        if frequency == RecurrenceFrequency.NONE:
            return None
        return RecurrenceRule(
            frequency=frequency,
            interval=self.interval.value(),
            days_of_week=self._base.days_of_week if self._base else None,
            end_date=self._base.end_date if self._base else None,
        )

    def set_rule(self, value) -> None:
        rule = parse_rule(value)
        self._base = rule
        frequency = rule.frequency if rule else RecurrenceFrequency.NONE
        self.frequency.setCurrentIndex(max(self.frequency.findData(frequency.value), 0))
        self.interval.setValue(rule.interval if rule else 1)
        self._sync_interval()

    def _sync_interval(self) -> None:
        frequency = RecurrenceFrequency(self.frequency.currentData())
        repeating = frequency != RecurrenceFrequency.NONE
        for widget in (self.every_label, self.interval, self.unit_label):
            widget.setVisible(repeating)
        self.unit_label.setText(UNIT_NAMES.get(frequency, ""))
        self.changed.emit()


class TaskItemWidget(QWidget):
    def __init__(self, task: TaskEntity, dates: LocalDates, now):
        super().__init__()
        self.task = task

        self.setObjectName("TaskCard")
        self.setAttribute(Qt.WA_StyledBackground, True)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Fixed)
        self.setMinimumHeight(56)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 8, 12, 8)
        layout.setSpacing(4)

        title_text = task.title.strip() if task.title else "Untitled"
        title = QLabel(title_text)
        title.setProperty("class", "task-title")
        title.setWordWrap(True)
        if task.completed:
            title.setStyleSheet("text-decoration: line-through; color: #6B7280;")

        meta_parts = [task.status.label]
        if task.due_date:
            due = f"Due {dates.format_date(task.due_date)}"
            if dates.is_overdue(task.due_date, task.completed, now):
                due += " (overdue)"
            meta_parts.append(due)
        rule_label = format_rule(parse_rule(task.recurrence))
        if rule_label:
            meta_parts.append(f"Repeats {rule_label}")

        meta = QLabel(" · ".join(meta_parts))
        meta.setProperty("class", "task-meta")
        meta.setStyleSheet(f"color: {STATUS_COLORS[task.status]};")

        layout.addWidget(title)
        layout.addWidget(meta)
