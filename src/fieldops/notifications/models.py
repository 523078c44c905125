"""
Notification types and requests.

Wording follows the field app: a single event gets a specific title and
body, several events of one type collapse into a counted summary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4


class NotificationPriority(Enum):
    """Priority level for notifications."""

    NORMAL = 1
    IMPORTANT = 2
    CRITICAL = 3


class NotificationCategory(str, Enum):
    """Category identifier attached to each scheduled notification."""

    PROJECT_ASSIGNMENT = "PROJECT_ASSIGNMENT"
    PROJECT_UPDATE = "PROJECT_UPDATE"
    PROJECT_COMPLETION = "PROJECT_COMPLETION"


class NotificationType(str, Enum):
    """Type of sync-time event worth telling the user about."""

    ASSIGNMENT = "assignment"
    SCHEDULE_CHANGE = "scheduleChange"
    COMPLETION = "completion"
    TASK_ASSIGNMENT = "taskAssignment"
    TASK_UPDATE = "taskUpdate"

    @property
    def display_name(self) -> str:
        return _DISPLAY[self][0]

    @property
    def plural_display_name(self) -> str:
        return _DISPLAY[self][1]

    @property
    def single_title(self) -> str:
        return _DISPLAY[self][2]

    @property
    def priority(self) -> NotificationPriority:
        if self in (NotificationType.ASSIGNMENT, NotificationType.TASK_ASSIGNMENT):
            return NotificationPriority.IMPORTANT
        return NotificationPriority.NORMAL

    @property
    def category(self) -> NotificationCategory:
        if self in (NotificationType.ASSIGNMENT, NotificationType.TASK_ASSIGNMENT):
            return NotificationCategory.PROJECT_ASSIGNMENT
        if self == NotificationType.COMPLETION:
            return NotificationCategory.PROJECT_COMPLETION
        return NotificationCategory.PROJECT_UPDATE

    def single_body(self, project_name: str, details: str | None = None) -> str:
        if self == NotificationType.ASSIGNMENT:
            return f"You've been assigned to {project_name}"
        if self == NotificationType.SCHEDULE_CHANGE:
            return f"{project_name}: {details or 'Schedule has been updated'}"
        if self == NotificationType.COMPLETION:
            return f"{project_name} has been marked as completed"
        if self == NotificationType.TASK_ASSIGNMENT:
            return f"You've been assigned a task on {project_name}"
        return f"A task on {project_name} has been updated"

    def summary_body(self, count: int) -> str:
        return f"{count} {self.plural_display_name}"


# (singular, plural, single-item title)
_DISPLAY = {
    NotificationType.ASSIGNMENT: ("new project assignment", "new project assignments", "New Project Assignment"),
    NotificationType.SCHEDULE_CHANGE: ("schedule change", "schedule changes", "Schedule Update"),
    NotificationType.COMPLETION: ("project completed", "projects completed", "Project Completed"),
    NotificationType.TASK_ASSIGNMENT: ("new task assignment", "new task assignments", "New Task Assignment"),
    NotificationType.TASK_UPDATE: ("task update", "task updates", "Task Updated"),
}


@dataclass(frozen=True)
class BatchedNotification:
    """One notification-worthy event, alive for a single collect-to-flush cycle."""

    type: NotificationType
    project_id: str
    project_name: str
    task_id: str | None = None
    details: str | None = None


@dataclass
class NotificationRequest:
    """A local notification handed to the scheduler."""

    id: str = field(default_factory=lambda: str(uuid4()))
    title: str = ""
    body: str = ""
    category: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.NORMAL

    # Trigger
    trigger_at: datetime = field(default_factory=datetime.now)

    # Tracking
    created_at: datetime = field(default_factory=datetime.now)
    delivered_at: datetime | None = None
