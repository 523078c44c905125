"""
Notifications for the field operations client.

Provides:
- Batching of sync-time events into summaries
- Quiet hours, mute and priority filtering
- A local notification scheduler
"""

from .batcher import BatchState, NotificationBatchCollector
from .filter import NotificationFilter, is_within_quiet_hours
from .models import (
    BatchedNotification,
    NotificationCategory,
    NotificationPriority,
    NotificationRequest,
    NotificationType,
)
from .preferences import NotificationPreferences, PreferenceStore, PriorityFilter
from .scheduler import NotificationScheduler

__all__ = [
    # Batching
    "NotificationBatchCollector",
    "BatchState",
    "BatchedNotification",
    "NotificationType",
    # Filtering
    "NotificationFilter",
    "NotificationPreferences",
    "PreferenceStore",
    "PriorityFilter",
    "is_within_quiet_hours",
    # Scheduling
    "NotificationScheduler",
    "NotificationRequest",
    "NotificationPriority",
    "NotificationCategory",
]
