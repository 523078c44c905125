"""
Notification batch collector.

During a sync pass many records change at once. Rather than posting one
notification per change, events are buffered between ``start_batch`` and
``flush_batch`` and collapsed per type: one event keeps its detailed
message, several become a counted summary ("3 schedule changes").

Outside a batch, ``add`` delivers immediately so an event is never lost to
a missed ``start_batch``.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum

from .filter import NotificationFilter
from .models import BatchedNotification, NotificationRequest, NotificationType
from .scheduler import NotificationScheduler


class BatchState(Enum):
    IDLE = "idle"
    COLLECTING = "collecting"


class NotificationBatchCollector:
    """Buffers sync-time notification events and flushes coalesced summaries."""

    SUMMARY_TITLE = "OPS Updates"

    def __init__(
        self,
        scheduler: NotificationScheduler,
        notification_filter: NotificationFilter | None = None,
        delivery_delay: float = 1.0,
        logger: logging.Logger | None = None,
    ):
        self.scheduler = scheduler
        self.notification_filter = notification_filter
        self.delivery_delay = delivery_delay
        self.logger = logger or logging.getLogger(__name__)

        # Guards _state and _pending
        self._lock = threading.Lock()
        self._state = BatchState.IDLE
        self._pending: list[BatchedNotification] = []

    @property
    def state(self) -> BatchState:
        with self._lock:
            return self._state

    @property
    def is_batching(self) -> bool:
        return self.state == BatchState.COLLECTING

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def start_batch(self) -> None:
        """Start collecting (call at sync start). Drops anything left from an earlier batch."""
        with self._lock:
            self._state = BatchState.COLLECTING
            self._pending.clear()
        self.logger.debug("Started collecting notifications")

    def add(self, event: BatchedNotification) -> NotificationRequest | None:
        """
        Buffer ``event`` while collecting; deliver it right away otherwise.

        Returns the scheduled request for an immediate delivery, else None.
        """
        with self._lock:
            if self._state == BatchState.COLLECTING:
                self._pending.append(event)
                self.logger.debug("Added %s for %s", event.type.value, event.project_name)
                return None
            return self._emit([event], event.type)

    def flush_batch(self) -> list[NotificationRequest]:
        """Stop collecting and schedule one notification per event type."""
        with self._lock:
            if self._state != BatchState.COLLECTING:
                return []
            self._state = BatchState.IDLE
            pending, self._pending = self._pending, []

            self.logger.info("Flushing batch with %d notifications", len(pending))

            grouped: dict[NotificationType, list[BatchedNotification]] = {}
            for event in pending:
                grouped.setdefault(event.type, []).append(event)

            requests = []
            for notification_type, events in grouped.items():
                request = self._emit(events, notification_type)
                if request is not None:
                    requests.append(request)
            return requests

    def cancel_batch(self) -> None:
        """Discard the batch without notifying (call when a sync pass fails)."""
        with self._lock:
            dropped = len(self._pending)
            self._state = BatchState.IDLE
            self._pending.clear()
        self.logger.info("Batch cancelled, %d notifications dropped", dropped)

    # Emission; callers hold the lock

    def _emit(self, events: list[BatchedNotification], notification_type: NotificationType) -> NotificationRequest | None:
        if not events:
            return None

        priority = notification_type.priority
        if self.notification_filter is not None and not self.notification_filter.should_send(priority):
            self.logger.debug("Skipped %s: filtered by notification settings", notification_type.value)
            return None

        if len(events) == 1:
            event = events[0]
            title = notification_type.single_title
            body = notification_type.single_body(event.project_name, event.details)
            metadata = {
                "type": notification_type.value,
                "projectId": event.project_id,
                "taskId": event.task_id,
                "batchCount": 1,
            }
        else:
            title = self.SUMMARY_TITLE
            body = notification_type.summary_body(len(events))
            metadata = {
                "type": "batch",
                "batchType": notification_type.value,
                "projectIds": [e.project_id for e in events],
                "batchCount": len(events),
            }

        return self.scheduler.add(
            title=title,
            body=body,
            category=notification_type.category.value,
            metadata=metadata,
            delay=self.delivery_delay,
            priority=priority,
        )
