"""
Local notification scheduler.

Stands in for the operating system's notification center:
- ``add`` accepts a request synchronously and returns at once
- a background loop hands due requests to a delivery callable
- delivery failures are logged and recorded, never retried
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any

from .models import NotificationPriority, NotificationRequest

DeliveryHandler = Callable[[NotificationRequest], Awaitable[None]]


class NotificationScheduler:
    """
    Queue of pending local notifications.

    The batch collector is the only producer; the delivery handler is the
    platform hook that actually shows the notification.
    """

    def __init__(
        self,
        deliver: DeliveryHandler | None = None,
        poll_interval: float = 1.0,
        history_size: int = 100,
        logger: logging.Logger | None = None,
    ):
        self.deliver = deliver or self._log_delivery
        self.poll_interval = poll_interval
        self.logger = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self.scheduled: list[NotificationRequest] = []
        # Recent history only; the counters cover the whole lifetime
        self.delivered: deque[NotificationRequest] = deque(maxlen=history_size)
        self.failed: deque[tuple[NotificationRequest, str]] = deque(maxlen=history_size)
        self.delivered_count = 0
        self.failed_count = 0

        self._scheduler_task: asyncio.Task | None = None

    def add(
        self,
        title: str,
        body: str,
        category: str = "",
        metadata: dict[str, Any] | None = None,
        delay: float = 1.0,
        priority: NotificationPriority = NotificationPriority.NORMAL,
    ) -> NotificationRequest:
        """Schedule a notification ``delay`` seconds from now."""
        request = NotificationRequest(
            title=title,
            body=body,
            category=category,
            data=dict(metadata or {}),
            priority=priority,
            trigger_at=datetime.now() + timedelta(seconds=delay),
        )
        with self._lock:
            self.scheduled.append(request)
        self.logger.debug("Scheduled notification %s: %s", request.id, title)
        return request

    def cancel(self, request_id: str) -> bool:
        """Cancel a pending notification."""
        with self._lock:
            for i, request in enumerate(self.scheduled):
                if request.id == request_id:
                    self.scheduled.pop(i)
                    return True
        return False

    def _take_due(self, now: datetime) -> list[NotificationRequest]:
        with self._lock:
            due = [r for r in self.scheduled if r.trigger_at <= now]
            self.scheduled = [r for r in self.scheduled if r.trigger_at > now]
        return due

    async def dispatch_due(self, now: datetime | None = None) -> int:
        """Deliver every request whose trigger time has passed. Returns the number delivered."""
        delivered = 0
        for request in self._take_due(now or datetime.now()):
            try:
                await self.deliver(request)
            except Exception as e:
                self.logger.error("Failed to deliver notification %s: %s", request.id, e)
                self.failed.append((request, str(e)))
                self.failed_count += 1
                continue
            request.delivered_at = datetime.now()
            self.delivered.append(request)
            self.delivered_count += 1
            delivered += 1
        return delivered

    async def start(self) -> None:
        """Start the delivery loop."""
        if self._scheduler_task:
            return

        self._scheduler_task = asyncio.create_task(self._scheduler_loop())

    async def stop(self) -> None:
        """Stop the delivery loop."""
        if self._scheduler_task:
            self._scheduler_task.cancel()
            try:
                await self._scheduler_task
            except asyncio.CancelledError:
                pass
            self._scheduler_task = None

    async def _scheduler_loop(self) -> None:
        while True:
            await self.dispatch_due()
            await asyncio.sleep(self.poll_interval)

    async def _log_delivery(self, request: NotificationRequest) -> None:
        self.logger.info("Notification [%s] %s: %s", request.category or "-", request.title, request.body)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self.scheduled)

    def get_stats(self) -> dict[str, Any]:
        """Get notification statistics."""
        return {
            "scheduled": self.pending_count,
            "delivered": self.delivered_count,
            "failed": self.failed_count,
        }
