"""Preference-based gate applied to every notification before scheduling."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from .models import NotificationPriority
from .preferences import PreferenceStore, PriorityFilter


def is_within_quiet_hours(hour: int, start: int, end: int) -> bool:
    """
    True if ``hour`` falls inside the quiet window [start, end).

    A window with ``start > end`` wraps past midnight; ``start == end`` is an
    empty window.
    """
    if start == end:
        return False
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


def passes_priority_filter(priority: NotificationPriority, tier: PriorityFilter) -> bool:
    if tier == PriorityFilter.CRITICAL_ONLY:
        return priority == NotificationPriority.CRITICAL
    if tier == PriorityFilter.IMPORTANT_ONLY:
        return priority.value >= NotificationPriority.IMPORTANT.value
    return True


class NotificationFilter:
    """Decides whether a notification of a given priority may go out now."""

    def __init__(
        self,
        preferences: PreferenceStore,
        clock: Callable[[], datetime] = datetime.now,
        logger: logging.Logger | None = None,
    ):
        self.preferences = preferences
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    def should_send(self, priority: NotificationPriority) -> bool:
        now = self.clock()

        # Mute beats everything; an expired one is cleared on first sight
        if self.preferences.clear_expired_mute(now):
            self.logger.debug("Notification mute expired and was cleared")
        prefs = self.preferences.load()
        if prefs.is_muted(now):
            self.logger.debug("Suppressed: notifications muted")
            return False

        if (
            priority != NotificationPriority.CRITICAL
            and is_within_quiet_hours(now.hour, prefs.quiet_hours_start, prefs.quiet_hours_end)
        ):
            self.logger.debug("Suppressed: quiet hours %d-%d", prefs.quiet_hours_start, prefs.quiet_hours_end)
            return False

        if not passes_priority_filter(priority, prefs.priority_filter):
            self.logger.debug("Suppressed: %s below %s", priority.name, prefs.priority_filter.value)
            return False

        return True
