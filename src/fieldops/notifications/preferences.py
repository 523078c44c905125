"""User notification preferences."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, ValidationError

from fieldops.storage.keyvalue import JsonKeyValueStore


class PriorityFilter(str, Enum):
    """Lowest priority the user still wants to hear about."""

    ALL = "all"
    IMPORTANT_ONLY = "important_only"
    CRITICAL_ONLY = "critical_only"


class NotificationPreferences(BaseModel):
    """Notification settings as chosen by the user."""

    # Equal start and end hours mean no quiet window
    quiet_hours_start: int = Field(default=0, ge=0, le=23)
    quiet_hours_end: int = Field(default=0, ge=0, le=23)

    # Epoch seconds; None when not muted
    mute_until: float | None = None

    priority_filter: PriorityFilter = PriorityFilter.ALL

    def is_muted(self, now: datetime) -> bool:
        return self.mute_until is not None and now.timestamp() < self.mute_until

    def mute_expired(self, now: datetime) -> bool:
        return self.mute_until is not None and now.timestamp() >= self.mute_until


class PreferenceStore(JsonKeyValueStore):
    """Persisted notification preferences."""

    KEY = "notifications"

    def load(self) -> NotificationPreferences:
        raw = self.get(self.KEY) or {}
        try:
            return NotificationPreferences.model_validate(raw)
        except ValidationError as e:
            self.logger.warning("Invalid notification preferences, using defaults: %s", e.error_count())
            return NotificationPreferences()

    def save_preferences(self, preferences: NotificationPreferences) -> None:
        self.set(self.KEY, preferences.model_dump(mode="json"))

    def update(self, **changes) -> NotificationPreferences:
        preferences = self.load().model_copy(update=changes)
        preferences = NotificationPreferences.model_validate(preferences.model_dump())
        self.save_preferences(preferences)
        return preferences

    def clear_expired_mute(self, now: datetime) -> bool:
        """Drop a mute whose expiry has passed. Returns True if one was cleared."""
        preferences = self.load()
        if not preferences.mute_expired(now):
            return False
        self.save_preferences(preferences.model_copy(update={"mute_until": None}))
        return True
