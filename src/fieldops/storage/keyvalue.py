"""
Small JSON-backed key/value stores.

``SessionStore`` holds the persisted session identifiers. It is the
counterpart of the device's user defaults: cheap, synchronous, and written
through on every change.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any


class JsonKeyValueStore:
    """Key/value pairs kept in memory and mirrored to a JSON file when a path is given."""

    def __init__(self, path: Path | None = None, logger: logging.Logger | None = None):
        self.path = path.expanduser() if path else None
        self.logger = logger or logging.getLogger(__name__)
        self._values: dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        if not self.path or not self.path.exists():
            return
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning("Ignoring unreadable settings file %s: %s", self.path, e)
            return
        if isinstance(data, dict):
            self._values = data

    def _flush(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self._values, f, indent=2, sort_keys=True)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._values:
            del self._values[key]
            self._flush()

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)


class SessionStore(JsonKeyValueStore):
    """Persisted session identifiers and onboarding flags."""

    USER_ID = "user_id"
    COMPANY_ID = "company_id"
    IS_AUTHENTICATED = "is_authenticated"
    ONBOARDING_COMPLETED = "onboarding_completed"
    ONBOARDING_STEP = "onboarding_step"

    @property
    def user_id(self) -> str | None:
        value = self.get(self.USER_ID)
        return value or None

    @user_id.setter
    def user_id(self, value: str | None) -> None:
        if value:
            self.set(self.USER_ID, value)
        else:
            self.remove(self.USER_ID)

    @property
    def company_id(self) -> str | None:
        value = self.get(self.COMPANY_ID)
        return value or None

    @company_id.setter
    def company_id(self, value: str | None) -> None:
        if value:
            self.set(self.COMPANY_ID, value)
        else:
            self.remove(self.COMPANY_ID)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.get(self.IS_AUTHENTICATED, False))

    @property
    def onboarding_completed(self) -> bool:
        return bool(self.get(self.ONBOARDING_COMPLETED, False))

    @property
    def onboarding_step(self) -> str | None:
        return self.get(self.ONBOARDING_STEP)

    def sign_in(self, user_id: str, company_id: str | None = None) -> None:
        self.user_id = user_id
        self.company_id = company_id
        self.set(self.IS_AUTHENTICATED, True)
        self.set(self.ONBOARDING_COMPLETED, True)

    def clear_session(self) -> None:
        """Forget who is signed in."""
        self.remove(self.USER_ID)
        self.remove(self.COMPANY_ID)
        self.set(self.IS_AUTHENTICATED, False)
        self.set(self.ONBOARDING_COMPLETED, False)

    def resume_onboarding(self, step: str) -> None:
        self.set(self.ONBOARDING_COMPLETED, False)
        self.set(self.ONBOARDING_STEP, step)
