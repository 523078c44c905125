"""
Data health monitor.

Diagnoses whether the local prerequisites for running the app are present.
Checks run in a fixed order and the first failure decides the outcome, so
when several things are wrong at once the earliest check in ``checks`` wins.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import NamedTuple

from fieldops.controller import DataController
from fieldops.errors import FieldOpsError
from fieldops.schema.entities import User


class HealthState(Enum):
    """Health of the app's local data. Derived on every check, never stored."""

    HEALTHY = "healthy"
    MISSING_USER_ID = "missing_user_id"
    MISSING_USER_DATA = "missing_user_data"
    MISSING_COMPANY_ID = "missing_company_id"
    MISSING_COMPANY_DATA = "missing_company_data"
    SYNC_ENGINE_NOT_INITIALIZED = "sync_engine_not_initialized"
    STORE_UNAVAILABLE = "store_unavailable"

    @property
    def is_healthy(self) -> bool:
        return self == HealthState.HEALTHY


class OnboardingStep(str, Enum):
    """Onboarding screen to resume at."""

    WELCOME = "welcome"
    COMPANY_CODE = "companyCode"
    USER_INFO = "userInfo"
    PERMISSIONS = "permissions"


class RecoveryActionType(Enum):
    LOGOUT = "logout"
    RETURN_TO_ONBOARDING = "return_to_onboarding"
    FETCH_USER_FROM_API = "fetch_user_from_api"
    FETCH_COMPANY_FROM_API = "fetch_company_from_api"
    REINITIALIZE_SYNC_ENGINE = "reinitialize_sync_engine"
    NO_ACTION = "no_action"


@dataclass(frozen=True)
class RecoveryAction:
    """What to do about an unhealthy state."""

    type: RecoveryActionType
    step: OnboardingStep | None = None

    @classmethod
    def logout(cls) -> RecoveryAction:
        return cls(RecoveryActionType.LOGOUT)

    @classmethod
    def return_to_onboarding(cls, step: OnboardingStep) -> RecoveryAction:
        return cls(RecoveryActionType.RETURN_TO_ONBOARDING, step)

    @classmethod
    def fetch_user(cls) -> RecoveryAction:
        return cls(RecoveryActionType.FETCH_USER_FROM_API)

    @classmethod
    def fetch_company(cls) -> RecoveryAction:
        return cls(RecoveryActionType.FETCH_COMPANY_FROM_API)

    @classmethod
    def reinitialize_sync_engine(cls) -> RecoveryAction:
        return cls(RecoveryActionType.REINITIALIZE_SYNC_ENGINE)

    @classmethod
    def none(cls) -> RecoveryAction:
        return cls(RecoveryActionType.NO_ACTION)

    def __str__(self) -> str:
        if self.step is not None:
            return f"{self.type.value}({self.step.value})"
        return self.type.value


class HealthCheckResult(NamedTuple):
    state: HealthState
    action: RecoveryAction


# Action for each state. MISSING_USER_DATA maps to LOGOUT instead when the
# remote user lookup itself fails (see HealthMonitor._check_company_id).
RECOVERY_ACTIONS: dict[HealthState, RecoveryAction] = {
    HealthState.HEALTHY: RecoveryAction.none(),
    HealthState.MISSING_USER_ID: RecoveryAction.logout(),
    HealthState.MISSING_USER_DATA: RecoveryAction.fetch_user(),
    HealthState.MISSING_COMPANY_ID: RecoveryAction.return_to_onboarding(OnboardingStep.COMPANY_CODE),
    HealthState.MISSING_COMPANY_DATA: RecoveryAction.fetch_company(),
    HealthState.SYNC_ENGINE_NOT_INITIALIZED: RecoveryAction.reinitialize_sync_engine(),
    HealthState.STORE_UNAVAILABLE: RecoveryAction.logout(),
}


def recovery_action_for(state: HealthState) -> RecoveryAction:
    return RECOVERY_ACTIONS[state]


def _result(state: HealthState, action: RecoveryAction | None = None) -> HealthCheckResult:
    return HealthCheckResult(state, action or recovery_action_for(state))


HealthCheck = Callable[[], Awaitable[HealthCheckResult | None]]


class HealthMonitor:
    """
    Computes the current ``HealthState`` and the action that repairs it.

    ``perform_health_check`` is single-flight: callers arriving while a check
    is running share its result instead of starting a second one.
    """

    def __init__(
        self,
        controller: DataController,
        clock: Callable[[], datetime] = datetime.now,
        logger: logging.Logger | None = None,
    ):
        self.controller = controller
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

        self.last_health_check: datetime | None = None
        self.current_state = HealthState.HEALTHY
        self._in_flight: asyncio.Task[HealthCheckResult] | None = None

        # Order is precedence
        self.checks: list[tuple[str, HealthCheck]] = [
            ("user_id", self._check_user_id),
            ("user_data", self._check_user_data),
            ("company_id", self._check_company_id),
            ("company_data", self._check_company_data),
            ("sync_engine", self._check_sync_engine),
            ("store", self._check_store),
        ]

    async def perform_health_check(self) -> HealthCheckResult:
        """Run every check in order and return the first failure, or HEALTHY."""
        if self._in_flight is None or self._in_flight.done():
            self._in_flight = asyncio.ensure_future(self._run_checks())
        return await asyncio.shield(self._in_flight)

    async def _run_checks(self) -> HealthCheckResult:
        self.logger.debug("Performing health check")
        for name, check in self.checks:
            result = await check()
            if result is not None:
                self.logger.warning("Health check '%s' failed: %s -> %s", name, result.state.value, result.action)
                self.current_state = result.state
                return result

        self.logger.info("All health checks passed")
        self.current_state = HealthState.HEALTHY
        self.last_health_check = self.clock()
        return _result(HealthState.HEALTHY)

    # Checks: each returns None on success

    async def _check_user_id(self) -> HealthCheckResult | None:
        if not self.controller.session.user_id:
            return _result(HealthState.MISSING_USER_ID)
        return None

    async def _check_user_data(self) -> HealthCheckResult | None:
        if self.controller.current_user is not None:
            return None

        user_id = self.controller.session.user_id
        store = self.controller.store
        loaded = store.fetch_by_id(User, user_id) if store is not None and user_id else None
        if loaded is None:
            return _result(HealthState.MISSING_USER_DATA)

        self.logger.info("Loaded current user %s from local store", user_id)
        self.controller.current_user = loaded
        return None

    async def _check_company_id(self) -> HealthCheckResult | None:
        user = self.controller.current_user
        if user is None:
            return _result(HealthState.MISSING_USER_DATA)
        if user.company_id:
            return None

        self.logger.info("User %s has no company id, asking the directory", user.id)
        try:
            record = await self.controller.remote.fetch_user(user.id)
        except FieldOpsError as e:
            self.logger.error("Could not fetch user %s: %s", user.id, e)
            return _result(HealthState.MISSING_USER_DATA, RecoveryAction.logout())

        if not record.company_id:
            return _result(HealthState.MISSING_COMPANY_ID)

        user.company_id = record.company_id
        self.controller.session.company_id = record.company_id
        if self.controller.store is not None:
            try:
                await self.controller.store.save()
            except Exception as e:
                self.logger.error("Could not save adopted company id: %s", e)
        self.logger.info("Adopted company id %s from directory", record.company_id)
        return None

    async def _check_company_data(self) -> HealthCheckResult | None:
        if self.controller.get_current_user_company() is None:
            return _result(HealthState.MISSING_COMPANY_DATA)
        return None

    async def _check_sync_engine(self) -> HealthCheckResult | None:
        if self.controller.sync_engine is None:
            return _result(HealthState.SYNC_ENGINE_NOT_INITIALIZED)
        return None

    async def _check_store(self) -> HealthCheckResult | None:
        if self.controller.store is None:
            return _result(HealthState.STORE_UNAVAILABLE)
        return None

    # Cheap pre-flight predicates; no recovery, no I/O

    def has_minimum_required_data(self) -> bool:
        """User id, current user and store are all present."""
        controller = self.controller
        if not controller.session.user_id:
            self.logger.debug("Minimum data check failed: no user id")
            return False
        if controller.current_user is None:
            self.logger.debug("Minimum data check failed: no current user")
            return False
        if controller.store is None:
            self.logger.debug("Minimum data check failed: no store")
            return False
        return True

    def can_perform_sync(self) -> bool:
        """Minimum data plus a sync engine and a company id."""
        if not self.has_minimum_required_data():
            return False
        if self.controller.sync_engine is None:
            self.logger.debug("Cannot sync: sync engine missing")
            return False
        if not self.controller.current_user.company_id:
            self.logger.debug("Cannot sync: user has no company id")
            return False
        return True
