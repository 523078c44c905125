"""Recovery executor: carries out the action chosen by the health monitor."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from fieldops.controller import DataController
from fieldops.errors import FieldOpsError
from fieldops.schema.entities import Company

from .monitor import OnboardingStep, RecoveryAction, RecoveryActionType

CompanySyncedHook = Callable[[Company], None]


class RecoveryExecutor:
    """Dispatches each recovery action to an isolated handler."""

    def __init__(
        self,
        controller: DataController,
        grace_delay: float = 0.5,
        on_company_synced: CompanySyncedHook | None = None,
        logger: logging.Logger | None = None,
    ):
        self.controller = controller
        self.grace_delay = grace_delay
        self.on_company_synced = on_company_synced
        self.logger = logger or logging.getLogger(__name__)

        self._handlers: dict[RecoveryActionType, Callable[[RecoveryAction], Awaitable[bool]]] = {
            RecoveryActionType.LOGOUT: self._logout,
            RecoveryActionType.RETURN_TO_ONBOARDING: self._return_to_onboarding,
            RecoveryActionType.FETCH_USER_FROM_API: self._fetch_user,
            RecoveryActionType.FETCH_COMPANY_FROM_API: self._fetch_company,
            RecoveryActionType.REINITIALIZE_SYNC_ENGINE: self._reinitialize_sync_engine,
            RecoveryActionType.NO_ACTION: self._no_action,
        }

    async def execute_recovery_action(self, action: RecoveryAction) -> bool:
        """Run ``action``. Returns True if the handler reports success."""
        self.logger.info("Executing recovery action: %s", action)
        return await self._handlers[action.type](action)

    async def _no_action(self, action: RecoveryAction) -> bool:
        return True

    async def _logout(self, action: RecoveryAction) -> bool:
        self.controller.session.clear_session()
        self.controller.current_user = None
        self.logger.info("Logged out; session cleared")
        return True

    async def _return_to_onboarding(self, action: RecoveryAction) -> bool:
        step = action.step or OnboardingStep.COMPANY_CODE
        self.controller.session.resume_onboarding(step.value)
        self.logger.info("Returning to onboarding at %s", step.value)
        return True

    async def _fetch_user(self, action: RecoveryAction) -> bool:
        user_id = self.controller.session.user_id
        if not user_id:
            self.logger.error("Cannot fetch user: no user id in session")
            return False

        try:
            record = await self.controller.remote.fetch_user(user_id)
            user = self.controller.merge_user(record)
            await self.controller.save()
        except FieldOpsError as e:
            self.logger.error("Failed to fetch user %s: %s", user_id, e)
            return False

        self.controller.current_user = user
        if user.company_id:
            self.controller.session.company_id = user.company_id
        self.logger.info("Fetched and stored user %s", user_id)
        return True

    async def _fetch_company(self, action: RecoveryAction) -> bool:
        user = self.controller.current_user
        company_id = (user.company_id if user else None) or self.controller.session.company_id
        if not company_id:
            self.logger.error("Cannot fetch company: no company id")
            return False

        try:
            record = await self.controller.remote.fetch_company(company_id)
            company = self.controller.merge_company(record)
            await self.controller.save()
        except FieldOpsError as e:
            self.logger.error("Failed to fetch company %s: %s", company_id, e)
            return False

        self.logger.info("Fetched and stored company %s", company_id)
        if self.on_company_synced is not None:
            self.on_company_synced(company)
        return True

    async def _reinitialize_sync_engine(self, action: RecoveryAction) -> bool:
        store = self.controller.store
        if store is None:
            self.logger.error("Cannot reinitialize sync engine: no store attached")
            return False

        await self.controller.attach_store(store)
        await asyncio.sleep(self.grace_delay)

        if self.controller.sync_engine is None:
            self.logger.error("Sync engine still missing after reinitialization")
            return False
        self.logger.info("Sync engine reinitialized")
        return True
