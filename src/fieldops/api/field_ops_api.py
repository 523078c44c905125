"""
High-level Field Ops API.

This is the main entry point for embedding the client core.
It wires the data controller, sync, health, access and notification
components together from one ``Settings`` object.
"""

from __future__ import annotations

import logging
from typing import Any

from fieldops.access.subscription import SubscriptionManager, SubscriptionState
from fieldops.config import Settings
from fieldops.controller import DataController
from fieldops.health.monitor import (
    HealthCheckResult,
    HealthMonitor,
    HealthState,
    RecoveryAction,
    RecoveryActionType,
)
from fieldops.health.recovery import RecoveryExecutor
from fieldops.notifications.batcher import NotificationBatchCollector
from fieldops.notifications.filter import NotificationFilter
from fieldops.notifications.models import BatchedNotification, NotificationRequest
from fieldops.notifications.preferences import PreferenceStore
from fieldops.notifications.scheduler import DeliveryHandler, NotificationScheduler
from fieldops.remote.directory import HttpDirectoryService, RemoteDirectoryService
from fieldops.remote.retry import RetryPolicy
from fieldops.storage.base import ObjectStore
from fieldops.storage.keyvalue import SessionStore
from fieldops.storage.memory_store import MemoryObjectStore
from fieldops.sync.engine import SyncEngine, SyncManager, SyncStatus

logger = logging.getLogger(__name__)

_INTERACTIVE_ACTIONS = {RecoveryActionType.LOGOUT, RecoveryActionType.RETURN_TO_ONBOARDING}


class FieldOpsAPI:
    """
    Unified API for the field operations client core.

    This class provides all the functionality needed to:
    - Check and repair local data health
    - Decide subscription lockout and manage seats
    - Sync with the directory and reconcile the local graph
    - Batch and filter sync-time notifications

    Usage:
        api = FieldOpsAPI(Settings.from_env())
        await api.initialize()

        result = await api.perform_health_check()
        if not result.state.is_healthy:
            await api.execute_recovery_action(result.action)

        await api.sync()
        state = api.check_subscription_status()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        remote: RemoteDirectoryService | None = None,
        store: ObjectStore | None = None,
        deliver: DeliveryHandler | None = None,
        persist: bool = True,
    ):
        self.settings = settings or Settings()
        self._remote = remote
        self._store = store
        self._deliver = deliver
        self._persist = persist

        self.controller: DataController | None = None
        self.monitor: HealthMonitor | None = None
        self.recovery: RecoveryExecutor | None = None
        self.subscriptions: SubscriptionManager | None = None
        self.scheduler: NotificationScheduler | None = None
        self.batcher: NotificationBatchCollector | None = None
        self.sync_manager: SyncManager | None = None
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize all components."""
        if self._initialized:
            return

        settings = self.settings
        if self._persist:
            settings.data_dir.expanduser().mkdir(parents=True, exist_ok=True)
            session = SessionStore(settings.session_path)
            preferences = PreferenceStore(settings.preferences_path)
        else:
            session = SessionStore()
            preferences = PreferenceStore()

        remote = self._remote or HttpDirectoryService(
            settings.api_url,
            api_token=settings.api_token,
            timeout=settings.request_timeout,
        )

        # Notifications
        self.scheduler = NotificationScheduler(deliver=self._deliver)
        self.batcher = NotificationBatchCollector(
            self.scheduler,
            notification_filter=NotificationFilter(preferences),
        )

        # State, access and health
        self.controller = DataController(session, remote, sync_engine_factory=self._build_sync_engine)
        self.subscriptions = SubscriptionManager(
            self.controller,
            retry_policy=RetryPolicy(
                max_attempts=settings.seat_retry_attempts,
                base_delay=settings.seat_retry_base_delay,
            ),
        )
        self.monitor = HealthMonitor(self.controller)
        self.recovery = RecoveryExecutor(
            self.controller,
            grace_delay=settings.reinit_grace_delay,
            on_company_synced=self.subscriptions.on_company_synced,
        )

        store = self._store or MemoryObjectStore()
        await store.initialize()
        await self.controller.attach_store(store)

        self.sync_manager = SyncManager(
            self.controller,
            self.monitor,
            sync_interval_seconds=settings.sync_interval_seconds,
        )

        self._initialized = True
        logger.info("Field ops client initialized against %s", settings.api_url)

    def _build_sync_engine(self, controller: DataController) -> SyncEngine:
        return SyncEngine(
            controller,
            batcher=self.batcher,
            on_company_synced=self.subscriptions.on_company_synced,
        )

    async def close(self) -> None:
        """Stop background work and close connections."""
        if self.sync_manager:
            await self.sync_manager.stop()
        if self.scheduler:
            await self.scheduler.stop()
        if self.controller:
            await self.controller.remote.close()
            if self.controller.store is not None:
                await self.controller.store.close()
        self._initialized = False

    def _require(self) -> DataController:
        if not self._initialized or self.controller is None:
            raise RuntimeError("API not initialized")
        return self.controller

    # === Session ===

    def sign_in(self, user_id: str, company_id: str | None = None) -> None:
        controller = self._require()
        controller.session.sign_in(user_id, company_id)
        if controller.current_user is not None and controller.current_user.id != user_id:
            controller.current_user = None

    # === Health ===

    async def perform_health_check(self) -> HealthCheckResult:
        self._require()
        return await self.monitor.perform_health_check()

    async def execute_recovery_action(self, action: RecoveryAction) -> bool:
        self._require()
        return await self.recovery.execute_recovery_action(action)

    async def recover(self, max_rounds: int = len(HealthState)) -> HealthCheckResult:
        """
        Check and repair until healthy or an action fails or needs the user.

        Logout and onboarding hand control back to the user, so the loop
        stops after running them. Returns the last health check result.
        """
        result = await self.perform_health_check()
        for _ in range(max_rounds):
            if result.state.is_healthy:
                break
            if not await self.execute_recovery_action(result.action):
                break
            if result.action.type in _INTERACTIVE_ACTIONS:
                break
            result = await self.perform_health_check()
        return result

    def has_minimum_required_data(self) -> bool:
        self._require()
        return self.monitor.has_minimum_required_data()

    def can_perform_sync(self) -> bool:
        self._require()
        return self.monitor.can_perform_sync()

    # === Access ===

    def check_subscription_status(self) -> SubscriptionState:
        self._require()
        return self.subscriptions.check_subscription_status()

    async def add_seat(self, user_id: str) -> list[str]:
        self._require()
        return await self.subscriptions.add_seat(user_id)

    async def remove_seat(self, user_id: str) -> list[str]:
        self._require()
        return await self.subscriptions.remove_seat(user_id)

    # === Notifications ===

    def start_batch(self) -> None:
        self._require()
        self.batcher.start_batch()

    def add(self, event: BatchedNotification) -> NotificationRequest | None:
        self._require()
        return self.batcher.add(event)

    def flush_batch(self) -> list[NotificationRequest]:
        self._require()
        return self.batcher.flush_batch()

    def cancel_batch(self) -> None:
        self._require()
        self.batcher.cancel_batch()

    # === Sync ===

    async def sync(self) -> SyncStatus | None:
        """Run one sync pass now, if the local prerequisites are present."""
        self._require()
        return await self.sync_manager.force_sync()

    async def get_status(self) -> dict[str, Any]:
        controller = self._require()
        user = controller.current_user
        return {
            "user_id": controller.session.user_id,
            "company_id": user.company_id if user else controller.session.company_id,
            "is_connected": controller.is_connected,
            "health": self.monitor.current_state.value,
            "subscription": self.subscriptions.state.to_dict(),
            "sync": self.sync_manager.get_status(),
            "notifications": self.scheduler.get_stats(),
        }
