"""
Sync engine for the field operations client.

One sync pass:
- Opens a notification batch
- Pulls the current user, their company and the company's projects
- Merges them into the local store and reports the company to listeners
- Repairs crews and duplicates through the reconciler
- Pushes change events, then flushes the batch (or cancels it on error)

Errors never escape a pass: they are logged and recorded in ``SyncStatus``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from fieldops.controller import DataController
from fieldops.errors import ConfigurationError, RemoteServiceError
from fieldops.notifications.batcher import NotificationBatchCollector
from fieldops.notifications.models import BatchedNotification, NotificationType
from fieldops.schema.entities import Company, Project, ProjectStatus

from .reconciler import EntityReconciler, ReconcileReport

if TYPE_CHECKING:
    from fieldops.health.monitor import HealthMonitor


class SyncState(Enum):
    """State of synchronization."""

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"
    OFFLINE = "offline"


@dataclass
class SyncStatus:
    """Current sync status."""

    state: SyncState = SyncState.IDLE
    last_sync: datetime | None = None
    error_message: str = ""
    current_operation: str = ""

    projects_synced: int = 0
    events_detected: int = 0
    notifications_sent: int = 0
    last_report: ReconcileReport = field(default_factory=ReconcileReport)


@dataclass(frozen=True)
class _ProjectSnapshot:
    """Fields of a local project compared before and after a merge."""

    status: ProjectStatus
    start_date: datetime | None
    end_date: datetime | None
    team_member_ids: tuple[str, ...]

    @classmethod
    def of(cls, project: Project) -> _ProjectSnapshot:
        return cls(project.status, project.start_date, project.end_date, tuple(project.team_member_ids))


def _schedule_details(project: Project) -> str | None:
    if project.start_date is None:
        return None
    details = f"Now starts {project.start_date:%b %d}"
    if project.end_date is not None:
        details += f", ends {project.end_date:%b %d}"
    return details


CompanySyncedHook = Callable[[Company], Any]


class SyncEngine:
    """
    Pulls the current user's data from the directory into the local store.

    Features:
    - Server-wins merge of users, companies and projects
    - Relationship repair after every pull
    - Batched assignment, schedule and completion notifications
    - Offline-aware: transport failures leave the engine OFFLINE
    """

    def __init__(
        self,
        controller: DataController,
        batcher: NotificationBatchCollector | None = None,
        reconciler: EntityReconciler | None = None,
        on_company_synced: CompanySyncedHook | None = None,
        logger: logging.Logger | None = None,
    ):
        self.controller = controller
        self.batcher = batcher
        self._reconciler = reconciler
        self.on_company_synced = on_company_synced
        self.logger = logger or logging.getLogger(__name__)

        self.status = SyncStatus()

        # Callbacks
        self.on_progress: Callable[[SyncStatus], None] | None = None

    @property
    def reconciler(self) -> EntityReconciler:
        store = self.controller.store
        if store is None:
            raise ConfigurationError("No object store attached")
        if self._reconciler is None or self._reconciler.store is not store:
            self._reconciler = EntityReconciler(
                store,
                self.controller.remote,
                is_connected=lambda: self.controller.is_connected,
                logger=self.logger,
            )
        return self._reconciler

    @property
    def is_initial_sync(self) -> bool:
        return self.status.last_sync is None

    async def sync(self) -> SyncStatus:
        """Perform one full sync pass."""
        if self.status.state == SyncState.SYNCING:
            return self.status

        if not self.controller.is_connected:
            self.logger.warning("Offline: skipping sync")
            self.status.state = SyncState.OFFLINE
            self._notify_progress()
            return self.status

        self.status.state = SyncState.SYNCING
        self.status.error_message = ""
        if self.batcher is not None:
            self.batcher.start_batch()

        try:
            await self._sync_user()
            await self._sync_company()
            events = await self._sync_projects()

            self._set_operation("Reconciling")
            self.status.last_report = await self.reconciler.reconcile()

            for event in events:
                if self.batcher is not None:
                    self.batcher.add(event)
            self.status.events_detected = len(events)

            sent = self.batcher.flush_batch() if self.batcher is not None else []
            self.status.notifications_sent = len(sent)

            self.status.last_sync = datetime.now()
            self.status.state = SyncState.IDLE
            self.logger.info(
                "Sync complete: %d projects, %d events, %d notifications",
                self.status.projects_synced,
                len(events),
                len(sent),
            )

        except Exception as e:
            if self.batcher is not None:
                self.batcher.cancel_batch()
            offline = isinstance(e, RemoteServiceError) and e.status_code is None
            self.status.state = SyncState.OFFLINE if offline else SyncState.ERROR
            self.status.error_message = str(e)
            self.logger.error("Sync failed (%s): %s", self.status.state.value, e)

        self.status.current_operation = ""
        self._notify_progress()
        return self.status

    def _current_identity(self) -> tuple[str, str]:
        user = self.controller.current_user
        if user is None:
            raise ConfigurationError("No current user to sync")
        if not user.company_id:
            raise ConfigurationError(f"User {user.id} has no company")
        return user.id, user.company_id

    async def _sync_user(self) -> None:
        self._set_operation("Fetching user")
        user_id, _ = self._current_identity()
        record = await self.controller.remote.fetch_user(user_id)
        user = self.controller.merge_user(record)
        if user is not self.controller.current_user:
            self.controller.current_user = user
        await self.controller.save()

    async def _sync_company(self) -> None:
        self._set_operation("Fetching company")
        _, company_id = self._current_identity()
        record = await self.controller.remote.fetch_company(company_id)
        company = self.controller.merge_company(record)
        await self.controller.save()
        self.logger.debug("Company %s synced (%s)", company.id, company.subscription_status)

        if self.on_company_synced is not None:
            self.on_company_synced(company)

    async def _sync_projects(self) -> list[BatchedNotification]:
        self._set_operation("Fetching projects")
        user_id, company_id = self._current_identity()
        records = await self.controller.remote.fetch_company_projects(company_id)
        store = self.controller.store

        events: list[BatchedNotification] = []
        for record in records:
            existing = store.fetch_by_id(Project, record.id) if store is not None else None
            before = _ProjectSnapshot.of(existing) if existing is not None else None
            project, _ = self.controller.merge_project(record)
            if not self.is_initial_sync:
                events.extend(self.detect_changes(before, project, user_id))

        await self.controller.save()
        self.status.projects_synced = len(records)
        return events

    @staticmethod
    def detect_changes(
        before: _ProjectSnapshot | None,
        project: Project,
        user_id: str,
    ) -> list[BatchedNotification]:
        """Events for ``user_id`` caused by a project going from ``before`` to its current state."""
        if user_id not in project.team_member_ids:
            return []

        name = project.title or "Untitled project"
        was_member = before is not None and user_id in before.team_member_ids
        if not was_member:
            return [BatchedNotification(NotificationType.ASSIGNMENT, project.id, name)]

        events = []
        if (before.start_date, before.end_date) != (project.start_date, project.end_date):
            events.append(
                BatchedNotification(
                    NotificationType.SCHEDULE_CHANGE,
                    project.id,
                    name,
                    details=_schedule_details(project),
                )
            )
        if before.status != ProjectStatus.COMPLETED and project.status == ProjectStatus.COMPLETED:
            events.append(BatchedNotification(NotificationType.COMPLETION, project.id, name))
        return events

    def _set_operation(self, operation: str) -> None:
        self.status.current_operation = operation
        self.logger.debug(operation)
        self._notify_progress()

    def _notify_progress(self) -> None:
        """Notify progress callback."""
        if self.on_progress:
            self.on_progress(self.status)

    def get_status(self) -> dict[str, Any]:
        """Get current sync status."""
        report = self.status.last_report
        return {
            "state": self.status.state.value,
            "last_sync": self.status.last_sync.isoformat() if self.status.last_sync else None,
            "error_message": self.status.error_message,
            "projects_synced": self.status.projects_synced,
            "events_detected": self.status.events_detected,
            "notifications_sent": self.status.notifications_sent,
            "duplicates_merged": report.duplicate_groups,
            "placeholders_created": report.placeholders_created,
        }


class SyncManager:
    """
    Runs sync passes in the background.

    A pass only starts when the health monitor reports that syncing is
    possible; the engine is looked up on every tick because recovery may
    replace it.
    """

    def __init__(
        self,
        controller: DataController,
        monitor: HealthMonitor,
        sync_interval_seconds: int = 300,
        auto_sync: bool = True,
        logger: logging.Logger | None = None,
    ):
        self.controller = controller
        self.monitor = monitor
        self.sync_interval_seconds = sync_interval_seconds
        self.auto_sync = auto_sync
        self.logger = logger or logging.getLogger(__name__)

        self._running = False
        self._sync_task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start background sync."""
        if self._running:
            return

        self._running = True
        self._sync_task = asyncio.create_task(self._sync_loop())

    async def stop(self) -> None:
        """Stop background sync."""
        self._running = False
        if self._sync_task:
            self._sync_task.cancel()
            try:
                await self._sync_task
            except asyncio.CancelledError:
                pass
            self._sync_task = None

    async def _sync_loop(self) -> None:
        """Background sync loop."""
        while self._running:
            if self._should_sync():
                try:
                    await self.controller.sync_engine.sync()
                except Exception as e:
                    self.logger.error("Background sync failed: %s", e)

            await asyncio.sleep(self.sync_interval_seconds)

    def _should_sync(self) -> bool:
        if not self.auto_sync:
            return False
        return self.monitor.can_perform_sync()

    async def force_sync(self) -> SyncStatus | None:
        """Run a pass now if prerequisites are present."""
        if not self.monitor.can_perform_sync():
            self.logger.warning("Cannot sync: prerequisites missing")
            return None
        return await self.controller.sync_engine.sync()

    def get_status(self) -> dict[str, Any]:
        """Get sync manager status."""
        engine = self.controller.sync_engine
        return {
            "running": self._running,
            "auto_sync": self.auto_sync,
            "sync_interval_seconds": self.sync_interval_seconds,
            "engine_status": engine.get_status() if engine is not None else None,
        }
