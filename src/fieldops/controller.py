"""
Data controller: the explicitly constructed holder of local app state.

It owns the session, the attached object store, the current user, the
connectivity flag and the sync engine, and offers merge helpers that turn
remote records into local entities without replacing existing objects.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from fieldops.errors import ConfigurationError
from fieldops.remote.directory import RemoteDirectoryService
from fieldops.schema.entities import Company, Project, User
from fieldops.schema.records import CompanyRecord, ProjectRecord, UserRecord
from fieldops.storage.base import ObjectStore
from fieldops.storage.keyvalue import SessionStore

if TYPE_CHECKING:
    from fieldops.sync.engine import SyncEngine

SyncEngineFactory = Callable[["DataController"], "SyncEngine | None"]


class DataController:
    """Shared local state for one signed-in device."""

    def __init__(
        self,
        session: SessionStore,
        remote: RemoteDirectoryService,
        store: ObjectStore | None = None,
        sync_engine_factory: SyncEngineFactory | None = None,
        is_connected: bool = True,
        logger: logging.Logger | None = None,
    ):
        self.session = session
        self.remote = remote
        self.store = store
        self.sync_engine_factory = sync_engine_factory
        self.is_connected = is_connected
        self.logger = logger or logging.getLogger(__name__)

        self.current_user: User | None = None
        self.sync_engine: SyncEngine | None = None

    async def attach_store(self, store: ObjectStore) -> None:
        """
        Bind ``store`` and (re)build the sync engine.

        This is the store-attach sequence run at launch and by the recovery
        executor when the sync engine has gone missing.
        """
        self.store = store

        user_id = self.session.user_id
        if user_id and self.current_user is None:
            self.current_user = store.fetch_by_id(User, user_id)

        if self.sync_engine_factory is not None:
            self.sync_engine = self.sync_engine_factory(self)
        self.logger.info("Store attached (sync engine %s)", "ready" if self.sync_engine else "missing")

    def detach_store(self) -> None:
        self.store = None
        self.sync_engine = None

    # Lookups

    def get_user(self, user_id: str) -> User | None:
        if self.store is None:
            return None
        return self.store.fetch_by_id(User, user_id)

    def get_company(self, company_id: str) -> Company | None:
        if self.store is None:
            return None
        return self.store.fetch_by_id(Company, company_id)

    def get_current_user_company(self) -> Company | None:
        if self.current_user is None or not self.current_user.company_id:
            return None
        return self.get_company(self.current_user.company_id)

    # Merges: update in place when a local record exists, insert otherwise.
    # None of these commit; callers decide when to save.

    def _require_store(self) -> ObjectStore:
        if self.store is None:
            raise ConfigurationError("No object store attached")
        return self.store

    def merge_user(self, record: UserRecord) -> User:
        store = self._require_store()
        user = store.fetch_by_id(User, record.id)
        if user is None:
            user = record.to_entity()
            store.insert(user)
        else:
            record.apply_to(user)
        return user

    def merge_company(self, record: CompanyRecord) -> Company:
        store = self._require_store()
        company = store.fetch_by_id(Company, record.id)
        if company is None:
            company = record.to_entity()
            store.insert(company)
        else:
            record.apply_to(company)
        return company

    def merge_project(self, record: ProjectRecord) -> tuple[Project, bool]:
        """Merge a project record. Returns the project and whether it is new locally."""
        store = self._require_store()
        project = store.fetch_by_id(Project, record.id)
        if project is None:
            project = record.to_entity()
            store.insert(project)
            return project, True
        record.apply_to(project)
        return project, False

    async def save(self) -> None:
        await self._require_store().save()
