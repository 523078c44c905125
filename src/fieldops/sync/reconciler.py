"""
Entity reconciler.

Repairs the local relationship graph after a sync pass:
- Duplicate users sharing one id are merged into a single survivor
- Project crews are re-linked from the denormalized ``team_member_ids``
- Members that cannot be fetched get a placeholder until a later fetch

All work of one pass is committed with a single ``save``. A failed commit is
logged and raised as ``SyncError``; merges already applied to the live
objects are not rolled back.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from fieldops.errors import RemoteServiceError, SyncError
from fieldops.remote.directory import RemoteDirectoryService
from fieldops.schema.entities import Project, User
from fieldops.storage.base import ObjectStore


@dataclass
class ReconcileReport:
    """What a reconciliation pass changed."""

    duplicate_groups: int = 0
    users_deleted: int = 0
    links_added: int = 0
    links_removed: int = 0
    users_fetched: int = 0
    placeholders_created: int = 0
    placeholders_enriched: int = 0
    failures: list[str] = field(default_factory=list)

    def merge(self, other: ReconcileReport) -> ReconcileReport:
        self.duplicate_groups += other.duplicate_groups
        self.users_deleted += other.users_deleted
        self.links_added += other.links_added
        self.links_removed += other.links_removed
        self.users_fetched += other.users_fetched
        self.placeholders_created += other.placeholders_created
        self.placeholders_enriched += other.placeholders_enriched
        self.failures.extend(other.failures)
        return self


def _unique(items: list) -> list:
    """Drop repeated object references, keeping first occurrence order."""
    seen: set[int] = set()
    result = []
    for item in items:
        if id(item) not in seen:
            seen.add(id(item))
            result.append(item)
    return result


class EntityReconciler:
    """Deduplicates users and repairs User<->Project edges."""

    def __init__(
        self,
        store: ObjectStore,
        remote: RemoteDirectoryService,
        is_connected: Callable[[], bool] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.store = store
        self.remote = remote
        self._is_connected = is_connected or (lambda: True)
        self.logger = logger or logging.getLogger(__name__)

    @property
    def is_connected(self) -> bool:
        return self._is_connected()

    # Duplicate users

    @staticmethod
    def choose_survivor(group: list[User]) -> User:
        """
        Pick the record to keep: the latest ``last_synced_at`` wins, any
        timestamp beats none, and ties or all-missing keep the first seen.
        """
        survivor = group[0]
        for user in group[1:]:
            if user.last_synced_at is None:
                continue
            if survivor.last_synced_at is None or user.last_synced_at > survivor.last_synced_at:
                survivor = user
        return survivor

    @staticmethod
    def group_by_id(users: list[User]) -> dict[str, list[User]]:
        groups: dict[str, list[User]] = {}
        for user in _unique(users):
            groups.setdefault(user.id, []).append(user)
        return groups

    def _projects_listing(self, user: User) -> list[Project]:
        listed = [p for p in self.store.fetch_all(Project) if any(m is user for m in p.team_members)]
        listed.extend(p for p in user.assigned_projects if any(m is user for m in p.team_members))
        return _unique(listed)

    def _merge_group(self, survivor: User, group: list[User], report: ReconcileReport) -> None:
        union_projects = _unique([p for member in group for p in member.assigned_projects])

        for dupe in group:
            if dupe is survivor:
                continue
            for project in self._projects_listing(dupe):
                survivor_listed = any(m is survivor for m in project.team_members)
                if survivor_listed:
                    project.team_members = [m for m in project.team_members if m is not dupe]
                else:
                    project.team_members = [survivor if m is dupe else m for m in project.team_members]
            self.store.delete(dupe)
            report.users_deleted += 1

        survivor.assigned_projects = union_projects

    async def reconcile_duplicates(
        self,
        candidates: list[User] | None = None,
        commit: bool = True,
    ) -> ReconcileReport:
        """Merge every group of users sharing an id into one survivor."""
        report = ReconcileReport()
        users = candidates if candidates is not None else self.store.fetch_all(User)

        duplicates = {uid: group for uid, group in self.group_by_id(users).items() if len(group) > 1}
        if not duplicates:
            self.logger.debug("No duplicate users found")
            if commit:
                await self._commit(report)
            return report

        self.logger.info("Found %d user ids with duplicates", len(duplicates))

        for user_id, group in duplicates.items():
            try:
                survivor = self.choose_survivor(group)
                self._merge_group(survivor, group, report)
                report.duplicate_groups += 1
                self.logger.debug("Merged %d records for user %s", len(group), user_id)
            except Exception as e:
                self.logger.error("Could not merge duplicates of user %s: %s", user_id, e)
                report.failures.append(user_id)

        if commit:
            await self._commit(report)
        return report

    # Project crews

    def _link(self, project: Project, user: User, report: ReconcileReport) -> None:
        added = project.add_member(user)
        added = user.assign(project) or added
        if added:
            report.links_added += 1

    def _unlink_stale(self, project: Project, report: ReconcileReport) -> None:
        wanted = set(project.team_member_ids)
        stale = [m for m in project.team_members if m.id not in wanted]
        for member in stale:
            project.team_members = [m for m in project.team_members if m is not member]
            member.assigned_projects = [p for p in member.assigned_projects if p is not project]
            report.links_removed += 1

    def _placeholder(self, member_id: str, project: Project, report: ReconcileReport) -> User:
        user = User.placeholder(member_id, company_id=project.company_id or None)
        self.store.insert(user)
        report.placeholders_created += 1
        return user

    async def _resolve_member(self, member_id: str, project: Project, report: ReconcileReport) -> User:
        existing = self.store.fetch_by_id(User, member_id)
        if existing is not None:
            return existing

        if not self.is_connected:
            self.logger.warning("Offline: creating placeholder for team member %s", member_id)
            return self._placeholder(member_id, project, report)

        try:
            record = await self.remote.fetch_user(member_id)
        except RemoteServiceError as e:
            self.logger.warning("Failed to fetch team member %s: %s; using placeholder", member_id, e)
            return self._placeholder(member_id, project, report)

        user = record.to_entity()
        self.store.insert(user)
        report.users_fetched += 1
        return user

    async def reconcile_project_team_members(self, project: Project, commit: bool = True) -> ReconcileReport:
        """Make ``project.team_members`` match ``project.team_member_ids``, both directions."""
        report = ReconcileReport()
        self._unlink_stale(project, report)

        missing = [mid for mid in dict.fromkeys(project.team_member_ids) if not project.has_member(mid)]
        if missing:
            self.logger.debug("Project %s has %d unlinked team members", project.id, len(missing))

        for member_id in missing:
            try:
                user = await self._resolve_member(member_id, project, report)
                self._link(project, user, report)
            except Exception as e:
                self.logger.error("Error linking team member %s to project %s: %s", member_id, project.id, e)
                report.failures.append(member_id)

        if commit:
            await self._commit(report)
        return report

    # Placeholders

    async def enrich_placeholders(self, commit: bool = True) -> ReconcileReport:
        """Replace placeholder details with fetched data where the fetch now succeeds."""
        report = ReconcileReport()
        if not self.is_connected:
            return report

        for user in self.store.fetch(User, lambda u: u.is_placeholder):
            try:
                record = await self.remote.fetch_user(user.id)
            except RemoteServiceError as e:
                self.logger.debug("Placeholder %s still unavailable: %s", user.id, e)
                continue
            company_id = user.company_id
            record.apply_to(user)
            if user.company_id is None:
                user.company_id = company_id
            report.placeholders_enriched += 1

        if commit:
            await self._commit(report)
        return report

    # Full pass

    async def reconcile(self, projects: list[Project] | None = None) -> ReconcileReport:
        """Repair every project crew, merge duplicates, and commit once."""
        report = ReconcileReport()
        for project in projects if projects is not None else self.store.fetch_all(Project):
            report.merge(await self.reconcile_project_team_members(project, commit=False))
        report.merge(await self.enrich_placeholders(commit=False))
        report.merge(await self.reconcile_duplicates(commit=False))
        await self._commit(report)
        return report

    async def _commit(self, report: ReconcileReport) -> None:
        try:
            await self.store.save()
        except Exception as e:
            self.logger.error("Failed to save reconciliation results: %s", e)
            raise SyncError(f"Could not save reconciled data: {e}") from e
        self.logger.info(
            "Reconciled at %s: %d duplicate groups, %d users removed, %d links added, %d placeholders",
            datetime.now().isoformat(timespec="seconds"),
            report.duplicate_groups,
            report.users_deleted,
            report.links_added,
            report.placeholders_created,
        )
