"""
Pytest configuration and shared fixtures for field ops tests.
"""

import asyncio
import tempfile
from collections.abc import Generator
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from fieldops.errors import RecordNotFoundError, RemoteServiceError
from fieldops.remote.directory import RemoteDirectoryService
from fieldops.schema.records import CompanyRecord, ProjectRecord, UserRecord


class FakeDirectory(RemoteDirectoryService):
    """In-memory directory service with switchable failures."""

    def __init__(self):
        self.users: dict[str, UserRecord] = {}
        self.companies: dict[str, CompanyRecord] = {}
        self.projects: dict[str, list[ProjectRecord]] = {}

        self.unreachable = False
        self.failing_users: set[str] = set()
        self.seat_failures = 0
        self.seat_failure_status: int | None = 500
        self.seat_transform = None
        self.seat_delay = 0.0

        self.user_fetches: list[str] = []
        self.seat_updates: list[tuple[str, list[str]]] = []
        self.closed = False

    def _check_reachable(self) -> None:
        if self.unreachable:
            raise RemoteServiceError("Could not reach directory service")

    def add_user(self, user_id: str, company_id: str | None = "c1", **fields) -> UserRecord:
        record = UserRecord(
            id=user_id,
            first_name=fields.pop("first_name", f"First-{user_id}"),
            last_name=fields.pop("last_name", f"Last-{user_id}"),
            company_id=company_id,
            **fields,
        )
        self.users[user_id] = record
        return record

    def add_company(self, company_id: str = "c1", **fields) -> CompanyRecord:
        record = CompanyRecord(id=company_id, **fields)
        self.companies[company_id] = record
        return record

    def add_project(self, project_id: str, company_id: str = "c1", **fields) -> ProjectRecord:
        record = ProjectRecord(id=project_id, company_id=company_id, **fields)
        projects = [p for p in self.projects.get(company_id, []) if p.id != project_id]
        projects.append(record)
        self.projects[company_id] = projects
        return record

    async def fetch_user(self, user_id: str) -> UserRecord:
        self._check_reachable()
        self.user_fetches.append(user_id)
        if user_id in self.failing_users:
            raise RemoteServiceError(f"Lookup of {user_id} failed", status_code=503)
        if user_id not in self.users:
            raise RecordNotFoundError(f"/api/users/{user_id} not found", status_code=404)
        return self.users[user_id].model_copy(deep=True)

    async def fetch_company(self, company_id: str) -> CompanyRecord:
        self._check_reachable()
        if company_id not in self.companies:
            raise RecordNotFoundError(f"/api/companies/{company_id} not found", status_code=404)
        return self.companies[company_id].model_copy(deep=True)

    async def update_company_seats(self, company_id: str, seated_employee_ids: list[str]) -> CompanyRecord:
        self._check_reachable()
        self.seat_updates.append((company_id, list(seated_employee_ids)))
        if self.seat_delay:
            await asyncio.sleep(self.seat_delay)
        if self.seat_failures > 0:
            self.seat_failures -= 1
            raise RemoteServiceError("Seat update failed", status_code=self.seat_failure_status)

        ids = list(seated_employee_ids)
        if self.seat_transform is not None:
            ids = self.seat_transform(ids)
        company = self.companies[company_id]
        company.seated_employee_ids = ids
        return company.model_copy(deep=True)

    async def fetch_company_projects(self, company_id: str) -> list[ProjectRecord]:
        self._check_reachable()
        return [p.model_copy(deep=True) for p in self.projects.get(company_id, [])]

    async def close(self) -> None:
        self.closed = True


class FixedClock:
    """Settable clock for time-dependent code."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)


@pytest.fixture
def clock() -> FixedClock:
    """Clock fixed at noon on a known day."""
    return FixedClock(datetime(2026, 3, 10, 12, 0))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def directory() -> FakeDirectory:
    """Directory with one company, an admin and two crew members."""
    fake = FakeDirectory()
    fake.add_company(
        "c1",
        name="Acme Roofing",
        subscription_status="active",
        subscription_plan="team",
        max_seats=5,
        seated_employee_ids=["admin", "u2"],
        admin_ids=["admin"],
    )
    fake.add_user("admin", role="admin")
    fake.add_user("u2")
    fake.add_user("u3")
    return fake


@pytest.fixture
def memory_store():
    """Create a MemoryObjectStore instance for testing."""
    from fieldops.storage import MemoryObjectStore

    return MemoryObjectStore()


@pytest.fixture
def session():
    """In-memory session store."""
    from fieldops.storage import SessionStore

    return SessionStore()


@pytest.fixture
def controller(session, directory, memory_store):
    """Data controller with a store attached and no sync engine."""
    from fieldops.controller import DataController

    return DataController(session, directory, store=memory_store)


@pytest.fixture
async def signed_in(controller, directory):
    """Controller whose current user (the admin) and company are stored locally."""
    controller.session.sign_in("admin", "c1")
    controller.current_user = controller.merge_user(directory.users["admin"])
    controller.merge_company(directory.companies["c1"])
    await controller.save()
    return controller


@pytest.fixture
def scheduler():
    """Notification scheduler that only records requests."""
    from fieldops.notifications import NotificationScheduler

    return NotificationScheduler()


@pytest.fixture
def batcher(scheduler):
    """Batch collector without a preference filter."""
    from fieldops.notifications import NotificationBatchCollector

    return NotificationBatchCollector(scheduler)


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
