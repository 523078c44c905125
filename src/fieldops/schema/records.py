"""Pydantic models for records returned by the remote directory service."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from .entities import (
    Company,
    Project,
    ProjectStatus,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
    UserRole,
    as_utc,
)

_RECORD_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "extra": "ignore",
}


def _none_if_blank(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class UserRecord(BaseModel):
    """A user as the server knows it."""

    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    role: str | None = None
    company_id: str | None = None

    model_config = _RECORD_CONFIG

    @field_validator("company_id", mode="before")
    @classmethod
    def _blank_company(cls, value: str | None) -> str | None:
        return _none_if_blank(value)

    def _role(self) -> UserRole:
        try:
            return UserRole(self.role) if self.role else UserRole.FIELD_CREW
        except ValueError:
            return UserRole.FIELD_CREW

    def to_entity(self) -> User:
        """Create a new local user from this record."""
        user = User(id=self.id)
        self.apply_to(user)
        return user

    def apply_to(self, user: User) -> User:
        """Merge this record into an existing local user (relationships are kept)."""
        user.first_name = self.first_name
        user.last_name = self.last_name
        user.email = self.email
        user.role = self._role()
        if self.company_id is not None:
            user.company_id = self.company_id
        user.last_synced_at = datetime.now()
        user.needs_sync = False
        user.is_placeholder = False
        return user


class CompanyRecord(BaseModel):
    """A company and its subscription as the server knows it."""

    id: str
    name: str = ""
    subscription_status: str | None = None
    subscription_plan: str | None = None
    max_seats: int = 0
    seated_employee_ids: list[str] = Field(default_factory=list)
    admin_ids: list[str] = Field(default_factory=list)
    trial_start_date: datetime | None = None
    trial_end_date: datetime | None = None
    seat_grace_start_date: datetime | None = None
    grace_end_date: datetime | None = None
    has_priority_support: bool = False

    model_config = _RECORD_CONFIG

    @field_validator("seated_employee_ids", "admin_ids", mode="before")
    @classmethod
    def _null_list(cls, value: list[str] | None) -> list[str]:
        return [v for v in (value or []) if v]

    @field_validator("trial_start_date", "trial_end_date", "seat_grace_start_date", "grace_end_date")
    @classmethod
    def _utc_dates(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    @field_validator("max_seats", mode="before")
    @classmethod
    def _null_seats(cls, value: int | None) -> int:
        return 0 if value is None else value

    def to_entity(self) -> Company:
        company = Company(id=self.id)
        self.apply_to(company)
        return company

    def apply_to(self, company: Company) -> Company:
        """Merge this record into an existing local company."""
        company.name = self.name
        company.subscription_status = SubscriptionStatus.parse(self.subscription_status)
        company.subscription_plan = SubscriptionPlan.parse(self.subscription_plan)
        company.max_seats = self.max_seats
        company.seated_employee_ids = list(self.seated_employee_ids)
        company.admin_ids = list(self.admin_ids)
        company.trial_start_date = self.trial_start_date
        company.trial_end_date = self.trial_end_date
        company.seat_grace_start_date = self.seat_grace_start_date
        company.grace_end_date = self.grace_end_date
        company.has_priority_support = self.has_priority_support
        company.last_synced_at = datetime.now()
        company.needs_sync = False
        return company


class ProjectRecord(BaseModel):
    """A project as the server knows it."""

    id: str
    company_id: str = ""
    title: str = ""
    status: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    team_member_ids: list[str] = Field(default_factory=list)

    model_config = _RECORD_CONFIG

    @field_validator("team_member_ids", mode="before")
    @classmethod
    def _null_list(cls, value: list[str] | None) -> list[str]:
        return [v for v in (value or []) if v]

    @field_validator("start_date", "end_date")
    @classmethod
    def _utc_dates(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    def _status(self) -> ProjectStatus:
        try:
            return ProjectStatus(self.status) if self.status else ProjectStatus.ACCEPTED
        except ValueError:
            return ProjectStatus.ACCEPTED

    def to_entity(self) -> Project:
        project = Project(id=self.id)
        self.apply_to(project)
        return project

    def apply_to(self, project: Project) -> Project:
        """Merge into a local project. Linked members are repaired by the reconciler."""
        project.company_id = self.company_id
        project.title = self.title
        project.status = self._status()
        project.start_date = self.start_date
        project.end_date = self.end_date
        project.team_member_ids = list(self.team_member_ids)
        project.last_synced_at = datetime.now()
        project.needs_sync = False
        return project
