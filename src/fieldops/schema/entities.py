"""
Local entities: the user, project and company records cached on device.

Entities compare by identity, not by value. Two ``User`` objects that share
an ``id`` are distinct records until the reconciler merges them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class UserRole(str, Enum):
    """Role of a user inside their company."""

    ADMIN = "admin"
    OFFICE_CREW = "officeCrew"
    FIELD_CREW = "fieldCrew"


class ProjectStatus(str, Enum):
    """Lifecycle status of a project."""

    RFQ = "RFQ"
    ESTIMATED = "Estimated"
    ACCEPTED = "Accepted"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CLOSED = "Closed"
    ARCHIVED = "Archived"


class SubscriptionStatus(str, Enum):
    """Subscription status of a company."""

    TRIAL = "trial"
    ACTIVE = "active"
    GRACE = "grace"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: str | None) -> SubscriptionStatus | None:
        """Parse a raw status; missing or unknown values yield None."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @property
    def display_name(self) -> str:
        return {
            SubscriptionStatus.TRIAL: "Trial",
            SubscriptionStatus.ACTIVE: "Active",
            SubscriptionStatus.GRACE: "Grace Period",
            SubscriptionStatus.EXPIRED: "Expired",
            SubscriptionStatus.CANCELLED: "Cancelled",
        }[self]

    @property
    def allows_access(self) -> bool:
        return self in (SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE, SubscriptionStatus.GRACE)

    @property
    def shows_warning(self) -> bool:
        return self == SubscriptionStatus.GRACE


class SubscriptionPlan(str, Enum):
    """Subscription plan of a company."""

    TRIAL = "trial"
    STARTER = "starter"
    TEAM = "team"
    BUSINESS = "business"

    @classmethod
    def parse(cls, value: str | None) -> SubscriptionPlan | None:
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def max_seats(self) -> int:
        return {
            SubscriptionPlan.TRIAL: 10,
            SubscriptionPlan.STARTER: 3,
            SubscriptionPlan.TEAM: 5,
            SubscriptionPlan.BUSINESS: 10,
        }[self]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Aware UTC copy of ``value``. Naive values are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _days_until(end: datetime | None, now: datetime | None = None) -> int | None:
    """Whole days left until ``end``, rounded up; None when there is no end date."""
    if end is None:
        return None
    now = as_utc(now or utc_now())
    return math.ceil((as_utc(end) - now).total_seconds() / 86400)


@dataclass(eq=False)
class User:
    """A member of a company."""

    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    role: UserRole = UserRole.FIELD_CREW
    company_id: str | None = None

    # Relationship (inverse of Project.team_members)
    assigned_projects: list[Project] = field(default_factory=list, repr=False)

    # Sync bookkeeping
    last_synced_at: datetime | None = None
    needs_sync: bool = False
    is_placeholder: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def is_assigned_to(self, project: Project) -> bool:
        return any(p.id == project.id for p in self.assigned_projects)

    def assign(self, project: Project) -> bool:
        """Add ``project`` to the assigned set. Returns False if already there."""
        if self.is_assigned_to(project):
            return False
        self.assigned_projects.append(project)
        return True

    @classmethod
    def placeholder(cls, user_id: str, company_id: str | None = None) -> User:
        """Minimal stand-in for a team member that could not be fetched."""
        return cls(
            id=user_id,
            first_name="Team Member",
            last_name=f"#{user_id[-4:]}",
            role=UserRole.FIELD_CREW,
            company_id=company_id,
            needs_sync=True,
            is_placeholder=True,
        )


@dataclass(eq=False)
class Project:
    """A job site project with an assigned crew."""

    id: str
    company_id: str = ""
    title: str = ""
    status: ProjectStatus = ProjectStatus.ACCEPTED
    start_date: datetime | None = None
    end_date: datetime | None = None

    # Denormalized ids as delivered by the server, in server order
    team_member_ids: list[str] = field(default_factory=list)
    team_members: list[User] = field(default_factory=list, repr=False)

    last_synced_at: datetime | None = None
    needs_sync: bool = False

    def linked_member_ids(self) -> set[str]:
        return {u.id for u in self.team_members}

    def has_member(self, user_id: str) -> bool:
        return any(u.id == user_id for u in self.team_members)

    def add_member(self, user: User) -> bool:
        """Add ``user`` to the crew. Returns False if a user with that id is linked."""
        if self.has_member(user.id):
            return False
        self.team_members.append(user)
        return True

    def is_consistent(self) -> bool:
        """True when the linked members match the denormalized id list."""
        return self.linked_member_ids() == set(self.team_member_ids)


@dataclass(eq=False)
class Company:
    """A customer company and its subscription."""

    id: str
    name: str = ""
    subscription_status: SubscriptionStatus | None = None
    subscription_plan: SubscriptionPlan | None = None
    max_seats: int = 0
    seated_employee_ids: list[str] = field(default_factory=list)
    admin_ids: list[str] = field(default_factory=list)

    trial_start_date: datetime | None = None
    trial_end_date: datetime | None = None
    seat_grace_start_date: datetime | None = None
    grace_end_date: datetime | None = None

    has_priority_support: bool = False

    last_synced_at: datetime | None = None
    needs_sync: bool = False

    @property
    def seated_count(self) -> int:
        return len(self.seated_employee_ids)

    def has_available_seats(self) -> bool:
        return self.seated_count < self.max_seats

    def has_seat(self, user_id: str) -> bool:
        return user_id in self.seated_employee_ids

    def is_admin(self, user_id: str) -> bool:
        return user_id in self.admin_ids

    def seats_within_limit(self) -> bool:
        return self.seated_count <= self.max_seats

    def days_remaining_in_trial(self, now: datetime | None = None) -> int | None:
        return _days_until(self.trial_end_date, now)

    def days_remaining_in_grace_period(self, now: datetime | None = None) -> int | None:
        if self.subscription_status != SubscriptionStatus.GRACE:
            return None
        return _days_until(self.grace_end_date, now)

    @property
    def should_show_grace_period_warning(self) -> bool:
        return self.subscription_status == SubscriptionStatus.GRACE
