"""Schema definitions for the field operations core."""

from .entities import (
    Company,
    Project,
    ProjectStatus,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
    UserRole,
)
from .records import CompanyRecord, ProjectRecord, UserRecord

__all__ = [
    "User",
    "UserRole",
    "Project",
    "ProjectStatus",
    "Company",
    "SubscriptionStatus",
    "SubscriptionPlan",
    "UserRecord",
    "CompanyRecord",
    "ProjectRecord",
]
