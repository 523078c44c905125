"""
Field Ops client core

Keeps a field crew's local data trustworthy between syncs with the server.

The system provides:
- Reconciliation of duplicate users and project crews after sync
- Data health checks with automatic recovery
- Subscription lockout decisions and seat management
- Batched, filtered notifications for sync-time changes

Quick Start:
    from fieldops import FieldOpsAPI, Settings

    api = FieldOpsAPI(Settings.from_env())
    await api.initialize()

    # Repair local state, then sync
    await api.recover()
    await api.sync()

    # Decide access
    state = api.check_subscription_status()
"""

__version__ = "0.1.0"

# Access
from fieldops.access import LockoutReason, SubscriptionManager, should_lockout_user

# High-level API
from fieldops.api.field_ops_api import FieldOpsAPI

# Configuration
from fieldops.config import Settings
from fieldops.controller import DataController
from fieldops.errors import (
    AuthorizationError,
    CapacityError,
    ConfigurationError,
    FieldOpsError,
    LocalCommitError,
    NoCompanyError,
    SyncError,
)

# Health
from fieldops.health import HealthMonitor, HealthState, RecoveryAction, RecoveryExecutor

# Notifications
from fieldops.notifications import (
    BatchedNotification,
    NotificationBatchCollector,
    NotificationType,
)

# Schema
from fieldops.schema import Company, Project, SubscriptionStatus, User

# Sync
from fieldops.sync import EntityReconciler, SyncEngine

__all__ = [
    # Version
    "__version__",
    # Schema
    "User",
    "Project",
    "Company",
    "SubscriptionStatus",
    # API
    "FieldOpsAPI",
    "Settings",
    "DataController",
    # Errors
    "FieldOpsError",
    "ConfigurationError",
    "AuthorizationError",
    "CapacityError",
    "NoCompanyError",
    "SyncError",
    "LocalCommitError",
    # Sync
    "EntityReconciler",
    "SyncEngine",
    # Health
    "HealthMonitor",
    "HealthState",
    "RecoveryAction",
    "RecoveryExecutor",
    # Access
    "should_lockout_user",
    "LockoutReason",
    "SubscriptionManager",
    # Notifications
    "NotificationBatchCollector",
    "BatchedNotification",
    "NotificationType",
]
