"""Data health checks and recovery."""

from .monitor import (
    RECOVERY_ACTIONS,
    HealthCheckResult,
    HealthMonitor,
    HealthState,
    OnboardingStep,
    RecoveryAction,
    RecoveryActionType,
    recovery_action_for,
)
from .recovery import RecoveryExecutor

__all__ = [
    "HealthMonitor",
    "HealthState",
    "HealthCheckResult",
    "RecoveryAction",
    "RecoveryActionType",
    "RECOVERY_ACTIONS",
    "OnboardingStep",
    "RecoveryExecutor",
    "recovery_action_for",
]
