"""Subscription access gate and seat management."""

from .gate import LockoutReason, lockout_reason, should_lockout_user
from .subscription import SubscriptionManager, SubscriptionState

__all__ = [
    "should_lockout_user",
    "lockout_reason",
    "LockoutReason",
    "SubscriptionManager",
    "SubscriptionState",
]
