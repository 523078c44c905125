"""
Synchronization with the remote directory.

Provides:
- The sync engine and its background manager
- The entity reconciler that repairs the local relationship graph
"""

from .engine import SyncEngine, SyncManager, SyncState, SyncStatus
from .reconciler import EntityReconciler, ReconcileReport

__all__ = [
    "SyncEngine",
    "SyncManager",
    "SyncState",
    "SyncStatus",
    "EntityReconciler",
    "ReconcileReport",
]
