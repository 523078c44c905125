"""Clients for the remote system of record."""

from .directory import HttpDirectoryService, RemoteDirectoryService
from .retry import NO_RETRY, RetryPolicy

__all__ = [
    "RemoteDirectoryService",
    "HttpDirectoryService",
    "RetryPolicy",
    "NO_RETRY",
]
