"""
Error types for the field operations core.

Every error carries a user-facing ``message``; callers in the presentation
layer show that text and never the raw exception.
"""

from __future__ import annotations


class FieldOpsError(Exception):
    """Base class for all errors raised by this package."""

    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationError(FieldOpsError):
    """A required local invariant is missing (user id, store, sync engine)."""

    default_message = "Local data is incomplete"


class NoCompanyError(ConfigurationError):
    """No company could be resolved for the current user."""

    default_message = "No company found"


class AuthorizationError(FieldOpsError):
    """The caller may not perform this operation."""

    default_message = "You are not authorized to perform this action"


class CannotRemoveOwnSeatError(AuthorizationError):
    """An admin tried to remove their own seat."""

    default_message = "You cannot remove your own seat"


class CapacityError(FieldOpsError):
    """No seats are left on the company's plan."""

    default_message = "No available seats. Please upgrade your plan."


class SyncError(FieldOpsError):
    """A remote call or a store commit failed."""

    default_message = "Failed to sync with server"


class LocalCommitError(SyncError):
    """The server accepted a change but saving it to the local store failed."""

    default_message = "Saved on the server, but this device could not store the change"


class RemoteServiceError(SyncError):
    """The remote directory service could not be reached or returned bad data."""

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class RecordNotFoundError(RemoteServiceError):
    """The remote directory has no record with the requested id."""

    default_message = "Record not found"
