"""Domain errors raised by the sync engine.

These are transport-agnostic; ``quizsync.core.errors`` maps them onto HTTP
status codes and the response envelope.
"""

from typing import Any


class SyncError(Exception):
    """Base class for request-level sync failures."""

    code = "SYNC_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | list[Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class BatchTooLargeError(SyncError):
    """Push batch exceeds the configured session/result bounds."""

    code = "BATCH_TOO_LARGE"


class SyncDisabledError(SyncError):
    """Automatic sync is switched off by remote configuration."""

    code = "SYNC_DISABLED"


class SessionNotFoundError(SyncError):
    """Session does not exist for the authenticated owner."""

    code = "SESSION_NOT_FOUND"


class InvalidStatusTransitionError(SyncError):
    """Session lifecycle forbids the requested status change."""

    code = "INVALID_STATUS_TRANSITION"


class NoValidUpdatesError(SyncError):
    """Partial update request carries no fields to apply."""

    code = "NO_VALID_UPDATES"


class InvalidUpdateError(SyncError):
    """Partial update would leave the session in an invalid state."""

    code = "INVALID_UPDATE"


class ItemRejectedError(SyncError):
    """A single pushed item cannot be applied.

    Caught by the reconciler and reported as that item's failure; it never
    aborts the rest of the batch.
    """

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
