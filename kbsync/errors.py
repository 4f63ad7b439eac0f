"""Exception hierarchy shared by the kbsync core."""

from __future__ import annotations


class KbSyncError(RuntimeError):
    """Base class for every failure raised by kbsync."""


class NotFoundError(KbSyncError):
    """Raised when a path or resource does not exist in a source."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class TransientServerError(KbSyncError):
    """Raised when a collaborator call fails at the transport or server level."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvariantViolation(KbSyncError):
    """Raised when internal state is found in a non-canonical form."""


class InvalidResourceError(KbSyncError, ValueError):
    """Raised when a collaborator payload cannot be parsed."""
