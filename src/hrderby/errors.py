"""Exception types raised by the ingestion and leaderboard pipeline."""

from __future__ import annotations

from typing import Optional


class HRDerbyError(RuntimeError):
    """Base class for pipeline failures."""


class ConfigError(HRDerbyError):
    """Raised when the pipeline configuration cannot be loaded."""


class SourceUnavailable(HRDerbyError):
    """Raised when the upstream stats source cannot produce a full result."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class IdentityConflict(HRDerbyError):
    """Raised when an upstream record cannot be mapped to exactly one player."""

    def __init__(self, external_id: str, message: str) -> None:
        super().__init__(message)
        self.external_id = external_id


class ArchiveWriteFailure(HRDerbyError):
    """Raised when a snapshot or season archive write cannot be persisted."""


class CycleAborted(HRDerbyError):
    """Raised between phases when a running cycle has been asked to stop."""


class InvariantViolation(UserWarning):
    """Reported when derived data references something that does not exist."""
