"""Exception hierarchy for journalsync."""

from typing import Any, Optional


class JournalSyncError(Exception):
    """Base exception for all journalsync errors."""


class ConfigError(JournalSyncError):
    """Cloud configuration is missing or invalid."""


class ConnectivityError(JournalSyncError):
    """Remote store is unreachable or rejected the credentials."""


class ValidationError(JournalSyncError):
    """A master index or entry payload is malformed."""


class NotFoundError(JournalSyncError):
    """An expected record (local index, entry) does not exist."""


class TransferError(JournalSyncError):
    """A single get/put/delete during a merge failed.

    Attributes:
        entry_id: ID of the entry being transferred, if known
        action: Transfer action that failed, if known
        report: Partial transfer report at the time of failure, if any
    """

    def __init__(
        self,
        message: str,
        entry_id: Optional[str] = None,
        action: Optional[str] = None,
    ):
        super().__init__(message)
        self.entry_id = entry_id
        self.action = action
        self.report: Optional[Any] = None


class SyncInProgressError(JournalSyncError):
    """Another index-mutating operation holds the sync guard."""


class SyncCancelledError(JournalSyncError):
    """A sync pass was cancelled between two entries.

    Attributes:
        report: Transfer report covering the entries processed before cancellation
    """

    def __init__(self, message: str, report: Optional[Any] = None):
        super().__init__(message)
        self.report = report
