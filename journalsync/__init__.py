"""journalsync - master index synchronization for a personal journal."""

from .api import delete_entry, init_client, put_entry, run_sync_pipeline
from .config import CloudConfig, ConfigManager
from .exceptions import (
    ConfigError,
    ConnectivityError,
    JournalSyncError,
    NotFoundError,
    SyncCancelledError,
    SyncInProgressError,
    TransferError,
    ValidationError,
)
from .models import Entry, IndexRecord, MasterIndex
from .sync import SyncContext, SyncPipeline

__version__ = "0.1.0"

__all__ = [
    "init_client",
    "run_sync_pipeline",
    "put_entry",
    "delete_entry",
    "CloudConfig",
    "ConfigManager",
    "Entry",
    "IndexRecord",
    "MasterIndex",
    "SyncContext",
    "SyncPipeline",
    "JournalSyncError",
    "ConfigError",
    "ConnectivityError",
    "NotFoundError",
    "SyncCancelledError",
    "SyncInProgressError",
    "TransferError",
    "ValidationError",
]
