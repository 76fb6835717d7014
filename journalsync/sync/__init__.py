"""Master index synchronization engine."""

from .codec import IndexCodec
from .context import SyncContext
from .engine import SyncPipeline
from .index_store import IndexStoreAdapter
from .merger import IndexMerger, MergeAction, MergeDecision, MergeResult
from .operations import EntryOperations
from .transactor import (
    EntryTransactor,
    TransferOutcome,
    TransferReport,
    purge_expired_tombstones,
)

__all__ = [
    "IndexCodec",
    "IndexStoreAdapter",
    "IndexMerger",
    "MergeAction",
    "MergeDecision",
    "MergeResult",
    "EntryOperations",
    "EntryTransactor",
    "TransferOutcome",
    "TransferReport",
    "SyncContext",
    "SyncPipeline",
    "purge_expired_tombstones",
]
