"""Execution of merge decisions and merge-on-write single-entry operations."""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..exceptions import (
    JournalSyncError,
    SyncCancelledError,
    TransferError,
    ValidationError,
)
from ..models import Entry, IndexRecord, MasterIndex
from ..utils import calculate_retry_delay, entry_key, now_millis
from .context import SyncContext
from .merger import IndexMerger, MergeAction, MergeDecision, MergeResult
from .operations import EntryOperations

logger = logging.getLogger(__name__)

# MergeAction -> statistics key
STATS_KEYS = {
    MergeAction.PULL: "pulls",
    MergeAction.PUSH: "pushes",
    MergeAction.DELETE_LOCAL: "deletes_local",
    MergeAction.DELETE_REMOTE: "deletes_remote",
    MergeAction.SKIP: "skips",
}


def create_empty_stats() -> dict:
    """Create an empty statistics dictionary."""
    return {key: 0 for key in STATS_KEYS.values()}


@dataclass
class TransferOutcome:
    """Result of executing one merge decision."""

    entry_id: str
    action: MergeAction
    success: bool
    attempts: int = 0
    error: Optional[str] = None


@dataclass
class TransferReport:
    """Per-entry outcomes of applying a merge plan."""

    outcomes: list[TransferOutcome] = field(default_factory=list)

    @property
    def stats(self) -> dict:
        """Successful actions counted per category."""
        stats = create_empty_stats()
        for outcome in self.outcomes:
            if outcome.success:
                stats[STATS_KEYS[outcome.action]] += 1
        return stats

    @property
    def failed(self) -> list[TransferOutcome]:
        return [o for o in self.outcomes if not o.success]

    def as_dict(self) -> dict[str, bool]:
        """Map of entry ID to success."""
        return {o.entry_id: o.success for o in self.outcomes}


def purge_expired_tombstones(
    index: MasterIndex, retention_ms: Optional[int], now: Optional[int] = None
) -> tuple[MasterIndex, list[str]]:
    """Drop tombstones older than the retention period.

    A device that has not synced since the purge no longer sees the
    tombstone, so its live copy wins and is pushed back.

    Args:
        index: Merged master index
        retention_ms: Retention in milliseconds; None keeps everything
        now: Current epoch milliseconds (defaults to now)

    Returns:
        Tuple of (index without expired tombstones, purged IDs)
    """
    if retention_ms is None:
        return index, []
    cutoff = (now if now is not None else now_millis()) - retention_ms
    purged = sorted(
        entry_id
        for entry_id, record in index.items()
        if record.deleted and record.last_modified < cutoff
    )
    if purged:
        logger.info(f"Purging {len(purged)} expired tombstone(s)")
    kept = {k: v for k, v in index.items() if k not in purged}
    return kept, purged


class EntryTransactor:
    """Moves entry content according to merge decisions."""

    def __init__(self, ctx: SyncContext):
        """Initialize the transactor.

        Args:
            ctx: Sync context
        """
        self.ctx = ctx
        self.operations = EntryOperations(ctx.local_store, ctx.remote)
        self.merger = IndexMerger()

    def apply(
        self,
        decisions: list[MergeDecision],
        cancel_event: Optional[threading.Event] = None,
        already_applied: frozenset = frozenset(),
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> TransferReport:
        """Execute merge decisions sequentially.

        Args:
            decisions: Decisions from IndexMerger.plan
            cancel_event: Checked before each entry; set it to stop the pass
            already_applied: IDs whose push/remote delete was already performed
            progress_callback: Optional function(done, total)

        Returns:
            TransferReport with one outcome per decision

        Raises:
            SyncCancelledError: If cancel_event was set between two entries
            TransferError: If a transfer still fails after all retries
            JournalSyncError: Any other failure aborts the pass unchanged
        """
        report = TransferReport()
        total = len(decisions)

        for done, decision in enumerate(decisions):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Sync cancelled after {done}/{total} entries")
                raise SyncCancelledError(
                    f"Sync cancelled after {done} of {total} entries", report=report
                )

            action = decision.action
            if action == MergeAction.SKIP or (
                decision.entry_id in already_applied
                and action in (MergeAction.PUSH, MergeAction.DELETE_REMOTE)
            ):
                report.outcomes.append(
                    TransferOutcome(decision.entry_id, action, success=True)
                )
            else:
                self._execute_with_retry(decision, report)

            if progress_callback:
                progress_callback(done + 1, total)

        return report

    def _execute_single_decision(self, decision: MergeDecision) -> None:
        entry_id = decision.entry_id
        if decision.action == MergeAction.PULL:
            self.operations.pull(entry_id)
        elif decision.action == MergeAction.PUSH:
            self.operations.push(entry_id)
        elif decision.action == MergeAction.DELETE_REMOTE:
            self.operations.delete_remote(entry_id)
        elif decision.action == MergeAction.DELETE_LOCAL:
            self.operations.delete_local(entry_id)

    def _execute_with_retry(
        self, decision: MergeDecision, report: TransferReport
    ) -> None:
        """Execute one decision, retrying transient transfer failures.

        Only TransferError is retried; connectivity, validation and
        not-found errors abort at once.
        """
        max_attempts = self.ctx.config.transfer_retries + 1
        action_start = time.time()

        for attempt in range(max_attempts):
            try:
                self._execute_single_decision(decision)
                report.outcomes.append(
                    TransferOutcome(
                        decision.entry_id,
                        decision.action,
                        success=True,
                        attempts=attempt + 1,
                    )
                )
                logger.debug(
                    f"{decision.action.value} {decision.entry_id} took "
                    f"{time.time() - action_start:.2f}s"
                )
                return
            except TransferError as e:
                if attempt < max_attempts - 1:
                    delay = calculate_retry_delay(self.ctx.config.retry_delay, attempt)
                    logger.warning(
                        f"{decision.action.value} {decision.entry_id} failed "
                        f"(attempt {attempt + 1}/{max_attempts}), "
                        f"retrying in {delay:.1f}s: {e}"
                    )
                    time.sleep(delay)
                    continue
                self._record_failure(decision, report, e, attempt + 1)
                if e.entry_id is None:
                    e.entry_id = decision.entry_id
                    e.action = decision.action.value
                e.report = report
                raise
            except JournalSyncError as e:
                self._record_failure(decision, report, e, attempt + 1)
                raise

    @staticmethod
    def _record_failure(
        decision: MergeDecision,
        report: TransferReport,
        error: Exception,
        attempts: int,
    ) -> None:
        logger.error(f"Failed to {decision.action.value} {decision.entry_id}: {error}")
        report.outcomes.append(
            TransferOutcome(
                decision.entry_id,
                decision.action,
                success=False,
                attempts=attempts,
                error=str(error),
            )
        )

    # ----- merge-on-write ----- #

    def merge_and_persist(
        self,
        local: MasterIndex,
        remote: Optional[MasterIndex] = None,
        already_applied: frozenset = frozenset(),
        cancel_event: Optional[threading.Event] = None,
    ) -> tuple[MergeResult, TransferReport]:
        """Merge against the remote index, apply, persist both sides.

        The merged index is persisted only after every transfer succeeded.

        Args:
            local: Local master index (possibly with pending changes)
            remote: Remote master index (loaded now if not given)
            already_applied: IDs whose remote side was already written
            cancel_event: Optional cancellation event

        Returns:
            Tuple of (merge result, transfer report)
        """
        indexes = self.ctx.indexes
        if remote is None:
            remote = indexes.load_remote()
        result = self.merger.plan(local, remote)
        report = self.apply(
            result.decisions,
            cancel_event=cancel_event,
            already_applied=already_applied,
        )
        result.merged, _ = purge_expired_tombstones(
            result.merged, self.ctx.config.tombstone_retention_ms
        )
        indexes.save_local(result.merged)
        indexes.save_remote(result.merged)
        return result, report

    def put_entry(self, entry: Entry) -> MasterIndex:
        """Push an entry and record it in both indexes.

        Args:
            entry: Entry with last_modified set by the caller

        Returns:
            The merged master index

        Raises:
            ValidationError: If entry.last_modified is not set
        """
        if not entry.last_modified:
            raise ValidationError("entry lastModified is required")
        entry_key(entry.id)

        with self.ctx.exclusive():
            logger.info(f"Putting entry {entry.id}")
            local = self.ctx.indexes.load_local()
            remote = self.ctx.indexes.load_remote()

            previous = local.get(entry.id)
            if previous is not None and previous.last_modified > entry.last_modified:
                logger.warning(
                    f"Entry {entry.id} lastModified {entry.last_modified} is older "
                    f"than its index record ({previous.last_modified})"
                )

            applied: frozenset = frozenset()
            remote_record = remote.get(entry.id)
            if (
                remote_record is not None
                and remote_record.last_modified > entry.last_modified
            ):
                # Remote holds a newer write; the merge pulls it instead
                logger.warning(
                    f"Remote copy of {entry.id} is newer "
                    f"({remote_record.last_modified}), not overwriting it"
                )
            else:
                self.operations.put_remote(entry)
                applied = frozenset({entry.id})

            local[entry.id] = IndexRecord(
                last_modified=entry.last_modified, deleted=False
            )
            result, _ = self.merge_and_persist(
                local, remote=remote, already_applied=applied
            )
            return result.merged

    def delete_entry(self, entry_id: str) -> MasterIndex:
        """Delete an entry remotely and tombstone it in both indexes.

        Args:
            entry_id: ID of the entry to delete

        Returns:
            The merged master index
        """
        entry_key(entry_id)

        with self.ctx.exclusive():
            logger.info(f"Deleting entry {entry_id}")
            local = self.ctx.indexes.load_local()
            remote = self.ctx.indexes.load_remote()

            # The tombstone must win over both copies, even if the clock lags
            last_modified = now_millis()
            for record in (local.get(entry_id), remote.get(entry_id)):
                if record is not None and last_modified <= record.last_modified:
                    last_modified = record.last_modified + 1
            local[entry_id] = IndexRecord(last_modified=last_modified, deleted=True)

            self.operations.delete_remote(entry_id)
            result, _ = self.merge_and_persist(
                local, remote=remote, already_applied=frozenset({entry_id})
            )
            return result.merged
