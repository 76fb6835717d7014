"""Full bidirectional sync pass over the master index."""

import logging
import threading
import time
from typing import Optional

from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from ..models import MasterIndex
from ..output import OutputFormatter
from .context import SyncContext
from .merger import IndexMerger, MergeDecision, MergeResult
from .transactor import (
    STATS_KEYS,
    EntryTransactor,
    TransferReport,
    create_empty_stats,
    purge_expired_tombstones,
)

logger = logging.getLogger(__name__)


class SyncPipeline:
    """Orchestrates load, merge, transfer and persist of both indexes."""

    def __init__(
        self,
        ctx: SyncContext,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize the pipeline.

        Args:
            ctx: Sync context
            output: Output formatter for progress/status (quiet by default)
        """
        self.ctx = ctx
        self.output = output or OutputFormatter(quiet=True)
        self.merger = IndexMerger()
        self.transactor = EntryTransactor(ctx)
        self.last_stats: dict = create_empty_stats()
        self.last_report: Optional[TransferReport] = None

    @property
    def _silent(self) -> bool:
        return self.output.quiet or self.output.json_output

    def run(
        self,
        dry_run: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> MasterIndex:
        """Run one full sync pass.

        Args:
            dry_run: If True, only show what would be done
            cancel_event: Set to stop between two entries

        Returns:
            The merged master index (the planned one for a dry run)

        Raises:
            JournalSyncError: Any failure aborts the pass before the merged
                index is persisted
        """
        with self.ctx.exclusive():
            start_time = time.time()
            indexes = self.ctx.indexes

            # Step 1 + 2: load both indexes
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                transient=True,
                disable=self._silent,
            ) as progress:
                task = progress.add_task("Loading local index...", total=None)
                local = indexes.load_local()
                if self.ctx.config.heartbeat_write and not dry_run:
                    logger.debug("Writing local index to remote before merge")
                    indexes.save_remote(local)
                progress.update(task, description="Loading remote index...")
                remote = indexes.load_remote(create_missing=not dry_run)

            # Step 3: plan and apply transfers
            result = self.merger.plan(local, remote)
            self.last_stats = self._categorize_decisions(result.decisions)
            self._display_sync_plan(result, dry_run)

            if dry_run:
                if not self._silent:
                    self._display_summary(self.last_stats, dry_run=True)
                return result.merged

            self.last_report = self._apply(result, cancel_event)
            self.last_stats = self.last_report.stats

            # Step 4 + 5: persist the merged index on both sides
            merged, purged = purge_expired_tombstones(
                result.merged, self.ctx.config.tombstone_retention_ms
            )
            indexes.save_local(merged)
            indexes.save_remote(merged)

            logger.info(
                f"Sync finished in {time.time() - start_time:.2f}s: {self.last_stats}"
            )
            if not self._silent:
                self._display_summary(self.last_stats, dry_run=False, purged=purged)
            return merged

    def _apply(
        self, result: MergeResult, cancel_event: Optional[threading.Event]
    ) -> TransferReport:
        transfers = result.transfers
        if self._silent or not transfers:
            return self.transactor.apply(result.decisions, cancel_event=cancel_event)

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
        ) as progress:
            task = progress.add_task("Syncing entries...", total=len(result.decisions))
            return self.transactor.apply(
                result.decisions,
                cancel_event=cancel_event,
                progress_callback=lambda done, _: progress.update(task, completed=done),
            )

    def _categorize_decisions(self, decisions: list[MergeDecision]) -> dict:
        """Count decisions per action."""
        stats = create_empty_stats()
        for decision in decisions:
            stats[STATS_KEYS[decision.action]] += 1
        return stats

    def _display_sync_plan(self, result: MergeResult, dry_run: bool) -> None:
        """Display sync plan to user."""
        if self._silent:
            return

        stats = self.last_stats
        self.output.info("Sync plan:")
        if stats["pushes"] > 0:
            self.output.info(f"  ↑ Push: {stats['pushes']} entry(ies)")
        if stats["pulls"] > 0:
            self.output.info(f"  ↓ Pull: {stats['pulls']} entry(ies)")
        if stats["deletes_local"] > 0:
            self.output.info(f"  ✗ Delete local: {stats['deletes_local']} entry(ies)")
        if stats["deletes_remote"] > 0:
            self.output.info(
                f"  ✗ Delete remote: {stats['deletes_remote']} entry(ies)"
            )
        if stats["skips"] > 0:
            self.output.info(f"  = In sync: {stats['skips']} entry(ies)")

        if dry_run:
            for decision in result.transfers:
                self.output.info(
                    f"  {decision.action.value:<14} {decision.entry_id}: "
                    f"{decision.reason}"
                )
        self.output.print("")

    def _display_summary(
        self, stats: dict, dry_run: bool, purged: Optional[list[str]] = None
    ) -> None:
        """Display sync summary."""
        if dry_run:
            self.output.success("Dry run complete!")
            return
        self.output.success("Sync complete!")

        total_actions = sum(
            stats[key] for key in STATS_KEYS.values() if key != "skips"
        )
        if total_actions > 0:
            self.output.info(f"Total actions: {total_actions}")
            if stats["pushes"] > 0:
                self.output.info(f"  Pushed: {stats['pushes']}")
            if stats["pulls"] > 0:
                self.output.info(f"  Pulled: {stats['pulls']}")
            if stats["deletes_local"] > 0:
                self.output.info(f"  Deleted locally: {stats['deletes_local']}")
            if stats["deletes_remote"] > 0:
                self.output.info(f"  Deleted remotely: {stats['deletes_remote']}")
        else:
            self.output.info("No changes needed - everything is in sync!")
        if purged:
            self.output.info(f"Purged {len(purged)} expired tombstone(s)")
