"""Per-entry reconciliation of the local and remote master indexes."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, cast

from ..models import IndexRecord, MasterIndex

logger = logging.getLogger(__name__)


class MergeAction(str, Enum):
    """Transfers that can be decided for an entry."""

    PULL = "pull"
    """Copy remote entry content into the local store"""

    PUSH = "push"
    """Copy local entry content to the remote store"""

    DELETE_LOCAL = "delete_local"
    """Delete the local entry"""

    DELETE_REMOTE = "delete_remote"
    """Delete the remote entry object"""

    SKIP = "skip"
    """Both sides already agree"""


@dataclass
class MergeDecision:
    """Decision about how to reconcile one entry."""

    entry_id: str
    """Entry ID"""

    action: MergeAction
    """Transfer to perform"""

    reason: str
    """Human-readable reason for this decision"""

    local: Optional[IndexRecord]
    """Local index record (if present)"""

    remote: Optional[IndexRecord]
    """Remote index record (if present)"""

    merged: IndexRecord
    """Record the merged index holds once the transfer succeeded"""


@dataclass
class MergeResult:
    """Merged index plus the transfers needed to make it true on both sides."""

    merged: MasterIndex = field(default_factory=dict)
    decisions: list[MergeDecision] = field(default_factory=list)

    @property
    def transfers(self) -> list[MergeDecision]:
        """Decisions that require a transfer."""
        return [d for d in self.decisions if d.action != MergeAction.SKIP]


class IndexMerger:
    """Last-writer-wins merge of two master indexes with tombstones.

    Equal ``lastModified`` values are treated as already synchronized and keep
    the local record. The merger only decides; EntryTransactor executes.
    """

    def plan(self, local: MasterIndex, remote: MasterIndex) -> MergeResult:
        """Compare both indexes and decide one action per entry.

        Args:
            local: Local master index
            remote: Remote master index

        Returns:
            MergeResult with the merged index and one decision per ID in the
            union of both key sets, in sorted ID order
        """
        result = MergeResult()

        for entry_id in sorted(set(local) | set(remote)):
            decision = self._decide(entry_id, local.get(entry_id), remote.get(entry_id))
            logger.debug(
                f"{entry_id}: {decision.action.value} ({decision.reason})"
            )
            result.decisions.append(decision)
            result.merged[entry_id] = decision.merged

        return result

    def _decide(
        self,
        entry_id: str,
        local: Optional[IndexRecord],
        remote: Optional[IndexRecord],
    ) -> MergeDecision:
        if local is None and remote is None:
            raise ValueError(f"No index record for {entry_id} on either side")

        # Case 1: entry only known remotely
        if local is None:
            return self._handle_remote_only(entry_id, cast(IndexRecord, remote))

        # Case 2: entry only known locally
        if remote is None:
            return self._handle_local_only(entry_id, local)

        return self._compare_records(entry_id, local, remote)

    def _handle_remote_only(self, entry_id: str, remote: IndexRecord) -> MergeDecision:
        if remote.deleted:
            # Nothing to pull; make sure no stale local copy survives
            return MergeDecision(
                entry_id=entry_id,
                action=MergeAction.DELETE_LOCAL,
                reason="Remote-only tombstone",
                local=None,
                remote=remote,
                merged=remote,
            )
        return MergeDecision(
            entry_id=entry_id,
            action=MergeAction.PULL,
            reason="New remote entry",
            local=None,
            remote=remote,
            merged=remote,
        )

    def _handle_local_only(self, entry_id: str, local: IndexRecord) -> MergeDecision:
        if local.deleted:
            # Created and deleted before it ever reached the remote side
            return MergeDecision(
                entry_id=entry_id,
                action=MergeAction.DELETE_REMOTE,
                reason="Local-only tombstone",
                local=local,
                remote=None,
                merged=local,
            )
        return MergeDecision(
            entry_id=entry_id,
            action=MergeAction.PUSH,
            reason="New local entry",
            local=local,
            remote=None,
            merged=local,
        )

    def _compare_records(
        self, entry_id: str, local: IndexRecord, remote: IndexRecord
    ) -> MergeDecision:
        if local.last_modified > remote.last_modified:
            action = MergeAction.DELETE_REMOTE if local.deleted else MergeAction.PUSH
            reason = "Local entry deleted" if local.deleted else "Local entry is newer"
            merged = local
        elif local.last_modified < remote.last_modified:
            action = MergeAction.DELETE_LOCAL if remote.deleted else MergeAction.PULL
            reason = (
                "Remote entry deleted" if remote.deleted else "Remote entry is newer"
            )
            merged = remote
        else:
            action = MergeAction.SKIP
            reason = "Already in sync"
            merged = local

        return MergeDecision(
            entry_id=entry_id,
            action=action,
            reason=reason,
            local=local,
            remote=remote,
            merged=merged,
        )
