"""Entry content transfers between the local and remote stores."""

import logging

from ..exceptions import NotFoundError, TransferError, ValidationError
from ..models import Entry
from ..stores.base import LocalEntryStore, RemoteObjectStore
from ..utils import entry_key

logger = logging.getLogger(__name__)


class EntryOperations:
    """Unified pull/push/delete operations for a single entry."""

    def __init__(self, local_store: LocalEntryStore, remote: RemoteObjectStore):
        """Initialize entry operations.

        Args:
            local_store: Local entry store
            remote: Remote object store
        """
        self.local_store = local_store
        self.remote = remote

    def fetch_remote(self, entry_id: str) -> Entry:
        """Fetch and decode a remote entry.

        Raises:
            NotFoundError: If the remote entry object does not exist
            ValidationError: If the payload is not a valid entry
        """
        raw = self.remote.get(entry_key(entry_id))
        if raw is None:
            raise NotFoundError(f"Remote entry not found: {entry_id}")
        entry = Entry.from_json(raw)
        if entry.id != entry_id:
            raise ValidationError(
                f"Remote entry {entry_id} holds mismatching id {entry.id!r}"
            )
        return entry

    def put_remote(self, entry: Entry) -> None:
        """Write an entry to the remote store."""
        self.remote.put(entry_key(entry.id), entry.to_json())

    def pull(self, entry_id: str) -> None:
        """Copy a remote entry into the local store, creating or replacing it."""
        entry = self.fetch_remote(entry_id)
        try:
            if self.local_store.get(entry_id) is None:
                logger.debug(f"Creating local entry {entry_id}")
                self.local_store.create(entry_id, entry)
            else:
                logger.debug(f"Updating local entry {entry_id}")
                self.local_store.update(entry_id, entry)
        except OSError as e:
            raise TransferError(f"Failed to write local entry {entry_id}: {e}") from e

    def push(self, entry_id: str) -> None:
        """Copy a local entry to the remote store.

        Raises:
            NotFoundError: If the local entry does not exist
        """
        try:
            entry = self.local_store.get(entry_id)
        except OSError as e:
            raise TransferError(f"Failed to read local entry {entry_id}: {e}") from e
        if entry is None:
            raise NotFoundError(f"Local entry not found: {entry_id}")
        logger.debug(f"Pushing entry {entry_id}")
        self.put_remote(entry)

    def delete_remote(self, entry_id: str) -> None:
        """Delete a remote entry object."""
        logger.debug(f"Deleting remote entry {entry_id}")
        self.remote.delete(entry_key(entry_id))

    def delete_local(self, entry_id: str) -> bool:
        """Delete a local entry if it exists.

        Returns:
            True if an entry was deleted, False if it was already absent
        """
        try:
            if self.local_store.get(entry_id) is None:
                logger.debug(f"Local entry {entry_id} already absent")
                return False
            logger.debug(f"Deleting local entry {entry_id}")
            self.local_store.delete(entry_id)
        except OSError as e:
            raise TransferError(f"Failed to delete local entry {entry_id}: {e}") from e
        return True
