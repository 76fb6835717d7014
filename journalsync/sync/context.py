"""Explicit state shared by all sync operations."""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional

from ..config import CloudConfig
from ..exceptions import SyncInProgressError
from ..stores.base import LocalEntryStore, RemoteObjectStore
from .index_store import IndexStoreAdapter

logger = logging.getLogger(__name__)


@dataclass
class SyncContext:
    """Everything a sync operation needs, passed in explicitly.

    A context is only constructed once its remote store is usable, so holding
    one means the client is initialized.
    """

    config: CloudConfig
    """Validated configuration"""

    remote: RemoteObjectStore
    """Remote object store handle"""

    local_store: LocalEntryStore
    """Local entry store"""

    index_store: Optional[IndexStoreAdapter] = None
    """Index adapter (built from config.data_path if not given)"""

    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if self.index_store is None:
            self.index_store = IndexStoreAdapter(self.config.data_path, self.remote)

    @property
    def indexes(self) -> IndexStoreAdapter:
        """Index adapter, rebuilt from config.data_path if it was cleared."""
        if self.index_store is None:
            self.index_store = IndexStoreAdapter(self.config.data_path, self.remote)
        return self.index_store

    def close(self) -> None:
        """Release the remote store's connections, if it holds any."""
        close = getattr(self.remote, "close", None)
        if callable(close):
            logger.debug("Closing remote store")
            close()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the in-flight guard for an index-mutating operation.

        The guard is reentrant, so a pipeline may call single-entry
        operations on the same thread.

        Raises:
            SyncInProgressError: If lock_timeout elapses while another
                operation holds the guard
        """
        timeout = self.config.lock_timeout
        acquired = self._lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            raise SyncInProgressError(
                f"Another sync operation is still running (waited {timeout}s)"
            )
        try:
            yield
        finally:
            self._lock.release()
