"""Loading and saving the master index on both sides.

The local copy lives in a JSON file inside the data directory; the remote
copy is the ``masterIndex.json`` object in the remote store.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..exceptions import NotFoundError
from ..models import MasterIndex
from ..stores.base import RemoteObjectStore
from ..stores.filesystem import atomic_write
from ..utils import MASTER_INDEX_FILE_NAME
from .codec import IndexCodec

logger = logging.getLogger(__name__)


class IndexStoreAdapter:
    """Reads and writes the local and remote copies of the master index."""

    def __init__(
        self,
        data_dir: Union[str, Path],
        remote: Optional[RemoteObjectStore],
        index_name: str = MASTER_INDEX_FILE_NAME,
    ):
        """Initialize the adapter.

        Args:
            data_dir: Directory holding the local index file
            remote: Remote object store (None when only the local copy is used)
            index_name: File name / object key of the index
        """
        self.data_dir = Path(data_dir)
        self.remote = remote
        self.index_name = index_name

    @property
    def local_path(self) -> Path:
        """Path of the local index file."""
        return self.data_dir / self.index_name

    def local_exists(self) -> bool:
        """Check whether the local index has been bootstrapped."""
        return self.local_path.exists()

    def bootstrap_local(self) -> bool:
        """Create an empty local index if none exists.

        Returns:
            True if a new index was created, False if one already existed
        """
        if self.local_exists():
            return False
        self.save_local({})
        logger.info(f"Created empty local master index at {self.local_path}")
        return True

    def load_local(self) -> MasterIndex:
        """Load the local master index.

        Raises:
            NotFoundError: If the local index has not been bootstrapped
            ValidationError: If the index is malformed
        """
        if not self.local_exists():
            raise NotFoundError(
                f"Local master index not found at {self.local_path}; "
                "run 'journalsync init' first"
            )
        index = IndexCodec.decode(self.local_path.read_bytes())
        logger.debug(f"Loaded local master index with {len(index)} record(s)")
        return index

    def load_remote(self, create_missing: bool = True) -> MasterIndex:
        """Load the remote master index, creating an empty one if missing.

        Args:
            create_missing: Write an empty index remotely when none exists

        Raises:
            ValidationError: If the index is malformed
            ConnectivityError: If the remote store is unreachable
            TransferError: If the remote read fails
        """
        raw = self.remote.get(self.index_name)
        if raw is None:
            if create_missing:
                logger.info("Remote master index does not exist, creating it")
                self.save_remote({})
            return {}
        index = IndexCodec.decode(raw)
        logger.debug(f"Loaded remote master index with {len(index)} record(s)")
        return index

    def save_local(self, index: MasterIndex) -> None:
        """Overwrite the local master index."""
        atomic_write(self.local_path, IndexCodec.encode(index, indent=2))
        logger.debug(f"Saved local master index with {len(index)} record(s)")

    def save_remote(self, index: MasterIndex) -> None:
        """Overwrite the remote master index."""
        self.remote.put(self.index_name, IndexCodec.encode(index))
        logger.debug(f"Saved remote master index with {len(index)} record(s)")
