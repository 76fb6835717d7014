"""JSON-file backed local entry store."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from ..exceptions import NotFoundError, ValidationError
from ..models import Entry
from ..utils import entry_key

logger = logging.getLogger(__name__)


def atomic_write(path: Path, data: bytes) -> None:
    """Write bytes to a file so readers never see a partial file.

    Args:
        path: Destination path
        data: File contents
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class JsonEntryStore:
    """Local entry store keeping one ``{id}.json`` file per entry.

    Files use the same layout as the remote ``entries/`` prefix, so
    ``<root>/entries/feb.25.2018.json`` holds entry ``feb.25.2018``.
    """

    def __init__(self, root: Union[str, Path]):
        """Initialize the store.

        Args:
            root: Data directory; entries live in ``<root>/entries``
        """
        self.root = Path(root)

    def _path(self, entry_id: str) -> Path:
        return self.root / entry_key(entry_id)

    def get(self, entry_id: str) -> Optional[Entry]:
        path = self._path(entry_id)
        if not path.exists():
            return None
        entry = Entry.from_json(path.read_bytes())
        if entry.id != entry_id:
            raise ValidationError(
                f"Entry file {path} holds id {entry.id!r}, expected {entry_id!r}"
            )
        return entry

    def create(self, entry_id: str, entry: Entry) -> None:
        logger.debug(f"Writing local entry {entry_id}")
        atomic_write(self._path(entry_id), entry.to_json())

    def update(self, entry_id: str, entry: Entry) -> None:
        if not self._path(entry_id).exists():
            raise NotFoundError(f"Entry not found: {entry_id}")
        atomic_write(self._path(entry_id), entry.to_json())

    def delete(self, entry_id: str) -> None:
        path = self._path(entry_id)
        if not path.exists():
            raise NotFoundError(f"Entry not found: {entry_id}")
        path.unlink()

    def list_ids(self) -> list[str]:
        """List IDs of all stored entries, sorted."""
        entries_dir = self.root / "entries"
        if not entries_dir.is_dir():
            return []
        return sorted(p.name[: -len(".json")] for p in entries_dir.glob("*.json"))
