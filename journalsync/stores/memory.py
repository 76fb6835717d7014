"""In-memory store implementations."""

import logging
from dataclasses import replace
from typing import Optional

from ..exceptions import NotFoundError
from ..models import Entry

logger = logging.getLogger(__name__)


class MemoryEntryStore:
    """Local entry store backed by a dict."""

    def __init__(self, entries: Optional[dict[str, Entry]] = None):
        self.entries: dict[str, Entry] = dict(entries or {})

    def get(self, entry_id: str) -> Optional[Entry]:
        entry = self.entries.get(entry_id)
        return replace(entry) if entry else None

    def create(self, entry_id: str, entry: Entry) -> None:
        self.entries[entry_id] = replace(entry)

    def update(self, entry_id: str, entry: Entry) -> None:
        if entry_id not in self.entries:
            raise NotFoundError(f"Entry not found: {entry_id}")
        self.entries[entry_id] = replace(entry)

    def delete(self, entry_id: str) -> None:
        if entry_id not in self.entries:
            raise NotFoundError(f"Entry not found: {entry_id}")
        del self.entries[entry_id]


class MemoryObjectStore:
    """Remote object store backed by a dict of bytes."""

    def __init__(self, objects: Optional[dict[str, bytes]] = None):
        self.objects: dict[str, bytes] = dict(objects or {})

    def get(self, key: str) -> Optional[bytes]:
        return self.objects.get(key)

    def put(self, key: str, data: bytes) -> None:
        logger.debug(f"Putting {len(data)} bytes at {key}")
        self.objects[key] = bytes(data)

    def delete(self, key: str) -> None:
        # Deleting a missing key succeeds, like S3
        self.objects.pop(key, None)

    def list_probe(self, max_keys: int = 1) -> None:
        return None
