"""Protocols for the local entry store and the remote object store."""

from typing import Optional, Protocol, runtime_checkable

from ..models import Entry


@runtime_checkable
class LocalEntryStore(Protocol):
    """Keyed store of journal entries on this device.

    ``update`` and ``delete`` raise NotFoundError for unknown IDs.
    """

    def get(self, entry_id: str) -> Optional[Entry]: ...

    def create(self, entry_id: str, entry: Entry) -> None: ...

    def update(self, entry_id: str, entry: Entry) -> None: ...

    def delete(self, entry_id: str) -> None: ...


@runtime_checkable
class RemoteObjectStore(Protocol):
    """Blob store addressed by string keys.

    ``get`` returns None when the key does not exist. I/O failures raise
    ConnectivityError or TransferError.
    """

    def get(self, key: str) -> Optional[bytes]: ...

    def put(self, key: str, data: bytes) -> None: ...

    def delete(self, key: str) -> None: ...

    def list_probe(self, max_keys: int = 1) -> None: ...
