"""Local entry stores and remote object stores."""

from .base import LocalEntryStore, RemoteObjectStore
from .filesystem import JsonEntryStore
from .http import HttpObjectStore
from .memory import MemoryEntryStore, MemoryObjectStore
from .s3 import S3ObjectStore, create_s3_client

__all__ = [
    "LocalEntryStore",
    "RemoteObjectStore",
    "JsonEntryStore",
    "MemoryEntryStore",
    "MemoryObjectStore",
    "HttpObjectStore",
    "S3ObjectStore",
    "create_s3_client",
]
