"""Local storage for the field operations core."""

from fieldops.storage.base import ObjectStore
from fieldops.storage.keyvalue import JsonKeyValueStore, SessionStore
from fieldops.storage.memory_store import MemoryObjectStore

__all__ = [
    "ObjectStore",
    "MemoryObjectStore",
    "JsonKeyValueStore",
    "SessionStore",
]
