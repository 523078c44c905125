"""
Base interface for the local object store.

The store behaves like a unit of work: ``insert`` and ``delete`` are staged
and become durable on ``save``. Entities are live objects, so attribute
changes made between saves are visible to every holder immediately and are
not undone by ``rollback``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T")


class ObjectStore(ABC):
    """
    Abstract base class for local entity stores.

    All storage implementations must implement these methods.
    """

    async def initialize(self) -> None:
        """Open the backing storage."""

    async def close(self) -> None:
        """Release the backing storage."""

    @abstractmethod
    def fetch(self, kind: type[T], predicate: Callable[[T], bool] | None = None) -> list[T]:
        """Return every live entity of ``kind`` matching ``predicate``, staged inserts included."""
        pass

    @abstractmethod
    def insert(self, entity: object) -> None:
        """Stage a new entity."""
        pass

    @abstractmethod
    def delete(self, entity: object) -> None:
        """Stage removal of an entity."""
        pass

    @abstractmethod
    async def save(self) -> None:
        """Commit staged inserts and deletes atomically. Raises on failure."""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Discard staged inserts and deletes."""
        pass

    @property
    @abstractmethod
    def has_changes(self) -> bool:
        pass

    # Convenience lookups
    def fetch_all(self, kind: type[T]) -> list[T]:
        return self.fetch(kind)

    def fetch_one(self, kind: type[T], predicate: Callable[[T], bool]) -> T | None:
        matches = self.fetch(kind, predicate)
        return matches[0] if matches else None

    def fetch_by_id(self, kind: type[T], entity_id: str) -> T | None:
        return self.fetch_one(kind, lambda e: getattr(e, "id", None) == entity_id)
