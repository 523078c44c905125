"""
In-memory object store.

Fast, ephemeral storage that keeps every record of a kind in insertion
order. Records sharing an id are kept side by side; removing such
duplicates is the reconciler's job, not the store's.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from fieldops.storage.base import ObjectStore

T = TypeVar("T")


def _contains(items: list[object], entity: object) -> bool:
    return any(item is entity for item in items)


class MemoryObjectStore(ObjectStore):
    """
    In-memory unit-of-work store.

    Features:
    - Staged inserts and deletes, committed together by ``save``
    - Predicate fetches see staged changes
    - No persistence (ephemeral)
    """

    def __init__(self, logger: logging.Logger | None = None):
        self._records: dict[type, list[object]] = {}
        self._inserted: list[object] = []
        self._deleted: list[object] = []
        self.save_count = 0
        self.logger = logger or logging.getLogger(__name__)

    def fetch(self, kind: type[T], predicate: Callable[[T], bool] | None = None) -> list[T]:
        candidates = [e for e in self._records.get(kind, []) if not _contains(self._deleted, e)]
        candidates.extend(e for e in self._inserted if type(e) is kind and not _contains(self._deleted, e))
        if predicate is None:
            return list(candidates)  # type: ignore[arg-type]
        return [e for e in candidates if predicate(e)]  # type: ignore[arg-type]

    def insert(self, entity: object) -> None:
        if _contains(self._inserted, entity) or _contains(self._records.get(type(entity), []), entity):
            return
        self._inserted.append(entity)

    def delete(self, entity: object) -> None:
        if _contains(self._inserted, entity):
            self._inserted = [e for e in self._inserted if e is not entity]
            return
        if _contains(self._records.get(type(entity), []), entity) and not _contains(self._deleted, entity):
            self._deleted.append(entity)

    async def save(self) -> None:
        """Commit staged changes."""
        if not self.has_changes:
            self.save_count += 1
            return

        for entity in self._inserted:
            self._records.setdefault(type(entity), []).append(entity)
        for entity in self._deleted:
            kind = type(entity)
            self._records[kind] = [e for e in self._records.get(kind, []) if e is not entity]

        self.logger.debug(
            "Committed %d inserts and %d deletes", len(self._inserted), len(self._deleted)
        )
        self._inserted = []
        self._deleted = []
        self.save_count += 1

    def rollback(self) -> None:
        self._inserted = []
        self._deleted = []

    @property
    def has_changes(self) -> bool:
        return bool(self._inserted or self._deleted)

    def count(self, kind: type) -> int:
        return len(self.fetch(kind))
