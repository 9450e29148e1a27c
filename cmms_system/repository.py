"""Record collections used by the CMMS service layer.

``Repository`` describes what the service needs from a collection; the
in-memory implementation here backs tests and throwaway sessions, and
:mod:`cmms_system.storage` provides the SQLite one.
"""

from __future__ import annotations

from typing import Callable, Dict, Generic, Iterator, List, Protocol, TypeVar

T = TypeVar("T")


class RepositoryError(RuntimeError):
    """Base exception for repository errors."""


class DuplicateRecordError(RepositoryError):
    """Raised when a record id is already taken in the collection."""


class RecordNotFoundError(RepositoryError):
    """Raised when a record id is not in the collection."""


class Repository(Protocol[T]):
    def __contains__(self, item_id: object) -> bool: ...

    def __len__(self) -> int: ...

    def __iter__(self) -> Iterator[T]: ...

    def add(self, item_id: str, item: T) -> None: ...

    def upsert(self, item_id: str, item: T) -> None: ...

    def get(self, item_id: str) -> T: ...

    def remove(self, item_id: str) -> None: ...

    def list(self) -> List[T]: ...

    def filter(self, predicate: Callable[[T], bool]) -> List[T]: ...


class InMemoryRepository(Generic[T]):
    """Records keyed by id, listed in the order they were first added."""

    def __init__(self) -> None:
        self._records: Dict[str, T] = {}

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[T]:
        # Snapshot so callers may mutate the collection while iterating.
        return iter(self.list())

    def add(self, item_id: str, item: T) -> None:
        if item_id in self._records:
            raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
        self._records[item_id] = item

    def upsert(self, item_id: str, item: T) -> None:
        self._records[item_id] = item

    def get(self, item_id: str) -> T:
        if item_id not in self._records:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")
        return self._records[item_id]

    def remove(self, item_id: str) -> None:
        if self._records.pop(item_id, None) is None:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")

    def list(self) -> List[T]:
        return list(self._records.values())

    def filter(self, predicate: Callable[[T], bool]) -> List[T]:
        return [item for item in self._records.values() if predicate(item)]


__all__ = [
    "Repository",
    "InMemoryRepository",
    "RepositoryError",
    "DuplicateRecordError",
    "RecordNotFoundError",
]
