"""Record cache collaborators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from recordkit.base import Model


class Cache(Protocol):
    """Cache of record data keyed by primary key within a group (table slug)."""

    def get(self, key: Any, group: str) -> dict[str, Any] | None: ...

    def set(self, record: Model, group: str) -> None: ...

    def delete(self, record: Model, group: str) -> None: ...


class MemoryCache:
    """Process-local cache storing ``record.get_data_to_cache()`` snapshots.

    Writes are last-writer-wins. A miss returns ``None``.
    """

    def __init__(self) -> None:
        self._store: dict[tuple[str, Any], dict[str, Any]] = {}

    def get(self, key: Any, group: str) -> dict[str, Any] | None:
        data = self._store.get((group, key))
        return dict(data) if data is not None else None

    def set(self, record: Model, group: str) -> None:
        self._store[(group, record.get_pk())] = record.get_data_to_cache()

    def delete(self, record: Model, group: str) -> None:
        self._store.pop((group, record.get_pk()), None)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, item: tuple[str, Any]) -> bool:
        return item in self._store
