"""Ordered, primary-key indexed collections of records with change tracking."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from recordkit.base import Model


class _Unsaved:
    """Placeholder key for a record that has no primary key yet."""

    __slots__ = ("record_id",)

    def __init__(self, record: Model) -> None:
        self.record_id = id(record)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _Unsaved) and other.record_id == self.record_id

    def __hash__(self) -> int:
        return hash(("unsaved", self.record_id))

    def __repr__(self) -> str:
        return f"<unsaved {self.record_id:#x}>"


def _key(record: Model) -> Any:
    pk = record.get_pk()
    return _Unsaved(record) if pk is None else pk


class ResultCollection:
    """Records in query order, indexed by primary key.

    When memory is kept, additions and removals since the last baseline are
    tracked in ``added`` and ``removed``; the two never overlap. Relations use
    them to compute association-table diffs.

    Example:
        >>> books = author.books
        >>> books.add(new_book)
        >>> books.remove(old_book.get_pk())
        >>> author.save()  # inserts/deletes the association rows
    """

    def __init__(self, records: Iterable[Model] = (), keep_memory: bool = False) -> None:
        self._elements: dict[Any, Model] = {}
        self._added: dict[Any, Model] = {}
        self._removed: dict[Any, Model] = {}
        self._memory = keep_memory

        for record in records:
            self._elements[_key(record)] = record

    # ========== Membership ==========

    def add(self, record: Model) -> ResultCollection:
        """Append a record; a no-op when it is already a member."""
        key = _key(record)
        if key in self._elements:
            return self

        self._elements[key] = record

        if self._memory:
            if key in self._removed:
                del self._removed[key]
            else:
                self._added[key] = record

        return self

    def remove(self, item: Any) -> Model | None:
        """Remove a member by record or primary key and return it."""
        key = _key(item) if _is_record(item) else item
        record = self._elements.pop(key, None)
        if record is None:
            return None

        if self._memory:
            if key in self._added:
                del self._added[key]
            else:
                self._removed[key] = record

        return record

    def get(self, pk: Any) -> Model | None:
        return self._elements.get(pk)

    def contains_key(self, pk: Any) -> bool:
        return pk in self._elements

    def keys(self) -> list[Any]:
        return list(self._elements)

    def to_list(self) -> list[Model]:
        return list(self._elements.values())

    def first(self) -> Model | None:
        return next(iter(self._elements.values()), None)

    def count(self) -> int:
        return len(self._elements)

    def reindex(self) -> None:
        """Re-key members (and tracked changes) whose primary key was assigned since they were added."""
        self._elements = {_key(r): r for r in self._elements.values()}
        self._added = {_key(r): r for r in self._added.values()}
        self._removed = {_key(r): r for r in self._removed.values()}

    # ========== Memory ==========

    def keep_memory(self) -> ResultCollection:
        """Start tracking additions and removals."""
        self._memory = True
        return self

    def is_remembering(self) -> bool:
        return self._memory

    @property
    def added(self) -> dict[Any, Model]:
        """Members added since the baseline, keyed by primary key."""
        return dict(self._added)

    @property
    def removed(self) -> dict[Any, Model]:
        """Members removed since the baseline, keyed by primary key."""
        return dict(self._removed)

    def clear_memory(self) -> None:
        """Make the current membership the new baseline."""
        self._added.clear()
        self._removed.clear()

    def dont_remember(self, callback: Callable[[ResultCollection], Any]) -> Any:
        """Run ``callback(self)`` without recording its changes."""
        remembering = self._memory
        self._memory = False
        try:
            return callback(self)
        finally:
            self._memory = remembering

    # ========== Container protocol ==========

    def __iter__(self) -> Iterator[Model]:
        return iter(list(self._elements.values()))

    def __len__(self) -> int:
        return len(self._elements)

    def __contains__(self, item: Any) -> bool:
        key = _key(item) if _is_record(item) else item
        return key in self._elements

    def __getitem__(self, index: int) -> Model:
        return list(self._elements.values())[index]

    def __repr__(self) -> str:
        return f"<ResultCollection {self.keys()!r}>"


def _is_record(item: Any) -> bool:
    return hasattr(item, "get_pk") and callable(item.get_pk)
