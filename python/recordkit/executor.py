"""SQL execution collaborators."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)


@dataclass
class ExecuteResult:
    """Outcome of one statement: returned rows, affected count and insert id."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    affected: int = 0
    insert_id: Any = None

    def all(self) -> list[dict[str, Any]]:
        return list(self.rows)

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None

    def __len__(self) -> int:
        return len(self.rows)


class Executor(Protocol):
    """Runs parameterized SQL.

    ``dialect`` selects placeholder style and insert-or-ignore syntax:
    ``"sqlite"`` or ``"postgresql"``.
    """

    dialect: str

    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult: ...


class SQLiteExecutor:
    """Executor backed by the standard library ``sqlite3`` module.

    Each statement is committed immediately.

    Example:
        >>> executor = SQLiteExecutor(":memory:")
        >>> executor.execute("CREATE TABLE authors (id INTEGER PRIMARY KEY, name TEXT)")
        >>> result = executor.execute("INSERT INTO authors (name) VALUES (?)", ["Amy"])
        >>> result.insert_id, result.affected
        (1, 1)
    """

    dialect = "sqlite"

    def __init__(self, path: str = ":memory:") -> None:
        self.path = path
        self._conn = sqlite3.connect(path, isolation_level=None)
        self._conn.row_factory = sqlite3.Row

    @classmethod
    def from_url(cls, url: str) -> SQLiteExecutor:
        """Create an executor from ``sqlite::memory:`` or ``sqlite:///path`` URLs."""
        if url in ("sqlite::memory:", "sqlite://", "sqlite:///:memory:"):
            return cls(":memory:")
        if url.startswith("sqlite:///"):
            return cls(url[len("sqlite:///"):])
        raise ValueError(f"Unsupported database URL: {url}")

    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        logger.debug("execute: %s [%d params]", sql, len(params))
        cursor = self._conn.execute(sql, list(params))
        try:
            rows = [dict(row) for row in cursor.fetchall()] if cursor.description else []
            return ExecuteResult(
                rows=rows,
                affected=cursor.rowcount if cursor.rowcount > 0 else 0,
                insert_id=cursor.lastrowid or None,
            )
        finally:
            cursor.close()

    def close(self) -> None:
        self._conn.close()
