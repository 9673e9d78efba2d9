"""Pytest configuration and fixtures."""

import pytest

from recordkit import Context, MemoryCache, SQLiteExecutor

SCHEMA = [
    """
    CREATE TABLE authors (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        bio TEXT,
        birth_date TEXT,
        rating REAL,
        active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE books (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        price TEXT,
        published TEXT,
        tags TEXT
    )
    """,
    """
    CREATE TABLE authors_to_books (
        author_id INTEGER NOT NULL,
        book_id INTEGER NOT NULL,
        PRIMARY KEY (author_id, book_id)
    )
    """,
]


class RecordingExecutor(SQLiteExecutor):
    """SQLite executor that remembers every statement it runs."""

    def __init__(self, path: str = ":memory:") -> None:
        super().__init__(path)
        self.statements: list[tuple[str, list]] = []

    def execute(self, sql, params=()):
        self.statements.append((sql, list(params)))
        return super().execute(sql, params)

    def reset(self) -> None:
        self.statements.clear()


@pytest.fixture
def executor():
    """In-memory SQLite database with the authors/books schema."""
    executor = RecordingExecutor()
    for ddl in SCHEMA:
        executor.execute(ddl)
    executor.reset()
    yield executor
    executor.close()


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def context(executor, cache) -> Context:
    """Context with a recording executor and an in-memory cache (no models registered)."""
    return Context(executor, cache=cache)
