"""RecordKit - an embedded active-record ORM core with many-to-many associations."""

from __future__ import annotations

from recordkit.base import Accessor, Model
from recordkit.cache import Cache, MemoryCache
from recordkit.collection import ResultCollection
from recordkit.config import Settings
from recordkit.context import Context
from recordkit.events import DELETED, SAVED, Delta, Event, EventBus, Subscription
from recordkit.exceptions import BuildError, ConfigurationError, PersistenceError, RecordKitError
from recordkit.executor import ExecuteResult, Executor, SQLiteExecutor
from recordkit.fields import JSON, ColumnInfo, Mapped, mapped_column
from recordkit.query import QueryBuilder
from recordkit.relationships import RELATION_KINDS, ManyToMany, Relation, RelationshipInfo, many_to_many
from recordkit.schema import AssociationTable, SchemaRegistry, Table

__version__ = "0.1.0"

__all__ = [
    # Core
    "Context",
    "Settings",
    "Executor",
    "ExecuteResult",
    "SQLiteExecutor",
    "Cache",
    "MemoryCache",
    # Model definition
    "Model",
    "Accessor",
    "Mapped",
    "mapped_column",
    "ColumnInfo",
    "JSON",
    "many_to_many",
    "RelationshipInfo",
    "Relation",
    "ManyToMany",
    "RELATION_KINDS",
    # Schema
    "Table",
    "AssociationTable",
    "SchemaRegistry",
    # Query building
    "QueryBuilder",
    "ResultCollection",
    # Events
    "EventBus",
    "Event",
    "Delta",
    "Subscription",
    "SAVED",
    "DELETED",
    # Errors
    "RecordKitError",
    "ConfigurationError",
    "BuildError",
    "PersistenceError",
]
