"""Explicit dependency context: executor, cache, event bus and schema registry."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from recordkit.cache import Cache, MemoryCache
from recordkit.events import EventBus
from recordkit.exceptions import ConfigurationError
from recordkit.executor import Executor, ExecuteResult, SQLiteExecutor
from recordkit.query import QueryBuilder
from recordkit.schema import AssociationTable, SchemaRegistry, Table

if TYPE_CHECKING:
    from recordkit.base import Model
    from recordkit.config import Settings

logger = logging.getLogger(__name__)


class Context:
    """Collaborators shared by every record and query of one unit of work.

    Example:
        >>> context = Context.connect("sqlite::memory:")
        >>> context.register(Author, Book)
        >>> context.register_association(Author, Book)
        >>> with context:
        ...     author = context.get(Author, 1)
    """

    def __init__(
        self,
        executor: Executor,
        cache: Cache | None = None,
        events: EventBus | None = None,
        schema: SchemaRegistry | None = None,
        unguarded: bool = True,
    ) -> None:
        self.executor = executor
        self.cache = cache
        self.events = events if events is not None else EventBus()
        self.schema = schema if schema is not None else SchemaRegistry()
        self.unguarded = unguarded
        self._models: dict[str, type[Model]] = {}

    @classmethod
    def from_settings(cls, settings: Settings, url: str | None = None) -> Context:
        """Build a context from parsed settings."""
        logging.getLogger("recordkit").setLevel(settings.log_level)
        return cls(
            SQLiteExecutor.from_url(settings.get_url(url)),
            cache=MemoryCache() if settings.cache else None,
            schema=SchemaRegistry(prefix=settings.table_prefix),
            unguarded=settings.unguarded,
        )

    @classmethod
    def connect(cls, url: str, **kwargs: Any) -> Context:
        """Build a context over a SQLite URL with an in-memory cache.

        Keyword arguments are passed to the constructor.
        """
        kwargs.setdefault("cache", MemoryCache())
        return cls(SQLiteExecutor.from_url(url), **kwargs)

    @property
    def dialect(self) -> str:
        return getattr(self.executor, "dialect", "sqlite")

    # ========== Registration ==========

    def register(self, *models: type[Model]) -> None:
        """Bind models to this context and register their tables.

        Raises:
            ConfigurationError: for a model without a table or primary key
        """
        for model in models:
            table = getattr(model, "__table__", None)
            if table is None:
                raise ConfigurationError(f"{model.__name__} does not declare a table")
            if table.primary_key is None:
                raise ConfigurationError(f"{model.__name__} has no primary key column")

            self.schema.register(table)
            self._models[model.__name__] = model
            self._models[table.name] = model
            logger.debug("registered %s -> %s", model.__name__, table.name)

    def register_association(
        self,
        first: type[Model] | AssociationTable,
        second: type[Model] | None = None,
        **overrides: Any,
    ) -> AssociationTable:
        """Register an association table, given directly or derived from two models.

        Example:
            >>> context.register_association(Author, Book)
            >>> context.register_association(Author, Book, table_name="written_by")
        """
        if isinstance(first, AssociationTable):
            association = first
        else:
            if second is None:
                raise ConfigurationError("register_association() needs two models or an AssociationTable")
            association = AssociationTable(self.table_for(first), self.table_for(second), **overrides)

        self.schema.register(association)
        return association

    def model(self, name: str) -> type[Model]:
        """Look up a registered model by class name or table name."""
        try:
            return self._models[name]
        except KeyError:
            raise ConfigurationError(f"No model registered under '{name}'") from None

    def table_for(self, model: type[Model]) -> Table:
        """Get the table bound to a registered model.

        Raises:
            ConfigurationError: if the model is not registered with this context
        """
        if self._models.get(model.__name__) is not model:
            raise ConfigurationError(f"{model.__name__} is not registered with this context")
        return model.__table__  # type: ignore[return-value]

    # ========== Execution ==========

    def query(self, model: type[Model]) -> QueryBuilder[Any]:
        return QueryBuilder.from_model(self, model)

    def get(self, model: type[Model], pk: Any) -> Model | None:
        return model.get(self, pk)

    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        return self.executor.execute(sql, params)

    def close(self) -> None:
        close = getattr(self.executor, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> Context:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
