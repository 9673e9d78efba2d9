"""Fluent query builder: predicate trees, joins, ordering and paged iteration."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from recordkit.collection import ResultCollection
from recordkit.conditions import AND, COMPARISONS, OR, Node, ParamList, combine, make_where, render_where
from recordkit.exceptions import BuildError
from recordkit.schema import Table

if TYPE_CHECKING:
    from recordkit.base import Model
    from recordkit.context import Context

JOIN_KINDS = ("INNER", "LEFT")
DIRECTIONS = ("ASC", "DESC")

Nested = Callable[["QueryBuilder[Any]"], Any]

T = TypeVar("T", bound="Model")


@dataclass
class JoinSpec:
    """One JOIN: ``kind JOIN table ON base.left_column operator table.right_column``."""

    table: Table
    left_column: str
    right_column: str
    operator: str = "="
    where: Node | None = None
    kind: str = "INNER"


class QueryBuilder(Generic[T]):
    """Fluent query over one table, optionally hydrating a model.

    Conditions form a tree in insertion order; ``where`` and ``and_where``
    combine with AND, ``or_where`` with OR. A ``nested`` callback receives a
    sub-builder seeded with the leaf, producing a parenthesized group.

    Example:
        >>> query = QueryBuilder.from_model(context, Author)
        >>> query.where("name", "LIKE", "John%", lambda q: q.or_where("bio", True, "Hi"))
        >>> query.order_by("birth_date", "DESC").take(10).results()

        >>> # The True sentinel means plain equality
        >>> Author.query(context).where("id", True, [1, 2, 3]).results()
    """

    def __init__(self, context: Context, table: Table, model: type[T] | None = None) -> None:
        self._context = context
        self._table = table
        self._model = model
        self._where: Node | None = None
        self._joins: list[JoinSpec] = []
        self._order: list[tuple[str, str]] = []
        self._limit_val: int | None = None
        self._offset_val: int | None = None
        self._distinct: bool = False
        self._select_all: bool = True
        self._columns: list[str] = []
        self._eager: list[tuple[str, Nested | None]] = []

    @classmethod
    def from_model(cls, context: Context, model: type[T]) -> QueryBuilder[T]:
        """Create a builder over a registered model's table."""
        return cls(context, context.table_for(model), model)

    @property
    def table(self) -> Table:
        return self._table

    # ========== Conditions ==========

    def where(self, column: str, operator: Any, value: Any = None, nested: Nested | None = None) -> QueryBuilder[T]:
        """Add a predicate, combined with any existing ones using AND.

        ``operator`` is one of ``=``, ``!=``, ``<>``, ``<``, ``<=``, ``>``, ``>=``,
        ``LIKE``, ``NOT LIKE``, ``IN``, ``NOT IN``, or ``True`` for equality.
        """
        return self._add_where(AND, column, operator, value, nested)

    def and_where(self, column: str, operator: Any, value: Any = None, nested: Nested | None = None) -> QueryBuilder[T]:
        return self._add_where(AND, column, operator, value, nested)

    def or_where(self, column: str, operator: Any, value: Any = None, nested: Nested | None = None) -> QueryBuilder[T]:
        return self._add_where(OR, column, operator, value, nested)

    def _add_where(
        self, boolean: str, column: str, operator: Any, value: Any, nested: Nested | None
    ) -> QueryBuilder[T]:
        node: Node = make_where(column, operator, value)
        self._check_column(column)

        if nested is not None:
            if not callable(nested):
                raise BuildError(f"Nested constraint for '{column}' must be callable")
            sub = QueryBuilder(self._context, self._table)
            sub._joins = self._joins
            sub._where = node
            nested(sub)
            node = sub._where  # type: ignore[assignment]

        self._where = combine(self._where, boolean, node)
        return self

    # ========== Joins, ordering, limits ==========

    def join(
        self,
        table: Table | str,
        left_column: str,
        right_column: str,
        operator: str = "=",
        nested: Nested | None = None,
        kind: str = "INNER",
    ) -> QueryBuilder[T]:
        """Join another table.

        ``left_column`` belongs to this builder's table, ``right_column`` to the
        joined table. ``nested`` receives a builder over the joined table whose
        conditions are added to the ON clause.

        Example:
            >>> query.join(link, "id", "book_id", "=", lambda q: q.where("author_id", True, 1))
        """
        joined = table if isinstance(table, Table) else self._context.schema.get_table(table)
        kind = kind.upper()
        if kind not in JOIN_KINDS:
            raise BuildError(f"Unsupported join kind '{kind}'")
        if operator not in COMPARISONS:
            raise BuildError(f"Unsupported join operator '{operator}'")
        self._check_column(left_column)
        if not joined.has_column(right_column):
            raise BuildError(f"Table '{joined.name}' has no column '{right_column}'")

        where = None
        if nested is not None:
            if not callable(nested):
                raise BuildError(f"Nested join constraint for '{joined.name}' must be callable")
            sub = QueryBuilder(self._context, joined)
            nested(sub)
            where = sub._where

        self._joins.append(JoinSpec(joined, left_column, right_column, operator, where, kind))
        return self

    def order_by(self, column: str, direction: str = "ASC") -> QueryBuilder[T]:
        """Append an ORDER BY term. Earlier terms take precedence."""
        direction = direction.upper()
        if direction not in DIRECTIONS:
            raise BuildError(f"Unsupported order direction '{direction}'")
        self._check_column(column)
        self._order.append((column, direction))
        return self

    def take(self, n: int) -> QueryBuilder[T]:
        """Limit the number of rows."""
        self._limit_val = _non_negative(n, "take")
        return self

    def offset(self, n: int) -> QueryBuilder[T]:
        """Skip the first n rows."""
        self._offset_val = _non_negative(n, "offset")
        return self

    def distinct(self) -> QueryBuilder[T]:
        self._distinct = True
        return self

    def select(self, *columns: str) -> QueryBuilder[T]:
        """Select specific columns instead of every column."""
        for column in columns:
            self._check_column(column)
        self._columns.extend(columns)
        return self

    def select_all(self, base_only: bool = True) -> QueryBuilder[T]:
        """Select ``table.*`` (default) or, with ``False``, ``*`` including joined columns."""
        self._select_all = base_only
        return self

    def with_(self, relation: str, constrain: Nested | None = None) -> QueryBuilder[T]:
        """Eager load a relation for every record returned by ``results()``.

        Example:
            >>> authors = Author.query(context).with_("books").results()
        """
        if self._model is None or relation not in self._model.__relationships__:
            raise BuildError(f"Unknown relation '{relation}'")
        self._eager.append((relation, constrain))
        return self

    # ========== SQL ==========

    def to_sql(self) -> tuple[str, list[Any]]:
        """Render the query as SQL plus bound parameters."""
        params = ParamList(self._context.dialect)
        base = self._context.schema.table_name(self._table)

        if self._columns:
            cols = ", ".join(self._qualify(c) for c in self._columns)
        elif self._select_all:
            cols = f"{base}.*"
        else:
            cols = "*"

        distinct = "DISTINCT " if self._distinct else ""
        sql = f"SELECT {distinct}{cols} FROM {base}"

        for join in self._joins:
            joined = self._context.schema.table_name(join.table)
            on = f"{base}.{join.left_column} {join.operator} {joined}.{join.right_column}"
            if join.where is not None:
                qualify = self._qualifier_for(join.table)
                on = f"({on} AND {render_where(join.where, params, qualify)})"
            sql += f" {join.kind} JOIN {joined} ON {on}"

        if self._where is not None:
            sql += " WHERE " + render_where(self._where, params, self._qualify)

        if self._order:
            sql += " ORDER BY " + ", ".join(f"{self._qualify(c)} {d}" for c, d in self._order)

        if self._limit_val is not None:
            sql += f" LIMIT {self._limit_val}"
        if self._offset_val is not None:
            if self._limit_val is None and self._context.dialect == "sqlite":
                sql += " LIMIT -1"
            sql += f" OFFSET {self._offset_val}"

        return sql, params.values

    # ========== Execution ==========

    def rows(self) -> list[dict[str, Any]]:
        """Execute and return raw rows."""
        sql, params = self.to_sql()
        return self._context.execute(sql, params).all()

    def results(self) -> ResultCollection:
        """Execute and return hydrated records in query order."""
        model = self._require_model()
        return self._hydrate(model, self.rows())

    def first(self) -> Any:
        """Return the first record (or row, without a model), or None."""
        query = self._clone().take(1)
        if self._model is None:
            rows = query.rows()
            return rows[0] if rows else None
        return query.results().first()

    def exists(self) -> bool:
        return bool(self._clone().take(1).rows())

    def iterate(self, page_size: int) -> Iterator[T]:
        """Yield records page by page using LIMIT/OFFSET.

        Pages are only stable when an explicit ``order_by`` is present; rows
        written between pages may be skipped or repeated.
        """
        if not isinstance(page_size, int) or page_size < 1:
            raise BuildError("Page size must be a positive integer")
        model = self._require_model()

        offset = 0
        while True:
            page = self._clone()
            page._limit_val = page_size
            page._offset_val = offset

            rows = page.rows()
            yield from page._hydrate(model, rows)

            if len(rows) < page_size:
                break
            offset += page_size

    def each(self, page_size: int, callback: Callable[[T], Any]) -> None:
        """Call ``callback`` once per record, fetching ``page_size`` rows at a time.

        Example:
            >>> Author.query(context).where("name", "LIKE", "%Smith").each(100, print)
        """
        for record in self.iterate(page_size):
            callback(record)

    # ========== Internal Methods ==========

    def _hydrate(self, model: type[T], rows: list[dict[str, Any]]) -> ResultCollection:
        records = [model.from_query(self._context, row) for row in rows]
        for relation, constrain in self._eager:
            model.load_relation(self._context, records, relation, constrain)
        return ResultCollection(records)

    def _require_model(self) -> type[T]:
        if self._model is None:
            raise BuildError(f"Query on '{self._table.name}' has no model to hydrate")
        return self._model

    def _clone(self) -> QueryBuilder[T]:
        clone: QueryBuilder[T] = QueryBuilder(self._context, self._table, self._model)
        clone._where = self._where
        clone._joins = list(self._joins)
        clone._order = list(self._order)
        clone._limit_val = self._limit_val
        clone._offset_val = self._offset_val
        clone._distinct = self._distinct
        clone._select_all = self._select_all
        clone._columns = list(self._columns)
        clone._eager = list(self._eager)
        return clone

    def _known_tables(self) -> dict[str, Table]:
        tables = {self._table.name: self._table}
        for join in self._joins:
            tables[join.table.name] = join.table
        return tables

    def _check_column(self, column: str) -> None:
        if "." in column:
            table_name, _, name = column.partition(".")
            table = self._known_tables().get(table_name)
            if table is None:
                raise BuildError(f"Unknown table '{table_name}' in column reference '{column}'")
        else:
            table, name = self._table, column

        if not table.has_column(name):
            raise BuildError(f"Table '{table.name}' has no column '{name}'")

    def _qualify(self, column: str) -> str:
        return self._qualifier_for(self._table)(column)

    def _qualifier_for(self, table: Table) -> Callable[[str], str]:
        schema = self._context.schema
        tables = self._known_tables()
        tables.setdefault(table.name, table)

        def qualify(column: str) -> str:
            if "." in column:
                table_name, _, name = column.partition(".")
                return f"{schema.table_name(tables[table_name])}.{name}"
            return f"{schema.table_name(table)}.{column}"

        return qualify


def _non_negative(n: int, what: str) -> int:
    if not isinstance(n, int) or isinstance(n, bool) or n < 0:
        raise BuildError(f"{what}() expects a non-negative integer, got {n!r}")
    return n
