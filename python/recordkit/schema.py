"""Table schemas, association tables and the schema registry."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

import inflect

from recordkit.exceptions import ConfigurationError
from recordkit.fields import ColumnInfo

_inflector = inflect.engine()


def singularize(word: str) -> str:
    """Singularize the last ``_``-separated part of a table name.

    Example:
        >>> singularize("authors")
        'author'
        >>> singularize("book_reviews")
        'book_review'
    """
    *head, last = word.split("_")
    singular = _inflector.singular_noun(last) or last
    return "_".join([*head, singular])


@dataclass
class Table:
    """Schema of one table: its columns and primary key.

    The slug identifies the table in the registry and is the cache group
    for its records.
    """

    name: str
    columns: dict[str, ColumnInfo] = field(default_factory=dict)
    primary_key: str | None = None
    slug: str | None = None

    def __post_init__(self) -> None:
        if self.slug is None:
            self.slug = self.name

    def has_column(self, name: str) -> bool:
        return name in self.columns

    def column(self, name: str) -> ColumnInfo:
        """Get a column definition, raising ``KeyError`` for unknown names."""
        try:
            return self.columns[name]
        except KeyError:
            raise KeyError(f"Table '{self.name}' has no column '{name}'") from None


class AssociationTable(Table):
    """Junction table linking two tables in a many-to-many relationship.

    Names are derived from the two tables unless overridden:

    - table name: ``<a>_to_<b>``
    - slug: ``<a>-<b>``
    - columns: singular table name plus primary key, e.g. ``author_id``

    Example:
        >>> link = AssociationTable(authors, books)
        >>> link.name, link.col_a, link.col_b
        ('authors_to_books', 'author_id', 'book_id')
    """

    def __init__(
        self,
        table_a: Table,
        table_b: Table,
        *,
        table_name: str | None = None,
        slug: str | None = None,
        col_a: str | None = None,
        col_b: str | None = None,
    ) -> None:
        self.table_a = table_a
        self.table_b = table_b
        self.col_a = col_a or self._build_column_name(table_a)
        self.col_b = col_b or self._build_column_name(table_b)

        if self.col_a == self.col_b:
            raise ConfigurationError(
                f"Association between '{table_a.name}' and '{table_b.name}' needs "
                f"explicit column names (both sides derive '{self.col_a}')"
            )

        columns = {
            self.col_a: ColumnInfo(name=self.col_a, python_type=_pk_type(table_a)),
            self.col_b: ColumnInfo(name=self.col_b, python_type=_pk_type(table_b)),
        }
        super().__init__(
            name=table_name or f"{table_a.slug}_to_{table_b.slug}".replace("-", "_"),
            columns=columns,
            primary_key=None,
            slug=slug or f"{table_a.slug}-{table_b.slug}",
        )

    @staticmethod
    def _build_column_name(table: Table) -> str:
        if not table.primary_key:
            raise ConfigurationError(f"Table '{table.name}' has no primary key to associate")
        return f"{singularize(table.name)}_{table.primary_key}"

    def links(self, first: Table, second: Table) -> bool:
        """Check whether this association joins the two tables (in either order)."""
        slugs = {self.table_a.slug, self.table_b.slug}
        return slugs == {first.slug, second.slug}

    def column_for(self, table: Table) -> str:
        """Column holding ``table``'s primary key."""
        if table.slug == self.table_a.slug:
            return self.col_a
        if table.slug == self.table_b.slug:
            return self.col_b
        raise ConfigurationError(f"Association '{self.name}' does not link table '{table.name}'")

    def other_column_for(self, table: Table) -> str:
        """Column holding the primary key of the side opposite ``table``."""
        return self.col_b if self.column_for(table) == self.col_a else self.col_a

    def columns_for(self, related: Table) -> tuple[str, str]:
        """Return ``(related_column, owner_column)`` as seen from ``related``."""
        return self.column_for(related), self.other_column_for(related)


def _pk_type(table: Table) -> type | None:
    if table.primary_key and table.primary_key in table.columns:
        return table.columns[table.primary_key].python_type
    return None


class SchemaRegistry(Mapping[str, Table]):
    """Registry of table schemas, keyed by slug.

    Args:
        prefix: Prepended to every table name when rendering SQL
    """

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix
        self._tables: dict[str, Table] = {}

    def register(self, table: Table) -> Table:
        self._tables[table.slug] = table  # type: ignore[index]
        return table

    def get_table(self, slug: str) -> Table:
        """Get a table by slug or raise ``ConfigurationError``."""
        try:
            return self._tables[slug]
        except KeyError:
            raise ConfigurationError(f"No table registered under '{slug}'") from None

    def association_between(self, first: Table, second: Table) -> AssociationTable:
        """Find the registered association table linking two tables."""
        for table in self._tables.values():
            if isinstance(table, AssociationTable) and table.links(first, second):
                return table
        raise ConfigurationError(
            f"No association table registered between '{first.name}' and '{second.name}'"
        )

    def table_name(self, table: Table) -> str:
        """Physical table name used in SQL."""
        return f"{self.prefix}{table.name}"

    def __getitem__(self, slug: str) -> Table:
        return self._tables[slug]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tables)

    def __len__(self) -> int:
        return len(self._tables)
