"""Relationship definitions and the many-to-many relation."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from recordkit.collection import ResultCollection
from recordkit.conditions import AND, OR, Group, Node, ParamList, Where, combine, render_where
from recordkit.events import DELETED, SAVED, Delta, Event, Subscription
from recordkit.exceptions import ConfigurationError
from recordkit.query import QueryBuilder
from recordkit.schema import AssociationTable

if TYPE_CHECKING:
    from recordkit.base import Model
    from recordkit.context import Context

logger = logging.getLogger(__name__)

Constraint = Callable[["QueryBuilder[Any]"], Any]


@dataclass
class RelationshipInfo:
    """Stores metadata about a relationship between models."""

    kind: str
    related: type[Model] | str
    through: str | None = None
    back_populates: str | None = None
    name: str | None = None


def many_to_many(
    related: type[Model] | str,
    *,
    through: str | None = None,
    back_populates: str | None = None,
) -> Any:
    """Define a many-to-many relationship through an association table.

    Args:
        related: Related model class, or its class or table name
        through: Slug of the association table; found from the two tables when omitted
        back_populates: Name of the reverse relationship on the related model

    Example:
        >>> class Author(Model):
        ...     books = many_to_many("Book", back_populates="authors")
        ...
        >>> class Book(Model):
        ...     authors = many_to_many(Author, back_populates="books")
    """
    return RelationshipInfo("many_to_many", related, through=through, back_populates=back_populates)


class Relation(Protocol):
    """Operations every relation kind provides."""

    results: ResultCollection | None

    def get_results(self) -> ResultCollection: ...

    def set_results(self, results: ResultCollection) -> None: ...

    def eager_load(self, owners: list[Model], attribute: str, constrain: Constraint | None = None) -> None: ...

    def persist(self, values: ResultCollection) -> None: ...

    def on_delete(self, owner: Model) -> None: ...

    def model_matches_relation(self, model: Model) -> bool: ...


class ManyToMany:
    """Many-to-many relation between an owner model and a related model.

    With a ``parent`` the relation serves that record's collection: lazy
    loading, persistence of membership changes and keeping the loaded
    collection in sync with saves and deletes of related records. Without
    one it is only used for eager loading.
    """

    def __init__(
        self,
        context: Context,
        owner_model: type[Model],
        info: RelationshipInfo,
        parent: Model | None = None,
    ) -> None:
        self._context = context
        self.owner_model = owner_model
        self.info = info
        self.parent = parent
        self.attribute = info.name
        self.other_attribute = info.back_populates

        self.related_model: type[Model] = (
            context.model(info.related) if isinstance(info.related, str) else info.related
        )
        owner_table = context.table_for(owner_model)
        self.related_table = context.table_for(self.related_model)

        if info.through:
            association = context.schema.get_table(info.through)
            if not isinstance(association, AssociationTable):
                raise ConfigurationError(f"Table '{info.through}' is not an association table")
        else:
            association = context.schema.association_between(owner_table, self.related_table)

        self.association = association
        self.related_column, self.owner_column = association.columns_for(self.related_table)

        self.results: ResultCollection | None = None
        self._subscriptions: list[Subscription] = []

    # ========== Loading ==========

    def get_results(self) -> ResultCollection:
        """Get the parent's collection, loading it on first access."""
        if self.results is None:
            if self.parent is not None and self.parent.get_pk() is not None:
                results = self.fetch_results()
            else:
                results = ResultCollection(keep_memory=True)
            self.set_results(results)
        return self.results  # type: ignore[return-value]

    def set_results(self, results: ResultCollection) -> None:
        results.keep_memory()
        self.results = results
        self.register_events()

    def fetch_results(self) -> ResultCollection:
        """Query the related records linked to the parent."""
        owner_pk = self.parent.get_pk() if self.parent is not None else None
        owner_column = self.owner_column

        query = QueryBuilder.from_model(self._context, self.related_model).distinct()
        query.join(
            self.association,
            self.related_table.primary_key,  # type: ignore[arg-type]
            self.related_column,
            "=",
            lambda q: q.where(owner_column, True, owner_pk),
        )
        return query.results().keep_memory()

    def fetch_results_for_eager_load(
        self, owners: list[Model], constrain: Constraint | None = None
    ) -> list[dict[str, Any]]:
        """Fetch related rows for many owners in one query.

        Every row carries the association columns so it can be matched back
        to its owner.
        """
        keys = [owner.get_pk() for owner in owners if owner.get_pk() is not None]
        owner_column = self.owner_column

        query = QueryBuilder.from_model(self._context, self.related_model).distinct().select_all(False)
        query.join(
            self.association,
            self.related_table.primary_key,  # type: ignore[arg-type]
            self.related_column,
            "=",
            lambda q: q.where(owner_column, True, keys),
            "LEFT",
        )
        if constrain is not None:
            constrain(query)

        return query.rows()

    def eager_load(self, owners: list[Model], attribute: str, constrain: Constraint | None = None) -> None:
        """Load the relation for every owner and install the collections."""
        if not owners:
            return

        related: dict[Any, Model] = {}
        by_owner: dict[Any, list[Model]] = {}

        for row in self.fetch_results_for_eager_load(owners, constrain):
            owner_key = row.get(self.owner_column)
            # LEFT JOIN rows linked to no requested owner
            if owner_key is None:
                continue

            attributes = {k: v for k, v in row.items() if k not in (self.owner_column, self.related_column)}
            record = self.related_model.from_query(self._context, attributes)
            record = related.setdefault(record.get_pk(), record)
            by_owner.setdefault(owner_key, []).append(record)

        for owner in owners:
            collection = ResultCollection(by_owner.get(owner.get_pk(), ()), keep_memory=True)
            owner.set_relation_value(attribute, collection)

    # ========== Persistence ==========

    def persist(self, values: ResultCollection) -> None:
        """Write membership changes of ``values`` to the association table.

        Removed pairs are deleted, every member is saved (without saving back
        through the reverse relation) and added pairs are inserted, ignoring
        pairs that already exist.
        """
        owner_pk = self.parent.get_pk() if self.parent is not None else None
        table_name = self._context.schema.table_name(self.association)

        removed = [record.get_pk() for record in values.removed.values() if record.get_pk() is not None]
        if owner_pk is not None and removed:
            tree: Node | None = None
            for related_pk in removed:
                pair = Group(Where(self.owner_column, "=", owner_pk), AND, Where(self.related_column, "=", related_pk))
                tree = combine(tree, OR, pair)

            params = ParamList(self._context.dialect)
            sql = f"DELETE FROM {table_name} WHERE {render_where(tree, params, str)}"  # type: ignore[arg-type]
            self._context.execute(sql, params.values)

        exclude = (self.other_attribute,) if self.other_attribute else ()
        for member in values:
            member.save(exclude_relations=exclude)
        values.reindex()

        added = [record.get_pk() for record in values.added.values() if record.get_pk() is not None]
        if owner_pk is None or not added:
            return

        params = ParamList(self._context.dialect)
        rows = ", ".join(f"({params.add(owner_pk)}, {params.add(related_pk)})" for related_pk in added)
        columns = f"({self.owner_column}, {self.related_column})"
        if self._context.dialect == "postgresql":
            sql = f"INSERT INTO {table_name} {columns} VALUES {rows} ON CONFLICT DO NOTHING"
        else:
            sql = f"INSERT OR IGNORE INTO {table_name} {columns} VALUES {rows}"
        self._context.execute(sql, params.values)

    def on_delete(self, owner: Model) -> None:
        """Remove every association row of a deleted owner."""
        params = ParamList(self._context.dialect)
        sql = (
            f"DELETE FROM {self._context.schema.table_name(self.association)} "
            f"WHERE {self.owner_column} = {params.add(owner.get_pk())}"
        )
        self._context.execute(sql, params.values)

    def model_matches_relation(self, model: Model) -> bool:
        """Check whether an association row links the parent and ``model``."""
        owner_pk = self.parent.get_pk() if self.parent is not None else None
        if owner_pk is None or model.get_pk() is None:
            return False

        return (
            QueryBuilder(self._context, self.association)
            .where(self.owner_column, True, owner_pk)
            .and_where(self.related_column, True, model.get_pk())
            .exists()
        )

    # ========== Sync ==========

    def register_events(self) -> None:
        """Keep the parent's loaded collection in sync with related saves and deletes."""
        events = self._context.events
        if self._subscriptions or self.parent is None or events is None:
            return

        self._subscriptions = [
            events.subscribe(self.related_model, SAVED, self._on_related_saved, self._apply_delta),
            events.subscribe(self.related_model, DELETED, self._on_related_deleted, self._apply_delta),
        ]

    def _on_related_saved(self, event: Event) -> Delta | None:
        model = event.subject
        owner_pk = self.parent.get_pk() if self.parent is not None else None
        if owner_pk is None or not self.other_attribute:
            return None
        if not model.is_relation_loaded(self.other_attribute):
            return None

        reverse = model.get_relation(self.other_attribute)
        if owner_pk in reverse.added:
            return Delta(add=(model,))
        if owner_pk in reverse.removed:
            return Delta(remove=(model.get_pk(),))
        return None

    def _on_related_deleted(self, event: Event) -> Delta | None:
        return Delta(remove=(event.subject.get_pk(),))

    def _apply_delta(self, delta: Delta) -> None:
        if self.results is None:
            return

        def apply(collection: ResultCollection) -> None:
            for record in delta.add:
                collection.add(record)
            for pk in delta.remove:
                collection.remove(pk)

        self.results.dont_remember(apply)
        logger.debug(
            "synced %s.%s: +%d -%d",
            self.owner_model.__name__,
            self.attribute,
            len(delta.add),
            len(delta.remove),
        )


RELATION_KINDS: dict[str, type] = {
    "many_to_many": ManyToMany,
}


def make_relation(
    context: Context,
    owner_model: type[Model],
    info: RelationshipInfo,
    parent: Model | None = None,
) -> Relation:
    """Instantiate the relation variant registered for ``info.kind``."""
    try:
        relation_cls = RELATION_KINDS[info.kind]
    except KeyError:
        raise ConfigurationError(f"Unknown relation kind '{info.kind}'") from None
    return relation_cls(context, owner_model, info, parent)
