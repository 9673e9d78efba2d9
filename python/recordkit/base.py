"""Declarative model base: attribute storage, dirty tracking and persistence."""

from __future__ import annotations

import copy
import logging
import re
import sys
import types
import typing
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, get_type_hints

from recordkit.collection import ResultCollection
from recordkit.conditions import ParamList
from recordkit.events import DELETED, SAVED
from recordkit.exceptions import PersistenceError
from recordkit.fields import ColumnInfo, Mapped
from recordkit.query import QueryBuilder
from recordkit.relationships import RelationshipInfo, make_relation
from recordkit.schema import Table

if TYPE_CHECKING:
    from recordkit.context import Context
    from recordkit.relationships import Relation

logger = logging.getLogger(__name__)

_NUMERIC = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


@dataclass(frozen=True)
class Accessor:
    """Custom getter/setter pair for one attribute.

    ``getter(record, value)`` transforms the typed value on every read.
    ``setter(record, value)`` replaces the default raw store; its return value
    is returned by ``set_attribute``.
    """

    getter: Callable[[Any, Any], Any] | None = None
    setter: Callable[[Any, Any], Any] | None = None


class ModelMeta(type):
    """Metaclass for models: collects column and relationship declarations."""

    def __new__(
        mcs,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        **kwargs: Any,
    ) -> ModelMeta:
        cls = super().__new__(mcs, name, bases, namespace, **kwargs)

        # Skip processing for the Model class itself
        if not any(isinstance(b, ModelMeta) for b in bases):
            return cls

        tablename = namespace.get("__tablename__") or name.lower() + "s"
        cls.__tablename__ = tablename  # type: ignore[attr-defined]

        hints = _resolve_hints(cls)

        # Inherited declarations first so subclasses can override them
        columns: dict[str, ColumnInfo] = {}
        relationships: dict[str, RelationshipInfo] = {}
        accessors: dict[str, Accessor] = {}
        for base in reversed(bases):
            columns.update({k: copy.copy(v) for k, v in getattr(base, "__columns__", {}).items()})
            relationships.update(getattr(base, "__relationships__", {}))
            accessors.update(getattr(base, "__accessors__", {}))
        accessors.update(namespace.get("__accessors__", {}))

        for attr_name, attr_value in list(namespace.items()):
            if attr_name.startswith("_"):
                continue

            if isinstance(attr_value, ColumnInfo):
                attr_value.name = attr_name
                if attr_name in hints:
                    python_type, nullable = _extract_mapped_type(hints[attr_name])
                    attr_value.python_type = python_type
                    attr_value.nullable = attr_value.nullable or (nullable and not attr_value.primary_key)
                columns[attr_name] = attr_value
                # Attribute access goes through __getattr__
                delattr(cls, attr_name)
            elif isinstance(attr_value, RelationshipInfo):
                attr_value.name = attr_name
                relationships[attr_name] = attr_value
                delattr(cls, attr_name)

        # Bare Mapped[...] annotations become columns too
        for attr_name, hint in hints.items():
            if attr_name.startswith("_") or attr_name in columns or attr_name in relationships:
                continue
            if typing.get_origin(hint) is not Mapped:
                continue
            python_type, nullable = _extract_mapped_type(hint)
            columns[attr_name] = ColumnInfo(name=attr_name, python_type=python_type, nullable=nullable)

        primary_key = next((n for n, c in columns.items() if c.primary_key), None)

        cls.__columns__ = columns  # type: ignore[attr-defined]
        cls.__relationships__ = relationships  # type: ignore[attr-defined]
        cls.__accessors__ = accessors  # type: ignore[attr-defined]
        cls.__primary_key__ = primary_key  # type: ignore[attr-defined]
        cls.__table__ = Table(tablename, columns, primary_key)  # type: ignore[attr-defined]

        return cls


def _resolve_hints(cls: type) -> dict[str, Any]:
    module = sys.modules.get(cls.__module__, None)
    globalns = dict(getattr(module, "__dict__", {})) if module else {}
    globalns["Mapped"] = Mapped
    globalns["ClassVar"] = ClassVar
    globalns["Any"] = Any
    globalns["ColumnInfo"] = ColumnInfo
    globalns["RelationshipInfo"] = RelationshipInfo
    globalns["Accessor"] = Accessor
    globalns["Table"] = Table
    try:
        return get_type_hints(cls, globalns=globalns, localns={})
    except (NameError, TypeError):
        # Unresolvable annotations (e.g. forward references) are left untyped
        return {}


def _extract_mapped_type(hint: Any) -> tuple[type | None, bool]:
    """Extract ``(inner type, nullable)`` from a ``Mapped[T]`` / ``Mapped[T | None]`` annotation."""
    if typing.get_origin(hint) is Mapped:
        args = typing.get_args(hint)
        hint = args[0] if args else None

    nullable = False
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        args = typing.get_args(hint)
        non_none = [a for a in args if a is not type(None)]
        nullable = len(non_none) < len(args)
        hint = non_none[0] if len(non_none) == 1 else None

    # list[str] / dict[str, Any] are stored as their container type
    container = typing.get_origin(hint)
    if container in (list, dict):
        return container, nullable

    return (hint if isinstance(hint, type) else None), nullable


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, bytes, int, float))


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return isinstance(value, str) and _NUMERIC.match(value) is not None


def _numerically_equivalent(current: Any, original: Any) -> bool:
    return _is_numeric(current) and _is_numeric(original) and str(current) == str(original)


def _differs(current: Any, original: Any) -> bool:
    return type(current) is not type(original) or current != original


def _snapshot(value: Any) -> Any:
    return copy.deepcopy(value) if isinstance(value, (dict, list)) else value


class Model(metaclass=ModelMeta):
    """Base class for all models.

    Records keep raw attribute values, convert them lazily to typed values,
    and track changes against the last synced ``original`` snapshot.

    Example:
        >>> class Author(Model):
        ...     __tablename__ = "authors"
        ...     id: Mapped[int] = mapped_column(primary_key=True)
        ...     name: Mapped[str]
        ...     birth_date: Mapped[datetime | None]
        ...     books = many_to_many("Book", back_populates="authors")
        >>>
        >>> context.register(Author, Book)
        >>> author = Author.create(context, name="John Smith")
        >>> author.name = "Jon Smith"
        >>> author.get_dirty()
        {'name': 'Jon Smith'}
        >>> author.save()
        True
    """

    __tablename__: ClassVar[str]
    __table__: ClassVar[Table | None] = None
    __columns__: ClassVar[dict[str, ColumnInfo]] = {}
    __relationships__: ClassVar[dict[str, RelationshipInfo]] = {}
    __accessors__: ClassVar[dict[str, Accessor]] = {}
    __primary_key__: ClassVar[str | None] = None

    # None defers to the context default
    __unguarded__: ClassVar[bool | None] = None
    __fillable__: ClassVar[tuple[str, ...]] = ()

    _context: Any
    _attributes: dict[str, Any]
    _original: dict[str, Any]
    _value_cache: dict[str, Any]
    _exists: bool
    _fillable: list[str]
    _relations: dict[str, Any]
    _in_setter: set[str]

    def __init__(self, context: Context, data: Mapping[str, Any] | None = None, /, **attributes: Any) -> None:
        """Create a new, not yet persisted record."""
        self._init_state(context)
        context.table_for(type(self))

        values = {**(data or {}), **attributes}

        # Column defaults for anything not provided
        for col_name, col_info in self.__columns__.items():
            if col_name not in values and col_info.default is not None:
                values[col_name] = col_info.default_value()

        self.fill(values)

    def _init_state(self, context: Context) -> None:
        object.__setattr__(self, "_context", context)
        object.__setattr__(self, "_attributes", {})
        object.__setattr__(self, "_original", {})
        object.__setattr__(self, "_value_cache", {})
        object.__setattr__(self, "_exists", False)
        object.__setattr__(self, "_fillable", list(self.__fillable__))
        object.__setattr__(self, "_relations", {})
        object.__setattr__(self, "_in_setter", set())

    @classmethod
    def from_query(cls, context: Context, row: Mapping[str, Any]) -> Model:
        """Hydrate an existing record from a database row.

        Raw values are stored as-is (setter hooks are not applied) and become
        the synced baseline. Keys that are not columns are ignored.
        """
        instance = cls.__new__(cls)
        instance._init_state(context)

        cols = cls.__columns__
        for key, value in row.items():
            if key in cols:
                instance._attributes[key] = value

        object.__setattr__(instance, "_exists", True)
        instance.sync_original()
        return instance

    @classmethod
    def create(cls, context: Context, data: Mapping[str, Any] | None = None, /, **attributes: Any) -> Model:
        """Construct and insert a record.

        Raises:
            PersistenceError: if the database rejects the insert
        """
        instance = cls(context, data, **attributes)
        if not instance.save():
            raise PersistenceError(f"Could not insert {cls.__name__}")
        return instance

    @classmethod
    def query(cls, context: Context) -> QueryBuilder[Any]:
        """Start a fluent query for this model."""
        return QueryBuilder.from_model(context, cls)

    # ========== Attributes ==========

    def fill(self, data: Mapping[str, Any]) -> Model:
        """Assign every fillable attribute in ``data``."""
        for key, value in data.items():
            if self.is_fillable(key):
                self.set_attribute(key, value)
        return self

    def is_fillable(self, name: str) -> bool:
        unguarded = type(self).__unguarded__
        if unguarded is None:
            unguarded = self._context.unguarded
        return unguarded or name in self._fillable

    def set_attribute(self, name: str, value: Any) -> Any:
        """Set an attribute, routing through a registered setter hook.

        Returns the record, or whatever the setter hook returns.
        """
        if name in self.__relationships__:
            self._assign_relation(name, value)
            return self

        self._check_attribute(name)
        self._value_cache.pop(name, None)

        accessor = self.__accessors__.get(name)
        if accessor is not None and accessor.setter is not None and name not in self._in_setter:
            self._in_setter.add(name)
            try:
                return accessor.setter(self, value)
            finally:
                self._in_setter.discard(name)

        return self.set_raw_attribute(name, value)

    def set_raw_attribute(self, name: str, value: Any) -> Model:
        """Store a raw value, bypassing hooks.

        Raises:
            ValueError: when changing a primary key that is already set
        """
        if name == self.__primary_key__:
            current = self._attributes.get(name)
            if current not in (None, "") and value != current:
                raise ValueError(f"Primary key of {type(self).__name__} cannot change once set")

        self._value_cache.pop(name, None)
        self._attributes[name] = value
        return self

    def get_attribute(self, name: str) -> Any:
        """Get the typed value of an attribute, or None if it was never set.

        Scalar raw values are converted by the column's rule and cached until
        the attribute is reassigned; a getter hook is applied on every call.
        """
        if name in self.__relationships__:
            return self.get_relation(name)

        if name not in self._attributes:
            return None

        if name in self._value_cache:
            value = self._value_cache[name]
        else:
            value = self._attributes[name]

            # Only raw values from storage are converted
            if _is_scalar(value) and name in self.__columns__:
                value = self.__columns__[name].convert_raw_to_value(value)
                self._value_cache[name] = value

        accessor = self.__accessors__.get(name)
        if accessor is not None and accessor.getter is not None:
            value = accessor.getter(self, value)

        return value

    def get_raw_attribute(self, name: str) -> Any:
        return self._attributes.get(name)

    def get_attributes(self) -> dict[str, Any]:
        """Raw attribute values."""
        return dict(self._attributes)

    @classmethod
    def register_accessor(
        cls,
        name: str,
        getter: Callable[[Any, Any], Any] | None = None,
        setter: Callable[[Any, Any], Any] | None = None,
    ) -> None:
        """Register a custom getter and/or setter for an attribute.

        Example:
            >>> Author.register_accessor("name", setter=lambda r, v: r.set_attribute("name", v.strip()))
        """
        cls.__accessors__ = {**cls.__accessors__, name: Accessor(getter, setter)}

    def _check_attribute(self, name: str) -> None:
        if name not in self.__columns__ and name not in self.__accessors__:
            raise TypeError(f"Unknown column or relationship: {name}")

    # ========== Dirty tracking ==========

    def sync_original(self) -> Model:
        """Make the current attributes the new baseline."""
        object.__setattr__(self, "_original", {k: _snapshot(v) for k, v in self._attributes.items()})
        return self

    def sync_original_attribute(self, name: str) -> Model:
        self._original[name] = _snapshot(self._attributes.get(name))
        return self

    def get_original(self) -> dict[str, Any]:
        return dict(self._original)

    def get_dirty(self) -> dict[str, Any]:
        """Attributes changed since the last sync.

        Numeric values whose string forms match (``"5"`` and ``5``) are not
        considered changed.
        """
        dirty = {}
        for key, value in self._attributes.items():
            if key not in self._original:
                dirty[key] = value
            elif _differs(value, self._original[key]) and not _numerically_equivalent(value, self._original[key]):
                dirty[key] = value
        return dirty

    def is_dirty(self, *names: str) -> bool:
        """Check whether the record, or any of the given attributes, changed."""
        dirty = self.get_dirty()
        if not names:
            return bool(dirty)
        return any(name in dirty for name in names)

    # ========== Persistence ==========

    def exists(self) -> bool:
        return self._exists

    def get_pk(self) -> Any:
        pk = self.__primary_key__
        value = self._attributes.get(pk) if pk else None
        return None if value == "" else value

    def save(self, exclude_relations: Iterable[str] | str = ()) -> bool:
        """Persist changes and any loaded relations.

        Existing records issue an UPDATE of the dirty columns (nothing when
        clean); new records are inserted and refreshed with server defaults.

        Returns:
            True on success, False if the database reported no affected rows.

        Raises:
            ConfigurationError: if the model is not bound to a schema
        """
        table = self._table()
        if isinstance(exclude_relations, str):
            exclude_relations = (exclude_relations,)

        created = not self._exists
        saved = self._do_save_as_insert(table) if created else self._do_save_as_update(table)
        if not saved:
            return False

        persisted = self._persist_relations(set(exclude_relations))
        self._finish_save(created, persisted)
        return True

    def update(self, key: str, value: Any) -> bool:
        """Immediately write one column of an existing record."""
        table = self._table()
        self.set_attribute(key, value)

        params = ParamList(self._context.dialect)
        stored = table.column(key).prepare_for_storage(self._attributes.get(key))
        sql = (
            f"UPDATE {self._table_name(table)} SET {key} = {params.add(stored)} "
            f"WHERE {table.primary_key} = {params.add(self.get_pk())}"
        )
        result = self._context.execute(sql, params.values)
        if not result.affected:
            logger.warning("update of %s.%s affected no rows", type(self).__name__, key)
            return False

        self.sync_original_attribute(key)
        self._cache_set()
        return True

    def delete(self) -> bool:
        """Delete the record, its cache entry and its association rows."""
        table = self._table()
        pk = self.get_pk()
        if pk is None:
            return False

        relations = [self._relation(name) for name in self.__relationships__]

        params = ParamList(self._context.dialect)
        sql = f"DELETE FROM {self._table_name(table)} WHERE {table.primary_key} = {params.add(pk)}"
        result = self._context.execute(sql, params.values)
        logger.debug("deleted %s pk=%r (%d rows)", type(self).__name__, pk, result.affected)

        if not result.affected:
            logger.warning("delete of %s pk=%r affected no rows", type(self).__name__, pk)
            return False

        for relation in relations:
            relation.on_delete(self)

        self._cache_delete()
        object.__setattr__(self, "_exists", False)
        self._publish(DELETED)
        return True

    def _do_save_as_update(self, table: Table) -> bool:
        dirty = {k: v for k, v in self.get_dirty().items() if k in table.columns}
        if not dirty:
            return True

        params = ParamList(self._context.dialect)
        set_parts = [f"{k} = {params.add(table.column(k).prepare_for_storage(v))}" for k, v in dirty.items()]
        sql = (
            f"UPDATE {self._table_name(table)} SET {', '.join(set_parts)} "
            f"WHERE {table.primary_key} = {params.add(self.get_pk())}"
        )
        result = self._context.execute(sql, params.values)
        if not result.affected:
            logger.warning("update of %s pk=%r affected no rows", type(self).__name__, self.get_pk())
            return False

        logger.debug("updated %s pk=%r columns=%s", type(self).__name__, self.get_pk(), list(dirty))
        self._cache_set()
        return True

    def _do_save_as_insert(self, table: Table) -> bool:
        pk_col = table.primary_key
        values = {
            k: table.column(k).prepare_for_storage(v)
            for k, v in self._attributes.items()
            if k in table.columns
        }

        params = ParamList(self._context.dialect)
        name = self._table_name(table)
        if values:
            placeholders = ", ".join(params.add(v) for v in values.values())
            sql = f"INSERT INTO {name} ({', '.join(values)}) VALUES ({placeholders})"
        else:
            sql = f"INSERT INTO {name} DEFAULT VALUES"

        if pk_col and self._context.dialect == "postgresql":
            sql += f" RETURNING {pk_col}"

        result = self._context.execute(sql, params.values)
        if not result.affected and not result.rows:
            logger.warning("insert of %s affected no rows", type(self).__name__)
            return False

        insert_id = result.rows[0].get(pk_col) if result.rows else result.insert_id
        if pk_col and insert_id is not None and self.get_pk() is None:
            self.set_raw_attribute(pk_col, insert_id)

        # Fill in server-assigned defaults for columns the caller did not set
        missing = [c for c in table.columns if c not in self._attributes]
        if missing and self.get_pk() is not None:
            select = ParamList(self._context.dialect)
            sql = f"SELECT {', '.join(missing)} FROM {name} WHERE {pk_col} = {select.add(self.get_pk())}"
            row = self._context.execute(sql, select.values).first() or {}
            for column, value in row.items():
                self.set_raw_attribute(column, value)

        logger.debug("inserted %s pk=%r", type(self).__name__, self.get_pk())
        object.__setattr__(self, "_exists", True)
        self._cache_set()
        return True

    def _persist_relations(self, exclude: set[str]) -> list[ResultCollection]:
        persisted = []
        for name, relation in list(self._relations.items()):
            if name in exclude or relation.results is None:
                continue
            relation.persist(relation.results)
            persisted.append(relation.results)
        return persisted

    def _finish_save(self, created: bool, persisted: list[ResultCollection]) -> None:
        self.sync_original()
        # Subscribers read the relation diffs, so memory is cleared afterwards
        self._publish(SAVED, {"created": created})
        for collection in persisted:
            collection.clear_memory()

    def _publish(self, event_name: str, payload: Mapping[str, Any] | None = None) -> None:
        events = self._context.events
        if events is not None:
            events.publish(event_name, self, payload)

    def _table(self) -> Table:
        return self._context.table_for(type(self))

    def _table_name(self, table: Table) -> str:
        return self._context.schema.table_name(table)

    # ========== Cache ==========

    @classmethod
    def get(cls, context: Context, pk: Any) -> Model | None:
        """Retrieve a record by primary key, from the cache when possible.

        The record is written to the cache only when the cache was checked
        and missed.
        """
        table = context.table_for(cls)
        group = table.slug or table.name
        if table.primary_key is not None:
            pk = table.column(table.primary_key).convert_raw_to_value(pk)
        checked, data = cls._cache_lookup(context, pk, group)

        if not data:
            data = QueryBuilder(context, table).where(table.primary_key, True, pk).first()
            if data is None:
                return None
            instance = cls.from_query(context, data)
            if checked:
                instance._cache_set()
            return instance

        return cls.from_query(context, data)

    @classmethod
    def _cache_lookup(cls, context: Context, pk: Any, group: str) -> tuple[bool, dict[str, Any] | None]:
        if context.cache is None:
            return False, None
        try:
            return True, context.cache.get(pk, group)
        except Exception:
            logger.warning("cache read failed for %s pk=%r; reading from database", cls.__name__, pk, exc_info=True)
            return False, None

    def _cache_set(self) -> None:
        cache = self._context.cache
        if cache is None:
            return
        try:
            cache.set(self, self.get_cache_group())
        except Exception:
            logger.warning("cache write failed for %s pk=%r", type(self).__name__, self.get_pk(), exc_info=True)

    def _cache_delete(self) -> None:
        cache = self._context.cache
        if cache is None:
            return
        try:
            cache.delete(self, self.get_cache_group())
        except Exception:
            logger.warning("cache delete failed for %s pk=%r", type(self).__name__, self.get_pk(), exc_info=True)

    def get_data_to_cache(self) -> dict[str, Any]:
        """Storage-form column values."""
        cols = self.__columns__
        return {k: cols[k].prepare_for_storage(v) for k, v in self._attributes.items() if k in cols}

    def get_cache_group(self) -> str:
        table = self._table()
        return table.slug or table.name

    # ========== Durable identity ==========

    def to_identity(self) -> dict[str, Any]:
        """Serializable identity: primary key, fillable list and original snapshot.

        Live unsaved changes are not part of the identity.
        """
        cols = self.__columns__
        original = {k: cols[k].prepare_for_storage(v) if k in cols else v for k, v in self._original.items()}
        return {"pk": self.get_pk(), "fillable": list(self._fillable), "original": original}

    @classmethod
    def rehydrate(cls, context: Context, identity: Mapping[str, Any]) -> Model:
        """Rebuild a record from ``to_identity()`` output.

        The record is fetched fresh by primary key (cache, then database) and
        the saved fillable list and original snapshot are restored on top. Any
        changes that were unsaved when the identity was taken are lost.

        Raises:
            LookupError: if no record exists for the primary key
        """
        instance = cls.get(context, identity["pk"])
        if instance is None:
            raise LookupError(f"{cls.__name__} with pk={identity['pk']!r} not found")
        object.__setattr__(instance, "_fillable", list(identity.get("fillable", ())))
        object.__setattr__(instance, "_original", dict(identity.get("original", {})))
        return instance

    # ========== Relations ==========

    def _relation(self, name: str) -> Relation:
        relation = self._relations.get(name)
        if relation is None:
            info = self.__relationships__[name]
            relation = make_relation(self._context, type(self), info, parent=self)
            self._relations[name] = relation
        return relation

    def get_relation(self, name: str) -> ResultCollection:
        """Get a relation's collection, loading it on first access."""
        return self._relation(name).get_results()

    def is_relation_loaded(self, name: str) -> bool:
        relation = self._relations.get(name)
        return relation is not None and relation.results is not None

    def set_relation_value(self, name: str, collection: ResultCollection) -> None:
        """Install an already loaded collection for a relation."""
        if name not in self.__relationships__:
            raise TypeError(f"Unknown relationship: {name}")
        self._relation(name).set_results(collection)

    def _assign_relation(self, name: str, value: Any) -> None:
        if isinstance(value, ResultCollection):
            self.set_relation_value(name, value)
            return

        collection = self.get_relation(name)
        desired = list(value or ())
        desired_ids = {id(record) for record in desired}
        desired_pks = {record.get_pk() for record in desired if record.get_pk() is not None}

        for member in collection:
            if id(member) not in desired_ids and member.get_pk() not in desired_pks:
                collection.remove(member)
        for record in desired:
            collection.add(record)

    @classmethod
    def load_relation(
        cls,
        context: Context,
        records: list[Any],
        name: str,
        constrain: Callable[[Any], Any] | None = None,
    ) -> None:
        """Eager load relation ``name`` for many records with one query."""
        if not records:
            return
        info = cls.__relationships__[name]
        make_relation(context, cls, info).eager_load(records, name, constrain)

    # ========== Python protocol ==========

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

        cls = type(self)
        if name in cls.__columns__ or name in cls.__relationships__ or name in cls.__accessors__:
            return self.get_attribute(name)

        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        cls = type(self)
        if name in cls.__columns__ or name in cls.__relationships__ or name in cls.__accessors__:
            self.set_attribute(name, value)
        else:
            object.__setattr__(self, name, value)

    def __delattr__(self, name: str) -> None:
        if name in type(self).__columns__:
            self.set_raw_attribute(name, None)
        else:
            object.__delattr__(self, name)

    def __repr__(self) -> str:
        pk = self.__primary_key__
        if pk and self.get_pk() is not None:
            return f"<{self.__class__.__name__} {pk}={self.get_pk()!r}>"
        return f"<{self.__class__.__name__}>"

    def to_dict(self, include_relationships: bool = False) -> dict[str, Any]:
        """Convert to a dictionary of typed values."""
        result = {name: self.get_attribute(name) for name in self.__columns__ if name in self._attributes}

        if include_relationships:
            for name, relation in self._relations.items():
                if relation.results is not None:
                    result[name] = [record.to_dict() for record in relation.results]

        return result
