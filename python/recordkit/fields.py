"""Column definitions and raw/typed conversion rules."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


class JSON:
    """Marker class for columns stored as a JSON string.

    Example:
        >>> class Book(Model):
        ...     tags: Mapped[list] = mapped_column(JSON)
    """

    pass


class Mapped(Generic[T]):
    """Type annotation wrapper indicating a database-mapped column.

    Example:
        >>> class Author(Model):
        ...     id: Mapped[int] = mapped_column(primary_key=True)
        ...     name: Mapped[str]
        ...     birth_date: Mapped[datetime | None]
    """

    pass


@dataclass
class ColumnInfo:
    """Stores metadata about a column and how its values are converted.

    The raw form is what the database stores and returns; the typed form is
    what application code works with.
    """

    name: str | None = None
    python_type: type | None = None
    primary_key: bool = False
    nullable: bool = False
    default: Any = None
    is_json: bool = False
    converter: Callable[[Any], Any] | None = None
    storage: Callable[[Any], Any] | None = None

    def default_value(self) -> Any:
        """Evaluate the column default (callables are called)."""
        return self.default() if callable(self.default) else self.default

    def convert_raw_to_value(self, raw: Any) -> Any:
        """Convert a raw database value to its typed form."""
        if raw is None:
            return None
        if self.converter is not None:
            return self.converter(raw)

        kind = self.python_type
        if self.is_json or kind is dict or kind is list:
            return json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        if kind is bool:
            return _to_bool(raw)
        if kind is datetime:
            return raw if isinstance(raw, datetime) else datetime.fromisoformat(str(raw))
        if kind is date:
            return _to_date(raw)
        if kind in (int, float, str, Decimal):
            return kind(raw)
        return raw

    def prepare_for_storage(self, value: Any) -> Any:
        """Convert a typed (or already raw) value to the form the database stores."""
        if value is None:
            return None
        if self.storage is not None:
            return self.storage(value)

        if isinstance(value, (dict, list)) and (self.is_json or self.python_type in (dict, list)):
            return json.dumps(value)
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, Decimal):
            return str(value)
        return value


def _to_bool(raw: Any) -> bool:
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(f"Cannot interpret {raw!r} as a boolean")
    return bool(raw)


def _to_date(raw: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw)
    # DATE columns may hold full datetime strings
    if len(text) > 10:
        return datetime.fromisoformat(text).date()
    return date.fromisoformat(text)


def mapped_column(
    type_or_json: type | None = None,
    /,
    *,
    primary_key: bool = False,
    nullable: bool = False,
    default: Any = None,
    converter: Callable[[Any], Any] | None = None,
    storage: Callable[[Any], Any] | None = None,
) -> Any:
    """Define a database column.

    Args:
        type_or_json: Optional ``JSON`` marker for this column
        primary_key: Whether this is the primary key column
        nullable: Whether NULL values are allowed
        default: Default value (can be callable), applied to new records
        converter: Custom raw -> typed conversion
        storage: Custom typed -> raw conversion

    Returns:
        A ColumnInfo descriptor

    Example:
        >>> id: Mapped[int] = mapped_column(primary_key=True)
        >>> bio: Mapped[str | None] = mapped_column(nullable=True)
        >>> tags: Mapped[list] = mapped_column(JSON, default=list)
    """
    is_json = type_or_json is JSON or (
        isinstance(type_or_json, type) and issubclass(type_or_json, JSON)
    )

    # Primary keys are never nullable
    if primary_key:
        nullable = False

    return ColumnInfo(
        primary_key=primary_key,
        nullable=nullable,
        default=default,
        is_json=is_json,
        converter=converter,
        storage=storage,
    )
