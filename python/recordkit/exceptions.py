"""Exception types raised by recordkit."""

from __future__ import annotations


class RecordKitError(Exception):
    """Base class for recordkit errors."""


class ConfigurationError(RecordKitError, RuntimeError):
    """A model, table or relation is not bound to a usable schema.

    Raised before any SQL is built.
    """


class BuildError(RecordKitError, ValueError):
    """A query could not be constructed (unknown column, bad operator, ...)."""


class PersistenceError(RecordKitError, RuntimeError):
    """A write was rejected by the database.

    ``Model.save()`` and ``Model.delete()`` report this as ``False``; only
    ``Model.create()`` raises it.
    """
