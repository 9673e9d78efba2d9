"""Boolean predicate trees rendered to parameterized SQL."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Union

from recordkit.exceptions import BuildError

COMPARISONS = frozenset({"=", "!=", "<", "<=", ">", ">="})
PATTERN_OPERATORS = frozenset({"LIKE", "NOT LIKE"})
LIST_OPERATORS = frozenset({"IN", "NOT IN"})
OPERATORS = COMPARISONS | PATTERN_OPERATORS | LIST_OPERATORS | {"<>"}

AND = "AND"
OR = "OR"

Qualifier = Callable[[str], str]


class ParamList:
    """Collects bound parameter values and hands out placeholders.

    PostgreSQL uses numbered ``$n`` placeholders, SQLite ``?``.
    """

    def __init__(self, dialect: str = "sqlite") -> None:
        self.dialect = dialect
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}" if self.dialect == "postgresql" else "?"

    def add_all(self, values: tuple[Any, ...] | list[Any]) -> str:
        return ", ".join(self.add(value) for value in values)


@dataclass(frozen=True)
class Where:
    """Leaf comparison ``column operator value``."""

    column: str
    operator: str
    value: Any = None

    def render(self, params: ParamList, qualify: Qualifier) -> str:
        col = qualify(self.column)
        op = self.operator

        if op in LIST_OPERATORS:
            if not self.value:
                # Empty IN matches nothing, empty NOT IN matches everything
                return "1 = 0" if op == "IN" else "1 = 1"
            return f"{col} {op} ({params.add_all(self.value)})"

        if self.value is None:
            if op == "=":
                return f"{col} IS NULL"
            if op == "!=":
                return f"{col} IS NOT NULL"

        return f"{col} {op} {params.add(self.value)}"


@dataclass(frozen=True)
class Group:
    """Composite ``(left AND|OR right)``."""

    left: Node
    boolean: str
    right: Node

    def render(self, params: ParamList, qualify: Qualifier) -> str:
        left = self.left.render(params, qualify)
        right = self.right.render(params, qualify)
        return f"({left} {self.boolean} {right})"


Node = Union[Where, Group]


def make_where(column: str, operator: Any, value: Any = None) -> Where:
    """Validate and normalize a leaf predicate.

    ``operator`` may be the ``True`` sentinel, meaning plain equality with
    ``value``. Sequence values turn ``=`` into ``IN`` and ``!=`` into ``NOT IN``.

    Raises:
        BuildError: empty column, operator outside the supported set, or a
            sequence value with an operator that cannot take one
    """
    if not isinstance(column, str) or not column.strip():
        raise BuildError("A predicate needs a non-empty column name")

    if operator is True:
        op = "="
    elif isinstance(operator, str):
        op = " ".join(operator.upper().split())
    else:
        raise BuildError(f"Invalid operator {operator!r} for column '{column}'")

    if op not in OPERATORS:
        raise BuildError(f"Unsupported operator '{operator}' for column '{column}'")
    if op == "<>":
        op = "!="

    if isinstance(value, (list, tuple, set, frozenset)):
        if op in ("=", "IN"):
            return Where(column, "IN", tuple(value))
        if op in ("!=", "NOT IN"):
            return Where(column, "NOT IN", tuple(value))
        raise BuildError(f"Operator '{op}' cannot be used with a list of values")

    if op in LIST_OPERATORS:
        return Where(column, op, (value,))

    return Where(column, op, value)


def combine(tree: Node | None, boolean: str, node: Node) -> Node:
    """Attach ``node`` to ``tree`` with AND/OR, in insertion order."""
    if tree is None:
        return node
    return Group(tree, boolean, node)


def render_where(tree: Node, params: ParamList, qualify: Qualifier) -> str:
    """Render a tree as a fully parenthesized WHERE/ON fragment."""
    sql = tree.render(params, qualify)
    return sql if isinstance(tree, Group) else f"({sql})"
