# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Predicate node tree for ``$filter`` expressions.

Predicates are built with ordinary Python operators on property paths::

    from odata_client.query import col

    expr = (col.Price > 100) & ((col.Category == "Tools") | col.Name.startswith("Pro"))
    expr = col.Tags.any(lambda t: t.Name == "sale")
    expr = ~col.Discontinued

or with a lambda over the entity, as accepted by
:meth:`~odata_client.query.builder.QueryBuilder.filter`::

    builder.filter(lambda p: p.Address.City == city)

Use ``&``, ``|`` and ``~`` for ``and``, ``or`` and ``not``; Python's ``and``/``or``/``not``
keywords and chained comparisons cannot be overloaded and raise :class:`TypeError`.

Plain Python values on the right-hand side (including closed-over variables) are
captured when the expression is built. :func:`captured` and :func:`closure` defer the
lookup until the predicate is compiled.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple


class Node:
    """Base class for predicate nodes; supplies the operator overloads."""

    __hash__ = object.__hash__

    def __eq__(self, other: Any) -> "BinaryOp":  # type: ignore[override]
        return BinaryOp("eq", self, as_node(other))

    def __ne__(self, other: Any) -> "BinaryOp":  # type: ignore[override]
        return BinaryOp("ne", self, as_node(other))

    def __gt__(self, other: Any) -> "BinaryOp":
        return BinaryOp("gt", self, as_node(other))

    def __ge__(self, other: Any) -> "BinaryOp":
        return BinaryOp("ge", self, as_node(other))

    def __lt__(self, other: Any) -> "BinaryOp":
        return BinaryOp("lt", self, as_node(other))

    def __le__(self, other: Any) -> "BinaryOp":
        return BinaryOp("le", self, as_node(other))

    def __and__(self, other: Any) -> "BinaryOp":
        return BinaryOp("and", self, as_node(other))

    def __rand__(self, other: Any) -> "BinaryOp":
        return BinaryOp("and", as_node(other), self)

    def __or__(self, other: Any) -> "BinaryOp":
        return BinaryOp("or", self, as_node(other))

    def __ror__(self, other: Any) -> "BinaryOp":
        return BinaryOp("or", as_node(other), self)

    def __invert__(self) -> "Not":
        return Not(self)

    def __bool__(self) -> bool:
        raise TypeError(
            "Predicate nodes have no truth value; use '&', '|' and '~' instead of 'and', 'or' and 'not', "
            "and avoid chained comparisons."
        )

    # String functions

    def contains(self, value: Any) -> "MethodCall":
        return MethodCall("contains", self, (as_node(value),))

    def startswith(self, value: Any) -> "MethodCall":
        return MethodCall("startswith", self, (as_node(value),))

    def endswith(self, value: Any) -> "MethodCall":
        return MethodCall("endswith", self, (as_node(value),))

    def lower(self) -> "MethodCall":
        return MethodCall("tolower", self, ())

    def upper(self) -> "MethodCall":
        return MethodCall("toupper", self, ())

    def strip(self) -> "MethodCall":
        return MethodCall("trim", self, ())

    def is_null_or_empty(self) -> "MethodCall":
        return MethodCall("isnullorempty", self, ())

    def in_(self, values: Any) -> "MethodCall":
        """Membership test: ``col.Id.in_([1, 2, 3])`` -> ``Id in (1,2,3)``."""
        if not isinstance(values, Node):
            values = Literal(values if isinstance(values, (str, bytes)) else list(values))
        return MethodCall("in", self, (values,))

    # Collection quantifiers

    def any(self, predicate: Optional[Callable[["Parameter"], Any]] = None) -> "Quantifier":
        return _quantifier("any", self, predicate)

    def all(self, predicate: Optional[Callable[["Parameter"], Any]] = None) -> "Quantifier":
        return _quantifier("all", self, predicate)


@dataclass(frozen=True, eq=False)
class Parameter(Node):
    """
    Lambda parameter: the entity itself (``_is_entity``) or a variable bound by ``any``/``all``.

    Attribute access builds member paths; use indexing for names that collide with
    node methods (``p["contains"]``) or for slash-separated paths (``p["Address/City"]``).
    """

    _name: str
    _is_entity: bool = False

    def __getattr__(self, item: str) -> "MemberPath":
        if item.startswith("_"):
            raise AttributeError(item)
        return MemberPath(self, (item,))

    def __getitem__(self, item: str) -> "MemberPath":
        return MemberPath(self, tuple(item.split("/")))


@dataclass(frozen=True, eq=False)
class MemberPath(Node):
    """
    Property access chain. ``_root`` is a :class:`Parameter` for entity paths; any other
    root is a captured object whose member chain is evaluated when the predicate compiles.
    """

    _root: Any
    _segments: Tuple[str, ...]

    def __getattr__(self, item: str) -> "MemberPath":
        if item.startswith("_"):
            raise AttributeError(item)
        return MemberPath(self._root, self._segments + (item,))

    def __getitem__(self, item: str) -> "MemberPath":
        return MemberPath(self._root, self._segments + tuple(item.split("/")))


@dataclass(frozen=True, eq=False)
class Literal(Node):
    value: Any


@dataclass(frozen=True, eq=False)
class Closure(Node):
    """Value produced by calling ``getter`` once at compile time."""

    getter: Callable[[], Any]


@dataclass(frozen=True, eq=False)
class BinaryOp(Node):
    op: str
    left: Node
    right: Node


@dataclass(frozen=True, eq=False)
class Not(Node):
    operand: Node


@dataclass(frozen=True, eq=False)
class MethodCall(Node):
    name: str
    target: Optional[Node]
    args: Tuple[Node, ...] = ()


@dataclass(frozen=True, eq=False)
class Quantifier(Node):
    kind: str  # "any" | "all"
    collection: Node
    variable: Optional[Parameter] = None
    predicate: Optional[Node] = None


def as_node(value: Any) -> Node:
    """Wrap a plain value in :class:`Literal`; nodes pass through."""
    if isinstance(value, Node):
        return value
    return Literal(value)


def _lambda_parameter_name(fn: Callable[..., Any]) -> str:
    try:
        params = list(inspect.signature(fn).parameters)
    except (TypeError, ValueError):
        params = []
    return params[0] if params else "x"


def _quantifier(kind: str, collection: Node, predicate: Optional[Callable[[Parameter], Any]]) -> Quantifier:
    if predicate is None:
        return Quantifier(kind, collection)
    variable = Parameter(_lambda_parameter_name(predicate))
    return Quantifier(kind, collection, variable, as_node(predicate(variable)))


def entity(name: str = "it") -> Parameter:
    """Create an entity-rooted parameter; its paths render without a prefix."""
    return Parameter(name, True)


def captured(obj: Any) -> MemberPath:
    """
    Defer member access on ``obj`` until compile time.

    ``captured(settings).limits.max_price`` renders the value of
    ``settings.limits.max_price`` as read when the filter is compiled.
    """
    return MemberPath(obj, ())


def closure(getter: Callable[[], Any]) -> Closure:
    return Closure(getter)


def predicate_from(fn_or_node: Any, parameter_name: Optional[str] = None) -> Node:
    """Resolve a lambda over the entity (or an existing node) to a predicate node."""
    if isinstance(fn_or_node, Node):
        return fn_or_node
    if callable(fn_or_node):
        name = parameter_name or _lambda_parameter_name(fn_or_node)
        return as_node(fn_or_node(entity(name)))
    return as_node(fn_or_node)


def evaluate_captured(path: MemberPath) -> Any:
    """Walk a captured member chain, reading attributes (or mapping keys)."""
    value = path._root
    for segment in path._segments:
        if isinstance(value, dict) and segment in value:
            value = value[segment]
        else:
            value = getattr(value, segment)
    return value


col = entity()
"""Entity-rooted parameter for building predicates without a lambda."""


__all__ = [
    "Node",
    "Parameter",
    "MemberPath",
    "Literal",
    "Closure",
    "BinaryOp",
    "Not",
    "MethodCall",
    "Quantifier",
    "as_node",
    "entity",
    "captured",
    "closure",
    "predicate_from",
    "evaluate_captured",
    "col",
]
