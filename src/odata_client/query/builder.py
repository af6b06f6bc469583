# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Fluent query builder for constructing OData v4 request URLs.

Provides a discoverable interface for composing entity-set addressing (key,
derived-type cast, bound function) and system query options, and renders them
as a relative URL with a fixed option order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Union
from urllib.parse import quote

from ..core._error_codes import VALIDATION_INVALID_PAGING, VALIDATION_INVALID_SELECTOR
from ..core.errors import ValidationError
from .compiler import compile_predicate
from .literals import format_function_parameters, format_key
from .predicate import BinaryOp, MemberPath, MethodCall, Node, Parameter, as_node, entity

if TYPE_CHECKING:
    from ..core.results import ODataResponse

logger = logging.getLogger(__name__)

Selector = Union[str, MemberPath, Callable[[Parameter], Any]]
FilterLike = Union[str, Node, Callable[[Parameter], Any]]


def _encode(value: str) -> str:
    # Percent-encode every reserved character, leaving only RFC 3986 unreserved ones
    return quote(value, safe="")


def _path_text(path: Any) -> str:
    if isinstance(path, MemberPath) and isinstance(path._root, Parameter):
        return "/".join(path._segments)
    raise ValidationError(
        f"Selector must resolve to a property path, got {type(path).__name__}",
        subcode=VALIDATION_INVALID_SELECTOR,
    )


def selector_paths(selector: Selector) -> List[str]:
    """
    Resolve a selector to property paths.

    Accepts a (comma-separated) string, a member path such as ``col.Address.City``,
    or a lambda over the entity returning a path or a tuple of paths.
    """
    if isinstance(selector, str):
        return [part.strip() for part in selector.split(",") if part.strip()]
    if isinstance(selector, MemberPath):
        return [_path_text(selector)]
    if callable(selector):
        result = selector(entity())
        if isinstance(result, (tuple, list)):
            return [_path_text(p) for p in result]
        return [_path_text(result)]
    raise ValidationError(
        f"Unsupported selector type: {type(selector).__name__}", subcode=VALIDATION_INVALID_SELECTOR
    )


def _filter_text(predicate: FilterLike) -> str:
    if isinstance(predicate, str):
        return predicate.strip()
    return compile_predicate(predicate)


def _check_paging(name: str, value: int) -> int:
    if value < 0:
        raise ValidationError(f"{name} must be non-negative", subcode=VALIDATION_INVALID_PAGING)
    return value


@dataclass
class ExpandBuilder:
    """
    Options applied to one expanded navigation property.

    Rendered as ``Nav($select=...;$expand=...;$filter=...;$orderby=...;$top=...;$skip=...)``;
    nested expands can be configured to any depth.

    Example::

        QueryBuilder("Customers").expand(
            "Orders",
            lambda o: o.select("Id", "Total")
                       .filter(col.Total > 100)
                       .expand("Items", lambda i: i.select("Sku"))
                       .top(5),
        )
        # Customers?$expand=Orders($select=Id,Total;$expand=Items($select=Sku);$filter=(Total gt 100);$top=5)
    """

    navigation: str
    _select: List[str] = field(default_factory=list)
    _expand: List["ExpandBuilder"] = field(default_factory=list)
    _filter: List[str] = field(default_factory=list)
    _orderby: List[str] = field(default_factory=list)
    _top: Optional[int] = None
    _skip: Optional[int] = None

    def select(self, *fields: Selector) -> "ExpandBuilder":
        for f in fields:
            self._select.extend(selector_paths(f))
        return self

    def expand(
        self,
        navigation: Selector,
        configure: Optional[Callable[["ExpandBuilder"], Any]] = None,
    ) -> "ExpandBuilder":
        self._expand.extend(_make_expands(navigation, configure))
        return self

    def filter(self, predicate: FilterLike) -> "ExpandBuilder":
        text = _filter_text(predicate)
        if text:
            self._filter.append(text)
        return self

    def order_by(self, field_: Selector, descending: bool = False) -> "ExpandBuilder":
        for path in selector_paths(field_):
            self._orderby.append(f"{path} desc" if descending else path)
        return self

    def top(self, count: int) -> "ExpandBuilder":
        self._top = _check_paging("top", count)
        return self

    def skip(self, count: int) -> "ExpandBuilder":
        self._skip = _check_paging("skip", count)
        return self

    def build(self) -> str:
        options: List[str] = []
        if self._select:
            options.append("$select=" + ",".join(self._select))
        if self._expand:
            options.append("$expand=" + ",".join(e.build() for e in self._expand))
        if self._filter:
            options.append("$filter=" + " and ".join(f"({f})" for f in self._filter))
        if self._orderby:
            options.append("$orderby=" + ",".join(self._orderby))
        if self._top is not None:
            options.append(f"$top={self._top}")
        if self._skip is not None:
            options.append(f"$skip={self._skip}")
        if not options:
            return self.navigation
        return f"{self.navigation}({';'.join(options)})"


def _make_expands(
    navigation: Selector,
    configure: Optional[Callable[[ExpandBuilder], Any]],
) -> List[ExpandBuilder]:
    built = []
    for nav in selector_paths(navigation):
        expansion = ExpandBuilder(nav)
        if configure is not None:
            configure(expansion)
        built.append(expansion)
    return built


@dataclass
class QueryBuilder:
    """
    Fluent interface for building OData queries.

    Query options are always emitted in the same order: ``$filter``, ``$search``,
    ``$select``, ``$expand``, ``$orderby``, ``$skip``, ``$top``, ``$count``,
    ``$apply``, ``$compute``. ``$filter``, ``$search``, ``$apply`` and ``$compute``
    values are percent-encoded; the others are emitted as written.

    :param entity_set: Entity set name to query.
    :type entity_set: str

    Example:
        Build and execute a query (via client)::

            page = (client.query.builder("Products")
                    .filter(lambda p: (p.Price > 100) & (p.Rating >= 3))
                    .select("Name", "Price")
                    .order_by("Price", descending=True)
                    .top(10)
                    .execute())

        Build a standalone URL::

            url = QueryBuilder("Products").key(42).build_url()
            # "Products(42)"
    """

    entity_set: str
    _key: Any = None
    _derived_type: Optional[str] = None
    _filter: List[str] = field(default_factory=list)
    _search: Optional[str] = None
    _select: List[str] = field(default_factory=list)
    _expand: List[ExpandBuilder] = field(default_factory=list)
    _orderby: List[str] = field(default_factory=list)
    _skip: Optional[int] = None
    _top: Optional[int] = None
    _count: bool = False
    _function: Optional[str] = None
    _function_parameters: Any = None
    _apply: Optional[str] = None
    _compute: List[str] = field(default_factory=list)
    _headers: Dict[str, str] = field(default_factory=dict)
    _result_type: Any = field(default=None, compare=False, repr=False)
    _query_ops: Any = field(default=None, compare=False, repr=False)

    # ------------------------------------------------------------ addressing

    def key(self, value: Any) -> "QueryBuilder":
        """
        Address a single entity by key.

        :param value: ``int``, ``str``, ``UUID``, or a mapping for composite keys.
        :raises ~odata_client.core.errors.ValidationError: If ``value`` is ``None``.

        Example::

            QueryBuilder("OrderLines").key({"OrderId": 1, "LineNo": 2}).build_url()
            # "OrderLines(OrderId=1,LineNo=2)"
        """
        format_key(value)
        self._key = value
        return self

    def cast(self, type_name: str) -> "QueryBuilder":
        """
        Restrict to a derived type: ``People/Namespace.Employee``.

        :param type_name: Namespace-qualified type name.
        :type type_name: str
        """
        self._derived_type = type_name
        return self

    of_type = cast

    def function(self, name: str, parameters: Any = None) -> "QueryBuilder":
        """
        Invoke a bound function on the addressed resource.

        Parameter names are converted to lower camel case; ``None`` values are skipped.

        Example::

            QueryBuilder("Products").function("MostExpensive", {"MaxResults": 3}).build_url()
            # "Products/MostExpensive(maxResults=3)"
        """
        self._function = name
        self._function_parameters = parameters
        return self

    # ------------------------------------------------------------ filtering

    def filter(self, predicate: FilterLike) -> "QueryBuilder":
        """
        Add a filter clause. Clauses are AND-combined, each in parentheses.

        :param predicate: A predicate node (``col.Price > 10``), a lambda over the
            entity (``lambda p: p.Price > 10``) or raw filter text. Empty text is ignored.
        :return: Self for method chaining.
        :rtype: QueryBuilder
        :raises ~odata_client.core.errors.UnsupportedExpressionError: If the predicate
            cannot be rendered.
        """
        text = _filter_text(predicate)
        if text:
            self._filter.append(text)
        return self

    def filter_raw(self, filter_string: str) -> "QueryBuilder":
        """Add a raw OData filter string."""
        return self.filter(filter_string)

    def filter_eq(self, column: str, value: Any) -> "QueryBuilder":
        """Add equality filter (column eq value)."""
        return self.filter(BinaryOp("eq", entity()[column], as_node(value)))

    def filter_ne(self, column: str, value: Any) -> "QueryBuilder":
        """Add not-equal filter (column ne value)."""
        return self.filter(BinaryOp("ne", entity()[column], as_node(value)))

    def filter_gt(self, column: str, value: Any) -> "QueryBuilder":
        return self.filter(BinaryOp("gt", entity()[column], as_node(value)))

    def filter_ge(self, column: str, value: Any) -> "QueryBuilder":
        return self.filter(BinaryOp("ge", entity()[column], as_node(value)))

    def filter_lt(self, column: str, value: Any) -> "QueryBuilder":
        return self.filter(BinaryOp("lt", entity()[column], as_node(value)))

    def filter_le(self, column: str, value: Any) -> "QueryBuilder":
        return self.filter(BinaryOp("le", entity()[column], as_node(value)))

    def filter_contains(self, column: str, value: str) -> "QueryBuilder":
        """Add ``contains(column,'value')``."""
        return self.filter(MethodCall("contains", entity()[column], (as_node(value),)))

    def filter_in(self, column: str, values: Iterable[Any]) -> "QueryBuilder":
        """Add ``column in (v1,v2,...)``; an empty collection filters everything out."""
        return self.filter(entity()[column].in_(values))

    def filter_null(self, column: str) -> "QueryBuilder":
        return self.filter(BinaryOp("eq", entity()[column], as_node(None)))

    def filter_not_null(self, column: str) -> "QueryBuilder":
        return self.filter(BinaryOp("ne", entity()[column], as_node(None)))

    def search(self, term: str) -> "QueryBuilder":
        """Set the ``$search`` term. Blank terms are ignored."""
        self._search = term if term and term.strip() else None
        return self

    # ------------------------------------------------------------ shaping

    def select(self, *fields: Selector) -> "QueryBuilder":
        """
        Select specific properties to retrieve.

        :param fields: Property names (comma-separated allowed), member paths, or lambdas.
        :return: Self for method chaining.
        :rtype: QueryBuilder

        Example::

            QueryBuilder("Products").select("Name", lambda p: (p.Price, p.Category.Name))
            # "Products?$select=Name,Price,Category/Name"
        """
        for f in fields:
            self._select.extend(selector_paths(f))
        return self

    def expand(
        self,
        navigation: Selector,
        configure: Optional[Callable[[ExpandBuilder], Any]] = None,
    ) -> "QueryBuilder":
        """
        Expand a navigation property, optionally with nested options.

        :param navigation: Navigation property name (comma-separated allowed), path, or lambda.
        :param configure: Callback receiving an :class:`ExpandBuilder` for nested options.
        :return: Self for method chaining.
        :rtype: QueryBuilder
        """
        self._expand.extend(_make_expands(navigation, configure))
        return self

    def order_by(self, field_: Selector, descending: bool = False) -> "QueryBuilder":
        """
        Add sorting order. Can be called multiple times for multi-column sorting.

        Example::

            QueryBuilder("Products").order_by("Price", descending=True).order_by("Name")
            # "Products?$orderby=Price desc,Name"
        """
        for path in selector_paths(field_):
            self._orderby.append(f"{path} desc" if descending else path)
        return self

    def order_by_descending(self, field_: Selector) -> "QueryBuilder":
        return self.order_by(field_, descending=True)

    def skip(self, count: int) -> "QueryBuilder":
        self._skip = _check_paging("skip", count)
        return self

    def top(self, count: int) -> "QueryBuilder":
        """
        Limit the number of results.

        :raises ~odata_client.core.errors.ValidationError: If ``count`` is negative.
        """
        self._top = _check_paging("top", count)
        return self

    def count(self, include: bool = True) -> "QueryBuilder":
        """Request ``@odata.count`` in the response (``$count=true``)."""
        self._count = include
        return self

    def apply(self, transformation: str) -> "QueryBuilder":
        """
        Set a raw ``$apply`` aggregation, for example ``groupby((Category),aggregate(Price with sum as Total))``.
        Blank values are ignored.
        """
        self._apply = transformation if transformation and transformation.strip() else None
        return self

    def compute(self, *expressions: str) -> "QueryBuilder":
        """
        Add ``$compute`` expressions such as ``"Price mul Quantity as Total"``.
        Multiple expressions are comma-joined; empty values are ignored.
        """
        self._compute.extend(e for e in expressions if e)
        return self

    def with_header(self, name: str, value: str) -> "QueryBuilder":
        """Attach a request header sent when this query executes."""
        self._headers[name] = value
        return self

    def page_size(self, size: int) -> "QueryBuilder":
        """
        Ask the service for server-driven paging with ``size`` entities per page.

        Sent as ``Prefer: odata.maxpagesize=<size>``; follow pages with
        :meth:`~odata_client.operations.query.QueryOperations.get_all`.
        """
        if size < 1:
            raise ValidationError("page_size must be at least 1", subcode=VALIDATION_INVALID_PAGING)
        return self.with_header("Prefer", f"odata.maxpagesize={size}")

    def as_type(self, result_type: Any) -> "QueryBuilder":
        """Bind results of :meth:`execute` to ``result_type`` (a dataclass or ``from_dict`` class)."""
        self._result_type = result_type
        return self

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self._headers)

    # ------------------------------------------------------------ rendering

    def build_query_options(self) -> List[str]:
        """Render the ``$option=value`` list in emission order."""
        params: List[str] = []
        if self._filter:
            combined = " and ".join(f"({f})" for f in self._filter)
            params.append(f"$filter={_encode(combined)}")
        if self._search:
            params.append(f"$search={_encode(self._search)}")
        if self._select:
            params.append("$select=" + ",".join(self._select))
        if self._expand:
            params.append("$expand=" + ",".join(e.build() for e in self._expand))
        if self._orderby:
            params.append("$orderby=" + ",".join(self._orderby))
        if self._skip is not None:
            params.append(f"$skip={self._skip}")
        if self._top is not None:
            params.append(f"$top={self._top}")
        if self._count:
            params.append("$count=true")
        if self._apply:
            params.append(f"$apply={_encode(self._apply)}")
        if self._compute:
            params.append(f"$compute={_encode(','.join(self._compute))}")
        return params

    def build_path(self) -> str:
        parts = [self.entity_set]
        if self._derived_type:
            parts.append("/" + self._derived_type)
        if self._key is not None:
            parts.append(f"({format_key(self._key)})")
        if self._function:
            parts.append(f"/{self._function}({format_function_parameters(self._function_parameters)})")
        return "".join(parts)

    def build_url(self) -> str:
        """
        Render the relative request URL.

        Pure and repeatable: calling it twice yields the same string.

        :return: ``EntitySet[/Type][(key)][/Function(params)][?options]``
        :rtype: str
        """
        path = self.build_path()
        params = self.build_query_options()
        url = f"{path}?{'&'.join(params)}" if params else path
        logger.debug("QueryBuilder.build_url() - %s", url)
        return url

    def execute(self) -> "ODataResponse":
        """
        Execute the query and return the first page of results.

        This method is only available when the QueryBuilder was created via
        ``client.query.builder(entity_set)``.

        :raises RuntimeError: If the query was not created via ``client.query.builder()``.
        """
        if self._query_ops is None:
            raise RuntimeError(
                "Cannot execute: query was not created via client.query.builder(). "
                "Use client.query.get(query) instead."
            )
        return self._query_ops.get(self, result_type=self._result_type)


__all__ = ["QueryBuilder", "ExpandBuilder", "selector_paths"]
