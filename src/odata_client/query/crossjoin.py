# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Builder for ``$crossjoin`` queries across several entity sets.

Property paths are qualified by entity set, so the predicate DSL reads naturally::

    join = (client.query.crossjoin("Products", "Categories")
            .filter(col.Products.CategoryId == col.Categories.Id)
            .select("Products/Name", "Categories/Name"))
    join.build_url()
    # "$crossjoin(Products,Categories)?$filter=%28Products%2FCategoryId%20eq%20Categories%2FId%29&$select=Products/Name,Categories/Name"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from ..core._error_codes import VALIDATION_CROSSJOIN_ENTITY_SETS
from ..core.errors import ValidationError
from .builder import FilterLike, Selector, _check_paging, _encode, _filter_text, selector_paths

if TYPE_CHECKING:
    from ..core.results import CrossJoinResponse

logger = logging.getLogger(__name__)


@dataclass
class CrossJoinBuilder:
    """
    Fluent description of a ``$crossjoin(A,B,...)`` request.

    Options are emitted as ``$filter``, ``$select``, ``$expand``, ``$orderby``,
    ``$skip``, ``$top``, ``$count``; only ``$filter`` is percent-encoded.

    :param entity_sets: At least two entity set names.
    :raises ~odata_client.core.errors.ValidationError: If fewer than two entity sets are given.
    """

    entity_sets: Sequence[str]
    _filter: List[str] = field(default_factory=list)
    _select: List[str] = field(default_factory=list)
    _expand: List[str] = field(default_factory=list)
    _orderby: List[str] = field(default_factory=list)
    _skip: Optional[int] = None
    _top: Optional[int] = None
    _count: bool = False
    _headers: Dict[str, str] = field(default_factory=dict)
    _query_ops: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        self.entity_sets = [name for name in self.entity_sets if name]
        if len(self.entity_sets) < 2:
            raise ValidationError(
                "Cross-join requires at least two entity sets", subcode=VALIDATION_CROSSJOIN_ENTITY_SETS
            )

    def filter(self, predicate: FilterLike) -> "CrossJoinBuilder":
        """Add a filter clause over qualified paths, e.g. ``col.Products.Price > 10``."""
        text = _filter_text(predicate)
        if text:
            self._filter.append(text)
        return self

    def select(self, *fields: Selector) -> "CrossJoinBuilder":
        for f in fields:
            self._select.extend(selector_paths(f))
        return self

    def expand(self, *fields: Selector) -> "CrossJoinBuilder":
        for f in fields:
            self._expand.extend(selector_paths(f))
        return self

    def order_by(self, field_: Selector, descending: bool = False) -> "CrossJoinBuilder":
        for path in selector_paths(field_):
            self._orderby.append(f"{path} desc" if descending else path)
        return self

    def skip(self, count: int) -> "CrossJoinBuilder":
        self._skip = _check_paging("skip", count)
        return self

    def top(self, count: int) -> "CrossJoinBuilder":
        self._top = _check_paging("top", count)
        return self

    def count(self, include: bool = True) -> "CrossJoinBuilder":
        self._count = include
        return self

    def with_header(self, name: str, value: str) -> "CrossJoinBuilder":
        self._headers[name] = value
        return self

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self._headers)

    def build_url(self) -> str:
        """
        Render the relative request URL.

        :return: ``$crossjoin(A,B)[?options]``
        :rtype: str
        """
        params: List[str] = []
        if self._filter:
            combined = " and ".join(f"({f})" for f in self._filter)
            params.append(f"$filter={_encode(combined)}")
        if self._select:
            params.append("$select=" + ",".join(self._select))
        if self._expand:
            params.append("$expand=" + ",".join(self._expand))
        if self._orderby:
            params.append("$orderby=" + ",".join(self._orderby))
        if self._skip is not None:
            params.append(f"$skip={self._skip}")
        if self._top is not None:
            params.append(f"$top={self._top}")
        if self._count:
            params.append("$count=true")

        path = f"$crossjoin({','.join(self.entity_sets)})"
        url = f"{path}?{'&'.join(params)}" if params else path
        logger.debug("CrossJoinBuilder.build_url() - %s", url)
        return url

    def execute(self) -> "CrossJoinResponse":
        """
        Execute the cross-join and return the first page of rows.

        :raises RuntimeError: If the builder was not created via ``client.query.crossjoin()``.
        """
        if self._query_ops is None:
            raise RuntimeError(
                "Cannot execute: cross-join was not created via client.query.crossjoin(). "
                "Use client.query.get_crossjoin(join) instead."
            )
        return self._query_ops.get_crossjoin(self)


__all__ = ["CrossJoinBuilder"]
