# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Query operations namespace."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, TYPE_CHECKING

from ..core.cancellation import CancellationToken
from ..core.results import CrossJoinResponse, DeltaResponse, ODataResponse
from ..query.builder import QueryBuilder
from ..query.crossjoin import CrossJoinBuilder

if TYPE_CHECKING:
    from ..client import ODataClient


class QueryOperations:
    """
    Query operations for retrieving entities.

    Accessed via ``client.query``. Queries are described with a
    :class:`~odata_client.query.builder.QueryBuilder` and executed here.

    Example:
        Fluent query builder (recommended)::

            page = (client.query.builder("Products")
                    .select("Name", "Price")
                    .filter((col.Price > 100) & (col.Rating >= 3))
                    .order_by("Price", descending=True)
                    .top(10)
                    .execute())
            for product in page:
                print(product["Name"], product["Price"])

        Every page of a server-paged result::

            for product in client.query.get_all(client.query.builder("Products").page_size(50)):
                print(product["Name"])

        Function call::

            top = client.query.call_function(
                client.query.builder("Products").function("TopSelling", {"count": 5})
            )

        Changes since a previous query::

            changes = client.query.get_all_delta(page.delta_link, Product)
            for removed in changes.deleted:
                print(removed.id, removed.reason)
    """

    def __init__(self, client: "ODataClient") -> None:
        """
        Initialize QueryOperations.

        :param client: Parent ODataClient instance.
        :type client: ODataClient
        """
        self._client = client

    def builder(self, entity_set: str) -> QueryBuilder:
        """
        Create a query builder bound to this client.

        The returned builder can be chained and executed directly via ``.execute()``.

        :param entity_set: Entity set name, for example ``"Products"``.
        :type entity_set: str
        :return: Bound query builder.
        :rtype: ~odata_client.query.builder.QueryBuilder
        """
        return QueryBuilder(entity_set, _query_ops=self)

    def get(
        self,
        query: QueryBuilder,
        result_type: Any = None,
        *,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> ODataResponse:
        """
        Execute a query and return the first page.

        :param query: Query descriptor.
        :type query: ~odata_client.query.builder.QueryBuilder
        :param result_type: Type each entity is bound to; ``None`` keeps plain dicts.
        :param cancellation_token: Optional token to abort the request.
        :return: The page with ``value``, ``count``, ``next_link`` and ``delta_link``.
        :rtype: ~odata_client.core.results.ODataResponse

        :raises ~odata_client.core.errors.HttpError: If the service returns a non-success status.
        """
        return self._client._get_odata()._query(query, result_type, cancellation_token)

    def iter_pages(
        self,
        query: QueryBuilder,
        result_type: Any = None,
        *,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Iterator[ODataResponse]:
        """
        Lazily yield every page, following ``@odata.nextLink``.

        Each page is requested only when the previous one has been consumed.
        """
        yield from self._client._get_odata()._query_pages(query, result_type, cancellation_token)

    def get_all(
        self,
        query: QueryBuilder,
        result_type: Any = None,
        *,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> List[Any]:
        """
        Execute a query and collect the entities of every page.

        :return: All entities across pages, in service order.
        :rtype: list
        """
        items: List[Any] = []
        for page in self.iter_pages(query, result_type, cancellation_token=cancellation_token):
            items.extend(page.value)
        return items

    def call_function(
        self,
        query: QueryBuilder,
        result_type: Any = None,
        *,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Any:
        """
        Invoke the OData function described by ``query`` (see
        :meth:`~odata_client.query.builder.QueryBuilder.function`).

        :return: The function result bound to ``result_type``.
        """
        return self._client._get_odata()._call_function(query, result_type, cancellation_token)

    # ------------------------------------------------------------ delta

    def get_delta(
        self,
        delta_link: str,
        result_type: Any = None,
        *,
        headers: Optional[Dict[str, str]] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> DeltaResponse:
        """
        Read one page of changes from the ``@odata.deltaLink`` of an earlier response.

        Entries annotated ``@removed`` (or ``@odata.removed``) are returned in
        ``deleted``; everything else is bound to ``result_type`` in ``value``.

        :param delta_link: Absolute or service-relative delta link.
        :param result_type: Type each changed entity is bound to; ``None`` keeps plain dicts.
        :rtype: ~odata_client.core.results.DeltaResponse
        """
        return self._client._get_odata()._get_delta(delta_link, result_type, headers, cancellation_token)

    def get_all_delta(
        self,
        delta_link: str,
        result_type: Any = None,
        *,
        headers: Optional[Dict[str, str]] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> DeltaResponse:
        """
        Read every page of a delta, following next links.

        :return: All changes and removals, with the final ``delta_link`` to use next time.
        :rtype: ~odata_client.core.results.DeltaResponse
        """
        return self._client._get_odata()._get_all_delta(delta_link, result_type, headers, cancellation_token)

    # ------------------------------------------------------------ crossjoin

    def crossjoin(self, *entity_sets: str) -> CrossJoinBuilder:
        """
        Create a ``$crossjoin`` builder bound to this client.

        :param entity_sets: Two or more entity set names.
        :raises ~odata_client.core.errors.ValidationError: If fewer than two are given.

        Example::

            rows = (client.query.crossjoin("Products", "Categories")
                    .filter(col.Products.CategoryId == col.Categories.Id)
                    .execute())
            for row in rows:
                print(row.get_entity("Products", Product), row.get_entity("Categories"))
        """
        return CrossJoinBuilder(list(entity_sets), _query_ops=self)

    def get_crossjoin(
        self,
        join: CrossJoinBuilder,
        *,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> CrossJoinResponse:
        """Execute a cross-join and return the first page of rows."""
        return self._client._get_odata()._get_crossjoin(join, cancellation_token)

    def get_all_crossjoin(
        self,
        join: CrossJoinBuilder,
        *,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> CrossJoinResponse:
        """Execute a cross-join and collect the rows of every page."""
        return self._client._get_odata()._get_all_crossjoin(join, cancellation_token)
