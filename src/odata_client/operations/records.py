# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Entity CRUD operations namespace."""

from __future__ import annotations

from typing import Any, Optional, TYPE_CHECKING

from ..core.cancellation import CancellationToken
from ..core.results import EntityResult

if TYPE_CHECKING:
    from ..client import ODataClient


class RecordOperations:
    """
    Single-entity CRUD operations.

    Accessed via ``client.records``. Keys may be scalars (``1``, ``"ALFKI"``, a
    :class:`uuid.UUID`) or mappings for composite keys (``{"OrderID": 1, "ProductID": 7}``).

    Example:
        Optimistic concurrency::

            current = client.records.get("Products", 1)
            client.records.update("Products", 1, {"Price": 12.5}, etag=current.etag)

        A concurrent change in between raises
        :class:`~odata_client.core.errors.ConcurrencyError`.
    """

    def __init__(self, client: "ODataClient") -> None:
        """
        Initialize RecordOperations.

        :param client: Parent ODataClient instance.
        :type client: ODataClient
        """
        self._client = client

    def get(
        self,
        entity_set: str,
        key: Any,
        *,
        select: Optional[str] = None,
        result_type: Any = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> EntityResult:
        """
        Fetch one entity by key.

        :param entity_set: Entity set name.
        :type entity_set: str
        :param key: Entity key.
        :param select: Optional comma separated ``$select`` list.
        :type select: str or None
        :param result_type: Type the entity is bound to; ``None`` keeps a dict.
        :param cancellation_token: Optional token to abort the request.
        :return: The entity and its ETag.
        :rtype: ~odata_client.core.results.EntityResult

        :raises ~odata_client.core.errors.NotFoundError: If no entity has this key.
        :raises ~odata_client.core.errors.ValidationError: If ``key`` is ``None``.
        """
        return self._client._get_odata()._get(entity_set, key, select, result_type, cancellation_token)

    def create(
        self,
        entity_set: str,
        entity: Any,
        *,
        result_type: Any = None,
        return_representation: bool = True,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> EntityResult:
        """
        Create an entity.

        :param entity_set: Entity set name.
        :type entity_set: str
        :param entity: A dict or dataclass instance.
        :param result_type: Type the returned representation is bound to. Defaults to the
            entity's class when ``entity`` is not a dict.
        :param return_representation: Send ``Prefer: return=representation``.
        :type return_representation: bool
        :return: The created entity (when returned) and its ETag.
        :rtype: ~odata_client.core.results.EntityResult
        """
        if result_type is None and not isinstance(entity, dict):
            result_type = type(entity)
        return self._client._get_odata()._create(
            entity_set, entity, result_type, return_representation, cancellation_token
        )

    def update(
        self,
        entity_set: str,
        key: Any,
        patch: Any,
        *,
        etag: Optional[str] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> EntityResult:
        """
        Apply a partial update (PATCH).

        :param etag: Expected entity version sent as ``If-Match``.
        :type etag: str or None
        :raises ~odata_client.core.errors.ConcurrencyError: If ``etag`` no longer matches.
        """
        return self._client._get_odata()._update(entity_set, key, patch, etag, cancellation_token)

    def delete(
        self,
        entity_set: str,
        key: Any,
        *,
        etag: Optional[str] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> EntityResult:
        """
        Delete an entity, conditionally when ``etag`` is given.

        :raises ~odata_client.core.errors.ConcurrencyError: If ``etag`` no longer matches.
        """
        return self._client._get_odata()._delete(entity_set, key, etag, cancellation_token)
