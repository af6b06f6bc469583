# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Result types for OData client operations.

- :class:`OperationResult`: base result carrying the client request ID
- :class:`ODataResponse`: one page of a collection query (``value``, count and links)
- :class:`EntityResult`: a single entity with the ETag the service reported for it
- :class:`DeltaResponse`: changed entities and removal tombstones from a delta link
- :class:`CrossJoinResponse`: rows of a ``$crossjoin`` query, keyed by entity set

Example::

    page = client.query.builder("Products").count().top(5).execute()
    print(page.count, len(page))
    for product in page:
        print(product["Name"])
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Iterator, List, Optional, TypeVar

from .serialization import JsonCodec, default_codec

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult:
    """
    Base result containing request metadata.

    :param client_request_id: Client-generated request ID, also attached to log records and spans.
    :type client_request_id: :class:`str` | None
    """

    client_request_id: Optional[str] = None


@dataclass(frozen=True)
class ODataResponse(OperationResult, Generic[T]):
    """
    One page of a collection response.

    :param value: Entities in this page, bound to the requested result type when one was given.
    :type value: :class:`list`
    :param count: ``@odata.count`` when ``$count=true`` was requested.
    :type count: :class:`int` | None
    :param next_link: ``@odata.nextLink`` for server-driven paging.
    :type next_link: :class:`str` | None
    :param delta_link: ``@odata.deltaLink`` for change tracking.
    :type delta_link: :class:`str` | None
    :param etag: ``ETag`` response header, when the service sent one.
    :type etag: :class:`str` | None
    """

    value: List[T] = field(default_factory=list)
    count: Optional[int] = None
    next_link: Optional[str] = None
    delta_link: Optional[str] = None
    etag: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return self.next_link is not None

    def __iter__(self) -> Iterator[T]:
        return iter(self.value)

    def __len__(self) -> int:
        return len(self.value)

    def __getitem__(self, index: int) -> T:
        return self.value[index]


@dataclass(frozen=True)
class EntityResult(OperationResult, Generic[T]):
    """
    A single entity read or written by a record operation.

    :param entity: The entity payload (``None`` for operations that return no content).
    :param etag: ``ETag`` response header or ``@odata.etag`` annotation, used for ``If-Match``.
    """

    entity: Optional[T] = None
    etag: Optional[str] = None
    status_code: int = 0


@dataclass(frozen=True)
class DeletedEntity:
    """
    An entity reported as removed in a delta response.

    :param id: The ``@odata.id`` of the removed entity (or its ``id`` property).
    :param reason: ``"deleted"``, or ``"changed"`` when the entity no longer matches the query.
    """

    id: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class DeltaResponse(OperationResult, Generic[T]):
    """
    Changes since a previous query, read from its ``@odata.deltaLink``.

    :param value: Added or modified entities.
    :param deleted: Removal tombstones (``@removed`` / ``@odata.removed`` entries).
    :param count: ``@odata.count`` when the service reported one.
    :param next_link: Link to the next page of this delta.
    :param delta_link: Link to request the next round of changes.
    """

    value: List[T] = field(default_factory=list)
    deleted: List[DeletedEntity] = field(default_factory=list)
    count: Optional[int] = None
    next_link: Optional[str] = None
    delta_link: Optional[str] = None

    def __iter__(self) -> Iterator[T]:
        return iter(self.value)

    def __len__(self) -> int:
        return len(self.value)


@dataclass(frozen=True)
class CrossJoinRow:
    """One ``$crossjoin`` result row: the JSON of each joined entity keyed by entity set."""

    entities: Dict[str, Any] = field(default_factory=dict)

    def has_entity(self, entity_set: str) -> bool:
        return entity_set in self.entities

    def get_entity(self, entity_set: str, result_type: Any = None, codec: Optional[JsonCodec] = None) -> Any:
        """
        Return the entity from ``entity_set`` bound to ``result_type``, or ``None`` when absent.

        :raises ~odata_client.core.errors.DeserializationError: If binding fails.
        """
        if entity_set not in self.entities:
            return None
        return (codec or default_codec()).bind(self.entities[entity_set], result_type)


@dataclass(frozen=True)
class CrossJoinResponse(OperationResult):
    value: List[CrossJoinRow] = field(default_factory=list)
    count: Optional[int] = None
    next_link: Optional[str] = None

    def __iter__(self) -> Iterator[CrossJoinRow]:
        return iter(self.value)

    def __len__(self) -> int:
        return len(self.value)


__all__ = [
    "OperationResult",
    "ODataResponse",
    "EntityResult",
    "DeletedEntity",
    "DeltaResponse",
    "CrossJoinRow",
    "CrossJoinResponse",
]
