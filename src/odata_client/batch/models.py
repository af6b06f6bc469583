# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Batch request and response models.

A :class:`BatchBuilder` collects operations and atomic changesets in insertion
order; the encoder turns it into one ``multipart/mixed`` request and the decoder
turns the reply into a :class:`BatchResponse` with one
:class:`BatchOperationResult` per operation, in flattened operation order.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Union

from ..common.constants import HEADER_ETAG
from ..core._error_codes import VALIDATION_DUPLICATE_OPERATION_ID, http_subcode
from ..core.errors import ConcurrencyError, HttpError, ValidationError
from ..query.builder import QueryBuilder
from ..query.literals import format_key

if TYPE_CHECKING:
    from ..core.cancellation import CancellationToken


class BatchOperationType(str, Enum):
    """Kind of operation in a batch, with the HTTP method it is sent as."""

    GET = "GET"
    CREATE = "POST"
    UPDATE = "PATCH"
    DELETE = "DELETE"

    @property
    def method(self) -> str:
        return self.value


def _new_operation_id() -> str:
    return uuid.uuid4().hex[:8]


def _new_changeset_id() -> str:
    return f"changeset_{uuid.uuid4().hex}"[:20]


@dataclass
class BatchOperation:
    """
    One request inside a batch.

    :param operation_type: GET, CREATE, UPDATE or DELETE.
    :param url: URL relative to the service root, e.g. ``Products(1)``.
    :param body: JSON-serializable payload for CREATE and UPDATE.
    :param etag: Sent as ``If-Match`` for UPDATE and DELETE.
    :param headers: Extra headers for this part.
    :param result_type: Type the response body is bound to on success.
    :param id: Correlation id, sent as ``Content-ID``. Unique within a batch.
    """

    operation_type: BatchOperationType
    url: str
    body: Any = None
    etag: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    result_type: Any = None
    id: str = field(default_factory=_new_operation_id)

    @property
    def method(self) -> str:
        return self.operation_type.method


@dataclass
class Changeset:
    """Operations that the service applies atomically: all succeed or all fail."""

    operations: List[BatchOperation] = field(default_factory=list)
    id: str = field(default_factory=_new_changeset_id)


BatchItem = Union[BatchOperation, Changeset]


def _entity_url(entity_set: str, key: Any) -> str:
    return f"{entity_set}({format_key(key)})"


class _OperationCollector:
    """Shared ``create``/``update``/``delete`` for batches and changesets."""

    def _add(self, operation: BatchOperation) -> str:
        raise NotImplementedError

    def create(
        self,
        entity_set: str,
        entity: Any,
        *,
        result_type: Any = None,
        headers: Optional[Dict[str, str]] = None,
        operation_id: Optional[str] = None,
    ) -> str:
        """
        Queue ``POST {entity_set}``.

        :return: The operation id used to find the result in :class:`BatchResponse`.
        :rtype: str
        """
        if result_type is None and entity is not None and not isinstance(entity, dict):
            result_type = type(entity)
        return self._add(
            BatchOperation(
                BatchOperationType.CREATE,
                entity_set,
                body=entity,
                headers=dict(headers or {}),
                result_type=result_type,
                **({"id": operation_id} if operation_id else {}),
            )
        )

    def update(
        self,
        entity_set: str,
        key: Any,
        patch: Any,
        *,
        etag: Optional[str] = None,
        result_type: Any = None,
        headers: Optional[Dict[str, str]] = None,
        operation_id: Optional[str] = None,
    ) -> str:
        """Queue ``PATCH {entity_set}({key})``; ``etag`` is sent as ``If-Match``."""
        return self._add(
            BatchOperation(
                BatchOperationType.UPDATE,
                _entity_url(entity_set, key),
                body=patch,
                etag=etag,
                headers=dict(headers or {}),
                result_type=result_type,
                **({"id": operation_id} if operation_id else {}),
            )
        )

    def delete(
        self,
        entity_set: str,
        key: Any,
        *,
        etag: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        operation_id: Optional[str] = None,
    ) -> str:
        """Queue ``DELETE {entity_set}({key})``; ``etag`` is sent as ``If-Match``."""
        return self._add(
            BatchOperation(
                BatchOperationType.DELETE,
                _entity_url(entity_set, key),
                etag=etag,
                headers=dict(headers or {}),
                **({"id": operation_id} if operation_id else {}),
            )
        )


class ChangesetBuilder(_OperationCollector):
    """
    Adds modification requests to one :class:`Changeset`.

    Usable as a context manager for readability::

        with batch.changeset() as cs:
            cs.create("Orders", order)
            cs.update("Customers", 7, {"Status": "Active"})
    """

    def __init__(self, changeset: Changeset, owner: "BatchBuilder") -> None:
        self.changeset = changeset
        self._owner = owner

    def _add(self, operation: BatchOperation) -> str:
        self._owner._register_id(operation.id)
        self.changeset.operations.append(operation)
        return operation.id

    def __enter__(self) -> "ChangesetBuilder":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """No-op; the changeset is sent with the rest of the batch on ``execute()``."""


class BatchBuilder(_OperationCollector):
    """
    Collects batch items in insertion order.

    Obtained from ``client.batch.create()``; each add method returns the operation id.

    Example::

        batch = client.batch.create()
        first = batch.get("Products", 1, result_type=Product)
        with batch.changeset() as cs:
            cs.create("Products", Product(id=0, name="Widget"))
            cs.delete("Products", 2, etag='W/"5"')
        response = batch.execute()
        product = response.get_result(0, Product)
    """

    def __init__(self, batch_ops: Any = None) -> None:
        self._items: List[BatchItem] = []
        self._ids: set = set()
        self._batch_ops = batch_ops

    @property
    def items(self) -> List[BatchItem]:
        return list(self._items)

    def _register_id(self, operation_id: str) -> None:
        if operation_id in self._ids:
            raise ValidationError(
                f"Duplicate batch operation id: {operation_id}", subcode=VALIDATION_DUPLICATE_OPERATION_ID
            )
        self._ids.add(operation_id)

    def _add(self, operation: BatchOperation) -> str:
        self._register_id(operation.id)
        self._items.append(operation)
        return operation.id

    def add(self, item: BatchItem) -> "BatchBuilder":
        """Append a pre-built :class:`BatchOperation` or :class:`Changeset`."""
        if isinstance(item, Changeset):
            for op in item.operations:
                self._register_id(op.id)
            self._items.append(item)
        else:
            self._add(item)
        return self

    def get(
        self,
        entity_set: str,
        key: Any = None,
        *,
        result_type: Any = None,
        headers: Optional[Dict[str, str]] = None,
        operation_id: Optional[str] = None,
    ) -> str:
        """Queue ``GET {entity_set}({key})`` (or the bare entity set when ``key`` is ``None``)."""
        url = entity_set if key is None else _entity_url(entity_set, key)
        return self._add(
            BatchOperation(
                BatchOperationType.GET,
                url,
                headers=dict(headers or {}),
                result_type=result_type,
                **({"id": operation_id} if operation_id else {}),
            )
        )

    def query(
        self,
        builder: QueryBuilder,
        *,
        result_type: Any = None,
        operation_id: Optional[str] = None,
    ) -> str:
        """Queue a GET for the URL and headers of a :class:`QueryBuilder`."""
        return self._add(
            BatchOperation(
                BatchOperationType.GET,
                builder.build_url(),
                headers=builder.headers,
                result_type=result_type,
                **({"id": operation_id} if operation_id else {}),
            )
        )

    def changeset(self) -> ChangesetBuilder:
        """Start a new atomic changeset at the current position in the batch."""
        changeset = Changeset()
        self._items.append(changeset)
        return ChangesetBuilder(changeset, self)

    def all_operations(self) -> List[BatchOperation]:
        """Operations in wire order, with changesets flattened in place."""
        ops: List[BatchOperation] = []
        for item in self._items:
            if isinstance(item, Changeset):
                ops.extend(item.operations)
            else:
                ops.append(item)
        return ops

    def execute(self, cancellation_token: Optional["CancellationToken"] = None) -> "BatchResponse":
        """
        Send the batch through the client that created this builder.

        :raises RuntimeError: If the builder was not created via ``client.batch.create()``.
        """
        if self._batch_ops is None:
            raise RuntimeError(
                "Cannot execute: batch was not created via client.batch.create(). "
                "Use client.batch.execute(batch) instead."
            )
        return self._batch_ops.execute(self, cancellation_token=cancellation_token)


@dataclass
class BatchOperationResult:
    """
    Outcome of one batch operation.

    :param operation_id: Id of the operation this result belongs to.
    :param status_code: Status from the embedded response line (0 when the service sent none).
    :param response_body: Raw body text.
    :param result: Body bound to the operation's result type, when it succeeded and one was declared.
    :param error_message: Raw body of a failed operation.
    :param headers: Headers of the embedded response.
    :param request_etag: ``If-Match`` value sent with the operation, if any.
    """

    operation_id: str
    status_code: int = 0
    response_body: Optional[str] = None
    result: Any = None
    error_message: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    request_etag: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def etag(self) -> Optional[str]:
        for name, value in self.headers.items():
            if name.lower() == HEADER_ETAG.lower():
                return value
        return None

    @property
    def is_concurrency_conflict(self) -> bool:
        return self.status_code == 412

    def raise_for_status(self) -> None:
        """
        Raise the error matching a failed operation.

        :raises ~odata_client.core.errors.ConcurrencyError: For 412, carrying the sent and current ETags.
        :raises ~odata_client.core.errors.HttpError: For any other non-2xx status.
        """
        if self.is_success:
            return
        if self.is_concurrency_conflict:
            raise ConcurrencyError(
                f"Batch operation {self.operation_id} failed the If-Match precondition",
                response_body=self.response_body,
                request_etag=self.request_etag,
                current_etag=self.etag,
            )
        raise HttpError(
            f"Batch operation {self.operation_id} failed with status {self.status_code}",
            self.status_code,
            response_body=self.response_body,
            subcode=http_subcode(self.status_code),
        )


@dataclass
class BatchResponse:
    """Per-operation results of a batch, in flattened operation order."""

    results: List[BatchOperationResult] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return len(self.results) > 0 and all(r.is_success for r in self.results)

    @property
    def has_errors(self) -> bool:
        return any(not r.is_success for r in self.results)

    @property
    def failed_results(self) -> List[BatchOperationResult]:
        return [r for r in self.results if not r.is_success]

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[BatchOperationResult]:
        return iter(self.results)

    def __getitem__(self, index: int) -> BatchOperationResult:
        return self.results[index]

    def get_result(self, index: int, result_type: Any = None) -> Any:
        """
        Bound result of the operation at ``index``.

        :raises LookupError: If the operation produced no result, or it is not a ``result_type``.
        """
        op = self.results[index]
        if op.result is None:
            raise LookupError(f"Operation at index {index} has no result. Status: {op.status_code}")
        if result_type is not None and not isinstance(op.result, result_type):
            raise LookupError(
                f"Operation at index {index} result is {type(op.result).__name__}, expected {result_type.__name__}"
            )
        return op.result

    def try_get_result(self, index: int, result_type: Any = None) -> Optional[Any]:
        """Like :meth:`get_result` but returns ``None`` instead of raising."""
        if index < 0 or index >= len(self.results):
            return None
        value = self.results[index].result
        if value is None or (result_type is not None and not isinstance(value, result_type)):
            return None
        return value

    def get_by_id(self, operation_id: str) -> Optional[BatchOperationResult]:
        for r in self.results:
            if r.operation_id == operation_id:
                return r
        return None


__all__ = [
    "BatchOperationType",
    "BatchOperation",
    "Changeset",
    "BatchBuilder",
    "ChangesetBuilder",
    "BatchOperationResult",
    "BatchResponse",
]
