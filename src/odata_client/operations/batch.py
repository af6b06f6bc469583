# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""``$batch`` operations namespace."""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

from ..async_operation import AsyncOperationResult
from ..batch.models import BatchBuilder, BatchResponse
from ..core.cancellation import CancellationToken

if TYPE_CHECKING:
    from ..client import ODataClient


class BatchOperations:
    """
    Group many operations into a single ``$batch`` request.

    Accessed via ``client.batch``. Operations inside a changeset succeed or fail
    together; top-level operations are independent.

    Example::

        batch = client.batch.create()
        read_id = batch.get("Products", 1, result_type=Product)
        with batch.changeset() as cs:
            cs.create("Products", {"Name": "Widget", "Price": 9.5})
            cs.update("Products", 2, {"Price": 11}, etag='W/"5"')
        response = batch.execute()

        product = response.get_by_id(read_id).result
        for failed in response.failed_results:
            print(failed.operation_id, failed.status_code, failed.error_message)
    """

    def __init__(self, client: "ODataClient") -> None:
        """
        Initialize BatchOperations.

        :param client: Parent ODataClient instance.
        :type client: ODataClient
        """
        self._client = client

    def create(self) -> BatchBuilder:
        """
        Start a new batch bound to this client.

        :rtype: ~odata_client.batch.models.BatchBuilder
        """
        return BatchBuilder(self)

    def execute(
        self,
        batch: BatchBuilder,
        *,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> BatchResponse:
        """
        Send ``batch`` and decode the per-operation results.

        A failed operation does not raise; inspect
        :attr:`~odata_client.batch.models.BatchResponse.failed_results`.

        :raises ~odata_client.core.errors.HttpError: If the ``$batch`` request itself fails.
        """
        return self._client._get_odata()._execute_batch(batch, cancellation_token)

    def execute_with_prefer_async(
        self,
        batch: BatchBuilder,
        *,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> AsyncOperationResult:
        """
        Send ``batch`` with ``Prefer: respond-async``.

        :return: Either a running operation whose result is the decoded
            :class:`~odata_client.batch.models.BatchResponse`, or the synchronous response.
        :rtype: ~odata_client.async_operation.AsyncOperationResult
        """
        return self._client._get_odata()._execute_batch_async(batch, cancellation_token)
