# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Long-running action operations namespace."""

from __future__ import annotations

from typing import Any, Optional, TYPE_CHECKING

from ..async_operation import AsyncOperationResult
from ..core.cancellation import CancellationToken

if TYPE_CHECKING:
    from ..client import ODataClient


class ActionOperations:
    """
    Invoke OData actions that may run asynchronously on the service.

    Accessed via ``client.actions``.
    """

    def __init__(self, client: "ODataClient") -> None:
        self._client = client

    def call_with_prefer_async(
        self,
        action_url: str,
        parameters: Any = None,
        result_type: Any = None,
        *,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> AsyncOperationResult:
        """
        POST an action with ``Prefer: respond-async``.

        :param action_url: Action path relative to the service root (or absolute).
        :type action_url: str
        :param parameters: Action body: a dict or dataclass.
        :param result_type: Type the final result is bound to.
        :return: ``is_async`` with a pollable ``operation``, or the synchronous result.
        :rtype: ~odata_client.async_operation.AsyncOperationResult

        :raises ~odata_client.core.errors.HttpError: If the call fails, or a 202 arrives
            without a ``Location`` header.
        """
        return self._client._get_odata()._call_with_prefer_async(
            action_url, parameters, result_type, cancellation_token
        )

    def call_and_wait(
        self,
        action_url: str,
        parameters: Any = None,
        result_type: Any = None,
        *,
        timeout: Optional[float] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Any:
        """Call the action and block until its result is available."""
        outcome = self.call_with_prefer_async(
            action_url, parameters, result_type, cancellation_token=cancellation_token
        )
        return outcome.get_result(timeout=timeout, cancellation_token=cancellation_token)
