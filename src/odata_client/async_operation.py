# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Long-running operations started with ``Prefer: respond-async``.

The service answers such a request with ``202 Accepted`` and a ``Location`` monitor
URL. :class:`AsyncOperation` polls that URL until the job finishes::

    PENDING --202--> RUNNING --2xx--> COMPLETED
       |               |  \\--other--> FAILED
       |               |
       +---------------+--cancel--> CANCELLED

Example::

    outcome = client.actions.call_with_prefer_async("Products/Reindex", {"Full": True})
    if outcome.is_async:
        print("monitor:", outcome.operation.monitor_url)
    report = outcome.get_result(timeout=300)
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar
from urllib.parse import urljoin

import requests

from .common.constants import HEADER_LOCATION
from .core.cancellation import CancellationToken, sleep_or_cancel
from .core.errors import (
    AsyncOperationError,
    AsyncOperationTimeoutError,
    DeserializationError,
    OperationCancelledError,
)
from .core.serialization import JsonCodec, default_codec

logger = logging.getLogger(__name__)

T = TypeVar("T")

# send(method, url, cancellation_token=...) -> requests.Response
Sender = Callable[..., requests.Response]
ResultDecoder = Callable[[requests.Response], Any]


class AsyncOperationStatus(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


_TERMINAL = frozenset({AsyncOperationStatus.COMPLETED, AsyncOperationStatus.FAILED, AsyncOperationStatus.CANCELLED})


class AsyncOperation(Generic[T]):
    """
    Client-side state machine for one server-side job.

    :param send: Callable issuing an HTTP request: ``send(method, url, cancellation_token=...)``.
    :param monitor_url: URL from the ``Location`` header of the 202 response.
    :param result_type: Type the completed body is bound to; ``None`` keeps plain JSON.
    :param poll_interval: Seconds between polls in :meth:`wait_for_completion`. Default is 5.
    :param codec: JSON codec used to bind the result.
    :param result_decoder: Optional override that turns the completed response into the result.
    """

    def __init__(
        self,
        send: Sender,
        monitor_url: str,
        result_type: Any = None,
        poll_interval: Optional[float] = None,
        codec: Optional[JsonCodec] = None,
        result_decoder: Optional[ResultDecoder] = None,
    ) -> None:
        self._send = send
        self._monitor_url = monitor_url
        self._result_type = result_type
        self.poll_interval = poll_interval if poll_interval is not None else 5.0
        self._codec = codec or default_codec()
        self._result_decoder = result_decoder
        self._status = AsyncOperationStatus.PENDING
        self._result: Optional[T] = None
        self._error_message: Optional[str] = None

    @property
    def monitor_url(self) -> str:
        return self._monitor_url

    @property
    def status(self) -> AsyncOperationStatus:
        return self._status

    @property
    def result(self) -> Optional[T]:
        """The bound result; only set once the operation is ``COMPLETED``."""
        return self._result

    @property
    def error_message(self) -> Optional[str]:
        """Raw body of the failing poll response; only set once the operation is ``FAILED``."""
        return self._error_message

    @property
    def is_completed(self) -> bool:
        """``True`` once the job has finished, successfully or not."""
        return self._status in (AsyncOperationStatus.COMPLETED, AsyncOperationStatus.FAILED)

    @property
    def is_terminal(self) -> bool:
        return self._status in _TERMINAL

    def _decode_result(self, response: requests.Response) -> None:
        if self._result_decoder is not None:
            try:
                self._result = self._result_decoder(response)
            except DeserializationError as exc:
                logger.warning("Failed to decode async operation result from %s: %s", self._monitor_url, exc)
            return
        text = response.text
        if not text:
            return
        try:
            self._result = self._codec.decode(text, self._result_type)
        except DeserializationError as exc:
            logger.warning("Failed to deserialize async operation result from %s: %s", self._monitor_url, exc)

    def poll(self, cancellation_token: Optional[CancellationToken] = None) -> bool:
        """
        Issue one GET against the monitor URL and advance the state.

        ``202`` keeps the job running (adopting a new ``Location`` when one is sent);
        another 2xx completes it and binds a non-empty body; anything else fails it
        with the raw body as the error message.

        :return: ``True`` while the job is still running. Polling an operation that
            has already reached a terminal state sends nothing and returns ``False``.
        :rtype: bool
        """
        if self.is_terminal:
            return False

        logger.debug("Polling async operation at %s", self._monitor_url)
        response = self._send("GET", self._monitor_url, cancellation_token=cancellation_token)
        logger.debug("Async operation poll response: %s", response.status_code)

        if response.status_code == 202:
            self._status = AsyncOperationStatus.RUNNING
            location = response.headers.get(HEADER_LOCATION)
            if location:
                new_url = urljoin(self._monitor_url, location)
                if new_url != self._monitor_url:
                    logger.debug("Async operation monitor URL moved to %s", new_url)
                    self._monitor_url = new_url
            return True

        if 200 <= response.status_code < 300:
            self._status = AsyncOperationStatus.COMPLETED
            self._decode_result(response)
            logger.debug("Async operation completed")
            return False

        self._status = AsyncOperationStatus.FAILED
        self._error_message = response.text
        logger.warning("Async operation failed with status %s: %s", response.status_code, self._error_message)
        return False

    def wait_for_completion(
        self,
        timeout: Optional[float] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Optional[T]:
        """
        Poll until the job reaches a terminal state.

        :param timeout: Seconds to wait before giving up; ``None`` waits indefinitely.
        :param cancellation_token: Aborts the wait; the inter-poll delay wakes immediately.
        :return: The bound result.
        :raises ~odata_client.core.errors.AsyncOperationTimeoutError: If ``timeout`` elapses first.
        :raises ~odata_client.core.errors.AsyncOperationError: If the job failed.
        :raises ~odata_client.core.errors.OperationCancelledError: If the token was cancelled
            or the job was cancelled.
        """
        start = time.monotonic()
        logger.debug(
            "Waiting for async operation at %s, timeout: %s",
            self._monitor_url,
            "indefinite" if timeout is None else f"{timeout}s",
        )
        while not self.is_terminal:
            if cancellation_token is not None:
                cancellation_token.raise_if_cancelled()
            elapsed = time.monotonic() - start
            if timeout is not None and elapsed >= timeout:
                raise AsyncOperationTimeoutError(
                    f"Async operation did not complete within {timeout}s",
                    monitor_url=self._monitor_url,
                    timeout=timeout,
                )
            self.poll(cancellation_token)
            if not self.is_terminal:
                delay = self.poll_interval
                if timeout is not None:
                    delay = max(0.0, min(delay, timeout - (time.monotonic() - start)))
                sleep_or_cancel(delay, cancellation_token)

        if self._status is AsyncOperationStatus.FAILED:
            raise AsyncOperationError(
                "Async operation failed", monitor_url=self._monitor_url, error_details=self._error_message
            )
        if self._status is AsyncOperationStatus.CANCELLED:
            raise OperationCancelledError("Async operation was cancelled.")
        return self._result

    def try_cancel(self, cancellation_token: Optional[CancellationToken] = None) -> bool:
        """
        Ask the service to cancel the job (``DELETE`` on the monitor URL).

        :return: ``True`` if the service accepted; the state becomes ``CANCELLED``.
            ``False`` without sending anything when the job is already terminal.
        :rtype: bool
        """
        if self.is_terminal:
            return False
        logger.debug("Attempting to cancel async operation at %s", self._monitor_url)
        response = self._send("DELETE", self._monitor_url, cancellation_token=cancellation_token)
        if 200 <= response.status_code < 300:
            self._status = AsyncOperationStatus.CANCELLED
            logger.debug("Async operation cancellation accepted")
            return True
        logger.warning("Async operation cancellation not accepted: %s", response.status_code)
        return False


class AsyncOperationResult(Generic[T]):
    """
    Outcome of a ``Prefer: respond-async`` request.

    The service may honour the preference (``is_async``; poll :attr:`operation`) or
    answer synchronously (:attr:`synchronous_result`). :meth:`get_result` hides the difference.
    """

    def __init__(
        self,
        is_async: bool,
        operation: Optional[AsyncOperation[T]] = None,
        synchronous_result: Optional[T] = None,
    ) -> None:
        self.is_async = is_async
        self.operation = operation
        self.synchronous_result = synchronous_result

    def get_result(
        self,
        timeout: Optional[float] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> Optional[T]:
        if not self.is_async or self.operation is None:
            return self.synchronous_result
        return self.operation.wait_for_completion(timeout, cancellation_token)

    def __repr__(self) -> str:
        if self.is_async and self.operation is not None:
            return f"AsyncOperationResult(is_async=True, status={self.operation.status.value})"
        return "AsyncOperationResult(is_async=False)"


__all__ = ["AsyncOperation", "AsyncOperationResult", "AsyncOperationStatus"]
