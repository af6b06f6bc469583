# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
HTTP client with automatic retry logic, timeout handling, and optional session support.

This module provides :class:`~odata_client.core._http._HttpClient`, a wrapper
around the requests library that adds configurable retry behavior for transient
network errors and status codes, timeout management based on HTTP method types,
cooperative cancellation, and optional connection pooling via session reuse.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Optional

import requests

from ._error_codes import TRANSIENT_STATUS
from .cancellation import CancellationToken, sleep_or_cancel

logger = logging.getLogger(__name__)


class _HttpClient:
    """
    HTTP client with configurable retry logic, timeout handling, and optional session support.

    :param retries: Maximum number of attempts for transient errors. Default is 5.
    :type retries: :class:`int` | None
    :param backoff: Base delay in seconds between retry attempts. Default is 0.5.
    :type backoff: :class:`float` | None
    :param timeout: Default request timeout in seconds. If None, uses per-method defaults.
    :type timeout: :class:`float` | None
    :param max_backoff: Upper bound for a single retry delay. Default is 60.0.
    :type max_backoff: :class:`float` | None
    :param jitter: Add ±25% random variation to retry delays. Default is True.
    :type jitter: :class:`bool` | None
    :param retry_transient_errors: Retry 429/502/503/504 responses. Default is True.
    :type retry_transient_errors: :class:`bool` | None
    :param session: Optional requests.Session for connection pooling.
    :type session: :class:`requests.Session` | None
    """

    def __init__(
        self,
        retries: Optional[int] = None,
        backoff: Optional[float] = None,
        timeout: Optional[float] = None,
        max_backoff: Optional[float] = None,
        jitter: Optional[bool] = None,
        retry_transient_errors: Optional[bool] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.max_attempts = max(1, retries if retries is not None else 5)
        self.base_delay = backoff if backoff is not None else 0.5
        self.max_backoff = max_backoff if max_backoff is not None else 60.0
        self.default_timeout: Optional[float] = timeout
        self.jitter = jitter if jitter is not None else True
        self.retry_transient_errors = retry_transient_errors if retry_transient_errors is not None else True
        self._session = session

    def _request(
        self,
        method: str,
        url: str,
        *,
        cancellation_token: Optional[CancellationToken] = None,
        **kwargs: Any,
    ) -> requests.Response:
        """
        Execute an HTTP request with automatic retry logic and timeout management.

        Applies default timeouts based on HTTP method (120s for POST/DELETE, 10s for others)
        and retries network errors and transient status codes with exponential backoff.
        The cancellation token is checked before every attempt and interrupts back-off sleeps.

        :param method: HTTP method (GET, POST, PATCH, DELETE, etc.).
        :type method: :class:`str`
        :param url: Target URL for the request.
        :type url: :class:`str`
        :param cancellation_token: Optional token that aborts the call between attempts.
        :type cancellation_token: ~odata_client.core.cancellation.CancellationToken | None
        :param kwargs: Additional arguments passed to ``requests.request()`` or
            ``session.request()``, including headers, data, etc.
        :return: HTTP response object.
        :rtype: :class:`requests.Response`
        :raises requests.exceptions.RequestException: If all retry attempts fail.
        :raises ~odata_client.core.errors.OperationCancelledError: If the token is cancelled.
        """
        if "timeout" not in kwargs:
            if self.default_timeout is not None:
                kwargs["timeout"] = self.default_timeout
            else:
                m = (method or "").lower()
                kwargs["timeout"] = 120 if m in ("post", "delete") else 10

        for attempt in range(self.max_attempts):
            if cancellation_token is not None:
                cancellation_token.raise_if_cancelled()
            try:
                if self._session is not None:
                    response = self._session.request(method, url, **kwargs)
                else:
                    response = requests.request(method, url, **kwargs)
            except requests.exceptions.RequestException as exc:
                if attempt == self.max_attempts - 1:
                    raise
                delay = self._calculate_retry_delay(attempt)
                logger.debug("%s %s failed (%s); retrying in %.2fs", method, url, exc, delay)
                sleep_or_cancel(delay, cancellation_token)
                continue

            if (
                self.retry_transient_errors
                and response.status_code in TRANSIENT_STATUS
                and attempt < self.max_attempts - 1
            ):
                delay = self._calculate_retry_delay(attempt, response)
                logger.debug("%s %s returned %s; retrying in %.2fs", method, url, response.status_code, delay)
                sleep_or_cancel(delay, cancellation_token)
                continue
            return response

        # This should never be reached due to the logic above
        raise RuntimeError("Unexpected end of retry loop")

    def _calculate_retry_delay(self, attempt: int, response: Optional[requests.Response] = None) -> float:
        """
        Delay before the next attempt.

        A valid integer ``Retry-After`` header wins (capped at ``max_backoff``). Otherwise
        ``base_delay * 2**attempt``, capped at ``max_backoff``, with ±25% jitter when enabled.
        """
        if response is not None and "Retry-After" in response.headers:
            try:
                retry_after = int(response.headers["Retry-After"])
                return min(retry_after, self.max_backoff)
            except (ValueError, TypeError):
                pass

        delay = min(self.base_delay * (2**attempt), self.max_backoff)
        if self.jitter:
            jitter_range = delay * 0.25
            delay = max(0, delay + random.uniform(-jitter_range, jitter_range))
        return delay

    def close(self) -> None:
        """
        Close the HTTP client and release resources.

        If a session was provided, this method closes it. Safe to call multiple times.
        """
        if self._session is not None:
            self._session.close()
            self._session = None
