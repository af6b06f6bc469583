# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Cooperative cancellation for blocking client calls."""

from __future__ import annotations

import threading
import time
from typing import Optional

from .errors import OperationCancelledError


class CancellationToken:
    """
    Thread-safe cancellation signal passed to calls that may block.

    The token is checked before each HTTP attempt, during retry back-off and between
    async-operation polls. Waiting on the token returns early as soon as
    :meth:`cancel` is called from another thread.

    Example::

        token = CancellationToken()
        threading.Timer(30, token.cancel).start()
        client.actions.call_and_wait("Jobs/Rebuild", cancellation_token=token)
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """:raises ~odata_client.core.errors.OperationCancelledError: If cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelledError()

    def wait(self, seconds: Optional[float]) -> bool:
        """
        Sleep for up to ``seconds``, waking early on cancellation.

        :return: ``True`` if the token was cancelled while (or before) waiting.
        :rtype: :class:`bool`
        """
        return self._event.wait(seconds)


def sleep_or_cancel(seconds: float, token: Optional[CancellationToken]) -> None:
    """Sleep for ``seconds``; raise :class:`OperationCancelledError` if ``token`` fires first."""
    if token is None:
        time.sleep(seconds)
        return
    if token.wait(seconds):
        raise OperationCancelledError()


__all__ = ["CancellationToken", "sleep_or_cancel"]
