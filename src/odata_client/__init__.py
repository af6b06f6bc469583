# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
OData v4 client: typed query building, ``$batch``, ETag concurrency and
long-running operations over ``requests``.
"""

from .async_operation import AsyncOperation, AsyncOperationResult, AsyncOperationStatus
from .client import ODataClient
from .core.cancellation import CancellationToken
from .core.config import ODataConfig
from .core.errors import (
    AsyncOperationError,
    AsyncOperationTimeoutError,
    ConcurrencyError,
    DeserializationError,
    HttpError,
    ODataError,
    OperationCancelledError,
    UnsupportedExpressionError,
    ValidationError,
)
from .query import QueryBuilder, captured, closure, col, entity

__version__ = "0.1.0"

__all__ = [
    "ODataClient",
    "ODataConfig",
    "QueryBuilder",
    "CancellationToken",
    "AsyncOperation",
    "AsyncOperationResult",
    "AsyncOperationStatus",
    "col",
    "entity",
    "captured",
    "closure",
    "ODataError",
    "ValidationError",
    "UnsupportedExpressionError",
    "DeserializationError",
    "HttpError",
    "ConcurrencyError",
    "AsyncOperationError",
    "AsyncOperationTimeoutError",
    "OperationCancelledError",
]
