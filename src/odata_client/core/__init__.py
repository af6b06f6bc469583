# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Core infrastructure components for the OData client.

This module contains the foundational components including authentication,
configuration, HTTP transport, cancellation, serialization and error handling.
"""

from .cancellation import CancellationToken
from .config import ODataConfig
from .results import CrossJoinResponse, DeltaResponse, EntityResult, ODataResponse, OperationResult
from .serialization import JsonCodec

__all__ = [
    "CancellationToken",
    "ODataConfig",
    "OperationResult",
    "ODataResponse",
    "EntityResult",
    "DeltaResponse",
    "CrossJoinResponse",
    "JsonCodec",
]
